from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models import BACKLOG_COLUMNS, TodoRecord, date_part, normalize_project, normalize_title


@dataclass(frozen=True)
class ListScope:
    """
    A column of the board: one calendar day, or the undated backlog.

    Build with ListScope.day(d) or ListScope.backlog().
    """

    scheduled_for: Optional[date] = None

    @classmethod
    def day(cls, value: date) -> "ListScope":
        return cls(scheduled_for=value)

    @classmethod
    def backlog(cls) -> "ListScope":
        return cls(scheduled_for=None)

    @classmethod
    def of(cls, record: TodoRecord) -> "ListScope":
        return cls(scheduled_for=record.scheduled_for)

    @property
    def is_backlog(self) -> bool:
        return self.scheduled_for is None

    def contains(self, record: TodoRecord) -> bool:
        return record.scheduled_for == self.scheduled_for

    def __str__(self) -> str:
        return "backlog" if self.is_backlog else self.scheduled_for.isoformat()


class ProjectMatch(str, Enum):
    ANY = "any"
    EQUALS = "equals"
    IS_NULL = "is_null"


@dataclass(frozen=True)
class ProjectFilter:
    """Project filter for list/stats: any project, one exact tag, or untagged only."""

    match: ProjectMatch = ProjectMatch.ANY
    value: Optional[str] = None

    @classmethod
    def any(cls) -> "ProjectFilter":
        return cls(ProjectMatch.ANY)

    @classmethod
    def equals(cls, value: str) -> "ProjectFilter":
        return cls(ProjectMatch.EQUALS, normalize_project(value))

    @classmethod
    def is_null(cls) -> "ProjectFilter":
        return cls(ProjectMatch.IS_NULL)

    def matches(self, project: Optional[str]) -> bool:
        if self.match is ProjectMatch.EQUALS:
            return project == self.value
        if self.match is ProjectMatch.IS_NULL:
            return project is None
        return True


@dataclass(frozen=True)
class ListOptions:
    """
    Filters for TodoService.list.
    """

    scope: ListScope
    include_done: bool = False
    project: ProjectFilter = field(default_factory=ProjectFilter.any)
    epic_id: Optional[UUID] = None

    @classmethod
    def today(cls, today: date) -> "ListOptions":
        return cls(scope=ListScope.day(today))


class MovePlacement(str, Enum):
    TOP = "top"
    BOTTOM = "bottom"


class ReorderDirection(str, Enum):
    UP = "up"
    DOWN = "down"


@dataclass(frozen=True)
class TodoStats:
    total: int = 0
    completed: int = 0
    remaining: int = 0


# PUBLIC_INTERFACE
class TodoCreate(BaseModel):
    """
    Input accepted by TodoService.add.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Write release notes",
                "scheduled_for": "2024-01-10",
                "notes": "Cover the migration steps",
                "project": "website",
                "epic_id": None,
                "backlog_column": 0,
            }
        }
    )

    title: str = Field(..., description="Short title for the todo item")
    scheduled_for: Optional[date] = Field(default=None, description="Day column; None for backlog")
    notes: Optional[str] = Field(default=None, description="Optional free-form notes")
    project: Optional[str] = Field(default=None, description="Optional project tag")
    epic_id: Optional[UUID] = Field(default=None, description="Parent epic id")
    backlog_column: int = Field(default=0, ge=0, le=BACKLOG_COLUMNS - 1, description="Backlog column")

    @field_validator("scheduled_for", mode="before")
    @classmethod
    def validate_scheduled_for(cls, v: Any) -> Any:
        return date_part(v)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """
        Strip whitespace and enforce 1..200 length.
        """
        return normalize_title(v)

    @field_validator("project")
    @classmethod
    def validate_project(cls, v: Optional[str]) -> Optional[str]:
        return normalize_project(v)
