from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import InvalidField

BACKLOG_COLUMNS = 4
TITLE_MAX_LENGTH = 200
ORDER_INDEX_MIN = -(2**63)
ORDER_INDEX_MAX = 2**63 - 1


class TodoStatus(str, Enum):
    PENDING = "pending"
    DONE = "done"

    @classmethod
    def from_db(cls, raw: Optional[str]) -> "TodoStatus":
        # Anything that is not explicitly done is treated as pending.
        return cls.DONE if raw == cls.DONE.value else cls.PENDING


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_title(value: str) -> str:
    if value is None:
        raise ValueError("title is required")
    s = value.strip()
    if not (1 <= len(s) <= TITLE_MAX_LENGTH):
        raise ValueError(f"title length must be between 1 and {TITLE_MAX_LENGTH} characters")
    return s


def normalize_project(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    s = value.strip()
    return s or None


def date_part(value: Any) -> Any:
    # datetimes collapse to their calendar day; anything else is left to pydantic
    if isinstance(value, datetime):
        return value.date()
    return value


# PUBLIC_INTERFACE
class TodoRecord(BaseModel):
    """
    A single planner item, as persisted.

    Fields:
    - id: immutable UUID
    - title: non-empty title (trimmed, 1..200 chars)
    - status: pending or done
    - scheduled_for: day column the item lives in; None means backlog
    - order_index: sort key, only comparable inside one (scope, status) partition
    - notes: optional free text
    - project: optional project tag
    - epic_id: optional id of the parent record (one level only)
    - backlog_column: 0..3, only meaningful while scheduled_for is None
    - created_at / updated_at: UTC timestamps
    """

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(..., description="Unique identifier of the todo item")
    title: str = Field(..., description="Short title for the todo item")
    status: TodoStatus = Field(default=TodoStatus.PENDING, description="Completion status")
    scheduled_for: Optional[date] = Field(default=None, description="Day column; None for backlog")
    order_index: int = Field(
        default=0,
        ge=ORDER_INDEX_MIN,
        le=ORDER_INDEX_MAX,
        description="Relative sort key within the (scope, status) partition",
    )
    notes: Optional[str] = Field(default=None, description="Optional free-form notes")
    project: Optional[str] = Field(default=None, description="Optional project tag")
    epic_id: Optional[UUID] = Field(default=None, description="Parent epic id")
    backlog_column: int = Field(
        default=0, ge=0, le=BACKLOG_COLUMNS - 1, description="Backlog column (0..3)"
    )
    created_at: datetime = Field(default_factory=utcnow, description="Creation timestamp")
    updated_at: datetime = Field(default_factory=utcnow, description="Last update timestamp")

    @field_validator("scheduled_for", mode="before")
    @classmethod
    def validate_scheduled_for(cls, v: Any) -> Any:
        return date_part(v)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        return normalize_title(v)

    @field_validator("project")
    @classmethod
    def validate_project(cls, v: Optional[str]) -> Optional[str]:
        return normalize_project(v)

    @property
    def is_done(self) -> bool:
        return self.status is TodoStatus.DONE

    @property
    def is_backlog(self) -> bool:
        return self.scheduled_for is None


def invalid_field_from(exc: ValidationError) -> InvalidField:
    """Translate the first pydantic error into an InvalidField."""
    errors = exc.errors()
    if not errors:
        return InvalidField("record", str(exc))
    first = errors[0]
    loc = first.get("loc") or ("record",)
    return InvalidField(str(loc[0]), str(first.get("msg", "invalid value")))


def revise(record: TodoRecord, **changes: Any) -> TodoRecord:
    """
    Return a copy of `record` with `changes` applied and re-validated.

    Raises InvalidField if the revised record breaks a field constraint.
    """
    data = record.model_dump()
    data.update(changes)
    try:
        return TodoRecord.model_validate(data)
    except ValidationError as exc:
        raise invalid_field_from(exc) from exc
