"""
daybook: ordering and validation core of a day-column task planner.

Public entry points are re-exported here for convenience imports.
"""

from .errors import (
    AmbiguousMatch,
    DatabaseError,
    EpicNotFound,
    HasChildren,
    InvalidField,
    InvalidUuid,
    NotFound,
    ProjectMismatch,
    SelfReference,
    TodoError,
)
from .models import TodoRecord, TodoStatus
from .schemas import ListOptions, ListScope, MovePlacement, ProjectFilter, ReorderDirection, TodoStats
from .service import TodoService

__all__ = [
    "AmbiguousMatch",
    "DatabaseError",
    "EpicNotFound",
    "HasChildren",
    "InvalidField",
    "InvalidUuid",
    "ListOptions",
    "ListScope",
    "MovePlacement",
    "NotFound",
    "ProjectFilter",
    "ProjectMismatch",
    "ReorderDirection",
    "SelfReference",
    "TodoError",
    "TodoRecord",
    "TodoService",
    "TodoStats",
    "TodoStatus",
]
