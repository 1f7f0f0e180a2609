from __future__ import annotations

from typing import Optional
from uuid import UUID


class TodoError(Exception):
    """
    Base class for every error raised by the todo core.

    Adapters map errors into their own status codes with `is_client_error`:
    - caller-correctable input (bad id, missing epic, mismatched project, ...) -> True
    - HasChildren (blocking business rule) and DatabaseError (infrastructure) -> False
    """

    code: str = "todo::error"
    client_error: bool = False

    @property
    def is_client_error(self) -> bool:
        return self.client_error


class NotFound(TodoError):
    code = "todo::not_found"
    client_error = True

    def __init__(self, todo_id: UUID) -> None:
        self.todo_id = todo_id
        super().__init__(f"todo {todo_id} not found")


class EpicNotFound(TodoError):
    code = "todo::epic_not_found"
    client_error = True

    def __init__(self, epic_id: UUID) -> None:
        self.epic_id = epic_id
        super().__init__(f"epic {epic_id} not found")


class InvalidUuid(TodoError):
    code = "todo::invalid_uuid"
    client_error = True

    def __init__(self, value: object = None) -> None:
        self.value = value
        super().__init__("invalid UUID format")


class ProjectMismatch(TodoError):
    code = "todo::project_mismatch"
    client_error = True

    def __init__(self, given: str, epic: Optional[str]) -> None:
        self.given = given
        self.epic = epic
        super().__init__(f"project '{given}' does not match epic's project '{epic or ''}'")


class SelfReference(TodoError):
    code = "todo::self_reference"
    client_error = True

    def __init__(self) -> None:
        super().__init__("a todo cannot be its own epic")


class InvalidField(TodoError):
    code = "todo::invalid_field"
    client_error = True

    def __init__(self, field: str, reason: str) -> None:
        self.field = field
        self.reason = reason
        super().__init__(f"invalid {field}: {reason}")


class AmbiguousMatch(TodoError):
    code = "todo::ambiguous_match"
    client_error = True

    def __init__(self, text: str, count: int) -> None:
        self.text = text
        self.count = count
        super().__init__(f"{count} todos match '{text}', use the id instead")


class HasChildren(TodoError):
    code = "todo::has_children"

    def __init__(self, count: int) -> None:
        self.count = count
        super().__init__(f"cannot delete todo: it is an epic with {count} sub-todo(s)")


class DatabaseError(TodoError):
    """Opaque storage failure; the driver exception is chained as __cause__."""

    code = "todo::database"

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"database error: {detail}")
