from __future__ import annotations

from datetime import date, datetime
from typing import Union
from uuid import UUID

from .errors import InvalidField, InvalidUuid
from .models import date_part
from .schemas import ListScope

DateInput = Union[date, datetime, str]


# PUBLIC_INTERFACE
def parse_uuid(value: Union[UUID, str]) -> UUID:
    """
    Normalize an identifier to a UUID.

    Raises:
        InvalidUuid if the value is not a UUID or a parseable UUID string.
    """
    if isinstance(value, UUID):
        return value
    if not isinstance(value, str):
        raise InvalidUuid(value)
    try:
        return UUID(value.strip())
    except ValueError as exc:
        raise InvalidUuid(value) from exc


# PUBLIC_INTERFACE
def parse_date(value: DateInput) -> date:
    """
    Normalize a date input.
    - datetime: its date part
    - date: as-is
    - str: ISO8601 'YYYY-MM-DD'
    """
    if isinstance(value, date):
        return date_part(value)
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError as exc:
            raise InvalidField("date", "expected YYYY-MM-DD") from exc
    raise InvalidField("date", "expected date, datetime, or ISO8601 string")


# PUBLIC_INTERFACE
def parse_scope(value: str, today: date) -> ListScope:
    """
    Parse a user-facing scope name.

    Accepts 'today', 'backlog' (alias 'someday') or an ISO date.
    """
    s = value.strip().lower()
    if s == "today":
        return ListScope.day(today)
    if s in {"backlog", "someday"}:
        return ListScope.backlog()
    try:
        return ListScope.day(date.fromisoformat(s))
    except ValueError as exc:
        raise InvalidField("scope", "expected 'today', 'backlog', or YYYY-MM-DD") from exc
