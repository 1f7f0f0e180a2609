from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Dict, Iterable, List, Optional
from uuid import UUID

from .models import TodoRecord, TodoStatus, utcnow
from .schemas import ListScope, ProjectFilter
from .settings import Settings, get_settings


class StatusFilter(str, Enum):
    PENDING = "pending"
    DONE = "done"
    ANY = "any"

    @classmethod
    def partition_of(cls, record: TodoRecord) -> "StatusFilter":
        return cls.DONE if record.is_done else cls.PENDING

    def matches(self, status: TodoStatus) -> bool:
        if self is StatusFilter.PENDING:
            return status is not TodoStatus.DONE
        if self is StatusFilter.DONE:
            return status is TodoStatus.DONE
        return True


class Extremum(str, Enum):
    MIN = "min"
    MAX = "max"


@dataclass(frozen=True)
class RecordQuery:
    """
    Query parameters for fetching records.

    scope=None spans every column.
    """

    scope: Optional[ListScope] = None
    status: StatusFilter = StatusFilter.ANY
    project: ProjectFilter = field(default_factory=ProjectFilter.any)
    epic_id: Optional[UUID] = None
    title: Optional[str] = None

    def matches(self, record: TodoRecord) -> bool:
        if self.scope is not None and not self.scope.contains(record):
            return False
        if not self.status.matches(record.status):
            return False
        if not self.project.matches(record.project):
            return False
        if self.epic_id is not None and record.epic_id != self.epic_id:
            return False
        if self.title is not None and record.title != self.title:
            return False
        return True


# PUBLIC_INTERFACE
class Repository(ABC):
    """
    Abstract async storage contract for todo records.

    Every method is a single round trip; callers get no transaction across calls.
    """

    async def initialize(self) -> None:
        """Create storage structures if needed."""

    async def close(self) -> None:
        """Release held resources."""

    @abstractmethod
    async def get(self, todo_id: UUID) -> Optional[TodoRecord]:
        """Return a record by id, or None if not found."""

    @abstractmethod
    async def get_many(self, todo_ids: Iterable[UUID]) -> List[TodoRecord]:
        """Return the records whose ids are given; unknown ids are skipped."""

    @abstractmethod
    async def insert(self, record: TodoRecord) -> TodoRecord:
        """Store a new record and return it as persisted."""

    @abstractmethod
    async def save(self, record: TodoRecord) -> Optional[TodoRecord]:
        """
        Overwrite an existing record, refreshing updated_at.
        Return the stored record, or None if it no longer exists.
        """

    @abstractmethod
    async def delete(self, todo_id: UUID) -> bool:
        """Delete a record by id. Return True if deleted, False if not found."""

    @abstractmethod
    async def find(self, query: Optional[RecordQuery] = None) -> List[TodoRecord]:
        """
        Return records matching the query ordered by order_index ascending,
        ties broken by insertion order.
        """

    @abstractmethod
    async def order_index_extremum(
        self, scope: ListScope, status: StatusFilter, extremum: Extremum
    ) -> Optional[int]:
        """Return the min/max order_index in the partition, or None when it is empty."""

    @abstractmethod
    async def list_overdue(self, today: date) -> List[TodoRecord]:
        """Pending records scheduled strictly before `today`, by order_index ascending."""

    @abstractmethod
    async def count_children(self, epic_id: UUID) -> int:
        """Return how many records reference `epic_id`."""


class InMemoryRepository(Repository):
    """
    In-memory repository suitable for testing and the default runtime.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        # dicts keep insertion order, which doubles as the tie-break order.
        self._items: Dict[UUID, TodoRecord] = {}

    @staticmethod
    def _by_index(items: Iterable[TodoRecord]) -> List[TodoRecord]:
        return sorted(items, key=lambda r: r.order_index)

    async def get(self, todo_id: UUID) -> Optional[TodoRecord]:
        async with self._lock:
            return self._items.get(todo_id)

    async def get_many(self, todo_ids: Iterable[UUID]) -> List[TodoRecord]:
        wanted = set(todo_ids)
        async with self._lock:
            return [r for r in self._items.values() if r.id in wanted]

    async def insert(self, record: TodoRecord) -> TodoRecord:
        async with self._lock:
            self._items[record.id] = record
            return record

    async def save(self, record: TodoRecord) -> Optional[TodoRecord]:
        async with self._lock:
            if record.id not in self._items:
                return None
            stored = record.model_copy(update={"updated_at": utcnow()})
            self._items[record.id] = stored
            return stored

    async def delete(self, todo_id: UUID) -> bool:
        async with self._lock:
            return self._items.pop(todo_id, None) is not None

    async def find(self, query: Optional[RecordQuery] = None) -> List[TodoRecord]:
        q = query or RecordQuery()
        async with self._lock:
            return self._by_index(r for r in self._items.values() if q.matches(r))

    async def order_index_extremum(
        self, scope: ListScope, status: StatusFilter, extremum: Extremum
    ) -> Optional[int]:
        async with self._lock:
            indices = [
                r.order_index
                for r in self._items.values()
                if scope.contains(r) and status.matches(r.status)
            ]
        if not indices:
            return None
        return min(indices) if extremum is Extremum.MIN else max(indices)

    async def list_overdue(self, today: date) -> List[TodoRecord]:
        async with self._lock:
            return self._by_index(
                r
                for r in self._items.values()
                if r.scheduled_for is not None and r.scheduled_for < today and not r.is_done
            )

    async def count_children(self, epic_id: UUID) -> int:
        async with self._lock:
            return sum(1 for r in self._items.values() if r.epic_id == epic_id)


# PUBLIC_INTERFACE
def get_repository(settings: Optional[Settings] = None) -> Repository:
    """
    Factory to return the configured repository based on settings.
    - memory: InMemoryRepository
    - sqlite: SQLiteRepository (SQLAlchemy asyncio engine over aiosqlite)

    The returned repository still needs `await repo.initialize()`.
    """
    settings = settings or get_settings()
    if settings.persistence_backend == "sqlite":
        from .db import SQLiteRepository

        return SQLiteRepository(
            settings.sqlite_db_path,
            busy_timeout_ms=settings.sqlite_busy_timeout_ms,
            echo=settings.db_echo,
        )
    return InMemoryRepository()
