from __future__ import annotations

import os
import uuid
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import AsyncIterator, Iterable, List, Optional

import structlog
from sqlalchemy import (
    BigInteger,
    Date,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    delete,
    event,
    func,
    literal_column,
    select,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from .errors import DatabaseError
from .models import TodoRecord, TodoStatus, utcnow
from .repositories import Extremum, RecordQuery, Repository, StatusFilter
from .schemas import ListScope, ProjectMatch

log = structlog.get_logger()


class Base(DeclarativeBase):
    pass


class TodoRow(Base):
    """One persisted todo; mirrors TodoRecord field for field."""

    __tablename__ = "todos"
    __table_args__ = (
        Index("idx_todos_scope_status", "scheduled_for", "status"),
        Index("idx_todos_project", "project"),
        Index("idx_todos_epic_id", "epic_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    title: Mapped[str] = mapped_column(String(200))
    status: Mapped[str] = mapped_column(String(16), default=TodoStatus.PENDING.value)
    scheduled_for: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    order_index: Mapped[int] = mapped_column(BigInteger, default=0)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    project: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    epic_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    backlog_column: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))


def _aware(value: datetime) -> datetime:
    # SQLite drops tzinfo; every timestamp is written in UTC.
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def _row_to_record(row: TodoRow) -> TodoRecord:
    return TodoRecord(
        id=row.id,
        title=row.title,
        status=TodoStatus.from_db(row.status),
        scheduled_for=row.scheduled_for,
        order_index=int(row.order_index),
        notes=row.notes,
        project=row.project,
        epic_id=row.epic_id,
        backlog_column=int(row.backlog_column),
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
    )


def _copy_into(row: TodoRow, record: TodoRecord) -> None:
    row.title = record.title
    row.status = record.status.value
    row.scheduled_for = record.scheduled_for
    row.order_index = record.order_index
    row.notes = record.notes
    row.project = record.project
    row.epic_id = record.epic_id
    row.backlog_column = record.backlog_column
    row.updated_at = record.updated_at


def _scope_clause(scope: ListScope):
    if scope.is_backlog:
        return TodoRow.scheduled_for.is_(None)
    return TodoRow.scheduled_for == scope.scheduled_for


def _status_clause(status: StatusFilter):
    if status is StatusFilter.PENDING:
        return TodoRow.status != TodoStatus.DONE.value
    if status is StatusFilter.DONE:
        return TodoRow.status == TodoStatus.DONE.value
    return None


def _query_clauses(q: RecordQuery) -> list:
    clauses = []
    if q.scope is not None:
        clauses.append(_scope_clause(q.scope))
    status_clause = _status_clause(q.status)
    if status_clause is not None:
        clauses.append(status_clause)
    if q.project.match is ProjectMatch.EQUALS:
        clauses.append(TodoRow.project == q.project.value)
    elif q.project.match is ProjectMatch.IS_NULL:
        clauses.append(TodoRow.project.is_(None))
    if q.epic_id is not None:
        clauses.append(TodoRow.epic_id == q.epic_id)
    if q.title is not None:
        clauses.append(TodoRow.title == q.title)
    return clauses


# rowid follows insertion order and breaks order_index ties.
_INSERTION_ORDER = literal_column("todos.rowid")


class SQLiteRepository(Repository):
    """
    SQLite repository on top of SQLAlchemy's asyncio engine (aiosqlite driver).

    Each method runs in its own session/transaction. Driver and SQL errors are
    re-raised as DatabaseError.
    """

    def __init__(self, db_path: str, *, busy_timeout_ms: int = 5000, echo: bool = False) -> None:
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._db_path = db_path
        self._busy_timeout_ms = int(busy_timeout_ms)
        self._engine: AsyncEngine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", echo=echo)
        event.listen(self._engine.sync_engine, "connect", self._configure_connection)
        self._sessions = async_sessionmaker(self._engine, class_=AsyncSession, expire_on_commit=False)

    def _configure_connection(self, dbapi_connection, _connection_record) -> None:
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute(f"PRAGMA busy_timeout={self._busy_timeout_ms}")
        finally:
            cursor.close()

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._sessions() as session:
                async with session.begin():
                    yield session
        except SQLAlchemyError as exc:
            log.error("sqlite operation failed", db=self._db_path, error=str(exc))
            raise DatabaseError(str(exc)) from exc

    async def initialize(self) -> None:
        try:
            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as exc:
            raise DatabaseError(str(exc)) from exc
        log.info("sqlite repository ready", db=self._db_path)

    async def close(self) -> None:
        await self._engine.dispose()

    async def get(self, todo_id: uuid.UUID) -> Optional[TodoRecord]:
        async with self._session() as session:
            row = await session.get(TodoRow, todo_id)
            return _row_to_record(row) if row else None

    async def get_many(self, todo_ids: Iterable[uuid.UUID]) -> List[TodoRecord]:
        ids = list(set(todo_ids))
        if not ids:
            return []
        async with self._session() as session:
            rows = await session.scalars(select(TodoRow).where(TodoRow.id.in_(ids)))
            return [_row_to_record(r) for r in rows]

    async def insert(self, record: TodoRecord) -> TodoRecord:
        row = TodoRow(id=record.id, created_at=record.created_at)
        _copy_into(row, record)
        async with self._session() as session:
            session.add(row)
        return record

    async def save(self, record: TodoRecord) -> Optional[TodoRecord]:
        stored = record.model_copy(update={"updated_at": utcnow()})
        async with self._session() as session:
            row = await session.get(TodoRow, record.id)
            if row is None:
                return None
            _copy_into(row, stored)
        return stored

    async def delete(self, todo_id: uuid.UUID) -> bool:
        async with self._session() as session:
            result = await session.execute(delete(TodoRow).where(TodoRow.id == todo_id))
            return result.rowcount > 0

    async def find(self, query: Optional[RecordQuery] = None) -> List[TodoRecord]:
        q = query or RecordQuery()
        stmt = (
            select(TodoRow)
            .where(*_query_clauses(q))
            .order_by(TodoRow.order_index.asc(), _INSERTION_ORDER.asc())
        )
        async with self._session() as session:
            rows = await session.scalars(stmt)
            return [_row_to_record(r) for r in rows]

    async def order_index_extremum(
        self, scope: ListScope, status: StatusFilter, extremum: Extremum
    ) -> Optional[int]:
        agg = func.min if extremum is Extremum.MIN else func.max
        stmt = select(agg(TodoRow.order_index)).where(_scope_clause(scope))
        status_clause = _status_clause(status)
        if status_clause is not None:
            stmt = stmt.where(status_clause)
        async with self._session() as session:
            value = await session.scalar(stmt)
            return int(value) if value is not None else None

    async def list_overdue(self, today: date) -> List[TodoRecord]:
        stmt = (
            select(TodoRow)
            .where(
                TodoRow.scheduled_for.is_not(None),
                TodoRow.scheduled_for < today,
                TodoRow.status != TodoStatus.DONE.value,
            )
            .order_by(TodoRow.order_index.asc(), _INSERTION_ORDER.asc())
        )
        async with self._session() as session:
            rows = await session.scalars(stmt)
            return [_row_to_record(r) for r in rows]

    async def count_children(self, epic_id: uuid.UUID) -> int:
        stmt = select(func.count()).select_from(TodoRow).where(TodoRow.epic_id == epic_id)
        async with self._session() as session:
            value = await session.scalar(stmt)
            return int(value or 0)
