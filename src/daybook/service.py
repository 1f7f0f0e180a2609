from __future__ import annotations

from datetime import date
from typing import Dict, Iterable, List, Optional, Union
from uuid import UUID, uuid4

import structlog
from pydantic import ValidationError

from .epics import EpicProjectResolver
from .errors import AmbiguousMatch, HasChildren, InvalidUuid, NotFound, SelfReference
from .models import TodoRecord, TodoStatus, invalid_field_from, revise
from .ordering import (
    bottom_done_index,
    bottom_pending_index,
    dense_indices,
    reorder_siblings,
    sort_for_display,
    top_index,
)
from .repositories import Extremum, RecordQuery, Repository, StatusFilter
from .schemas import (
    ListOptions,
    ListScope,
    MovePlacement,
    ProjectFilter,
    ReorderDirection,
    TodoCreate,
    TodoStats,
)
from .utils import DateInput, parse_uuid

log = structlog.get_logger()

TodoId = Union[UUID, str]


# PUBLIC_INTERFACE
class TodoService:
    """
    Operation set of the planner core.

    Every call is a sequence of independent repository round trips
    (load -> compute -> write) with no lock or transaction around them.
    Concurrent inserts into one partition may therefore receive the same
    order_index; ties are displayed in insertion order.

    "Today" is always passed in by the caller.
    """

    def __init__(self, repo: Repository) -> None:
        self._repo = repo
        self._epics = EpicProjectResolver(repo)

    @property
    def repository(self) -> Repository:
        return self._repo

    # ---- helpers ----

    async def _load(self, todo_id: TodoId) -> TodoRecord:
        tid = parse_uuid(todo_id)
        record = await self._repo.get(tid)
        if record is None:
            raise NotFound(tid)
        return record

    async def _write(self, record: TodoRecord) -> TodoRecord:
        stored = await self._repo.save(record)
        if stored is None:
            # Deleted between our load and our write.
            raise NotFound(record.id)
        return stored

    async def _top_index(self, scope: ListScope) -> int:
        return top_index(
            await self._repo.order_index_extremum(scope, StatusFilter.PENDING, Extremum.MIN)
        )

    async def _bottom_pending_index(self, scope: ListScope) -> int:
        return bottom_pending_index(
            await self._repo.order_index_extremum(scope, StatusFilter.PENDING, Extremum.MAX)
        )

    async def _bottom_done_index(self, scope: ListScope) -> int:
        return bottom_done_index(
            await self._repo.order_index_extremum(scope, StatusFilter.ANY, Extremum.MAX)
        )

    # ---- create / read / delete ----

    async def add(
        self,
        title: str,
        scheduled_for: Optional[DateInput] = None,
        notes: Optional[str] = None,
        project: Optional[str] = None,
        epic_id: Optional[TodoId] = None,
        placement: MovePlacement = MovePlacement.TOP,
        backlog_column: int = 0,
    ) -> TodoRecord:
        """
        Create a pending todo in the day column `scheduled_for` (backlog when None).

        The record goes to the top of the pending group by default, or to the
        bottom with placement=MovePlacement.BOTTOM. With an epic, the project is
        inherited from it or must match it.
        """
        epic_uuid = parse_uuid(epic_id) if epic_id is not None else None
        try:
            data = TodoCreate(
                title=title,
                scheduled_for=scheduled_for,
                notes=notes,
                project=project,
                epic_id=epic_uuid,
                backlog_column=backlog_column,
            )
        except ValidationError as exc:
            raise invalid_field_from(exc) from exc

        resolved_project = await self._epics.resolve(data.project, data.epic_id)

        scope = ListScope(scheduled_for=data.scheduled_for)
        if placement is MovePlacement.BOTTOM:
            order_index = await self._bottom_pending_index(scope)
        else:
            order_index = await self._top_index(scope)

        try:
            record = TodoRecord(
                id=uuid4(),
                title=data.title,
                status=TodoStatus.PENDING,
                scheduled_for=data.scheduled_for,
                order_index=order_index,
                notes=data.notes,
                project=resolved_project,
                epic_id=data.epic_id,
                backlog_column=data.backlog_column,
            )
        except ValidationError as exc:
            raise invalid_field_from(exc) from exc
        stored = await self._repo.insert(record)
        log.info(
            "todo added",
            todo_id=str(stored.id),
            scope=str(scope),
            order_index=order_index,
            project=resolved_project,
        )
        return stored

    async def get(self, todo_id: TodoId) -> TodoRecord:
        return await self._load(todo_id)

    async def list(self, options: ListOptions) -> List[TodoRecord]:
        """
        List one column. Pending records come first, then done ones; each
        group is ordered by order_index.
        """
        query = RecordQuery(
            scope=options.scope,
            status=StatusFilter.ANY if options.include_done else StatusFilter.PENDING,
            project=options.project,
            epic_id=options.epic_id,
        )
        return sort_for_display(await self._repo.find(query))

    async def delete(self, todo_id: TodoId) -> None:
        """
        Hard-delete a todo.

        Raises:
            HasChildren if other records still reference it as their epic.
        """
        record = await self._load(todo_id)
        children = await self._repo.count_children(record.id)
        if children:
            log.info("delete blocked by sub-todos", todo_id=str(record.id), children=children)
            raise HasChildren(children)
        if not await self._repo.delete(record.id):
            raise NotFound(record.id)
        log.info("todo deleted", todo_id=str(record.id))

    # ---- status ----

    async def mark_done(self, todo_id: TodoId, today: date) -> TodoRecord:
        """
        Complete a todo. Backlog items move into `today`'s column; the record
        lands after everything already stored in its column.
        """
        record = await self._load(todo_id)
        if record.is_done:
            return record

        scheduled_for = record.scheduled_for or today
        order_index = await self._bottom_done_index(ListScope(scheduled_for=scheduled_for))
        stored = await self._write(
            revise(
                record,
                status=TodoStatus.DONE,
                scheduled_for=scheduled_for,
                order_index=order_index,
            )
        )
        log.info("todo done", todo_id=str(stored.id), scheduled_for=str(scheduled_for))
        return stored

    async def mark_pending(self, todo_id: TodoId) -> TodoRecord:
        """Reopen a done todo at the top of its column's pending group."""
        record = await self._load(todo_id)
        if not record.is_done:
            return record

        order_index = await self._top_index(ListScope.of(record))
        stored = await self._write(
            revise(record, status=TodoStatus.PENDING, order_index=order_index)
        )
        log.info("todo reopened", todo_id=str(stored.id))
        return stored

    # ---- placement ----

    async def move_to_scope(
        self,
        todo_id: TodoId,
        scope: ListScope,
        placement: MovePlacement = MovePlacement.TOP,
    ) -> TodoRecord:
        record = await self._load(todo_id)

        if placement is MovePlacement.TOP:
            order_index = await self._top_index(scope)
        elif record.is_done:
            order_index = await self._bottom_done_index(scope)
        else:
            order_index = await self._bottom_pending_index(scope)

        stored = await self._write(
            revise(record, scheduled_for=scope.scheduled_for, order_index=order_index)
        )
        log.info(
            "todo moved",
            todo_id=str(stored.id),
            scope=str(scope),
            placement=placement.value,
            order_index=order_index,
        )
        return stored

    async def set_backlog_column(self, todo_id: TodoId, column: int) -> TodoRecord:
        record = await self._load(todo_id)
        return await self._write(revise(record, backlog_column=column))

    async def reorder(self, todo_id: TodoId, direction: ReorderDirection) -> TodoRecord:
        """
        Move a todo one step up or down among its status+scope siblings.

        The partition is renumbered 0..N-1 afterwards, one write per sibling.
        At either boundary nothing is written.
        """
        record = await self._load(todo_id)
        siblings = await self._repo.find(
            RecordQuery(scope=ListScope.of(record), status=StatusFilter.partition_of(record))
        )
        ordered = reorder_siblings(siblings, record.id, direction)
        if ordered is None:
            return record

        updated = record
        for sibling, index in dense_indices(ordered):
            stored = await self._write(sibling.model_copy(update={"order_index": index}))
            if stored.id == record.id:
                updated = stored

        log.info(
            "todo reordered",
            todo_id=str(record.id),
            direction=direction.value,
            siblings=len(ordered),
        )
        return updated

    async def rollover_to(self, today: date) -> int:
        """
        Move every pending todo scheduled before `today` into today's column,
        below its current pending items and in their existing relative order.

        Writes are per record; re-running after an interruption only picks up
        the records that were not moved yet.

        Returns:
            Number of records moved.
        """
        overdue = await self._repo.list_overdue(today)
        if not overdue:
            return 0

        next_index = await self._bottom_pending_index(ListScope.day(today))
        moved = 0
        for record in overdue:
            next_index += 1
            stored = await self._repo.save(
                record.model_copy(update={"scheduled_for": today, "order_index": next_index})
            )
            if stored is not None:
                moved += 1

        log.info("rollover finished", today=today.isoformat(), moved=moved)
        return moved

    # ---- field updates ----

    async def update_title(self, todo_id: TodoId, title: str) -> TodoRecord:
        record = await self._load(todo_id)
        return await self._write(revise(record, title=title))

    async def update_notes(self, todo_id: TodoId, notes: Optional[str]) -> TodoRecord:
        record = await self._load(todo_id)
        return await self._write(revise(record, notes=notes))

    async def update_scheduled_for(
        self, todo_id: TodoId, scheduled_for: Optional[DateInput]
    ) -> TodoRecord:
        """Change the day column without touching order_index (None moves to backlog)."""
        record = await self._load(todo_id)
        return await self._write(revise(record, scheduled_for=scheduled_for))

    async def update_project(self, todo_id: TodoId, project: Optional[str]) -> TodoRecord:
        """
        Change the project tag. A record linked to an epic must keep the
        epic's current project; passing None re-inherits it.
        """
        record = await self._load(todo_id)
        resolved = await self._epics.resolve(project, record.epic_id, record_id=record.id)
        return await self._write(revise(record, project=resolved))

    async def update_epic_id(self, todo_id: TodoId, epic_id: Optional[TodoId]) -> TodoRecord:
        """
        Link the record to another epic, or unlink it with None.

        Linking resolves like a fresh creation without an explicit project, so
        the record takes over the new epic's project. Unlinking keeps the
        current project.
        """
        tid = parse_uuid(todo_id)
        epic_uuid = parse_uuid(epic_id) if epic_id is not None else None
        if epic_uuid is not None and epic_uuid == tid:
            raise SelfReference()

        record = await self._load(tid)
        if epic_uuid is None:
            return await self._write(revise(record, epic_id=None))

        project = await self._epics.resolve(None, epic_uuid, record_id=record.id)
        stored = await self._write(revise(record, epic_id=epic_uuid, project=project))
        log.info("todo linked to epic", todo_id=str(tid), epic_id=str(epic_uuid), project=project)
        return stored

    # ---- lookups ----

    async def epic_titles(self, epic_ids: Iterable[TodoId]) -> Dict[UUID, str]:
        """Titles of the given epics in one round trip; unknown ids are left out."""
        return await self._epics.titles(parse_uuid(i) for i in epic_ids)

    async def find_by_title_or_id(self, title_or_id: str) -> Optional[TodoRecord]:
        """
        Resolve a user-supplied reference: an id string or an exact title.

        Raises:
            AmbiguousMatch if more than one record matches.
        """
        text = title_or_id.strip()
        matches: Dict[UUID, TodoRecord] = {}

        try:
            by_id = await self._repo.get(parse_uuid(text))
        except InvalidUuid:
            by_id = None
        if by_id is not None:
            matches[by_id.id] = by_id

        for record in await self._repo.find(RecordQuery(title=text)):
            matches.setdefault(record.id, record)

        if len(matches) > 1:
            raise AmbiguousMatch(text, len(matches))
        return next(iter(matches.values()), None)

    async def stats(self, project: Optional[ProjectFilter] = None) -> TodoStats:
        records = await self._repo.find(RecordQuery(project=project or ProjectFilter.any()))
        total = len(records)
        completed = sum(1 for r in records if r.is_done)
        return TodoStats(total=total, completed=completed, remaining=total - completed)
