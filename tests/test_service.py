from datetime import date, datetime, timedelta
from uuid import uuid4

import pytest

from daybook.errors import AmbiguousMatch, InvalidField, InvalidUuid, NotFound
from daybook.models import ORDER_INDEX_MIN, TodoRecord, TodoStatus
from daybook.schemas import ListOptions, ListScope, MovePlacement, ProjectFilter, ReorderDirection

from .helpers import DAY, PREVIOUS_DAY, TWO_DAYS_AGO, indices, titles

pytestmark = pytest.mark.asyncio

BACKLOG = ListOptions(scope=ListScope.backlog())
BACKLOG_ALL = ListOptions(scope=ListScope.backlog(), include_done=True)


def day_options(day=DAY, include_done=False, **kwargs):
    return ListOptions(scope=ListScope.day(day), include_done=include_done, **kwargs)


class TestAddAndList:
    async def test_add_defaults(self, service):
        todo = await service.add("  Write notes  ")
        assert todo.title == "Write notes"
        assert todo.status is TodoStatus.PENDING
        assert todo.scheduled_for is None
        assert todo.order_index == 0
        assert todo.backlog_column == 0
        assert todo.created_at.tzinfo is not None

        fetched = await service.get(str(todo.id))
        assert fetched == todo

    async def test_top_insertion_is_lifo(self, service):
        for name in ["one", "two", "three", "four"]:
            await service.add(name, scheduled_for=DAY)

        listed = await service.list(day_options())
        assert titles(listed) == ["four", "three", "two", "one"]
        assert indices(listed) == [-3, -2, -1, 0]

    async def test_bottom_insertion_is_fifo(self, service):
        for name in ["one", "two", "three", "four"]:
            await service.add(name, placement=MovePlacement.BOTTOM)

        listed = await service.list(BACKLOG)
        assert titles(listed) == ["one", "two", "three", "four"]
        assert indices(listed) == [0, 1, 2, 3]

    async def test_default_top_insertion_example(self, service):
        await service.add("X", scheduled_for=date(2024, 1, 10))
        await service.add("Y", scheduled_for="2024-01-10")
        listed = await service.list(day_options(date(2024, 1, 10)))
        assert titles(listed) == ["Y", "X"]

    async def test_columns_are_independent(self, service):
        await service.add("day", scheduled_for=DAY)
        await service.add("backlog")
        await service.add("other day", scheduled_for=PREVIOUS_DAY)

        assert titles(await service.list(day_options())) == ["day"]
        assert titles(await service.list(BACKLOG)) == ["backlog"]
        assert [t.order_index for t in await service.list(day_options(PREVIOUS_DAY))] == [0]

    async def test_include_done_places_pending_first(self, service):
        created = []
        for i in range(6):
            placement = MovePlacement.BOTTOM if i % 2 else MovePlacement.TOP
            created.append(await service.add(f"t{i}", scheduled_for=DAY, placement=placement))
        for todo in created[::3]:
            await service.mark_done(todo.id, DAY)

        listed = await service.list(day_options(include_done=True))
        statuses = [t.status for t in listed]
        first_done = statuses.index(TodoStatus.DONE)
        assert all(s is TodoStatus.PENDING for s in statuses[:first_done])
        assert all(s is TodoStatus.DONE for s in statuses[first_done:])
        assert len(listed) == 6

        pending_only = await service.list(day_options())
        assert all(t.status is TodoStatus.PENDING for t in pending_only)
        assert len(pending_only) == 4

    async def test_list_project_filters(self, service):
        await service.add("tagged", project="web")
        await service.add("other", project="api")
        await service.add("untagged", project="   ")

        def opts(project):
            return ListOptions(scope=ListScope.backlog(), project=project)

        assert titles(await service.list(opts(ProjectFilter.equals("web")))) == ["tagged"]
        assert titles(await service.list(opts(ProjectFilter.is_null()))) == ["untagged"]
        assert sorted(titles(await service.list(opts(ProjectFilter.any())))) == [
            "other",
            "tagged",
            "untagged",
        ]

    async def test_list_by_epic(self, service):
        epic = await service.add("Epic")
        await service.add("child", epic_id=epic.id)
        await service.add("loose")

        listed = await service.list(ListOptions(scope=ListScope.backlog(), epic_id=epic.id))
        assert titles(listed) == ["child"]

    async def test_add_rejects_invalid_fields(self, service):
        with pytest.raises(InvalidField) as exc:
            await service.add("   ")
        assert exc.value.field == "title"

        with pytest.raises(InvalidField):
            await service.add("x", backlog_column=4)

        with pytest.raises(InvalidUuid):
            await service.add("x", epic_id="not-a-uuid")

        assert (await service.stats()).total == 0

    async def test_add_takes_the_day_of_a_datetime(self, service):
        todo = await service.add("x", scheduled_for=datetime(2024, 1, 10, 13, 45))
        assert todo.scheduled_for == DAY
        assert titles(await service.list(day_options())) == ["x"]

    async def test_project_filter_value_is_trimmed(self, service):
        await service.add("t", project=" web ")
        options = ListOptions(scope=ListScope.backlog(), project=ProjectFilter.equals(" web "))
        assert titles(await service.list(options)) == ["t"]

    async def test_order_index_overflow_is_invalid_field(self, repo, service):
        await repo.insert(TodoRecord(id=uuid4(), title="floor", order_index=ORDER_INDEX_MIN))
        with pytest.raises(InvalidField) as exc:
            await service.add("below")
        assert exc.value.field == "order_index"
        assert titles(await service.list(BACKLOG)) == ["floor"]


class TestStatusTransitions:
    async def test_mark_done_moves_to_bottom_of_column(self, service):
        a = await service.add("A", scheduled_for=DAY, placement=MovePlacement.BOTTOM)
        await service.add("B", scheduled_for=DAY, placement=MovePlacement.BOTTOM)

        done = await service.mark_done(a.id, DAY)
        assert done.status is TodoStatus.DONE
        assert done.order_index == 2
        assert titles(await service.list(day_options(include_done=True))) == ["B", "A"]

    async def test_mark_done_backfills_today_for_backlog(self, service):
        todo = await service.add("someday")
        done = await service.mark_done(todo.id, DAY)
        assert done.scheduled_for == DAY
        assert await service.list(BACKLOG_ALL) == []
        assert titles(await service.list(day_options(include_done=True))) == ["someday"]

    async def test_mark_done_keeps_existing_schedule(self, service):
        todo = await service.add("scheduled", scheduled_for=PREVIOUS_DAY)
        done = await service.mark_done(todo.id, DAY)
        assert done.scheduled_for == PREVIOUS_DAY

    async def test_status_noops(self, service):
        todo = await service.add("A", scheduled_for=DAY)
        assert await service.mark_pending(todo.id) == todo

        done = await service.mark_done(todo.id, DAY)
        again = await service.mark_done(todo.id, DAY + timedelta(days=3))
        assert again == done

    async def test_done_then_pending_round_trip(self, service):
        x = await service.add("X", scheduled_for=DAY, notes="n", project="p")
        await service.add("Y", scheduled_for=DAY)

        done = await service.mark_done(x.id, DAY)
        assert done.status is TodoStatus.DONE
        assert done.order_index == 1  # max of column (0) + 1

        reopened = await service.mark_pending(x.id)
        assert reopened.status is TodoStatus.PENDING
        assert reopened.order_index == -2  # min pending (Y at -1) - 1
        assert (reopened.title, reopened.notes, reopened.project) == ("X", "n", "p")
        assert reopened.created_at == x.created_at
        assert reopened.updated_at >= x.updated_at
        assert titles(await service.list(day_options())) == ["X", "Y"]


class TestMoveAndColumns:
    async def test_move_top_and_bottom(self, service):
        await service.add("a", scheduled_for=DAY, placement=MovePlacement.BOTTOM)
        await service.add("b", scheduled_for=DAY, placement=MovePlacement.BOTTOM)
        first = await service.add("first")
        last = await service.add("last")

        moved_top = await service.move_to_scope(first.id, ListScope.day(DAY), MovePlacement.TOP)
        assert moved_top.scheduled_for == DAY
        assert moved_top.order_index == -1

        moved_bottom = await service.move_to_scope(last.id, ListScope.day(DAY), MovePlacement.BOTTOM)
        assert moved_bottom.order_index == 2

        assert titles(await service.list(day_options())) == ["first", "a", "b", "last"]
        assert await service.list(BACKLOG) == []

    async def test_move_done_to_bottom_uses_whole_column(self, service):
        await service.add("pending", scheduled_for=DAY, placement=MovePlacement.BOTTOM)
        earlier = await service.add("earlier", scheduled_for=DAY, placement=MovePlacement.BOTTOM)
        await service.mark_done(earlier.id, DAY)  # index 2

        finished = await service.add("finished", scheduled_for=PREVIOUS_DAY)
        await service.mark_done(finished.id, DAY)

        moved = await service.move_to_scope(finished.id, ListScope.day(DAY), MovePlacement.BOTTOM)
        assert moved.status is TodoStatus.DONE
        assert moved.order_index == 3
        assert titles(await service.list(day_options(include_done=True))) == [
            "pending",
            "earlier",
            "finished",
        ]

    async def test_move_to_backlog(self, service):
        todo = await service.add("later", scheduled_for=DAY)
        moved = await service.move_to_scope(todo.id, ListScope.backlog(), MovePlacement.BOTTOM)
        assert moved.scheduled_for is None
        assert titles(await service.list(BACKLOG)) == ["later"]

    async def test_set_backlog_column(self, service):
        todo = await service.add("x")
        updated = await service.set_backlog_column(todo.id, 3)
        assert updated.backlog_column == 3

        with pytest.raises(InvalidField) as exc:
            await service.set_backlog_column(todo.id, 4)
        assert exc.value.field == "backlog_column"
        assert (await service.get(todo.id)).backlog_column == 3


class TestReorder:
    async def test_reorder_example(self, service):
        a = await service.add("A", placement=MovePlacement.BOTTOM)
        b = await service.add("B", placement=MovePlacement.BOTTOM)
        assert (a.order_index, b.order_index) == (0, 1)

        moved = await service.reorder(b.id, ReorderDirection.UP)
        assert moved.order_index == 0

        listed = await service.list(BACKLOG)
        assert titles(listed) == ["B", "A"]
        assert indices(listed) == [0, 1]

    async def test_reorder_rewrites_sparse_indices(self, service):
        for name in ["c", "b", "a"]:
            await service.add(name, scheduled_for=DAY)
        listed = await service.list(day_options())
        assert indices(listed) == [-2, -1, 0]

        await service.reorder(listed[0].id, ReorderDirection.DOWN)
        listed = await service.list(day_options())
        assert titles(listed) == ["b", "a", "c"]
        assert indices(listed) == [0, 1, 2]

    async def test_reorder_stays_within_status_partition(self, service):
        a = await service.add("A", scheduled_for=DAY, placement=MovePlacement.BOTTOM)
        b = await service.add("B", scheduled_for=DAY, placement=MovePlacement.BOTTOM)
        await service.mark_done(a.id, DAY)

        unchanged = await service.reorder(b.id, ReorderDirection.DOWN)
        assert unchanged == await service.get(b.id)
        assert unchanged.order_index == 1

    async def test_reorder_boundary_is_noop(self, service):
        a = await service.add("A", placement=MovePlacement.BOTTOM)
        await service.add("B", placement=MovePlacement.BOTTOM)
        assert await service.reorder(a.id, ReorderDirection.UP) == a


class TestIndexCollisions:
    async def test_equal_indices_display_in_insertion_order(self, repo, service):
        for name in ["first", "second", "third"]:
            await repo.insert(
                TodoRecord(id=uuid4(), title=name, scheduled_for=DAY, order_index=5)
            )
        await service.add("bottom", scheduled_for=DAY, placement=MovePlacement.BOTTOM)

        listed = await service.list(day_options())
        assert titles(listed) == ["first", "second", "third", "bottom"]
        assert indices(listed) == [5, 5, 5, 6]

        # an update does not change the insertion position
        await service.update_notes(listed[0].id, "edited")
        await service.update_title(listed[1].id, "second (edited)")
        assert titles(await service.list(day_options())) == [
            "first",
            "second (edited)",
            "third",
            "bottom",
        ]


class TestRollover:
    async def test_rollover_moves_overdue_pending_in_order(self, service):
        await service.add("today", scheduled_for=DAY, placement=MovePlacement.BOTTOM)
        for name in ["a", "b", "c"]:
            await service.add(name, scheduled_for=PREVIOUS_DAY, placement=MovePlacement.BOTTOM)
        older = await service.add("older", scheduled_for=TWO_DAYS_AGO)
        older = await service.move_to_scope(older.id, ListScope.day(TWO_DAYS_AGO), MovePlacement.TOP)
        finished = await service.add("finished", scheduled_for=PREVIOUS_DAY)
        await service.mark_done(finished.id, DAY)
        await service.add("backlog")
        await service.add("future", scheduled_for=DAY + timedelta(days=1))

        moved = await service.rollover_to(DAY)
        assert moved == 4

        listed = await service.list(day_options())
        # overdue records are taken in order_index order across days
        assert titles(listed) == ["today", "older", "a", "b", "c"]
        assert indices(listed) == [0, 2, 3, 4, 5]

        leftover = await service.list(day_options(PREVIOUS_DAY, include_done=True))
        assert titles(leftover) == ["finished"]
        assert titles(await service.list(BACKLOG)) == ["backlog"]

    async def test_rollover_is_idempotent(self, service):
        await service.add("late", scheduled_for=PREVIOUS_DAY)
        assert await service.rollover_to(DAY) == 1
        assert await service.rollover_to(DAY) == 0
        assert titles(await service.list(day_options())) == ["late"]

    async def test_rollover_without_overdue(self, service):
        await service.add("current", scheduled_for=DAY)
        assert await service.rollover_to(DAY) == 0


class TestFieldUpdates:
    async def test_update_title_and_notes(self, service):
        todo = await service.add("draft")
        renamed = await service.update_title(todo.id, " final ")
        assert renamed.title == "final"
        assert renamed.updated_at >= todo.updated_at

        noted = await service.update_notes(todo.id, "details")
        assert noted.notes == "details"
        cleared = await service.update_notes(todo.id, None)
        assert cleared.notes is None

    async def test_rejected_title_leaves_record_untouched(self, service):
        todo = await service.add("keep me")
        with pytest.raises(InvalidField):
            await service.update_title(todo.id, "")
        assert (await service.get(todo.id)).title == "keep me"

    async def test_update_scheduled_for(self, service):
        todo = await service.add("x")
        moved = await service.update_scheduled_for(todo.id, "2024-01-10")
        assert moved.scheduled_for == DAY
        assert moved.order_index == todo.order_index

        back = await service.update_scheduled_for(todo.id, None)
        assert back.scheduled_for is None

    async def test_update_scheduled_for_takes_the_day_of_a_datetime(self, service):
        todo = await service.add("x")
        moved = await service.update_scheduled_for(todo.id, datetime(2024, 1, 10, 13, 45))
        assert moved.scheduled_for == DAY
        assert (await service.get(todo.id)).scheduled_for == DAY


class TestLookups:
    async def test_not_found_and_invalid_ids(self, service):
        with pytest.raises(NotFound):
            await service.get(uuid4())
        with pytest.raises(InvalidUuid):
            await service.get("definitely-not-a-uuid")
        with pytest.raises(NotFound):
            await service.mark_done(uuid4(), DAY)
        with pytest.raises(NotFound):
            await service.delete(str(uuid4()))

    async def test_find_by_title_or_id(self, service):
        todo = await service.add("unique")
        await service.add("twin")
        await service.add("twin")

        assert await service.find_by_title_or_id("unique") == todo
        assert await service.find_by_title_or_id(str(todo.id)) == todo
        assert await service.find_by_title_or_id("missing") is None
        with pytest.raises(AmbiguousMatch) as exc:
            await service.find_by_title_or_id("twin")
        assert exc.value.count == 2

    async def test_stats(self, service):
        a = await service.add("a", project="web")
        await service.add("b", project="web")
        await service.add("c")
        await service.mark_done(a.id, DAY)

        stats = await service.stats()
        assert (stats.total, stats.completed, stats.remaining) == (3, 1, 2)

        web = await service.stats(ProjectFilter.equals("web"))
        assert (web.total, web.completed, web.remaining) == (2, 1, 1)
