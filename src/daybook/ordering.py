"""
Ordering rules for board columns.

Two independent schemes share TodoRecord.order_index:

Sparse insertion (top_index / bottom_pending_index / bottom_done_index)
    Used whenever a record enters a partition (add, move, status change,
    rollover). Only the current extremum of the column is needed, so an
    insert never rewrites existing rows. Values are not contiguous and can
    go negative.

Dense reorder (reorder_siblings)
    Used for explicit single-step moves. The whole partition is renumbered
    0..N-1 after swapping two neighbours, so it costs one write per sibling.

Neither scheme encodes status in the index. Display order is produced at
read time by display_key: pending before done, then order_index.
"""
from __future__ import annotations

from typing import List, Optional, Sequence, Tuple
from uuid import UUID

from .models import TodoRecord, TodoStatus
from .schemas import ReorderDirection


# PUBLIC_INTERFACE
def top_index(min_pending: Optional[int]) -> int:
    """
    Index that sorts before every pending record of the column.

    Args:
        min_pending: smallest order_index among pending records in scope, or None.

    Returns:
        min_pending - 1, or 0 for an empty pending partition.
    """
    if min_pending is None:
        return 0
    return min_pending - 1


# PUBLIC_INTERFACE
def bottom_pending_index(max_pending: Optional[int]) -> int:
    """Index that sorts after every pending record (max + 1, or 0 when empty)."""
    if max_pending is None:
        return 0
    return max_pending + 1


# PUBLIC_INTERFACE
def bottom_done_index(max_any: Optional[int]) -> int:
    """
    Index for a record landing at the bottom of the done group.

    `max_any` is the largest order_index of the column regardless of status,
    so the result exceeds everything already stored in the scope.
    """
    if max_any is None:
        return 0
    return max_any + 1


def status_rank(status: TodoStatus) -> int:
    return 1 if status is TodoStatus.DONE else 0


# PUBLIC_INTERFACE
def display_key(record: TodoRecord) -> Tuple[int, int]:
    """Composite sort key: pending before done, then order_index ascending."""
    return status_rank(record.status), record.order_index


def sort_for_display(records: Sequence[TodoRecord]) -> List[TodoRecord]:
    # sorted() is stable, so equal keys keep the repository's insertion order.
    return sorted(records, key=display_key)


# PUBLIC_INTERFACE
def reorder_siblings(
    siblings: Sequence[TodoRecord],
    target_id: UUID,
    direction: ReorderDirection,
) -> Optional[List[TodoRecord]]:
    """
    Swap the target with its neighbour in the given direction.

    Args:
        siblings: all records of the target's (scope, status) partition,
            already sorted by order_index ascending.
        target_id: id of the record to move.
        direction: UP moves one position earlier, DOWN one position later.

    Returns:
        The siblings in their new order, or None when nothing moves
        (target at the boundary, or not part of the partition).
    """
    ordered = list(siblings)
    position = next((i for i, r in enumerate(ordered) if r.id == target_id), None)
    if position is None:
        return None

    if direction is ReorderDirection.UP:
        neighbour = position - 1
    else:
        neighbour = position + 1

    if neighbour < 0 or neighbour >= len(ordered):
        return None

    ordered[position], ordered[neighbour] = ordered[neighbour], ordered[position]
    return ordered


def dense_indices(ordered: Sequence[TodoRecord]) -> List[Tuple[TodoRecord, int]]:
    """Pair each record with its new contiguous index 0..N-1."""
    return [(record, index) for index, record in enumerate(ordered)]
