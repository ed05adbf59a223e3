"""
Overdue evaluation (``approval_kernel.domain.overdue``).

Responsibility
--------------
Pure evaluation of active assignments against their allotted response
time, and aggregation into per-level bottleneck indicators.  The monitor
and the overdue selector feed snapshots in; nothing here reads the
database or changes state.

Architecture position
---------------------
**Kernel domain layer** -- pure functions over frozen value objects.

Invariants enforced
-------------------
* An assignment is overdue iff ``now - waiting_since > timeout_hours``
  (strictly greater; exactly at the limit is not overdue).
* ``waiting_since`` is the activation time, falling back to
  ``assigned_at`` for rows that predate activation tracking.
* Reported waiting time is rounded to one decimal hour.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Iterable
from uuid import UUID


@dataclass(frozen=True)
class ActiveAssignmentSnapshot:
    """Read-side projection of one active assignment."""

    request_id: UUID
    title: str
    priority: str
    request_type: str
    approver_id: str
    level: int
    timeout_hours: float
    assigned_at: datetime
    activated_at: datetime | None = None
    approver_role: str | None = None

    @property
    def waiting_since(self) -> datetime:
        return self.activated_at or self.assigned_at


@dataclass(frozen=True)
class OverdueItem:
    request_id: UUID
    level: int
    level_name: str
    approver_id: str
    waiting_hours: float
    timeout_hours: float
    priority: str
    title: str
    overdue: bool = True
    approver_role: str | None = None


@dataclass(frozen=True)
class BottleneckIndicator:
    """Per-level aggregate over the active assignments at that level."""

    level: int
    level_name: str
    pending_count: int
    overdue_count: int
    average_wait_hours: float


@dataclass(frozen=True)
class OverdueFilter:
    """Optional narrowing for overdue listings. ``None`` means no filter."""

    level: int | None = None
    approver_id: str | None = None
    priority: str | None = None
    request_type: str | None = None
    min_waiting_hours: float | None = None
    limit: int | None = None

    def matches(self, item: OverdueItem, request_type: str | None = None) -> bool:
        if self.level is not None and item.level != self.level:
            return False
        if self.approver_id is not None and item.approver_id != self.approver_id:
            return False
        if self.priority is not None and item.priority != self.priority:
            return False
        if self.request_type is not None and request_type != self.request_type:
            return False
        if (
            self.min_waiting_hours is not None
            and item.waiting_hours < self.min_waiting_hours
        ):
            return False
        return True


@dataclass(frozen=True)
class OverdueReport:
    """Result of one monitor sweep."""

    generated_at: datetime
    items: tuple[OverdueItem, ...]
    bottlenecks: tuple[BottleneckIndicator, ...]
    scanned: int = 0
    truncated: bool = False

    @property
    def overdue_count(self) -> int:
        return len(self.items)


def elapsed_since(start: datetime, now: datetime) -> timedelta:
    return now - start


def is_overdue(waiting_since: datetime, timeout_hours: float, now: datetime) -> bool:
    return elapsed_since(waiting_since, now) > timedelta(hours=timeout_hours)


def waiting_hours(waiting_since: datetime, now: datetime) -> float:
    return round(elapsed_since(waiting_since, now).total_seconds() / 3600, 1)


def evaluate(
    snapshot: ActiveAssignmentSnapshot,
    now: datetime,
    level_name: Callable[[int], str],
) -> OverdueItem:
    """Project a snapshot to a report row carrying its overdue flag."""
    return OverdueItem(
        request_id=snapshot.request_id,
        level=snapshot.level,
        level_name=level_name(snapshot.level),
        approver_id=snapshot.approver_id,
        waiting_hours=waiting_hours(snapshot.waiting_since, now),
        timeout_hours=snapshot.timeout_hours,
        priority=snapshot.priority,
        title=snapshot.title,
        overdue=is_overdue(snapshot.waiting_since, snapshot.timeout_hours, now),
        approver_role=snapshot.approver_role,
    )


def summarize_bottlenecks(
    items: Iterable[OverdueItem],
    level_name: Callable[[int], str],
) -> tuple[BottleneckIndicator, ...]:
    """Group evaluated active assignments by level, lowest level first."""
    by_level: dict[int, list[OverdueItem]] = defaultdict(list)
    for item in items:
        by_level[item.level].append(item)

    indicators = []
    for level in sorted(by_level):
        rows = by_level[level]
        indicators.append(
            BottleneckIndicator(
                level=level,
                level_name=level_name(level),
                pending_count=len(rows),
                overdue_count=sum(1 for r in rows if r.overdue),
                average_wait_hours=round(
                    sum(r.waiting_hours for r in rows) / len(rows), 1
                ),
            )
        )
    return tuple(indicators)
