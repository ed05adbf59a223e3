"""
Module: approval_kernel.selectors.workflow_stats_selector
Responsibility: Aggregate figures for workflow dashboards: request counts
    by status, approval rates, resolution and response times per level and
    per approver.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Read-only.
    - Rates are over decided items only and are ``None`` when nothing was
      decided; averages are ``None`` when there is nothing to average.
    - Hours are rounded to one decimal.

Audit relevance:
    Figures are derived from the request and assignment rows on every
    call; no counters are stored.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import select

from approval_kernel.domain.workflow import AssignmentStatus, RequestStatus
from approval_kernel.models.request import (
    ApprovalRequestModel,
    ApproverAssignmentModel,
)
from approval_kernel.selectors.base import BaseSelector

_OPEN = {RequestStatus.PENDING.value, RequestStatus.IN_REVIEW.value}


@dataclass(frozen=True)
class LevelStats:
    level: int
    pending_count: int
    approved_count: int
    rejected_count: int
    total_count: int
    average_response_hours: float | None
    approval_rate: float | None


@dataclass(frozen=True)
class WorkflowOverview:
    total_requests: int
    status_counts: dict[str, int] = field(default_factory=dict)
    approval_rate: float | None = None
    average_resolution_hours: float | None = None
    levels: tuple[LevelStats, ...] = ()


@dataclass(frozen=True)
class ApproverWorkload:
    approver_id: str
    approver_role: str | None
    pending_count: int
    processed_count: int
    approval_rate: float | None
    average_response_hours: float | None


def _hours(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 3600


def _average(values: list[float]) -> float | None:
    if not values:
        return None
    return round(sum(values) / len(values), 1)


def _rate(approved: int, rejected: int) -> float | None:
    decided = approved + rejected
    if not decided:
        return None
    return round(approved / decided, 4)


class WorkflowStatsSelector(BaseSelector):
    """
    Selector for dashboard aggregates.

    Non-goals:
        - No time-bucketed series; ``since`` is the only window.
    """

    def _rows(self, since: datetime | None):
        stmt = select(
            ApprovalRequestModel.status.label("request_status"),
            ApproverAssignmentModel.approver_id,
            ApproverAssignmentModel.approver_role,
            ApproverAssignmentModel.level,
            ApproverAssignmentModel.status,
            ApproverAssignmentModel.assigned_at,
            ApproverAssignmentModel.activated_at,
            ApproverAssignmentModel.decided_at,
        ).join(
            ApprovalRequestModel,
            ApproverAssignmentModel.request_id == ApprovalRequestModel.id,
        )
        if since is not None:
            stmt = stmt.where(ApprovalRequestModel.created_at >= since)
        return self.session.execute(stmt).all()

    def overview(self, since: datetime | None = None) -> WorkflowOverview:
        """Counts and rates over requests created at or after ``since``."""
        stmt = select(
            ApprovalRequestModel.status,
            ApprovalRequestModel.created_at,
            ApprovalRequestModel.resolved_at,
        )
        if since is not None:
            stmt = stmt.where(ApprovalRequestModel.created_at >= since)
        requests = self.session.execute(stmt).all()

        status_counts = {s.value: 0 for s in RequestStatus}
        resolution_hours = []
        for row in requests:
            status_counts[row.status] += 1
            if row.resolved_at is not None and row.status in (
                RequestStatus.APPROVED.value,
                RequestStatus.REJECTED.value,
            ):
                resolution_hours.append(_hours(row.created_at, row.resolved_at))

        by_level: dict[int, list] = defaultdict(list)
        for row in self._rows(since):
            by_level[row.level].append(row)

        levels = []
        for level in sorted(by_level):
            rows = by_level[level]
            approved = sum(1 for r in rows if r.status == AssignmentStatus.APPROVED.value)
            rejected = sum(1 for r in rows if r.status == AssignmentStatus.REJECTED.value)
            levels.append(
                LevelStats(
                    level=level,
                    pending_count=len(rows) - approved - rejected,
                    approved_count=approved,
                    rejected_count=rejected,
                    total_count=len(rows),
                    average_response_hours=_average([
                        _hours(r.activated_at or r.assigned_at, r.decided_at)
                        for r in rows
                        if r.decided_at is not None
                    ]),
                    approval_rate=_rate(approved, rejected),
                )
            )

        return WorkflowOverview(
            total_requests=len(requests),
            status_counts=status_counts,
            approval_rate=_rate(
                status_counts[RequestStatus.APPROVED.value],
                status_counts[RequestStatus.REJECTED.value],
            ),
            average_resolution_hours=_average(resolution_hours),
            levels=tuple(levels),
        )

    def approver_workload(self, since: datetime | None = None) -> list[ApproverWorkload]:
        """
        One row per approver, ordered by approver id.

        ``pending_count`` counts undecided assignments on open requests
        (queued behind a lower level or active); ``processed_count`` counts
        decisions.
        """
        by_approver: dict[str, list] = defaultdict(list)
        for row in self._rows(since):
            by_approver[row.approver_id].append(row)

        workloads = []
        for approver_id in sorted(by_approver):
            rows = by_approver[approver_id]
            approved = sum(1 for r in rows if r.status == AssignmentStatus.APPROVED.value)
            rejected = sum(1 for r in rows if r.status == AssignmentStatus.REJECTED.value)
            workloads.append(
                ApproverWorkload(
                    approver_id=approver_id,
                    approver_role=next(
                        (r.approver_role for r in rows if r.approver_role), None
                    ),
                    pending_count=sum(
                        1
                        for r in rows
                        if r.status == AssignmentStatus.PENDING.value
                        and r.request_status in _OPEN
                    ),
                    processed_count=approved + rejected,
                    approval_rate=_rate(approved, rejected),
                    average_response_hours=_average([
                        _hours(r.activated_at or r.assigned_at, r.decided_at)
                        for r in rows
                        if r.decided_at is not None
                    ]),
                )
            )
        return workloads
