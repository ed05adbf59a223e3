"""
Module: approval_kernel.selectors.overdue_selector
Responsibility: Snapshot read of every active assignment, evaluated
    against its timeout by the pure functions in ``domain.overdue``.
Architecture position: Kernel > Selectors.  Used by the facade's
    ``list_overdue`` and by the background ``OverdueMonitor``.

Invariants enforced:
    - Read-only, no row locks: the monitor must never block deciders.
    - ``as_of`` is supplied by the caller's clock; nothing here reads the
      wall clock.
    - Overdue listings are sorted by waiting time, longest first.

Failure modes:
    - ValidationError on a negative filter limit.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from approval_kernel.domain.overdue import (
    ActiveAssignmentSnapshot,
    BottleneckIndicator,
    OverdueFilter,
    OverdueItem,
    evaluate,
    summarize_bottlenecks,
)
from approval_kernel.domain.policy import WorkflowPolicy
from approval_kernel.exceptions import ValidationError
from approval_kernel.models.request import (
    ApprovalRequestModel,
    ApproverAssignmentModel,
)
from approval_kernel.selectors.base import BaseSelector
from approval_kernel.selectors.request_selector import active_assignment_condition


def _check_limit(filter: OverdueFilter) -> None:
    if filter.limit is not None and filter.limit < 0:
        raise ValidationError("limit", "must not be negative")


class OverdueSelector(BaseSelector):
    """
    Selector for active-assignment timing.

    Contract:
        ``assignment_report`` returns every active assignment with its
        ``overdue`` flag; ``list_overdue`` returns only the overdue ones.

    Non-goals:
        - Does NOT escalate, notify or change any status.
    """

    def __init__(self, session: Session, policy: WorkflowPolicy | None = None):
        super().__init__(session)
        self._policy = policy or WorkflowPolicy()

    def active_assignments(self, limit: int | None = None) -> list[ActiveAssignmentSnapshot]:
        """Active assignments, longest waiting first."""
        waiting_since = func.coalesce(
            ApproverAssignmentModel.activated_at,
            ApproverAssignmentModel.assigned_at,
        )
        stmt = (
            select(
                ApprovalRequestModel.id,
                ApprovalRequestModel.title,
                ApprovalRequestModel.priority,
                ApprovalRequestModel.request_type,
                ApproverAssignmentModel.approver_id,
                ApproverAssignmentModel.approver_role,
                ApproverAssignmentModel.level,
                ApproverAssignmentModel.timeout_hours,
                ApproverAssignmentModel.assigned_at,
                ApproverAssignmentModel.activated_at,
            )
            .join(
                ApproverAssignmentModel,
                ApproverAssignmentModel.request_id == ApprovalRequestModel.id,
            )
            .where(active_assignment_condition())
            .order_by(waiting_since, ApprovalRequestModel.id)
        )
        if limit is not None:
            stmt = stmt.limit(limit)

        return [
            ActiveAssignmentSnapshot(
                request_id=row.id,
                title=row.title,
                priority=row.priority,
                request_type=row.request_type,
                approver_id=row.approver_id,
                level=row.level,
                timeout_hours=row.timeout_hours,
                assigned_at=row.assigned_at,
                activated_at=row.activated_at,
                approver_role=row.approver_role,
            )
            for row in self.session.execute(stmt)
        ]

    def assignment_report(
        self,
        as_of: datetime,
        filter: OverdueFilter | None = None,
        limit: int | None = None,
    ) -> list[OverdueItem]:
        """
        Every active assignment (overdue or not), longest active first.

        ``limit`` bounds the rows read; ``filter.limit`` bounds the rows
        returned after filtering.
        """
        filter = filter or OverdueFilter()
        _check_limit(filter)
        items = []
        for snapshot in self.active_assignments(limit=limit):
            item = evaluate(snapshot, as_of, self._policy.level_name)
            if filter.matches(item, request_type=snapshot.request_type):
                items.append(item)
        if filter.limit is not None:
            items = items[: filter.limit]
        return items

    def list_overdue(
        self,
        as_of: datetime,
        filter: OverdueFilter | None = None,
    ) -> list[OverdueItem]:
        """Overdue active assignments, longest waiting first."""
        filter = filter or OverdueFilter()
        _check_limit(filter)

        overdue = [
            i
            for i in self.assignment_report(as_of, replace(filter, limit=None))
            if i.overdue
        ]
        overdue.sort(key=lambda i: (-i.waiting_hours, i.level, str(i.request_id)))
        if filter.limit is not None:
            overdue = overdue[: filter.limit]
        return overdue

    def bottlenecks(self, as_of: datetime) -> tuple[BottleneckIndicator, ...]:
        """Per-level indicators over all active assignments."""
        return summarize_bottlenecks(
            self.assignment_report(as_of), self._policy.level_name
        )
