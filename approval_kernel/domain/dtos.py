"""
Read-side DTOs returned by services and selectors.

All DTOs are frozen.  Callers never receive ORM instances, so nothing a
caller does with a returned object can leak back into the session.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any
from uuid import UUID

from approval_kernel.domain.workflow import (
    AssignmentStatus,
    Priority,
    RequestStatus,
    RequestType,
)


@dataclass(frozen=True)
class ChainEntry:
    """
    One approver slot requested at creation time.

    ``level`` defaults to the position in the chain, ``timeout_hours`` to
    the policy timeout for the request type.
    """

    approver_id: str
    level: int | None = None
    timeout_hours: float | None = None


@dataclass(frozen=True)
class AssignmentView:
    assignment_id: UUID
    request_id: UUID
    approver_id: str
    level: int
    timeout_hours: float
    status: AssignmentStatus
    assigned_at: datetime
    approver_role: str | None = None
    activated_at: datetime | None = None
    responded_at: datetime | None = None
    decided_at: datetime | None = None
    comment: str | None = None


@dataclass(frozen=True)
class RequestView:
    """Snapshot of a request and its approver chain after an operation."""

    request_id: UUID
    request_type: RequestType
    title: str
    description: str
    priority: Priority
    status: RequestStatus
    requester_id: str
    created_at: datetime
    updated_at: datetime
    version: int
    assignments: tuple[AssignmentView, ...] = ()
    due_date: date | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    resolved_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def active_assignment(self) -> AssignmentView | None:
        if self.status not in (RequestStatus.PENDING, RequestStatus.IN_REVIEW):
            return None
        for assignment in self.assignments:
            if assignment.status == AssignmentStatus.PENDING:
                return assignment
        return None

    @property
    def active_level(self) -> int | None:
        active = self.active_assignment
        return active.level if active else None


@dataclass(frozen=True)
class CommentView:
    comment_id: UUID
    request_id: UUID
    author_id: str
    content: str
    is_internal: bool
    created_at: datetime
    seq: int


@dataclass(frozen=True)
class HistoryEntry:
    """One link of a request's hash-chained approval history."""

    entry_id: UUID
    request_id: UUID
    seq: int
    action: str
    actor_id: str
    created_at: datetime
    payload_hash: str
    hash: str
    level: int | None = None
    details: dict[str, Any] = field(default_factory=dict)
    prev_hash: str | None = None


@dataclass(frozen=True)
class RequestDetail:
    request: RequestView
    assignments: tuple[AssignmentView, ...]
    comments: tuple[CommentView, ...]
