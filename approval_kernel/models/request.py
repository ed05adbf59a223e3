"""
Module: approval_kernel.models.request
Responsibility: ORM persistence for approval requests and their approver
    chains.

Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - Chain shape: UNIQUE(request_id, level) and UNIQUE(request_id,
      approver_id); contiguity is checked by the service at creation.
    - Optimistic concurrency: ``version`` is the mapper's version counter.
      Every mutating operation bumps it explicitly, and an UPDATE whose
      WHERE clause no longer matches the stored version raises
      StaleDataError, which the request store reports as ConflictError.
    - Valid enum values: DB check constraints on status, type, priority.
    - Children go with the request: assignments, comments and history rows
      are removed by ON DELETE CASCADE.

Failure modes:
    - IntegrityError on duplicate level or approver within one chain.
    - StaleDataError on a lost update (surfaced as ConflictError).
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import (
    JSON,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from approval_kernel.db.base import Base, UUIDString
from approval_kernel.domain.dtos import AssignmentView, RequestView
from approval_kernel.domain.workflow import (
    AssignmentState,
    AssignmentStatus,
    Priority,
    RequestStatus,
    RequestType,
    WorkflowState,
)


def _in_clause(column: str, enum_cls) -> str:
    values = ", ".join(f"'{m.value}'" for m in enum_cls)
    return f"{column} IN ({values})"


class ApprovalRequestModel(Base):
    """Persistent approval request (aggregate root).

    Contract:
        Only the services in ``approval_kernel.services`` mutate rows, and
        only through ``apply_state`` after the state machine accepted the
        event.

    Guarantees:
        - ``version`` starts at 1 and grows by one per committed mutation.
        - ``assignments`` is always ordered by level.
    """

    __tablename__ = "approval_requests"

    __table_args__ = (
        CheckConstraint(
            _in_clause("status", RequestStatus),
            name="ck_approval_requests_status",
        ),
        CheckConstraint(
            _in_clause("request_type", RequestType),
            name="ck_approval_requests_type",
        ),
        CheckConstraint(
            _in_clause("priority", Priority),
            name="ck_approval_requests_priority",
        ),
        Index("ix_approval_requests_requester", "requester_id", "created_at"),
        Index("ix_approval_requests_status", "status", "created_at"),
    )

    request_type: Mapped[str] = mapped_column(String(32), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    priority: Mapped[str] = mapped_column(String(16), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False)
    requester_id: Mapped[str] = mapped_column(String(64), nullable=False)
    due_date: Mapped[date | None] = mapped_column(nullable=True)
    # "metadata" is reserved on declarative classes.
    request_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSON, nullable=False, default=dict,
    )
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    updated_at: Mapped[datetime] = mapped_column(nullable=False)
    resolved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    assignments: Mapped[list[ApproverAssignmentModel]] = relationship(
        back_populates="request",
        order_by="ApproverAssignmentModel.level",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )

    __mapper_args__ = {
        "version_id_col": version,
        "version_id_generator": False,
    }

    def __repr__(self) -> str:
        return (
            f"<ApprovalRequest {self.id} {self.request_type} "
            f"status={self.status} v{self.version}>"
        )

    def to_state(self) -> WorkflowState:
        """Project the aggregate onto the state machine's value objects."""
        return WorkflowState(
            request_id=self.id,
            requester_id=self.requester_id,
            status=RequestStatus(self.status),
            assignments=tuple(a.to_state() for a in self.assignments),
            resolved_at=self.resolved_at,
            completed_at=self.completed_at,
        )

    def apply_state(self, state: WorkflowState) -> None:
        """Copy an accepted state back onto the rows."""
        by_level = {a.level: a for a in self.assignments}
        for assignment_state in state.assignments:
            by_level[assignment_state.level].apply_state(assignment_state)
        self.status = state.status.value
        self.resolved_at = state.resolved_at
        self.completed_at = state.completed_at

    def to_dto(self) -> RequestView:
        return RequestView(
            request_id=self.id,
            request_type=RequestType(self.request_type),
            title=self.title,
            description=self.description,
            priority=Priority(self.priority),
            status=RequestStatus(self.status),
            requester_id=self.requester_id,
            created_at=self.created_at,
            updated_at=self.updated_at,
            version=self.version,
            assignments=tuple(a.to_dto() for a in self.assignments),
            due_date=self.due_date,
            metadata=dict(self.request_metadata or {}),
            resolved_at=self.resolved_at,
            completed_at=self.completed_at,
        )


class ApproverAssignmentModel(Base):
    """One approver slot in a request's chain.

    Contract:
        Created together with the request; afterwards only status and
        timestamps change.
    """

    __tablename__ = "approver_assignments"

    __table_args__ = (
        UniqueConstraint("request_id", "level", name="uq_approver_assignments_level"),
        UniqueConstraint(
            "request_id", "approver_id", name="uq_approver_assignments_approver",
        ),
        CheckConstraint("level >= 1", name="ck_approver_assignments_level"),
        CheckConstraint(
            "timeout_hours > 0", name="ck_approver_assignments_timeout",
        ),
        CheckConstraint(
            _in_clause("status", AssignmentStatus),
            name="ck_approver_assignments_status",
        ),
        Index("ix_approver_assignments_inbox", "approver_id", "status"),
        Index("ix_approver_assignments_status_level", "status", "level"),
    )

    request_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("approval_requests.id", ondelete="CASCADE"),
        nullable=False,
    )
    approver_id: Mapped[str] = mapped_column(String(64), nullable=False)
    approver_role: Mapped[str | None] = mapped_column(String(64), nullable=True)
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    timeout_hours: Mapped[float] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    assigned_at: Mapped[datetime] = mapped_column(nullable=False)
    activated_at: Mapped[datetime | None] = mapped_column(nullable=True)
    responded_at: Mapped[datetime | None] = mapped_column(nullable=True)
    decided_at: Mapped[datetime | None] = mapped_column(nullable=True)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)

    request: Mapped[ApprovalRequestModel] = relationship(
        back_populates="assignments",
    )

    def __repr__(self) -> str:
        return (
            f"<ApproverAssignment L{self.level} {self.approver_id} "
            f"status={self.status}>"
        )

    def to_state(self) -> AssignmentState:
        return AssignmentState(
            assignment_id=self.id,
            approver_id=self.approver_id,
            level=self.level,
            timeout_hours=self.timeout_hours,
            status=AssignmentStatus(self.status),
            activated_at=self.activated_at,
            responded_at=self.responded_at,
            decided_at=self.decided_at,
            comment=self.comment,
        )

    def apply_state(self, state: AssignmentState) -> None:
        self.status = state.status.value
        self.activated_at = state.activated_at
        self.responded_at = state.responded_at
        self.decided_at = state.decided_at
        self.comment = state.comment

    def to_dto(self) -> AssignmentView:
        return AssignmentView(
            assignment_id=self.id,
            request_id=self.request_id,
            approver_id=self.approver_id,
            level=self.level,
            timeout_hours=self.timeout_hours,
            status=AssignmentStatus(self.status),
            assigned_at=self.assigned_at,
            approver_role=self.approver_role,
            activated_at=self.activated_at,
            responded_at=self.responded_at,
            decided_at=self.decided_at,
            comment=self.comment,
        )
