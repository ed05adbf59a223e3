"""
Module: approval_kernel.models.approval_log
Responsibility: ORM persistence for the per-request approval history.
Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - Append-only: no UPDATE or DELETE through the ORM.
    - Hash chain: hash = H(request_id | seq | action | payload_hash |
      prev_hash).  Written and verified by ApprovalHistoryService.
    - seq is contiguous from 1 within a request: UNIQUE(request_id, seq).

Failure modes:
    - ImmutabilityViolationError on any UPDATE/DELETE attempt.
    - AuditChainBrokenError when verification detects a hash mismatch.

Audit relevance:
    Every state change of a request (creation, submission, each decision,
    each cancelled decision, revision requests, withdrawal, completion)
    leaves one row here, in the same transaction as the change itself.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, ForeignKey, Integer, String, UniqueConstraint, event
from sqlalchemy.orm import Mapped, mapped_column

from approval_kernel.db.base import Base, UUIDString
from approval_kernel.domain.dtos import HistoryEntry
from approval_kernel.exceptions import ImmutabilityViolationError


class ApprovalAction(str, Enum):
    """Actions recorded in the approval history."""

    CREATED = "created"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    DECISION_CANCELLED = "decision_cancelled"
    REVISION_REQUESTED = "revision_requested"
    WITHDRAWN = "withdrawn"
    COMPLETED = "completed"


class ApprovalLogModel(Base):
    """
    One hash-chained history entry of an approval request.

    Contract:
        Rows are append-only.  ``prev_hash`` is None only for the first
        entry of a request.

    Non-goals:
        - The model does NOT compute hashes; ApprovalHistoryService does.
    """

    __tablename__ = "approval_logs"

    __table_args__ = (
        UniqueConstraint("request_id", "seq", name="uq_approval_logs_seq"),
    )

    request_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("approval_requests.id", ondelete="CASCADE"),
        nullable=False,
    )
    seq: Mapped[int] = mapped_column(Integer, nullable=False)
    action: Mapped[str] = mapped_column(String(32), nullable=False)
    actor_id: Mapped[str] = mapped_column(String(64), nullable=False)
    level: Mapped[int | None] = mapped_column(Integer, nullable=True)
    details: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    prev_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    hash: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return f"<ApprovalLog #{self.seq} {self.action} on {self.request_id}>"

    @property
    def is_genesis(self) -> bool:
        return self.prev_hash is None

    def to_dto(self) -> HistoryEntry:
        return HistoryEntry(
            entry_id=self.id,
            request_id=self.request_id,
            seq=self.seq,
            action=self.action,
            actor_id=self.actor_id,
            created_at=self.created_at,
            payload_hash=self.payload_hash,
            hash=self.hash,
            level=self.level,
            details=dict(self.details or {}),
            prev_hash=self.prev_hash,
        )


@event.listens_for(ApprovalLogModel, "before_update")
def prevent_log_update(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="ApprovalLog",
        entity_id=str(target.id),
        reason="Approval history is append-only -- cannot modify",
    )


@event.listens_for(ApprovalLogModel, "before_delete")
def prevent_log_delete(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="ApprovalLog",
        entity_id=str(target.id),
        reason="Approval history is append-only -- cannot delete",
    )
