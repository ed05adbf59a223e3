"""
Module: approval_kernel.models.comment
Responsibility: ORM persistence for the per-request discussion log.
Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - Append-only: no UPDATE or DELETE through the ORM.
    - Per-request ordering: UNIQUE(request_id, seq); a racing writer that
      allocates the same seq fails with IntegrityError.

Failure modes:
    - ImmutabilityViolationError on any UPDATE/DELETE attempt.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    Boolean,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column

from approval_kernel.db.base import Base, UUIDString
from approval_kernel.domain.dtos import CommentView
from approval_kernel.exceptions import ImmutabilityViolationError


class CommentModel(Base):
    """Persistent comment on an approval request. Append-only."""

    __tablename__ = "request_comments"

    __table_args__ = (
        UniqueConstraint("request_id", "seq", name="uq_request_comments_seq"),
        Index("ix_request_comments_order", "request_id", "created_at", "seq"),
    )

    request_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("approval_requests.id", ondelete="CASCADE"),
        nullable=False,
    )
    seq: Mapped[int] = mapped_column(Integer, nullable=False)
    author_id: Mapped[str] = mapped_column(String(64), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_internal: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<Comment #{self.seq} on {self.request_id} by {self.author_id}>"

    def to_dto(self) -> CommentView:
        return CommentView(
            comment_id=self.id,
            request_id=self.request_id,
            author_id=self.author_id,
            content=self.content,
            is_internal=self.is_internal,
            created_at=self.created_at,
            seq=self.seq,
        )


@event.listens_for(CommentModel, "before_update")
def prevent_comment_update(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="Comment",
        entity_id=str(target.id),
        reason="Comments are append-only -- cannot modify",
    )


@event.listens_for(CommentModel, "before_delete")
def prevent_comment_delete(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="Comment",
        entity_id=str(target.id),
        reason="Comments are append-only -- cannot delete",
    )
