"""
CommentLog -- append-only discussion attached to a request.

Responsibility:
    Adds comments (optionally internal, i.e. visible to approvers only) and
    lists them in the order they were written.

Architecture position:
    Kernel > Services.  Comments do not change request state, so no
    transition and no version bump; the request row is still locked so
    that the per-request seq is allocated by one writer at a time.

Invariants enforced:
    - Append-only: ORM listeners on ``CommentModel`` refuse UPDATE/DELETE.
    - Ordering: ``created_at`` ascending, ties broken by ``seq``.

Failure modes:
    - ValidationError on empty content or author.
    - NotFoundError for an unknown request.
    - ConflictError when a racing writer took the same seq.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from approval_kernel.domain.dtos import CommentView
from approval_kernel.exceptions import ConflictError, ValidationError
from approval_kernel.logging_config import get_logger
from approval_kernel.models.comment import CommentModel
from approval_kernel.selectors.request_selector import RequestSelector
from approval_kernel.services.base import BaseService
from approval_kernel.services.request_store import RequestStore

logger = get_logger("services.comment_log")


class CommentLog(BaseService):
    """Writer and reader of request comments."""

    def add_comment(
        self,
        request_id: UUID | str,
        author_id: str,
        content: str,
        is_internal: bool = False,
    ) -> CommentView:
        """
        Append a comment to the request.

        Raises:
            ValidationError: If ``content`` or ``author_id`` is blank.
            NotFoundError: If the request does not exist.
        """
        if not content or not content.strip():
            raise ValidationError("content", "must not be empty")
        if not author_id or not author_id.strip():
            raise ValidationError("author_id", "must not be empty")

        request = RequestStore(self.session, self._clock).lock(request_id)
        seq = (
            self.session.execute(
                select(func.max(CommentModel.seq)).where(
                    CommentModel.request_id == request.id
                )
            ).scalar()
            or 0
        ) + 1

        comment = CommentModel(
            request_id=request.id,
            seq=seq,
            author_id=author_id,
            content=content,
            is_internal=bool(is_internal),
            created_at=self._clock.now(),
        )
        self.session.add(comment)
        try:
            with self.session.begin_nested():
                self.session.flush()
        except IntegrityError:
            logger.warning(
                "comment_seq_conflict",
                extra={"request_id": str(request.id), "seq": seq},
            )
            raise ConflictError(str(request.id)) from None

        logger.info(
            "comment_added",
            extra={
                "request_id": str(request.id),
                "author_id": author_id,
                "seq": seq,
                "is_internal": comment.is_internal,
            },
        )
        return comment.to_dto()

    def list_comments(
        self,
        request_id: UUID | str,
        is_internal: bool | None = None,
    ) -> list[CommentView]:
        """Comments on a request, oldest first; ``is_internal`` narrows the list."""
        return RequestSelector(self.session).list_comments(request_id, is_internal)
