"""
Module: approval_kernel.selectors.request_selector
Responsibility: Read-only access to requests, their chains and comments.
    Backs the request detail view, the approver inbox and the requester's
    request list.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Read-only: no mutations performed on any queried data.
    - Active assignment: the lowest-level ``pending`` assignment of a
      ``pending`` or ``in_review`` request.  Expressed once, in
      ``active_assignment_condition``, and shared with the overdue selector.
    - Deterministic ordering: lists are ordered by ``created_at`` then id.

Failure modes:
    - NotFoundError from ``get_request``, ``get_detail`` and ``list_comments``
      for unknown ids.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import and_, not_, select
from sqlalchemy.orm import aliased

from approval_kernel.domain.dtos import CommentView, RequestDetail, RequestView
from approval_kernel.domain.workflow import (
    ACTIONABLE_REQUEST_STATUSES,
    AssignmentStatus,
    RequestStatus,
)
from approval_kernel.exceptions import NotFoundError, ValidationError
from approval_kernel.models.comment import CommentModel
from approval_kernel.models.request import (
    ApprovalRequestModel,
    ApproverAssignmentModel,
)
from approval_kernel.selectors.base import BaseSelector
from approval_kernel.utils.ids import coerce_request_id

_ACTIONABLE = [s.value for s in ACTIONABLE_REQUEST_STATUSES]


def active_assignment_condition():
    """
    SQL condition selecting active assignments.

    Must be used in a statement that joins ``ApprovalRequestModel`` to
    ``ApproverAssignmentModel``.
    """
    lower = aliased(ApproverAssignmentModel)
    lower_pending = (
        select(lower.id)
        .where(
            lower.request_id == ApproverAssignmentModel.request_id,
            lower.level < ApproverAssignmentModel.level,
            lower.status == AssignmentStatus.PENDING.value,
        )
        .exists()
    )
    return and_(
        ApprovalRequestModel.status.in_(_ACTIONABLE),
        ApproverAssignmentModel.status == AssignmentStatus.PENDING.value,
        not_(lower_pending),
    )


class RequestSelector(BaseSelector):
    """
    Selector for request queries.

    Guarantees:
        - Assignments come back ordered by level (relationship order_by).
        - Comments come back ordered by ``created_at`` then ``seq``.
    """

    def _load(self, request_id: UUID | str) -> ApprovalRequestModel:
        rid = coerce_request_id(request_id)
        model = self.session.get(ApprovalRequestModel, rid)
        if model is None:
            raise NotFoundError(str(rid))
        return model

    def get_request(self, request_id: UUID | str) -> RequestView:
        return self._load(request_id).to_dto()

    def list_comments(
        self,
        request_id: UUID | str,
        is_internal: bool | None = None,
    ) -> list[CommentView]:
        rid = self._load(request_id).id
        stmt = select(CommentModel).where(CommentModel.request_id == rid)
        if is_internal is not None:
            stmt = stmt.where(CommentModel.is_internal == is_internal)
        stmt = stmt.order_by(CommentModel.created_at, CommentModel.seq)
        return [c.to_dto() for c in self.session.execute(stmt).scalars()]

    def get_detail(
        self,
        request_id: UUID | str,
        include_internal: bool = True,
    ) -> RequestDetail:
        """Request, its full chain, and its comments in one snapshot."""
        view = self.get_request(request_id)
        comments = self.list_comments(
            view.request_id, is_internal=None if include_internal else False
        )
        return RequestDetail(
            request=view,
            assignments=view.assignments,
            comments=tuple(comments),
        )

    def list_pending_for_approver(self, approver_id: str) -> list[RequestView]:
        """Requests currently waiting on ``approver_id``, oldest first."""
        stmt = (
            select(ApprovalRequestModel)
            .join(
                ApproverAssignmentModel,
                ApproverAssignmentModel.request_id == ApprovalRequestModel.id,
            )
            .where(
                ApproverAssignmentModel.approver_id == approver_id,
                active_assignment_condition(),
            )
            .order_by(ApprovalRequestModel.created_at, ApprovalRequestModel.id)
        )
        return [m.to_dto() for m in self.session.execute(stmt).scalars()]

    def list_requests(
        self,
        requester_id: str | None = None,
        status: RequestStatus | str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[RequestView]:
        """Newest first, paginated."""
        if limit < 1:
            raise ValidationError("limit", "must be at least 1")
        if offset < 0:
            raise ValidationError("offset", "must not be negative")

        stmt = select(ApprovalRequestModel)
        if requester_id is not None:
            stmt = stmt.where(ApprovalRequestModel.requester_id == requester_id)
        if status is not None:
            try:
                status_value = RequestStatus(status).value
            except ValueError:
                raise ValidationError("status", f"unknown status {status!r}") from None
            stmt = stmt.where(ApprovalRequestModel.status == status_value)
        stmt = (
            stmt.order_by(
                ApprovalRequestModel.created_at.desc(),
                ApprovalRequestModel.id,
            )
            .limit(limit)
            .offset(offset)
        )
        return [m.to_dto() for m in self.session.execute(stmt).scalars()]
