"""
DecisionProcessor -- approve/reject decisions on the active assignment.

Responsibility:
    Validates an approver's action against the current aggregate, applies
    it through the state machine, and persists the outcome together with
    its history entry.  Also handles the active approver's request for
    revision.

Architecture position:
    Kernel > Services.  Orchestrates RequestStore (lock + save), the pure
    ``transition`` function, and ApprovalHistoryService.

Invariants enforced:
    - Check order for ``respond``: request exists; expected version
      matches; approver has a slot in the chain; that slot is still
      pending; request is pending/in_review; slot is the active one.
    - Atomicity: assignment change, request status, version bump and
      history entry are flushed in the caller's single transaction.
    - Single winner: two racing decisions on one assignment serialise on
      the row lock and version counter; the loser gets
      AlreadyDecidedError or ConflictError.

Failure modes:
    - NotFoundError, ConflictError, NotActiveError, AlreadyDecidedError,
      InvalidStateError, ValidationError (unknown action).
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.orm import Session

from approval_kernel.domain.clock import Clock
from approval_kernel.domain.dtos import RequestView
from approval_kernel.domain.workflow import (
    AssignmentStatus,
    Decide,
    DecisionAction,
    RequestRevision,
    transition,
)
from approval_kernel.logging_config import LogContext, get_logger
from approval_kernel.models.approval_log import ApprovalAction
from approval_kernel.services.approval_history import ApprovalHistoryService
from approval_kernel.services.base import BaseService
from approval_kernel.services.request_store import RequestStore

logger = get_logger("services.decision_processor")

_HISTORY_ACTION = {
    AssignmentStatus.APPROVED: ApprovalAction.APPROVED,
    AssignmentStatus.REJECTED: ApprovalAction.REJECTED,
}


class DecisionProcessor(BaseService):
    """
    Records approver decisions.

    Contract:
        Either the whole decision is flushed or nothing is; a refused
        action raises before any ORM attribute is touched.

    Guarantees:
        - ``responded_at == decided_at == clock.now()`` for the decision.
        - Approving level N activates level N+1 at the same instant.

    Non-goals:
        - Does NOT retry on ConflictError; the caller decides.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)
        self._store = RequestStore(session, self._clock)
        self._history = ApprovalHistoryService(session, self._clock)

    def respond(
        self,
        request_id: UUID | str,
        approver_id: str,
        action: DecisionAction | str,
        comment: str | None = None,
        expected_version: int | None = None,
    ) -> RequestView:
        """
        Approve or reject the approver's active assignment.

        Returns:
            The request as persisted after the decision.
        """
        with LogContext.bind(request_id=request_id, actor_id=approver_id):
            model = self._store.lock(request_id, expected_version)
            now = self._clock.now()
            state = model.to_state()
            new_state = transition(
                state,
                Decide(
                    approver_id=approver_id,
                    action=action,
                    at=now,
                    comment=comment,
                ),
            )
            self._store.save(model, new_state, now)

            decided = new_state.assignment_for(approver_id)
            self._history.record(
                model.id,
                _HISTORY_ACTION[decided.status],
                approver_id,
                level=decided.level,
                details={
                    "comment": comment,
                    "request_status": new_state.status.value,
                },
            )

            next_active = new_state.active_assignment
            logger.info(
                "decision_recorded",
                extra={
                    "approval_level": decided.level,
                    "decision": decided.status.value,
                    "previous_status": state.status.value,
                    "new_status": new_state.status.value,
                    "next_level": next_active.level if next_active else None,
                    "version": model.version,
                },
            )
            return model.to_dto()

    def request_revision(
        self,
        request_id: UUID | str,
        approver_id: str,
        comment: str | None = None,
        expected_version: int | None = None,
    ) -> RequestView:
        """The active approver halts the chain and asks for changes."""
        with LogContext.bind(request_id=request_id, actor_id=approver_id):
            model = self._store.lock(request_id, expected_version)
            now = self._clock.now()
            state = model.to_state()
            new_state = transition(
                state,
                RequestRevision(approver_id=approver_id, at=now, comment=comment),
            )
            self._store.save(model, new_state, now)

            level = state.assignment_for(approver_id).level
            self._history.record(
                model.id,
                ApprovalAction.REVISION_REQUESTED,
                approver_id,
                level=level,
                details={"comment": comment},
            )
            logger.info(
                "revision_requested",
                extra={"approval_level": level, "version": model.version},
            )
            return model.to_dto()
