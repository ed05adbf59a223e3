"""
CancellationHandler -- bounded reversal of a recorded decision.

Responsibility:
    Lets an approver take back their own decision within the cancellation
    window, reopening the chain at that level.  Also records that an
    external consumer acted on a final outcome (``complete``), which
    closes the door on any further reversal.

Architecture position:
    Kernel > Services.  Same shape as DecisionProcessor: lock, pure
    transition, save, history.

Invariants enforced:
    - Ownership: only the approver who made a decision can cancel it.
    - Window: ``now - decided_at <= window`` (inclusive), measured with the
      injected clock; the window length comes from WorkflowPolicy.
    - Irreversibility: no cancellation once a higher level has decided or
      the outcome has been completed.
    - Cascading reopen: the target assignment returns to ``pending`` and is
      re-activated; every higher assignment loses its activation.
    - ``resolved_at`` is cleared whenever a decision is cancelled.

Failure modes:
    - NotFoundError, ConflictError, InvalidStateError, NotOwnerError,
      WindowExpiredError, IrreversibleStateError.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.orm import Session

from approval_kernel.domain.clock import Clock
from approval_kernel.domain.dtos import RequestView
from approval_kernel.domain.policy import WorkflowPolicy
from approval_kernel.domain.workflow import Complete, Revert, transition
from approval_kernel.logging_config import LogContext, get_logger
from approval_kernel.models.approval_log import ApprovalAction
from approval_kernel.services.approval_history import ApprovalHistoryService
from approval_kernel.services.base import BaseService
from approval_kernel.services.request_store import RequestStore

logger = get_logger("services.cancellation_handler")


class CancellationHandler(BaseService):
    """
    Reverts decisions and marks outcomes as consumed.

    Guarantees:
        - A cancelled decision leaves a ``decision_cancelled`` history
          entry carrying the reverted outcome and the reason.

    Non-goals:
        - Does NOT undo external side effects; ``complete`` exists so the
          engine refuses to reopen once such effects happened.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policy: WorkflowPolicy | None = None,
    ):
        super().__init__(session, clock)
        self._policy = policy or WorkflowPolicy()
        self._store = RequestStore(session, self._clock)
        self._history = ApprovalHistoryService(session, self._clock)

    def cancel(
        self,
        request_id: UUID | str,
        approver_id: str,
        reason: str | None = None,
        expected_version: int | None = None,
    ) -> RequestView:
        """
        Cancel ``approver_id``'s decision on the request.

        Postconditions:
            - The approver's assignment is ``pending`` and active again.
            - The request is ``in_review``.
        """
        with LogContext.bind(request_id=request_id, actor_id=approver_id):
            model = self._store.lock(request_id, expected_version)
            now = self._clock.now()
            state = model.to_state()
            new_state = transition(
                state,
                Revert(
                    approver_id=approver_id,
                    at=now,
                    window=self._policy.cancellation_window,
                ),
            )
            reverted = state.assignment_for(approver_id)
            self._store.save(model, new_state, now)

            self._history.record(
                model.id,
                ApprovalAction.DECISION_CANCELLED,
                approver_id,
                level=reverted.level,
                details={
                    "reason": reason,
                    "reverted_decision": reverted.status.value,
                    "decided_at": reverted.decided_at.isoformat(),
                    "previous_status": state.status.value,
                    "request_status": new_state.status.value,
                },
            )
            logger.info(
                "decision_cancelled",
                extra={
                    "approval_level": reverted.level,
                    "reverted_decision": reverted.status.value,
                    "previous_status": state.status.value,
                    "new_status": new_state.status.value,
                    "version": model.version,
                },
            )
            return model.to_dto()

    def complete(
        self,
        request_id: UUID | str,
        actor_id: str,
        expected_version: int | None = None,
    ) -> RequestView:
        """Mark a resolved request's outcome as acted upon."""
        with LogContext.bind(request_id=request_id, actor_id=actor_id):
            model = self._store.lock(request_id, expected_version)
            now = self._clock.now()
            new_state = transition(model.to_state(), Complete(actor_id=actor_id, at=now))
            self._store.save(model, new_state, now)
            self._history.record(
                model.id,
                ApprovalAction.COMPLETED,
                actor_id,
                details={"outcome": new_state.status.value},
            )
            logger.info(
                "approval_outcome_completed",
                extra={"outcome": new_state.status.value, "version": model.version},
            )
            return model.to_dto()
