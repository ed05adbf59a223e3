"""
Workflow state machine (``approval_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for approval requests and their approver chains, and
the single transition function ``transition(state, event) -> state`` that
every mutating operation goes through.  The request status is derived
from the assignment states plus a small set of request-level overrides
(draft, needs_revision, cancelled).

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``models/``, ``services/`` or ``selectors/``.

Invariants enforced
-------------------
* Chain shape: assignment levels are unique and contiguous from 1.
* Single active slot: the active assignment is the lowest-level
  assignment still ``pending``, and only while the request is ``pending``
  or ``in_review``.
* Sequential activation: ``approve`` on level N activates level N+1;
  approving the last level resolves the request as ``approved``.
* Short-circuit rejection: ``reject`` resolves the request as ``rejected``
  at once; higher levels stay ``pending`` and are never activated.
* Bounded reversal: a decision can be reverted only by its maker, within
  the cancellation window (inclusive), while no higher level has decided
  and the outcome has not been consumed.  A reversal always leaves the
  request ``in_review``, active at the reopened level.
* ``REQUEST_TRANSITIONS`` lists every status move the engine can make.

Failure modes
-------------
* ``ValidationError`` -- malformed chain or unknown action.
* ``InvalidStateError`` -- event not allowed in the request's status.
* ``NotActiveError`` / ``AlreadyDecidedError`` -- decision by the wrong
  assignment.
* ``NotOwnerError`` / ``WindowExpiredError`` / ``IrreversibleStateError``
  -- rejected reversal.

Audit relevance
---------------
Every event is validated in full before a new state is built, so a
refused action never leaves a half-applied aggregate behind.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Iterable
from uuid import UUID

from approval_kernel.exceptions import (
    AlreadyDecidedError,
    InvalidStateError,
    IrreversibleStateError,
    NotActiveError,
    NotOwnerError,
    ValidationError,
    WindowExpiredError,
)


# =========================================================================
# Enumerations
# =========================================================================


class RequestStatus(str, Enum):
    """Approval request lifecycle states."""

    DRAFT = "draft"
    PENDING = "pending"
    IN_REVIEW = "in_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    NEEDS_REVISION = "needs_revision"
    CANCELLED = "cancelled"


class AssignmentStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class RequestType(str, Enum):
    CODE_COMPONENT = "code_component"
    BUG_FIX = "bug_fix"
    ARCHITECTURE_CHANGE = "architecture_change"
    SOLUTION_DEPLOYMENT = "solution_deployment"
    RELEASE_APPROVAL = "release_approval"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class DecisionAction(str, Enum):
    """Decisions an approver can record on the active assignment."""

    APPROVE = "approve"
    REJECT = "reject"


REQUEST_TRANSITIONS: dict[RequestStatus, frozenset[RequestStatus]] = {
    RequestStatus.DRAFT: frozenset({
        RequestStatus.PENDING,
        RequestStatus.CANCELLED,
    }),
    RequestStatus.PENDING: frozenset({
        RequestStatus.IN_REVIEW,
        RequestStatus.APPROVED,
        RequestStatus.REJECTED,
        RequestStatus.NEEDS_REVISION,
        RequestStatus.CANCELLED,
    }),
    RequestStatus.IN_REVIEW: frozenset({
        RequestStatus.APPROVED,
        RequestStatus.REJECTED,
        RequestStatus.NEEDS_REVISION,
        RequestStatus.CANCELLED,
    }),
    # Terminal decisions can only be reopened by a decision reversal.
    RequestStatus.APPROVED: frozenset({
        RequestStatus.IN_REVIEW,
    }),
    RequestStatus.REJECTED: frozenset({
        RequestStatus.IN_REVIEW,
    }),
    RequestStatus.NEEDS_REVISION: frozenset({
        RequestStatus.CANCELLED,
    }),
    RequestStatus.CANCELLED: frozenset(),
}

TERMINAL_REQUEST_STATUSES: frozenset[RequestStatus] = frozenset({
    RequestStatus.APPROVED,
    RequestStatus.REJECTED,
    RequestStatus.CANCELLED,
})

ACTIONABLE_REQUEST_STATUSES: frozenset[RequestStatus] = frozenset({
    RequestStatus.PENDING,
    RequestStatus.IN_REVIEW,
})

WITHDRAWABLE_REQUEST_STATUSES: frozenset[RequestStatus] = frozenset({
    RequestStatus.DRAFT,
    RequestStatus.PENDING,
    RequestStatus.IN_REVIEW,
    RequestStatus.NEEDS_REVISION,
})


# =========================================================================
# State value objects
# =========================================================================


@dataclass(frozen=True)
class AssignmentState:
    """One approver slot in the chain, as seen by the state machine."""

    assignment_id: UUID
    approver_id: str
    level: int
    timeout_hours: float
    status: AssignmentStatus = AssignmentStatus.PENDING
    activated_at: datetime | None = None
    responded_at: datetime | None = None
    decided_at: datetime | None = None
    comment: str | None = None

    @property
    def is_decided(self) -> bool:
        return self.status != AssignmentStatus.PENDING


@dataclass(frozen=True)
class WorkflowState:
    """
    Immutable snapshot of a request aggregate.

    ``assignments`` is always ordered by level.
    """

    request_id: UUID
    requester_id: str
    status: RequestStatus
    assignments: tuple[AssignmentState, ...]
    resolved_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def active_assignment(self) -> AssignmentState | None:
        return active_assignment(self)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_REQUEST_STATUSES

    def assignment_for(self, approver_id: str) -> AssignmentState | None:
        for assignment in self.assignments:
            if assignment.approver_id == approver_id:
                return assignment
        return None


# =========================================================================
# Events
# =========================================================================


@dataclass(frozen=True)
class Submit:
    """The requester moves a draft into the chain; level 1 becomes active."""

    actor_id: str
    at: datetime


@dataclass(frozen=True)
class Decide:
    approver_id: str
    action: DecisionAction
    at: datetime
    comment: str | None = None


@dataclass(frozen=True)
class RequestRevision:
    """The active approver sends the request back to its author."""

    approver_id: str
    at: datetime
    comment: str | None = None


@dataclass(frozen=True)
class Withdraw:
    actor_id: str
    at: datetime


@dataclass(frozen=True)
class Revert:
    """Cancel a recorded decision and reopen the chain at its level."""

    approver_id: str
    at: datetime
    window: timedelta


@dataclass(frozen=True)
class Complete:
    """An external consumer acted on the final outcome."""

    actor_id: str
    at: datetime


WorkflowEvent = Submit | Decide | RequestRevision | Withdraw | Revert | Complete


# =========================================================================
# Pure queries
# =========================================================================


def validate_levels(levels: Iterable[int]) -> None:
    """Raise ValidationError unless ``levels`` is exactly ``{1..N}``."""
    levels = list(levels)
    if not levels:
        raise ValidationError("approver_chain", "at least one approver is required")
    if len(set(levels)) != len(levels):
        raise ValidationError("approver_chain", "approval levels must be unique")
    expected = set(range(1, len(levels) + 1))
    if set(levels) != expected:
        raise ValidationError(
            "approver_chain",
            f"approval levels must be contiguous from 1, got {sorted(levels)}",
        )


def active_assignment(state: WorkflowState) -> AssignmentState | None:
    """Lowest-level pending assignment while the request is actionable."""
    if state.status not in ACTIONABLE_REQUEST_STATUSES:
        return None
    for assignment in state.assignments:
        if assignment.status == AssignmentStatus.PENDING:
            return assignment
    return None


def derive_status(assignments: Iterable[AssignmentState]) -> RequestStatus:
    """Request status implied by assignment outcomes alone."""
    assignments = tuple(assignments)
    if any(a.status == AssignmentStatus.REJECTED for a in assignments):
        return RequestStatus.REJECTED
    if assignments and all(a.status == AssignmentStatus.APPROVED for a in assignments):
        return RequestStatus.APPROVED
    if any(a.is_decided for a in assignments):
        return RequestStatus.IN_REVIEW
    return RequestStatus.PENDING


# =========================================================================
# Transition function
# =========================================================================


def transition(state: WorkflowState, event: WorkflowEvent) -> WorkflowState:
    """
    Apply ``event`` to ``state`` and return the resulting state.

    Raises the matching ApprovalKernelError subclass when the event is
    not allowed; ``state`` is never modified.
    """
    handler = _HANDLERS.get(type(event))
    if handler is None:
        raise TypeError(f"Unknown workflow event: {event!r}")
    new_state = handler(state, event)
    if (
        new_state.status != state.status
        and new_state.status not in REQUEST_TRANSITIONS[state.status]
    ):
        raise InvalidStateError(
            str(state.request_id),
            state.status.value,
            f"move to '{new_state.status.value}' from",
        )
    return new_state


def _require_active(state: WorkflowState, approver_id: str) -> AssignmentState:
    request_id = str(state.request_id)
    assignment = state.assignment_for(approver_id)
    if assignment is None:
        raise NotActiveError(request_id, approver_id)
    if assignment.is_decided:
        raise AlreadyDecidedError(
            request_id, approver_id, assignment.level, assignment.status.value
        )
    if state.status not in ACTIONABLE_REQUEST_STATUSES:
        raise InvalidStateError(request_id, state.status.value, "decide on")
    active = active_assignment(state)
    if active is None or active.level != assignment.level:
        raise NotActiveError(
            request_id,
            approver_id,
            level=assignment.level,
            active_level=active.level if active else None,
        )
    return assignment


def _replace_assignments(
    state: WorkflowState, changed: dict[int, AssignmentState]
) -> tuple[AssignmentState, ...]:
    return tuple(changed.get(a.level, a) for a in state.assignments)


def _decide(state: WorkflowState, event: Decide) -> WorkflowState:
    try:
        action = DecisionAction(event.action)
    except ValueError:
        raise ValidationError(
            "action", f"unknown decision action {event.action!r}"
        ) from None

    target = _require_active(state, event.approver_id)

    outcome = (
        AssignmentStatus.APPROVED
        if action == DecisionAction.APPROVE
        else AssignmentStatus.REJECTED
    )
    changed = {
        target.level: replace(
            target,
            status=outcome,
            responded_at=event.at,
            decided_at=event.at,
            comment=event.comment,
        )
    }
    if outcome == AssignmentStatus.APPROVED:
        for nxt in state.assignments:
            if nxt.level == target.level + 1:
                changed[nxt.level] = replace(nxt, activated_at=event.at)

    assignments = _replace_assignments(state, changed)
    status = derive_status(assignments)
    return replace(
        state,
        status=status,
        assignments=assignments,
        resolved_at=event.at if status in TERMINAL_REQUEST_STATUSES else None,
    )


def _revert(state: WorkflowState, event: Revert) -> WorkflowState:
    request_id = str(state.request_id)
    decided = [a for a in state.assignments if a.is_decided]
    if (
        state.status in (
            RequestStatus.DRAFT,
            RequestStatus.NEEDS_REVISION,
            RequestStatus.CANCELLED,
        )
        or not decided
    ):
        raise InvalidStateError(request_id, state.status.value, "cancel a decision on")

    target = next((a for a in decided if a.approver_id == event.approver_id), None)
    if target is None:
        raise NotOwnerError(request_id, event.approver_id)

    if event.at - target.decided_at > event.window:
        raise WindowExpiredError(
            request_id,
            target.level,
            target.decided_at.isoformat(),
            event.window.total_seconds() / 3600,
        )

    if any(a.level > target.level for a in decided):
        raise IrreversibleStateError(
            request_id, target.level, "a higher level has already decided"
        )
    if state.completed_at is not None:
        raise IrreversibleStateError(
            request_id, target.level, "the outcome has already been acted upon"
        )

    changed = {
        target.level: replace(
            target,
            status=AssignmentStatus.PENDING,
            activated_at=event.at,
            responded_at=None,
            decided_at=None,
            comment=None,
        )
    }
    for higher in state.assignments:
        if higher.level > target.level and higher.activated_at is not None:
            changed[higher.level] = replace(higher, activated_at=None)

    assignments = _replace_assignments(state, changed)
    # A reopened chain is back in review, even when level 1 is pending again.
    status = derive_status(assignments)
    if status == RequestStatus.PENDING:
        status = RequestStatus.IN_REVIEW
    return replace(
        state,
        status=status,
        assignments=assignments,
        resolved_at=None,
    )


def _submit(state: WorkflowState, event: Submit) -> WorkflowState:
    if event.actor_id != state.requester_id:
        raise NotOwnerError(str(state.request_id), event.actor_id, subject="request")
    if state.status != RequestStatus.DRAFT:
        raise InvalidStateError(str(state.request_id), state.status.value, "submit")
    first = state.assignments[0]
    assignments = _replace_assignments(
        state, {first.level: replace(first, activated_at=event.at)}
    )
    return replace(state, status=RequestStatus.PENDING, assignments=assignments)


def _request_revision(state: WorkflowState, event: RequestRevision) -> WorkflowState:
    _require_active(state, event.approver_id)
    return replace(state, status=RequestStatus.NEEDS_REVISION)


def _withdraw(state: WorkflowState, event: Withdraw) -> WorkflowState:
    request_id = str(state.request_id)
    if event.actor_id != state.requester_id:
        raise NotOwnerError(request_id, event.actor_id, subject="request")
    if state.status not in WITHDRAWABLE_REQUEST_STATUSES:
        raise InvalidStateError(request_id, state.status.value, "withdraw")
    return replace(state, status=RequestStatus.CANCELLED, resolved_at=event.at)


def _complete(state: WorkflowState, event: Complete) -> WorkflowState:
    if state.status not in (RequestStatus.APPROVED, RequestStatus.REJECTED):
        raise InvalidStateError(str(state.request_id), state.status.value, "complete")
    if state.completed_at is not None:
        raise InvalidStateError(
            str(state.request_id), f"{state.status.value} (completed)", "complete"
        )
    return replace(state, completed_at=event.at)


_HANDLERS = {
    Submit: _submit,
    Decide: _decide,
    RequestRevision: _request_revision,
    Withdraw: _withdraw,
    Revert: _revert,
    Complete: _complete,
}
