"""Tests for the pure approval state machine (approval_kernel/domain/workflow.py)."""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from approval_kernel.domain.workflow import (
    REQUEST_TRANSITIONS,
    AssignmentState,
    AssignmentStatus,
    Complete,
    Decide,
    RequestRevision,
    RequestStatus,
    Revert,
    Submit,
    Withdraw,
    WorkflowState,
    derive_status,
    transition,
    validate_levels,
)
from approval_kernel.exceptions import (
    AlreadyDecidedError,
    InvalidStateError,
    IrreversibleStateError,
    NotActiveError,
    NotOwnerError,
    ValidationError,
    WindowExpiredError,
)

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
WINDOW = timedelta(hours=24)


def make_state(*approvers: str, status=RequestStatus.PENDING, activate_first=True):
    assignments = tuple(
        AssignmentState(
            assignment_id=uuid4(),
            approver_id=approver,
            level=level,
            timeout_hours=24,
            activated_at=T0 if level == 1 and activate_first else None,
        )
        for level, approver in enumerate(approvers, start=1)
    )
    return WorkflowState(
        request_id=uuid4(),
        requester_id="requester",
        status=status,
        assignments=assignments,
    )


def decide(state, approver, action="approve", at=T0):
    return transition(state, Decide(approver_id=approver, action=action, at=at))


# ---------------------------------------------------------------------------
# Sequential approval
# ---------------------------------------------------------------------------


class TestSequentialApproval:

    def test_first_approval_moves_to_in_review_and_activates_next(self):
        state = decide(make_state("alice", "bob"), "alice")

        assert state.status == RequestStatus.IN_REVIEW
        assert state.assignments[0].status == AssignmentStatus.APPROVED
        assert state.assignments[0].decided_at == T0
        assert state.active_assignment.approver_id == "bob"
        assert state.assignments[1].activated_at == T0
        assert state.resolved_at is None

    def test_last_approval_resolves_request(self):
        state = decide(make_state("alice", "bob"), "alice")
        later = T0 + timedelta(hours=2)
        state = decide(state, "bob", at=later)

        assert state.status == RequestStatus.APPROVED
        assert all(a.decided_at is not None for a in state.assignments)
        assert state.resolved_at == later
        assert state.active_assignment is None

    def test_single_level_approval(self):
        state = decide(make_state("alice"), "alice")
        assert state.status == RequestStatus.APPROVED

    def test_input_state_is_not_modified(self):
        original = make_state("alice", "bob")
        decide(original, "alice")
        assert original.status == RequestStatus.PENDING
        assert original.assignments[0].status == AssignmentStatus.PENDING

    def test_comment_recorded_on_assignment(self):
        state = transition(
            make_state("alice"),
            Decide(approver_id="alice", action="approve", at=T0, comment="LGTM"),
        )
        assert state.assignments[0].comment == "LGTM"


class TestRejection:

    def test_rejection_short_circuits(self):
        state = decide(make_state("alice", "bob"), "alice", action="reject")

        assert state.status == RequestStatus.REJECTED
        assert state.assignments[1].status == AssignmentStatus.PENDING
        assert state.assignments[1].decided_at is None
        assert state.assignments[1].activated_at is None
        assert state.resolved_at == T0

    def test_rejection_at_second_level(self):
        state = decide(make_state("alice", "bob"), "alice")
        state = decide(state, "bob", action="reject")
        assert state.status == RequestStatus.REJECTED


class TestDecisionGuards:

    def test_unknown_action(self):
        with pytest.raises(ValidationError) as exc_info:
            decide(make_state("alice"), "alice", action="maybe")
        assert exc_info.value.field == "action"

    def test_approver_not_in_chain(self):
        with pytest.raises(NotActiveError):
            decide(make_state("alice"), "mallory")

    def test_higher_level_cannot_jump_the_queue(self):
        with pytest.raises(NotActiveError) as exc_info:
            decide(make_state("alice", "bob"), "bob")
        assert exc_info.value.level == 2
        assert exc_info.value.active_level == 1

    def test_second_decision_is_refused(self):
        state = decide(make_state("alice", "bob"), "alice")
        with pytest.raises(AlreadyDecidedError):
            decide(state, "alice", action="reject")

    def test_decision_on_resolved_request(self):
        state = decide(make_state("alice", "bob"), "alice", action="reject")
        with pytest.raises(InvalidStateError):
            decide(state, "bob")

    def test_decision_on_draft(self):
        state = make_state("alice", status=RequestStatus.DRAFT, activate_first=False)
        with pytest.raises(InvalidStateError):
            decide(state, "alice")


# ---------------------------------------------------------------------------
# Cancellation (Revert)
# ---------------------------------------------------------------------------


class TestRevert:

    def revert(self, state, approver, at):
        return transition(state, Revert(approver_id=approver, at=at, window=WINDOW))

    def test_revert_within_window_reopens_level(self):
        state = decide(make_state("alice", "bob"), "alice")
        at = T0 + timedelta(hours=23, minutes=59)
        state = self.revert(state, "alice", at)

        assert state.status == RequestStatus.IN_REVIEW
        first, second = state.assignments
        assert first.status == AssignmentStatus.PENDING
        assert first.decided_at is None
        assert first.activated_at == at
        assert second.activated_at is None
        assert state.active_assignment.approver_id == "alice"

    def test_revert_exactly_at_window_edge_is_allowed(self):
        state = decide(make_state("alice"), "alice")
        state = self.revert(state, "alice", T0 + WINDOW)
        assert state.status == RequestStatus.IN_REVIEW

    def test_revert_after_window(self):
        state = decide(make_state("alice", "bob"), "alice")
        with pytest.raises(WindowExpiredError) as exc_info:
            self.revert(state, "alice", T0 + timedelta(hours=24, minutes=1))
        assert exc_info.value.level == 1
        assert exc_info.value.window_hours == 24

    def test_revert_of_rejection_reopens_request(self):
        state = decide(make_state("alice", "bob"), "alice", action="reject")
        state = self.revert(state, "alice", T0 + timedelta(hours=1))

        assert state.status == RequestStatus.IN_REVIEW
        assert state.resolved_at is None

    def test_revert_final_approval_keeps_lower_decisions(self):
        state = decide(make_state("alice", "bob"), "alice")
        state = decide(state, "bob", at=T0 + timedelta(hours=1))
        state = self.revert(state, "bob", T0 + timedelta(hours=2))

        assert state.status == RequestStatus.IN_REVIEW
        assert state.assignments[0].status == AssignmentStatus.APPROVED
        assert state.active_assignment.approver_id == "bob"
        assert state.resolved_at is None

    def test_revert_blocked_by_higher_level_decision(self):
        state = decide(make_state("alice", "bob"), "alice")
        state = decide(state, "bob")
        with pytest.raises(IrreversibleStateError):
            self.revert(state, "alice", T0 + timedelta(hours=1))

    def test_revert_blocked_after_completion(self):
        state = decide(make_state("alice"), "alice")
        state = transition(state, Complete(actor_id="deployer", at=T0))
        with pytest.raises(IrreversibleStateError):
            self.revert(state, "alice", T0 + timedelta(minutes=5))

    def test_only_the_decider_may_revert(self):
        state = decide(make_state("alice", "bob"), "alice")
        with pytest.raises(NotOwnerError):
            self.revert(state, "bob", T0)

    def test_nothing_to_revert(self):
        with pytest.raises(InvalidStateError):
            self.revert(make_state("alice"), "alice", T0)


# ---------------------------------------------------------------------------
# Requester transitions and revision
# ---------------------------------------------------------------------------


class TestRequesterTransitions:

    def test_submit_activates_level_one(self):
        draft = make_state("alice", "bob", status=RequestStatus.DRAFT, activate_first=False)
        state = transition(draft, Submit(actor_id="requester", at=T0))

        assert state.status == RequestStatus.PENDING
        assert state.assignments[0].activated_at == T0
        assert state.active_assignment.approver_id == "alice"

    def test_submit_by_someone_else(self):
        draft = make_state("alice", status=RequestStatus.DRAFT, activate_first=False)
        with pytest.raises(NotOwnerError):
            transition(draft, Submit(actor_id="alice", at=T0))

    def test_submit_twice(self):
        with pytest.raises(InvalidStateError):
            transition(make_state("alice"), Submit(actor_id="requester", at=T0))

    def test_withdraw_open_request(self):
        state = transition(make_state("alice"), Withdraw(actor_id="requester", at=T0))
        assert state.status == RequestStatus.CANCELLED
        assert state.resolved_at == T0

    def test_withdraw_resolved_request(self):
        state = decide(make_state("alice"), "alice")
        with pytest.raises(InvalidStateError):
            transition(state, Withdraw(actor_id="requester", at=T0))

    def test_revision_request(self):
        state = transition(
            make_state("alice", "bob"),
            RequestRevision(approver_id="alice", at=T0, comment="split this PR"),
        )
        assert state.status == RequestStatus.NEEDS_REVISION
        assert state.active_assignment is None

    def test_revision_request_only_by_active_approver(self):
        with pytest.raises(NotActiveError):
            transition(make_state("alice", "bob"), RequestRevision(approver_id="bob", at=T0))

    def test_complete_requires_resolution(self):
        with pytest.raises(InvalidStateError):
            transition(make_state("alice"), Complete(actor_id="deployer", at=T0))

    def test_complete_only_once(self):
        state = decide(make_state("alice"), "alice")
        state = transition(state, Complete(actor_id="deployer", at=T0))
        with pytest.raises(InvalidStateError):
            transition(state, Complete(actor_id="deployer", at=T0))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestValidateLevels:

    @pytest.mark.parametrize("levels", [[1], [1, 2, 3], [3, 1, 2]])
    def test_contiguous_levels_accepted(self, levels):
        validate_levels(levels)

    @pytest.mark.parametrize("levels", [[], [2], [1, 3], [1, 1], [0, 1]])
    def test_malformed_levels_rejected(self, levels):
        with pytest.raises(ValidationError):
            validate_levels(levels)


class TestDeriveStatus:

    def test_no_decisions_is_pending(self):
        assert derive_status(make_state("alice", "bob").assignments) == RequestStatus.PENDING

    def test_terminal_statuses_only_reopen_into_the_chain(self):
        assert REQUEST_TRANSITIONS[RequestStatus.CANCELLED] == frozenset()
        assert RequestStatus.DRAFT not in REQUEST_TRANSITIONS[RequestStatus.APPROVED]
