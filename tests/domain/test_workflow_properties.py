"""
Property tests for the approval state machine.

Random sequences of decisions, reversals and completions are applied to
chains of one to four approvers.  Refused events must leave the state
untouched; accepted ones must preserve the chain invariants.
"""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

from hypothesis import given, settings
from hypothesis import strategies as st

from approval_kernel.domain.workflow import (
    ACTIONABLE_REQUEST_STATUSES,
    TERMINAL_REQUEST_STATUSES,
    AssignmentState,
    AssignmentStatus,
    Complete,
    Decide,
    RequestStatus,
    Revert,
    WorkflowState,
    derive_status,
    transition,
)
from approval_kernel.exceptions import ApprovalKernelError

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)
WINDOW = timedelta(hours=24)


def fresh_state(chain_length: int) -> WorkflowState:
    return WorkflowState(
        request_id=uuid4(),
        requester_id="requester",
        status=RequestStatus.PENDING,
        assignments=tuple(
            AssignmentState(
                assignment_id=uuid4(),
                approver_id=f"approver-{level}",
                level=level,
                timeout_hours=24,
                activated_at=T0 if level == 1 else None,
            )
            for level in range(1, chain_length + 1)
        ),
    )


event_specs = st.tuples(
    st.sampled_from(["approve", "reject", "revert", "complete"]),
    st.integers(min_value=1, max_value=4),
    st.integers(min_value=0, max_value=30),
)


def build_event(spec, at):
    kind, level, _ = spec
    approver = f"approver-{level}"
    if kind == "revert":
        return Revert(approver_id=approver, at=at, window=WINDOW)
    if kind == "complete":
        return Complete(actor_id="deployer", at=at)
    return Decide(approver_id=approver, action=kind, at=at)


def assert_chain_invariants(state: WorkflowState) -> None:
    assert [a.level for a in state.assignments] == list(
        range(1, len(state.assignments) + 1)
    )
    derived = derive_status(state.assignments)
    # A reversal back to level 1 keeps the request in review.
    assert state.status == derived or (
        derived == RequestStatus.PENDING and state.status == RequestStatus.IN_REVIEW
    )
    assert (state.resolved_at is not None) == (state.status in TERMINAL_REQUEST_STATUSES)

    pending = [a for a in state.assignments if a.status == AssignmentStatus.PENDING]
    decided = [a for a in state.assignments if a.is_decided]

    # Decisions form a prefix of the chain.
    if pending and decided:
        assert max(a.level for a in decided) < min(a.level for a in pending)
    # Only the last decision of the prefix may be a rejection.
    for a in decided[:-1]:
        assert a.status == AssignmentStatus.APPROVED
    assert all(a.decided_at is not None for a in decided)
    assert all(a.decided_at is None for a in pending)

    if state.status in ACTIONABLE_REQUEST_STATUSES:
        activated = [a for a in pending if a.activated_at is not None]
        assert activated == [pending[0]]
        assert state.active_assignment == pending[0]
    else:
        assert state.active_assignment is None


@settings(max_examples=200, deadline=None)
@given(
    chain_length=st.integers(min_value=1, max_value=4),
    specs=st.lists(event_specs, max_size=25),
)
def test_random_event_sequences_preserve_invariants(chain_length, specs):
    state = fresh_state(chain_length)
    now = T0
    for spec in specs:
        now = now + timedelta(hours=spec[2])
        before = state
        try:
            state = transition(state, build_event(spec, now))
        except ApprovalKernelError:
            assert state == before
            continue
        assert_chain_invariants(state)


@settings(max_examples=100, deadline=None)
@given(chain_length=st.integers(min_value=1, max_value=4))
def test_approving_every_level_reaches_approved(chain_length):
    state = fresh_state(chain_length)
    for level in range(1, chain_length + 1):
        state = transition(
            state, Decide(approver_id=f"approver-{level}", action="approve", at=T0)
        )
        assert_chain_invariants(state)
    assert state.status == RequestStatus.APPROVED


@settings(max_examples=100, deadline=None)
@given(
    chain_length=st.integers(min_value=1, max_value=4),
    reject_at=st.integers(min_value=1, max_value=4),
)
def test_rejection_is_final_until_reverted(chain_length, reject_at):
    reject_at = min(reject_at, chain_length)
    state = fresh_state(chain_length)
    for level in range(1, reject_at):
        state = transition(
            state, Decide(approver_id=f"approver-{level}", action="approve", at=T0)
        )
    state = transition(
        state, Decide(approver_id=f"approver-{reject_at}", action="reject", at=T0)
    )
    assert state.status == RequestStatus.REJECTED
    assert all(a.decided_at is None for a in state.assignments if a.level > reject_at)
