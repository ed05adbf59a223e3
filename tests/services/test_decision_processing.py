"""Tests for recording approver decisions (DecisionProcessor)."""

import pytest

from approval_kernel.domain.workflow import AssignmentStatus, RequestStatus
from approval_kernel.exceptions import (
    AlreadyDecidedError,
    ConflictError,
    InvalidStateError,
    NotActiveError,
    NotFoundError,
    ValidationError,
)


class TestRespond:

    def test_sequential_approval(self, workflow, make_request, deterministic_clock):
        request_id = make_request(["alice", "bob"])

        after_first = workflow.respond(request_id, "alice", "approve", comment="LGTM")
        assert after_first.status == RequestStatus.IN_REVIEW
        assert after_first.active_assignment.approver_id == "bob"
        assert after_first.assignments[0].comment == "LGTM"
        assert after_first.assignments[1].activated_at == deterministic_clock.now()

        deterministic_clock.advance(hours=3)
        final = workflow.respond(request_id, "bob", "approve")
        assert final.status == RequestStatus.APPROVED
        assert all(a.decided_at is not None for a in final.assignments)
        assert final.resolved_at == deterministic_clock.now()
        assert final.version == 3

    def test_short_circuit_rejection(self, workflow, make_request):
        request_id = make_request(["alice", "bob"])
        view = workflow.respond(request_id, "alice", "reject", comment="missing tests")

        assert view.status == RequestStatus.REJECTED
        bob = view.assignments[1]
        assert bob.status == AssignmentStatus.PENDING
        assert bob.decided_at is None

    def test_second_response_is_refused_and_state_unchanged(self, workflow, make_request):
        request_id = make_request(["alice", "bob"])
        before = workflow.respond(request_id, "alice", "approve")

        with pytest.raises(AlreadyDecidedError) as exc_info:
            workflow.respond(request_id, "alice", "reject")
        assert exc_info.value.level == 1

        after = workflow.get_request_detail(request_id).request
        assert after.version == before.version
        assert after.assignments[0].status == AssignmentStatus.APPROVED

    def test_out_of_order_response(self, workflow, make_request):
        request_id = make_request(["alice", "bob"])
        with pytest.raises(NotActiveError):
            workflow.respond(request_id, "bob", "approve")

    def test_outsider_response(self, workflow, make_request):
        request_id = make_request(["alice"])
        with pytest.raises(NotActiveError):
            workflow.respond(request_id, "carol", "approve")

    def test_unknown_action(self, workflow, make_request):
        request_id = make_request(["alice"])
        with pytest.raises(ValidationError):
            workflow.respond(request_id, "alice", "abstain")

    def test_unknown_request(self, workflow):
        with pytest.raises(NotFoundError):
            workflow.respond("00000000-0000-0000-0000-000000000000", "alice", "approve")

    def test_draft_cannot_be_decided(self, workflow, make_request):
        request_id = make_request(["alice"], as_draft=True)
        with pytest.raises(InvalidStateError):
            workflow.respond(request_id, "alice", "approve")

    def test_stale_expected_version(self, workflow, make_request):
        request_id = make_request(["alice", "bob"])
        workflow.respond(request_id, "alice", "approve", expected_version=1)

        with pytest.raises(ConflictError) as exc_info:
            workflow.respond(request_id, "bob", "approve", expected_version=1)
        assert exc_info.value.expected_version == 1
        assert exc_info.value.actual_version == 2
        assert exc_info.value.retryable is True

    def test_decisions_recorded_in_history(self, workflow, make_request):
        request_id = make_request(["alice", "bob"])
        workflow.respond(request_id, "alice", "approve")
        workflow.respond(request_id, "bob", "reject", comment="no rollback plan")

        history = workflow.get_history(request_id)
        assert [h.action for h in history] == ["created", "approved", "rejected"]
        assert [h.level for h in history] == [None, 1, 2]
        assert history[-1].actor_id == "bob"

    def test_decision_logged_with_context(self, workflow, make_request, captured_logs):
        request_id = make_request(["alice"])
        workflow.respond(request_id, "alice", "approve")

        record = next(r for r in captured_logs() if r["message"] == "decision_recorded")
        assert record["request_id"] == str(request_id)
        assert record["actor_id"] == "alice"
        assert record["approval_level"] == 1


class TestRequestRevision:

    def test_active_approver_sends_back(self, workflow, make_request):
        request_id = make_request(["alice", "bob"])
        view = workflow.request_revision(request_id, "alice", comment="split the PR")

        assert view.status == RequestStatus.NEEDS_REVISION
        assert view.active_assignment is None
        assert workflow.get_history(request_id)[-1].action == "revision_requested"
        with pytest.raises(InvalidStateError):
            workflow.respond(request_id, "alice", "approve")

    def test_requester_can_withdraw_after_revision_request(self, workflow, make_request):
        request_id = make_request(["alice"])
        workflow.request_revision(request_id, "alice")
        view = workflow.withdraw_request(request_id, "requester")
        assert view.status == RequestStatus.CANCELLED
