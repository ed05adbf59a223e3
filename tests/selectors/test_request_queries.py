"""Tests for RequestSelector: detail view, approver inbox and request list."""

import pytest

from approval_kernel.domain.workflow import RequestStatus
from approval_kernel.exceptions import NotFoundError, ValidationError
from approval_kernel.selectors.request_selector import RequestSelector


class TestRequestDetail:

    def test_detail_contains_chain_and_comments(self, workflow, make_request):
        request_id = make_request(["alice", "bob"])
        workflow.add_comment(request_id, "alice", "visible")
        workflow.add_comment(request_id, "alice", "internal", is_internal=True)

        detail = workflow.get_request_detail(request_id)
        assert detail.request.request_id == request_id
        assert [a.approver_id for a in detail.assignments] == ["alice", "bob"]
        assert [c.content for c in detail.comments] == ["visible", "internal"]

    def test_detail_without_internal_comments(self, session, workflow, make_request):
        request_id = make_request(["alice"])
        workflow.add_comment(request_id, "alice", "visible")
        workflow.add_comment(request_id, "alice", "internal", is_internal=True)

        detail = RequestSelector(session).get_detail(request_id, include_internal=False)
        assert [c.content for c in detail.comments] == ["visible"]

    @pytest.mark.parametrize(
        "request_id", ["garbage", "3d5b4f1e-0000-4000-8000-000000000000"]
    )
    def test_unknown_request(self, workflow, request_id):
        with pytest.raises(NotFoundError):
            workflow.get_request_detail(request_id)

    @pytest.mark.parametrize(
        "request_id", ["garbage", "3d5b4f1e-0000-4000-8000-000000000000"]
    )
    def test_comments_of_unknown_request(self, session, request_id):
        with pytest.raises(NotFoundError):
            RequestSelector(session).list_comments(request_id)

    def test_comments_listing_matches_comment_log(self, session, workflow, make_request):
        request_id = make_request(["alice"])
        workflow.add_comment(request_id, "alice", "first")
        workflow.add_comment(request_id, "bob", "second", is_internal=True)

        selector = RequestSelector(session)
        assert selector.list_comments(request_id) == workflow.list_comments(request_id)
        assert [c.content for c in selector.list_comments(str(request_id), is_internal=True)] == [
            "second"
        ]


class TestPendingForApprover:

    def test_only_active_assignments_listed(self, workflow, make_request, deterministic_clock):
        first = make_request(["alice", "bob"], title="first")
        deterministic_clock.advance(minutes=1)
        second = make_request(["bob", "alice"], title="second")

        assert [r.request_id for r in workflow.list_pending_for_approver("alice")] == [first]
        assert [r.request_id for r in workflow.list_pending_for_approver("bob")] == [second]

        workflow.respond(first, "alice", "approve")
        assert [r.title for r in workflow.list_pending_for_approver("bob")] == [
            "first", "second",
        ]
        assert workflow.list_pending_for_approver("alice") == []

    def test_resolved_requests_leave_inbox(self, workflow, make_request):
        request_id = make_request(["alice", "bob"])
        workflow.respond(request_id, "alice", "reject")
        assert workflow.list_pending_for_approver("bob") == []

    def test_reopened_request_returns_to_inbox(self, workflow, make_request):
        request_id = make_request(["alice", "bob"])
        workflow.respond(request_id, "alice", "approve")
        workflow.cancel_decision(request_id, "alice")

        assert [r.request_id for r in workflow.list_pending_for_approver("alice")] == [
            request_id
        ]
        assert workflow.list_pending_for_approver("bob") == []

    def test_needs_revision_leaves_inbox(self, workflow, make_request):
        request_id = make_request(["alice"])
        workflow.request_revision(request_id, "alice")
        assert workflow.list_pending_for_approver("alice") == []


class TestListRequests:

    def test_newest_first_with_pagination(self, workflow, make_request, deterministic_clock):
        ids = []
        for n in range(5):
            ids.append(make_request(["alice"], title=f"request {n}"))
            deterministic_clock.advance(minutes=1)

        page = workflow.list_requests(limit=2)
        assert [r.request_id for r in page] == [ids[4], ids[3]]
        page = workflow.list_requests(limit=2, offset=4)
        assert [r.request_id for r in page] == [ids[0]]

    def test_filters(self, workflow, make_request):
        mine = make_request(["alice"], requester_id="dana")
        make_request(["alice"], requester_id="sam")
        workflow.respond(mine, "alice", "approve")

        assert [r.request_id for r in workflow.list_requests(requester_id="dana")] == [mine]
        assert [
            r.request_id for r in workflow.list_requests(status=RequestStatus.APPROVED)
        ] == [mine]
        assert len(workflow.list_requests(status="pending")) == 1

    @pytest.mark.parametrize(
        "kwargs", [{"limit": 0}, {"offset": -1}, {"status": "archived"}]
    )
    def test_invalid_arguments(self, workflow, kwargs):
        with pytest.raises(ValidationError):
            workflow.list_requests(**kwargs)
