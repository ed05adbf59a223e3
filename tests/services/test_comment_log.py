"""Tests for the append-only comment log."""

import pytest

from approval_kernel.exceptions import (
    ImmutabilityViolationError,
    NotFoundError,
    ValidationError,
)
from approval_kernel.models.comment import CommentModel


class TestAddComment:

    def test_returns_id_and_lists_in_order(self, workflow, make_request, deterministic_clock):
        request_id = make_request(["alice"])
        first = workflow.add_comment(request_id, "alice", "Why not reuse the SDK client?")
        deterministic_clock.advance(minutes=10)
        second = workflow.add_comment(request_id, "requester", "It lacks retries.")

        comments = workflow.list_comments(request_id)
        assert [c.comment_id for c in comments] == [first, second]
        assert [c.seq for c in comments] == [1, 2]
        assert comments[1].created_at > comments[0].created_at

    def test_same_timestamp_ordered_by_seq(self, workflow, make_request):
        request_id = make_request(["alice"])
        for n in range(3):
            workflow.add_comment(request_id, "alice", f"note {n}")
        assert [c.content for c in workflow.list_comments(request_id)] == [
            "note 0", "note 1", "note 2",
        ]

    def test_internal_filter(self, workflow, make_request):
        request_id = make_request(["alice"])
        workflow.add_comment(request_id, "alice", "public")
        workflow.add_comment(request_id, "alice", "approvers only", is_internal=True)

        assert [c.content for c in workflow.list_comments(request_id, is_internal=True)] == [
            "approvers only"
        ]
        assert [c.content for c in workflow.list_comments(request_id, is_internal=False)] == [
            "public"
        ]
        assert len(workflow.list_comments(request_id)) == 2

    def test_comments_do_not_touch_request_version(self, workflow, make_request):
        request_id = make_request(["alice"])
        workflow.add_comment(request_id, "alice", "looking at it")
        assert workflow.get_request_detail(request_id).request.version == 1

    @pytest.mark.parametrize("content", ["", "   \n"])
    def test_empty_content_rejected(self, workflow, make_request, content):
        request_id = make_request(["alice"])
        with pytest.raises(ValidationError):
            workflow.add_comment(request_id, "alice", content)

    def test_unknown_request(self, workflow):
        with pytest.raises(NotFoundError):
            workflow.add_comment("5b0c7c86-4a1e-4e0c-9d3b-0c8e1d6f7a21", "alice", "hi")
        with pytest.raises(NotFoundError):
            workflow.list_comments("5b0c7c86-4a1e-4e0c-9d3b-0c8e1d6f7a21")

    def test_comment_logged(self, workflow, make_request, captured_logs):
        request_id = make_request(["alice"])
        workflow.add_comment(request_id, "alice", "ok", is_internal=True)
        record = next(r for r in captured_logs() if r["message"] == "comment_added")
        assert record["seq"] == 1
        assert record["is_internal"] is True


class TestCommentImmutability:

    def test_update_refused(self, session, workflow, make_request):
        request_id = make_request(["alice"])
        comment_id = workflow.add_comment(request_id, "alice", "original")

        comment = session.get(CommentModel, comment_id)
        comment.content = "rewritten"
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "Comment"

    def test_delete_refused(self, session, workflow, make_request):
        request_id = make_request(["alice"])
        comment_id = workflow.add_comment(request_id, "alice", "original")

        session.delete(session.get(CommentModel, comment_id))
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
