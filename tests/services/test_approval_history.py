"""Tests for the hash-chained approval history."""

import pytest
from sqlalchemy import select, update

from approval_kernel.exceptions import (
    AuditChainBrokenError,
    ImmutabilityViolationError,
    NotFoundError,
)
from approval_kernel.models.approval_log import ApprovalLogModel
from approval_kernel.services.approval_history import ApprovalHistoryService


@pytest.fixture
def decided_request(workflow, make_request):
    request_id = make_request(["alice", "bob"])
    workflow.respond(request_id, "alice", "approve")
    workflow.cancel_decision(request_id, "alice", reason="typo")
    workflow.respond(request_id, "alice", "approve")
    return request_id


class TestHistoryChain:

    def test_entries_are_linked(self, workflow, decided_request):
        history = workflow.get_history(decided_request)

        assert [h.seq for h in history] == [1, 2, 3, 4]
        assert history[0].prev_hash is None
        for prev, entry in zip(history, history[1:]):
            assert entry.prev_hash == prev.hash

    def test_intact_chain_verifies(self, workflow, decided_request, captured_logs):
        assert workflow.verify_history(decided_request) is True
        record = next(
            r for r in captured_logs() if r["message"] == "approval_history_chain_valid"
        )
        assert record["entry_count"] == 4

    def test_chains_are_per_request(self, workflow, make_request, decided_request):
        other = make_request(["carol"])
        assert [h.seq for h in workflow.get_history(other)] == [1]
        assert workflow.verify_history(other) is True

    def test_unknown_request(self, workflow):
        with pytest.raises(NotFoundError):
            workflow.get_history("6f1e4f4e-58f4-4d57-9c39-5d7b3b8f6d10")


class TestTamperDetection:

    def test_rewritten_details_detected(self, session, decided_request):
        session.execute(
            update(ApprovalLogModel.__table__)
            .where(
                ApprovalLogModel.__table__.c.request_id == str(decided_request),
                ApprovalLogModel.__table__.c.seq == 2,
            )
            .values(actor_id="mallory")
        )
        session.expire_all()

        with pytest.raises(AuditChainBrokenError) as exc_info:
            ApprovalHistoryService(session).verify_chain(decided_request)
        assert exc_info.value.seq == 2
        assert exc_info.value.code == "AUDIT_CHAIN_BROKEN"

    def test_removed_entry_detected(self, session, decided_request):
        session.execute(
            ApprovalLogModel.__table__.delete().where(
                ApprovalLogModel.__table__.c.request_id == str(decided_request),
                ApprovalLogModel.__table__.c.seq == 3,
            )
        )
        session.expire_all()

        with pytest.raises(AuditChainBrokenError) as exc_info:
            ApprovalHistoryService(session).verify_chain(decided_request)
        assert exc_info.value.seq == 4


class TestHistoryImmutability:

    def test_orm_update_refused(self, session, decided_request):
        entry = session.execute(
            select(ApprovalLogModel).filter_by(request_id=decided_request, seq=1)
        ).scalar_one()
        entry.action = "approved"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_orm_delete_refused(self, session, decided_request):
        entry = session.execute(
            select(ApprovalLogModel).filter_by(request_id=decided_request, seq=1)
        ).scalar_one()
        session.delete(entry)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
