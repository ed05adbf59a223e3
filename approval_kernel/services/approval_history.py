"""
ApprovalHistoryService -- hash-chained, append-only request history.

Responsibility:
    Records one history entry per state change of a request and verifies
    the per-request hash chain on demand.

Architecture position:
    Kernel > Services.  Called by the other write services inside their
    transaction; never commits.

Invariants enforced:
    - Append-only: entries are never updated or deleted (ORM listeners on
      ``ApprovalLogModel``).
    - Chain integrity: ``hash = H(request_id | seq | action |
      payload_hash | prev_hash)``, with ``prev_hash`` the hash of the
      previous entry of the same request.
    - seq is contiguous per request.  It is allocated as max + 1 while the
      caller holds the request row lock, and UNIQUE(request_id, seq)
      rejects any writer that did not.

Failure modes:
    - AuditChainBrokenError from ``verify_chain`` on a recomputed hash,
      payload hash, linkage or seq mismatch.

Audit relevance:
    The history answers who decided what, at which level, and when --
    including decisions that were later cancelled.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import func, select

from approval_kernel.domain.dtos import HistoryEntry
from approval_kernel.exceptions import AuditChainBrokenError, NotFoundError
from approval_kernel.logging_config import get_logger
from approval_kernel.models.approval_log import ApprovalAction, ApprovalLogModel
from approval_kernel.models.request import ApprovalRequestModel
from approval_kernel.services.base import BaseService
from approval_kernel.utils.hashing import hash_log_entry, hash_payload
from approval_kernel.utils.ids import coerce_request_id

logger = get_logger("services.approval_history")


def _entry_payload(
    request_id: UUID,
    action: str,
    actor_id: str,
    level: int | None,
    details: dict[str, Any],
    created_at: datetime,
) -> dict[str, Any]:
    return {
        "request_id": str(request_id),
        "action": action,
        "actor_id": actor_id,
        "level": level,
        "details": details,
        "created_at": created_at,
    }


class ApprovalHistoryService(BaseService):
    """
    Writer and verifier of the approval history.

    Contract:
        ``record`` must be called in the same transaction as the change it
        describes, after the request row has been locked (or inserted).
    """

    def _last_entry(self, request_id: UUID) -> ApprovalLogModel | None:
        return self.session.execute(
            select(ApprovalLogModel)
            .where(ApprovalLogModel.request_id == request_id)
            .order_by(ApprovalLogModel.seq.desc())
            .limit(1)
        ).scalar_one_or_none()

    def record(
        self,
        request_id: UUID,
        action: ApprovalAction,
        actor_id: str,
        level: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> HistoryEntry:
        """Append one entry to the request's chain and flush it."""
        action_value = ApprovalAction(action).value
        details = dict(details or {})
        created_at = self._clock.now()

        last = self._last_entry(request_id)
        seq = last.seq + 1 if last else 1
        prev_hash = last.hash if last else None

        payload_hash = hash_payload(
            _entry_payload(request_id, action_value, actor_id, level, details, created_at)
        )
        entry_hash = hash_log_entry(
            request_id=str(request_id),
            seq=seq,
            action=action_value,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
        )

        entry = ApprovalLogModel(
            request_id=request_id,
            seq=seq,
            action=action_value,
            actor_id=actor_id,
            level=level,
            details=details,
            created_at=created_at,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
            hash=entry_hash,
        )
        self.session.add(entry)
        self.session.flush()

        logger.debug(
            "history_entry_recorded",
            extra={
                "request_id": str(request_id),
                "seq": seq,
                "action": action_value,
            },
        )
        return entry.to_dto()

    def _load_entries(self, request_id: UUID | str) -> tuple[UUID, list[ApprovalLogModel]]:
        rid = coerce_request_id(request_id)
        exists = self.session.execute(
            select(func.count()).select_from(ApprovalRequestModel).where(
                ApprovalRequestModel.id == rid
            )
        ).scalar_one()
        if not exists:
            raise NotFoundError(str(rid))
        entries = self.session.execute(
            select(ApprovalLogModel)
            .where(ApprovalLogModel.request_id == rid)
            .order_by(ApprovalLogModel.seq)
        ).scalars().all()
        return rid, list(entries)

    def history(self, request_id: UUID | str) -> list[HistoryEntry]:
        """All entries of a request, oldest first."""
        _, entries = self._load_entries(request_id)
        return [e.to_dto() for e in entries]

    def verify_chain(self, request_id: UUID | str) -> bool:
        """
        Recompute every hash of the request's chain.

        Returns:
            True when the chain is intact.

        Raises:
            AuditChainBrokenError: At the first entry that does not verify.
        """
        rid, entries = self._load_entries(request_id)

        def broken(entry: ApprovalLogModel, expected: str, actual: str) -> None:
            logger.critical(
                "approval_history_chain_broken",
                extra={"request_id": str(rid), "seq": entry.seq},
            )
            raise AuditChainBrokenError(str(rid), entry.seq, expected, actual)

        prev_hash: str | None = None
        for position, entry in enumerate(entries, start=1):
            if entry.seq != position:
                broken(entry, str(position), str(entry.seq))
            if entry.prev_hash != prev_hash:
                broken(entry, prev_hash or "GENESIS", entry.prev_hash or "GENESIS")

            expected_payload_hash = hash_payload(
                _entry_payload(
                    rid,
                    entry.action,
                    entry.actor_id,
                    entry.level,
                    dict(entry.details or {}),
                    entry.created_at,
                )
            )
            if entry.payload_hash != expected_payload_hash:
                broken(entry, expected_payload_hash, entry.payload_hash)

            expected_hash = hash_log_entry(
                request_id=str(rid),
                seq=entry.seq,
                action=entry.action,
                payload_hash=entry.payload_hash,
                prev_hash=entry.prev_hash,
            )
            if entry.hash != expected_hash:
                broken(entry, expected_hash, entry.hash)
            prev_hash = entry.hash

        logger.info(
            "approval_history_chain_valid",
            extra={"request_id": str(rid), "entry_count": len(entries)},
        )
        return True
