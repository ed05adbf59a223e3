"""
RequestService -- creation, submission and withdrawal of requests.

Responsibility:
    Validates a new request and its approver chain, persists the aggregate
    with its assignments, and drives the requester-side transitions
    (submit a draft, withdraw).

Architecture position:
    Kernel > Services.  Uses the pure state machine for transitions, the
    RequestStore for persistence and ApprovalHistoryService for the trail.

Invariants enforced:
    - Chain shape: levels are exactly {1..N}; no approver appears twice.
    - Known approvers: when a directory is injected, every approver must
      exist and be active; the approver's role is snapshotted.
    - Fixed chain: the chain is written once, at creation.
    - Activation: level 1 is activated at creation, or at submission for
      drafts.

Failure modes:
    - ValidationError for malformed input.
    - NotFoundError, NotOwnerError, InvalidStateError, ConflictError on
      submit/withdraw.
"""

from __future__ import annotations

from datetime import date
from numbers import Real
from typing import Any, Iterable, Mapping
from uuid import UUID

from sqlalchemy.orm import Session

from approval_kernel.domain.clock import Clock
from approval_kernel.domain.directory import ApproverDirectory
from approval_kernel.domain.dtos import ChainEntry, RequestView
from approval_kernel.domain.policy import WorkflowPolicy
from approval_kernel.domain.workflow import (
    Priority,
    RequestStatus,
    RequestType,
    Submit,
    Withdraw,
    transition,
    validate_levels,
)
from approval_kernel.exceptions import ValidationError
from approval_kernel.logging_config import LogContext, get_logger
from approval_kernel.models.approval_log import ApprovalAction
from approval_kernel.models.request import (
    ApprovalRequestModel,
    ApproverAssignmentModel,
)
from approval_kernel.services.approval_history import ApprovalHistoryService
from approval_kernel.services.base import BaseService
from approval_kernel.services.request_store import RequestStore

logger = get_logger("services.request")


def _normalize_chain(
    approver_chain: Iterable[ChainEntry | str],
) -> list[ChainEntry]:
    entries: list[ChainEntry] = []
    for position, raw in enumerate(approver_chain, start=1):
        entry = ChainEntry(approver_id=raw) if isinstance(raw, str) else raw
        if not isinstance(entry, ChainEntry):
            raise ValidationError("approver_chain", f"unsupported entry {raw!r}")
        if not entry.approver_id or not str(entry.approver_id).strip():
            raise ValidationError("approver_chain", "approver_id must not be empty")
        level = entry.level if entry.level is not None else position
        entries.append(ChainEntry(entry.approver_id, level, entry.timeout_hours))
    return entries


def _parse_enum(enum_cls, value: Any, field_name: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(
            field_name, f"{value!r} is not one of: {allowed}"
        ) from None


class RequestService(BaseService):
    """
    Requester-side operations on approval requests.

    Contract:
        ``create_request`` returns the persisted request; the approver
        chain never changes afterwards.

    Non-goals:
        - Does NOT notify approvers; delivery belongs to the caller.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        directory: ApproverDirectory | None = None,
        policy: WorkflowPolicy | None = None,
    ):
        super().__init__(session, clock)
        self._directory = directory
        self._policy = policy or WorkflowPolicy()
        self._store = RequestStore(session, self._clock)
        self._history = ApprovalHistoryService(session, self._clock)

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    def create_request(
        self,
        title: str,
        description: str,
        request_type: RequestType | str,
        priority: Priority | str,
        approver_chain: Iterable[ChainEntry | str],
        requester_id: str,
        due_date: date | None = None,
        metadata: Mapping[str, Any] | None = None,
        as_draft: bool = False,
    ) -> RequestView:
        """
        Validate and persist a new request with its approver chain.

        Postconditions:
            - Status is ``pending`` (level 1 active) or ``draft``.
            - A ``created`` history entry exists.

        Raises:
            ValidationError: On any malformed field or chain.
        """
        if not title or not title.strip():
            raise ValidationError("title", "must not be empty")
        if not requester_id or not requester_id.strip():
            raise ValidationError("requester_id", "must not be empty")
        rtype = _parse_enum(RequestType, request_type, "request_type")
        prio = _parse_enum(Priority, priority, "priority")
        if metadata is not None and not isinstance(metadata, Mapping):
            raise ValidationError("metadata", "must be a mapping")
        if due_date is not None and not isinstance(due_date, date):
            raise ValidationError("due_date", "must be a date")

        entries = _normalize_chain(approver_chain)
        validate_levels(e.level for e in entries)
        approver_ids = [e.approver_id for e in entries]
        if len(set(approver_ids)) != len(approver_ids):
            raise ValidationError("approver_chain", "an approver may appear only once")

        now = self._clock.now()
        model = ApprovalRequestModel(
            request_type=rtype.value,
            title=title.strip(),
            description=description or "",
            priority=prio.value,
            status=(RequestStatus.DRAFT if as_draft else RequestStatus.PENDING).value,
            requester_id=requester_id,
            due_date=due_date,
            request_metadata=dict(metadata or {}),
            created_at=now,
            updated_at=now,
            version=1,
        )
        for entry in sorted(entries, key=lambda e: e.level):
            timeout = (
                entry.timeout_hours
                if entry.timeout_hours is not None
                else self._policy.timeout_for(rtype.value)
            )
            if isinstance(timeout, bool) or not isinstance(timeout, Real) or timeout <= 0:
                raise ValidationError(
                    "timeout_hours",
                    f"must be a positive number for level {entry.level}",
                )
            model.assignments.append(
                ApproverAssignmentModel(
                    approver_id=entry.approver_id,
                    approver_role=self._resolve_role(entry.approver_id),
                    level=entry.level,
                    timeout_hours=float(timeout),
                    status="pending",
                    assigned_at=now,
                    activated_at=None if as_draft or entry.level != 1 else now,
                )
            )

        self._store.add(model)
        self._history.record(
            model.id,
            ApprovalAction.CREATED,
            requester_id,
            details={
                "status": model.status,
                "request_type": rtype.value,
                "priority": prio.value,
                "approvers": approver_ids,
            },
        )

        logger.info(
            "approval_request_created",
            extra={
                "request_id": str(model.id),
                "request_type": rtype.value,
                "priority": prio.value,
                "status": model.status,
                "chain_length": len(entries),
            },
        )
        return model.to_dto()

    def _resolve_role(self, approver_id: str) -> str | None:
        if self._directory is None:
            return None
        profile = self._directory.get_profile(approver_id)
        if profile is None:
            raise ValidationError("approver_chain", f"unknown approver {approver_id!r}")
        if not profile.is_active:
            raise ValidationError("approver_chain", f"approver {approver_id!r} is inactive")
        return profile.role

    # -------------------------------------------------------------------------
    # Requester transitions
    # -------------------------------------------------------------------------

    def submit_request(
        self,
        request_id: UUID | str,
        actor_id: str,
        expected_version: int | None = None,
    ) -> RequestView:
        """Move a draft into the approval chain."""
        with LogContext.bind(request_id=request_id, actor_id=actor_id):
            model = self._store.lock(request_id, expected_version)
            now = self._clock.now()
            new_state = transition(model.to_state(), Submit(actor_id=actor_id, at=now))
            self._store.save(model, new_state, now)
            self._history.record(model.id, ApprovalAction.SUBMITTED, actor_id)
            logger.info("approval_request_submitted", extra={"version": model.version})
            return model.to_dto()

    def withdraw_request(
        self,
        request_id: UUID | str,
        actor_id: str,
        reason: str | None = None,
        expected_version: int | None = None,
    ) -> RequestView:
        """Cancel an open request on behalf of its requester."""
        with LogContext.bind(request_id=request_id, actor_id=actor_id):
            model = self._store.lock(request_id, expected_version)
            previous = model.status
            now = self._clock.now()
            new_state = transition(model.to_state(), Withdraw(actor_id=actor_id, at=now))
            self._store.save(model, new_state, now)
            self._history.record(
                model.id,
                ApprovalAction.WITHDRAWN,
                actor_id,
                details={"reason": reason, "previous_status": previous},
            )
            logger.info(
                "approval_request_withdrawn",
                extra={"previous_status": previous, "version": model.version},
            )
            return model.to_dto()
