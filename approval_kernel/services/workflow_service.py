"""
ApprovalWorkflowService -- the single entry point callers use.

Responsibility:
    Composes the write services and selectors behind one object bound to a
    session, a clock, an approver directory and a workflow policy.

Architecture position:
    Kernel > Services.  Outer layers (web handlers, CLIs, jobs) talk to
    this facade only.  The caller owns the transaction::

        with session_scope() as session:
            svc = ApprovalWorkflowService(session, directory=directory)
            svc.respond(request_id, "alice", "approve")

Invariants enforced:
    - Every mutating call runs inside the caller's transaction; a raised
      error means nothing from that call is committed once the caller
      rolls back.
    - Reads use the same session, so a caller sees its own uncommitted
      writes.

Failure modes:
    - Propagates the ``ApprovalKernelError`` subclasses of the underlying
      services unchanged.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Iterable, Mapping
from uuid import UUID

from sqlalchemy.orm import Session

from approval_kernel.domain.clock import Clock, SystemClock
from approval_kernel.domain.directory import ApproverDirectory
from approval_kernel.domain.dtos import (
    ChainEntry,
    CommentView,
    HistoryEntry,
    RequestDetail,
    RequestView,
)
from approval_kernel.domain.overdue import (
    BottleneckIndicator,
    OverdueFilter,
    OverdueItem,
)
from approval_kernel.domain.policy import WorkflowPolicy
from approval_kernel.domain.workflow import Priority, RequestStatus, RequestType
from approval_kernel.selectors.overdue_selector import OverdueSelector
from approval_kernel.selectors.request_selector import RequestSelector
from approval_kernel.selectors.workflow_stats_selector import (
    ApproverWorkload,
    WorkflowOverview,
    WorkflowStatsSelector,
)
from approval_kernel.services.approval_history import ApprovalHistoryService
from approval_kernel.services.cancellation_handler import CancellationHandler
from approval_kernel.services.comment_log import CommentLog
from approval_kernel.services.decision_processor import DecisionProcessor
from approval_kernel.services.request_service import RequestService


class ApprovalWorkflowService:
    """
    Facade over the approval kernel.

    Contract:
        All ids may be passed as ``UUID`` or string.  Mutations return a
        fresh ``RequestView`` (or the new id for creations).
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        directory: ApproverDirectory | None = None,
        policy: WorkflowPolicy | None = None,
    ):
        self.session = session
        self._clock = clock or SystemClock()
        self._policy = policy or WorkflowPolicy()

        self._requests = RequestService(session, self._clock, directory, self._policy)
        self._decisions = DecisionProcessor(session, self._clock)
        self._cancellations = CancellationHandler(session, self._clock, self._policy)
        self._comments = CommentLog(session, self._clock)
        self._history = ApprovalHistoryService(session, self._clock)

        self._request_reads = RequestSelector(session)
        self._overdue_reads = OverdueSelector(session, self._policy)
        self._stats = WorkflowStatsSelector(session)

    # -------------------------------------------------------------------------
    # Requests
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
    ) -> UUID:
        view = self._requests.create_request(
            title=title,
            description=description,
            request_type=request_type,
            priority=priority,
            approver_chain=approver_chain,
            requester_id=requester_id,
            due_date=due_date,
            metadata=metadata,
            as_draft=as_draft,
        )
        return view.request_id

    def submit_request(
        self, request_id: UUID | str, actor_id: str, expected_version: int | None = None,
    ) -> RequestView:
        return self._requests.submit_request(request_id, actor_id, expected_version)

    def withdraw_request(
        self,
        request_id: UUID | str,
        actor_id: str,
        reason: str | None = None,
        expected_version: int | None = None,
    ) -> RequestView:
        return self._requests.withdraw_request(request_id, actor_id, reason, expected_version)

    # -------------------------------------------------------------------------
    # Decisions
    # -------------------------------------------------------------------------

    def respond(
        self,
        request_id: UUID | str,
        approver_id: str,
        action: str,
        comment: str | None = None,
        expected_version: int | None = None,
    ) -> RequestView:
        return self._decisions.respond(
            request_id, approver_id, action, comment, expected_version
        )

    def request_revision(
        self,
        request_id: UUID | str,
        approver_id: str,
        comment: str | None = None,
        expected_version: int | None = None,
    ) -> RequestView:
        return self._decisions.request_revision(
            request_id, approver_id, comment, expected_version
        )

    def cancel_decision(
        self,
        request_id: UUID | str,
        approver_id: str,
        reason: str | None = None,
        expected_version: int | None = None,
    ) -> RequestView:
        return self._cancellations.cancel(request_id, approver_id, reason, expected_version)

    def complete_request(
        self, request_id: UUID | str, actor_id: str, expected_version: int | None = None,
    ) -> RequestView:
        return self._cancellations.complete(request_id, actor_id, expected_version)

    # -------------------------------------------------------------------------
    # Comments and history
    # -------------------------------------------------------------------------

    def add_comment(
        self,
        request_id: UUID | str,
        author_id: str,
        content: str,
        is_internal: bool = False,
    ) -> UUID:
        return self._comments.add_comment(
            request_id, author_id, content, is_internal
        ).comment_id

    def list_comments(
        self, request_id: UUID | str, is_internal: bool | None = None,
    ) -> list[CommentView]:
        return self._comments.list_comments(request_id, is_internal)

    def get_history(self, request_id: UUID | str) -> list[HistoryEntry]:
        return self._history.history(request_id)

    def verify_history(self, request_id: UUID | str) -> bool:
        return self._history.verify_chain(request_id)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_request_detail(
        self, request_id: UUID | str, include_internal: bool = True,
    ) -> RequestDetail:
        return self._request_reads.get_detail(request_id, include_internal)

    def list_pending_for_approver(self, approver_id: str) -> list[RequestView]:
        return self._request_reads.list_pending_for_approver(approver_id)

    def list_requests(
        self,
        requester_id: str | None = None,
        status: RequestStatus | str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[RequestView]:
        return self._request_reads.list_requests(requester_id, status, limit, offset)

    def list_overdue(self, filter: OverdueFilter | None = None) -> list[OverdueItem]:
        return self._overdue_reads.list_overdue(self._clock.now(), filter)

    def get_assignment_report(self, filter: OverdueFilter | None = None) -> list[OverdueItem]:
        """All active assignments with their ``overdue`` flag."""
        return self._overdue_reads.assignment_report(self._clock.now(), filter)

    def get_bottlenecks(self) -> tuple[BottleneckIndicator, ...]:
        return self._overdue_reads.bottlenecks(self._clock.now())

    def get_workflow_overview(self, since: datetime | None = None) -> WorkflowOverview:
        return self._stats.overview(since)

    def get_approver_workload(self, since: datetime | None = None) -> list[ApproverWorkload]:
        return self._stats.approver_workload(since)
