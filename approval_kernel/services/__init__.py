"""Services for the approval kernel (write side)."""

from approval_kernel.services.approval_history import ApprovalHistoryService
from approval_kernel.services.cancellation_handler import CancellationHandler
from approval_kernel.services.comment_log import CommentLog
from approval_kernel.services.decision_processor import DecisionProcessor
from approval_kernel.services.overdue_monitor import OverdueMonitor
from approval_kernel.services.request_service import RequestService
from approval_kernel.services.request_store import RequestStore
from approval_kernel.services.workflow_service import ApprovalWorkflowService

__all__ = [
    "ApprovalHistoryService",
    "ApprovalWorkflowService",
    "CancellationHandler",
    "CommentLog",
    "DecisionProcessor",
    "OverdueMonitor",
    "RequestService",
    "RequestStore",
]
