"""ORM models for the approval kernel."""

from approval_kernel.models.approval_log import ApprovalAction, ApprovalLogModel
from approval_kernel.models.comment import CommentModel
from approval_kernel.models.request import (
    ApprovalRequestModel,
    ApproverAssignmentModel,
)

__all__ = [
    "ApprovalAction",
    "ApprovalLogModel",
    "ApprovalRequestModel",
    "ApproverAssignmentModel",
    "CommentModel",
]
