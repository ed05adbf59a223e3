"""Pure domain layer of the approval kernel: no I/O, no ORM."""

from approval_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from approval_kernel.domain.directory import (
    ApproverDirectory,
    ApproverProfile,
    StaticApproverDirectory,
)
from approval_kernel.domain.overdue import (
    ActiveAssignmentSnapshot,
    BottleneckIndicator,
    OverdueFilter,
    OverdueItem,
    OverdueReport,
)
from approval_kernel.domain.policy import WorkflowPolicy
from approval_kernel.domain.workflow import (
    AssignmentState,
    AssignmentStatus,
    DecisionAction,
    Priority,
    RequestStatus,
    RequestType,
    WorkflowState,
    transition,
)

__all__ = [
    "ActiveAssignmentSnapshot",
    "ApproverDirectory",
    "ApproverProfile",
    "AssignmentState",
    "AssignmentStatus",
    "BottleneckIndicator",
    "Clock",
    "DecisionAction",
    "DeterministicClock",
    "OverdueFilter",
    "OverdueItem",
    "OverdueReport",
    "Priority",
    "RequestStatus",
    "RequestType",
    "StaticApproverDirectory",
    "SystemClock",
    "WorkflowPolicy",
    "WorkflowState",
    "transition",
]
