"""Selectors for the approval kernel (read side)."""

from approval_kernel.selectors.overdue_selector import OverdueSelector
from approval_kernel.selectors.request_selector import RequestSelector
from approval_kernel.selectors.workflow_stats_selector import (
    ApproverWorkload,
    LevelStats,
    WorkflowOverview,
    WorkflowStatsSelector,
)

__all__ = [
    "RequestSelector",
    "OverdueSelector",
    "WorkflowStatsSelector",
    "WorkflowOverview",
    "LevelStats",
    "ApproverWorkload",
]
