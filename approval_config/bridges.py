"""
Config -> Kernel Bridges.

Functions that convert a ``WorkflowConfig`` into kernel-compatible inputs.
They live in approval_config (the producer) because the kernel must NEVER
import approval_config.

Usage:
    from approval_config import get_active_config
    from approval_config.bridges import build_overdue_monitor, build_workflow_policy

    config = get_active_config()
    policy = build_workflow_policy(config)
    monitor = build_overdue_monitor(config, get_session_factory())
"""

from __future__ import annotations

from typing import Callable

from sqlalchemy.orm import Session

from approval_config.schema import WorkflowConfig
from approval_kernel.domain.clock import Clock
from approval_kernel.domain.policy import WorkflowPolicy
from approval_kernel.services.overdue_monitor import OverdueMonitor


def build_workflow_policy(config: WorkflowConfig) -> WorkflowPolicy:
    """Build the kernel's WorkflowPolicy from a parsed configuration."""
    return WorkflowPolicy(
        cancellation_window_hours=config.cancellation_window_hours,
        default_timeout_hours=config.default_timeout_hours,
        type_timeouts=dict(config.timeout_hours),
        level_names=dict(config.level_names),
    )


def build_overdue_monitor(
    config: WorkflowConfig,
    session_factory: Callable[[], Session],
    clock: Clock | None = None,
) -> OverdueMonitor:
    """Build an OverdueMonitor (not started) with the configured cadence."""
    return OverdueMonitor(
        session_factory=session_factory,
        clock=clock,
        policy=build_workflow_policy(config),
        interval_seconds=config.monitor.interval_seconds,
        max_items_per_sweep=config.monitor.max_items_per_sweep,
    )
