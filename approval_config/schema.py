"""
Workflow configuration schema.

Defines the human-authored, reviewable configuration of the approval
engine.  YAML is parsed into these types by the loader; bridges turn them
into the kernel's ``WorkflowPolicy``.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class MonitorConfig:
    """Settings of the background overdue monitor."""

    interval_seconds: float = 300
    max_items_per_sweep: int = 1000


@dataclass(frozen=True)
class WorkflowConfig:
    """Source artifact for one workflow configuration."""

    config_id: str
    version: int
    cancellation_window_hours: float = 24
    default_timeout_hours: float = 24
    timeout_hours: dict[str, float] = field(default_factory=dict)
    level_names: dict[int, str] = field(default_factory=dict)
    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    checksum: str = ""
