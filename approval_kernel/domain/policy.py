"""
Workflow policy -- kernel-side view of the workflow settings.

Responsibility:
    Holds the tunables the services consult at runtime: the decision
    cancellation window, response timeouts per request type, and display
    names for approval levels.

Architecture position:
    Kernel > Domain.  Built from ``approval_config`` by
    ``approval_config.bridges.build_workflow_policy``; the kernel never
    imports the config package.

Invariants enforced:
    - All durations are strictly positive.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from types import MappingProxyType
from typing import Mapping

DEFAULT_LEVEL_NAMES: Mapping[int, str] = MappingProxyType({
    1: "Initial review",
    2: "Manager review",
    3: "Final approval",
})

DEFAULT_TYPE_TIMEOUTS: Mapping[str, float] = MappingProxyType({
    "code_component": 24,
    "bug_fix": 6,
    "architecture_change": 72,
    "solution_deployment": 48,
    "release_approval": 24,
})


@dataclass(frozen=True)
class WorkflowPolicy:
    """
    Frozen workflow tunables.

    Contract:
        ``timeout_for`` falls back to ``default_timeout_hours`` for request
        types without an explicit entry; ``level_name`` falls back to
        ``"Level N approval"``.
    """

    cancellation_window_hours: float = 24
    default_timeout_hours: float = 24
    type_timeouts: Mapping[str, float] = field(
        default_factory=lambda: dict(DEFAULT_TYPE_TIMEOUTS)
    )
    level_names: Mapping[int, str] = field(
        default_factory=lambda: dict(DEFAULT_LEVEL_NAMES)
    )

    def __post_init__(self) -> None:
        if self.cancellation_window_hours <= 0:
            raise ValueError("cancellation_window_hours must be positive")
        if self.default_timeout_hours <= 0:
            raise ValueError("default_timeout_hours must be positive")
        for request_type, hours in self.type_timeouts.items():
            if hours <= 0:
                raise ValueError(f"timeout for {request_type!r} must be positive")

    @property
    def cancellation_window(self) -> timedelta:
        return timedelta(hours=self.cancellation_window_hours)

    def timeout_for(self, request_type: str) -> float:
        return self.type_timeouts.get(request_type, self.default_timeout_hours)

    def level_name(self, level: int) -> str:
        return self.level_names.get(level, f"Level {level} approval")
