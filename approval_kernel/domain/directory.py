"""
Approver directory protocol.

The engine never owns user records.  It asks an injected directory
whether an approver exists and is active, and snapshots the approver's
role onto the assignment at creation time.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Protocol


@dataclass(frozen=True)
class ApproverProfile:
    role: str
    display_name: str
    is_active: bool = True


class ApproverDirectory(Protocol):
    """Pluggable lookup into the portal's user directory."""

    def get_profile(self, approver_id: str) -> ApproverProfile | None:
        """Return the approver's profile, or None when unknown."""
        ...


class StaticApproverDirectory:
    """In-memory directory, used for local runs and tests."""

    def __init__(self, profiles: Mapping[str, ApproverProfile] | None = None):
        self._profiles: dict[str, ApproverProfile] = dict(profiles or {})

    def add(self, approver_id: str, profile: ApproverProfile) -> None:
        self._profiles[approver_id] = profile

    def get_profile(self, approver_id: str) -> ApproverProfile | None:
        return self._profiles.get(approver_id)
