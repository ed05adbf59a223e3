"""
Configuration Loader (``approval_config.loader``).

Responsibility
--------------
Loads a workflow YAML file and parses it into the frozen
``approval_config.schema`` dataclasses.  Runtime callers go through
``approval_config.get_active_config()`` instead of calling this directly.

Invariants enforced
-------------------
* Every numeric setting is a positive number; booleans are rejected.
* Request types in ``timeout_hours`` must be known to the kernel.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid values  -> ``ValueError`` naming the offending key.
"""

from __future__ import annotations

import hashlib
import json
from numbers import Real
from pathlib import Path
from typing import Any

import yaml

from approval_config.schema import MonitorConfig, WorkflowConfig
from approval_kernel.domain.workflow import RequestType


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return data


def _positive(value: Any, key: str) -> float:
    if isinstance(value, bool) or not isinstance(value, Real) or value <= 0:
        raise ValueError(f"{key} must be a positive number, got {value!r}")
    return float(value)


def _positive_int(value: Any, key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"{key} must be a positive integer, got {value!r}")
    return value


def parse_monitor(data: dict[str, Any] | None) -> MonitorConfig:
    """Parse a MonitorConfig; missing keys keep their defaults."""
    data = data or {}
    if not isinstance(data, dict):
        raise ValueError("monitor must be a mapping")
    defaults = MonitorConfig()
    return MonitorConfig(
        interval_seconds=_positive(
            data.get("interval_seconds", defaults.interval_seconds),
            "monitor.interval_seconds",
        ),
        max_items_per_sweep=_positive_int(
            data.get("max_items_per_sweep", defaults.max_items_per_sweep),
            "monitor.max_items_per_sweep",
        ),
    )


def parse_timeouts(data: dict[str, Any] | None) -> dict[str, float]:
    known = {t.value for t in RequestType}
    timeouts: dict[str, float] = {}
    for request_type, hours in (data or {}).items():
        if request_type not in known:
            raise ValueError(f"timeout_hours: unknown request type {request_type!r}")
        timeouts[request_type] = _positive(hours, f"timeout_hours.{request_type}")
    return timeouts


def parse_level_names(data: dict[Any, Any] | None) -> dict[int, str]:
    names: dict[int, str] = {}
    for level, name in (data or {}).items():
        try:
            level_no = int(level)
        except (TypeError, ValueError):
            raise ValueError(f"level_names: invalid level {level!r}") from None
        if level_no < 1:
            raise ValueError(f"level_names: level must be >= 1, got {level_no}")
        if not isinstance(name, str) or not name.strip():
            raise ValueError(f"level_names.{level_no} must be a non-empty string")
        names[level_no] = name
    return names


def parse_workflow_config(data: dict[str, Any]) -> WorkflowConfig:
    """
    Parse a ``WorkflowConfig`` from a dict.

    Postconditions:
        - ``checksum`` is the SHA-256 of the canonical input dict.
    """
    return WorkflowConfig(
        config_id=str(data.get("config_id", "default")),
        version=_positive_int(data.get("version", 1), "version"),
        cancellation_window_hours=_positive(
            data.get("cancellation_window_hours", 24), "cancellation_window_hours"
        ),
        default_timeout_hours=_positive(
            data.get("default_timeout_hours", 24), "default_timeout_hours"
        ),
        timeout_hours=parse_timeouts(data.get("timeout_hours")),
        level_names=parse_level_names(data.get("level_names")),
        monitor=parse_monitor(data.get("monitor")),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
