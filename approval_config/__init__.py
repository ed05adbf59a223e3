"""
approval_config -- single public entrypoint for workflow configuration.

Responsibility:
    Provides the ONLY way to obtain workflow configuration at runtime,
    through ``get_active_config()``.  Returns a frozen ``WorkflowConfig``.

Architecture position:
    Configuration.  This package sits above ``approval_kernel``.  The
    kernel MUST NEVER import from ``approval_config``; ``bridges`` turns a
    configuration into kernel inputs.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``ValueError`` -- a setting is malformed.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``workflow_config_loaded`` log entry with the config id, version and
    checksum, tying decisions back to the settings that governed them.
"""

from __future__ import annotations

from pathlib import Path

from approval_config.loader import load_yaml_file, parse_workflow_config
from approval_config.schema import MonitorConfig, WorkflowConfig
from approval_kernel.logging_config import get_logger

_logger = get_logger("config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults" / "workflow.yaml"


def get_active_config(config_path: Path | str | None = None) -> WorkflowConfig:
    """Load and validate the workflow configuration.

    Args:
        config_path: Override path to a workflow YAML file.  Defaults to
            approval_config/defaults/workflow.yaml.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If a setting is malformed.
    """
    path = Path(config_path) if config_path is not None else _DEFAULT_CONFIG_PATH
    config = parse_workflow_config(load_yaml_file(path))

    _logger.info(
        "workflow_config_loaded",
        extra={
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "config_path": str(path),
        },
    )
    return config


__all__ = ["get_active_config", "MonitorConfig", "WorkflowConfig"]
