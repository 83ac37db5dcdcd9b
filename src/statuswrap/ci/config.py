"""Wrapper configuration loader (.statuswrap/config.yml)."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from statuswrap.types.context import PartialContext

logger = logging.getLogger(__name__)

CONFIG_RELPATH = Path(".statuswrap") / "config.yml"

# YAML key -> PartialContext field. camelCase step parameter names are accepted too.
_CONTEXT_KEYS = {
    "context": "label",
    "label": "label",
    "gitHubContext": "label",
    "git_api_url": "api_url",
    "gitApiUrl": "api_url",
    "api_url": "api_url",
    "credentials_id": "credentials_id",
    "credentialsId": "credentials_id",
    "account": "account",
    "repo": "repo",
    "sha": "sha",
    "description": "description",
    "target_url": "target_url",
    "targetUrl": "target_url",
}


@dataclass(slots=True)
class WrapperConfig:
    """Project-level defaults for the status wrapper."""

    context: PartialContext = field(default_factory=PartialContext)
    timeout: float = 30.0
    stop_timeout: float = 10.0


def load_wrapper_config(cwd: str | None = None) -> WrapperConfig:
    """Load config from .statuswrap/config.yml if it exists."""
    search_dirs = []
    if cwd:
        search_dirs.append(Path(cwd))
    search_dirs.append(Path.cwd())

    for d in search_dirs:
        config_path = d / CONFIG_RELPATH
        if config_path.exists():
            try:
                data = yaml.safe_load(config_path.read_text())
            except (OSError, yaml.YAMLError) as exc:
                logger.warning("Cannot read %s: %s", config_path, exc)
                return WrapperConfig()
            if isinstance(data, dict):
                return _parse_config(data)
            logger.warning("Ignoring %s: expected a mapping at top level", config_path)
            return WrapperConfig()

    return WrapperConfig()


def _parse_config(data: dict[str, Any]) -> WrapperConfig:
    """Parse raw YAML data into WrapperConfig."""
    config = WrapperConfig()

    values: dict[str, str] = {}
    for key, field_name in _CONTEXT_KEYS.items():
        if data.get(key) not in (None, ""):
            values.setdefault(field_name, str(data[key]))
    config.context = PartialContext(**values)

    config.timeout = _seconds(data, "timeout", config.timeout)
    config.stop_timeout = _seconds(data, "stop_timeout", config.stop_timeout)

    return config


def _seconds(data: dict[str, Any], key: str, default: float) -> float:
    if key not in data:
        return default
    try:
        return float(data[key])
    except (TypeError, ValueError):
        logger.warning("Ignoring %s=%r: expected a number of seconds", key, data[key])
        return default


def generate_config_template() -> str:
    """Generate a default .statuswrap/config.yml template."""
    return """\
# statuswrap configuration
# Every value is optional; anything left out is inferred from the build.

context: gitStatusWrapper
# git_api_url: https://github.example.com/api/v3
# credentials_id: github-token
# account: acme
# repo: widget
# description: "Build and test"
# target_url: https://ci.example.com/job/widget

# Seconds to wait on each GitHub API call
timeout: 30
# Seconds to wait for the final status once a stop was requested
stop_timeout: 10
"""
