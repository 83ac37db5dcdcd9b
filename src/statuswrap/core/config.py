"""Configuration loading (env vars, TOML, proxies)."""

from __future__ import annotations

import logging
import os
import tomllib
import urllib.parse
import urllib.request
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Load .env from current directory (and parents), won't override existing env vars
load_dotenv()

ENV_PREFIX = "STATUSWRAP_"

# Environment variable -> PartialContext field
ENV_MAP = {
    "STATUSWRAP_CONTEXT": "label",
    "STATUSWRAP_API_URL": "api_url",
    "STATUSWRAP_CREDENTIALS_ID": "credentials_id",
    "STATUSWRAP_ACCOUNT": "account",
    "STATUSWRAP_REPO": "repo",
    "STATUSWRAP_SHA": "sha",
    "STATUSWRAP_DESCRIPTION": "description",
    "STATUSWRAP_TARGET_URL": "target_url",
}


def user_config_path() -> Path:
    return Path.home() / ".statuswrap" / "config.toml"


def load_env_config(env: Mapping[str, str] | None = None) -> dict[str, str]:
    """Load explicit context values from ``STATUSWRAP_*`` environment variables."""
    env = os.environ if env is None else env
    config: dict[str, str] = {}
    for var, field_name in ENV_MAP.items():
        if value := env.get(var):
            config[field_name] = value
    return config


def load_toml_config(path: Path | None = None) -> dict[str, Any]:
    """Load ~/.statuswrap/config.toml if it exists."""
    toml_path = path or user_config_path()
    if not toml_path.exists():
        return {}
    try:
        with open(toml_path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        logger.warning("Cannot read config file %s: %s", toml_path, exc)
        return {}


def resolve_proxy(api_url: str, env: Mapping[str, str] | None = None) -> str | None:
    """Pick the HTTP proxy to use for *api_url*.

    ``STATUSWRAP_PROXY`` wins; otherwise the usual ``HTTPS_PROXY`` /
    ``HTTP_PROXY`` variables apply unless ``NO_PROXY`` excludes the host.
    """
    env = os.environ if env is None else env
    if explicit := env.get("STATUSWRAP_PROXY"):
        return explicit

    parsed = urllib.parse.urlsplit(api_url)
    host = parsed.hostname or ""
    no_proxy = env.get("NO_PROXY") or env.get("no_proxy")
    if no_proxy and host:
        if urllib.request.proxy_bypass_environment(host, {"no": no_proxy}):
            return None

    names = ("HTTPS_PROXY", "https_proxy") if parsed.scheme == "https" else ()
    names += ("HTTP_PROXY", "http_proxy")
    for name in names:
        if value := env.get(name):
            return value
    return None
