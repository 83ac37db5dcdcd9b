"""GitHub Actions event payload parsing."""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class WebhookEventType(Enum):
    """GitHub event kinds relevant to picking the commit to notify."""

    PULL_REQUEST = "pull_request"
    PULL_REQUEST_TARGET = "pull_request_target"
    PUSH = "push"
    UNKNOWN = "unknown"

    @property
    def is_pull_request(self) -> bool:
        return self in (WebhookEventType.PULL_REQUEST, WebhookEventType.PULL_REQUEST_TARGET)


def parse_github_event(
    env: Mapping[str, str] | None = None,
) -> tuple[WebhookEventType, dict[str, Any]]:
    """Parse a GitHub Actions webhook event.

    Reads from GITHUB_EVENT_NAME and GITHUB_EVENT_PATH environment variables.
    Returns (event_type, event_payload).
    """
    env = os.environ if env is None else env
    event_name = env.get("GITHUB_EVENT_NAME", "")
    event_path = env.get("GITHUB_EVENT_PATH", "")

    payload: dict[str, Any] = {}
    if event_path and os.path.exists(event_path):
        try:
            with open(event_path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Cannot read GitHub event payload %s: %s", event_path, exc)
        else:
            if isinstance(data, dict):
                payload = data

    try:
        event_type = WebhookEventType(event_name)
    except ValueError:
        event_type = WebhookEventType.UNKNOWN
    return event_type, payload


def extract_pr_head_sha(payload: dict[str, Any]) -> str:
    """Return the pull request head SHA, or "" for non-PR payloads."""
    pr = payload.get("pull_request") or {}
    head = pr.get("head") or {}
    return head.get("sha") or ""
