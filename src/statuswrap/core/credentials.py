"""Read-only credential store keyed by credentials id."""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from statuswrap.core.config import load_toml_config

# Built-in id backed by the GITHUB_TOKEN variable most CI systems expose.
GITHUB_TOKEN_ID = "github-token"

# Selects which id to use; never holds a secret itself.
_SELECTOR_VAR = "STATUSWRAP_CREDENTIALS_ID"


@dataclass(frozen=True, slots=True)
class Credentials:
    """A username/token pair. The username is informational only."""

    id: str
    token: str = field(repr=False)
    username: str = ""


def _env_name(credentials_id: str) -> str:
    return "STATUSWRAP_CREDENTIALS_" + re.sub(r"[^A-Za-z0-9]", "_", credentials_id).upper()


def _parse_secret(credentials_id: str, raw: str) -> Credentials:
    # "user:token" or a bare token
    username, sep, token = raw.partition(":")
    if not sep:
        return Credentials(id=credentials_id, token=raw)
    return Credentials(id=credentials_id, token=token, username=username)


class CredentialStore:
    """Looks credentials up in the environment, then in the user TOML config.

    Sources, highest priority first:

    1. ``STATUSWRAP_CREDENTIALS_<ID>`` holding ``token`` or ``username:token``
    2. ``[credentials.<id>]`` tables in ``~/.statuswrap/config.toml`` with
       ``token`` (or ``password``) and optional ``username``
    3. the built-in ``github-token`` id, mapped to ``GITHUB_TOKEN``
    """

    def __init__(
        self,
        env: Mapping[str, str] | None = None,
        config_path: Path | None = None,
    ) -> None:
        self._env = os.environ if env is None else env
        self._config_path = config_path

    def _toml_entries(self) -> dict[str, Any]:
        data = load_toml_config(self._config_path)
        entries = data.get("credentials", {})
        return entries if isinstance(entries, dict) else {}

    def lookup(self, credentials_id: str) -> Credentials | None:
        """Return the credentials for *credentials_id*, or None if unknown."""
        if not credentials_id:
            return None

        env_name = _env_name(credentials_id)
        if env_name != _SELECTOR_VAR and (raw := self._env.get(env_name)):
            return _parse_secret(credentials_id, raw)

        entry = self._toml_entries().get(credentials_id)
        if isinstance(entry, dict):
            token = entry.get("token") or entry.get("password")
            if token:
                return Credentials(
                    id=credentials_id,
                    token=str(token),
                    username=str(entry.get("username", "")),
                )

        if credentials_id == GITHUB_TOKEN_ID and (token := self._env.get("GITHUB_TOKEN")):
            return Credentials(id=GITHUB_TOKEN_ID, token=token)

        return None

    def list_ids(self) -> list[Credentials]:
        """List every known credential (tokens are kept out of repr)."""
        found: dict[str, Credentials] = {}
        for key, raw in self._env.items():
            if key.startswith("STATUSWRAP_CREDENTIALS_") and raw and key != _SELECTOR_VAR:
                cred_id = key.removeprefix("STATUSWRAP_CREDENTIALS_").lower().replace("_", "-")
                found[cred_id] = _parse_secret(cred_id, raw)
        for cred_id in self._toml_entries():
            if cred_id not in found and (cred := self.lookup(cred_id)):
                found[cred_id] = cred
        if GITHUB_TOKEN_ID not in found and (cred := self.lookup(GITHUB_TOKEN_ID)):
            found[GITHUB_TOKEN_ID] = cred
        return sorted(found.values(), key=lambda c: c.id)
