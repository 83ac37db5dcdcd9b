"""Read-only environment overlay scoped to one enclosed work invocation."""

from __future__ import annotations

from collections.abc import Iterator, Mapping

from statuswrap.types.context import StatusContext


class EnvironmentOverlay(Mapping[str, str]):
    """Overrides layered on top of a base environment.

    Override keys shadow base keys; everything else passes through. The
    overlay has no mutators and never writes into *base*. Overrides are
    copied on construction, the base is read live.
    """

    __slots__ = ("_base", "_overrides")

    def __init__(self, base: Mapping[str, str], overrides: Mapping[str, str] | None = None) -> None:
        self._base = base
        self._overrides = dict(overrides or {})

    def __getitem__(self, key: str) -> str:
        if key in self._overrides:
            return self._overrides[key]
        return self._base[key]

    def __contains__(self, key: object) -> bool:
        return key in self._overrides or key in self._base

    def __iter__(self) -> Iterator[str]:
        yield from self._overrides
        for key in self._base:
            if key not in self._overrides:
                yield key

    def __len__(self) -> int:
        return len(self._overrides) + sum(1 for k in self._base if k not in self._overrides)

    def __repr__(self) -> str:
        return f"EnvironmentOverlay(overrides={sorted(self._overrides)})"

    @property
    def overrides(self) -> Mapping[str, str]:
        return dict(self._overrides)

    def to_dict(self) -> dict[str, str]:
        """Flatten into a plain dict, e.g. for a subprocess ``env=``."""
        return {**self._base, **self._overrides}


def with_overrides(base: Mapping[str, str], overrides: Mapping[str, str] | None = None) -> EnvironmentOverlay:
    return EnvironmentOverlay(base, overrides)


def context_overrides(context: StatusContext, base: Mapping[str, str]) -> dict[str, str]:
    """Environment entries describing *context* for the enclosed work."""
    overrides = {
        "STATUSWRAP_ACCOUNT": context.account,
        "STATUSWRAP_REPO": context.repo,
        "STATUSWRAP_SHA": context.sha,
        "STATUSWRAP_CONTEXT": context.label,
        "STATUSWRAP_TARGET_URL": context.target_url,
        "STATUSWRAP_API_URL": context.api_url,
    }
    if "GIT_COMMIT" not in base:
        overrides["GIT_COMMIT"] = context.sha
    return overrides
