"""Configuration models for the RequestTracker interface."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

# Per-call keys that map onto a TrackerConfig field of the same name.
_FIELD_OVERRIDES = frozenset(
    {
        "base_url",
        "timeout_ms",
        "auth",
        "proxies",
        "max_redirects",
        "verify_tls",
        "raise_for_status",
    }
)
# Per-call keys with no default-level counterpart.
_REQUEST_ONLY_OVERRIDES = frozenset({"headers", "params"})

OVERRIDE_KEYS = _FIELD_OVERRIDES | _REQUEST_ONLY_OVERRIDES


def _default_headers() -> Mapping[str, str]:
    """Return immutable empty default headers mapping."""

    return MappingProxyType({})


def _check_non_negative_int(name: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer")
    if value < 0:
        raise ValueError(f"{name} must be >= 0")


@dataclass(frozen=True)
class TrackerConfig:
    """Default configuration applied to every tracked request.

    Instances are immutable; the tracker swaps in a new value on every
    setter call so a dispatch always reads one consistent snapshot.
    """

    base_url: str | None = None
    default_headers: Mapping[str, str] = field(default_factory=_default_headers)
    timeout_ms: int = 0
    auth: Any | None = None
    proxies: Mapping[str, str] | None = None
    max_redirects: int | None = None
    verify_tls: bool = True
    raise_for_status: bool = True

    def __post_init__(self) -> None:
        if self.base_url is not None and not isinstance(self.base_url, str):
            raise ValueError("base_url must be a string when provided")
        _check_non_negative_int("timeout_ms", self.timeout_ms)
        if self.max_redirects is not None:
            _check_non_negative_int("max_redirects", self.max_redirects)

        # Freeze copied mappings to avoid post-init mutation side effects.
        object.__setattr__(
            self,
            "default_headers",
            MappingProxyType(dict(self.default_headers)),
        )
        if self.proxies is not None:
            object.__setattr__(
                self, "proxies", MappingProxyType(dict(self.proxies))
            )

    def replace(self, **changes: Any) -> TrackerConfig:
        """Return a copy with the given fields replaced wholesale."""
        return dataclasses.replace(self, **changes)

    def with_headers(self, headers: Mapping[str, str]) -> TrackerConfig:
        """Return a copy whose headers are overlaid key-wise by ``headers``."""
        merged = dict(self.default_headers)
        merged.update(headers)
        return self.replace(default_headers=merged)

    def resolve(self, overrides: Mapping[str, Any] | None) -> EffectiveConfig:
        """Overlay per-call ``overrides`` on these defaults.

        Headers merge key-wise with per-call values winning; every other
        field replaces the default wholesale.

        Raises:
            ValueError: If ``overrides`` names an unknown key or carries an
                invalid value.
        """
        overrides = dict(overrides or {})
        unknown = set(overrides) - OVERRIDE_KEYS
        if unknown:
            raise ValueError(
                f"unknown request config keys: {', '.join(sorted(unknown))}"
            )

        changes = {
            key: value
            for key, value in overrides.items()
            if key in _FIELD_OVERRIDES
        }
        base = self.replace(**changes) if changes else self
        headers = dict(base.default_headers)
        headers.update(overrides.get("headers") or {})
        params = overrides.get("params")
        return EffectiveConfig(
            defaults=base,
            headers=MappingProxyType(headers),
            params=MappingProxyType(dict(params)) if params else None,
        )


@dataclass(frozen=True)
class EffectiveConfig:
    """Configuration for one dispatch: defaults with per-call overrides."""

    defaults: TrackerConfig
    headers: Mapping[str, str]
    params: Mapping[str, Any] | None = None
