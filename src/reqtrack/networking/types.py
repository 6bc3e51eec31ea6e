"""Value types shared by the tracker and its transport."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Literal, Mapping, Union

import requests

from .config import EffectiveConfig

_ABSOLUTE_URL = re.compile(r"^([a-z][a-z\d+\-.]*:)?//", re.IGNORECASE)


def is_absolute_url(url: str) -> bool:
    """Return True for ``scheme://`` and protocol-relative ``//`` URLs."""
    return bool(_ABSOLUTE_URL.match(url))


def combine_urls(base_url: str | None, url: str) -> str:
    """Join ``url`` onto ``base_url`` unless ``url`` is already absolute."""
    if not base_url or is_absolute_url(url):
        return url
    if not url:
        return base_url
    return base_url.rstrip("/") + "/" + url.lstrip("/")


@dataclass
class OutgoingRequest:
    """A request about to be handed to the transport.

    Built fresh for every dispatch, so request interceptors may mutate it in
    place (for example ``request.headers["X-Trace"] = "1"``) before returning
    it.
    """

    method: str
    url: str
    body: Any | None = None
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, Any] | None = None
    base_url: str | None = None
    timeout_ms: int = 0
    auth: Any | None = None
    proxies: dict[str, str] | None = None
    max_redirects: int | None = None
    verify_tls: bool = True
    raise_for_status: bool = True

    @classmethod
    def build(
        cls,
        method: str,
        url: str,
        body: Any | None,
        effective: EffectiveConfig,
    ) -> OutgoingRequest:
        defaults = effective.defaults
        return cls(
            method=method,
            url=url,
            body=body,
            headers=dict(effective.headers),
            params=dict(effective.params) if effective.params else None,
            base_url=defaults.base_url,
            timeout_ms=defaults.timeout_ms,
            auth=defaults.auth,
            proxies=dict(defaults.proxies) if defaults.proxies else None,
            max_redirects=defaults.max_redirects,
            verify_tls=defaults.verify_tls,
            raise_for_status=defaults.raise_for_status,
        )

    @property
    def full_url(self) -> str:
        return combine_urls(self.base_url, self.url)

    @property
    def timeout_seconds(self) -> float | None:
        """Timeout in seconds for requests; ``0`` ms means no timeout."""
        if not self.timeout_ms:
            return None
        return self.timeout_ms / 1000


@dataclass(frozen=True)
class SuccessEntry:
    """History record of a dispatch that returned a response."""

    method: str
    url: str
    body: Any | None
    config: Mapping[str, Any]
    response: requests.Response
    duration_ms: int
    timestamp: str

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class FailureEntry:
    """History record of a dispatch that raised.

    ``error`` holds the response embedded in the exception when the
    transport attached one (HTTP status failures), otherwise the exception
    itself. ``exception`` always holds the raised exception.
    """

    method: str
    url: str
    body: Any | None
    config: Mapping[str, Any]
    error: Any
    exception: BaseException
    timestamp: str

    @property
    def ok(self) -> bool:
        return False


HistoryEntry = Union[SuccessEntry, FailureEntry]

RequestInterceptor = Callable[[OutgoingRequest], OutgoingRequest]
ResponseInterceptor = Callable[[requests.Response], requests.Response]
InterceptorKind = Literal["request", "response"]


@dataclass(frozen=True)
class InterceptorRegistration:
    """One registered interceptor, kept for introspection."""

    kind: InterceptorKind
    fn: Callable[[Any], Any]
