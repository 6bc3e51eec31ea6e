"""Request tracker for the reqtrack networking layer.

This module defines the public interface used by callers. It is
transport-agnostic; the network call itself is made by a Transport, while
the tracker applies default configuration, runs interceptors, and keeps a
history of every dispatch.
"""

from __future__ import annotations

import copy
import logging
from datetime import datetime, timezone
from threading import Lock
from time import monotonic
from types import MappingProxyType
from typing import Any, Mapping

import requests

from .config import TrackerConfig
from .transport import RequestsTransport, Transport
from .types import (
    FailureEntry,
    HistoryEntry,
    InterceptorRegistration,
    OutgoingRequest,
    RequestInterceptor,
    ResponseInterceptor,
    SuccessEntry,
)

logger = logging.getLogger(__name__)


def _timestamp() -> str:
    """Return the current UTC time as ISO-8601 with millisecond precision."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _elapsed_ms(started: float) -> int:
    return max(0, int(round((monotonic() - started) * 1000)))


def _snapshot(value: Any) -> Any:
    """Deep-copy ``value``; objects that refuse copying are kept as-is.

    Some auth handlers (``requests.auth.HTTPDigestAuth``) hold thread-local
    state that cannot be copied.
    """
    try:
        return copy.deepcopy(value)
    except (TypeError, copy.Error):
        return value


def _freeze(value: Any) -> Any:
    """Wrap mappings, recursively, in read-only proxies."""
    if isinstance(value, Mapping):
        return MappingProxyType(
            {key: _freeze(item) for key, item in value.items()}
        )
    return value


def _snapshot_config(config: Mapping[str, Any] | None) -> Mapping[str, Any]:
    return _freeze(
        {key: _snapshot(value) for key, value in (config or {}).items()}
    )


# Body argument left out by the caller; post/put/patch then send ``{}``.
_NO_BODY: Any = object()


class RequestTracker:
    """HTTP client facade that records every request it makes.

    Each dispatch merges per-call configuration over the current defaults,
    runs the registered request interceptors, executes the request through
    the transport, runs the response interceptors, and appends one history
    entry whether the call succeeded or failed. Errors are re-raised to the
    caller unchanged.
    """

    def __init__(
        self,
        config: TrackerConfig | None = None,
        transport: Transport | None = None,
    ) -> None:
        """Create a new RequestTracker.

        Args:
            config: Initial default configuration.
            transport: Transport used for the network call. Defaults to a
                session-backed RequestsTransport.
        """
        self._config = config or TrackerConfig()
        self._transport = transport or RequestsTransport()
        self._request_interceptors: list[RequestInterceptor] = []
        self._response_interceptors: list[ResponseInterceptor] = []
        self._interceptors: list[InterceptorRegistration] = []
        self._history: list[HistoryEntry] = []
        self._history_lock = Lock()

    @property
    def config(self) -> TrackerConfig:
        return self._config

    @property
    def default_headers(self) -> Mapping[str, str]:
        return self._config.default_headers

    @property
    def interceptors(self) -> tuple[InterceptorRegistration, ...]:
        """Registered interceptors of both kinds, in registration order."""
        return tuple(self._interceptors)

    # Configuration

    def set_default_headers(self, headers: Mapping[str, str]) -> None:
        """Merge ``headers`` into the default headers (last write wins)."""
        self._config = self._config.with_headers(headers)

    def set_base_url(self, base_url: str | None) -> None:
        self._config = self._config.replace(base_url=base_url)

    def set_timeout(self, timeout_ms: int) -> None:
        """Set the default timeout in milliseconds; ``0`` disables it."""
        self._config = self._config.replace(timeout_ms=timeout_ms)

    def set_auth(self, auth: Any | None) -> None:
        """Set default credentials, e.g. a ``(username, password)`` pair."""
        self._config = self._config.replace(auth=auth)

    def set_proxy(self, proxies: Mapping[str, str] | None) -> None:
        """Set the default proxy mapping, e.g. ``{"https": "http://p:3128"}``."""
        self._config = self._config.replace(proxies=proxies)

    def set_max_redirects(self, max_redirects: int | None) -> None:
        self._config = self._config.replace(max_redirects=max_redirects)

    # Interceptors

    def add_request_interceptor(self, interceptor: RequestInterceptor) -> None:
        """Run ``interceptor`` on every outgoing request from now on.

        The interceptor receives the OutgoingRequest and must return it (or a
        replacement). Interceptors run in registration order.
        """
        self._interceptors.append(InterceptorRegistration("request", interceptor))
        self._request_interceptors.append(interceptor)

    def add_response_interceptor(self, interceptor: ResponseInterceptor) -> None:
        """Run ``interceptor`` on every received response from now on."""
        self._interceptors.append(
            InterceptorRegistration("response", interceptor)
        )
        self._response_interceptors.append(interceptor)

    @staticmethod
    def _run_chain(chain: list[Any], value: Any, kind: str) -> Any:
        for interceptor in list(chain):
            value = interceptor(value)
            if value is None:
                raise TypeError(
                    f"{kind} interceptor {interceptor!r} returned None"
                )
        return value

    # History

    def get_request_history(self) -> list[HistoryEntry]:
        """Return a copy of the recorded history, oldest first."""
        with self._history_lock:
            return list(self._history)

    def clear_request_history(self) -> None:
        with self._history_lock:
            self._history = []

    def _record(self, entry: HistoryEntry) -> None:
        with self._history_lock:
            self._history.append(entry)

    @staticmethod
    def _error_value(exc: BaseException) -> Any:
        """Return the response attached to ``exc`` if any, else ``exc``.

        ``requests.Response`` is falsy for 4xx/5xx, so presence is checked
        with ``is not None``.
        """
        response = getattr(exc, "response", None)
        return response if response is not None else exc

    # Dispatch

    def request(
        self,
        method: str,
        url: str,
        body: Any | None = None,
        config: Mapping[str, Any] | None = None,
    ) -> requests.Response:
        """Dispatch one request and record it in the history.

        Args:
            method: HTTP method, upper-cased before sending.
            url: Absolute URL, or a path joined onto the base URL.
            body: Optional payload; text/bytes are sent raw, other values
                as JSON.
            config: Optional per-call overrides (``headers``, ``params``,
                ``base_url``, ``timeout_ms``, ``auth``, ``proxies``,
                ``max_redirects``, ``verify_tls``, ``raise_for_status``).

        Returns:
            The transport's response, after response interceptors.

        Raises:
            Whatever the transport or an interceptor raised, unchanged.
        """
        method = method.upper()
        started = monotonic()
        body_snapshot: Any = body
        config_snapshot: Mapping[str, Any] = MappingProxyType({})
        logger.debug("Dispatching %s %s", method, url)
        try:
            body_snapshot = _snapshot(body)
            config_snapshot = _snapshot_config(config)
            effective = self._config.resolve(config)
            outgoing = OutgoingRequest.build(method, url, body, effective)
            outgoing = self._run_chain(
                self._request_interceptors, outgoing, "request"
            )
            response = self._transport.execute(outgoing)
            response = self._run_chain(
                self._response_interceptors, response, "response"
            )
        except Exception as exc:
            logger.warning(
                "%s %s failed: %s", method, url, type(exc).__name__
            )
            self._record(
                FailureEntry(
                    method=method,
                    url=url,
                    body=body_snapshot,
                    config=config_snapshot,
                    error=self._error_value(exc),
                    exception=exc,
                    timestamp=_timestamp(),
                )
            )
            raise

        duration_ms = _elapsed_ms(started)
        logger.debug(
            "%s %s -> %s in %d ms",
            method,
            url,
            getattr(response, "status_code", None),
            duration_ms,
        )
        self._record(
            SuccessEntry(
                method=method,
                url=url,
                body=body_snapshot,
                config=config_snapshot,
                response=response,
                duration_ms=duration_ms,
                timestamp=_timestamp(),
            )
        )
        return response

    def get(
        self, url: str, config: Mapping[str, Any] | None = None
    ) -> requests.Response:
        """Perform an HTTP GET request.

        Args:
            url: Absolute URL or path relative to the base URL.
            config: Optional per-call configuration overrides.

        Returns:
            The response on success; errors propagate.
        """
        return self.request("GET", url, None, config)

    def delete(
        self, url: str, config: Mapping[str, Any] | None = None
    ) -> requests.Response:
        """Perform an HTTP DELETE request."""
        return self.request("DELETE", url, None, config)

    def post(
        self,
        url: str,
        body: Any = _NO_BODY,
        config: Mapping[str, Any] | None = None,
    ) -> requests.Response:
        """Perform an HTTP POST request.

        Args:
            url: Absolute URL or path relative to the base URL.
            body: Optional payload; an empty JSON object when omitted.
                Pass ``None`` explicitly to send no body.
            config: Optional per-call configuration overrides.

        Returns:
            The response on success; errors propagate.
        """
        return self.request("POST", url, self._body_or_empty(body), config)

    def put(
        self,
        url: str,
        body: Any = _NO_BODY,
        config: Mapping[str, Any] | None = None,
    ) -> requests.Response:
        return self.request("PUT", url, self._body_or_empty(body), config)

    def patch(
        self,
        url: str,
        body: Any = _NO_BODY,
        config: Mapping[str, Any] | None = None,
    ) -> requests.Response:
        return self.request("PATCH", url, self._body_or_empty(body), config)

    @staticmethod
    def _body_or_empty(body: Any) -> Any:
        return {} if body is _NO_BODY else body

    def close(self) -> None:
        """Close the transport if it holds resources."""
        close = getattr(self._transport, "close", None)
        if close is not None:
            close()

    def __enter__(self) -> RequestTracker:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
