"""Transport capability used by the RequestTracker.

The transport performs the actual network call. It owns no history and runs
no interceptors; both are the tracker's job.
"""

from __future__ import annotations

import logging
from threading import Lock
from typing import Any, Protocol

import requests

from .types import OutgoingRequest

logger = logging.getLogger(__name__)

_RAW_BODY_TYPES = (str, bytes, bytearray)
# Session-level settings carried over to per-redirect-limit sessions.
_SHARED_SESSION_ATTRS = (
    "headers",
    "auth",
    "proxies",
    "params",
    "verify",
    "cert",
    "trust_env",
    "cookies",
)


class Transport(Protocol):
    """Anything that can execute an OutgoingRequest."""

    def execute(self, request: OutgoingRequest) -> requests.Response:
        """Send ``request`` and return the response or raise."""
        ...


class RequestsTransport:
    """Transport backed by ``requests.Session``.

    Requests without a redirect limit use the main session. Because
    ``requests`` only supports a session-wide ``max_redirects``, each
    distinct per-request limit gets its own session, created on first use
    and never reconfigured afterwards.

    Errors are the session's own ``requests.exceptions.RequestException``
    subclasses. With ``raise_for_status`` enabled, non-2xx responses raise
    ``requests.HTTPError`` carrying the response.
    """

    def __init__(self, session: requests.Session | None = None) -> None:
        self._session = session or requests.Session()
        self._limited_sessions: dict[int, requests.Session] = {}
        self._sessions_lock = Lock()

    @staticmethod
    def _body_kwargs(body: Any | None) -> dict[str, Any]:
        """Send text and bytes as-is, everything else as JSON."""
        if body is None:
            return {}
        if isinstance(body, _RAW_BODY_TYPES):
            return {"data": body}
        return {"json": body}

    def _session_for(self, max_redirects: int | None) -> requests.Session:
        """Return the session whose redirect limit matches the request."""
        if not max_redirects:
            return self._session
        with self._sessions_lock:
            session = self._limited_sessions.get(max_redirects)
            if session is None:
                session = requests.Session()
                for attr in _SHARED_SESSION_ATTRS:
                    setattr(session, attr, getattr(self._session, attr))
                session.max_redirects = max_redirects
                self._limited_sessions[max_redirects] = session
            return session

    def execute(self, request: OutgoingRequest) -> requests.Response:
        url = request.full_url
        session = self._session_for(request.max_redirects)
        logger.debug("Sending %s %s", request.method, url)
        response = session.request(
            request.method,
            url,
            headers=request.headers,
            params=request.params,
            timeout=request.timeout_seconds,
            auth=request.auth,
            proxies=request.proxies,
            allow_redirects=request.max_redirects != 0,
            verify=request.verify_tls,
            **self._body_kwargs(request.body),
        )
        if request.raise_for_status:
            response.raise_for_status()
        return response

    def close(self) -> None:
        with self._sessions_lock:
            sessions = list(self._limited_sessions.values())
            self._limited_sessions.clear()
        for session in sessions:
            session.close()
        self._session.close()

    def __enter__(self) -> RequestsTransport:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
