"""HTTP request tracking: default configuration, interceptors, history."""

from .config import EffectiveConfig, TrackerConfig
from .tracker import RequestTracker
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

__all__ = [
    "EffectiveConfig",
    "FailureEntry",
    "HistoryEntry",
    "InterceptorRegistration",
    "OutgoingRequest",
    "RequestInterceptor",
    "RequestTracker",
    "RequestsTransport",
    "ResponseInterceptor",
    "SuccessEntry",
    "TrackerConfig",
    "Transport",
]
