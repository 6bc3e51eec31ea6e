from .networking import (
    FailureEntry,
    HistoryEntry,
    OutgoingRequest,
    RequestsTransport,
    RequestTracker,
    SuccessEntry,
    TrackerConfig,
)

__all__ = [
    "FailureEntry",
    "HistoryEntry",
    "OutgoingRequest",
    "RequestTracker",
    "RequestsTransport",
    "SuccessEntry",
    "TrackerConfig",
]
