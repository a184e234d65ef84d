"""Shared types, errors, events and the detection session."""
from .types import (
    GestureLabel,
    SessionState,
    TrackingState,
    ClassificationResult,
    StabilizedPrediction,
    HistoryEntry,
    LANDMARK_DIM,
    SEQUENCE_LENGTH,
    MIN_SEQUENCE_FRAMES,
)
from .errors import (
    GestureStreamError,
    InitializationFailure,
    CaptureUnavailable,
    FrameProcessingError,
    PreconditionViolation,
    SessionDisposedError,
)
from .events import EventBus, Events

__all__ = [
    "GestureLabel",
    "SessionState",
    "TrackingState",
    "ClassificationResult",
    "StabilizedPrediction",
    "HistoryEntry",
    "LANDMARK_DIM",
    "SEQUENCE_LENGTH",
    "MIN_SEQUENCE_FRAMES",
    "GestureStreamError",
    "InitializationFailure",
    "CaptureUnavailable",
    "FrameProcessingError",
    "PreconditionViolation",
    "SessionDisposedError",
    "EventBus",
    "Events",
]
