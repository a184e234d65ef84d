"""
Shared domain types for the gesture stream pipeline.

Centralizes enums, constants and value objects used across modules
to eliminate circular imports and ensure type consistency.
"""

from enum import Enum
from typing import Optional, NamedTuple


# =============================================================================
# Shape Constants
# =============================================================================

LANDMARK_COUNT = 21
LANDMARK_DIM = LANDMARK_COUNT * 2       # (x, y) per landmark
SEQUENCE_LENGTH = 30
MIN_SEQUENCE_FRAMES = 10                # window is "warm enough" to classify


# =============================================================================
# Gesture Labels
# =============================================================================

class GestureLabel(Enum):
    """Closed set of recognizable gestures.

    Definition order is the classifier's output index order; adding a
    label means widening the classifier output layer as well.
    """
    HELLO = "hello"
    THANKYOU = "thankyou"

    @classmethod
    def from_string(cls, name: str) -> "GestureLabel":
        """Convert a string label to GestureLabel.

        Raises:
            ValueError: if the name is not part of the label set
        """
        try:
            return cls(name)
        except ValueError:
            raise ValueError("Unknown gesture label: %r" % (name,)) from None

    @classmethod
    def from_index(cls, index: int) -> "GestureLabel":
        return list(cls)[index]

    @property
    def index(self) -> int:
        return list(GestureLabel).index(self)


class SessionState(Enum):
    """Lifecycle states of a detection session."""
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    DETECTING = "detecting"
    DISPOSED = "disposed"


class TrackingState(Enum):
    """Stabilizer state, derived from whether a label is currently held."""
    IDLE = "idle"
    TRACKING = "tracking"


# =============================================================================
# Data Containers
# =============================================================================

class ClassificationResult(NamedTuple):
    """Arg-max projection of one classifier distribution."""
    label: GestureLabel
    confidence: float

    def __repr__(self):
        return "ClassificationResult(%s, conf=%.2f)" % (self.label.value, self.confidence)


class StabilizedPrediction(NamedTuple):
    """Externally visible current state of a session."""
    current_label: Optional[GestureLabel]
    confidence: float

    @property
    def has_gesture(self) -> bool:
        return self.current_label is not None

    def to_dict(self) -> dict:
        return {
            "current_label": self.current_label.value if self.current_label else None,
            "confidence": self.confidence,
        }


NO_PREDICTION = StabilizedPrediction(None, 0.0)


class HistoryEntry(NamedTuple):
    """One discrete detection event.

    ``timestamp`` is in epoch seconds; the export format converts it
    to epoch milliseconds.
    """
    gesture: GestureLabel
    confidence: float
    timestamp: float

    def to_dict(self) -> dict:
        return {
            "gesture": self.gesture.value,
            "confidence": float(self.confidence),
            "timestamp": int(round(self.timestamp * 1000)),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "HistoryEntry":
        return cls(
            gesture=GestureLabel.from_string(data["gesture"]),
            confidence=float(data["confidence"]),
            timestamp=float(data["timestamp"]) / 1000.0,
        )
