"""
Shared fixtures and stub backends for the gesture stream tests.
"""

import threading

import numpy as np
import pytest

from gesture_stream.core.types import GestureLabel, LANDMARK_DIM, SEQUENCE_LENGTH

INPUT_DIM = SEQUENCE_LENGTH * LANDMARK_DIM


def make_vector(value: float = 0.5) -> np.ndarray:
    """A valid feature vector filled with ``value``."""
    return np.full(LANDMARK_DIM, value, dtype=np.float32)


def make_frame(height: int = 4, width: int = 4) -> np.ndarray:
    return np.zeros((height, width, 3), dtype=np.uint8)


def distribution_for(label: GestureLabel, confidence: float) -> np.ndarray:
    """Two-class probability row with ``confidence`` on ``label``."""
    probs = np.full(len(GestureLabel), (1.0 - confidence) / (len(GestureLabel) - 1))
    probs[label.index] = confidence
    return probs


class ManualClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


class FixedModel:
    """Backend stub returning a settable distribution for any input."""

    input_dim = INPUT_DIM
    num_classes = len(GestureLabel)

    def __init__(self, label: GestureLabel = GestureLabel.HELLO, confidence: float = 0.8):
        self.calls = 0
        self.set(label, confidence)

    def set(self, label: GestureLabel, confidence: float):
        self.probs = distribution_for(label, confidence)

    def predict_proba(self, x):
        self.calls += 1
        return self.probs[None, :]


class BlockingModel(FixedModel):
    """FixedModel that holds every call until ``release()``."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.entered = threading.Event()
        self._gate = threading.Event()

    def release(self):
        self._gate.set()

    def predict_proba(self, x):
        self.entered.set()
        self._gate.wait(timeout=5.0)
        return super().predict_proba(x)


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def frame():
    return make_frame()
