"""
Temporal window buffer: the most recent feature vectors, oldest first,
assembled into the fixed-shape input the classifier expects.
"""

import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque

import numpy as np

from gesture_stream.core.errors import PreconditionViolation
from gesture_stream.core.types import LANDMARK_DIM, MIN_SEQUENCE_FRAMES, SEQUENCE_LENGTH

logger = logging.getLogger(__name__)


@dataclass
class WindowConfig:
    """Window buffer configuration."""
    min_frames: int = MIN_SEQUENCE_FRAMES   # frames needed before classifying

    def __post_init__(self):
        if not 1 <= self.min_frames <= SEQUENCE_LENGTH:
            raise ValueError("min_frames must be in [1, %d], got %r" % (SEQUENCE_LENGTH, self.min_frames))

    @classmethod
    def from_dict(cls, config: dict) -> "WindowConfig":
        """Create config from dictionary (YAML parsed)."""
        return cls(min_frames=int(config.get("min_frames", MIN_SEQUENCE_FRAMES)))


class TemporalWindowBuffer:
    """Fixed-capacity FIFO of feature vectors.

    Example:
        >>> window = TemporalWindowBuffer()
        >>> window.push(features)
        >>> if window.is_ready():
        ...     distribution = classifier.classify(window.as_input())
    """

    def __init__(self, config: WindowConfig = None):
        self.config = config or WindowConfig()
        self._frames: Deque[np.ndarray] = deque(maxlen=SEQUENCE_LENGTH)

    def push(self, vector: np.ndarray) -> None:
        """Append a vector, evicting the oldest once at capacity."""
        vector = np.asarray(vector, dtype=np.float32)
        if vector.shape != (LANDMARK_DIM,):
            raise PreconditionViolation(
                "Feature vector must have shape (%d,), got %s" % (LANDMARK_DIM, vector.shape))
        self._frames.append(vector)

    def is_ready(self) -> bool:
        return len(self._frames) >= self.config.min_frames

    def as_input(self) -> np.ndarray:
        """Return a (SEQUENCE_LENGTH, LANDMARK_DIM) array, zero left-padded."""
        sequence = np.zeros((SEQUENCE_LENGTH, LANDMARK_DIM), dtype=np.float32)
        count = len(self._frames)
        if count:
            sequence[SEQUENCE_LENGTH - count:] = np.stack(self._frames)
        return sequence

    def clear(self) -> None:
        self._frames.clear()

    def __len__(self):
        return len(self._frames)

    @property
    def fill_ratio(self) -> float:
        """How full the window is (0.0 - 1.0)."""
        return len(self._frames) / SEQUENCE_LENGTH
