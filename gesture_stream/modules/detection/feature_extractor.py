"""
Feature extraction: one BGR frame → fixed-length hand feature vector.

Feature layout (LANDMARK_DIM = 42 dimensions):
    [0:42]   21 landmark points × (x, y), normalized to the frame and
             clamped to [0, 1]

Variants:
    - ContourFeatureExtractor: OpenCV-only geometric approximation
    - HandLandmarkExtractor:   MediaPipe Hands (see landmark_tracker.py)
    - ScriptedFeatureExtractor: deterministic replay for tests

Every variant is a pure function of the frame; no cross-frame state.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional, Union

import cv2
import numpy as np

from gesture_stream.core.errors import FrameProcessingError, PreconditionViolation
from gesture_stream.core.types import LANDMARK_COUNT, LANDMARK_DIM
from gesture_stream.modules.detection.presence import PresenceGate, PresenceGateConfig

logger = logging.getLogger(__name__)

EXTRACTOR_KINDS = ("contour", "mediapipe")


@dataclass
class ExtractorConfig:
    """Feature extractor configuration."""
    kind: str = "contour"
    presence: PresenceGateConfig = field(default_factory=PresenceGateConfig)
    # MediaPipe variant only
    model_complexity: int = 0
    min_detection_confidence: float = 0.5
    min_tracking_confidence: float = 0.5

    def __post_init__(self):
        if self.kind not in EXTRACTOR_KINDS:
            raise ValueError("extractor kind must be one of %s, got %r" % (EXTRACTOR_KINDS, self.kind))

    @classmethod
    def from_dict(cls, config: dict) -> "ExtractorConfig":
        """Create config from dictionary (YAML parsed)."""
        return cls(
            kind=config.get("kind", "contour"),
            presence=PresenceGateConfig.from_dict(config),
            model_complexity=int(config.get("model_complexity", 0)),
            min_detection_confidence=float(config.get("min_detection_confidence", 0.5)),
            min_tracking_confidence=float(config.get("min_tracking_confidence", 0.5)),
        )


def frame_area(frame) -> int:
    shape = getattr(frame, "shape", ())
    if len(shape) < 2:
        return 0
    return int(shape[0]) * int(shape[1])


class FeatureExtractor:
    """Base class for feature extractor variants.

    Subclasses implement ``is_hand_present`` and ``_features``; the
    shared ``extract`` handles frame validation, gating and clamping.
    """

    name = "base"

    def initialize(self, progress: Optional[Callable[[float], None]] = None):
        """Prepare backend resources. ``progress`` receives fractions in [0, 1]."""
        if progress is not None:
            progress(1.0)

    def close(self):
        """Release backend resources."""

    def extract(self, frame) -> Optional[np.ndarray]:
        """Convert one frame into a read-only (LANDMARK_DIM,) float32 vector.

        Returns:
            The feature vector, or None when the frame has zero area or
            no hand is present.

        Raises:
            FrameProcessingError: the frame is not an (H, W, 3) uint8 image
        """
        if frame is None:
            raise FrameProcessingError("Frame is None")
        self._check_frame(frame)
        if frame_area(frame) == 0:
            return None

        if not self.is_hand_present(frame):
            return None

        features = self._features(frame)
        if features is None:
            return None
        return self._finalize(features)

    def is_hand_present(self, frame: np.ndarray) -> bool:
        raise NotImplementedError

    def _features(self, frame: np.ndarray) -> Optional[np.ndarray]:
        raise NotImplementedError

    @staticmethod
    def _check_frame(frame):
        if not isinstance(frame, np.ndarray):
            raise FrameProcessingError("Expected numpy frame, got %s" % type(frame).__name__)
        if frame.ndim != 3 or frame.shape[2] != 3:
            raise FrameProcessingError("Expected (H, W, 3) frame, got %s" % (frame.shape,))
        if frame.dtype != np.uint8:
            raise FrameProcessingError("Expected uint8 frame, got %s" % frame.dtype)

    @staticmethod
    def _finalize(features) -> np.ndarray:
        vector = np.asarray(features, dtype=np.float32).reshape(-1)
        if vector.shape != (LANDMARK_DIM,):
            raise PreconditionViolation(
                "Extractor produced %s values, expected %d" % (vector.size, LANDMARK_DIM))
        vector = np.clip(np.nan_to_num(vector, nan=0.0), 0.0, 1.0)
        vector.setflags(write=False)
        return vector


class ContourFeatureExtractor(FeatureExtractor):
    """Approximates hand geometry from the largest skin-coloured contour.

    Point 0 is the contour centroid (wrist stand-in); points 1-20 are
    sampled evenly along the contour starting from its topmost pixel.
    """

    name = "contour"

    def __init__(self, config: ExtractorConfig = None):
        self.config = config or ExtractorConfig()
        self._gate = PresenceGate(self.config.presence)

    def is_hand_present(self, frame):
        return self._gate.is_present(frame)

    def _features(self, frame):
        mask = self._gate.skin_mask(frame)
        # [-2] keeps OpenCV 3 (3-tuple) and OpenCV 4 (2-tuple) compatible
        contours = cv2.findContours(mask, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_NONE)[-2]
        if not contours:
            return None

        largest = max(contours, key=cv2.contourArea)
        pts = largest.reshape(-1, 2).astype(np.float32)

        m = cv2.moments(largest)
        if m["m00"] > 0:
            centroid = np.array([m["m10"] / m["m00"], m["m01"] / m["m00"]], dtype=np.float32)
        else:
            centroid = pts.mean(axis=0)

        pts = np.roll(pts, -int(np.argmin(pts[:, 1])), axis=0)
        idx = np.linspace(0, len(pts), LANDMARK_COUNT - 1, endpoint=False).astype(int)
        points = np.vstack([centroid[None, :], pts[idx]])

        h, w = frame.shape[:2]
        points[:, 0] /= max(w - 1, 1)
        points[:, 1] /= max(h - 1, 1)
        return points.reshape(-1)


ScriptItem = Union[None, np.ndarray, Exception]


class ScriptedFeatureExtractor(FeatureExtractor):
    """Deterministic stub that replays a script instead of looking at pixels.

    Each script item is a feature vector, ``None`` (no hand in this
    frame) or an exception instance, which is raised to simulate a frame
    failure. A callable script is called with the frame. When a finite
    script runs out, every further frame reports no hand.
    """

    name = "scripted"

    def __init__(self, script: Union[Iterable[ScriptItem], Callable] = (),
                 init_error: Exception = None):
        if callable(script):
            self._fn = script
            self._items = None
        else:
            self._fn = None
            self._items = iter(list(script))
        self._init_error = init_error
        self.calls = 0
        self.closed = False

    def initialize(self, progress=None):
        if self._init_error is not None:
            raise self._init_error
        super().initialize(progress)

    def close(self):
        self.closed = True

    def is_hand_present(self, frame):
        return True

    def _check_frame(self, frame):
        # Any non-empty array stands in for a frame
        pass

    def _features(self, frame):
        self.calls += 1
        if self._fn is not None:
            item = self._fn(frame)
        else:
            item = next(self._items, None)
        if isinstance(item, Exception):
            raise item
        return item


def create_extractor(config: ExtractorConfig) -> FeatureExtractor:
    """Build the configured production extractor variant."""
    if config.kind == "mediapipe":
        from gesture_stream.modules.detection.landmark_tracker import HandLandmarkExtractor
        return HandLandmarkExtractor(config)
    return ContourFeatureExtractor(config)
