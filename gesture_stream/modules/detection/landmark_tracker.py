"""
MediaPipe Hands adapter: the production geometric feature extractor.

Requires the optional ``tracking`` extra (``pip install gesture-stream[tracking]``).
Only the first detected hand is used; multi-hand tracking is out of scope.
"""

import logging

import cv2
import numpy as np

from gesture_stream.core.errors import InitializationFailure
from gesture_stream.modules.detection.feature_extractor import ExtractorConfig, FeatureExtractor
from gesture_stream.modules.detection.presence import PresenceGate

logger = logging.getLogger(__name__)


class HandLandmarkExtractor(FeatureExtractor):
    """Extracts 21 (x, y) hand landmarks with MediaPipe Hands."""

    name = "mediapipe"

    def __init__(self, config: ExtractorConfig = None):
        self.config = config or ExtractorConfig(kind="mediapipe")
        self._gate = PresenceGate(self.config.presence)
        self._hands = None

    def initialize(self, progress=None):
        """Initialize the MediaPipe Hands solution."""
        if progress is not None:
            progress(0.1)
        try:
            import mediapipe as mp
            self._hands = mp.solutions.hands.Hands(
                static_image_mode=False,
                model_complexity=self.config.model_complexity,
                max_num_hands=1,
                min_detection_confidence=self.config.min_detection_confidence,
                min_tracking_confidence=self.config.min_tracking_confidence,
            )
        except (ImportError, AttributeError) as e:
            raise InitializationFailure("MediaPipe Hands unavailable: %s" % e) from e
        logger.info(
            "MediaPipe Hands initialized (complexity=%d, detect_conf=%.2f, track_conf=%.2f)",
            self.config.model_complexity,
            self.config.min_detection_confidence,
            self.config.min_tracking_confidence,
        )
        if progress is not None:
            progress(1.0)

    def is_hand_present(self, frame):
        return self._gate.is_present(frame)

    def _features(self, frame):
        if self._hands is None:
            raise InitializationFailure("HandLandmarkExtractor used before initialize()")

        rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        # Non-writable frames let MediaPipe skip a copy
        rgb.flags.writeable = False
        results = self._hands.process(rgb)
        if not results or not results.multi_hand_landmarks:
            return None

        hand = results.multi_hand_landmarks[0]
        return np.array([(lm.x, lm.y) for lm in hand.landmark], dtype=np.float32).reshape(-1)

    def close(self):
        """Release MediaPipe resources."""
        if self._hands is not None:
            self._hands.close()
            self._hands = None
            logger.info("MediaPipe Hands closed")
