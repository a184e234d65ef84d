"""
Skin-colour presence gate.

A cheap, replaceable heuristic that decides whether a trackable hand is
plausibly in the frame before any feature work is done. The decision is
a single threshold on the proportion of skin-coloured pixels, so it is
monotonic in that ratio.
"""

import logging
from dataclasses import dataclass
from typing import Tuple

import cv2
import numpy as np

logger = logging.getLogger(__name__)


@dataclass
class PresenceGateConfig:
    """HSV skin range and the minimum matched-pixel ratio."""
    min_skin_ratio: float = 0.05
    skin_lower: Tuple[int, int, int] = (0, 48, 80)
    skin_upper: Tuple[int, int, int] = (20, 255, 255)
    blur_kernel: int = 5            # median blur on the mask, 0 disables

    def __post_init__(self):
        if not 0.0 <= self.min_skin_ratio <= 1.0:
            raise ValueError("min_skin_ratio must be in [0, 1], got %r" % self.min_skin_ratio)
        if self.blur_kernel and self.blur_kernel % 2 == 0:
            raise ValueError("blur_kernel must be odd, got %r" % self.blur_kernel)

    @classmethod
    def from_dict(cls, config: dict) -> "PresenceGateConfig":
        """Create config from dictionary (YAML parsed)."""
        return cls(
            min_skin_ratio=float(config.get("min_skin_ratio", 0.05)),
            skin_lower=tuple(config.get("skin_lower", (0, 48, 80))),
            skin_upper=tuple(config.get("skin_upper", (20, 255, 255))),
            blur_kernel=int(config.get("blur_kernel", 5)),
        )


class PresenceGate:
    """Decides hand presence from the skin-pixel ratio of a BGR frame."""

    def __init__(self, config: PresenceGateConfig = None):
        self.config = config or PresenceGateConfig()
        self._lower = np.array(self.config.skin_lower, dtype=np.uint8)
        self._upper = np.array(self.config.skin_upper, dtype=np.uint8)

    def skin_mask(self, frame: np.ndarray) -> np.ndarray:
        """Binary (0/255) mask of skin-coloured pixels."""
        hsv = cv2.cvtColor(frame, cv2.COLOR_BGR2HSV)
        mask = cv2.inRange(hsv, self._lower, self._upper)
        if self.config.blur_kernel:
            mask = cv2.medianBlur(mask, self.config.blur_kernel)
        return mask

    def skin_ratio(self, frame: np.ndarray) -> float:
        mask = self.skin_mask(frame)
        return cv2.countNonZero(mask) / float(mask.size)

    def decide(self, ratio: float) -> bool:
        """Presence decision for a given matched-pixel ratio."""
        return ratio >= self.config.min_skin_ratio

    def is_present(self, frame: np.ndarray) -> bool:
        ratio = self.skin_ratio(frame)
        present = self.decide(ratio)
        logger.debug("Presence gate: skin ratio %.3f -> %s", ratio, present)
        return present
