"""
Camera capture collaborator.

Supplies BGR frames from an OpenCV ``VideoCapture`` device to a
detection session. A device that cannot be opened, or that keeps
failing to deliver frames, raises CaptureUnavailable.
"""

import logging
from dataclasses import dataclass
from typing import Iterator, Optional

import cv2
import numpy as np

from gesture_stream.core.errors import CaptureUnavailable

logger = logging.getLogger(__name__)


@dataclass
class CameraConfig:
    """Camera configuration settings."""
    device_id: int = 0
    width: int = 640
    height: int = 480
    fps: int = 30
    buffer_size: int = 1            # minimal buffering for low latency
    flip_horizontal: bool = True    # mirror view
    warmup_frames: int = 5
    max_read_failures: int = 30     # consecutive failed reads before giving up

    @classmethod
    def from_dict(cls, config: dict) -> "CameraConfig":
        """Create config from dictionary (YAML parsed)."""
        return cls(
            device_id=config.get("device_id", 0),
            width=config.get("width", 640),
            height=config.get("height", 480),
            fps=config.get("fps", 30),
            buffer_size=config.get("buffer_size", 1),
            flip_horizontal=config.get("flip_horizontal", True),
            warmup_frames=config.get("warmup_frames", 5),
            max_read_failures=config.get("max_read_failures", 30),
        )


class CameraSource:
    """
    Synchronous camera reader.

    Example:
        >>> with CameraSource(CameraConfig()) as camera:
        ...     for frame in camera.frames():
        ...         session.submit_frame(frame)
    """

    def __init__(self, config: Optional[CameraConfig] = None):
        self.config = config or CameraConfig()
        self._cap: Optional[cv2.VideoCapture] = None
        self._failures = 0
        self._frame_number = 0

    def open(self) -> None:
        """Open the device.

        Raises:
            CaptureUnavailable: device missing, busy or permission denied
        """
        logger.info("Opening camera (device=%s, %dx%d@%dfps)",
                    self.config.device_id, self.config.width, self.config.height, self.config.fps)

        cap = cv2.VideoCapture(self.config.device_id)
        if not cap.isOpened():
            cap.release()
            raise CaptureUnavailable("Cannot open camera device %s" % self.config.device_id)

        cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.config.width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.config.height)
        cap.set(cv2.CAP_PROP_FPS, self.config.fps)
        cap.set(cv2.CAP_PROP_BUFFERSIZE, self.config.buffer_size)

        ok, frame = cap.read()
        if not ok or frame is None:
            cap.release()
            raise CaptureUnavailable("Camera device %s delivers no frames" % self.config.device_id)

        for _ in range(self.config.warmup_frames):
            cap.read()

        self._cap = cap
        self._failures = 0
        self._frame_number = 0
        logger.info("Camera opened: %dx%d",
                    int(cap.get(cv2.CAP_PROP_FRAME_WIDTH)), int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT)))

    def read(self) -> Optional[np.ndarray]:
        """Read one BGR frame, or None on a transient failure.

        Raises:
            CaptureUnavailable: not opened, or too many consecutive failures
        """
        if self._cap is None:
            raise CaptureUnavailable("Camera is not open")

        ok, image = self._cap.read()

        if not ok or image is None:
            self._failures += 1
            logger.warning("Failed to capture frame (%d/%d)", self._failures, self.config.max_read_failures)
            if self._failures >= self.config.max_read_failures:
                raise CaptureUnavailable("Camera stopped delivering frames")
            return None

        self._failures = 0
        self._frame_number += 1
        if self.config.flip_horizontal:
            image = cv2.flip(image, 1)
        return image

    def frames(self, max_frames: Optional[int] = None) -> Iterator[np.ndarray]:
        """Yield frames until ``max_frames`` have been read (forever if None)."""
        while max_frames is None or self._frame_number < max_frames:
            frame = self.read()
            if frame is not None:
                yield frame

    def release(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            logger.info("Camera released")

    @property
    def is_open(self) -> bool:
        return self._cap is not None

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False
