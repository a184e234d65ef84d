"""
Tests for Camera Capture
========================
"""

from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from gesture_stream.core.errors import CaptureUnavailable
from gesture_stream.modules.capture import CameraConfig, CameraSource


class TestCameraConfig:
    """Test suite for CameraConfig."""

    def test_default_values(self):
        config = CameraConfig()
        assert config.device_id == 0
        assert config.width == 640
        assert config.height == 480
        assert config.flip_horizontal is True

    def test_from_dict_partial(self):
        config = CameraConfig.from_dict({"device_id": 2, "fps": 15})
        assert config.device_id == 2
        assert config.fps == 15
        assert config.width == 640


class TestCameraSource:
    """Test suite for CameraSource with a mocked VideoCapture."""

    @pytest.fixture
    def mock_cap(self):
        cap = MagicMock()
        cap.isOpened.return_value = True
        cap.read.return_value = (True, np.zeros((480, 640, 3), dtype=np.uint8))
        cap.get.return_value = 640.0
        return cap

    @pytest.fixture
    def mock_cv2(self, mock_cap):
        with patch("gesture_stream.modules.capture.camera_source.cv2") as mock:
            mock.VideoCapture.return_value = mock_cap
            mock.flip.side_effect = lambda image, code: image[:, ::-1]
            yield mock

    def test_open_and_read(self, mock_cv2):
        camera = CameraSource(CameraConfig(warmup_frames=0))
        camera.open()

        frame = camera.read()

        assert camera.is_open
        assert frame.shape == (480, 640, 3)
        mock_cv2.flip.assert_called()
        camera.release()
        assert not camera.is_open

    def test_device_not_opened(self, mock_cv2, mock_cap):
        mock_cap.isOpened.return_value = False
        camera = CameraSource()

        with pytest.raises(CaptureUnavailable):
            camera.open()
        assert not camera.is_open

    def test_device_without_frames(self, mock_cv2, mock_cap):
        mock_cap.read.return_value = (False, None)
        with pytest.raises(CaptureUnavailable):
            CameraSource().open()

    def test_read_before_open(self):
        with pytest.raises(CaptureUnavailable):
            CameraSource().read()

    def test_transient_failures(self, mock_cv2, mock_cap):
        camera = CameraSource(CameraConfig(warmup_frames=0, max_read_failures=3, flip_horizontal=False))
        camera.open()
        mock_cap.read.return_value = (False, None)

        assert camera.read() is None
        assert camera.read() is None
        with pytest.raises(CaptureUnavailable):
            camera.read()

    def test_frames_limit(self, mock_cv2):
        with CameraSource(CameraConfig(warmup_frames=0)) as camera:
            frames = list(camera.frames(max_frames=3))

        assert len(frames) == 3
        assert not camera.is_open

    @pytest.mark.skip(reason="Requires physical camera")
    def test_real_camera_capture(self):
        with CameraSource(CameraConfig(warmup_frames=5)) as camera:
            frame = camera.read()
        assert frame is not None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
