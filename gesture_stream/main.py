#!/usr/bin/env python3
"""
Gesture Stream - live gesture detection from a camera.

Drives one detection session from an OpenCV camera, logs each detection
and optionally writes the history export when the run ends.

Usage:
    gesture-stream                              # default config, contour extractor
    gesture-stream --extractor mediapipe        # MediaPipe Hands landmarks
    gesture-stream --max-frames 600 --export detections.json
"""

import sys
import signal
import argparse
import logging

from gesture_stream import __version__
from gesture_stream.core.errors import CaptureUnavailable, InitializationFailure
from gesture_stream.core.session import DetectionSession
from gesture_stream.modules.capture.camera_source import CameraConfig, CameraSource
from gesture_stream.modules.utils.config import Config
from gesture_stream.modules.utils.logger import DetectionLogger, setup_logging

logger = logging.getLogger(__name__)


class GestureStreamApp:
    """Wires a camera source to a detection session."""

    def __init__(self, config: Config, max_frames: int = None):
        self._config = config
        self._max_frames = max_frames
        self._running = False

        self._session = DetectionSession.from_config(config)
        self._camera = CameraSource(CameraConfig.from_dict(config.camera))
        self._detection_logger = DetectionLogger()

        self._session.on_history_change(self._detection_logger.on_history_change)
        self._session.on_progress(self._on_progress)
        self._session.on_error(self._on_error)

    def _on_progress(self, progress=0.0, **_):
        logger.info("Loading: %3.0f%%", progress)

    def _on_error(self, error=None, **_):
        logger.error("Session error: %s", error)

    def run(self) -> int:
        """Run until interrupted, out of frames or the camera fails.

        Returns:
            Process exit code.
        """
        try:
            self._session.initialize()
        except InitializationFailure:
            return 2

        self._session.start_detection()
        self._running = True
        try:
            self._camera.open()
            for frame in self._camera.frames(self._max_frames):
                if not self._running:
                    break
                self._session.submit_frame(frame)
        except CaptureUnavailable as e:
            self._session.report_capture_unavailable(e)
            return 3
        finally:
            self._camera.release()
            self._session.stop_detection()
            logger.info("Session stats: %s", self._session.stats)
        return 0

    def export(self, path: str):
        with open(path, "w") as f:
            f.write(self._session.export_history())
        logger.info("Wrote %d detections to %s", len(self._session.history), path)

    def shutdown(self):
        self._session.dispose()

    def handle_signal(self, signum, frame):
        """Handle SIGINT/SIGTERM for graceful shutdown."""
        logger.info("Signal %d received, shutting down...", signum)
        self._running = False


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Gesture Stream - live gesture detection"
    )
    parser.add_argument(
        "--config", type=str, default=None,
        help="Path to config.yaml"
    )
    parser.add_argument(
        "--extractor", choices=["contour", "mediapipe"], default=None,
        help="Feature extractor variant"
    )
    parser.add_argument(
        "--camera", type=int, default=None,
        help="Camera device ID"
    )
    parser.add_argument(
        "--max-frames", type=int, default=None,
        help="Stop after this many camera frames"
    )
    parser.add_argument(
        "--export", type=str, default=None,
        help="Write the detection history JSON here on exit"
    )
    parser.add_argument(
        "--log-level", type=str, default=None,
        help="Override logging.level"
    )
    return parser.parse_args(argv)


def build_config(args) -> Config:
    """Load the config file and apply command-line overrides."""
    overrides = {}
    if args.extractor is not None:
        overrides["extractor"] = {"kind": args.extractor}
    if args.camera is not None:
        overrides["camera"] = {"device_id": args.camera}
    if args.log_level is not None:
        overrides["logging"] = {"level": args.log_level}
    return Config.load(config_path=args.config, overrides=overrides)


def main(argv=None) -> int:
    args = parse_args(argv)
    config = build_config(args)

    log_cfg = config.logging
    setup_logging(
        level=log_cfg.get("level", "INFO"),
        log_file=log_cfg.get("file"),
        max_size_mb=log_cfg.get("max_size_mb", 10),
        backup_count=log_cfg.get("backup_count", 3),
    )

    logger.info("=" * 60)
    logger.info("  GESTURE STREAM v%s", __version__)
    logger.info("  Extractor: %s", config.get("extractor.kind", "contour"))
    logger.info("=" * 60)

    app = GestureStreamApp(config, max_frames=args.max_frames)
    signal.signal(signal.SIGINT, app.handle_signal)
    signal.signal(signal.SIGTERM, app.handle_signal)

    try:
        code = app.run()
        if args.export:
            app.export(args.export)
    finally:
        app.shutdown()
    return code


if __name__ == "__main__":
    sys.exit(main())
