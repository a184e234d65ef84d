"""
Structured logging setup and detection event logging.
"""

import os
import logging
import logging.handlers


def setup_logging(level="INFO", log_file=None, max_size_mb=10, backup_count=3):
    """Configure logging for the application."""
    # Compact console format
    console_format = "%(asctime)s  %(levelname)-5s  %(message)s"
    # Verbose format for log file
    file_format = "%(asctime)s [%(levelname)-7s] %(name)-25s | %(message)s"
    date_format = "%H:%M:%S"

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    # Remove existing handlers
    root_logger.handlers.clear()

    console = logging.StreamHandler()
    console.setLevel(root_logger.level)
    console.setFormatter(logging.Formatter(console_format, datefmt=date_format))
    root_logger.addHandler(console)

    # File handler (rotating)
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_size_mb * 1024 * 1024,
            backupCount=backup_count,
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(file_format, datefmt=date_format))
        root_logger.addHandler(file_handler)

    return root_logger


class DetectionLogger:
    """Logs each new history entry on the ``gesture_events`` logger.

    Subscribe ``on_history_change`` to a session's history events.
    """

    def __init__(self):
        self.logger = logging.getLogger("gesture_events")
        self._logged = 0

    def on_history_change(self, history=(), appended=None, **_):
        """Log the entry that was just appended, if any."""
        if appended is None:
            return
        self._logged += 1
        self.logger.info(
            "Detection: %-10s | Confidence: %.2f | History: %d",
            appended.gesture.value,
            appended.confidence,
            len(history),
        )

    @property
    def total_detections(self) -> int:
        return self._logged
