"""Frame capture collaborators."""
from .camera_source import CameraSource, CameraConfig

__all__ = ["CameraSource", "CameraConfig"]
