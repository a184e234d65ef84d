"""
Error taxonomy for the gesture stream pipeline.

Only InitializationFailure and CaptureUnavailable are reported to the
presentation layer. FrameProcessingError is absorbed at the frame
boundary; PreconditionViolation is a programmer error and propagates.
"""


class GestureStreamError(Exception):
    """Base class for all pipeline errors."""


class InitializationFailure(GestureStreamError):
    """Feature extractor or classifier backend could not start."""


class CaptureUnavailable(GestureStreamError):
    """The capture collaborator cannot supply frames (e.g. permission denied)."""


class FrameProcessingError(GestureStreamError):
    """A single frame could not be processed; degrades to no detection."""


class PreconditionViolation(GestureStreamError, ValueError):
    """Malformed fixed-shape input handed to the window buffer or classifier."""


class SessionDisposedError(GestureStreamError):
    """The session has already been disposed."""
