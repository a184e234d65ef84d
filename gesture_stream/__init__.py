"""
Gesture Stream
==============

Streaming hand-gesture classification: per-frame feature extraction,
temporal windowing, classification and stabilization into a clean,
de-duplicated detection history.

Modules:
    - core: shared types, errors, event bus and the detection session
    - modules.detection: presence gating and feature extraction
    - modules.recognition: window buffer, classifier, stabilizer, history
    - modules.capture: camera frame source
    - modules.utils: configuration, logging, performance stats
    - models: numeric classifier backends
"""

from .core.session import DetectionSession, SessionConfig

__version__ = "1.0.0"

__all__ = ["DetectionSession", "SessionConfig", "__version__"]
