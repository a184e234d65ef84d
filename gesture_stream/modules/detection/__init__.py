"""Hand presence gating and feature extraction."""
from .presence import PresenceGate, PresenceGateConfig
from .feature_extractor import (
    ExtractorConfig,
    FeatureExtractor,
    ContourFeatureExtractor,
    ScriptedFeatureExtractor,
    create_extractor,
)

__all__ = [
    "PresenceGate",
    "PresenceGateConfig",
    "ExtractorConfig",
    "FeatureExtractor",
    "ContourFeatureExtractor",
    "ScriptedFeatureExtractor",
    "create_extractor",
]
