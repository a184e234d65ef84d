"""Temporal windowing, classification and stabilization."""
from .window_buffer import TemporalWindowBuffer, WindowConfig
from .classifier import GestureClassifier, ClassifierConfig
from .history import PredictionHistory, history_to_json, history_from_json
from .stabilizer import Stabilizer, StabilizerConfig, StabilizerUpdate

__all__ = [
    "TemporalWindowBuffer",
    "WindowConfig",
    "GestureClassifier",
    "ClassifierConfig",
    "PredictionHistory",
    "history_to_json",
    "history_from_json",
    "Stabilizer",
    "StabilizerConfig",
    "StabilizerUpdate",
]
