"""
Stateless gesture classifier over a temporal window.

Backend selection happens once, at initialize():
    1. ``numpy``  GestureNet evaluated with NumPy (default, no framework)
    2. ``torch``  the same network in PyTorch (``torch`` extra)

Weights come from ``model_path`` when configured, otherwise from a
seeded deterministic initialisation (an untrained network).
"""

import os
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional

import numpy as np

from gesture_stream.core.errors import FrameProcessingError, InitializationFailure, PreconditionViolation
from gesture_stream.core.types import (
    ClassificationResult,
    GestureLabel,
    LANDMARK_DIM,
    SEQUENCE_LENGTH,
)
from gesture_stream.models.gesture_net import GestureNet

logger = logging.getLogger(__name__)

BACKENDS = ("numpy", "torch")
INPUT_SHAPE = (SEQUENCE_LENGTH, LANDMARK_DIM)


@dataclass
class ClassifierConfig:
    """Classifier backend configuration."""
    backend: str = "numpy"
    model_path: Optional[str] = None
    seed: int = 0

    def __post_init__(self):
        if self.backend not in BACKENDS:
            raise ValueError("classifier backend must be one of %s, got %r" % (BACKENDS, self.backend))

    @classmethod
    def from_dict(cls, config: dict) -> "ClassifierConfig":
        """Create config from dictionary (YAML parsed)."""
        return cls(
            backend=config.get("backend", "numpy"),
            model_path=config.get("model_path") or None,
            seed=int(config.get("seed", 0)),
        )


class GestureClassifier:
    """Maps a (SEQUENCE_LENGTH, LANDMARK_DIM) window to a label distribution.

    Holds no temporal state; identical input gives identical output.

    Usage::

        classifier = GestureClassifier(ClassifierConfig())
        classifier.initialize()
        result = classifier.predict(window.as_input())
    """

    def __init__(self, config: ClassifierConfig = None, model=None):
        """
        Args:
            config: classifier section of the config file
            model: optional ready-made backend exposing ``predict_proba``,
                   ``input_dim`` and ``num_classes``; skips backend loading
        """
        self.config = config or ClassifierConfig()
        self._custom_model = model
        self._model = model
        self._backend = "custom" if model is not None else None
        self._labels = list(GestureLabel)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self, progress: Optional[Callable[[float], None]] = None):
        """Load the configured backend and check its dimensions.

        Raises:
            InitializationFailure: backend missing, unreadable or of the
                wrong shape
        """
        if progress is not None:
            progress(0.0)

        if self._custom_model is not None:
            self._model = self._custom_model
        elif self._model is None:
            self._model = self._load_backend()
            self._backend = self.config.backend
        if progress is not None:
            progress(0.7)

        expected_in = SEQUENCE_LENGTH * LANDMARK_DIM
        if getattr(self._model, "input_dim", expected_in) != expected_in:
            raise InitializationFailure(
                "Model expects %s inputs, pipeline produces %d" % (self._model.input_dim, expected_in))
        if getattr(self._model, "num_classes", len(self._labels)) != len(self._labels):
            raise InitializationFailure(
                "Model has %s outputs for %d labels" % (self._model.num_classes, len(self._labels)))

        logger.info("Classifier backend: %s (%d labels)", self._backend, len(self._labels))
        if progress is not None:
            progress(1.0)

    def _load_backend(self):
        path = self.config.model_path
        if path and not os.path.isfile(path):
            raise InitializationFailure("Model file not found: %s" % path)

        try:
            if self.config.backend == "torch":
                return self._load_torch(path)
            if path:
                return GestureNet.load(path)
        except InitializationFailure:
            raise
        except Exception as e:
            raise InitializationFailure("Failed to load %s backend: %s" % (self.config.backend, e)) from e

        logger.warning("No model_path configured; using untrained GestureNet (seed=%d)",
                       self.config.seed)
        return GestureNet.from_seed(self.config.seed)

    def _load_torch(self, path):
        try:
            from gesture_stream.models.torch_net import TorchGestureNet
        except ImportError as e:
            raise InitializationFailure(
                "PyTorch backend requested but torch is not installed "
                "(pip install gesture-stream[torch])") from e

        if path and path.endswith((".pt", ".pth")):
            return TorchGestureNet.load_checkpoint(path)
        net = GestureNet.load(path) if path else GestureNet.from_seed(self.config.seed)
        return TorchGestureNet.from_numpy(net)

    def close(self):
        """Release the backend."""
        self._model = None

    @property
    def backend(self) -> Optional[str]:
        """Current inference backend name."""
        return self._backend

    @property
    def is_ready(self) -> bool:
        return self._model is not None

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def classify(self, sequence: np.ndarray) -> Dict[GestureLabel, float]:
        """Probability distribution over the label set.

        Raises:
            PreconditionViolation: input is not (SEQUENCE_LENGTH, LANDMARK_DIM)
            FrameProcessingError: the backend output is not a distribution
        """
        if self._model is None:
            raise PreconditionViolation("classify() called before initialize()")

        x = np.asarray(sequence, dtype=np.float32)
        if x.shape != INPUT_SHAPE:
            raise PreconditionViolation("Classifier input must be %s, got %s" % (INPUT_SHAPE, x.shape))

        probs = np.asarray(self._model.predict_proba(x.reshape(1, -1)), dtype=np.float64).reshape(-1)
        if probs.shape != (len(self._labels),):
            raise FrameProcessingError("Backend returned %d scores for %d labels"
                                       % (probs.size, len(self._labels)))
        if not np.all(np.isfinite(probs)) or np.any(probs < 0) or probs.sum() <= 0:
            raise FrameProcessingError("Backend returned an invalid distribution: %s" % probs)

        probs = probs / probs.sum()
        return {label: float(p) for label, p in zip(self._labels, probs)}

    @staticmethod
    def to_result(distribution: Dict[GestureLabel, float]) -> ClassificationResult:
        """Arg-max projection; ties go to the lowest label index."""
        best = None
        for label in GestureLabel:
            p = distribution.get(label, 0.0)
            if best is None or p > distribution.get(best, 0.0):
                best = label
        return ClassificationResult(best, float(distribution.get(best, 0.0)))

    def predict(self, sequence: np.ndarray) -> ClassificationResult:
        return self.to_result(self.classify(sequence))
