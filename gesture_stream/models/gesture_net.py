"""
GestureNet: lightweight MLP over a flattened landmark sequence.

Architecture:
    Input  : SEQUENCE_LENGTH × LANDMARK_DIM = 1260 features
    FC1    : 64 units, ReLU
    FC2    : 32 units, ReLU
    Output : num_classes, softmax

Inference is plain NumPy so the default backend has no framework
dependency. Weights come from an ``.npz`` file produced elsewhere
(training is out of scope) or from a seeded deterministic init.
"""

import os
import logging

import numpy as np

from gesture_stream.core.types import GestureLabel, LANDMARK_DIM, SEQUENCE_LENGTH

logger = logging.getLogger(__name__)

INPUT_DIM = SEQUENCE_LENGTH * LANDMARK_DIM
HIDDEN_DIMS = (64, 32)
NUM_CLASSES = len(GestureLabel)


def softmax(logits: np.ndarray) -> np.ndarray:
    """Numerically stable softmax over the last axis."""
    shifted = logits - np.max(logits, axis=-1, keepdims=True)
    exp = np.exp(shifted)
    return exp / np.sum(exp, axis=-1, keepdims=True)


class GestureNet:
    """Dense ReLU network evaluated with NumPy."""

    def __init__(self, weights, biases):
        if len(weights) != len(biases) or not weights:
            raise ValueError("GestureNet needs one bias per weight matrix")
        self.weights = [np.asarray(w, dtype=np.float64) for w in weights]
        self.biases = [np.asarray(b, dtype=np.float64) for b in biases]
        for i, (w, b) in enumerate(zip(self.weights, self.biases)):
            if w.ndim != 2 or b.shape != (w.shape[1],):
                raise ValueError("Layer %d: weight %s and bias %s do not match" % (i, w.shape, b.shape))
            if i and w.shape[0] != self.weights[i - 1].shape[1]:
                raise ValueError("Layer %d input %d does not follow previous output %d"
                                 % (i, w.shape[0], self.weights[i - 1].shape[1]))

    @property
    def input_dim(self) -> int:
        return self.weights[0].shape[0]

    @property
    def num_classes(self) -> int:
        return self.weights[-1].shape[1]

    @classmethod
    def from_seed(cls, seed=0, input_dim=INPUT_DIM, hidden_dims=HIDDEN_DIMS,
                  num_classes=NUM_CLASSES) -> "GestureNet":
        """Glorot-uniform initialisation from a fixed seed."""
        rng = np.random.default_rng(seed)
        dims = (input_dim,) + tuple(hidden_dims) + (num_classes,)
        weights, biases = [], []
        for fan_in, fan_out in zip(dims[:-1], dims[1:]):
            limit = np.sqrt(6.0 / (fan_in + fan_out))
            weights.append(rng.uniform(-limit, limit, size=(fan_in, fan_out)))
            biases.append(np.zeros(fan_out))
        return cls(weights, biases)

    @classmethod
    def load(cls, path: str) -> "GestureNet":
        """Load weights saved by :meth:`save`.

        The archive stores ``w0, b0, w1, b1, ...`` arrays.
        """
        with np.load(path) as archive:
            count = len([k for k in archive.files if k.startswith("w")])
            weights = [archive["w%d" % i] for i in range(count)]
            biases = [archive["b%d" % i] for i in range(count)]
        model = cls(weights, biases)
        logger.info("Loaded GestureNet (%d -> %d) from %s", model.input_dim, model.num_classes, path)
        return model

    def save(self, path: str):
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        arrays = {}
        for i, (w, b) in enumerate(zip(self.weights, self.biases)):
            arrays["w%d" % i] = w
            arrays["b%d" % i] = b
        np.savez(path, **arrays)

    def forward(self, x: np.ndarray) -> np.ndarray:
        """Raw logits for a (batch, input_dim) array."""
        h = np.asarray(x, dtype=np.float64)
        last = len(self.weights) - 1
        for i, (w, b) in enumerate(zip(self.weights, self.biases)):
            h = h @ w + b
            if i < last:
                h = np.maximum(h, 0.0)
        return h

    def predict_proba(self, x: np.ndarray) -> np.ndarray:
        """Softmax probabilities, shape (batch, num_classes)."""
        return softmax(self.forward(x))
