"""
PyTorch rendition of GestureNet for the optional ``torch`` backend.

Same topology as the NumPy network (1260 → 64 → 32 → num_classes), run
in eval mode under ``torch.no_grad()``. Requires the ``torch`` extra.
"""

import logging

import numpy as np
import torch
import torch.nn as nn

from gesture_stream.models.gesture_net import GestureNet, HIDDEN_DIMS, INPUT_DIM, NUM_CLASSES

logger = logging.getLogger(__name__)


class TorchGestureNet(nn.Module):
    """Dense ReLU classifier over a flattened landmark sequence."""

    def __init__(self, input_dim=INPUT_DIM, hidden_dims=HIDDEN_DIMS, num_classes=NUM_CLASSES):
        super(TorchGestureNet, self).__init__()
        layers = []
        prev = input_dim
        for width in hidden_dims:
            layers += [nn.Linear(prev, width), nn.ReLU(inplace=True)]
            prev = width
        self.features = nn.Sequential(*layers)
        self.classifier = nn.Linear(prev, num_classes)
        self.input_dim = input_dim
        self.num_classes = num_classes

    def forward(self, x):
        return self.classifier(self.features(x))

    def predict_proba(self, x) -> np.ndarray:
        """Softmax probabilities for a (batch, input_dim) array."""
        self.eval()
        with torch.no_grad():
            tensor = torch.as_tensor(np.asarray(x), dtype=torch.float32)
            return torch.softmax(self.forward(tensor), dim=1).cpu().numpy()

    @classmethod
    def from_numpy(cls, net: GestureNet) -> "TorchGestureNet":
        """Copy the weights of a NumPy GestureNet."""
        hidden = tuple(w.shape[1] for w in net.weights[:-1])
        model = cls(input_dim=net.input_dim, hidden_dims=hidden, num_classes=net.num_classes)
        linears = [m for m in model.modules() if isinstance(m, nn.Linear)]
        with torch.no_grad():
            for layer, w, b in zip(linears, net.weights, net.biases):
                layer.weight.copy_(torch.as_tensor(w.T, dtype=torch.float32))
                layer.bias.copy_(torch.as_tensor(b, dtype=torch.float32))
        model.eval()
        return model

    @classmethod
    def load_checkpoint(cls, path, device="cpu") -> "TorchGestureNet":
        """Load a state_dict (or ``{"model_state_dict": ...}``) checkpoint."""
        checkpoint = torch.load(path, map_location=device)
        if isinstance(checkpoint, dict) and "model_state_dict" in checkpoint:
            state_dict = checkpoint["model_state_dict"]
        else:
            state_dict = checkpoint

        num_classes = state_dict["classifier.weight"].shape[0]
        feature_keys = sorted(
            (k for k in state_dict if k.startswith("features.") and k.endswith(".weight")),
            key=lambda k: int(k.split(".")[1]),
        )
        hidden = tuple(state_dict[k].shape[0] for k in feature_keys)
        input_dim = state_dict["features.0.weight"].shape[1]

        model = cls(input_dim=input_dim, hidden_dims=hidden, num_classes=num_classes)
        model.load_state_dict(state_dict)
        model.to(device)
        model.eval()
        logger.info("Loaded TorchGestureNet (%d classes) from %s", num_classes, path)
        return model
