"""
Numeric backends for gesture classification.

Provides:
    - GestureNet: NumPy MLP over a flattened landmark sequence (default)
    - TorchGestureNet: the same network in PyTorch (``torch`` extra,
      import ``gesture_stream.models.torch_net`` explicitly)
"""
from .gesture_net import GestureNet, softmax

__all__ = ["GestureNet", "softmax"]
