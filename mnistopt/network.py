"""Fully connected ReLU network with a softmax output for MNIST digits."""

from __future__ import annotations

import math
import time
from dataclasses import dataclass, field
from typing import Sequence

import numpy as np

from mnistopt.mnist import PIXEL_DIM_FLAT

N_NEURONS_LI = PIXEL_DIM_FLAT
N_NEURONS_L1 = 300
N_NEURONS_L2 = 100
N_NEURONS_L3 = 100
N_NEURONS_LO = 10

LAYER_SIZES = (N_NEURONS_LI, N_NEURONS_L1, N_NEURONS_L2, N_NEURONS_L3, N_NEURONS_LO)

_PIXEL_SCALE = 255.0
_ACCURACY_CHUNK = 1000


def glorot_limit(fan_in: int, fan_out: int) -> float:
    """Bound of the uniform Glorot initialisation for a layer of this shape."""
    if fan_in + fan_out <= 0:
        raise ValueError("layer must have at least one connection")
    return math.sqrt(6) / math.sqrt(fan_in + fan_out)


@dataclass
class LayerWeights:
    """Weights between two layers, indexed ``[input neuron, output neuron]``.

    Besides the weights ``w`` it carries the accumulated gradient ``dw``,
    the momentum/RMSProp state ``v`` and the Adam moments ``m`` and ``v_adam``.
    """

    w: np.ndarray
    dw: np.ndarray = field(default=None)
    v: np.ndarray = field(default=None)
    m: np.ndarray = field(default=None)
    v_adam: np.ndarray = field(default=None)

    def __post_init__(self) -> None:
        self.w = np.asarray(self.w, dtype=np.float64)
        for name in ("dw", "v", "m", "v_adam"):
            value = getattr(self, name)
            if value is None:
                setattr(self, name, np.zeros_like(self.w))
            else:
                value = np.asarray(value, dtype=np.float64)
                if value.shape != self.w.shape:
                    raise ValueError(f"{name} has shape {value.shape}, expected {self.w.shape}")
                setattr(self, name, value)

    @classmethod
    def random(cls, fan_in: int, fan_out: int, rng: np.random.Generator) -> "LayerWeights":
        """Weights drawn uniformly within the Glorot limit; all state set to zero."""
        limit = glorot_limit(fan_in, fan_out)
        return cls(w=rng.uniform(-limit, limit, size=(fan_in, fan_out)))

    @property
    def shape(self) -> tuple[int, int]:
        return self.w.shape


class NeuralNetwork:
    """A 784-300-100-100-10 ReLU network trained with cross-entropy loss."""

    def __init__(self, seed: int | None = None) -> None:
        if seed is None:
            seed = int(time.time())
        self.seed = seed
        print(f"PRNG initialised using seed: {seed}")
        self.rng = np.random.default_rng(seed)

        print("Initialising weight matrices")
        self.layers = [
            LayerWeights.random(fan_in, fan_out, self.rng)
            for fan_in, fan_out in zip(LAYER_SIZES[:-1], LAYER_SIZES[1:])
        ]
        print("Initialising gradient and Jacobian datastructures")
        print("Initialising neuron datastructures\n")
        self.pre_activations: list[np.ndarray] = [np.zeros(n) for n in LAYER_SIZES[1:]]
        self.hidden: list[np.ndarray] = [np.zeros(n) for n in LAYER_SIZES[1:-1]]
        self.probabilities = np.zeros(N_NEURONS_LO)
        self._forward_done = False

    @staticmethod
    def _scale_image(image) -> np.ndarray:
        x = np.asarray(image, dtype=np.float64).reshape(-1)
        if x.size != N_NEURONS_LI:
            raise ValueError(f"image has {x.size} pixels, expected {N_NEURONS_LI}")
        return x / _PIXEL_SCALE

    @staticmethod
    def _check_label(label) -> int:
        label = int(label)
        if not 0 <= label < N_NEURONS_LO:
            raise ValueError(f"label {label} outside 0..{N_NEURONS_LO - 1}")
        return label

    @staticmethod
    def _softmax(logits: np.ndarray) -> np.ndarray:
        shifted = np.exp(logits - logits.max(axis=-1, keepdims=True))
        return shifted / shifted.sum(axis=-1, keepdims=True)

    def forward(self, image) -> np.ndarray:
        """Run one image through the network and return the output probabilities."""
        activation = self._scale_image(image)
        *hidden_layers, output_layer = self.layers
        pre_activations = []
        hidden = []
        for layer in hidden_layers:
            z = activation @ layer.w
            activation = np.maximum(0.0, z)
            pre_activations.append(z)
            hidden.append(activation)
        logits = activation @ output_layer.w
        pre_activations.append(logits)

        self.pre_activations = pre_activations
        self.hidden = hidden
        self.probabilities = self._softmax(logits)
        self._forward_done = True
        return self.probabilities.copy()

    def xent_loss(self, label) -> float:
        """Cross-entropy loss of the last forward pass against ``label``."""
        label = self._check_label(label)
        return float(-math.log(self.probabilities[label]))

    def backward(self, image, label) -> list[np.ndarray]:
        """Loss gradients for every weight matrix, input layer first.

        Uses the activations left by the last call to :meth:`forward`, which
        must have been made with the same image.
        """
        if not self._forward_done:
            raise RuntimeError("backward pass needs a forward pass first")
        label = self._check_label(label)
        x = self._scale_image(image)
        p = self.probabilities

        dl_dp = np.zeros(N_NEURONS_LO)
        dl_dp[label] = -1.0 / p[label]
        dp_dz = np.diag(p) - np.outer(p, p)
        delta = dl_dp @ dp_dz

        inputs = [x, *self.hidden]
        gradients: list[np.ndarray] = []
        for layer, layer_input in zip(reversed(self.layers), reversed(inputs)):
            gradients.append(np.outer(layer_input, delta))
            delta = (layer.w @ delta) * (layer_input > 0.0)
        gradients.reverse()
        return gradients

    def accumulate(self, gradients: Sequence[np.ndarray]) -> None:
        """Add per-layer gradients to the accumulated ``dw`` of each layer."""
        if len(gradients) != len(self.layers):
            raise ValueError(f"expected {len(self.layers)} gradients, got {len(gradients)}")
        for layer, gradient in zip(self.layers, gradients):
            gradient = np.asarray(gradient, dtype=np.float64)
            if gradient.shape != layer.shape:
                raise ValueError(f"gradient has shape {gradient.shape}, expected {layer.shape}")
            layer.dw += gradient

    def zero_gradients(self) -> None:
        """Reset the accumulated gradients of every layer."""
        for layer in self.layers:
            layer.dw[...] = 0.0

    def objective(self, image, label) -> float:
        """Forward pass, loss and backward pass; gradients are accumulated."""
        self.forward(image)
        loss = self.xent_loss(label)
        self.accumulate(self.backward(image, label))
        return loss

    def predict(self, image) -> int:
        """Class with the highest probability (the first one on ties)."""
        return int(np.argmax(self.forward(image)))

    def _batch_predictions(self, images: np.ndarray) -> np.ndarray:
        activation = np.asarray(images, dtype=np.float64) / _PIXEL_SCALE
        *hidden_layers, output_layer = self.layers
        for layer in hidden_layers:
            activation = np.maximum(0.0, activation @ layer.w)
        probabilities = self._softmax(activation @ output_layer.w)
        return np.argmax(probabilities, axis=1)

    def testing_accuracy(self, images, labels) -> float:
        """Fraction of ``images`` whose predicted class equals the label."""
        images = np.asarray(images)
        labels = np.asarray(labels).reshape(-1)
        if images.ndim != 2 or images.shape[1] != N_NEURONS_LI:
            raise ValueError(f"images must have shape (n, {N_NEURONS_LI})")
        if len(images) != len(labels):
            raise ValueError("images and labels differ in length")
        if len(images) == 0:
            raise ValueError("no images to evaluate")
        correct = sum(
            int(np.count_nonzero(
                self._batch_predictions(images[start:start + _ACCURACY_CHUNK])
                == labels[start:start + _ACCURACY_CHUNK]
            ))
            for start in range(0, len(images), _ACCURACY_CHUNK)
        )
        return correct / len(images)