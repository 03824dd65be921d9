"""Numerical verification of the network's analytical gradients."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from mnistopt.network import NeuralNetwork

DEFAULT_EPSILON = 1e-6
DEFAULT_CHECKS_PER_LAYER = 10
_RELATIVE_FLOOR = 1e-10

# Human-readable names of the weight matrices, input layer first.
LAYER_NAMES = ("Input->Layer1", "Layer1->Layer2", "Layer2->Layer3", "Layer3->Output")


@dataclass(frozen=True)
class WeightCheck:
    """Comparison of analytical and numerical gradient for one weight."""

    layer: str
    row: int
    col: int
    analytical: float
    numerical: float

    @property
    def absolute_error(self) -> float:
        return abs(self.numerical - self.analytical)

    @property
    def relative_error(self) -> float:
        return self.absolute_error / (abs(self.analytical) + _RELATIVE_FLOOR)


@dataclass
class GradientCheck:
    """All weight checks made in one verification run."""

    checks: list[WeightCheck] = field(default_factory=list)

    @property
    def average_relative_error(self) -> float:
        if not self.checks:
            raise ValueError("no weights were checked")
        return sum(check.relative_error for check in self.checks) / len(self.checks)

    @property
    def max_relative_error(self) -> float:
        if not self.checks:
            raise ValueError("no weights were checked")
        return max(check.relative_error for check in self.checks)


def _loss_at(network: NeuralNetwork, image, label) -> float:
    network.forward(image)
    return network.xent_loss(label)


def verify_gradients(
    network: NeuralNetwork,
    image,
    label,
    checks_per_layer: int = DEFAULT_CHECKS_PER_LAYER,
    epsilon: float = DEFAULT_EPSILON,
    rng: np.random.Generator | None = None,
) -> GradientCheck:
    """Compare backpropagated gradients with central differences on random weights.

    The accumulated gradients of the network are replaced by the analytical
    gradient for ``image``; every perturbed weight is restored afterwards.
    Layers are checked from the output layer back to the input layer.
    """
    if checks_per_layer < 1:
        raise ValueError("at least one weight per layer must be checked")
    if epsilon <= 0.0:
        raise ValueError("epsilon must be positive")
    if rng is None:
        rng = network.rng

    print("Verifying gradients using numerical differentiation")

    network.zero_gradients()
    network.forward(image)
    network.xent_loss(label)
    network.accumulate(network.backward(image, label))

    result = GradientCheck()
    for name, layer in reversed(list(zip(LAYER_NAMES, network.layers))):
        rows, cols = layer.shape
        for check_index in range(checks_per_layer):
            row = int(rng.integers(rows))
            col = int(rng.integers(cols))
            original = layer.w[row, col]
            try:
                layer.w[row, col] = original + epsilon
                loss_plus = _loss_at(network, image, label)
                layer.w[row, col] = original - epsilon
                loss_minus = _loss_at(network, image, label)
            finally:
                layer.w[row, col] = original

            check = WeightCheck(
                layer=name,
                row=row,
                col=col,
                analytical=float(layer.dw[row, col]),
                numerical=(loss_plus - loss_minus) / (2.0 * epsilon),
            )
            result.checks.append(check)
            if check_index == 0:
                print(
                    f"Sample {name}[{row}][{col}]: Analytical: {check.analytical:.6f}, "
                    f"Numerical: {check.numerical:.6f}, RelErr: {check.relative_error:.6f}"
                )

    print(f"Average relative error: {result.average_relative_error:.6f}")
    print(f"Maximum relative error: {result.max_relative_error:.6f}")
    return result