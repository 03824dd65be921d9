"""Mini-batch training of the network with SGD, momentum, decay, Adam and RMSProp."""

from __future__ import annotations

import enum
import time
from dataclasses import dataclass

import numpy as np

from mnistopt.mnist import N_TRAINING_SET, MnistDataset
from mnistopt.network import NeuralNetwork

DEFAULT_LOG_FREQ = 30000


class Method(enum.IntEnum):
    """Parameter update rule used after each mini-batch."""

    SGD = 0
    SGD_MOMENTUM = 1
    SGD_LR_DECAY = 2
    SGD_MOMENTUM_LR_DECAY = 3
    ADAM = 4
    RMSPROP = 5


_DECAY_METHODS = (Method.SGD_LR_DECAY, Method.SGD_MOMENTUM_LR_DECAY)
_MOMENTUM_METHODS = (Method.SGD_MOMENTUM, Method.SGD_MOMENTUM_LR_DECAY)
_PLAIN_METHODS = (Method.SGD, Method.SGD_LR_DECAY)


@dataclass(frozen=True)
class TrainingStats:
    """One progress report made during training."""

    epoch: int
    iteration: int
    mean_loss: float
    test_accuracy: float
    learning_rate: float
    elapsed: float


class Optimiser:
    """Trains a :class:`NeuralNetwork` on the training part of an MNIST dataset."""

    def __init__(self, network: NeuralNetwork, learning_rate: float, batch_size: int, epochs: int) -> None:
        if batch_size <= 0:
            raise ValueError("batch size must be positive")
        if epochs < 0:
            raise ValueError("number of epochs must not be negative")
        self.network = network
        self.learning_rate = float(learning_rate)
        self.initial_learning_rate = float(learning_rate)
        self.batch_size = int(batch_size)
        self.epochs = int(epochs)

        self.method = Method.SGD
        self.momentum = 0.0
        self.final_learning_rate = 0.0

        self.beta1 = 0.9
        self.beta2 = 0.999
        self.epsilon = 1e-8
        self.t = 0

        self.rho = 0.9
        self.rmsprop_epsilon = 1e-8

        self.log_freq = DEFAULT_LOG_FREQ
        self.total_training_time = 0.0
        self.epoch_times: list[float] = []
        self._mark = time.monotonic()

        print(
            "Optimising with parameters: \n"
            f"\tepochs = {self.epochs} \n"
            f"\tbatch_size = {self.batch_size} \n"
            f"\tnum_batches = {self.num_batches}\n"
            f"\tlearning_rate = {self.learning_rate:f}\n"
        )

    @property
    def num_batches(self) -> int:
        """Number of mini-batches over the full MNIST training set."""
        return self.epochs * (N_TRAINING_SET // self.batch_size)

    def set_method(self, method, momentum: float = 0.0, final_lr: float = 0.0) -> None:
        """Choose the update rule, its momentum and the final decayed learning rate."""
        self.method = Method(method)
        self.momentum = float(momentum)
        self.final_learning_rate = float(final_lr)

        descriptions = {
            Method.SGD: "SGD (basic)",
            Method.SGD_MOMENTUM: f"SGD with Momentum (alpha={self.momentum:.4f})",
            Method.SGD_LR_DECAY: (
                "SGD with Learning Rate Decay "
                f"(initial={self.learning_rate:.4f}, final={self.final_learning_rate:.4f})"
            ),
            Method.SGD_MOMENTUM_LR_DECAY: (
                "SGD with Momentum and Learning Rate Decay "
                f"(momentum={self.momentum:.4f}, initial_lr={self.learning_rate:.4f}, "
                f"final_lr={self.final_learning_rate:.4f})"
            ),
            Method.ADAM: (
                f"Adam (beta1={self.beta1:.4f}, beta2={self.beta2:.4f}, epsilon={self.epsilon:.8f})"
            ),
            Method.RMSPROP: f"RMSProp (rho={self.rho:.4f}, epsilon={self.rmsprop_epsilon:.8f})",
        }
        print(f"Setting optimization method: {descriptions[self.method]}")

    def set_adam_parameters(self, beta1: float, beta2: float, epsilon: float) -> None:
        """Set the Adam moment decay rates and the stabilising constant."""
        self.beta1 = float(beta1)
        self.beta2 = float(beta2)
        self.epsilon = float(epsilon)
        print(
            f"Adam parameters set: beta1={self.beta1:.4f}, beta2={self.beta2:.4f}, "
            f"epsilon={self.epsilon:.8f}"
        )

    def set_rmsprop_parameters(self, rho: float, epsilon: float) -> None:
        """Set the RMSProp decay rate and the stabilising constant."""
        self.rho = float(rho)
        self.rmsprop_epsilon = float(epsilon)
        print(f"RMSProp parameters set: rho={self.rho:.4f}, epsilon={self.rmsprop_epsilon:.8f}")

    def update_learning_rate(self, epoch: int) -> None:
        """Linearly interpolate the learning rate towards the final one (decay methods only)."""
        if self.method not in _DECAY_METHODS:
            return
        if self.epochs == 0:
            raise ValueError("learning rate decay needs at least one epoch")
        alpha = epoch / self.epochs
        self.learning_rate = (
            self.initial_learning_rate * (1.0 - alpha) + self.final_learning_rate * alpha
        )

    def update_parameters(self, batch_size: int) -> None:
        """Apply the accumulated gradients with the chosen rule, then clear them."""
        if batch_size <= 0:
            raise ValueError("batch size must be positive")
        lr = self.learning_rate / batch_size
        layers = self.network.layers

        if self.method in _PLAIN_METHODS:
            for layer in layers:
                layer.w -= lr * layer.dw
        elif self.method in _MOMENTUM_METHODS:
            for layer in layers:
                layer.v = self.momentum * layer.v - lr * layer.dw
                layer.w += layer.v
        elif self.method is Method.ADAM:
            self.t += 1
            bc1 = 1.0 - self.beta1 ** self.t
            bc2 = 1.0 - self.beta2 ** self.t
            for layer in layers:
                layer.m = self.beta1 * layer.m + (1.0 - self.beta1) * layer.dw
                layer.v_adam = self.beta2 * layer.v_adam + (1.0 - self.beta2) * layer.dw ** 2
                m_hat = layer.m / bc1
                v_hat = layer.v_adam / bc2
                layer.w -= lr * m_hat / (np.sqrt(v_hat) + self.epsilon)
        else:
            for layer in layers:
                layer.v = self.rho * layer.v + (1.0 - self.rho) * layer.dw * layer.dw
                layer.w -= lr * layer.dw / (np.sqrt(layer.v) + self.rmsprop_epsilon)

        self.network.zero_gradients()

    def evaluate_objective(self, dataset: MnistDataset, sample: int) -> float:
        """Loss on one training sample; its gradient is added to the network's."""
        return self.network.objective(
            dataset.training_images[sample], dataset.training_labels[sample]
        )

    def _report(self, dataset: MnistDataset, epoch: int, iteration: int, mean_loss: float) -> TrainingStats:
        accuracy = self.network.testing_accuracy(dataset.testing_images, dataset.testing_labels)
        now = time.monotonic()
        elapsed = now - self._mark
        self.epoch_times.append(elapsed)
        self.total_training_time += elapsed
        print(
            f"Epoch: {epoch},  Total iter: {iteration},  Mean Loss: {mean_loss:0.12f},  "
            f"Test Acc: {accuracy:f},  LR: {self.learning_rate:f},  Time: {elapsed:.2f}s"
        )
        self._mark = time.monotonic()
        return TrainingStats(
            epoch=epoch,
            iteration=iteration,
            mean_loss=mean_loss,
            test_accuracy=accuracy,
            learning_rate=self.learning_rate,
            elapsed=elapsed,
        )

    def run(self, dataset: MnistDataset) -> list[TrainingStats]:
        """Train for the configured epochs and return the progress reports made."""
        n_train = len(dataset.training_images)
        if n_train == 0:
            raise ValueError("training set is empty")
        if len(dataset.training_labels) != n_train:
            raise ValueError("training images and labels differ in length")
        num_batches = self.epochs * (n_train // self.batch_size)

        stats: list[TrainingStats] = []
        training_sample = 0
        total_iter = 0
        epoch_counter = 0
        mean_loss = 0.0
        self._mark = time.monotonic()

        for _ in range(num_batches):
            for _ in range(self.batch_size):
                if total_iter % self.log_freq == 0:
                    if total_iter > 0:
                        mean_loss /= self.log_freq
                    stats.append(self._report(dataset, epoch_counter, total_iter, mean_loss))
                    mean_loss = 0.0

                mean_loss += self.evaluate_objective(dataset, training_sample)
                total_iter += 1
                training_sample += 1
                if training_sample == n_train:
                    training_sample = 0
                    epoch_counter += 1
                    self.update_learning_rate(epoch_counter)

            self.update_parameters(self.batch_size)

        stats.append(self._report(dataset, epoch_counter, total_iter, mean_loss / self.log_freq))

        print("\nTraining Summary:")
        print(f"Total training time: {self.total_training_time:.2f}s")
        if epoch_counter:
            print(f"Average epoch time: {self.total_training_time / epoch_counter:.2f}s")
        if num_batches:
            print(f"Time per batch: {self.total_training_time * 1000 / num_batches:.2f}ms")
        return stats