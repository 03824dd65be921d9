"""Training experiments whose progress is written to CSV result files."""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from mnistopt.mnist import MnistDataset
from mnistopt.network import NeuralNetwork
from mnistopt.optimiser import Method, Optimiser

HEADER = "epoch,iteration,loss,accuracy,learning_rate"
LOG_FREQ = 1000

_Configure = Optional[Callable[[Optimiser], None]]


@dataclass(frozen=True)
class ResultPoint:
    """One row of an experiment's result file."""

    epoch: int
    iteration: int
    loss: float
    accuracy: float
    learning_rate: float

    def to_csv_row(self) -> str:
        return (
            f"{self.epoch},{self.iteration},{self.loss:f},"
            f"{self.accuracy:f},{self.learning_rate:f}"
        )


def init_results_file(filename) -> None:
    """Create (or truncate) a result file holding only the header row."""
    Path(filename).write_text(HEADER + "\n")


def log_result(filename, result: ResultPoint) -> None:
    """Append one result row to ``filename``."""
    with open(filename, "a") as handle:
        handle.write(result.to_csv_row() + "\n")


def _accuracy(network: NeuralNetwork, dataset: MnistDataset) -> float:
    return network.testing_accuracy(dataset.testing_images, dataset.testing_labels)


def run_experiment(
    dataset: MnistDataset,
    filename,
    learning_rate: float,
    batch_size: int,
    epochs: int,
    method,
    momentum: float = 0.0,
    final_lr: float = 0.0,
    beta1: float = 0.9,
    beta2: float = 0.999,
    epsilon: float = 1e-8,
) -> list[ResultPoint]:
    """Train a fresh network, logging mean loss and test accuracy every 1000 samples.

    Returns the points written to ``filename``, the initial one first.
    """
    init_results_file(filename)
    network = NeuralNetwork()
    optimiser = Optimiser(network, learning_rate, batch_size, epochs)
    method = Method(method)
    optimiser.set_method(method, momentum, final_lr)
    if method is Method.ADAM:
        optimiser.set_adam_parameters(beta1, beta2, epsilon)

    n_train = len(dataset.training_images)
    if n_train == 0:
        raise ValueError("training set is empty")
    num_batches = epochs * (n_train // batch_size)

    results: list[ResultPoint] = []

    def record(epoch: int, iteration: int, loss: float) -> None:
        point = ResultPoint(
            epoch=epoch,
            iteration=iteration,
            loss=loss,
            accuracy=_accuracy(network, dataset),
            learning_rate=learning_rate,
        )
        log_result(filename, point)
        results.append(point)

    record(0, 0, 0.0)

    training_sample = 0
    total_iter = 0
    epoch_counter = 0
    log_counter = 0
    mean_loss = 0.0

    for _ in range(num_batches):
        for _ in range(batch_size):
            mean_loss += optimiser.evaluate_objective(dataset, training_sample)
            total_iter += 1
            log_counter += 1
            training_sample += 1

            if log_counter >= LOG_FREQ:
                record(epoch_counter, total_iter, mean_loss / log_counter)
                mean_loss = 0.0
                log_counter = 0

            if training_sample == n_train:
                training_sample = 0
                epoch_counter += 1
                optimiser.update_learning_rate(epoch_counter)

        optimiser.update_parameters(batch_size)

    if log_counter > 0:
        record(epoch_counter, total_iter, mean_loss / log_counter)

    return results


def save_results(filename, accuracy: float, learning_rate: float) -> ResultPoint:
    """Write a result file holding the header and a single final-accuracy row."""
    result = ResultPoint(
        epoch=0, iteration=0, loss=0.0, accuracy=accuracy, learning_rate=learning_rate
    )
    init_results_file(filename)
    log_result(filename, result)
    return result


def _run_configured(
    dataset: MnistDataset,
    method,
    learning_rate: float,
    batch_size: int,
    epochs: int,
    momentum: float,
    final_lr: float,
    output_file,
    configure: _Configure = None,
) -> ResultPoint:
    method = Method(method)
    print(
        f"Running experiment: method={int(method)}, lr={learning_rate:.4f}, "
        f"batch={batch_size}, epochs={epochs}, momentum={momentum:.2f}, final_lr={final_lr:.4f}"
    )
    network = NeuralNetwork()
    optimiser = Optimiser(network, learning_rate, batch_size, epochs)
    optimiser.set_method(method, momentum, final_lr)
    if configure is not None:
        configure(optimiser)
    optimiser.run(dataset)
    return save_results(output_file, _accuracy(network, dataset), optimiser.learning_rate)


def run_single_experiment(
    dataset: MnistDataset,
    method,
    learning_rate: float,
    batch_size: int,
    epochs: int,
    momentum: float,
    final_lr: float,
    output_file,
) -> ResultPoint:
    """Train a fresh network and save its final test accuracy to ``output_file``."""
    return _run_configured(
        dataset, method, learning_rate, batch_size, epochs, momentum, final_lr, output_file
    )


def run_sgd_experiments(dataset: MnistDataset) -> list[str]:
    """Plain SGD over a grid of learning rates and batch sizes; returns the files written."""
    files = []
    for learning_rate, batch_size in itertools.product((0.1, 0.01, 0.001), (1, 10, 100)):
        filename = f"results_sgd_{learning_rate:.3f}_{batch_size}.csv"
        run_single_experiment(dataset, Method.SGD, learning_rate, batch_size, 2, 0.0, 0.0, filename)
        files.append(filename)
    return files


def run_momentum_experiments(dataset: MnistDataset) -> list[str]:
    """SGD with momentum for several momentum values; returns the files written."""
    files = []
    for momentum in (0.5, 0.7, 0.9, 0.95, 0.99):
        filename = f"results_sgd_momentum_{momentum:.2f}.csv"
        run_single_experiment(dataset, Method.SGD_MOMENTUM, 0.1, 10, 5, momentum, 0.0, filename)
        files.append(filename)
    return files


def run_lr_decay_experiments(dataset: MnistDataset) -> list[str]:
    """SGD with linear learning rate decay; returns the files written."""
    configs = ((0.1, 0.001, 5), (0.1, 0.0001, 5), (0.01, 0.001, 5))
    files = []
    for initial_lr, final_lr, epochs in configs:
        filename = f"results_sgd_lr_decay_{initial_lr:.3f}_{final_lr:.3f}.csv"
        run_single_experiment(
            dataset, Method.SGD_LR_DECAY, initial_lr, 10, epochs, 0.0, final_lr, filename
        )
        files.append(filename)
    return files


def run_combined_experiments(dataset: MnistDataset) -> list[str]:
    """SGD with both momentum and learning rate decay; returns the files written."""
    files = []
    for momentum in (0.5, 0.7, 0.9):
        filename = f"results_sgd_momentum_lr_decay_{momentum:.2f}.csv"
        run_single_experiment(
            dataset, Method.SGD_MOMENTUM_LR_DECAY, 0.1, 10, 5, momentum, 0.001, filename
        )
        files.append(filename)
    return files


def run_adam_experiments(dataset: MnistDataset) -> list[str]:
    """Adam over a hyperparameter grid; returns the files written."""
    files = []
    grid = itertools.product(
        (0.8, 0.9, 0.95, 0.99), (0.999, 0.9999), (1e-8, 1e-7, 1e-6), (0.001, 0.0005, 0.0001)
    )
    for beta1, beta2, epsilon, learning_rate in grid:
        filename = (
            f"results_adam_b1{beta1:.2f}_b2{beta2:.4f}_eps{epsilon:.0e}_lr{learning_rate:.4f}.csv"
        )

        def configure(optimiser: Optimiser, b1=beta1, b2=beta2, eps=epsilon) -> None:
            optimiser.set_adam_parameters(b1, b2, eps)

        _run_configured(
            dataset, Method.ADAM, learning_rate, 10, 5, 0.0, 0.0, filename, configure
        )
        files.append(filename)
    return files


def run_rmsprop_experiments(dataset: MnistDataset) -> list[str]:
    """RMSProp over a hyperparameter grid; returns the files written."""
    files = []
    grid = itertools.product((0.8, 0.9, 0.95, 0.99), (1e-8, 1e-7, 1e-6), (0.001, 0.0005, 0.0001))
    for rho, epsilon, learning_rate in grid:
        filename = f"results_rmsprop_rho{rho:.2f}_eps{epsilon:.0e}_lr{learning_rate:.4f}.csv"

        def configure(optimiser: Optimiser, r=rho, eps=epsilon) -> None:
            optimiser.set_rmsprop_parameters(r, eps)

        _run_configured(
            dataset, Method.RMSPROP, learning_rate, 10, 5, 0.0, 0.0, filename, configure
        )
        files.append(filename)
    return files


def run_experiments(dataset: MnistDataset) -> list[str]:
    """Run every experiment series in turn; returns all files written."""
    files = []
    print("Running Part I: Basic SGD experiments...")
    files += run_sgd_experiments(dataset)

    print("\nRunning Part II: Improving convergence experiments...")
    files += run_momentum_experiments(dataset)
    files += run_lr_decay_experiments(dataset)
    files += run_combined_experiments(dataset)

    print("\nRunning Part III: Adaptive learning experiments...")
    files += run_adam_experiments(dataset)
    files += run_rmsprop_experiments(dataset)
    return files