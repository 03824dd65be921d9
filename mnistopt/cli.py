"""Command line entry point: train the network or run the experiment series."""

from __future__ import annotations

import re
import sys
from collections import deque
from dataclasses import dataclass

from mnistopt.experiments import run_experiments
from mnistopt.gradcheck import verify_gradients
from mnistopt.mnist import load_dataset
from mnistopt.network import NeuralNetwork
from mnistopt.optimiser import Method, Optimiser

PROGRAM = "mnistopt"
_BANNER = "*" * 80
_INT = re.compile(r"\s*[+-]?\d+")
_FLOAT = re.compile(r"\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


class UsageError(Exception):
    """The command line could not be understood."""


@dataclass
class Options:
    """Settings taken from the command line."""

    dataset: str
    learning_rate: float
    batch_size: int
    epochs: int
    verify_gradients: bool = False
    method: Method = Method.SGD
    momentum: float = 0.9
    final_lr: float = 0.001
    beta1: float = 0.9
    beta2: float = 0.999
    epsilon: float = 1e-8
    rho: float = 0.9
    run_experiments: bool = False


def _atoi(text: str) -> int:
    match = _INT.match(text)
    return int(match.group()) if match else 0


def _atof(text: str) -> float:
    match = _FLOAT.match(text)
    return float(match.group()) if match else 0.0


def _method(text: str) -> Method:
    value = _atoi(text)
    if not 0 <= value <= 5:
        raise UsageError("invalid optimization method")
    return Method(value)


_VALUE_OPTIONS = {
    "-v": ("verify_gradients", lambda text: _atoi(text) != 0),
    "-m": ("method", _method),
    "-momentum": ("momentum", _atof),
    "-final_lr": ("final_lr", _atof),
    "-beta1": ("beta1", _atof),
    "-beta2": ("beta2", _atof),
    "-epsilon": ("epsilon", _atof),
    "-rho": ("rho", _atof),
}


def usage(program: str = PROGRAM) -> str:
    """Help text describing the arguments and options."""
    return (
        f"usage: {program} <path_to_dataset> <learning_rate> <batch_size> <total_epochs> [options]\n"
        "Options:\n"
        "  -v 1                        Enable gradient verification\n"
        "  -m <method>                 Optimization method (0=SGD, 1=SGD_MOMENTUM, 2=SGD_LR_DECAY,\n"
        "                                                   3=SGD_MOMENTUM_LR_DECAY, 4=ADAM, 5=RMSPROP)\n"
        "  -momentum <value>           Momentum parameter (default: 0.9)\n"
        "  -final_lr <value>           Final learning rate for decay (default: 0.001)\n"
        "  -beta1 <value>              Beta1 for Adam (default: 0.9)\n"
        "  -beta2 <value>              Beta2 for Adam (default: 0.999)\n"
        "  -epsilon <value>            Epsilon for Adam/RMSProp (default: 1e-8)\n"
        "  -rho <value>                Decay rate for RMSProp (default: 0.9)\n"
        "  -run_experiments            Run all experiments for analysis\n"
    )


def parse_args(argv) -> Options:
    """Parse the arguments that follow the program name."""
    args = list(argv)
    if len(args) < 4:
        raise UsageError("incorrect number of arguments")
    path, lr_text, batch_text, epochs_text, *rest = args
    options = Options(
        dataset=path,
        learning_rate=_atof(lr_text),
        batch_size=_atoi(batch_text),
        epochs=_atoi(epochs_text),
    )

    pending = deque(rest)
    while pending:
        arg = pending.popleft()
        if arg in _VALUE_OPTIONS and pending:
            name, convert = _VALUE_OPTIONS[arg]
            setattr(options, name, convert(pending.popleft()))
        elif arg == "-run_experiments":
            options.run_experiments = True
        else:
            raise UsageError(f"unknown parameter: {arg}")

    if (
        not options.dataset
        or options.learning_rate == 0.0
        or options.batch_size <= 0
        or options.epochs <= 0
    ):
        raise UsageError("invalid argument")
    return options


def _section(title: str) -> None:
    print(_BANNER)
    print(title)
    print(_BANNER)


def main(argv=None) -> int:
    """Run the command; returns the exit status."""
    if argv is None:
        argv = sys.argv[1:]
    try:
        options = parse_args(argv)
    except UsageError as error:
        print(f"ERROR: {error}")
        print(usage(PROGRAM), end="")
        return 0

    _section("Initialising Dataset... ")
    dataset = load_dataset(options.dataset, False)

    if options.run_experiments:
        _section("Running all experiments for analysis...")
        run_experiments(dataset)
        _section("All experiments completed. Run analyze_results.py to generate plots.")
        return 0

    _section("Initialising neural network... ")
    network = NeuralNetwork()

    if options.verify_gradients:
        _section("Verifying gradients...")
        sample = int(network.rng.integers(len(dataset.training_images)))
        print(f"Checking training sample {sample}")
        verify_gradients(
            network, dataset.training_images[sample], dataset.training_labels[sample]
        )

    _section("Initialising optimiser...")
    optimiser = Optimiser(network, options.learning_rate, options.batch_size, options.epochs)

    _section("Setting optimization method...")
    optimiser.set_method(options.method, options.momentum, options.final_lr)
    if options.method is Method.ADAM:
        optimiser.set_adam_parameters(options.beta1, options.beta2, options.epsilon)
    elif options.method is Method.RMSPROP:
        optimiser.set_rmsprop_parameters(options.rho, options.epsilon)

    _section("Performing training optimisation...")
    optimiser.run(dataset)

    _section("Program complete... ")
    return 0


if __name__ == "__main__":
    sys.exit(main())