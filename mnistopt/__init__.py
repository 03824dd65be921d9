"""Train a fully connected network on MNIST digits and compare optimisers."""

__version__ = "0.1.0"