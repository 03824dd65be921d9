"""Loading of the MNIST handwritten digit dataset from IDX files."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from pathlib import Path

import numpy as np

N_TRAINING_SET = 60000
N_TESTING_SET = 10000
PIXEL_DIM = 28
PIXEL_DIM_FLAT = PIXEL_DIM * PIXEL_DIM

TRAINING_IMAGES_FILE = "train-images-idx3-ubyte"
TRAINING_LABELS_FILE = "train-labels-idx1-ubyte"
TESTING_IMAGES_FILE = "t10k-images-idx3-ubyte"
TESTING_LABELS_FILE = "t10k-labels-idx1-ubyte"

_IMAGE_DIMS = 3
_LABEL_DIMS = 1


@dataclass(frozen=True)
class IdxHeader:
    """Header of an IDX file: the magic number and the size of each dimension."""

    magic: int
    dims: tuple[int, ...]

    @property
    def size(self) -> int:
        """Number of bytes the header occupies."""
        return 4 * (1 + len(self.dims))

    @property
    def set_size(self) -> int:
        """Number of items the file declares."""
        return self.dims[0]


@dataclass
class MnistDataset:
    """Training and testing images (one flattened row per image) with their labels."""

    training_images: np.ndarray
    training_labels: np.ndarray
    testing_images: np.ndarray
    testing_labels: np.ndarray


def read_idx_header(data: bytes, dims: int) -> IdxHeader:
    """Parse the big-endian magic number and ``dims`` dimension sizes from ``data``."""
    if dims < 0:
        raise ValueError("number of dimensions must not be negative")
    needed = 4 * (1 + dims)
    if len(data) < needed:
        raise ValueError(f"IDX header needs {needed} bytes, got {len(data)}")
    magic, *sizes = struct.unpack_from(f">{1 + dims}I", data)
    return IdxHeader(magic=magic, dims=tuple(sizes))


def _print_header(header: IdxHeader, labels: tuple[str, ...]) -> None:
    print(f"Magic number: {header.magic}")
    for name, value in zip(labels, header.dims):
        print(f"{name}: {value}")


def _read_body(path: Path, dims: int, item_size: int, count: int) -> tuple[IdxHeader, np.ndarray]:
    data = Path(path).read_bytes()
    header = read_idx_header(data, dims)
    start = header.size
    needed = count * item_size
    body = data[start:start + needed]
    if len(body) < needed:
        raise ValueError(
            f"{path}: expected {needed} bytes of data after the header, found {len(body)}"
        )
    return header, np.frombuffer(body, dtype=np.uint8).copy()


def load_images(path, count: int) -> np.ndarray:
    """Read ``count`` images from an IDX3 file as a ``(count, 784)`` uint8 array."""
    header, pixels = _read_body(Path(path), _IMAGE_DIMS, PIXEL_DIM_FLAT, count)
    _print_header(header, ("Set size", "x_dim", "y_dim"))
    return pixels.reshape(count, PIXEL_DIM_FLAT)


def load_labels(path, count: int) -> np.ndarray:
    """Read ``count`` labels from an IDX1 file as a uint8 array."""
    header, labels = _read_body(Path(path), _LABEL_DIMS, 1, count)
    _print_header(header, ("Set size",))
    return labels


def format_example(images: np.ndarray, n: int) -> str:
    """Render image ``n`` as a 28x28 grid of right-aligned pixel values."""
    grid = np.asarray(images[n]).reshape(PIXEL_DIM, PIXEL_DIM)
    rows = ("".join(f"{int(value):3d} " for value in row) + "\n" for row in grid)
    return "".join(rows) + "\n"


def load_dataset(path, print_samples: bool = False) -> MnistDataset:
    """Load the four MNIST files found in directory ``path``."""
    root = Path(path)

    print("Loading training set...")
    training_images = load_images(root / TRAINING_IMAGES_FILE, N_TRAINING_SET)
    print("Training set loaded successfully...")

    print("\nLoading training set labels...")
    training_labels = load_labels(root / TRAINING_LABELS_FILE, N_TRAINING_SET)
    print("Training set labels loaded successfully...")

    print("\nLoading testing set...")
    testing_images = load_images(root / TESTING_IMAGES_FILE, N_TESTING_SET)
    print("Testing set loaded successfully...")

    print("\nLoading testing set labels...")
    testing_labels = load_labels(root / TESTING_LABELS_FILE, N_TESTING_SET)
    print("Testing set labels loaded successfully...\n")

    dataset = MnistDataset(
        training_images=training_images,
        training_labels=training_labels,
        testing_images=testing_images,
        testing_labels=testing_labels,
    )

    if print_samples:
        for images, labels in (
            (training_images, training_labels),
            (testing_images, testing_labels),
        ):
            for i in range(3):
                print(f"label: {int(labels[i])} ")
                print(format_example(images, i), end="")

    return dataset