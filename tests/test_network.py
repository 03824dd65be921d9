import math

import numpy as np
import pytest

from mnistopt.network import (
    LAYER_SIZES,
    LayerWeights,
    NeuralNetwork,
    glorot_limit,
)


@pytest.fixture
def network():
    return NeuralNetwork(seed=1234)


@pytest.fixture
def image():
    rng = np.random.default_rng(7)
    return rng.integers(0, 256, size=784, dtype=np.uint8)


def _loss_at(network, image, label, layer, i, j, value):
    original = network.layers[layer].w[i, j]
    network.layers[layer].w[i, j] = value
    network.forward(image)
    loss = network.xent_loss(label)
    network.layers[layer].w[i, j] = original
    return loss


def test_glorot_limit_equal_fan():
    assert glorot_limit(3, 3) == pytest.approx(1.0)


def test_glorot_limit_rejects_empty_layer():
    with pytest.raises(ValueError):
        glorot_limit(0, 0)


def test_layer_weights_random_within_limit():
    rng = np.random.default_rng(0)
    layer = LayerWeights.random(784, 300, rng)
    limit = glorot_limit(784, 300)
    assert layer.shape == (784, 300)
    assert np.all(np.abs(layer.w) <= limit)
    assert not np.any(layer.dw)
    assert not np.any(layer.v)
    assert not np.any(layer.m)
    assert not np.any(layer.v_adam)


def test_layer_weights_rejects_mismatched_state():
    with pytest.raises(ValueError):
        LayerWeights(w=np.zeros((2, 3)), dw=np.zeros((3, 2)))


def test_network_layer_shapes(network):
    shapes = [layer.shape for layer in network.layers]
    assert shapes == list(zip(LAYER_SIZES[:-1], LAYER_SIZES[1:]))


def test_same_seed_same_weights():
    a = NeuralNetwork(seed=5)
    b = NeuralNetwork(seed=5)
    assert all(np.array_equal(x.w, y.w) for x, y in zip(a.layers, b.layers))


def test_different_seed_different_weights():
    a = NeuralNetwork(seed=5)
    b = NeuralNetwork(seed=6)
    assert a.layers[0].shape == b.layers[0].shape
    assert not np.array_equal(a.layers[0].w, b.layers[0].w)


def test_forward_gives_distribution(network, image):
    probs = network.forward(image)
    assert probs.shape == (10,)
    assert np.all(probs >= 0.0)
    assert probs.sum() == pytest.approx(1.0)


def test_forward_rejects_wrong_size(network):
    with pytest.raises(ValueError):
        network.forward(np.zeros(10, dtype=np.uint8))


def test_zero_image_gives_uniform_output(network):
    probs = network.forward(np.zeros(784, dtype=np.uint8))
    assert np.allclose(probs, 0.1)
    assert network.xent_loss(3) == pytest.approx(math.log(10))


def test_xent_loss_matches_probability(network, image):
    probs = network.forward(image)
    for label in range(10):
        loss = network.xent_loss(label)
        assert loss >= 0.0
        assert math.exp(-loss) == pytest.approx(probs[label])


def test_xent_loss_rejects_bad_label(network, image):
    network.forward(image)
    with pytest.raises(ValueError):
        network.xent_loss(10)


def test_backward_before_forward_raises(image):
    fresh = NeuralNetwork(seed=3)
    with pytest.raises(RuntimeError):
        fresh.backward(image, 0)


def test_backward_shapes(network, image):
    network.forward(image)
    gradients = network.backward(image, 4)
    assert [g.shape for g in gradients] == [layer.shape for layer in network.layers]


def test_output_gradient_rows_sum_to_zero(network, image):
    network.forward(image)
    gradients = network.backward(image, 2)
    assert np.allclose(gradients[-1].sum(axis=1), 0.0, atol=1e-12)


def test_zero_image_has_zero_input_gradient(network):
    blank = np.zeros(784, dtype=np.uint8)
    network.forward(blank)
    gradients = network.backward(blank, 1)
    assert gradients[0].shape == (784, 300)
    assert np.count_nonzero(gradients[0]) == 0
    assert np.array_equal(gradients[0], np.zeros((784, 300)))


@pytest.mark.parametrize("layer", [0, 1, 2, 3])
def test_backward_matches_finite_differences(network, image, layer):
    label = 6
    network.forward(image)
    gradients = network.backward(image, label)
    grad = gradients[layer]
    flat = np.argsort(np.abs(grad), axis=None)[-3:]
    eps = 1e-6
    for index in flat:
        i, j = np.unravel_index(index, grad.shape)
        w = network.layers[layer].w[i, j]
        plus = _loss_at(network, image, label, layer, i, j, w + eps)
        minus = _loss_at(network, image, label, layer, i, j, w - eps)
        numerical = (plus - minus) / (2 * eps)
        assert numerical == pytest.approx(grad[i, j], rel=1e-4, abs=1e-7)


def test_accumulate_and_zero(network, image):
    network.forward(image)
    gradients = network.backward(image, 0)
    network.accumulate(gradients)
    network.accumulate(gradients)
    assert np.allclose(network.layers[3].dw, 2 * gradients[3])
    network.zero_gradients()
    assert all(not np.any(layer.dw) for layer in network.layers)


def test_accumulate_rejects_wrong_count(network):
    with pytest.raises(ValueError):
        network.accumulate([np.zeros((784, 300))])


def test_objective_accumulates_backward(network, image):
    loss = network.objective(image, 8)
    assert loss == pytest.approx(network.xent_loss(8))
    expected = network.backward(image, 8)
    for layer, gradient in zip(network.layers, expected):
        assert np.allclose(layer.dw, gradient)


def test_predict_is_argmax(network, image):
    probs = network.forward(image)
    assert network.predict(image) == int(np.argmax(probs))


def test_testing_accuracy_perfect_and_bounds(network):
    rng = np.random.default_rng(11)
    images = rng.integers(0, 256, size=(20, 784), dtype=np.uint8)
    predictions = np.array([network.predict(img) for img in images], dtype=np.uint8)
    assert network.testing_accuracy(images, predictions) == 1.0
    shifted = (predictions + 1) % 10
    assert network.testing_accuracy(images, shifted) == 0.0


def test_testing_accuracy_rejects_mismatch(network):
    with pytest.raises(ValueError):
        network.testing_accuracy(np.zeros((3, 784)), np.zeros(2))