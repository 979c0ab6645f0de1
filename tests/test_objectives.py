import math

import pytest
import torch

from dbn_research.core.exceptions import InvalidDimensionError, PreconditionError
from dbn_research.core.objectives import (
    l2_regularized_coefficient,
    reconstruction_cross_entropy,
    squared_reconstruction_loss,
)


def _manual_cross_entropy(x, layer):
    h = torch.sigmoid(x @ layer.weights + layer.hidden_bias)
    v = torch.sigmoid(h @ layer.weights.t() + layer.visible_bias)
    inner = x * torch.log(v) + (1 - x) * torch.log(1 - v)
    return inner, -inner.sum(dim=1).mean().item()


def test_cross_entropy_without_regularization(make_layer, binary_batch):
    layer = make_layer(6, 4)
    layer.use_regularization = False
    layer.inputs = binary_batch

    _, expected = _manual_cross_entropy(binary_batch, layer)
    assert layer.reconstruction_cross_entropy() == pytest.approx(expected)


def test_cross_entropy_regularized_divides_by_elements_plus_penalty(make_layer, binary_batch):
    layer = make_layer(6, 4)
    layer.use_regularization = True
    layer.l2 = 0.5
    layer.inputs = binary_batch

    inner, unregularized = _manual_cross_entropy(binary_batch, layer)
    penalty = (layer.weights.pow(2).sum().item() / 2.0) * 0.5
    expected = unregularized / (inner.numel() + penalty)

    assert layer.reconstruction_cross_entropy() == pytest.approx(expected)
    # 加算ではなく正規化であること
    assert layer.reconstruction_cross_entropy() != pytest.approx(unregularized + penalty)


def test_cross_entropy_with_zero_weights_is_log_two_per_unit(make_layer):
    layer = make_layer(5, 3, weights=torch.zeros(5, 3, dtype=torch.float64))
    layer.use_regularization = False
    layer.inputs = torch.tensor([[1.0, 0.0, 1.0, 0.0, 1.0], [0.0, 0.0, 0.0, 1.0, 1.0]])

    assert layer.reconstruction_cross_entropy() == pytest.approx(5 * math.log(2))

    layer.use_regularization = True
    assert layer.reconstruction_cross_entropy() == pytest.approx(5 * math.log(2) / 10)


@pytest.mark.parametrize("scale", [1.0, 100.0, 1e4])
def test_cross_entropy_is_finite_at_binary_boundaries(make_layer, scale):
    weights = torch.full((4, 3), scale, dtype=torch.float64)
    layer = make_layer(4, 3, weights=weights)
    layer.use_regularization = False
    layer.inputs = torch.tensor([[0.0, 0.0, 0.0, 0.0], [1.0, 1.0, 1.0, 1.0], [1.0, 0.0, 1.0, 0.0]])

    value = layer.reconstruction_cross_entropy()

    assert math.isfinite(value)
    assert value >= 0.0


def test_squared_loss_of_identity_reconstruction_is_zero(identity_layer_cls, make_layer, binary_batch):
    layer = make_layer(6, 4, cls=identity_layer_cls)
    layer.use_regularization = False
    layer.inputs = binary_batch

    assert layer.squared_loss() == 0.0


def test_squared_loss_is_negated_score(identity_layer_cls, make_layer, binary_batch):
    layer = make_layer(6, 4, cls=identity_layer_cls)
    layer.use_regularization = True
    layer.l2 = 0.1
    layer.inputs = binary_batch

    expected = -(0.5 * 0.1 * layer.weights.pow(2).sum().item())
    value = layer.squared_loss()

    assert value == pytest.approx(expected)
    # 正則化ペナルティはスコアを下げる方向 (負) に効く
    assert value < 0.0


def test_squared_loss_uses_reconstruct(make_layer, binary_batch):
    layer = make_layer(6, 4)
    layer.use_regularization = False
    layer.inputs = binary_batch

    reconstructed = layer.reconstruct(binary_batch)
    expected = -((reconstructed - binary_batch).pow(2).sum().item() / binary_batch.shape[0])
    assert layer.squared_loss() == pytest.approx(expected)
    assert layer.loss_function() == pytest.approx(layer.reconstruction_cross_entropy())


def test_losses_require_input(make_layer):
    layer = make_layer(4, 3)
    with pytest.raises(PreconditionError):
        layer.reconstruction_cross_entropy()
    with pytest.raises(PreconditionError):
        layer.squared_loss()


def test_input_columns_must_match_visible_units(make_layer):
    layer = make_layer(4, 3)
    with pytest.raises(InvalidDimensionError):
        layer.inputs = torch.zeros(2, 5)


def test_l2_coefficient(make_layer):
    layer = make_layer(2, 2, weights=torch.tensor([[1.0, 2.0], [3.0, 4.0]], dtype=torch.float64))
    layer.l2 = 0.2
    assert layer.l2_regularized_coefficient() == pytest.approx(30.0 / 2.0 * 0.2)
    assert l2_regularized_coefficient(layer.weights, 1.0) == pytest.approx(15.0)


def test_empty_batch_is_rejected(make_layer):
    layer = make_layer(4, 3)
    with pytest.raises(InvalidDimensionError):
        layer.inputs = torch.zeros(0, 4)
    assert layer.inputs is None


def test_objective_helpers_reject_empty_batch(make_layer):
    layer = make_layer(4, 3)
    empty = torch.zeros(0, 4, dtype=torch.float64)
    with pytest.raises(InvalidDimensionError):
        reconstruction_cross_entropy(empty, layer.params)
    with pytest.raises(InvalidDimensionError):
        squared_reconstruction_loss(empty, empty, layer.weights)


def test_train_on_empty_batch_is_rejected(make_layer):
    layer = make_layer(4, 3)
    before = layer.weights.clone()
    with pytest.raises(InvalidDimensionError):
        layer.train(torch.zeros(0, 4), 0.1)
    assert torch.equal(layer.weights, before)
