import pytest
import torch

from dbn_research.core.distributions import create_random_source
from dbn_research.core.exceptions import InvalidDimensionError
from dbn_research.layers.autoencoder import AutoEncoderLayer


def _randomize_biases(layer, seed):
    generator = torch.Generator().manual_seed(seed)
    layer.hidden_bias = torch.randn(layer.num_hidden, generator=generator, dtype=torch.float64)
    layer.visible_bias = torch.randn(layer.num_visible, generator=generator, dtype=torch.float64)


@pytest.mark.parametrize("use_regularization", [True, False])
@pytest.mark.parametrize("batch_size", [1, 3, 10])
def test_merge_with_self_is_noop(make_layer, use_regularization, batch_size):
    layer = make_layer(5, 4)
    _randomize_biases(layer, 1)
    layer.use_regularization = use_regularization
    before = layer.params.clone()

    layer.merge(layer, batch_size)

    assert torch.equal(layer.weights, before.weights)
    assert torch.equal(layer.hidden_bias, before.hidden_bias)
    assert torch.equal(layer.visible_bias, before.visible_bias)


def test_regularized_merge_divides_by_batch_size(make_layer):
    layer = make_layer(5, 4, seed=1)
    peer = make_layer(5, 4, seed=2)
    _randomize_biases(peer, 3)
    layer.use_regularization = True
    original = layer.params.clone()

    layer.merge(peer, 10)

    assert torch.allclose(layer.weights, original.weights + (peer.weights - original.weights) / 10)
    assert torch.allclose(layer.hidden_bias, original.hidden_bias + (peer.hidden_bias - original.hidden_bias) / 10)
    assert torch.allclose(layer.visible_bias, original.visible_bias + (peer.visible_bias - original.visible_bias) / 10)


def test_unregularized_merge_takes_full_delta(make_layer):
    layer = make_layer(3, 2, seed=1)
    peer = make_layer(3, 2, seed=2)
    layer.use_regularization = False

    layer.merge(peer, 10)

    assert torch.allclose(layer.weights, peer.weights)


def test_regularized_merge_at_batch_size_one_matches_unregularized():
    peer = AutoEncoderLayer(None, 4, 3, random_source=create_random_source(9))
    _randomize_biases(peer, 4)
    regularized = AutoEncoderLayer(None, 4, 3, random_source=create_random_source(5))
    plain = regularized.duplicate()
    regularized.use_regularization = True
    plain.use_regularization = False

    regularized.merge(peer, 1)
    plain.merge(peer, 1)

    assert torch.allclose(regularized.weights, plain.weights)
    assert torch.allclose(regularized.hidden_bias, plain.hidden_bias)
    assert torch.allclose(regularized.visible_bias, plain.visible_bias)


def test_merge_does_not_modify_peer(make_layer):
    layer = make_layer(4, 3, seed=1)
    peer = make_layer(4, 3, seed=2)
    snapshot = peer.params.clone()

    layer.merge(peer, 4)

    assert torch.equal(peer.weights, snapshot.weights)
    assert torch.equal(peer.hidden_bias, snapshot.hidden_bias)
    assert torch.equal(peer.visible_bias, snapshot.visible_bias)


@pytest.mark.parametrize("batch_size", [0, -3, 2.5, True])
def test_merge_rejects_invalid_batch_size(make_layer, batch_size):
    layer = make_layer(4, 3)
    with pytest.raises(ValueError):
        layer.merge(make_layer(4, 3, seed=8), batch_size)


def test_merge_shape_mismatch_leaves_layer_untouched(make_layer):
    layer = make_layer(4, 3)
    before = layer.params.clone()

    with pytest.raises(InvalidDimensionError):
        layer.merge(make_layer(3, 4), 2)

    assert torch.equal(layer.weights, before.weights)


def test_update_copies_full_state(make_layer):
    target = make_layer(4, 3, seed=1)
    source = make_layer(6, 2, seed=2)
    source.l2 = 0.7
    source.use_regularization = False
    source.momentum = 0.9
    source.sparsity = 0.2

    target.update(source)

    assert (target.num_visible, target.num_hidden) == (6, 2)
    assert target.weights is source.weights
    assert target.hidden_bias is source.hidden_bias
    assert target.visible_bias is source.visible_bias
    assert target.l2 == 0.7
    assert target.use_regularization is False
    assert target.momentum == 0.9
    assert target.sparsity == 0.2
    assert target.random_source is source.random_source
    assert target.adagrad is source.adagrad


def test_update_drops_input_with_stale_width(make_layer):
    target = make_layer(4, 3)
    target.inputs = torch.ones(2, 4)
    target.update(make_layer(6, 3))
    assert target.inputs is None
