import pytest
import torch

from dbn_research.core.exceptions import InvalidDimensionError
from dbn_research.learning_rules.adagrad import AdaGrad


def test_first_step_scales_by_gradient_magnitude():
    tracker = AdaGrad(2, 2, master_step_size=0.1)
    gradient = torch.tensor([[1.0, -2.0], [0.5, 4.0]], dtype=torch.float64)

    rates = tracker.get_learning_rates(gradient)

    expected = 0.1 / (gradient.abs() + tracker.fudge_factor)
    assert torch.allclose(rates, expected)
    assert tracker.num_iterations == 1


def test_history_accumulates_squared_gradients():
    tracker = AdaGrad(1, 3)
    g1 = torch.tensor([[1.0, 2.0, 3.0]], dtype=torch.float64)
    g2 = torch.tensor([[2.0, 0.0, -1.0]], dtype=torch.float64)

    tracker.get_learning_rates(g1)
    rates = tracker.get_learning_rates(g2)

    history = g1.pow(2) + g2.pow(2)
    assert torch.allclose(tracker.historical_gradient, history)
    assert torch.allclose(rates, tracker.master_step_size / (history.sqrt() + tracker.fudge_factor))


def test_rates_shrink_with_repeated_gradients():
    tracker = AdaGrad(2, 2)
    gradient = torch.ones(2, 2, dtype=torch.float64)
    first = tracker.get_learning_rates(gradient)
    second = tracker.get_learning_rates(gradient)
    assert torch.all(second < first)


def test_zero_gradient_is_finite():
    tracker = AdaGrad(2, 2)
    rates = tracker.get_learning_rates(torch.zeros(2, 2, dtype=torch.float64))
    assert torch.all(torch.isfinite(rates))


def test_adjust_multiplies_gradient():
    tracker = AdaGrad(1, 2, master_step_size=0.5)
    gradient = torch.tensor([[2.0, -4.0]], dtype=torch.float64)
    step = tracker.adjust(gradient)
    expected = 0.5 / (gradient.abs() + tracker.fudge_factor) * gradient
    assert torch.allclose(step, expected)


def test_shape_mismatch_rejected():
    tracker = AdaGrad(2, 3)
    with pytest.raises(InvalidDimensionError):
        tracker.get_learning_rates(torch.zeros(3, 2))


def test_invalid_tracker_shape():
    with pytest.raises(InvalidDimensionError):
        AdaGrad(0, 3)


def test_learning_rate_decay_is_floored():
    tracker = AdaGrad(1, 1, master_step_size=1e-3, decay_lr=True, lr_decay=0.5, min_learning_rate=4e-4)
    gradient = torch.ones(1, 1, dtype=torch.float64)

    tracker.get_learning_rates(gradient)
    assert tracker.master_step_size == pytest.approx(5e-4)
    tracker.get_learning_rates(gradient)
    assert tracker.master_step_size == pytest.approx(4e-4)


def test_state_dict_restores_history():
    tracker = AdaGrad(2, 2)
    tracker.get_learning_rates(torch.full((2, 2), 3.0, dtype=torch.float64))

    restored = AdaGrad.from_state_dict(tracker.state_dict())

    assert restored.shape == (2, 2)
    assert restored.num_iterations == 1
    assert torch.equal(restored.historical_gradient, tracker.historical_gradient)
    assert restored.historical_gradient is not tracker.historical_gradient
