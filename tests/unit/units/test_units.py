"""Unit tests for the built-in processing units and their registry."""

import numpy as np
import pytest

from dagnet.core.graph.buffer import Buffer
from dagnet.units import (
    AccuracyUnit,
    ConcatenateUnit,
    ErrorUnit,
    FullyConnectedUnit,
    ReLUUnit,
    SigmoidUnit,
    SumUnit,
    TanhUnit,
    build_unit,
    unit_registry,
)
from dagnet.utils.errors import UnitInputError

rng = np.random.default_rng(seed=13)


def _bind(unit, *arrays, backprop=True):
    """Create input buffers holding `arrays`, allocate outputs and connect."""
    inputs = []
    for a in arrays:
        buf = Buffer(np.shape(a), requires_grad=backprop)
        buf.data[...] = a
        inputs.append(buf)
    outputs = unit.create_outputs(inputs)
    assert unit.connect(inputs, outputs)
    return inputs, outputs


# ---------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------
@pytest.mark.unit
def test_registry_contents():
    """Test that all built-in unit types are registered case-insensitively."""
    for name in ("fully_connected", "tanh", "relu", "sigmoid", "sum", "concatenate", "error", "accuracy"):
        assert name in unit_registry
    assert unit_registry["TANH"] is TanhUnit
    assert "dataset_input" not in unit_registry


@pytest.mark.unit
def test_build_unit():
    """Test construction from type names and config mappings."""
    assert isinstance(build_unit("relu"), ReLUUnit)
    fc = build_unit({"type": "Fully_Connected", "neurons": 4, "seed": 2})
    assert isinstance(fc, FullyConnectedUnit)
    assert fc.get_config() == {"type": "fully_connected", "neurons": 4, "seed": 2}


@pytest.mark.unit
def test_build_unit_errors():
    """Test unknown types, missing types and bad config objects."""
    with pytest.raises(KeyError, match="Unknown unit type"):
        build_unit("softsign")
    with pytest.raises(KeyError, match="type"):
        build_unit({"neurons": 3})
    with pytest.raises(TypeError):
        build_unit(3)


@pytest.mark.unit
def test_config_round_trip():
    """Test that from_config(get_config()) reproduces an equivalent unit."""
    fc = FullyConnectedUnit(neurons=3, seed=9)
    clone = FullyConnectedUnit.from_config(fc.get_config())
    assert (clone.neurons, clone.seed) == (3, 9)


# ---------------------------------------------------------------------
# Shape negotiation
# ---------------------------------------------------------------------
@pytest.mark.unit
def test_create_outputs_checks_input_count():
    """Test that wrong input counts are rejected."""
    with pytest.raises(UnitInputError, match="expects 1"):
        TanhUnit().create_outputs([Buffer((2, 2)), Buffer((2, 2))])
    with pytest.raises(UnitInputError, match="at least 2"):
        SumUnit().create_outputs([Buffer((2, 2))])


@pytest.mark.unit
def test_connect_rejects_wrong_output_shape():
    """Test that connect() refuses output buffers of the wrong shape."""
    unit = TanhUnit()
    assert not unit.connect([Buffer((2, 3))], [Buffer((2, 4))])
    assert not unit.connect([Buffer((2, 3))], [])
    assert unit.inputs == []


# ---------------------------------------------------------------------
# FullyConnectedUnit
# ---------------------------------------------------------------------
@pytest.mark.unit
def test_fully_connected_flattens_samples():
    """Test output shape and parameter shapes for multi-axis samples."""
    unit = FullyConnectedUnit(neurons=4, seed=1)
    _, outputs = _bind(unit, np.zeros((2, 3, 5)))
    assert outputs[0].shape == (2, 4)
    assert [p.shape for p in unit.parameters] == [(15, 4), (4,)]


@pytest.mark.unit
def test_fully_connected_rejects_unbatched_input():
    """Test that a rank-1 input is rejected."""
    with pytest.raises(UnitInputError):
        FullyConnectedUnit(neurons=2).create_outputs([Buffer((3,))])


@pytest.mark.unit
def test_fully_connected_initialization():
    """Test seeded Xavier-uniform weights and zero bias."""
    u1, u2 = FullyConnectedUnit(neurons=4, seed=5), FullyConnectedUnit(neurons=4, seed=5)
    _bind(u1, np.zeros((2, 6)))
    _bind(u2, np.zeros((2, 6)))
    u1.initialize_weights()
    u2.initialize_weights()

    np.testing.assert_array_equal(u1.weights.data, u2.weights.data)
    assert np.abs(u1.weights.data).max() <= np.sqrt(6.0 / 10) + 1e-6
    assert not u1.bias.data.any()
    assert u1.weights.data.any()


@pytest.mark.unit
def test_fully_connected_forward_and_backward():
    """Test the affine map and its gradients against numpy."""
    x = rng.normal(size=(3, 4)).astype(np.float32)
    unit = FullyConnectedUnit(neurons=2, seed=1)
    inputs, outputs = _bind(unit, x)
    unit.initialize_weights()
    unit.bias.data[...] = [0.5, -0.5]

    unit.feed_forward()
    w, b = unit.weights.data, unit.bias.data
    np.testing.assert_allclose(outputs[0].data, x @ w + b, rtol=1e-5)

    dy = rng.normal(size=(3, 2)).astype(np.float32)
    outputs[0].delta[...] = dy
    unit.back_propagate()
    np.testing.assert_allclose(unit.weights.delta, x.T @ dy, rtol=1e-5)
    np.testing.assert_allclose(unit.bias.delta, dy.sum(axis=0), rtol=1e-5)
    np.testing.assert_allclose(inputs[0].delta, dy @ w.T, rtol=1e-5)


# ---------------------------------------------------------------------
# Activations
# ---------------------------------------------------------------------
@pytest.mark.unit
@pytest.mark.parametrize(
    ("unit_cls", "fn", "grad"),
    [
        (TanhUnit, np.tanh, lambda x: 1 - np.tanh(x) ** 2),
        (ReLUUnit, lambda x: np.maximum(x, 0), lambda x: (x > 0).astype(np.float32)),
        (SigmoidUnit, lambda x: 1 / (1 + np.exp(-x)), lambda x: np.exp(-x) / (1 + np.exp(-x)) ** 2),
    ],
)
def test_activations(unit_cls, fn, grad):
    """Test element-wise activations and their derivatives."""
    x = rng.normal(size=(2, 5)).astype(np.float32)
    unit = unit_cls()
    inputs, outputs = _bind(unit, x)

    unit.feed_forward()
    np.testing.assert_allclose(outputs[0].data, fn(x), rtol=1e-5, atol=1e-6)

    outputs[0].delta[...] = 2.0
    unit.back_propagate()
    np.testing.assert_allclose(inputs[0].delta, 2.0 * grad(x), rtol=1e-4, atol=1e-6)


@pytest.mark.unit
def test_activation_skips_gradient_without_backprop():
    """Test that no input gradient is written when backprop is disabled."""
    unit = TanhUnit()
    inputs, outputs = _bind(unit, np.ones((2, 2)), backprop=False)
    unit.backprop_enabled = False
    outputs[0].delta[...] = 1.0
    unit.back_propagate()
    assert inputs[0].delta is None


# ---------------------------------------------------------------------
# Merge units
# ---------------------------------------------------------------------
@pytest.mark.unit
def test_sum_unit():
    """Test element-wise sum and gradient fan-out."""
    unit = SumUnit()
    inputs, outputs = _bind(unit, np.ones((2, 3)), np.full((2, 3), 2.0), np.full((2, 3), 3.0))
    unit.feed_forward()
    np.testing.assert_array_equal(outputs[0].data, 6.0)

    outputs[0].delta[...] = 0.5
    unit.back_propagate()
    for buf in inputs:
        np.testing.assert_array_equal(buf.delta, 0.5)


@pytest.mark.unit
def test_sum_unit_rejects_mismatched_shapes():
    """Test that summed inputs must share a shape."""
    with pytest.raises(UnitInputError, match="share a shape"):
        SumUnit().create_outputs([Buffer((2, 3)), Buffer((2, 4))])


@pytest.mark.unit
def test_concatenate_unit():
    """Test channel concatenation and gradient splitting."""
    unit = ConcatenateUnit()
    inputs, outputs = _bind(unit, np.zeros((2, 1)), np.ones((2, 3)))
    assert outputs[0].shape == (2, 4)

    unit.feed_forward()
    np.testing.assert_array_equal(outputs[0].data, [[0, 1, 1, 1], [0, 1, 1, 1]])

    outputs[0].delta[...] = np.arange(8).reshape(2, 4)
    unit.back_propagate()
    np.testing.assert_array_equal(inputs[0].delta, [[0], [4]])
    np.testing.assert_array_equal(inputs[1].delta, [[1, 2, 3], [5, 6, 7]])


@pytest.mark.unit
def test_concatenate_rejects_mismatched_leading_axes():
    """Test that all but the last axis must agree."""
    with pytest.raises(UnitInputError):
        ConcatenateUnit().create_outputs([Buffer((2, 3)), Buffer((3, 3))])


# ---------------------------------------------------------------------
# ErrorUnit
# ---------------------------------------------------------------------
@pytest.mark.unit
def test_error_unit_weighted_loss_and_gradient():
    """Test the weighted squared error and its gradient."""
    pred = np.array([[1.0, 2.0], [3.0, 4.0]])
    label = np.array([[0.0, 2.0], [1.0, 4.0]])
    weight = np.array([[1.0], [0.5]])

    unit = ErrorUnit()
    inputs, outputs = _bind(unit, pred, label, weight)
    assert outputs == []

    unit.feed_forward()
    # 0.5 * (1 * 1 + 0.5 * 4) / 2
    assert unit.get_loss() == pytest.approx(0.75)

    unit.back_propagate()
    np.testing.assert_allclose(inputs[0].delta, [[0.5, 0.0], [0.5, 0.0]])


@pytest.mark.unit
def test_error_unit_shape_checks():
    """Test rejection of mismatched prediction, label and weight shapes."""
    with pytest.raises(UnitInputError, match="does not match"):
        ErrorUnit().create_outputs([Buffer((2, 2)), Buffer((2, 3))])
    with pytest.raises(UnitInputError, match="weight"):
        ErrorUnit().create_outputs([Buffer((2, 2)), Buffer((2, 2)), Buffer((2, 2))])


# ---------------------------------------------------------------------
# AccuracyUnit
# ---------------------------------------------------------------------
@pytest.mark.unit
def test_accuracy_unit_aggregates_and_resets():
    """Test weighted accuracy over several updates."""
    pred = np.array([[0.9, 0.1], [0.2, 0.8], [0.6, 0.4]])
    label = np.array([[1.0, 0.0], [1.0, 0.0], [1.0, 0.0]])
    weight = np.array([[1.0], [1.0], [0.0]])

    unit = AccuracyUnit()
    _bind(unit, pred, label, weight)
    unit.feed_forward()
    assert unit.accuracy == pytest.approx(0.5)

    unit.feed_forward()
    assert (unit.hits, unit.total) == (2.0, 4.0)

    unit.reset_statistics()
    assert unit.accuracy == 0.0


@pytest.mark.unit
def test_accuracy_unit_disabled():
    """Test that a disabled statistics unit does not update."""
    unit = AccuracyUnit()
    _bind(unit, np.ones((2, 1)), np.ones((2, 1)))
    unit.enabled = False
    unit.feed_forward()
    assert unit.total == 0.0

    unit.enabled = True
    unit.feed_forward()
    assert unit.accuracy == 1.0
