"""Shared fixtures and utilities for unit tests."""

from typing import ClassVar

import numpy as np
import pytest

from dagnet.core.data.dataset import ArrayDataset
from dagnet.core.graph.compute_graph import ComputeGraph
from dagnet.core.graph.graph_builder import GraphBuilder
from dagnet.units.base_unit import ProcessingUnit
from dagnet.units.dataset_input import DatasetInputUnit

rng = np.random.default_rng(seed=42)


class CountingUnit(ProcessingUnit):
    """
    Pass-through unit recording how often its traversal hooks run.

    The output is the sum of all inputs (or a fixed `shape` when there are
    none); the backward pass copies the output gradient to every input view.
    """

    unit_type: ClassVar[str] = "counting"
    min_inputs: ClassVar[int] = 0
    max_inputs: ClassVar[int | None] = None

    def __init__(self, shape=(2, 3), *, tag=None, log=None):
        super().__init__()
        self.shape = tuple(shape)
        self.tag = tag
        self.log = log
        self.forward_calls = 0
        self.backward_calls = 0

    def infer_output_shapes(self, input_shapes):
        return [tuple(input_shapes[0]) if input_shapes else self.shape]

    def feed_forward(self):
        self.forward_calls += 1
        if self.log is not None:
            self.log.append(("ff", self.tag))
        if self.inputs:
            self.outputs[0].data[...] = sum(b.data for b in self.inputs)

    def back_propagate(self):
        self.backward_calls += 1
        if self.log is not None:
            self.log.append(("bp", self.tag))
        for b in self.inputs:
            if b.delta is not None:
                b.delta[...] = self.outputs[0].delta


class OnesGradientUnit(ProcessingUnit):
    """Terminal unit without outputs that writes a gradient of ones to every input."""

    unit_type: ClassVar[str] = "ones_gradient"
    max_inputs: ClassVar[int | None] = None

    def infer_output_shapes(self, input_shapes):
        return []

    def describe_buffers(self):
        return []

    def feed_forward(self):
        return

    def back_propagate(self):
        for b in self.inputs:
            if b.delta is not None:
                b.delta[...] = 1.0


def generate_dataset(
    n_train: int = 10,
    n_test: int = 3,
    n_features: int = 3,
    n_classes: int = 2,
    name: str = "TestDataset",
) -> ArrayDataset:
    """Generate a random ArrayDataset with one-hot labels."""
    train_classes = rng.integers(0, n_classes, n_train)
    test_classes = rng.integers(0, n_classes, n_test)
    return ArrayDataset(
        rng.uniform(-1.0, 1.0, (n_train, n_features)),
        np.eye(n_classes)[train_classes],
        rng.uniform(-1.0, 1.0, (n_test, n_features)),
        np.eye(n_classes)[test_classes],
        name=name,
    )


def chain_description(output="C") -> dict:
    """Out-of-order `A -> B -> C` chain; A is fed from the dataset."""
    return {
        "nodes": {
            "C": {"unit": {"type": "fully_connected", "neurons": 2}, "input": "B"},
            "A": {"unit": {"type": "fully_connected", "neurons": 5}},
            "B": {"unit": "tanh", "input": "A"},
        },
        "input": "A",
        "output": output,
    }


@pytest.fixture
def array_dataset():
    """Random dataset with 10 training and 3 testing samples of 3 features."""
    return generate_dataset()


@pytest.fixture
def data_unit(array_dataset):
    """DatasetInputUnit over `array_dataset` with a batch size of 4."""
    return DatasetInputUnit(array_dataset, batch_size=4, seed=7)


@pytest.fixture
def chain_graph(data_unit) -> ComputeGraph:
    """Initialized graph built from :func:`chain_description`."""
    return GraphBuilder(chain_description()).build(data_unit, seed=3)
