from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar

import numpy as np

from dagnet.core.graph.buffer import Buffer
from dagnet.units.base_unit import ProcessingUnit
from dagnet.utils.errors.exceptions import UnitInputError

if TYPE_CHECKING:
    from collections.abc import Sequence


class FullyConnectedUnit(ProcessingUnit):
    """
    Affine map `y = x W + b` over the flattened sample of each batch slot.

    Parameters, in serialization order: `weights` `(in_features, neurons)`
    and `bias` `(neurons,)`. Weights are drawn from a seeded Xavier-uniform
    distribution; the bias starts at zero.
    """

    unit_type: ClassVar[str] = "fully_connected"
    uses_seed: ClassVar[bool] = True

    def __init__(self, neurons: int, seed: int = 0):
        if int(neurons) < 1:
            msg = f"`neurons` must be positive. Received: {neurons}."
            raise ValueError(msg)
        super().__init__(neurons=int(neurons), seed=int(seed))
        self.neurons = int(neurons)
        self.seed = int(seed)
        self.weights: Buffer | None = None
        self.bias: Buffer | None = None

    def infer_output_shapes(self, input_shapes: Sequence[tuple[int, ...]]) -> list[tuple[int, ...]]:
        (shape,) = input_shapes
        if len(shape) < 2:
            msg = f"FullyConnectedUnit requires a batched input, got shape {shape}."
            raise UnitInputError(msg)
        return [(shape[0], self.neurons)]

    def _on_connect(self):
        in_features = int(np.prod(self.inputs[0].sample_shape, dtype=np.int64))
        self.weights = Buffer((in_features, self.neurons), description="Weights")
        self.bias = Buffer((self.neurons,), description="Bias")

    @property
    def parameters(self) -> list[Buffer]:
        if self.weights is None:
            return []
        return [self.weights, self.bias]

    def initialize_weights(self) -> None:
        """Xavier-uniform weights from this unit's seed, zero bias."""
        if self.weights is None:
            return
        fan_in, fan_out = self.weights.shape
        limit = np.sqrt(6.0 / (fan_in + fan_out))
        rng = np.random.default_rng(self.seed)
        self.weights.data[...] = rng.uniform(-limit, limit, size=self.weights.shape)
        self.bias.data[...] = 0.0

    def feed_forward(self) -> None:
        x = self.inputs[0].data.reshape(self.inputs[0].batch_size, -1)
        self.outputs[0].data[...] = x @ self.weights.data + self.bias.data

    def back_propagate(self) -> None:
        x = self.inputs[0].data.reshape(self.inputs[0].batch_size, -1)
        dy = self.outputs[0].delta
        self.weights.delta[...] = x.T @ dy
        self.bias.delta[...] = dy.sum(axis=0)
        if self.backprop_enabled and self.inputs[0].delta is not None:
            self.inputs[0].delta[...] = (dy @ self.weights.data.T).reshape(self.inputs[0].shape)
