from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar

import numpy as np

from dagnet.units.base_unit import LossUnit
from dagnet.utils.data.formatting import format_shape
from dagnet.utils.errors.exceptions import UnitInputError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from numpy.typing import NDArray


def _batch_weights(weight: NDArray, ndim: int) -> NDArray:
    """Reshape a `(batch, 1)` weight buffer so it broadcasts over `ndim` axes."""
    return weight.reshape(weight.shape[0], *([1] * (ndim - 1)))


class ErrorUnit(LossUnit):
    """
    Weighted squared error between a prediction and a label.

    Inputs, by slot: prediction, label and (optionally) a `(batch, 1)` sample
    weight. With `y` the prediction, `t` the label, `w` the weight and `B`
    the batch size::

        loss  = 0.5 * sum(w * (y - t) ** 2) / B
        dL/dy = w * (y - t) / B

    Produces no output buffers.
    """

    unit_type: ClassVar[str] = "error"
    min_inputs: ClassVar[int] = 2
    max_inputs: ClassVar[int | None] = 3

    def __init__(self, **config):
        super().__init__(**config)
        self._loss = 0.0

    def infer_output_shapes(self, input_shapes: Sequence[tuple[int, ...]]) -> list[tuple[int, ...]]:
        pred, label = tuple(input_shapes[0]), tuple(input_shapes[1])
        if pred != label:
            msg = f"ErrorUnit prediction {format_shape(pred)} does not match label {format_shape(label)}."
            raise UnitInputError(msg)
        if len(input_shapes) == 3:
            weight = tuple(input_shapes[2])
            if len(pred) < 1 or weight != (pred[0], 1):
                msg = (
                    f"ErrorUnit weight must have shape (batch, 1), got {format_shape(weight)} "
                    f"for prediction {format_shape(pred)}."
                )
                raise UnitInputError(msg)
        return []

    def describe_buffers(self) -> list[str]:
        return []

    def _weights(self) -> NDArray | float:
        if len(self.inputs) < 3:
            return 1.0
        return _batch_weights(self.inputs[2].data, self.inputs[0].data.ndim)

    def feed_forward(self) -> None:
        pred, label = self.inputs[0], self.inputs[1]
        diff = pred.data - label.data
        self._loss = float(0.5 * np.sum(self._weights() * diff * diff) / pred.batch_size)

    def back_propagate(self) -> None:
        pred, label = self.inputs[0], self.inputs[1]
        if pred.delta is None:
            return
        pred.delta[...] = self._weights() * (pred.data - label.data) / pred.batch_size

    def get_loss(self) -> float:
        return self._loss
