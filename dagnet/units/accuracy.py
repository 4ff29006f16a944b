from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar

import numpy as np

from dagnet.units.base_unit import StatisticsUnit
from dagnet.utils.data.formatting import format_shape
from dagnet.utils.errors.exceptions import UnitInputError

if TYPE_CHECKING:
    from collections.abc import Sequence


class AccuracyUnit(StatisticsUnit):
    """
    Weighted classification accuracy aggregated over forward passes.

    Inputs, by slot: prediction, label and (optionally) a `(batch, 1)` sample
    weight. With more than one channel the predicted class is the argmax over
    the last axis; with a single channel predictions are thresholded at 0.5.
    """

    unit_type: ClassVar[str] = "accuracy"
    min_inputs: ClassVar[int] = 2
    max_inputs: ClassVar[int | None] = 3

    def __init__(self, **config):
        super().__init__(**config)
        self.hits = 0.0
        self.total = 0.0

    def infer_output_shapes(self, input_shapes: Sequence[tuple[int, ...]]) -> list[tuple[int, ...]]:
        pred, label = tuple(input_shapes[0]), tuple(input_shapes[1])
        if pred != label or len(pred) < 2:
            msg = (
                f"AccuracyUnit needs batched prediction and label of equal shape, got "
                f"{format_shape(pred)} and {format_shape(label)}."
            )
            raise UnitInputError(msg)
        return []

    def describe_buffers(self) -> list[str]:
        return []

    @property
    def accuracy(self) -> float:
        """Weighted fraction of correct predictions, or 0.0 before any update."""
        return self.hits / self.total if self.total > 0 else 0.0

    def update_statistics(self) -> None:
        pred, label = self.inputs[0].data, self.inputs[1].data
        batch = pred.shape[0]
        pred = pred.reshape(batch, -1, pred.shape[-1])
        label = label.reshape(batch, -1, label.shape[-1])
        if pred.shape[-1] == 1:
            correct = (pred[..., 0] > 0.5) == (label[..., 0] > 0.5)
        else:
            correct = np.argmax(pred, axis=-1) == np.argmax(label, axis=-1)

        if len(self.inputs) == 3:
            weight = self.inputs[2].data.reshape(batch, 1)
        else:
            weight = np.ones((batch, 1), dtype=np.float32)
        weight = np.broadcast_to(weight, correct.shape)

        self.hits += float(np.sum(weight * correct))
        self.total += float(np.sum(weight))

    def reset_statistics(self) -> None:
        self.hits = 0.0
        self.total = 0.0
