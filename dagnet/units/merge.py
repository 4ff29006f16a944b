"""Units combining several inputs into one output."""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar

import numpy as np

from dagnet.units.base_unit import ProcessingUnit
from dagnet.utils.data.formatting import format_shape
from dagnet.utils.errors.exceptions import UnitInputError

if TYPE_CHECKING:
    from collections.abc import Sequence


class SumUnit(ProcessingUnit):
    """Element-wise sum of two or more inputs of identical shape."""

    unit_type: ClassVar[str] = "sum"
    min_inputs: ClassVar[int] = 2
    max_inputs: ClassVar[int | None] = None

    def infer_output_shapes(self, input_shapes: Sequence[tuple[int, ...]]) -> list[tuple[int, ...]]:
        first = tuple(input_shapes[0])
        for shape in input_shapes[1:]:
            if tuple(shape) != first:
                msg = (
                    "SumUnit inputs must share a shape, got "
                    f"{', '.join(format_shape(s) for s in input_shapes)}."
                )
                raise UnitInputError(msg)
        return [first]

    def feed_forward(self) -> None:
        out = self.outputs[0].data
        out[...] = self.inputs[0].data
        for buf in self.inputs[1:]:
            out += buf.data

    def back_propagate(self) -> None:
        for buf in self.inputs:
            if buf.delta is not None:
                buf.delta[...] = self.outputs[0].delta


class ConcatenateUnit(ProcessingUnit):
    """Concatenation of two or more inputs along the last (channel) axis."""

    unit_type: ClassVar[str] = "concatenate"
    min_inputs: ClassVar[int] = 2
    max_inputs: ClassVar[int | None] = None

    def infer_output_shapes(self, input_shapes: Sequence[tuple[int, ...]]) -> list[tuple[int, ...]]:
        leading = tuple(input_shapes[0][:-1])
        for shape in input_shapes:
            if len(shape) < 1 or tuple(shape[:-1]) != leading:
                msg = (
                    "ConcatenateUnit inputs must agree on all but the last axis, got "
                    f"{', '.join(format_shape(s) for s in input_shapes)}."
                )
                raise UnitInputError(msg)
        channels = sum(int(s[-1]) for s in input_shapes)
        return [(*leading, channels)]

    def feed_forward(self) -> None:
        self.outputs[0].data[...] = np.concatenate([b.data for b in self.inputs], axis=-1)

    def back_propagate(self) -> None:
        offset = 0
        for buf in self.inputs:
            width = buf.shape[-1]
            if buf.delta is not None:
                buf.delta[...] = self.outputs[0].delta[..., offset : offset + width]
            offset += width
