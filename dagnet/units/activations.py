"""Element-wise activation units."""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, ClassVar

import numpy as np

from dagnet.units.base_unit import ProcessingUnit

if TYPE_CHECKING:
    from collections.abc import Sequence

    from numpy.typing import NDArray


class ActivationUnit(ProcessingUnit):
    """Base for shape-preserving element-wise activations."""

    def infer_output_shapes(self, input_shapes: Sequence[tuple[int, ...]]) -> list[tuple[int, ...]]:
        return [tuple(input_shapes[0])]

    @abstractmethod
    def _forward(self, x: NDArray) -> NDArray: ...

    @abstractmethod
    def _derivative(self, x: NDArray, y: NDArray) -> NDArray:
        """Derivative of the activation, given input `x` and output `y`."""

    def feed_forward(self) -> None:
        self.outputs[0].data[...] = self._forward(self.inputs[0].data)

    def back_propagate(self) -> None:
        if not self.backprop_enabled or self.inputs[0].delta is None:
            return
        grad = self._derivative(self.inputs[0].data, self.outputs[0].data)
        self.inputs[0].delta[...] = self.outputs[0].delta * grad


class TanhUnit(ActivationUnit):
    unit_type: ClassVar[str] = "tanh"

    def _forward(self, x):
        return np.tanh(x)

    def _derivative(self, x, y):
        return 1.0 - y * y


class ReLUUnit(ActivationUnit):
    unit_type: ClassVar[str] = "relu"

    def _forward(self, x):
        return np.maximum(x, 0.0)

    def _derivative(self, x, y):
        return (x > 0).astype(x.dtype)


class SigmoidUnit(ActivationUnit):
    unit_type: ClassVar[str] = "sigmoid"

    def _forward(self, x):
        return 1.0 / (1.0 + np.exp(-x))

    def _derivative(self, x, y):
        return y * (1.0 - y)
