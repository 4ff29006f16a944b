"""Abstract processing units wrapped by graph nodes."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, ClassVar

from dagnet.core.graph.buffer import Buffer
from dagnet.utils.errors.exceptions import UnitInputError

if TYPE_CHECKING:
    from collections.abc import Sequence


class ProcessingUnit(ABC):
    """
    Abstract base class for the computation wrapped by a :class:`GraphNode`.

    Description:
        A unit negotiates its output shapes from its resolved inputs, gets its
        input and output buffers bound by :meth:`connect`, and then runs
        :meth:`feed_forward` / :meth:`back_propagate` whenever the graph visits
        its node. A unit only touches its own state and the buffers bound to it.

        Subclasses implement :meth:`infer_output_shapes` plus the two traversal
        hooks. Units with learnable state override :attr:`parameters` and
        :meth:`initialize_weights`.

    Attributes:
        unit_type (str): Registry name of the unit.
        uses_seed (bool): Whether the unit consumes a `seed` config entry.
        min_inputs (int): Minimum number of input connections.
        max_inputs (int | None): Maximum number of input connections (None = unbounded).
        backprop_enabled (bool): Whether input gradients should be computed.
            Set by the graph from the backprop flags of the input connections.

    """

    unit_type: ClassVar[str] = "unit"
    uses_seed: ClassVar[bool] = False
    min_inputs: ClassVar[int] = 1
    max_inputs: ClassVar[int | None] = 1

    def __init__(self, **config: Any):
        self._config: dict[str, Any] = dict(config)
        self.backprop_enabled: bool = True
        self.inputs: list[Buffer] = []
        self.outputs: list[Buffer] = []

    # ================================================
    # Configurable
    # ================================================
    def get_config(self) -> dict[str, Any]:
        """
        Return the configuration needed by :meth:`from_config`.

        Returns:
            dict[str, Any]: JSON-serializable configuration mapping.

        """
        return {"type": self.unit_type, **self._config}

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> ProcessingUnit:
        """
        Construct a unit from the configuration produced by :meth:`get_config`.

        Args:
            config (dict[str, Any]): Configuration mapping; the `type` key is ignored.

        Returns:
            ProcessingUnit: New unit instance.

        """
        kwargs = {k: v for k, v in config.items() if k != "type"}
        return cls(**kwargs)

    # ================================================
    # Shape negotiation
    # ================================================
    @abstractmethod
    def infer_output_shapes(
        self,
        input_shapes: Sequence[tuple[int, ...]],
    ) -> list[tuple[int, ...]]:
        """
        Infer output buffer shapes from input buffer shapes.

        Args:
            input_shapes (Sequence[tuple[int, ...]]): Shapes of the resolved inputs.

        Returns:
            list[tuple[int, ...]]: One shape per output buffer.

        Raises:
            UnitInputError: If the inputs are incompatible with this unit.

        """

    def describe_buffers(self) -> list[str]:
        """
        Human readable descriptions of the output buffers, by output index.

        Returns:
            list[str]: Buffer descriptions.

        """
        return ["Output"]

    def _check_input_count(self, n: int):
        if n < self.min_inputs or (self.max_inputs is not None and n > self.max_inputs):
            if self.max_inputs is None:
                bound = f"at least {self.min_inputs}"
            elif self.min_inputs == self.max_inputs:
                bound = f"{self.min_inputs}"
            else:
                bound = f"{self.min_inputs}-{self.max_inputs}"
            msg = f"{self.__class__.__name__} expects {bound} input(s), got {n}."
            raise UnitInputError(msg)

    def create_outputs(self, inputs: list[Buffer]) -> list[Buffer]:
        """
        Allocate output buffers for the given resolved inputs.

        Args:
            inputs (list[Buffer]): Per-connection views of the producer outputs.

        Returns:
            list[Buffer]: Newly allocated output buffers.

        Raises:
            UnitInputError: If the inputs are incompatible with this unit.

        """
        self._check_input_count(len(inputs))
        shapes = self.infer_output_shapes([tuple(b.shape) for b in inputs])
        descriptions = self.describe_buffers()
        return [
            Buffer(shape, description=descriptions[i] if i < len(descriptions) else "Output")
            for i, shape in enumerate(shapes)
        ]

    def connect(self, inputs: list[Buffer], outputs: list[Buffer]) -> bool:
        """
        Bind resolved input and output buffers to this unit.

        Returns:
            bool: False if the buffer counts or shapes are not acceptable.

        """
        try:
            self._check_input_count(len(inputs))
            expected = self.infer_output_shapes([tuple(b.shape) for b in inputs])
        except UnitInputError:
            return False
        if len(outputs) != len(expected):
            return False
        if any(tuple(o.shape) != tuple(s) for o, s in zip(outputs, expected)):
            return False

        self.inputs = list(inputs)
        self.outputs = list(outputs)
        self._on_connect()
        return True

    def _on_connect(self):
        """Hook for subclasses that need to allocate scratch state after binding."""

    # ================================================
    # Traversal hooks
    # ================================================
    @abstractmethod
    def feed_forward(self) -> None:
        """Compute output data from the current input data."""

    @abstractmethod
    def back_propagate(self) -> None:
        """Write input (and parameter) gradients from the output gradients."""

    # ================================================
    # Parameters
    # ================================================
    @property
    def parameters(self) -> list[Buffer]:
        """Learnable parameter buffers (none by default)."""
        return []

    def initialize_weights(self) -> None:
        """(Re-)initialize parameter buffers. No-op for parameter-free units."""

    def __repr__(self):
        args = ", ".join(f"{k}={v!r}" for k, v in self._config.items())
        return f"{self.__class__.__name__}({args})"


class LossUnit(ProcessingUnit):
    """A unit that computes a scalar discrepancy and seeds the backward pass."""

    @abstractmethod
    def get_loss(self) -> float:
        """Scalar loss computed by the last forward pass."""


class StatisticsUnit(ProcessingUnit):
    """
    A unit that aggregates statistics over forward passes.

    Statistics units never produce gradients and can be switched off as a
    group through :meth:`ComputeGraph.set_stat_units_enabled`.
    """

    def __init__(self, **config: Any):
        super().__init__(**config)
        self.enabled: bool = True

    def feed_forward(self) -> None:
        if self.enabled:
            self.update_statistics()

    def back_propagate(self) -> None:
        # Statistics do not contribute gradients
        return

    @abstractmethod
    def update_statistics(self) -> None:
        """Fold the current inputs into the aggregated statistics."""

    @abstractmethod
    def reset_statistics(self) -> None:
        """Discard all aggregated statistics."""


class TrainingUnit(ProcessingUnit):
    """A zero-input unit that supplies data/label/weight buffers from a data source."""

    min_inputs: ClassVar[int] = 0
    max_inputs: ClassVar[int | None] = 0

    @abstractmethod
    def select_and_load_samples(self) -> None:
        """Fill the output buffers with the next batch of samples."""

    @abstractmethod
    def set_testing_mode(self, testing: bool) -> None:
        """Switch between training and testing sample order."""
