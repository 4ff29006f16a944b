"""Protocol interfaces describing the capabilities a processing unit may offer."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from dagnet.core.graph.buffer import Buffer


# ================================================
# Forwardable
# ================================================
@runtime_checkable
class Forwardable(Protocol):
    """A unit that can take part in forward and backward graph traversal."""

    backprop_enabled: bool

    def create_outputs(self, inputs: list[Buffer]) -> list[Buffer]:
        """
        Allocate output buffers for the given resolved inputs.

        Args:
            inputs (list[Buffer]): Per-connection views of the producer outputs.

        Returns:
            list[Buffer]: Newly allocated output buffers, in output-index order.

        Raises:
            UnitInputError: If the inputs are incompatible with this unit.

        """
        ...

    def connect(self, inputs: list[Buffer], outputs: list[Buffer]) -> bool:
        """
        Bind resolved input and output buffers to the unit.

        Returns:
            bool: False if the buffer counts or shapes are not acceptable.

        """
        ...

    def feed_forward(self) -> None:
        """Compute output data from the current input data."""
        ...

    def back_propagate(self) -> None:
        """Compute input (and parameter) gradients from the output gradients."""
        ...


# ================================================
# Parameterized
# ================================================
@runtime_checkable
class Parameterized(Protocol):
    """A unit that owns learnable parameter buffers."""

    @property
    def parameters(self) -> list[Buffer]:
        """
        Learnable parameter buffers in a fixed order.

        Returns:
            list[Buffer]: Parameter buffers; this order is the serialization order.

        """
        ...

    def initialize_weights(self) -> None:
        """(Re-)initialize all parameter buffers."""
        ...


# ================================================
# LossReporting
# ================================================
@runtime_checkable
class LossReporting(Protocol):
    """A unit that reports a scalar loss contribution after a forward pass."""

    def get_loss(self) -> float:
        """
        Scalar loss computed by the last forward pass.

        Returns:
            float: Loss value.

        """
        ...


# ================================================
# StatisticsReporting
# ================================================
@runtime_checkable
class StatisticsReporting(Protocol):
    """A unit that aggregates statistics and can be switched off."""

    enabled: bool

    def reset_statistics(self) -> None:
        """Discard all aggregated statistics."""
        ...


# ================================================
# SampleSource
# ================================================
@runtime_checkable
class SampleSource(Protocol):
    """A zero-input unit that pulls its outputs from an external data source."""

    def select_and_load_samples(self) -> None:
        """Fill the unit's output buffers with the next batch of samples."""
        ...

    def set_testing_mode(self, testing: bool) -> None:
        """
        Switch between training and testing sample order.

        Args:
            testing (bool): True for sequential testing samples, False for
                randomly permuted training samples.

        """
        ...
