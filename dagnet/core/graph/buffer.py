"""Numeric buffers exchanged between graph nodes."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import numpy as np

from dagnet.utils.data.formatting import format_shape

if TYPE_CHECKING:
    from numpy.typing import DTypeLike, NDArray


class Buffer:
    """
    A named numeric array with an optional gradient counterpart.

    Description:
        A Buffer is produced by exactly one node and consumed by zero or more
        input connections. Shape layout is `(batch, *spatial, channels)`;
        the shape is fixed at construction.

        `data` holds the forward values and `delta` the gradient of the loss
        with respect to `data`. Units must write into both arrays in place
        (e.g. `out.data[...] = ...`), since consumers hold views that share
        the same underlying arrays.

    Attributes:
        description (str): Human readable role of the buffer ("Output", "Label", ...).
        data (NDArray): Forward values.
        delta (NDArray | None): Gradient values, or None if the buffer carries no gradient.
        metadata (list[Any] | None): Optional per-sample metadata slots.

    """

    def __init__(
        self,
        shape: tuple[int, ...] | list[int],
        *,
        description: str = "Output",
        dtype: DTypeLike = np.float32,
        requires_grad: bool = True,
        metadata: list[Any] | None = None,
    ):
        shape = tuple(int(s) for s in shape)
        if any(s < 0 for s in shape):
            msg = f"Buffer dimensions must be non-negative. Received: {shape}."
            raise ValueError(msg)

        self.description = description
        self.data: NDArray = np.zeros(shape, dtype=dtype)
        self.delta: NDArray | None = (
            np.zeros(shape, dtype=dtype) if requires_grad else None
        )
        self.metadata = metadata

    @classmethod
    def _from_arrays(
        cls,
        data: NDArray,
        delta: NDArray | None,
        *,
        description: str,
        metadata: list[Any] | None,
    ) -> Buffer:
        obj = cls.__new__(cls)
        obj.description = description
        obj.data = data
        obj.delta = delta
        obj.metadata = metadata
        return obj

    # ================================================
    # Properties & Dunders
    # ================================================
    @property
    def shape(self) -> tuple[int, ...]:
        return self.data.shape

    @property
    def batch_size(self) -> int:
        """Size of the leading (batch) dimension, or 1 for rank-0 buffers."""
        return self.data.shape[0] if self.data.ndim > 0 else 1

    @property
    def sample_shape(self) -> tuple[int, ...]:
        """Shape of a single batch slot."""
        return self.data.shape[1:]

    @property
    def requires_grad(self) -> bool:
        return self.delta is not None

    @property
    def elements(self) -> int:
        return int(self.data.size)

    def __repr__(self):
        return (
            f"Buffer(description='{self.description}', "
            f"shape={format_shape(self.shape)}, requires_grad={self.requires_grad})"
        )

    # ================================================
    # Views & Mutation
    # ================================================
    def connected_view(self, *, backprop: bool) -> Buffer:
        """
        Create the per-connection view of this buffer seen by one consumer.

        Description:
            The view shares `data` with this buffer. When `backprop` is True it
            gets its own zero-filled `delta`, into which the consumer writes its
            gradient contribution; the graph later sums all contributions into
            this buffer's `delta`. When `backprop` is False the view carries no
            gradient at all.

        Args:
            backprop (bool): Whether gradient flows back across this connection.

        Returns:
            Buffer: View sharing the forward data.

        """
        delta = np.zeros_like(self.data) if backprop else None
        return Buffer._from_arrays(
            self.data,
            delta,
            description=self.description,
            metadata=self.metadata,
        )

    def clear(self, value: float = 0.0, sample: int | None = None):
        """
        Fill the data array (or a single batch slot) with `value`.

        Args:
            value (float): Fill value.
            sample (int | None): Batch slot to fill. Fills everything when None.

        """
        if sample is None:
            self.data.fill(value)
        else:
            self.data[sample] = value

    def clear_delta(self):
        """Reset the gradient array to zero, if present."""
        if self.delta is not None:
            self.delta.fill(0.0)
