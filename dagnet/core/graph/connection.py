"""Directed edges between graph nodes."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Connection:
    """
    Edge from a producer's output buffer to a consumer's input slot.

    Description:
        Connections reference producers by integer node id rather than by
        object, so the graph's node list is the single owner of all nodes.
        Several connections may reference the same (node, buffer) pair.

    Attributes:
        node_id (int): Id of the producing node.
        buffer (int): Index into the producer's output buffers.
        backprop (bool): Whether gradients flow back across this edge.

    """

    node_id: int
    buffer: int = 0
    backprop: bool = True

    def __post_init__(self):
        if self.buffer < 0:
            msg = f"Connection buffer index must be non-negative. Received: {self.buffer}."
            raise ValueError(msg)


@dataclass(frozen=True)
class BackpropConnection:
    """
    Reverse edge registered on a producer for each backprop-enabled consumer.

    Attributes:
        node_id (int): Id of the consuming node.
        slot (int): Index of the consumer's input connection.
        buffer (int): Index of the producer output buffer feeding that slot.

    """

    node_id: int
    slot: int
    buffer: int = 0
