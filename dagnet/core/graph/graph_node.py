from __future__ import annotations

from typing import TYPE_CHECKING

from dagnet.core.graph.connection import BackpropConnection, Connection
from dagnet.core.graph.protocols import (
    Forwardable,
    LossReporting,
    Parameterized,
    SampleSource,
    StatisticsReporting,
)
from dagnet.utils.data.formatting import ensure_list, format_shape
from dagnet.utils.representation.summary import Summarizable

if TYPE_CHECKING:
    from dagnet.core.graph.buffer import Buffer


class GraphNode(Summarizable):
    """
    Wrapper placing one processing unit into a :class:`ComputeGraph`.

    Each node is identified by a unique `name` (chosen by the caller) and a
    `node_id` (assigned by the graph on insertion). It records its ordered input
    connections, owns the output buffers its unit creates, and exposes role flags
    derived from the unit's capabilities.

    Nodes are never removed from a graph; after :meth:`ComputeGraph.add_node`
    the graph owns the node for its lifetime.
    """

    def __init__(
        self,
        unit: Forwardable,
        input_connections: Connection | list[Connection] | None = None,
        *,
        name: str,
        is_output: bool = False,
    ):
        """
        Initialize a GraphNode around a processing unit.

        Args:
            unit (Forwardable):
                Processing unit performing this node's computation.
            input_connections (Connection | list[Connection] | None):
                Ordered input connections. Every source node must already be
                part of the graph this node will be added to.
            name (str):
                Unique name of the node within its graph.
            is_output (bool, optional):
                Whether this node is a designated graph output. Defaults to False.

        Raises:
            TypeError: If `unit` does not implement the Forwardable protocol.
            ValueError: If `name` is empty.

        """
        if not isinstance(unit, Forwardable):
            msg = f"GraphNode units must implement Forwardable. Received: {type(unit)}."
            raise TypeError(msg)
        if not isinstance(name, str) or not name.strip():
            msg = "GraphNode name must be a non-empty string."
            raise ValueError(msg)

        self.unit = unit
        self.name = name
        self.node_id: int | None = None

        self.input_connections: list[Connection] = list(ensure_list(input_connections))
        self.backprop_connections: list[BackpropConnection] = []

        # Resolved during ComputeGraph.initialize()
        self.input_buffers: list[Buffer] = []
        self.output_buffers: list[Buffer] = []

        self.is_input = False
        self.is_output = is_output

        # Per-traversal visit markers
        self.flag_ff_visited = False
        self.flag_bp_visited = False

    # ================================================
    # Role flags
    # ================================================
    @property
    def is_loss(self) -> bool:
        return isinstance(self.unit, LossReporting)

    @property
    def is_statistics(self) -> bool:
        return isinstance(self.unit, StatisticsReporting)

    @property
    def is_training(self) -> bool:
        """Whether the unit pulls samples from an external data source."""
        return isinstance(self.unit, SampleSource)

    @property
    def parameters(self) -> list[Buffer]:
        if isinstance(self.unit, Parameterized):
            return list(self.unit.parameters)
        return []

    @property
    def has_parameters(self) -> bool:
        return len(self.parameters) > 0

    @property
    def unit_type(self) -> str:
        return getattr(self.unit, "unit_type", type(self.unit).__name__)

    # ================================================
    # Representation
    # ================================================
    def _summary_rows(self) -> list[tuple]:
        return [
            ("name", self.name),
            ("node_id", str(self.node_id)),
            ("unit", self.unit_type),
            (
                "inputs",
                [
                    (f"{i}", f"node {c.node_id}[{c.buffer}] backprop={c.backprop}")
                    for i, c in enumerate(self.input_connections)
                ],
            ),
            (
                "outputs",
                [
                    (f"{i}", f"{b.description} {format_shape(b.shape)}")
                    for i, b in enumerate(self.output_buffers)
                ],
            ),
        ]

    def __repr__(self):
        return (
            f"GraphNode(name='{self.name}', node_id={self.node_id}, "
            f"unit={self.unit_type}, inputs={self.input_connections})"
        )

    def __str__(self):
        return f"GraphNode('{self.name}')"
