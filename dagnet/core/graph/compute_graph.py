from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, BinaryIO, TextIO

from dagnet.core.graph.buffer import Buffer
from dagnet.core.graph.connection import BackpropConnection
from dagnet.core.graph.graph_context import GraphContext
from dagnet.core.graph.graph_node import GraphNode
from dagnet.core.graph.parameter_stream import read_buffer_into, write_buffer
from dagnet.utils.data.formatting import format_shape
from dagnet.utils.errors.error_handling import ErrorMode
from dagnet.utils.errors.exceptions import (
    GraphConfigurationError,
    GraphInitializationError,
    GraphStateError,
    ParameterStreamError,
    UnitInputError,
)
from dagnet.utils.logging.warnings import warn
from dagnet.utils.representation.summary import Summarizable

if TYPE_CHECKING:
    from collections.abc import Iterable


class GraphState(str, Enum):
    """Lifecycle of a :class:`ComputeGraph`."""

    UNBUILT = "unbuilt"
    BUILDING = "building"
    INITIALIZED = "initialized"


class ComputeGraph(Summarizable):
    """
    Directed acyclic graph of processing nodes over numeric buffers.

    Description:
        Nodes live in a single append-only list; a node's `node_id` is its
        index in that list. Since every connection must reference a node that
        is already in the graph, insertion order is a valid topological order
        and is used directly as the forward schedule (reverse for backward).

        Typical lifecycle:
            1. `add_node(...)` for every node (or use :class:`GraphBuilder`)
            2. `initialize()` to resolve connections and negotiate buffer shapes
            3. `initialize_weights()` / `deserialize_parameters(...)`
            4. `feed_forward()`, `back_propagate()`, `aggregate_loss()`

        Traversal and parameter operations are only valid once initialized;
        calling them earlier raises :class:`GraphStateError`.
    """

    def __init__(
        self,
        label: str = "compute-graph",
        *,
        ctx: GraphContext | None = None,
    ):
        """
        Initialize an empty ComputeGraph.

        Args:
            label (str, optional):
                Label used in summaries and diagnostic dumps.
            ctx (GraphContext, optional):
                Construction context providing the logger. A fresh context is
                created if None.

        """
        self.label = label
        self.ctx = ctx or GraphContext()
        self._logger = self.ctx.logger

        self._nodes: list[GraphNode] = []
        self._nodes_by_name: dict[str, GraphNode] = {}

        # Role classification lists (insertion order)
        self._input_nodes: list[GraphNode] = []
        self._output_nodes: list[GraphNode] = []
        self._loss_nodes: list[GraphNode] = []
        self._stat_nodes: list[GraphNode] = []
        self._training_nodes: list[GraphNode] = []

        self._state = GraphState.UNBUILT

    # ================================================
    # Properties & Dunders
    # ================================================
    @property
    def state(self) -> GraphState:
        return self._state

    @property
    def is_initialized(self) -> bool:
        return self._state is GraphState.INITIALIZED

    @property
    def nodes(self) -> list[GraphNode]:
        """All nodes in insertion (= forward execution) order."""
        return list(self._nodes)

    @property
    def input_nodes(self) -> list[GraphNode]:
        """Nodes without input connections."""
        return list(self._input_nodes)

    @property
    def output_nodes(self) -> list[GraphNode]:
        return list(self._output_nodes)

    @property
    def default_output_node(self) -> GraphNode | None:
        """The first designated output node, or None if there is none."""
        return self._output_nodes[0] if self._output_nodes else None

    @property
    def loss_nodes(self) -> list[GraphNode]:
        return list(self._loss_nodes)

    @property
    def stat_nodes(self) -> list[GraphNode]:
        return list(self._stat_nodes)

    @property
    def training_nodes(self) -> list[GraphNode]:
        """Data-source nodes that pull samples from an external dataset."""
        return list(self._training_nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self):
        return iter(self._nodes)

    def __repr__(self):
        return f"ComputeGraph(label='{self.label}', nodes={len(self._nodes)}, state={self._state.value})"

    # ================================================
    # Graph Manipulation
    # ================================================
    def add_node(self, node: GraphNode) -> GraphNode:
        """
        Append a node to the graph.

        Description:
            Assigns the next node id, classifies the node into the role lists,
            indexes it by name, and registers a reverse (backprop) connection on
            every producer feeding it through a backprop-enabled connection.

        Args:
            node (GraphNode): Node to add. All of its input connections must
                reference nodes already in this graph.

        Returns:
            GraphNode: The added node, with `node_id` assigned.

        Raises:
            GraphStateError: If the graph is already initialized.
            GraphConfigurationError: If the name is already taken or an input
                connection references a node that is not in the graph.

        """
        if self._state is GraphState.INITIALIZED:
            msg = "Nodes cannot be added to a ComputeGraph after `initialize()`."
            raise GraphStateError(message=msg)
        if not isinstance(node, GraphNode):
            msg = f"Expected GraphNode, got {type(node)}"
            raise TypeError(msg)
        if node.node_id is not None:
            msg = f"Node '{node.name}' is already part of a ComputeGraph."
            raise ValueError(msg)
        if node.name in self._nodes_by_name:
            msg = f"Node '{node.name}' already exists in ComputeGraph."
            raise GraphConfigurationError(msg, node_name=node.name)

        for slot, conn in enumerate(node.input_connections):
            if not 0 <= conn.node_id < len(self._nodes):
                msg = (
                    f"Input {slot} of node '{node.name}' references node id "
                    f"{conn.node_id}, which is not in the ComputeGraph."
                )
                raise GraphConfigurationError(msg, node_name=node.name)

        node.node_id = len(self._nodes)
        self._nodes.append(node)
        self._nodes_by_name[node.name] = node

        if not node.input_connections:
            node.is_input = True
            self._input_nodes.append(node)
        if node.is_output:
            self._output_nodes.append(node)
        if node.is_statistics:
            self._stat_nodes.append(node)
        if node.is_loss:
            self._loss_nodes.append(node)
        if node.is_training:
            self._training_nodes.append(node)

        for slot, conn in enumerate(node.input_connections):
            if conn.backprop:
                self.get_node_by_id(conn.node_id).backprop_connections.append(
                    BackpropConnection(node_id=node.node_id, slot=slot, buffer=conn.buffer),
                )

        self._state = GraphState.BUILDING
        self._logger.debug(
            f"Added node {node.node_id} '{node.name}' ({node.unit_type}) "
            f"with {len(node.input_connections)} input(s).",
        )
        return node

    # ================================================
    # Node Queries
    # ================================================
    def contains_node(self, name: str) -> bool:
        return name in self._nodes_by_name

    def get_node(
        self,
        name: str,
        error_mode: ErrorMode = ErrorMode.IGNORE,
    ) -> GraphNode | None:
        """
        Look up a node by name.

        Args:
            name (str): Unique node name.
            error_mode (ErrorMode, optional):
                Behavior for unknown names. IGNORE (default) returns None, WARN
                emits a warning and returns None, RAISE raises KeyError.

        Returns:
            GraphNode | None: The node, or None if no node has this name.

        """
        node = self._nodes_by_name.get(name)
        if node is None:
            msg = f"No node named '{name}' in ComputeGraph '{self.label}'."
            if error_mode == ErrorMode.RAISE:
                raise KeyError(msg)
            if error_mode == ErrorMode.WARN:
                warn(msg, category=UserWarning, stacklevel=2)
        return node

    def get_node_by_id(self, node_id: int) -> GraphNode:
        """
        Return the node stored at arena index `node_id`.

        Raises:
            KeyError: If no node has this id.

        """
        if not 0 <= node_id < len(self._nodes):
            msg = f"No node with id {node_id} in ComputeGraph '{self.label}'."
            raise KeyError(msg)
        return self._nodes[node_id]

    def _resolve_nodes(self, nodes: Iterable[GraphNode | str] | None) -> list[GraphNode]:
        if nodes is None:
            return self._nodes
        resolved: list[GraphNode] = []
        for n in nodes:
            if isinstance(n, str):
                resolved.append(self.get_node(n, error_mode=ErrorMode.RAISE))
            elif isinstance(n, GraphNode):
                if n.node_id is None or n.node_id >= len(self._nodes) or self._nodes[n.node_id] is not n:
                    msg = f"Node '{n.name}' is not part of ComputeGraph '{self.label}'."
                    raise ValueError(msg)
                resolved.append(n)
            else:
                msg = f"Expected GraphNode or node name, got {type(n)}."
                raise TypeError(msg)
        return resolved

    def _require_initialized(self, method: str):
        if self._state is not GraphState.INITIALIZED:
            raise GraphStateError(method=method)

    # ================================================
    # Initialization
    # ================================================
    def initialize(self) -> ComputeGraph:
        """
        Resolve connections and negotiate buffer shapes for every node.

        Description:
            Visits nodes in insertion order, so every producer's outputs are
            shaped before any consumer sees them. Each input connection is
            resolved to a per-connection view of the producer's output buffer;
            the node's unit then creates its outputs and binds the buffers.

        Returns:
            ComputeGraph: self

        Raises:
            GraphStateError: If the graph is empty or already initialized.
            GraphInitializationError: If a node rejects its resolved inputs.

        """
        if self._state is GraphState.UNBUILT:
            msg = "Cannot initialize a ComputeGraph without nodes."
            raise GraphStateError(message=msg)
        if self._state is GraphState.INITIALIZED:
            msg = f"ComputeGraph '{self.label}' is already initialized."
            raise GraphStateError(message=msg)

        for node in self._nodes:
            self._initialize_node(node)

        self._state = GraphState.INITIALIZED
        self._warn_dangling_outputs()
        self._logger.debug(f"Initialized ComputeGraph '{self.label}' with {len(self._nodes)} nodes.")
        return self

    def _initialize_node(self, node: GraphNode):
        inputs: list[Buffer] = []
        for slot, conn in enumerate(node.input_connections):
            source = self.get_node_by_id(conn.node_id)
            if conn.buffer >= len(source.output_buffers):
                msg = (
                    f"Input {slot} of node '{node.name}' requests buffer {conn.buffer} "
                    f"of '{source.name}', which has {len(source.output_buffers)} output(s)."
                )
                raise GraphInitializationError(msg, node_name=node.name)
            source_buffer = source.output_buffers[conn.buffer]
            inputs.append(
                source_buffer.connected_view(
                    backprop=conn.backprop and source_buffer.requires_grad,
                ),
            )

        try:
            outputs = node.unit.create_outputs(inputs)
        except UnitInputError as exc:
            msg = f"Node '{node.name}' rejected its inputs: {exc}"
            raise GraphInitializationError(msg, node_name=node.name) from exc

        if not node.unit.connect(inputs, outputs):
            shapes = ", ".join(format_shape(b.shape) for b in inputs)
            msg = f"Node '{node.name}' could not connect to inputs [{shapes}]."
            raise GraphInitializationError(msg, node_name=node.name)

        node.input_buffers = inputs
        node.output_buffers = outputs
        node.unit.backprop_enabled = any(b.requires_grad for b in inputs)

        self._logger.debug(
            f"Node '{node.name}': inputs "
            f"[{', '.join(format_shape(b.shape) for b in inputs)}] -> outputs "
            f"[{', '.join(format_shape(b.shape) for b in outputs)}]",
        )

    def _warn_dangling_outputs(self):
        consumed = {c.node_id for n in self._nodes for c in n.input_connections}
        dangling = [
            n.name
            for n in self._nodes
            if n.output_buffers
            and n.node_id not in consumed
            and not (n.is_output or n.is_loss or n.is_statistics)
        ]
        if dangling:
            msg = f"Outputs of nodes {dangling} are never consumed in ComputeGraph '{self.label}'."
            hint = "Mark them as outputs or connect them to a consumer."
            warn(msg, category=UserWarning, hints=hint, stacklevel=3)

    def is_complete(self) -> bool:
        """
        Structural completeness check.

        Returns:
            bool: True only if the graph has at least one input and one output
                node, input nodes have no connections, every other node has at
                least one connection, and every connection points to an earlier
                node (and, once initialized, to an existing output buffer).

        """
        if not self._nodes or not self._input_nodes or not self._output_nodes:
            return False

        for node in self._nodes:
            if node.is_input and node.input_connections:
                return False
            if not node.is_input and not node.input_connections:
                return False
            for conn in node.input_connections:
                if not 0 <= conn.node_id < node.node_id:
                    return False
                if self.is_initialized and conn.buffer >= len(self.get_node_by_id(conn.node_id).output_buffers):
                    return False
        return True

    # ================================================
    # Traversal
    # ================================================
    def feed_forward(
        self,
        nodes: Iterable[GraphNode | str] | None = None,
        *,
        clear_flag: bool = True,
    ):
        """
        Run the forward hooks of `nodes` and everything they depend on.

        Description:
            Nodes run in insertion order, each at most once per call. A node
            that is requested but whose producers have not run yet pulls those
            producers in first.

        Args:
            nodes (Iterable[GraphNode | str] | None, optional):
                Nodes (or names) to compute. All nodes if None.
            clear_flag (bool, optional):
                Reset visit markers before traversing. With False, nodes visited
                by a previous call are not run again. Defaults to True.

        Raises:
            GraphStateError: If the graph is not initialized.

        """
        self._require_initialized("feed_forward")
        targets = self._resolve_nodes(nodes)
        if clear_flag:
            for node in self._nodes:
                node.flag_ff_visited = False

        pending = self._collect(targets, upstream=True)
        for node_id in sorted(pending):
            node = self._nodes[node_id]
            node.unit.feed_forward()
            node.flag_ff_visited = True

    def back_propagate(
        self,
        nodes: Iterable[GraphNode | str] | None = None,
        *,
        clear_flag: bool = True,
    ):
        """
        Run the backward hooks of `nodes` and every backprop consumer of them.

        Description:
            Nodes run in reverse insertion order, each at most once per call.
            Before a node's hook runs, the gradient contributions written by
            its consumers across backprop-enabled connections are summed into
            its output buffers' `delta`.

        Args:
            nodes (Iterable[GraphNode | str] | None, optional):
                Nodes (or names) to back-propagate. All nodes if None.
            clear_flag (bool, optional):
                Reset visit markers before traversing. Defaults to True.

        Raises:
            GraphStateError: If the graph is not initialized.

        """
        self._require_initialized("back_propagate")
        targets = self._resolve_nodes(nodes)
        if clear_flag:
            for node in self._nodes:
                node.flag_bp_visited = False

        pending = self._collect(targets, upstream=False)
        for node_id in sorted(pending, reverse=True):
            node = self._nodes[node_id]
            self._accumulate_gradients(node)
            node.unit.back_propagate()
            node.flag_bp_visited = True

    def _collect(self, targets: list[GraphNode], *, upstream: bool) -> set[int]:
        """
        Collect ids of not-yet-visited targets plus their unvisited dependencies.

        Forward dependencies are producers (input connections); backward
        dependencies are backprop consumers.
        """
        pending: set[int] = set()
        stack = [n.node_id for n in targets]
        while stack:
            node_id = stack.pop()
            node = self._nodes[node_id]
            visited = node.flag_ff_visited if upstream else node.flag_bp_visited
            if node_id in pending or visited:
                continue
            pending.add(node_id)
            if upstream:
                stack.extend(c.node_id for c in node.input_connections)
            else:
                stack.extend(c.node_id for c in node.backprop_connections)
        return pending

    def _accumulate_gradients(self, node: GraphNode):
        for index, output in enumerate(node.output_buffers):
            if output.delta is None:
                continue
            output.delta.fill(0.0)
            for bc in node.backprop_connections:
                if bc.buffer != index:
                    continue
                contribution = self.get_node_by_id(bc.node_id).input_buffers[bc.slot].delta
                if contribution is not None:
                    output.delta += contribution

    # ================================================
    # Data sources & statistics
    # ================================================
    def select_and_load_samples(self):
        """Load the next batch into every data-source node."""
        self._require_initialized("select_and_load_samples")
        for node in self._training_nodes:
            node.unit.select_and_load_samples()

    def set_testing_mode(self, testing: bool):
        """Switch every data-source node between training and testing order."""
        for node in self._training_nodes:
            node.unit.set_testing_mode(testing)

    def set_stat_units_enabled(self, enabled: bool):
        """Enable or disable every statistics unit."""
        for node in self._stat_nodes:
            node.unit.enabled = enabled

    def aggregate_loss(self) -> float:
        """
        Sum of the losses reported by all loss nodes.

        Returns:
            float: Aggregated loss; 0.0 if there are no loss nodes.

        """
        self._require_initialized("aggregate_loss")
        return float(sum(node.unit.get_loss() for node in self._loss_nodes))

    # ================================================
    # Parameter Management
    # ================================================
    def initialize_weights(self):
        """Invoke the weight-initialization hook of every parameterized node once, in forward order."""
        self._require_initialized("initialize_weights")
        for node in self._nodes:
            if node.has_parameters:
                node.unit.initialize_weights()

    def get_parameters(self, out: list[Buffer] | None = None) -> list[Buffer]:
        """
        Collect all parameter buffers in forward node order.

        Description:
            This order is the serialization contract of
            :meth:`serialize_parameters` and :meth:`deserialize_parameters`.

        Args:
            out (list[Buffer], optional): List to append to. A new list is used if None.

        Returns:
            list[Buffer]: `out`, extended with the parameter buffers.

        """
        self._require_initialized("get_parameters")
        params = out if out is not None else []
        for node in self._nodes:
            params.extend(node.parameters)
        return params

    def serialize_parameters(self, stream: BinaryIO):
        """
        Write the parameters of every parameterized node to `stream`.

        Args:
            stream (BinaryIO): Writable binary stream.

        """
        self._require_initialized("serialize_parameters")
        for node in self._nodes:
            params = node.parameters
            for p in params:
                write_buffer(stream, p)
            if params:
                self._logger.debug(f"Serialized {len(params)} parameter buffer(s) of '{node.name}'.")

    def deserialize_parameters(self, stream: BinaryIO, last_layer: int = 0) -> int:
        """
        Restore parameters from `stream` in forward node order.

        Description:
            `last_layer` counts parameterized nodes: with `last_layer=k` only
            the first k of them are restored and the rest keep their current
            values. `0` restores all of them. A node's buffers are only written
            once all of its records have been read successfully.

        Args:
            stream (BinaryIO): Readable binary stream.
            last_layer (int, optional): Number of parameterized nodes to restore.

        Returns:
            int: Number of nodes restored.

        Raises:
            ValueError: If `last_layer` is negative.
            ParameterStreamError: If the stream is exhausted early or a
                persisted shape does not match the live buffer.

        """
        self._require_initialized("deserialize_parameters")
        if last_layer < 0:
            msg = f"`last_layer` must be non-negative. Received: {last_layer}."
            raise ValueError(msg)

        param_nodes = [n for n in self._nodes if n.has_parameters]
        limit = len(param_nodes) if last_layer == 0 else min(last_layer, len(param_nodes))

        for node in param_nodes[:limit]:
            params = node.parameters
            staged: list[Buffer] = []
            for index, p in enumerate(params):
                tmp = Buffer(p.shape, requires_grad=False)
                try:
                    read_buffer_into(stream, tmp)
                except ParameterStreamError as exc:
                    msg = f"Failed to restore parameter {index} of node '{node.name}': {exc}"
                    raise ParameterStreamError(msg) from exc
                staged.append(tmp)
            for p, tmp in zip(params, staged):
                p.data[...] = tmp.data
            self._logger.debug(f"Restored {len(params)} parameter buffer(s) of '{node.name}'.")

        return limit

    # ================================================
    # Representation
    # ================================================
    def _summary_rows(self) -> list[tuple]:
        return [
            ("label", self.label),
            ("state", self._state.value),
            (
                "nodes",
                [
                    (
                        f"{n.node_id}",
                        f"{n.name} ({n.unit_type}) <- "
                        + (", ".join(self.get_node_by_id(c.node_id).name for c in n.input_connections) or "-"),
                    )
                    for n in self._nodes
                ],
            ),
            ("outputs", [(n.name, "") for n in self._output_nodes]),
            ("losses", [(n.name, "") for n in self._loss_nodes]),
        ]

    def print_graph(self, stream: TextIO):
        """
        Write a Graphviz `digraph` of the nodes and connections to `stream`.

        Output shapes are included once the graph is initialized. Connections
        that do not propagate gradients are dashed. Does not modify the graph.

        Args:
            stream (TextIO): Writable text stream.

        """

        def esc(text: str) -> str:
            for ch in '\\"{}|<>':
                text = text.replace(ch, f"\\{ch}")
            return text

        stream.write(f'digraph "{esc(self.label)}" {{\n')
        stream.write("  node [shape=record];\n")
        for node in self._nodes:
            fields = [f"{esc(node.name)}\\n{esc(node.unit_type)}"]
            fields.extend(
                f"<o{i}> {esc(b.description)} {format_shape(b.shape)}"
                for i, b in enumerate(node.output_buffers)
            )
            style = ", style=bold" if node.is_output else ""
            stream.write(f'  node{node.node_id} [label="{{{" | ".join(fields)}}}"{style}];\n')

        for node in self._nodes:
            for conn in node.input_connections:
                source = self.get_node_by_id(conn.node_id)
                port = f":o{conn.buffer}" if conn.buffer < len(source.output_buffers) else ""
                attrs = f'label="{conn.buffer}"' + ("" if conn.backprop else ", style=dashed")
                stream.write(f"  node{conn.node_id}{port} -> node{node.node_id} [{attrs}];\n")
        stream.write("}\n")
