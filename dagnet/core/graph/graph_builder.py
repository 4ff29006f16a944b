"""Declarative construction of a :class:`ComputeGraph` from an unordered node map."""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Any

from dagnet.core.graph.compute_graph import ComputeGraph
from dagnet.core.graph.connection import Connection
from dagnet.core.graph.graph_context import GraphContext
from dagnet.core.graph.graph_node import GraphNode
from dagnet.units import DatasetInputUnit, ErrorUnit, build_unit, unit_registry
from dagnet.utils.data.formatting import ensure_list, unique_in_order
from dagnet.utils.errors.exceptions import GraphConfigurationError

if TYPE_CHECKING:
    from dagnet.units.base_unit import ProcessingUnit


LOSS_NODE_PREFIX = "loss_"


class GraphBuilder:
    """
    Builds a ComputeGraph from a declarative description.

    Description:
        The description is a mapping of the form::

            {
                "nodes": {
                    "<name>": {
                        "unit": "<type>" | {"type": "<type>", ...params},
                        "input": "<name>" | ["<name>" | {"node": ..., "buffer": 0, "backprop": true}, ...],
                    },
                    ...
                },
                "input": "<name>" | ["<name>", ...],
                "output": "<name>" | ["<name>", ...],
            }

        Nodes may be declared in any order. They are inserted round by round:
        a node becomes insertable once all of its inputs were present in the
        graph at the start of the round, and insertable nodes are inserted in
        declaration order. Nodes named in `input` additionally receive the data
        buffer of the graph's data-source node (without backprop); every node
        named in `output` gets a `loss_<name>` error node comparing its first
        output against the data source's label and weight buffers.

    Attributes:
        insertion_rounds (list[list[str]]): Names inserted in each round of the
            last :meth:`add_nodes` call.

    """

    def __init__(self, description: dict[str, Any], *, ctx: GraphContext | None = None):
        """
        Initialize a GraphBuilder.

        Args:
            description (dict[str, Any]): Declarative graph description.
            ctx (GraphContext, optional): Context providing the logger and the
                seed generator. A fresh context is created if None.

        Raises:
            GraphConfigurationError: If `description` has no `nodes` mapping, or a
                top-level `input` or `output` entry is not a node name.

        """
        if not isinstance(description, dict):
            msg = f"Graph description must be a dict, got {type(description)}."
            raise GraphConfigurationError(msg)
        if "nodes" not in description:
            msg = "Graph description has no `nodes`."
            raise GraphConfigurationError(msg)
        if not isinstance(description["nodes"], dict):
            msg = f"`nodes` must map node names to descriptions, got {type(description['nodes'])}."
            raise GraphConfigurationError(msg)

        self.description = description
        self.ctx = ctx or GraphContext()
        self._logger = self.ctx.logger

        self.input_names: list[str] = self._declared_names(description, "input")
        self.output_names: list[str] = self._declared_names(description, "output")
        self.insertion_rounds: list[list[str]] = []

    @classmethod
    def from_json_string(cls, text: str, *, ctx: GraphContext | None = None) -> GraphBuilder:
        """
        Create a GraphBuilder from a JSON document.

        Raises:
            GraphConfigurationError: If `text` is not valid JSON.

        """
        try:
            description = json.loads(text)
        except json.JSONDecodeError as exc:
            msg = f"Graph description is not valid JSON: {exc}"
            raise GraphConfigurationError(msg) from exc
        return cls(description, ctx=ctx)

    @classmethod
    def from_json(cls, path: str | Path, *, ctx: GraphContext | None = None) -> GraphBuilder:
        """Create a GraphBuilder from a JSON file."""
        return cls.from_json_string(Path(path).read_text(encoding="utf-8"), ctx=ctx)

    @property
    def nodes(self) -> dict[str, Any]:
        return self.description["nodes"]

    # ================================================
    # Description parsing
    # ================================================
    @staticmethod
    def _declared_names(description: dict[str, Any], key: str) -> list[str]:
        names = ensure_list(description.get(key))
        for entry in names:
            if not isinstance(entry, str):
                msg = f"Top-level `{key}` entries must be node names, got {entry!r}."
                raise GraphConfigurationError(msg)
        return unique_in_order(names)

    def _parse_inputs(self, name: str, node_desc: dict[str, Any]) -> list[tuple[str, int, bool]]:
        entries: list[tuple[str, int, bool]] = []
        for entry in ensure_list(node_desc.get("input")):
            if isinstance(entry, str):
                entries.append((entry, 0, True))
            elif isinstance(entry, dict) and isinstance(entry.get("node"), str):
                try:
                    buffer = int(entry.get("buffer", 0))
                except (TypeError, ValueError) as exc:
                    msg = f"Input of node '{name}' has an invalid buffer index: {entry}."
                    raise GraphConfigurationError(msg, node_name=name) from exc
                if buffer < 0:
                    msg = f"Input of node '{name}' has a negative buffer index: {entry}."
                    raise GraphConfigurationError(msg, node_name=name)
                backprop = entry.get("backprop", True)
                if not isinstance(backprop, bool):
                    msg = f"Input of node '{name}' has a non-boolean `backprop` flag: {entry}."
                    raise GraphConfigurationError(msg, node_name=name)
                entries.append((entry["node"], buffer, backprop))
            else:
                msg = (
                    f"Input entries of node '{name}' must be node names or "
                    f"{{'node', 'buffer', 'backprop'}} mappings, got {entry!r}."
                )
                raise GraphConfigurationError(msg, node_name=name)
        return entries

    def _unit_config(self, name: str, node_desc: dict[str, Any]) -> dict[str, Any]:
        if "unit" not in node_desc:
            msg = f"Node '{name}' has no `unit`."
            raise GraphConfigurationError(msg, node_name=name)
        unit = node_desc["unit"]
        if isinstance(unit, str):
            return {"type": unit}
        if isinstance(unit, dict) and isinstance(unit.get("type"), str):
            return dict(unit)
        msg = f"`unit` of node '{name}' must be a type name or a mapping with `type`, got {unit!r}."
        raise GraphConfigurationError(msg, node_name=name)

    def _build_unit(self, name: str, config: dict[str, Any], seed: int) -> ProcessingUnit:
        unit_cls = unit_registry.get(config["type"])
        if unit_cls is None:
            msg = f"Node '{name}' uses unknown unit type '{config['type']}'."
            raise GraphConfigurationError(msg, node_name=name)
        if unit_cls.uses_seed and "seed" not in config:
            config = {**config, "seed": seed}
        try:
            return build_unit(config)
        except (TypeError, ValueError) as exc:
            msg = f"Could not construct unit of node '{name}': {exc}"
            raise GraphConfigurationError(msg, node_name=name) from exc

    def _validate(self, graph: ComputeGraph):
        for name, node_desc in self.nodes.items():
            if not isinstance(node_desc, dict):
                msg = f"Description of node '{name}' must be a mapping, got {type(node_desc)}."
                raise GraphConfigurationError(msg, node_name=name)
            if graph.contains_node(name):
                msg = f"Declared node '{name}' already exists in the ComputeGraph."
                raise GraphConfigurationError(msg, node_name=name)

        for name in self.input_names:
            if name not in self.nodes:
                msg = f"Declared input '{name}' is not a declared node."
                raise GraphConfigurationError(msg, node_name=name)
        for name in self.output_names:
            if name not in self.nodes:
                msg = f"Declared output '{name}' is not a declared node."
                raise GraphConfigurationError(msg, node_name=name)

        if (self.input_names or self.output_names) and not graph.training_nodes:
            msg = (
                "Graph description requests dataset input or outputs, but the "
                "ComputeGraph has no data-source node."
            )
            raise GraphConfigurationError(msg)

    # ================================================
    # Construction
    # ================================================
    def add_nodes(self, graph: ComputeGraph, seed: int = 0) -> ComputeGraph:
        """
        Insert all declared nodes and loss nodes into `graph`, then initialize it.

        Description:
            Runs the fixed-point insertion rounds, attaches one loss node per
            declared output, initializes the graph and checks completeness.
            The graph must already contain its data-source node if the
            description declares inputs or outputs. On failure the graph is
            left partially populated and must be discarded.

        Args:
            graph (ComputeGraph): Graph to populate.
            seed (int, optional): Seed of the generator all unit seeds are drawn
                from. Defaults to 0.

        Returns:
            ComputeGraph: The initialized graph.

        Raises:
            GraphConfigurationError: On malformed descriptions, dangling or
                cyclic references, or an incomplete result.
            GraphInitializationError: If a node rejects its resolved inputs.

        """
        self._validate(graph)
        self.ctx.reseed(seed)
        self.insertion_rounds = []

        data_source = graph.training_nodes[0] if graph.training_nodes else None
        self._insert_declared_nodes(graph, data_source)
        self._attach_loss_nodes(graph, data_source)

        graph.initialize()
        if not graph.is_complete():
            msg = f"ComputeGraph '{graph.label}' is incomplete after construction."
            raise GraphConfigurationError(msg)

        self._logger.debug(
            f"Built ComputeGraph '{graph.label}' in {len(self.insertion_rounds)} round(s): "
            f"{self.insertion_rounds}",
        )
        return graph

    def _insert_declared_nodes(self, graph: ComputeGraph, data_source: GraphNode | None):
        pending: dict[str, tuple[dict[str, Any], list[tuple[str, int, bool]]]] = {
            name: (self._unit_config(name, desc), self._parse_inputs(name, desc))
            for name, desc in self.nodes.items()
        }

        # Each productive round inserts at least one node
        for _ in range(len(pending)):
            if not pending:
                break

            # Insertability is judged against the graph as it was at round start
            present = {n.name for n in graph.nodes}
            insertable = [
                name
                for name, (_, inputs) in pending.items()
                if all(src in present for src, _, _ in inputs)
            ]
            if not insertable:
                break

            for name in insertable:
                config, inputs = pending.pop(name)
                self._insert_node(graph, name, config, inputs, data_source)
            self.insertion_rounds.append(insertable)

        if pending:
            raise self._no_progress_error(graph, pending)

    def _insert_node(
        self,
        graph: ComputeGraph,
        name: str,
        config: dict[str, Any],
        inputs: list[tuple[str, int, bool]],
        data_source: GraphNode | None,
    ):
        unit = self._build_unit(name, config, self.ctx.next_seed())

        connections = [
            Connection(graph.get_node(src).node_id, buffer=buffer, backprop=backprop)
            for src, buffer, backprop in inputs
        ]
        if name in self.input_names:
            connections.append(
                Connection(
                    data_source.node_id,
                    buffer=DatasetInputUnit.DATA_BUFFER,
                    backprop=False,
                ),
            )

        self._logger.debug(f"Inserting node '{name}': {unit!r} <- {[src for src, _, _ in inputs]}")
        graph.add_node(
            GraphNode(
                unit,
                connections,
                name=name,
                is_output=name in self.output_names,
            ),
        )

    def _no_progress_error(
        self,
        graph: ComputeGraph,
        pending: dict[str, tuple[dict[str, Any], list[tuple[str, int, bool]]]],
    ) -> GraphConfigurationError:
        for name, (_, inputs) in pending.items():
            for src, _, _ in inputs:
                if not graph.contains_node(src) and src not in self.nodes:
                    msg = f"Node '{name}' references unknown input '{src}'."
                    return GraphConfigurationError(msg, node_name=name)

        names = list(pending)
        msg = f"Nodes {names} could not be inserted; their inputs form a cycle."
        return GraphConfigurationError(msg, node_name=names[0])

    def _attach_loss_nodes(self, graph: ComputeGraph, data_source: GraphNode | None):
        for output_name in self.output_names:
            output_node = graph.get_node(output_name)
            if output_node is None:
                msg = f"ComputeGraph does not contain output node '{output_name}'."
                raise GraphConfigurationError(msg, node_name=output_name)

            graph.add_node(
                GraphNode(
                    ErrorUnit(),
                    [
                        Connection(output_node.node_id, buffer=0, backprop=True),
                        Connection(
                            data_source.node_id,
                            buffer=DatasetInputUnit.LABEL_BUFFER,
                            backprop=False,
                        ),
                        Connection(
                            data_source.node_id,
                            buffer=DatasetInputUnit.WEIGHT_BUFFER,
                            backprop=False,
                        ),
                    ],
                    name=f"{LOSS_NODE_PREFIX}{output_name}",
                ),
            )

    # ================================================
    # Convenience
    # ================================================
    def build(
        self,
        data_source: ProcessingUnit | None = None,
        *,
        seed: int = 0,
        label: str = "compute-graph",
        data_source_name: str = "dataset",
    ) -> ComputeGraph:
        """
        Create a new ComputeGraph, add `data_source` to it and run :meth:`add_nodes`.

        Args:
            data_source (ProcessingUnit, optional): Data-source unit, typically a
                :class:`DatasetInputUnit`.
            seed (int, optional): Seed of the unit seed generator.
            label (str, optional): Label of the new graph.
            data_source_name (str, optional): Node name of the data source.

        Returns:
            ComputeGraph: The initialized graph.

        """
        graph = ComputeGraph(label=label, ctx=self.ctx)
        if data_source is not None:
            graph.add_node(GraphNode(data_source, name=data_source_name))
        return self.add_nodes(graph, seed=seed)
