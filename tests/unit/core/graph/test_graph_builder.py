"""Unit tests for dagnet.core.graph.graph_builder module."""

import json

import numpy as np
import pytest

from dagnet.core.graph.compute_graph import ComputeGraph
from dagnet.core.graph.connection import Connection
from dagnet.core.graph.graph_builder import GraphBuilder
from dagnet.units import DatasetInputUnit, ErrorUnit
from dagnet.utils.errors import GraphConfigurationError, GraphInitializationError
from dagnet.utils.logging import catch_warnings
from tests.conftest import chain_description


def _data_unit(dataset, seed=7):
    return DatasetInputUnit(dataset, batch_size=4, seed=seed)


def _two_head_description(output):
    return {
        "nodes": {
            "A": {"unit": {"type": "fully_connected", "neurons": 5}},
            "B": {"unit": {"type": "fully_connected", "neurons": 2}, "input": "A"},
            "C": {"unit": {"type": "fully_connected", "neurons": 2}, "input": "A"},
        },
        "input": "A",
        "output": output,
    }


# ---------------------------------------------------------------------
# Fixed-point insertion
# ---------------------------------------------------------------------
@pytest.mark.unit
def test_out_of_order_chain_builds_in_three_rounds(array_dataset):
    """Test that C:B, A:-, B:A inserts A, then B, then C."""
    builder = GraphBuilder(chain_description())
    graph = builder.build(_data_unit(array_dataset), seed=1)

    assert builder.insertion_rounds == [["A"], ["B"], ["C"]]
    assert [n.name for n in graph.nodes] == ["dataset", "A", "B", "C", "loss_C"]
    assert graph.is_initialized
    assert graph.is_complete()


@pytest.mark.unit
def test_independent_nodes_share_a_round(array_dataset):
    """Test that nodes ready at the start of a round are inserted together in declaration order."""
    builder = GraphBuilder(_two_head_description(["C", "B"]))
    builder.build(_data_unit(array_dataset))
    assert builder.insertion_rounds == [["A"], ["B", "C"]]


@pytest.mark.unit
def test_reversed_chain_terminates_within_node_count(array_dataset):
    """Test that a fully reversed chain of N nodes takes exactly N rounds."""
    n = 6
    nodes = {}
    for i in reversed(range(n)):
        nodes[f"n{i}"] = {"unit": "tanh"} if i == 0 else {"unit": "relu", "input": f"n{i - 1}"}
    nodes[f"n{n - 1}"]["unit"] = {"type": "fully_connected", "neurons": 2}

    builder = GraphBuilder({"nodes": nodes, "input": "n0", "output": f"n{n - 1}"})
    builder.build(_data_unit(array_dataset))
    assert builder.insertion_rounds == [[f"n{i}"] for i in range(n)]


@pytest.mark.unit
def test_wiring_of_dataset_and_output_nodes(chain_graph):
    """Test dataset input connections and output designations."""
    a = chain_graph.get_node("A")
    b = chain_graph.get_node("B")
    c = chain_graph.get_node("C")
    assert a.input_connections == [Connection(0, buffer=DatasetInputUnit.DATA_BUFFER, backprop=False)]
    assert b.input_connections == [Connection(a.node_id)]
    assert c.is_output
    assert not b.is_output


@pytest.mark.unit
def test_loss_node_wiring(chain_graph):
    """Test the attached loss node's unit, name and connections."""
    loss = chain_graph.get_node("loss_C")
    c = chain_graph.get_node("C")
    assert isinstance(loss.unit, ErrorUnit)
    assert loss.input_connections == [
        Connection(c.node_id, buffer=0, backprop=True),
        Connection(0, buffer=1, backprop=False),
        Connection(0, buffer=3, backprop=False),
    ]


@pytest.mark.unit
@pytest.mark.parametrize(
    ("output", "expected_losses"),
    [
        (["B", "C"], ["loss_B", "loss_C"]),
        (["C", "C"], ["loss_C"]),
        ("C", ["loss_C"]),
    ],
)
def test_one_loss_node_per_output_name(array_dataset, output, expected_losses):
    """Test that every distinct output name gets exactly one loss node."""
    graph = GraphBuilder(_two_head_description(output)).build(_data_unit(array_dataset))
    assert [n.name for n in graph.loss_nodes] == expected_losses


@pytest.mark.unit
def test_explicit_input_entries(array_dataset):
    """Test input entries given as mappings with buffer and backprop flags."""
    description = chain_description()
    description["nodes"]["B"]["input"] = [{"node": "A", "buffer": 0, "backprop": False}]
    graph = GraphBuilder(description).build(_data_unit(array_dataset))

    b = graph.get_node("B")
    assert b.input_connections == [Connection(graph.get_node("A").node_id, backprop=False)]
    assert graph.get_node("A").backprop_connections == []


@pytest.mark.unit
def test_input_from_data_source_by_name(array_dataset):
    """Test that declared nodes may reference the data-source node by name."""
    description = {
        "nodes": {
            "fc": {"unit": {"type": "fully_connected", "neurons": 2}, "input": [{"node": "dataset", "backprop": False}]},
        },
        "output": "fc",
    }
    graph = GraphBuilder(description).build(_data_unit(array_dataset))
    assert graph.get_node("fc").input_connections == [Connection(0, backprop=False)]


# ---------------------------------------------------------------------
# Seeds
# ---------------------------------------------------------------------
def _weights(graph):
    graph.initialize_weights()
    return [p.data.copy() for p in graph.get_parameters()]


@pytest.mark.unit
def test_same_seed_reproduces_initialization(array_dataset):
    """Test that the same description and seed give identical parameters."""
    g1 = GraphBuilder(chain_description()).build(_data_unit(array_dataset), seed=11)
    g2 = GraphBuilder(chain_description()).build(_data_unit(array_dataset), seed=11)
    for w1, w2 in zip(_weights(g1), _weights(g2)):
        np.testing.assert_array_equal(w1, w2)


@pytest.mark.unit
def test_different_seed_changes_initialization(array_dataset):
    """Test that a different builder seed gives different weights."""
    g1 = GraphBuilder(chain_description()).build(_data_unit(array_dataset), seed=11)
    g2 = GraphBuilder(chain_description()).build(_data_unit(array_dataset), seed=12)
    assert not np.array_equal(_weights(g1)[0], _weights(g2)[0])


@pytest.mark.unit
def test_seed_injection(array_dataset):
    """Test that seeds are injected only into seed-consuming units without one."""
    description = chain_description()
    description["nodes"]["C"]["unit"]["seed"] = 123
    graph = GraphBuilder(description).build(_data_unit(array_dataset))

    assert graph.get_node("C").unit.seed == 123
    assert "seed" in graph.get_node("A").unit.get_config()
    assert graph.get_node("B").unit.get_config() == {"type": "tanh"}


# ---------------------------------------------------------------------
# Configuration errors
# ---------------------------------------------------------------------
@pytest.mark.unit
def test_cycle_fails_without_progress():
    """Test that a genuine cycle fails after one unproductive round."""
    builder = GraphBuilder({"nodes": {"A": {"unit": "tanh", "input": "B"}, "B": {"unit": "tanh", "input": "A"}}})
    graph = ComputeGraph()
    with pytest.raises(GraphConfigurationError, match="cycle") as exc_info:
        builder.add_nodes(graph)
    assert exc_info.value.node_name in {"A", "B"}
    assert builder.insertion_rounds == []
    assert len(graph) == 0


@pytest.mark.unit
def test_dangling_reference_names_the_node(array_dataset):
    """Test that a misspelled input reference reports the referencing node."""
    description = chain_description()
    description["nodes"]["B"]["input"] = "AA"
    with pytest.raises(GraphConfigurationError) as exc_info:
        GraphBuilder(description).build(_data_unit(array_dataset))
    assert exc_info.value.node_name == "B"
    assert "AA" in str(exc_info.value)


@pytest.mark.unit
def test_missing_nodes_key():
    """Test that a description without `nodes` is rejected."""
    with pytest.raises(GraphConfigurationError, match="nodes"):
        GraphBuilder({"input": "A", "output": "A"})


@pytest.mark.unit
@pytest.mark.parametrize("key", ["input", "output"])
def test_top_level_entries_must_be_names(key):
    """Test that non-name `input`/`output` entries are configuration errors."""
    with pytest.raises(GraphConfigurationError, match=f"`{key}` entries"):
        GraphBuilder({"nodes": {}, key: [{"node": "x"}]})


@pytest.mark.unit
@pytest.mark.parametrize("flag", ["false", 0, None])
def test_backprop_flag_must_be_boolean(array_dataset, flag):
    """Test that input entries reject `backprop` values that are not booleans."""
    description = chain_description()
    description["nodes"]["B"]["input"] = [{"node": "A", "backprop": flag}]
    with pytest.raises(GraphConfigurationError, match="backprop") as exc_info:
        GraphBuilder(description).build(_data_unit(array_dataset))
    assert exc_info.value.node_name == "B"


@pytest.mark.unit
def test_missing_unit(array_dataset):
    """Test that nodes must declare a unit."""
    description = chain_description()
    del description["nodes"]["B"]["unit"]
    with pytest.raises(GraphConfigurationError) as exc_info:
        GraphBuilder(description).build(_data_unit(array_dataset))
    assert exc_info.value.node_name == "B"


@pytest.mark.unit
def test_unknown_unit_type(array_dataset):
    """Test that unregistered unit types are rejected with the node name."""
    description = chain_description()
    description["nodes"]["B"]["unit"] = "softsign"
    with pytest.raises(GraphConfigurationError, match="softsign") as exc_info:
        GraphBuilder(description).build(_data_unit(array_dataset))
    assert exc_info.value.node_name == "B"


@pytest.mark.unit
def test_invalid_unit_parameters(array_dataset):
    """Test that unit constructor failures surface as configuration errors."""
    description = chain_description()
    description["nodes"]["A"]["unit"]["neurons"] = 0
    with pytest.raises(GraphConfigurationError) as exc_info:
        GraphBuilder(description).build(_data_unit(array_dataset))
    assert exc_info.value.node_name == "A"


@pytest.mark.unit
def test_inputs_require_data_source():
    """Test that dataset input requests need a data-source node in the graph."""
    with pytest.raises(GraphConfigurationError, match="data-source"):
        GraphBuilder(chain_description()).add_nodes(ComputeGraph())


@pytest.mark.unit
def test_undeclared_output(array_dataset):
    """Test that outputs must name declared nodes."""
    with pytest.raises(GraphConfigurationError) as exc_info:
        GraphBuilder(chain_description(output="Z")).build(_data_unit(array_dataset))
    assert exc_info.value.node_name == "Z"


@pytest.mark.unit
def test_declared_node_clashes_with_graph(array_dataset):
    """Test that declared names must not already exist in the graph."""
    description = chain_description()
    description["nodes"]["dataset"] = {"unit": "tanh", "input": "A"}
    with pytest.raises(GraphConfigurationError) as exc_info:
        GraphBuilder(description).build(_data_unit(array_dataset))
    assert exc_info.value.node_name == "dataset"


@pytest.mark.unit
def test_graph_without_outputs_is_incomplete(array_dataset):
    """Test that a graph without outputs fails the completeness check."""
    description = chain_description()
    del description["output"]
    with catch_warnings(), pytest.raises(GraphConfigurationError, match="incomplete"):
        GraphBuilder(description).build(_data_unit(array_dataset))


@pytest.mark.unit
def test_shape_mismatch_fails_initialization(array_dataset):
    """Test that a loss on an output whose shape differs from the label fails."""
    with pytest.raises(GraphInitializationError) as exc_info:
        GraphBuilder(chain_description(output="B")).build(_data_unit(array_dataset))
    assert exc_info.value.node_name == "loss_B"


# ---------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------
@pytest.mark.unit
def test_from_json_string(array_dataset):
    """Test building from a JSON document."""
    builder = GraphBuilder.from_json_string(json.dumps(chain_description()))
    graph = builder.build(_data_unit(array_dataset))
    assert graph.contains_node("loss_C")


@pytest.mark.unit
def test_from_json_file(tmp_path, array_dataset):
    """Test building from a JSON file."""
    path = tmp_path / "net.json"
    path.write_text(json.dumps(chain_description()), encoding="utf-8")
    graph = GraphBuilder.from_json(path).build(_data_unit(array_dataset))
    assert graph.default_output_node.name == "C"


@pytest.mark.unit
def test_from_json_string_invalid():
    """Test that malformed JSON is reported as a configuration error."""
    with pytest.raises(GraphConfigurationError, match="JSON"):
        GraphBuilder.from_json_string("{nodes: ")
