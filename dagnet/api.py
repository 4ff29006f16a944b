# ================================================
# Graph
# ================================================
from dagnet.core.graph.buffer import Buffer
from dagnet.core.graph.connection import BackpropConnection, Connection
from dagnet.core.graph.graph_context import GraphContext
from dagnet.core.graph.graph_node import GraphNode
from dagnet.core.graph.compute_graph import ComputeGraph, GraphState
from dagnet.core.graph.graph_builder import GraphBuilder


# ================================================
# Data
# ================================================
from dagnet.core.data.dataset import ArrayDataset, Dataset, MetadataSource


# ================================================
# Units
# ================================================
from dagnet.units import (
    AccuracyUnit,
    ConcatenateUnit,
    DatasetInputUnit,
    ErrorUnit,
    FullyConnectedUnit,
    ProcessingUnit,
    ReLUUnit,
    SigmoidUnit,
    SumUnit,
    TanhUnit,
    build_unit,
)

"""
Unit base classes and the registry are accessed with:

```python
    from dagnet.units import LossUnit, StatisticsUnit, TrainingUnit, unit_registry
```
"""


__all__ = [
    "AccuracyUnit",
    "ArrayDataset",
    "BackpropConnection",
    "Buffer",
    "ComputeGraph",
    "ConcatenateUnit",
    "Connection",
    "Dataset",
    "DatasetInputUnit",
    "ErrorUnit",
    "FullyConnectedUnit",
    "GraphBuilder",
    "GraphContext",
    "GraphNode",
    "GraphState",
    "MetadataSource",
    "ProcessingUnit",
    "ReLUUnit",
    "SigmoidUnit",
    "SumUnit",
    "TanhUnit",
    "build_unit",
]
