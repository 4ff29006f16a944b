from dagnet.api import (
    AccuracyUnit,
    ArrayDataset,
    BackpropConnection,
    Buffer,
    ComputeGraph,
    ConcatenateUnit,
    Connection,
    Dataset,
    DatasetInputUnit,
    ErrorUnit,
    FullyConnectedUnit,
    GraphBuilder,
    GraphContext,
    GraphNode,
    GraphState,
    MetadataSource,
    ProcessingUnit,
    ReLUUnit,
    SigmoidUnit,
    SumUnit,
    TanhUnit,
    build_unit,
)

__version__ = "0.1.0"
