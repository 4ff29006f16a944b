from .error_handling import ErrorMode
from .exceptions import (
    DagNetError,
    DatasetError,
    GraphConfigurationError,
    GraphInitializationError,
    GraphStateError,
    ParameterStreamError,
    SampleLoadError,
    UnitError,
    UnitInputError,
)

__all__ = [
    "DagNetError",
    "DatasetError",
    "ErrorMode",
    "GraphConfigurationError",
    "GraphInitializationError",
    "GraphStateError",
    "ParameterStreamError",
    "SampleLoadError",
    "UnitError",
    "UnitInputError",
]
