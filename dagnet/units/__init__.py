"""Built-in processing unit registrations."""

from __future__ import annotations

from typing import Any

from dagnet.utils.registries import CaseInsensitiveRegistry

# Import all units
from .base_unit import LossUnit, ProcessingUnit, StatisticsUnit, TrainingUnit
from .accuracy import AccuracyUnit
from .activations import ReLUUnit, SigmoidUnit, TanhUnit
from .dataset_input import DatasetInputUnit
from .error import ErrorUnit
from .fully_connected import FullyConnectedUnit
from .merge import ConcatenateUnit, SumUnit


__all__ = [
    "AccuracyUnit",
    "ConcatenateUnit",
    "DatasetInputUnit",
    "ErrorUnit",
    "FullyConnectedUnit",
    "LossUnit",
    "ProcessingUnit",
    "ReLUUnit",
    "SigmoidUnit",
    "StatisticsUnit",
    "SumUnit",
    "TanhUnit",
    "TrainingUnit",
    "build_unit",
    "unit_registry",
]

# Create registry
unit_registry = CaseInsensitiveRegistry()


def unit_naming_fn(x):
    """
    Return the registry key for a unit class.

    Args:
        x (type): Unit class being registered.

    Returns:
        str: The class's `unit_type`, used to index :data:`unit_registry`.

    """
    return x.unit_type


# Register dagnet units. DatasetInputUnit needs a runtime Dataset and is
# created directly by the caller.
dagnet_units: list[type] = [
    FullyConnectedUnit,
    TanhUnit,
    ReLUUnit,
    SigmoidUnit,
    SumUnit,
    ConcatenateUnit,
    ErrorUnit,
    AccuracyUnit,
]
for t in dagnet_units:
    unit_registry.register(unit_naming_fn(t), t)


def build_unit(config: str | dict[str, Any]) -> ProcessingUnit:
    """
    Construct a registered unit from a type name or config mapping.

    Args:
        config (str | dict[str, Any]): Either a unit type name, or a mapping
            with a `type` key plus constructor arguments.

    Returns:
        ProcessingUnit: New unit instance.

    Raises:
        KeyError: If the unit type is not registered.
        TypeError: If `config` is neither a string nor a mapping.

    """
    if isinstance(config, str):
        config = {"type": config}
    if not isinstance(config, dict):
        msg = f"Unit config must be a str or dict, got {type(config)}."
        raise TypeError(msg)
    if "type" not in config:
        msg = f"Unit config is missing a `type` key: {config}."
        raise KeyError(msg)

    unit_cls = unit_registry.get(config["type"])
    if unit_cls is None:
        msg = f"Unknown unit type '{config['type']}'. Available: {sorted(unit_registry)}."
        raise KeyError(msg)
    return unit_cls.from_config(config)
