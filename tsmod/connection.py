"""Connections and externally supplied parameter values.

Connections are declared against names only. Whether the named datums exist
and agree in dimensionality is verified by :func:`tsmod.build.build`.

"""
from dataclasses import dataclass
from typing import Any, Optional, Tuple

import numpy as np


@dataclass(frozen=True)
class InternalParameterConnection:
    """Feed a destination parameter from a source component's variable.

    When `backup` names an external parameter, the builder may use it to
    supply values for periods the source component does not cover.

    """

    src_comp_name: str
    src_var_name: str
    dst_comp_name: str
    dst_par_name: str
    ignore_units: bool = False
    backup: Optional[str] = None


@dataclass(frozen=True)
class ExternalParameterConnection:
    """Feed a component parameter from the model's external parameters."""

    comp_name: str
    param_name: str
    external_param: str


class ModelParameter:
    """Base of externally supplied parameter values."""

    def copy(self) -> 'ModelParameter':
        raise NotImplementedError()  # pragma: no cover


class ScalarModelParameter(ModelParameter):
    def __init__(self, value: Any) -> None:
        self.value = value

    def __repr__(self) -> str:
        return f'ScalarModelParameter({self.value!r})'

    def copy(self) -> 'ScalarModelParameter':
        return ScalarModelParameter(self.value)


class ArrayModelParameter(ModelParameter):
    """Array value with optional dimension names.

    An empty `dimensions` tuple means the dimension names are unknown.

    """

    def __init__(self, values: Any, dimensions: Tuple[str, ...] = ()) -> None:
        self.values = np.array(values)
        self.dimensions = tuple(dimensions)

    def __repr__(self) -> str:
        return f'ArrayModelParameter({self.values!r}, {self.dimensions!r})'

    def copy(self) -> 'ArrayModelParameter':
        return ArrayModelParameter(self.values, self.dimensions)


def model_parameter(value: Any, dimensions: Tuple[str, ...] = ()) -> ModelParameter:
    """Wrap a scalar or array-like value as a :class:`ModelParameter`."""
    if isinstance(value, ModelParameter):
        return value
    if np.ndim(value) == 0:
        return ScalarModelParameter(value)
    return ArrayModelParameter(value, dimensions)
