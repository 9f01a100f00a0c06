"""Connector components synthesized by the builder.

A connector sits between a source variable and a destination parameter when
the destination covers periods the source does not. For every period of the
destination's range the connector passes through the source value where the
source covers the period and the backup value otherwise.

Connectors have a fixed schema: parameters ``input1`` (the source variable)
and ``input2`` (the backup), and variable ``output`` (fed to the
destination). :data:`CONNECTOR_VECTOR` serves one-dimensional time series and
:data:`CONNECTOR_MATRIX` serves time-by-index matrices.

"""
from typing import List

from .component import TIME, ComponentDef, ComponentId, DatumDef, DimensionDef

NAMESPACE = 'tsmod'

CONNECTOR_VECTOR = ComponentId(NAMESPACE, 'ConnectorCompVector')
CONNECTOR_MATRIX = ComponentId(NAMESPACE, 'ConnectorCompMatrix')


def _run_connector(p, v, d, t):
    if p.input1.has_period(t.current_period):
        v.output[t] = p.input1[t]
    else:
        v.output[t] = p.input2[t]


def _connector_schema(comp_id: ComponentId, dimensions: List[str]) -> ComponentDef:
    comp_def = ComponentDef(comp_id, _run_connector)
    comp_def.add_parameter('input1', dimensions)
    comp_def.add_parameter('input2', dimensions)
    comp_def.add_variable('output', dimensions)
    return comp_def


def builtin_defs() -> List[ComponentDef]:
    """Fresh copies of the connector schemas."""
    return [
        _connector_schema(CONNECTOR_VECTOR, [TIME]),
        _connector_schema(CONNECTOR_MATRIX, [TIME, 'index']),
    ]


def connector_def(
    schema: ComponentDef, name: str, datum: DatumDef, first: int, last: int
) -> ComponentDef:
    """Specialize a connector schema for one connection.

    The connector's datums take the dimensions and datatype of the connected
    `datum`, and the connector covers `first` through `last`.

    """
    comp_def = schema.copy(name=name, first=first, last=last)
    comp_def.parameters = {
        par_name: type(par)(
            par_name, datum.datatype, datum.dimensions, par.description, datum.unit
        )
        for par_name, par in schema.parameters.items()
    }
    comp_def.variables = {
        var_name: type(var)(
            var_name, datum.datatype, datum.dimensions, var.description, datum.unit
        )
        for var_name, var in schema.variables.items()
    }
    comp_def.dimensions = {dim: DimensionDef(dim) for dim in datum.dimensions}
    return comp_def


def connector_id_for(datum: DatumDef) -> ComponentId:
    return CONNECTOR_VECTOR if len(datum.dimensions) == 1 else CONNECTOR_MATRIX
