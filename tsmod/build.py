"""Compile a :class:`~tsmod.modeldef.ModelDef` into a runnable instance.

Building proceeds in these phases:

 1. *Period resolution*: each component's first/last period is its explicit
    bounds, if any, or else the model's full time range.
 2. *Connector synthesis*: a connection whose destination covers periods that
    its time-dimensioned source does not is routed through a connector
    component (see :mod:`tsmod.connector`) fed by the connection's backup
    data. Without backup data the build fails with
    :class:`~tsmod.errors.MissingBackupError`.
 3. *Binding*: variables get freshly allocated storage. Parameters fed by an
    internal connection receive a read-only view of the upstream variable's
    storage, so values written upstream are visible to every component that
    runs later. Parameters fed by an external parameter receive a read-only
    copy of its value. Any other parameter is unbound and fails the build
    with :class:`~tsmod.errors.UnboundParameterError`.
 4. *Ordering*: components execute in declaration order, with each connector
    inserted immediately before the component it feeds. Connections whose
    source is declared after the destination are recorded in
    :attr:`ModelInstance.backward_conns` but do not change the order.

Nothing is returned unless every phase succeeds. The only change made to the
ModelDef is setting its ``funcs_generated`` flag once the build has succeeded.

"""
from typing import Any, Callable, Dict, List, Optional, Tuple

import numpy as np

from .component import TIME, ComponentDef, DatumDef, ParameterDef, VariableDef
from .connection import (
    InternalParameterConnection,
    ModelParameter,
    ScalarModelParameter,
)
from .connector import connector_def, connector_id_for
from .errors import (
    BuildError,
    MissingBackupError,
    UnboundParameterError,
    UnitMismatchError,
    UnresolvedReferenceError,
)
from .instance import (
    ComponentInstance,
    ComponentInstanceParameters,
    ComponentInstanceVariables,
    ModelInstance,
    dims_view,
    make_view,
)
from .modeldef import ModelDef
from .timeseries import TimestepArray, TimestepMatrix, TimestepVector

UnitChecker = Callable[[str, str], bool]
PeriodRange = Tuple[int, int]


def build(md: ModelDef, unit_checker: Optional[UnitChecker] = None) -> ModelInstance:
    """Build a :class:`~tsmod.instance.ModelInstance` from `md`.

    :param ModelDef md: Model definition to build.
    :param unit_checker:
        Optional ``unit_checker(src_unit, dst_unit) -> bool`` consulted for
        each internal connection not flagged `ignore_units`.
    :raises BuildError: if the definition cannot be built.

    """
    if not md.has_time:
        raise BuildError('time dimension not set')
    ranges = {name: resolve_range(md, comp_def)
              for name, comp_def in md.comp_defs.items()}
    for comp_def in md.comp_defs.values():
        _check_dimensions(md, comp_def)

    wiring: List[InternalParameterConnection] = []
    external: Dict[Tuple[str, str], str] = {}
    connectors: Dict[str, List[ComponentDef]] = {}
    num_connectors = 0

    for conn in md.internal_param_conns:
        var_def, par_def = _check_connection(md, conn, unit_checker)
        src_range = ranges[conn.src_comp_name]
        dst_range = ranges[conn.dst_comp_name]
        if not var_def.is_timeseries or (
            src_range[0] <= dst_range[0] and dst_range[1] <= src_range[1]
        ):
            wiring.append(conn)
            continue
        if conn.backup is None:
            raise MissingBackupError(conn, src_range, dst_range)
        if conn.backup not in md.external_params:
            raise UnresolvedReferenceError(
                f'no external parameter named "{conn.backup}" for backup data'
            )
        if len(var_def.dimensions) > 2:
            raise BuildError(
                f'{conn.src_comp_name}.{conn.src_var_name}: connectors support '
                f'at most two dimensions'
            )
        num_connectors += 1
        name = f'ConnectorComp{num_connectors}'
        while name in md.comp_defs:
            num_connectors += 1
            name = f'ConnectorComp{num_connectors}'
        schema = md.registry.get(connector_id_for(var_def))
        comp_def = connector_def(schema, name, var_def, *dst_range)
        connectors.setdefault(conn.dst_comp_name, []).append(comp_def)
        ranges[name] = dst_range
        wiring.append(InternalParameterConnection(
            conn.src_comp_name, conn.src_var_name, name, 'input1',
            conn.ignore_units))
        wiring.append(InternalParameterConnection(
            name, 'output', conn.dst_comp_name, conn.dst_par_name,
            conn.ignore_units))
        external[name, 'input2'] = conn.backup

    for ext_conn in md.external_param_conns:
        comp_def = md.comp_defs[ext_conn.comp_name]
        if ext_conn.param_name not in comp_def.parameters:
            raise UnresolvedReferenceError(
                f'{ext_conn.comp_name} has no parameter "{ext_conn.param_name}"'
            )
        if ext_conn.external_param not in md.external_params:
            raise UnresolvedReferenceError(
                f'no external parameter named "{ext_conn.external_param}"'
            )
        external[ext_conn.comp_name, ext_conn.param_name] = ext_conn.external_param

    comp_defs: List[ComponentDef] = []
    for name, comp_def in md.comp_defs.items():
        comp_defs.extend(connectors.get(name, []))
        comp_defs.append(comp_def)
    position = {comp_def.name: i for i, comp_def in enumerate(comp_defs)}

    variables: Dict[str, Dict[str, Any]] = {}
    for comp_def in comp_defs:
        first, last = ranges[comp_def.name]
        variables[comp_def.name] = {
            var_name: _allocate(md, comp_def, var_def, first, last)
            for var_name, var_def in comp_def.variables.items()
        }

    sources = {(conn.dst_comp_name, conn.dst_par_name): conn for conn in wiring}
    parameters: Dict[str, Dict[str, Any]] = {}
    unbound = []
    for comp_def in comp_defs:
        bound = parameters[comp_def.name] = {}
        for par_name, par_def in comp_def.parameters.items():
            key = comp_def.name, par_name
            if key in sources:
                conn = sources[key]
                bound[par_name] = _readonly(
                    variables[conn.src_comp_name][conn.src_var_name]
                )
            elif key in external:
                bound[par_name] = _bind_external(
                    md, comp_def, par_def, md.external_params[external[key]],
                    ranges[comp_def.name],
                )
            else:
                unbound.append(key)
    if unbound:
        raise UnboundParameterError(unbound)

    mi = ModelInstance(md)
    mi.conns = wiring
    mi.backward_conns = [
        conn for conn in md.internal_param_conns
        if position[conn.src_comp_name] > position[conn.dst_comp_name]
    ]
    for comp_def in comp_defs:
        first, last = ranges[comp_def.name]
        scalars = [name for name, datum in comp_def.variables.items()
                   if datum.is_scalar]
        v = make_view(
            ComponentInstanceVariables, variables[comp_def.name], scalars
        )
        scalars = [name for name, datum in comp_def.parameters.items()
                   if datum.is_scalar]
        p = make_view(
            ComponentInstanceParameters, parameters[comp_def.name], scalars
        )
        d = dims_view(comp_def, md, first, last)
        mi.add_comp(ComponentInstance(comp_def, v, p, d, first, last))
    md.funcs_generated = True
    return mi


def resolve_range(md: ModelDef, comp_def: ComponentDef) -> PeriodRange:
    """Concrete (first, last) periods of a component within `md`."""
    first = md.first_period if comp_def.first is None else comp_def.first
    last = md.last_period if comp_def.last is None else comp_def.last
    if first < md.first_period or last > md.last_period or first > last:
        raise BuildError(
            f'{comp_def.name}: periods {first}-{last} not within model periods '
            f'{md.first_period}-{md.last_period}'
        )
    if (first - md.first_period) % md.step or (last - md.first_period) % md.step:
        raise BuildError(
            f'{comp_def.name}: periods {first}-{last} not aligned to step {md.step}'
        )
    return first, last


def _check_dimensions(md: ModelDef, comp_def: ComponentDef) -> None:
    for dim in comp_def.dimensions:
        if dim != TIME and dim not in md.index_counts:
            raise BuildError(f'{comp_def.name}: dimension "{dim}" not set')


def _check_connection(
    md: ModelDef,
    conn: InternalParameterConnection,
    unit_checker: Optional[UnitChecker],
) -> Tuple[VariableDef, ParameterDef]:
    src = md.comp_defs[conn.src_comp_name]
    dst = md.comp_defs[conn.dst_comp_name]
    try:
        var_def = src.variables[conn.src_var_name]
    except KeyError:
        raise UnresolvedReferenceError(
            f'{conn.src_comp_name} has no variable "{conn.src_var_name}"'
        ) from None
    try:
        par_def = dst.parameters[conn.dst_par_name]
    except KeyError:
        raise UnresolvedReferenceError(
            f'{conn.dst_comp_name} has no parameter "{conn.dst_par_name}"'
        ) from None
    if var_def.dimensions != par_def.dimensions:
        raise BuildError(
            f'{conn.src_comp_name}.{conn.src_var_name} dimensions '
            f'{var_def.dimensions} do not match {conn.dst_comp_name}.'
            f'{conn.dst_par_name} dimensions {par_def.dimensions}'
        )
    if (
        unit_checker is not None
        and not conn.ignore_units
        and not unit_checker(var_def.unit, par_def.unit)
    ):
        raise UnitMismatchError(
            f'{conn.src_comp_name}.{conn.src_var_name} [{var_def.unit}] '
            f'incompatible with {conn.dst_comp_name}.{conn.dst_par_name} '
            f'[{par_def.unit}]'
        )
    return var_def, par_def


def _num_periods(md: ModelDef, first: int, last: int) -> int:
    return (last - first) // md.step + 1


def _wrap(
    comp_def: ComponentDef, datum: DatumDef, data: np.ndarray, first: int, step: int
) -> Any:
    if not datum.is_timeseries:
        return data
    if data.ndim == 1:
        return TimestepVector(data, first, step)
    if data.ndim == 2:
        return TimestepMatrix(data, first, step)
    raise BuildError(
        f'{comp_def.name}.{datum.name}: time-dimensioned data supports at most '
        f'two dimensions'
    )


def _allocate(
    md: ModelDef, comp_def: ComponentDef, var_def: VariableDef, first: int, last: int
) -> Any:
    shape = [
        _num_periods(md, first, last) if dim == TIME else md.index_counts[dim]
        for dim in var_def.dimensions
    ]
    dtype = md.number_type if var_def.datatype is None else var_def.datatype
    return _wrap(comp_def, var_def, np.zeros(shape, dtype=dtype), first, md.step)


def _readonly(storage: Any) -> Any:
    if isinstance(storage, TimestepArray):
        return storage.readonly()
    view = storage.view()
    view.flags.writeable = False
    return view


def _bind_external(
    md: ModelDef,
    comp_def: ComponentDef,
    par_def: ParameterDef,
    param: ModelParameter,
    comp_range: PeriodRange,
) -> Any:
    label = f'{comp_def.name}.{par_def.name}'
    if isinstance(param, ScalarModelParameter):
        if not par_def.is_scalar:
            raise BuildError(f'{label} requires an array value, got a scalar')
        data = np.array(param.value, dtype=par_def.datatype)
        data.flags.writeable = False
        return data

    values = param.values
    if par_def.is_scalar:
        raise BuildError(f'{label} requires a scalar value, got an array')
    if values.ndim != len(par_def.dimensions):
        raise BuildError(
            f'{label} requires {len(par_def.dimensions)}-d data, '
            f'got shape {values.shape}'
        )
    dtype = par_def.datatype
    if dtype is None and np.issubdtype(values.dtype, np.number):
        dtype = md.number_type
    data = np.array(values, dtype=dtype)

    first = comp_range[0]
    for axis, dim in enumerate(par_def.dimensions):
        size = data.shape[axis]
        if dim != TIME:
            if size != md.index_counts[dim]:
                raise BuildError(
                    f'{label}: dimension "{dim}" has {md.index_counts[dim]} '
                    f'values, got {size}'
                )
        elif size == len(md.time_labels):
            first = md.first_period
        elif size != _num_periods(md, *comp_range):
            raise BuildError(
                f'{label}: got {size} values, expected {len(md.time_labels)} '
                f'(model periods) or {_num_periods(md, *comp_range)} '
                f'(component periods)'
            )
    return _readonly(_wrap(comp_def, par_def, data, first, md.step))
