"""Declarative model definitions.

A :class:`ModelDef` collects named component instances, the connections
between them, externally supplied parameter values, and the model's
dimensions. Names are checked as they are declared; everything else is
verified when :func:`tsmod.build.build` compiles the definition into a
:class:`~tsmod.instance.ModelInstance`.

Every mutation increments :attr:`ModelDef.version`. Instances record the
version they were built from, which lets :class:`tsmod.model.Model` detect an
instance that no longer reflects its definition.

"""
from numbers import Integral
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from .component import TIME, ComponentDef
from .connection import (
    ExternalParameterConnection,
    InternalParameterConnection,
    ModelParameter,
    model_parameter,
)
from .errors import DuplicateNameError, UnknownReferenceError
from .registry import ComponentRegistry, default_registry


class ModelDef:
    """Declarative definition of a model.

    :param number_type: Element type of data declared without a datatype.
    :param str namespace: Namespace the model is defined in.
    :param ComponentRegistry registry:
        Registry providing the connector schemas. Defaults to
        :data:`tsmod.registry.default_registry`.

    """

    def __init__(
        self,
        number_type: Any = float,
        namespace: str = 'main',
        registry: Optional[ComponentRegistry] = None,
    ) -> None:
        self.namespace = namespace
        self.registry = default_registry if registry is None else registry
        #: Component definitions keyed by instance name, in declaration order.
        self.comp_defs: Dict[str, ComponentDef] = {}
        self.index_counts: Dict[str, int] = {}
        self.index_values: Dict[str, List[Any]] = {}
        self.number_type = number_type
        self.time_labels: List[int] = []
        self.internal_param_conns: List[InternalParameterConnection] = []
        self.external_param_conns: List[ExternalParameterConnection] = []
        #: Keys of external parameters holding backup data for connectors.
        self.backups: List[str] = []
        self.external_params: Dict[str, ModelParameter] = {}
        #: Set once the definition has been successfully built.
        self.funcs_generated = False
        self.version = 0

    def __repr__(self) -> str:
        return f'<ModelDef {self.namespace}: {", ".join(self.comp_defs)}>'

    def _changed(self) -> None:
        self.version += 1

    # Dimensions

    @property
    def has_time(self) -> bool:
        return bool(self.time_labels)

    @property
    def first_period(self) -> int:
        return self.time_labels[0]

    @property
    def last_period(self) -> int:
        return self.time_labels[-1]

    @property
    def step(self) -> int:
        if len(self.time_labels) < 2:
            return 1
        return self.time_labels[1] - self.time_labels[0]

    def set_dimension(self, name: str, keys: Union[int, Iterable[Any]]) -> None:
        """Set the index values of a dimension.

        For the ``time`` dimension, `keys` is an evenly spaced, increasing
        sequence of integer periods. For other dimensions, `keys` is either a
        count ``n`` (yielding index values ``1..n``) or the index values.

        """
        if isinstance(keys, Integral):
            values: List[Any] = list(range(1, keys + 1))
        else:
            values = list(keys)
        if name == TIME:
            _check_periods(values)
            self.time_labels = values
        self.index_counts[name] = len(values)
        self.index_values[name] = values
        self._changed()

    # Components

    def has_comp(self, name: str) -> bool:
        return name in self.comp_defs

    def comp_def(self, name: str) -> ComponentDef:
        try:
            return self.comp_defs[name]
        except KeyError:
            raise UnknownReferenceError(f'no component named "{name}"') from None

    def add_comp(
        self,
        comp_def: ComponentDef,
        name: Optional[str] = None,
        first: Optional[int] = None,
        last: Optional[int] = None,
        before: Optional[str] = None,
        after: Optional[str] = None,
    ) -> ComponentDef:
        """Add an instance of `comp_def` to the model.

        :param ComponentDef comp_def: Schema of the component.
        :param str name: Instance name; defaults to the schema's name.
        :param int first: Explicit first period of the component.
        :param int last: Explicit last period of the component.
        :param str before: Insert before this instance.
        :param str after: Insert after this instance.
        :returns: The model's copy of the component definition.

        """
        name = comp_def.name if name is None else name
        if name in self.comp_defs:
            raise DuplicateNameError(f'component "{name}" already in model')
        if before is not None and after is not None:
            raise ValueError('only one of before and after may be given')
        for ref in (before, after):
            if ref is not None and ref not in self.comp_defs:
                raise UnknownReferenceError(f'no component named "{ref}"')
        if first is not None and last is not None and first > last:
            raise ValueError(f'first period {first} after last period {last}')

        instance_def = comp_def.copy(name=name, first=first, last=last)
        if before is None and after is None:
            self.comp_defs[name] = instance_def
        else:
            comp_defs = {}
            for key, value in self.comp_defs.items():
                if key == before:
                    comp_defs[name] = instance_def
                comp_defs[key] = value
                if key == after:
                    comp_defs[name] = instance_def
            self.comp_defs = comp_defs
        self._changed()
        return instance_def

    def delete_comp(self, name: str) -> None:
        """Remove a component and every connection touching it."""
        self.comp_def(name)
        del self.comp_defs[name]
        self.internal_param_conns = [
            conn for conn in self.internal_param_conns
            if name not in (conn.src_comp_name, conn.dst_comp_name)
        ]
        self.external_param_conns = [
            conn for conn in self.external_param_conns if conn.comp_name != name
        ]
        self._changed()

    # Connections

    def connect_param(
        self,
        dst_comp_name: str,
        dst_par_name: str,
        src_comp_name: str,
        src_var_name: str,
        backup: Optional[Any] = None,
        ignore_units: bool = False,
    ) -> InternalParameterConnection:
        """Connect a destination parameter to a source variable.

        :param backup:
            Optional backup data for periods the source does not cover;
            either the key of an existing external parameter or an array of
            values spanning the model's time axis.
        :param bool ignore_units: Skip unit verification for this connection.

        """
        for comp_name in (dst_comp_name, src_comp_name):
            self.comp_def(comp_name)

        backup_key = None
        if backup is not None:
            if isinstance(backup, str):
                if backup not in self.external_params:
                    raise UnknownReferenceError(
                        f'no external parameter named "{backup}"'
                    )
                backup_key = backup
            else:
                backup_key = self._backup_key()
                self.external_params[backup_key] = model_parameter(backup)
            if backup_key not in self.backups:
                self.backups.append(backup_key)

        self.disconnect_param(dst_comp_name, dst_par_name)
        conn = InternalParameterConnection(
            src_comp_name,
            src_var_name,
            dst_comp_name,
            dst_par_name,
            ignore_units,
            backup_key,
        )
        self.internal_param_conns.append(conn)
        self._changed()
        return conn

    def _backup_key(self) -> str:
        i = len(self.backups) + 1
        while f'backup_{i}' in self.external_params:
            i += 1
        return f'backup_{i}'

    def disconnect_param(self, comp_name: str, param_name: str) -> None:
        """Remove any connection feeding the given parameter."""
        self.internal_param_conns = [
            conn for conn in self.internal_param_conns
            if (conn.dst_comp_name, conn.dst_par_name) != (comp_name, param_name)
        ]
        self.external_param_conns = [
            conn for conn in self.external_param_conns
            if (conn.comp_name, conn.param_name) != (comp_name, param_name)
        ]
        self._changed()

    def connect_external_param(
        self, comp_name: str, param_name: str, key: str
    ) -> ExternalParameterConnection:
        """Connect a component parameter to the external parameter `key`."""
        self.comp_def(comp_name)
        self.disconnect_param(comp_name, param_name)
        conn = ExternalParameterConnection(comp_name, param_name, key)
        self.external_param_conns.append(conn)
        self._changed()
        return conn

    def set_external_param(
        self, key: str, value: Any, dims: Sequence[str] = ()
    ) -> None:
        """Create or overwrite the external parameter `key`."""
        self.external_params[key] = model_parameter(value, tuple(dims))
        self._changed()

    def update_param(self, key: str, value: Any) -> None:
        """Replace the value of an existing external parameter."""
        try:
            current = self.external_params[key]
        except KeyError:
            raise UnknownReferenceError(
                f'no external parameter named "{key}"'
            ) from None
        self.external_params[key] = model_parameter(
            value, getattr(current, 'dimensions', ())
        )
        self._changed()

    def set_param(
        self, comp_name: str, param_name: str, value: Any, dims: Sequence[str] = ()
    ) -> ExternalParameterConnection:
        """Set `value` as external parameter `param_name` and connect it."""
        self.comp_def(comp_name)
        self.set_external_param(param_name, value, dims)
        return self.connect_external_param(comp_name, param_name, param_name)

    def copy(self) -> 'ModelDef':
        """Copy sharing the (immutable) connections and component schemas."""
        md = ModelDef(self.number_type, self.namespace, self.registry)
        md.comp_defs = {name: comp_def.copy()
                        for name, comp_def in self.comp_defs.items()}
        md.index_counts = dict(self.index_counts)
        md.index_values = {key: list(values)
                           for key, values in self.index_values.items()}
        md.time_labels = list(self.time_labels)
        md.internal_param_conns = list(self.internal_param_conns)
        md.external_param_conns = list(self.external_param_conns)
        md.backups = list(self.backups)
        md.external_params = {key: param.copy()
                              for key, param in self.external_params.items()}
        return md


def _check_periods(periods: List[Any]) -> None:
    if not periods:
        raise ValueError('time dimension requires at least one period')
    if not all(isinstance(p, Integral) for p in periods):
        raise TypeError('time periods must be integers')
    step = periods[1] - periods[0] if len(periods) > 1 else 1
    if step <= 0 or any(b - a != step for a, b in zip(periods, periods[1:])):
        raise ValueError('time periods must be evenly spaced and increasing')
