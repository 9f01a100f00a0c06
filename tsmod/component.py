"""Declarative component schemas.

A :class:`ComponentDef` describes one kind of component: its parameters
(inputs), variables (outputs), the dimensions those data are indexed by, and
the ``run_timestep(p, v, d, t)`` routine invoked once per period at
simulation time. ComponentDefs are created empty and filled in with
:meth:`~ComponentDef.add_parameter`, :meth:`~ComponentDef.add_variable`, and
:meth:`~ComponentDef.add_dimension`::

    adder = ComponentDef(ComponentId('example', 'adder'))
    adder.add_parameter('input', dimensions=['time'])
    adder.add_parameter('add', dimensions=['time'])
    adder.add_variable('output', dimensions=['time'])

    @adder.run
    def run_timestep(p, v, d, t):
        v.output[t] = p.input[t] + p.add[t]

The same ComponentDef may be added to a model several times under different
instance names; :meth:`tsmod.modeldef.ModelDef.add_comp` stores a copy that
carries the instance's own first/last period bounds.

"""
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, NamedTuple, Optional, Tuple

from .errors import DuplicateNameError, UnknownReferenceError

RunTimestep = Callable[..., None]

TIME = 'time'


class ComponentId(NamedTuple):
    """Stable identity of a component schema."""

    namespace: str
    name: str

    def __str__(self) -> str:
        return f'{self.namespace}.{self.name}'


@dataclass(frozen=True)
class DimensionDef:
    name: str


@dataclass(frozen=True)
class DatumDef:
    """Definition shared by parameters and variables.

    An empty `dimensions` tuple denotes a scalar. When present, the ``time``
    dimension must be the first dimension.

    """

    name: str
    datatype: Any = None
    dimensions: Tuple[str, ...] = ()
    description: str = ''
    unit: str = ''

    @property
    def is_scalar(self) -> bool:
        return not self.dimensions

    @property
    def is_timeseries(self) -> bool:
        return bool(self.dimensions) and self.dimensions[0] == TIME


class ParameterDef(DatumDef):
    pass


class VariableDef(DatumDef):
    pass


class ComponentDef:
    """Schema of a component.

    :param ComponentId comp_id: Identity of the schema.
    :param run_timestep: Optional per-period run routine.

    """

    def __init__(
        self, comp_id: ComponentId, run_timestep: Optional[RunTimestep] = None
    ) -> None:
        self.comp_id = comp_id
        #: Name of the component; the instance name once added to a model.
        self.name: str = comp_id.name
        self.variables: Dict[str, VariableDef] = {}
        self.parameters: Dict[str, ParameterDef] = {}
        self.dimensions: Dict[str, DimensionDef] = {}
        self.run_timestep = run_timestep
        #: Explicit first/last periods; None inherits the model's time range.
        self.first: Optional[int] = None
        self.last: Optional[int] = None

    def __repr__(self) -> str:
        return f'<ComponentDef {self.name} ({self.comp_id})>'

    def add_dimension(self, name: str) -> DimensionDef:
        if name in self.dimensions:
            raise DuplicateNameError(
                f'dimension "{name}" already defined in {self.name}'
            )
        dim = self.dimensions[name] = DimensionDef(name)
        return dim

    def add_parameter(
        self,
        name: str,
        dimensions: Iterable[str] = (),
        datatype: Any = None,
        description: str = '',
        unit: str = '',
    ) -> ParameterDef:
        param = ParameterDef(name, datatype, tuple(dimensions), description, unit)
        self._add_datum(self.parameters, param)
        return param

    def add_variable(
        self,
        name: str,
        dimensions: Iterable[str] = (),
        datatype: Any = None,
        description: str = '',
        unit: str = '',
    ) -> VariableDef:
        var = VariableDef(name, datatype, tuple(dimensions), description, unit)
        self._add_datum(self.variables, var)
        return var

    def _add_datum(self, table: Dict[str, Any], datum: DatumDef) -> None:
        if datum.name in self.parameters or datum.name in self.variables:
            raise DuplicateNameError(
                f'"{datum.name}" already defined in {self.name}'
            )
        if TIME in datum.dimensions[1:]:
            raise ValueError(
                f'"{datum.name}": {TIME} must be the first dimension'
            )
        table[datum.name] = datum
        for dim in datum.dimensions:
            if dim not in self.dimensions:
                self.add_dimension(dim)

    def run(self, func: RunTimestep) -> RunTimestep:
        """Decorator assigning the component's run routine."""
        self.run_timestep = func
        return func

    def datum(self, name: str) -> DatumDef:
        """Lookup a variable or parameter definition by name."""
        if name in self.variables:
            return self.variables[name]
        if name in self.parameters:
            return self.parameters[name]
        raise UnknownReferenceError(f'{self.name} has no datum "{name}"')

    def copy(
        self,
        name: Optional[str] = None,
        first: Optional[int] = None,
        last: Optional[int] = None,
    ) -> 'ComponentDef':
        """Copy for use as a named instance within a model.

        The datum and dimension definitions are immutable and are shared with
        the copy; the tables holding them are not.

        """
        comp_def = ComponentDef(self.comp_id, self.run_timestep)
        comp_def.name = self.name if name is None else name
        comp_def.variables = dict(self.variables)
        comp_def.parameters = dict(self.parameters)
        comp_def.dimensions = dict(self.dimensions)
        comp_def.first = self.first if first is None else first
        comp_def.last = self.last if last is None else last
        return comp_def
