"""Bound, runnable realizations of model definitions.

A :class:`ModelInstance` is produced by :func:`tsmod.build.build`. It holds a
:class:`ComponentInstance` for every component (including synthesized
connectors) in execution order. Each ComponentInstance carries:

 - a parameter view ``p``: read-only access to the component's inputs,
 - a variable view ``v``: access to the storage the component writes,
 - a dimension view ``d``: the index positions of each dimension,

which are passed, together with the current
:class:`~tsmod.timestep.Timestep`, to the component's
``run_timestep(p, v, d, t)`` routine.

Data views expose each datum as an attribute (``p.growth``, ``v.output``).
The attribute to slot mapping is resolved once per schema by generating a
view class whose properties index directly into the bound storage.
Time-dimensioned data are :mod:`~tsmod.timeseries` containers; other arrays
are plain numpy arrays; scalars read and write through 0-d arrays so that
connected scalars alias like arrays do.

"""
from types import SimpleNamespace
from typing import (
    TYPE_CHECKING,
    Any,
    Dict,
    Generator,
    Iterable,
    Iterator,
    List,
    Tuple,
    Type,
)

import simpy

from .component import TIME, ComponentDef
from .connection import InternalParameterConnection
from .errors import (
    BuildError,
    ComponentRunError,
    EmptyModelError,
    UnknownReferenceError,
)
from .timeseries import TimestepArray
from .timestep import Clock, Timestep

if TYPE_CHECKING:
    from .modeldef import ModelDef
    from .simulation import SimEnvironment


class ComponentData:
    """Base of the generated parameter and variable views."""

    __slots__ = ('_values',)

    #: Datum names, in slot order.
    names: Tuple[str, ...] = ()

    def __init__(self, values: Iterable[Any]) -> None:
        self._values = tuple(values)

    def __repr__(self) -> str:
        return f'<{type(self).__name__} {", ".join(self.names)}>'

    def __iter__(self) -> Iterator[str]:
        return iter(self.names)

    def __len__(self) -> int:
        return len(self.names)

    def get(self, name: str) -> Any:
        """Return the storage bound to datum `name`."""
        try:
            return self._values[self.names.index(name)]
        except ValueError:
            raise UnknownReferenceError(f'no datum named "{name}"') from None

    def items(self) -> Iterator[Tuple[str, Any]]:
        return zip(self.names, self._values)


class ComponentInstanceParameters(ComponentData):
    __slots__ = ()


class ComponentInstanceVariables(ComponentData):
    __slots__ = ()


_view_types: Dict[Tuple[Any, ...], Type[ComponentData]] = {}


def _datum_property(index: int, scalar: bool, writable: bool) -> property:
    if scalar:
        def fget(self):
            return self._values[index][()]
    else:
        def fget(self):
            return self._values[index]

    fset = None
    if scalar and writable:
        def fset(self, value):
            self._values[index][()] = value

    return property(fget, fset)


def view_type(
    base: Type[ComponentData], names: Tuple[str, ...], scalars: Iterable[str]
) -> Type[ComponentData]:
    """Get (or generate) the view class for a set of datum names."""
    scalars = frozenset(scalars)
    key = (base, names, scalars)
    try:
        return _view_types[key]
    except KeyError:
        pass
    writable = issubclass(base, ComponentInstanceVariables)
    namespace: Dict[str, Any] = {'__slots__': (), 'names': names}
    for index, name in enumerate(names):
        if name.startswith('_') or hasattr(base, name):
            raise BuildError(f'datum name "{name}" is reserved')
        namespace[name] = _datum_property(index, name in scalars, writable)
    cls = _view_types[key] = type(base.__name__, (base,), namespace)
    return cls


def make_view(
    base: Type[ComponentData], storage: Dict[str, Any], scalars: Iterable[str]
) -> ComponentData:
    return view_type(base, tuple(storage), scalars)(storage.values())


class ComponentInstance:
    """A component bound to storage, ready to run.

    :param ComponentDef comp_def: The model's definition of the component.
    :param ComponentInstanceVariables variables: Bound variable view.
    :param ComponentInstanceParameters parameters: Bound parameter view.
    :param SimpleNamespace dims: Dimension view.
    :param int first: Resolved first period.
    :param int last: Resolved last period.

    """

    def __init__(
        self,
        comp_def: ComponentDef,
        variables: ComponentInstanceVariables,
        parameters: ComponentInstanceParameters,
        dims: SimpleNamespace,
        first: int,
        last: int,
    ) -> None:
        self.comp_id = comp_def.comp_id
        self.comp_name = comp_def.name
        self.dimensions: List[str] = list(comp_def.dimensions)
        self.variables = variables
        self.parameters = parameters
        self.dims = dims
        self.first = first
        self.last = last
        self.run_timestep = comp_def.run_timestep

    def __repr__(self) -> str:
        return f'<ComponentInstance {self.comp_name} {self.first}-{self.last}>'

    def run(self, ts: Timestep) -> None:
        if self.run_timestep is not None:
            self.run_timestep(self.parameters, self.variables, self.dims, ts)

    def reset(self) -> None:
        """Zero the storage of every variable."""
        for _, storage in self.variables.items():
            if isinstance(storage, TimestepArray):
                storage = storage.data
            storage[...] = 0


class ModelInstance:
    """Compiled model: ordered, bound component instances."""

    def __init__(self, md: 'ModelDef') -> None:
        self.md = md
        #: The :attr:`ModelDef.version` this instance was built from.
        self.version = md.version
        #: Component instances keyed by name, in execution order.
        self.components: Dict[str, ComponentInstance] = {}
        self.conns: List[InternalParameterConnection] = []
        #: Connections whose source runs after their destination.
        self.backward_conns: List[InternalParameterConnection] = []
        self.first_periods: List[int] = []
        self.last_periods: List[int] = []
        #: True once a run has finished every component.
        self.complete = False
        #: Component steps executed by the latest run.
        self.steps = 0

    def __repr__(self) -> str:
        return f'<ModelInstance {", ".join(self.components)}>'

    def add_comp(self, comp: ComponentInstance) -> None:
        self.components[comp.comp_name] = comp
        self.first_periods.append(comp.first)
        self.last_periods.append(comp.last)

    def get(self, comp_name: str, name: str) -> Any:
        """Storage of variable or parameter `name` of component `comp_name`."""
        try:
            comp = self.components[comp_name]
        except KeyError:
            raise UnknownReferenceError(f'no component named "{comp_name}"') from None
        if name in comp.variables.names:
            return comp.variables.get(name)
        elif name in comp.parameters.names:
            return comp.parameters.get(name)
        raise UnknownReferenceError(f'{comp_name} has no datum "{name}"')

    def __getitem__(self, key: Tuple[str, str]) -> Any:
        return self.get(*key)

    def run_process(
        self, env: 'SimEnvironment'
    ) -> Generator[simpy.Event, Any, None]:
        """Simulation process running every component over its periods.

        Components run one after another in execution order, each through
        every period of its own range before the next one starts. Variable
        storage is zeroed first, so an instance may be run repeatedly. If a
        component fails, the components before it keep their results and the
        components after it are left unrun.

        While a component runs, ``env.period`` follows its :class:`Clock`.
        The simulation clock advances to the model's last period once every
        component has finished.

        """
        if not self.components:
            raise EmptyModelError('model has no components to run')
        md = self.md
        warn = env.tracemgr.get_trace_function('model', log={'level': 'WARNING'})
        info = env.tracemgr.get_trace_function('model', log={'level': 'INFO'})
        self.complete = False
        self.steps = 0
        for comp in self.components.values():
            comp.reset()

        for conn in self.backward_conns:
            warn(
                f'{conn.dst_comp_name}.{conn.dst_par_name} reads '
                f'{conn.src_comp_name}.{conn.src_var_name} before it is computed'
            )

        info(
            f'running {len(self.components)} components over '
            f'{md.first_period}-{md.last_period}'
        )
        for comp in self.components.values():
            debug = env.tracemgr.get_trace_function(
                f'model.{comp.comp_name}', log={'level': 'DEBUG'}
            )
            clock = Clock(comp.first, md.step, comp.last)
            while True:
                env.period = clock.current_period
                debug('run_timestep', clock.ts.t)
                try:
                    comp.run(clock.ts)
                except Exception as e:
                    raise ComponentRunError(comp.comp_name, env.period, e) from e
                self.steps += 1
                if clock.is_final_step:
                    break
                clock.advance()

        yield env.timeout(md.last_period - env.now)
        env.period = env.now
        self.complete = True
        info('run complete')


def dims_view(comp_def: ComponentDef, md: 'ModelDef', first: int, last: int):
    """Dimension view: time periods, or index positions of other dimensions."""
    dims = {}
    for name in comp_def.dimensions:
        if name == TIME:
            dims[name] = range(first, last + md.step, md.step)
        else:
            dims[name] = range(md.index_counts[name])
    return SimpleNamespace(**dims)
