"""User-facing model API.

:class:`Model` pairs a :class:`~tsmod.modeldef.ModelDef` with the
:class:`~tsmod.instance.ModelInstance` most recently built from it::

    m = Model()
    m.set_dimension('time', range(2000, 2101))
    m.add_comp(emissions)
    m.add_comp(climate)
    m.connect_param('climate', 'emissions', 'emissions', 'total')
    m.set_param('emissions', 'growth', 0.01)
    m.run()
    m['climate', 'temperature']

The first :meth:`Model.run` builds the model if it was never built. After the
definition is changed, the instance is stale: it remains readable, but
:meth:`Model.run` refuses to run it until :meth:`Model.build` is called again.

:class:`MarginalModel` compares two models that differ in some input, e.g. a
small perturbation of an external parameter.

"""
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from .build import build as build_instance
from .component import ComponentDef
from .config import ConfigDict
from .errors import EmptyModelError, NotBuiltError, NotRunError
from .instance import ModelInstance
from .modeldef import ModelDef
from .registry import ComponentRegistry
from .simulation import ResultDict, simulate


class Model:
    """A model definition and its built instance.

    :param number_type: Element type of data declared without a datatype.
    :param ComponentRegistry registry: Registry providing connector schemas.

    """

    def __init__(
        self, number_type: Any = float, registry: Optional[ComponentRegistry] = None
    ) -> None:
        self.md = ModelDef(number_type, registry=registry)
        self.mi: Optional[ModelInstance] = None

    def __repr__(self) -> str:
        state = 'unbuilt' if self.mi is None else ('stale' if self.is_stale else 'built')
        return f'<Model ({state}): {", ".join(self.md.comp_defs)}>'

    @property
    def is_stale(self) -> bool:
        """True unless the instance reflects the current definition."""
        return self.mi is None or self.mi.version != self.md.version

    @property
    def components(self) -> List[ComponentDef]:
        return list(self.md.comp_defs.values())

    @property
    def numcomponents(self) -> int:
        return len(self.md.comp_defs)

    # Declaration API, delegated to the ModelDef

    def set_dimension(self, name: str, keys: Any) -> None:
        self.md.set_dimension(name, keys)

    def add_comp(
        self,
        comp_def: ComponentDef,
        name: Optional[str] = None,
        first: Optional[int] = None,
        last: Optional[int] = None,
        before: Optional[str] = None,
        after: Optional[str] = None,
    ) -> ComponentDef:
        return self.md.add_comp(comp_def, name, first, last, before, after)

    def delete_comp(self, name: str) -> None:
        self.md.delete_comp(name)

    def connect_param(
        self,
        dst_comp_name: str,
        dst_par_name: str,
        src_comp_name: str,
        src_var_name: str,
        backup: Optional[Any] = None,
        ignore_units: bool = False,
    ) -> None:
        self.md.connect_param(
            dst_comp_name, dst_par_name, src_comp_name, src_var_name,
            backup, ignore_units,
        )

    def connect_external_param(self, comp_name: str, param_name: str, key: str) -> None:
        self.md.connect_external_param(comp_name, param_name, key)

    def set_external_param(self, key: str, value: Any, dims: Sequence[str] = ()) -> None:
        self.md.set_external_param(key, value, dims)

    def set_param(
        self, comp_name: str, param_name: str, value: Any, dims: Sequence[str] = ()
    ) -> None:
        self.md.set_param(comp_name, param_name, value, dims)

    def update_param(self, key: str, value: Any) -> None:
        self.md.update_param(key, value)

    # Build and run

    def build(self, unit_checker: Optional[Callable[[str, str], bool]] = None) -> ModelInstance:
        """Build a new instance, replacing the current one only on success."""
        self.mi = build_instance(self.md, unit_checker)
        return self.mi

    def run(
        self,
        config: Optional[ConfigDict] = None,
        reraise: bool = True,
        overrides: Optional[Iterable[Tuple[str, str]]] = None,
    ) -> ResultDict:
        """Run the model, building it first if it was never built.

        `overrides` are user-provided ``(key, expression)`` pairs applied to
        `config` before the run; see :func:`tsmod.simulation.simulate`.

        :raises EmptyModelError: if the model has no components.
        :raises NotBuiltError: if the definition changed since the last build.

        """
        if not self.md.comp_defs:
            raise EmptyModelError('model has no components to run')
        if self.mi is None:
            self.build()
        elif self.is_stale:
            raise NotBuiltError('model definition changed since the last build')
        return simulate(self.mi, config, reraise=reraise, overrides=overrides)

    def __getitem__(self, key: Tuple[str, str]) -> Any:
        """Storage of datum `name` of component `comp_name`: ``m[comp_name, name]``."""
        if self.mi is None:
            raise NotBuiltError('model has not been built')
        return self.mi.get(*key)


class MarginalModel:
    """Difference of two models, scaled by the size of the perturbation.

    ``mm[comp_name, name]`` is ``(marginal[comp_name, name] -
    base[comp_name, name]) / delta``, elementwise.

    """

    def __init__(self, base: Model, marginal: Model, delta: float = 1.0) -> None:
        self.base = base
        self.marginal = marginal
        self.delta = delta

    def __getitem__(self, key: Tuple[str, str]) -> np.ndarray:
        for model in (self.base, self.marginal):
            if model.mi is None or not model.mi.complete:
                raise NotRunError('both models must complete a run')
        base = np.asarray(self.base[key])
        marginal = np.asarray(self.marginal[key])
        return (marginal - base) / self.delta

    def run(self, config: Optional[ConfigDict] = None) -> None:
        """Run both models, each with its own copy of `config`."""
        for model in (self.base, self.marginal):
            model.run(None if config is None else dict(config))


def create_marginal_model(base: Model, delta: float = 1.0) -> MarginalModel:
    """Pair `base` with a copy of its definition for perturbation.

    The caller modifies ``mm.marginal`` (e.g. with :meth:`Model.update_param`)
    before running both models.

    """
    marginal = Model(base.md.number_type, base.md.registry)
    marginal.md = base.md.copy()
    return MarginalModel(base, marginal, delta)
