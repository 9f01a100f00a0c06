"""Registry of component schemas.

Component schemas are collected in an explicit :class:`ComponentRegistry`.
The builder looks up the connector schemas in the registry of the model being
built, so tests may use private registries (or :meth:`~ComponentRegistry.reset`
the :data:`default_registry`) without affecting each other.

"""
from typing import Dict, Iterator, Optional, Union

from .component import ComponentDef, ComponentId
from .connector import builtin_defs
from .errors import UnknownReferenceError


class ComponentRegistry:
    """Mapping of :class:`ComponentId` to :class:`ComponentDef`.

    :param bool builtins: Register the connector schemas.

    """

    def __init__(self, builtins: bool = True) -> None:
        self._defs: Dict[ComponentId, ComponentDef] = {}
        self.reset(builtins)

    def __len__(self) -> int:
        return len(self._defs)

    def __iter__(self) -> Iterator[ComponentDef]:
        return iter(self._defs.values())

    def __contains__(self, key: Union[ComponentId, str]) -> bool:
        try:
            self.get(key)
        except UnknownReferenceError:
            return False
        return True

    def reset(self, builtins: bool = True) -> None:
        """Forget all registered schemas, optionally keeping the builtins."""
        self._defs.clear()
        if builtins:
            for comp_def in builtin_defs():
                self.register(comp_def)

    def register(self, comp_def: ComponentDef) -> ComponentDef:
        """Register `comp_def`, replacing any schema with the same id."""
        self._defs[comp_def.comp_id] = comp_def
        return comp_def

    def defcomp(self, name: str, namespace: str = 'main') -> ComponentDef:
        """Create and register an empty :class:`ComponentDef`."""
        return self.register(ComponentDef(ComponentId(namespace, name)))

    def get(self, key: Union[ComponentId, str]) -> ComponentDef:
        """Lookup a schema by id or, unambiguously, by name."""
        if isinstance(key, ComponentId):
            try:
                return self._defs[key]
            except KeyError:
                raise UnknownReferenceError(f'unknown component {key}') from None
        matches = [comp_def for comp_id, comp_def in self._defs.items()
                   if comp_id.name == key]
        if len(matches) == 1:
            return matches[0]
        elif not matches:
            raise UnknownReferenceError(f'unknown component "{key}"')
        else:
            raise UnknownReferenceError(
                f'ambiguous component "{key}"; possible matches: '
                + ', '.join(str(comp_def.comp_id) for comp_def in matches)
            )


#: Registry used when none is given explicitly.
default_registry = ComponentRegistry()


def defcomp(
    name: str, namespace: str = 'main', registry: Optional[ComponentRegistry] = None
) -> ComponentDef:
    """Create a component schema in `registry` (default: :data:`default_registry`)."""
    if registry is None:
        registry = default_registry
    return registry.defcomp(name, namespace)
