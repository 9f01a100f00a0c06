"""Tools for managing run configurations.

Each run of a model is controlled by a flat configuration dictionary whose
keys use a dotted notation, e.g. 'sim.log.level'. Keys used by tsmod itself
are prefixed with 'sim.'; defaults are filled in (with
:meth:`dict.setdefault`) by the code that consumes them, so after a run the
configuration dictionary records every setting that was in effect.

Keys consumed by tsmod:

 - 'sim.workspace', 'sim.workspace.overwrite': directory the run's files are
   written to.
 - 'sim.config.file', 'sim.result.file': dump files for the configuration and
   result dictionaries (.yaml, .json, or .py).
 - 'sim.log.*': the log tracer; see :class:`tsmod.tracer.LogTracer`.

The functions in this module help user interfaces apply user-provided
settings to a configuration.

"""
from typing import Any, Dict, Iterable, Optional, Tuple, Type
import builtins

ConfigDict = Dict[str, Any]


class ConfigError(Exception):
    """Exception raised for a variety of configuration errors."""


def apply_user_overrides(
    config: ConfigDict,
    overrides: Iterable[Tuple[str, str]],
    eval_locals: Optional[Dict[str, Any]] = None,
) -> None:
    """Apply user-provided overrides to a configuration.

    Each user-provided key must already exist in `config`; it may be given
    partially, as accepted by :func:`fuzzy_lookup()`. Each value expression is
    evaluated against a restricted set of builtins and coerced to the type of
    the existing (default) value.

    :param dict config: Configuration dictionary to modify.
    :param overrides: Iterable of ``(key, value expression)`` tuples.
    :param dict eval_locals: Optional locals used when evaluating expressions.
    :raises ConfigError: For unknown keys or invalid expressions.

    """
    for user_key, user_expr in overrides:
        key, current_value = fuzzy_lookup(config, user_key)
        config[key] = _safe_eval(user_expr, type(current_value), eval_locals)


def fuzzy_lookup(config: ConfigDict, fuzzy_key: str) -> Tuple[str, Any]:
    """Lookup a config key/value using a partially specified (fuzzy) key.

    The lookup succeeds iff `fuzzy_key` is a key of `config` or unambiguously
    matches the tail of a key in `config`. Matches on a whole dotted
    component are preferred to plain suffix matches.

    :returns: ``(key, value)`` with the fully-qualified key.
    :raises ConfigError: For unknown or ambiguous keys.

    """
    if fuzzy_key in config:
        return fuzzy_key, config[fuzzy_key]
    split_matches = [k for k in config if k.endswith('.' + fuzzy_key.lstrip('.'))]
    suffix_matches = [k for k in config
                      if k.endswith(fuzzy_key) and k not in split_matches]
    for matches in (split_matches, suffix_matches):
        if len(matches) == 1:
            return matches[0], config[matches[0]]
    if not split_matches and not suffix_matches:
        raise ConfigError(f'Invalid config key "{fuzzy_key}"')
    raise ConfigError(
        f'Ambiguous config key "{fuzzy_key}"; possible matches: '
        + ', '.join(split_matches + suffix_matches)
    )


_safe_builtins = [
    'abs', 'bool', 'dict', 'float', 'frozenset', 'int', 'len', 'list', 'max',
    'min', 'range', 'round', 'set', 'str', 'sum', 'tuple', 'zip', 'True',
    'False', 'None',
]

_default_eval_locals = {name: getattr(builtins, name)
                        for name in _safe_builtins
                        if hasattr(builtins, name)}


def _safe_eval(
    expr: str,
    coerce_type: Optional[Type[Any]] = None,
    eval_locals: Optional[Dict[str, Any]] = None,
) -> Any:
    if eval_locals is None:
        eval_locals = _default_eval_locals
    try:
        value = eval(expr, {'__builtins__': None}, eval_locals)
    except Exception:
        if coerce_type is not None and issubclass(coerce_type, str):
            return expr
        raise ConfigError(f'Failed evaluation of expression "{expr}"') from None

    if coerce_type is not None and coerce_type is not type(None):
        if issubclass(coerce_type, str) and not isinstance(value, str):
            return expr
        if not isinstance(value, coerce_type):
            try:
                value = coerce_type(value)
            except (ValueError, TypeError):
                raise ConfigError(
                    f'Failed to coerce expression "{expr}" to '
                    f'{coerce_type.__name__}'
                ) from None
    return value
