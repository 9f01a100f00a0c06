"""Tracing of model runs.

Code running in a :class:`~tsmod.simulation.SimEnvironment` traces through
functions obtained from the environment's :class:`TraceManager`::

    info = env.tracemgr.get_trace_function('model', log={'level': 'INFO'})
    info('running', len(components), 'components')

Each trace function is bound to a *scope*, a dotted name such as ``model`` or
``model.<component name>``, and to per-tracer hints. When no tracer is enabled
for the scope, the trace function does nothing.

Tracers are configured under ``sim.<tracer name>.*``:

 - 'enable': whether the tracer is active (default False).
 - 'persist': keep the tracer's files after the run (default True).
 - 'include_pat', 'exclude_pat': lists of regular expressions; a scope is
   traced when it matches an include pattern and no exclude pattern.

"""
from typing import TYPE_CHECKING, Callable, List, Optional
import os
import re
import sys
import traceback

from .config import ConfigError
from .util import partial_format

if TYPE_CHECKING:
    from .simulation import SimEnvironment

TraceCallback = Callable[..., None]

#: Log levels, most to least severe.
LEVELS = ('ERROR', 'WARNING', 'INFO', 'DEBUG')


def _compile(patterns: List[str]) -> Optional[re.Pattern]:
    if not patterns:
        return None
    return re.compile('|'.join(f'(?:{pat})' for pat in patterns))


class Tracer:
    """Base of the tracers managed by :class:`TraceManager`."""

    name: str = ''

    def __init__(self, env: 'SimEnvironment') -> None:
        self.env = env
        prefix = f'sim.{self.name}'
        config = env.config
        self.enabled: bool = config.setdefault(f'{prefix}.enable', False)
        self.persist: bool = config.setdefault(f'{prefix}.persist', True)
        self._include: Optional[re.Pattern] = None
        self._exclude: Optional[re.Pattern] = None
        if self.enabled:
            self.open()
            self._include = _compile(
                config.setdefault(f'{prefix}.include_pat', ['.*'])
            )
            self._exclude = _compile(config.setdefault(f'{prefix}.exclude_pat', []))

    def is_scope_enabled(self, scope: str) -> bool:
        if not self.enabled or self._include is None:
            return False
        if not self._include.match(scope):
            return False
        return self._exclude is None or not self._exclude.match(scope)

    def open(self) -> None:
        raise NotImplementedError()  # pragma: no cover

    def close(self) -> None:
        raise NotImplementedError()  # pragma: no cover

    def remove_files(self) -> None:
        raise NotImplementedError()  # pragma: no cover

    def flush(self) -> None:
        pass

    def activate_trace(self, scope: str, **hints) -> Optional[TraceCallback]:
        raise NotImplementedError()  # pragma: no cover

    def trace_exception(self) -> None:
        pass


class LogTracer(Tracer):
    """Write trace messages to ``sim.log.file``, or stderr if it is empty.

    Each message is prefixed according to ``sim.log.format``, which may use
    the `level`, `period` and `scope` fields. Messages less severe than
    ``sim.log.level`` are dropped.

    """

    name = 'log'
    default_format = '{level:7} {period}: {scope}:'

    def open(self) -> None:
        config = self.env.config
        self.filename: str = config.setdefault('sim.log.file', 'sim.log')
        buffering: int = config.setdefault('sim.log.buffering', -1)
        level: str = config.setdefault('sim.log.level', 'INFO')
        if level not in LEVELS:
            raise ConfigError(f'Invalid sim.log.level "{level}"')
        self.max_level = LEVELS.index(level)
        self.format_str: str = config.setdefault('sim.log.format', self.default_format)
        self._owns_file = bool(self.filename)
        self.file = open(self.filename, 'w', buffering) if self._owns_file else sys.stderr

    def close(self) -> None:
        if self._owns_file:
            self.file.close()

    def flush(self) -> None:
        self.file.flush()

    def remove_files(self) -> None:
        if self._owns_file and os.path.isfile(self.filename):
            os.remove(self.filename)

    def activate_trace(self, scope: str, level: str = 'DEBUG') -> Optional[TraceCallback]:
        if LEVELS.index(level) > self.max_level:
            return None
        prefix = partial_format(self.format_str, level=level, scope=scope)

        def trace_callback(*value) -> None:
            print(prefix.format(period=self.env.period), *value, file=self.file)

        return trace_callback

    def trace_exception(self) -> None:
        tb_lines = traceback.format_exception(*sys.exc_info())
        prefix = self.format_str.format(
            level='ERROR', period=self.env.period, scope='Exception'
        )
        print(prefix, tb_lines[-1], '\n', *tb_lines, file=self.file)


class TraceManager:
    """The tracers of one :class:`~tsmod.simulation.SimEnvironment`.

    Closing the manager closes every enabled tracer and removes the files of
    those not configured to persist.

    """

    tracer_types = (LogTracer,)

    def __init__(self, env: 'SimEnvironment') -> None:
        self.tracers: List[Tracer] = []
        try:
            for tracer_type in self.tracer_types:
                self.tracers.append(tracer_type(env))
        except BaseException:
            self.close()
            raise

    @property
    def log_tracer(self) -> LogTracer:
        return self.tracers[0]

    def _enabled(self) -> List[Tracer]:
        return [tracer for tracer in self.tracers if tracer.enabled]

    def flush(self) -> None:
        for tracer in self._enabled():
            tracer.flush()

    def close(self) -> None:
        for tracer in self._enabled():
            tracer.close()
            if not tracer.persist:
                tracer.remove_files()

    def get_trace_function(self, scope: str, **hints) -> TraceCallback:
        """Get a function that traces its arguments for `scope`.

        `hints` are keyed by tracer name, e.g. ``log={'level': 'INFO'}``.
        A tracer receives the traced values only if it is given a hint and
        `scope` passes its include/exclude patterns.

        """
        callbacks = []
        for tracer in self._enabled():
            if tracer.name in hints and tracer.is_scope_enabled(scope):
                callback = tracer.activate_trace(scope, **hints[tracer.name])
                if callback is not None:
                    callbacks.append(callback)

        def trace_function(*value) -> None:
            for callback in callbacks:
                callback(*value)

        return trace_function

    def trace_exception(self) -> None:
        for tracer in self._enabled():
            tracer.trace_exception()
