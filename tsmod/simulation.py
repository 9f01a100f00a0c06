"""Run compiled models."""
from contextlib import closing, contextmanager
from pprint import pprint
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    Iterator,
    Optional,
    TextIO,
    Tuple,
    Type,
)
import json
import os
import shutil
import timeit

import simpy
import yaml

from .config import ConfigDict, apply_user_overrides
from .errors import EmptyModelError, NotBuiltError
from .instance import ModelInstance
from .tracer import TraceManager

ResultDict = Dict[str, Any]


class SimEnvironment(simpy.Environment):
    """Simulation Environment.

    The :class:`SimEnvironment` class is a :class:`simpy.Environment` subclass
    whose clock counts calendar periods: a run starts at the model's first
    period and ends at its last. It adds:

     - Access to the configuration dictionary (`config`).
     - Access to the trace manager (`tracemgr`).
     - The period being computed (`period`), which is what traces report.

    :param dict config: A fully-initialized configuration dictionary.
    :param int initial_time: The first period of the run.

    """

    def __init__(self, config: ConfigDict, initial_time: int = 0) -> None:
        super().__init__(initial_time)
        #: The configuration dictionary.
        self.config = config

        #: Period of the component step being run.
        self.period = initial_time

        #: :class:`TraceManager` instance.
        self.tracemgr = TraceManager(self)


@contextmanager
def _workspace(config: ConfigDict) -> Iterator[None]:
    """Run inside the `sim.workspace` directory, creating it if needed."""
    workspace: str = config.setdefault('sim.workspace', os.curdir)
    overwrite: bool = config.setdefault('sim.workspace.overwrite', False)
    if os.path.relpath(workspace) == os.curdir:
        yield
        return
    if overwrite and os.path.isdir(workspace):
        shutil.rmtree(workspace)
    os.makedirs(workspace, exist_ok=True)
    prev_dir = os.getcwd()
    os.chdir(workspace)
    try:
        yield
    finally:
        os.chdir(prev_dir)


def simulate(
    mi: Optional[ModelInstance],
    config: Optional[ConfigDict] = None,
    env_type: Type[SimEnvironment] = SimEnvironment,
    reraise: bool = True,
    overrides: Optional[Iterable[Tuple[str, str]]] = None,
) -> ResultDict:
    """Run a model instance over all of its periods.

    Exceptions raised during the run are caught so they can be logged and
    recorded in the result dict and result file. By default they are then
    re-raised; with `reraise` False, the returned result's 'sim.exception'
    item indicates whether the run failed. A failed run keeps the results of
    the components that ran before the failing one, but the instance's
    `complete` flag stays False.

    :param ModelInstance mi: The instance to run.
    :param dict config: Configuration dictionary for the run.
    :param env_type: :class:`SimEnvironment` subclass.
    :param bool reraise: Should unhandled exceptions propagate to the caller.
    :param overrides: ``(key, expression)`` pairs applied to `config` with
        :func:`~tsmod.config.apply_user_overrides` before the run.
    :returns: Result dictionary.
    :raises NotBuiltError: if `mi` is None.
    :raises EmptyModelError: if `mi` has no components.
    :raises ConfigError: if an override names an unknown key.

    """
    if mi is None:
        raise NotBuiltError('model has not been built')
    if not mi.components:
        raise EmptyModelError('model has no components to run')
    if config is None:
        config = {}
    t0 = timeit.default_timer()
    result: ResultDict = {}
    result_file = config.setdefault('sim.result.file', None)
    config_file = config.setdefault('sim.config.file', None)
    if overrides:
        apply_user_overrides(config, overrides)
        result_file = config['sim.result.file']
        config_file = config['sim.config.file']
    try:
        with _workspace(config):
            env = env_type(config, mi.md.first_period)
            with closing(env.tracemgr):
                try:
                    env.run(until=env.process(mi.run_process(env)))
                except BaseException as e:
                    env.tracemgr.trace_exception()
                    result['sim.exception'] = repr(e)
                    raise
                else:
                    result['sim.exception'] = None
                finally:
                    env.tracemgr.flush()
                    result['config'] = config
                    result['sim.now'] = env.now
                    result['sim.period'] = env.period
                    result['sim.steps'] = mi.steps
                    result['sim.complete'] = mi.complete
                    result['sim.runtime'] = timeit.default_timer() - t0
                    _dump_dict(config_file, config)
                    _dump_dict(result_file, result)
    except BaseException as e:
        if reraise:
            raise
        result.setdefault('config', config)
        result.setdefault('sim.runtime', timeit.default_timer() - t0)
        if result.get('sim.exception') is None:
            result['sim.exception'] = repr(e)
    return result


def _dump_yaml(data: Dict[str, Any], stream: TextIO) -> None:
    yaml.safe_dump(data, stream=stream)


def _dump_json(data: Dict[str, Any], stream: TextIO) -> None:
    json.dump(data, stream, sort_keys=True, indent=2)


def _dump_py(data: Dict[str, Any], stream: TextIO) -> None:
    pprint(data, stream=stream)


_dumpers: Dict[str, Callable[[Dict[str, Any], TextIO], None]] = {
    '.yaml': _dump_yaml,
    '.yml': _dump_yaml,
    '.json': _dump_json,
    '.py': _dump_py,
}


def _dump_dict(filename: Optional[str], dump_dict: Dict[str, Any]) -> None:
    if filename is None:
        return
    ext = os.path.splitext(filename)[1]
    try:
        dump = _dumpers[ext]
    except KeyError:
        raise ValueError(f'Invalid extension: {ext}') from None
    with open(filename, 'w') as dump_file:
        dump(dump_dict, dump_file)
