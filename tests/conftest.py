import os

import pytest

from tsmod.registry import ComponentRegistry


@pytest.fixture
def cleandir(tmpdir):
    origin = os.getcwd()
    tmpdir.chdir()
    yield None
    os.chdir(origin)


@pytest.fixture
def registry():
    """Fixture providing a private ComponentRegistry with the builtins."""
    return ComponentRegistry()


@pytest.fixture
def passthrough(registry):
    """Component copying its `par1` time series to `var1`."""
    comp = registry.defcomp('passthrough', 'test')
    comp.add_variable('var1', ['time'])
    comp.add_parameter('par1', ['time'])

    @comp.run
    def run_timestep(p, v, d, t):
        v.var1[t] = p.par1[t]

    return comp


@pytest.fixture
def period_source(registry):
    """Component whose `output` is the current period."""
    comp = registry.defcomp('period_source', 'test')
    comp.add_variable('output', ['time'])

    @comp.run
    def run_timestep(p, v, d, t):
        v.output[t] = t.current_period

    return comp
