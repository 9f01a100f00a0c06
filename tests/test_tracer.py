import os

import pytest

from tsmod.config import ConfigError
from tsmod.model import Model
from tsmod.simulation import SimEnvironment

pytestmark = pytest.mark.usefixtures('cleandir')


@pytest.fixture
def config():
    return {
        'sim.log.enable': False,
        'sim.log.file': 'sim.log',
        'sim.log.level': 'INFO',
        'sim.result.file': 'result.yaml',
        'sim.workspace': 'workspace',
        'test.raise': False,
    }


@pytest.fixture
def model(registry, period_source, passthrough):
    comp = registry.defcomp('checker', 'test')
    comp.add_parameter('fail')

    @comp.run
    def run_timestep(p, v, d, t):
        if p.fail and t.is_final_step:
            raise Exception('oops')

    m = Model(registry=registry)
    m.set_dimension('time', range(2000, 2005))
    m.add_comp(period_source, 'A')
    m.add_comp(passthrough, 'B')
    m.add_comp(comp)
    m.connect_param('B', 'par1', 'A', 'output')
    m.set_param('checker', 'fail', False)
    return m


def _read_log(config):
    log_path = os.path.join(config['sim.workspace'], config['sim.log.file'])
    with open(log_path) as f:
        return f.readlines()


def test_defaults(model, config):
    model.run(config)
    workspace = config['sim.workspace']
    assert os.path.isdir(workspace)
    assert os.path.exists(os.path.join(workspace, config['sim.result.file']))
    assert not os.path.exists(os.path.join(workspace, config['sim.log.file']))


def test_exception(model, config):
    config['sim.log.enable'] = True
    model.update_param('fail', True)
    model.build()
    with pytest.raises(Exception):
        model.run(config)
    log = ''.join(_read_log(config))
    assert 'ERROR   2004: Exception:' in log
    assert 'oops' in log


def test_log(model, config):
    config['sim.log.enable'] = True
    model.run(config)
    lines = _read_log(config)
    assert lines[0] == 'INFO    2000: model: running 3 components over 2000-2004\n'
    assert lines[-1] == 'INFO    2004: model: run complete\n'
    assert len(lines) == 2


def test_log_debug(model, config):
    config['sim.log.enable'] = True
    config['sim.log.level'] = 'DEBUG'
    model.run(config)
    lines = _read_log(config)
    assert len(lines) == 2 + 3 * 5
    assert lines[1] == 'DEBUG   2000: model.A: run_timestep 1\n'
    assert lines[3] == 'DEBUG   2002: model.A: run_timestep 3\n'
    assert lines[6] == 'DEBUG   2000: model.B: run_timestep 1\n'
    assert lines[11] == 'DEBUG   2000: model.checker: run_timestep 1\n'
    assert lines[-2] == 'DEBUG   2004: model.checker: run_timestep 5\n'


def test_log_level_error(model, config):
    config['sim.log.enable'] = True
    config['sim.log.level'] = 'ERROR'
    model.run(config)
    assert _read_log(config) == []


def test_log_include_pat(model, config):
    config['sim.log.enable'] = True
    config['sim.log.level'] = 'DEBUG'
    config['sim.log.include_pat'] = [r'model\.B']
    model.run(config)
    lines = _read_log(config)
    assert len(lines) == 5
    assert all(': model.B: ' in line for line in lines)


def test_log_exclude_pat(model, config):
    config['sim.log.enable'] = True
    config['sim.log.level'] = 'DEBUG'
    config['sim.log.exclude_pat'] = [r'model\.']
    model.run(config)
    lines = _read_log(config)
    assert len(lines) == 2
    assert all(': model: ' in line for line in lines)


def test_log_format(model, config):
    config['sim.log.enable'] = True
    config['sim.log.format'] = '[{period}] {scope} {level}'
    model.run(config)
    assert _read_log(config)[-1] == '[2004] model INFO run complete\n'


def test_log_stderr(model, config, capsys):
    config['sim.log.enable'] = True
    config['sim.log.file'] = ''
    model.run(config)
    out, err = capsys.readouterr()
    assert out == ''
    assert err.endswith('INFO    2004: model: run complete\n')


def test_log_persist(model, config):
    config['sim.log.enable'] = True
    config['sim.log.persist'] = False
    model.run(config)
    log_path = os.path.join(config['sim.workspace'], config['sim.log.file'])
    assert not os.path.exists(log_path)

    config['sim.log.file'] = ''
    model.run(config)


def test_trace_function_without_hint(config):
    config['sim.log.enable'] = True
    env = SimEnvironment(config, initial_time=2000)
    traced = env.tracemgr.get_trace_function('model')
    traced('ignored')
    env.tracemgr.get_trace_function('model', log={'level': 'INFO'})('seen')
    env.tracemgr.close()
    with open(config['sim.log.file']) as f:
        assert f.read() == 'INFO    2000: model: seen\n'


def test_log_invalid_level(model, config):
    config['sim.log.enable'] = True
    config['sim.log.level'] = 'VERBOSE'
    with pytest.raises(ConfigError):
        model.run(config)
