import numpy as np
import pytest

from tsmod.build import build, resolve_range
from tsmod.errors import (
    BuildError,
    MissingBackupError,
    UnboundParameterError,
    UnitMismatchError,
    UnresolvedReferenceError,
)
from tsmod.model import Model
from tsmod.timeseries import TimestepMatrix, TimestepVector

PERIODS = range(2000, 2101)


@pytest.fixture
def model(registry):
    m = Model(registry=registry)
    m.set_dimension('time', PERIODS)
    return m


@pytest.fixture
def counter(registry):
    """Component accumulating a scalar `total` once per period."""
    comp = registry.defcomp('counter', 'test')
    comp.add_variable('total')

    @comp.run
    def run_timestep(p, v, d, t):
        v.total = v.total + 1

    return comp


@pytest.fixture
def observer(registry):
    """Component recording its scalar `total` parameter every period."""
    comp = registry.defcomp('observer', 'test')
    comp.add_parameter('total')
    comp.add_variable('seen', ['time'])

    @comp.run
    def run_timestep(p, v, d, t):
        v.seen[t] = p.total

    return comp


@pytest.fixture
def regional(registry):
    """Components producing and consuming a time-by-region matrix."""
    source = registry.defcomp('regional_source', 'test')
    source.add_variable('emissions', ['time', 'regions'])

    @source.run
    def run_source(p, v, d, t):
        for r in d.regions:
            v.emissions[t, r] = t.current_period + r

    sink = registry.defcomp('regional_sink', 'test')
    sink.add_parameter('emissions', ['time', 'regions'])
    sink.add_variable('total', ['time'])

    @sink.run
    def run_sink(p, v, d, t):
        v.total[t] = sum(p.emissions[t, r] for r in d.regions)

    return source, sink


def test_backup_connector(model, period_source, passthrough):
    model.add_comp(period_source, 'A', first=2010, last=2090)
    model.add_comp(passthrough, 'B')
    backup = -np.arange(2000, 2101, dtype=float)
    model.connect_param('B', 'par1', 'A', 'output', backup=backup)
    model.run()

    assert list(model.mi.components) == ['A', 'ConnectorComp1', 'B']
    connector = model.mi.components['ConnectorComp1']
    assert (connector.first, connector.last) == (2000, 2100)
    result = model['B', 'var1']
    for period in PERIODS:
        if 2010 <= period <= 2090:
            assert result[period] == period
        else:
            assert result[period] == -period


def test_backup_connector_by_key(model, period_source, passthrough):
    model.add_comp(period_source, 'A', first=2050)
    model.add_comp(passthrough, 'B')
    model.set_external_param('history', np.full(101, 7.0), dims=['time'])
    model.connect_param('B', 'par1', 'A', 'output', backup='history')
    model.run()
    result = model['B', 'var1']
    assert result[2049] == 7.0
    assert result[2050] == 2050


def test_connector_not_needed(model, period_source, passthrough):
    model.add_comp(period_source, 'A')
    model.add_comp(passthrough, 'B', first=2020, last=2030)
    model.connect_param('B', 'par1', 'A', 'output')
    model.run()
    assert list(model.mi.components) == ['A', 'B']
    assert list(model['B', 'var1'].data) == list(range(2020, 2031))


def test_missing_backup(model, period_source, passthrough):
    model.add_comp(period_source, 'A', first=2010, last=2090)
    model.add_comp(passthrough, 'B')
    model.connect_param('B', 'par1', 'A', 'output')
    with pytest.raises(MissingBackupError) as exc_info:
        model.build()
    assert exc_info.value.conn.src_comp_name == 'A'
    assert model.mi is None


def test_failed_build_keeps_instance(model, period_source, passthrough):
    model.add_comp(period_source, 'A')
    model.add_comp(passthrough, 'B')
    model.connect_param('B', 'par1', 'A', 'output')
    mi = model.build()
    model.add_comp(period_source, 'C', first=2050)
    model.connect_param('B', 'par1', 'C', 'output')
    with pytest.raises(MissingBackupError):
        model.build()
    assert model.mi is mi
    assert model.is_stale


def test_matrix_connector(model, regional):
    source, sink = regional
    model.set_dimension('regions', 3)
    model.add_comp(source, 'src', first=2050)
    model.add_comp(sink, 'dst')
    model.connect_param(
        'dst', 'emissions', 'src', 'emissions', backup=np.zeros((101, 3))
    )
    model.run()
    assert list(model.mi.components) == ['src', 'ConnectorComp1', 'dst']
    assert isinstance(model['ConnectorComp1', 'output'], TimestepMatrix)
    total = model['dst', 'total']
    assert total[2049] == 0
    assert total[2050] == 3 * 2050 + 3


def test_unbound_parameters(model, passthrough, observer):
    model.add_comp(passthrough, 'A')
    model.add_comp(observer, 'B')
    with pytest.raises(UnboundParameterError) as exc_info:
        model.build()
    assert exc_info.value.unbound == [('A', 'par1'), ('B', 'total')]


def test_unresolved_variable(model, period_source, passthrough):
    model.add_comp(period_source, 'A')
    model.add_comp(passthrough, 'B')
    model.connect_param('B', 'par1', 'A', 'nosuchvar')
    with pytest.raises(UnresolvedReferenceError):
        model.build()


def test_unresolved_parameter(model, period_source, passthrough):
    model.add_comp(period_source, 'A')
    model.add_comp(passthrough, 'B')
    model.connect_param('B', 'nosuchpar', 'A', 'output')
    with pytest.raises(UnresolvedReferenceError):
        model.build()


def test_unresolved_external(model, passthrough):
    model.add_comp(passthrough, 'A')
    model.md.connect_external_param('A', 'par1', 'nosuchkey')
    with pytest.raises(UnresolvedReferenceError):
        model.build()


def test_dimension_mismatch(model, counter, passthrough):
    model.add_comp(counter, 'A')
    model.add_comp(passthrough, 'B')
    model.connect_param('B', 'par1', 'A', 'total')
    with pytest.raises(BuildError):
        model.build()


def test_undeclared_dimension(model, regional):
    source, _ = regional
    model.add_comp(source)
    with pytest.raises(BuildError):
        model.build()


def test_no_time_dimension(registry, period_source):
    m = Model(registry=registry)
    m.add_comp(period_source)
    with pytest.raises(BuildError):
        m.build()


@pytest.mark.parametrize('first, last', [(1990, 2050), (2050, 2110)])
def test_range_outside_model(model, period_source, first, last):
    model.add_comp(period_source, first=first, last=last)
    with pytest.raises(BuildError):
        model.build()


def test_range_unaligned(registry, period_source):
    m = Model(registry=registry)
    m.set_dimension('time', range(2000, 2101, 10))
    m.add_comp(period_source, first=2005)
    with pytest.raises(BuildError):
        m.build()


def test_resolve_range_follows_time(model, period_source):
    comp_def = model.add_comp(period_source)
    model.add_comp(period_source, 'fixed', first=2020, last=2030)
    assert resolve_range(model.md, comp_def) == (2000, 2100)
    model.set_dimension('time', range(1990, 2051))
    assert resolve_range(model.md, comp_def) == (1990, 2050)
    model.build()
    assert model.mi.first_periods == [1990, 2020]
    assert model.mi.last_periods == [2050, 2030]


def test_unit_checker(model, period_source, passthrough):
    model.add_comp(period_source, 'A')
    model.add_comp(passthrough, 'B')
    model.connect_param('B', 'par1', 'A', 'output')
    model.build(unit_checker=lambda src, dst: src == dst)
    with pytest.raises(UnitMismatchError):
        model.build(unit_checker=lambda src, dst: False)
    model.connect_param('B', 'par1', 'A', 'output', ignore_units=True)
    model.build(unit_checker=lambda src, dst: False)


def test_internal_parameters_alias(model, period_source, passthrough):
    model.add_comp(period_source, 'A')
    model.add_comp(passthrough, 'B')
    model.connect_param('B', 'par1', 'A', 'output')
    model.build()
    output = model['A', 'output']
    par1 = model['B', 'par1']
    assert isinstance(par1, TimestepVector)
    assert np.shares_memory(output.data, par1.data)
    output[2000] = 3.0
    assert par1[2000] == 3.0
    with pytest.raises(ValueError):
        par1[2000] = 1.0


def test_scalar_parameters_alias(model, counter, observer):
    model.add_comp(counter, 'A')
    model.add_comp(observer, 'B')
    model.connect_param('B', 'total', 'A', 'total')
    model.run()
    assert model['A', 'total'][()] == 101
    # A finishes every period before B starts.
    assert list(model['B', 'seen'].data) == [101] * 101


def test_rerun_resets_variables(model, counter, observer):
    model.add_comp(counter, 'A')
    model.add_comp(observer, 'B')
    model.connect_param('B', 'total', 'A', 'total')
    model.run()
    model.run()
    assert model['A', 'total'][()] == 101
    assert list(model['B', 'seen'].data) == [101] * 101


def test_external_parameters_copied(model, passthrough):
    model.add_comp(passthrough, 'A')
    values = np.arange(101, dtype=float)
    model.set_param('A', 'par1', values)
    model.build()
    par1 = model['A', 'par1']
    values[0] = 100.0
    model.md.external_params['par1'].values[0] = 100.0
    assert par1[2000] == 0.0
    with pytest.raises(ValueError):
        par1[2000] = 1.0


def test_external_parameter_component_length(model, passthrough):
    model.add_comp(passthrough, 'A', first=2050)
    model.set_param('A', 'par1', np.arange(51))
    model.run()
    assert model['A', 'var1'][2050] == 0
    assert model['A', 'var1'][2100] == 50


def test_external_parameter_model_length(model, passthrough):
    model.add_comp(passthrough, 'A', first=2050)
    model.set_param('A', 'par1', np.arange(101))
    model.run()
    assert model['A', 'var1'][2050] == 50


def test_external_parameter_bad_length(model, passthrough):
    model.add_comp(passthrough, 'A', first=2050)
    model.set_param('A', 'par1', np.arange(60))
    with pytest.raises(BuildError):
        model.build()


def test_external_parameter_kind_mismatch(model, passthrough, observer):
    model.add_comp(passthrough, 'A')
    model.set_param('A', 'par1', 1.0)
    with pytest.raises(BuildError):
        model.build()
    model.set_param('A', 'par1', np.zeros(101))
    model.add_comp(observer, 'B')
    model.set_param('B', 'total', np.zeros(3))
    with pytest.raises(BuildError):
        model.build()


def test_backward_connection(model, period_source, passthrough):
    model.add_comp(passthrough, 'B')
    model.add_comp(period_source, 'A')
    model.connect_param('B', 'par1', 'A', 'output')
    mi = model.build()
    assert list(mi.components) == ['B', 'A']
    assert [(c.src_comp_name, c.dst_comp_name) for c in mi.backward_conns] == [
        ('A', 'B')
    ]
    model.run()
    # B runs through every period before A writes anything.
    assert not model['B', 'var1'].data.any()


def test_number_type(registry, period_source):
    m = Model(number_type=int, registry=registry)
    m.set_dimension('time', PERIODS)
    m.add_comp(period_source)
    m.build()
    assert m['period_source', 'output'].data.dtype == int


def test_dims_view(model, regional):
    _, sink = regional
    model.set_dimension('regions', ['north', 'south'])
    model.add_comp(sink, first=2090)
    model.set_param('regional_sink', 'emissions', np.ones((11, 2)))
    model.run()
    comp = model.mi.components['regional_sink']
    assert comp.dims.time == range(2090, 2101)
    assert comp.dims.regions == range(2)
    assert model['regional_sink', 'total'][2100] == 2.0


def test_reserved_datum_name(model, registry):
    comp = registry.defcomp('reserved', 'test')
    comp.add_variable('names')
    model.add_comp(comp)
    with pytest.raises(BuildError):
        model.build()


def test_build_marks_definition(model, period_source):
    model.add_comp(period_source)
    assert not model.md.funcs_generated
    mi = build(model.md)
    assert model.md.funcs_generated
    assert mi.version == model.md.version
    assert model.mi is None
