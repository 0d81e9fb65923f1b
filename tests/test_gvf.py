import pytest

from openchannel.channel import ChannelReach, StationSection, TransitionPolicy
from openchannel.cross_section import Circular, Rectangular, Trapezoidal
from openchannel.exceptions import Cancelled, CriticalDepthCrossing, DryBed, InvalidGeometry, NotFullyDefined
from openchannel.flow import FlowRegime, critical_depth, normal_depth
from openchannel.gvf import DepthCache, IntegrationDirection, StandardStepSolver
from openchannel.jump import JumpLocation, JumpLocator, JumpType
from openchannel.settings import GvfConfig


def test_m1_backwater(mild_reach):
    solver = StandardStepSolver()
    points = solver.integrate(mild_reach, 10.0, 2.0, IntegrationDirection.UPSTREAM)
    yn = normal_depth(mild_reach.stations[0].section, 10.0, 0.001)

    assert [p.station for p in points] == sorted(p.station for p in points)
    assert points[-1].depth == pytest.approx(2.0)
    assert yn < points[0].depth < 2.0
    assert all(a.depth < b.depth for a, b in zip(points, points[1:]))
    assert all(p.profile_type == 'M1' for p in points)
    assert all(p.regime is FlowRegime.SUBCRITICAL for p in points)


def test_uniform_flow_is_preserved(mild_reach):
    yn = normal_depth(mild_reach.stations[0].section, 10.0, 0.001)
    points = StandardStepSolver(GvfConfig(tolerance=1e-8)).integrate(
        mild_reach, 10.0, yn, IntegrationDirection.UPSTREAM)
    for p in points:
        assert p.depth == pytest.approx(yn, abs=1e-4)


def test_energy_grade_and_wse(mild_reach):
    points = StandardStepSolver().integrate(mild_reach, 10.0, 2.0, IntegrationDirection.UPSTREAM)
    for p in points:
        assert p.water_surface == pytest.approx(p.bed_elevation + p.depth)
        assert p.energy_grade == pytest.approx(p.bed_elevation + p.specific_energy)
    # energy falls in the direction of flow
    assert all(a.energy_grade > b.energy_grade for a, b in zip(points, points[1:]))


def test_s2_drawdown_from_critical():
    section = Rectangular(width=3.0, n=0.010)
    reach = ChannelReach.prismatic('steep', section, length=400.0, slope=0.02)
    yc = critical_depth(section, 5.0)
    yn = normal_depth(section, 5.0, 0.02)

    points = StandardStepSolver().integrate(reach, 5.0, yc, IntegrationDirection.DOWNSTREAM)
    assert points[0].depth == pytest.approx(yc)
    assert yn < points[-1].depth < yc
    assert points[-1].regime is FlowRegime.SUPERCRITICAL
    assert points[-1].profile_type == 'S2'


def test_m2_reaches_critical_depth():
    section = Rectangular(width=5.0, n=0.015)
    reach = ChannelReach.prismatic('drawdown', section, length=2000.0, slope=0.001)
    yn = normal_depth(section, 10.0, 0.001)
    yc = critical_depth(section, 10.0)

    # starting just above critical, the M2 profile rises upstream toward Yn
    points = StandardStepSolver().integrate(reach, 10.0, 1.001 * yc, IntegrationDirection.UPSTREAM)
    assert points[0].depth < yn
    assert points[0].profile_type == 'M2'


def test_critical_crossing_returns_partial_profile():
    section = Rectangular(width=3.0, n=0.010)
    reach = ChannelReach.prismatic('steep', section, length=400.0, slope=0.02)

    with pytest.raises(CriticalDepthCrossing) as err:
        StandardStepSolver().integrate(reach, 5.0, 1.1, IntegrationDirection.UPSTREAM)
    partial = err.value.partial
    assert partial
    assert partial[-1].station == pytest.approx(400.0)
    assert err.value.reach_id == 'steep'


def test_wrong_regime_start_is_rejected(mild_reach):
    solver = StandardStepSolver()
    with pytest.raises(CriticalDepthCrossing):
        solver.integrate(mild_reach, 10.0, 0.3, IntegrationDirection.UPSTREAM)
    with pytest.raises(CriticalDepthCrossing):
        solver.integrate(mild_reach, 10.0, 1.5, IntegrationDirection.DOWNSTREAM)
    with pytest.raises(DryBed):
        solver.integrate(mild_reach, 10.0, 0.0, IntegrationDirection.DOWNSTREAM)


def test_progress_and_cancel(mild_reach):
    calls = []

    def progress(stage, fraction):
        calls.append(fraction)

    StandardStepSolver(progress=progress).integrate(mild_reach, 10.0, 2.0, IntegrationDirection.UPSTREAM)
    assert calls and calls[-1] == pytest.approx(1.0)
    assert all(0.0 <= f <= 1.0 for f in calls)

    with pytest.raises(Cancelled):
        StandardStepSolver(progress=lambda stage, fraction: fraction > 0.5).integrate(
            mild_reach, 10.0, 2.0, IntegrationDirection.UPSTREAM)


def test_depth_cache_handles_impossible_uniform_flow():
    pipe = Circular(diameter=0.3, n=0.013)
    cache = DepthCache(0.1)
    assert cache.normal(pipe, 0.0) is None
    assert cache.normal(pipe, 0.0001) is None
    assert cache.critical(pipe) == pytest.approx(critical_depth(pipe, 0.1))


def test_transition_losses_raise_upstream_level():
    wide = Rectangular(width=5.0, n=0.015)
    narrow = Rectangular(width=3.0, n=0.015)

    def build(config):
        reach = ChannelReach('contraction', (
            StationSection(0.0, 0.2, wide),
            StationSection(100.0, 0.1, wide),
            StationSection(200.0, 0.0, narrow),
        ), transition=TransitionPolicy.ABRUPT)
        return StandardStepSolver(config).integrate(reach, 10.0, 2.0, IntegrationDirection.UPSTREAM)

    lossless = build(GvfConfig(contraction_loss=0.0, expansion_loss=0.0))
    lossy = build(GvfConfig())
    assert lossy[0].water_surface > lossless[0].water_surface

    # the section change sits on a zero-length step, so its loss is all transition
    assert sum(p.transition_loss for p in lossy) > 0.005
    assert sum(p.transition_loss for p in lossless) == pytest.approx(0.0, abs=2e-3)


def test_interpolated_stations():
    a = Rectangular(width=4.0, n=0.02)
    b = Trapezoidal(bottom_width=2.0, side_slope=2.0, n=0.02)
    reach = ChannelReach('taper', (StationSection(0.0, 1.0, a), StationSection(100.0, 0.9, b)))
    mid = reach.section_at(50.0)
    assert isinstance(mid, Trapezoidal)
    assert mid.bottom_width == pytest.approx(3.0)
    assert reach.bed_elevation_at(50.0) == pytest.approx(0.95)

    points = StandardStepSolver().integrate(reach, 5.0, 1.5, IntegrationDirection.UPSTREAM)
    assert len(points) == len(reach.nodes(10.0))


def test_reach_validation():
    section = Rectangular(width=4.0, n=0.02)
    with pytest.raises(InvalidGeometry):
        ChannelReach('short', (StationSection(0.0, 1.0, section),))
    with pytest.raises(InvalidGeometry):
        ChannelReach('backwards', (StationSection(10.0, 1.0, section), StationSection(0.0, 0.9, section)))
    with pytest.raises(InvalidGeometry):
        StationSection(0.0, 1.0, section, manning_n=0.0)


def test_station_roughness_override():
    section = Rectangular(width=4.0, n=0.02)
    station = StationSection(0.0, 1.0, section, manning_n=0.04)
    assert station.effective_section.n == 0.04
    assert station.section.n == 0.02


def test_jump_location_properties(rectangle):
    jump = JumpLocation.from_depths(rectangle, 10.0, 0.3, station=50.0)
    assert jump.upstream_froude == pytest.approx(3.886, abs=1e-3)
    assert jump.jump_type is JumpType.OSCILLATING
    assert jump.length == pytest.approx(6.1 * jump.downstream_depth)
    assert 0 < jump.efficiency < 1
    assert jump.relative_height == pytest.approx(
        (jump.downstream_depth - jump.upstream_depth) / (0.3 + (2.0 / 0.3)**2 / (2 * 9.81)), rel=1e-6)


@pytest.mark.parametrize('froude, expected', [
    (1.5, JumpType.UNDULAR),
    (2.0, JumpType.WEAK),
    (3.0, JumpType.OSCILLATING),
    (6.0, JumpType.STEADY),
    (10.0, JumpType.STRONG),
])
def test_jump_classes(froude, expected):
    assert JumpType.from_froude(froude) is expected


def test_point_losses_and_stresses(mild_reach):
    points = StandardStepSolver().integrate(mild_reach, 10.0, 2.0, IntegrationDirection.UPSTREAM)

    assert points[0].head_loss == 0.0 and points[0].friction_loss == 0.0
    for a, b in zip(points, points[1:]):
        assert b.head_loss == pytest.approx(a.energy_grade - b.energy_grade)
        assert b.friction_loss == pytest.approx(0.5 * (a.friction_slope + b.friction_slope) * (b.station - a.station))
        assert b.head_loss == pytest.approx(b.friction_loss, rel=0.05, abs=1e-5)

    outlet = points[-1]
    R = 5.0 * 2.0 / (5.0 + 2 * 2.0)
    assert outlet.hydraulic_radius == pytest.approx(R)
    assert outlet.shear_stress == pytest.approx(1000 * 9.81 * R * outlet.friction_slope)
    assert outlet.reynolds == pytest.approx(4 * 1.0 * R / 1e-6)
    assert outlet.freeboard is None


def test_freeboard_of_walled_section():
    section = Rectangular(width=5.0, n=0.015, depth=2.5)
    reach = ChannelReach.prismatic('walled', section, length=500.0, slope=0.001)
    points = StandardStepSolver().integrate(reach, 10.0, 2.0, IntegrationDirection.UPSTREAM)
    assert points[-1].freeboard == pytest.approx(0.5)
    assert all(p.freeboard == pytest.approx(2.5 - p.depth) for p in points)


def test_locator_needs_a_profile(mild_reach):
    solver = StandardStepSolver()
    with pytest.raises(NotFullyDefined):
        JumpLocator(solver).locate(mild_reach, 10.0, solver.plan(mild_reach))
