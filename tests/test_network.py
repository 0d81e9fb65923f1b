import numpy as np
import pandas as pd
import pytest

from openchannel.boundary import DownstreamControl, UpstreamControl
from openchannel.channel import ChannelReach
from openchannel.cross_section import Rectangular
from openchannel.exceptions import (Cancelled, InvalidGeometry, JunctionUnbalanced, NotFullyDefined, OutOfRange,
                                    OverDetermined, UnderDetermined)
from openchannel.flow import FlowRegime, SlopeClass, critical_depth, specific_force
from openchannel.jump import JumpOutcome, JumpType
from openchannel.network import ChannelSystem, NetworkRouter, Tributary
from openchannel.structures import BrinkDepthPolicy, Drop, FreeOverfall, Junction, Weir, WeirType


def reach(id, length, slope, upstream_bed, start=0.0, width=5.0, n=0.015, discharge=None):
    return ChannelReach.prismatic(id, Rectangular(width=width, n=n), length=length, slope=slope,
                                  start_station=start, upstream_bed_elevation=upstream_bed, discharge=discharge)


def test_m1_backwater_profile(backwater_system):
    profile = NetworkRouter().run(backwater_system)
    r = profile.reach('mild')

    assert r.slope_class is SlopeClass.MILD
    assert r.normal_depth == pytest.approx(1.125, abs=5e-3)
    assert r.outcome is JumpOutcome.NONE
    assert r.outlet.depth == pytest.approx(2.0)
    assert r.normal_depth < r.inlet.depth < 2.0
    assert all(p.profile_type == 'M1' for p in r.points)
    assert profile.jumps == ()
    assert np.all(np.diff(profile.stations) > 0)


def test_router_is_repeatable(backwater_system):
    router = NetworkRouter()
    first = router.run(backwater_system)
    second = router.run(backwater_system)
    assert np.array_equal(first.depths, second.depths)
    assert np.array_equal(first.energy_grade, second.energy_grade)
    assert first.warnings == second.warnings


def test_steep_to_mild_jump(steep_mild_system):
    profile = NetworkRouter().run(steep_mild_system)
    steep = profile.reach('steep')
    mild = profile.reach('mild')

    assert steep.slope_class is SlopeClass.STEEP
    assert steep.outcome is JumpOutcome.SWEPT_OUT
    assert steep.inlet.depth == pytest.approx(steep.critical_depth)

    assert mild.outcome is JumpOutcome.FORMED
    jump = mild.jump
    assert 400.0 < jump.station < 500.0
    assert 2.5 <= jump.upstream_froude <= 4.5
    assert jump.jump_type is JumpType.OSCILLATING

    section = Rectangular(width=3.0, n=0.010)
    m1 = specific_force(section, 5.0, jump.upstream_depth)
    m2 = specific_force(section, 5.0, jump.downstream_depth)
    assert m1 == pytest.approx(m2, rel=2e-2)
    assert profile.jumps == (jump,)
    assert any('swept out' in w for w in profile.warnings)


def test_supercritical_inflow_on_mild_reach(backwater_system):
    system = ChannelSystem(
        name='gate outflow',
        items=backwater_system.items,
        downstream_control=backwater_system.downstream_control,
        upstream_control=UpstreamControl.known_depth(0.3),
    )
    r = NetworkRouter().run(system).reach('mild')
    assert r.outcome is JumpOutcome.FORMED
    assert r.inlet.depth == pytest.approx(0.3)
    assert r.inlet.profile_type == 'M3'
    assert 0.0 < r.jump.station < 1000.0


def test_weir_between_reaches():
    weir = Weir('w1', WeirType.SHARP_CRESTED, crest_length=5.0, crest_height=1.0, discharge_coefficient=0.611)
    system = ChannelSystem(
        name='weir',
        items=(reach('up', 500.0, 0.001, 1.0), weir, reach('down', 500.0, 0.001, 0.5, start=500.0)),
        discharge=10.0,
        downstream_control=DownstreamControl.known_depth(1.5),
    )
    profile = NetworkRouter().run(system)
    result = profile.element('w1')

    assert result.kind == 'weir'
    assert result.condition == 'free'
    assert result.head == pytest.approx(weir.head(10.0), rel=1e-6)
    assert profile.reach('up').outlet.depth == pytest.approx(1.0 + result.head, rel=1e-6)
    assert result.downstream_depth < critical_depth(Rectangular(width=5.0, n=0.015), 10.0)


def test_free_overfall_outlet():
    system = ChannelSystem(
        name='overfall',
        items=(reach('r', 2000.0, 0.001, 2.0), FreeOverfall('fall')),
        discharge=10.0,
    )
    profile = NetworkRouter().run(system)
    r = profile.reach('r')
    yc = critical_depth(Rectangular(width=5.0, n=0.015), 10.0)

    assert r.outlet.depth == pytest.approx(yc)
    assert yc < r.inlet.depth < r.normal_depth
    assert profile.element('fall').condition == 'free'
    assert any('0.72' in w for w in profile.warnings)


def test_free_overfall_reports_brink_depth(caplog):
    system = ChannelSystem(
        name='overfall',
        items=(reach('r', 2000.0, 0.001, 2.0), FreeOverfall('fall', BrinkDepthPolicy.BRINK)),
        discharge=10.0,
    )
    profile = NetworkRouter().run(system)
    yc = critical_depth(Rectangular(width=5.0, n=0.015), 10.0)

    assert profile.reach('r').outlet.depth == pytest.approx(yc)
    message = next(w for w in profile.warnings if 'fall' in w)
    assert f'{0.715 * yc:.3f} m' in message
    assert any(r.name == 'openchannel.network' and r.getMessage() == message for r in caplog.records)


def test_tidal_outlet():
    system = ChannelSystem(
        name='estuary',
        items=(reach('r', 1000.0, 0.001, 1.0),),
        discharge=10.0,
        downstream_control=DownstreamControl.known_wse(3.0),
    )
    r = NetworkRouter().run(system).reach('r')
    assert r.slope_class is SlopeClass.TIDAL
    assert r.outlet.water_surface == pytest.approx(3.0)


def test_supercritical_downstream_control_is_ignored():
    system = ChannelSystem(
        name='chute',
        items=(reach('chute', 200.0, 0.02, 4.0, width=3.0, n=0.010),),
        discharge=5.0,
        downstream_control=DownstreamControl.known_depth(0.2),
    )
    profile = NetworkRouter().run(system)
    assert profile.reach('chute').outcome is JumpOutcome.NONE
    assert any('ignored' in w for w in profile.warnings)


def test_tributary_joins_at_junction():
    main_up = reach('main-up', 1000.0, 0.001, 2.0, discharge=5.0)
    main_down = reach('main-down', 1000.0, 0.001, 1.0, start=1000.0)
    side = reach('side', 500.0, 0.001, 1.5, width=3.0, discharge=2.0)
    system = ChannelSystem(
        name='confluence',
        items=(main_up, Junction('j1'), main_down),
        downstream_control=DownstreamControl.known_depth(2.0),
        tributaries=(Tributary('t1', 'j1', (side,)),),
    )
    profile = NetworkRouter().run(system)

    down = profile.reach('main-down')
    assert down.discharge == pytest.approx(7.0)
    assert profile.reach('main-up').discharge == pytest.approx(5.0)
    assert profile.element('j1').condition == 'continuity'

    tributary = profile.tributaries[0]
    assert tributary.name == 't1'
    assert tributary.reach('side').outlet.water_surface == pytest.approx(down.inlet.water_surface)
    assert profile.reach('side') is tributary.reach('side')

    frame = profile.to_dataframe()
    assert isinstance(frame, pd.DataFrame)
    assert len(frame) == len(profile.points) + len(tributary.points)
    assert set(frame['reach_id']) == {'main-up', 'main-down', 'side'}


def test_junction_inflow_must_balance():
    system = ChannelSystem(
        name='unbalanced',
        items=(reach('a', 500.0, 0.001, 1.0, discharge=5.0), Junction('j', declared_outflow=9.0),
               reach('b', 500.0, 0.001, 0.5, start=500.0)),
        downstream_control=DownstreamControl.known_depth(2.0),
    )
    with pytest.raises(JunctionUnbalanced) as err:
        NetworkRouter().run(system)
    assert err.value.element_id == 'j'


def test_discharge_change_needs_junction():
    system = ChannelSystem(
        name='leaky',
        items=(reach('a', 500.0, 0.001, 1.0, discharge=5.0), reach('b', 500.0, 0.001, 0.5, start=500.0,
                                                                  discharge=6.0)),
        downstream_control=DownstreamControl.known_depth(2.0),
    )
    with pytest.raises(OutOfRange):
        NetworkRouter().run(system)


def test_mild_reach_without_control_is_under_determined(mild_reach):
    system = ChannelSystem(name='open', items=(mild_reach,))
    with pytest.raises(UnderDetermined) as err:
        NetworkRouter().run(system)
    assert err.value.reach_id == 'mild'


def test_conflicting_inlet_depth_is_over_determined(backwater_system):
    system = ChannelSystem(
        name='conflict',
        items=backwater_system.items,
        downstream_control=backwater_system.downstream_control,
        upstream_control=UpstreamControl.known_depth(3.0),
    )
    with pytest.raises(OverDetermined):
        NetworkRouter().run(system)


def test_cancellation(backwater_system):
    with pytest.raises(Cancelled):
        NetworkRouter(progress=lambda stage, fraction: True).run(backwater_system)


def test_system_validation(mild_reach):
    with pytest.raises(OverDetermined):
        ChannelSystem(name='s', items=(mild_reach, FreeOverfall('f')),
                      downstream_control=DownstreamControl.known_depth(1.0))
    with pytest.raises(InvalidGeometry):
        ChannelSystem(name='s', items=(mild_reach, Junction('j'), mild_reach))
    with pytest.raises(NotFullyDefined):
        ChannelSystem(name='s', items=(Junction('j'), mild_reach))
    with pytest.raises(NotFullyDefined):
        ChannelSystem(name='s', items=(mild_reach, Junction('j'), Junction('k'), mild_reach))
    with pytest.raises(NotFullyDefined):
        ChannelSystem(name='s', items=(mild_reach, Junction('j')))
    with pytest.raises(NotFullyDefined):
        ChannelSystem(name='s', items=(mild_reach,),
                      tributaries=(Tributary('t', 'nowhere', (reach('t', 100.0, 0.001, 0.1),)),))


def test_profile_lookups(backwater_system):
    profile = NetworkRouter().run(backwater_system)
    with pytest.raises(KeyError):
        profile.reach('missing')
    with pytest.raises(KeyError):
        profile.element('missing')

    frame = profile.reach('mild').to_dataframe()
    assert list(frame.columns)[:3] == ['station', 'bed_elevation', 'depth']
    assert frame['regime'].iloc[0] == 'subcritical'


def test_drop_forces_jump_between_reaches():
    system = ChannelSystem(
        name='drop',
        items=(reach('up', 500.0, 0.001, 3.5, width=3.0), Drop('d1', height=2.0),
               reach('down', 200.0, 0.001, 1.0, start=500.0, width=3.0)),
        discharge=4.0,
        downstream_control=DownstreamControl.normal(),
    )
    profile = NetworkRouter().run(system)
    result = profile.element('d1')
    drop = result.drop
    down = profile.reach('down')

    assert result.condition == 'forced'
    assert drop.toe_depth < down.inlet.depth < drop.sequent_depth
    assert drop.jump is not None and drop.jump in profile.jumps
    assert drop.jump.station == pytest.approx(500.0)
    assert down.outcome is JumpOutcome.NONE
    assert profile.reach('up').outlet.depth == pytest.approx(critical_depth(Rectangular(width=3.0, n=0.015), 4.0))
    assert not any('too low' in w for w in profile.warnings)


def test_backwater_summary(backwater_system):
    profile = NetworkRouter().run(backwater_system)
    summary = profile.summary()
    points = profile.points

    assert summary.station_count == len(points)
    assert summary.start_station == 0.0
    assert summary.end_station == pytest.approx(1000.0)
    assert summary.max_depth == pytest.approx(2.0)
    assert summary.min_depth == pytest.approx(points[0].depth)
    assert summary.min_velocity == pytest.approx(1.0)
    assert summary.mean_depth == pytest.approx(np.mean(profile.depths))

    assert summary.total_head_loss == pytest.approx(summary.inlet_energy - summary.outlet_energy)
    assert summary.friction_loss == pytest.approx(summary.total_head_loss, rel=0.02)
    assert summary.structure_loss == pytest.approx(0.0, abs=1e-9)
    assert summary.min_freeboard is None

    assert summary.predominant_regime is FlowRegime.SUBCRITICAL
    assert summary.subcritical_percentage == 100.0
    assert not summary.has_regime_change
    assert summary.critical_stations == ()
    assert summary.warnings == ()
    assert profile.reach('mild').summary() == summary


def test_jump_summary(steep_mild_system):
    profile = NetworkRouter().run(steep_mild_system)
    summary = profile.summary()
    jump = profile.reach('mild').jump

    assert summary.has_regime_change
    assert summary.supercritical_percentage > 0 and summary.subcritical_percentage > 0
    assert summary.critical_stations[0] == pytest.approx(0.0)
    critical_share = 100.0 * len(summary.critical_stations) / summary.station_count
    assert summary.subcritical_percentage + summary.supercritical_percentage + critical_share == pytest.approx(100.0)
    assert summary.transition_loss == pytest.approx(jump.energy_loss, abs=0.02)
    assert summary.max_froude > 1.0
    assert any('changes regime' in w for w in summary.warnings)
