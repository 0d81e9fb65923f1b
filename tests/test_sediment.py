import numpy as np
import pytest

from openchannel.cross_section import Rectangular
from openchannel.exceptions import OutOfRange
from openchannel.flow import normal_depth
from openchannel.sediment import (MotionState, SedimentClass, SedimentProperties, ShieldsCurve, TransportFormula,
                                  ackers_white, analyze_profile_sediments, analyze_sediment, bed_shear_stress,
                                  einstein_brown, engelund_hansen, meyer_peter_muller, shields_parameter,
                                  van_rijn_bed_load, van_rijn_suspended_load)


@pytest.fixture
def sand():
    return SedimentProperties(d50=0.0005)


def test_grain_properties(sand):
    assert sand.relative_density == pytest.approx(1.65)
    assert sand.critical_shields() == pytest.approx(0.032, abs=1e-3)
    assert sand.settling_velocity == pytest.approx(0.072, abs=1e-3)
    assert sand.critical_shear_stress() == pytest.approx(sand.critical_shields() * 1650 * 9.81 * 0.0005)


def test_shields_curves_agree_roughly(sand):
    values = [sand.critical_shields(c) for c in ShieldsCurve]
    assert all(0.02 < v < 0.06 for v in values)
    assert sand.critical_shields('guo') == sand.critical_shields(ShieldsCurve.GUO)


def test_settling_velocity_regimes():
    silt = SedimentProperties(d50=0.00005)
    gravel = SedimentProperties(d50=0.005)
    assert silt.settling_velocity == pytest.approx(1.65 * 9.81 * 0.00005**2 / 18e-6)
    assert gravel.settling_velocity == pytest.approx(1.1 * np.sqrt(1.65 * 9.81 * 0.005))


@pytest.mark.parametrize('d50, expected', [
    (0.000002, SedimentClass.CLAY),
    (0.0003, SedimentClass.MEDIUM_SAND),
    (0.0005, SedimentClass.COARSE_SAND),
    (0.01, SedimentClass.COARSE_GRAVEL),
    (0.5, SedimentClass.BOULDER),
])
def test_wentworth_class(d50, expected):
    assert SedimentClass.from_diameter(d50) is expected
    assert SedimentProperties(d50=d50).sediment_class is expected
    lower, upper = expected.diameter_range
    assert lower <= d50 * 1000 < upper


def test_motion_states():
    assert MotionState.classify(0.5, 10.0) is MotionState.NO_MOTION
    assert MotionState.classify(0.9, 10.0) is MotionState.INCIPIENT
    assert MotionState.classify(1.5, 3.0) is MotionState.BED_LOAD
    assert MotionState.classify(1.5, 1.0) is MotionState.SUSPENSION
    assert MotionState.SUSPENSION.moving and not MotionState.INCIPIENT.moving


def test_no_transport_below_threshold(sand):
    critical = sand.critical_shields()
    assert meyer_peter_muller(0.5 * critical, critical, sand) == 0.0
    assert van_rijn_bed_load(critical, critical, sand) == 0.0
    assert einstein_brown(0.0, sand) == 0.0

    assert meyer_peter_muller(2 * critical, critical, sand) > 0.0
    assert van_rijn_bed_load(2 * critical, critical, sand) > 0.0


def test_meyer_peter_muller_formula(sand):
    q = meyer_peter_muller(0.1, 0.047, sand)
    assert q == pytest.approx(8 * 0.053**1.5 * np.sqrt(1.65 * 9.81 * 0.0005**3))


def test_shear_stress():
    tau = bed_shear_stress(1.0, 0.001)
    assert tau == pytest.approx(9.81)
    assert shields_parameter(tau, SedimentProperties(d50=0.001)) == pytest.approx(9.81 / (1650 * 9.81 * 0.001))


def test_analyze_uniform_flow(rectangle, sand):
    yn = normal_depth(rectangle, 10.0, 0.001)
    result = analyze_sediment(rectangle, 10.0, yn, 0.001, sand)

    R = rectangle.hydraulic_radius(yn)
    assert result.shear_stress == pytest.approx(1000 * 9.81 * R * 0.001, rel=1e-4)
    assert result.shields_ratio > 1.0
    assert result.motion_state.moving
    assert result.erosion_risk
    assert result.bed_load > 0.0
    assert result.total_load == pytest.approx(result.bed_load + result.suspended_load)
    assert result.daily_capacity == pytest.approx(result.total_load * 5.0 * 2650 * 86400)
    assert result.safety_factor < 1.0


def test_analyze_still_bed():
    section = Rectangular(width=10.0, n=0.02)
    gravel = SedimentProperties(d50=0.05)
    result = analyze_sediment(section, 2.0, 1.0, 0.0002, gravel, formula=TransportFormula.VAN_RIJN,
                              use_friction_slope=False)
    assert result.motion_state is MotionState.NO_MOTION
    assert not result.erosion_risk
    assert result.bed_load == 0.0
    assert result.formula is TransportFormula.VAN_RIJN


def test_invalid_sediment():
    with pytest.raises(OutOfRange):
        SedimentProperties(d50=0.0)
    with pytest.raises(OutOfRange):
        SedimentProperties(d50=0.001, density=900.0)
    with pytest.raises(OutOfRange):
        SedimentProperties(d50=0.001, porosity=1.0)


def test_suspended_load_of_sand(sand):
    u_star_c = np.sqrt(sand.critical_shear_stress() / 1000.0)
    assert van_rijn_suspended_load(1.0, 1.0, 0.9 * u_star_c, sand) == 0.0

    low = van_rijn_suspended_load(1.0, 1.0, 0.05, sand)
    high = van_rijn_suspended_load(1.5, 1.0, 0.07, sand)
    assert 0.0 < low < high


def test_total_load_formulas(sand):
    shields = bed_shear_stress(0.8, 0.001) / (1650 * 9.81 * 0.0005)
    u_star = np.sqrt(9.81 * 0.8 * 0.001)

    eh = engelund_hansen(shields, 1.2, u_star, sand)
    assert eh == pytest.approx(0.05 * (1.2 / u_star)**2 * shields**2.5 * np.sqrt(1.65 * 9.81 * 0.0005**3))
    assert ackers_white(1.2, 1.0, u_star, sand) > 0.0

    assert engelund_hansen(0.0, 1.2, u_star, sand) == 0.0
    assert ackers_white(0.05, 1.0, 0.005, sand) == 0.0


@pytest.mark.parametrize('formula', [TransportFormula.ENGELUND_HANSEN, TransportFormula.ACKERS_WHITE])
def test_total_load_split(rectangle, sand, formula):
    yn = normal_depth(rectangle, 10.0, 0.001)
    result = analyze_sediment(rectangle, 10.0, yn, 0.001, sand, formula=formula)

    assert formula.total_load
    assert result.total_load > 0.0
    assert result.bed_load >= 0.0
    assert result.suspended_load <= result.total_load
    assert result.bed_load + result.suspended_load == pytest.approx(result.total_load)


def test_concentration(rectangle, sand):
    yn = normal_depth(rectangle, 10.0, 0.001)
    result = analyze_sediment(rectangle, 10.0, yn, 0.001, sand)
    assert result.concentration == pytest.approx(result.total_load * 2650 / 2.0 * 1000)
    assert result.concentration > 0.0


def test_profile_sediments(backwater_system, sand):
    from openchannel.network import NetworkRouter

    profile = NetworkRouter().run(backwater_system)
    stations = analyze_profile_sediments(profile, sand)

    assert len(stations) == len(profile.points)
    assert [s.station for s in stations] == [p.station for p in profile.points]
    for s, p in zip(stations, profile.points):
        assert s.transport.velocity == pytest.approx(p.velocity)
        assert s.reach_id == p.reach_id
        assert s.sediment_class is SedimentClass.COARSE_SAND
        assert s.recommendations

    # deeper backwater near the control moves less sand
    assert stations[-1].transport.shields_parameter < stations[0].transport.shields_parameter


def test_profile_sediments_of_still_bed(backwater_system):
    from openchannel.network import NetworkRouter

    points = NetworkRouter().run(backwater_system).points
    boulders = SedimentProperties(d50=0.5)
    stations = analyze_profile_sediments(points, boulders, formula=TransportFormula.MEYER_PETER_MULLER)

    assert all(s.transport.motion_state is MotionState.NO_MOTION for s in stations)
    assert all(s.transport.total_load == 0.0 for s in stations)
    assert stations[0].recommendations == ("Stable bed, no protection needed.",)
