import numpy as np
import pytest

from openchannel.cross_section import Rectangular
from openchannel.exceptions import InvalidGeometry, JunctionUnbalanced, OutOfRange
from openchannel.flow import FlowRegime, critical_depth, flow_state, froude_number
from openchannel.jump import JumpType
from openchannel.settings import G
from openchannel.structures import (BrinkDepthPolicy, Chute, Drop, DropType, FreeOverfall, Gate, GateType, Junction,
                                    Weir, WeirType, basin_length_ratio, design_stilling_basin, recommended_basin,
                                    subcritical_depth, supercritical_depth)


@pytest.fixture
def sharp_weir():
    return Weir('w1', WeirType.SHARP_CRESTED, crest_length=2.0, crest_height=0.5, discharge_coefficient=0.611)


@pytest.fixture
def sluice():
    return Gate('g1', GateType.SLUICE, opening=0.2, width=2.0)


## Weirs

def test_sharp_crested_weir(sharp_weir):
    expected = 0.611 * 2 / 3 * np.sqrt(2 * G) * 2.0 * 0.3**1.5
    Q = sharp_weir.discharge(0.3)
    assert Q == pytest.approx(expected)
    assert Q == pytest.approx(0.59, rel=0.05)


def test_rehbock_coefficient():
    weir = Weir('w', WeirType.SHARP_CRESTED, crest_length=2.0, crest_height=0.5)
    assert weir.coefficient(0.3) == pytest.approx(0.611 + 0.08 * 0.3 / 0.5)
    assert weir.discharge(0.3) > 0.59


def test_weir_head_inverts_discharge(sharp_weir):
    assert sharp_weir.head(sharp_weir.discharge(0.42)) == pytest.approx(0.42, rel=1e-8)


def test_broad_crested_and_triangular():
    broad = Weir('b', WeirType.BROAD_CRESTED, crest_length=3.0, crest_height=0.4)
    assert broad.discharge(0.5) == pytest.approx(1.705 * 3.0 * 0.5**1.5)

    vnotch = Weir('v', WeirType.TRIANGULAR, crest_length=0.0, crest_height=0.3, notch_angle=90.0)
    assert vnotch.discharge(0.2) == pytest.approx(0.58 * 8 / 15 * np.sqrt(2 * G) * 0.2**2.5)

    with pytest.raises(OutOfRange):
        Weir('b', WeirType.BROAD_CRESTED, crest_length=3.0, crest_height=0.4, discharge_coefficient=2.5)


def test_ogee_coefficient_follows_head_ratio():
    ogee = Weir('o', WeirType.OGEE, crest_length=10.0, crest_height=5.0, design_head=2.0)
    assert ogee.coefficient(2.0) == pytest.approx(2.18)
    assert ogee.coefficient(1.0) < ogee.coefficient(2.0) < ogee.coefficient(3.0)


def test_villemonte_submergence(sharp_weir):
    free = sharp_weir.discharge(0.3)
    assert sharp_weir.discharge(0.3, tailwater_head=0.15) == free
    assert not sharp_weir.is_submerged(0.3, 0.15)

    ratio = 0.8
    reduced = sharp_weir.discharge(0.3, tailwater_head=ratio * 0.3)
    assert reduced == pytest.approx(free * (1 - ratio**1.5)**0.385)
    assert sharp_weir.is_submerged(0.3, ratio * 0.3)
    assert sharp_weir.discharge(0.3, tailwater_head=0.31) == 0.0


def test_submerged_weir_needs_more_head(sharp_weir):
    Q = 0.5
    free = sharp_weir.head(Q)
    drowned = sharp_weir.head(Q, tailwater_head=0.9 * free)
    assert drowned > free


def test_weir_validation():
    with pytest.raises(InvalidGeometry):
        Weir('w', WeirType.SHARP_CRESTED, crest_length=0.0, crest_height=0.5)
    with pytest.raises(InvalidGeometry):
        Weir('w', WeirType.SHARP_CRESTED, crest_length=2.0, crest_height=0.0)
    with pytest.raises(OutOfRange):
        Weir('w', WeirType.BROAD_CRESTED, crest_length=2.0, crest_height=0.5).discharge(-0.1)


def test_weir_rating(sharp_weir):
    heads = [0.1, 0.2, 0.3]
    rating = sharp_weir.rating(heads)
    assert rating.shape == (3,)
    assert np.all(np.diff(rating) > 0)


## Gates

def test_sluice_gate_free_flow(sluice):
    Q = sluice.discharge(2.0)
    assert Q == pytest.approx(1.48, rel=0.01)
    assert sluice.vena_contracta == pytest.approx(0.1222, abs=1e-4)

    section = Rectangular(width=2.0, n=0.015)
    assert flow_state(section, Q, sluice.vena_contracta).regime is FlowRegime.SUPERCRITICAL


def test_gate_upstream_depth_inverts_discharge(sluice):
    Q = sluice.discharge(2.0)
    assert sluice.upstream_depth(Q) == pytest.approx(2.0, rel=1e-8)
    assert sluice.required_opening(Q, 2.0) == pytest.approx(0.2, rel=1e-6)


def test_gate_submergence(sluice):
    Q = sluice.discharge(2.0)
    y3 = sluice.sequent_depth(Q)
    assert not sluice.is_submerged(Q, 0.9 * y3)
    assert sluice.is_submerged(Q, 1.1 * y3)
    assert sluice.discharge(2.0, tailwater_depth=1.1 * y3) < Q
    assert sluice.upstream_depth(Q, tailwater_depth=1.1 * y3) > 2.0


def test_gate_clear_of_flow(sluice):
    small = 0.5 * sluice.discharge(0.2 * (1 + 1e-9))
    assert not sluice.controls(small)
    with pytest.raises(OutOfRange):
        sluice.upstream_depth(small)
    with pytest.raises(OutOfRange):
        sluice.discharge(0.15)


def test_radial_gate_contraction():
    gate = Gate('r', GateType.RADIAL, opening=0.5, width=3.0, radius=4.0, trunnion_height=3.0)
    assert 0 < gate.lip_angle < 90
    assert 0.6 < gate.contraction < 1.0
    with pytest.raises(InvalidGeometry):
        Gate('r', GateType.RADIAL, opening=0.5, width=3.0)


## Drops and overfalls

def test_free_drop():
    section = Rectangular(width=3.0, n=0.015)
    result = Drop('d1', height=2.0).evaluate(section, section, 4.0)
    yc = critical_depth(section, 4.0)

    assert result.condition == 'free'
    assert result.critical_depth == pytest.approx(yc)
    assert result.toe_depth < yc < result.sequent_depth
    assert result.toe_froude == pytest.approx(froude_number(section, 4.0, result.toe_depth))
    q = 4.0 / 3.0
    D = q**2 / (G * 2.0**3)
    assert result.drop_number == pytest.approx(D)
    assert result.drop_length == pytest.approx(4.30 * 2.0 * D**0.27)
    assert result.pool_depth == pytest.approx(2.0 * D**0.22)
    assert result.basin_length > 0


def test_drop_tailwater_conditions():
    section = Rectangular(width=3.0, n=0.015)
    free = Drop('d', height=2.0).evaluate(section, section, 4.0)
    between = 0.5 * (free.toe_depth + free.sequent_depth)

    straight = Drop('d', height=2.0).evaluate(section, section, 4.0, tailwater_depth=between)
    assert straight.condition == 'forced'
    assert straight.jump is not None
    assert straight.jump.upstream_depth == pytest.approx(free.toe_depth)
    assert straight.jump.downstream_depth == pytest.approx(free.sequent_depth)

    shallow = Drop('d', height=2.0).evaluate(section, section, 4.0, tailwater_depth=0.9 * free.toe_depth)
    assert shallow.condition == 'free'
    assert shallow.jump is None

    basin = Drop('d', DropType.USBR_III, height=2.0).evaluate(section, section, 4.0, tailwater_depth=between)
    assert basin.condition == 'forced'
    assert basin.jump is not None

    drowned = Drop('d', height=2.0).evaluate(section, section, 4.0, tailwater_depth=1.2 * free.sequent_depth)
    assert drowned.condition == 'submerged'


def test_basin_recommendation():
    assert recommended_basin(2.0, 5.0) is None
    assert recommended_basin(3.5, 5.0) is DropType.USBR_IV
    assert recommended_basin(6.0, 10.0) is DropType.USBR_III
    assert recommended_basin(6.0, 20.0) is DropType.USBR_II


def test_drop_needs_height():
    section = Rectangular(width=3.0, n=0.015)
    with pytest.raises(InvalidGeometry):
        Drop('d').evaluate(section, section, 4.0)
    with pytest.raises(InvalidGeometry):
        Drop('d', height=-1.0)


def test_free_overfall_brink_policy(caplog):
    section = Rectangular(width=3.0, n=0.015)
    yc = critical_depth(section, 4.0)

    assert FreeOverfall('o').brink_depth(section, 4.0) == pytest.approx(yc)
    assert FreeOverfall('o', BrinkDepthPolicy.BRINK).brink_depth(section, 4.0) == pytest.approx(0.715 * yc)
    assert 'brink' in caplog.text

    result = FreeOverfall('o', 'brink', height=1.0).evaluate(section, section, 4.0)
    assert result.brink_depth == pytest.approx(0.715 * yc)
    assert result.critical_depth == pytest.approx(yc)


def test_energy_depths(rectangle):
    Q = 10.0
    yc = critical_depth(rectangle, Q)
    E = 1.5
    low = supercritical_depth(rectangle, Q, E)
    high = subcritical_depth(rectangle, Q, E)
    assert low < yc < high
    assert supercritical_depth(rectangle, Q, 1.0) is None
    assert subcritical_depth(rectangle, Q, 1.0) is None


## Junctions

def test_junction_continuity():
    junction = Junction('j', lateral_inflow=0.5)
    assert junction.outflow([3.0, 2.0]) == pytest.approx(5.5)
    assert Junction('j', declared_outflow=5.0).outflow([3.0, 2.0]) == pytest.approx(5.0)
    with pytest.raises(JunctionUnbalanced):
        Junction('j', declared_outflow=6.0).outflow([3.0, 2.0])


def test_junction_loss():
    junction = Junction('j', loss_coefficient=0.5)
    assert junction.upstream_wse(10.0, 2.0) == pytest.approx(10.0 + 0.5 * 4.0 / (2 * G))
    assert Junction('j').upstream_wse(10.0, 2.0) == 10.0


## Stilling basins

def test_type_iii_basin_layout():
    basin = design_stilling_basin(10.0, 4.0, 0.25, tailwater_depth=1.8)

    Fr = 10.0 / np.sqrt(G * 0.25)
    y2 = 0.125 * (np.sqrt(1 + 8 * Fr**2) - 1)
    assert basin.basin_type is DropType.USBR_III
    assert basin.froude == pytest.approx(Fr)
    assert basin.sequent_depth == pytest.approx(y2)
    assert basin.length == pytest.approx(basin_length_ratio(DropType.USBR_III, Fr) * y2)
    assert basin.length < 2.8 * y2
    assert basin.depression == pytest.approx(y2 - 1.8)
    assert basin.floor_elevation == pytest.approx(1.8 - y2)

    assert len(basin.chute_blocks) == 8
    assert all(b.height == pytest.approx(0.25) for b in basin.chute_blocks)
    assert all(abs(b.offset) < 2.0 for b in basin.chute_blocks)
    [row] = basin.baffle_rows
    assert row.distance == pytest.approx(0.8 * basin.length)
    assert row.blocks
    assert basin.end_sill.height == pytest.approx(0.2 * y2)
    assert not basin.end_sill.dentated

    assert basin.submergence == pytest.approx(1.8 / y2)
    assert any('Low submergence' in w for w in basin.warnings)
    assert 0.0 < basin.relative_loss < 1.0


def test_oscillating_jump_basin(caplog):
    basin = design_stilling_basin(6.6, 2.0, 0.5)

    assert basin.jump_type is JumpType.OSCILLATING
    assert basin.basin_type is DropType.USBR_IV
    assert basin.end_sill.height == pytest.approx(0.15 * basin.sequent_depth)
    assert basin.depression == 0.0
    assert basin.submergence is None
    assert any('Oscillating' in w for w in basin.warnings)
    assert 'Oscillating' in caplog.text


def test_type_ii_and_plain_basins():
    dentated = design_stilling_basin(10.0, 4.0, 0.25, basin_type=DropType.USBR_II)
    assert dentated.end_sill.dentated
    assert dentated.end_sill.tooth_width == pytest.approx(0.15 * dentated.sequent_depth)
    assert dentated.baffle_rows == ()

    plain = design_stilling_basin(10.0, 4.0, 0.25, tailwater_depth=5.0, basin_type='straight')
    assert plain.basin_type is DropType.STRAIGHT
    assert plain.chute_blocks == () and plain.end_sill is None
    assert plain.length == pytest.approx(6.1 * plain.sequent_depth)
    assert plain.depression == 0.0
    assert any('High submergence' in w for w in plain.warnings)


def test_concrete_volume():
    basin = design_stilling_basin(10.0, 4.0, 0.25, tailwater_depth=1.8)
    floor = basin.length * basin.width * 0.5
    assert basin.concrete_volume() > floor
    assert basin.concrete_volume(floor_thickness=1.0) == pytest.approx(basin.concrete_volume() + floor)


def test_basin_needs_supercritical_inflow():
    with pytest.raises(OutOfRange):
        design_stilling_basin(1.0, 2.0, 1.0)
    with pytest.raises(InvalidGeometry):
        design_stilling_basin(10.0, 0.0, 0.25)
    with pytest.raises(InvalidGeometry):
        design_stilling_basin(10.0, 4.0, 0.25, basin_type=DropType.BAFFLED)


def test_chute_into_basin():
    chute = Chute('c', length=50.0, drop=10.0, width=4.0)
    assert chute.slope == pytest.approx(0.2)

    y1 = chute.toe_depth(10.0)
    assert y1 < critical_depth(Rectangular(width=4.0, n=0.014), 10.0)
    assert not chute.needs_aeration(10.0)

    basin = chute.stilling_basin(10.0, tailwater_depth=2.0)
    assert basin.upstream_depth == pytest.approx(y1)
    assert basin.tailwater_depth == 2.0

    with pytest.raises(InvalidGeometry):
        Chute('c', length=0.0, drop=10.0, width=4.0)


def test_basin_below_drop():
    section = Rectangular(width=3.0, n=0.015)
    free = Drop('d', height=2.0).evaluate(section, section, 4.0)
    tail = 0.5 * (free.toe_depth + free.sequent_depth)
    result = Drop('d', DropType.USBR_III, height=2.0).evaluate(section, section, 4.0, tailwater_depth=tail)

    basin = result.stilling_basin(4.0, 3.0)
    assert basin.upstream_depth == pytest.approx(result.toe_depth)
    assert basin.sequent_depth == pytest.approx(result.sequent_depth, rel=1e-2)
    assert basin.depression > 0.0
