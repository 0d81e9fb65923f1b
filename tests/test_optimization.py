import logging

import numpy as np
import pytest

from openchannel.cross_section import Circular, Rectangular, Trapezoidal, Triangular
from openchannel.exceptions import OutOfRange, SubCriticalSlopeRequired
from openchannel.flow import manning_discharge
from openchannel.optimization import (ChannelOptimizer, DesignConstraints, Objective, SectionFamily,
                                      best_hydraulic_trapezoid, hydraulic_efficiency)

Q, S, N = 10.0, 0.001, 0.015


def test_best_hydraulic_trapezoid():
    result = best_hydraulic_trapezoid(Q, S, N)
    section = result.section
    y = result.normal_depth

    assert section.side_slope == pytest.approx(1 / np.sqrt(3))
    assert section.bottom_width / y == pytest.approx(2 / np.sqrt(3))
    assert result.hydraulic_radius == pytest.approx(y / 2)
    assert manning_discharge(section, S, y) == pytest.approx(Q, rel=1e-8)
    assert result.iterations == 0
    assert result.total_depth == pytest.approx(y + 0.15)
    assert section.depth == pytest.approx(result.total_depth)
    assert result.hydraulic_efficiency == pytest.approx(1 / np.sqrt(2 * np.sqrt(3) / np.pi))


def test_best_trapezoid_with_fixed_side_slope():
    result = best_hydraulic_trapezoid(Q, S, N, z=1.0)
    assert result.section.bottom_width / result.normal_depth == pytest.approx(2 * (np.sqrt(2) - 1))
    assert result.hydraulic_radius == pytest.approx(result.normal_depth / 2)


def test_rectangle_min_area_is_half_square():
    result = ChannelOptimizer(Q, S, N, SectionFamily.RECTANGULAR, Objective.MIN_AREA).optimize()
    assert isinstance(result.section, Rectangular)
    assert result.section.width / result.normal_depth == pytest.approx(2.0, rel=2e-2)
    assert result.constraints_satisfied
    assert result.violations == ()
    assert result.cost is None
    assert manning_discharge(result.section, S, result.normal_depth) == pytest.approx(Q, rel=1e-6)


def test_max_efficiency_matches_min_area():
    area = ChannelOptimizer(Q, S, N, 'rectangular', 'min_area').optimize()
    efficient = ChannelOptimizer(Q, S, N, 'rectangular', 'max_efficiency').optimize()
    assert efficient.section.width == pytest.approx(area.section.width, rel=2e-2)
    assert efficient.hydraulic_efficiency == pytest.approx(1 / np.sqrt(4 / np.pi), rel=1e-3)


def test_triangle_min_area_has_unit_side_slope():
    result = ChannelOptimizer(Q, S, N, SectionFamily.TRIANGULAR).optimize()
    assert isinstance(result.section, Triangular)
    assert result.section.side_slope == pytest.approx(1.0, rel=2e-2)


def test_free_trapezoid_matches_half_hexagon():
    best = best_hydraulic_trapezoid(Q, S, N)
    result = ChannelOptimizer(Q, S, N, SectionFamily.TRAPEZOIDAL, Objective.MIN_WETTED_PERIMETER).optimize()
    assert isinstance(result.section, Trapezoidal)
    assert result.wetted_perimeter <= best.wetted_perimeter * (1 + 1e-3)
    assert result.section.side_slope == pytest.approx(1 / np.sqrt(3), rel=5e-2)


def test_fixed_side_slope_trapezoid():
    constraints = DesignConstraints(side_slope=1.5)
    result = ChannelOptimizer(Q, S, N, SectionFamily.TRAPEZOIDAL, constraints=constraints).optimize()
    assert result.section.side_slope == 1.5
    expected = 2 * (np.sqrt(1 + 1.5**2) - 1.5)
    assert result.section.bottom_width / result.normal_depth == pytest.approx(expected, rel=3e-2)


def test_min_cost_reports_cost():
    result = ChannelOptimizer(Q, S, N, SectionFamily.TRAPEZOIDAL, Objective.MIN_COST,
                              excavation_cost=20.0, lining_cost=5.0).optimize()
    assert result.cost == pytest.approx(20.0 * result.area + 5.0 * result.wetted_perimeter)
    assert result.objective == pytest.approx(result.cost)


def test_pipe_design():
    result = ChannelOptimizer(2.0, 0.005, 0.013, SectionFamily.CIRCULAR, Objective.MIN_COST).optimize()
    assert isinstance(result.section, Circular)
    assert 0.3 <= result.section.diameter <= 5.0
    assert result.total_depth == result.section.diameter
    assert manning_discharge(result.section, 0.005, result.normal_depth) == pytest.approx(2.0, rel=1e-6)


def test_unmet_constraints_are_reported(caplog):
    caplog.set_level(logging.WARNING)
    result = ChannelOptimizer(0.5, 0.0001, N, SectionFamily.RECTANGULAR).optimize()
    assert not result.constraints_satisfied
    assert 'min_velocity' in result.violations
    assert 'min_velocity' in caplog.text


def test_constraint_violations():
    limits = DesignConstraints()
    assert limits.violations(1.0, 0.5, 2.0) == ()
    names = [name for name, _ in limits.violations(4.0, 1.2, 3.5)]
    assert names == ['max_velocity', 'max_froude', 'max_depth']
    assert limits.violations(0.3, 0.1, 1.0) == (('min_velocity', pytest.approx(0.5)),)


def test_hydraulic_efficiency_of_semicircle():
    r = 1.0
    area = np.pi * r**2 / 2
    assert hydraulic_efficiency(area, r / 2) == pytest.approx(1.0)


def test_invalid_design_inputs():
    with pytest.raises(SubCriticalSlopeRequired):
        ChannelOptimizer(Q, 0.0, N)
    with pytest.raises(SubCriticalSlopeRequired):
        best_hydraulic_trapezoid(Q, -0.001, N)
    with pytest.raises(OutOfRange):
        ChannelOptimizer(0.0, S, N)
    with pytest.raises(OutOfRange):
        ChannelOptimizer(Q, S, 0.0)
    with pytest.raises(ValueError):
        ChannelOptimizer(Q, S, N, family='hexagonal')
    with pytest.raises(ValueError):
        DesignConstraints(min_velocity=4.0)
    with pytest.raises(ValueError):
        DesignConstraints(min_side_slope=0.0)
