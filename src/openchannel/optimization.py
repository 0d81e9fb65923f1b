"""
Section sizing: the cheapest or most efficient section of a family that
carries a discharge in uniform flow.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

import numpy as np
from scipy.optimize import minimize, minimize_scalar

from .cross_section import Circular, CrossSection, Rectangular, Trapezoidal, Triangular
from .exceptions import DryBed, NoConvergence, OutOfRange, SubCriticalSlopeRequired
from .flow import flow_state, normal_depth

logger = logging.getLogger(__name__)

PENALTY = 1e3


class SectionFamily(Enum):
    RECTANGULAR = 'rectangular'
    TRIANGULAR = 'triangular'
    TRAPEZOIDAL = 'trapezoidal'
    CIRCULAR = 'circular'


class Objective(Enum):
    MIN_AREA = 'min_area'
    MIN_WETTED_PERIMETER = 'min_wetted_perimeter'
    MAX_EFFICIENCY = 'max_efficiency'   # largest hydraulic radius
    MIN_COST = 'min_cost'               # excavation * A + lining * P


@dataclass(frozen=True)
class DesignConstraints:
    """
    Limits on the designed section.

    Attributes:
        min_velocity (float): Lowest mean velocity, against siltation (m/s).
        max_velocity (float): Highest mean velocity, against scour (m/s).
        max_froude (float): Highest Froude number in uniform flow.
        min_freeboard (float): Freeboard added above the normal depth (m).
        max_depth (float): Highest total depth, freeboard included (m).
        min_bottom_width (float): Bounds of the bottom width (m).
        max_bottom_width (float):
        min_side_slope (float): Bounds of the side slope (H:V).
        max_side_slope (float):
        side_slope (float, optional): Fixes the trapezoid side slope.
        min_diameter (float): Bounds of a pipe diameter (m).
        max_diameter (float):
    """
    min_velocity: float = 0.6
    max_velocity: float = 3.0
    max_froude: float = 0.8
    min_freeboard: float = 0.15
    max_depth: float = 3.0
    min_bottom_width: float = 0.3
    max_bottom_width: float = 50.0
    min_side_slope: float = 0.25
    max_side_slope: float = 2.0
    side_slope: Optional[float] = None
    min_diameter: float = 0.3
    max_diameter: float = 5.0

    def __post_init__(self):
        if self.min_velocity > self.max_velocity:
            raise ValueError("min_velocity exceeds max_velocity.")
        if not 0 < self.min_bottom_width <= self.max_bottom_width:
            raise ValueError("Invalid bottom width bounds.")
        if not 0 < self.min_side_slope <= self.max_side_slope:
            raise ValueError("Invalid side slope bounds.")
        if not 0 < self.min_diameter <= self.max_diameter:
            raise ValueError("Invalid diameter bounds.")
        if self.min_freeboard < 0:
            raise ValueError("Freeboard must be non-negative.")

    def violations(self, velocity: float, froude: float, total_depth: float) -> Tuple[Tuple[str, float], ...]:
        """Violated limits with their relative excess."""
        found = []
        if velocity < self.min_velocity:
            found.append(('min_velocity', (self.min_velocity - velocity) / self.min_velocity))
        if velocity > self.max_velocity:
            found.append(('max_velocity', (velocity - self.max_velocity) / self.max_velocity))
        if froude > self.max_froude:
            found.append(('max_froude', (froude - self.max_froude) / self.max_froude))
        if total_depth > self.max_depth:
            found.append(('max_depth', (total_depth - self.max_depth) / self.max_depth))
        return tuple(found)


@dataclass(frozen=True)
class OptimizationResult:
    """Designed section and its uniform-flow state."""
    section: CrossSection
    normal_depth: float
    velocity: float
    froude: float
    area: float
    wetted_perimeter: float
    hydraulic_radius: float
    top_width: float
    total_depth: float
    objective: float
    cost: Optional[float]
    hydraulic_efficiency: float
    iterations: int
    constraints_satisfied: bool
    violations: Tuple[str, ...] = ()


def hydraulic_efficiency(area: float, hydraulic_radius: float) -> float:
    """R over the hydraulic radius of the half circle of equal area, the largest possible."""
    return hydraulic_radius / (0.5 * np.sqrt(2.0 * area / np.pi))


class ChannelOptimizer:
    """
    Sizes a section of a given family for a discharge, slope and roughness.

    Depth is never a free variable: for each candidate shape it follows from
    Manning's normal depth, so every candidate carries the discharge exactly.
    Limits on velocity, Froude number and total depth enter the objective as
    penalties and are reported on the result.

    Parameters
    ----------
    discharge : float
        Design discharge in cubic meters per second.
    slope : float
        Bed slope.
    n : float
        Manning's roughness of the lining.
    family : SectionFamily
        Shape family to size.
    objective : Objective
        What to minimize.
    constraints : DesignConstraints, optional
        Design limits.
    excavation_cost : float
        Cost per square meter of flow area, for MIN_COST.
    lining_cost : float
        Cost per meter of wetted perimeter, for MIN_COST.

    """
    def __init__(self, discharge: float, slope: float, n: float,
                 family: SectionFamily = SectionFamily.TRAPEZOIDAL,
                 objective: Objective = Objective.MIN_AREA,
                 constraints: DesignConstraints = None,
                 excavation_cost: float = 1.0,
                 lining_cost: float = 1.0):
        if discharge <= 0:
            raise OutOfRange(f"Design discharge must be positive, got {discharge}.")
        if slope <= 0:
            raise SubCriticalSlopeRequired(f"Uniform-flow design needs a positive slope, got {slope}.")
        if n <= 0:
            raise OutOfRange(f"Manning's n must be positive, got {n}.")

        self.discharge = discharge
        self.slope = slope
        self.n = n
        self.family = SectionFamily(family)
        self.objective = Objective(objective)
        self.constraints = constraints or DesignConstraints()
        self.excavation_cost = excavation_cost
        self.lining_cost = lining_cost

    def _section(self, x) -> CrossSection:
        x = np.atleast_1d(x)
        if self.family is SectionFamily.RECTANGULAR:
            return Rectangular(width=float(x[0]), n=self.n)
        if self.family is SectionFamily.TRIANGULAR:
            return Triangular(side_slope=float(x[0]), n=self.n)
        if self.family is SectionFamily.CIRCULAR:
            return Circular(diameter=float(x[0]), n=self.n)
        z = self.constraints.side_slope if self.constraints.side_slope is not None else float(x[1])
        return Trapezoidal(bottom_width=float(x[0]), side_slope=z, n=self.n)

    def _bounds(self):
        c = self.constraints
        if self.family is SectionFamily.TRIANGULAR:
            return [(c.min_side_slope, c.max_side_slope)]
        if self.family is SectionFamily.CIRCULAR:
            return [(c.min_diameter, c.max_diameter)]
        if self.family is SectionFamily.TRAPEZOIDAL and c.side_slope is None:
            return [(c.min_bottom_width, c.max_bottom_width), (c.min_side_slope, c.max_side_slope)]
        return [(c.min_bottom_width, c.max_bottom_width)]

    def _value(self, props) -> float:
        if self.objective is Objective.MIN_AREA:
            return props.area
        if self.objective is Objective.MIN_WETTED_PERIMETER:
            return props.wetted_perimeter
        if self.objective is Objective.MAX_EFFICIENCY:
            return -props.hydraulic_radius
        return self.excavation_cost * props.area + self.lining_cost * props.wetted_perimeter

    def _total_depth(self, section: CrossSection, yn: float) -> float:
        if isinstance(section, Circular):
            return section.diameter
        return yn + self.constraints.min_freeboard

    def _penalized(self, x) -> float:
        section = self._section(x)
        try:
            yn = normal_depth(section, self.discharge, self.slope)
        except (OutOfRange, DryBed, NoConvergence):
            # candidate cannot carry the discharge
            return PENALTY * 1e6

        state = flow_state(section, self.discharge, yn)
        props = section.properties(yn)
        value = self._value(props)
        excess = sum(e for _, e in self.constraints.violations(state.velocity, state.froude,
                                                               self._total_depth(section, yn)))
        return value + PENALTY * excess * (abs(value) + 1.0)

    def optimize(self) -> OptimizationResult:
        """Searches the design space.

        One-parameter families use bounded Brent search, the free-slope
        trapezoid a bounded Nelder-Mead search seeded with the best hydraulic
        trapezoid.
        """
        bounds = self._bounds()

        if len(bounds) == 1:
            lo, hi = bounds[0]
            res = minimize_scalar(self._penalized, bounds=(lo, hi), method='bounded',
                                  options={'xatol': 1e-6})
            x = np.array([res.x])
            iterations = int(res.nfev)
        else:
            seed = best_hydraulic_trapezoid(self.discharge, self.slope, self.n)
            x0 = [float(np.clip(seed.section.bottom_width, *bounds[0])),
                  float(np.clip(seed.section.side_slope, *bounds[1]))]
            res = minimize(self._penalized, x0, method='Nelder-Mead', bounds=bounds,
                           options={'xatol': 1e-6, 'fatol': 1e-10, 'maxiter': 4000})
            x = res.x
            iterations = int(res.nit)

        section = self._section(x)
        try:
            yn = normal_depth(section, self.discharge, self.slope)
        except OutOfRange as err:
            raise OutOfRange(f"No {self.family.value} section within the bounds carries the discharge.",
                             remediation="widen the design bounds") from err

        result = _design_result(section, self.discharge, yn, self._total_depth(section, yn),
                                self.constraints, self._value(section.properties(yn)), iterations,
                                self.excavation_cost if self.objective is Objective.MIN_COST else None,
                                self.lining_cost)
        logger.info("Optimal %s section: objective %.4f, Yn = %.3f m", self.family.value,
                    result.objective, result.normal_depth)
        return result


def _design_result(section, discharge, yn, total_depth, constraints, objective, iterations,
                   excavation_cost=None, lining_cost=None) -> OptimizationResult:
    state = flow_state(section, discharge, yn)
    props = section.properties(yn)
    violations = constraints.violations(state.velocity, state.froude, total_depth)
    names = tuple(name for name, _ in violations)
    if names:
        logger.warning("Design constraints not met: %s", ", ".join(names))

    if not isinstance(section, Circular):
        # give the designed section its walls
        if isinstance(section, Rectangular):
            section = Rectangular(width=section.width, n=section.n, depth=total_depth)
        elif isinstance(section, Triangular):
            section = Triangular(side_slope=section.side_slope, n=section.n, depth=total_depth)
        else:
            section = Trapezoidal(bottom_width=section.bottom_width, side_slope=section.side_slope,
                                  n=section.n, depth=total_depth)

    cost = None
    if excavation_cost is not None:
        cost = excavation_cost * props.area + lining_cost * props.wetted_perimeter

    return OptimizationResult(
        section=section,
        normal_depth=yn,
        velocity=state.velocity,
        froude=state.froude,
        area=props.area,
        wetted_perimeter=props.wetted_perimeter,
        hydraulic_radius=props.hydraulic_radius,
        top_width=props.top_width,
        total_depth=total_depth,
        objective=objective,
        cost=cost,
        hydraulic_efficiency=hydraulic_efficiency(props.area, props.hydraulic_radius),
        iterations=iterations,
        constraints_satisfied=not names,
        violations=names,
    )


def best_hydraulic_trapezoid(discharge: float, slope: float, n: float, z: float = None,
                             constraints: DesignConstraints = None) -> OptimizationResult:
    """
    Closed-form best hydraulic trapezoid.

    For a side slope z the best section has b / y = 2 (sqrt(1 + z^2) - z) and
    R = y / 2. With z free the optimum is z = 1 / sqrt(3), half a hexagon.

    Args:
        discharge (float): Design discharge.
        slope (float): Bed slope.
        n (float): Manning's n.
        z (float, optional): Side slope, free by default.
        constraints (DesignConstraints, optional): Limits to report against.

    Returns:
        OptimizationResult
    """
    if slope <= 0:
        raise SubCriticalSlopeRequired(f"Uniform-flow design needs a positive slope, got {slope}.")
    if z is None:
        z = 1.0 / np.sqrt(3.0)
    constraints = constraints or DesignConstraints()

    k = 2.0 * (np.sqrt(1.0 + z**2) - z)
    # Q = (1/n) (k + z) y^2 (y/2)^(2/3) sqrt(S)
    yn = (discharge * n * 2.0**(2.0 / 3.0) / ((k + z) * np.sqrt(slope)))**(3.0 / 8.0)
    section = Trapezoidal(bottom_width=float(k * yn), side_slope=float(z), n=n)

    return _design_result(section, discharge, float(yn), float(yn) + constraints.min_freeboard,
                          constraints, section.area(yn), 0)
