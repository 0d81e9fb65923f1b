"""
Point hydraulics of a single section: normal and critical depth, specific
energy and specific force, Froude number and regime classification.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

import numpy as np

from . import hydraulics
from . import settings
from .cross_section import Circular, CrossSection
from .exceptions import DryBed, OutOfRange, SubCriticalSlopeRequired
from .settings import G
from .utility import bracketed_root, expand_bracket, safeguarded_newton

logger = logging.getLogger(__name__)


class FlowRegime(Enum):
    SUBCRITICAL = 'subcritical'
    CRITICAL = 'critical'
    SUPERCRITICAL = 'supercritical'

    @classmethod
    def from_froude(cls, froude: float, tolerance: float = settings.CRITICAL_FROUDE_TOLERANCE):
        if abs(froude - 1.0) < tolerance:
            return cls.CRITICAL
        return cls.SUBCRITICAL if froude < 1.0 else cls.SUPERCRITICAL


class SlopeClass(Enum):
    MILD = 'mild'
    STEEP = 'steep'
    CRITICAL = 'critical'
    HORIZONTAL = 'horizontal'
    ADVERSE = 'adverse'
    TIDAL = 'tidal'

    @property
    def letter(self) -> str:
        return {'mild': 'M', 'steep': 'S', 'critical': 'C', 'horizontal': 'H',
                'adverse': 'A', 'tidal': 'M'}[self.value]


@dataclass(frozen=True)
class FlowResult:
    """Flow state at one section for a given discharge and depth."""
    depth: float
    discharge: float
    area: float
    top_width: float
    hydraulic_radius: float
    velocity: float
    froude: float
    regime: FlowRegime
    specific_energy: float
    specific_force: float


def _require_discharge(Q):
    if not np.isfinite(Q) or Q <= 0.0:
        raise OutOfRange(f"Discharge must be positive, got {Q}.",
                         remediation="give a positive discharge")


def specific_energy(section: CrossSection, Q: float, y: float) -> float:
    """E = y + Q^2 / (2 g A^2)."""
    A = section.area(y)
    if A == 0.0:
        raise DryBed("Specific energy is undefined on a dry bed.")
    return y + hydraulics.velocity_head(Q=Q, A=A)


def specific_force(section: CrossSection, Q: float, y: float) -> float:
    """M = A ybar + Q^2 / (g A)."""
    A = section.area(y)
    if A == 0.0:
        raise DryBed("Specific force is undefined on a dry bed.")
    return section.first_moment(y) + Q**2 / (G * A)


def froude_number(section: CrossSection, Q: float, y: float) -> float:
    A = section.area(y)
    T = section.top_width(y)
    if A == 0.0:
        raise DryBed("Froude number is undefined on a dry bed.")
    if T == 0.0:
        return 0.0
    return hydraulics.froude_num(T=T, A=A, Q=Q)


def friction_slope(section: CrossSection, Q: float, y: float) -> float:
    K = section.conveyance(y)
    if K == 0.0:
        raise DryBed("Friction slope is undefined on a dry bed.")
    return hydraulics.Sf(Q=Q, K=K)


def manning_discharge(section: CrossSection, slope: float, y: float) -> float:
    """Uniform-flow discharge at depth y."""
    return hydraulics.normal_flow(bed_slope=slope, K=section.conveyance(y))


def flow_state(section: CrossSection, Q: float, y: float) -> FlowResult:
    """Evaluate every point quantity at once."""
    props = section.properties(y)
    if props.area == 0.0:
        raise DryBed("Flow state is undefined on a dry bed.")

    V = Q / props.area
    Fr = 0.0 if props.top_width == 0.0 else hydraulics.froude_num(T=props.top_width, A=props.area, Q=Q)

    return FlowResult(
        depth=props.depth,
        discharge=Q,
        area=props.area,
        top_width=props.top_width,
        hydraulic_radius=props.hydraulic_radius,
        velocity=V,
        froude=Fr,
        regime=FlowRegime.from_froude(Fr),
        specific_energy=props.depth + V**2 / (2 * G),
        specific_force=props.centroid_depth * props.area + Q**2 / (G * props.area),
    )


## Depth solvers
## ------------------------------------------------------------------

def normal_depth(section: CrossSection, Q: float, slope: float,
                 tolerance: float = settings.ROOT_TOLERANCE,
                 max_iterations: int = settings.MAX_ITERATIONS,
                 full_output: bool = False):
    """Solves Manning's equation for the uniform-flow depth.

    Bisection-bracketed Newton iteration on K(y) sqrt(S0) - Q.

    Args:
        section (CrossSection): The section.
        Q (float): Discharge.
        slope (float): Bed slope, must be positive.
        tolerance (float): Depth tolerance.
        max_iterations (int): Iteration cap.
        full_output (bool): Return a RootResult with the iteration count.

    Raises:
        SubCriticalSlopeRequired: If slope <= 0.
        OutOfRange: If the section cannot convey Q in uniform flow.
        NoConvergence: If the cap is reached.

    Returns:
        float | RootResult: Normal depth.
    """
    _require_discharge(Q)
    if slope <= 0.0:
        raise SubCriticalSlopeRequired(
            f"Normal depth does not exist on a bed slope of {slope}.")

    sqrt_s = np.sqrt(slope)
    lower = settings.MIN_DEPTH
    upper = section.max_depth
    if isinstance(section, Circular):
        upper = settings.CIRCULAR_MAX_CONVEYANCE * section.diameter

    def f(y):
        return section.conveyance(y) * sqrt_s - Q

    def df(y):
        return section.dK_dy(y) * sqrt_s

    if f(upper) < 0:
        raise OutOfRange(
            f"Discharge {Q:.4g} m3/s exceeds the uniform-flow capacity of the {section.kind} section.",
            remediation="enlarge the section or steepen the slope")
    if f(lower) > 0:
        raise DryBed(f"Normal depth for {Q:.4g} m3/s is below {lower} m.")

    result = safeguarded_newton(f, df, lower, upper, tolerance=tolerance,
                                max_iterations=max_iterations, context="normal depth")
    logger.debug("Normal depth %.6f m after %d iterations", result.root, result.iterations)

    return result if full_output else result.root


def critical_depth(section: CrossSection, Q: float,
                   tolerance: float = settings.ROOT_TOLERANCE,
                   max_iterations: int = settings.MAX_ITERATIONS) -> float:
    """Solves Q^2 T / (g A^3) = 1 for the critical depth.

    Circular sections are searched up to 0.95 D only, away from the
    vanishing top width near the crown.
    """
    _require_discharge(Q)

    lower = settings.MIN_DEPTH
    upper = section.max_depth
    if isinstance(section, Circular):
        upper = settings.CIRCULAR_CRITICAL_LIMIT * section.diameter

    target = Q**2 / G

    def f(y):
        T = section.top_width(y)
        return section.area(y)**3 / T - target

    if f(upper) < 0:
        raise OutOfRange(
            f"Critical depth for {Q:.4g} m3/s lies above the search limit of the {section.kind} section.",
            remediation="enlarge the section")
    if f(lower) > 0:
        raise DryBed(f"Critical depth for {Q:.4g} m3/s is below {lower} m.")

    return bracketed_root(f, lower, upper, tolerance=tolerance,
                          max_iterations=max_iterations, context="critical depth").root


def critical_slope(section: CrossSection, Q: float) -> float:
    """Bed slope whose normal depth equals the critical depth."""
    yc = critical_depth(section, Q)
    return hydraulics.Sf(Q=Q, K=section.conveyance(yc))


def alternate_depth(section: CrossSection, Q: float, y: float, yc: float = None) -> float:
    """Depth on the other side of critical with the same specific energy."""
    if yc is None:
        yc = critical_depth(section, Q)
    E0 = specific_energy(section, Q, y)

    if abs(y - yc) <= settings.ROOT_TOLERANCE:
        return yc

    f = lambda d: specific_energy(section, Q, d) - E0

    if y > yc:
        return bracketed_root(f, settings.MIN_DEPTH, yc, context="alternate depth").root

    upper = min(E0, section.max_depth)
    if f(upper) < 0:
        raise OutOfRange("The subcritical alternate depth lies above the section.",
                         remediation="enlarge the section")
    return bracketed_root(f, yc, upper, context="alternate depth").root


def conjugate_depth(section: CrossSection, Q: float, y: float, yc: float = None) -> float:
    """Sequent depth of a hydraulic jump (equal specific force)."""
    if yc is None:
        yc = critical_depth(section, Q)
    M0 = specific_force(section, Q, y)

    if abs(y - yc) <= settings.ROOT_TOLERANCE:
        return yc

    f = lambda d: specific_force(section, Q, d) - M0

    if y > yc:
        return bracketed_root(f, settings.MIN_DEPTH, yc, context="conjugate depth").root

    upper = expand_bracket(f, yc, 2.0 * yc, limit=section.max_depth)
    if upper is None:
        raise OutOfRange("The sequent depth lies above the section.",
                         remediation="enlarge the section")
    return bracketed_root(f, yc, upper, context="conjugate depth").root


## Classification
## ------------------------------------------------------------------

def classify_slope(slope: float, yn: Optional[float], yc: float,
                   tolerance: float = settings.CRITICAL_FROUDE_TOLERANCE) -> SlopeClass:
    """Mild, steep or critical from Yn vs Yc; horizontal and adverse from the slope."""
    if slope == 0.0:
        return SlopeClass.HORIZONTAL
    if slope < 0.0:
        return SlopeClass.ADVERSE
    if abs(yn - yc) <= tolerance * yc:
        return SlopeClass.CRITICAL
    return SlopeClass.MILD if yn > yc else SlopeClass.STEEP


def profile_type(y: float, yn: Optional[float], yc: float, slope_class: SlopeClass) -> str:
    """GVF profile label (M1 ... A3) of depth y."""
    letter = slope_class.letter

    if slope_class in (SlopeClass.MILD, SlopeClass.TIDAL):
        zone = 1 if y > yn else (2 if y > yc else 3)
    elif slope_class is SlopeClass.STEEP:
        zone = 1 if y > yc else (2 if y > yn else 3)
    elif slope_class is SlopeClass.CRITICAL:
        zone = 1 if y > yc else 3
    else:
        zone = 2 if y > yc else 3

    return f"{letter}{zone}"


@dataclass(frozen=True)
class CapacityCheck:
    """Uniform-flow check of a section against design limits."""
    normal_depth: float
    critical_depth: float
    velocity: float
    froude: float
    freeboard: Optional[float]
    adequate: bool
    issues: Tuple[str, ...]


def capacity_check(section: CrossSection, Q: float, slope: float,
                   min_freeboard: float = 0.0,
                   min_velocity: float = None,
                   max_velocity: float = None) -> CapacityCheck:
    """Check whether a section carries Q in uniform flow within its walls."""
    yn = normal_depth(section, Q, slope)
    yc = critical_depth(section, Q)
    state = flow_state(section, Q, yn)

    issues = []
    freeboard = None
    if section.max_depth < settings.UNBOUNDED_DEPTH:
        freeboard = section.max_depth - yn
        if freeboard < min_freeboard:
            issues.append(f"freeboard {freeboard:.3f} m is below {min_freeboard:.3f} m")
    if min_velocity is not None and state.velocity < min_velocity:
        issues.append(f"velocity {state.velocity:.3f} m/s is below {min_velocity:.3f} m/s")
    if max_velocity is not None and state.velocity > max_velocity:
        issues.append(f"velocity {state.velocity:.3f} m/s exceeds {max_velocity:.3f} m/s")

    for issue in issues:
        logger.warning("Capacity check: %s", issue)

    return CapacityCheck(
        normal_depth=yn,
        critical_depth=yc,
        velocity=state.velocity,
        froude=state.froude,
        freeboard=freeboard,
        adequate=not issues,
        issues=tuple(issues),
    )
