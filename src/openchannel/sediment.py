"""
Incipient motion, bed-load, suspended-load and total-load transport of
non-cohesive sediment, at a point or along a computed profile.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple

import numpy as np

from . import settings
from .cross_section import CrossSection
from .exceptions import OutOfRange
from .flow import flow_state, friction_slope
from .settings import G

logger = logging.getLogger(__name__)


class SedimentClass(Enum):
    """Wentworth grain-size class, with its diameter range in mm."""
    CLAY = ('clay', 0.0, 0.004)
    SILT = ('silt', 0.004, 0.0625)
    VERY_FINE_SAND = ('very_fine_sand', 0.0625, 0.125)
    FINE_SAND = ('fine_sand', 0.125, 0.25)
    MEDIUM_SAND = ('medium_sand', 0.25, 0.5)
    COARSE_SAND = ('coarse_sand', 0.5, 1.0)
    VERY_COARSE_SAND = ('very_coarse_sand', 1.0, 2.0)
    FINE_GRAVEL = ('fine_gravel', 2.0, 4.0)
    MEDIUM_GRAVEL = ('medium_gravel', 4.0, 8.0)
    COARSE_GRAVEL = ('coarse_gravel', 8.0, 16.0)
    PEBBLE = ('pebble', 16.0, 64.0)
    COBBLE = ('cobble', 64.0, 256.0)
    BOULDER = ('boulder', 256.0, np.inf)

    @property
    def label(self) -> str:
        return self.value[0]

    @property
    def diameter_range(self):
        """(lower, upper) diameter in mm."""
        return self.value[1], self.value[2]

    @classmethod
    def from_diameter(cls, d50: float) -> "SedimentClass":
        d_mm = d50 * 1000.0
        for c in cls:
            if d_mm < c.value[2]:
                return c
        return cls.BOULDER


class ShieldsCurve(Enum):
    BROWNLIE = 'brownlie'
    GUO = 'guo'
    SOULSBY_WHITEHOUSE = 'soulsby_whitehouse'


class MotionState(Enum):
    """Transport regime of the bed.

    Below 0.8 of the critical Shields parameter the bed is still, up to 1.0
    motion is incipient. Past that, grains go into suspension once the Rouse
    number ws / (kappa u*) drops under 2.5.
    """
    NO_MOTION = 'no_motion'
    INCIPIENT = 'incipient'
    BED_LOAD = 'bed_load'
    SUSPENSION = 'suspension'

    @classmethod
    def classify(cls, ratio: float, rouse: float) -> "MotionState":
        if ratio < 0.8:
            return cls.NO_MOTION
        if ratio < 1.0:
            return cls.INCIPIENT
        if rouse < 2.5:
            return cls.SUSPENSION
        return cls.BED_LOAD

    @property
    def moving(self) -> bool:
        return self in (MotionState.BED_LOAD, MotionState.SUSPENSION)


class TransportFormula(Enum):
    """Bed-load formulas, and the two total-load formulas Engelund-Hansen and Ackers-White."""
    MEYER_PETER_MULLER = 'meyer_peter_muller'
    EINSTEIN_BROWN = 'einstein_brown'
    VAN_RIJN = 'van_rijn'
    ENGELUND_HANSEN = 'engelund_hansen'
    ACKERS_WHITE = 'ackers_white'

    @property
    def total_load(self) -> bool:
        return self in (TransportFormula.ENGELUND_HANSEN, TransportFormula.ACKERS_WHITE)


@dataclass(frozen=True)
class SedimentProperties:
    """
    Bed material.

    Attributes:
        d50 (float): Median grain diameter (m).
        density (float): Grain density (kg/m3), quartz by default.
        porosity (float): Bed porosity.
    """
    d50: float
    density: float = settings.SEDIMENT_DENSITY
    porosity: float = 0.4

    def __post_init__(self):
        if self.d50 <= 0:
            raise OutOfRange(f"Grain diameter must be positive, got {self.d50}.")
        if self.density <= settings.WATER_DENSITY:
            raise OutOfRange("Grain density must exceed the water density.")
        if not 0 <= self.porosity < 1:
            raise OutOfRange("Porosity must lie in [0, 1).")

    @property
    def sediment_class(self) -> SedimentClass:
        return SedimentClass.from_diameter(self.d50)

    @property
    def relative_density(self) -> float:
        """Submerged specific gravity s - 1."""
        return self.density / settings.WATER_DENSITY - 1.0

    @property
    def dimensionless_diameter(self) -> float:
        """D* = d50 ((s - 1) g / nu^2)^(1/3)."""
        return self.d50 * (self.relative_density * G / settings.KINEMATIC_VISCOSITY**2)**(1.0 / 3.0)

    @property
    def settling_velocity(self) -> float:
        """Fall velocity after van Rijn (1984): Stokes below 0.1 mm, Zanke to 1 mm,
        the drag-dominated law above."""
        d = self.d50
        nu = settings.KINEMATIC_VISCOSITY
        s1 = self.relative_density
        d_mm = d * 1000.0

        if d_mm < 0.1:
            return s1 * G * d**2 / (18.0 * nu)
        if d_mm <= 1.0:
            return 10.0 * nu / d * (np.sqrt(1.0 + 0.01 * s1 * G * d**3 / nu**2) - 1.0)
        return 1.1 * np.sqrt(s1 * G * d)

    def critical_shields(self, curve: ShieldsCurve = ShieldsCurve.BROWNLIE) -> float:
        """Critical Shields parameter for this grain.

        Brownlie (1981) is written in the particle Reynolds number
        Rp = sqrt((s - 1) g d) d / nu, Guo (2002) and Soulsby and Whitehouse
        (1997) in D*.
        """
        curve = ShieldsCurve(curve)
        D = self.dimensionless_diameter
        if curve is ShieldsCurve.SOULSBY_WHITEHOUSE:
            return 0.30 / (1.0 + 1.2 * D) + 0.055 * (1.0 - np.exp(-0.020 * D))
        if curve is ShieldsCurve.GUO:
            return 0.23 / D + 0.054 * (1.0 - np.exp(-D**0.85 / 23.0))

        Rp = np.sqrt(self.relative_density * G * self.d50) * self.d50 / settings.KINEMATIC_VISCOSITY
        return 0.22 * Rp**-0.6 + 0.06 * 10.0**(-7.7 * Rp**-0.6)

    def critical_shear_stress(self, curve: ShieldsCurve = ShieldsCurve.BROWNLIE) -> float:
        return self.critical_shields(curve) * (self.density - settings.WATER_DENSITY) * G * self.d50

    def critical_velocity(self, depth: float, curve: ShieldsCurve = ShieldsCurve.BROWNLIE) -> float:
        """Mean velocity at which the bed starts to erode, after Hjulstrom.

        Fines below 0.1 mm follow the cohesive branch of the Hjulstrom
        diagram, fine sand a constant friction factor, and coarser material
        the rough-wall log law from the critical shear velocity.
        """
        d = self.d50
        d_mm = d * 1000.0

        if d_mm < 0.1:
            return 0.2 + 0.5 * np.sqrt(0.1 / d_mm)

        tau_c = self.critical_shear_stress(curve)
        if d_mm < 0.5:
            return np.sqrt(tau_c / (0.005 * settings.WATER_DENSITY))

        u_star_c = np.sqrt(tau_c / settings.WATER_DENSITY)
        ks = 2.5 * d
        ratio = 5.75 * np.log10(12.27 * depth / ks) if depth > ks else 8.5
        return u_star_c * ratio


## Point quantities
## ------------------------------------------------------------------

def bed_shear_stress(hydraulic_radius: float, friction_slope: float) -> float:
    """tau = rho g R Sf (Pa)."""
    return settings.WATER_DENSITY * G * hydraulic_radius * friction_slope


def shear_velocity(shear_stress: float) -> float:
    return np.sqrt(shear_stress / settings.WATER_DENSITY)


def shields_parameter(shear_stress: float, sediment: SedimentProperties) -> float:
    return shear_stress / ((sediment.density - settings.WATER_DENSITY) * G * sediment.d50)


def particle_reynolds(u_star: float, sediment: SedimentProperties) -> float:
    return u_star * sediment.d50 / settings.KINEMATIC_VISCOSITY


def _einstein_scale(sediment: SedimentProperties) -> float:
    return np.sqrt(sediment.relative_density * G * sediment.d50**3)


def meyer_peter_muller(shields: float, critical: float, sediment: SedimentProperties) -> float:
    """Bed load per unit width (m2/s), q = 8 (tau* - tau*c)^1.5 sqrt((s-1) g d^3)."""
    if shields <= critical:
        return 0.0
    return 8.0 * (shields - critical)**1.5 * _einstein_scale(sediment)


def einstein_brown(shields: float, sediment: SedimentProperties) -> float:
    """Bed load per unit width (m2/s) from Einstein-Brown's intensity function."""
    if shields <= 0.0:
        return 0.0
    if shields < 0.1:
        phi = 40.0 * shields**3
    else:
        phi = 2.15 * np.exp(-0.391 / shields)
    return phi * _einstein_scale(sediment)


def van_rijn_bed_load(shields: float, critical: float, sediment: SedimentProperties) -> float:
    """Bed load per unit width (m2/s) after van Rijn (1984), with T the transport stage."""
    if shields <= critical:
        return 0.0
    T = (shields - critical) / critical
    return 0.053 * np.sqrt(sediment.relative_density * G) * sediment.d50**1.5 * T**2.1 \
        / sediment.dimensionless_diameter**0.3




def van_rijn_suspended_load(velocity: float, depth: float, shear_velocity: float,
                            sediment: SedimentProperties, curve: ShieldsCurve = ShieldsCurve.BROWNLIE) -> float:
    """
    Suspended load per unit width (m2/s) after van Rijn (1984).

    The reference concentration ca = 0.015 d T^1.5 / (a D*^0.3) at the level
    a = max(3 d50, 0.01 h) is carried through the Rouse profile with van
    Rijn's shape factor F, so qs = F u h ca.
    """
    u_star_c = np.sqrt(sediment.critical_shear_stress(curve) / settings.WATER_DENSITY)
    if shear_velocity <= u_star_c or depth <= 0:
        return 0.0

    T = (shear_velocity**2 - u_star_c**2) / u_star_c**2
    a = max(3.0 * sediment.d50, 0.01 * depth)
    if a >= depth:
        return 0.0
    ca = 0.015 * sediment.d50 * T**1.5 / (a * sediment.dimensionless_diameter**0.3)

    Z = sediment.settling_velocity / (settings.VON_KARMAN * shear_velocity)
    if abs(Z - 1.2) < 1e-6:
        Z += 1e-6
    r = a / depth
    F = (r**Z - r**1.2) / ((1.0 - r)**Z * (1.2 - Z))
    return F * velocity * depth * ca


def engelund_hansen(shields: float, velocity: float, shear_velocity: float, sediment: SedimentProperties) -> float:
    """Total load per unit width (m2/s), phi = 0.1 theta^2.5 / f with f = 2 (u*/V)^2."""
    if shields <= 0.0 or shear_velocity <= 0.0:
        return 0.0
    f = 2.0 * (shear_velocity / velocity)**2
    return 0.1 * shields**2.5 / f * _einstein_scale(sediment)


def ackers_white(velocity: float, depth: float, shear_velocity: float, sediment: SedimentProperties) -> float:
    """
    Total load per unit width (m2/s) after Ackers and White (1973).

    The coefficients follow the dimensionless grain size Dgr = D*, constant
    past Dgr = 60. Grains finer than Dgr = 1 take the Dgr = 1 coefficients.
    """
    if velocity <= 0.0 or shear_velocity <= 0.0:
        return 0.0

    D = min(max(sediment.dimensionless_diameter, 1.0), 60.0)
    if D >= 60.0:
        n, A, m, C = 0.0, 0.17, 1.5, 0.025
    else:
        log_D = np.log10(D)
        n = 1.0 - 0.56 * log_D
        A = 0.23 / np.sqrt(D) + 0.14
        m = 9.66 / D + 1.34
        C = 10.0**(2.86 * log_D - log_D**2 - 3.53)

    d = sediment.d50
    s = sediment.density / settings.WATER_DENSITY
    mobility = shear_velocity**n / np.sqrt(G * d * (s - 1.0)) \
        * (velocity / (np.sqrt(32.0) * np.log10(10.0 * depth / d)))**(1.0 - n)
    if mobility <= A:
        return 0.0

    G_gr = C * (mobility / A - 1.0)**m
    X = G_gr * s * d / depth * (velocity / shear_velocity)**n   # concentration by weight
    return X * velocity * depth / s


@dataclass(frozen=True)
class BedFlow:
    """Flow quantities the transport formulas read."""
    velocity: float
    depth: float
    shear_velocity: float
    shields: float
    critical_shields: float


TRANSPORT_FORMULAS = {
    TransportFormula.MEYER_PETER_MULLER: lambda f, sed: meyer_peter_muller(f.shields, f.critical_shields, sed),
    TransportFormula.EINSTEIN_BROWN: lambda f, sed: einstein_brown(f.shields, sed),
    TransportFormula.VAN_RIJN: lambda f, sed: van_rijn_bed_load(f.shields, f.critical_shields, sed),
    TransportFormula.ENGELUND_HANSEN: lambda f, sed: engelund_hansen(f.shields, f.velocity, f.shear_velocity, sed),
    TransportFormula.ACKERS_WHITE: lambda f, sed: ackers_white(f.velocity, f.depth, f.shear_velocity, sed),
}


@dataclass(frozen=True)
class SedimentTransportResult:
    """Sediment state of a flow over a bed.

    Loads are volumes per unit width (m2/s), the concentration is in mg/L
    and the capacity a mass per day over the whole top width. Total-load
    formulas do not split their load, the van Rijn suspended load (at most
    the total) is reported as suspended and the rest as bed load.
    """
    shear_stress: float
    shear_velocity: float
    shields_parameter: float
    critical_shields: float
    critical_shear_stress: float
    shields_ratio: float
    particle_reynolds: float
    rouse_number: float
    motion_state: MotionState
    critical_velocity: float
    velocity: float
    erosion_risk: bool
    safety_factor: float
    bed_load: float
    suspended_load: float
    total_load: float
    concentration: float
    formula: TransportFormula
    daily_capacity: float


def _transport(hydraulic_radius: float, energy_slope: float, depth: float, velocity: float,
               area: float, top_width: float, sediment: SedimentProperties,
               formula: TransportFormula, curve: ShieldsCurve) -> SedimentTransportResult:
    if energy_slope < 0:
        raise OutOfRange(f"Energy slope must be non-negative, got {energy_slope}.")

    tau = bed_shear_stress(hydraulic_radius, energy_slope)
    u_star = shear_velocity(tau)
    theta = shields_parameter(tau, sediment)
    theta_c = sediment.critical_shields(curve)
    tau_c = sediment.critical_shear_stress(curve)
    ratio = theta / theta_c
    rouse = sediment.settling_velocity / (settings.VON_KARMAN * u_star) if u_star > 0 else np.inf
    motion = MotionState.classify(ratio, rouse)
    v_crit = sediment.critical_velocity(depth, curve)

    formula = TransportFormula(formula)
    flow = BedFlow(velocity, depth, u_star, theta, theta_c)
    q = TRANSPORT_FORMULAS[formula](flow, sediment)
    q_s = van_rijn_suspended_load(velocity, depth, u_star, sediment, curve)
    if formula.total_load:
        q_s = min(q_s, q)
        q_b, q_t = q - q_s, q
    else:
        q_b, q_t = q, q + q_s

    # unit discharge over the top width
    unit_q = velocity * area / top_width if top_width > 0 else velocity * depth

    logger.debug("Sediment d50 = %.4g m: tau* = %.4f, tau*c = %.4f, %s", sediment.d50, theta, theta_c,
                 motion.value)

    return SedimentTransportResult(
        shear_stress=tau,
        shear_velocity=u_star,
        shields_parameter=theta,
        critical_shields=theta_c,
        critical_shear_stress=tau_c,
        shields_ratio=ratio,
        particle_reynolds=particle_reynolds(u_star, sediment),
        rouse_number=rouse,
        motion_state=motion,
        critical_velocity=v_crit,
        velocity=velocity,
        erosion_risk=bool(tau > tau_c or velocity > v_crit),
        safety_factor=tau_c / tau if tau > 0 else np.inf,
        bed_load=q_b,
        suspended_load=q_s,
        total_load=q_t,
        concentration=q_t * sediment.density / unit_q * 1000.0 if unit_q > 0 else 0.0,
        formula=formula,
        daily_capacity=q_t * top_width * sediment.density * 86400.0,
    )


def analyze_sediment(section: CrossSection, discharge: float, depth: float, slope: float,
                     sediment: SedimentProperties,
                     formula: TransportFormula = TransportFormula.MEYER_PETER_MULLER,
                     curve: ShieldsCurve = ShieldsCurve.BROWNLIE,
                     use_friction_slope: bool = True) -> SedimentTransportResult:
    """
    Shields analysis and transport rates for a flow state.

    Parameters
    ----------
    section : CrossSection
        Channel section.
    discharge : float
        Discharge in cubic meters per second.
    depth : float
        Flow depth.
    slope : float
        Bed slope, used as the energy slope when ``use_friction_slope`` is
        False (uniform flow).
    sediment : SedimentProperties
        Bed material.
    formula : TransportFormula
        Bed-load or total-load formula.
    curve : ShieldsCurve
        Critical Shields correlation.

    Returns
    -------
    SedimentTransportResult

    """
    state = flow_state(section, discharge, depth)
    energy_slope = friction_slope(section, discharge, depth) if use_friction_slope else slope
    return _transport(state.hydraulic_radius, energy_slope, depth, state.velocity, state.area,
                      state.top_width, sediment, formula, curve)


## Profiles
## ------------------------------------------------------------------

RECOMMENDATIONS = {
    MotionState.NO_MOTION: ("Stable bed, no protection needed.",),
    MotionState.INCIPIENT: ("Incipient motion, monitor the bed.",),
    MotionState.BED_LOAD: ("Active bed load, consider bed protection.",),
    MotionState.SUSPENSION: ("Bed material goes into suspension, line the channel.",
                             "Consider riprap or gabions, or a flatter slope."),
}


@dataclass(frozen=True)
class StationSediment:
    """Sediment state at one profile point."""
    station: float
    reach_id: Optional[str]
    sediment_class: SedimentClass
    transport: SedimentTransportResult
    recommendations: Tuple[str, ...]


def analyze_profile_sediments(profile, sediment: SedimentProperties,
                              formula: TransportFormula = TransportFormula.VAN_RIJN,
                              curve: ShieldsCurve = ShieldsCurve.BROWNLIE) -> Tuple[StationSediment, ...]:
    """
    Shields analysis and transport at every point of a profile.

    Each point is analysed with its own hydraulic radius, friction slope,
    depth and velocity.

    Parameters
    ----------
    profile : WaterSurfaceProfile, ReachProfile or sequence of ProfilePoint
        Computed profile.
    sediment : SedimentProperties
        Bed material, the same along the profile.
    formula : TransportFormula
        Transport formula.
    curve : ShieldsCurve
        Critical Shields correlation.

    Returns
    -------
    tuple of StationSediment
        One entry per point, in station order.

    """
    points: Sequence = getattr(profile, 'points', profile)
    results = []
    for p in points:
        transport = _transport(p.hydraulic_radius, p.friction_slope, p.depth, p.velocity, p.area,
                               p.top_width, sediment, formula, curve)
        advice = RECOMMENDATIONS[transport.motion_state]
        if transport.motion_state is MotionState.BED_LOAD:
            advice += (f"Critical velocity {transport.critical_velocity:.2f} m/s.",)
        results.append(StationSediment(p.station, p.reach_id, sediment.sediment_class, transport, advice))

    eroding = sum(r.transport.erosion_risk for r in results)
    if eroding:
        logger.warning("Bed of d50 = %.4g m erodes at %d of %d points", sediment.d50, eroding, len(results))
    return tuple(results)
