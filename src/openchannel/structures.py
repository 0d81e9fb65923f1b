"""
Hydraulic structures placed between reaches: weirs, gates, drops, free
overfalls and junctions, and the layout of USBR stilling basins.
"""
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import ClassVar, Optional, Sequence, Tuple

import numpy as np

from . import settings
from .cross_section import CrossSection, Rectangular
from .exceptions import InvalidGeometry, JunctionUnbalanced, OutOfRange
from .flow import critical_depth, flow_state, normal_depth, specific_energy
from .jump import JumpLocation, JumpType, rectangular_energy_loss
from .settings import G
from .utility import bracketed_root, expand_bracket

logger = logging.getLogger(__name__)

# Ogee discharge coefficient relative to its design value, USBR Design of Small Dams
OGEE_HEAD_RATIOS = np.array([0.0, 0.2, 0.4, 0.6, 0.8, 1.0, 1.2, 1.4, 1.6])
OGEE_COEFFICIENT_RATIOS = np.array([0.80, 0.85, 0.90, 0.94, 0.97, 1.00, 1.03, 1.05, 1.07])


def supercritical_depth(section: CrossSection, discharge: float, energy: float) -> Optional[float]:
    """Supercritical depth carrying ``energy`` (specific energy above the bed).

    Returns None when the energy is below the critical minimum.
    """
    yc = critical_depth(section, discharge)
    if energy <= specific_energy(section, discharge, yc):
        return None
    return bracketed_root(lambda y: specific_energy(section, discharge, y) - energy,
                          settings.MIN_DEPTH, yc, context="supercritical depth").root


def subcritical_depth(section: CrossSection, discharge: float, energy: float) -> Optional[float]:
    """Subcritical depth carrying ``energy``, None below the critical minimum."""
    yc = critical_depth(section, discharge)
    if energy <= specific_energy(section, discharge, yc):
        return None

    def f(y):
        return specific_energy(section, discharge, y) - energy

    upper = expand_bracket(f, yc, max(energy, 2.0 * yc), limit=section.max_depth)
    if upper is None:
        raise OutOfRange("The water surface overtops the section.", remediation="raise the section walls")
    return bracketed_root(f, yc, upper, context="subcritical depth").root


## 1. Weirs
## ------------------------------------------------------------------

class WeirType(Enum):
    SHARP_CRESTED = 'sharp_crested'
    BROAD_CRESTED = 'broad_crested'
    OGEE = 'ogee'
    TRIANGULAR = 'triangular'


@dataclass(frozen=True)
class Weir:
    """Overflow weir.

    Attributes:
        id (str): Element identifier.
        weir_type (WeirType): Crest type.
        crest_length (float): Crest length L (m), unused by V-notches.
        crest_height (float): Crest height P_w above the approach bed (m).
        discharge_coefficient (float, optional): Overrides the default coefficient:
            Rehbock for sharp crests, 1.705 for broad crests, 2.18 at design head
            for ogees and 0.58 for V-notches.
        design_head (float, optional): Ogee design head H_d.
        notch_angle (float): V-notch angle in degrees.
        submergence_threshold (float): Tailwater ratio H2/H1 above which the
            Villemonte reduction applies.
    """
    kind: ClassVar[str] = 'weir'

    id: str
    weir_type: WeirType
    crest_length: float
    crest_height: float
    discharge_coefficient: Optional[float] = None
    design_head: Optional[float] = None
    notch_angle: float = 90.0
    submergence_threshold: float = settings.WEIR_SUBMERGENCE_THRESHOLD

    def __post_init__(self):
        if not isinstance(self.weir_type, WeirType):
            object.__setattr__(self, 'weir_type', WeirType(self.weir_type))
        if self.weir_type is not WeirType.TRIANGULAR and self.crest_length <= 0:
            raise InvalidGeometry("Weir crest length must be positive.", element_id=self.id)
        if self.crest_height < 0:
            raise InvalidGeometry("Weir crest height must be non-negative.", element_id=self.id)
        if self.weir_type is WeirType.SHARP_CRESTED and self.crest_height == 0 \
                and self.discharge_coefficient is None:
            raise InvalidGeometry("Rehbock's coefficient needs a positive crest height.", element_id=self.id)
        if self.weir_type is WeirType.BROAD_CRESTED and self.discharge_coefficient is not None \
                and not 1.6 <= self.discharge_coefficient <= 1.9:
            raise OutOfRange("Broad-crested coefficient must lie in [1.6, 1.9].", element_id=self.id)
        if self.weir_type is WeirType.OGEE and self.design_head is not None and self.design_head <= 0:
            raise InvalidGeometry("Ogee design head must be positive.", element_id=self.id)
        if not 0 < self.notch_angle < 180:
            raise InvalidGeometry("Notch angle must lie between 0 and 180 degrees.", element_id=self.id)

    def coefficient(self, head: float) -> float:
        if self.weir_type is WeirType.SHARP_CRESTED:
            if self.discharge_coefficient is not None:
                return self.discharge_coefficient
            return 0.611 + 0.08 * head / self.crest_height

        if self.weir_type is WeirType.BROAD_CRESTED:
            return self.discharge_coefficient or settings.BROAD_CRESTED_COEFFICIENT

        if self.weir_type is WeirType.OGEE:
            C = self.discharge_coefficient or settings.OGEE_DESIGN_COEFFICIENT
            if self.design_head is None:
                return C
            return C * float(np.interp(head / self.design_head, OGEE_HEAD_RATIOS, OGEE_COEFFICIENT_RATIOS))

        return self.discharge_coefficient or 0.58

    def free_discharge(self, head: float) -> float:
        """Discharge over the weir without tailwater influence."""
        if head < 0:
            raise OutOfRange("Weir head must be non-negative.", element_id=self.id)
        if head == 0:
            return 0.0

        Cd = self.coefficient(head)
        if self.weir_type is WeirType.SHARP_CRESTED:
            return Cd * 2.0 / 3.0 * np.sqrt(2 * G) * self.crest_length * head**1.5
        if self.weir_type is WeirType.TRIANGULAR:
            return Cd * 8.0 / 15.0 * np.sqrt(2 * G) * np.tan(np.radians(self.notch_angle) / 2) * head**2.5
        return Cd * self.crest_length * head**1.5

    def submergence_factor(self, head: float, tailwater_head: float = None) -> float:
        """Villemonte reduction (1 - (H2/H1)^n)^0.385 above the threshold ratio."""
        if tailwater_head is None or tailwater_head <= 0 or head <= 0:
            return 1.0
        ratio = tailwater_head / head
        if ratio <= self.submergence_threshold:
            return 1.0
        if ratio >= 1.0:
            return 0.0
        exponent = 2.5 if self.weir_type is WeirType.TRIANGULAR else 1.5
        return (1.0 - ratio**exponent)**0.385

    def is_submerged(self, head: float, tailwater_head: float = None) -> bool:
        return self.submergence_factor(head, tailwater_head) < 1.0

    def discharge(self, head: float, tailwater_head: float = None) -> float:
        """Discharge for an upstream head, reduced by submergence if any.

        Args:
            head (float): Upstream head above the crest H1.
            tailwater_head (float, optional): Downstream head above the crest H2.

        Returns:
            float: Discharge
        """
        return self.free_discharge(head) * self.submergence_factor(head, tailwater_head)

    def head(self, discharge: float, tailwater_head: float = None) -> float:
        """Upstream head needed to pass ``discharge``."""
        if discharge <= 0:
            raise OutOfRange("Weir discharge must be positive.", element_id=self.id)

        lower = max(tailwater_head or 0.0, 0.0)
        f = lambda H: self.discharge(H, tailwater_head) - discharge
        upper = expand_bracket(f, lower, lower + 1.0, limit=1e3)
        if upper is None:
            raise OutOfRange("No head passes the discharge over this weir.", element_id=self.id)
        return bracketed_root(f, lower, upper, context="weir head").root

    def rating(self, heads: Sequence[float]) -> np.ndarray:
        """Free-flow discharges for an array of heads."""
        return np.array([self.free_discharge(float(H)) for H in heads])


## 2. Gates
## ------------------------------------------------------------------

class GateType(Enum):
    SLUICE = 'sluice'
    RADIAL = 'radial'


@dataclass(frozen=True)
class Gate:
    """Underflow gate.

    Free flow follows Henderson's form Q = Cd b a sqrt(2 g H1) with
    Cd = Cc / sqrt(1 + Cc a / H1). The flow is submerged once the tailwater
    exceeds the sequent depth of the vena contracta, and then uses the head
    difference H1 - H3.

    Attributes:
        id (str): Element identifier.
        gate_type (GateType): Sluice or radial (Tainter) gate.
        opening (float): Gate opening a (m).
        width (float): Gate width b (m).
        contraction_coefficient (float, optional): Overrides Cc.
        radius (float, optional): Radial gate radius.
        trunnion_height (float, optional): Radial gate pivot height above the sill.
    """
    kind: ClassVar[str] = 'gate'

    id: str
    gate_type: GateType
    opening: float
    width: float
    contraction_coefficient: Optional[float] = None
    radius: Optional[float] = None
    trunnion_height: Optional[float] = None

    def __post_init__(self):
        if not isinstance(self.gate_type, GateType):
            object.__setattr__(self, 'gate_type', GateType(self.gate_type))
        if self.opening <= 0 or self.width <= 0:
            raise InvalidGeometry("Gate opening and width must be positive.", element_id=self.id)
        if self.gate_type is GateType.RADIAL and self.contraction_coefficient is None:
            if self.radius is None or self.trunnion_height is None:
                raise InvalidGeometry("A radial gate needs its radius and trunnion height.", element_id=self.id)
            if abs(self.trunnion_height - self.opening) > self.radius:
                raise InvalidGeometry("The gate lip cannot reach this opening.", element_id=self.id)

    @property
    def lip_angle(self) -> float:
        """Angle of the radial gate lip with the horizontal, degrees."""
        return float(np.degrees(np.arccos((self.trunnion_height - self.opening) / self.radius)))

    @property
    def contraction(self) -> float:
        if self.contraction_coefficient is not None:
            return self.contraction_coefficient
        if self.gate_type is GateType.RADIAL:
            r = self.lip_angle / 90.0
            return 1.0 - 0.75 * r + 0.36 * r**2
        return settings.CONTRACTION_COEFFICIENT

    @property
    def vena_contracta(self) -> float:
        return self.contraction * self.opening

    def coefficient(self, upstream_depth: float) -> float:
        Cc = self.contraction
        return Cc / np.sqrt(1.0 + Cc * self.opening / upstream_depth)

    def sequent_depth(self, discharge: float) -> float:
        """Sequent depth of the vena contracta in a channel of the gate width."""
        y1 = self.vena_contracta
        Fr1 = discharge / (self.width * y1) / np.sqrt(G * y1)
        return 0.5 * y1 * (np.sqrt(1 + 8 * Fr1**2) - 1)

    def is_submerged(self, discharge: float, tailwater_depth: float = None) -> bool:
        return tailwater_depth is not None and tailwater_depth > self.sequent_depth(discharge)

    def discharge(self, upstream_depth: float, tailwater_depth: float = None) -> float:
        """Discharge under the gate.

        Args:
            upstream_depth (float): Upstream depth above the sill H1.
            tailwater_depth (float, optional): Downstream depth above the sill H3.

        Returns:
            float: Discharge
        """
        if upstream_depth <= self.opening:
            raise OutOfRange("The upstream water surface is below the gate lip.", element_id=self.id,
                             remediation="lower the gate or raise the upstream level")
        Cd = self.coefficient(upstream_depth)
        free = Cd * self.width * self.opening * np.sqrt(2 * G * upstream_depth)

        if tailwater_depth is None or not self.is_submerged(free, tailwater_depth):
            return free
        if tailwater_depth >= upstream_depth:
            return 0.0
        return Cd * self.width * self.opening * np.sqrt(2 * G * (upstream_depth - tailwater_depth))

    def controls(self, discharge: float) -> bool:
        """Whether the gate lip touches the flow at this discharge."""
        return discharge > self.discharge(self.opening * (1 + 1e-9))

    def upstream_depth(self, discharge: float, tailwater_depth: float = None) -> float:
        """Upstream depth needed to pass ``discharge`` under the gate."""
        if not self.controls(discharge):
            raise OutOfRange("The gate does not control this discharge.", element_id=self.id,
                             remediation="lower the gate")

        submerged = self.is_submerged(discharge, tailwater_depth)
        lower = self.opening * (1 + 1e-9)
        if submerged:
            lower = max(lower, tailwater_depth * (1 + 1e-9))

        def f(H):
            Cd = self.coefficient(H)
            head = H - tailwater_depth if submerged else H
            return Cd * self.width * self.opening * np.sqrt(2 * G * head) - discharge

        upper = expand_bracket(f, lower, 2.0 * lower + 1.0, limit=1e3)
        if upper is None:
            raise OutOfRange("No upstream depth passes the discharge under this gate.", element_id=self.id)
        return bracketed_root(f, lower, upper, context="gate upstream depth").root

    def required_opening(self, discharge: float, upstream_depth: float) -> float:
        """Gate opening that passes ``discharge`` at free flow for a given upstream depth."""
        f = lambda a: replace(self, opening=a).discharge(upstream_depth) - discharge
        lower = 1e-6 * upstream_depth
        upper = upstream_depth * (1 - 1e-6)
        if f(upper) < 0:
            raise OutOfRange("The discharge exceeds the capacity at this upstream depth.", element_id=self.id)
        return bracketed_root(f, lower, upper, context="gate opening").root

    def rating(self, upstream_depths: Sequence[float]) -> np.ndarray:
        return np.array([self.discharge(float(H)) for H in upstream_depths])


## 3. Drops and overfalls
## ------------------------------------------------------------------

class DropType(Enum):
    STRAIGHT = 'straight'
    BAFFLED = 'baffled'
    USBR_II = 'usbr_ii'
    USBR_III = 'usbr_iii'
    USBR_IV = 'usbr_iv'


class BrinkDepthPolicy(Enum):
    """Depth reported at a free overfall.

    CRITICAL reports Yc at the brink. BRINK reports the measured brink depth
    of about 0.715 Yc. Profiles are always controlled by Yc.
    """
    CRITICAL = 'critical'
    BRINK = 'brink'

    def brink_depth(self, critical: float) -> float:
        return critical if self is BrinkDepthPolicy.CRITICAL else 0.715 * critical


# basin length as a multiple of the sequent depth
BASIN_LENGTH_FACTORS = {
    DropType.STRAIGHT: 6.1,
    DropType.BAFFLED: 4.0,
    DropType.USBR_II: 4.3,
    DropType.USBR_III: 2.8,
    DropType.USBR_IV: 6.1,
}


def recommended_basin(froude: float, velocity: float) -> Optional[DropType]:
    """USBR stilling basin suited to the incoming Froude number and velocity."""
    if froude < 2.5:
        return None
    if froude < 4.5:
        return DropType.USBR_IV
    if velocity < 18.0:
        return DropType.USBR_III
    return DropType.USBR_II


def basin_length_ratio(basin_type: DropType, froude: float) -> float:
    """Basin length over the sequent depth.

    Types II and III shorten slightly as the incoming Froude number grows,
    after the USBR basin charts.
    """
    if basin_type is DropType.USBR_II and froude > 4.5:
        return max(4.5 - 0.05 * (froude - 4.5), 3.8)
    if basin_type is DropType.USBR_III and froude >= 5.0:
        return max(2.8 - 0.02 * (froude - 5.0), 2.5)
    return BASIN_LENGTH_FACTORS[basin_type]


@dataclass(frozen=True)
class DropResult:
    """State of the flow through a drop or overfall.

    ``condition`` is 'free' when the tailwater is at or below the toe depth
    and the supercritical jet runs on downstream, 'forced' when the
    tailwater lies between the toe depth and its sequent depth so the jump
    forms in the basin, and 'submerged' when it drowns the sequent depth.
    """
    height: float
    brink_depth: float
    critical_depth: float
    toe_depth: float
    toe_froude: float
    sequent_depth: float
    tailwater_depth: Optional[float]
    condition: str
    energy_loss: float
    drop_number: float
    pool_depth: float
    drop_length: float
    recommended_basin: Optional[DropType]
    basin_length: float
    jump: Optional[JumpLocation] = None

    def stilling_basin(self, discharge: float, width: float,
                       basin_type: DropType = None) -> "StillingBasinDesign":
        """Sizes a rectangular basin for the toe flow and this tailwater."""
        return design_stilling_basin(discharge, width, self.toe_depth, self.tailwater_depth, basin_type)


def _evaluate_fall(element_id, drop_type, brink_policy, upstream_section, downstream_section,
                   discharge, height, tailwater_depth, upstream_energy=None, station=None):
    if height <= 0:
        raise InvalidGeometry(f"Drop height must be positive, got {height}.", element_id=element_id)

    yc = critical_depth(upstream_section, discharge)
    E_brink = specific_energy(upstream_section, discharge, yc) if upstream_energy is None else upstream_energy

    y1 = supercritical_depth(downstream_section, discharge, E_brink + height)
    if y1 is None:
        raise OutOfRange("The flow cannot accelerate through the drop.", element_id=element_id)
    toe = flow_state(downstream_section, discharge, y1)
    jump = JumpLocation.from_depths(downstream_section, discharge, y1, station=station, element_id=element_id)
    y2 = jump.downstream_depth

    # Rand (1955) on the unit discharge of the brink top width
    q = discharge / upstream_section.top_width(yc)
    D = q**2 / (G * height**3)

    if tailwater_depth is None or tailwater_depth <= y1:
        condition = 'free'
    elif tailwater_depth >= y2:
        condition = 'submerged'
    else:
        condition = 'forced'
        if drop_type is DropType.STRAIGHT:
            logger.info("Jump forced at the toe of the plain drop '%s' with no basin appurtenances", element_id)

    basin = recommended_basin(toe.froude, toe.velocity)
    if drop_type is DropType.STRAIGHT:
        length_factor = basin_length_ratio(basin or DropType.STRAIGHT, toe.froude)
    else:
        length_factor = basin_length_ratio(drop_type, toe.froude)

    return DropResult(
        height=height,
        brink_depth=brink_policy.brink_depth(yc),
        critical_depth=yc,
        toe_depth=y1,
        toe_froude=toe.froude,
        sequent_depth=y2,
        tailwater_depth=tailwater_depth,
        condition=condition,
        energy_loss=E_brink + height - (specific_energy(downstream_section, discharge, y2)
                                        if condition in ('forced', 'submerged') else toe.specific_energy),
        drop_number=D,
        pool_depth=height * D**0.22,
        drop_length=4.30 * height * D**0.27,
        recommended_basin=basin,
        basin_length=length_factor * y2,
        jump=jump if condition == 'forced' else None,
    )


@dataclass(frozen=True)
class Drop:
    """Vertical drop between two reaches, optionally with a stilling basin.

    ``height`` defaults to the bed step between the adjoining reaches.
    """
    kind: ClassVar[str] = 'drop'

    id: str
    drop_type: DropType = DropType.STRAIGHT
    height: Optional[float] = None

    def __post_init__(self):
        if not isinstance(self.drop_type, DropType):
            object.__setattr__(self, 'drop_type', DropType(self.drop_type))
        if self.height is not None and self.height <= 0:
            raise InvalidGeometry("Drop height must be positive.", element_id=self.id)

    def evaluate(self, upstream_section: CrossSection, downstream_section: CrossSection,
                 discharge: float, height: float = None, tailwater_depth: float = None,
                 upstream_energy: float = None, station: float = None) -> DropResult:
        """Energy balance across the drop and momentum check against the tailwater.

        Args:
            upstream_section (CrossSection): Section at the brink.
            downstream_section (CrossSection): Section at the toe.
            discharge (float): Discharge.
            height (float, optional): Drop height, defaults to ``self.height``.
            tailwater_depth (float, optional): Subcritical depth downstream.
            upstream_energy (float, optional): Specific energy at the brink,
                critical flow by default.
            station (float, optional): Station of the drop.

        Returns:
            DropResult
        """
        height = self.height if height is None else height
        if height is None:
            raise InvalidGeometry("Drop height is not defined.", element_id=self.id)
        return _evaluate_fall(self.id, self.drop_type, BrinkDepthPolicy.CRITICAL, upstream_section,
                              downstream_section, discharge, height, tailwater_depth, upstream_energy, station)


@dataclass(frozen=True)
class FreeOverfall:
    """Free fall at the end of a reach, with no energy dissipator."""
    kind: ClassVar[str] = 'free_overfall'

    id: str
    brink_policy: BrinkDepthPolicy = BrinkDepthPolicy.CRITICAL
    height: Optional[float] = None

    def __post_init__(self):
        if not isinstance(self.brink_policy, BrinkDepthPolicy):
            object.__setattr__(self, 'brink_policy', BrinkDepthPolicy(self.brink_policy))

    def brink_depth(self, section: CrossSection, discharge: float) -> float:
        yc = critical_depth(section, discharge)
        logger.warning("Free overfall '%s': Yc is used as the control, the true brink depth is about 0.72 Yc",
                       self.id)
        return self.brink_policy.brink_depth(yc)

    def evaluate(self, upstream_section: CrossSection, downstream_section: CrossSection,
                 discharge: float, height: float = None, tailwater_depth: float = None,
                 upstream_energy: float = None, station: float = None) -> DropResult:
        height = self.height if height is None else height
        if height is None:
            raise InvalidGeometry("Overfall height is not defined.", element_id=self.id)
        return _evaluate_fall(self.id, DropType.STRAIGHT, self.brink_policy, upstream_section,
                              downstream_section, discharge, height, tailwater_depth, upstream_energy, station)


## 4. Junctions
## ------------------------------------------------------------------

@dataclass(frozen=True)
class Junction:
    """Confluence of the main channel with tributaries or a point inflow.

    Attributes:
        id (str): Element identifier, referenced by tributaries.
        lateral_inflow (float): Point inflow not modelled as a reach.
        declared_outflow (float, optional): Outflow stated by the user, checked
            against the sum of the inflows.
        loss_coefficient (float): Head loss as a multiple of the outgoing
            velocity head.
        tolerance (float): Allowed continuity mismatch (m3/s).
    """
    kind: ClassVar[str] = 'junction'

    id: str
    lateral_inflow: float = 0.0
    declared_outflow: Optional[float] = None
    loss_coefficient: float = 0.0
    tolerance: float = settings.JUNCTION_TOLERANCE

    def __post_init__(self):
        if self.lateral_inflow < 0:
            raise OutOfRange("Lateral inflow must be non-negative.", element_id=self.id)
        if self.loss_coefficient < 0:
            raise OutOfRange("Loss coefficient must be non-negative.", element_id=self.id)

    def outflow(self, inflows: Sequence[float]) -> float:
        """Q_out = sum of the inflows plus the lateral inflow."""
        total = float(sum(inflows)) + self.lateral_inflow
        if self.declared_outflow is not None and abs(self.declared_outflow - total) > self.tolerance:
            raise JunctionUnbalanced(
                f"Junction outflow {self.declared_outflow:.4f} m3/s differs from the inflow sum {total:.4f} m3/s.",
                element_id=self.id)
        return total

    def upstream_wse(self, downstream_wse: float, downstream_velocity: float = 0.0) -> float:
        """Water surface on the inflow side: equal levels plus the junction loss."""
        return downstream_wse + self.loss_coefficient * downstream_velocity**2 / (2 * G)


## 5. Stilling basins
## ------------------------------------------------------------------

BASIN_TYPES = (DropType.STRAIGHT, DropType.USBR_II, DropType.USBR_III, DropType.USBR_IV)


@dataclass(frozen=True)
class Block:
    """Chute block or baffle pier, placed by its offset from the basin axis."""
    width: float
    height: float
    thickness: float
    offset: float

    @property
    def volume(self) -> float:
        return self.width * self.height * self.thickness


@dataclass(frozen=True)
class BaffleRow:
    distance: float     # from the toe
    blocks: Tuple[Block, ...]


@dataclass(frozen=True)
class EndSill:
    """Sill closing the basin. A dentated sill alternates teeth and gaps of equal width."""
    height: float
    dentated: bool = False
    tooth_width: Optional[float] = None


def _chute_blocks(y1: float, width: float) -> Tuple[Block, ...]:
    # square blocks of side y1, gaps of y1
    count = int((width - y1) // (2 * y1)) + 1
    start = -width / 2 + y1
    offsets = [start + i * 2 * y1 for i in range(count)]
    return tuple(Block(y1, y1, y1, x) for x in offsets if x <= width / 2 - y1 / 2)


def _baffle_row(y1: float, width: float, distance: float) -> BaffleRow:
    w = 0.75 * y1
    count = max(int(width // (2 * w)), 1)
    gap = (width - count * w) / (count + 1)
    start = -width / 2 + gap + w / 2
    blocks = tuple(Block(w, y1, w, start + i * (w + gap)) for i in range(count))
    return BaffleRow(distance, blocks)


@dataclass(frozen=True)
class StillingBasinDesign:
    """
    Layout of a rectangular USBR stilling basin.

    Attributes
    ----------
    basin_type : DropType
        STRAIGHT for a plain apron (USBR type I), or one of the USBR types.
    depression : float
        Floor drop below the downstream bed that makes the tailwater reach
        the sequent depth. Zero when the tailwater is unknown or deep enough.
    relative_loss : float
        Jump head loss as a fraction of the incoming specific energy.
    submergence : float or None
        Tailwater over sequent depth.
    warnings : tuple of str
        Conditions that put the design at risk.

    """
    basin_type: DropType
    jump_type: JumpType
    discharge: float
    width: float
    upstream_depth: float
    sequent_depth: float
    velocity: float
    froude: float
    tailwater_depth: Optional[float]
    length: float
    depression: float
    apron_length: float
    chute_blocks: Tuple[Block, ...]
    baffle_rows: Tuple[BaffleRow, ...]
    end_sill: Optional[EndSill]
    energy_loss: float
    relative_loss: float
    submergence: Optional[float]
    warnings: Tuple[str, ...] = ()

    @property
    def floor_elevation(self) -> float:
        """Basin floor relative to the downstream bed."""
        return -self.depression

    def concrete_volume(self, wall_thickness: float = 0.3, floor_thickness: float = 0.5) -> float:
        """Rough concrete volume of the floor, side walls, blocks and sill (m3)."""
        floor = self.length * self.width * floor_thickness
        walls = 2 * self.length * (self.depression + self.sequent_depth) * wall_thickness
        blocks = sum(b.volume for b in self.chute_blocks)
        blocks += sum(b.volume for row in self.baffle_rows for b in row.blocks)
        sill = 0.0
        if self.end_sill is not None:
            sill = self.end_sill.height * self.width * wall_thickness
            if self.end_sill.dentated:
                sill *= 0.5
        return floor + walls + blocks + sill


def design_stilling_basin(discharge: float, width: float, upstream_depth: float,
                          tailwater_depth: float = None, basin_type: DropType = None) -> StillingBasinDesign:
    """
    Sizes a stilling basin for a supercritical inflow.

    Parameters
    ----------
    discharge : float
        Design discharge.
    width : float
        Basin width.
    upstream_depth : float
        Supercritical depth entering the basin.
    tailwater_depth : float, optional
        Depth in the channel downstream of the basin.
    basin_type : DropType, optional
        Basin to lay out, by default the one suited to the inflow.

    Returns
    -------
    StillingBasinDesign

    Raises
    ------
    OutOfRange
        If the inflow is not supercritical.
    InvalidGeometry
        If a dimension is not positive or the type is not a basin.

    """
    if discharge <= 0 or width <= 0 or upstream_depth <= 0:
        raise InvalidGeometry("Discharge, width and inflow depth must be positive.")

    y1 = upstream_depth
    v1 = discharge / (width * y1)
    Fr = v1 / np.sqrt(G * y1)
    if Fr <= 1.0:
        raise OutOfRange(f"The inflow is not supercritical (Fr = {Fr:.2f}), no jump forms.")

    if basin_type is None:
        basin_type = recommended_basin(Fr, v1) or DropType.STRAIGHT
    basin_type = DropType(basin_type)
    if basin_type not in BASIN_TYPES:
        raise InvalidGeometry(f"'{basin_type.value}' is not a stilling basin type.")

    y2 = 0.5 * y1 * (np.sqrt(1 + 8 * Fr**2) - 1)
    length = basin_length_ratio(basin_type, Fr) * y2

    chute_blocks, baffle_rows, end_sill = (), (), None
    if basin_type is DropType.USBR_II:
        chute_blocks = _chute_blocks(y1, width)
        end_sill = EndSill(0.2 * y2, dentated=True, tooth_width=0.15 * y2)
    elif basin_type is DropType.USBR_III:
        chute_blocks = _chute_blocks(y1, width)
        baffle_rows = (_baffle_row(y1, width, 0.8 * length),)
        end_sill = EndSill(0.2 * y2)
    elif basin_type is DropType.USBR_IV:
        chute_blocks = _chute_blocks(y1, width)
        end_sill = EndSill(0.15 * y2)

    loss = rectangular_energy_loss(y1, y2)
    jump_type = JumpType.from_froude(Fr)
    submergence = None if tailwater_depth is None else tailwater_depth / y2

    warnings = []
    if jump_type is JumpType.OSCILLATING:
        warnings.append(f"Oscillating jump (Fr1 = {Fr:.2f}), waves may erode the banks downstream.")
    if submergence is not None and submergence < 0.85:
        warnings.append(f"Low submergence ({submergence:.2f}), the jump may sweep out of the basin.")
    elif submergence is not None and submergence > 1.1:
        warnings.append(f"High submergence ({submergence:.2f}), the drowned jump dissipates less energy.")
    if v1 > 20.0:
        warnings.append(f"Entry velocity {v1:.1f} m/s needs special protection against cavitation.")
    if basin_type is DropType.USBR_III and v1 > 15.0:
        warnings.append(f"Baffle piers of a type III basin are at risk above 15 m/s, got {v1:.1f} m/s.")
    for message in warnings:
        logger.warning(message)

    return StillingBasinDesign(
        basin_type=basin_type,
        jump_type=jump_type,
        discharge=discharge,
        width=width,
        upstream_depth=y1,
        sequent_depth=y2,
        velocity=v1,
        froude=Fr,
        tailwater_depth=tailwater_depth,
        length=length,
        depression=0.0 if tailwater_depth is None else max(y2 - tailwater_depth, 0.0),
        apron_length=3.0 * y2,
        chute_blocks=chute_blocks,
        baffle_rows=baffle_rows,
        end_sill=end_sill,
        energy_loss=loss,
        relative_loss=loss / (y1 + v1**2 / (2 * G)),
        submergence=submergence,
        warnings=tuple(warnings),
    )


@dataclass(frozen=True)
class Chute:
    """Steep rectangular chute discharging into a stilling basin.

    The chute is taken long enough for the flow to reach normal depth at
    its toe.
    """
    id: str
    length: float
    drop: float
    width: float
    n: float = 0.014

    def __post_init__(self):
        if self.length <= 0 or self.drop <= 0 or self.width <= 0:
            raise InvalidGeometry("Chute length, drop and width must be positive.", element_id=self.id)

    @property
    def slope(self) -> float:
        return self.drop / self.length

    def toe_depth(self, discharge: float) -> float:
        return normal_depth(Rectangular(width=self.width, n=self.n), discharge, self.slope)

    def needs_aeration(self, discharge: float) -> bool:
        """Long chutes running above 20 m/s need air slots against cavitation."""
        velocity = discharge / (self.width * self.toe_depth(discharge))
        return velocity > 20.0 and self.length > 30.0

    def stilling_basin(self, discharge: float, tailwater_depth: float = None,
                       basin_type: DropType = None) -> StillingBasinDesign:
        return design_stilling_basin(discharge, self.width, self.toe_depth(discharge), tailwater_depth, basin_type)
