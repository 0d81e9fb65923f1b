"""
Hydraulic jumps: classification, properties and location by momentum balance.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple

from . import settings
from .channel import ChannelReach, Node
from .cross_section import CrossSection
from .exceptions import CriticalDepthCrossing, NotFullyDefined
from .flow import conjugate_depth, flow_state
from .gvf import DepthCache, IntegrationDirection, ProfilePoint, StandardStepSolver, with_losses

logger = logging.getLogger(__name__)


class JumpType(Enum):
    UNDULAR = 'undular'
    WEAK = 'weak'
    OSCILLATING = 'oscillating'
    STEADY = 'steady'
    STRONG = 'strong'

    @classmethod
    def from_froude(cls, froude: float) -> "JumpType":
        if froude < 1.7:
            return cls.UNDULAR
        if froude < 2.5:
            return cls.WEAK
        if froude < 4.5:
            return cls.OSCILLATING
        if froude < 9.0:
            return cls.STEADY
        return cls.STRONG


class JumpOutcome(Enum):
    FORMED = 'formed'           # momentum balance found inside the reach
    SUBMERGED = 'submerged'     # subcritical profile drowns the inflow at the inlet
    SWEPT_OUT = 'swept_out'     # supercritical flow persists to the outlet
    NONE = 'none'               # only one regime present


def rectangular_energy_loss(y1: float, y2: float) -> float:
    """Head loss of a jump in a rectangular channel, (y2 - y1)^3 / (4 y1 y2)."""
    return (y2 - y1)**3 / (4.0 * y1 * y2)


@dataclass(frozen=True)
class JumpLocation:
    """A hydraulic jump and its properties."""
    station: Optional[float]
    upstream_depth: float
    downstream_depth: float
    upstream_froude: float
    downstream_froude: float
    jump_type: JumpType
    energy_loss: float
    length: float
    efficiency: float
    relative_height: float
    reach_id: Optional[str] = None
    element_id: Optional[str] = None

    @classmethod
    def from_depths(cls, section: CrossSection, discharge: float, upstream_depth: float,
                    downstream_depth: float = None, station: float = None,
                    reach_id: str = None, element_id: str = None) -> "JumpLocation":
        """Builds a jump from its supercritical depth.

        The sequent depth is solved from the momentum balance unless given.
        Length follows the USBR free-jump estimate of 6.1 y2.
        """
        if downstream_depth is None:
            downstream_depth = conjugate_depth(section, discharge, upstream_depth)

        s1 = flow_state(section, discharge, upstream_depth)
        s2 = flow_state(section, discharge, downstream_depth)

        return cls(
            station=station,
            upstream_depth=upstream_depth,
            downstream_depth=downstream_depth,
            upstream_froude=s1.froude,
            downstream_froude=s2.froude,
            jump_type=JumpType.from_froude(s1.froude),
            energy_loss=s1.specific_energy - s2.specific_energy,
            length=6.1 * downstream_depth,
            efficiency=s2.specific_energy / s1.specific_energy,
            relative_height=(downstream_depth - upstream_depth) / s1.specific_energy,
            reach_id=reach_id,
            element_id=element_id,
        )


@dataclass(frozen=True)
class JumpAnalysis:
    """Composite profile of a reach after reconciling both regimes."""
    outcome: JumpOutcome
    points: Tuple[ProfilePoint, ...]
    jump: Optional[JumpLocation] = None


class JumpLocator:
    """
    Places a hydraulic jump between a supercritical profile computed from the
    upstream end and a subcritical profile computed from the downstream end.

    Both profiles live on the same computational nodes. The supercritical
    profile covers a prefix of the nodes and the subcritical one a suffix,
    either of which may stop early where it reached critical depth. The jump
    sits where the specific force of the two profiles is equal; upstream of
    it the supercritical flow carries more momentum.
    """

    def __init__(self, solver: StandardStepSolver = None):
        self.solver = solver or StandardStepSolver()

    def locate(self,
               reach: ChannelReach,
               discharge: float,
               nodes: Sequence[Node],
               supercritical: Sequence[ProfilePoint] = (),
               subcritical: Sequence[ProfilePoint] = (),
               cache: DepthCache = None) -> JumpAnalysis:
        """Reconcile the two profiles of a reach.

        Raises:
            CriticalDepthCrossing: If the profiles leave part of the reach
                uncovered, i.e. a control is missing inside the reach.
        """
        if cache is None:
            cache = DepthCache(discharge)

        n = len(nodes)
        sup = tuple(supercritical)
        sub = tuple(subcritical)
        sub_start = n - len(sub)

        if not sup and not sub:
            raise NotFullyDefined("At least one profile is required.", reach_id=reach.id)

        if not sup:
            if sub_start != 0:
                raise CriticalDepthCrossing(
                    "The subcritical profile reaches critical depth inside the reach.",
                    reach_id=reach.id, station=sub[0].station,
                    remediation="add an upstream control or split the reach at the slope break")
            return JumpAnalysis(JumpOutcome.NONE, sub)

        if not sub:
            if len(sup) != n:
                raise CriticalDepthCrossing(
                    "The supercritical profile reaches critical depth with no downstream control.",
                    reach_id=reach.id, station=sup[-1].station,
                    remediation="add a downstream control")
            return JumpAnalysis(JumpOutcome.NONE, sup)

        first, last = sub_start, len(sup) - 1
        if first > last:
            raise CriticalDepthCrossing(
                "The supercritical and subcritical profiles do not overlap.",
                reach_id=reach.id, station=sup[-1].station,
                remediation="add a control between the two profiles")

        def imbalance(k):
            return sub[k - sub_start].specific_force - sup[k].specific_force

        k_jump = next((k for k in range(first, last + 1) if imbalance(k) >= 0.0), None)

        if k_jump is None:
            if len(sup) == n:
                logger.warning("Jump in reach '%s' is swept out past the outlet", reach.id)
                return JumpAnalysis(JumpOutcome.SWEPT_OUT, sup)
            k_jump = last

        if k_jump == 0:
            logger.warning("Jump in reach '%s' is submerged at the inlet", reach.id)
            return JumpAnalysis(JumpOutcome.SUBMERGED, sub)

        if k_jump == first:
            # subcritical profile dominates from the point it starts
            station = nodes[k_jump].station
            y1, y2 = sup[k_jump].depth, sub[k_jump - sub_start].depth
            node = nodes[k_jump]
        else:
            station, y1, y2, node = self._refine(reach, discharge, nodes, sup, sub, sub_start, k_jump, cache)

        jump = JumpLocation.from_depths(node.section, discharge, y1, y2, station=station, reach_id=reach.id)
        logger.info("Jump in reach '%s' at station %.2f (Fr1 = %.2f, %s)",
                    reach.id, station, jump.upstream_froude, jump.jump_type.value)

        p1 = self.solver.point(node, discharge, y1, cache, reach.id)
        p2 = self.solver.point(node, discharge, y2, cache, reach.id)

        points = (
            [p for p in sup[:k_jump] if p.station < station]
            + [p1, p2]
            + [p for p in sub[k_jump - sub_start:] if p.station > station]
        )
        return JumpAnalysis(JumpOutcome.FORMED, with_losses(points), jump)

    def _refine(self, reach, discharge, nodes, sup, sub, sub_start, k, cache):
        """Bisection on station between nodes k-1 and k."""
        a, b = nodes[k - 1], nodes[k]
        y_sup, y_sub = sup[k - 1].depth, sub[k - sub_start].depth

        if b.station - a.station <= 0.0:
            return b.station, sup[k].depth, y_sub, b

        lo, hi = a.station, b.station
        result = (b.station, sup[k].depth, y_sub, b)

        for _ in range(settings.MAX_ITERATIONS):
            if hi - lo <= settings.JUMP_LOCATION_TOLERANCE:
                break
            mid = 0.5 * (lo + hi)
            node = reach.node_at(mid)

            try:
                y1 = self.solver.step(a, y_sup, node, discharge, IntegrationDirection.DOWNSTREAM, cache)
            except CriticalDepthCrossing:
                # supercritical flow is spent before mid
                hi = mid
                continue
            try:
                y2 = self.solver.step(b, y_sub, node, discharge, IntegrationDirection.UPSTREAM, cache)
            except CriticalDepthCrossing:
                lo = mid
                continue

            m1 = flow_state(node.section, discharge, y1).specific_force
            m2 = flow_state(node.section, discharge, y2).specific_force
            result = (mid, y1, y2, node)
            if m2 >= m1:
                hi = mid
            else:
                lo = mid

        return result
