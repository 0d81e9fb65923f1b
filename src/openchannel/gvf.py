"""
Standard-step integration of the gradually varied flow equation over a reach.
"""
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Sequence, Tuple

from . import hydraulics
from .channel import ChannelReach, Node
from .exceptions import (CriticalDepthCrossing, DryBed, HydraulicError, NoConvergence,
                         OutOfRange, SubCriticalSlopeRequired)
from .flow import FlowRegime, classify_slope, critical_depth, flow_state, normal_depth, profile_type
from .settings import G, KINEMATIC_VISCOSITY, UNBOUNDED_DEPTH, WATER_DENSITY, GvfConfig
from .utility import ProgressCallback, expand_bracket, poll, safeguarded_newton

logger = logging.getLogger(__name__)


class IntegrationDirection(Enum):
    UPSTREAM = 'upstream'       # subcritical, from a downstream control
    DOWNSTREAM = 'downstream'   # supercritical, from an upstream control


@dataclass(frozen=True)
class ProfilePoint:
    """Flow state at one node of a water-surface profile."""
    station: float
    bed_elevation: float
    depth: float
    water_surface: float
    energy_grade: float
    velocity: float
    froude: float
    regime: FlowRegime
    specific_energy: float
    specific_force: float
    friction_slope: float
    normal_depth: Optional[float]
    critical_depth: float
    profile_type: Optional[str]
    area: float
    top_width: float
    hydraulic_radius: float
    shear_stress: float
    reynolds: float
    freeboard: Optional[float]
    reach_id: Optional[str] = None
    head_loss: float = 0.0
    friction_loss: float = 0.0

    @property
    def transition_loss(self) -> float:
        """Part of ``head_loss`` not spent on boundary friction."""
        return self.head_loss - self.friction_loss


def with_losses(points: Sequence[ProfilePoint]) -> Tuple[ProfilePoint, ...]:
    """Fills in the head loss between each point and its upstream neighbour.

    ``points`` must be in station order. The friction part is the mean
    friction slope times the step length, the rest of the energy-grade drop
    is transition loss. Coincident points (both sides of a jump) only carry
    transition loss.
    """
    out = list(points[:1])
    for prev, p in zip(points, points[1:]):
        dx = p.station - prev.station
        out.append(replace(p,
                           head_loss=prev.energy_grade - p.energy_grade,
                           friction_loss=0.5 * (prev.friction_slope + p.friction_slope) * dx))
    if out:
        out[0] = replace(out[0], head_loss=0.0, friction_loss=0.0)
    return tuple(out)


class DepthCache:
    """Per-call memo of critical and normal depths keyed by section."""

    def __init__(self, discharge: float):
        self.discharge = discharge
        self._critical = {}
        self._normal = {}

    def critical(self, section) -> float:
        if section not in self._critical:
            self._critical[section] = critical_depth(section, self.discharge)
        return self._critical[section]

    def normal(self, section, slope: float) -> Optional[float]:
        if slope <= 0.0:
            return None
        key = (section, slope)
        if key not in self._normal:
            try:
                self._normal[key] = normal_depth(section, self.discharge, slope)
            except (OutOfRange, DryBed, SubCriticalSlopeRequired):
                # uniform flow is impossible in this section, no Yn to report
                self._normal[key] = None
        return self._normal[key]


class StandardStepSolver:
    """
    Standard-step solver of dE/dx = S0 - Sf between computational nodes.

    Subcritical profiles are integrated upstream from a downstream control,
    supercritical ones downstream from an upstream control. Each step solves
    the energy balance for the unknown depth with a Newton iteration kept in
    the regime-correct bracket, so a step can never jump through critical
    depth. When no root exists in that bracket the profile would have to
    cross critical depth and ``CriticalDepthCrossing`` is raised carrying
    the points already computed.
    """

    def __init__(self, config: GvfConfig = None, progress: ProgressCallback = None):
        self.config = config or GvfConfig()
        self.progress = progress

    def plan(self, reach: ChannelReach) -> Tuple[Node, ...]:
        return reach.nodes(self.config.step)

    def integrate(self,
                  reach: ChannelReach,
                  discharge: float,
                  start_depth: float,
                  direction: IntegrationDirection,
                  nodes: Sequence[Node] = None,
                  cache: DepthCache = None) -> Tuple[ProfilePoint, ...]:
        """Computes a profile over the whole reach.

        Args:
            reach (ChannelReach): The reach.
            discharge (float): Reach discharge.
            start_depth (float): Depth at the downstream end for UPSTREAM
                integration, at the upstream end for DOWNSTREAM integration.
            direction (IntegrationDirection): Integration direction.
            nodes (Sequence[Node], optional): Precomputed nodes of the reach.
            cache (DepthCache, optional): Depth memo shared with the caller.

        Raises:
            CriticalDepthCrossing: If the profile reaches critical depth
                before the far end of the reach.
            NoConvergence: If a step fails to converge.
            DryBed: If the depth falls below the dry-bed threshold.

        Returns:
            tuple[ProfilePoint]: Points in downstream (station) order.
        """
        if nodes is None:
            nodes = self.plan(reach)
        if cache is None:
            cache = DepthCache(discharge)

        upstream = direction is IntegrationDirection.UPSTREAM
        order = list(range(len(nodes)))
        if upstream:
            order.reverse()

        first = nodes[order[0]]
        yc = cache.critical(first.section)
        if start_depth < self.config.min_depth:
            raise DryBed(f"Start depth {start_depth} m is a dry bed.", reach_id=reach.id, station=first.station)
        if upstream and start_depth < yc * (1 - 1e-9):
            raise CriticalDepthCrossing(
                f"Subcritical integration cannot start from the supercritical depth {start_depth:.4f} m.",
                reach_id=reach.id, station=first.station)
        if not upstream and start_depth > yc * (1 + 1e-9):
            raise CriticalDepthCrossing(
                f"Supercritical integration cannot start from the subcritical depth {start_depth:.4f} m.",
                reach_id=reach.id, station=first.station)

        logger.debug("Integrating reach '%s' %s from %.4f m", reach.id, direction.value, start_depth)

        points = [self.point(first, discharge, start_depth, cache, reach.id)]
        y = start_depth

        for count, (k, u) in enumerate(zip(order[:-1], order[1:]), start=1):
            poll(self.progress, f"reach {reach.id}", count / (len(order) - 1))
            try:
                y = self.step(nodes[k], y, nodes[u], discharge, direction, cache)
            except CriticalDepthCrossing as err:
                err.annotate(reach_id=reach.id)
                partial = with_losses(points if not upstream else points[::-1])
                raise CriticalDepthCrossing(err.message, partial=partial, reach_id=reach.id,
                                            station=nodes[u].station) from None
            except HydraulicError as err:
                err.annotate(reach_id=reach.id)
                if err.station is None:
                    err.station = nodes[u].station
                raise
            points.append(self.point(nodes[u], discharge, y, cache, reach.id))

        if upstream:
            points.reverse()

        return with_losses(points)

    def step(self,
             known: Node,
             known_depth: float,
             unknown: Node,
             discharge: float,
             direction: IntegrationDirection,
             cache: DepthCache = None) -> float:
        """Solves one standard step for the depth at ``unknown``.

        The energy balance, with H = z + E and the flow going downstream, is
        H_upstream = H_downstream + mean(Sf) dx + transition loss.
        """
        if cache is None:
            cache = DepthCache(discharge)

        Q = discharge
        cfg = self.config
        sign = 1.0 if direction is IntegrationDirection.UPSTREAM else -1.0
        dx = abs(unknown.station - known.station)

        sec_k, sec_u = known.section, unknown.section
        A_k = sec_k.area(known_depth)
        hv_k = hydraulics.velocity_head(Q=Q, A=A_k)
        H_k = known.bed_elevation + known_depth + hv_k
        Sf_k = hydraulics.Sf(Q=Q, K=sec_k.conveyance(known_depth))

        transition = sec_k != sec_u
        if transition:
            # the section nearer the outlet decides whether the flow accelerates
            A_u0 = sec_u.area(min(known_depth, sec_u.max_depth))
            A_down = A_k if sign > 0 else A_u0
            A_up = A_u0 if sign > 0 else A_k
            C = cfg.contraction_loss if A_down < A_up else cfg.expansion_loss
        else:
            C = 0.0

        def residual(y):
            A = sec_u.area(y)
            hv = hydraulics.velocity_head(Q=Q, A=A)
            Sf_u = hydraulics.Sf(Q=Q, K=sec_u.conveyance(y))
            loss = C * abs(hv - hv_k)
            return unknown.bed_elevation + y + hv - H_k - sign * (0.5 * (Sf_k + Sf_u) * dx + loss)

        def jacobian(y):
            A = sec_u.area(y)
            T = sec_u.top_width(y)
            K = sec_u.conveyance(y)
            hv = hydraulics.velocity_head(Q=Q, A=A)
            dhv = -Q**2 * T / (G * A**3)
            dSf = hydraulics.dSf_dy(Q=Q, K=K, dK_dy=sec_u.dK_dy(y))
            dloss = C * (1.0 if hv >= hv_k else -1.0) * dhv
            return 1.0 + dhv - sign * (0.5 * dSf * dx + dloss)

        yc = cache.critical(sec_u)

        if sign > 0:
            f_c = residual(yc)
            if f_c > 0:
                raise CriticalDepthCrossing(
                    "Subcritical profile would pass through critical depth.", station=unknown.station)
            if f_c == 0:
                return yc
            upper = expand_bracket(residual, yc, max(2.0 * yc, 1.5 * known_depth), limit=sec_u.max_depth)
            if upper is None:
                raise OutOfRange("The computed water surface overtops the section.",
                                 station=unknown.station, remediation="raise the section walls")
            lower = yc
        else:
            f_c = residual(yc)
            if f_c > 0:
                raise CriticalDepthCrossing(
                    "Supercritical profile would pass through critical depth.", station=unknown.station)
            if f_c == 0:
                return yc
            lower, upper = cfg.min_depth, yc
            if residual(lower) < 0:
                raise DryBed("The supercritical depth falls below the dry-bed threshold.",
                             station=unknown.station)

        try:
            result = safeguarded_newton(residual, jacobian, lower, upper,
                                        tolerance=cfg.tolerance, max_iterations=cfg.max_iterations,
                                        context="standard step")
        except NoConvergence as err:
            err.station = unknown.station
            raise

        if result.root < cfg.min_depth:
            raise DryBed("Depth fell below the dry-bed threshold.", station=unknown.station)

        return result.root

    def point(self, node: Node, discharge: float, depth: float, cache: DepthCache = None,
              reach_id: str = None) -> ProfilePoint:
        """Evaluates the flow state at a node."""
        if cache is None:
            cache = DepthCache(discharge)

        state = flow_state(node.section, discharge, depth)
        yc = cache.critical(node.section)
        yn = cache.normal(node.section, node.slope)

        label = None
        if node.slope <= 0 or yn is not None:
            label = profile_type(depth, yn, yc, classify_slope(node.slope, yn, yc))

        Sf = hydraulics.Sf(Q=discharge, K=node.section.conveyance(depth))
        R = state.hydraulic_radius
        top = node.section.max_depth

        return ProfilePoint(
            station=node.station,
            bed_elevation=node.bed_elevation,
            depth=depth,
            water_surface=node.bed_elevation + depth,
            energy_grade=node.bed_elevation + state.specific_energy,
            velocity=state.velocity,
            froude=state.froude,
            regime=state.regime,
            specific_energy=state.specific_energy,
            specific_force=state.specific_force,
            friction_slope=Sf,
            normal_depth=yn,
            critical_depth=yc,
            profile_type=label,
            area=state.area,
            top_width=state.top_width,
            hydraulic_radius=R,
            shear_stress=WATER_DENSITY * G * R * Sf,
            reynolds=4 * state.velocity * R / KINEMATIC_VISCOSITY,
            freeboard=top - depth if top < UNBOUNDED_DEPTH else None,
            reach_id=reach_id,
        )

    def reach_class(self, reach: ChannelReach, discharge: float, cache: DepthCache = None):
        """Slope class, Yn and Yc of a reach from its mean slope and first section."""
        if cache is None:
            cache = DepthCache(discharge)
        section = reach.stations[0].effective_section
        slope = reach.mean_slope
        yc = cache.critical(section)
        yn = cache.normal(section, slope)
        if slope > 0 and yn is None:
            return None, yn, yc
        return classify_slope(slope, yn, yc), yn, yc
