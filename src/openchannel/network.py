"""
Steady water-surface profiles through a chain of reaches and structures.

The router works in two passes. The subcritical pass walks the chain from the
outlet to the inlet, carrying the downstream control through every element by
the element's own equation. The supercritical pass walks it back from the
inlet, starting supercritical profiles at steep inlets, gate vena contractas
and the toes of weirs and drops. Where a reach holds both profiles the jump
locator reconciles them.
"""
import logging
from dataclasses import asdict, dataclass, fields
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from .boundary import ControlKind, DownstreamControl, UpstreamControl
from .channel import ChannelReach, Node
from .exceptions import (CriticalDepthCrossing, HydraulicError, InvalidGeometry, JunctionUnbalanced,
                         NotFullyDefined, OutOfRange, OverDetermined, UnderDetermined)
from .flow import FlowRegime, SlopeClass, specific_energy
from .gvf import DepthCache, IntegrationDirection, ProfilePoint, StandardStepSolver
from .jump import JumpAnalysis, JumpLocation, JumpLocator, JumpOutcome
from .settings import JUNCTION_TOLERANCE, MAX_VELOCITY, MIN_FREEBOARD, MIN_VELOCITY, GvfConfig
from .structures import Drop, DropResult, FreeOverfall, Gate, Junction, Weir, subcritical_depth, supercritical_depth
from .utility import ProgressCallback, poll

logger = logging.getLogger(__name__)

Element = Union[Weir, Gate, Drop, FreeOverfall, Junction]
ELEMENT_TYPES = (Weir, Gate, Drop, FreeOverfall, Junction)


def _check_chain(name: str, items: tuple, outlet_allowed: bool) -> None:
    if not items or not isinstance(items[0], ChannelReach):
        raise NotFullyDefined(f"'{name}' must start with a reach.")

    previous = None
    for item in items:
        if not isinstance(item, (ChannelReach,) + ELEMENT_TYPES):
            raise NotFullyDefined(f"'{name}' holds an item of unknown type {type(item).__name__}.")
        if isinstance(item, ELEMENT_TYPES) and isinstance(previous, ELEMENT_TYPES):
            raise NotFullyDefined("Two elements must be separated by a reach.", element_id=item.id)
        previous = item

    last = items[-1]
    if isinstance(last, ELEMENT_TYPES) and not (outlet_allowed and isinstance(last, FreeOverfall)):
        raise NotFullyDefined("Only a free overfall can end a channel.", element_id=last.id,
                              remediation="add a reach downstream of the element")


def _parse_chain(items: tuple):
    """Splits a chain into its reaches, the element after each reach and the outlet."""
    reaches, between = [], []
    for item in items:
        if isinstance(item, ChannelReach):
            if reaches and len(between) < len(reaches):
                between.append(None)
            reaches.append(item)
        else:
            between.append(item)

    outlet = None
    if len(between) == len(reaches):
        outlet = between.pop()
    return reaches, between, outlet


@dataclass(frozen=True)
class Tributary:
    """A side channel flowing into a junction of the main alignment.

    Attributes:
        id (str): Tributary identifier.
        junction_id (str): Junction of the main chain it joins.
        items (tuple): Reaches and elements in downstream order.
        discharge (float, optional): Tributary discharge, by default the
            discharge of its first reach.
        upstream_control (UpstreamControl, optional): Inlet control.
    """
    id: str
    junction_id: str
    items: Tuple[Union[ChannelReach, Element], ...]
    discharge: Optional[float] = None
    upstream_control: Optional[UpstreamControl] = None

    def __post_init__(self):
        object.__setattr__(self, 'items', tuple(self.items))
        _check_chain(self.id, self.items, outlet_allowed=False)

    @property
    def reaches(self) -> Tuple[ChannelReach, ...]:
        return tuple(item for item in self.items if isinstance(item, ChannelReach))


@dataclass(frozen=True)
class ChannelSystem:
    """
    Reaches and elements along the main alignment, in downstream order.

    Attributes:
        name (str): System name.
        items (tuple): Reaches and elements. Elements sit between two
            reaches; a free overfall may also end the chain.
        discharge (float, optional): Inflow at the upstream end, by default
            the discharge of the first reach.
        downstream_control (DownstreamControl, optional): Outlet control.
        upstream_control (UpstreamControl, optional): Inlet control. Without
            one a steep first reach starts from critical depth.
        tributaries (tuple): Side channels joining at junctions.
    """
    name: str
    items: Tuple[Union[ChannelReach, Element], ...]
    discharge: Optional[float] = None
    downstream_control: Optional[DownstreamControl] = None
    upstream_control: Optional[UpstreamControl] = None
    tributaries: Tuple[Tributary, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, 'items', tuple(self.items))
        object.__setattr__(self, 'tributaries', tuple(self.tributaries))
        _check_chain(self.name, self.items, outlet_allowed=True)

        if self.discharge is not None and self.discharge <= 0:
            raise OutOfRange(f"System discharge must be positive, got {self.discharge}.")

        if isinstance(self.items[-1], FreeOverfall) and self.downstream_control is not None:
            raise OverDetermined("A free overfall and a downstream control both fix the outlet depth.",
                                 element_id=self.items[-1].id)

        seen = set()
        for reach in self.reaches + tuple(r for t in self.tributaries for r in t.reaches):
            if reach.id in seen:
                raise InvalidGeometry(f"Duplicate reach id '{reach.id}'.", reach_id=reach.id)
            seen.add(reach.id)

        junctions = {e.id for e in self.elements if isinstance(e, Junction)}
        for tributary in self.tributaries:
            if tributary.junction_id not in junctions:
                raise NotFullyDefined(
                    f"Tributary '{tributary.id}' joins unknown junction '{tributary.junction_id}'.")

    @property
    def reaches(self) -> Tuple[ChannelReach, ...]:
        return tuple(item for item in self.items if isinstance(item, ChannelReach))

    @property
    def elements(self) -> Tuple[Element, ...]:
        return tuple(item for item in self.items if not isinstance(item, ChannelReach))


## Results
## ------------------------------------------------------------------

def _frame(points: Sequence[ProfilePoint]) -> pd.DataFrame:
    records = []
    for p in points:
        row = asdict(p)
        row['regime'] = p.regime.value
        records.append(row)
    return pd.DataFrame.from_records(records, columns=[f.name for f in fields(ProfilePoint)])


@dataclass(frozen=True)
class ReachProfile:
    """Composite profile of one reach."""
    reach_id: str
    discharge: float
    slope_class: Optional[SlopeClass]
    normal_depth: Optional[float]
    critical_depth: float
    outcome: JumpOutcome
    points: Tuple[ProfilePoint, ...]
    jump: Optional[JumpLocation] = None

    @property
    def inlet(self) -> ProfilePoint:
        return self.points[0]

    @property
    def outlet(self) -> ProfilePoint:
        return self.points[-1]

    def to_dataframe(self) -> pd.DataFrame:
        return _frame(self.points)

    def summary(self) -> "ProfileSummary":
        return _summarize(self.points, self.discharge)


@dataclass(frozen=True)
class ElementResult:
    """Flow through an element.

    ``condition`` is 'free' or 'submerged' for weirs and gates ('inactive'
    when the gate lip does not touch the flow), the drop condition for drops
    and overfalls, and 'continuity' for junctions.
    """
    element_id: str
    kind: str
    station: float
    discharge: float
    upstream_depth: float
    upstream_wse: float
    downstream_depth: Optional[float]
    downstream_wse: Optional[float]
    condition: str
    head: Optional[float] = None
    drop: Optional[DropResult] = None


@dataclass(frozen=True)
class ProfileSummary:
    """
    Overall figures of a composite profile.

    Attributes
    ----------
    total_head_loss : float
        Energy-grade drop from the first to the last point.
    friction_loss : float
        Part of it spent on boundary friction along the reaches.
    transition_loss : float
        Part spent in section changes and jumps inside the reaches.
    structure_loss : float
        Rest of the drop, dissipated at the elements between reaches.
    min_freeboard : float or None
        Smallest freeboard of the closed or walled sections, None when every
        section is open.
    warnings : tuple of str
        Velocity, freeboard and regime conditions worth a second look.

    """
    discharge: float
    start_station: float
    end_station: float
    station_count: int
    min_depth: float
    max_depth: float
    mean_depth: float
    min_velocity: float
    max_velocity: float
    mean_velocity: float
    min_froude: float
    max_froude: float
    mean_froude: float
    inlet_energy: float
    outlet_energy: float
    total_head_loss: float
    friction_loss: float
    transition_loss: float
    structure_loss: float
    min_freeboard: Optional[float]
    max_shear_stress: float
    mean_reynolds: float
    critical_stations: Tuple[float, ...]
    has_regime_change: bool
    predominant_regime: Optional[FlowRegime]
    subcritical_percentage: float
    supercritical_percentage: float
    warnings: Tuple[str, ...] = ()


def _summarize(points: Sequence[ProfilePoint], discharge: float) -> ProfileSummary:
    depth = np.array([p.depth for p in points])
    velocity = np.array([p.velocity for p in points])
    froude = np.array([p.froude for p in points])
    regimes = [p.regime for p in points]
    freeboards = [p.freeboard for p in points if p.freeboard is not None]

    n = len(points)
    sub = regimes.count(FlowRegime.SUBCRITICAL)
    sup = regimes.count(FlowRegime.SUPERCRITICAL)
    if sub > sup:
        predominant = FlowRegime.SUBCRITICAL
    elif sup > sub:
        predominant = FlowRegime.SUPERCRITICAL
    else:
        predominant = None

    total = points[0].energy_grade - points[-1].energy_grade
    friction = sum(p.friction_loss for p in points)
    transition = sum(p.transition_loss for p in points)
    changes = any(a is not b for a, b in zip(regimes, regimes[1:]))
    min_freeboard = min(freeboards) if freeboards else None

    warnings = []
    if velocity.max() > MAX_VELOCITY:
        warnings.append(f"Velocity reaches {velocity.max():.2f} m/s, above the {MAX_VELOCITY} m/s "
                        f"a concrete lining stands.")
    if velocity.min() < MIN_VELOCITY:
        warnings.append(f"Velocity falls to {velocity.min():.2f} m/s, below the {MIN_VELOCITY} m/s "
                        f"where sediment settles.")
    if min_freeboard is not None and min_freeboard < MIN_FREEBOARD:
        warnings.append(f"Freeboard falls to {min_freeboard:.2f} m, less than {MIN_FREEBOARD} m.")
    if changes:
        warnings.append("The flow changes regime, check the jump positions.")
    if 0.85 < froude.max() < 1.0:
        warnings.append(f"Froude number {froude.max():.3f} is close to critical, the surface may be unstable.")

    return ProfileSummary(
        discharge=discharge,
        start_station=points[0].station,
        end_station=points[-1].station,
        station_count=n,
        min_depth=float(depth.min()),
        max_depth=float(depth.max()),
        mean_depth=float(depth.mean()),
        min_velocity=float(velocity.min()),
        max_velocity=float(velocity.max()),
        mean_velocity=float(velocity.mean()),
        min_froude=float(froude.min()),
        max_froude=float(froude.max()),
        mean_froude=float(froude.mean()),
        inlet_energy=points[0].energy_grade,
        outlet_energy=points[-1].energy_grade,
        total_head_loss=total,
        friction_loss=friction,
        transition_loss=transition,
        structure_loss=total - friction - transition,
        min_freeboard=min_freeboard,
        max_shear_stress=max(p.shear_stress for p in points),
        mean_reynolds=float(np.mean([p.reynolds for p in points])),
        critical_stations=tuple(p.station for p in points if p.regime is FlowRegime.CRITICAL),
        has_regime_change=changes,
        predominant_regime=predominant,
        subcritical_percentage=100.0 * sub / n,
        supercritical_percentage=100.0 * sup / n,
        warnings=tuple(warnings),
    )


@dataclass(frozen=True)
class WaterSurfaceProfile:
    """Composite water-surface profile of a channel system."""
    name: str
    reaches: Tuple[ReachProfile, ...]
    elements: Tuple[ElementResult, ...] = ()
    tributaries: Tuple["WaterSurfaceProfile", ...] = ()
    warnings: Tuple[str, ...] = ()

    @property
    def points(self) -> Tuple[ProfilePoint, ...]:
        """Points of the main alignment in station order."""
        return tuple(p for reach in self.reaches for p in reach.points)

    @property
    def stations(self) -> np.ndarray:
        return np.array([p.station for p in self.points], dtype=np.float64)

    @property
    def depths(self) -> np.ndarray:
        return np.array([p.depth for p in self.points], dtype=np.float64)

    @property
    def water_surface(self) -> np.ndarray:
        return np.array([p.water_surface for p in self.points], dtype=np.float64)

    @property
    def energy_grade(self) -> np.ndarray:
        return np.array([p.energy_grade for p in self.points], dtype=np.float64)

    @property
    def jumps(self) -> Tuple[JumpLocation, ...]:
        """Jumps inside reaches and jumps forced by drop basins."""
        found = [r.jump for r in self.reaches if r.jump is not None]
        found += [e.drop.jump for e in self.elements if e.drop is not None and e.drop.jump is not None]
        return tuple(sorted(found, key=lambda j: j.station if j.station is not None else np.inf))

    def reach(self, reach_id: str) -> ReachProfile:
        for profile in self.reaches:
            if profile.reach_id == reach_id:
                return profile
        for tributary in self.tributaries:
            try:
                return tributary.reach(reach_id)
            except KeyError:
                continue
        raise KeyError(reach_id)

    def element(self, element_id: str) -> ElementResult:
        for result in self.elements + tuple(e for t in self.tributaries for e in t.elements):
            if result.element_id == element_id:
                return result
        raise KeyError(element_id)

    def to_dataframe(self) -> pd.DataFrame:
        """All points, tributaries included, one row per point."""
        points = list(self.points)
        for tributary in self.tributaries:
            points.extend(tributary.points)
        return _frame(points)

    def summary(self) -> ProfileSummary:
        """Overall figures of the main alignment, tributaries excluded.

        The discharge reported is the outflow of the last reach.
        """
        return _summarize(self.points, self.reaches[-1].discharge)


## Router
## ------------------------------------------------------------------

@dataclass
class _ReachState:
    """Working buffer of one reach during a router call."""
    reach: ChannelReach
    discharge: float
    nodes: Tuple[Node, ...]
    cache: DepthCache
    slope_class: Optional[SlopeClass]
    normal_depth: Optional[float]
    critical_depth: float
    subcritical: Tuple[ProfilePoint, ...] = ()
    supercritical: Tuple[ProfilePoint, ...] = ()
    analysis: Optional[JumpAnalysis] = None

    @property
    def inlet(self) -> Node:
        return self.nodes[0]

    @property
    def outlet(self) -> Node:
        return self.nodes[-1]

    @property
    def steep(self) -> bool:
        return self.slope_class in (SlopeClass.STEEP, SlopeClass.CRITICAL)

    @property
    def sub_inlet(self) -> Optional[ProfilePoint]:
        """Subcritical point at the inlet, if the subcritical profile gets there."""
        if self.subcritical and len(self.subcritical) == len(self.nodes):
            return self.subcritical[0]
        return None

    def critical_at(self, node: Node) -> float:
        return self.cache.critical(node.section)

    def profile(self) -> ReachProfile:
        return ReachProfile(
            reach_id=self.reach.id,
            discharge=self.discharge,
            slope_class=self.slope_class,
            normal_depth=self.normal_depth,
            critical_depth=self.critical_depth,
            outcome=self.analysis.outcome,
            points=self.analysis.points,
            jump=self.analysis.jump,
        )


def _chain_discharges(name: str, reaches: list, between: list, discharge: Optional[float],
                      inflows: Dict[str, List[float]]) -> List[float]:
    """Discharge of every reach, adding inflows at each junction."""
    Q = discharge if discharge is not None else reaches[0].discharge
    if Q is None:
        raise NotFullyDefined(f"No discharge is given for '{name}'.",
                              remediation="set the system or first reach discharge")

    flows = []
    for i, reach in enumerate(reaches):
        element = between[i - 1] if i > 0 else None
        if isinstance(element, Junction):
            Q = element.outflow([Q] + inflows.get(element.id, []))

        if reach.discharge is not None and abs(reach.discharge - Q) > JUNCTION_TOLERANCE:
            if isinstance(element, Junction):
                raise JunctionUnbalanced(
                    f"Reach discharge {reach.discharge:.4f} m3/s differs from the junction outflow {Q:.4f} m3/s.",
                    reach_id=reach.id, element_id=element.id)
            raise OutOfRange(f"Reach discharge {reach.discharge:.4f} m3/s differs from the inflow {Q:.4f} m3/s.",
                             reach_id=reach.id, remediation="place a junction where the discharge changes")
        flows.append(Q)

    return flows


class NetworkRouter:
    """
    Computes the steady water-surface profile of a ``ChannelSystem``.

    The router keeps no state between calls: every call builds its own
    solver, depth caches and working buffers, so running it twice on the
    same system gives identical results.

    Parameters
    ----------
    config : GvfConfig, optional
        Solver settings shared by every reach.
    progress : callable, optional
        ``progress(stage, fraction)`` polled once per reach and once per
        GVF step. Returning True cancels the computation.

    """
    def __init__(self, config: GvfConfig = None, progress: ProgressCallback = None):
        self.config = config or GvfConfig()
        self.progress = progress

    def run(self, system: ChannelSystem) -> WaterSurfaceProfile:
        """
        Routes the system.

        Parameters
        ----------
        system : ChannelSystem
            The channel system.

        Returns
        -------
        WaterSurfaceProfile
            Composite profile of the main alignment, with one nested
            profile per tributary.

        Raises
        ------
        UnderDetermined
            If a reach has no control at either end.
        OverDetermined
            If an explicit inlet depth contradicts the subcritical profile.
        JunctionUnbalanced
            If a junction does not conserve mass.
        Cancelled
            If the progress callback asks to stop.

        """
        solver = StandardStepSolver(self.config, self.progress)
        run = _Run(self, solver, total=len(system.reaches) + sum(len(t.reaches) for t in system.tributaries))
        logger.info("Routing system '%s' with %d reaches", system.name, run.total)

        inflows: Dict[str, List[float]] = {}
        tributary_flows = {}
        for tributary in system.tributaries:
            reaches, between, _ = _parse_chain(tributary.items)
            flows = _chain_discharges(tributary.id, reaches, between, tributary.discharge, {})
            tributary_flows[tributary.id] = flows
            inflows.setdefault(tributary.junction_id, []).append(flows[-1])

        reaches, between, outlet = _parse_chain(system.items)
        flows = _chain_discharges(system.name, reaches, between, system.discharge, inflows)
        states, elements = run.route(reaches, between, outlet, flows,
                                     system.downstream_control, system.upstream_control)

        joined = []
        for tributary in system.tributaries:
            j = next(k for k, e in enumerate(between) if e is not None and e.id == tributary.junction_id)
            junction = between[j]
            inlet = states[j + 1].analysis.points[0]
            control = DownstreamControl.known_wse(junction.upstream_wse(inlet.water_surface, inlet.velocity))
            logger.info("Tributary '%s' joins '%s' at WSE %.3f m", tributary.id, junction.id, control.wse)

            t_reaches, t_between, _ = _parse_chain(tributary.items)
            t_states, t_elements = run.route(t_reaches, t_between, None, tributary_flows[tributary.id],
                                             control, tributary.upstream_control)
            joined.append(WaterSurfaceProfile(
                name=tributary.id,
                reaches=tuple(s.profile() for s in t_states),
                elements=tuple(t_elements),
            ))

        logger.info("System '%s' routed with %d warning(s)", system.name, len(run.warnings))

        return WaterSurfaceProfile(
            name=system.name,
            reaches=tuple(s.profile() for s in states),
            elements=tuple(elements),
            tributaries=tuple(joined),
            warnings=tuple(run.warnings),
        )


class _Run:
    """Working state of one ``NetworkRouter.run`` call."""

    def __init__(self, router: NetworkRouter, solver: StandardStepSolver, total: int):
        self.config = router.config
        self.progress = router.progress
        self.solver = solver
        self.locator = JumpLocator(solver)
        self.total = max(total, 1)
        self.done = 0
        self.warnings: List[str] = []

    def warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)

    def route(self, reaches, between, outlet, flows, downstream_control, upstream_control):
        states = []
        for reach, Q in zip(reaches, flows):
            cache = DepthCache(Q)
            nodes = self.solver.plan(reach)
            try:
                slope_class, yn, yc = self.solver.reach_class(reach, Q, cache)
            except HydraulicError as err:
                raise err.annotate(reach_id=reach.id)
            states.append(_ReachState(reach, Q, nodes, cache, slope_class, yn, yc))
            logger.debug("Reach '%s': Q = %.4f, class %s, Yn = %s, Yc = %.4f", reach.id, Q,
                         slope_class.value if slope_class else None, yn, yc)

        last = states[-1]
        if downstream_control is not None and downstream_control.kind is ControlKind.KNOWN_WSE \
                and downstream_control.wse > last.reach.upstream_bed:
            last.slope_class = SlopeClass.TIDAL
            logger.info("Reach '%s' is drowned by the outlet level", last.reach.id)

        notes = {}

        # subcritical pass, outlet to inlet
        for i in reversed(range(len(states))):
            state = states[i]
            poll(self.progress, f"reach {state.reach.id}", self.done / self.total)
            self.done += 1

            if i == len(states) - 1:
                try:
                    depth = self._outlet_depth(state, downstream_control, outlet)
                except HydraulicError as err:
                    raise err.annotate(reach_id=state.reach.id,
                                       element_id=outlet.id if outlet is not None else None)
            else:
                element = between[i]
                try:
                    depth = self._element_upstream_depth(element, state, states[i + 1], notes)
                except HydraulicError as err:
                    raise err.annotate(element_id=element.id if element is not None else None,
                                       reach_id=state.reach.id)

            if depth is not None:
                state.subcritical = self._integrate(state, depth, IntegrationDirection.UPSTREAM)

        # supercritical pass and jumps, inlet to outlet
        elements = []
        for i, state in enumerate(states):
            if i == 0:
                try:
                    depth = self._inlet_control_depth(state, upstream_control)
                except HydraulicError as err:
                    raise err.annotate(reach_id=state.reach.id)
            else:
                element = between[i - 1]
                try:
                    depth = self._element_downstream_depth(element, states[i - 1], state, notes)
                except HydraulicError as err:
                    raise err.annotate(element_id=element.id if element is not None else None,
                                       reach_id=state.reach.id)

            if depth is not None:
                state.supercritical = self._integrate(state, depth, IntegrationDirection.DOWNSTREAM)

            if not state.subcritical and not state.supercritical:
                raise UnderDetermined(f"Reach '{state.reach.id}' has no control at either end.",
                                      reach_id=state.reach.id)

            try:
                state.analysis = self.locator.locate(state.reach, state.discharge, state.nodes,
                                                     state.supercritical, state.subcritical, state.cache)
            except HydraulicError as err:
                raise err.annotate(reach_id=state.reach.id)

            if state.analysis.outcome is JumpOutcome.SWEPT_OUT and state.subcritical:
                self.warn(f"The jump in reach '{state.reach.id}' is swept out past its outlet.")
            elif state.analysis.outcome is JumpOutcome.SUBMERGED and len(state.supercritical) > 1:
                self.warn(f"The jump in reach '{state.reach.id}' is submerged at its inlet.")

            if i > 0 and between[i - 1] is not None:
                elements.append(self._element_result(between[i - 1], states[i - 1], state, notes))

        if outlet is not None:
            elements.append(self._outlet_result(outlet, states[-1]))

        return states, elements

    def _integrate(self, state: _ReachState, depth: float, direction: IntegrationDirection):
        try:
            return self.solver.integrate(state.reach, state.discharge, depth, direction,
                                         nodes=state.nodes, cache=state.cache)
        except CriticalDepthCrossing as err:
            logger.debug("Reach '%s': %s profile stops at critical depth near station %s",
                         state.reach.id, direction.value, err.station)
            return err.partial

    ## Subcritical pass

    def _outlet_depth(self, state: _ReachState, control: Optional[DownstreamControl],
                      outlet: Optional[FreeOverfall]) -> Optional[float]:
        node = state.outlet
        yc = state.critical_at(node)

        if outlet is not None:
            brink = outlet.brink_depth(node.section, state.discharge)
            self.warn(f"Free overfall '{outlet.id}' is controlled by Yc = {yc:.3f} m, the brink depth "
                      f"is reported as {brink:.3f} m and the true brink depth is about 0.72 Yc.")
            return yc

        if control is None:
            return None

        if control.kind is ControlKind.FREE_OVERFALL:
            self.warn(f"Free overfall at the outlet of '{state.reach.id}' is controlled by Yc, "
                      f"the true brink depth is about 0.72 Yc.")

        depth = control.depth_at(node.section, node.bed_elevation, state.discharge, node.slope)
        if depth < yc * (1 - 1e-9):
            self.warn(f"The downstream control of reach '{state.reach.id}' is ignored, "
                      f"its depth {depth:.3f} m is supercritical.")
            return None
        return depth

    def _continuity_depth(self, node: Node, discharge: float, energy: float, yc: float) -> float:
        """Subcritical depth carrying ``energy`` or Yc when the energy is too low."""
        if energy <= specific_energy(node.section, discharge, yc):
            return yc
        return subcritical_depth(node.section, discharge, energy)

    def _element_upstream_depth(self, element, up: _ReachState, down: _ReachState, notes: dict):
        """Depth at the outlet of ``up`` given the subcritical flow in ``down``."""
        node = up.outlet
        Q = up.discharge
        yc = up.critical_at(node)
        z = node.bed_elevation
        tail = down.sub_inlet

        if isinstance(element, Weir):
            crest = z + element.crest_height
            tail_head = tail.water_surface - crest if tail is not None and tail.water_surface > crest else None
            head = element.head(Q, tail_head)
            notes[element.id] = (head, tail_head)
            logger.debug("Weir '%s': H = %.4f m", element.id, head)
            return max(element.crest_height + head, yc)

        if isinstance(element, Gate):
            tail_depth = tail.water_surface - z if tail is not None and tail.water_surface > z else None
            if element.controls(Q):
                depth = element.upstream_depth(Q, tail_depth)
                notes[element.id] = (depth, tail_depth)
                logger.debug("Gate '%s': H1 = %.4f m", element.id, depth)
                return max(depth, yc)
            notes[element.id] = None
            logger.debug("Gate '%s' is clear of the flow", element.id)

        if isinstance(element, (Drop, FreeOverfall)):
            if tail is not None and tail.water_surface - z > yc:
                logger.debug("Drop '%s' is drowned by the tailwater", element.id)
                return tail.water_surface - z
            return yc

        if tail is None:
            return yc

        if isinstance(element, Junction):
            return max(element.upstream_wse(tail.water_surface, tail.velocity) - z, yc)

        return self._continuity_depth(node, Q, tail.energy_grade - z, yc)

    ## Supercritical pass

    def _supercritical_depth(self, state: _ReachState, energy: float) -> Optional[float]:
        """Supercritical inflow depth carrying ``energy`` at the inlet of ``state``."""
        node = state.inlet
        yc = state.critical_at(node)
        Ec = specific_energy(node.section, state.discharge, yc)
        if energy < Ec * (1 - 1e-9):
            return None
        if energy <= Ec * (1 + 1e-9):
            return yc if state.steep else None
        return supercritical_depth(node.section, state.discharge, energy)

    def _inlet_control_depth(self, state: _ReachState, control: Optional[UpstreamControl]):
        node = state.inlet
        yc = state.critical_at(node)

        if control is None or control.kind is ControlKind.CRITICAL:
            return yc if state.steep else None

        depth = control.depth_at(node.section, node.bed_elevation, state.discharge, node.slope)
        if depth < yc * (1 - 1e-9):
            return depth

        if control.kind in (ControlKind.KNOWN_DEPTH, ControlKind.KNOWN_WSE):
            inlet = state.sub_inlet
            if inlet is None:
                self.warn(f"The upstream control of reach '{state.reach.id}' is ignored, "
                          f"no subcritical profile reaches the inlet.")
            elif abs(inlet.depth - depth) > self.config.wse_tolerance:
                raise OverDetermined(
                    f"The inlet depth {depth:.3f} m disagrees with the computed {inlet.depth:.3f} m.",
                    reach_id=state.reach.id, station=node.station)
        return None

    def _element_downstream_depth(self, element, up: _ReachState, down: _ReachState, notes: dict):
        """Supercritical depth at the inlet of ``down`` leaving ``element``."""
        out = up.analysis.points[-1]
        z_up = up.outlet.bed_elevation
        z = down.inlet.bed_elevation
        tail = down.sub_inlet

        if isinstance(element, Gate) and notes.get(element.id) is not None:
            tail_depth = tail.water_surface - z_up if tail is not None and tail.water_surface > z_up else None
            if element.is_submerged(down.discharge, tail_depth):
                return None
            depth = element.vena_contracta + z_up - z
            if depth <= 0 or depth >= down.critical_at(down.inlet):
                return None
            return depth

        if isinstance(element, Weir):
            head, tail_head = notes[element.id]
            if element.is_submerged(head, tail_head):
                return None
            return self._supercritical_depth(down, z_up + element.crest_height + head - z)

        if isinstance(element, (Drop, FreeOverfall)):
            height = element.height if element.height is not None else z_up - z
            result = element.evaluate(up.outlet.section, down.inlet.section, down.discharge,
                                      height=height,
                                      tailwater_depth=tail.depth if tail is not None else None,
                                      upstream_energy=out.energy_grade - z_up,
                                      station=down.inlet.station)
            notes[element.id] = result
            if result.condition == 'free' and tail is not None:
                self.warn(f"The tailwater below drop '{element.id}' is too low, the jump moves downstream.")
            if result.condition in ('submerged', 'forced'):
                return None
            return result.toe_depth

        if out.depth > out.critical_depth * (1 + 1e-6):
            return None
        return self._supercritical_depth(down, out.energy_grade - z)

    ## Element reports

    def _element_result(self, element, up: _ReachState, down: _ReachState, notes: dict) -> ElementResult:
        out = up.analysis.points[-1]
        inn = down.analysis.points[0]
        head = None
        drop = None

        if isinstance(element, Weir):
            head, tail_head = notes[element.id]
            condition = 'submerged' if element.is_submerged(head, tail_head) else 'free'
        elif isinstance(element, Gate):
            if notes.get(element.id) is None:
                condition = 'inactive'
            else:
                head, tail_depth = notes[element.id]
                condition = 'submerged' if element.is_submerged(down.discharge, tail_depth) else 'free'
        elif isinstance(element, (Drop, FreeOverfall)):
            drop = notes[element.id]
            condition = drop.condition
        else:
            condition = 'continuity'

        return ElementResult(
            element_id=element.id,
            kind=element.kind,
            station=inn.station,
            discharge=down.discharge,
            upstream_depth=out.depth,
            upstream_wse=out.water_surface,
            downstream_depth=inn.depth,
            downstream_wse=inn.water_surface,
            condition=condition,
            head=head,
            drop=drop,
        )

    def _outlet_result(self, outlet: FreeOverfall, state: _ReachState) -> ElementResult:
        out = state.analysis.points[-1]
        drop = None
        if outlet.height is not None:
            drop = outlet.evaluate(state.outlet.section, state.outlet.section, state.discharge,
                                   upstream_energy=out.energy_grade - state.outlet.bed_elevation,
                                   station=out.station)
        return ElementResult(
            element_id=outlet.id,
            kind=outlet.kind,
            station=out.station,
            discharge=state.discharge,
            upstream_depth=out.depth,
            upstream_wse=out.water_surface,
            downstream_depth=None,
            downstream_wse=None,
            condition='free',
            head=None,
            drop=drop,
        )
