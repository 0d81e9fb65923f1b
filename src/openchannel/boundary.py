import logging
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Optional, Sequence, Tuple

from .cross_section import CrossSection
from .exceptions import InvalidGeometry, NotFullyDefined, OutOfRange
from .flow import critical_depth, normal_depth
from .rating_curve import RatingCurve
from .structures import BrinkDepthPolicy

logger = logging.getLogger(__name__)


class ControlKind(Enum):
    CRITICAL = 'critical'
    NORMAL = 'normal'
    KNOWN_DEPTH = 'known_depth'
    KNOWN_WSE = 'known_wse'
    RATING = 'rating'
    FREE_OVERFALL = 'free_overfall'


@dataclass(frozen=True)
class Control:
    """A boundary condition fixing the depth at one end of a reach.

    Attributes:
        kind (ControlKind): Condition type.
        depth (float, optional): Depth for KNOWN_DEPTH.
        wse (float, optional): Water-surface elevation for KNOWN_WSE.
        rating_curve (RatingCurve, optional): Curve for RATING.
        reference (str): Whether the rating stage is a 'depth' above the bed
            or a 'wse'.
        brink_policy (BrinkDepthPolicy): Reported brink depth for FREE_OVERFALL.
    """
    kind: ControlKind
    depth: Optional[float] = None
    wse: Optional[float] = None
    rating_curve: Optional[RatingCurve] = None
    reference: str = 'depth'
    brink_policy: BrinkDepthPolicy = BrinkDepthPolicy.CRITICAL

    allowed: ClassVar[Tuple[ControlKind, ...]] = tuple(ControlKind)

    def __post_init__(self):
        if not isinstance(self.kind, ControlKind):
            try:
                object.__setattr__(self, 'kind', ControlKind(self.kind))
            except ValueError:
                raise NotFullyDefined(f"Invalid boundary condition {self.kind!r}.") from None
        if self.kind not in self.allowed:
            raise NotFullyDefined(f"Invalid boundary condition {self.kind.value!r} at this end.")

        if self.kind is ControlKind.KNOWN_DEPTH and (self.depth is None or self.depth <= 0):
            raise InvalidGeometry("A known-depth control needs a positive depth.")
        if self.kind is ControlKind.KNOWN_WSE and self.wse is None:
            raise NotFullyDefined("A known-WSE control needs a water-surface elevation.")
        if self.kind is ControlKind.RATING:
            if self.rating_curve is None:
                raise NotFullyDefined("A rating control needs a rating curve.")
            if self.reference not in ('depth', 'wse'):
                raise NotFullyDefined("Rating reference must be 'depth' or 'wse'.")

    @classmethod
    def critical(cls):
        return cls(ControlKind.CRITICAL)

    @classmethod
    def normal(cls):
        return cls(ControlKind.NORMAL)

    @classmethod
    def known_depth(cls, depth: float):
        return cls(ControlKind.KNOWN_DEPTH, depth=depth)

    @classmethod
    def known_wse(cls, wse: float):
        return cls(ControlKind.KNOWN_WSE, wse=wse)

    def depth_at(self, section: CrossSection, bed_elevation: float, discharge: float, slope: float) -> float:
        """Depth imposed by the control at a section.

        Args:
            section (CrossSection): Section at the boundary.
            bed_elevation (float): Bed elevation at the boundary.
            discharge (float): Discharge through the boundary.
            slope (float): Local bed slope, used by NORMAL.

        Raises:
            SubCriticalSlopeRequired: NORMAL on a non-positive slope.
            OutOfRange: RATING outside its table, or a WSE below the bed.
        """
        if self.kind in (ControlKind.CRITICAL, ControlKind.FREE_OVERFALL):
            return critical_depth(section, discharge)

        if self.kind is ControlKind.NORMAL:
            return normal_depth(section, discharge, slope)

        if self.kind is ControlKind.KNOWN_DEPTH:
            return self.depth

        if self.kind is ControlKind.KNOWN_WSE:
            depth = self.wse - bed_elevation
        else:
            stage = self.rating_curve.stage(discharge)
            depth = stage - bed_elevation if self.reference == 'wse' else stage

        if depth <= 0:
            raise OutOfRange(f"The control level lies {-depth:.3f} m below the bed.",
                             remediation="check the control elevation against the bed")
        return depth


@dataclass(frozen=True)
class DownstreamControl(Control):
    """Control at the outlet of a system: critical, normal, known depth or WSE,
    rating curve or free overfall."""

    @classmethod
    def rating(cls, curve: Sequence[Tuple[float, float]], reference: str = 'depth'):
        """Tabulated (Q, H) rating."""
        discharges = [q for q, _ in curve]
        stages = [h for _, h in curve]
        return cls(ControlKind.RATING, rating_curve=RatingCurve(discharges, stages), reference=reference)

    @classmethod
    def free_overfall(cls, brink_policy: BrinkDepthPolicy = BrinkDepthPolicy.CRITICAL):
        return cls(ControlKind.FREE_OVERFALL, brink_policy=brink_policy)


@dataclass(frozen=True)
class UpstreamControl(Control):
    """Control at the inlet of a system: critical, normal, known depth or WSE."""

    allowed: ClassVar[Tuple[ControlKind, ...]] = (ControlKind.CRITICAL, ControlKind.NORMAL,
                                                ControlKind.KNOWN_DEPTH, ControlKind.KNOWN_WSE)
