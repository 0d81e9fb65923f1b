import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

import numpy as np

from .cross_section import CrossSection, interpolate_sections
from .exceptions import InvalidGeometry, OutOfRange

logger = logging.getLogger(__name__)


class TransitionPolicy(Enum):
    """How a reach passes between two different station sections.

    INTERPOLATE blends the geometry linearly along the stations. ABRUPT keeps
    each station's section up to the next station and changes it there over
    a zero-length transition balanced by energy alone.
    """
    INTERPOLATE = 'interpolate'
    ABRUPT = 'abrupt'


@dataclass(frozen=True)
class StationSection:
    """A section placed on the alignment.

    Attributes:
        station (float): Distance along the alignment (m), increasing downstream.
        bed_elevation (float): Elevation of the section's lowest point (m).
        section (CrossSection): The section geometry.
        manning_n (float, optional): Local roughness that overrides the section's n.
    """
    station: float
    bed_elevation: float
    section: CrossSection
    manning_n: Optional[float] = None

    def __post_init__(self):
        if self.manning_n is not None and self.manning_n <= 0:
            raise InvalidGeometry(f"Manning's n must be positive, got {self.manning_n}.")

    @property
    def effective_section(self) -> CrossSection:
        if self.manning_n is None:
            return self.section
        return self.section.with_roughness(self.manning_n)


@dataclass(frozen=True)
class Node:
    """A computational point of a reach: one standard step ends here."""
    station: float
    bed_elevation: float
    section: CrossSection
    slope: float


@dataclass(frozen=True)
class ChannelReach:
    """
    Represents a reach: a run of stations carrying a single discharge.
    """
    id: str
    stations: Tuple[StationSection, ...]
    discharge: Optional[float] = None
    transition: TransitionPolicy = TransitionPolicy.INTERPOLATE

    def __post_init__(self):
        stations = tuple(self.stations)
        object.__setattr__(self, 'stations', stations)

        if len(stations) < 2:
            raise InvalidGeometry(f"Reach '{self.id}' needs at least 2 stations.", reach_id=self.id)

        chainages = np.array([s.station for s in stations], dtype=np.float64)
        if not np.all(np.diff(chainages) > 0):
            raise InvalidGeometry("Stations must be strictly increasing.", reach_id=self.id)

        if self.discharge is not None and self.discharge <= 0:
            raise OutOfRange(f"Reach discharge must be positive, got {self.discharge}.", reach_id=self.id)

        if not isinstance(self.transition, TransitionPolicy):
            object.__setattr__(self, 'transition', TransitionPolicy(self.transition))

    @classmethod
    def prismatic(cls, id: str, section: CrossSection, length: float, slope: float,
                  start_station: float = 0.0, upstream_bed_elevation: float = None,
                  discharge: float = None) -> "ChannelReach":
        """Builds a reach of constant section and slope from its two end stations.

        Args:
            id (str): Reach identifier.
            section (CrossSection): The section.
            length (float): Reach length (m).
            slope (float): Bed slope, positive when the bed falls downstream.
            start_station (float): Station of the upstream end.
            upstream_bed_elevation (float): Bed elevation at the upstream end.
                Defaults to length * slope so the outlet sits at zero.
            discharge (float): Reach discharge.
        """
        if length <= 0:
            raise InvalidGeometry(f"Reach length must be positive, got {length}.", reach_id=id)
        if upstream_bed_elevation is None:
            upstream_bed_elevation = length * slope

        return cls(
            id=id,
            stations=(
                StationSection(start_station, upstream_bed_elevation, section),
                StationSection(start_station + length, upstream_bed_elevation - slope * length, section),
            ),
            discharge=discharge,
        )

    @property
    def start(self) -> float:
        return self.stations[0].station

    @property
    def end(self) -> float:
        return self.stations[-1].station

    @property
    def length(self) -> float:
        return self.end - self.start

    @property
    def upstream_bed(self) -> float:
        return self.stations[0].bed_elevation

    @property
    def downstream_bed(self) -> float:
        return self.stations[-1].bed_elevation

    @property
    def mean_slope(self) -> float:
        return (self.upstream_bed - self.downstream_bed) / self.length

    def _interval(self, x: float) -> int:
        """Index i of the station interval [x_i, x_i+1] holding x."""
        if x < self.start - 1e-9 or x > self.end + 1e-9:
            raise OutOfRange(f"Station {x} lies outside reach '{self.id}'.", reach_id=self.id)
        chainages = [s.station for s in self.stations]
        i = int(np.searchsorted(chainages, x, side='right')) - 1
        return min(max(i, 0), len(self.stations) - 2)

    def bed_elevation_at(self, x: float) -> float:
        self._interval(x)
        return float(np.interp(x, [s.station for s in self.stations],
                               [s.bed_elevation for s in self.stations]))

    def slope_at(self, x: float) -> float:
        i = self._interval(x)
        a, b = self.stations[i], self.stations[i + 1]
        return (a.bed_elevation - b.bed_elevation) / (b.station - a.station)

    def section_at(self, x: float) -> CrossSection:
        """Section at station x under the reach's transition policy."""
        i = self._interval(x)
        a, b = self.stations[i], self.stations[i + 1]

        if self.transition is TransitionPolicy.ABRUPT:
            return b.effective_section if x >= b.station else a.effective_section

        t = (x - a.station) / (b.station - a.station)
        return interpolate_sections(a.effective_section, b.effective_section, t)

    def node_at(self, x: float, upstream_side: bool = True) -> Node:
        """Node at an arbitrary station.

        At a station where an abrupt transition happens, ``upstream_side``
        picks the section that ends there rather than the one that starts.
        """
        i = self._interval(x)
        a, b = self.stations[i], self.stations[i + 1]
        if self.transition is TransitionPolicy.ABRUPT:
            section = a.effective_section if (x < b.station or upstream_side) else b.effective_section
        else:
            section = self.section_at(x)
        return Node(float(x), self.bed_elevation_at(x), section, self.slope_at(x))

    def nodes(self, step: float) -> Tuple[Node, ...]:
        """Computational nodes of the reach in downstream order.

        Each station interval is split into equal steps no longer than ``step``.
        An abrupt section change produces two nodes at the same station.
        """
        nodes = []
        for i in range(len(self.stations) - 1):
            a, b = self.stations[i], self.stations[i + 1]
            length = b.station - a.station
            count = max(1, int(np.ceil(length / step - 1e-9)))
            slope = (a.bed_elevation - b.bed_elevation) / length

            for k in range(count + 1):
                if k == 0 and nodes:
                    previous = nodes[-1]
                    section = a.effective_section if self.transition is TransitionPolicy.ABRUPT \
                        else previous.section
                    if section == previous.section:
                        continue
                    nodes.append(Node(a.station, a.bed_elevation, section, slope))
                    continue

                x = a.station + length * k / count
                z = a.bed_elevation + (b.bed_elevation - a.bed_elevation) * k / count
                if self.transition is TransitionPolicy.ABRUPT:
                    section = a.effective_section
                else:
                    section = interpolate_sections(a.effective_section, b.effective_section, k / count)
                nodes.append(Node(float(x), float(z), section, slope))

        last = self.stations[-1]
        if last.effective_section != nodes[-1].section:
            nodes.append(Node(last.station, last.bed_elevation, last.effective_section, nodes[-1].slope))

        logger.debug("Reach '%s' planned with %d nodes", self.id, len(nodes))
        return tuple(nodes)
