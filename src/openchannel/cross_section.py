import dataclasses
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import ClassVar, Optional, Tuple

import numpy as np

from . import hydraulics
from . import settings
from .exceptions import InvalidGeometry, NotFullyDefined


@dataclass(frozen=True)
class HydraulicProperties:
    """Geometric properties of the flow area at one depth."""
    depth: float
    area: float
    wetted_perimeter: float
    top_width: float
    hydraulic_radius: float
    hydraulic_depth: float
    centroid_depth: float


class CrossSection(ABC):
    """
    Abstract base class of the section catalog.

    Every shape is a frozen dataclass tagged by ``kind``. Subclasses supply the
    closed-form primitives A(y), P(y), T(y), the first moment of area about
    the free surface and the maximum admissible depth; everything else
    (hydraulic radius, conveyance and their derivatives) is shared here.

    Depths are measured from the lowest point of the section.
    """
    kind: ClassVar[str] = None

    ## ------------------------------------------------------------------
    ## Abstract Methods (Must be implemented by subclasses)
    ## ------------------------------------------------------------------

    @property
    @abstractmethod
    def max_depth(self) -> float:
        """Largest admissible depth."""

    @abstractmethod
    def _area(self, y: float) -> float:
        pass

    @abstractmethod
    def _wetted_perimeter(self, y: float) -> float:
        pass

    @abstractmethod
    def _top_width(self, y: float) -> float:
        pass

    @abstractmethod
    def _first_moment(self, y: float) -> float:
        """First moment of the flow area about the free surface."""

    ## ------------------------------------------------------------------
    ## Concrete Methods (Shared functionality)
    ## ------------------------------------------------------------------

    def check_depth(self, y: float) -> float:
        """Validate a depth and return it as a float.

        Raises:
            InvalidGeometry: If y is negative or above the maximum depth.
        """
        y = float(y)
        if not np.isfinite(y) or y < 0.0:
            raise InvalidGeometry(f"Depth must be non-negative, got {y}.")
        if y > self.max_depth * (1.0 + 1e-9):
            raise InvalidGeometry(
                f"Depth {y:.4f} m exceeds the maximum depth {self.max_depth:.4f} m "
                f"of the {self.kind} section.")
        return y

    def area(self, y: float) -> float:
        """Return wetted area (A)."""
        y = self.check_depth(y)
        return 0.0 if y == 0.0 else self._area(y)

    def wetted_perimeter(self, y: float) -> float:
        """Return wetted perimeter (P)."""
        y = self.check_depth(y)
        return 0.0 if y == 0.0 else self._wetted_perimeter(y)

    def top_width(self, y: float) -> float:
        """Return top width (T)."""
        y = self.check_depth(y)
        return self._top_width(y)

    def first_moment(self, y: float) -> float:
        """Return A times the centroid depth below the free surface."""
        y = self.check_depth(y)
        return 0.0 if y == 0.0 else self._first_moment(y)

    def hydraulic_radius(self, y: float) -> float:
        """Return hydraulic radius (R)."""
        P = self.wetted_perimeter(y)
        return 0.0 if P == 0.0 else self.area(y) / P

    def hydraulic_depth(self, y: float) -> float:
        """Return hydraulic depth (D = A/T)."""
        T = self.top_width(y)
        return 0.0 if T == 0.0 else self.area(y) / T

    def centroid_depth(self, y: float) -> float:
        """Return the depth of the centroid of the flow area below the surface."""
        A = self.area(y)
        return 0.0 if A == 0.0 else self.first_moment(y) / A

    def properties(self, y: float) -> HydraulicProperties:
        y = self.check_depth(y)
        if y == 0.0:
            return HydraulicProperties(0.0, 0.0, 0.0, self._top_width(0.0), 0.0, 0.0, 0.0)

        A = self._area(y)
        P = self._wetted_perimeter(y)
        T = self._top_width(y)
        M = self._first_moment(y)

        return HydraulicProperties(
            depth=y,
            area=A,
            wetted_perimeter=P,
            top_width=T,
            hydraulic_radius=A / P if P > 0 else 0.0,
            hydraulic_depth=A / T if T > 0 else 0.0,
            centroid_depth=M / A if A > 0 else 0.0,
        )

    def dP_dy(self, y: float) -> float:
        """Derivative of wetted perimeter w.r.t. depth (central difference)."""
        y = self.check_depth(y)
        h = max(1e-6, 1e-6 * y)
        lo = max(y - h, 0.0)
        hi = min(y + h, self.max_depth)
        if hi <= lo:
            return 0.0
        return (self.wetted_perimeter(hi) - self.wetted_perimeter(lo)) / (hi - lo)

    def conveyance(self, y: float) -> float:
        """Manning conveyance K = A R^(2/3) / n."""
        A = self.area(y)
        if A == 0.0:
            return 0.0
        return hydraulics.conveyance(A=A, n=self.n, R=A / self.wetted_perimeter(y))

    def dK_dy(self, y: float) -> float:
        """Derivative of conveyance w.r.t. depth."""
        A = self.area(y)
        if A == 0.0:
            return 0.0
        return hydraulics.dK_dy(A=A, P=self.wetted_perimeter(y), T=self.top_width(y),
                                dP_dy=self.dP_dy(y), n=self.n)

    def equivalent_n(self, y: float) -> float:
        """Manning's n of the whole section, a single value for simple shapes."""
        return self.n

    def with_roughness(self, n: float) -> "CrossSection":
        """Copy of the section with another Manning's n."""
        return dataclasses.replace(self, n=n)


def _positive(name, value):
    if value is None or not np.isfinite(value) or value <= 0:
        raise InvalidGeometry(f"{name} must be positive, got {value}.")


def _non_negative(name, value):
    if value is None or not np.isfinite(value) or value < 0:
        raise InvalidGeometry(f"{name} must be non-negative, got {value}.")


## 1. Prismatic shapes
## ------------------------------------------------------------------

@dataclass(frozen=True)
class Rectangular(CrossSection):
    width: float
    n: float
    depth: Optional[float] = None

    kind: ClassVar[str] = "rectangular"

    def __post_init__(self):
        _positive("Width", self.width)
        _positive("Manning's n", self.n)
        if self.depth is not None:
            _positive("Depth", self.depth)

    @property
    def max_depth(self) -> float:
        return self.depth if self.depth is not None else settings.UNBOUNDED_DEPTH

    def _area(self, y):
        return self.width * y

    def _wetted_perimeter(self, y):
        return self.width + 2.0 * y

    def _top_width(self, y):
        return self.width

    def _first_moment(self, y):
        return 0.5 * self.width * y**2

    def dP_dy(self, y):
        return 2.0


@dataclass(frozen=True)
class Trapezoidal(CrossSection):
    """Trapezoid with side slopes z horizontal : 1 vertical.

    ``right_slope`` defaults to ``side_slope`` for a symmetric section.
    """
    bottom_width: float
    side_slope: float
    n: float
    depth: Optional[float] = None
    right_slope: Optional[float] = None

    kind: ClassVar[str] = "trapezoidal"

    def __post_init__(self):
        _positive("Bottom width", self.bottom_width)
        _non_negative("Side slope", self.side_slope)
        _positive("Manning's n", self.n)
        if self.right_slope is not None:
            _non_negative("Right side slope", self.right_slope)
        if self.depth is not None:
            _positive("Depth", self.depth)

    @property
    def slopes(self) -> Tuple[float, float]:
        zr = self.side_slope if self.right_slope is None else self.right_slope
        return self.side_slope, zr

    @property
    def max_depth(self) -> float:
        return self.depth if self.depth is not None else settings.UNBOUNDED_DEPTH

    def _area(self, y):
        zl, zr = self.slopes
        return (self.bottom_width + 0.5 * (zl + zr) * y) * y

    def _wetted_perimeter(self, y):
        zl, zr = self.slopes
        return self.bottom_width + y * (np.sqrt(1 + zl**2) + np.sqrt(1 + zr**2))

    def _top_width(self, y):
        zl, zr = self.slopes
        return self.bottom_width + (zl + zr) * y

    def _first_moment(self, y):
        zl, zr = self.slopes
        return 0.5 * self.bottom_width * y**2 + (zl + zr) * y**3 / 6.0

    def dP_dy(self, y):
        zl, zr = self.slopes
        return np.sqrt(1 + zl**2) + np.sqrt(1 + zr**2)


@dataclass(frozen=True)
class Triangular(CrossSection):
    side_slope: float
    n: float
    depth: Optional[float] = None

    kind: ClassVar[str] = "triangular"

    def __post_init__(self):
        _positive("Side slope", self.side_slope)
        _positive("Manning's n", self.n)
        if self.depth is not None:
            _positive("Depth", self.depth)

    @property
    def max_depth(self) -> float:
        return self.depth if self.depth is not None else settings.UNBOUNDED_DEPTH

    def _area(self, y):
        return self.side_slope * y**2

    def _wetted_perimeter(self, y):
        return 2.0 * y * np.sqrt(1 + self.side_slope**2)

    def _top_width(self, y):
        return 2.0 * self.side_slope * y

    def _first_moment(self, y):
        return self.side_slope * y**3 / 3.0

    def dP_dy(self, y):
        return 2.0 * np.sqrt(1 + self.side_slope**2)


@dataclass(frozen=True)
class Circular(CrossSection):
    """Part-full circular conduit flowing with a free surface."""
    diameter: float
    n: float

    kind: ClassVar[str] = "circular"

    def __post_init__(self):
        _positive("Diameter", self.diameter)
        _positive("Manning's n", self.n)

    @property
    def max_depth(self) -> float:
        return self.diameter

    def _theta(self, y):
        c = np.clip(1.0 - 2.0 * y / self.diameter, -1.0, 1.0)
        return 2.0 * np.arccos(c)

    def _area(self, y):
        theta = self._theta(y)
        return self.diameter**2 / 8.0 * (theta - np.sin(theta))

    def _wetted_perimeter(self, y):
        return 0.5 * self.diameter * self._theta(y)

    def _top_width(self, y):
        if y <= 0.0 or y >= self.diameter:
            return 0.0
        return self.diameter * np.sin(0.5 * self._theta(y))

    def _first_moment(self, y):
        r = 0.5 * self.diameter
        theta = self._theta(y)
        return self._area(y) * (y - r) + (2.0 / 3.0) * r**3 * np.sin(0.5 * theta)**3

    def dP_dy(self, y):
        s = np.sin(0.5 * self._theta(self.check_depth(y)))
        return 2.0 / max(s, 1e-12)


@dataclass(frozen=True)
class Parabolic(CrossSection):
    """Parabola y = a x^2 defined by its top width at a reference depth."""
    top_width_ref: float
    depth: float
    n: float

    kind: ClassVar[str] = "parabolic"

    def __post_init__(self):
        _positive("Top width", self.top_width_ref)
        _positive("Depth", self.depth)
        _positive("Manning's n", self.n)

    @property
    def a(self) -> float:
        return 4.0 * self.depth / self.top_width_ref**2

    @property
    def max_depth(self) -> float:
        return self.depth

    def _top_width(self, y):
        return 2.0 * np.sqrt(max(y, 0.0) / self.a)

    def _area(self, y):
        return 2.0 / 3.0 * self._top_width(y) * y

    def _wetted_perimeter(self, y):
        x0 = 0.5 * self._top_width(y)
        u = 2.0 * self.a * x0
        return x0 * np.sqrt(1 + u**2) + np.arcsinh(u) / (2.0 * self.a)

    def _first_moment(self, y):
        return self._area(y) * 0.4 * y

    def dP_dy(self, y):
        y = self.check_depth(y)
        x0 = 0.5 * self._top_width(y)
        if x0 <= 0.0:
            return 1e12
        u = 2.0 * self.a * x0
        return np.sqrt(1 + u**2) / (self.a * x0)


@dataclass(frozen=True)
class UShaped(CrossSection):
    """Semicircular invert of given radius with vertical walls."""
    radius: float
    n: float
    depth: Optional[float] = None

    kind: ClassVar[str] = "u_shaped"

    def __post_init__(self):
        _positive("Radius", self.radius)
        _positive("Manning's n", self.n)
        if self.depth is not None:
            _positive("Depth", self.depth)

    @property
    def max_depth(self) -> float:
        return self.depth if self.depth is not None else settings.UNBOUNDED_DEPTH

    @property
    def _invert(self) -> Circular:
        return Circular(diameter=2.0 * self.radius, n=self.n)

    def _area(self, y):
        r = self.radius
        if y <= r:
            return self._invert._area(y)
        return 0.5 * np.pi * r**2 + 2.0 * r * (y - r)

    def _wetted_perimeter(self, y):
        r = self.radius
        if y <= r:
            return self._invert._wetted_perimeter(y)
        return np.pi * r + 2.0 * (y - r)

    def _top_width(self, y):
        r = self.radius
        if y < r:
            return self._invert._top_width(y)
        return 2.0 * r

    def _first_moment(self, y):
        r = self.radius
        if y <= r:
            return self._invert._first_moment(y)
        half_disc = 0.5 * np.pi * r**2
        return half_disc * ((y - r) + 4.0 * r / (3.0 * np.pi)) + r * (y - r)**2

    def dP_dy(self, y):
        y = self.check_depth(y)
        if y < self.radius:
            return self._invert.dP_dy(y)
        return 2.0


## 2. Compound section (divided-channel method)
## ------------------------------------------------------------------

@dataclass(frozen=True)
class Berm:
    """A floodplain bench beside the main channel.

    Attributes:
        side (str): 'left' or 'right'.
        elevation (float): Height of the berm surface above the main channel bed.
        width (float): Horizontal width of the berm.
        n (float): Manning's n of the berm.
        slope (float): Side slope of the berm's outer wall (0 is vertical).
    """
    side: str
    elevation: float
    width: float
    n: float
    slope: float = 0.0

    def __post_init__(self):
        if self.side not in ('left', 'right'):
            raise NotFullyDefined(f"Berm side must be 'left' or 'right', got {self.side!r}.")
        _positive("Berm elevation", self.elevation)
        _positive("Berm width", self.width)
        _positive("Berm n", self.n)
        _non_negative("Berm wall slope", self.slope)


@dataclass(frozen=True)
class SubSection:
    """One conveying subsection of a compound section."""
    name: str
    area: float
    wetted_perimeter: float
    top_width: float
    dP_dy: float
    n: float

    @property
    def conveyance(self) -> float:
        if self.area <= 0.0 or self.wetted_perimeter <= 0.0:
            return 0.0
        return hydraulics.conveyance(A=self.area, n=self.n, R=self.area / self.wetted_perimeter)


@dataclass(frozen=True)
class Compound(CrossSection):
    """
    Main channel with berms, computed by the divided-channel method.

    The vertical planes rising from the main channel banks split the flow into
    subsections. The water-water interfaces are excluded from every wetted
    perimeter and each subsection conveys with its own n.
    """
    main: CrossSection
    berms: Tuple[Berm, ...] = field(default_factory=tuple)
    depth: Optional[float] = None

    kind: ClassVar[str] = "compound"

    def __post_init__(self):
        if not isinstance(self.main, (Rectangular, Trapezoidal)):
            raise NotFullyDefined("The main channel of a compound section must be rectangular or trapezoidal.")
        berms = tuple(self.berms)
        sides = [b.side for b in berms]
        if len(sides) != len(set(sides)):
            raise NotFullyDefined("A compound section accepts at most one berm per side.")
        for berm in berms:
            if berm.elevation > self.main.max_depth:
                raise NotFullyDefined(
                    f"Berm elevation {berm.elevation} m is above the main channel wall.")
        if self.depth is not None:
            _positive("Depth", self.depth)
        # left berm first
        object.__setattr__(self, 'berms', tuple(sorted(berms, key=lambda b: b.side != 'left')))

    @property
    def n(self) -> float:
        return self.main.n

    @property
    def max_depth(self) -> float:
        return self.depth if self.depth is not None else settings.UNBOUNDED_DEPTH

    def _main_slope(self, side):
        if isinstance(self.main, Trapezoidal):
            zl, zr = self.main.slopes
            return zl if side == 'left' else zr
        return 0.0

    def subsections(self, y: float) -> list:
        """Split the flow area at depth y into conveying subsections."""
        y = self.check_depth(y)
        if y == 0.0:
            return []

        A = self.main._area(y)
        P = self.main._wetted_perimeter(y)
        T = self.main._top_width(y)
        dP = self.main.dP_dy(y)

        parts = []
        for berm in self.berms:
            d = y - berm.elevation
            if d <= 0.0:
                continue
            z = self._main_slope(berm.side)
            A -= 0.5 * z * d**2
            P -= d * np.sqrt(1 + z**2)
            T -= z * d
            dP -= np.sqrt(1 + z**2)
            parts.append(SubSection(
                name=f"{berm.side}_berm",
                area=berm.width * d + 0.5 * berm.slope * d**2,
                wetted_perimeter=berm.width + d * np.sqrt(1 + berm.slope**2),
                top_width=berm.width + berm.slope * d,
                dP_dy=np.sqrt(1 + berm.slope**2),
                n=berm.n,
            ))

        return [SubSection("main", A, P, T, dP, self.main.n)] + parts

    def _area(self, y):
        return sum(s.area for s in self.subsections(y))

    def _wetted_perimeter(self, y):
        return sum(s.wetted_perimeter for s in self.subsections(y))

    def _top_width(self, y):
        if y == 0.0:
            return self.main._top_width(0.0)
        return sum(s.top_width for s in self.subsections(y))

    def _first_moment(self, y):
        M = self.main._first_moment(y)
        for berm in self.berms:
            d = y - berm.elevation
            if d <= 0.0:
                continue
            M -= self._main_slope(berm.side) * d**3 / 6.0
            M += 0.5 * berm.width * d**2 + berm.slope * d**3 / 6.0
        return M

    def dP_dy(self, y):
        return sum(s.dP_dy for s in self.subsections(y))

    def conveyance(self, y: float) -> float:
        return sum(s.conveyance for s in self.subsections(y))

    def dK_dy(self, y: float) -> float:
        return sum(
            hydraulics.dK_dy(A=s.area, P=s.wetted_perimeter, T=s.top_width, dP_dy=s.dP_dy, n=s.n)
            for s in self.subsections(y) if s.area > 0.0
        )

    def equivalent_n(self, y: float) -> float:
        """Horton-Einstein composite roughness."""
        parts = self.subsections(y)
        P = sum(s.wetted_perimeter for s in parts)
        if P == 0.0:
            return self.main.n
        return (sum(s.wetted_perimeter * s.n**1.5 for s in parts) / P)**(2.0 / 3.0)

    def velocity_coefficients(self, y: float) -> Tuple[float, float]:
        """Energy (alpha) and momentum (beta) correction coefficients."""
        parts = [s for s in self.subsections(y) if s.area > 0.0]
        A = sum(s.area for s in parts)
        K = sum(s.conveyance for s in parts)
        if K == 0.0:
            return 1.0, 1.0
        alpha = sum(s.conveyance**3 / s.area**2 for s in parts) / (K**3 / A**2)
        beta = sum(s.conveyance**2 / s.area for s in parts) / (K**2 / A)
        return alpha, beta

    def with_roughness(self, n: float) -> "Compound":
        return dataclasses.replace(self, main=self.main.with_roughness(n))


## 3. 'Irregular' section (surveyed polyline)
## ------------------------------------------------------------------

@dataclass(frozen=True)
class Irregular(CrossSection):
    """
    Cross-section defined by a polyline of (offset, elevation) points.

    Handles disconnected wet areas (e.g. a main channel and a flooded
    overbank behind a dry levee). Depth is measured from the thalweg and may
    not exceed the lower of the two end points.
    """
    offsets: Tuple[float, ...]
    elevations: Tuple[float, ...]
    n: float

    kind: ClassVar[str] = "irregular"

    def __post_init__(self):
        x = tuple(float(v) for v in self.offsets)
        z = tuple(float(v) for v in self.elevations)
        if len(x) != len(z):
            raise NotFullyDefined("Offsets and elevations must have the same length.")
        if len(x) < 3:
            raise NotFullyDefined("An irregular section needs at least 3 points.")
        if not np.all(np.diff(x) > 0):
            raise NotFullyDefined("Offsets must be strictly increasing.")
        if min(z[0], z[-1]) <= min(z):
            raise NotFullyDefined("Both end points must lie above the thalweg.")
        _positive("Manning's n", self.n)
        object.__setattr__(self, 'offsets', x)
        object.__setattr__(self, 'elevations', z)

    @property
    def thalweg(self) -> float:
        return min(self.elevations)

    @property
    def max_depth(self) -> float:
        return min(self.elevations[0], self.elevations[-1]) - self.thalweg

    def _segments(self, y):
        x = np.asarray(self.offsets)
        z = np.asarray(self.elevations)
        hw = self.thalweg + y

        dx = np.diff(x)
        length = np.hypot(dx, np.diff(z))
        d0 = hw - z[:-1]
        d1 = hw - z[1:]

        d_hi = np.maximum(d0, d1)
        d_lo = np.minimum(d0, d1)
        full = d_lo >= 0.0
        partial = (d_hi > 0.0) & (d_lo < 0.0)

        with np.errstate(divide='ignore', invalid='ignore'):
            frac = np.where(full, 1.0, np.where(partial, d_hi / (d_hi - d_lo), 0.0))

        wet_width = frac * dx
        d0c = np.where(full, d0, 0.0)
        d1c = np.where(full, d1, 0.0)
        d_wet = np.where(partial, d_hi, 0.0)

        area = np.where(full, 0.5 * dx * (d0c + d1c), 0.5 * wet_width * d_wet)
        moment = np.where(full, dx * (d0c**2 + d0c * d1c + d1c**2) / 6.0, wet_width * d_wet**2 / 6.0)

        return wet_width, area, frac * length, moment

    def _area(self, y):
        return float(np.sum(self._segments(y)[1]))

    def _wetted_perimeter(self, y):
        return float(np.sum(self._segments(y)[2]))

    def _top_width(self, y):
        return float(np.sum(self._segments(y)[0]))

    def _first_moment(self, y):
        return float(np.sum(self._segments(y)[3]))


SECTION_TYPES = {
    cls.kind: cls
    for cls in (Rectangular, Trapezoidal, Triangular, Circular, Parabolic, UShaped, Compound, Irregular)
}


def interpolate_sections(a: CrossSection, b: CrossSection, t: float) -> CrossSection:
    """Linearly interpolate the geometry parameters of two sections.

    ``t`` runs from 0 (section ``a``) to 1 (section ``b``). A rectangle blends
    with a trapezoid as a trapezoid with vertical sides.

    Raises:
        NotFullyDefined: If the two shapes cannot be blended.
    """
    if a == b or t <= 0.0:
        return a
    if t >= 1.0:
        return b

    if isinstance(a, Rectangular) and isinstance(b, Trapezoidal):
        a = Trapezoidal(bottom_width=a.width, side_slope=0.0, n=a.n, depth=a.depth)
    elif isinstance(a, Trapezoidal) and isinstance(b, Rectangular):
        b = Trapezoidal(bottom_width=b.width, side_slope=0.0, n=b.n, depth=b.depth)

    if type(a) is not type(b) or isinstance(a, (Compound, Irregular)):
        raise NotFullyDefined(
            f"Cannot interpolate a {a.kind} section into a {b.kind} section.",
            remediation="use the abrupt transition policy for this reach")

    values = {}
    for f in dataclasses.fields(a):
        va, vb = getattr(a, f.name), getattr(b, f.name)
        if va is None or vb is None:
            if f.name == 'right_slope' and (va is not None or vb is not None):
                va = a.slopes[1]
                vb = b.slopes[1]
            else:
                values[f.name] = None
                continue
        values[f.name] = (1.0 - t) * va + t * vb

    return type(a)(**values)
