"""
Characteristic curves of a section or structure: E-y, M-y, Q-y and Q-H.
"""
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
import pandas as pd

from . import settings
from .cross_section import CrossSection
from .exceptions import NotFullyDefined
from .flow import critical_depth, froude_number, manning_discharge, specific_energy, specific_force
from .rating_curve import RatingCurve


@dataclass(frozen=True, eq=False)
class CharacteristicCurve:
    """
    A sampled relation between a depth (or head) and a flow quantity.

    Attributes:
        kind (str): 'specific_energy', 'specific_force', 'discharge' or 'rating'.
        depth (np.ndarray): Depths or heads, increasing.
        value (np.ndarray): The quantity at each depth.
        discharge (float, optional): Fixed discharge of E-y and M-y curves.
        slope (float, optional): Bed slope of a Q-y curve.
        critical_depth (float, optional): Yc at the fixed discharge.
        minimum (float, optional): Exact minimum of the quantity, at Yc for
            E-y and M-y curves.
        froude (np.ndarray, optional): Froude number at each depth.
    """
    kind: str
    depth: np.ndarray
    value: np.ndarray
    discharge: Optional[float] = None
    slope: Optional[float] = None
    critical_depth: Optional[float] = None
    minimum: Optional[float] = None
    froude: Optional[np.ndarray] = None

    @property
    def sampled_minimum(self):
        """(depth, value) of the smallest sampled value."""
        i = int(np.argmin(self.value))
        return float(self.depth[i]), float(self.value[i])

    @property
    def subcritical(self) -> np.ndarray:
        """Mask of the samples on the subcritical branch."""
        if self.critical_depth is None:
            return np.ones_like(self.depth, dtype=bool)
        return self.depth >= self.critical_depth

    def fit(self, type: str = 'power') -> RatingCurve:
        """Fits a rating curve value = f(depth) through the samples."""
        curve = RatingCurve()
        mask = (self.depth > 0) & (self.value > 0)
        curve.fit(self.value[mask], self.depth[mask], type=type)
        return curve

    def to_dataframe(self) -> pd.DataFrame:
        data = {'depth': self.depth, self.kind: self.value}
        if self.froude is not None:
            data['froude'] = self.froude
        return pd.DataFrame(data)


def _depth_grid(section: CrossSection, samples: int, max_depth: float = None, include: float = None):
    if samples < 3:
        raise ValueError("At least 3 samples are needed.")
    if max_depth is None:
        if section.max_depth >= settings.UNBOUNDED_DEPTH:
            if include is None:
                raise NotFullyDefined("Give max_depth for a section without walls.")
            max_depth = 4.0 * include
        else:
            max_depth = section.max_depth
    max_depth = min(max_depth, section.max_depth)

    lower = settings.MIN_DEPTH
    if include is not None:
        lower = max(lower, 0.1 * include)

    depths = np.linspace(lower, max_depth, samples)
    if include is not None:
        depths = np.union1d(depths, [include])
    return depths


def specific_energy_curve(section: CrossSection, discharge: float, samples: int = 200,
                          max_depth: float = None) -> CharacteristicCurve:
    """
    E-y curve at a fixed discharge.

    Parameters
    ----------
    section : CrossSection
        The section.
    discharge : float
        Discharge in cubic meters per second.
    samples : int
        Number of depths, spread between 0.1 Yc and ``max_depth``. Yc
        itself is always sampled.
    max_depth : float, optional
        Largest depth, by default the wall height or 4 Yc.

    Returns
    -------
    CharacteristicCurve
        With ``minimum`` the critical specific energy.

    """
    yc = critical_depth(section, discharge)
    depths = _depth_grid(section, samples, max_depth, include=yc)
    energy = np.array([specific_energy(section, discharge, y) for y in depths])
    froude = np.array([froude_number(section, discharge, y) for y in depths])

    return CharacteristicCurve('specific_energy', depths, energy, discharge=discharge, critical_depth=yc,
                               minimum=specific_energy(section, discharge, yc), froude=froude)


def specific_force_curve(section: CrossSection, discharge: float, samples: int = 200,
                         max_depth: float = None) -> CharacteristicCurve:
    """M-y curve at a fixed discharge, with its minimum at Yc."""
    yc = critical_depth(section, discharge)
    depths = _depth_grid(section, samples, max_depth, include=yc)
    force = np.array([specific_force(section, discharge, y) for y in depths])
    froude = np.array([froude_number(section, discharge, y) for y in depths])

    return CharacteristicCurve('specific_force', depths, force, discharge=discharge, critical_depth=yc,
                               minimum=specific_force(section, discharge, yc), froude=froude)


def discharge_curve(section: CrossSection, slope: float, samples: int = 100,
                    max_depth: float = None) -> CharacteristicCurve:
    """Uniform-flow Q-y curve of a section on a slope, by Manning."""
    depths = _depth_grid(section, samples, max_depth)
    flows = np.array([manning_discharge(section, slope, y) for y in depths])
    return CharacteristicCurve('discharge', depths, flows, slope=slope)


def structure_rating_curve(structure, heads: Sequence[float]) -> CharacteristicCurve:
    """
    Q-H curve of a weir (head above the crest) or a gate (upstream depth).

    Parameters
    ----------
    structure : Weir or Gate
        Anything with a ``rating(heads)`` method.
    heads : sequence of float
        Heads to evaluate, sorted on output.

    """
    heads = np.sort(np.asarray(heads, dtype=np.float64))
    return CharacteristicCurve('rating', heads, np.asarray(structure.rating(heads), dtype=np.float64))
