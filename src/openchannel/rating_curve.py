import numpy as np

from .exceptions import NotFullyDefined, OutOfRange
from .utility import bracketed_root


class RatingCurve:
    """
    Stage-discharge relationship of a control section.

    A curve is either tabulated (piecewise-linear through (Q, H) pairs) or an
    analytic fit, Q = a (H + shift)^2 + b (H + shift) + c or Q = a (H + shift)^b.
    """
    def __init__(self, discharges: list = None, stages: list = None):
        self.type = None
        self.defined = False
        self.stage_shift = 0.0
        self.discharges = None
        self.stages = None

        if discharges is not None or stages is not None:
            self.tabulate(discharges, stages)

    def tabulate(self, discharges: list, stages: list):
        discharges = np.asarray(discharges, dtype=np.float64)
        stages = np.asarray(stages, dtype=np.float64)

        if discharges.shape != stages.shape:
            raise NotFullyDefined("Q and H lists should have the same lengths.")
        if discharges.size < 2:
            raise NotFullyDefined("Need at least 2 points.")

        idx = np.argsort(discharges)
        discharges, stages = discharges[idx], stages[idx]
        if not np.all(np.diff(discharges) > 0) or not np.all(np.diff(stages) > 0):
            raise NotFullyDefined("A rating table must rise monotonically.")

        self.discharges = discharges
        self.stages = stages
        self.type = 'table'
        self.defined = True

    def set(self, type, a, b, c=None, stage_shift=0.0):
        if type == 'polynomial':
            if c is None:
                raise NotFullyDefined("Insufficient arguments. c must be specified.")
            self.a, self.b, self.c = a, b, c

        elif type == 'power':
            self.a, self.b = a, b

        else:
            raise NotFullyDefined("Invalid type.")

        self.stage_shift = stage_shift
        self.defined = True
        self.type = type

    def fit(self, discharges: list, stages: list, stage_shift: float = 0, type: str = 'power'):
        discharges = np.asarray(discharges, dtype=np.float64)
        stages = np.asarray(stages, dtype=np.float64)

        if discharges.size < 3:
            raise NotFullyDefined("Need at least 3 points.")

        if discharges.shape != stages.shape:
            raise NotFullyDefined("Q and H lists should have the same lengths.")

        self.stage_shift = stage_shift
        shifted_stages = stages + self.stage_shift

        if np.any(shifted_stages <= 0):
            raise OutOfRange("All (stage + shift) values must be positive for fitting.")

        if type == 'polynomial':
            a, b, c = np.polyfit(shifted_stages, discharges, deg=2)
            self.a, self.b, self.c = float(a), float(b), float(c)

        elif type == 'power':
            # Fit: log(Q) = b * log(shifted_stages) + log(a)
            b, log_a = np.polyfit(np.log(shifted_stages), np.log(discharges), deg=1)
            self.a, self.b = float(np.exp(log_a)), float(b)

        else:
            raise NotFullyDefined("Invalid rating curve type.")

        # keep the fitted range for inversion
        self.discharges = np.sort(discharges)
        self.stages = np.sort(stages)
        self.type = type
        self.defined = True

    def _check(self):
        if not self.defined:
            raise NotFullyDefined("Rating curve is undefined.")

    def discharge(self, stage: float) -> float:
        """
        Computes the discharge for a given stage.

        Parameters
        ----------
        stage : float
            The stage (depth or water level, as the curve was built).

        Returns
        -------
        discharge : float
            The discharge in cubic meters per second.

        """
        self._check()

        if self.type == 'table':
            if stage < self.stages[0] or stage > self.stages[-1]:
                raise OutOfRange(f"Stage {stage} lies outside the rating table.")
            return float(np.interp(stage, self.stages, self.discharges))

        x = stage + self.stage_shift
        if self.type == 'polynomial':
            return self.a * x**2 + self.b * x + self.c
        return self.a * x**self.b

    def stage(self, discharge: float) -> float:
        """Inverse of the curve: the stage that passes ``discharge``."""
        self._check()

        if self.type == 'table':
            if discharge < self.discharges[0] or discharge > self.discharges[-1]:
                raise OutOfRange(
                    f"Discharge {discharge} lies outside the rating table "
                    f"[{self.discharges[0]}, {self.discharges[-1]}].",
                    remediation="extend the rating curve")
            return float(np.interp(discharge, self.discharges, self.stages))

        if self.type == 'power':
            return (discharge / self.a)**(1.0 / self.b) - self.stage_shift

        lower = max(self.stages[0] if self.stages is not None else 0.0, 1e-9 - self.stage_shift)
        upper = self.stages[-1] if self.stages is not None else lower + 100.0
        return bracketed_root(lambda z: self.discharge(z) - discharge, lower, upper,
                              context="rating curve stage").root

    def dQ_dz(self, stage: float) -> float:
        self._check()

        if self.type == 'table':
            i = int(np.clip(np.searchsorted(self.stages, stage) - 1, 0, len(self.stages) - 2))
            return (self.discharges[i + 1] - self.discharges[i]) / (self.stages[i + 1] - self.stages[i])

        Y_ = stage + self.stage_shift
        if self.type == 'polynomial':
            return self.a * 2 * Y_ + self.b
        return self.a * self.b * Y_**(self.b - 1)

    def points(self) -> list:
        """(Q, H) pairs of a tabulated curve."""
        self._check()
        return [(float(q), float(h)) for q, h in zip(self.discharges, self.stages)]

    def tostring(self):
        self._check()

        if self.type == 'table':
            return ', '.join(f"({q:g}, {h:g})" for q, h in self.points())
        if self.type == 'polynomial':
            return f"{self.a} (Y+{self.stage_shift})^2 + {self.b} (Y+{self.stage_shift}) + {self.c}"
        return f"{self.a} (Y+{self.stage_shift})^{self.b}"
