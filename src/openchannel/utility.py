from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np
from scipy.optimize import brentq

from .exceptions import Cancelled, NoConvergence, OutOfRange
from . import settings

ProgressCallback = Callable[[str, float], Optional[bool]]


@dataclass(frozen=True)
class RootResult:
    """Outcome of a scalar root search.

    Attributes:
        root (float): The root.
        iterations (int): Number of iterations used.
        converged (bool): Always True for returned results, failures raise.
    """
    root: float
    iterations: int
    converged: bool = True


def poll(callback: ProgressCallback, stage: str, fraction: float) -> None:
    """Report progress and raise ``Cancelled`` if the callback asks to stop.

    Follows the scipy convention: a callback returning True terminates.
    """
    if callback is None:
        return
    if callback(stage, float(min(max(fraction, 0.0), 1.0))):
        raise Cancelled(f"computation cancelled during {stage}")


def safeguarded_newton(f, fprime, lower: float, upper: float,
                       tolerance: float = settings.ROOT_TOLERANCE,
                       max_iterations: int = settings.MAX_ITERATIONS,
                       context: str = "root search") -> RootResult:
    """Newton-Raphson kept inside a bisection bracket.

    A Newton step that leaves the bracket, or that does not halve the residual
    fast enough, is replaced by a bisection step, so the search always
    converges for a continuous function with a sign change on the bracket.

    Args:
        f (callable): Residual function.
        fprime (callable): Its derivative.
        lower (float): Lower end of the bracket.
        upper (float): Upper end of the bracket.
        tolerance (float): Stop when the last correction is below this.
        max_iterations (int): Iteration cap.
        context (str): Used in the error message on failure.

    Raises:
        OutOfRange: If the bracket holds no sign change.
        NoConvergence: If the cap is reached.

    Returns:
        RootResult
    """
    f_lo = f(lower)
    f_hi = f(upper)

    if f_lo == 0.0:
        return RootResult(lower, 0)
    if f_hi == 0.0:
        return RootResult(upper, 0)
    if np.sign(f_lo) == np.sign(f_hi):
        raise OutOfRange(f"{context}: no root between {lower:.6g} and {upper:.6g}")

    # Orient the bracket so that f(x_neg) < 0 < f(x_pos)
    if f_lo < 0:
        x_neg, x_pos = lower, upper
    else:
        x_neg, x_pos = upper, lower

    x = 0.5 * (lower + upper)
    dx_old = abs(upper - lower)
    dx = dx_old
    fx = f(x)
    dfx = fprime(x)

    for iteration in range(1, max_iterations + 1):
        out_of_bracket = ((x - x_pos) * dfx - fx) * ((x - x_neg) * dfx - fx) > 0
        too_slow = abs(2.0 * fx) > abs(dx_old * dfx)

        if out_of_bracket or too_slow:
            dx_old = dx
            dx = 0.5 * (x_pos - x_neg)
            x = x_neg + dx
        else:
            dx_old = dx
            dx = fx / dfx
            x = x - dx

        if abs(dx) < tolerance or fx == 0.0:
            return RootResult(float(x), iteration)

        fx = f(x)
        dfx = fprime(x)

        if fx < 0:
            x_neg = x
        else:
            x_pos = x

    raise NoConvergence(context, max_iterations)


def bracketed_root(f, lower: float, upper: float,
                   tolerance: float = settings.ROOT_TOLERANCE,
                   max_iterations: int = settings.MAX_ITERATIONS,
                   context: str = "root search") -> RootResult:
    """Brent's method on a bracket, with the failures mapped to hydraulic errors."""
    f_lo = f(lower)
    f_hi = f(upper)

    if f_lo == 0.0:
        return RootResult(lower, 0)
    if f_hi == 0.0:
        return RootResult(upper, 0)
    if np.sign(f_lo) == np.sign(f_hi):
        raise OutOfRange(f"{context}: no root between {lower:.6g} and {upper:.6g}")

    root, info = brentq(f, lower, upper, xtol=tolerance, maxiter=max_iterations,
                        full_output=True, disp=False)
    if not info.converged:
        raise NoConvergence(context, info.iterations)

    return RootResult(float(root), info.iterations)


def expand_bracket(f, lower: float, upper: float, limit: float, factor: float = 2.0,
                   max_iterations: int = 60):
    """Grow ``upper`` geometrically until ``f`` changes sign or ``limit`` is hit.

    Returns:
        float: The expanded upper end, or None if no sign change was found.
    """
    sign_lo = np.sign(f(lower))
    hi = min(upper, limit)

    for _ in range(max_iterations):
        if np.sign(f(hi)) != sign_lo:
            return hi
        if hi >= limit:
            return None
        hi = min(hi * factor, limit)

    return None
