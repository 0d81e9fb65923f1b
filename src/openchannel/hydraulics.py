import numpy as np

from .settings import G


def normal_flow(bed_slope, area: float = None, roughness: float = None, hydraulic_radius: float = None, K: float = None):
    """Manning discharge for a given slope, from conveyance or from A, n and R."""
    if K is None:
        K = conveyance(A=area, n=roughness, R=hydraulic_radius)

    Q = K * np.abs(bed_slope)**0.5

    if bed_slope < 0:
        Q = -Q

    return Q


def conveyance(A: float, n: float, R: float) -> float:
    """Computes conveyance.

    Args:
        A (float): Flow area.
        n (float): Roughness.
        R (float): Hydraulic radius.

    Returns:
        float: K
    """
    return A * R**(2/3) / n


def dK_dy(A: float, P: float, T: float, dP_dy: float, n: float) -> float:
    """Derivative of conveyance w.r.t. depth.

    Uses dA/dy = T, so K = A^(5/3) P^(-2/3) / n differentiates to
    [(5/3) R^(2/3) T - (2/3) R^(5/3) dP/dy] / n.

    Args:
        A (float): Flow area.
        P (float): Wetted perimeter.
        T (float): Top width.
        dP_dy (float): Derivative of wetted perimeter w.r.t. depth.
        n (float): Roughness.

    Returns:
        float: dK/dy
    """
    R = A / P
    return (5./3. * R**(2/3) * T - 2./3. * R**(5/3) * dP_dy) / n


def Sf(Q: float, A: float = None, n: float = None, R: float = None, K: float = None) -> float:
    """Computes friction slope using Manning's equation.

    Args:
        A (float): Cross-sectional flow area.
        Q (float): Flow rate
        n (float): Manning's roughness coefficient.
        R (float): Hydraulic radius.

    Returns:
        float: Friction slope.
    """
    if K is None:
        K = conveyance(A=A, n=n, R=R)

    return Q * np.abs(Q) / K**2


def dSf_dy(Q: float, K: float, dK_dy: float) -> float:
    """Computes the derivative of Sf w.r.t. depth.

    Args:
        Q (float): Flow rate
        K (float): Conveyance.
        dK_dy (float): Derivative of conveyance w.r.t. depth.

    Returns:
        float: dSf/dy
    """
    return -2 * Sf(Q=Q, K=K) * (dK_dy / K)


def froude_num(T: float, A: float, Q: float):
    """Computes the Froude number.

    Args:
        T (float): Top width.
        A (float): Flow area.
        Q (float): Flow rate.

    Returns:
        float: The Froude number.
    """
    V = Q/A
    D = A/T
    return np.abs(V) / np.sqrt(G*D)


def velocity_head(Q: float, A: float) -> float:
    """V^2 / 2g."""
    return Q**2 / (2 * G * A**2)
