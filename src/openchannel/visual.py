import matplotlib.pyplot as plt
import numpy as np

from .network import WaterSurfaceProfile


def plot_profile(profile: WaterSurfaceProfile, ax=None, show_energy: bool = True,
                 show_critical: bool = True, title: str = None):
    """
    Plot the longitudinal section of a water-surface profile.

    Parameters
    ----------
    profile : WaterSurfaceProfile
        Result of ``NetworkRouter.run``.
    ax : matplotlib.axes.Axes, optional
        Axes to draw on. A new figure is created if omitted.
    show_energy : bool
        Draw the energy grade line.
    show_critical : bool
        Draw the critical-depth line.
    title : str, optional
        Axes title, by default the system name.

    Returns
    -------
    matplotlib.axes.Axes

    """
    if ax is None:
        _, ax = plt.subplots(figsize=(10, 4))

    first = True
    for reach in profile.reaches:
        x = np.array([p.station for p in reach.points])
        bed = np.array([p.bed_elevation for p in reach.points])
        wse = np.array([p.water_surface for p in reach.points])

        ax.fill_between(x, bed, wse, color='tab:blue', alpha=0.2)
        ax.plot(x, bed, 'k-', lw=2, label='Bed' if first else None)
        ax.plot(x, wse, color='tab:blue', lw=1.5, label='Water surface' if first else None)

        if show_energy:
            egl = np.array([p.energy_grade for p in reach.points])
            ax.plot(x, egl, color='tab:red', ls='--', lw=1, label='Energy grade' if first else None)
        if show_critical:
            yc = bed + np.array([p.critical_depth for p in reach.points])
            ax.plot(x, yc, color='tab:orange', ls=':', lw=1, label='Critical depth' if first else None)
        first = False

    # structures drop the bed between reaches
    for element in profile.elements:
        ax.axvline(element.station, color='grey', lw=0.8, alpha=0.6)
        ax.annotate(element.element_id, (element.station, element.upstream_wse),
                    textcoords='offset points', xytext=(3, 6), fontsize=8)

    for i, jump in enumerate(profile.jumps):
        if jump.station is None:
            continue
        point = min(profile.points, key=lambda p: abs(p.station - jump.station))
        ax.vlines(jump.station, point.bed_elevation + jump.upstream_depth,
                  point.bed_elevation + jump.downstream_depth,
                  color='tab:purple', lw=2, label='Hydraulic jump' if i == 0 else None)

    ax.set_xlabel('Station (m)')
    ax.set_ylabel('Elevation (m)')
    ax.set_title(title if title is not None else profile.name)
    ax.grid(True, alpha=0.3)
    ax.legend(loc='best', fontsize=8)

    return ax
