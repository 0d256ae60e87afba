"""> DD2D: Visualisation functions for simulation outputs and examples."""

import numpy as np
from cmcrameri import cm as cmc
from matplotlib import pyplot as plt

from dd2d import core as _core

# Get default figure size for easy referencing and scaling.
DEFAULT_FIG_WIDTH, DEFAULT_FIG_HEIGHT = plt.rcParams["figure.figsize"]
plt.rcParams["axes.grid"] = True
# Always draw grid behind everything else.
plt.rcParams["axes.axisbelow"] = True
# Always use constrained layout by default (modern version of tight layout).
plt.rcParams["figure.constrained_layout.use"] = True
# Use 300 DPI by default, NASA can keep their blurry images.
plt.rcParams["figure.dpi"] = 300


def default_tick_formatter(x, pos):
    """Format lengths in metres as micrometres."""
    return f"{x*1e6:.2f}"


def trajectories(ax, times, positions, axis=0, **kwargs):
    """Plot defect positions along a root `axis` versus simulation `times`.

    The `positions` hold one Nx3 array of root frame positions per time, as returned by
    `dd2d.stats.read_all_defects`. The number of defects may change between times.

    If `ax` is None, a new figure and axes are created with `figure_unless`.
    Additional keyword arguments are passed to `matplotlib.axes.Axes.scatter`.

    Returns a tuple of the figure handle and the axes handle.

    """
    if len(times) != len(positions):
        raise ValueError("mismatched length of 'times' and 'positions'")
    fig, ax = figure_unless(ax)
    ax.set_xlabel(f"{'xyz'[axis]} (μm)")
    ax.set_ylabel("time (s)")
    ax.xaxis.set_major_formatter(default_tick_formatter)
    x = np.concatenate([np.asarray(p).reshape(-1, 3)[:, axis] for p in positions])
    t = np.concatenate(
        [
            np.full(len(np.asarray(p).reshape(-1, 3)), time)
            for time, p in zip(times, positions)
        ]
    )
    ax.scatter(
        x,
        t,
        s=kwargs.pop("s", 2),
        color=kwargs.pop("color", cmc.batlow(0.2)),
        marker=kwargs.pop("marker", "."),
        **kwargs,
    )
    return fig, ax


def slip_plane_stress(ax, columns, component="xy", frame="local", **kwargs):
    """Plot a stress component sampled along a slip plane.

    The `columns` are read with `dd2d.io.read_scsv` from a file written by
    `dd2d.stats.write_slip_plane_stress`. The horizontal axis is the distance from the
    first sample point.

    If `ax` is None, a new figure and axes are created with `figure_unless`.
    Additional keyword arguments are passed to `matplotlib.axes.Axes.plot`.

    Returns a tuple of the figure handle, the axes handle and the plotted lines.

    """
    points = np.column_stack((columns.x, columns.y, columns.z))
    distance = np.linalg.norm(points - points[0], axis=1)
    stress = np.asarray(getattr(columns, f"s_{component}_{frame}"))
    fig, ax = figure_unless(ax)
    ax.set_xlabel("distance (μm)")
    ax.set_ylabel(f"$σ_{{{component}}}$ ({frame} frame, MPa)")
    ax.xaxis.set_major_formatter(default_tick_formatter)
    lines = ax.plot(
        distance,
        stress / 1e6,
        color=kwargs.pop("color", cmc.batlow(0.5)),
        **kwargs,
    )
    return fig, ax, lines


def defect_structure(ax, root, **kwargs):
    """Plot the slip plane traces and defects of `root` in the root x-y plane.

    Defects are colored by their `dd2d.core.DefectType`.

    If `ax` is None, a new figure and axes are created with `figure_unless`.
    Additional keyword arguments are passed to `matplotlib.axes.Axes.scatter`.

    Returns a tuple of the figure handle and the axes handle.

    """
    fig, ax = figure_unless(ax)
    ax.set_aspect("equal")
    ax.set_xlabel("x (μm)")
    ax.set_ylabel("y (μm)")
    ax.xaxis.set_major_formatter(default_tick_formatter)
    ax.yaxis.set_major_formatter(default_tick_formatter)
    n_kinds = len(_core.DefectType)
    size = kwargs.pop("s", 4)
    for plane in root.slip_planes():
        positions = plane.defect_positions()
        ax.plot(
            positions[[0, -1], 0],
            positions[[0, -1], 1],
            color=plt.rcParams["grid.color"],
            linewidth=0.5,
        )
        ax.scatter(
            positions[:, 0],
            positions[:, 1],
            c=[int(d.kind) for d in plane.defects],
            cmap=cmc.batlow,
            vmin=0,
            vmax=n_kinds - 1,
            s=size,
            **kwargs,
        )
    return fig, ax


def figure_unless(ax):
    """Create figure and axes if `ax` is None, or return existing figure for `ax`.

    If `ax` is None, a new figure is created for the axes with a few opinionated default
    settings (grid, constrained layout, high DPI).

    Returns a tuple containing the figure handle and the axes object.

    """
    if ax is None:
        fig = figure()
        ax = fig.add_subplot()
    else:
        fig = ax.get_figure()
    return fig, ax


def figure(figscale=None, **kwargs):
    """Create new figure with a few opinionated default settings.

    (e.g. grid, constrained layout, high DPI).

    The keyword argument `figscale` can be used to scale the figure width and height
    relative to the default values by passing a tuple. Any additional keyword arguments
    are passed to `matplotlib.pyplot.figure()`.

    """
    # NOTE: Opinionated defaults are set using rcParams at the top of this file.
    _figsize = kwargs.pop("figsize", (DEFAULT_FIG_WIDTH, DEFAULT_FIG_HEIGHT))
    if figscale is not None:
        _figsize = (DEFAULT_FIG_WIDTH * figscale[0], DEFAULT_FIG_HEIGHT * figscale[1])
    return plt.figure(figsize=_figsize, **kwargs)
