"""> DD2D: Tests for plotting of simulation outputs."""

import numpy as np
import pytest
from matplotlib import pyplot as plt
from numpy import testing as nt

from dd2d import io as _io
from dd2d import stats as _stats
from dd2d import visualisation as _vis
from dd2d.slipplane import populate_sources

# Subdirectory of `outdir` used to store outputs from these tests.
SUBDIR = "visualisation"


@pytest.fixture
def grain(data_specs, registry, seed):
    params = _io.parse_params(data_specs / "grain_params.txt")
    _, grain = _io.read_grain(
        data_specs / "grain.txt", params, np.random.default_rng(seed), registry
    )
    return grain


def test_defect_structure(outdir, grain):
    fig, ax = _vis.defect_structure(None, grain)
    n_planes = len(list(grain.slip_planes()))
    # One trace and one scatter collection per slip plane.
    assert len(ax.lines) == n_planes
    assert len(ax.collections) == n_planes
    if outdir is not None:
        fig.savefig(_io.resolve_path(f"{outdir}/{SUBDIR}/grain_structure.png"))
    plt.close(fig)


def test_slip_plane_stress(outdir, grain, tmp_path, params):
    plane = next(grain.slip_planes())
    populate_sources(plane, 2, params, np.random.default_rng(1))
    paths = _stats.write_slip_plane_stress(
        grain, 0.0, tmp_path, "stress", 50, params["mu"], params["nu"]
    )
    columns = _io.read_scsv(paths[0])
    fig, ax, lines = _vis.slip_plane_stress(None, columns, component="xy")
    assert len(lines) == 1
    x, y = lines[0].get_data()
    assert len(x) == 50
    assert x[0] == 0.0
    nt.assert_allclose(y, np.asarray(columns.s_xy_local) / 1e6)
    if outdir is not None:
        fig.savefig(_io.resolve_path(f"{outdir}/{SUBDIR}/plane_stress.png"))
    plt.close(fig)


def test_trajectories():
    times = [1e-9, 2e-9]
    positions = [np.zeros((3, 3)), np.ones((2, 3))]
    fig, ax = _vis.trajectories(None, times, positions, axis=1)
    offsets = ax.collections[0].get_offsets()
    assert len(offsets) == 5
    nt.assert_allclose(offsets[:, 1], [1e-9] * 3 + [2e-9] * 2)
    with pytest.raises(ValueError):
        _vis.trajectories(ax, times[:1], positions)
    plt.close(fig)
