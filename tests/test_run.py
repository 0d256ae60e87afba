"""> DD2D: Tests for the simulation driver and periodic statistics."""

import shutil

import numpy as np
import pytest
from numpy import testing as nt

from dd2d import core as _core
from dd2d import exceptions as _err
from dd2d import io as _io
from dd2d import run as _run
from dd2d import stats as _stats
from dd2d.defects import Dislocation
from dd2d.slipplane import SlipPlane, populate_sources
from dd2d.uniqueid import UniqueIDRegistry

BMAG = 2.5e-10


@pytest.fixture
def specs(data_specs, tmp_path):
    """Writable copy of the sample input files."""
    return shutil.copytree(data_specs, tmp_path / "specs")


def _plane(registry, positions=(), signs=()):
    plane = SlipPlane(([-1e-6, 0, 0], [1e-6, 0, 0]), [0, 0, 1], registry=registry)
    for x, sign in zip(positions, signs):
        plane.add_dislocation(
            Dislocation([x, 0, 0], [sign, 0, 0], [0, 0, 1], BMAG, registry=registry)
        )
    return plane


def _live_dislocations(root):
    return sum(1 for d in root.all_defects() if d.kind == _core.DefectType.dislocation)


class TestIterate:
    """Tests for the iteration loop."""

    def test_time_increment(self, params, registry):
        plane = _plane(registry)
        params["time_step_type"] = _core.TimeStepType.fixed
        assert _run.time_increment(plane, params) == params["limiting_time_step"]
        # Nothing is approaching, the adaptive step falls back to the limit.
        params["time_step_type"] = _core.TimeStepType.adaptive
        assert _run.time_increment(plane, params) == params["limiting_time_step"]

    def test_adaptive_time_increment(self, params, registry):
        plane = _plane(registry, (-5e-7, 5e-7), (1.0, -1.0))
        params.update(
            time_step_type=_core.TimeStepType.adaptive,
            limiting_time_step=1e-15,
            applied_stress=(0.0, 0.0, 0.0, 1e8, 0.0, 0.0),
        )
        plane.apply_stress(_io.applied_stress(params))
        plane.calculate_stresses(params["mu"], params["nu"])
        plane.calculate_velocities(params["drag"])
        # Both dislocations glide towards each other under the applied stress and
        # their mutual attraction, until they are two Burgers vectors apart.
        D = params["mu"] * BMAG / (2 * np.pi * (1 - params["nu"]))
        speed = (1e8 + D / 1e-6) * BMAG / params["drag"]
        assert _run.time_increment(plane, params) == pytest.approx(
            (1e-6 - 2 * BMAG) / (2 * speed), rel=1e-6
        )

    def test_stop_after_iterations(self, params, registry, tmp_path):
        plane = _plane(registry, (-5e-7,), (1.0,))
        params.update(
            stop_iterations=5, limiting_time_step=1e-12, output_dir=tmp_path
        )
        times = _run.iterate(plane, params, registry=registry)
        nt.assert_allclose(times, np.arange(6) * 1e-12, atol=1e-24)
        uniques = _io.read_scsv(tmp_path / _run.UNIQUES_FILE)
        nt.assert_equal(uniques.uid, tuple(range(len(registry))))

    def test_stop_after_time(self, params, registry, tmp_path):
        plane = _plane(registry)
        params.update(
            stopping_criterion=_core.StoppingCriterion.time,
            stop_time=5.5e-9,
            time_step_type=_core.TimeStepType.fixed,
            limiting_time_step=1e-9,
            output_dir=tmp_path,
        )
        times = _run.iterate(plane, params, current_time=0.0, registry=registry)
        assert len(times) == 7
        assert times[-1] == pytest.approx(6e-9)

    def test_stop_at_exact_time(self, params, registry, tmp_path):
        """Test that the loop stops as soon as the stopping time is reached."""
        plane = _plane(registry)
        # Powers of two keep the accumulated time exact.
        dt = 2.0**-30
        params.update(
            stopping_criterion=_core.StoppingCriterion.time,
            stop_time=4 * dt,
            time_step_type=_core.TimeStepType.fixed,
            limiting_time_step=dt,
            output_dir=tmp_path,
        )
        times = _run.iterate(plane, params, registry=registry)
        nt.assert_array_equal(times, np.arange(5) * dt)

    def test_restart_time(self, params, registry, tmp_path):
        plane = _plane(registry)
        params.update(stop_iterations=2, limiting_time_step=1e-9, output_dir=tmp_path)
        times = _run.iterate(plane, params, current_time=3e-9, registry=registry)
        nt.assert_allclose(times, [3e-9, 4e-9, 5e-9])

    def test_shear_glide(self, params, registry, tmp_path):
        """Test that a dislocation pair glides apart under the applied stress."""
        plane = _plane(registry, (-1e-7, 1e-7), (-1.0, 1.0))
        params.update(
            applied_stress=(0.0, 0.0, 0.0, 1e8, 0.0, 0.0),
            stop_iterations=10,
            limiting_time_step=1e-11,
            output_dir=tmp_path,
        )
        _run.iterate(plane, params, registry=registry)
        left, right = plane.dislocations
        assert left.position[0] < -1e-7
        assert right.position[0] > 1e-7
        assert plane.counters == (2, 0, 0)


class TestStatistics:
    """Tests for the periodic statistics outputs."""

    def _params(self, params, output_dir):
        params.update(
            output_dir=output_dir,
            stats_dislocation_positions=(True, 2, "positions", None),
            stats_slip_plane_stress=(True, 2, "stress", 5),
            stats_all_defects=(True, 1, "defects", None),
            stats_slip_system_objects=(True, 4, "objects", None),
        )
        return params

    def test_write(self, params, registry, tmp_path, seed):
        plane = _plane(registry, (-5e-7, 5e-7), (1.0, -1.0))
        populate_sources(plane, 1, params, np.random.default_rng(seed))
        statistics = _stats.Statistics(self._params(params, tmp_path))
        for i in range(1, 5):
            statistics.write(plane, i * 1e-9)

        positions = sorted(tmp_path.glob("positions_t*.scsv"))
        assert [p.name for p in positions] == [
            "positions_t2.000000e-09.scsv",
            "positions_t4.000000e-09.scsv",
        ]
        columns = _io.read_scsv(positions[0])
        defects = list(plane.all_defects())
        nt.assert_equal(columns.uid, tuple(d.uid for d in defects))
        nt.assert_allclose(columns.x, [d.position[0] for d in defects], atol=1e-20)
        nt.assert_equal(columns.kind, tuple(int(d.kind) for d in defects))

        stress = _io.read_scsv(tmp_path / "stress_plane0_t2.000000e-09.scsv")
        assert len(stress.x) == 5
        assert "s_xy_local" in stress._fields and "s_xy_global" in stress._fields

        times, history = _stats.read_all_defects(tmp_path / "defects.txt")
        nt.assert_allclose(times, [1e-9, 2e-9, 3e-9, 4e-9])
        assert all(h.shape == (len(defects), 3) for h in history)

        objects = list(tmp_path.glob("objects_plane0_t*.txt"))
        assert len(objects) == 1
        time, copy = _io.read_slip_plane(
            objects[0], params, np.random.default_rng(), UniqueIDRegistry()
        )
        assert time == 4e-9
        assert len(copy.dislocations) == 2
        assert copy.sources[0].tau_critical == plane.sources[0].tau_critical

    def test_disabled(self, params, registry, tmp_path):
        params["output_dir"] = tmp_path
        statistics = _stats.Statistics(params)
        statistics.write(_plane(registry, (0.0,), (1.0,)), 1e-9)
        assert list(tmp_path.iterdir()) == []

    def test_write_failure(self, params, registry, tmp_path, caplog):
        """Test that failing statistics are logged and do not stop the simulation."""
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        statistics = _stats.Statistics(self._params(params, blocker / "out"))
        statistics.write(_plane(registry, (0.0,), (1.0,)), 1e-9)
        assert "failed to write statistic 'defects'" in caplog.text


class TestRunSimulation:
    """Tests for complete simulations of the sample inputs."""

    @pytest.mark.parametrize(
        "level",
        [
            "slipplane",
            "slipsystem",
            "grain",
            pytest.param("polycrystal", marks=pytest.mark.slow),
        ],
    )
    def test_samples(self, specs, level):
        registry = UniqueIDRegistry()
        root, times = _run.run_simulation(
            specs / f"{level}_params.txt", level, registry=registry
        )
        params = _io.parse_params(specs / f"{level}_params.txt")
        n_iterations = params["stop_iterations"]
        assert len(times) == n_iterations + 1
        assert np.all(np.diff(times) > 0)

        created, annihilated, absorbed = root.counters
        assert created - annihilated - absorbed == _live_dislocations(root)

        output = specs / f"output_{level}"
        assert "running %s simulation" % level in (output / _run.LOG_FILE).read_text()
        uniques = _io.read_scsv(output / _run.UNIQUES_FILE)
        assert len(uniques.uid) == len(registry)
        assert (
            sum(1 for k in uniques.kind if k == _core.DefectType.dislocation)
            >= _live_dislocations(root)
        )
        history_times, _ = _stats.read_all_defects(output / "allDefects.txt")
        nt.assert_allclose(history_times, times[1:], rtol=1e-9)
        positions = list(output.glob("dislocationPositions_t*.scsv"))
        assert len(positions) == n_iterations // 10

    def test_errors(self, specs):
        with pytest.raises(ValueError):
            _run.run_simulation(specs / "slipplane_params.txt", "crystal")
        params_file = specs / "nostructure_params.txt"
        params_file.write_text("mu 80e9\n")
        with pytest.raises(_err.ConfigError):
            _run.run_simulation(params_file, "slipplane", registry=UniqueIDRegistry())
        params_file.write_text("dislocationStructureFile missing.txt\n")
        with pytest.raises(OSError):
            _run.run_simulation(params_file, "slipplane", registry=UniqueIDRegistry())
