"""> DD2D: Tests for dislocations, sources and slip plane terminations."""

import numpy as np
import pytest
from numpy import testing as nt

from dd2d import core as _core
from dd2d import defects as _defects
from dd2d import exceptions as _err
from dd2d import frames as _frames
from dd2d import tensors as _tensors

BMAG = 2.5e-10
MU, NU = 80e9, 0.3


def _shear(tau):
    return _tensors.symmetric_tensor((0.0, 0.0, 0.0), (tau, 0.0, 0.0))


def _edge(registry, x=0.0, sign=1.0, **kwargs):
    return _defects.Dislocation(
        [x, 0, 0], [sign, 0, 0], [0, 0, 1], BMAG, registry=registry, **kwargs
    )


class TestDislocation:
    """Tests for straight edge dislocations."""

    def test_pure_edge_only(self, registry):
        with pytest.raises(_err.GeometryError):
            _defects.Dislocation(
                [0, 0, 0], [1, 0, 0], [1, 1, 0], BMAG, registry=registry
            )
        with pytest.raises(_err.GeometryError):
            _defects.Dislocation(
                [0, 0, 0], [0, 0, 0], [0, 0, 1], BMAG, registry=registry
            )
        # Failed constructions do not use up identifiers.
        assert len(registry) == 0

    def test_frame(self, registry):
        d = _defects.Dislocation(
            [1e-7, 0, 0],
            [-1, 0, 0],
            [0, 0, 1],
            BMAG,
            base=_frames.CoordinateSystem(),
            registry=registry,
        )
        nt.assert_allclose(
            d.frame.axes, [[-1.0, 0.0, 0.0], [0.0, -1.0, 0.0], [0.0, 0.0, 1.0]]
        )
        nt.assert_allclose(d.burgers_local, [1.0, 0.0, 0.0])
        nt.assert_array_equal(d.position, [1e-7, 0.0, 0.0])
        nt.assert_array_equal(registry.parameters(d.uid), [-1, 0, 0, 0, 0, 1])
        assert registry.kind(d.uid) == _core.DefectType.dislocation

    def test_prefactor(self, registry):
        d = _edge(registry)
        assert d.prefactor(MU, NU) == pytest.approx(
            MU * BMAG / (2 * np.pi * (1 - NU))
        )

    def test_self_stress_zero(self, registry):
        d = _edge(registry)
        nt.assert_array_equal(d.stress_field(d.position, MU, NU), np.zeros((3, 3)))

    @pytest.mark.parametrize("sign", [1.0, -1.0])
    def test_velocity(self, registry, sign):
        d = _edge(registry, sign=sign, base=_frames.CoordinateSystem())
        # Total stress is recorded in the dislocation frame.
        d.record_stress(d.frame.tensor_to_local(_shear(1e8)))
        velocity = d.calculate_velocity(1e-4)
        nt.assert_allclose(velocity, [sign * 1e8 * BMAG / 1e-4, 0.0, 0.0])
        nt.assert_allclose(d.force, [sign * 1e8 * BMAG, 0.0, 0.0])
        nt.assert_array_equal(d.velocity_at(0), velocity)
        nt.assert_array_equal(d.force_at(0), d.force)

    def test_immobile(self, registry):
        d = _edge(registry, mobile=False)
        d.record_stress(_shear(1e8))
        nt.assert_array_equal(d.calculate_velocity(1e-4), np.zeros(3))
        nt.assert_array_equal(d.force, np.zeros(3))

    def test_lattice_friction(self, registry):
        d = _edge(registry)
        d.record_stress(_shear(1e7))
        nt.assert_array_equal(d.calculate_velocity(1e-4, tau_crss=2e7), np.zeros(3))
        assert d.calculate_velocity(1e-4, tau_crss=5e6)[0] > 0.0

    def test_pinning_stops_motion(self, registry):
        d = _edge(registry)
        d.set_velocity([10.0, 0.0, 0.0])
        d.mobile = False
        nt.assert_array_equal(d.velocity, np.zeros(3))

    def test_histories_out_of_range(self, registry):
        d = _edge(registry)
        d.record_stress(_shear(1.0))
        nt.assert_array_equal(d.stress_at(0), _shear(1.0))
        for i in (-1, 1, 100):
            nt.assert_array_equal(d.stress_at(i), np.zeros((3, 3)))
            nt.assert_array_equal(d.force_at(i), np.zeros(3))
            nt.assert_array_equal(d.velocity_at(i), np.zeros(3))

    def test_annihilation_pairs(self, registry):
        positive = _edge(registry)
        negative = _edge(registry, x=1e-9, sign=-1.0)
        assert positive.annihilates_with(negative)
        assert not positive.annihilates_with(positive)


class TestDislocationSource:
    """Tests for the emission state machine of Frank-Read sources."""

    def _source(self, registry, tau_critical=1e8, time_threshold=1e-8):
        return _defects.DislocationSource(
            [0, 0, 0],
            [1, 0, 0],
            [0, 0, 1],
            BMAG,
            tau_critical,
            time_threshold,
            registry=registry,
        )

    def test_dormant_below_critical(self, registry):
        source = self._source(registry)
        source.record_stress(_shear(0.5e8))
        for _ in range(20):
            assert not source.check(1e-9)
        assert source.state == _core.SourceState.dormant
        assert source.time_remaining == source.time_threshold

    def test_emission_after_threshold(self, registry):
        """Test that a source held at its CRSS emits after exactly the threshold."""
        source = self._source(registry)
        source.record_stress(_shear(1e8))
        for _ in range(9):
            assert not source.check(1e-9)
            assert source.state == _core.SourceState.counting
        assert source.check(1e-9)
        assert source.state == _core.SourceState.emit
        assert source.time_remaining == 0.0

    def test_negative_shear(self, registry):
        source = self._source(registry, time_threshold=2e-9)
        source.record_stress(_shear(-1.5e8))
        assert not source.check(1e-9)
        assert source.check(1e-9)

    def test_reset_when_unloaded(self, registry):
        source = self._source(registry)
        source.record_stress(_shear(1e8))
        for _ in range(5):
            source.check(1e-9)
        source.record_stress(_shear(0.0))
        assert not source.check(1e-9)
        assert source.state == _core.SourceState.dormant
        assert source.time_remaining == source.time_threshold

    def test_refused_and_emitted(self, registry):
        source = self._source(registry, time_threshold=1e-9)
        source.record_stress(_shear(1e8))
        assert source.check(1e-9)
        source.refused()
        # Still due on the next check, without a new countdown.
        assert source.check(1e-9)
        children = [
            _edge(registry, x=x, sign=s)
            for x, s in ((1e-8, 1.0), (-1e-8, -1.0))
        ]
        source.emitted(np.array([1.0, 0.0, 0.0]), children)
        assert source.n_emitted == 1
        assert source.last_dipole == (children[0].uid, children[1].uid)
        assert source.state == _core.SourceState.dormant
        assert source.time_remaining == source.time_threshold

    def test_dipole(self, registry):
        source = self._source(registry)
        assert source.dipole_length(MU, NU) == pytest.approx(
            MU * BMAG / (2 * np.pi * (1 - NU) * 1e8)
        )
        source.record_stress(_shear(1e8))
        nt.assert_array_equal(source.dipole_burgers(), [1.0, 0.0, 0.0])
        source.record_stress(_shear(-1e8))
        nt.assert_array_equal(source.dipole_burgers(), [-1.0, 0.0, 0.0])


def test_boundaries(registry):
    """Test construction of slip plane terminations."""
    surface = _defects.make_boundary(
        _core.DefectType.free_surface, [0, 0, 0], registry=registry
    )
    boundary = _defects.make_boundary(
        _core.DefectType.grain_boundary, [1, 0, 0], registry=registry, neighbours=(0, 3)
    )
    assert isinstance(surface, _defects.FreeSurface)
    assert isinstance(boundary, _defects.GrainBoundary)
    assert boundary.neighbours == (0, 3)
    assert not surface.mobile and not boundary.mobile
    nt.assert_array_equal(boundary.velocity, np.zeros(3))
    assert [registry.kind(i) for i in range(len(registry))] == [
        _core.DefectType.free_surface,
        _core.DefectType.grain_boundary,
    ]
    with pytest.raises(ValueError):
        _defects.make_boundary(_core.DefectType.dislocation, [0, 0, 0])
