"""> DD2D: Tests for tensor operations and stress kernels."""

import numpy as np
import pytest
from numpy import testing as nt

from dd2d import tensors as _tensors


def test_inverse():
    """Test inverse of regular and singular 3x3 matrices."""
    rng = np.random.default_rng(seed=1)
    for _ in range(10):
        matrix = rng.uniform(-1.0, 1.0, (3, 3)) + 3 * np.eye(3)
        nt.assert_allclose(_tensors.inverse(matrix) @ matrix, np.eye(3), atol=1e-12)
    nt.assert_array_equal(_tensors.inverse(np.zeros((3, 3))), np.zeros((3, 3)))
    singular = np.array([[1.0, 2.0, 3.0], [2.0, 4.0, 6.0], [0.0, 1.0, 0.0]])
    nt.assert_array_equal(_tensors.inverse(singular), np.zeros((3, 3)))


def test_determinant_dyadic():
    """Test determinant and dyadic product helpers."""
    assert _tensors.determinant(np.diag([1.0, 2.0, 3.0])) == pytest.approx(6.0)
    nt.assert_array_equal(
        _tensors.dyadic([1, 0, 0], [0, 2, 0]),
        [[0.0, 2.0, 0.0], [0.0, 0.0, 0.0], [0.0, 0.0, 0.0]],
    )


def test_symmetric_tensor_components():
    """Test round trip between symmetric tensors and their six components."""
    components = np.array([1.0, 2.0, 3.0, 4.0, 5.0, 6.0])
    tensor = _tensors.symmetric_tensor(components[:3], components[3:])
    nt.assert_array_equal(tensor, tensor.T)
    nt.assert_array_equal(_tensors.tensor_components(tensor), components)


@pytest.mark.parametrize(
    "angles",
    [(0.0, 0.0, 0.0), (np.pi / 3, np.pi / 5, np.pi / 7), (1.0, 2.0, 3.0)],
)
def test_euler_rotation_orthonormal(angles):
    """Test that Euler angle rotations are proper orthonormal matrices."""
    R = _tensors.euler_rotation(angles)
    nt.assert_allclose(R @ R.T, np.eye(3), atol=1e-12)
    assert _tensors.determinant(R) == pytest.approx(1.0)


def test_rotation_matrix_passive():
    """Test passive rotation of vector and tensor components."""
    new_axes = np.array([[0.0, 1.0, 0.0], [-1.0, 0.0, 0.0], [0.0, 0.0, 1.0]])
    R = _tensors.rotation_matrix(np.eye(3), new_axes)
    # The old x-axis is the negative new y-axis.
    nt.assert_allclose(R @ [1.0, 0.0, 0.0], [0.0, -1.0, 0.0], atol=1e-15)
    stress = _tensors.symmetric_tensor((1.0, 2.0, 0.0), (0.0, 0.0, 0.0))
    nt.assert_allclose(
        _tensors.rotate_tensor(R, stress), np.diag([2.0, 1.0, 0.0]), atol=1e-15
    )


def test_edge_stress_vanishes_on_line():
    """Test that the edge dislocation stress is zero at the core."""
    nt.assert_array_equal(
        _tensors.edge_dislocation_stress(0.0, 0.0, 1.0, 0.3), np.zeros((3, 3))
    )
    # Points along the dislocation line map to the core in the dislocation frame.
    rotations = np.eye(3).reshape(1, 3, 3)
    for z in (-1e-6, 0.0, 2e-6):
        nt.assert_array_equal(
            _tensors.superpose_edge_stresses(
                np.array([0.0, 0.0, z]), np.zeros((1, 3)), rotations, np.ones(1), 0.3
            ),
            np.zeros((3, 3)),
        )


def test_edge_stress_components():
    """Test the analytical edge dislocation stress field."""
    D, nu = 4.5, 0.3
    # On the glide plane (y = 0) only the shear component is nonzero.
    x = 2e-7
    stress = _tensors.edge_dislocation_stress(x, 0.0, D, nu)
    nt.assert_allclose(stress[0, 1], D / x)
    nt.assert_allclose(stress[1, 0], D / x)
    assert stress[0, 0] == stress[1, 1] == stress[2, 2] == 0.0
    # Above the slip plane (x = 0) the shear component vanishes.
    y = 3e-7
    stress = _tensors.edge_dislocation_stress(0.0, y, D, nu)
    nt.assert_allclose(stress[0, 0], -D / y)
    nt.assert_allclose(stress[1, 1], -D / y)
    nt.assert_allclose(stress[2, 2], -2 * nu * D / y)
    assert stress[0, 1] == 0.0
    # Odd symmetry of the shear stress.
    nt.assert_allclose(
        _tensors.edge_dislocation_stress(-1e-7, 2e-7, D, nu),
        -_tensors.edge_dislocation_stress(1e-7, -2e-7, D, nu),
    )


def test_superposition():
    """Test that superposed fields equal the sum of rotated individual fields."""
    rng = np.random.default_rng(seed=8816)
    origins = rng.uniform(-1e-6, 1e-6, (4, 3))
    origins[:, 2] = 0.0
    rotations = np.array(
        [_tensors.euler_rotation((a, 0.0, 0.0)) for a in rng.uniform(0, np.pi, 4)]
    )
    prefactors = rng.uniform(1.0, 5.0, 4)
    point = np.array([3e-7, -2e-7, 0.0])
    expected = np.zeros((3, 3))
    for origin, rotation, prefactor in zip(origins, rotations, prefactors):
        local = rotation @ (point - origin)
        expected += (
            rotation.T
            @ _tensors.edge_dislocation_stress(local[0], local[1], prefactor, 0.3)
            @ rotation
        )
    nt.assert_allclose(
        _tensors.superpose_edge_stresses(point, origins, rotations, prefactors, 0.3),
        expected,
        rtol=1e-10,
    )
    nt.assert_array_equal(
        _tensors.superpose_edge_stresses(
            point, np.empty((0, 3)), np.empty((0, 3, 3)), np.empty(0), 0.3
        ),
        np.zeros((3, 3)),
    )


def test_peach_koehler():
    """Test the glide force of an edge dislocation under pure shear."""
    tau, bmag = 1e8, 2.5e-10
    stress = _tensors.symmetric_tensor((0.0, 0.0, 0.0), (tau, 0.0, 0.0))
    force = _tensors.peach_koehler(
        stress, np.array([bmag, 0.0, 0.0]), np.array([0.0, 0.0, 1.0])
    )
    nt.assert_allclose(force, [tau * bmag, 0.0, 0.0])
    force = _tensors.peach_koehler(
        stress, np.array([-bmag, 0.0, 0.0]), np.array([0.0, 0.0, 1.0])
    )
    nt.assert_allclose(force, [-tau * bmag, 0.0, 0.0])


def test_ideal_time_increment():
    """Test the time until two moving defects come within the minimum distance."""
    p0, p1 = np.array([0.0, 0.0, 0.0]), np.array([10.0, 0.0, 0.0])
    at_rest = np.zeros(3)
    # Approaching a fixed obstacle.
    assert _tensors.ideal_time_increment(
        p0, np.array([2.0, 0.0, 0.0]), p1, at_rest, 2.0
    ) == pytest.approx(4.0)
    # Approaching each other.
    assert _tensors.ideal_time_increment(
        p0, np.array([2.0, 0.0, 0.0]), p1, np.array([-2.0, 0.0, 0.0]), 2.0
    ) == pytest.approx(2.0)
    # Moving apart, moving in parallel or at rest.
    assert np.isinf(
        _tensors.ideal_time_increment(p0, np.array([-1.0, 0.0, 0.0]), p1, at_rest, 2.0)
    )
    assert np.isinf(
        _tensors.ideal_time_increment(
            p0, np.array([1.0, 0.0, 0.0]), p1, np.array([1.0, 0.0, 0.0]), 2.0
        )
    )
    assert np.isinf(_tensors.ideal_time_increment(p0, at_rest, p1, at_rest, 2.0))
    # Already too close, or coincident.
    assert (
        _tensors.ideal_time_increment(
            p0, np.array([1.0, 0.0, 0.0]), np.array([1.0, 0.0, 0.0]), at_rest, 2.0
        )
        == 0.0
    )
    assert (
        _tensors.ideal_time_increment(p0, np.array([1.0, 0.0, 0.0]), p0, at_rest, 2.0)
        == 0.0
    )
