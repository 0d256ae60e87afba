"""> DD2D: Tests for geometric helpers and standard slip systems."""

import numpy as np
import pytest
from numpy import testing as nt

from dd2d import geometry as _geo


@pytest.mark.parametrize("structure", list(_geo.CrystalStructure))
def test_standard_slip_systems(structure):
    """Test that standard slip systems are distinct, orthogonal unit pairs."""
    systems = _geo.standard_slip_systems(structure)
    assert len(systems) == 12
    for normal, direction in systems:
        nt.assert_allclose(np.linalg.norm(normal), 1.0)
        nt.assert_allclose(np.linalg.norm(direction), 1.0)
        assert abs(np.dot(normal, direction)) < 1e-12
    pairs = {(tuple(n.round(6)), tuple(d.round(6))) for n, d in systems}
    assert len(pairs) == 12
    normals = {tuple(n.round(6)) for n, _ in systems}
    assert len(normals) == (4 if structure == _geo.CrystalStructure.fcc else 6)


def test_intersection():
    nt.assert_allclose(
        _geo.intersection([0, 0, 0], [1, 1, 0], [2, 0, 0], [2, 4, 0]), [2, 2, 0]
    )
    # Crossings at the segment ends do not count.
    assert _geo.intersection([0, 0, 0], [1, 0, 0], [2, 0, 0], [2, 4, 0]) is None
    # Skew lines.
    assert _geo.intersection([0, 0, 1], [1, 0, 0], [2, -1, 0], [2, 1, 0]) is None
    # Degenerate direction.
    assert _geo.intersection([0, 0, 0], [0, 0, 0], [2, -1, 0], [2, 1, 0]) is None


def test_polygon_intersections():
    square = _geo.close_polygon([[-1, -1, 0], [1, -1, 0], [1, 1, 0], [-1, 1, 0]])
    assert len(square) == 5
    nt.assert_array_equal(square[0], square[-1])
    # The closed polygon is not closed again.
    assert len(_geo.close_polygon(square)) == 5

    crossings = _geo.polygon_intersections([0, 0.5, 0], [1, 0, 0], square)
    assert [k for _, k in crossings] == [1, 3]
    nt.assert_allclose([p for p, _ in crossings], [[1, 0.5, 0], [-1, 0.5, 0]])
    assert _geo.polygon_intersections([0, 2, 0], [1, 0, 0], square) == []
    assert len(_geo.polygon_intersections([0, 0.5, 0], [1, 0, 0], square, 1)) == 1
    nt.assert_allclose(_geo.polygon_centroid(square), [0, 0, 0])


def test_sample_points():
    points = _geo.sample_points([0, 0, 0], [1, 2, 0], 5)
    assert points.shape == (5, 3)
    nt.assert_allclose(points[[0, -1]], [[0, 0, 0], [1, 2, 0]])
    nt.assert_allclose(points[2], [0.5, 1, 0])
    assert len(_geo.points_between([0, 0, 0], [1, 0, 0], 0)) == 0
