"""> DD2D: Geometric helpers for slip-plane construction and standard slip systems."""

import itertools as it
from enum import Enum, unique

import numpy as np

from dd2d import core as _core
from dd2d import tensors as _tensors


@unique
class CrystalStructure(Enum):
    """Crystal structures with predefined slip systems.

    The value of a member is the `(normal, direction)` family of the slip systems,
    i.e. {111}<110> for FCC and {110}<111> for BCC crystals.

    """

    fcc = ((1, 1, 1), (1, 1, 0))
    bcc = ((1, 1, 0), (1, 1, 1))


def _signed_permutations(vector):
    # One representative of each ± pair: first nonzero component is positive.
    candidates = set()
    for perm in it.permutations(vector):
        for signs in it.product((1, -1), repeat=3):
            candidate = tuple(int(p * s) for p, s in zip(perm, signs))
            leading = next(c for c in candidate if c != 0)
            if leading > 0:
                candidates.add(candidate)
    return [np.array(c, dtype=float) for c in sorted(candidates, reverse=True)]


def standard_slip_systems(structure: CrystalStructure):
    """Return the slip systems of a cubic crystal as a list of `(normal, direction)`.

    Normals and directions are unit vectors in the crystal frame. Antiparallel
    normals (directions) are considered equivalent, so each system is listed once.

    >>> len(standard_slip_systems(CrystalStructure.fcc))
    12
    >>> len(standard_slip_systems(CrystalStructure.bcc))
    12
    >>> normal, direction = standard_slip_systems(CrystalStructure.fcc)[0]
    >>> bool(np.isclose(np.dot(normal, direction), 0.0))
    True

    """
    n, d = structure.value
    systems = []
    for normal in _signed_permutations(n):
        for direction in _signed_permutations(d):
            if np.abs(np.dot(normal, direction)) < _core.SMALL_NUMBER:
                systems.append(
                    (_tensors.normalize(normal), _tensors.normalize(direction))
                )
    return systems


def intersection(point, direction, start, end):
    """Find where the line through `point` along `direction` crosses a segment.

    The segment runs from `start` to `end`. Solves $R + uV = P + t(Q - P)$ for $t$ by
    taking cross products with $V$; the line and the segment must be coplanar.
    Returns the intersection point if it lies strictly inside the segment
    (`SMALL_NUMBER < t < 1 - SMALL_NUMBER`), otherwise None. Parallel lines never
    intersect.

    >>> intersection([0, 0, 0], [1, 0, 0], [1, -1, 0], [1, 1, 0])
    array([1., 0., 0.])
    >>> intersection([0, 0, 0], [1, 0, 0], [1, 1, 0], [1, 2, 0]) is None
    True
    >>> intersection([0, 0, 0], [1, 0, 0], [0, 1, 0], [1, 1, 0]) is None
    True

    """
    R = np.asarray(point, dtype=float)
    V = np.asarray(direction, dtype=float)
    P = np.asarray(start, dtype=float)
    Q = np.asarray(end, dtype=float)
    A = P - R
    B = Q - P
    AV = np.cross(A, V)
    BV = np.cross(B, V)
    BV_sq = np.dot(BV, BV)
    scale = (np.linalg.norm(A) + np.linalg.norm(B)) * np.linalg.norm(V)
    if scale == 0.0 or np.sqrt(BV_sq) < _core.SMALL_NUMBER * scale:
        return None
    t = -np.dot(AV, BV) / BV_sq
    if np.linalg.norm(AV + t * BV) >= _core.SMALL_NUMBER * scale:
        return None  # Not coplanar.
    if t > _core.SMALL_NUMBER and 1.0 - t > _core.SMALL_NUMBER:
        return P + t * B
    return None


def polygon_intersections(point, direction, polygon, limit=2):
    """Return up to `limit` crossings of a line with the edges of a closed polygon.

    The `polygon` is a sequence of vertices whose last entry repeats the first.
    Each result is a tuple `(point, edge_index)`.

    """
    crossings = []
    for k in range(len(polygon) - 1):
        crossing = intersection(point, direction, polygon[k], polygon[k + 1])
        if crossing is not None:
            crossings.append((crossing, k))
            if len(crossings) == limit:
                break
    return crossings


def close_polygon(points):
    """Return the polygon vertices as an array that ends with its first vertex."""
    _points = np.atleast_2d(np.asarray(points, dtype=float))
    if len(_points) > 0 and not np.allclose(_points[0], _points[-1]):
        _points = np.vstack([_points, _points[0]])
    return _points


def polygon_centroid(points):
    """Return the mean of the distinct vertices of a (possibly closed) polygon."""
    _points = np.atleast_2d(np.asarray(points, dtype=float))
    if len(_points) > 1 and np.allclose(_points[0], _points[-1]):
        _points = _points[:-1]
    return _points.mean(axis=0)


def points_between(start, end, n):
    """Return `n` points evenly spaced strictly between `start` and `end`.

    >>> points_between([0, 0, 0], [4, 0, 0], 3)[:, 0]
    array([1., 2., 3.])

    """
    _start = np.asarray(start, dtype=float)
    _end = np.asarray(end, dtype=float)
    fractions = np.arange(1, n + 1) / (n + 1)
    return _start + np.outer(fractions, _end - _start)


def sample_points(start, end, n):
    """Return `n` points evenly spaced from `start` to `end`, both included."""
    _start = np.asarray(start, dtype=float)
    _end = np.asarray(end, dtype=float)
    return _start + np.outer(np.linspace(0.0, 1.0, n), _end - _start)
