"""> DD2D: Vector, tensor and rotation helpers, and compiled stress kernels.

Vectors are `numpy` arrays of shape (3,), matrices and second order tensors are arrays of
shape (3, 3). Stress and strain tensors are symmetric; they are usually assembled from
their three principal and three shear components, see `symmetric_tensor`.

Rotation matrices follow the passive convention: a matrix built by `rotation_matrix`
from an old and a new set of axes has entries $R_{ij} = e′_i · e_j$ and maps the
components of a vector (tensor) in the old frame to its components in the new frame,
$v′ = R v$ ($T′ = R T Rᵀ$).

"""

import numba as nb
import numpy as np
from scipy import linalg as la
from scipy.spatial.transform import Rotation

STANDARD_AXES = np.eye(3)
"""Axes of the standard (root) frame, as rows."""


def identity():
    """Return the 3x3 identity matrix."""
    return np.eye(3)


def dyadic(a, b):
    """Return the dyadic (outer) product $a ⊗ b$ of two 3-vectors."""
    return np.outer(np.asarray(a, dtype=float), np.asarray(b, dtype=float))


def normalize(vector):
    """Return the unit vector parallel to `vector`.

    A zero-length input gives the zero vector instead of raising.

    >>> normalize([3.0, 0.0, 4.0])
    array([0.6, 0. , 0.8])
    >>> normalize([0.0, 0.0, 0.0])
    array([0., 0., 0.])

    """
    _vector = np.asarray(vector, dtype=float)
    norm = la.norm(_vector)
    if norm == 0.0:
        return np.zeros_like(_vector)
    return _vector / norm


def determinant(matrix):
    """Return the determinant of a 3x3 matrix."""
    return float(la.det(np.asarray(matrix, dtype=float)))


@nb.njit(fastmath=True)
def adjugate(matrix):
    """Return the adjugate (transposed cofactor matrix) of a 3x3 matrix."""
    cofactors = np.empty((3, 3))
    for i in range(3):
        i1, i2 = (i + 1) % 3, (i + 2) % 3
        for j in range(3):
            j1, j2 = (j + 1) % 3, (j + 2) % 3
            cofactors[i, j] = (
                matrix[i1, j1] * matrix[i2, j2] - matrix[i1, j2] * matrix[i2, j1]
            )
    return cofactors.T.copy()


def inverse(matrix):
    """Return the inverse of a 3x3 matrix, or the zero matrix if it is singular.

    >>> inverse(np.diag([2.0, 4.0, 5.0]))
    array([[0.5 , 0.  , 0.  ],
           [0.  , 0.25, 0.  ],
           [0.  , 0.  , 0.2 ]])
    >>> inverse(np.ones((3, 3)))
    array([[0., 0., 0.],
           [0., 0., 0.],
           [0., 0., 0.]])

    """
    _matrix = np.asarray(matrix, dtype=float)
    det = determinant(_matrix)
    scale = np.abs(_matrix).max()
    if scale == 0.0 or np.abs(det) <= np.finfo(float).eps * scale**3:
        return np.zeros((3, 3))
    return adjugate(_matrix) / det


def symmetric_tensor(principal, shear):
    """Assemble a symmetric tensor from principal (xx, yy, zz) and shear (xy, xz, yz)
    components.

    >>> symmetric_tensor((1, 2, 3), (4, 5, 6))
    array([[1., 4., 5.],
           [4., 2., 6.],
           [5., 6., 3.]])

    """
    xx, yy, zz = principal
    xy, xz, yz = shear
    return np.array(
        [[xx, xy, xz], [xy, yy, yz], [xz, yz, zz]],
        dtype=float,
    )


def tensor_components(tensor):
    """Return the six independent components (xx, yy, zz, xy, xz, yz) of a tensor."""
    return np.array(
        [
            tensor[0, 0],
            tensor[1, 1],
            tensor[2, 2],
            tensor[0, 1],
            tensor[0, 2],
            tensor[1, 2],
        ]
    )


def checked_symmetric(matrix):
    """Return a copy of `matrix` if it is symmetric, otherwise the zero tensor.

    >>> checked_symmetric([[1.0, 2.0, 0.0], [2.0, 1.0, 0.0], [0.0, 0.0, 1.0]])[0]
    array([1., 2., 0.])
    >>> checked_symmetric([[1.0, 2.0, 0.0], [0.0, 1.0, 0.0], [0.0, 0.0, 1.0]])[0]
    array([0., 0., 0.])

    """
    _matrix = np.array(matrix, dtype=float)
    scale = max(1.0, np.abs(_matrix).max())
    if np.allclose(_matrix, _matrix.T, rtol=0, atol=1e-12 * scale):
        return _matrix
    return np.zeros((3, 3))


def rotation_matrix(old_axes, new_axes):
    """Build the rotation matrix that maps components from `old_axes` to `new_axes`.

    Both arguments hold three orthonormal vectors as rows. The entry $(i, j)$ of the
    result is the dot product of the i-th new axis with the j-th old axis.

    >>> R = rotation_matrix(np.eye(3), [[0, 1, 0], [-1, 0, 0], [0, 0, 1]])
    >>> R @ np.array([1.0, 0.0, 0.0])
    array([ 0., -1.,  0.])

    """
    return np.asarray(new_axes, dtype=float) @ np.asarray(old_axes, dtype=float).T


def rotate_tensor(rotation, tensor):
    """Rotate a second order tensor, $T′ = R T Rᵀ$."""
    return rotation @ tensor @ rotation.T


def euler_rotation(angles):
    """Return the passive rotation matrix for Bunge Euler angles (φ₁, Φ, φ₂) in radians.

    The result is $R = R_z(φ₂) R_x(Φ) R_z(φ₁)$, its rows are the axes of the rotated
    frame expressed in the reference frame.

    >>> R = euler_rotation((np.pi / 2, 0.0, 0.0))
    >>> np.allclose(R[0], [0.0, 1.0, 0.0])
    True

    """
    return Rotation.from_euler("ZXZ", np.asarray(angles, dtype=float)).inv().as_matrix()


@nb.njit(fastmath=True)
def cross(a, b):
    """Cross product of two 3-vectors."""
    out = np.empty(3)
    out[0] = a[1] * b[2] - a[2] * b[1]
    out[1] = a[2] * b[0] - a[0] * b[2]
    out[2] = a[0] * b[1] - a[1] * b[0]
    return out


@nb.njit(fastmath=True)
def edge_dislocation_stress(x, y, prefactor, nu):
    """Stress field of a straight edge dislocation, in the dislocation frame.

    The dislocation frame has its x-axis along the Burgers vector and its z-axis along
    the line vector. The observation point is at (`x`, `y`) in that frame, `prefactor`
    is $D = μ b / (2π (1 - ν))$ and `nu` is Poisson's ratio. The stress at the
    dislocation core is returned as zero.

    See e.g. [Hirth & Lothe (1982)](https://isbnsearch.org/isbn/0894646176),
    Eq. 3-43.

    """
    out = np.zeros((3, 3))
    r2 = x * x + y * y
    if r2 == 0.0:
        return out
    r4 = r2 * r2
    sxx = -prefactor * y * (3 * x * x + y * y) / r4
    syy = prefactor * y * (x * x - y * y) / r4
    sxy = prefactor * x * (x * x - y * y) / r4
    out[0, 0] = sxx
    out[1, 1] = syy
    out[2, 2] = nu * (sxx + syy)
    out[0, 1] = sxy
    out[1, 0] = sxy
    return out


@nb.njit(fastmath=True)
def superpose_edge_stresses(point, origins, rotations, prefactors, nu):
    """Sum the stress fields of many edge dislocations at `point`.

    - `point` — observation point in the common frame
    - `origins` — Nx3 array of dislocation positions in the common frame
    - `rotations` — Nx3x3 array of rotations from the common frame into each
      dislocation frame
    - `prefactors` — array of N values of $μ b / (2π (1 - ν))$
    - `nu` — Poisson's ratio

    Returns the total stress tensor in the common frame.

    """
    total = np.zeros((3, 3))
    for k in range(origins.shape[0]):
        rotation = rotations[k]
        local = rotation @ (point - origins[k])
        stress = edge_dislocation_stress(local[0], local[1], prefactors[k], nu)
        total += rotation.T @ stress @ rotation
    return total


@nb.njit(fastmath=True)
def peach_koehler(stress, burgers, line):
    """Peach-Koehler force per unit length, $f = (σ · b) × ℓ$."""
    return cross(stress @ burgers, line)


@nb.njit
def ideal_time_increment(p0, v0, p1, v1, min_distance):
    """Time until a defect at `p0` comes within `min_distance` of a neighbour at `p1`.

    Both defects move with constant velocities `v0` and `v1`. Returns infinity if the
    first defect is at rest or the two are not approaching, and zero if they are
    already closer than `min_distance` (or coincident).

    """
    if np.sqrt(np.dot(v0, v0)) == 0.0:
        return np.inf
    dp = p1 - p0
    dv = v1 - v0
    norm_dp = np.sqrt(np.dot(dp, dp))
    if norm_dp == 0.0:
        return 0.0
    norm_dv = np.sqrt(np.dot(dv, dv))
    if norm_dv == 0.0:
        return np.inf
    cosine = np.dot(dv, dp) / (norm_dv * norm_dp)
    if cosine < 0.0:
        if norm_dp <= min_distance:
            return 0.0
        return (norm_dp - min_distance) / norm_dv
    return np.inf
