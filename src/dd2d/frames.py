"""> DD2D: Hierarchical coordinate frames.

Every entity of the simulation (polycrystal, grain, slip system, slip plane, defect)
owns a `CoordinateSystem`. A frame is defined by its origin and its three axes, both
expressed in the frame of its parent (`base`). Frames transport points, force-like
vectors and second order tensors between themselves and their parent, or any ancestor.

>>> import numpy as np
>>> root = CoordinateSystem()
>>> frame = CoordinateSystem(
...     origin=[1.0, 0.0, 0.0],
...     axes=[[0.0, 1.0, 0.0], [-1.0, 0.0, 0.0], [0.0, 0.0, 1.0]],
...     base=root,
... )
>>> local = frame.to_local(np.array([1.0, 2.0, 0.0]))
>>> np.allclose(local, [2.0, 0.0, 0.0])
True
>>> np.allclose(frame.to_base(local), [1.0, 2.0, 0.0])
True

"""

import numpy as np

from dd2d import core as _core
from dd2d import logger as _log
from dd2d import tensors as _tensors


class CoordinateSystem:
    """Coordinate frame with an origin, orthonormal axes and an optional parent frame.

    **Attributes:**
    - `origin` (array) — origin of the frame, in the parent frame
    - `axes` (3x3 array) — unit axes of the frame as rows, in the parent frame
    - `base` (`CoordinateSystem` or None) — the parent frame, None for the root
    - `rotation` (3x3 array) — rotation matrix from the parent into this frame

    The root frame (no `base`) always uses the identity rotation.

    """

    def __init__(self, origin=None, axes=None, base=None):
        self.origin = np.zeros(3) if origin is None else np.array(origin, dtype=float)
        self.base = base
        self.axes = _tensors.STANDARD_AXES.copy()
        self.rotation = np.eye(3)
        if axes is not None and not self.set_axes(axes):
            _log.warning("rejected non-orthonormal axes %s, using standard axes", axes)
        else:
            self.calculate_rotation_matrix()

    def __repr__(self):
        return (
            f"{self.__class__.__qualname__}(origin={self.origin!r}, "
            + f"axes={self.axes!r}, root={self.base is None})"
        )

    @classmethod
    def from_euler(cls, angles, origin=None, base=None):
        """Create a frame rotated by the Bunge Euler `angles` (φ₁, Φ, φ₂), in radians."""
        return cls(origin=origin, axes=_tensors.euler_rotation(angles), base=base)

    def set_origin(self, origin):
        """Move the frame origin (given in the parent frame)."""
        self.origin = np.array(origin, dtype=float)

    def set_base(self, base):
        """Attach the frame to a new parent frame and refresh the rotation matrix."""
        self.base = base
        self.calculate_rotation_matrix()

    def set_axes(self, axes):
        """Set the frame axes and refresh the rotation matrix.

        The axes must be non-degenerate and mutually orthogonal within
        `dd2d.core.SMALL_NUMBER`, they are normalised if necessary.
        Otherwise the standard axes are used and False is returned.

        >>> frame = CoordinateSystem()
        >>> frame.set_axes([[2.0, 0.0, 0.0], [0.0, 3.0, 0.0], [0.0, 0.0, 1.0]])
        True
        >>> frame.set_axes([[1.0, 1.0, 0.0], [0.0, 1.0, 0.0], [0.0, 0.0, 1.0]])
        False
        >>> frame.axes[0]
        array([1., 0., 0.])

        """
        _axes = np.array(axes, dtype=float)
        valid = _axes.shape == (3, 3)
        if valid:
            norms = np.linalg.norm(_axes, axis=1)
            valid = bool(np.all(norms >= _core.SMALL_NUMBER))
        if valid:
            _axes /= norms[:, None]
            for i, j in ((0, 1), (0, 2), (1, 2)):
                if np.abs(np.dot(_axes[i], _axes[j])) > _core.SMALL_NUMBER:
                    valid = False
                    break
        if valid:
            self.axes = _axes
        else:
            self.axes = _tensors.STANDARD_AXES.copy()
        self.calculate_rotation_matrix()
        return valid

    def calculate_rotation_matrix(self):
        """Rebuild the rotation matrix from the standard axes and the frame axes."""
        if self.base is None:
            self.rotation = np.eye(3)
        else:
            self.rotation = _tensors.rotation_matrix(
                _tensors.STANDARD_AXES, self.axes
            )

    def to_local(self, point):
        """Transform a point from the parent frame into this frame."""
        return self.rotation @ (np.asarray(point, dtype=float) - self.origin)

    def to_base(self, point):
        """Transform a point from this frame into the parent frame."""
        return self.rotation.T @ np.asarray(point, dtype=float) + self.origin

    def vector_to_local(self, vector):
        """Rotate a free (force-like) vector from the parent frame into this frame."""
        return self.rotation @ np.asarray(vector, dtype=float)

    def vector_to_base(self, vector):
        """Rotate a free (force-like) vector from this frame into the parent frame."""
        return self.rotation.T @ np.asarray(vector, dtype=float)

    def tensor_to_local(self, tensor):
        """Rotate a second order tensor from the parent frame into this frame."""
        return _tensors.rotate_tensor(self.rotation, np.asarray(tensor, dtype=float))

    def tensor_to_base(self, tensor):
        """Rotate a second order tensor from this frame into the parent frame."""
        return _tensors.rotate_tensor(
            self.rotation.T, np.asarray(tensor, dtype=float)
        )

    def lineage(self, ancestor=None):
        """Return the frames from this one up to (excluding) `ancestor`.

        With `ancestor=None`, the chain ends with the root frame.
        Raises `ValueError` if `ancestor` is not an ancestor of this frame.

        """
        chain = []
        frame = self
        while frame is not ancestor:
            if frame is None:
                raise ValueError(f"{ancestor!r} is not an ancestor of {self!r}")
            chain.append(frame)
            frame = frame.base
        return chain

    def rotation_from(self, ancestor=None):
        """Return the rotation from `ancestor` (default: root) into this frame."""
        rotation = np.eye(3)
        for frame in self.lineage(ancestor):
            rotation = rotation @ frame.rotation
        return rotation

    def to_ancestor(self, point, ancestor=None):
        """Transform a point from this frame into `ancestor` (default: root)."""
        _point = np.asarray(point, dtype=float)
        for frame in self.lineage(ancestor):
            _point = frame.to_base(_point)
        return _point

    def from_ancestor(self, point, ancestor=None):
        """Transform a point from `ancestor` (default: root) into this frame."""
        _point = np.asarray(point, dtype=float)
        for frame in reversed(self.lineage(ancestor)):
            _point = frame.to_local(_point)
        return _point

    def vector_to_ancestor(self, vector, ancestor=None):
        """Rotate a free vector from this frame into `ancestor` (default: root)."""
        return self.rotation_from(ancestor).T @ np.asarray(vector, dtype=float)

    def vector_from_ancestor(self, vector, ancestor=None):
        """Rotate a free vector from `ancestor` (default: root) into this frame."""
        return self.rotation_from(ancestor) @ np.asarray(vector, dtype=float)

    def tensor_to_ancestor(self, tensor, ancestor=None):
        """Rotate a second order tensor from this frame into `ancestor`."""
        return _tensors.rotate_tensor(
            self.rotation_from(ancestor).T, np.asarray(tensor, dtype=float)
        )

    def tensor_from_ancestor(self, tensor, ancestor=None):
        """Rotate a second order tensor from `ancestor` into this frame."""
        return _tensors.rotate_tensor(
            self.rotation_from(ancestor), np.asarray(tensor, dtype=float)
        )
