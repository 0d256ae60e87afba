"""> DD2D: Grains, crystallites bounded by a grain boundary polygon.

A `Grain` holds a crystallographic orientation (Bunge Euler angles), a frame rotated
accordingly inside the polycrystal frame, the grain boundary polygon and a list of slip
systems. Slip plane traces are the intersections of the slip planes with the plane of
view (the root x-y plane); slip planes end where their traces meet the grain boundary.

>>> import numpy as np
>>> square = [[-1e-6, -1e-6, 0], [1e-6, -1e-6, 0], [1e-6, 1e-6, 0], [-1e-6, 1e-6, 0]]
>>> grain = Grain((0.0, 0.0, 0.0), square)
>>> system = grain.create_slip_system([0, 0, 0], [0, 1, 0])
>>> plane = grain.create_slip_plane(system, [0, 0, 0])
>>> np.allclose(plane.extremities, [[-1e-6, 0, 0], [1e-6, 0, 0]])
True

"""

import numpy as np

from dd2d import core as _core
from dd2d import frames as _frames
from dd2d import geometry as _geo
from dd2d import logger as _log
from dd2d import tensors as _tensors
from dd2d.slipplane import SlipPlane
from dd2d.slipsystem import Aggregate, SlipSystem


class Grain(Aggregate):
    """Grain with orientation `euler_angles` and boundary polygon `boundary_points`.

    - `euler_angles` — Bunge Euler angles (φ₁, Φ, φ₂) in radians
    - `boundary_points` — grain boundary vertices in the parent (polycrystal) frame,
      the polygon is closed automatically
    - `origin` — origin of the grain frame in the parent frame, defaults to the
      centroid of the boundary vertices
    - `base` — parent frame, a new standard root frame is used if None
    - `registry` — `dd2d.uniqueid.UniqueIDRegistry` passed on to new slip planes

    """

    def __init__(
        self, euler_angles, boundary_points, origin=None, base=None, registry=None
    ):
        super().__init__()
        self.registry = registry
        self.euler_angles = np.array(euler_angles, dtype=float)
        self.boundary_base = _geo.close_polygon(boundary_points)
        self.frame = _frames.CoordinateSystem.from_euler(
            self.euler_angles,
            origin=(
                _geo.polygon_centroid(self.boundary_base) if origin is None else origin
            ),
            base=_frames.CoordinateSystem() if base is None else base,
        )
        self.boundary_local = np.array(
            [self.frame.to_local(p) for p in self.boundary_base]
        )
        self.systems = []

    def __repr__(self):
        return (
            f"{self.__class__.__qualname__}(euler_angles={self.euler_angles!r}, "
            + f"n_systems={len(self.systems)})"
        )

    @property
    def children(self):
        return self.systems

    def view_plane_normal(self):
        """Return the root z-axis (plane of view normal) in the grain frame."""
        return self.frame.vector_from_ancestor(np.array([0.0, 0.0, 1.0]))

    def trace(self, normal):
        """Return the unit trace of the slip plane with `normal` (grain frame).

        Returns the zero vector if the slip plane is parallel to the plane of view.

        """
        return _tensors.normalize(np.cross(self.view_plane_normal(), normal))

    def add_slip_system(self, system: SlipSystem):
        system.set_base(self.frame)
        self.systems.append(system)

    def create_slip_system(self, position, normal):
        """Create and add a slip system with `normal` (grain frame).

        The slip direction is the trace of the slip planes in the plane of view.
        Returns None (and logs a warning) if the slip planes are parallel to the
        plane of view.

        """
        direction = self.trace(normal)
        if np.linalg.norm(direction) == 0.0:
            _log.warning(
                "slip plane normal %s is normal to the plane of view, ignoring", normal
            )
            return None
        system = SlipSystem(position, normal, direction, base=self.frame)
        self.systems.append(system)
        return system

    def boundary_crossings(self, system, position):
        """Find the grain boundary crossings of a slip plane trace.

        The slip plane passes through `position` (system frame) along the system
        x-axis. Returns a list of `(point, edge_index)` tuples, with the points in the
        system frame, ordered along the system x-axis.

        """
        point = system.frame.to_base(position)
        direction = system.frame.axes[0]
        crossings = _geo.polygon_intersections(point, direction, self.boundary_local)
        return sorted(
            ((system.frame.to_local(p), k) for p, k in crossings),
            key=lambda c: c[0][0],
        )

    def create_slip_plane(self, system, position, edge_boundaries=None):
        """Create a slip plane through `position` (system frame) and add it to `system`.

        The extremities are the two crossings of the trace with the grain boundary.
        The optional `edge_boundaries` gives `(kind, neighbours)` for each boundary
        edge, by default every end is a grain boundary. Returns None (and logs a
        warning) if the trace does not cross the boundary twice.

        """
        crossings = self.boundary_crossings(system, position)
        if len(crossings) < 2:
            _log.warning(
                "slip plane at %s does not cross the grain boundary twice, skipping",
                position,
            )
            return None
        if edge_boundaries is None:
            ends = [(_core.DefectType.grain_boundary, ())] * 2
        else:
            ends = [edge_boundaries[k] for _, k in crossings]
        plane = SlipPlane(
            [c[0] for c in crossings],
            [0.0, 0.0, 1.0],
            position=position,
            base=system.frame,
            boundary_kinds=[e[0] for e in ends],
            neighbours=[e[1] for e in ends],
            registry=self.registry,
        )
        system.add_slip_plane(plane)
        return plane

    def plane_offsets(self, system, spacing):
        """Yield in-view offsets (system frame) of parallel planes `spacing` apart.

        Offsets start at the system origin and step outwards on either side, as long
        as the planes still cross the grain boundary.

        """
        normal = system.frame.vector_to_base(np.array([0.0, 0.0, 1.0]))
        step_direction = _tensors.normalize(
            np.cross(self.view_plane_normal(), system.frame.axes[0])
        )
        projection = np.abs(np.dot(step_direction, normal))
        if projection < _core.SMALL_NUMBER:
            return
        step = system.frame.vector_to_local(step_direction * spacing / projection)
        yield np.zeros(3)
        for sign in (1.0, -1.0):
            k = 1
            while len(self.boundary_crossings(system, sign * k * step)) == 2:
                yield sign * k * step
                k += 1
