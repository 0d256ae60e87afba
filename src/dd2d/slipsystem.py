"""> DD2D: Slip systems, sets of parallel slip planes.

A `SlipSystem` groups slip planes that share a normal and a slip direction. Its frame has
the x-axis along the slip direction and the z-axis along the normal, both given in the
parent (grain) frame. The dislocations on all planes of a system interact with each
other through their stress fields.

>>> from dd2d.uniqueid import UniqueIDRegistry
>>> system = SlipSystem([0, 0, 0], [0, 0, 1], [1, 0, 0])
>>> plane = SlipPlane(
...     ([-1e-6, 0, 0], [1e-6, 0, 0]), [0, 0, 1], registry=UniqueIDRegistry()
... )
>>> system.add_slip_plane(plane)
>>> len(list(system.slip_planes()))
1

"""

import numpy as np

from dd2d import core as _core
from dd2d import exceptions as _err
from dd2d import frames as _frames
from dd2d import tensors as _tensors
from dd2d.slipplane import SlipPlane, StressField


class Aggregate:
    """Common iteration interface of containers of slip planes.

    Subclasses provide `frame` and `children`, and may override `stress_scopes` to
    change which slip planes interact with each other.

    """

    children = ()

    def __init__(self):
        self.applied_stress_base = np.zeros((3, 3))
        self.applied_stress_local = np.zeros((3, 3))
        self.time_increment = np.inf

    def slip_planes(self):
        """Iterate over all slip planes below this aggregate."""
        for child in self.children:
            yield from child.slip_planes()

    def all_defects(self):
        """Iterate over all defects below this aggregate, in canonical order."""
        for plane in self.slip_planes():
            yield from plane.defects

    def dislocations(self):
        for plane in self.slip_planes():
            yield from plane.dislocations

    @property
    def counters(self):
        """Tuple of (created, annihilated, absorbed) dislocation counts."""
        totals = np.zeros(3, dtype=int)
        for plane in self.slip_planes():
            totals += plane.counters
        return tuple(int(t) for t in totals)

    def apply_stress(self, stress):
        """Set the applied stress, given in the parent frame, and pass it down."""
        self.applied_stress_base = np.array(stress, dtype=float)
        self.applied_stress_local = self.frame.tensor_to_local(self.applied_stress_base)
        for child in self.children:
            child.apply_stress(self.applied_stress_local)

    def stress_field(self, mu, nu):
        """Collect the dislocation stress sources of all planes in this frame."""
        return StressField.collect(self.frame, self.dislocations(), mu, nu)

    def stress_scopes(self, mu, nu):
        """Iterate over `(plane, field)` pairs, with the field acting on each plane.

        All dislocations on the planes of this aggregate interact, so every plane shares
        one field collected from the current dislocation positions.

        """
        field = self.stress_field(mu, nu)
        for plane in self.slip_planes():
            yield plane, field

    def calculate_stresses(self, mu, nu, field=None):
        """Compute the total stress at every defect below this aggregate.

        A `field` collected by a parent aggregate takes precedence over the fields of
        `stress_scopes`.

        """
        if field is not None:
            for plane in self.slip_planes():
                plane.calculate_stresses(mu, nu, field)
            return
        for plane, scope in self.stress_scopes(mu, nu):
            plane.calculate_stresses(mu, nu, scope)

    def calculate_velocities(self, drag, tau_crss=0.0):
        for plane in self.slip_planes():
            plane.calculate_velocities(drag, tau_crss)

    def calculate_time_increment(self, min_distance, min_step):
        """Return the smallest time increment proposed by the children."""
        self.time_increment = min(
            (c.calculate_time_increment(min_distance, min_step) for c in self.children),
            default=np.inf,
        )
        return self.time_increment

    def set_time_increment(self, dt):
        self.time_increment = dt
        for child in self.children:
            child.set_time_increment(dt)

    def move_defects(self, dt, mu, nu, min_distance, local_equilibrium=False):
        for plane in self.slip_planes():
            plane.move_defects(dt, mu, nu, min_distance, local_equilibrium)

    def check_sources(self, dt, mu, nu, min_distance):
        for plane in self.slip_planes():
            plane.check_sources(dt, mu, nu, min_distance)

    def check_local_reactions(self, reaction_radius):
        for plane in self.slip_planes():
            plane.check_local_reactions(reaction_radius)


class SlipSystem(Aggregate):
    """Slip system with a position, normal and slip direction in the parent frame.

    A new standard root frame is used as the parent if `base` is None.
    Raises `dd2d.exceptions.GeometryError` if the normal is not perpendicular to the
    slip direction.

    """

    def __init__(self, position, normal, direction, base=None):
        super().__init__()
        self.position = np.array(position, dtype=float)
        self.normal = _tensors.normalize(normal)
        self.direction = _tensors.normalize(direction)
        if np.abs(np.dot(self.normal, self.direction)) > _core.SMALL_NUMBER:
            raise _err.GeometryError(
                f"slip direction {self.direction} is not perpendicular"
                + f" to the slip plane normal {self.normal}"
            )
        self.frame = _frames.CoordinateSystem(
            origin=self.position,
            axes=[
                self.direction,
                np.cross(self.normal, self.direction),
                self.normal,
            ],
            base=_frames.CoordinateSystem() if base is None else base,
        )
        self.planes = []

    def __repr__(self):
        return (
            f"{self.__class__.__qualname__}(normal={self.normal!r}, "
            + f"direction={self.direction!r}, n_planes={len(self.planes)})"
        )

    @property
    def children(self):
        return self.planes

    def set_base(self, base):
        self.frame.set_base(base)

    def add_slip_plane(self, plane: SlipPlane):
        """Add a slip plane whose extremities are given in the system frame."""
        plane.set_base(self.frame)
        self.planes.append(plane)
