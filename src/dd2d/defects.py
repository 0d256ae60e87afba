"""> DD2D: Defect kinds living on slip planes.

All defects share a `Defect` base with a kind tag (`dd2d.core.DefectType`),
a unique identifier, a local coordinate frame whose parent is the slip-plane frame,
the current total stress (in the defect's own frame) and the stress history.

Defect kinds:
- `Dislocation` — straight edge dislocation gliding along the slip-plane x-axis
- `DislocationSource` — Frank-Read source that emits dislocation dipoles
- `FreeSurface` — slip plane termination that absorbs dislocations
- `GrainBoundary` — slip plane termination that pins dislocations

Positions, Burgers and line vectors are given in the slip-plane frame.
Only pure edge dislocations are supported: the Burgers vector must be perpendicular
to the line vector, otherwise `dd2d.exceptions.GeometryError` is raised.

>>> from dd2d.uniqueid import UniqueIDRegistry
>>> registry = UniqueIDRegistry()
>>> d = Dislocation([0, 0, 0], [1, 0, 0], [0, 0, 1], 2.5e-10, registry=registry)
>>> d.uid, d.kind.name, d.mobile
(0, 'dislocation', True)
>>> Dislocation([0, 0, 0], [1, 0, 0], [1, 0, 1], 2.5e-10, registry=registry)  # doctest: +ELLIPSIS
Traceback (most recent call last):
 ...
dd2d.exceptions.GeometryError: only pure edge dislocations are supported, ...

"""

import numpy as np

from dd2d import core as _core
from dd2d import exceptions as _err
from dd2d import frames as _frames
from dd2d import tensors as _tensors
from dd2d import uniqueid as _uniqueid


def _edge_axes(burgers, line):
    # Local frame of an edge defect: x ∥ b, z ∥ l, y = z × x.
    x = _tensors.normalize(burgers)
    z = _tensors.normalize(line)
    if np.linalg.norm(x) == 0.0 or np.linalg.norm(z) == 0.0:
        raise _err.GeometryError(
            f"Burgers and line vectors must be nonzero, got b = {burgers}, l = {line}"
        )
    if np.abs(np.dot(x, z)) > _core.SMALL_NUMBER:
        raise _err.GeometryError(
            "only pure edge dislocations are supported,"
            + f" got b = {np.asarray(burgers, dtype=float)},"
            + f" l = {np.asarray(line, dtype=float)}"
        )
    return np.array([x, np.cross(z, x), z])


class Defect:
    """Base class for defects on a slip plane.

    - `position` — position in the slip-plane frame
    - `base` — the slip-plane frame (`dd2d.frames.CoordinateSystem`), optional
    - `registry` — `dd2d.uniqueid.UniqueIDRegistry` that issues the identifier,
      the process default is used if None
    - `axes` — axes of the local frame, in the slip-plane frame
    - `parameters` — parameter blob stored in the registry

    """

    kind = None

    def __init__(self, position, base=None, registry=None, axes=None, parameters=None):
        if registry is None:
            registry = _uniqueid.default_registry()
        self.frame = _frames.CoordinateSystem(origin=position, axes=axes, base=base)
        self.uid = registry.new_id(self.kind, parameters)
        self.total_stress = np.zeros((3, 3))
        self.stress_history = []

    def __repr__(self):
        return (
            f"{self.__class__.__qualname__}(uid={self.uid}, "
            + f"position={self.position!r})"
        )

    @property
    def position(self):
        """Position of the defect in the slip-plane frame."""
        return self.frame.origin

    def set_position(self, position):
        self.frame.set_origin(position)

    def set_base(self, base):
        """Attach the defect frame to a (new) slip-plane frame."""
        self.frame.set_base(base)

    @property
    def velocity(self):
        """Velocity of the defect in the slip-plane frame (zero unless mobile)."""
        return np.zeros(3)

    @property
    def mobile(self):
        return False

    def record_stress(self, stress):
        """Store the total stress (in the defect frame) and append it to the history."""
        self.total_stress = np.array(stress, dtype=float)
        self.stress_history.append(self.total_stress)

    def stress_at(self, i):
        """Return the total stress of iteration `i`, or zeros if out of range."""
        if 0 <= i < len(self.stress_history):
            return self.stress_history[i]
        return np.zeros((3, 3))

    def ideal_time_increment(self, other, min_distance):
        """Time until this defect comes within `min_distance` of `other`.

        See `dd2d.tensors.ideal_time_increment`.

        """
        return _tensors.ideal_time_increment(
            self.position, self.velocity, other.position, other.velocity, min_distance
        )


class Dislocation(Defect):
    """Straight edge dislocation.

    - `position` — position in the slip-plane frame
    - `burgers` — Burgers vector in the slip-plane frame (in units of `bmag`)
    - `line` — line vector in the slip-plane frame
    - `bmag` — magnitude of the Burgers vector (m)
    - `mobile` — whether the dislocation may glide

    The local frame has its x-axis along the Burgers vector and its z-axis along the
    line vector.

    """

    kind = _core.DefectType.dislocation

    def __init__(
        self,
        position,
        burgers,
        line,
        bmag,
        mobile=True,
        base=None,
        registry=None,
    ):
        self.burgers = np.array(burgers, dtype=float)
        self.line = _tensors.normalize(line)
        axes = _edge_axes(self.burgers, self.line)
        super().__init__(
            position,
            base=base,
            registry=registry,
            axes=axes,
            parameters=np.concatenate([self.burgers, self.line]),
        )
        self.bmag = float(bmag)
        self._mobile = bool(mobile)
        self.force = np.zeros(3)
        self.force_history = []
        self._velocity = np.zeros(3)
        self.velocity_history = []

    @property
    def mobile(self):
        return self._mobile

    @mobile.setter
    def mobile(self, value):
        self._mobile = bool(value)
        if not self._mobile:
            self._velocity = np.zeros(3)

    @property
    def velocity(self):
        return self._velocity

    @property
    def burgers_local(self):
        """Burgers vector in the dislocation frame."""
        return self.frame.vector_to_local(self.burgers)

    def set_velocity(self, velocity):
        self._velocity = np.array(velocity, dtype=float)

    def prefactor(self, mu, nu):
        """Return the stress prefactor $D = μ b / (2π (1 - ν))$."""
        return (
            mu * self.bmag * np.linalg.norm(self.burgers) / (2 * np.pi * (1 - nu))
        )

    def stress_field(self, point, mu, nu):
        """Return the stress of this dislocation at `point`, both in the plane frame."""
        local = self.frame.to_local(point)
        stress = _tensors.edge_dislocation_stress(
            local[0], local[1], self.prefactor(mu, nu), nu
        )
        return self.frame.tensor_to_base(stress)

    def resolved_shear_stress(self):
        """Return $τ_{xy}$ of the total stress in the dislocation frame."""
        return self.total_stress[0, 1]

    def peach_koehler_force(self, stress=None):
        """Return the glide force per unit length in the slip-plane frame.

        The force is $f = (σ · b) × ℓ$ with $b$ scaled by the Burgers magnitude.
        The stress defaults to the current total stress.

        """
        if stress is None:
            stress = self.frame.tensor_to_base(self.total_stress)
        return _tensors.peach_koehler(
            np.ascontiguousarray(stress), self.bmag * self.burgers, self.line
        )

    def calculate_velocity(self, drag, tau_crss=0.0):
        """Compute and record the force and the glide velocity.

        The velocity is the component of the force along the slip-plane x-axis divided
        by the `drag` coefficient. Immobile dislocations, and those whose resolved shear
        stress is below `tau_crss`, get zero force and velocity.

        """
        if not self.mobile or np.abs(self.resolved_shear_stress()) < tau_crss:
            self.force = np.zeros(3)
            self._velocity = np.zeros(3)
        else:
            self.force = self.peach_koehler_force()
            self._velocity = np.array([self.force[0] / drag, 0.0, 0.0])
        self.force_history.append(self.force)
        self.velocity_history.append(self._velocity)
        return self._velocity

    def force_at(self, i):
        """Return the force of iteration `i`, or zeros if out of range."""
        if 0 <= i < len(self.force_history):
            return self.force_history[i]
        return np.zeros(3)

    def velocity_at(self, i):
        """Return the velocity of iteration `i`, or zeros if out of range."""
        if 0 <= i < len(self.velocity_history):
            return self.velocity_history[i]
        return np.zeros(3)

    def annihilates_with(self, other):
        """Check if the Burgers vectors of two dislocations cancel out."""
        return (
            np.linalg.norm(self.burgers + other.burgers) < _core.SMALL_NUMBER
            and np.isclose(self.bmag, other.bmag)
        )


class DislocationSource(Defect):
    """Frank-Read source of edge dislocation dipoles.

    - `position` — position in the slip-plane frame
    - `burgers` — Burgers vector of the emitted dislocations, in the slip-plane frame
    - `line` — line vector of the emitted dislocations, in the slip-plane frame
    - `bmag` — magnitude of the Burgers vector (m)
    - `tau_critical` — CRSS required for the source to operate (Pa)
    - `time_threshold` — time spent at or above the CRSS before a dipole is emitted (s)

    See `check` for the emission state machine.

    """

    kind = _core.DefectType.frank_read_source

    def __init__(
        self,
        position,
        burgers,
        line,
        bmag,
        tau_critical,
        time_threshold,
        base=None,
        registry=None,
    ):
        self.burgers = np.array(burgers, dtype=float)
        self.line = _tensors.normalize(line)
        axes = _edge_axes(self.burgers, self.line)
        super().__init__(
            position,
            base=base,
            registry=registry,
            axes=axes,
            parameters=np.concatenate([self.burgers, self.line]),
        )
        self.bmag = float(bmag)
        self.tau_critical = float(tau_critical)
        self.time_threshold = float(time_threshold)
        self.time_remaining = float(time_threshold)
        self.state = _core.SourceState.dormant
        self.last_dipole = None
        self.n_emitted = 0

    def resolved_shear_stress(self):
        """Return $τ_{xy}$ of the total stress in the source frame."""
        return self.total_stress[0, 1]

    def dipole_length(self, mu, nu):
        """Return the separation $L = μ b / (2π (1 - ν) τ_c)$ of emitted dipoles."""
        return mu * self.bmag / (2 * np.pi * (1 - nu) * self.tau_critical)

    def check(self, dt):
        """Advance the emission state machine by `dt` and check if a dipole is due.

        While the resolved shear stress magnitude is at or above `tau_critical`, the
        source counts down its timer. Once the timer runs out (within `1e-6 * dt`) the
        source enters the emit state and this method returns True. As soon as the
        stress drops below the CRSS the source goes dormant and the timer is reset.

        """
        if np.abs(self.resolved_shear_stress()) >= self.tau_critical:
            if self.state == _core.SourceState.dormant:
                self.state = _core.SourceState.counting
            if self.state == _core.SourceState.counting:
                self.time_remaining -= dt
                if self.time_remaining <= 1e-6 * dt:
                    self.time_remaining = 0.0
                    self.state = _core.SourceState.emit
            return self.state == _core.SourceState.emit
        self.reset()
        return False

    def reset(self):
        """Return to the dormant state with a full countdown."""
        self.state = _core.SourceState.dormant
        self.time_remaining = self.time_threshold

    def dipole_burgers(self, stress=None):
        """Return the Burgers vector of the dipole half that moves toward +x.

        The stress (plane frame) defaults to the current total stress.

        """
        if stress is None:
            stress = self.frame.tensor_to_base(self.total_stress)
        force = _tensors.peach_koehler(
            np.ascontiguousarray(stress), self.bmag * self.burgers, self.line
        )
        return self.burgers.copy() if force[0] >= 0.0 else -self.burgers

    def emitted(self, positive_burgers, children):
        """Record a successful emission and re-align the source with the dipole."""
        axes = _edge_axes(positive_burgers, self.line)
        self.frame.set_axes(axes)
        self.last_dipole = tuple(d.uid for d in children)
        self.n_emitted += 1
        self.reset()

    def refused(self):
        """Record a refused emission, the source retries on the next check."""
        self.state = _core.SourceState.emit
        self.time_remaining = 0.0


class FreeSurface(Defect):
    """Free surface terminating a slip plane, absorbs dislocations."""

    kind = _core.DefectType.free_surface


class GrainBoundary(Defect):
    """Grain boundary terminating a slip plane, pins dislocations.

    The optional `neighbours` hold the indices of the grains that share the boundary.

    """

    kind = _core.DefectType.grain_boundary

    def __init__(self, position, base=None, registry=None, neighbours=()):
        super().__init__(position, base=base, registry=registry)
        self.neighbours = tuple(neighbours)


def make_boundary(kind, position, base=None, registry=None, neighbours=()):
    """Create the slip plane termination of the given `kind` at `position`."""
    match kind:
        case _core.DefectType.free_surface:
            return FreeSurface(position, base=base, registry=registry)
        case _core.DefectType.grain_boundary:
            return GrainBoundary(
                position, base=base, registry=registry, neighbours=neighbours
            )
        case _:
            raise ValueError(f"{kind} is not a slip plane termination")
