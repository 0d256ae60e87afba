"""> DD2D: Slip planes, the ordered containers of defects.

A `SlipPlane` is a straight segment between two extremities, given in the frame of its
parent (usually a `dd2d.slipsystem.SlipSystem`). Its frame has the x-axis along the
segment, the z-axis along the plane normal and the origin at the plane position.
Defects on the plane are kept sorted by their local x-coordinate, with the two
terminating entities (free surfaces or grain boundaries) at either end.

Each iteration, the plane:
1. evaluates the total stress at every defect (`calculate_stresses`),
2. derives Peach-Koehler forces and glide velocities (`calculate_velocities`),
3. proposes a time increment that keeps neighbours apart (`calculate_time_increment`),
4. moves its dislocations (`move_defects`),
5. resolves short-range reactions (`check_local_reactions`),
6. ticks its dislocation sources and emits dipoles (`check_sources`).

>>> import numpy as np
>>> from dd2d.uniqueid import UniqueIDRegistry
>>> plane = SlipPlane(
...     ([-1e-6, 0, 0], [1e-6, 0, 0]), [0, 0, 1], registry=UniqueIDRegistry()
... )
>>> plane.add_dislocation(Dislocation([0, 0, 0], [1, 0, 0], [0, 0, 1], 2.5e-10))
>>> [d.kind.name for d in plane.defects]
['free_surface', 'dislocation', 'free_surface']

"""

import numpy as np
from scipy import optimize as so

from dd2d import core as _core
from dd2d import exceptions as _err
from dd2d import frames as _frames
from dd2d import geometry as _geo
from dd2d import logger as _log
from dd2d import tensors as _tensors
from dd2d import uniqueid as _uniqueid
from dd2d.defects import Dislocation, DislocationSource, make_boundary


class StressField:
    """Edge dislocation stress sources collected in a common frame.

    - `frame` — the common frame (`dd2d.frames.CoordinateSystem`)
    - `origins` — Nx3 array of dislocation positions in `frame`
    - `rotations` — Nx3x3 array of rotations from `frame` into the dislocation frames
    - `prefactors` — array of the N stress prefactors $μ b / (2π (1 - ν))$
    - `nu` — Poisson's ratio
    - `uids` — array of the N dislocation identifiers

    """

    def __init__(self, frame, origins, rotations, prefactors, nu, uids):
        self.frame = frame
        self.origins = np.ascontiguousarray(origins, dtype=float).reshape(-1, 3)
        self.rotations = np.ascontiguousarray(rotations, dtype=float).reshape(-1, 3, 3)
        self.prefactors = np.ascontiguousarray(prefactors, dtype=float).reshape(-1)
        self.nu = float(nu)
        self.uids = np.asarray(uids, dtype=int).reshape(-1)

    def __len__(self):
        return len(self.prefactors)

    @classmethod
    def collect(cls, frame, dislocations, mu, nu):
        """Collect the stress sources of `dislocations` in `frame`.

        The dislocation frames must descend from `frame`.

        """
        origins, rotations, prefactors, uids = [], [], [], []
        for dislocation in dislocations:
            origins.append(dislocation.frame.to_ancestor(np.zeros(3), frame))
            rotations.append(dislocation.frame.rotation_from(frame))
            prefactors.append(dislocation.prefactor(mu, nu))
            uids.append(dislocation.uid)
        return cls(frame, origins, rotations, prefactors, nu, uids)

    def stress_at(self, point, exclude=None):
        """Return the total stress at `point`, both in the common frame.

        The dislocation with identifier `exclude` (if any) is left out.

        """
        _point = np.ascontiguousarray(point, dtype=float)
        if exclude is None:
            return _tensors.superpose_edge_stresses(
                _point, self.origins, self.rotations, self.prefactors, self.nu
            )
        mask = self.uids != exclude
        return _tensors.superpose_edge_stresses(
            _point,
            np.ascontiguousarray(self.origins[mask]),
            np.ascontiguousarray(self.rotations[mask]),
            np.ascontiguousarray(self.prefactors[mask]),
            self.nu,
        )


class SlipPlane:
    """Slip plane with ordered defects.

    - `extremities` — the two end points of the plane, in the parent frame
    - `normal` — plane normal, in the parent frame
    - `position` — origin of the plane frame, in the parent frame
      (defaults to the midpoint of the extremities)
    - `base` — parent frame, a new standard root frame is used if None
    - `boundary_kinds` — `dd2d.core.DefectType` of the two terminating entities
    - `neighbours` — pair of grain index tuples recorded by grain boundary ends
    - `registry` — `dd2d.uniqueid.UniqueIDRegistry` for new defects

    Raises `dd2d.exceptions.GeometryError` if the extremities coincide or the normal is
    not perpendicular to the segment joining them.

    """

    def __init__(
        self,
        extremities,
        normal,
        position=None,
        base=None,
        boundary_kinds=(_core.DefectType.free_surface, _core.DefectType.free_surface),
        neighbours=((), ()),
        registry=None,
    ):
        self.registry = _uniqueid.default_registry() if registry is None else registry
        self.extremities = np.array(extremities, dtype=float).reshape(2, 3)
        self.normal = _tensors.normalize(normal)
        self.position = (
            self.extremities.mean(axis=0)
            if position is None
            else np.array(position, dtype=float)
        )
        x = _tensors.normalize(self.extremities[1] - self.extremities[0])
        if np.linalg.norm(x) == 0.0 or np.linalg.norm(self.normal) == 0.0:
            raise _err.GeometryError(
                f"degenerate slip plane with extremities {self.extremities}"
                + f" and normal {self.normal}"
            )
        if np.abs(np.dot(x, self.normal)) > _core.SMALL_NUMBER:
            raise _err.GeometryError(
                f"slip plane normal {self.normal} is not perpendicular to the trace {x}"
            )
        self.frame = _frames.CoordinateSystem(
            origin=self.position,
            axes=[x, np.cross(self.normal, x), self.normal],
            base=_frames.CoordinateSystem() if base is None else base,
        )
        self.dislocations = []
        self.sources = []
        self.boundaries = tuple(
            make_boundary(
                kind,
                self.frame.to_local(extremity),
                base=self.frame,
                registry=self.registry,
                neighbours=grains,
            )
            for kind, extremity, grains in zip(
                boundary_kinds, self.extremities, neighbours
            )
        )
        self.defects = list(self.boundaries)
        self.applied_stress_base = np.zeros((3, 3))
        self.applied_stress_local = np.zeros((3, 3))
        self.time_increment = np.inf
        self.n_created = 0
        self.n_annihilated = 0
        self.n_absorbed = 0
        self._field = None
        self._ideal_times = {}

    def __repr__(self):
        return (
            f"{self.__class__.__qualname__}(extremities={self.extremities!r}, "
            + f"n_dislocations={len(self.dislocations)}, "
            + f"n_sources={len(self.sources)})"
        )

    @property
    def limits(self):
        """Local x-coordinates of the two extremities, in ascending order."""
        return (self.boundaries[0].position[0], self.boundaries[1].position[0])

    def contains(self, point):
        """Check if the local x-coordinate of `point` lies between the extremities."""
        low, high = self.limits
        return low <= point[0] <= high

    def set_base(self, base):
        """Attach the plane frame to a new parent frame."""
        self.frame.set_base(base)

    def sort_defects(self):
        """Sort the dislocations and sources and rebuild the ordered defect list."""
        self.dislocations.sort(key=lambda d: d.position[0])
        self.sources.sort(key=lambda s: s.position[0])
        inner = sorted(self.dislocations + self.sources, key=lambda d: d.position[0])
        self.defects = [self.boundaries[0], *inner, self.boundaries[1]]

    def add_dislocation(self, dislocation):
        """Add a dislocation (position given in the plane frame)."""
        dislocation.set_base(self.frame)
        self.dislocations.append(dislocation)
        self.n_created += 1
        self.sort_defects()

    def add_source(self, source):
        """Add a dislocation source (position given in the plane frame)."""
        source.set_base(self.frame)
        self.sources.append(source)
        self.sort_defects()

    def remove_dislocation(self, dislocation):
        self.dislocations.remove(dislocation)
        self.defects.remove(dislocation)

    def obstacles(self):
        """Return the ordered defects that constrain motion (all but sources)."""
        return [d for d in self.defects if d.kind != _core.DefectType.frank_read_source]

    def slip_planes(self):
        yield self

    def all_defects(self):
        yield from self.defects

    @property
    def counters(self):
        """Tuple of (created, annihilated, absorbed) dislocation counts."""
        return (self.n_created, self.n_annihilated, self.n_absorbed)

    def apply_stress(self, stress):
        """Set the applied stress, given in the parent frame."""
        self.applied_stress_base = np.array(stress, dtype=float)
        self.applied_stress_local = self.frame.tensor_to_local(self.applied_stress_base)

    def stress_field(self, mu, nu):
        """Collect the dislocation stress sources of this plane in the plane frame."""
        return StressField.collect(self.frame, self.dislocations, mu, nu)

    def stress_scopes(self, mu, nu):
        """Iterate over the single `(plane, field)` pair of this plane."""
        yield self, self.stress_field(mu, nu)

    def _plane_stress(self, point, field, exclude=None):
        # Total stress at a point given in the plane frame, in the plane frame.
        internal = field.stress_at(
            self.frame.to_ancestor(point, field.frame), exclude=exclude
        )
        return (
            self.frame.tensor_from_ancestor(internal, field.frame)
            + self.applied_stress_local
        )

    def total_stress_at(self, point, mu, nu):
        """Return the total stress at `point`, both in the plane frame.

        The total stress is the applied stress plus the fields of all dislocations
        on the plane.

        """
        return self._plane_stress(
            np.asarray(point, dtype=float), self.stress_field(mu, nu)
        )

    def calculate_stresses(self, mu, nu, field=None):
        """Compute and record the total stress at every defect, in its own frame.

        The optional `field` (`StressField`) collected by a parent aggregate replaces
        the fields of the dislocations on this plane.

        """
        self._field = self.stress_field(mu, nu) if field is None else field
        for defect in self.defects:
            stress = self._plane_stress(defect.position, self._field)
            defect.record_stress(defect.frame.tensor_to_local(stress))

    def calculate_velocities(self, drag, tau_crss=0.0):
        """Compute forces and glide velocities of all dislocations."""
        for dislocation in self.dislocations:
            dislocation.calculate_velocity(drag, tau_crss)

    def _calculate_ideal_times(self, min_distance):
        ideal_times = {}
        obstacles = self.obstacles()
        for i, defect in enumerate(obstacles):
            if not defect.mobile:
                continue
            times = [np.inf]
            if i > 0:
                times.append(
                    defect.ideal_time_increment(obstacles[i - 1], min_distance)
                )
            if i < len(obstacles) - 1:
                times.append(
                    defect.ideal_time_increment(obstacles[i + 1], min_distance)
                )
            ideal_times[defect.uid] = min(times)
        self._ideal_times = ideal_times
        return ideal_times

    def calculate_time_increment(self, min_distance, min_step):
        """Propose the largest time increment keeping neighbours `min_distance` apart.

        Sources are ignored. The proposal is bounded below by `min_step` and is infinite
        if no pair of neighbouring defects is approaching.

        """
        ideal_times = self._calculate_ideal_times(min_distance)
        shortest = min(ideal_times.values(), default=np.inf)
        if np.isinf(shortest):
            self.time_increment = np.inf
        else:
            self.time_increment = max(shortest, min_step)
        return self.time_increment

    def set_time_increment(self, dt):
        self.time_increment = dt

    def _glide_force(self, dislocation, x):
        point = dislocation.position.copy()
        point[0] = x
        stress = self._plane_stress(point, self._field, exclude=dislocation.uid)
        return dislocation.peach_koehler_force(stress)[0]

    def _equilibrium_displacement(self, dislocation, displacement):
        # Stop at the first zero of the glide force within the step, if any.
        start = dislocation.position[0]
        end = start + displacement
        f_start = self._glide_force(dislocation, start)
        f_end = self._glide_force(dislocation, end)
        if np.sign(f_start) == np.sign(f_end) or f_start == 0.0:
            return displacement
        low, high = sorted((start, end))
        root = so.brentq(
            lambda x: self._glide_force(dislocation, x),
            low,
            high,
            xtol=1e-9 * np.abs(displacement),
        )
        _log.debug(
            "dislocation %d relaxed to equilibrium at x = %e", dislocation.uid, root
        )
        return root - start

    def _clamp_displacements(self, obstacles, displacements, min_distance):
        # Shrink converging displacements until every gap is at least
        # min(min_distance, initial gap); displacements never grow or change sign.
        x0 = np.array([d.position[0] for d in obstacles])
        tolerance = 1e-9 * min_distance
        for _ in range(2 * len(obstacles) + 1):
            changed = False
            for i in range(len(obstacles) - 1):
                da, db = displacements[i], displacements[i + 1]
                gap_old = x0[i + 1] - x0[i]
                required = min(min_distance, gap_old)
                gap_new = gap_old + db - da
                if gap_new >= required - tolerance:
                    continue
                closing = max(da, 0.0) - min(db, 0.0)
                opening = max(db, 0.0) - min(da, 0.0)
                factor = np.clip((gap_old + opening - required) / closing, 0.0, 1.0)
                if da > 0.0:
                    displacements[i] = da * factor
                if db < 0.0:
                    displacements[i + 1] = db * factor
                changed = True
            if not changed:
                return displacements
        _log.warning("could not resolve converging defects, halting them for this step")
        for i in range(len(obstacles) - 1):
            gap_new = x0[i + 1] + displacements[i + 1] - x0[i] - displacements[i]
            if gap_new < min(min_distance, x0[i + 1] - x0[i]) - tolerance:
                displacements[i] = displacements[i + 1] = 0.0
        return displacements

    def move_defects(self, dt, mu, nu, min_distance, local_equilibrium=False):
        """Move the mobile dislocations over the time increment `dt`.

        Each dislocation advances by $v \\min(dt, t_i)$, where $t_i$ is its own ideal
        time increment. Displacements of converging neighbours are then shortened so
        that no two adjacent defects (sources excepted) end up closer than
        `min_distance`, unless they already were. With `local_equilibrium`, a
        dislocation stops where its glide force vanishes if that happens within the
        step. A dislocation that would leave the plane stays put and is halted.

        """
        ideal_times = self._calculate_ideal_times(min_distance)
        obstacles = self.obstacles()
        displacements = np.zeros(len(obstacles))
        for i, defect in enumerate(obstacles):
            if defect.mobile:
                step = min(dt, ideal_times.get(defect.uid, np.inf))
                displacements[i] = defect.velocity[0] * step
                if (
                    local_equilibrium
                    and displacements[i] != 0.0
                    and self._field is not None
                ):
                    displacements[i] = self._equilibrium_displacement(
                        defect, displacements[i]
                    )
        displacements = self._clamp_displacements(
            obstacles, displacements, min_distance
        )
        for defect, displacement in zip(obstacles, displacements):
            if displacement == 0.0:
                continue
            target = defect.position.copy()
            target[0] += displacement
            if not self.contains(target):
                _log.warning(
                    "dislocation %d would leave its slip plane, halting it", defect.uid
                )
                defect.set_velocity(np.zeros(3))
                continue
            defect.set_position(target)
        self.sort_defects()
        # The recorded field describes the positions before the move.
        self._field = None

    def _react(self, left, right):
        # Returns True if a defect was removed.
        kinds = (left.kind, right.kind)
        match kinds:
            case (_core.DefectType.dislocation, _core.DefectType.dislocation):
                if left.annihilates_with(right):
                    _log.debug(
                        "annihilation of dislocations %d and %d", left.uid, right.uid
                    )
                    self.remove_dislocation(left)
                    self.remove_dislocation(right)
                    self.n_annihilated += 2
                    return True
            case (_core.DefectType.free_surface, _core.DefectType.dislocation):
                _log.debug("dislocation %d absorbed by free surface", right.uid)
                self.remove_dislocation(right)
                self.n_absorbed += 1
                return True
            case (_core.DefectType.dislocation, _core.DefectType.free_surface):
                _log.debug("dislocation %d absorbed by free surface", left.uid)
                self.remove_dislocation(left)
                self.n_absorbed += 1
                return True
            case (_core.DefectType.grain_boundary, _core.DefectType.dislocation):
                right.mobile = False
            case (_core.DefectType.dislocation, _core.DefectType.grain_boundary):
                left.mobile = False
        return False

    def check_local_reactions(self, reaction_radius):
        """Resolve reactions between neighbouring defects closer than `reaction_radius`.

        - two dislocations with opposite Burgers vectors annihilate
        - a dislocation next to a free surface is absorbed
        - a dislocation next to a grain boundary is pinned

        Sources do not take part in reactions. After a removal the scan resumes at the
        preceding pair, so that cascading reactions are found.

        """
        i = 0
        obstacles = self.obstacles()
        while i < len(obstacles) - 1:
            left, right = obstacles[i], obstacles[i + 1]
            distance = np.linalg.norm(right.position - left.position)
            if distance < reaction_radius and self._react(left, right):
                obstacles = self.obstacles()
                i = max(i - 1, 0)
                continue
            i += 1

    def _emission_allowed(self, source, positions, min_distance):
        low, high = self.limits
        if np.linalg.norm(positions[0] - positions[1]) < min_distance:
            return False
        others = [d.position for d in self.defects if d is not source]
        for position in positions:
            if not low < position[0] < high:
                return False
            for other in others:
                if np.linalg.norm(position - other) < min_distance:
                    return False
        return True

    def check_sources(self, dt, mu, nu, min_distance):
        """Advance the state of all sources by `dt` and emit dipoles where due.

        The two dislocations of a dipole are placed a distance
        $L = μ b / (2π (1 - ν) τ_c)$ apart, centred on the source. The one on the +x side
        carries the Burgers vector that the resolved shear pushes toward +x.
        Emission is refused if a new dislocation would lie outside the plane or within
        `min_distance` of another defect, including its partner when $L$ is shorter
        than `min_distance`. The source then retries on the next check.

        """
        for source in list(self.sources):
            if not source.check(dt):
                continue
            half = 0.5 * source.dipole_length(mu, nu) * np.array([1.0, 0.0, 0.0])
            positions = (source.position + half, source.position - half)
            if not self._emission_allowed(source, positions, min_distance):
                _log.debug("emission from source %d refused", source.uid)
                source.refused()
                continue
            burgers = source.dipole_burgers()
            children = tuple(
                Dislocation(
                    position,
                    sign * burgers,
                    source.line,
                    source.bmag,
                    base=self.frame,
                    registry=self.registry,
                )
                for position, sign in zip(positions, (1.0, -1.0))
            )
            for child in children:
                self.dislocations.append(child)
                self.n_created += 1
            source.emitted(burgers, children)
            self.sort_defects()
            _log.debug(
                "source %d emitted dislocations %d and %d",
                source.uid,
                children[0].uid,
                children[1].uid,
            )

    def stress_distribution(self, resolution, mu, nu, field=None):
        """Sample the total stress at `resolution` points between the extremities.

        The internal stress comes from the current dislocations of this plane, or from
        those of the optional `field` (`StressField`) collected by a parent aggregate.

        Returns a tuple of the sample points in the root frame, the stress tensors in
        the plane frame and the stress tensors in the root frame.

        """
        if field is None:
            field = self.stress_field(mu, nu)
        points = _geo.sample_points(
            self.boundaries[0].position, self.boundaries[1].position, resolution
        )
        local = np.array([self._plane_stress(p, field) for p in points])
        root = np.array([self.frame.tensor_to_ancestor(s) for s in local])
        return np.array([self.frame.to_ancestor(p) for p in points]), local, root

    def defect_positions(self, frame=None):
        """Return the positions of all defects in ancestor `frame` (default: root)."""
        return np.array(
            [self.frame.to_ancestor(d.position, frame) for d in self.defects]
        )

    def add_dislocations(self, dislocations):
        for dislocation in dislocations:
            self.add_dislocation(dislocation)

    def add_sources(self, sources):
        for source in sources:
            self.add_source(source)


def populate_sources(plane, n, params, rng, registry=None):
    """Place `n` evenly spaced dislocation sources on `plane`.

    The sources have their Burgers vector along the plane x-axis and their line vector
    along the root z-axis. Critical stresses are drawn from a normal distribution with
    mean `params["tau_critical_mean"]` and standard deviation
    `params["tau_critical_stdev"]` using the random generator `rng`.

    """
    low, high = plane.boundaries[0].position, plane.boundaries[1].position
    line = plane.frame.vector_from_ancestor(np.array([0.0, 0.0, 1.0]))
    for position in _geo.points_between(low, high, n):
        plane.add_source(
            DislocationSource(
                position,
                [1.0, 0.0, 0.0],
                line,
                params["bmag"],
                draw_tau_critical(params, rng),
                params["tau_critical_time"],
                base=plane.frame,
                registry=plane.registry if registry is None else registry,
            )
        )


def draw_tau_critical(params, rng):
    """Draw a source CRSS from the configured normal distribution, folded at zero."""
    return np.abs(rng.normal(params["tau_critical_mean"], params["tau_critical_stdev"]))
