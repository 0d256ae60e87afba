"""> DD2D: Core enums, constants and default simulation parameters.

**Acronyms:**
- CRSS = Critical Resolved Shear Stress,
    i.e. threshold shear stress (in Pa) required to set a dislocation in motion
    or to activate a dislocation source

"""

from dataclasses import asdict, dataclass
from enum import IntEnum, unique

# NOTE: Do NOT import any dd2d submodules here to avoid cyclical imports.

SMALL_NUMBER = 1e-6
"""Tolerance for geometric checks (orthogonality, unit length, Burgers vector sums)."""


@unique
class DefectType(IntEnum):
    """Kinds of crystalline defects tracked by the simulation.

    The ordinal values are written to the uniques file and to statistics outputs.

    """

    vacancy = 0
    """Missing atom in the lattice (point defect, no dynamics)."""
    interstitial = 1
    """Extra atom between lattice sites (point defect, no dynamics)."""
    dislocation = 2
    """Straight edge dislocation, normal to the simulation plane."""
    frank_read_source = 3
    """Dislocation source that emits dipoles under sustained shear."""
    grain_boundary = 4
    """Slip plane termination at an internal grain boundary (pins dislocations)."""
    free_surface = 5
    """Slip plane termination at a free surface (absorbs dislocations)."""


@unique
class TimeStepType(IntEnum):
    """Time step disciplines.

    With `fixed` time stepping, all slip planes advance by the limiting time step.
    With `adaptive` time stepping, each slip plane proposes the largest increment
    that keeps its defects apart, and the smallest proposal is used globally.

    """

    adaptive = 0
    fixed = 1


@unique
class StoppingCriterion(IntEnum):
    """Simulation termination criteria."""

    time = 0
    """Stop once the simulated time exceeds the configured bound (seconds)."""
    iterations = 1
    """Stop after the configured number of iterations."""


@unique
class SourceState(IntEnum):
    """States of a dislocation source.

    A source is `dormant` while the resolved shear stress is below its CRSS.
    It is `counting` down its emission timer while the stress stays at or above the
    CRSS, and in the `emit` state when the timer has run out but the dipole could not
    (yet) be placed on the slip plane.

    """

    dormant = 0
    counting = 1
    emit = 2


@dataclass(frozen=True)
class DefaultParams:
    mu: float = 80e9
    """Shear modulus (Pa)."""
    nu: float = 0.3
    """Poisson's ratio."""
    bmag: float = 2.5e-10
    """Magnitude of the Burgers vector (m).

    Also the length unit for `limiting_distance` and `reaction_radius`.

    """
    drag: float = 1e-4
    """Drag coefficient (Pa s), relating glide force per unit length to velocity."""
    applied_stress: tuple = (0.0, 0.0, 0.0, 0.0, 0.0, 0.0)
    """Applied stress in the root frame, as (xx, yy, zz, xy, xz, yz) in Pa."""
    stopping_criterion: StoppingCriterion = StoppingCriterion.iterations
    """Whether to stop after `stop_time` seconds or after `stop_iterations` steps."""
    stop_time: float = 1e-6
    """Simulated time (s) after which the simulation stops."""
    stop_iterations: int = 100
    """Number of iterations after which the simulation stops."""
    time_step_type: TimeStepType = TimeStepType.fixed
    """Time step discipline, see `TimeStepType`."""
    limiting_distance: float = 2.0
    """Minimum approach distance between neighbouring defects (multiples of `bmag`)."""
    reaction_radius: float = 5.0
    """Distance below which neighbouring defects react (multiples of `bmag`).

    Must be larger than `limiting_distance`, otherwise no reaction can ever occur.

    """
    limiting_time_step: float = 1e-9
    """Fixed time step, and lower bound of the adaptive time step (s)."""
    tau_critical_mean: float = 1e9
    """Mean of the Gaussian distribution of source CRSS values (Pa)."""
    tau_critical_stdev: float = 0.0
    """Standard deviation of the Gaussian distribution of source CRSS values (Pa)."""
    tau_critical_time: float = 1e-8
    """Time a source must spend at or above its CRSS before it emits a dipole (s)."""
    tau_crss: float = 0.0
    """Lattice friction stress below which dislocations do not glide (Pa)."""
    local_equilibrium: bool = False
    """Relax moving dislocations to force equilibrium positions within a step."""
    dislocation_structure_file: str | None = None
    """Defect structure file, relative to `input_dir`."""
    input_dir: str = "."
    """Input directory, relative to the parameter file."""
    output_dir: str = "."
    """Output directory, relative to the parameter file."""
    stats_dislocation_positions: tuple = (False, 1, "dislocationPositions", None)
    """Statistic settings (enabled, frequency, name, resolution)."""
    stats_slip_plane_stress: tuple = (False, 1, "slipPlaneStress", 100)
    """Statistic settings (enabled, frequency, name, resolution)."""
    stats_all_defects: tuple = (False, 1, "allDefects", None)
    """Statistic settings (enabled, frequency, name, resolution)."""
    stats_slip_system_objects: tuple = (False, 1, "slipPlaneObjects", None)
    """Statistic settings (enabled, frequency, name, resolution)."""
    seed: int | None = None
    """Seed for the random number generator used to draw source CRSS values."""
    log_level: str = "WARNING"
    """Logging level for the simulation log file in `output_dir`."""

    def as_dict(self):
        """Return simulation parameters as a dictionary."""
        return asdict(self)
