"""> DD2D: Simulation driver.

The same iteration loop (`iterate`) drives simulations of a single slip plane, a slip
system, a grain or a polycrystal, since all of them implement the same aggregate
interface (see `dd2d.slipsystem.Aggregate`). Each iteration:
1. computes the total stress at every defect,
2. computes forces and glide velocities of the dislocations,
3. selects the time increment (fixed or adaptive),
4. moves the dislocations and resolves local reactions,
5. advances the dislocation sources and emits dipoles,
6. writes the statistics that are due.

`run_simulation` sets up a complete simulation from a parameter file.

"""

import pathlib

import numpy as np

from dd2d import core as _core
from dd2d import exceptions as _err
from dd2d import io as _io
from dd2d import logger as _log
from dd2d import stats as _stats
from dd2d import uniqueid as _uniqueid

UNIQUES_FILE = "uniquesFile.scsv"
"""Name of the registry dump written to the output directory."""

LOG_FILE = "dd2d.log"
"""Name of the simulation log file written to the output directory."""


def _should_stop(params, total_time, n_iterations):
    match params["stopping_criterion"]:
        case _core.StoppingCriterion.time:
            return total_time >= params["stop_time"]
        case _core.StoppingCriterion.iterations:
            return n_iterations >= params["stop_iterations"]
        case _:
            raise ValueError(
                f"unsupported stopping criterion {params['stopping_criterion']}"
            )


def time_increment(root, params):
    """Select the time increment for the next iteration.

    With fixed time stepping this is the limiting time step. With adaptive time
    stepping it is the smallest increment proposed by the slip planes, or the limiting
    time step if no defects are approaching each other.

    """
    min_step = params["limiting_time_step"]
    if params["time_step_type"] == _core.TimeStepType.adaptive:
        dt = root.calculate_time_increment(
            params["limiting_distance"] * params["bmag"], min_step
        )
        if np.isfinite(dt):
            return dt
    return min_step


def iterate(root, params, current_time=0.0, registry=None, statistics=None):
    """Advance the simulation rooted at `root` until the stopping criterion is met.

    - `root` — slip plane, slip system, grain or polycrystal
    - `params` — dictionary of simulation parameters, see `dd2d.core.DefaultParams`
    - `current_time` — simulation time at the start (s)
    - `registry` — `dd2d.uniqueid.UniqueIDRegistry`, written to the output directory
      when the loop ends (the process default if None)
    - `statistics` — `dd2d.stats.Statistics` to write each iteration, optional

    Returns the array of simulation times, starting with `current_time`.

    """
    if registry is None:
        registry = _uniqueid.default_registry()
    mu, nu = params["mu"], params["nu"]
    min_distance = params["limiting_distance"] * params["bmag"]
    reaction_radius = params["reaction_radius"] * params["bmag"]

    total_time = current_time
    times = [total_time]
    n_iterations = 0
    root.apply_stress(_io.applied_stress(params))
    try:
        while not _should_stop(params, total_time, n_iterations):
            root.calculate_stresses(mu, nu)
            root.calculate_velocities(params["drag"], params["tau_crss"])
            dt = time_increment(root, params)
            root.set_time_increment(dt)
            root.move_defects(
                dt, mu, nu, min_distance, params["local_equilibrium"]
            )
            root.check_local_reactions(reaction_radius)
            root.check_sources(dt, mu, nu, min_distance)

            total_time += dt
            n_iterations += 1
            times.append(total_time)
            created, annihilated, absorbed = root.counters
            _log.debug(
                "iteration %d: t = %e s, dt = %e s, %d dislocations"
                + " (%d created, %d annihilated, %d absorbed)",
                n_iterations,
                total_time,
                dt,
                created - annihilated - absorbed,
                created,
                annihilated,
                absorbed,
            )
            if statistics is not None:
                statistics.write(root, total_time)
    finally:
        _io.write_registry(
            pathlib.Path(params["output_dir"]) / UNIQUES_FILE, registry
        )
    _log.info(
        "finished %d iterations at t = %e s with %d live dislocations",
        n_iterations,
        total_time,
        sum(1 for d in root.all_defects() if d.kind == _core.DefectType.dislocation),
    )
    return np.array(times)


def run_simulation(path, level, registry=None):
    """Run the simulation described by the parameter file at `path`.

    The `level` selects the defect structure file format,
    see `dd2d.io.STRUCTURE_LEVELS`. A log file is written to the output directory
    at the configured log level. Returns a tuple of the simulated root object and the
    array of simulation times.

    """
    if level not in _io.STRUCTURE_LEVELS:
        raise ValueError(f"unknown simulation level '{level}'")
    params = _io.parse_params(path)
    if params["dislocation_structure_file"] is None:
        raise _err.ConfigError(f"{path}: missing 'dislocationStructureFile' parameter")
    if registry is None:
        registry = _uniqueid.default_registry()
    output_dir = pathlib.Path(params["output_dir"])
    output_dir.mkdir(parents=True, exist_ok=True)
    with _io.logfile_enable(output_dir / LOG_FILE, level=params["log_level"]):
        _log.info("running %s simulation from %s", level, path)
        rng = np.random.default_rng(params["seed"])
        time, root = _io.read_structure(
            pathlib.Path(params["input_dir"]) / params["dislocation_structure_file"],
            level,
            params,
            rng,
            registry,
        )
        times = iterate(root, params, time, registry, _stats.Statistics(params))
    return root, times
