"""> DD2D: Entry points and argument handling for command line tools.

All CLI handlers should be registered in the `CLI_HANDLERS` namedtuple,
which ensures that they will be installed as executable scripts alongside the package.

"""

import argparse
import os
import sys
from collections import namedtuple

from dd2d import exceptions as _err
from dd2d import io as _io
from dd2d import logger as _log
from dd2d import run as _run
from dd2d import stats as _stats
from dd2d import visualisation as _vis


class CliTool:
    """Base class for CLI tools defining the required interface."""

    def __call__(self):
        return NotImplementedError

    def _get_args(self) -> argparse.Namespace | type[NotImplementedError]:
        return NotImplementedError


class _Simulator(CliTool):
    level = None

    def __call__(self):
        args = self._get_args()
        path = args.params
        if path is None:
            path = input("Parameter file name: ").strip()
        try:
            with _io.log_cli_level(args.log_level.upper()):
                _, times = _run.run_simulation(path, self.level)
        except (_err.Error, OSError) as e:
            _log.error(str(e))
            sys.exit(1)
        _log.info("simulated %d iterations up to t = %e s", len(times) - 1, times[-1])

    def _get_args(self) -> argparse.Namespace:
        assert self.__doc__ is not None, f"missing docstring for {self}"
        description, epilog = self.__doc__.split(os.linesep + os.linesep, 1)
        parser = argparse.ArgumentParser(description=description, epilog=epilog)
        parser.add_argument(
            "params",
            help="parameter file (prompted for if not given)",
            nargs="?",
            default=None,
        )
        parser.add_argument(
            "-l",
            "--log-level",
            help="console logging level, e.g. 'DEBUG' or 'WARNING'",
            default="INFO",
        )
        return parser.parse_args()


class SlipPlaneSimulator(_Simulator):
    """DD2D script to simulate dislocation dynamics on a single slip plane.

    The parameter file names the slip plane structure file with the
    `dislocationStructureFile` keyword. Both plane extremities are free surfaces.
    Statistics, the log file and the uniques file are written to the output directory.

    """

    level = "slipplane"


class SlipSystemSimulator(_Simulator):
    """DD2D script to simulate dislocation dynamics in a slip system.

    The structure file lists the slip system geometry followed by the slip planes, each
    with its own dislocations and sources. Dislocations on all planes interact.

    """

    level = "slipsystem"


class GrainSimulator(_Simulator):
    """DD2D script to simulate dislocation dynamics in a single grain.

    The structure file lists the grain orientation and boundary polygon followed by the
    slip systems. Slip planes end at the grain boundary, which pins dislocations.

    """

    level = "grain"


class PolycrystalSimulator(_Simulator):
    """DD2D script to simulate dislocation dynamics in a polycrystal.

    The structure file names a tessellation (`.nod` and `.cll` files), a grain
    orientation file and the slip systems to create in every grain, as
    `nx ny nz spacing n_sources` lines. Sources are placed evenly on every slip plane.

    """

    level = "polycrystal"


class TrajectoryPlotter(CliTool):
    """DD2D script to plot defect trajectories from an all-defects statistics file.

    The input file is written by a simulation with the `statsAllDefects` statistic
    enabled. Each defect position is drawn as a point at its coordinate along the chosen
    root axis (horizontal) and the simulation time (vertical).

    """

    def __call__(self):
        try:
            args = self._get_args()
            times, positions = _stats.read_all_defects(args.input)
            fig = _vis.figure()
            ax = fig.add_subplot()
            _vis.trajectories(ax, times, positions, axis="xyz".index(args.axis))
            fig.savefig(_io.resolve_path(args.out))
        except (argparse.ArgumentError, ValueError, OSError, _err.Error) as e:
            _log.error(str(e))

    def _get_args(self) -> argparse.Namespace:
        assert self.__doc__ is not None, f"missing docstring for {self}"
        description, epilog = self.__doc__.split(os.linesep + os.linesep, 1)
        parser = argparse.ArgumentParser(description=description, epilog=epilog)
        parser.add_argument("input", help="input file (.txt)")
        parser.add_argument(
            "-a",
            "--axis",
            help="root axis along which positions are plotted, one of {x, y, z}",
            choices=("x", "y", "z"),
            default="x",
        )
        parser.add_argument(
            "-o",
            "--out",
            help="name of the output file, with either .png or .pdf extension",
            default="trajectories.png",
        )
        return parser.parse_args()


# These are not the final names of the executables (those are set in pyproject.toml).
_CLI_HANDLERS = namedtuple(
    "_CLI_HANDLERS",
    (
        "slip_plane_simulator",
        "slip_system_simulator",
        "grain_simulator",
        "polycrystal_simulator",
        "trajectory_plotter",
    ),
)
CLI_HANDLERS = _CLI_HANDLERS(
    slip_plane_simulator=SlipPlaneSimulator(),
    slip_system_simulator=SlipSystemSimulator(),
    grain_simulator=GrainSimulator(),
    polycrystal_simulator=PolycrystalSimulator(),
    trajectory_plotter=TrajectoryPlotter(),
)
