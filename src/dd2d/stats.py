"""> DD2D: Periodic simulation statistics.

Each statistic is configured in the parameter file with a line like

    statsDislocationPositions 1 10 positions

which enables it, sets its period to 10 iterations and names its output files.
The statistics are written to the output directory:
- dislocation positions — one SCSV file per write with the root frame positions of all
  defects, named `<name>_t<time>.scsv`
- slip plane stress — one SCSV file per slip plane per write with the stress sampled
  along the plane, in the plane frame and in the root frame
- all defects — one text file `<name>.txt` with one line appended per write, holding
  the time followed by the root frame coordinates of all defects
- slip system objects — structure files of every slip plane, readable by
  `dd2d.io.read_slip_plane`

Failures to write a statistic are logged and do not stop the simulation.

"""

import os
import pathlib
from dataclasses import dataclass

import numpy as np

from dd2d import io as _io
from dd2d import logger as _log
from dd2d import tensors as _tensors

_COMPONENTS = ("xx", "yy", "zz", "xy", "xz", "yz")


@dataclass
class Statistic:
    """Schedule of a periodic statistic.

    >>> stat = Statistic(True, 2, "positions")
    >>> [stat.due() for _ in range(4)]
    [False, True, False, True]
    >>> Statistic(False, 1, "positions").due()
    False

    """

    enabled: bool = False
    frequency: int = 1
    name: str = ""
    resolution: int | None = None
    counter: int = 0

    def due(self):
        """Count an iteration and check if the statistic should be written now."""
        if not self.enabled:
            return False
        self.counter += 1
        if self.counter >= self.frequency:
            self.counter = 0
            return True
        return False


def _time_label(time):
    return f"t{time:.6e}"


def write_dislocation_positions(root, time, output_dir, name):
    """Write the root frame positions of all defects below `root` to an SCSV file."""
    defects = list(root.all_defects())
    positions = np.array(
        [d.frame.base.to_ancestor(d.position) for d in defects]
    ).reshape(-1, 3)
    schema = {
        "delimiter": ",",
        "missing": "-",
        "fields": [
            {"name": "time", "type": "float", "unit": "s", "fill": "NaN"},
            {"name": "uid", "type": "integer", "fill": "-1"},
            {"name": "kind", "type": "integer", "fill": "-1"},
            {"name": "x", "type": "float", "unit": "m", "fill": "NaN"},
            {"name": "y", "type": "float", "unit": "m", "fill": "NaN"},
            {"name": "z", "type": "float", "unit": "m", "fill": "NaN"},
        ],
    }
    path = pathlib.Path(output_dir) / f"{name}_{_time_label(time)}.scsv"
    _io.save_scsv(
        path,
        schema,
        [
            [time] * len(defects),
            [d.uid for d in defects],
            [int(d.kind) for d in defects],
            *(list(positions[:, i]) for i in range(3)),
        ],
    )
    return path


def write_slip_plane_stress(root, time, output_dir, name, resolution, mu, nu):
    """Write the stress sampled along every slip plane below `root` to SCSV files."""
    fields = [
        {"name": axis, "type": "float", "unit": "m", "fill": "NaN"}
        for axis in ("x", "y", "z")
    ]
    for frame in ("local", "global"):
        fields.extend(
            {"name": f"s_{c}_{frame}", "type": "float", "unit": "Pa", "fill": "NaN"}
            for c in _COMPONENTS
        )
    schema = {"delimiter": ",", "missing": "-", "fields": fields}
    paths = []
    for k, (plane, field) in enumerate(root.stress_scopes(mu, nu)):
        points, local, root_stress = plane.stress_distribution(
            resolution, mu, nu, field
        )
        local_components = np.array([_tensors.tensor_components(s) for s in local])
        root_components = np.array(
            [_tensors.tensor_components(s) for s in root_stress]
        )
        columns = [list(points[:, i]) for i in range(3)]
        columns.extend(list(local_components[:, i]) for i in range(6))
        columns.extend(list(root_components[:, i]) for i in range(6))
        path = pathlib.Path(output_dir) / f"{name}_plane{k}_{_time_label(time)}.scsv"
        _io.save_scsv(path, schema, columns)
        paths.append(path)
    return paths


def write_all_defects(root, time, output_dir, name):
    """Append the time and the root frame positions of all defects to `<name>.txt`."""
    positions = [d.frame.base.to_ancestor(d.position) for d in root.all_defects()]
    values = [time, *np.ravel(positions)] if positions else [time]
    path = _io.resolve_path(pathlib.Path(output_dir) / f"{name}.txt")
    with open(path, mode="a") as stream:
        stream.write(" ".join(f"{v:.10e}" for v in values) + os.linesep)
    return path


def write_slip_system_objects(root, time, output_dir, name):
    """Write a structure file for every slip plane below `root`."""
    paths = []
    for k, plane in enumerate(root.slip_planes()):
        path = pathlib.Path(output_dir) / f"{name}_plane{k}_{_time_label(time)}.txt"
        _io.write_slip_plane(path, plane, time)
        paths.append(path)
    return paths


def read_all_defects(path):
    """Read an all-defects history written by `write_all_defects`.

    Returns the array of times and a list of Nx3 arrays of positions, one per line.

    """
    times = []
    positions = []
    with open(_io.resolve_path(path)) as stream:
        for line in stream:
            if line.strip() == "":
                continue
            values = np.array([float(v) for v in line.split()])
            times.append(values[0])
            positions.append(values[1:].reshape(-1, 3))
    return np.array(times), positions


class Statistics:
    """Collection of the periodic statistics configured in `params`."""

    def __init__(self, params):
        self.output_dir = params["output_dir"]
        self.mu = params["mu"]
        self.nu = params["nu"]
        self.dislocation_positions = Statistic(*params["stats_dislocation_positions"])
        self.slip_plane_stress = Statistic(*params["stats_slip_plane_stress"])
        self.all_defects = Statistic(*params["stats_all_defects"])
        self.slip_system_objects = Statistic(*params["stats_slip_system_objects"])

    def write(self, root, time):
        """Write all statistics that are due this iteration."""
        writers = (
            (
                self.dislocation_positions,
                lambda s: write_dislocation_positions(
                    root, time, self.output_dir, s.name
                ),
            ),
            (
                self.slip_plane_stress,
                lambda s: write_slip_plane_stress(
                    root,
                    time,
                    self.output_dir,
                    s.name,
                    s.resolution or 100,
                    self.mu,
                    self.nu,
                ),
            ),
            (
                self.all_defects,
                lambda s: write_all_defects(root, time, self.output_dir, s.name),
            ),
            (
                self.slip_system_objects,
                lambda s: write_slip_system_objects(
                    root, time, self.output_dir, s.name
                ),
            ),
        )
        for statistic, writer in writers:
            if not statistic.due():
                continue
            try:
                writer(statistic)
            except OSError as e:
                _log.warning("failed to write statistic '%s': %s", statistic.name, e)
