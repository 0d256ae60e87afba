"""> DD2D: Parameter, structure, tessellation and tabular data Input/Output functions.

DD2D reads and writes these kinds of plain text files:
- parameter files, with one `keyword value...` line per simulation parameter
- defect structure files for the four simulation levels (slip plane, slip system,
  grain and polycrystal), listing the geometry and the initial defects
- tessellation files (`.nod` vertices and `.cll` cells) and orientation files
- 'SCSV' files, CSV files with YAML frontmatter for tabular (statistics) output

All text input formats ignore blank lines and lines whose first non-blank character
is `#`. Errors in input files raise subclasses of `dd2d.exceptions.Error` whose messages
name the file and line. Example inputs ship with the package, see `data`.

SCSV files are CSV files with a YAML header. The header is used for data attribution
and metadata, as well as a column type spec. For supported cell types, see
`SCSV_TYPEMAP`.

"""

import collections as c
import contextlib as cl
import csv
import functools as ft
import io
import logging
import os
import pathlib
from importlib.resources import files

import numpy as np
import yaml

from dd2d import core as _core
from dd2d import exceptions as _err
from dd2d import geometry as _geo
from dd2d import logger as _log
from dd2d import tensors as _tensors
from dd2d.defects import Dislocation, DislocationSource
from dd2d.grain import Grain
from dd2d.polycrystal import Polycrystal, Tessellation
from dd2d.slipplane import SlipPlane, draw_tau_critical
from dd2d.slipsystem import SlipSystem

SCSV_TYPEMAP = {
    "string": str,
    "integer": int,
    "float": float,
    "boolean": bool,
}
"""Mapping of supported SCSV field types to corresponding Python types."""

_SCSV_DEFAULT_TYPE = "string"
_SCSV_DEFAULT_FILL = ""

_STATS_KEYS = {
    "statsdislocationpositions": "stats_dislocation_positions",
    "statsslipplanestress": "stats_slip_plane_stress",
    "statsalldefects": "stats_all_defects",
    "statsslipsystemobjects": "stats_slip_system_objects",
}

_REAL_KEYS = {
    "mu": "mu",
    "nu": "nu",
    "bmag": "bmag",
    "b": "drag",
    "drag": "drag",
    "limitingdistance": "limiting_distance",
    "reactionradius": "reaction_radius",
    "limitingtimestep": "limiting_time_step",
    "taucritical_mean": "tau_critical_mean",
    "taucritical_stdev": "tau_critical_stdev",
    "taucritical_time": "tau_critical_time",
    "taucrss": "tau_crss",
}

_STRING_KEYS = {
    "dislocationstructurefile": "dislocation_structure_file",
    "structure": "dislocation_structure_file",
    "input_dir": "input_dir",
    "input": "input_dir",
    "output_dir": "output_dir",
    "output": "output_dir",
    "loglevel": "log_level",
}

STRUCTURE_LEVELS = ("slipplane", "slipsystem", "grain", "polycrystal")
"""Simulation levels, each with its own defect structure file format."""


def read_scsv(file):
    """Read data from an SCSV file.

    Returns a NamedTuple with columns of the csv data. See also `save_scsv`.

    """
    path = resolve_path(file)
    yaml_lines = []
    csv_lines = []
    with open(path) as stream:
        in_header = False
        for line in stream:
            if line.strip() == "":
                continue
            if line.rstrip("\r\n") == "---":
                in_header = not in_header  # Header is enclosed by two --- lines.
                continue
            (yaml_lines if in_header else csv_lines).append(line)

    metadata = yaml.safe_load(io.StringIO("".join(yaml_lines)))
    schema = metadata["schema"]
    if not _validate_scsv_schema(schema):
        raise _err.SCSVError(
            f"unable to parse SCSV schema from '{file}'."
            + " Check logging output for details."
        )
    reader = csv.reader(csv_lines, delimiter=schema["delimiter"], skipinitialspace=True)
    names = [f["name"] for f in schema["fields"]]
    headers = [s.strip() for s in next(reader)]
    if names != headers:
        raise _err.SCSVError(
            f"schema field names must match column headers in '{file}'."
            + f" Got schema fields {names} and column headers {headers}"
        )

    _log.debug("reading SCSV file: %s", path)
    Columns = c.namedtuple("Columns", names)
    Columns.__str__ = lambda self: f"Columns: {self._fields}"
    Columns._schema = schema
    types = [SCSV_TYPEMAP[f.get("type", _SCSV_DEFAULT_TYPE)] for f in schema["fields"]]
    fills = [f.get("fill", _SCSV_DEFAULT_FILL) for f in schema["fields"]]
    rows = list(reader)
    if len(rows) == 0:
        return Columns._make([() for _ in names])
    return Columns._make(
        [
            tuple(
                map(
                    ft.partial(
                        _parse_scsv_cell, t, missingstr=schema["missing"], fillval=fill
                    ),
                    column,
                )
            )
            for t, fill, column in zip(types, fills, zip(*rows, strict=True))
        ]
    )


def write_scsv_header(stream, schema, comments=None):
    """Write YAML header to an SCSV stream.

    - `stream` — open output stream (e.g. file handle) where data should be written
    - `schema` — SCSV schema dictionary, with 'delimiter', 'missing' and 'fields' keys
    - `comments` (optional) — array of comments to be written above the schema, each on
      a new line with an '#' prefix

    See also `read_scsv`, `save_scsv`.

    """
    if not _validate_scsv_schema(schema):
        raise _err.SCSVError(
            "refusing to write invalid schema to stream."
            + " Check logging output for details."
        )
    lines = ["---"]
    lines.extend(f"# {comment}" for comment in comments or [])
    lines.append("schema:")
    lines.append(f"  delimiter: '{schema['delimiter']}'")
    lines.append(f"  missing: '{schema['missing']}'")
    lines.append("  fields:")
    for field in schema["fields"]:
        lines.append(f"    - name: {field['name']}")
        lines.append(f"      type: {field.get('type', _SCSV_DEFAULT_TYPE)}")
        for key in ("unit", "fill"):
            if key in field:
                lines.append(f"      {key}: {field[key]}")
    lines.append("---")
    stream.write(os.linesep.join(lines) + os.linesep)


def save_scsv(file, schema, data, **kwargs):
    """Save data to SCSV file.

    - `file` — path to the file where the data should be written
    - `schema` — SCSV schema dictionary, with 'delimiter', 'missing' and 'fields' keys
    - `data` — data arrays (columns) of equal length

    Optional keyword arguments are passed to `write_scsv_header`. See also `read_scsv`.

    """
    path = resolve_path(file)
    if not _validate_scsv_schema(schema):
        raise _err.SCSVError(
            f"refusing to write invalid schema to '{file}'."
            + " Check logging output for details."
        )
    names = [field["name"] for field in schema["fields"]]
    if len(data) != len(names):
        raise _err.SCSVError(
            "number of fields declared in schema does not match number of data columns."
            + f" Declared schema fields were {names}; got {len(data)} data columns"
        )
    n_rows = len(data[0])
    if any(len(column) != n_rows for column in data[1:]):
        raise _err.SCSVError(
            "refusing to write data columns of unequal length to SCSV file"
        )
    types = [SCSV_TYPEMAP[f.get("type", _SCSV_DEFAULT_TYPE)] for f in schema["fields"]]
    fills = [f.get("fill", _SCSV_DEFAULT_FILL) for f in schema["fields"]]

    _log.debug("writing to SCSV file: %s", path)
    with open(path, mode="w") as stream:
        write_scsv_header(stream, schema, **kwargs)
        writer = csv.writer(
            stream, delimiter=schema["delimiter"], lineterminator=os.linesep
        )
        writer.writerow(names)
        for row in zip(*data):
            writer.writerow(
                [
                    _format_scsv_cell(name, t, value, fill, schema["missing"])
                    for name, t, value, fill in zip(names, types, row, fills)
                ]
            )


def _format_scsv_cell(name, func, value, fill, missing):
    try:
        _parse_scsv_cell(func, str(value), missingstr=missing, fillval=fill)
    except ValueError:
        raise _err.SCSVError(
            f"invalid data for column '{name}'."
            + f" Cannot parse {value} as type '{func.__qualname__}'."
        ) from None
    if func is float:
        if np.isnan(value):
            return missing if np.isnan(float(fill)) else value
        return missing if value == float(fill) else value
    if func in (int, str) and value == func(fill):
        return missing
    return value


def _validate_scsv_schema(schema):
    format_ok = (
        "delimiter" in schema
        and "missing" in schema
        and "fields" in schema
        and len(schema["fields"]) > 0
        and schema["delimiter"] != schema["missing"]
        and schema["delimiter"] not in schema["missing"]
    )
    if not format_ok:
        _log.error(
            "invalid format for SCSV schema: %s"
            + "\nMust contain: 'delimiter', 'missing', 'fields'"
            + "\nMust contain at least one field."
            + "\nMust contain compatible 'missing' and 'delimiter' values.",
            schema,
        )
        return False
    for field in schema["fields"]:
        kind = field.get("type", _SCSV_DEFAULT_TYPE)
        if not field["name"].isidentifier():
            _log.error(
                "SCSV field name '%s' is not a valid Python identifier", field["name"]
            )
            return False
        if kind not in SCSV_TYPEMAP:
            _log.error("unsupported SCSV field type: '%s'", kind)
            return False
        if kind not in (_SCSV_DEFAULT_TYPE, "boolean") and "fill" not in field:
            _log.error("SCSV field of type '%s' requires a fill value", kind)
            return False
    return True


def _parse_scsv_bool(x):
    """Parse boolean from string, for SCSV files."""
    return str(x).lower() in ("yes", "true", "t", "1")


def _parse_scsv_cell(func, data, missingstr=None, fillval=None):
    if data.strip() == missingstr:
        if fillval == "NaN":
            return func(np.nan)
        return func(fillval)
    elif func is bool:
        return _parse_scsv_bool(data)
    return func(data.strip())


def _strip_comment_lines(stream):
    # Yields (line number, stripped line) for lines with content.
    for lineno, line in enumerate(stream, start=1):
        stripped = line.strip()
        if stripped == "" or stripped.startswith("#"):
            continue
        yield lineno, stripped


def _convert(func, token, key, where):
    try:
        return func(token)
    except ValueError:
        raise _err.ConfigError(
            f"{where}: invalid value '{token}' for parameter '{key}'"
        ) from None


def _parse_flag(token, key, where):
    value = _convert(int, token, key, where)
    if value not in (0, 1):
        raise _err.ConfigError(f"{where}: parameter '{key}' expects 0 or 1")
    return bool(value)


def _parse_param_line(params, key, values, where):
    def expect(n):
        if len(values) != n:
            raise _err.ConfigError(
                f"{where}: parameter '{key}' expects {n} value(s), got {len(values)}"
            )

    lkey = key.lower()
    if lkey in _REAL_KEYS:
        expect(1)
        params[_REAL_KEYS[lkey]] = _convert(float, values[0], key, where)
    elif lkey in _STRING_KEYS:
        expect(1)
        params[_STRING_KEYS[lkey]] = values[0]
    elif lkey in _STATS_KEYS:
        field = _STATS_KEYS[lkey]
        _, _, name, resolution = params[field]
        max_values = 4 if field == "stats_slip_plane_stress" else 3
        if not 2 <= len(values) <= max_values:
            raise _err.ConfigError(
                f"{where}: parameter '{key}' expects between 2 and {max_values}"
                + f" values, got {len(values)}"
            )
        enabled = _parse_flag(values[0], key, where)
        frequency = _convert(int, values[1], key, where)
        if frequency < 1:
            raise _err.ConfigError(f"{where}: statistics frequency must be positive")
        if len(values) > 2:
            name = values[2]
        if len(values) > 3:
            resolution = _convert(int, values[3], key, where)
        params[field] = (enabled, frequency, name, resolution)
    else:
        match lkey:
            case "appliedstress":
                expect(6)
                params["applied_stress"] = tuple(
                    _convert(float, v, key, where) for v in values
                )
            case "stopping":
                expect(2)
                match values[0].lower():
                    case "time":
                        params["stopping_criterion"] = _core.StoppingCriterion.time
                        params["stop_time"] = _convert(float, values[1], key, where)
                    case "iterations":
                        params["stopping_criterion"] = (
                            _core.StoppingCriterion.iterations
                        )
                        params["stop_iterations"] = _convert(
                            int, values[1], key, where
                        )
                    case _:
                        raise _err.ConfigError(
                            f"{where}: stopping criterion must be 'time' or"
                            + f" 'iterations', not '{values[0]}'"
                        )
            case "timestep":
                expect(1)
                try:
                    params["time_step_type"] = _core.TimeStepType[values[0].lower()]
                except KeyError:
                    raise _err.ConfigError(
                        f"{where}: time step type must be 'adaptive' or 'fixed',"
                        + f" not '{values[0]}'"
                    ) from None
            case "localequilibrium":
                expect(1)
                params["local_equilibrium"] = _parse_flag(values[0], key, where)
            case "seed":
                expect(1)
                params["seed"] = _convert(int, values[0], key, where)
            case _:
                _log.warning("%s: ignoring unknown parameter '%s'", where, key)


def parse_params(path):
    """Parse a DD2D parameter file.

    Returns a dictionary with the keys of `dd2d.core.DefaultParams`, where values not
    given in the file keep their defaults. The input and output directories are
    resolved relative to the directory of the parameter file.

    Raises `dd2d.exceptions.ConfigError` for invalid lines or values.

    """
    _path = resolve_path(path)
    params = _core.DefaultParams().as_dict()
    with open(_path) as stream:
        for lineno, line in _strip_comment_lines(stream):
            key, *values = line.split()
            _parse_param_line(params, key, values, f"{_path}:{lineno}")

    if params["drag"] <= 0:
        raise _err.ConfigError(
            f"{_path}: drag coefficient must be positive, got {params['drag']}"
        )
    if not isinstance(logging.getLevelName(params["log_level"].upper()), int):
        raise _err.ConfigError(f"{_path}: unknown log level '{params['log_level']}'")
    params["log_level"] = params["log_level"].upper()
    if params["reaction_radius"] <= params["limiting_distance"]:
        _log.warning(
            "reaction radius (%s) is not larger than the limiting distance (%s),"
            + " defects will not react",
            params["reaction_radius"],
            params["limiting_distance"],
        )
    params["input_dir"] = resolve_path(params["input_dir"], _path.parent)
    params["output_dir"] = resolve_path(params["output_dir"], _path.parent)
    return params


class _LineReader:
    """Reader for line-oriented structure files with error locations."""

    def __init__(self, stream, name, error=_err.StructureError):
        self._lines = _strip_comment_lines(stream)
        self.name = name
        self.lineno = 0
        self.error = error

    @property
    def where(self):
        return f"{self.name}:{self.lineno}"

    def values(self, n=None, func=float):
        """Read the next line as `n` values (any number if None)."""
        try:
            self.lineno, line = next(self._lines)
        except StopIteration:
            raise self.error(f"{self.name}: unexpected end of file") from None
        tokens = line.split()
        if n is not None and len(tokens) != n:
            raise self.error(f"{self.where}: expected {n} value(s), got {len(tokens)}")
        try:
            return [func(t) for t in tokens]
        except ValueError:
            raise self.error(f"{self.where}: invalid value in '{line}'") from None

    def vector(self):
        return np.array(self.values(3))

    def real(self):
        return self.values(1)[0]

    def count(self):
        n = self.values(1, int)[0]
        if n < 0:
            raise self.error(f"{self.where}: negative count {n}")
        return n

    def word(self):
        return self.values(1, str)[0]

    def rows(self, widths):
        """Read a count followed by that many rows of one of the allowed `widths`.

        Returns a list of `(line number, row)` tuples.

        """
        n = self.count()
        rows = []
        for _ in range(n):
            row = self.values()
            if len(row) not in widths:
                raise self.error(
                    f"{self.where}: expected {' or '.join(map(str, widths))} values,"
                    + f" got {len(row)}"
                )
            rows.append((self.lineno, row))
        return rows

    def ensure_end(self):
        extra = next(self._lines, None)
        if extra is not None:
            self.lineno = extra[0]
            raise self.error(f"{self.where}: unexpected trailing data")


def _read_defect_blocks(reader, plane, params, rng, registry):
    # Reads the dislocation and source blocks; a None plane only consumes them.
    dislocations = reader.rows((11,))
    sources = reader.rows((10, 12))
    if plane is None:
        return
    for lineno, row in dislocations:
        position = np.array(row[0:3])
        if not plane.contains(position):
            _log.warning(
                "%s: dropping dislocation at %s outside of its slip plane",
                reader.name,
                position,
            )
            continue
        try:
            plane.add_dislocation(
                Dislocation(
                    position,
                    row[3:6],
                    row[6:9],
                    row[9],
                    mobile=bool(row[10]),
                    base=plane.frame,
                    registry=registry,
                )
            )
        except _err.GeometryError as e:
            raise _err.StructureError(f"{reader.name}:{lineno}: {e}") from e
    for lineno, row in sources:
        position = np.array(row[0:3])
        if not plane.contains(position):
            _log.warning(
                "%s: dropping source at %s outside of its slip plane",
                reader.name,
                position,
            )
            continue
        tau_critical = row[10] if len(row) == 12 else draw_tau_critical(params, rng)
        try:
            source = DislocationSource(
                position,
                row[3:6],
                row[6:9],
                row[9],
                tau_critical,
                params["tau_critical_time"],
                base=plane.frame,
                registry=registry,
            )
        except _err.GeometryError as e:
            raise _err.StructureError(f"{reader.name}:{lineno}: {e}") from e
        if len(row) == 12 and row[11] < source.time_threshold:
            source.time_remaining = row[11]
            source.state = _core.SourceState.counting
        plane.add_source(source)


def read_slip_plane(path, params, rng, registry=None):
    """Read a slip plane structure file.

    Returns a tuple of the current time and the `dd2d.slipplane.SlipPlane`.
    Both extremities of the plane are free surfaces.

    """
    _path = resolve_path(path)
    with open(_path) as stream:
        reader = _LineReader(stream, _path)
        time = reader.real()
        extremities = (reader.vector(), reader.vector())
        normal = reader.vector()
        position = reader.vector()
        try:
            plane = SlipPlane(
                extremities, normal, position=position, registry=registry
            )
        except _err.GeometryError as e:
            raise _err.StructureError(f"{reader.where}: {e}") from e
        _read_defect_blocks(reader, plane, params, rng, plane.registry)
        reader.ensure_end()
    _log.info(
        "read slip plane with %d dislocations and %d sources from %s",
        len(plane.dislocations),
        len(plane.sources),
        _path,
    )
    return time, plane


def read_slip_system(path, params, rng, registry=None):
    """Read a slip system structure file.

    Returns a tuple of the current time and the `dd2d.slipsystem.SlipSystem`.
    All slip plane extremities are free surfaces.

    """
    _path = resolve_path(path)
    with open(_path) as stream:
        reader = _LineReader(stream, _path)
        time = reader.real()
        position, normal, direction = reader.vector(), reader.vector(), reader.vector()
        try:
            system = SlipSystem(position, normal, direction)
        except _err.GeometryError as e:
            raise _err.StructureError(f"{reader.where}: {e}") from e
        for _ in range(reader.count()):
            plane_position = reader.vector()
            extremities = (reader.vector(), reader.vector())
            try:
                plane = SlipPlane(
                    extremities,
                    [0.0, 0.0, 1.0],
                    position=plane_position,
                    base=system.frame,
                    registry=registry,
                )
            except _err.GeometryError as e:
                raise _err.StructureError(f"{reader.where}: {e}") from e
            _read_defect_blocks(reader, plane, params, rng, plane.registry)
            system.add_slip_plane(plane)
        reader.ensure_end()
    _log.info("read slip system with %d slip planes from %s", len(system.planes), _path)
    return time, system


def read_grain(path, params, rng, registry=None):
    """Read a grain structure file.

    Returns a tuple of the current time and the `dd2d.grain.Grain`.
    Slip planes end where their traces cross the grain boundary, their extremities are
    grain boundaries. Planes whose traces do not cross the boundary twice are skipped.

    """
    _path = resolve_path(path)
    with open(_path) as stream:
        reader = _LineReader(stream, _path)
        time = reader.real()
        euler_angles = reader.vector()
        boundary = [reader.vector() for _ in range(reader.count())]
        if len(boundary) < 3:
            raise _err.StructureError(
                f"{reader.where}: grain boundary needs at least 3 points"
            )
        grain = Grain(euler_angles, boundary, registry=registry)
        for _ in range(reader.count()):
            position, normal = reader.vector(), reader.vector()
            system = grain.create_slip_system(position, normal)
            for _ in range(reader.count()):
                plane_position = reader.vector()
                plane = (
                    None
                    if system is None
                    else grain.create_slip_plane(system, plane_position)
                )
                _read_defect_blocks(
                    reader,
                    plane,
                    params,
                    rng,
                    None if plane is None else plane.registry,
                )
        reader.ensure_end()
    _log.info("read grain with %d slip systems from %s", len(grain.systems), _path)
    return time, grain


def _read_polycrystal_systems(reader):
    # Either `nx ny nz spacing n_sources` or `<structure> spacing n_sources`.
    tokens = reader.values(func=str)
    if len(tokens) == 3:
        try:
            structure = _geo.CrystalStructure[tokens[0].lower()]
        except KeyError:
            raise _err.StructureError(
                f"{reader.where}: unknown crystal structure '{tokens[0]}'"
            ) from None
        normals = []
        for normal, _ in _geo.standard_slip_systems(structure):
            if not any(np.allclose(normal, n) for n in normals):
                normals.append(normal)
        values = tokens[1:]
    elif len(tokens) == 5:
        normals = [np.array(_convert_structure(float, tokens[0:3], reader))]
        values = tokens[3:]
    else:
        raise _err.StructureError(f"{reader.where}: expected 3 or 5 values")
    spacing, n_sources = _convert_structure(float, values, reader)
    if spacing <= 0 or n_sources < 0 or not float(n_sources).is_integer():
        raise _err.StructureError(
            f"{reader.where}: slip plane spacing must be positive and"
            + " the number of sources a non-negative integer"
        )
    return [(normal, spacing, int(n_sources)) for normal in normals]


def _convert_structure(func, tokens, reader):
    try:
        return [func(t) for t in tokens]
    except ValueError:
        raise _err.StructureError(
            f"{reader.where}: invalid value in '{' '.join(tokens)}'"
        ) from None


def read_polycrystal(path, params, rng, registry=None):
    """Read a polycrystal structure file.

    The file lists the time, the tessellation base name, the orientation file name
    (both relative to the structure file) and the slip systems, one per line as
    `nx ny nz spacing n_sources`. A line `fcc spacing n_sources` (or `bcc ...`) adds
    one slip system for every distinct slip plane normal of that crystal structure,
    see `dd2d.geometry.standard_slip_systems`. Returns a tuple of the current time and
    the `dd2d.polycrystal.Polycrystal`.

    """
    _path = resolve_path(path)
    with open(_path) as stream:
        reader = _LineReader(stream, _path)
        time = reader.real()
        tessellation_name = reader.word()
        orientations_name = reader.word()
        systems = []
        for _ in range(reader.count()):
            systems.extend(_read_polycrystal_systems(reader))
        reader.ensure_end()
    polycrystal = Polycrystal(
        read_tessellation(_path.parent / tessellation_name),
        read_orientations(_path.parent / orientations_name),
        applied_stress=applied_stress(params),
        registry=registry,
    )
    polycrystal.populate(systems, params, rng)
    _log.info(
        "created polycrystal with %d grains and %d slip planes from %s",
        len(polycrystal.grains),
        len(list(polycrystal.slip_planes())),
        _path,
    )
    return time, polycrystal


def read_structure(path, level, params, rng, registry=None):
    """Read a defect structure file for the given simulation `level`.

    See `STRUCTURE_LEVELS` for the valid levels.

    """
    match level:
        case "slipplane":
            return read_slip_plane(path, params, rng, registry)
        case "slipsystem":
            return read_slip_system(path, params, rng, registry)
        case "grain":
            return read_grain(path, params, rng, registry)
        case "polycrystal":
            return read_polycrystal(path, params, rng, registry)
        case _:
            raise ValueError(f"unknown simulation level '{level}'")


def read_tessellation(name):
    """Read a tessellation from `<name>.nod` (vertices) and `<name>.cll` (cells).

    Each line of the `.nod` file holds the three coordinates of a vertex. Each line of
    the `.cll` file holds a vertex count followed by that many 1-based vertex indices.

    """
    _name = resolve_path(name)
    nod = _name.with_name(_name.name + ".nod")
    cll = _name.with_name(_name.name + ".cll")
    with open(nod) as stream:
        vertices = []
        for lineno, line in _strip_comment_lines(stream):
            try:
                vertex = [float(v) for v in line.split()]
            except ValueError:
                raise _err.TessellationError(
                    f"{nod}:{lineno}: invalid vertex"
                ) from None
            if len(vertex) != 3:
                raise _err.TessellationError(
                    f"{nod}:{lineno}: expected 3 coordinates, got {len(vertex)}"
                )
            vertices.append(vertex)
    with open(cll) as stream:
        cells = []
        for lineno, line in _strip_comment_lines(stream):
            try:
                n, *indices = [int(v) for v in line.split()]
            except ValueError:
                raise _err.TessellationError(f"{cll}:{lineno}: invalid cell") from None
            if n < 3 or len(indices) != n:
                raise _err.TessellationError(
                    f"{cll}:{lineno}: expected at least 3 vertex indices matching"
                    + f" the leading count {n}"
                )
            if min(indices) < 1 or max(indices) > len(vertices):
                raise _err.TessellationError(
                    f"{cll}:{lineno}: vertex index out of range 1..{len(vertices)}"
                )
            cells.append(np.array(indices) - 1)
    if len(cells) == 0:
        raise _err.TessellationError(f"{cll}: no cells")
    _log.debug("read tessellation with %d cells from %s", len(cells), _name)
    return Tessellation(np.array(vertices), cells)


def read_orientations(path):
    """Read Bunge Euler angle triples (radians), one per line."""
    _path = resolve_path(path)
    with open(_path) as stream:
        orientations = []
        for lineno, line in _strip_comment_lines(stream):
            try:
                angles = [float(v) for v in line.split()]
            except ValueError:
                raise _err.TessellationError(
                    f"{_path}:{lineno}: invalid orientation"
                ) from None
            if len(angles) != 3:
                raise _err.TessellationError(
                    f"{_path}:{lineno}: expected 3 Euler angles, got {len(angles)}"
                )
            orientations.append(angles)
    if len(orientations) == 0:
        raise _err.TessellationError(f"{_path}: no orientations")
    return np.array(orientations)


def applied_stress(params):
    """Return the applied stress tensor from the six components in `params`."""
    components = params["applied_stress"]
    return _tensors.symmetric_tensor(components[:3], components[3:])


def _format_vector(vector):
    return " ".join(f"{v:.17g}" for v in vector)


def write_slip_plane(file, plane, time):
    """Write a slip plane structure file that `read_slip_plane` can read back.

    Sources are written with their critical stress and remaining countdown.

    """
    lines = [
        "# Time",
        f"{time:.17g}",
        "# Extremities",
        _format_vector(plane.extremities[0]),
        _format_vector(plane.extremities[1]),
        "# Normal",
        _format_vector(plane.normal),
        "# Position",
        _format_vector(plane.position),
        "# Dislocations: position, Burgers vector, line vector, bmag, mobile",
        str(len(plane.dislocations)),
    ]
    for d in plane.dislocations:
        lines.append(
            " ".join(
                [
                    _format_vector(d.position),
                    _format_vector(d.burgers),
                    _format_vector(d.line),
                    f"{d.bmag:.17g}",
                    str(int(d.mobile)),
                ]
            )
        )
    lines.append(
        "# Sources: position, Burgers vector, line vector, bmag,"
        + " critical stress, time remaining"
    )
    lines.append(str(len(plane.sources)))
    for s in plane.sources:
        lines.append(
            " ".join(
                [
                    _format_vector(s.position),
                    _format_vector(s.burgers),
                    _format_vector(s.line),
                    f"{s.bmag:.17g}",
                    f"{s.tau_critical:.17g}",
                    f"{s.time_remaining:.17g}",
                ]
            )
        )
    with open(resolve_path(file), mode="w") as stream:
        stream.write(os.linesep.join(lines) + os.linesep)


def write_registry(file, registry):
    """Write the contents of a `dd2d.uniqueid.UniqueIDRegistry` to an SCSV file."""
    fields = [
        {"name": "uid", "type": "integer", "fill": "-1"},
        {"name": "kind", "type": "integer", "fill": "-1"},
    ]
    fields.extend(
        {"name": name, "type": "float", "fill": "NaN"}
        for name in ("bx", "by", "bz", "lx", "ly", "lz")
    )
    save_scsv(
        file,
        {"delimiter": ",", "missing": "-", "fields": fields},
        registry.columns(),
        comments=[
            "Defect identifiers with their kinds (see dd2d.core.DefectType)",
            "and their Burgers and line vectors in the slip plane frame.",
        ],
    )


def resolve_path(path, refdir=None):
    """Resolve relative paths and create parent directories if necessary.

    Relative paths are interpreted with respect to the current working directory,
    unless a specific reference directory is provided with `refdir`.

    """
    _path = (pathlib.Path.cwd() if refdir is None else pathlib.Path(refdir)) / path
    _path.parent.mkdir(parents=True, exist_ok=True)
    return _path.resolve()


def stringify(s):
    """Return a cleaned version of a string for use in filenames, etc."""
    return "".join(filter(lambda c: str.isidentifier(c) or str.isdecimal(c), str(s)))


def data(directory):
    """Get resolved path to a DD2D data directory."""
    resources = files("dd2d.data")
    if (resources / directory).is_dir():
        return resolve_path(resources / directory)
    raise NotADirectoryError(f"{resources / directory} is not a directory")


@cl.contextmanager
def logfile_enable(path, level: str | int = logging.DEBUG, mode="w"):
    """Enable logging to a file at `path` with given `level`.

    See the `dd2d.logger` documentation for examples.

    Logging levels are documented here:
    - <https://docs.python.org/3/library/logging.html#logging-levels>

    """
    formatter = logging.Formatter(
        "%(levelname)s [%(asctime)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # Path can be an io.TextIOWrapper or io.StringIO, for testing purposes.
    is_stream = isinstance(path, (io.StringIO, io.TextIOWrapper))
    handler: logging.StreamHandler | logging.FileHandler
    if is_stream:
        handler = logging.StreamHandler(path)
    else:
        handler = logging.FileHandler(resolve_path(path), mode=mode)
    _log.debug("enabling logging at %s level to %s", level, path)
    handler.setFormatter(formatter)
    handler.setLevel(level)
    _log.LOGGER.addHandler(handler)
    try:
        yield
    finally:
        if not is_stream:
            handler.close()
        _log.LOGGER.removeHandler(handler)


@cl.contextmanager
def log_cli_level(level: str | int, handler: logging.Handler = _log.CONSOLE_LOGGER):
    """Set console logging handler level for current context.

    See the `dd2d.logger` documentation for examples.

    """
    default_level = handler.level
    handler.setLevel(level)
    try:
        yield
    finally:
        handler.setLevel(default_level)
