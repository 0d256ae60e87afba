"""> DD2D: Polycrystals built from 2D Voronoi tessellations.

The `Polycrystal` is the root of the frame hierarchy. It owns the tessellation, one
`dd2d.grain.Grain` per tessellation cell and the externally applied stress. Grains only
interact through the applied stress: dislocation stress fields are superposed within
each grain.

Tessellations are read from a pair of files, see `dd2d.io.read_tessellation`.

>>> import numpy as np
>>> tessellation = Tessellation(
...     np.array([[0, 0, 0], [2, 0, 0], [2, 1, 0], [0, 1, 0], [1, 0, 0], [1, 1, 0]])
...     * 1e-6,
...     [np.array([0, 4, 5, 3]), np.array([4, 1, 2, 5])],
... )
>>> tessellation.neighbours(0, 4, 5)
(0, 1)
>>> polycrystal = Polycrystal(tessellation, [(0.0, 0.0, 0.0)])
>>> len(polycrystal.grains)
2

"""

from dataclasses import dataclass, field

import numpy as np

from dd2d import core as _core
from dd2d import frames as _frames
from dd2d import logger as _log
from dd2d.grain import Grain
from dd2d.slipplane import populate_sources
from dd2d.slipsystem import Aggregate


@dataclass
class Tessellation:
    """Planar tessellation with vertex coordinates and cells of vertex indices.

    Vertex indices are 0-based. Cell vertices are ordered along the cell boundary.

    """

    vertices: np.ndarray
    cells: list = field(default_factory=list)

    def __post_init__(self):
        self.vertices = np.atleast_2d(np.asarray(self.vertices, dtype=float))
        self.cells = [np.asarray(c, dtype=int) for c in self.cells]
        self._edges = {}
        for i, cell in enumerate(self.cells):
            for a, b in zip(cell, np.roll(cell, -1)):
                self._edges.setdefault(frozenset((int(a), int(b))), []).append(i)

    @property
    def n_cells(self):
        return len(self.cells)

    def cell_points(self, i):
        """Return the vertices of cell `i`."""
        return self.vertices[self.cells[i]]

    def neighbours(self, i, a, b):
        """Return the cells sharing the edge from vertex `a` to `b` of cell `i`."""
        return tuple(sorted(self._edges.get(frozenset((int(a), int(b))), [i])))

    def edge_boundaries(self, i):
        """Return `(kind, neighbours)` for each edge of cell `i`.

        Edges shared with another cell are grain boundaries, outer edges are free
        surfaces.

        """
        cell = self.cells[i]
        boundaries = []
        for a, b in zip(cell, np.roll(cell, -1)):
            grains = self.neighbours(i, a, b)
            if len(grains) > 1:
                boundaries.append((_core.DefectType.grain_boundary, grains))
            else:
                boundaries.append((_core.DefectType.free_surface, ()))
        return boundaries


class Polycrystal(Aggregate):
    """Polycrystal with one grain per tessellation cell.

    - `tessellation` — the `Tessellation` of the root x-y plane
    - `orientations` — Bunge Euler angles of the grains, reused cyclically if there
      are fewer orientations than cells
    - `applied_stress` — applied stress tensor in the root frame
    - `registry` — `dd2d.uniqueid.UniqueIDRegistry` passed on to new slip planes

    """

    def __init__(self, tessellation, orientations, applied_stress=None, registry=None):
        super().__init__()
        self.frame = _frames.CoordinateSystem()
        self.tessellation = tessellation
        self.orientations = np.atleast_2d(np.asarray(orientations, dtype=float))
        self.registry = registry
        if applied_stress is not None:
            self.applied_stress_base = np.array(applied_stress, dtype=float)
            self.applied_stress_local = self.applied_stress_base.copy()
        if len(self.orientations) < tessellation.n_cells:
            _log.warning(
                "only %d orientations for %d grains, reusing orientations",
                len(self.orientations),
                tessellation.n_cells,
            )
        self.grains = [
            Grain(
                self.orientations[i % len(self.orientations)],
                tessellation.cell_points(i),
                base=self.frame,
                registry=registry,
            )
            for i in range(tessellation.n_cells)
        ]

    def __repr__(self):
        return f"{self.__class__.__qualname__}(n_grains={len(self.grains)})"

    @property
    def children(self):
        return self.grains

    def stress_scopes(self, mu, nu):
        """Iterate over `(plane, field)` pairs, superposing fields per grain."""
        for grain in self.grains:
            yield from grain.stress_scopes(mu, nu)

    def populate(self, slip_systems, params, rng):
        """Create slip systems, slip planes and sources in every grain.

        Each entry of `slip_systems` is a tuple `(normal, spacing, n_sources)` with the
        slip plane normal in the crystal (grain) frame, the distance between parallel
        slip planes (m) and the number of sources per slip plane.

        """
        for i, grain in enumerate(self.grains):
            edge_boundaries = self.tessellation.edge_boundaries(i)
            for normal, spacing, n_sources in slip_systems:
                system = grain.create_slip_system(np.zeros(3), normal)
                if system is None:
                    continue
                for offset in grain.plane_offsets(system, spacing):
                    plane = grain.create_slip_plane(system, offset, edge_boundaries)
                    if plane is not None:
                        populate_sources(plane, n_sources, params, rng)
            _log.debug(
                "grain %d: %d slip planes", i, sum(len(s.planes) for s in grain.systems)
            )
