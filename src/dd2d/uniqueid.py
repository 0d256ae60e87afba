"""> DD2D: Registry of unique defect identifiers.

Every defect receives an identifier from a `UniqueIDRegistry` when it is created.
The registry remembers the kind of each defect and, for dislocations and sources,
their Burgers and line vectors, so that defects which have since been annihilated or
absorbed can still be identified in statistics outputs.

Identifiers are dense and 0-based:

>>> from dd2d.core import DefectType
>>> registry = UniqueIDRegistry()
>>> registry.new_id(DefectType.free_surface)
0
>>> registry.new_id(DefectType.dislocation, [1, 0, 0, 0, 0, 1])
1
>>> len(registry)
2
>>> registry.kind(1).name
'dislocation'

Simulations use the process-wide registry returned by `default_registry` unless a
different registry is passed to the defect constructors.

"""

import numpy as np

from dd2d import core as _core

N_PARAMETERS = 6
"""Size of the parameter blob stored for each identifier (Burgers and line vectors)."""


class UniqueIDRegistry:
    """Monotonic counter of defect identifiers, with per-identifier kind and parameters.

    The registry is never reset during a simulation run.

    """

    def __init__(self):
        self._kinds = []
        self._parameters = []

    def __len__(self):
        return len(self._kinds)

    def __repr__(self):
        return f"{self.__class__.__qualname__}(n_ids={len(self)})"

    def new_id(self, kind, parameters=None):
        """Register a new defect of the given `kind` and return its identifier.

        The optional `parameters` hold the Burgers vector followed by the line vector.
        Missing values are stored as NaN.

        """
        blob = np.full(N_PARAMETERS, np.nan)
        if parameters is not None:
            _parameters = np.ravel(np.asarray(parameters, dtype=float))
            blob[: min(N_PARAMETERS, _parameters.size)] = _parameters[:N_PARAMETERS]
        self._kinds.append(_core.DefectType(kind))
        self._parameters.append(blob)
        return len(self._kinds) - 1

    def kind(self, uid):
        """Return the `DefectType` of the defect with identifier `uid`."""
        return self._kinds[uid]

    def parameters(self, uid):
        """Return a copy of the parameter blob of the defect with identifier `uid`."""
        return self._parameters[uid].copy()

    def count(self, kind):
        """Return the number of identifiers ever issued for defects of `kind`."""
        return sum(1 for k in self._kinds if k == kind)

    def columns(self):
        """Return the registry contents as a tuple of columns.

        The columns are: identifiers, kinds (as integers), then the six parameter
        components bx, by, bz, lx, ly, lz.

        """
        parameters = (
            np.vstack(self._parameters)
            if self._parameters
            else np.empty((0, N_PARAMETERS))
        )
        return (
            list(range(len(self))),
            [int(k) for k in self._kinds],
            *(list(parameters[:, i]) for i in range(N_PARAMETERS)),
        )


_DEFAULT_REGISTRY = UniqueIDRegistry()


def default_registry():
    """Return the process-wide default registry."""
    return _DEFAULT_REGISTRY
