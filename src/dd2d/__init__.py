r"""
#### Simulate the glide of edge dislocations in two dimensions

---

.. warning::
    **This software is currently in early development (alpha)
    and therefore subject to breaking changes without notice.**

## Introduction

Plastic deformation of crystalline materials is carried by dislocations, line defects
of the crystal lattice which glide on slip planes under shear stress.
DD2D is a discrete dislocation dynamics (DDD) code for straight edge dislocations
whose lines are normal to the plane of view. Each dislocation is reduced to a point
on the trace of its slip plane, and interacts with all other dislocations through
its linear elastic stress field. **These are some of the main features of DD2D:**

- **Hierarchical coordinate frames** for polycrystals, grains, slip systems,
  slip planes and defects, see `dd2d.frames`

- **JIT-compiled stress kernels** for the superposition of edge dislocation fields
  and the Peach-Koehler glide forces, see `dd2d.tensors`

- **Frank-Read sources** that emit dislocation dipoles once the resolved shear stress
  has exceeded their critical stress for long enough

- **Short-range reactions**: annihilation of dislocations with opposite Burgers
  vectors, absorption at free surfaces and pinning at grain boundaries

- **Adaptive or fixed time stepping** with a limiting approach distance between
  neighbouring defects

- **Polycrystals** from 2D Voronoi tessellations, with slip planes cut at the grain
  boundaries, see `dd2d.polycrystal`

- Periodic **statistics** in plain text and SCSV formats, see `dd2d.stats`

## Installation

The minimum required Python version is displayed in the package metadata.
To install DD2D from a source checkout, execute:

    pip install .

The test suite requires the optional `test` dependencies (`pip install .[test]`).

## Running simulations

Simulations are described by a parameter file and a defect structure file, see
`dd2d.io` for the formats. Example inputs are shipped in the `specs` data directory,
see `dd2d.io.data`. The simulation level (single slip plane, slip system, grain or
polycrystal) is chosen by the command used to run the simulation:

    dd2d-slipplane params.txt
    dd2d-slipsystem params.txt
    dd2d-grain params.txt
    dd2d-polycrystal params.txt

The same simulations can be run from Python with `dd2d.run.run_simulation`.
Positions of all defects over time can be plotted with `dd2d-plot`, from the output
of the `statsAllDefects` statistic.

## Model

In each iteration, the total stress at every defect is the applied stress plus the
superposed fields of the interacting dislocations. The resolved shear stress yields
the glide force per unit length (Peach-Koehler force), and each mobile dislocation
moves along its slip plane with the velocity $v = f / B$ for a drag coefficient $B$.
Dislocations are never allowed to approach each other (or other defects) closer than
the limiting distance within a single time step. Dislocation sources are transparent
to gliding dislocations.

"""

# Set up the top-level dd2d namespace for convenient usage.
# To keep it clean, we don't want every single symbol here, especially not those from
# `io` or `visualisation` modules, which should be explicitly imported instead.
from dd2d.core import (
    DefaultParams,
    DefectType,
    SourceState,
    StoppingCriterion,
    TimeStepType,
)
from dd2d.defects import (
    Dislocation,
    DislocationSource,
    FreeSurface,
    GrainBoundary,
)
from dd2d.frames import CoordinateSystem
from dd2d.geometry import CrystalStructure, standard_slip_systems
from dd2d.grain import Grain
from dd2d.polycrystal import Polycrystal, Tessellation
from dd2d.run import iterate, run_simulation
from dd2d.slipplane import SlipPlane, StressField
from dd2d.slipsystem import SlipSystem
from dd2d.uniqueid import UniqueIDRegistry
