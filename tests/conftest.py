"""
Shared fixtures for the EnsembleComp test suite.

Synthetic ensembles are generated with a fixed seed so that support vector
counts, and therefore eta values, are reproducible between runs.
"""

from pathlib import Path

import numpy as np
import pytest

from ensemblecomp.core.models import Ensemble, Topology


def make_ensemble(n_frames, n_atoms, center=0.0, spread=0.01, seed=0):
    """Gaussian cloud of frames around a fixed centre (coordinates in nm)."""
    rng = np.random.default_rng(seed)
    return Ensemble(center + spread * rng.standard_normal((n_frames, n_atoms, 3)))


def format_atom_record(serial, name, res_name, res_id, xyz, element, chain="A"):
    """One fixed-column PDB ATOM record."""
    atom_name = f" {name}" if len(name) < 4 else name
    x, y, z = xyz
    return (
        f"ATOM  {serial:5d} {atom_name:<4s} {res_name:>3s} {chain:1s}{res_id:4d}    "
        f"{x:8.3f}{y:8.3f}{z:8.3f}{1.0:6.2f}{0.0:6.2f}          {element:>2s}"
    )


# Two residues: ALA 1 (N, CA, C) and GLY 2 (N, CA)
DIPEPTIDE = [
    ("N", "ALA", 1, "N"),
    ("CA", "ALA", 1, "C"),
    ("C", "ALA", 1, "C"),
    ("N", "GLY", 2, "N"),
    ("CA", "GLY", 2, "C"),
]


def write_multimodel_pdb(path, coords_angstrom, atoms=DIPEPTIDE):
    """Write a ``(n_frames, n_atoms, 3)`` array as a multi-model PDB file."""
    lines = []
    for model, frame in enumerate(coords_angstrom, start=1):
        lines.append(f"MODEL     {model:4d}")
        for serial, ((name, res_name, res_id, element), xyz) in enumerate(
            zip(atoms, frame), start=1
        ):
            lines.append(format_atom_record(serial, name, res_name, res_id, xyz, element))
        lines.append("ENDMDL")
    lines.append("END")
    Path(path).write_text("\n".join(lines) + "\n")
    return Path(path)


@pytest.fixture
def dipeptide_topology():
    """Topology matching DIPEPTIDE."""
    return Topology.from_residue_sizes([3, 2], ids=[1, 2], names=["ALA", "GLY"])


@pytest.fixture
def pdb_pair(tmp_path):
    """Two 6-frame dipeptide trajectories; ALA is identical in both, GLY moves in the second."""
    rng = np.random.default_rng(7)
    base = np.array([
        [0.0, 0.0, 0.0],
        [1.5, 0.0, 0.0],
        [2.0, 1.4, 0.0],
        [3.3, 1.6, 0.0],
        [4.0, 2.9, 0.0],
    ])
    frames_a = base + 0.1 * rng.standard_normal((6, 5, 3))
    frames_b = base + 0.1 * rng.standard_normal((6, 5, 3))
    frames_b[:, :3, :] = frames_a[:, :3, :]
    frames_b[:, 3:, :] += 8.0

    path_a = write_multimodel_pdb(tmp_path / "state_a.pdb", frames_a)
    path_b = write_multimodel_pdb(tmp_path / "state_b.pdb", frames_b)
    return path_a, path_b
