"""
Trajectory and topology readers for EnsembleComp.

This module turns molecular structure files into the in-memory objects the
comparison pipeline works on: an :class:`Ensemble` of per-frame coordinates
for each trajectory and a :class:`Topology` describing which residue owns
each atom. Parsing is delegated to biotite.

Supported formats:
    Trajectories: XTC, TRR, DCD, multi-model PDB, GRO and mmCIF
    Topologies:   PDB, GRO and mmCIF

Biotite reports coordinates in Ångström. Ensembles are stored in
nanometres, the unit GROMACS trajectories are written in, so that the
fixed feature scaling applied later gives the same numeric conditioning
as the classic GROMACS-based tooling.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

import numpy as np
import biotite.structure as struc
import biotite.structure.io.dcd as dcd
import biotite.structure.io.gro as gro
import biotite.structure.io.pdb as pdb
import biotite.structure.io.pdbx as pdbx
import biotite.structure.io.trr as trr
import biotite.structure.io.xtc as xtc

from .errors import UnsupportedFormatError
from .models import Ensemble, ResidueInfo, Topology

logger = logging.getLogger(__name__)

ANGSTROM_PER_NM = 10.0

TRAJECTORY_FORMATS = {
    ".xtc": "xtc",
    ".trr": "trr",
    ".dcd": "dcd",
    ".pdb": "pdb",
    ".gro": "gro",
    ".cif": "cif",
}

TOPOLOGY_FORMATS = {
    ".pdb": "pdb",
    ".gro": "gro",
    ".cif": "cif",
}


def _detect_format(path: Path, formats: dict[str, str], kind: str) -> str:
    file_format = formats.get(path.suffix.lower())
    if file_format is None:
        supported = ", ".join(sorted(formats))
        raise UnsupportedFormatError(
            f"Unsupported {kind} format: {path} (supported: {supported})"
        )
    return file_format


def trajectory_format(path: Union[str, Path]) -> str:
    """
    Format name of a trajectory file, checked without opening it.

    Raises:
        UnsupportedFormatError: If the file type is not recognised
    """
    return _detect_format(Path(path), TRAJECTORY_FORMATS, "trajectory")


def topology_format(path: Union[str, Path]) -> str:
    """
    Format name of a topology file, checked without opening it.

    Raises:
        UnsupportedFormatError: If the file type is not recognised
    """
    return _detect_format(Path(path), TOPOLOGY_FORMATS, "topology")


def read_trajectory(path: Union[str, Path]) -> Ensemble:
    """
    Read every frame of a trajectory file.

    Args:
        path: Path to an XTC, TRR, DCD, PDB, GRO or mmCIF file

    Returns:
        Ensemble with coordinates in nanometres

    Raises:
        UnsupportedFormatError: If the file type is not recognised
    """
    path = Path(path)
    file_format = trajectory_format(path)

    logger.info(f"Reading trajectory {path}...")

    if file_format == "xtc":
        coord = xtc.XTCFile.read(str(path)).get_coord()
    elif file_format == "trr":
        coord = trr.TRRFile.read(str(path)).get_coord()
    elif file_format == "dcd":
        coord = dcd.DCDFile.read(str(path)).get_coord()
    elif file_format == "pdb":
        coord = pdb.PDBFile.read(str(path)).get_coord()
    elif file_format == "gro":
        coord = gro.GROFile.read(str(path)).get_structure().coord
    else:
        coord = pdbx.get_structure(pdbx.CIFFile.read(str(path)), model=None).coord

    coord = np.asarray(coord, dtype=np.float64)
    if coord.ndim == 2:
        # Single-model files come back as one (n_atoms, 3) frame
        coord = coord[np.newaxis]

    ensemble = Ensemble(coord / ANGSTROM_PER_NM, source=path)
    logger.info(f"Read {ensemble.n_frames} frames of {ensemble.n_atoms} atoms from {path}")
    return ensemble


def _load_atoms(path: Path, file_format: str) -> struc.AtomArray:
    if file_format == "pdb":
        return pdb.PDBFile.read(str(path)).get_structure(model=1)
    if file_format == "gro":
        return gro.GROFile.read(str(path)).get_structure(model=1)
    return pdbx.get_structure(pdbx.CIFFile.read(str(path)), model=1)


def topology_from_atoms(atoms: struc.AtomArray) -> Topology:
    """
    Derive residue membership from a biotite atom array.

    Residues are delimited with :func:`biotite.structure.get_residue_starts`,
    so consecutive atoms sharing chain, residue number, insertion code and
    residue name form one residue.
    """
    n_atoms = atoms.array_length()
    if n_atoms == 0:
        return Topology(residue_of_atom=np.empty(0, dtype=np.int64), residues=[])

    starts = struc.get_residue_starts(atoms)
    stops = np.append(starts[1:], n_atoms)
    sizes = stops - starts

    residue_of_atom = np.repeat(np.arange(len(starts), dtype=np.int64), sizes)
    residues = [
        ResidueInfo(
            index=i,
            id=int(atoms.res_id[start]),
            name=str(atoms.res_name[start]),
            n_atoms=int(size),
        )
        for i, (start, size) in enumerate(zip(starts, sizes))
    ]
    return Topology(residue_of_atom=residue_of_atom, residues=residues)


def read_topology(path: Union[str, Path]) -> Topology:
    """
    Read residue membership from a structure file.

    Only the first model is used; residue membership is assumed to be the
    same in every frame.

    Args:
        path: Path to a PDB, GRO or mmCIF file

    Returns:
        Topology for every atom in the file

    Raises:
        UnsupportedFormatError: If the file type is not recognised
    """
    path = Path(path)
    file_format = topology_format(path)

    logger.info(f"Reading residue info from {path}...")
    topology = topology_from_atoms(_load_atoms(path, file_format))
    topology.source = path

    logger.info(f"Read {topology.n_residues} residues covering {topology.n_atoms} atoms")
    return topology
