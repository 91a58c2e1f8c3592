"""
Residue to atom mapping.

Builds, from per-atom residue membership, the ordered list of member atoms
for every residue. Atoms are listed in ascending atom index within each
residue; this order fixes the layout of the residue feature vectors and
must not change between runs.
"""

from __future__ import annotations

import logging
from typing import Sequence, Union

import numpy as np

from ..core.errors import DataInconsistencyError
from ..core.models import Topology

logger = logging.getLogger(__name__)


def build_residue_atom_index(
    residue_of_atom: Union[Sequence[int], np.ndarray],
    n_residues: int,
) -> list[np.ndarray]:
    """
    Map each residue index to its ordered member atom indices.

    The index is built in two passes: residue sizes are counted first, then
    atoms are placed into exactly-sized slots. A stable sort keeps atoms in
    ascending index order inside each residue.

    Args:
        residue_of_atom: Owning residue index for each atom (0-based)
        n_residues: Total number of residues

    Returns:
        List of length ``n_residues``; entry ``r`` is an int64 array of the
        atom indices belonging to residue ``r``

    Raises:
        DataInconsistencyError: If an atom references a residue index outside
            ``[0, n_residues)``
    """
    owners = np.asarray(residue_of_atom, dtype=np.int64).reshape(-1)

    if n_residues < 0:
        raise ValueError(f"n_residues must be non-negative, got {n_residues}")

    if owners.size:
        bad = np.flatnonzero((owners < 0) | (owners >= n_residues))
        if bad.size:
            atom = int(bad[0])
            raise DataInconsistencyError(
                f"Atom {atom + 1} references residue index {int(owners[atom])}, "
                f"but only {n_residues} residues are defined"
            )

    if n_residues == 0:
        return []

    counts = np.bincount(owners, minlength=n_residues)
    order = np.argsort(owners, kind="stable").astype(np.int64)
    bounds = np.cumsum(counts)[:-1]

    index = [np.ascontiguousarray(part) for part in np.split(order, bounds)]
    logger.debug(f"Indexed {owners.size} atoms into {n_residues} residues")
    return index


def residue_atom_index(topology: Topology) -> list[np.ndarray]:
    """Residue to atom mapping for a topology."""
    return build_residue_atom_index(topology.residue_of_atom, topology.n_residues)
