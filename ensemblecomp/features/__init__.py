"""
Feature construction for ensemble comparison.

Residue membership is turned into an ordered residue to atom index, and
the coordinates of two ensembles into per-residue (or per-atom) binary
classification problems stored in a single contiguous arena:

- Residue to atom index (two-pass, order preserving)
- Feature arena of scaled coordinates, one column block per residue
- Membership and empty-residue policies for partial selections
"""

from .extraction import (
    DEFAULT_SCALE,
    LABEL_A,
    LABEL_B,
    ClassificationProblem,
    EmptyResiduePolicy,
    FeatureArena,
    MembershipPolicy,
    build_atom_problems,
    build_residue_problems,
    make_labels,
)
from .residue_index import build_residue_atom_index, residue_atom_index

__all__ = [
    "ClassificationProblem",
    "FeatureArena",
    "MembershipPolicy",
    "EmptyResiduePolicy",
    "build_residue_atom_index",
    "residue_atom_index",
    "build_residue_problems",
    "build_atom_problems",
    "make_labels",
    "DEFAULT_SCALE",
    "LABEL_A",
    "LABEL_B",
]
