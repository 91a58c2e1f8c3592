"""
Tests for the residue to atom index.
"""

import numpy as np
import pytest

from ensemblecomp.core.errors import DataInconsistencyError
from ensemblecomp.core.models import Topology
from ensemblecomp.features.residue_index import build_residue_atom_index, residue_atom_index


class TestBuildResidueAtomIndex:

    def test_contiguous_residues(self):
        index = build_residue_atom_index([0, 0, 1, 1, 1, 2], 3)
        assert [list(a) for a in index] == [[0, 1], [2, 3, 4], [5]]

    def test_interleaved_atoms_stay_ascending(self):
        """Atoms of a residue appear in ascending atom order."""
        index = build_residue_atom_index([1, 0, 1, 0, 2, 1], 3)
        assert [list(a) for a in index] == [[1, 3], [0, 2, 5], [4]]

    def test_every_atom_appears_once(self):
        rng = np.random.default_rng(3)
        owners = rng.integers(0, 12, size=200)
        index = build_residue_atom_index(owners, 12)
        flat = np.concatenate(index)
        assert sorted(flat) == list(range(200))
        for res, atoms in enumerate(index):
            assert np.all(owners[atoms] == res)

    def test_residue_without_atoms(self):
        index = build_residue_atom_index([0, 0, 2], 3)
        assert len(index) == 3
        assert index[1].size == 0

    def test_out_of_range_owner(self):
        with pytest.raises(DataInconsistencyError, match="Atom 3 references residue index 5"):
            build_residue_atom_index([0, 1, 5], 3)

    def test_negative_owner(self):
        with pytest.raises(DataInconsistencyError):
            build_residue_atom_index([0, -1], 2)

    def test_no_residues(self):
        assert build_residue_atom_index([], 0) == []

    def test_index_dtype(self):
        index = build_residue_atom_index([0, 1], 2)
        assert index[0].dtype == np.int64

    def test_from_topology(self):
        top = Topology.from_residue_sizes([2, 1])
        assert [list(a) for a in residue_atom_index(top)] == [[0, 1], [2]]
