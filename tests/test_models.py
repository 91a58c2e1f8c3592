"""
Unit tests for EnsembleComp core data models.

These tests validate the containers that flow through the comparison
pipeline: shape checks on ensembles, selection ordering, topology
construction and validation of the eta result records.
"""

from pathlib import Path

import numpy as np
import pytest
from pydantic import ValidationError

from ensemblecomp.core.models import (
    AtomEta,
    AtomSelection,
    Ensemble,
    EtaResult,
    ResidueEta,
    ResidueInfo,
    Topology,
)


class TestEnsemble:
    """Tests for the Ensemble coordinate container."""

    def test_shape_properties(self):
        """Frame and atom counts come from the coordinate array."""
        ens = Ensemble(np.zeros((4, 7, 3)))
        assert ens.n_frames == 4
        assert ens.n_atoms == 7
        assert ens.coordinates.dtype == np.float64

    def test_rejects_wrong_dimensions(self):
        """Coordinates must be (frames, atoms, 3)."""
        with pytest.raises(ValueError, match="3D"):
            Ensemble(np.zeros((4, 7)))
        with pytest.raises(ValueError, match="last dimension"):
            Ensemble(np.zeros((4, 7, 2)))

    def test_from_frames(self):
        """Per-frame arrays are stacked in order."""
        frames = [np.full((2, 3), i, dtype=float) for i in range(3)]
        ens = Ensemble.from_frames(frames, source=Path("traj.xtc"))
        assert ens.n_frames == 3
        assert ens.coordinates[2, 1, 0] == 2.0
        assert ens.source == Path("traj.xtc")

    def test_from_no_frames(self):
        """An empty frame list gives an empty ensemble."""
        ens = Ensemble.from_frames([])
        assert ens.n_frames == 0

    def test_repr(self):
        assert "n_frames=2" in repr(Ensemble(np.zeros((2, 1, 3))))


class TestAtomSelection:
    """Tests for ordered atom selections."""

    def test_order_is_preserved(self):
        sel = AtomSelection([5, 1, 3], name="Custom")
        assert list(sel.indices) == [5, 1, 3]
        assert len(sel) == 3
        assert sel.name == "Custom"

    def test_identity(self):
        sel = AtomSelection.identity(4)
        assert list(sel.indices) == [0, 1, 2, 3]
        assert sel.name == "System"


class TestTopology:
    """Tests for residue membership."""

    def test_from_residue_sizes(self):
        """Consecutive residues are laid out from their sizes."""
        top = Topology.from_residue_sizes([2, 3, 1])
        assert top.n_atoms == 6
        assert top.n_residues == 3
        assert list(top.residue_of_atom) == [0, 0, 1, 1, 1, 2]
        assert top.residues[0].id == 1
        assert top.residues[2].name == "UNK"
        assert top.residues[1].n_atoms == 3

    def test_custom_ids_and_names(self):
        top = Topology.from_residue_sizes([1, 1], ids=[10, 11], names=["LYS", "GLU"])
        assert [r.label for r in top.residues] == ["10LYS", "11GLU"]


class TestResultRecords:
    """Tests for the eta result models."""

    @pytest.fixture
    def residues(self):
        return [
            ResidueInfo(index=0, id=1, name="MET", n_atoms=4),
            ResidueInfo(index=1, id=2, name="GLN", n_atoms=3),
            ResidueInfo(index=2, id=3, name="ILE", n_atoms=5),
        ]

    def test_atom_output_id_is_one_based(self):
        atom = AtomEta(atom_index=41, eta=0.5, n_support=10)
        assert atom.output_id == 42

    def test_eta_range_is_validated(self):
        """Eta outside [0, 1] is rejected."""
        with pytest.raises(ValidationError):
            AtomEta(atom_index=0, eta=1.2, n_support=0)
        with pytest.raises(ValidationError):
            AtomEta(atom_index=0, eta=-0.1, n_support=0)

    def test_residue_eta_needs_atoms(self, residues):
        with pytest.raises(ValidationError):
            ResidueEta(residue=residues[0], n_atoms=0, eta=0.5, n_support=3)

    def test_records_are_frozen(self, residues):
        with pytest.raises(ValidationError):
            residues[0].name = "ALA"

    def test_most_separable(self, residues):
        """Residues are ranked by eta, highest first."""
        result = EtaResult(
            n_frames=10,
            gamma=0.4,
            cost=100.0,
            residues=[
                ResidueEta(residue=residues[0], n_atoms=4, eta=0.2, n_support=16),
                ResidueEta(residue=residues[1], n_atoms=3, eta=0.9, n_support=2),
                ResidueEta(residue=residues[2], n_atoms=5, eta=0.5, n_support=10),
            ],
        )
        top = result.most_separable(2)
        assert [r.label for r in top] == ["2GLN", "3ILE"]
        np.testing.assert_allclose(result.residue_etas(), [0.2, 0.9, 0.5])

    def test_duplicate_residues_rejected(self, residues):
        entry = ResidueEta(residue=residues[0], n_atoms=4, eta=0.2, n_support=16)
        with pytest.raises(ValidationError, match="Duplicate residue"):
            EtaResult(n_frames=10, gamma=0.4, cost=100.0, residues=[entry, entry])

    def test_json_roundtrip_keeps_parameters(self):
        result = EtaResult(
            n_frames=5,
            gamma=0.2,
            cost=10.0,
            atoms=[AtomEta(atom_index=0, eta=0.8, n_support=2)],
        )
        restored = EtaResult.model_validate_json(result.model_dump_json())
        assert restored.gamma == 0.2
        assert restored.atoms[0].eta == 0.8
