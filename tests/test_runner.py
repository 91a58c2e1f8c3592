"""
Tests for the comparison pipeline.

Covers input validation (which must fail before any feature vector is
built), the stage ordering of EnsembleComparison and end-to-end eta values
on small synthetic systems.
"""

from unittest.mock import patch

import numpy as np
import pytest

from ensemblecomp.core.errors import (
    AtomCountMismatchError,
    DataInconsistencyError,
    FrameCountMismatchError,
    IndexGroupSizeMismatchError,
    ResourceExhaustionError,
    UnsupportedFormatError,
)
from ensemblecomp.core.models import AtomSelection, Ensemble, Topology
from ensemblecomp.features.extraction import EmptyResiduePolicy, MembershipPolicy
from ensemblecomp.pipeline.runner import (
    EnsembleComparison,
    EtaConfig,
    PipelineStage,
    compare_ensembles,
    compare_files,
)

from tests.conftest import make_ensemble


class TestEtaConfig:

    def test_defaults(self):
        config = EtaConfig()
        assert config.gamma == 0.4
        assert config.cost == 100.0
        assert (config.label_a, config.label_b) == (-1, 1)
        assert config.workers is None
        assert config.membership_policy == MembershipPolicy.STRICT
        assert config.empty_residue_policy == EmptyResiduePolicy.SKIP

    @pytest.mark.parametrize(
        "kwargs",
        [{"gamma": 0}, {"cost": -5}, {"label_a": 1, "label_b": 1}, {"workers": 0}],
    )
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            EtaConfig(**kwargs)

    def test_policy_from_string(self):
        config = EtaConfig(membership_policy="restrict", empty_residue_policy="reject")
        assert config.membership_policy == MembershipPolicy.RESTRICT
        assert config.empty_residue_policy == EmptyResiduePolicy.REJECT


class TestValidation:
    """Inconsistent inputs are rejected before feature construction."""

    @patch("ensemblecomp.pipeline.runner.build_atom_problems")
    @patch("ensemblecomp.pipeline.runner.build_residue_problems")
    def test_frame_count_mismatch(self, mock_residues, mock_atoms):
        a = make_ensemble(10, 4, seed=1)
        b = make_ensemble(11, 4, seed=2)
        with pytest.raises(FrameCountMismatchError):
            compare_ensembles(a, b, topology=Topology.from_residue_sizes([2, 2]))
        mock_residues.assert_not_called()
        mock_atoms.assert_not_called()

    @patch("ensemblecomp.pipeline.runner.build_atom_problems")
    def test_atom_count_mismatch(self, mock_atoms):
        with pytest.raises(AtomCountMismatchError):
            compare_ensembles(make_ensemble(5, 4), make_ensemble(5, 6))
        mock_atoms.assert_not_called()

    def test_index_group_size_mismatch(self):
        with pytest.raises(IndexGroupSizeMismatchError):
            compare_ensembles(
                make_ensemble(5, 4),
                make_ensemble(5, 6),
                selection_a=AtomSelection([0, 1]),
                selection_b=AtomSelection([0, 1, 2]),
            )

    def test_no_frames(self):
        empty = Ensemble(np.zeros((0, 3, 3)))
        with pytest.raises(DataInconsistencyError, match="no frames"):
            compare_ensembles(empty, Ensemble(np.zeros((0, 3, 3))))

    def test_selection_out_of_bounds(self):
        with pytest.raises(DataInconsistencyError):
            compare_ensembles(
                make_ensemble(5, 4), make_ensemble(5, 4), selection_a=AtomSelection([0, 7])
            )

    def test_topology_larger_than_trajectory(self):
        with pytest.raises(DataInconsistencyError, match="Topology describes"):
            compare_ensembles(
                make_ensemble(5, 4),
                make_ensemble(5, 4),
                topology=Topology.from_residue_sizes([3, 3]),
            )

    def test_nothing_to_compute(self):
        with pytest.raises(ValueError, match="Nothing to compute"):
            compare_ensembles(
                make_ensemble(5, 4), make_ensemble(5, 4), config=EtaConfig(compute_atoms=False)
            )

    def test_unsupported_format_before_reading(self, tmp_path):
        """File types are checked before any file is opened."""
        with patch("ensemblecomp.pipeline.runner.read_trajectory") as mock_read:
            with pytest.raises(UnsupportedFormatError):
                compare_files(tmp_path / "a.xtc", tmp_path / "b.tpr")
            mock_read.assert_not_called()


class TestStages:
    """Stage ordering of EnsembleComparison."""

    def test_stage_sequence(self):
        seen = []
        comparison = EnsembleComparison(
            EtaConfig(workers=1),
            progress_callback=lambda stage, message: seen.append(stage),
        )
        assert comparison.stage == PipelineStage.UNINITIALIZED

        comparison.load(make_ensemble(5, 2, seed=1), make_ensemble(5, 2, seed=2))
        comparison.run()
        assert comparison.stage == PipelineStage.METRICS_COMPUTED
        assert seen == [
            PipelineStage.ENSEMBLES_LOADED,
            PipelineStage.VALIDATED,
            PipelineStage.PROBLEMS_BUILT,
            PipelineStage.TRAINED,
            PipelineStage.METRICS_COMPUTED,
        ]

    def test_out_of_order(self):
        comparison = EnsembleComparison()
        with pytest.raises(RuntimeError):
            comparison.validate()
        comparison.load(make_ensemble(5, 2), make_ensemble(5, 2))
        with pytest.raises(RuntimeError):
            comparison.train()
        with pytest.raises(RuntimeError):
            comparison.emit()

    def test_load_twice(self):
        comparison = EnsembleComparison()
        comparison.load(make_ensemble(5, 2), make_ensemble(5, 2))
        with pytest.raises(RuntimeError):
            comparison.load(make_ensemble(5, 2), make_ensemble(5, 2))

    def test_coordinates_released_after_build(self):
        comparison = EnsembleComparison(EtaConfig(workers=1))
        comparison.load(make_ensemble(5, 2), make_ensemble(5, 2, seed=3))
        comparison.validate().build_problems()
        assert comparison._ensemble_a is None
        assert comparison._ensemble_b is None
        comparison.train()
        assert comparison._atom_arena is None

    def test_emit(self, tmp_path):
        comparison = EnsembleComparison(EtaConfig(workers=1))
        comparison.load(make_ensemble(5, 2), make_ensemble(5, 2, center=1.0))
        comparison.run()
        written = comparison.emit(atom_path=tmp_path / "eta_atom.dat")
        assert written["atom"].exists()
        assert comparison.stage == PipelineStage.EMITTED


class TestResourceExhaustion:
    """Allocation failures abort the run and leave the stage where it was."""

    def test_training_out_of_memory(self):
        comparison = EnsembleComparison(EtaConfig(workers=1))
        comparison.load(make_ensemble(5, 2, seed=1), make_ensemble(5, 2, seed=2))
        comparison.validate().build_problems()

        with patch("sklearn.svm.SVC.fit", side_effect=MemoryError):
            with pytest.raises(ResourceExhaustionError, match="Out of memory"):
                comparison.train()

        assert comparison.stage == PipelineStage.PROBLEMS_BUILT

    def test_arena_allocation_failure(self):
        comparison = EnsembleComparison(EtaConfig(workers=1))
        comparison.load(make_ensemble(5, 2, seed=1), make_ensemble(5, 2, seed=2))
        comparison.validate()

        with patch("ensemblecomp.features.extraction.np.empty", side_effect=MemoryError):
            with pytest.raises(ResourceExhaustionError, match="Failed to allocate"):
                comparison.build_problems()

        assert comparison.stage == PipelineStage.VALIDATED


class TestEndToEnd:
    """Eta values on small synthetic systems."""

    def test_constant_ensembles(self):
        """All-zero vs all-one coordinates separate better than identical ones."""
        topology = Topology.from_residue_sizes([2])
        zeros = Ensemble(np.zeros((5, 2, 3)))
        ones = Ensemble(np.ones((5, 2, 3)))
        config = EtaConfig(workers=1)

        separated = compare_ensembles(zeros, ones, topology=topology, config=config)
        control = compare_ensembles(zeros, Ensemble(np.zeros((5, 2, 3))), topology=topology, config=config)

        assert len(separated.residues) == 1
        assert separated.residues[0].n_atoms == 2
        assert separated.residues[0].eta > control.residues[0].eta
        for eta in (separated.residues[0].eta, control.residues[0].eta):
            assert 0.0 <= eta <= 1.0

    def test_displaced_residue_is_most_separable(self):
        a = make_ensemble(20, 6, seed=11)
        b = make_ensemble(20, 6, seed=12)
        b.coordinates[:, 4:, :] += 2.0
        topology = Topology.from_residue_sizes([2, 2, 2], names=["ALA", "GLY", "TRP"])

        result = compare_ensembles(a, b, topology=topology, config=EtaConfig(workers=1))

        assert [r.residue.index for r in result.residues] == [0, 1, 2]
        assert result.most_separable(1)[0].label == "3TRP"
        assert len(result.atoms) == 6
        assert result.atoms[5].eta > result.atoms[0].eta

    def test_deterministic(self):
        a = make_ensemble(12, 4, seed=5)
        b = make_ensemble(12, 4, seed=6)
        topology = Topology.from_residue_sizes([1, 3])
        config = EtaConfig(workers=1)

        first = compare_ensembles(a, b, topology=topology, config=config)
        second = compare_ensembles(a, b, topology=topology, config=config)

        np.testing.assert_array_equal(first.residue_etas(), second.residue_etas())
        np.testing.assert_array_equal(first.atom_etas(), second.atom_etas())

    def test_single_selection_used_for_both(self):
        a = make_ensemble(8, 5, seed=1)
        b = make_ensemble(8, 5, seed=2)
        result = compare_ensembles(
            a, b, selection_a=AtomSelection([3, 1]), config=EtaConfig(workers=1)
        )
        assert [atom.atom_index for atom in result.atoms] == [3, 1]
        assert [atom.output_id for atom in result.atoms] == [4, 2]

    def test_skipped_residues_reported(self):
        a = make_ensemble(8, 4, seed=1)
        b = make_ensemble(8, 4, seed=2)
        topology = Topology.from_residue_sizes([2, 2])

        result = compare_ensembles(
            a, b,
            topology=topology,
            selection_a=AtomSelection([0, 1]),
            config=EtaConfig(workers=1, membership_policy=MembershipPolicy.RESTRICT),
        )

        assert [r.residue.index for r in result.residues] == [0]
        assert [r.index for r in result.skipped_residues] == [1]

    def test_residues_only(self):
        result = compare_ensembles(
            make_ensemble(6, 2, seed=1),
            make_ensemble(6, 2, seed=2),
            topology=Topology.from_residue_sizes([2]),
            config=EtaConfig(workers=1, compute_atoms=False),
        )
        assert result.atoms == []
        assert len(result.residues) == 1
        assert result.runtime_seconds >= 0


class TestCompareFiles:

    def test_writes_tables(self, pdb_pair, tmp_path):
        path_a, path_b = pdb_pair
        result = compare_files(
            path_a,
            path_b,
            topology=path_a,
            config=EtaConfig(workers=1),
            atom_output=tmp_path / "out" / "eta_atom.dat",
            residue_output=tmp_path / "out" / "eta_res.dat",
        )

        assert result.n_frames == 6
        assert result.trajectory_a == path_a
        assert [r.label for r in result.residues] == ["1ALA", "2GLY"]
        assert result.most_separable(1)[0].label == "2GLY"
        assert (tmp_path / "out" / "eta_atom.dat").exists()
        assert (tmp_path / "out" / "eta_res.dat").read_text().startswith("# RES\tNATOMS\tETA")
