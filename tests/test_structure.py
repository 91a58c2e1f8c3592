"""
Tests for trajectory and topology reading.

Small multi-model PDB files are written on the fly; biotite does the
parsing, these tests check the unit conversion and residue grouping on
top of it.
"""

import numpy as np
import pytest

from ensemblecomp.core.errors import UnsupportedFormatError
from ensemblecomp.core.structure import (
    read_topology,
    read_trajectory,
    topology_format,
    trajectory_format,
)

from tests.conftest import write_multimodel_pdb


@pytest.fixture
def coords():
    rng = np.random.default_rng(0)
    return np.round(10.0 * rng.random((3, 5, 3)), 3)


class TestFormatDetection:

    @pytest.mark.parametrize("name", ["run.xtc", "run.TRR", "run.dcd", "model.pdb", "conf.gro", "x.cif"])
    def test_trajectory_formats(self, name):
        trajectory_format(name)

    @pytest.mark.parametrize("name", ["topol.tpr", "run.nc", "noext"])
    def test_unsupported_trajectory(self, name):
        with pytest.raises(UnsupportedFormatError, match="Unsupported trajectory format"):
            read_trajectory(name)

    def test_unsupported_topology(self):
        with pytest.raises(UnsupportedFormatError):
            topology_format("run.xtc")


class TestReadPDB:

    def test_frames_in_nanometres(self, tmp_path, coords):
        path = write_multimodel_pdb(tmp_path / "traj.pdb", coords)
        ensemble = read_trajectory(path)

        assert ensemble.n_frames == 3
        assert ensemble.n_atoms == 5
        assert ensemble.source == path
        np.testing.assert_allclose(ensemble.coordinates, coords / 10.0, atol=1e-4)

    def test_topology_residues(self, tmp_path, coords):
        path = write_multimodel_pdb(tmp_path / "top.pdb", coords)
        topology = read_topology(path)

        assert topology.n_atoms == 5
        assert [r.label for r in topology.residues] == ["1ALA", "2GLY"]
        assert [r.n_atoms for r in topology.residues] == [3, 2]
        assert list(topology.residue_of_atom) == [0, 0, 0, 1, 1]
        assert topology.source == path
