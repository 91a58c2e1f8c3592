"""
Core data models for EnsembleComp.

This module defines the data structures that flow through the comparison
pipeline: conformational ensembles, atom selections, residue topology and
the eta results produced at the end of a run.

Coordinate containers are plain dataclasses around numpy arrays, since they
hold the bulk of the data and are only read by the feature builder. Result
records use Pydantic for validation and serialization.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator


@dataclass
class Ensemble:
    """
    An ordered set of frames sampled from one trajectory.

    Coordinates are stored as a single ``(n_frames, n_atoms, 3)`` float
    array in nanometres, indexed by the global (0-based) atom index of the
    system the trajectory was written for.
    """
    coordinates: np.ndarray
    source: Optional[Path] = None

    def __post_init__(self):
        self.coordinates = np.asarray(self.coordinates, dtype=np.float64)
        if self.coordinates.ndim != 3 or self.coordinates.shape[2] != 3:
            raise ValueError(
                "Coordinates must be 3D (frames, atoms, xyz) and last dimension must be 3, "
                f"got shape {self.coordinates.shape}"
            )

    @classmethod
    def from_frames(
        cls,
        frames: Sequence[np.ndarray],
        source: Optional[Path] = None,
    ) -> Ensemble:
        """
        Build an ensemble from a sequence of per-frame coordinate arrays.

        Args:
            frames: One ``(n_atoms, 3)`` array per frame
            source: Optional path of the file the frames came from

        Returns:
            Ensemble with the frames stacked in order
        """
        if len(frames) == 0:
            return cls(np.empty((0, 0, 3)), source=source)
        return cls(np.stack([np.asarray(f, dtype=np.float64) for f in frames]), source=source)

    @property
    def n_frames(self) -> int:
        return self.coordinates.shape[0]

    @property
    def n_atoms(self) -> int:
        return self.coordinates.shape[1]

    def __repr__(self) -> str:
        return f"Ensemble(n_frames={self.n_frames}, n_atoms={self.n_atoms}, source={self.source!r})"


@dataclass
class AtomSelection:
    """
    Ordered subset of atom indices taken from an index group.

    Indices are 0-based into the full-system atom indexing. The order is
    significant: position ``p`` of the selection for ensemble A is paired
    with position ``p`` of the selection for ensemble B.
    """
    indices: np.ndarray
    name: str = "System"

    def __post_init__(self):
        self.indices = np.asarray(self.indices, dtype=np.int64).reshape(-1)

    @classmethod
    def identity(cls, n_atoms: int, name: str = "System") -> AtomSelection:
        """Selection of all atoms in ascending order."""
        return cls(np.arange(n_atoms, dtype=np.int64), name=name)

    def __len__(self) -> int:
        return len(self.indices)


class ResidueInfo(BaseModel):
    """Identity and size of one residue as read from a topology file."""
    model_config = ConfigDict(frozen=True)

    index: int = Field(..., ge=0, description="0-based position in the topology")
    id: int = Field(..., description="Residue number as written in the topology")
    name: str = Field(..., description="Residue name, e.g. ALA")
    n_atoms: int = Field(..., ge=0, description="Number of member atoms")

    @property
    def label(self) -> str:
        """Identifier used in residue eta tables (number followed by name)."""
        return f"{self.id}{self.name}"


@dataclass
class Topology:
    """
    Residue membership of every atom in the system.

    Attributes:
        residue_of_atom: Residue index (0-based) owning each atom
        residues: Residue table ordered by residue index
        source: Optional path of the topology file
    """
    residue_of_atom: np.ndarray
    residues: list[ResidueInfo] = field(default_factory=list)
    source: Optional[Path] = None

    def __post_init__(self):
        self.residue_of_atom = np.asarray(self.residue_of_atom, dtype=np.int64).reshape(-1)

    @classmethod
    def from_residue_sizes(
        cls,
        sizes: Sequence[int],
        ids: Optional[Sequence[int]] = None,
        names: Optional[Sequence[str]] = None,
    ) -> Topology:
        """
        Build a topology of consecutive residues from their atom counts.

        Args:
            sizes: Atom count of each residue, in order
            ids: Residue numbers (default: 1-based positions)
            names: Residue names (default: "UNK")
        """
        ids = list(ids) if ids is not None else list(range(1, len(sizes) + 1))
        names = list(names) if names is not None else ["UNK"] * len(sizes)
        residue_of_atom = np.repeat(np.arange(len(sizes), dtype=np.int64), sizes)
        residues = [
            ResidueInfo(index=i, id=ids[i], name=names[i], n_atoms=int(n))
            for i, n in enumerate(sizes)
        ]
        return cls(residue_of_atom=residue_of_atom, residues=residues)

    @property
    def n_atoms(self) -> int:
        return len(self.residue_of_atom)

    @property
    def n_residues(self) -> int:
        return len(self.residues)


class AtomEta(BaseModel):
    """Eta of a single atom from the all-atom comparison."""
    model_config = ConfigDict(frozen=True)

    atom_index: int = Field(..., ge=0, description="0-based atom index in ensemble A")
    eta: float = Field(..., ge=0.0, le=1.0)
    n_support: int = Field(..., ge=0, description="Support vectors of the trained classifier")

    @property
    def output_id(self) -> int:
        """1-based atom id as written to result files."""
        return self.atom_index + 1


class ResidueEta(BaseModel):
    """Eta of one residue from the per-residue comparison."""
    model_config = ConfigDict(frozen=True)

    residue: ResidueInfo
    n_atoms: int = Field(..., ge=1, description="Atoms contributing to the feature vectors")
    eta: float = Field(..., ge=0.0, le=1.0)
    n_support: int = Field(..., ge=0)

    @property
    def label(self) -> str:
        return self.residue.label


class EtaResult(BaseModel):
    """
    Complete output of one ensemble comparison.

    Holds the per-atom and per-residue eta values together with the
    parameters that produced them, so the table can be reproduced.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    n_frames: int = Field(..., ge=1)
    gamma: float = Field(..., gt=0)
    cost: float = Field(..., gt=0)

    atoms: list[AtomEta] = Field(default_factory=list)
    residues: list[ResidueEta] = Field(default_factory=list)
    skipped_residues: list[ResidueInfo] = Field(
        default_factory=list, description="Residues without atoms in the active selection"
    )

    trajectory_a: Optional[Path] = None
    trajectory_b: Optional[Path] = None
    runtime_seconds: Optional[float] = Field(None, ge=0)

    @field_validator("residues")
    @classmethod
    def residues_unique(cls, v: list[ResidueEta]) -> list[ResidueEta]:
        seen = set()
        for r in v:
            if r.residue.index in seen:
                raise ValueError(f"Duplicate residue index {r.residue.index} in results")
            seen.add(r.residue.index)
        return v

    def atom_etas(self) -> np.ndarray:
        """Atom eta values as an array, in selection order."""
        return np.array([a.eta for a in self.atoms], dtype=np.float64)

    def residue_etas(self) -> np.ndarray:
        """Residue eta values as an array, in topology order."""
        return np.array([r.eta for r in self.residues], dtype=np.float64)

    def most_separable(self, n: int = 10) -> list[ResidueEta]:
        """Residues with the highest eta, most different first."""
        return sorted(self.residues, key=lambda r: r.eta, reverse=True)[:n]
