"""
Feature construction for ensemble comparison.

This module turns two ensembles into one binary classification problem per
residue (or per atom). Each problem asks a classifier to tell the frames of
ensemble A apart from the frames of ensemble B using only the coordinates
of that residue's atoms.

Feature layout
--------------
For a residue with member atoms ``[a0, a1, ..., ak-1]`` a frame contributes
one vector of length ``3k``, atom-major and coordinate-minor::

    a0.x, a0.y, a0.z, a1.x, a1.y, a1.z, ...

Coordinates are multiplied by a fixed factor (10.0 by default) before
training; with coordinates in nanometres this keeps the RBF kernel width
meaningful at the default gamma.

Storage
-------
All vectors of a run live in one contiguous arena of shape ``(2F, 3N)``:
rows ``0..F-1`` hold ensemble A (label -1), rows ``F..2F-1`` ensemble B
(label +1), and each residue owns a contiguous block of columns. A residue's
problem is a column view into the arena, so no per-vector allocation takes
place.

Selections
----------
Residue membership is expressed in full-system atom indices while the
coordinates to compare are chosen by the two index groups. A residue atom
``a`` found at position ``p`` of selection A is read from ensemble A at
``selection_a[p]`` and from ensemble B at ``selection_b[p]``. Atoms missing
from selection A are handled according to :class:`MembershipPolicy`;
residues left without atoms according to :class:`EmptyResiduePolicy`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Sequence

import numpy as np

from ..core.errors import DataInconsistencyError, ResourceExhaustionError
from ..core.models import AtomSelection, Ensemble
from ..core.selection import check_selection_bounds

logger = logging.getLogger(__name__)


# Coordinate scaling applied to every feature component
DEFAULT_SCALE = 10.0

# Classification labels for the two ensembles
LABEL_A = -1
LABEL_B = 1


class MembershipPolicy(str, Enum):
    """What to do with residue atoms that are not part of the active selection."""
    STRICT = "strict"  # Raise DataInconsistencyError
    RESTRICT = "restrict"  # Drop the atom from the residue


class EmptyResiduePolicy(str, Enum):
    """What to do with residues that end up with no atoms."""
    SKIP = "skip"  # Leave the residue out of the results, with a warning
    REJECT = "reject"  # Raise DataInconsistencyError


@dataclass
class ClassificationProblem:
    """
    Training data for one residue (or atom) classifier.

    Attributes:
        key: Residue index, or atom index for the all-atom variant
        features: ``(2F, 3k)`` feature matrix, a view into the arena
        labels: ``(2F,)`` class labels, shared between problems
    """
    key: int
    features: np.ndarray
    labels: np.ndarray

    @property
    def n_vectors(self) -> int:
        return self.features.shape[0]

    @property
    def n_features(self) -> int:
        return self.features.shape[1]

    @property
    def n_atoms(self) -> int:
        return self.features.shape[1] // 3


@dataclass
class FeatureArena:
    """
    Contiguous storage for all classification problems of one run.

    Attributes:
        data: ``(2F, 3N)`` matrix of scaled coordinates
        labels: ``(2F,)`` class labels (A first, then B)
        blocks: Atom offset range ``(start, stop)`` of each problem
        keys: Residue or atom index of each problem, parallel to ``blocks``
        n_frames: Frames per ensemble (F)
        skipped: Residue indices left out because they had no atoms
    """
    data: np.ndarray
    labels: np.ndarray
    blocks: list[tuple[int, int]]
    keys: list[int]
    n_frames: int
    skipped: list[int] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.blocks)

    def __iter__(self) -> Iterator[ClassificationProblem]:
        for i in range(len(self.blocks)):
            yield self.problem(i)

    @property
    def n_atoms(self) -> int:
        """Total number of atom columns (N) in the arena."""
        return self.data.shape[1] // 3

    def problem(self, i: int) -> ClassificationProblem:
        """Classification problem ``i`` as a view into the arena."""
        start, stop = self.blocks[i]
        return ClassificationProblem(
            key=self.keys[i],
            features=self.data[:, 3 * start:3 * stop],
            labels=self.labels,
        )


def make_labels(n_frames: int, label_a: float = LABEL_A, label_b: float = LABEL_B) -> np.ndarray:
    """Label vector with ``n_frames`` entries for A followed by ``n_frames`` for B."""
    labels = np.empty(2 * n_frames, dtype=np.float64)
    labels[:n_frames] = label_a
    labels[n_frames:] = label_b
    return labels


def _fill_arena(
    ensemble_a: Ensemble,
    ensemble_b: Ensemble,
    atoms_a: np.ndarray,
    atoms_b: np.ndarray,
    scale: float,
) -> np.ndarray:
    n_frames = ensemble_a.n_frames
    width = 3 * len(atoms_a)

    try:
        data = np.empty((2 * n_frames, width), dtype=np.float64)
        np.multiply(
            ensemble_a.coordinates[:, atoms_a, :].reshape(n_frames, width),
            scale,
            out=data[:n_frames],
        )
        np.multiply(
            ensemble_b.coordinates[:, atoms_b, :].reshape(n_frames, width),
            scale,
            out=data[n_frames:],
        )
    except MemoryError as e:
        raise ResourceExhaustionError(
            f"Failed to allocate memory for {2 * n_frames} training vectors of "
            f"length {width}; reduce the number of frames or atoms"
        ) from e

    return data


def _check_inputs(
    ensemble_a: Ensemble,
    ensemble_b: Ensemble,
    selection_a: AtomSelection,
    selection_b: AtomSelection,
) -> None:
    if ensemble_a.n_frames != ensemble_b.n_frames:
        raise DataInconsistencyError(
            f"Ensembles have {ensemble_a.n_frames} and {ensemble_b.n_frames} frames"
        )
    if len(selection_a) != len(selection_b):
        raise DataInconsistencyError(
            f"Selections have {len(selection_a)} and {len(selection_b)} atoms"
        )
    check_selection_bounds(selection_a, ensemble_a.n_atoms, "trajectory 1")
    check_selection_bounds(selection_b, ensemble_b.n_atoms, "trajectory 2")


def build_residue_problems(
    ensemble_a: Ensemble,
    ensemble_b: Ensemble,
    selection_a: AtomSelection,
    selection_b: AtomSelection,
    residue_atoms: Sequence[np.ndarray],
    scale: float = DEFAULT_SCALE,
    label_a: float = LABEL_A,
    label_b: float = LABEL_B,
    membership_policy: MembershipPolicy = MembershipPolicy.STRICT,
    empty_policy: EmptyResiduePolicy = EmptyResiduePolicy.SKIP,
) -> FeatureArena:
    """
    Build one classification problem per residue.

    Args:
        ensemble_a: First ensemble (label ``label_a``)
        ensemble_b: Second ensemble, same frame count (label ``label_b``)
        selection_a: Atom selection for ensemble A
        selection_b: Atom selection for ensemble B, same size as A
        residue_atoms: Member atom indices of each residue, from
            :func:`build_residue_atom_index`
        scale: Factor applied to every coordinate
        label_a: Class label of ensemble A vectors
        label_b: Class label of ensemble B vectors
        membership_policy: Handling of residue atoms outside selection A
        empty_policy: Handling of residues with no remaining atoms

    Returns:
        FeatureArena whose problem keys are residue indices

    Raises:
        DataInconsistencyError: If a residue references an atom outside the
            trajectory, or a policy rejects a residue
        ResourceExhaustionError: If the arena cannot be allocated
    """
    _check_inputs(ensemble_a, ensemble_b, selection_a, selection_b)
    n_frames = ensemble_a.n_frames

    logger.info(
        f"Constructing svm problems for {len(residue_atoms)} residues in {n_frames} frames..."
    )

    # Position of every full-system atom inside selection A (-1 = not selected)
    position = np.full(ensemble_a.n_atoms, -1, dtype=np.int64)
    position[selection_a.indices] = np.arange(len(selection_a), dtype=np.int64)

    columns: list[np.ndarray] = []
    blocks: list[tuple[int, int]] = []
    keys: list[int] = []
    skipped: list[int] = []
    offset = 0

    for res, atoms in enumerate(residue_atoms):
        atoms = np.asarray(atoms, dtype=np.int64)

        if atoms.size and (atoms.min() < 0 or atoms.max() >= ensemble_a.n_atoms):
            raise DataInconsistencyError(
                f"Residue {res + 1} references atom {int(atoms.max()) + 1}, "
                f"but trajectory 1 has only {ensemble_a.n_atoms} atoms"
            )

        pos = position[atoms]
        missing = pos < 0
        if missing.any():
            if membership_policy == MembershipPolicy.STRICT:
                raise DataInconsistencyError(
                    f"Residue {res + 1} contains atom {int(atoms[missing][0]) + 1}, "
                    f"which is not in index group '{selection_a.name}'"
                )
            logger.warning(
                f"Residue {res + 1}: {int(missing.sum())} of {atoms.size} atoms "
                f"are outside index group '{selection_a.name}' and were dropped"
            )
            pos = pos[~missing]

        if pos.size == 0:
            if empty_policy == EmptyResiduePolicy.REJECT:
                raise DataInconsistencyError(f"Residue {res + 1} has no atoms to compare")
            logger.warning(f"Residue {res + 1} has no atoms to compare, skipping")
            skipped.append(res)
            continue

        columns.append(pos)
        blocks.append((offset, offset + pos.size))
        keys.append(res)
        offset += pos.size

    positions = np.concatenate(columns) if columns else np.empty(0, dtype=np.int64)
    data = _fill_arena(
        ensemble_a,
        ensemble_b,
        selection_a.indices[positions],
        selection_b.indices[positions],
        scale,
    )

    logger.debug(f"Residue arena: {data.shape[0]} vectors x {data.shape[1]} columns")
    return FeatureArena(
        data=data,
        labels=make_labels(n_frames, label_a, label_b),
        blocks=blocks,
        keys=keys,
        n_frames=n_frames,
        skipped=skipped,
    )


def build_atom_problems(
    ensemble_a: Ensemble,
    ensemble_b: Ensemble,
    selection_a: AtomSelection,
    selection_b: AtomSelection,
    scale: float = DEFAULT_SCALE,
    label_a: float = LABEL_A,
    label_b: float = LABEL_B,
) -> FeatureArena:
    """
    Build one three-dimensional classification problem per selected atom.

    Problem ``p`` compares atom ``selection_a[p]`` of ensemble A with atom
    ``selection_b[p]`` of ensemble B; its key is ``selection_a[p]``.

    Raises:
        DataInconsistencyError: If a selection index is outside its trajectory
        ResourceExhaustionError: If the arena cannot be allocated
    """
    _check_inputs(ensemble_a, ensemble_b, selection_a, selection_b)
    n_frames = ensemble_a.n_frames
    n_atoms = len(selection_a)

    logger.info(f"Constructing svm problems for {n_atoms} atoms in {n_frames} frames...")

    data = _fill_arena(ensemble_a, ensemble_b, selection_a.indices, selection_b.indices, scale)

    return FeatureArena(
        data=data,
        labels=make_labels(n_frames, label_a, label_b),
        blocks=[(i, i + 1) for i in range(n_atoms)],
        keys=[int(a) for a in selection_a.indices],
        n_frames=n_frames,
    )
