"""
Pipeline orchestration for ensemble comparison.

This module provides the EnsembleComparison class, which drives one
comparison through a fixed sequence of stages:

    Uninitialized -> EnsemblesLoaded -> Validated -> ProblemsBuilt
        -> Trained -> MetricsComputed -> Emitted

Each stage may only be entered from the one before it. All consistency
checks (frame counts, atom counts, index group sizes) happen during
validation, before any feature vector is built. Data that later stages no
longer need is released as soon as a stage completes: coordinates after
the problems are built, the feature arenas after training.

Usage
-----
In memory:

    >>> result = compare_ensembles(ensemble_a, ensemble_b, topology=topology)
    >>> for residue in result.most_separable(5):
    ...     print(residue.label, residue.eta)

From files:

    >>> result = compare_files(
    ...     "open.xtc", "closed.xtc",
    ...     topology="protein.pdb",
    ...     atom_output="eta_atom.dat",
    ...     residue_output="eta_res.dat",
    ... )

Step by step:

    >>> comparison = EnsembleComparison(EtaConfig(gamma=0.2, workers=4))
    >>> comparison.load_files("open.xtc", "closed.xtc", topology="protein.pdb")
    >>> result = comparison.run()
    >>> comparison.emit(residue_path="eta_res.dat")
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Union

import numpy as np

from ..classification.metrics import compute_eta
from ..classification.trainer import (
    DEFAULT_COST,
    DEFAULT_GAMMA,
    ClassifierTrainer,
    SVMParameters,
)
from ..core.errors import (
    AtomCountMismatchError,
    DataInconsistencyError,
    FrameCountMismatchError,
    IndexGroupSizeMismatchError,
)
from ..core.models import (
    AtomEta,
    AtomSelection,
    Ensemble,
    EtaResult,
    ResidueEta,
    Topology,
)
from ..core.selection import check_selection_bounds, read_index_group
from ..core.structure import (
    read_topology,
    read_trajectory,
    topology_format,
    trajectory_format,
)
from ..features.extraction import (
    DEFAULT_SCALE,
    LABEL_A,
    LABEL_B,
    EmptyResiduePolicy,
    FeatureArena,
    MembershipPolicy,
    build_atom_problems,
    build_residue_problems,
)
from ..features.residue_index import residue_atom_index
from ..io.export import export_result

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


# =============================================================================
# Configuration
# =============================================================================

@dataclass
class EtaConfig:
    """
    Configuration for one ensemble comparison.

    Attributes:
        gamma: RBF kernel width parameter
        cost: Soft-margin penalty C
        label_a: Class label of ensemble A vectors
        label_b: Class label of ensemble B vectors
        workers: Maximum parallel training workers (None = all cores)
        scale: Factor applied to every coordinate before training
        compute_atoms: Whether to train one classifier per selected atom
        compute_residues: Whether to train one classifier per residue
            (needs a topology)
        membership_policy: Handling of residue atoms outside the selection
        empty_residue_policy: Handling of residues left without atoms
    """
    gamma: float = DEFAULT_GAMMA
    cost: float = DEFAULT_COST
    label_a: int = LABEL_A
    label_b: int = LABEL_B
    workers: Optional[int] = None
    scale: float = DEFAULT_SCALE
    compute_atoms: bool = True
    compute_residues: bool = True
    membership_policy: MembershipPolicy = MembershipPolicy.STRICT
    empty_residue_policy: EmptyResiduePolicy = EmptyResiduePolicy.SKIP

    def __post_init__(self):
        if self.gamma <= 0:
            raise ValueError(f"gamma must be positive, got {self.gamma}")
        if self.cost <= 0:
            raise ValueError(f"cost must be positive, got {self.cost}")
        if self.label_a == self.label_b:
            raise ValueError(f"Ensemble labels must differ, both are {self.label_a}")
        if self.workers is not None and self.workers == 0:
            raise ValueError("workers must be non-zero (None or -1 for all cores)")
        self.membership_policy = MembershipPolicy(self.membership_policy)
        self.empty_residue_policy = EmptyResiduePolicy(self.empty_residue_policy)

    def svm_parameters(self) -> SVMParameters:
        return SVMParameters(gamma=self.gamma, cost=self.cost)


class PipelineStage(str, Enum):
    """Lifecycle of an EnsembleComparison."""
    UNINITIALIZED = "Uninitialized"
    ENSEMBLES_LOADED = "EnsemblesLoaded"
    VALIDATED = "Validated"
    PROBLEMS_BUILT = "ProblemsBuilt"
    TRAINED = "Trained"
    METRICS_COMPUTED = "MetricsComputed"
    EMITTED = "Emitted"


ProgressCallback = Callable[[PipelineStage, str], None]


# =============================================================================
# Comparison pipeline
# =============================================================================

class EnsembleComparison:
    """
    Compares two conformational ensembles residue by residue.

    The EnsembleComparison manages:
    1. Loading ensembles, selections and topology
    2. Consistency validation
    3. Feature arena construction
    4. Parallel classifier training
    5. Eta calculation and result emission

    Attributes:
        config: Comparison configuration
        stage: Current pipeline stage
        result: Final result, available once metrics are computed
    """

    def __init__(
        self,
        config: Optional[EtaConfig] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        """
        Initialize comparison.

        Args:
            config: Comparison configuration (defaults: gamma=0.4, C=100)
            progress_callback: Called with the stage and a message whenever
                a stage completes
        """
        self.config = config or EtaConfig()
        self.progress_callback = progress_callback
        self.stage = PipelineStage.UNINITIALIZED
        self.result: Optional[EtaResult] = None

        self._ensemble_a: Optional[Ensemble] = None
        self._ensemble_b: Optional[Ensemble] = None
        self._selection_a: Optional[AtomSelection] = None
        self._selection_b: Optional[AtomSelection] = None
        self._topology: Optional[Topology] = None
        self._sources: tuple[Optional[Path], Optional[Path]] = (None, None)

        self._n_frames = 0
        self._atom_arena: Optional[FeatureArena] = None
        self._residue_arena: Optional[FeatureArena] = None
        self._atom_keys: list[int] = []
        self._residue_keys: list[int] = []
        self._residue_sizes: list[int] = []
        self._skipped: list[int] = []
        self._atom_support: Optional[np.ndarray] = None
        self._residue_support: Optional[np.ndarray] = None
        self._start_time: Optional[float] = None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(stage={self.stage.value}, config={self.config})"

    def _advance(self, expected: PipelineStage, new: PipelineStage, message: str = "") -> None:
        if self.stage != expected:
            raise RuntimeError(
                f"Cannot enter stage {new.value} from {self.stage.value} "
                f"(requires {expected.value})"
            )
        self.stage = new
        logger.debug(f"Pipeline stage: {new.value}")
        if self.progress_callback is not None:
            self.progress_callback(new, message or new.value)

    @property
    def computes_residues(self) -> bool:
        """Whether per-residue eta will be produced for the loaded inputs."""
        return self.config.compute_residues and self._topology is not None

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    def load(
        self,
        ensemble_a: Ensemble,
        ensemble_b: Ensemble,
        selection_a: Optional[AtomSelection] = None,
        selection_b: Optional[AtomSelection] = None,
        topology: Optional[Topology] = None,
    ) -> EnsembleComparison:
        """
        Load in-memory inputs.

        When only one selection is given it is used for both ensembles.
        Without selections every atom is compared.

        Returns:
            self, for chaining
        """
        if self.stage != PipelineStage.UNINITIALIZED:
            raise RuntimeError(f"Inputs already loaded (stage {self.stage.value})")

        self._start_time = time.time()
        self._ensemble_a = ensemble_a
        self._ensemble_b = ensemble_b
        self._selection_a = selection_a
        self._selection_b = selection_b
        self._topology = topology
        self._sources = (ensemble_a.source, ensemble_b.source)

        self._advance(
            PipelineStage.UNINITIALIZED,
            PipelineStage.ENSEMBLES_LOADED,
            f"Loaded {ensemble_a.n_frames} + {ensemble_b.n_frames} frames",
        )
        return self

    def load_files(
        self,
        trajectory_a: PathLike,
        trajectory_b: PathLike,
        index_a: Optional[PathLike] = None,
        index_b: Optional[PathLike] = None,
        group_a: Optional[str] = None,
        group_b: Optional[str] = None,
        topology: Optional[PathLike] = None,
    ) -> EnsembleComparison:
        """
        Load inputs from trajectory, index and topology files.

        All file types are checked before anything is read.

        Args:
            trajectory_a: First trajectory
            trajectory_b: Second trajectory
            index_a: Index file for the first trajectory
            index_b: Index file for the second trajectory
            group_a: Group to use from ``index_a`` (default: first group)
            group_b: Group to use from ``index_b`` (default: first group)
            topology: Structure file defining residue membership

        Raises:
            UnsupportedFormatError: If any file type is not recognised
        """
        if self.stage != PipelineStage.UNINITIALIZED:
            raise RuntimeError(f"Inputs already loaded (stage {self.stage.value})")

        trajectory_format(trajectory_a)
        trajectory_format(trajectory_b)
        if topology is not None:
            topology_format(topology)

        selection_a = read_index_group(index_a, group_a) if index_a is not None else None
        selection_b = read_index_group(index_b, group_b) if index_b is not None else None
        residues = read_topology(topology) if topology is not None else None

        ensemble_a = read_trajectory(trajectory_a)
        ensemble_b = read_trajectory(trajectory_b)

        return self.load(ensemble_a, ensemble_b, selection_a, selection_b, residues)

    # -------------------------------------------------------------------------
    # Stages
    # -------------------------------------------------------------------------

    def validate(self) -> EnsembleComparison:
        """
        Check the loaded inputs for consistency.

        Raises:
            FrameCountMismatchError: If the ensembles differ in frame count
            AtomCountMismatchError: If no selections are given and the
                ensembles differ in atom count
            IndexGroupSizeMismatchError: If the two selections differ in size
            DataInconsistencyError: If the ensembles are empty, a selection
                points outside its trajectory, or the topology describes
                more atoms than the trajectory holds
        """
        if self.stage != PipelineStage.ENSEMBLES_LOADED:
            raise RuntimeError(f"Cannot validate in stage {self.stage.value}")

        a, b = self._ensemble_a, self._ensemble_b

        if a.n_frames != b.n_frames:
            raise FrameCountMismatchError(
                f"Input trajectories have differing numbers of frames "
                f"({a.n_frames} vs {b.n_frames})"
            )
        if a.n_frames == 0:
            raise DataInconsistencyError("Input trajectories contain no frames")

        sel_a, sel_b = self._selection_a, self._selection_b
        if sel_a is None and sel_b is None:
            if a.n_atoms != b.n_atoms:
                raise AtomCountMismatchError(
                    f"Input trajectories have differing numbers of atoms "
                    f"({a.n_atoms} vs {b.n_atoms}); provide index groups"
                )
            sel_a = AtomSelection.identity(a.n_atoms)
            sel_b = AtomSelection.identity(b.n_atoms)
        else:
            if sel_a is None:
                sel_a = sel_b
            if sel_b is None:
                sel_b = sel_a
            if len(sel_a) != len(sel_b):
                raise IndexGroupSizeMismatchError(
                    f"Index groups differ in size ({len(sel_a)} vs {len(sel_b)} atoms)"
                )

        check_selection_bounds(sel_a, a.n_atoms, "trajectory 1")
        check_selection_bounds(sel_b, b.n_atoms, "trajectory 2")
        self._selection_a, self._selection_b = sel_a, sel_b

        if self._topology is not None:
            if self._topology.n_atoms > a.n_atoms:
                raise DataInconsistencyError(
                    f"Topology describes {self._topology.n_atoms} atoms, "
                    f"but trajectory 1 has only {a.n_atoms}"
                )
            if self._topology.n_atoms < a.n_atoms:
                logger.warning(
                    f"Topology covers {self._topology.n_atoms} of {a.n_atoms} atoms; "
                    f"the remaining atoms belong to no residue"
                )
        elif self.config.compute_residues:
            logger.info("No topology given, residue eta values will not be computed")

        if not (self.config.compute_atoms or self.computes_residues):
            raise ValueError("Nothing to compute: atom eta disabled and no residues available")

        self._n_frames = a.n_frames
        self._advance(
            PipelineStage.ENSEMBLES_LOADED,
            PipelineStage.VALIDATED,
            f"{self._n_frames} frames, {len(sel_a)} selected atoms",
        )
        return self

    def build_problems(self) -> EnsembleComparison:
        """
        Build the feature arenas and release the coordinates.

        Raises:
            DataInconsistencyError: If residue membership is inconsistent
                with the selection under the configured policies
            ResourceExhaustionError: If an arena cannot be allocated
        """
        if self.stage != PipelineStage.VALIDATED:
            raise RuntimeError(f"Cannot build problems in stage {self.stage.value}")

        cfg = self.config
        if cfg.compute_atoms:
            self._atom_arena = build_atom_problems(
                self._ensemble_a,
                self._ensemble_b,
                self._selection_a,
                self._selection_b,
                scale=cfg.scale,
                label_a=cfg.label_a,
                label_b=cfg.label_b,
            )
        if self.computes_residues:
            self._residue_arena = build_residue_problems(
                self._ensemble_a,
                self._ensemble_b,
                self._selection_a,
                self._selection_b,
                residue_atom_index(self._topology),
                scale=cfg.scale,
                label_a=cfg.label_a,
                label_b=cfg.label_b,
                membership_policy=cfg.membership_policy,
                empty_policy=cfg.empty_residue_policy,
            )

        # Coordinates are not needed past this point
        self._ensemble_a = None
        self._ensemble_b = None

        n_problems = sum(len(arena) for arena in (self._atom_arena, self._residue_arena) if arena)
        self._advance(
            PipelineStage.VALIDATED,
            PipelineStage.PROBLEMS_BUILT,
            f"Built {n_problems} classification problems",
        )
        return self

    def train(self) -> EnsembleComparison:
        """
        Train every classifier and release the feature arenas.

        Raises:
            ResourceExhaustionError: If a training task runs out of memory
        """
        if self.stage != PipelineStage.PROBLEMS_BUILT:
            raise RuntimeError(f"Cannot train in stage {self.stage.value}")

        trainer = ClassifierTrainer(self.config.svm_parameters(), self.config.workers)
        logger.debug(f"Using {trainer}")

        if self._atom_arena is not None:
            self._atom_support = trainer.train_arena(self._atom_arena)
            self._atom_keys = list(self._atom_arena.keys)
            self._atom_arena = None

        if self._residue_arena is not None:
            self._residue_support = trainer.train_arena(self._residue_arena)
            self._residue_keys = list(self._residue_arena.keys)
            self._residue_sizes = [stop - start for start, stop in self._residue_arena.blocks]
            self._skipped = list(self._residue_arena.skipped)
            self._residue_arena = None

        self._advance(PipelineStage.PROBLEMS_BUILT, PipelineStage.TRAINED, "Training finished")
        return self

    def compute_metrics(self) -> EtaResult:
        """Turn support vector counts into the final eta result."""
        if self.stage != PipelineStage.TRAINED:
            raise RuntimeError(f"Cannot compute metrics in stage {self.stage.value}")

        atoms: list[AtomEta] = []
        if self._atom_support is not None:
            etas = compute_eta(self._atom_support, self._n_frames)
            atoms = [
                AtomEta(atom_index=key, eta=float(eta), n_support=int(n))
                for key, eta, n in zip(self._atom_keys, etas, self._atom_support)
            ]

        residues: list[ResidueEta] = []
        skipped = []
        if self._residue_support is not None:
            table = self._topology.residues
            etas = compute_eta(self._residue_support, self._n_frames)
            residues = [
                ResidueEta(residue=table[key], n_atoms=size, eta=float(eta), n_support=int(n))
                for key, size, eta, n in zip(
                    self._residue_keys, self._residue_sizes, etas, self._residue_support
                )
            ]
            skipped = [table[key] for key in self._skipped]

        self._atom_support = None
        self._residue_support = None

        runtime = time.time() - self._start_time if self._start_time is not None else None
        self.result = EtaResult(
            n_frames=self._n_frames,
            gamma=self.config.gamma,
            cost=self.config.cost,
            atoms=atoms,
            residues=residues,
            skipped_residues=skipped,
            trajectory_a=self._sources[0],
            trajectory_b=self._sources[1],
            runtime_seconds=runtime,
        )

        self._advance(
            PipelineStage.TRAINED,
            PipelineStage.METRICS_COMPUTED,
            f"Computed {len(atoms)} atom and {len(residues)} residue eta values",
        )
        return self.result

    def emit(
        self,
        atom_path: Optional[PathLike] = None,
        residue_path: Optional[PathLike] = None,
        json_path: Optional[PathLike] = None,
    ) -> dict[str, Path]:
        """
        Write the result tables.

        Raises:
            OSError: If an output file cannot be written
        """
        if self.stage != PipelineStage.METRICS_COMPUTED:
            raise RuntimeError(f"Cannot emit results in stage {self.stage.value}")

        written = export_result(self.result, atom_path, residue_path, json_path)
        self._advance(
            PipelineStage.METRICS_COMPUTED,
            PipelineStage.EMITTED,
            f"Wrote {len(written)} output files",
        )
        return written

    def run(self) -> EtaResult:
        """Validate, build, train and compute metrics in one go."""
        self.validate()
        self.build_problems()
        self.train()
        result = self.compute_metrics()

        logger.info(
            f"Comparison finished in {result.runtime_seconds:.1f}s: "
            f"{len(result.atoms)} atoms, {len(result.residues)} residues"
        )
        return result


# =============================================================================
# Convenience functions
# =============================================================================

def compare_ensembles(
    ensemble_a: Ensemble,
    ensemble_b: Ensemble,
    topology: Optional[Topology] = None,
    selection_a: Optional[AtomSelection] = None,
    selection_b: Optional[AtomSelection] = None,
    config: Optional[EtaConfig] = None,
) -> EtaResult:
    """
    Compare two in-memory ensembles.

    Args:
        ensemble_a: First ensemble
        ensemble_b: Second ensemble, same frame count
        topology: Residue membership (omit for per-atom eta only)
        selection_a: Atoms of ensemble A to compare
        selection_b: Atoms of ensemble B to compare
        config: Comparison configuration

    Returns:
        EtaResult with per-atom and, given a topology, per-residue eta
    """
    comparison = EnsembleComparison(config)
    comparison.load(ensemble_a, ensemble_b, selection_a, selection_b, topology)
    return comparison.run()


def compare_files(
    trajectory_a: PathLike,
    trajectory_b: PathLike,
    topology: Optional[PathLike] = None,
    index_a: Optional[PathLike] = None,
    index_b: Optional[PathLike] = None,
    group_a: Optional[str] = None,
    group_b: Optional[str] = None,
    config: Optional[EtaConfig] = None,
    atom_output: Optional[PathLike] = None,
    residue_output: Optional[PathLike] = None,
    json_output: Optional[PathLike] = None,
    progress_callback: Optional[ProgressCallback] = None,
) -> EtaResult:
    """
    Compare two trajectory files and optionally write the eta tables.

    Returns:
        EtaResult of the comparison
    """
    comparison = EnsembleComparison(config, progress_callback=progress_callback)
    comparison.load_files(
        trajectory_a,
        trajectory_b,
        index_a=index_a,
        index_b=index_b,
        group_a=group_a,
        group_b=group_b,
        topology=topology,
    )
    result = comparison.run()

    if atom_output is not None or residue_output is not None or json_output is not None:
        comparison.emit(atom_output, residue_output, json_output)

    return result
