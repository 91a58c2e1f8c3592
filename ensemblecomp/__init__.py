"""
EnsembleComp: residue-level comparison of conformational ensembles.

This package finds the parts of a molecule that behave differently in two
molecular dynamics trajectories. For every residue (and optionally every
atom) a support vector classifier with a radial basis function kernel is
trained to tell the frames of one trajectory from those of the other.
Residues whose conformations overlap between the two ensembles need many
support vectors; residues that occupy distinct regions of conformational
space need only a few. The eta metric, ``1 - S / (2F)``, turns that count
into a separability score between 0 (indistinguishable) and 1 (fully
separated).

Key components:
    - core: Ensembles, selections, topology, results and file readers
    - features: Residue to atom index and feature arena construction
    - classification: Per-residue classifier training and the eta metric
    - pipeline: Staged comparison runner
    - io: Eta table and JSON export
    - cli: Command-line interface

Basic usage:
    >>> from ensemblecomp import compare_files
    >>>
    >>> result = compare_files("open.xtc", "closed.xtc", topology="protein.pdb")
    >>> for residue in result.most_separable(5):
    ...     print(f"{residue.label}: eta = {residue.eta:.3f}")

The approach follows Leighty and Varma, "Quantifying Changes in Intrinsic
Molecular Motion Using Support Vector Machines", J. Chem. Theory Comput.
2013, 9, 868-875.

License: MIT
"""

__version__ = "0.1.0"

from .core.errors import (
    AtomCountMismatchError,
    DataInconsistencyError,
    EnsembleCompError,
    FrameCountMismatchError,
    IndexGroupSizeMismatchError,
    ResourceExhaustionError,
    UnsupportedFormatError,
    ValidationError,
)
from .core.models import (
    AtomEta,
    AtomSelection,
    Ensemble,
    EtaResult,
    ResidueEta,
    ResidueInfo,
    Topology,
)
from .features.extraction import EmptyResiduePolicy, MembershipPolicy
from .pipeline.runner import (
    EnsembleComparison,
    EtaConfig,
    PipelineStage,
    compare_ensembles,
    compare_files,
)

__all__ = [
    "__version__",
    # Models
    "Ensemble",
    "AtomSelection",
    "ResidueInfo",
    "Topology",
    "AtomEta",
    "ResidueEta",
    "EtaResult",
    # Pipeline
    "EnsembleComparison",
    "EtaConfig",
    "PipelineStage",
    "MembershipPolicy",
    "EmptyResiduePolicy",
    "compare_ensembles",
    "compare_files",
    # Errors
    "EnsembleCompError",
    "UnsupportedFormatError",
    "ValidationError",
    "FrameCountMismatchError",
    "AtomCountMismatchError",
    "IndexGroupSizeMismatchError",
    "DataInconsistencyError",
    "ResourceExhaustionError",
]
