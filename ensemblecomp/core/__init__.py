"""
Core data structures and readers for EnsembleComp.

This module provides the foundational components for comparing two
conformational ensembles: coordinate containers, atom selections, residue
topology, result records, the error hierarchy and the file readers that
produce them.

Modules:
    models: Ensemble, selection, topology and eta result models
    errors: Exception hierarchy shared by every pipeline stage
    structure: Trajectory and topology reading via biotite
    selection: GROMACS index-group parsing
"""

from .errors import (
    AtomCountMismatchError,
    DataInconsistencyError,
    EnsembleCompError,
    FrameCountMismatchError,
    IndexGroupSizeMismatchError,
    ResourceExhaustionError,
    UnsupportedFormatError,
    ValidationError,
)
from .models import (
    AtomEta,
    AtomSelection,
    Ensemble,
    EtaResult,
    ResidueEta,
    ResidueInfo,
    Topology,
)
from .selection import (
    parse_index_groups,
    read_index_group,
    read_index_groups,
)
from .structure import (
    read_topology,
    read_trajectory,
    topology_format,
    topology_from_atoms,
    trajectory_format,
)

__all__ = [
    # Models
    "Ensemble",
    "AtomSelection",
    "ResidueInfo",
    "Topology",
    "AtomEta",
    "ResidueEta",
    "EtaResult",
    # Errors
    "EnsembleCompError",
    "UnsupportedFormatError",
    "ValidationError",
    "FrameCountMismatchError",
    "AtomCountMismatchError",
    "IndexGroupSizeMismatchError",
    "DataInconsistencyError",
    "ResourceExhaustionError",
    # Readers
    "read_trajectory",
    "read_topology",
    "topology_from_atoms",
    "trajectory_format",
    "topology_format",
    "parse_index_groups",
    "read_index_groups",
    "read_index_group",
]
