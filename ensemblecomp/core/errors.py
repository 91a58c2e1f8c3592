"""
Exception hierarchy for EnsembleComp.

Every failure detected by the pipeline is fatal for the run: the comparison
is a batch computation that either produces a complete eta table or nothing.
Library code raises these exceptions; only the command-line interface
catches them to turn them into an exit status.
"""

from __future__ import annotations


class EnsembleCompError(Exception):
    """Base exception for all EnsembleComp errors."""
    pass


class UnsupportedFormatError(EnsembleCompError):
    """Raised when a trajectory, topology or index file type is not recognised."""
    pass


class ValidationError(EnsembleCompError):
    """Base class for ensemble precondition violations."""
    pass


class FrameCountMismatchError(ValidationError):
    """Raised when the two ensembles contain different numbers of frames."""
    pass


class AtomCountMismatchError(ValidationError):
    """Raised when no selection is given and the ensembles differ in atom count."""
    pass


class IndexGroupSizeMismatchError(ValidationError):
    """Raised when the two atom selections differ in size."""
    pass


class DataInconsistencyError(EnsembleCompError):
    """Raised when an atom or residue cross-reference is out of range."""
    pass


class ResourceExhaustionError(EnsembleCompError):
    """Raised when feature construction or training cannot allocate memory."""
    pass
