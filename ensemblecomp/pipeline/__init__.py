"""
Comparison pipeline for EnsembleComp.

Drives a comparison from loaded ensembles to written eta tables through a
fixed sequence of stages, releasing intermediate data as it goes.
"""

from .runner import (
    EnsembleComparison,
    EtaConfig,
    PipelineStage,
    compare_ensembles,
    compare_files,
)

__all__ = [
    "EnsembleComparison",
    "EtaConfig",
    "PipelineStage",
    "compare_ensembles",
    "compare_files",
]
