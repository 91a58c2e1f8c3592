"""
Ensemble separability metric.

The eta metric converts the support vector count of a trained classifier
into a measure of how different two ensembles are:

    eta = 1 - S / (2F)

where ``S`` is the number of support vectors and ``F`` the number of frames
per ensemble (so ``2F`` is the number of training vectors). When the two
ensembles overlap heavily, almost every vector ends up on or inside the
margin and eta approaches 0. When they are well separated only a handful of
vectors define the boundary and eta approaches 1. Eta is ``1 - Overlap``
in the sense of Leighty and Varma (J. Chem. Theory Comput. 2013, 9, 868).

Because ``0 <= S <= 2F`` the value is always in ``[0, 1]``; it is never
clipped.
"""

from __future__ import annotations

import logging
from typing import Sequence, Union

import numpy as np

logger = logging.getLogger(__name__)


def eta_from_support_count(n_support: int, n_frames: int) -> float:
    """
    Eta for one classifier.

    Args:
        n_support: Support vectors retained by the classifier
        n_frames: Frames per ensemble

    Returns:
        Eta in [0, 1]
    """
    if n_frames < 1:
        raise ValueError(f"n_frames must be at least 1, got {n_frames}")
    if not 0 <= n_support <= 2 * n_frames:
        raise ValueError(
            f"Support vector count {n_support} outside [0, {2 * n_frames}]"
        )
    return 1.0 - n_support / (2.0 * n_frames)


def compute_eta(
    support_counts: Union[Sequence[int], np.ndarray],
    n_frames: int,
) -> np.ndarray:
    """
    Eta for a batch of classifiers trained on the same frame count.

    Args:
        support_counts: Support vector count of each classifier
        n_frames: Frames per ensemble

    Returns:
        Array of eta values, parallel to ``support_counts``
    """
    counts = np.asarray(support_counts, dtype=np.float64)
    if n_frames < 1:
        raise ValueError(f"n_frames must be at least 1, got {n_frames}")

    logger.info("Calculating eta values...")

    if counts.size and (counts.min() < 0 or counts.max() > 2 * n_frames):
        raise ValueError(
            f"Support vector counts must lie in [0, {2 * n_frames}], "
            f"got range [{counts.min():.0f}, {counts.max():.0f}]"
        )
    return 1.0 - counts / (2.0 * n_frames)
