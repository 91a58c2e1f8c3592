"""
Support vector classifier training for ensemble comparison.

Every residue (or atom) gets its own two-class C-SVC with a radial basis
function kernel, trained to separate the frames of ensemble A from those of
ensemble B. Classifiers are independent of one another, so training is
dispatched across worker processes with joblib; its automatic batching
hands out work dynamically, which keeps workers busy when residue sizes and
therefore training costs vary.

Only the number of support vectors of each classifier is consumed
downstream. Batch training therefore returns counts and lets each fitted
model go out of scope inside its worker.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

import numpy as np
from joblib import Parallel, delayed
from sklearn.svm import SVC

from ..core.errors import ResourceExhaustionError
from ..features.extraction import ClassificationProblem, FeatureArena

logger = logging.getLogger(__name__)


# Default hyperparameters of the RBF kernel classifier
DEFAULT_GAMMA = 0.4
DEFAULT_COST = 100.0


@dataclass(frozen=True)
class SVMParameters:
    """
    Fixed configuration of the per-residue classifiers.

    Only ``gamma`` and ``cost`` are meant to be tuned. The remaining fields
    are held constant for every residue of a run; ``degree`` is unused by
    the RBF kernel and kept at 3 for parity with libsvm defaults.
    """
    gamma: float = DEFAULT_GAMMA
    cost: float = DEFAULT_COST
    kernel: str = "rbf"
    degree: int = 3
    coef0: float = 0.0
    tol: float = 0.001
    cache_size: float = 100.0
    shrinking: bool = True

    def __post_init__(self):
        if self.gamma <= 0:
            raise ValueError(f"gamma must be positive, got {self.gamma}")
        if self.cost <= 0:
            raise ValueError(f"cost must be positive, got {self.cost}")

    def make_classifier(self) -> SVC:
        """Unfitted scikit-learn classifier with these parameters."""
        return SVC(
            C=self.cost,
            kernel=self.kernel,
            degree=self.degree,
            gamma=self.gamma,
            coef0=self.coef0,
            shrinking=self.shrinking,
            tol=self.tol,
            cache_size=self.cache_size,
        )


@dataclass
class TrainedClassifier:
    """A fitted classifier bound to the problem it was trained on."""
    key: int
    model: SVC

    @property
    def n_support(self) -> int:
        """Number of support vectors retained by the classifier."""
        return int(np.sum(self.model.n_support_))


def _fit(features: np.ndarray, labels: np.ndarray, params: SVMParameters) -> SVC:
    model = params.make_classifier()
    try:
        model.fit(features, labels)
    except MemoryError as e:
        raise ResourceExhaustionError(
            f"Out of memory while training on {features.shape[0]} vectors of "
            f"length {features.shape[1]}"
        ) from e
    return model


def _support_count(features: np.ndarray, labels: np.ndarray, params: SVMParameters) -> int:
    return int(np.sum(_fit(features, labels, params).n_support_))


class ClassifierTrainer:
    """
    Trains one RBF classifier per classification problem.

    Attributes:
        params: Classifier hyperparameters
        n_jobs: joblib worker count (-1 = all available cores)
    """

    def __init__(
        self,
        params: Optional[SVMParameters] = None,
        workers: Optional[int] = None,
    ):
        """
        Initialize trainer.

        Args:
            params: Hyperparameters (defaults: gamma=0.4, C=100)
            workers: Maximum parallel workers (None = use all cores)
        """
        if workers is not None and workers == 0:
            raise ValueError("workers must be non-zero (None or -1 for all cores)")

        self.params = params or SVMParameters()
        self.n_jobs = workers if workers is not None else -1

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(gamma={self.params.gamma}, "
            f"cost={self.params.cost}, n_jobs={self.n_jobs})"
        )

    def fit(self, problem: ClassificationProblem) -> TrainedClassifier:
        """
        Train a single classifier and keep the fitted model.

        Raises:
            ResourceExhaustionError: If training runs out of memory
        """
        return TrainedClassifier(
            key=problem.key,
            model=_fit(problem.features, problem.labels, self.params),
        )

    def support_counts(self, problems: Iterable[ClassificationProblem]) -> np.ndarray:
        """
        Train every problem and return the support vector count of each.

        Results are written to a pre-sized array at each problem's own
        position, so the output order matches the input order.

        Args:
            problems: Classification problems, e.g. a FeatureArena

        Returns:
            Integer array of support vector counts

        Raises:
            ResourceExhaustionError: If any training task runs out of memory
        """
        problems = list(problems)
        counts = np.zeros(len(problems), dtype=np.int64)
        if not problems:
            return counts

        logger.info(
            f"svm-training {len(problems)} problems with gamma = {self.params.gamma} "
            f"and C = {self.params.cost}..."
        )
        if self.n_jobs != 1:
            logger.info("svm training will be parallelized.")

        results = Parallel(n_jobs=self.n_jobs)(
            delayed(_support_count)(p.features, p.labels, self.params)
            for p in problems
        )
        for i, n_support in enumerate(results):
            counts[i] = n_support

        logger.debug(f"Support vector counts: min={counts.min()}, max={counts.max()}")
        return counts

    def train_arena(self, arena: FeatureArena) -> np.ndarray:
        """Support vector counts for every problem of an arena."""
        return self.support_counts(arena)
