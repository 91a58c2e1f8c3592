"""
Classifier training and the eta separability metric.

One RBF support vector classifier is trained per residue (or atom) to tell
the two ensembles apart; the number of support vectors it needs is turned
into eta, the ensemble separability metric.
"""

from .metrics import compute_eta, eta_from_support_count
from .trainer import (
    DEFAULT_COST,
    DEFAULT_GAMMA,
    ClassifierTrainer,
    SVMParameters,
    TrainedClassifier,
)

__all__ = [
    "ClassifierTrainer",
    "SVMParameters",
    "TrainedClassifier",
    "DEFAULT_GAMMA",
    "DEFAULT_COST",
    "compute_eta",
    "eta_from_support_count",
]
