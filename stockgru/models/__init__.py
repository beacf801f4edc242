"""Model definitions and evaluation modules."""

from .evaluation import (
    compute_stock_accuracy,
    direction_metrics,
    prediction_timeline,
    rank_accuracies,
)
from .gru_model import CancellationToken, GRUConfig, GRUDirectionModel, TrainingLog

__all__ = [
    "compute_stock_accuracy",
    "direction_metrics",
    "prediction_timeline",
    "rank_accuracies",
    "CancellationToken",
    "GRUConfig",
    "GRUDirectionModel",
    "TrainingLog",
]
