"""Per-stock accuracy of horizon direction predictions."""

from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

import numpy as np
from sklearn.metrics import accuracy_score, f1_score, precision_score, recall_score

from stockgru.features.layout import TensorLayout
from stockgru.utils.logger import setup_logger

logger = setup_logger("evaluation")


def _validated(
    predictions: np.ndarray | None,
    targets: np.ndarray | None,
    symbols: Sequence[str] | None,
    prediction_horizon: int,
) -> Tuple[np.ndarray, np.ndarray] | None:
    if predictions is None or targets is None or not symbols:
        return None
    try:
        preds = np.asarray(predictions, dtype=np.float64)
        truth = np.asarray(targets, dtype=np.float64)
    except (TypeError, ValueError):
        return None
    expected_width = prediction_horizon * len(symbols)
    if preds.ndim != 2 or preds.shape != truth.shape or preds.shape[1] != expected_width:
        return None
    return preds, truth


def _correct_mask(preds: np.ndarray, truth: np.ndarray, threshold: float) -> np.ndarray:
    return (preds > threshold).astype(np.int32) == truth.astype(np.int32)


def compute_stock_accuracy(
    predictions: np.ndarray | None,
    targets: np.ndarray | None,
    symbols: Sequence[str] | None,
    prediction_horizon: int = 3,
    threshold: float = 0.5,
) -> Dict[str, float]:
    """
    Return ``{symbol: accuracy}`` over every sample and day offset.

    Malformed or missing inputs yield an empty mapping instead of raising.
    """
    checked = _validated(predictions, targets, symbols, prediction_horizon)
    if checked is None:
        logger.warning("Cannot compute accuracy from missing or malformed arrays")
        return {}
    preds, truth = checked
    layout = TensorLayout(num_symbols=len(symbols), prediction_horizon=prediction_horizon)
    correct = _correct_mask(preds, truth, threshold)

    accuracies: Dict[str, float] = {}
    for symbol_index, symbol in enumerate(symbols):
        hits = correct[:, layout.target_columns(symbol_index)]
        accuracies[symbol] = float(hits.mean()) if hits.size else 0.0
    return accuracies


def rank_accuracies(accuracies: Dict[str, float]) -> List[Tuple[str, float]]:
    """Symbols ordered from most to least accurate."""
    return sorted(accuracies.items(), key=lambda item: item[1], reverse=True)


def prediction_timeline(
    predictions: np.ndarray | None,
    targets: np.ndarray | None,
    symbols: Sequence[str] | None,
    prediction_horizon: int = 3,
    threshold: float = 0.5,
) -> Dict[str, List[bool]]:
    """Per-symbol hit/miss flags, sample by sample and day offset by day offset."""
    checked = _validated(predictions, targets, symbols, prediction_horizon)
    if checked is None:
        return {}
    preds, truth = checked
    layout = TensorLayout(num_symbols=len(symbols), prediction_horizon=prediction_horizon)
    correct = _correct_mask(preds, truth, threshold)
    return {
        symbol: [bool(hit) for hit in correct[:, layout.target_columns(idx)].reshape(-1)]
        for idx, symbol in enumerate(symbols)
    }


def direction_metrics(y_true: np.ndarray, y_pred: np.ndarray, threshold: float = 0.5) -> Dict[str, float]:
    """Pooled classification metrics over every (sample, symbol, day) entry."""
    truth = np.asarray(y_true).astype(np.int32).reshape(-1)
    y_hat = (np.asarray(y_pred) > threshold).astype(np.int32).reshape(-1)
    if truth.size == 0:
        return {"accuracy": 0.0, "precision": 0.0, "recall": 0.0, "f1": 0.0}
    return {
        "accuracy": float(accuracy_score(truth, y_hat)),
        "precision": float(precision_score(truth, y_hat, zero_division=0)),
        "recall": float(recall_score(truth, y_hat, zero_division=0)),
        "f1": float(f1_score(truth, y_hat, zero_division=0)),
    }
