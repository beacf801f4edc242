"""Utilities for assembling the supervised multi-stock sequence dataset."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Sequence, Tuple

import numpy as np
import pandas as pd

from stockgru.data.csv_parser import Row, rows_to_frame
from stockgru.errors import DataError
from stockgru.features.layout import TensorLayout
from stockgru.utils.logger import setup_logger

logger = setup_logger("sequence_builder")

SEQUENCE_LENGTH = 12
PREDICTION_HORIZON = 3
TRAIN_SPLIT = 0.8


@dataclass(frozen=True)
class NormalizationStats:
    open_min: float = 0.0
    open_max: float = 1.0
    close_min: float = 0.0
    close_max: float = 1.0

    @property
    def open_range(self) -> float:
        return (self.open_max - self.open_min) or 1.0

    @property
    def close_range(self) -> float:
        return (self.close_max - self.close_min) or 1.0


@dataclass(frozen=True)
class PivotTable:
    """Date x symbol panels of raw prices; missing cells are NaN."""

    dates: Tuple[str, ...]
    symbols: Tuple[str, ...]
    open: pd.DataFrame
    close: pd.DataFrame


@dataclass
class SplitConfig:
    train: float = TRAIN_SPLIT

    def as_index(self, total: int) -> int:
        return int(total * self.train)


@dataclass
class SequenceDataset:
    train_X: np.ndarray
    train_y: np.ndarray
    test_X: np.ndarray
    test_y: np.ndarray
    symbols: Tuple[str, ...]
    dates: Tuple[str, ...] = ()
    train_anchor_dates: Tuple[str, ...] = ()
    test_anchor_dates: Tuple[str, ...] = ()
    stats: Dict[str, NormalizationStats] = field(default_factory=dict)
    sequence_length: int = SEQUENCE_LENGTH
    prediction_horizon: int = PREDICTION_HORIZON

    @property
    def layout(self) -> TensorLayout:
        return TensorLayout(num_symbols=len(self.symbols), prediction_horizon=self.prediction_horizon)

    @property
    def input_shape(self) -> Tuple[int, int]:
        return (self.sequence_length, self.layout.feature_width)

    @property
    def disposed(self) -> bool:
        return self.train_X is None

    def summary(self) -> dict:
        if self.disposed:
            return {"symbols": list(self.symbols), "disposed": True}
        return {
            "symbols": list(self.symbols),
            "num_dates": len(self.dates),
            "train_samples": int(self.train_X.shape[0]),
            "test_samples": int(self.test_X.shape[0]),
            "input_shape": list(self.train_X.shape[1:]),
            "target_width": int(self.train_y.shape[1]),
        }

    def save_npz(self, path: str | Path) -> Path:
        """Persist the splits and metadata as a compressed numpy archive."""
        out_path = Path(path)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        stats_matrix = np.array(
            [[s.open_min, s.open_max, s.close_min, s.close_max] for s in (self.stats[sym] for sym in self.symbols)]
            if self.stats
            else np.zeros((0, 4)),
            dtype=np.float64,
        )
        np.savez_compressed(
            out_path,
            train_X=self.train_X,
            train_y=self.train_y,
            test_X=self.test_X,
            test_y=self.test_y,
            symbols=np.array(self.symbols),
            dates=np.array(self.dates),
            train_anchor_dates=np.array(self.train_anchor_dates),
            test_anchor_dates=np.array(self.test_anchor_dates),
            stats=stats_matrix,
            shape_params=np.array([self.sequence_length, self.prediction_horizon]),
        )
        logger.info("Saved sequence pack", extra={"path": str(out_path)})
        return out_path

    @classmethod
    def from_npz(cls, path: str | Path) -> "SequenceDataset":
        data = np.load(path, allow_pickle=False)
        symbols = tuple(str(s) for s in data["symbols"].tolist())
        stats_matrix = data["stats"]
        stats = {
            symbol: NormalizationStats(*map(float, stats_matrix[idx]))
            for idx, symbol in enumerate(symbols)
            if idx < len(stats_matrix)
        }
        sequence_length, prediction_horizon = (int(v) for v in data["shape_params"])
        return cls(
            train_X=data["train_X"],
            train_y=data["train_y"],
            test_X=data["test_X"],
            test_y=data["test_y"],
            symbols=symbols,
            dates=tuple(str(d) for d in data["dates"].tolist()),
            train_anchor_dates=tuple(str(d) for d in data["train_anchor_dates"].tolist()),
            test_anchor_dates=tuple(str(d) for d in data["test_anchor_dates"].tolist()),
            stats=stats,
            sequence_length=sequence_length,
            prediction_horizon=prediction_horizon,
        )

    def dispose(self) -> None:
        """Drop references to the numeric buffers."""
        self.train_X = None
        self.train_y = None
        self.test_X = None
        self.test_y = None


def pivot_rows(rows: Sequence[Row]) -> PivotTable:
    """Pivot long rows into date x symbol panels; the last duplicate (date, symbol) wins."""
    frame = rows_to_frame(rows)
    symbols = tuple(sorted(frame["symbol"].unique()))
    dates = tuple(sorted(frame["date"].unique()))
    frame = frame.drop_duplicates(subset=["date", "symbol"], keep="last")

    panels = {}
    for column in ("open", "close"):
        panels[column] = (
            frame.pivot(index="date", columns="symbol", values=column)
            .reindex(index=list(dates), columns=list(symbols))
            .astype(np.float64)
        )
    return PivotTable(dates=dates, symbols=symbols, open=panels["open"], close=panels["close"])


def compute_stats(pivot: PivotTable) -> Dict[str, NormalizationStats]:
    """Per-symbol min/max over observed dates; symbols without data get [0, 1]."""
    open_min = pivot.open.min(skipna=True)
    open_max = pivot.open.max(skipna=True)
    close_min = pivot.close.min(skipna=True)
    close_max = pivot.close.max(skipna=True)

    stats: Dict[str, NormalizationStats] = {}
    for symbol in pivot.symbols:
        if pd.isna(open_min[symbol]) or pd.isna(close_min[symbol]):
            stats[symbol] = NormalizationStats()
            continue
        stats[symbol] = NormalizationStats(
            open_min=float(open_min[symbol]),
            open_max=float(open_max[symbol]),
            close_min=float(close_min[symbol]),
            close_max=float(close_max[symbol]),
        )
    return stats


def normalize_panel(pivot: PivotTable, stats: Dict[str, NormalizationStats]) -> PivotTable:
    """Min-max scale each symbol's columns into [0, 1]; missing cells stay NaN."""
    symbols = list(pivot.symbols)
    open_min = pd.Series({s: stats[s].open_min for s in symbols})
    open_range = pd.Series({s: stats[s].open_range for s in symbols})
    close_min = pd.Series({s: stats[s].close_min for s in symbols})
    close_range = pd.Series({s: stats[s].close_range for s in symbols})
    return PivotTable(
        dates=pivot.dates,
        symbols=pivot.symbols,
        open=(pivot.open - open_min) / open_range,
        close=(pivot.close - close_min) / close_range,
    )


def generate_windows(
    panel: PivotTable,
    sequence_length: int = SEQUENCE_LENGTH,
    prediction_horizon: int = PREDICTION_HORIZON,
) -> Tuple[np.ndarray, np.ndarray, List[str]]:
    """
    Slide a fixed window over the normalized panel.

    Returns inputs ``[n, sequence_length, 2S]``, flat targets ``[n, horizon * S]``
    and the anchor date (first day after the inputs) of every window.
    """
    layout = TensorLayout(num_symbols=len(panel.symbols), prediction_horizon=prediction_horizon)
    open_values = panel.open.to_numpy(dtype=np.float64)
    close_values = panel.close.to_numpy(dtype=np.float64)
    features = layout.interleave_features(
        np.nan_to_num(open_values, nan=0.0),
        np.nan_to_num(close_values, nan=0.0),
    )

    total = max(0, len(panel.dates) - sequence_length - prediction_horizon)
    sequences: List[np.ndarray] = []
    target_bits: List[np.ndarray] = []
    anchors: List[str] = []
    for start in range(total):
        end = start + sequence_length
        window = features[start:end]
        base_close = close_values[end]
        future_close = close_values[end + 1 : end + 1 + prediction_horizon]
        # NaN on either side compares False, so missing cells yield 0.
        with np.errstate(invalid="ignore"):
            bits = (future_close > base_close).astype(np.float32)

        if window.shape != (sequence_length, layout.feature_width) or bits.size != layout.target_width:
            logger.warning("Dropping structurally incomplete window", extra={"start": start})
            continue
        sequences.append(window)
        target_bits.append(bits)
        anchors.append(panel.dates[end])

    X = np.asarray(sequences, dtype=np.float32).reshape(len(sequences), sequence_length, layout.feature_width)
    bits_array = np.asarray(target_bits, dtype=np.float32).reshape(
        len(target_bits), prediction_horizon, layout.num_symbols
    )
    y = layout.flatten_targets(bits_array)
    logger.info(
        "Generated supervised sequences",
        extra={"sequence_length": sequence_length, "samples": len(X)},
    )
    return X, y, anchors


def split_chronological(
    X: np.ndarray, y: np.ndarray, anchors: Sequence[str], config: SplitConfig | None = None
) -> Dict[str, Tuple[np.ndarray, np.ndarray, Tuple[str, ...]]]:
    """Split windows in time order; the earliest ``config.train`` fraction trains."""
    config = config or SplitConfig()
    train_end = config.as_index(len(X))
    datasets = {
        "train": (X[:train_end], y[:train_end], tuple(anchors[:train_end])),
        "test": (X[train_end:], y[train_end:], tuple(anchors[train_end:])),
    }
    logger.info("Split sequences", extra={k: len(v[0]) for k, v in datasets.items()})
    return datasets


def build_dataset(
    rows: Sequence[Row],
    sequence_length: int = SEQUENCE_LENGTH,
    prediction_horizon: int = PREDICTION_HORIZON,
    train_split: float = TRAIN_SPLIT,
) -> SequenceDataset:
    """Run the pivot -> normalize -> window -> split pipeline over parsed rows."""
    if not rows:
        raise DataError("No valid rows found in CSV.")

    pivot = pivot_rows(rows)
    if not pivot.symbols:
        raise DataError("No stock symbols found in CSV.")

    stats = compute_stats(pivot)
    panel = normalize_panel(pivot, stats)
    X, y, anchors = generate_windows(panel, sequence_length, prediction_horizon)
    if len(X) == 0:
        raise DataError(
            f"Not enough history to build sequences: found {len(pivot.dates)} distinct dates, "
            f"need at least {sequence_length + prediction_horizon + 1}."
        )

    splits = split_chronological(X, y, anchors, SplitConfig(train=train_split))
    train_X, train_y, train_anchors = splits["train"]
    test_X, test_y, test_anchors = splits["test"]
    logger.info(
        "Built sequence dataset",
        extra={"symbols": len(pivot.symbols), "dates": len(pivot.dates)},
    )
    return SequenceDataset(
        train_X=train_X,
        train_y=train_y,
        test_X=test_X,
        test_y=test_y,
        symbols=pivot.symbols,
        dates=pivot.dates,
        train_anchor_dates=train_anchors,
        test_anchor_dates=test_anchors,
        stats=stats,
        sequence_length=sequence_length,
        prediction_horizon=prediction_horizon,
    )
