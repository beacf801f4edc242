"""Sequence construction modules."""

from .layout import TensorLayout
from .sequence_builder import (
    NormalizationStats,
    PivotTable,
    SequenceDataset,
    SplitConfig,
    build_dataset,
    compute_stats,
    generate_windows,
    normalize_panel,
    pivot_rows,
    split_chronological,
)

__all__ = [
    "TensorLayout",
    "NormalizationStats",
    "PivotTable",
    "SequenceDataset",
    "SplitConfig",
    "build_dataset",
    "compute_stats",
    "generate_windows",
    "normalize_panel",
    "pivot_rows",
    "split_chronological",
]
