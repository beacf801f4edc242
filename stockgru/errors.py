"""Exception hierarchy shared by the parsing, preprocessing and training stages."""

from __future__ import annotations


class StockGRUError(Exception):
    """Base class for pipeline errors surfaced to the caller."""


class FormatError(StockGRUError):
    """The CSV payload is structurally unusable (too few lines, missing columns)."""


class DataError(StockGRUError):
    """A structurally valid CSV produced no usable rows, symbols or sequences."""


class TrainingError(StockGRUError):
    """Raised when the model backend fails while building, training or predicting."""


class SessionBusyError(StockGRUError):
    """Another upload or training run is still in progress."""
