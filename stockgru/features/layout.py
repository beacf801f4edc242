"""Index arithmetic for the feature and target tensors.

Features interleave (open, close) per symbol in sorted-symbol order. Targets are
laid out day-major: all symbols for day offset 0, then all symbols for offset 1,
and so on. The sequence builder and the accuracy evaluator both go through
``TensorLayout`` so the encoding has a single definition.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

import numpy as np

OPEN = 0
CLOSE = 1
FIELDS_PER_SYMBOL = 2


@dataclass(frozen=True)
class TensorLayout:
    num_symbols: int
    prediction_horizon: int = 3

    @property
    def feature_width(self) -> int:
        return FIELDS_PER_SYMBOL * self.num_symbols

    @property
    def target_width(self) -> int:
        return self.prediction_horizon * self.num_symbols

    def feature_index(self, symbol_index: int, field: int) -> int:
        self._check_symbol(symbol_index)
        if field not in (OPEN, CLOSE):
            raise IndexError(f"Unknown feature field {field}")
        return FIELDS_PER_SYMBOL * symbol_index + field

    def target_index(self, symbol_index: int, day: int) -> int:
        """Flat target position for ``symbol_index`` at 0-based day offset ``day``."""
        self._check_symbol(symbol_index)
        if not 0 <= day < self.prediction_horizon:
            raise IndexError(f"Day offset {day} outside horizon {self.prediction_horizon}")
        return symbol_index + day * self.num_symbols

    def target_columns(self, symbol_index: int) -> List[int]:
        return [self.target_index(symbol_index, day) for day in range(self.prediction_horizon)]

    def interleave_features(self, open_values: np.ndarray, close_values: np.ndarray) -> np.ndarray:
        """Combine ``[..., S]`` open and close arrays into ``[..., 2S]`` feature vectors."""
        if open_values.shape != close_values.shape or open_values.shape[-1] != self.num_symbols:
            raise ValueError("open/close arrays must share a trailing dimension of num_symbols")
        features = np.empty(open_values.shape[:-1] + (self.feature_width,), dtype=np.float32)
        features[..., OPEN::FIELDS_PER_SYMBOL] = open_values
        features[..., CLOSE::FIELDS_PER_SYMBOL] = close_values
        return features

    def flatten_targets(self, bits: np.ndarray) -> np.ndarray:
        """Flatten ``[n, horizon, S]`` target bits into ``[n, horizon * S]``."""
        if bits.shape[1:] != (self.prediction_horizon, self.num_symbols):
            raise ValueError(
                f"Expected target bits of shape [n, {self.prediction_horizon}, {self.num_symbols}], "
                f"got {list(bits.shape)}"
            )
        flat = np.zeros((bits.shape[0], self.target_width), dtype=np.float32)
        for symbol_index in range(self.num_symbols):
            for day in range(self.prediction_horizon):
                flat[:, self.target_index(symbol_index, day)] = bits[:, day, symbol_index]
        return flat

    def _check_symbol(self, symbol_index: int) -> None:
        if not 0 <= symbol_index < self.num_symbols:
            raise IndexError(f"Symbol index {symbol_index} outside 0..{self.num_symbols - 1}")
