from __future__ import annotations

import math
from datetime import date, timedelta
from typing import List, Sequence

import numpy as np
import pytest

from stockgru.config.settings import Settings
from stockgru.models.gru_model import GRUConfig, TrainingLog
from stockgru.session import SessionController


def make_dates(count: int, start: date = date(2024, 1, 1)) -> List[str]:
    return [(start + timedelta(days=offset)).isoformat() for offset in range(count)]


def make_csv(dates: Sequence[str], symbols: Sequence[str], extra_lines: Sequence[str] = ()) -> str:
    lines = ["Date,Symbol,Open,Close,Volume"]
    for day, current in enumerate(dates):
        for k, symbol in enumerate(symbols):
            close = 100 + 10 * k + 5 * math.sin(0.7 * day + k) + 0.1 * day
            open_ = close - math.cos(0.3 * day + k)
            lines.append(f"{current},{symbol},{open_:.4f},{close:.4f},{1000 + day}")
    lines.extend(extra_lines)
    return "\n".join(lines) + "\n"


class FakeDirectionModel:
    """Deterministic stand-in for the Keras model with the same interface."""

    instances: list = []

    def __init__(self, input_shape, output_units, config=None) -> None:
        self.input_shape = tuple(input_shape)
        self.output_units = output_units
        self.config = config
        self.built = False
        self.disposed = False
        self.fit_shapes = None
        FakeDirectionModel.instances.append(self)

    def build(self):
        self.built = True
        return self

    def train(
        self,
        X_train,
        y_train,
        X_test=None,
        y_test=None,
        epochs=30,
        batch_size=16,
        on_epoch_end=None,
        cancel_token=None,
    ) -> TrainingLog:
        self.fit_shapes = (X_train.shape, y_train.shape)
        log = TrainingLog()
        for epoch in range(1, epochs + 1):
            metrics = {"loss": 1.0 / epoch, "binary_accuracy": 0.5}
            log.epochs.append({"epoch": epoch, **metrics})
            if on_epoch_end is not None:
                on_epoch_end(epoch, metrics)
            if cancel_token is not None and cancel_token.cancelled:
                log.cancelled = True
                break
        return log

    def predict(self, X) -> np.ndarray:
        return np.full((len(X), self.output_units), 0.9, dtype=np.float32)

    def dispose(self) -> None:
        self.disposed = True


@pytest.fixture
def price_csv() -> str:
    return make_csv(make_dates(30), ["MSFT", "AAPL", "GOOG"])


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(epochs=3, batch_size=4, config_path=tmp_path / "missing.yaml")


@pytest.fixture
def controller(test_settings) -> SessionController:
    FakeDirectionModel.instances = []
    return SessionController(
        settings=test_settings,
        model_factory=FakeDirectionModel,
        model_config=GRUConfig(),
    )
