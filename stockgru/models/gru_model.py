"""Stacked GRU classifier predicting per-stock up/down moves over the horizon."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np
import tensorflow as tf
from tensorflow.keras import Model, callbacks, layers, models, optimizers

from stockgru.config.settings import load_config_section
from stockgru.errors import TrainingError
from stockgru.utils.logger import setup_logger

logger = setup_logger("gru_model")

EpochCallback = Callable[[int, Dict[str, float]], None]


@dataclass
class GRUConfig:
    gru_units: Tuple[int, ...] = (32, 16)
    dropout: float = 0.2
    learning_rate: float = 1e-3

    @classmethod
    def from_yaml(cls, path: str | Path) -> "GRUConfig":
        model_cfg = load_config_section(path, "model")
        defaults = cls()
        return cls(
            gru_units=tuple(model_cfg.get("gru", {}).get("hidden_units", defaults.gru_units)),
            dropout=model_cfg.get("gru", {}).get("dropout", defaults.dropout),
            learning_rate=model_cfg.get("training", {}).get("learning_rate", defaults.learning_rate),
        )


class CancellationToken:
    """Cooperative stop flag checked between training epochs."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass
class TrainingLog:
    epochs: List[Dict[str, float]] = field(default_factory=list)
    cancelled: bool = False

    @property
    def final(self) -> Dict[str, float]:
        return self.epochs[-1] if self.epochs else {}

    def to_dict(self) -> dict:
        return {"epochs": self.epochs, "cancelled": self.cancelled, "final": self.final}


class _EpochReporter(callbacks.Callback):
    """Record per-epoch metrics, forward them, and honour cancellation."""

    def __init__(
        self,
        log: TrainingLog,
        on_epoch_end: Optional[EpochCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> None:
        super().__init__()
        self.log = log
        self.on_epoch_end_cb = on_epoch_end
        self.cancel_token = cancel_token

    def on_epoch_end(self, epoch: int, logs: Optional[dict] = None) -> None:
        metrics = {key: float(value) for key, value in (logs or {}).items()}
        self.log.epochs.append({"epoch": epoch + 1, **metrics})
        logger.info(
            "Epoch finished",
            extra={
                "epoch": epoch + 1,
                "loss": metrics.get("loss"),
                "binary_accuracy": metrics.get("binary_accuracy"),
            },
        )
        if self.on_epoch_end_cb is not None:
            self.on_epoch_end_cb(epoch + 1, metrics)
        if self.cancel_token is not None and self.cancel_token.cancelled:
            logger.info("Training cancelled", extra={"epoch": epoch + 1})
            self.log.cancelled = True
            self.model.stop_training = True


class GRUDirectionModel:
    """Encapsulates the GRU architecture, training loop and inference."""

    def __init__(
        self,
        input_shape: Tuple[int, int],
        output_units: int,
        config: GRUConfig | None = None,
    ) -> None:
        self.input_shape = tuple(input_shape)
        self.output_units = output_units
        self.config = config or GRUConfig()
        self.model: Model | None = None

    def build(self) -> Model:
        try:
            stack = [layers.Input(shape=self.input_shape)]
            last = len(self.config.gru_units) - 1
            for idx, units in enumerate(self.config.gru_units):
                stack.append(layers.GRU(units, return_sequences=idx < last))
            stack.append(layers.Dropout(self.config.dropout))
            stack.append(layers.Dense(self.output_units, activation="sigmoid"))
            model = models.Sequential(stack)
            model.compile(
                optimizer=optimizers.Adam(learning_rate=self.config.learning_rate),
                loss="binary_crossentropy",
                metrics=[tf.keras.metrics.BinaryAccuracy(name="binary_accuracy")],
            )
        except Exception as exc:
            raise TrainingError(f"Failed to build GRU model: {exc}") from exc
        self.model = model
        logger.info(
            "Built GRU model",
            extra={"input_shape": list(self.input_shape), "outputs": self.output_units},
        )
        return model

    def _require_model(self) -> Model:
        if self.model is None:
            raise TrainingError("Model has not been built.")
        return self.model

    def train(
        self,
        X_train: np.ndarray,
        y_train: np.ndarray,
        X_test: np.ndarray | None = None,
        y_test: np.ndarray | None = None,
        epochs: int = 30,
        batch_size: int = 16,
        on_epoch_end: Optional[EpochCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> TrainingLog:
        model = self._require_model()
        if len(X_train) == 0:
            raise TrainingError("Training split is empty; load more history before training.")

        validation_data = None
        if X_test is not None and y_test is not None and len(X_test) > 0:
            validation_data = (X_test, y_test)

        log = TrainingLog()
        reporter = _EpochReporter(log, on_epoch_end=on_epoch_end, cancel_token=cancel_token)
        try:
            model.fit(
                X_train,
                y_train,
                validation_data=validation_data,
                epochs=epochs,
                batch_size=batch_size,
                verbose=0,
                callbacks=[reporter],
            )
        except Exception as exc:
            raise TrainingError(f"Training failed: {exc}") from exc
        logger.info("Training completed", extra={"epochs": len(log.epochs), "cancelled": log.cancelled})
        return log

    def predict(self, X: np.ndarray) -> np.ndarray:
        model = self._require_model()
        if len(X) == 0:
            return np.zeros((0, self.output_units), dtype=np.float32)
        try:
            return np.asarray(model.predict(X, verbose=0), dtype=np.float32)
        except Exception as exc:
            raise TrainingError(f"Prediction failed: {exc}") from exc

    def evaluate(self, X: np.ndarray, y: np.ndarray) -> Dict[str, float]:
        model = self._require_model()
        try:
            results = model.evaluate(X, y, verbose=0, return_dict=True)
        except Exception as exc:
            raise TrainingError(f"Evaluation failed: {exc}") from exc
        return {key: float(value) for key, value in results.items()}

    def save(self, path: str | Path) -> Path:
        model = self._require_model()
        save_path = Path(path)
        save_path.parent.mkdir(parents=True, exist_ok=True)
        model.save(save_path)
        return save_path

    def dispose(self) -> None:
        """Release the Keras model and its weights."""
        if self.model is not None:
            self.model = None
            tf.keras.backend.clear_session()
