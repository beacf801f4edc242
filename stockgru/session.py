"""Session ownership for the upload -> train -> evaluate workflow."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Tuple

import numpy as np

from stockgru.config.settings import Settings, get_settings, load_config_section
from stockgru.data.csv_parser import ColumnNames, decode_csv_bytes, parse_csv
from stockgru.errors import DataError, SessionBusyError
from stockgru.features.sequence_builder import SequenceDataset, build_dataset
from stockgru.models.evaluation import (
    compute_stock_accuracy,
    direction_metrics,
    prediction_timeline,
    rank_accuracies,
)
from stockgru.models.gru_model import (
    CancellationToken,
    EpochCallback,
    GRUConfig,
    GRUDirectionModel,
    TrainingLog,
)
from stockgru.utils.logger import setup_logger

logger = setup_logger("session")

ModelFactory = Callable[[Tuple[int, int], int, GRUConfig], GRUDirectionModel]


@dataclass(frozen=True)
class TrainingResult:
    """Everything a caller needs from one training run, captured before the lock is released."""

    log: TrainingLog
    accuracies: Dict[str, float]
    ranked: List[Tuple[str, float]]
    metrics: Dict[str, float]
    dataset_summary: dict


@dataclass
class PredictionSession:
    """One uploaded dataset plus whatever has been trained and predicted on it."""

    dataset: SequenceDataset
    model: Optional[GRUDirectionModel] = None
    training_log: Optional[TrainingLog] = None
    predictions: Optional[np.ndarray] = None
    accuracies: Dict[str, float] = field(default_factory=dict)
    metrics: Dict[str, float] = field(default_factory=dict)

    @property
    def trained(self) -> bool:
        return self.predictions is not None

    def release_model(self) -> None:
        if self.model is not None:
            self.model.dispose()
        self.model = None
        self.training_log = None
        self.predictions = None
        self.accuracies = {}
        self.metrics = {}

    def dispose(self) -> None:
        self.release_model()
        self.dataset.dispose()


class SessionController:
    """Owns at most one active session and serialises operations on it."""

    def __init__(
        self,
        settings: Settings | None = None,
        model_factory: ModelFactory | None = None,
        model_config: GRUConfig | None = None,
        columns: ColumnNames | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.model_factory: ModelFactory = model_factory or GRUDirectionModel
        self.model_config = model_config or GRUConfig.from_yaml(self.settings.config_path)
        if columns is None:
            data_cfg = load_config_section(self.settings.config_path, "data")
            columns = ColumnNames.from_mapping(data_cfg.get("columns"))
        self.columns = columns
        self.session: Optional[PredictionSession] = None
        self._operation_lock = threading.Lock()
        self._cancel_token: Optional[CancellationToken] = None

    @contextmanager
    def _exclusive(self, operation: str) -> Iterator[None]:
        if not self._operation_lock.acquire(blocking=False):
            raise SessionBusyError(f"Cannot start {operation}: another operation is still running.")
        try:
            yield
        finally:
            self._operation_lock.release()

    @property
    def busy(self) -> bool:
        return self._operation_lock.locked()

    def _require_session(self) -> PredictionSession:
        if self.session is None:
            raise DataError("No dataset loaded; upload a CSV first.")
        return self.session

    def _replace_session(self, session: Optional[PredictionSession]) -> None:
        if self.session is not None:
            self.session.dispose()
        self.session = session

    def load_csv_text(self, text: str) -> PredictionSession:
        with self._exclusive("upload"):
            self._replace_session(None)
            rows = parse_csv(text, columns=self.columns)
            dataset = build_dataset(
                rows,
                sequence_length=self.settings.sequence_length,
                prediction_horizon=self.settings.prediction_horizon,
                train_split=self.settings.train_split,
            )
            self.session = PredictionSession(dataset=dataset)
            logger.info("Dataset loaded", extra=dataset.summary())
            return self.session

    def load_csv_bytes(self, data: bytes) -> PredictionSession:
        return self.load_csv_text(decode_csv_bytes(data))

    def load_csv_file(self, path: str | Path) -> PredictionSession:
        return self.load_csv_bytes(Path(path).read_bytes())

    def train(
        self,
        epochs: int | None = None,
        batch_size: int | None = None,
        on_epoch_end: Optional[EpochCallback] = None,
    ) -> TrainingResult:
        with self._exclusive("training"):
            session = self._require_session()
            dataset = session.dataset
            session.release_model()

            model = self.model_factory(dataset.input_shape, dataset.layout.target_width, self.model_config)
            session.model = model
            model.build()

            self._cancel_token = CancellationToken()
            try:
                log = model.train(
                    dataset.train_X,
                    dataset.train_y,
                    dataset.test_X,
                    dataset.test_y,
                    epochs=self.settings.epochs if epochs is None else epochs,
                    batch_size=self.settings.batch_size if batch_size is None else batch_size,
                    on_epoch_end=on_epoch_end,
                    cancel_token=self._cancel_token,
                )
            finally:
                self._cancel_token = None
            session.training_log = log

            session.predictions = model.predict(dataset.test_X)
            session.accuracies = compute_stock_accuracy(
                session.predictions,
                dataset.test_y,
                dataset.symbols,
                prediction_horizon=dataset.prediction_horizon,
                threshold=self.settings.threshold,
            )
            session.metrics = direction_metrics(dataset.test_y, session.predictions, self.settings.threshold)
            logger.info("Evaluation completed", extra={"accuracies": session.accuracies})
            return TrainingResult(
                log=log,
                accuracies=dict(session.accuracies),
                ranked=rank_accuracies(session.accuracies),
                metrics=dict(session.metrics),
                dataset_summary=dataset.summary(),
            )

    def cancel_training(self) -> bool:
        """Ask the running training loop to stop after its current epoch."""
        token = self._cancel_token
        if token is None:
            return False
        token.cancel()
        return True

    def accuracies(self) -> Dict[str, float]:
        return dict(self._require_session().accuracies)

    def ranked_accuracies(self) -> List[Tuple[str, float]]:
        return rank_accuracies(self._require_session().accuracies)

    def timeline(self) -> Dict[str, List[bool]]:
        session = self._require_session()
        return prediction_timeline(
            session.predictions,
            session.dataset.test_y,
            session.dataset.symbols,
            prediction_horizon=session.dataset.prediction_horizon,
            threshold=self.settings.threshold,
        )

    def summary(self) -> dict:
        if self.session is None:
            return {"dataset_loaded": False, "model_trained": False}
        session = self.session
        return {
            "dataset_loaded": True,
            "model_trained": session.trained,
            "dataset": session.dataset.summary(),
            "training": session.training_log.to_dict() if session.training_log else None,
            "metrics": session.metrics,
        }

    def reset(self) -> None:
        with self._exclusive("reset"):
            self._replace_session(None)
