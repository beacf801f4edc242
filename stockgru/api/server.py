"""FastAPI server wrapping the upload -> train -> accuracy workflow."""

from __future__ import annotations

import time
from typing import Dict, List, Optional

from fastapi import FastAPI, File, HTTPException, UploadFile
from pydantic import BaseModel, Field

from stockgru.errors import DataError, FormatError, SessionBusyError, StockGRUError, TrainingError
from stockgru.session import SessionController
from stockgru.utils.logger import setup_logger

app = FastAPI(title="Multi-Stock GRU Direction API")
logger = setup_logger("api")

controller = SessionController()
metrics_state = {
    "upload_requests": 0,
    "train_requests": 0,
    "errors": 0,
    "last_training_seconds": 0.0,
}


class DatasetResponse(BaseModel):
    symbols: List[str]
    num_dates: int
    train_samples: int
    test_samples: int
    input_shape: List[int]
    target_width: int


class TrainRequest(BaseModel):
    epochs: Optional[int] = Field(default=None, gt=0)
    batch_size: Optional[int] = Field(default=None, gt=0)


class SymbolAccuracy(BaseModel):
    symbol: str
    accuracy: float


class TrainResponse(BaseModel):
    epochs_completed: int
    cancelled: bool
    final_metrics: Dict[str, float]
    accuracies: List[SymbolAccuracy]
    direction_metrics: Dict[str, float]


def _http_error(exc: StockGRUError) -> HTTPException:
    metrics_state["errors"] += 1
    if isinstance(exc, SessionBusyError):
        status = 409
    elif isinstance(exc, (FormatError, DataError)):
        status = 400
    else:
        status = 500
    logger.warning("Request failed", extra={"status": status, "error": str(exc)})
    return HTTPException(status_code=status, detail=str(exc))


def _ranked() -> List[SymbolAccuracy]:
    return [SymbolAccuracy(symbol=s, accuracy=a) for s, a in controller.ranked_accuracies()]


@app.get("/health")
def health() -> dict:
    summary = controller.summary()
    return {
        "ok": True,
        "dataset_loaded": summary["dataset_loaded"],
        "model_trained": summary["model_trained"],
        "busy": controller.busy,
    }


@app.post("/dataset", response_model=DatasetResponse)
def upload_dataset(file: UploadFile = File(...)) -> DatasetResponse:
    metrics_state["upload_requests"] += 1
    payload = file.file.read()
    try:
        session = controller.load_csv_bytes(payload)
    except StockGRUError as exc:
        raise _http_error(exc) from exc
    logger.info("Dataset uploaded", extra={"upload_name": file.filename})
    return DatasetResponse(**session.dataset.summary())


@app.post("/train", response_model=TrainResponse)
def train(request: TrainRequest) -> TrainResponse:
    metrics_state["train_requests"] += 1
    start_time = time.perf_counter()
    try:
        result = controller.train(epochs=request.epochs, batch_size=request.batch_size)
    except (DataError, SessionBusyError, TrainingError) as exc:
        raise _http_error(exc) from exc
    metrics_state["last_training_seconds"] = time.perf_counter() - start_time
    return TrainResponse(
        epochs_completed=len(result.log.epochs),
        cancelled=result.log.cancelled,
        final_metrics=result.log.final,
        accuracies=[SymbolAccuracy(symbol=s, accuracy=a) for s, a in result.ranked],
        direction_metrics=result.metrics,
    )


@app.post("/train/cancel")
def cancel_training() -> dict:
    return {"cancelled": controller.cancel_training()}


@app.get("/accuracy", response_model=List[SymbolAccuracy])
def accuracy() -> List[SymbolAccuracy]:
    try:
        return _ranked()
    except DataError as exc:
        raise _http_error(exc) from exc


@app.get("/timeline")
def timeline() -> Dict[str, List[bool]]:
    try:
        return controller.timeline()
    except DataError as exc:
        raise _http_error(exc) from exc


@app.get("/metrics")
def metrics() -> dict:
    return {"metrics_state": metrics_state, "session": controller.summary()}


def main() -> None:
    import uvicorn

    from stockgru.config.settings import get_settings

    uvicorn.run("stockgru.api.server:app", host="0.0.0.0", port=8000, log_level=get_settings().log_level.lower())
