"""Application settings loader with environment variable support."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

import yaml
from dotenv import load_dotenv

# Resolve project root (two levels up from this file)
PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _load_dotenv_files() -> None:
    """
    Load `.env` style files if they exist.

    We attempt multiple locations so developers can choose their preferred workflow
    (e.g., `.env`, `.env.local`, `config/.env`). Missing files are ignored.
    """
    candidate_files = [
        PROJECT_ROOT / ".env",
        PROJECT_ROOT / ".env.local",
        PROJECT_ROOT / "config" / ".env",
        PROJECT_ROOT / "config" / ".env.local",
    ]

    for env_file in candidate_files:
        if env_file.exists():
            load_dotenv(env_file, override=False)


_load_dotenv_files()


@dataclass(frozen=True)
class Settings:
    """Container for application-wide configuration values."""

    sequence_length: int = 12
    prediction_horizon: int = 3
    train_split: float = 0.8
    epochs: int = 30
    batch_size: int = 16
    threshold: float = 0.5
    config_path: Path = PROJECT_ROOT / "config" / "config.yaml"
    models_dir: Path = PROJECT_ROOT / "models"
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.sequence_length < 1 or self.prediction_horizon < 1:
            raise ValueError("sequence_length and prediction_horizon must be positive.")
        if not 0.0 < self.train_split <= 1.0:
            raise ValueError(f"train_split must be in (0, 1], got {self.train_split}.")

    @classmethod
    def load(cls) -> "Settings":
        """Instantiate settings from environment variables."""
        return cls(
            sequence_length=int(os.getenv("SEQUENCE_LENGTH", "12")),
            prediction_horizon=int(os.getenv("PREDICTION_HORIZON", "3")),
            train_split=float(os.getenv("TRAIN_SPLIT", "0.8")),
            epochs=int(os.getenv("TRAIN_EPOCHS", "30")),
            batch_size=int(os.getenv("TRAIN_BATCH_SIZE", "16")),
            threshold=float(os.getenv("PREDICTION_THRESHOLD", "0.5")),
            config_path=Path(os.getenv("MODEL_CONFIG_PATH", PROJECT_ROOT / "config" / "config.yaml")),
            models_dir=Path(os.getenv("MODELS_DIR", PROJECT_ROOT / "models")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings.load()


def load_config_section(path: str | Path, section: str) -> dict:
    """Return one top-level section of a YAML config file, or {} when absent."""
    config_path = Path(path)
    if not config_path.exists():
        return {}
    with config_path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    return data.get(section, {}) or {}
