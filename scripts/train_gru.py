"""CLI for training the multi-stock GRU direction model on a price CSV."""

from __future__ import annotations

import argparse
import json
import random
import sys
from pathlib import Path

import numpy as np
import tensorflow as tf

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from stockgru.config.settings import get_settings, load_config_section  # noqa: E402
from stockgru.data.csv_parser import ColumnNames  # noqa: E402
from stockgru.errors import StockGRUError  # noqa: E402
from stockgru.models.gru_model import GRUConfig  # noqa: E402
from stockgru.session import SessionController  # noqa: E402


def parse_args() -> argparse.Namespace:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Train the multi-stock GRU direction model.")
    parser.add_argument("csv", help="Path to a CSV with Date, Symbol, Open and Close columns.")
    parser.add_argument("--config", default=str(settings.config_path), help="YAML config for model params.")
    parser.add_argument("--epochs", type=int, default=settings.epochs, help="Training epochs.")
    parser.add_argument("--batch-size", type=int, default=settings.batch_size, help="Batch size.")
    parser.add_argument("--output", help="Optional path to save evaluation metrics JSON.")
    parser.add_argument("--history-output", help="Optional path to save the per-epoch training log JSON.")
    parser.add_argument("--sequence-output", help="Optional path to save the built dataset as .npz.")
    parser.add_argument(
        "--save-model",
        default=str(settings.models_dir / "gru_direction.keras"),
        help="Where to save the trained model.",
    )
    parser.add_argument("--no-save-model", action="store_true", help="Skip saving the final model.")
    parser.add_argument("--seed", type=int, help="Random seed for reproducibility.")
    return parser.parse_args()


def set_random_seeds(seed: int | None) -> None:
    if seed is None:
        return
    random.seed(seed)
    np.random.seed(seed)
    tf.random.set_seed(seed)


def ensure_path_exists(path: Path, description: str) -> Path:
    if not path.exists():
        raise SystemExit(f"{description} not found: {path}")
    return path


def dump_json(path: Path, payload: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")


def main() -> None:
    args = parse_args()
    csv_path = ensure_path_exists(Path(args.csv), "CSV file")
    set_random_seeds(args.seed)

    columns = ColumnNames.from_mapping(load_config_section(args.config, "data").get("columns"))
    controller = SessionController(model_config=GRUConfig.from_yaml(args.config), columns=columns)
    try:
        session = controller.load_csv_file(csv_path)
        if args.sequence_output:
            session.dataset.save_npz(args.sequence_output)
        result = controller.train(epochs=args.epochs, batch_size=args.batch_size)
    except StockGRUError as exc:
        raise SystemExit(f"Error: {exc}") from exc

    metrics = {
        "dataset": result.dataset_summary,
        "accuracies": dict(result.ranked),
        "direction": result.metrics,
        "cancelled": result.log.cancelled,
    }
    print(json.dumps(metrics, indent=2))

    if args.output:
        dump_json(Path(args.output), metrics)
    if args.history_output:
        dump_json(Path(args.history_output), result.log.to_dict())
    if not args.no_save_model and session.model is not None:
        save_path = session.model.save(args.save_model)
        print(f"Saved trained model to {save_path}")
    controller.reset()


if __name__ == "__main__":
    main()
