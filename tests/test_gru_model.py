import numpy as np
import pytest

from stockgru.errors import TrainingError
from stockgru.models.gru_model import CancellationToken, GRUConfig, GRUDirectionModel


@pytest.fixture
def tiny_data():
    rng = np.random.default_rng(7)
    X = rng.random((10, 4, 4), dtype=np.float32)
    y = (rng.random((10, 6)) > 0.5).astype(np.float32)
    return X, y


@pytest.fixture
def model():
    gru = GRUDirectionModel(input_shape=(4, 4), output_units=6, config=GRUConfig(gru_units=(8, 4)))
    gru.build()
    yield gru
    gru.dispose()


def test_train_and_predict_shapes(model, tiny_data):
    X, y = tiny_data
    epochs_seen = []
    log = model.train(X[:8], y[:8], X[8:], y[8:], epochs=2, batch_size=4,
                      on_epoch_end=lambda epoch, logs: epochs_seen.append(epoch))
    assert epochs_seen == [1, 2]
    assert len(log.epochs) == 2
    assert "loss" in log.final and "binary_accuracy" in log.final
    assert "val_loss" in log.final

    preds = model.predict(X[8:])
    assert preds.shape == (2, 6)
    assert np.all((preds >= 0.0) & (preds <= 1.0))

    metrics = model.evaluate(X[8:], y[8:])
    assert "loss" in metrics


def test_cancelled_token_stops_after_first_epoch(model, tiny_data):
    X, y = tiny_data
    token = CancellationToken()
    token.cancel()
    log = model.train(X, y, epochs=5, batch_size=5, cancel_token=token)
    assert log.cancelled is True
    assert len(log.epochs) == 1


def test_train_without_test_split(model, tiny_data):
    X, y = tiny_data
    log = model.train(X, y, np.zeros((0, 4, 4), dtype=np.float32), np.zeros((0, 6), dtype=np.float32), epochs=1)
    assert "val_loss" not in log.final
    assert model.predict(np.zeros((0, 4, 4), dtype=np.float32)).shape == (0, 6)


def test_empty_training_split_is_training_error(model):
    with pytest.raises(TrainingError):
        model.train(np.zeros((0, 4, 4), dtype=np.float32), np.zeros((0, 6), dtype=np.float32), epochs=1)


def test_unbuilt_model_raises_training_error(tiny_data):
    X, _ = tiny_data
    gru = GRUDirectionModel(input_shape=(4, 4), output_units=6)
    with pytest.raises(TrainingError):
        gru.predict(X)


def test_mismatched_shapes_raise_training_error(model):
    with pytest.raises(TrainingError):
        model.train(np.zeros((4, 4, 3), dtype=np.float32), np.zeros((4, 6), dtype=np.float32), epochs=1)


def test_save_and_dispose(model, tmp_path):
    path = model.save(tmp_path / "gru.keras")
    assert path.exists()
    model.dispose()
    assert model.model is None


def test_config_from_yaml(tmp_path):
    cfg = tmp_path / "config.yaml"
    cfg.write_text(
        "model:\n  gru:\n    hidden_units: [64, 32]\n    dropout: 0.1\n  training:\n    learning_rate: 0.01\n",
        encoding="utf-8",
    )
    config = GRUConfig.from_yaml(cfg)
    assert config.gru_units == (64, 32)
    assert config.dropout == 0.1
    assert config.learning_rate == 0.01
    assert GRUConfig.from_yaml(tmp_path / "missing.yaml") == GRUConfig()


class _ExplodingKerasModel:
    def fit(self, *args, **kwargs):
        raise RuntimeError("graph execution failed")

    def predict(self, *args, **kwargs):
        raise RuntimeError("graph execution failed")

    def evaluate(self, *args, **kwargs):
        raise RuntimeError("graph execution failed")


def test_unexpected_keras_errors_become_training_errors(tiny_data):
    X, y = tiny_data
    gru = GRUDirectionModel(input_shape=(4, 4), output_units=6)
    gru.model = _ExplodingKerasModel()

    with pytest.raises(TrainingError) as excinfo:
        gru.train(X, y, epochs=1)
    assert isinstance(excinfo.value.__cause__, RuntimeError)

    with pytest.raises(TrainingError):
        gru.predict(X)
    with pytest.raises(TrainingError):
        gru.evaluate(X, y)
