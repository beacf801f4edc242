import pytest

from conftest import FakeDirectionModel, make_csv, make_dates
from stockgru.errors import DataError, FormatError, SessionBusyError
from stockgru.config.settings import Settings
from stockgru.session import SessionController


def test_load_builds_dataset(controller, price_csv):
    session = controller.load_csv_text(price_csv)
    assert session.dataset.symbols == ("AAPL", "GOOG", "MSFT")
    assert controller.summary()["dataset_loaded"] is True
    assert controller.summary()["model_trained"] is False


def test_train_requires_dataset(controller):
    with pytest.raises(DataError):
        controller.train()


def test_train_predicts_and_scores(controller, price_csv):
    session = controller.load_csv_text(price_csv)
    result = controller.train(epochs=2)
    assert len(result.log.epochs) == 2
    model = FakeDirectionModel.instances[-1]
    assert model.built
    assert model.input_shape == (12, 6)
    assert model.output_units == 9
    assert session.predictions.shape == session.dataset.test_y.shape

    # the fake predicts "up" everywhere, so accuracy is the share of up targets
    layout = session.dataset.layout
    for idx, symbol in enumerate(session.dataset.symbols):
        expected = session.dataset.test_y[:, layout.target_columns(idx)].mean()
        assert controller.accuracies()[symbol] == pytest.approx(expected)

    ranked = controller.ranked_accuracies()
    assert [acc for _, acc in ranked] == sorted((acc for _, acc in ranked), reverse=True)
    timeline = controller.timeline()
    assert len(timeline["AAPL"]) == session.dataset.test_y.shape[0] * 3
    assert set(session.metrics) == {"accuracy", "precision", "recall", "f1"}
    assert result.ranked == ranked
    assert result.accuracies == controller.accuracies()
    assert result.metrics == session.metrics


def test_default_epochs_come_from_settings(controller, price_csv):
    controller.load_csv_text(price_csv)
    result = controller.train()
    assert len(result.log.epochs) == controller.settings.epochs


def test_cancel_between_epochs(controller, price_csv):
    controller.load_csv_text(price_csv)
    seen = []

    def on_epoch_end(epoch, logs):
        seen.append(epoch)
        if epoch == 1:
            assert controller.cancel_training() is True

    result = controller.train(epochs=10, on_epoch_end=on_epoch_end)
    assert result.log.cancelled is True
    assert seen == [1]
    assert controller.cancel_training() is False


def test_overlapping_operations_are_rejected(controller, price_csv):
    controller.load_csv_text(price_csv)

    def on_epoch_end(epoch, logs):
        with pytest.raises(SessionBusyError):
            controller.load_csv_text(price_csv)
        with pytest.raises(SessionBusyError):
            controller.train()

    controller.train(epochs=1, on_epoch_end=on_epoch_end)
    assert not controller.busy


def test_new_upload_disposes_previous_session(controller, price_csv):
    first = controller.load_csv_text(price_csv)
    controller.train(epochs=1)
    first_model = first.model

    second = controller.load_csv_text(make_csv(make_dates(20), ["X"]))
    assert first_model.disposed
    assert first.dataset.disposed
    assert second is controller.session
    assert second.dataset.symbols == ("X",)


def test_retraining_disposes_previous_model(controller, price_csv):
    session = controller.load_csv_text(price_csv)
    controller.train(epochs=1)
    old_model = session.model
    controller.train(epochs=1)
    assert old_model.disposed
    assert session.model is not old_model


def test_failed_upload_leaves_no_session(controller, price_csv):
    controller.load_csv_text(price_csv)
    with pytest.raises(FormatError):
        controller.load_csv_text("Date,Symbol\n2024-01-01,A\n")
    assert controller.session is None
    assert not controller.busy


def test_all_invalid_rows_raise_data_error(controller):
    with pytest.raises(DataError):
        controller.load_csv_text("Date,Symbol,Open,Close\n2024-01-01,A,x,y\n")


def test_load_csv_file(controller, tmp_path, price_csv):
    path = tmp_path / "prices.csv"
    path.write_text(price_csv, encoding="utf-8")
    session = controller.load_csv_file(path)
    assert session.dataset.summary()["test_samples"] == 3


def test_reset_disposes(controller, price_csv):
    session = controller.load_csv_text(price_csv)
    controller.reset()
    assert controller.session is None
    assert session.dataset.disposed
    with pytest.raises(DataError):
        controller.accuracies()


def test_default_model_factory(test_settings):
    controller = SessionController(settings=test_settings)
    assert controller.model_factory.__name__ == "GRUDirectionModel"
    assert controller.model_config.gru_units == (32, 16)


def test_explicit_zero_epochs_is_not_replaced_by_default(controller, price_csv):
    controller.load_csv_text(price_csv)
    result = controller.train(epochs=0)
    assert result.log.epochs == []
    assert len(controller.train(epochs=None).log.epochs) == controller.settings.epochs


def test_training_result_survives_reset(controller, price_csv):
    controller.load_csv_text(price_csv)
    result = controller.train(epochs=1)
    controller.reset()

    assert controller.session is None
    scores = [acc for _, acc in result.ranked]
    assert scores == sorted(scores, reverse=True)
    assert set(result.accuracies) == {"AAPL", "GOOG", "MSFT"}
    assert result.dataset_summary["symbols"] == ["AAPL", "GOOG", "MSFT"]
    assert len(result.log.epochs) == 1


def test_column_names_come_from_config(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("data:\n  columns:\n    date: Day\n    symbol: Ticker\n", encoding="utf-8")
    controller = SessionController(
        settings=Settings(epochs=1, batch_size=4, config_path=config_path),
        model_factory=FakeDirectionModel,
    )
    assert controller.columns.date == "Day"
    assert controller.columns.symbol == "Ticker"
    assert controller.columns.open == "Open"

    text = make_csv(make_dates(20), ["A", "B"]).replace("Date,Symbol,", "Day,Ticker,", 1)
    session = controller.load_csv_text(text)
    assert session.dataset.symbols == ("A", "B")
    assert session.dataset.summary()["num_dates"] == 20

    with pytest.raises(FormatError):
        controller.load_csv_text(make_csv(make_dates(20), ["A"]))
