"""Tests for config persistence, env overrides, the analyzer bundle and logging setup."""

from __future__ import annotations

import logging

import pytest
from pydantic import ValidationError

from signal_doctor.config import build_analyzers, load_config, save_config
from signal_doctor.log import LOGGER_NAME, setup_logging
from signal_doctor.models.types import Config, PredictionSettings, StickySettings, TrendSettings

ENV_VARS = (
    "SIGNAL_DOCTOR_STICKY_RSSI",
    "SIGNAL_DOCTOR_BETTER_AP_DB",
    "SIGNAL_DOCTOR_TREND_WINDOW_MS",
    "SIGNAL_DOCTOR_DROP_THRESHOLD_DB",
)


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    path = tmp_path / "config.yaml"
    monkeypatch.setattr("signal_doctor.config.CONFIG_FILE", path)
    monkeypatch.setattr("signal_doctor.config.CONFIG_DIR", tmp_path)
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return path


# ---------------------------------------------------------------------------
# Load / save
# ---------------------------------------------------------------------------


def test_defaults_without_file(config_file):
    cfg = load_config()
    assert cfg.trend.min_observations_for_trend == 10
    assert cfg.trend.trend_window_millis == 3_600_000
    assert cfg.anomaly.churn_threshold_percentage == 50.0
    assert cfg.sticky.sticky_rssi_threshold == -75
    assert cfg.prediction.confidence_interval == 0.95


def test_save_produces_safe_yaml(config_file):
    save_config(Config())
    raw_text = config_file.read_text()
    assert "!!python" not in raw_text, f"YAML contains Python-specific tags:\n{raw_text}"
    assert config_file.stat().st_mode & 0o777 == 0o600


def test_config_save_load_round_trip(config_file):
    original = Config(
        trend=TrendSettings(min_observations_for_trend=5, trend_window_millis=600_000),
        sticky=StickySettings(sticky_rssi_threshold=-70, better_ap_differential=8),
        prediction=PredictionSettings(confidence_interval=0.9),
    )
    save_config(original)
    loaded = load_config()
    assert loaded == original


def test_partial_file_keeps_defaults(config_file):
    config_file.write_text("sticky:\n  better_ap_differential: 12\n")
    cfg = load_config()
    assert cfg.sticky.better_ap_differential == 12
    assert cfg.sticky.sticky_rssi_threshold == -75
    assert cfg.anomaly.sudden_drop_threshold_db == 15


def test_empty_file_is_default(config_file):
    config_file.write_text("")
    assert load_config() == Config()


def test_unknown_key_is_rejected(config_file):
    config_file.write_text("trend:\n  window: 5\n")
    with pytest.raises(ValidationError):
        load_config()


def test_unknown_section_is_rejected(config_file):
    config_file.write_text("trends:\n  min_observations_for_trend: 5\n")
    with pytest.raises(ValidationError):
        load_config()


def test_invalid_value_is_rejected(config_file):
    config_file.write_text("anomaly:\n  churn_threshold_percentage: 150\n")
    with pytest.raises(ValidationError):
        load_config()


# ---------------------------------------------------------------------------
# Env overrides
# ---------------------------------------------------------------------------


def test_env_overrides(config_file, monkeypatch):
    config_file.write_text("sticky:\n  sticky_rssi_threshold: -80\n")
    monkeypatch.setenv("SIGNAL_DOCTOR_STICKY_RSSI", "-70")
    monkeypatch.setenv("SIGNAL_DOCTOR_BETTER_AP_DB", "6")
    monkeypatch.setenv("SIGNAL_DOCTOR_TREND_WINDOW_MS", "900000")
    monkeypatch.setenv("SIGNAL_DOCTOR_DROP_THRESHOLD_DB", "12.5")

    cfg = load_config()
    assert cfg.sticky.sticky_rssi_threshold == -70
    assert cfg.sticky.better_ap_differential == 6
    assert cfg.trend.trend_window_millis == 900_000
    assert cfg.anomaly.sudden_drop_threshold_db == 12.5


def test_invalid_env_override(config_file, monkeypatch):
    monkeypatch.setenv("SIGNAL_DOCTOR_BETTER_AP_DB", "0")
    with pytest.raises(ValidationError):
        load_config()

    monkeypatch.setenv("SIGNAL_DOCTOR_BETTER_AP_DB", "lots")
    with pytest.raises(ValidationError):
        load_config()


# ---------------------------------------------------------------------------
# Analyzer bundle
# ---------------------------------------------------------------------------


def test_build_analyzers_from_config():
    cfg = Config(
        trend=TrendSettings(min_observations_for_trend=4),
        sticky=StickySettings(better_ap_differential=7),
    )
    analyzers = build_analyzers(cfg)

    assert analyzers.trend.settings.min_observations_for_trend == 4
    assert analyzers.anomaly.trend_analyzer is analyzers.trend
    assert analyzers.sticky.settings.better_ap_differential == 7
    assert analyzers.prediction.settings == cfg.prediction


def test_build_analyzers_loads_config(config_file):
    config_file.write_text("prediction:\n  min_historical_data_points: 40\n")
    analyzers = build_analyzers()
    assert analyzers.prediction.settings.min_historical_data_points == 40


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@pytest.fixture
def package_logger():
    logger = logging.getLogger(LOGGER_NAME)
    saved_handlers, saved_level = list(logger.handlers), logger.level
    yield logger
    logger.handlers[:] = saved_handlers
    logger.setLevel(saved_level)


def test_setup_logging_is_idempotent(package_logger):
    setup_logging()
    setup_logging()
    assert len(package_logger.handlers) == 1
    assert package_logger.level == logging.INFO


def test_setup_logging_verbose(package_logger):
    logger = setup_logging(verbose=True)
    assert logger is package_logger
    assert logger.level == logging.DEBUG
