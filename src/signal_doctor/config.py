"""Analyzer configuration: YAML file, env-var overrides and the configured analyzer bundle."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import yaml

from signal_doctor.analysis.anomaly import AnomalyDetector
from signal_doctor.analysis.prediction import PerformancePredictor
from signal_doctor.analysis.roaming import RoamingScorer
from signal_doctor.analysis.sticky import StickyClientDetector
from signal_doctor.analysis.trend import TrendAnalyzer
from signal_doctor.models.types import (
    AnomalySettings,
    Config,
    StickySettings,
    TrendSettings,
    merge_settings,
)

CONFIG_DIR = Path.home() / ".signal-doctor"
CONFIG_FILE = CONFIG_DIR / "config.yaml"


def load_config() -> Config:
    """Load config from file, with env-var overrides."""
    cfg = Config()
    if CONFIG_FILE.exists():
        raw = yaml.safe_load(CONFIG_FILE.read_text()) or {}
        cfg = Config.model_validate(raw)

    # Env-var overrides
    if rssi := os.environ.get("SIGNAL_DOCTOR_STICKY_RSSI"):
        cfg.sticky = merge_settings(StickySettings, cfg.sticky, {"sticky_rssi_threshold": rssi})
    if differential := os.environ.get("SIGNAL_DOCTOR_BETTER_AP_DB"):
        cfg.sticky = merge_settings(StickySettings, cfg.sticky, {"better_ap_differential": differential})
    if window := os.environ.get("SIGNAL_DOCTOR_TREND_WINDOW_MS"):
        cfg.trend = merge_settings(TrendSettings, cfg.trend, {"trend_window_millis": window})
    if drop := os.environ.get("SIGNAL_DOCTOR_DROP_THRESHOLD_DB"):
        cfg.anomaly = merge_settings(AnomalySettings, cfg.anomaly, {"sudden_drop_threshold_db": drop})
    return cfg


def save_config(cfg: Config) -> None:
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    CONFIG_DIR.chmod(0o700)
    CONFIG_FILE.write_text(yaml.safe_dump(cfg.model_dump(mode="json"), default_flow_style=False))
    CONFIG_FILE.chmod(0o600)


@dataclass(frozen=True)
class Analyzers:
    trend: TrendAnalyzer
    anomaly: AnomalyDetector
    sticky: StickyClientDetector
    roaming: RoamingScorer
    prediction: PerformancePredictor


def build_analyzers(cfg: Config | None = None) -> Analyzers:
    cfg = cfg or load_config()
    trend = TrendAnalyzer(cfg.trend)
    return Analyzers(
        trend=trend,
        anomaly=AnomalyDetector(cfg.anomaly, trend_analyzer=trend),
        sticky=StickyClientDetector(cfg.sticky),
        roaming=RoamingScorer(),
        prediction=PerformancePredictor(cfg.prediction),
    )
