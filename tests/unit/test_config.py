"""
Unit tests -- settings, logger factory and timer.
"""
import logging
import time

from src.core.config import Settings, get_settings
from src.core.logging import get_logger
from src.core.utils import timer


def test_settings_defaults():
    s = Settings()
    assert s.semantic_model_path.name == "financial_model.yml"
    assert s.semantic_model_path.exists()
    assert s.min_ratio_denominator == 1.0
    assert s.default_top_n == 10


def test_settings_env_override(monkeypatch):
    monkeypatch.setenv("MIN_RATIO_DENOMINATOR", "5")
    monkeypatch.setenv("DEFAULT_TOP_N", "3")
    s = Settings()
    assert s.min_ratio_denominator == 5.0
    assert s.default_top_n == 3


def test_get_settings_cached():
    assert get_settings() is get_settings()


def test_logger_level_override():
    logger = get_logger("tests.config", level="debug")
    assert logger.level == logging.DEBUG


def test_logger_single_handler():
    a = get_logger("tests.handlers")
    b = get_logger("tests.handlers")
    assert a is b
    assert len(b.handlers) == 1


def test_timer_records_elapsed():
    with timer() as t:
        time.sleep(0.01)
    assert t["elapsed_ms"] >= 9
