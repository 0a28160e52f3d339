"""
Engine settings loaded from environment / .env file.
"""
from __future__ import annotations

from pathlib import Path
from functools import lru_cache

from pydantic_settings import BaseSettings
from dotenv import load_dotenv

_PROJECT_ROOT = Path(__file__).resolve().parents[2]
load_dotenv(_PROJECT_ROOT / ".env")


class Settings(BaseSettings):
    # ── Catalog ──────────────────────────────────────────
    semantic_model_path: Path = _PROJECT_ROOT / "semantic_layer" / "financial_model.yml"

    # ── Ranking policy ───────────────────────────────────
    # Groups whose ratio denominator sums below this are ranked last.
    min_ratio_denominator: float = 1.0
    default_top_n: int = 10

    # ── App ──────────────────────────────────────────────
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    return Settings()
