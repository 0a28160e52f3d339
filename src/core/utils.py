"""
Small shared utilities.
"""
from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Generator


@contextmanager
def timer() -> Generator[dict, None, None]:
    """Record elapsed wall-clock milliseconds under ``"elapsed_ms"``.

    The dict is filled in on exit, so read it after the ``with`` block.
    """
    elapsed: dict = {}
    started = time.perf_counter()
    try:
        yield elapsed
    finally:
        elapsed["elapsed_ms"] = round((time.perf_counter() - started) * 1000, 3)
