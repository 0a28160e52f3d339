"""
Unit-driven value formatting.

The unit alone decides the rendering; nothing is inferred from a metric's
name or from the question text.

  percent -> value is a decimal in [0, 1]; shown x100 with two decimals and '%'
  usd_mm  -> value is already in millions; shown as $X.XXM, never divided
  count   -> rounded integer
"""
from __future__ import annotations

import math
import re
from enum import Enum

_LABELS: dict[str, str] = {
    "Margin_$mm": "Margin ($mm)",
    "MarginPct": "Margin %",
    "TotalRevenue_$mm": "Revenue",
    "TotalExpense_$mm": "Expense",
}

_USD_SUFFIX_RE = re.compile(r"_?\$mm")
_PCT_SUFFIX_RE = re.compile(r"_?pct", re.IGNORECASE)


def format_metric_value(value: float | None, unit: str | Enum) -> str:
    """Render *value* according to *unit* (``usd_mm`` | ``percent`` | ``count``)."""
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return "N/A"

    unit_name = unit.value if isinstance(unit, Enum) else str(unit)

    if unit_name == "percent":
        return f"{value * 100:.2f}%"
    if unit_name == "usd_mm":
        return f"${value:.2f}M"
    return str(math.floor(value + 0.5))


def get_metric_label(metric_key: str) -> str:
    """Display label for a metric key; unknown keys lose their unit suffixes."""
    if metric_key in _LABELS:
        return _LABELS[metric_key]
    label = _USD_SUFFIX_RE.sub("", metric_key)
    label = _PCT_SUFFIX_RE.sub("", label)
    return label.replace("_", " ")
