"""
Unit tests -- formatter: unit-driven rendering and metric labels.
"""
import math

import pytest

from src.nlq.formatter import format_metric_value, get_metric_label
from src.semantic.dictionary import Unit


@pytest.mark.parametrize("value,unit,expected", [
    (0.2534, "percent", "25.34%"),
    (0.0, "percent", "0.00%"),
    (1.25, "percent", "125.00%"),
    (12.5, "usd_mm", "$12.50M"),
    (1234.567, "usd_mm", "$1234.57M"),
    (42.4, "count", "42"),
    (42.5, "count", "43"),
])
def test_format_by_unit(value, unit, expected):
    assert format_metric_value(value, unit) == expected


def test_accepts_unit_enum():
    assert format_metric_value(0.5, Unit.PERCENT) == "50.00%"
    assert format_metric_value(3.0, Unit.USD_MM) == "$3.00M"


def test_usd_mm_is_never_rescaled():
    # Values are already in millions.
    assert format_metric_value(1500.0, "usd_mm") == "$1500.00M"


def test_none_and_nan_are_na():
    assert format_metric_value(None, "usd_mm") == "N/A"
    assert format_metric_value(math.nan, "percent") == "N/A"


def test_unknown_unit_renders_as_count():
    assert format_metric_value(7.6, "widgets") == "8"


def test_label_known_keys():
    assert get_metric_label("MarginPct") == "Margin %"
    assert get_metric_label("Margin_$mm") == "Margin ($mm)"
    assert get_metric_label("TotalRevenue_$mm") == "Revenue"


def test_label_strips_unit_suffixes():
    assert get_metric_label("NetFlows_$mm") == "NetFlows"
    assert get_metric_label("MarketReturn_pct") == "MarketReturn"
    assert get_metric_label("Headcount_FTE") == "Headcount FTE"
