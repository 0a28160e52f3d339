"""
Unit tests -- normalize: canonical comparison text and literal extraction.
"""
from src.nlq.normalize import (
    contains_any,
    extract_group_by,
    extract_number,
    extract_quarter,
    extract_year,
    normalize_text,
    tokenize,
)


# ── normalize_text ───────────────────────────────────────

def test_strips_usd_suffix():
    assert normalize_text("Margin_$mm") == "margin"


def test_strips_pct_suffix():
    assert normalize_text("MarketReturn_pct") == "marketreturn"


def test_strips_percent_sign_and_spaces():
    assert normalize_text("Margin %") == "margin"
    assert normalize_text("Cost Center") == "costcenter"


def test_collapses_tabs_and_newlines():
    assert normalize_text("line\tof\nbusiness") == "lineofbusiness"


def test_normalize_is_idempotent():
    once = normalize_text("Total Revenue_$mm")
    assert normalize_text(once) == once


def test_tokenize():
    assert tokenize("  Top 3  Regions ") == ["top", "3", "regions"]


# ── Quarter / year / number ──────────────────────────────

def test_extract_quarter_compact():
    assert extract_quarter("revenue in 2025Q3") == "2025Q3"


def test_extract_quarter_spaced_and_lowercase():
    assert extract_quarter("margin for 2024 q1 please") == "2024Q1"


def test_extract_quarter_absent():
    assert extract_quarter("revenue last year") is None


def test_extract_year():
    assert extract_year("expense in 2024") == "2024"


def test_extract_year_ignores_quarter_token():
    # "2025Q3" has no word boundary after the digits.
    assert extract_year("revenue in 2025Q3") is None


def test_extract_year_requires_20_prefix():
    assert extract_year("in 1999") is None


def test_extract_number():
    assert extract_number("top 3 cost centers") == 3


def test_extract_number_absent():
    assert extract_number("best cost center") is None


# ── Group-by phrase ──────────────────────────────────────

def test_extract_group_by_by():
    assert extract_group_by("Revenue by cost center") == "cost center"


def test_extract_group_by_stops_at_punctuation():
    assert extract_group_by("Revenue by region, latest") == "region"


def test_extract_group_by_stops_at_digit():
    assert extract_group_by("Margin by geography for 2025Q2") == "geography for"


def test_extract_group_by_per():
    assert extract_group_by("expense per product") == "product"


def test_extract_group_by_absent():
    assert extract_group_by("What is total revenue?") is None


# ── contains_any ─────────────────────────────────────────

def test_contains_any_normalizes_both_sides():
    assert contains_any("Show the trend OVER TIME", ["over time"])


def test_contains_any_false():
    assert not contains_any("best margin", ["worst", "lowest"])
