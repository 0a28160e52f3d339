"""
Unit tests -- presenter: formatted rows, key findings, narration prompt.
"""
import pytest

from src.nlq.executor import NO_RESULTS_ANSWER, execute_query
from src.nlq.presenter import (
    build_key_findings,
    build_narration_prompt,
    format_row,
    resolve_unit,
)
from src.nlq.spec import Operation, QueryPlan
from src.semantic.dictionary import Unit, load_dictionary


RECORDS = [
    {"Quarter": "2025Q3", "CostCenter": "Sales", "TotalRevenue_$mm": 100.0, "Margin_$mm": 30.0},
    {"Quarter": "2025Q3", "CostCenter": "Marketing", "TotalRevenue_$mm": 50.0, "Margin_$mm": 5.0},
    {"Quarter": "2025Q3", "CostCenter": "Engineering", "TotalRevenue_$mm": 150.0, "Margin_$mm": 40.0},
]


@pytest.fixture(scope="module")
def dictionary():
    return load_dictionary()


@pytest.fixture(scope="module")
def result(dictionary):
    plan = QueryPlan(metric="MarginPct", operation=Operation.TOP, group_by=["CostCenter"], top_n=10)
    return execute_query(RECORDS, plan, dictionary)


def test_resolve_unit_primary_metric(result, dictionary):
    assert resolve_unit("MarginPct", result, dictionary) is Unit.PERCENT


def test_resolve_unit_supporting_measure(result, dictionary):
    assert resolve_unit("Margin_$mm", result, dictionary) is Unit.USD_MM


def test_resolve_unit_unknown_key_is_count(result, dictionary):
    # Never guessed from the "_pct" suffix.
    assert resolve_unit("Mystery_pct", result, dictionary) is Unit.COUNT


def test_format_row(result, dictionary):
    row = format_row(result.top_rows[0], result, dictionary)
    assert row["label"] == "CostCenter: Sales"
    assert row["values"] == {
        "MarginPct": "30.00%",
        "Margin_$mm": "$30.00M",
        "TotalRevenue_$mm": "$100.00M",
    }
    assert row["record_count"] == 1


def test_format_row_without_dimensions(dictionary):
    plan = QueryPlan(metric="TotalRevenue_$mm")
    res = execute_query(RECORDS, plan, dictionary)
    row = format_row(res.top_rows[0], res, dictionary)
    assert row["label"] == "Total"
    assert row["values"] == {"TotalRevenue_$mm": "$300.00M"}


def test_key_findings_in_rank_order(result, dictionary):
    findings = build_key_findings(result, dictionary=dictionary)
    assert len(findings) == 3
    assert findings[0]["title"] == "#1 CostCenter: Sales - Margin %: 30.00%"
    assert findings[0]["detail"] == "Margin %: 30.00%, Margin ($mm): $30.00M, Revenue: $100.00M (1 records)"
    assert findings[0]["confidence"] == 100
    assert findings[-1]["title"].startswith("#3 CostCenter: Marketing")


def test_key_findings_limit(result, dictionary):
    assert len(build_key_findings(result, limit=1, dictionary=dictionary)) == 1


def test_narration_prompt_carries_computed_values(result, dictionary):
    prompt = build_narration_prompt(result, "What cost center has best margin?", dictionary)
    assert "Time Window: quarter (2025Q3)" in prompt
    assert "Metric: MarginPct" in prompt
    assert "1. CostCenter: Sales | MarginPct: 30.00%" in prompt
    assert "User Question: What cost center has best margin?" in prompt
    assert "Filters Applied" not in prompt


def test_narration_prompt_echoes_filters(dictionary):
    plan = QueryPlan(metric="TotalRevenue_$mm", filters={"CostCenter": ["Sales"]})
    res = execute_query(RECORDS, plan, dictionary)
    prompt = build_narration_prompt(res, "Revenue for Sales", dictionary)
    assert 'Filters Applied: {"CostCenter": ["Sales"]}' in prompt
    assert "1. TotalRevenue_$mm: $100.00M" in prompt


def test_narration_prompt_without_rows(dictionary):
    plan = QueryPlan(metric="TotalRevenue_$mm", group_by=["CostCenter"], filters={"CostCenter": ["Legal"]})
    res = execute_query(RECORDS, plan, dictionary)
    assert res.top_rows == []
    assert NO_RESULTS_ANSWER in build_narration_prompt(res, "Revenue for Legal", dictionary)


def test_narration_prompt_ungrouped_miss_shows_zero_row(dictionary):
    plan = QueryPlan(metric="TotalRevenue_$mm", filters={"CostCenter": ["Legal"]})
    res = execute_query(RECORDS, plan, dictionary)
    assert "1. TotalRevenue_$mm: $0.00M" in build_narration_prompt(res, "Revenue for Legal", dictionary)
