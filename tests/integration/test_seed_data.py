"""
Integration tests -- synthetic fact table produced by the seed generator.
"""
from __future__ import annotations

import pytest

from pipelines.seed.seed_data import (
    COST_CENTERS,
    NUM_LEGAL_ENTITIES,
    QUARTERS,
    SCENARIOS,
    generate_records,
)
from src.nlq.metadata import build_dataset_metadata
from src.semantic.dictionary import load_dictionary


@pytest.fixture(scope="module")
def records():
    return generate_records()


def test_record_count(records):
    assert len(records) == len(QUARTERS) * len(SCENARIOS) * NUM_LEGAL_ENTITIES * len(COST_CENTERS)


def test_deterministic():
    assert generate_records(seed=7) == generate_records(seed=7)
    assert generate_records(seed=7) != generate_records(seed=8)


def test_quarter_subset():
    recs = generate_records(quarters=["2025Q3"])
    assert {r["Quarter"] for r in recs} == {"2025Q3"}


def test_margin_consistent_with_revenue_and_expense(records):
    for r in records:
        assert r["Margin_$mm"] == pytest.approx(r["TotalRevenue_$mm"] - r["TotalExpense_$mm"], abs=0.011)
        assert 0.0 <= r["MarginPct"] <= 1.0


def test_ids_map_one_to_one_to_names(records):
    pairs = {(r["CostCenterID"], r["CostCenter"]) for r in records}
    assert len(pairs) == len(COST_CENTERS)
    entities = {(r["LegalEntityID"], r["LegalEntity"]) for r in records}
    assert len(entities) == NUM_LEGAL_ENTITIES


def test_measure_columns_are_catalogued(records):
    dictionary = load_dictionary()
    dimension_keys = set(dictionary.get_dimension_keys())
    for column in records[0]:
        if column in dimension_keys:
            continue
        assert dictionary.get_measure_by_key(column) is not None, column


def test_metadata_over_seed(records):
    meta = build_dataset_metadata(records)
    assert meta.quarters == QUARTERS
    assert meta.latest_quarter == "2025Q3"
    assert meta.dimensions["CostCenter"] == COST_CENTERS
