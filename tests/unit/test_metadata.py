"""
Unit tests -- dataset metadata builder.
"""
from src.nlq.metadata import build_dataset_metadata, record_quarter, record_text
from src.nlq.spec import DatasetMetadata


RECORDS = [
    {"Quarter": "2025Q2", "CostCenter": "Sales", "CostCenterID": "CC001", "Geography": "Europe"},
    {"Quarter": "2025q3 ", "CostCenter": "Marketing", "CostCenterID": "CC002", "Geography": "Europe"},
    {"Quarter": "2024Q4", "CostCenter": " Sales ", "Geography": ""},
    {"quarter": "2025Q1", "CostCenter": "Finance", "Scenario": "Actual"},
]


def test_empty_records():
    meta = build_dataset_metadata([])
    assert isinstance(meta, DatasetMetadata)
    assert meta.dimensions == {}
    assert meta.quarters == []
    assert meta.latest_quarter is None


def test_none_records():
    assert build_dataset_metadata(None).latest_quarter is None


def test_quarters_sorted_and_normalised():
    meta = build_dataset_metadata(RECORDS)
    assert meta.quarters == ["2024Q4", "2025Q1", "2025Q2", "2025Q3"]
    assert meta.latest_quarter == "2025Q3"


def test_distinct_values_in_first_seen_order():
    meta = build_dataset_metadata(RECORDS)
    assert meta.dimensions["CostCenter"] == ["Sales", "Marketing", "Finance"]


def test_only_name_dimensions_collected():
    meta = build_dataset_metadata(RECORDS)
    assert "CostCenterID" not in meta.dimensions
    assert "Scenario" not in meta.dimensions
    assert "Quarter" not in meta.dimensions


def test_blank_values_skipped():
    meta = build_dataset_metadata(RECORDS)
    assert meta.dimensions["Geography"] == ["Europe"]
    assert "LineOfBusiness" not in meta.dimensions


def test_record_quarter_fallbacks():
    assert record_quarter({"Quarter": " 2025q1"}) == "2025Q1"
    assert record_quarter({"Quarter": "", "quarter": "2024Q2"}) == "2024Q2"
    assert record_quarter({}) == ""


def test_record_text():
    assert record_text({"CostCenter": "  Sales "}, "CostCenter") == "Sales"
    assert record_text({"Headcount_FTE": 12}, "Headcount_FTE") == "12"
    assert record_text({}, "CostCenter") == ""
