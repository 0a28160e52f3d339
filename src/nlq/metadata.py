"""
Builds DatasetMetadata from a raw fact-record array.

The planner uses it to recognise dimension values mentioned in a question
("... for Wealth Management") without scanning the records itself.
"""
from __future__ import annotations

from typing import Any, Iterable

from src.nlq.spec import DatasetMetadata
from src.semantic.dictionary import DimensionType, SemanticDictionary, load_dictionary


def record_quarter(record: dict[str, Any]) -> str:
    """Upper-cased, trimmed quarter of a record (``""`` when absent)."""
    raw = record.get("Quarter")
    if raw is None or raw == "":
        raw = record.get("quarter")
    if raw is None:
        return ""
    return str(raw).strip().upper()


def record_text(record: dict[str, Any], field: str) -> str:
    raw = record.get(field)
    if raw is None:
        return ""
    return str(raw).strip()


def build_dataset_metadata(
    records: Iterable[dict[str, Any]] | None,
    dictionary: SemanticDictionary | None = None,
) -> DatasetMetadata:
    """Collect distinct name-dimension values and the sorted observed quarters."""
    if dictionary is None:
        dictionary = load_dictionary()

    records = list(records or [])
    if not records:
        return DatasetMetadata()

    name_fields = [d.key for d in dictionary.dimensions_of_type(DimensionType.NAME)]
    dimensions: dict[str, list[str]] = {}
    for field in name_fields:
        values: list[str] = []
        seen: set[str] = set()
        for r in records:
            v = record_text(r, field)
            if v and v not in seen:
                seen.add(v)
                values.append(v)
        if values:
            dimensions[field] = values

    quarters = sorted({q for q in (record_quarter(r) for r in records) if q})

    return DatasetMetadata(
        dimensions=dimensions,
        quarters=quarters,
        latest_quarter=quarters[-1] if quarters else None,
    )
