"""
QueryPlan and friends -- the structured representation between a
natural-language question and the deterministic aggregation over records.
"""
from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class Operation(str, Enum):
    SINGLE = "single"
    TREND = "trend"
    TOP = "top"
    BOTTOM = "bottom"


class TimeWindowType(str, Enum):
    QUARTER = "quarter"
    YEAR = "year"
    PERIOD = "period"
    LATEST = "latest"
    ALL = "all"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class TimeWindow(BaseModel):
    type: TimeWindowType = TimeWindowType.LATEST
    value: str | None = Field(None, description="e.g. '2024Q1' or '2024'")

    def describe(self) -> str:
        return f"{self.type.value} ({self.value})" if self.value else self.type.value


class QueryPlan(BaseModel):
    """Parsed representation of a business question (exactly one metric)."""

    metric: str = Field(..., description="Measure or derived-metric key, e.g. 'MarginPct'")
    operation: Operation = Operation.SINGLE
    group_by: list[str] = Field(default_factory=list, description="Ordered display fields")
    filters: dict[str, list[str]] = Field(
        default_factory=dict,
        description="Dimension -> accepted values, e.g. {'CostCenter': ['Sales', 'Marketing']}",
    )
    time_window: TimeWindow = Field(default_factory=TimeWindow)
    top_n: int | None = Field(None, description="Row cap for top/bottom operations")
    sort_direction: SortDirection = SortDirection.DESC

    @field_validator("group_by")
    @classmethod
    def _no_duplicate_fields(cls, v: list[str]) -> list[str]:
        if len(set(v)) != len(v):
            raise ValueError(f"group_by contains duplicates: {v}")
        return v


class AggregatedRow(BaseModel):
    """One group's aggregate."""

    dimension_values: dict[str, str] = Field(default_factory=dict)
    measures: dict[str, float] = Field(default_factory=dict)
    record_count: int = 0


class ExecutionMeta(BaseModel):
    """What the executor actually applied; narrators must echo this."""

    filters_used: dict[str, list[str]] = Field(default_factory=dict)
    time_window_used: TimeWindow = Field(default_factory=lambda: TimeWindow(type=TimeWindowType.ALL))
    aggregation_definition: str = ""
    measure_definition: dict[str, Any] | None = None


class ExecutionResult(BaseModel):
    plan: QueryPlan
    meta: ExecutionMeta
    top_rows: list[AggregatedRow] = Field(default_factory=list)
    answer_text: str


class DatasetMetadata(BaseModel):
    """Distinct dimension values and observed quarters of a record set."""

    dimensions: dict[str, list[str]] = Field(default_factory=dict)
    quarters: list[str] = Field(default_factory=list)
    latest_quarter: str | None = None
