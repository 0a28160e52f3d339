"""
Deterministic executor -- applies a QueryPlan to an in-memory record array.

Pipeline:
  1. time window   (exact quarter, year prefix, or the greatest observed quarter)
  2. filters       (case-insensitive equality, OR within / AND across dimensions)
  3. grouping      (one group per distinct tuple of group-by values)
  4. aggregation   (chosen by the metric's unit and declared aggregation)
  5. ranking       (top / bottom by the metric, trend by Quarter)
  6. answer text   (literal, built from the first row)

No sampling and no approximation: every filtered record contributes.
Data-shape problems never raise; they degrade to zeros or empty results.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from src.core.config import get_settings
from src.core.logging import get_logger
from src.nlq.formatter import format_metric_value, get_metric_label
from src.nlq.metadata import record_quarter, record_text
from src.nlq.spec import (
    AggregatedRow,
    ExecutionMeta,
    ExecutionResult,
    Operation,
    QueryPlan,
    SortDirection,
    TimeWindow,
    TimeWindowType,
)
from src.semantic.dictionary import (
    RATIO_AGGREGATIONS,
    Aggregation,
    MetricDefinition,
    SemanticDictionary,
    Unit,
    load_dictionary,
)

logger = get_logger(__name__)

NO_DATA_ANSWER = "No data available to answer this question."
NO_DATA_DEFINITION = "No data available"
NO_RESULTS_ANSWER = "No results found matching the query criteria."
NO_VALUE_ANSWER = "Unable to compute metric value."

# Ratio metrics whose numerator/denominator sums are reported alongside the ratio.
_BASIS_METRICS = frozenset({"MarginPct"})

Record = dict[str, Any]


def _to_float(raw: Any) -> float:
    """Parse a cell as a number; anything unparseable or non-finite is 0."""
    if raw is None or isinstance(raw, bool):
        return 0.0
    if isinstance(raw, str):
        raw = raw.replace(",", "").strip()
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(value) or math.isinf(value):
        return 0.0
    return value


def _sum_abs(records: list[Record], field_name: str) -> float:
    # Sign is discarded: deficits and credits are reported as magnitudes.
    return sum(abs(_to_float(r.get(field_name))) for r in records)


# ── Aggregators ──────────────────────────────────────────

@dataclass
class _Aggregate:
    value: float
    denominator: float | None = None
    basis: dict[str, float] = field(default_factory=dict)


def _aggregate_sum(records: list[Record], definition: MetricDefinition) -> _Aggregate:
    return _Aggregate(value=_sum_abs(records, definition.key))


def _aggregate_weighted_avg(records: list[Record], definition: MetricDefinition) -> _Aggregate:
    weighted = 0.0
    total_weight = 0.0
    weight_field = getattr(definition, "weight_by", None)
    if weight_field:
        for r in records:
            weight = _to_float(r.get(weight_field))
            weighted += _to_float(r.get(definition.key)) * weight
            total_weight += weight
    value = weighted / total_weight if total_weight > 0 else 0.0
    return _Aggregate(value=value, denominator=total_weight)


def _aggregate_ratio(records: list[Record], definition: MetricDefinition) -> _Aggregate:
    """sum|numerator| / sum|denominator|, left as a decimal (never x100)."""
    numerator_total = _sum_abs(records, definition.numerator) if definition.numerator else 0.0
    denominator_total = _sum_abs(records, definition.denominator) if definition.denominator else 0.0
    value = numerator_total / denominator_total if denominator_total > 0 else 0.0

    basis: dict[str, float] = {}
    if definition.key in _BASIS_METRICS:
        basis = {definition.numerator: numerator_total, definition.denominator: denominator_total}
    return _Aggregate(value=value, denominator=denominator_total, basis=basis)


_AGGREGATORS: dict[Aggregation, Callable[[list[Record], MetricDefinition], _Aggregate]] = {
    Aggregation.SUM: _aggregate_sum,
    Aggregation.WEIGHTED_AVG: _aggregate_weighted_avg,
    Aggregation.WEIGHTED_RATIO: _aggregate_ratio,
    Aggregation.RATIO: _aggregate_ratio,
}


def aggregate_measures(
    records: list[Record],
    definition: MetricDefinition | None,
) -> tuple[dict[str, float], float | None]:
    """Aggregate one group.

    Returns the measures map (primary metric plus any basis sums) and the
    denominator total used for ratio ranking.  An unknown metric yields an
    empty map: absent, not zero.
    """
    if definition is None:
        return {}, None

    kind = definition.effective_aggregation
    aggregator = _AGGREGATORS.get(kind)
    if aggregator is None:
        raise NotImplementedError(f"No aggregator registered for '{kind.value}'")

    agg = aggregator(records, definition)
    measures = {definition.key: agg.value}
    measures.update(agg.basis)
    return measures, agg.denominator


# ── Pipeline stages ──────────────────────────────────────

def _apply_time_window(records: list[Record], window: TimeWindow) -> tuple[list[Record], TimeWindow]:
    kind = window.type

    if kind in (TimeWindowType.QUARTER, TimeWindowType.PERIOD) and window.value:
        wanted = window.value.strip().upper()
        return [r for r in records if record_quarter(r) == wanted], TimeWindow(type=kind, value=window.value)

    if kind is TimeWindowType.YEAR and window.value:
        year = window.value.strip()
        return [r for r in records if record_quarter(r).startswith(year)], TimeWindow(type=kind, value=year)

    if kind is TimeWindowType.LATEST:
        quarters = {q for q in (record_quarter(r) for r in records) if q}
        if quarters:
            latest = max(quarters)
            return (
                [r for r in records if record_quarter(r) == latest],
                TimeWindow(type=TimeWindowType.QUARTER, value=latest),
            )

    return records, TimeWindow(type=TimeWindowType.ALL)


def _apply_filters(
    records: list[Record],
    filters: dict[str, list[str]],
) -> tuple[list[Record], dict[str, list[str]]]:
    filters_used: dict[str, list[str]] = {}
    for dim_key, values in filters.items():
        accepted = {v.strip().lower() for v in values}
        records = [r for r in records if record_text(r, dim_key).lower() in accepted]
        filters_used[dim_key] = list(values)
    return records, filters_used


def _group(records: list[Record], group_by: list[str]) -> dict[tuple[str, ...], list[Record]]:
    if not group_by:
        # One implicit group, even when nothing survived the filters.
        return {(): records}
    groups: dict[tuple[str, ...], list[Record]] = {}
    for r in records:
        key = tuple(record_text(r, f) for f in group_by)
        groups.setdefault(key, []).append(r)
    return groups


def _rank(
    entries: list[tuple[AggregatedRow, float | None]],
    plan: QueryPlan,
    definition: MetricDefinition | None,
    min_denominator: float,
) -> list[AggregatedRow]:
    ratio_family = (
        definition is not None and definition.effective_aggregation in RATIO_AGGREGATIONS
    )
    descending = plan.sort_direction is SortDirection.DESC

    def _key(entry: tuple[AggregatedRow, float | None]) -> tuple[bool, bool, float]:
        row, denominator = entry
        # Thin denominators rank last whatever their ratio.
        thin = ratio_family and (denominator or 0.0) < min_denominator
        value = row.measures.get(plan.metric)
        if value is None:
            return thin, True, 0.0
        return thin, False, -value if descending else value

    ranked = [row for row, _ in sorted(entries, key=_key)]
    if plan.top_n:
        ranked = ranked[:plan.top_n]
    return ranked


def _describe_rule(definition: MetricDefinition | None) -> str | None:
    if definition is None:
        return None
    kind = definition.effective_aggregation
    if kind in RATIO_AGGREGATIONS:
        return f"{definition.key} = sum({definition.numerator}) / sum({definition.denominator})"
    if kind is Aggregation.WEIGHTED_AVG:
        return f"{definition.key} weighted by {definition.weight_by}"
    return f"{definition.key} = sum({definition.key})"


def build_aggregation_definition(
    plan: QueryPlan,
    window_used: TimeWindow,
    definition: MetricDefinition | None,
    result_count: int,
) -> str:
    parts: list[str] = []
    rule = _describe_rule(definition)
    if rule:
        parts.append(f"Metric: {rule}")
    if plan.group_by:
        parts.append(f"Grouped by: {', '.join(plan.group_by)}")
    if plan.operation is Operation.TOP and plan.top_n:
        parts.append(f"Top {plan.top_n} results")
    elif plan.operation is Operation.BOTTOM and plan.top_n:
        parts.append(f"Bottom {plan.top_n} results")
    elif plan.operation is Operation.TREND:
        parts.append("Trend over time")
    if window_used.type is not TimeWindowType.ALL:
        parts.append(f"Time window: {window_used.describe()}")
    parts.append(f"Total results: {result_count}")
    return " | ".join(parts)


def build_answer_text(
    rows: list[AggregatedRow],
    plan: QueryPlan,
    definition: MetricDefinition | None,
) -> str:
    """Literal answer from the first row; formatting follows the unit only."""
    if not rows:
        return NO_RESULTS_ANSWER

    top = rows[0]
    value = top.measures.get(plan.metric)
    if value is None:
        return NO_VALUE_ANSWER

    unit = definition.unit if definition is not None else Unit.COUNT
    dims = ", ".join(f"{k}: {v}" for k, v in top.dimension_values.items())
    if not dims:
        dims = "Top result" if plan.operation in (Operation.TOP, Operation.BOTTOM) else "Result"
    return f"{dims} - {get_metric_label(plan.metric)}: {format_metric_value(value, unit)}"


# ── Public API ───────────────────────────────────────────

def execute_query(
    records: Iterable[Record] | None,
    plan: QueryPlan,
    dictionary: SemanticDictionary | None = None,
    min_ratio_denominator: float | None = None,
) -> ExecutionResult:
    """Run *plan* over *records* and return ranked aggregates.

    Parameters
    ----------
    records : iterable of dict
        Flat fact records keyed by dimension / measure names.
    plan : QueryPlan
        Output of the planner (or built by hand).
    dictionary : SemanticDictionary, optional
        If None, the process-wide dictionary is used.
    min_ratio_denominator : float, optional
        Ratio-ranking threshold; defaults to ``settings.min_ratio_denominator``.
    """
    if dictionary is None:
        dictionary = load_dictionary()
    if min_ratio_denominator is None:
        min_ratio_denominator = get_settings().min_ratio_denominator

    records = list(records or [])
    if not records:
        logger.info("Executor: empty record set for metric=%s", plan.metric)
        return ExecutionResult(
            plan=plan,
            meta=ExecutionMeta(
                time_window_used=TimeWindow(type=TimeWindowType.ALL),
                aggregation_definition=NO_DATA_DEFINITION,
            ),
            top_rows=[],
            answer_text=NO_DATA_ANSWER,
        )

    filtered, window_used = _apply_time_window(records, plan.time_window)
    filtered, filters_used = _apply_filters(filtered, plan.filters)

    definition = dictionary.get_measure_by_key(plan.metric)
    if definition is None:
        logger.warning("Executor: unknown metric '%s' -- aggregates will be empty", plan.metric)

    entries: list[tuple[AggregatedRow, float | None]] = []
    for key, group_records in _group(filtered, plan.group_by).items():
        measures, denominator = aggregate_measures(group_records, definition)
        row = AggregatedRow(
            dimension_values=dict(zip(plan.group_by, key)),
            measures=measures,
            record_count=len(group_records),
        )
        entries.append((row, denominator))

    if plan.operation in (Operation.TOP, Operation.BOTTOM):
        rows = _rank(entries, plan, definition, min_ratio_denominator)
    elif plan.operation is Operation.TREND:
        rows = sorted((row for row, _ in entries), key=lambda r: r.dimension_values.get("Quarter", ""))
    else:
        rows = [row for row, _ in entries]

    logger.info(
        "Executor: %d/%d records in window, %d groups, %d rows returned",
        len(filtered), len(records), len(entries), len(rows),
    )

    return ExecutionResult(
        plan=plan,
        meta=ExecutionMeta(
            filters_used=filters_used,
            time_window_used=window_used,
            aggregation_definition=build_aggregation_definition(plan, window_used, definition, len(rows)),
            measure_definition=definition.to_dict() if definition is not None else None,
        ),
        top_rows=rows,
        answer_text=build_answer_text(rows, plan, definition),
    )
