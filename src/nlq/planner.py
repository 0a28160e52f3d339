"""
Planner -- converts a natural-language question into a QueryPlan.

Fully deterministic keyword extraction against the semantic dictionary.
Stages run in a fixed order and each one reads only the question and the
caller's inputs, never the output of the executor:

  1. metric      ("margin" is disambiguated explicitly, see ``pick_margin_metric``)
  2. operation   (trend / top / bottom / single)
  3. group-by    ("by X" / "per X", direct dimension mentions)
  4. time window (quarter > year > latest > all > selected quarter > latest)
  5. filters     (dimension values from DatasetMetadata named in the question)
"""
from __future__ import annotations

from src.core.config import get_settings
from src.core.logging import get_logger
from src.nlq.normalize import (
    contains_any,
    extract_group_by,
    extract_number,
    extract_quarter,
    extract_year,
    normalize_text,
)
from src.nlq.spec import (
    DatasetMetadata,
    Operation,
    QueryPlan,
    SortDirection,
    TimeWindow,
    TimeWindowType,
)
from src.semantic.dictionary import DimensionType, SemanticDictionary, load_dictionary

logger = get_logger(__name__)

# ── Metric selection ─────────────────────────────────────

MARGIN_PCT = "MarginPct"
MARGIN_USD = "Margin_$mm"
DEFAULT_METRIC = "TotalRevenue_$mm"

_PERCENT_SIGNALS = ("%", "percent", "pct")
_DOLLAR_SIGNALS = ("$", "dollar", "amount", "mm")

# Tried in order when no synonym matches.
_METRIC_BUCKETS: list[tuple[str, list[str]]] = [
    ("TotalRevenue_$mm", ["revenue", "sales", "income"]),
    ("TotalExpense_$mm", ["expense", "cost", "spend"]),
]

# ── Operation detection (first match wins) ───────────────

_OPERATION_KEYWORDS: list[tuple[Operation, list[str]]] = [
    (Operation.TREND,  ["trend", "over time", "change", "historical"]),
    (Operation.TOP,    ["best", "highest", "top", "maximum", "max"]),
    (Operation.BOTTOM, ["worst", "lowest", "bottom", "minimum", "min"]),
]

# ── Time window keywords ─────────────────────────────────

_LATEST_KEYWORDS = ["latest", "most recent", "current"]
_ALL_KEYWORDS = ["all", "every"]

_MIN_FILTER_VALUE_LEN = 3


def pick_margin_metric(question: str) -> str:
    """Resolve "margin" to the percent or the dollar metric.

    A percent signal beats a dollar signal; with neither, "margin" means
    margin % as is conventional in financial reporting.
    """
    q = question.lower()
    if any(s in q for s in _PERCENT_SIGNALS):
        return MARGIN_PCT
    if any(s in q for s in _DOLLAR_SIGNALS):
        return MARGIN_USD
    return MARGIN_PCT


def _detect_metric(question: str, dictionary: SemanticDictionary) -> str:
    # Generic synonym matching would let "margin" hit either margin metric.
    if "margin" in question.lower():
        return pick_margin_metric(question)

    definition = dictionary.find_measure(question)
    if definition is not None:
        return definition.key

    for metric, keywords in _METRIC_BUCKETS:
        if contains_any(question, keywords):
            return metric
    return DEFAULT_METRIC


def _extract_top_n(question: str) -> int | None:
    """Literal count for top/bottom; a year is never a count."""
    year = extract_year(question)
    text = question.replace(year, " ") if year else question
    return extract_number(text) or None


def _detect_operation(question: str) -> Operation:
    for operation, keywords in _OPERATION_KEYWORDS:
        if contains_any(question, keywords):
            return operation
    return Operation.SINGLE


def _detect_group_by(
    question: str,
    operation: Operation,
    dictionary: SemanticDictionary,
) -> list[str]:
    q = question.lower()
    group_by: list[str] = []

    def _add(field: str) -> None:
        if field not in group_by:
            group_by.append(field)

    phrase = extract_group_by(question)
    if phrase:
        dim = dictionary.find_dimension(phrase)
        if dim is not None:
            _add(dictionary.get_dimension_display_field(dim))

    mentionable = dictionary.dimensions_of_type(
        DimensionType.NAME, DimensionType.TIME, DimensionType.SCENARIO,
    )
    for dim in mentionable:
        if any(s.lower() in q for s in dim.synonyms):
            _add(dictionary.get_dimension_display_field(dim))

    if operation is Operation.TREND:
        _add("Quarter")

    # Rankings need something to rank; retry name dimensions ignoring spacing
    # ("costcenters", "line-of business" collapsed by normalisation).
    if not group_by and operation in (Operation.TOP, Operation.BOTTOM):
        nq = normalize_text(question)
        for dim in dictionary.dimensions_of_type(DimensionType.NAME):
            if any(normalize_text(s) and normalize_text(s) in nq for s in dim.synonyms):
                _add(dictionary.get_dimension_display_field(dim))

    return group_by


def _detect_time_window(question: str, selected_quarter: str | None) -> TimeWindow:
    quarter = extract_quarter(question)
    if quarter:
        return TimeWindow(type=TimeWindowType.QUARTER, value=quarter)

    year = extract_year(question)
    if year:
        return TimeWindow(type=TimeWindowType.YEAR, value=year)

    if contains_any(question, _LATEST_KEYWORDS):
        return TimeWindow(type=TimeWindowType.LATEST)
    if contains_any(question, _ALL_KEYWORDS):
        return TimeWindow(type=TimeWindowType.ALL)
    if selected_quarter and selected_quarter.strip():
        return TimeWindow(type=TimeWindowType.QUARTER, value=selected_quarter.strip())
    return TimeWindow(type=TimeWindowType.LATEST)


def _detect_filters(question: str, metadata: DatasetMetadata | None) -> dict[str, list[str]]:
    """Dimension values (OR within a dimension, AND across) named in the question."""
    filters: dict[str, list[str]] = {}
    if metadata is None:
        return filters

    nq = normalize_text(question)
    for dim_key, values in metadata.dimensions.items():
        for value in values:
            nv = normalize_text(value)
            if len(nv) < _MIN_FILTER_VALUE_LEN or nv not in nq:
                continue
            accepted = filters.setdefault(dim_key, [])
            if value not in accepted:
                accepted.append(value)
    return filters


# ── Public API ───────────────────────────────────────────

def plan_query(
    question: str,
    selected_quarter: str | None = None,
    metadata: DatasetMetadata | None = None,
    dictionary: SemanticDictionary | None = None,
) -> QueryPlan:
    """Parse *question* into a QueryPlan.

    Parameters
    ----------
    question : str
        Natural-language business question.
    selected_quarter : str, optional
        Quarter picked outside the question (e.g. a dashboard selector).
        Used only when the question names no period of its own.
    metadata : DatasetMetadata, optional
        Observed dimension values; enables filter inference.
    dictionary : SemanticDictionary, optional
        If None, the process-wide dictionary is used.
    """
    if dictionary is None:
        dictionary = load_dictionary()

    metric = _detect_metric(question, dictionary)
    operation = _detect_operation(question)

    top_n: int | None = None
    sort_direction = SortDirection.DESC
    if operation in (Operation.TOP, Operation.BOTTOM):
        top_n = _extract_top_n(question) or get_settings().default_top_n
    if operation is Operation.BOTTOM:
        sort_direction = SortDirection.ASC

    plan = QueryPlan(
        metric=metric,
        operation=operation,
        group_by=_detect_group_by(question, operation, dictionary),
        filters=_detect_filters(question, metadata),
        time_window=_detect_time_window(question, selected_quarter),
        top_n=top_n,
        sort_direction=sort_direction,
    )

    logger.info("Planner -> %s", plan.model_dump_json())
    return plan
