"""
Presentation helpers for an ExecutionResult.

Builds what the downstream collaborators consume:
  - unit-correct formatted rows for display
  - key findings (title / detail / confidence) for the answer card
  - the narration prompt handed to the external language model

Units come from exact key lookups only.  A supporting measure with no
definition is shown as a ``count`` rather than guessed from its name.
"""
from __future__ import annotations

import json
from typing import Any

from src.nlq.executor import NO_RESULTS_ANSWER
from src.nlq.formatter import format_metric_value, get_metric_label
from src.nlq.spec import AggregatedRow, ExecutionResult
from src.semantic.dictionary import SemanticDictionary, Unit, load_dictionary

_NARRATION_PREAMBLE = (
    "You are a CFO dashboard assistant. Use ONLY the computed summary below. "
    "Do not invent values. Be concise. Echo time window and filters used."
)

_NARRATION_INSTRUCTIONS = """\
Instructions:
- Use ONLY the computed results above
- Do NOT calculate or invent any financial values
- Reference specific values from the results
- Echo the time window and filters used
- Format currency as $X.XXM for millions
- Format percentages as X.XX%
- Keep response to 2-3 sentences

Provide a concise narration:"""


def resolve_unit(
    key: str,
    result: ExecutionResult,
    dictionary: SemanticDictionary | None = None,
) -> Unit:
    """Unit for a measure key appearing in *result*'s rows."""
    if key == result.plan.metric and result.meta.measure_definition:
        return Unit(result.meta.measure_definition["unit"])
    if dictionary is None:
        dictionary = load_dictionary()
    definition = dictionary.get_measure_by_key(key)
    if definition is None:
        return Unit.COUNT
    return definition.unit


def format_measures(
    row: AggregatedRow,
    result: ExecutionResult,
    dictionary: SemanticDictionary | None = None,
) -> dict[str, str]:
    return {
        key: format_metric_value(value, resolve_unit(key, result, dictionary))
        for key, value in row.measures.items()
        if value is not None
    }


def format_dimensions(row: AggregatedRow) -> str:
    return ", ".join(f"{k}: {v}" for k, v in row.dimension_values.items())


def format_row(
    row: AggregatedRow,
    result: ExecutionResult,
    dictionary: SemanticDictionary | None = None,
) -> dict[str, Any]:
    """A display-ready row: dimension label plus every formatted measure."""
    return {
        "label": format_dimensions(row) or "Total",
        "values": format_measures(row, result, dictionary),
        "record_count": row.record_count,
    }


def build_key_findings(
    result: ExecutionResult,
    limit: int = 10,
    dictionary: SemanticDictionary | None = None,
) -> list[dict[str, Any]]:
    """One finding per returned row, in rank order."""
    findings: list[dict[str, Any]] = []
    label = get_metric_label(result.plan.metric)
    for idx, row in enumerate(result.top_rows[:limit], 1):
        measures = format_measures(row, result, dictionary)
        primary = measures.get(result.plan.metric, "N/A")
        detail = ", ".join(f"{get_metric_label(k)}: {v}" for k, v in measures.items())
        findings.append({
            "title": f"#{idx} {format_dimensions(row) or 'Total'} - {label}: {primary}",
            "detail": f"{detail} ({row.record_count} records)",
            "confidence": 100,
        })
    return findings


def build_narration_prompt(
    result: ExecutionResult,
    question: str,
    dictionary: SemanticDictionary | None = None,
) -> str:
    """Prompt for the external narrator, carrying only computed values."""
    lines: list[str] = [_NARRATION_PREAMBLE, "", "COMPUTED RESULTS:"]
    lines.append(f"Time Window: {result.meta.time_window_used.describe()}")
    if result.meta.filters_used:
        lines.append(f"Filters Applied: {json.dumps(result.meta.filters_used)}")
    lines.append(f"Aggregation: {result.meta.aggregation_definition}")
    lines.append(f"Metric: {result.plan.metric}")
    lines.append("")

    if result.top_rows:
        lines.append("Results:")
        for idx, row in enumerate(result.top_rows, 1):
            dims = format_dimensions(row)
            values = ", ".join(
                f"{k}: {v}" for k, v in format_measures(row, result, dictionary).items()
            )
            lines.append(f"{idx}. {dims} | {values}" if dims else f"{idx}. {values}")
    else:
        lines.append(NO_RESULTS_ANSWER)

    lines.append("")
    lines.append(f"User Question: {question}")
    lines.append("")
    lines.append(_NARRATION_INSTRUCTIONS)
    return "\n".join(lines)
