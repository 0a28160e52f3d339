"""
NLQ service -- orchestrates metadata -> plan -> execute -> present.

This is the entry point callers use: hand it a question and the raw fact
records of one dataset, get back the plan, the deterministic result and the
material for the narration / presentation collaborators.  Nothing is kept
between calls.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

from src.core.logging import get_logger
from src.core.utils import timer
from src.nlq.executor import execute_query
from src.nlq.metadata import build_dataset_metadata
from src.nlq.planner import plan_query
from src.nlq.presenter import build_key_findings, build_narration_prompt, format_row
from src.nlq.spec import DatasetMetadata, ExecutionResult, QueryPlan
from src.semantic.dictionary import SemanticDictionary, load_dictionary

logger = get_logger(__name__)


@dataclass
class AnswerBundle:
    question: str
    plan: QueryPlan
    result: ExecutionResult
    rows: list[dict[str, Any]] = field(default_factory=list)
    key_findings: list[dict[str, Any]] = field(default_factory=list)
    narration_prompt: str = ""
    latency_ms: float = 0.0

    @property
    def answer_text(self) -> str:
        return self.result.answer_text

    @property
    def has_rows(self) -> bool:
        return bool(self.result.top_rows)

    def to_dict(self) -> dict[str, Any]:
        return {
            "question": self.question,
            "plan": self.plan.model_dump(mode="json"),
            "result": self.result.model_dump(mode="json"),
            "rows": self.rows,
            "key_findings": self.key_findings,
            "answer_text": self.answer_text,
            "latency_ms": self.latency_ms,
        }


def ask(
    question: str,
    records: Iterable[dict[str, Any]] | None,
    selected_quarter: str | None = None,
    metadata: DatasetMetadata | None = None,
    dictionary: SemanticDictionary | None = None,
) -> AnswerBundle:
    """End-to-end: question + records -> AnswerBundle.

    Parameters
    ----------
    question : str
        Natural-language business question.
    records : iterable of dict
        The dataset's flat fact records.
    selected_quarter : str, optional
        Quarter chosen outside the question; the question's own period wins.
    metadata : DatasetMetadata, optional
        Built from *records* when not supplied.
    """
    if dictionary is None:
        dictionary = load_dictionary()
    records = list(records or [])

    logger.info("NLQ.ask | question=%s | records=%d | selected_quarter=%s",
                question, len(records), selected_quarter)

    with timer() as t:
        if metadata is None:
            metadata = build_dataset_metadata(records, dictionary)
        plan = plan_query(question, selected_quarter, metadata, dictionary)
        result = execute_query(records, plan, dictionary)
        bundle = AnswerBundle(
            question=question,
            plan=plan,
            result=result,
            rows=[format_row(r, result, dictionary) for r in result.top_rows],
            key_findings=build_key_findings(result, dictionary=dictionary),
            narration_prompt=build_narration_prompt(result, question, dictionary),
        )

    bundle.latency_ms = t["elapsed_ms"]
    logger.info("NLQ.ask | answer=%s | latency_ms=%.3f", bundle.answer_text, bundle.latency_ms)
    return bundle
