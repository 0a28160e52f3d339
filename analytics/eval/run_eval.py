"""
Evaluation harness -- runs eval_questions.jsonl through the NLQ engine
against the seeded fact table and generates analytics/reports/eval_report.md.

Checks:
  - Metric correctness      (planned metric matches expected)
  - Operation correctness   (single / trend / top / bottom)
  - Group-by correctness    (ordered display fields match expected)
  - Time window correctness (planned window type matches expected)
  - Filter correctness      (only when the question names dimension values)
  - Rows returned           (at least ``min_rows`` aggregated rows)
  - Latency                 (end-to-end ms)
"""
from __future__ import annotations

import datetime
import json
import sys
from pathlib import Path
from typing import Any

EVAL_PATH = Path(__file__).resolve().parent / "eval_questions.jsonl"
REPORT_PATH = Path(__file__).resolve().parents[1] / "reports" / "eval_report.md"


def _load_questions() -> list[dict[str, Any]]:
    lines = EVAL_PATH.read_text(encoding="utf-8").splitlines()
    return [json.loads(line) for line in lines if line.strip()]


def _run_one(q: dict[str, Any], records: list[dict[str, Any]]) -> dict[str, Any]:
    """Run a single question through the engine and score the plan."""
    from src.nlq.service import ask

    question = q["question"]
    bundle = ask(question, records)
    plan = bundle.plan

    metric_ok = plan.metric == q.get("expected_metric", "")
    operation_ok = plan.operation.value == q.get("expected_operation", "single")
    group_ok = plan.group_by == q.get("expected_group_by", [])
    window_ok = plan.time_window.type.value == q.get("expected_time_window", "latest")
    filters_ok = "expected_filters" not in q or plan.filters == q["expected_filters"]

    rows_returned = len(bundle.result.top_rows)
    rows_ok = rows_returned >= q.get("min_rows", 1)

    return {
        "question": question,
        "latency_ms": bundle.latency_ms,
        "metric": plan.metric,
        "metric_ok": metric_ok,
        "operation_ok": operation_ok,
        "group_ok": group_ok,
        "window_ok": window_ok,
        "filters_ok": filters_ok,
        "rows_returned": rows_returned,
        "rows_ok": rows_ok,
        "success": all((metric_ok, operation_ok, group_ok, window_ok, filters_ok, rows_ok)),
        "answer_text": bundle.answer_text,
        "aggregation_definition": bundle.result.meta.aggregation_definition,
        "plan": plan.model_dump(mode="json"),
    }


def _rate(results: list[dict[str, Any]], key: str) -> tuple[int, float]:
    hits = sum(1 for r in results if r[key])
    return hits, (hits / len(results) * 100) if results else 0


def _generate_report(results: list[dict[str, Any]], record_count: int) -> str:
    """Generate the Markdown eval report."""
    total = len(results)
    now = datetime.datetime.now().strftime("%Y-%m-%d %H:%M")

    successes, success_rate = _rate(results, "success")
    metric_correct, metric_rate = _rate(results, "metric_ok")
    op_correct, op_rate = _rate(results, "operation_ok")
    group_correct, group_rate = _rate(results, "group_ok")
    window_correct, window_rate = _rate(results, "window_ok")
    rows_correct, rows_rate = _rate(results, "rows_ok")

    latencies = sorted(r["latency_ms"] for r in results)
    avg_lat = sum(latencies) / len(latencies) if latencies else 0
    p50_lat = latencies[len(latencies) // 2] if latencies else 0
    p95_idx = min(int(len(latencies) * 0.95), len(latencies) - 1) if latencies else 0
    p95_lat = latencies[p95_idx] if latencies else 0
    max_lat = latencies[-1] if latencies else 0

    # -- Build report --
    lines: list[str] = []
    lines.append("# Evaluation Report")
    lines.append("")
    lines.append(f"> Generated: {now}  |  Questions: **{total}**  |  Records: **{record_count:,}** (seeded)")
    lines.append("")
    lines.append("---")
    lines.append("")
    lines.append("## Summary")
    lines.append("")
    lines.append("| Metric | Value |")
    lines.append("|--------|-------|")
    lines.append(f"| Overall success rate | **{success_rate:.0f}%** ({successes}/{total}) |")
    lines.append(f"| Metric correctness | **{metric_rate:.0f}%** ({metric_correct}/{total}) |")
    lines.append(f"| Operation correctness | **{op_rate:.0f}%** ({op_correct}/{total}) |")
    lines.append(f"| Group-by correctness | **{group_rate:.0f}%** ({group_correct}/{total}) |")
    lines.append(f"| Time window correctness | **{window_rate:.0f}%** ({window_correct}/{total}) |")
    lines.append(f"| Rows returned | **{rows_rate:.0f}%** ({rows_correct}/{total}) |")
    lines.append("")
    lines.append("## Latency")
    lines.append("")
    lines.append("| Stat | ms |")
    lines.append("|------|-----|")
    lines.append(f"| Mean | {avg_lat:.2f} |")
    lines.append(f"| p50 | {p50_lat:.2f} |")
    lines.append(f"| p95 | {p95_lat:.2f} |")
    lines.append(f"| Max | {max_lat:.2f} |")
    lines.append("")
    lines.append("---")
    lines.append("")

    # -- Example answer --
    example = next((r for r in results if r["rows_returned"]), None)
    if example:
        lines.append("## Example Answer")
        lines.append("")
        lines.append(f"**Question:** *\"{example['question']}\"*")
        lines.append("")
        lines.append("```json")
        lines.append(json.dumps(example["plan"], indent=2))
        lines.append("```")
        lines.append("")
        lines.append(f"**Answer:** {example['answer_text']}")
        lines.append("")
        lines.append(f"**Aggregation:** {example['aggregation_definition']}")
        lines.append("")
        lines.append("---")
        lines.append("")

    # -- Per-question results table --
    lines.append("## Per-Question Results")
    lines.append("")
    lines.append("| # | Question | Metric | Op | Group | Window | Rows | Latency | Pass |")
    lines.append("|---|----------|--------|----|-------|--------|------|---------|------|")

    def _ok(flag: bool) -> str:
        return "OK" if flag else "ERROR"

    for i, r in enumerate(results, 1):
        rows = str(r["rows_returned"]) if r["rows_returned"] else "--"
        qtext = r["question"][:55] + ("..." if len(r["question"]) > 55 else "")
        lines.append(
            f"| {i} | {qtext} | {_ok(r['metric_ok'])} | {_ok(r['operation_ok'])} | "
            f"{_ok(r['group_ok'])} | {_ok(r['window_ok'])} | {rows} | "
            f"{r['latency_ms']:.2f} | {_ok(r['success'])} |"
        )

    lines.append("")

    # -- Failures detail --
    lines.append("## Failures")
    lines.append("")
    failures = [(i, r) for i, r in enumerate(results, 1) if not r["success"]]
    if failures:
        for i, r in failures:
            lines.append(f"### #{i}: {r['question']}")
            lines.append("")
            lines.append(f"**Plan:** `{json.dumps(r['plan'])}`")
            lines.append("")
            lines.append(f"**Answer:** {r['answer_text']}")
            lines.append("")
    else:
        lines.append("None -- all questions handled correctly.")
        lines.append("")

    return "\n".join(lines)


def run():
    # Ensure UTF-8 output on Windows
    if sys.platform == "win32":
        sys.stdout.reconfigure(encoding="utf-8", errors="replace")  # type: ignore[attr-defined]

    from pipelines.seed.seed_data import generate_records

    questions = _load_questions()
    records = generate_records()
    print(f"Loaded {len(questions)} eval questions, {len(records):,} seeded records.")
    print("Running evaluation...\n")

    results = []
    for i, q in enumerate(questions, 1):
        r = _run_one(q, records)
        status = "PASS" if r["success"] else "FAIL"
        print(f"  [{i:2d}/{len(questions)}] {status}  {r['question'][:60]:<60}  "
              f"{r['latency_ms']:>7.2f}ms  rows={r['rows_returned']}")
        results.append(r)

    report = _generate_report(results, len(records))

    REPORT_PATH.parent.mkdir(parents=True, exist_ok=True)
    REPORT_PATH.write_text(report, encoding="utf-8")
    print(f"\nReport written to {REPORT_PATH}")

    total = len(results)
    successes = sum(1 for r in results if r["success"])
    avg_lat = sum(r["latency_ms"] for r in results) / total if total else 0
    print(f"\n{'='*50}")
    print(f"  Success: {successes}/{total} ({successes/total*100:.0f}%)")
    print(f"  Avg latency: {avg_lat:.2f}ms")
    print(f"{'='*50}")


if __name__ == "__main__":
    run()
