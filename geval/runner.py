"""Batch evaluation runner.

Evaluates a list of test cases with one metric and prints a quality report
with aggregate metrics. Cases are evaluated one after another: the judge
session is reset per case.
"""

from __future__ import annotations

from collections.abc import Sequence

import structlog
from rich.console import Console
from rich.table import Table

from geval.metrics.base_metric import BaseMetric
from geval.schemas.metric import MetricResult
from geval.schemas.test_case import LLMTestCase

logger = structlog.get_logger(__name__)
console = Console()

EvalRecord = tuple[LLMTestCase, MetricResult]


async def run_evaluation(
    metric: BaseMetric,
    test_cases: Sequence[LLMTestCase],
    show_progress: bool = True,
) -> list[EvalRecord]:
    """Evaluate every test case; failures come back as failed results."""
    if show_progress:
        console.print(f"\n[bold]Evaluating {len(test_cases)} test cases...[/bold]\n")

    results: list[EvalRecord] = []
    for i, test_case in enumerate(test_cases, 1):
        if show_progress:
            console.print(f"  [{i}/{len(test_cases)}] {test_case.input[:60]}...")
        result = await metric.evaluate(test_case)
        results.append((test_case, result))

    logger.info(
        "evaluation_run_done",
        total=len(results),
        passed=sum(1 for _, r in results if r.success),
        cost=metric.get_evaluation_cost(),
    )
    return results


def summarize(results: Sequence[EvalRecord]) -> dict[str, float]:
    """Aggregate counts, pass rate and mean score over a run."""
    total = len(results)
    if total == 0:
        return {"total": 0, "passed": 0, "failed": 0, "errors": 0, "pass_rate": 0.0, "mean_score": 0.0}

    passed = sum(1 for _, r in results if r.success)
    errors = sum(1 for _, r in results if r.error)
    return {
        "total": total,
        "passed": passed,
        "failed": total - passed,
        "errors": errors,
        "pass_rate": passed / total,
        "mean_score": sum(r.score for _, r in results) / total,
    }


def print_eval_report(metric: BaseMetric, results: Sequence[EvalRecord]) -> None:
    """Print a formatted evaluation report using rich."""
    if not results:
        console.print("[yellow]No results to display.[/yellow]")
        return

    table = Table(title=f"{getattr(metric.config, 'name', 'Metric')} Results", show_lines=True)
    table.add_column("Input", style="cyan", max_width=40)
    table.add_column("Score", justify="center")
    table.add_column("Result", justify="center")
    table.add_column("Reason", max_width=60)

    for test_case, r in results:
        if r.error:
            verdict = "[red]ERROR[/red]"
        elif r.success:
            verdict = "[green]PASS[/green]"
        else:
            verdict = "[yellow]FAIL[/yellow]"

        table.add_row(
            test_case.input[:40] + ("..." if len(test_case.input) > 40 else ""),
            f"{r.score:.2f}",
            verdict,
            r.reason,
        )

    console.print(table)

    stats = summarize(results)
    console.print("\n[bold]Aggregate Metrics:[/bold]")
    console.print(f"  Test cases evaluated: {stats['total']}")
    console.print(f"  Threshold: {metric.config.threshold}")
    console.print(f"  Mean Score: {stats['mean_score']:.2f}")
    console.print(
        f"  Results: [green]{stats['passed']} PASS[/green] | "
        f"[yellow]{stats['failed'] - stats['errors']} FAIL[/yellow] | "
        f"[red]{stats['errors']} ERROR[/red]"
    )
    console.print(f"  Pass Rate: {stats['pass_rate'] * 100:.0f}%")
    console.print(f"  Judge Cost: ${metric.get_evaluation_cost():.6f}\n")
