#!/usr/bin/env python3
"""Evaluation CLI: grade test cases with G-Eval.

Usage:
    # Auto-generated steps from criteria
    python eval.py --file cases.json --criteria "Is the answer correct?"

    # Explicit steps, extra parameters, custom threshold
    python eval.py --file cases.jsonl --params input actualOutput expectedOutput \
        --steps "Compare facts with the expected output" "Penalize omissions" \
        --threshold 7

    # Binary pass/fail
    python eval.py --file cases.json --criteria "..." --strict

    # Probability-weighted scores
    python eval.py --file cases.json --criteria "..." --top-logprobs 20
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from rich.console import Console

from geval.config import get_judge_settings, get_settings
from geval.logging_config import setup_logging

console = Console()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="G-Eval: LLM-graded evaluation of test cases"
    )
    parser.add_argument(
        "--file",
        type=str,
        required=True,
        help="JSON or JSONL file with test cases",
    )
    parser.add_argument(
        "--dataset",
        type=str,
        default=None,
        help="Only evaluate test cases with this dataset tag",
    )
    parser.add_argument("--name", type=str, default="G-Eval", help="Metric name")
    parser.add_argument(
        "--criteria",
        type=str,
        default=None,
        help="Evaluation criteria; steps are generated from it",
    )
    parser.add_argument(
        "--steps",
        nargs="+",
        default=None,
        help="Explicit evaluation steps (skips step generation)",
    )
    parser.add_argument(
        "--params",
        nargs="+",
        default=["input", "actualOutput"],
        help="Test-case fields to grade (e.g. input actualOutput context)",
    )
    parser.add_argument(
        "--threshold",
        type=float,
        default=None,
        help="Success cutoff on the 0-10 scale (default [metric].threshold, or strict_threshold with --strict)",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        default=None,
        help="Binary 0/1 scoring",
    )
    parser.add_argument(
        "--top-logprobs",
        type=int,
        default=None,
        help="Weight the score by token log-probabilities (OpenAI models)",
    )
    parser.add_argument("--model", type=str, default=None, help="Judge model name")
    parser.add_argument("--verbose", action="store_true", help="Log steps and reasons")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")

    args = parser.parse_args(argv)
    if not args.criteria and not args.steps:
        parser.error("one of --criteria or --steps is required")
    return args


def build_config(args: argparse.Namespace):
    """Merge CLI args over the [metric] defaults from geval.toml."""
    from geval.schemas.metric import GEvalConfig

    defaults = get_judge_settings().metric
    strict = defaults.strict_mode if args.strict is None else args.strict
    threshold = args.threshold
    if threshold is None:
        threshold = defaults.strict_threshold if strict else defaults.threshold
    return GEvalConfig(
        name=args.name,
        evaluation_params=args.params,
        criteria=args.criteria,
        evaluation_steps=args.steps,
        threshold=threshold,
        strict_mode=strict,
        top_logprobs=args.top_logprobs if args.top_logprobs is not None else defaults.top_logprobs,
        verbose=args.verbose,
    )


def main():
    args = parse_args()
    settings = get_settings()
    setup_logging("DEBUG" if args.verbose else settings.log_level, json_logs=args.json_logs)

    from geval.dataset import load_test_cases
    from geval.errors import ConfigError
    from geval.metrics import GEval
    from geval.models import LangChainJudge
    from geval.runner import print_eval_report, run_evaluation

    test_cases = load_test_cases(args.file, dataset=args.dataset)
    if not test_cases:
        console.print(f"[red]No test cases found in {args.file}[/red]")
        sys.exit(1)

    try:
        metric = GEval(LangChainJudge(args.model, settings=settings), build_config(args))
    except ConfigError as exc:
        console.print(f"[red]Invalid configuration: {exc}[/red]")
        sys.exit(2)

    console.print(f"\n[bold]G-Eval: {metric.name}[/bold]")
    console.print(f"Test cases: {len(test_cases)} | Judge: {metric.model.model_name}\n")

    results = asyncio.run(run_evaluation(metric, test_cases))
    print_eval_report(metric, results)

    steps = metric.get_evaluation_steps()
    if steps:
        console.print("[bold]Evaluation Steps:[/bold]")
        for i, step in enumerate(steps, 1):
            console.print(f"  {i}. {step}")


if __name__ == "__main__":
    main()
