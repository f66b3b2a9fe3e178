"""
Review Insights CLI
===================

Command-line interface for the analysis pipeline.

Commands:
    analyze     - Analyze a JSON/CSV review export and print the result

Usage:
    python -m src.orchestrator.cli analyze --input reviews.json --app-name "My App"
    python -m src.orchestrator.cli analyze --input reviews.csv --offline --output result.json
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from ..data.config import get_settings
from ..data.review_loader import load_reviews
from .analysis_pipeline import InsightPipeline
from .logging_config import setup_logging

logger = logging.getLogger(__name__)


def cmd_analyze(args):
    """Run the pipeline on a review file."""
    try:
        reviews = load_reviews(args.input)
    except (OSError, ValueError) as e:
        print(f"ERROR: Could not load reviews: {e}", file=sys.stderr)
        return 1

    if not reviews:
        print("ERROR: No usable reviews in input", file=sys.stderr)
        return 1

    pipeline = InsightPipeline(offline=args.offline)
    run = asyncio.run(pipeline.execute(reviews, app_name=args.app_name, store=args.store))
    payload = json.dumps(run.result.to_dict(), indent=2, ensure_ascii=False)

    if args.output:
        Path(args.output).write_text(payload + "\n", encoding="utf-8")
        logger.info(f"Wrote analysis to {args.output}")
    else:
        print(payload)

    for stage, stage_result in run.stages.items():
        duration = f"{stage_result.duration_seconds:.2f}s" if stage_result.duration_seconds is not None else "N/A"
        logger.info(f"  {stage.value}: {stage_result.status.value} ({duration})")
    logger.info(f"  LLM cost: ${run.llm_cost:.4f}")

    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="review-insights",
        description="App review actionable insights CLI",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit logs as JSON lines",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    analyze_parser = subparsers.add_parser("analyze", help="Analyze a review export")
    analyze_parser.add_argument(
        "--input",
        required=True,
        help="Path to a .json or .csv review file",
    )
    analyze_parser.add_argument(
        "--app-name",
        default="",
        help="App name shown in the summary",
    )
    analyze_parser.add_argument(
        "--store",
        default="",
        help="Store identifier (e.g. google, apple)",
    )
    analyze_parser.add_argument(
        "--offline",
        action="store_true",
        help="Do not call the LLM; use deterministic fallbacks only",
    )
    analyze_parser.add_argument(
        "--output",
        help="Write the JSON result to this file instead of stdout",
    )

    return parser


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    log_cfg = get_settings().logging
    setup_logging(
        level="DEBUG" if args.verbose else log_cfg.level,
        json_output=args.json_logs or log_cfg.json_logs,
        log_file=log_cfg.log_file,
        fmt=log_cfg.format,
    )

    if args.command is None:
        parser.print_help()
        return 1

    commands = {
        "analyze": cmd_analyze,
    }

    handler = commands.get(args.command)
    if handler:
        return handler(args)
    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
