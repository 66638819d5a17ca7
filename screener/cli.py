"""CLI entry point for the screener.

Usage:
    python -m screener.cli query --query momentum.json --data-dir data/bars
    python -m screener.cli breakout --data-dir data/bars --context positional
    python -m screener.cli breakout --data-dir data/bars --diagnostic
    python -m screener.cli validate --query momentum.json
    python -m screener.cli indicators --category oscillators

Bars are read from ``<data-dir>/<SYMBOL>_<timeframe>.csv``. Results are
printed to stdout as JSON; logs go to stderr.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Screen instruments with indicator queries or breakout classifiers.",
    )
    parser.add_argument(
        "--log-level", type=str, default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: from settings)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    query = sub.add_parser("query", help="Run a query JSON file over a universe")
    query.add_argument("--query", type=Path, required=True, help="Path to query JSON")
    query.add_argument("--data-dir", type=Path, default=None, help="Directory of bar CSV files")
    query.add_argument(
        "--symbols", type=str, default="",
        help="Comma-separated symbols to scan (default: every file in data dir)",
    )
    query.add_argument("--workers", type=int, default=None, help="Worker threads")

    breakout = sub.add_parser("breakout", help="Run the consolidation-breakout scan")
    breakout.add_argument("--data-dir", type=Path, default=None, help="Directory of bar CSV files")
    breakout.add_argument(
        "--context", type=str, default=None, choices=["swing", "positional"],
        help="Threshold set (default: from settings)",
    )
    breakout.add_argument(
        "--diagnostic", action="store_true",
        help="Score every criterion instead of assigning tiers",
    )
    breakout.add_argument(
        "--symbols", type=str, default="",
        help="Comma-separated symbols to scan (default: every file in data dir)",
    )
    breakout.add_argument("--workers", type=int, default=None, help="Worker threads")

    validate = sub.add_parser("validate", help="Check a query JSON file for problems")
    validate.add_argument("--query", type=Path, required=True, help="Path to query JSON")

    indicators = sub.add_parser("indicators", help="List the indicator catalog")
    indicators.add_argument("--category", type=str, default=None, help="Only this category")

    return parser.parse_args(argv)


def _symbols(arg: str) -> list[str] | None:
    symbols = [s.strip().upper() for s in arg.split(",") if s.strip()]
    return symbols or None


def _load_query(path: Path):
    from screener.query import QueryState

    with open(path) as f:
        return QueryState.from_dict(json.load(f))


def _emit(payload) -> None:
    json.dump(payload, sys.stdout, indent=2, default=str)
    sys.stdout.write("\n")


def main(argv=None) -> int:
    args = parse_args(argv)

    from config.settings import get_settings
    from screener.utils.logging import setup_logging

    settings = get_settings()
    setup_logging(
        level=args.log_level or settings.logging.level,
        format=settings.logging.format,
        file=settings.logging.file,
        rotate_size_mb=settings.logging.rotate_size_mb,
        retain_count=settings.logging.retain_count,
    )

    from screener.breakout import generate_scan_summary, generate_tiered_scan_output
    from screener.data import CSVUniverse
    from screener.indicators import get_default_registry
    from screener.query import required_timeframes, validate_query
    from screener.scanner import ScanRunner

    if args.command == "indicators":
        registry = get_default_registry()
        _emit([
            {
                "id": spec.indicator_id,
                "name": spec.name,
                "category": spec.category,
                "params": spec.defaults,
                "output_type": spec.output_type,
            }
            for spec in registry.list_indicators(args.category)
        ])
        return 0

    if args.command == "validate":
        try:
            query = _load_query(args.query)
        except (OSError, ValueError) as e:
            logger.error("Could not read query %s: %s", args.query, e)
            return 1
        errors = validate_query(query)
        _emit({"valid": not errors, "errors": errors})
        return 0 if not errors else 1

    data_dir = args.data_dir or settings.scanner.data_dir
    runner = ScanRunner(max_workers=args.workers)

    if args.command == "query":
        try:
            query = _load_query(args.query)
        except (OSError, ValueError) as e:
            logger.error("Could not read query %s: %s", args.query, e)
            return 1
        for problem in validate_query(query):
            logger.warning("Query problem: %s", problem)

        try:
            universe = CSVUniverse(data_dir, required_timeframes(query), symbols=_symbols(args.symbols))
        except FileNotFoundError as e:
            logger.error("%s", e)
            return 1
        rows = runner.scan_query(query, universe)
        logger.info("Found %d matches out of %d instruments", len(rows), len(universe))
        _emit([row.to_dict() for row in rows])
        return 0

    context = args.context or settings.scanner.default_context
    try:
        universe = CSVUniverse(data_dir, [runner.default_timeframe], symbols=_symbols(args.symbols))
    except FileNotFoundError as e:
        logger.error("%s", e)
        return 1

    if args.diagnostic:
        results = runner.diagnose_universe(universe, context)
        _emit({
            "summary": generate_scan_summary(results, settings.scanner.near_miss_limit),
            "results": [r.to_dict() for r in results],
        })
    else:
        results = runner.classify_universe(universe, context)
        _emit(generate_tiered_scan_output(results))
    return 0


if __name__ == "__main__":
    sys.exit(main())
