# src/main.py - v2
"""CLI entry point: analyze and cache commands.

Usage:
    promptaudit analyze <prompts.jsonl> [--date D] [--backend ID] [options]
    promptaudit cache sweep [--ttl-hours N]
    promptaudit cache clear

Exit statuses: 0 success, 1 error, 2 no prompts, 3 no backend available,
130 interrupted.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

from promptaudit.version import __version__

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_NO_DATA = 2
EXIT_PROVIDER_UNAVAILABLE = 3
EXIT_INTERRUPTED = 130


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    from promptaudit.config.settings import ConfigurationError, load_settings

    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return EXIT_ERROR

    try:
        settings = load_settings(**_settings_overrides(args))
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return EXIT_ERROR

    _setup_logging(settings, args.verbose)

    try:
        return asyncio.run(args.func(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return EXIT_INTERRUPTED
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return EXIT_ERROR


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="promptaudit",
        description=f"promptaudit v{__version__} - prompt quality analysis",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- analyze ---
    p_analyze = subparsers.add_parser(
        "analyze", help="Analyze prompts from a JSON or JSONL file",
    )
    p_analyze.add_argument("file", type=Path, help="Prompt records (JSON array or JSONL)")
    p_analyze.add_argument(
        "--date", default=None,
        help="Only analyze prompts from this UTC date (YYYY-MM-DD)",
    )
    p_analyze.add_argument(
        "--backend", default=None,
        help="Use only this backend (ollama, anthropic, google)",
    )
    p_analyze.add_argument(
        "--services", default=None,
        help="Comma-separated backend preference order",
    )
    p_analyze.add_argument(
        "--no-cache", action="store_true",
        help="Neither read nor write cached results",
    )
    p_analyze.add_argument(
        "-o", "--output", type=Path, default=None,
        help="Write the JSON report here (default: stdout)",
    )
    p_analyze.set_defaults(func=_cmd_analyze)

    # --- cache ---
    p_cache = subparsers.add_parser("cache", help="Maintain the result cache")
    cache_sub = p_cache.add_subparsers(dest="cache_command", required=True)

    p_sweep = cache_sub.add_parser("sweep", help="Remove expired or corrupt entries")
    p_sweep.add_argument(
        "--ttl-hours", type=int, default=None,
        help="Maximum entry age in hours (default: CACHE_TTL_HOURS)",
    )
    p_sweep.set_defaults(func=_cmd_cache_sweep)

    p_clear = cache_sub.add_parser("clear", help="Remove every cached entry")
    p_clear.set_defaults(func=_cmd_cache_clear)

    return parser


def _settings_overrides(args: argparse.Namespace) -> dict[str, object]:
    overrides: dict[str, object] = {}
    if getattr(args, "services", None):
        overrides["services"] = args.services
    if getattr(args, "no_cache", False):
        overrides["bypass_cache"] = True
    return overrides


async def _cmd_analyze(args: argparse.Namespace, settings) -> int:
    """Execute one analysis run."""
    from promptaudit.api.facade import analyze
    from promptaudit.api.prompt_loader import load_prompts
    from promptaudit.backends.errors import AllBackendsUnavailableError
    from promptaudit.pipeline.models import NoPromptsError

    prompts = load_prompts(args.file, day=args.date)
    date = args.date or datetime.now(timezone.utc).date().isoformat()

    try:
        outcome = await analyze(prompts, date, settings=settings, force_backend=args.backend)
    except NoPromptsError:
        logger.warning("No prompts found%s", f" for {args.date}" if args.date else "")
        return EXIT_NO_DATA
    except AllBackendsUnavailableError as exc:
        logger.error("%s", exc)
        return EXIT_PROVIDER_UNAVAILABLE

    report = json.dumps(outcome.result.model_dump(mode="json", by_alias=True), indent=2)
    if args.output is not None:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(report + "\n", encoding="utf-8")
    else:
        print(report)

    _print_outcome_summary(outcome)
    return EXIT_SUCCESS


async def _cmd_cache_sweep(args: argparse.Namespace, settings) -> int:
    from promptaudit.cache.cache_factory import create_cache_store

    store = create_cache_store(settings)
    ttl = timedelta(hours=args.ttl_hours) if args.ttl_hours is not None else None
    removed = await store.sweep_expired(ttl)
    print(f"Removed {removed} expired or corrupt entr{'y' if removed == 1 else 'ies'}", file=sys.stderr)
    return EXIT_SUCCESS


async def _cmd_cache_clear(args: argparse.Namespace, settings) -> int:
    from promptaudit.cache.cache_factory import create_cache_store

    removed = await create_cache_store(settings).invalidate_all()
    print(f"Removed {removed} cache file(s)", file=sys.stderr)
    return EXIT_SUCCESS


def _print_outcome_summary(outcome) -> None:
    """Print a human-readable run summary to stderr."""
    stats = outcome.result.stats
    out = sys.stderr
    print("\nAnalysis complete:", file=out)
    print(f"  Backend:      {outcome.backend}", file=out)
    print(f"  Batches:      {outcome.batch_count} ({outcome.cached_batches} cached)", file=out)
    print(f"  Prompts:      {stats.total_prompts} ({stats.prompts_with_issues} with issues)", file=out)
    print(f"  Score:        {stats.overall_score:.1f}/10", file=out)
    if outcome.warnings:
        print(f"  Skipped:      {outcome.skipped_prompts} prompt(s) in {len(outcome.warnings)} failed batch(es)", file=out)


def _setup_logging(settings, verbose: bool) -> None:
    """Configure logging for CLI usage."""
    from promptaudit.logging.logger import setup_logging

    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=settings.log_file,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )
    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


if __name__ == "__main__":
    sys.exit(main())
