"""CLI command for running a single generation job.

Usage:
    python -m meshforge.cli [PROMPT] [OPTIONS]

Examples:
    # Generate an asset and record it in history
    python -m meshforge.cli "red ceramic vase"

    # Show the stored history
    python -m meshforge.cli --history

    # Wipe the stored history
    python -m meshforge.cli --clear-history

    # Verbose logging
    python -m meshforge.cli "red ceramic vase" -v
"""

import asyncio
import sys
from argparse import ArgumentParser, Namespace
from typing import Optional

import structlog
from pydantic import ValidationError

from meshforge.core.config import Settings, configure_logging
from meshforge.models.generation import GeneratedResult, ProgressSnapshot, ResultQuality
from meshforge.services.generation.orchestrator import JobOrchestrator
from meshforge.services.history.kv_store import kv_store_from_settings
from meshforge.services.history.result_store import ResultStore

logger = structlog.get_logger()


def parse_args(argv: Optional[list[str]] = None) -> Namespace:
    """Parse command-line arguments."""
    parser = ArgumentParser(
        description="Generate a 3D asset from a text prompt",
        epilog="Runs preview then refine and falls back to a placeholder model on failure",
    )

    parser.add_argument(
        "prompt",
        nargs="?",
        help="Text description of the asset",
    )

    parser.add_argument(
        "--history",
        action="store_true",
        help="Print the stored generation history and exit",
    )

    parser.add_argument(
        "--clear-history",
        action="store_true",
        help="Delete every stored generation result and exit",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging (DEBUG level)",
    )

    args = parser.parse_args(argv)
    if not (args.prompt or args.history or args.clear_history):
        parser.error("a prompt is required unless --history or --clear-history is given")
    return args


def print_result(result: GeneratedResult) -> None:
    print("\n" + "=" * 60)
    print("Generation Summary")
    print("=" * 60)
    print(f"Prompt: {result.prompt}")
    print(f"Quality: {result.quality.value}")
    print(f"Model: {result.model_reference}")
    if result.texture_reference:
        print(f"Texture: {result.texture_reference}")
    if result.task_id:
        print(f"Task: {result.task_id}")
    print(f"Result id: {result.id}")
    print("=" * 60 + "\n")


def print_history(results: list[GeneratedResult]) -> None:
    if not results:
        print("History is empty")
        return
    for index, result in enumerate(results, start=1):
        created = result.created_at.isoformat(timespec="seconds")
        print(f"{index:>2}. [{result.quality.value}] {created} {result.prompt}")
        print(f"    {result.model_reference}")


def print_progress(snapshot: ProgressSnapshot) -> None:
    print(f"\r{snapshot.percent:5.1f}% {snapshot.stage_label:<10}", end="", file=sys.stderr)
    if snapshot.percent >= 100:
        print(file=sys.stderr)


async def async_main(argv: Optional[list[str]] = None) -> int:
    """Main CLI entry point (async).

    Returns:
        Exit code: 0 (standard result), 1 (error), 2 (degraded result)
    """
    args = parse_args(argv)

    try:
        settings = Settings()  # type: ignore[call-arg]
    except (ValidationError, ValueError) as e:
        print(f"Error: Invalid configuration\n{e}", file=sys.stderr)
        return 1

    if args.verbose:
        settings.log_level = "DEBUG"

    configure_logging(settings)

    store, _ = await kv_store_from_settings(settings)
    results = ResultStore(store, limit=settings.history_limit)
    await results.load_all()

    if args.clear_history:
        await results.clear()
        logger.info("cli.history_cleared")
        print("History cleared")
        return 0

    if args.history:
        print_history(results.items)
        return 0

    orchestrator = JobOrchestrator.from_settings(settings, results)
    unsubscribe = orchestrator.feed.subscribe(print_progress)

    logger.info("cli.started", prompt_length=len(args.prompt))

    try:
        result = await orchestrator.run(args.prompt)
    except KeyboardInterrupt:
        logger.info("cli.interrupted")
        print("\nGeneration interrupted by user", file=sys.stderr)
        return 130  # Standard exit code for SIGINT
    finally:
        unsubscribe()

    print_result(result)

    if result.quality is ResultQuality.DEGRADED:
        logger.warning("cli.degraded_result", result_id=result.id)
        return 2

    logger.info("cli.success", result_id=result.id)
    return 0


def main() -> None:
    """Synchronous entry point for CLI."""
    sys.exit(asyncio.run(async_main()))


if __name__ == "__main__":
    main()
