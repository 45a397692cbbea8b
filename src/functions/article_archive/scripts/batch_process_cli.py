"""
Command-line interface for resumable article page generation.

Each run processes one bounded batch of archived articles and exits; run it
again (cron, CI schedule, by hand) until it reports that no work remains.

USAGE:
  # Process the next batch
  python batch_process_cli.py

  # Re-render one article, ignoring its completion marker
  python batch_process_cli.py 2247483650_1

  # Smaller batch with a shorter time box, JSON summary
  python batch_process_cli.py --batch-size 5 --max-run-time 120 --output-format json
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional

# Bootstrap sys.path when executed directly
try:
    from . import _bootstrap  # type: ignore  # noqa: F401
except ImportError:
    project_root = Path(__file__).resolve().parents[4]
    if str(project_root) not in sys.path:
        sys.path.insert(0, str(project_root))

from src.shared.utils.env import load_env
from src.shared.utils.logging import resolve_level, setup_logging
from src.functions.article_archive.core.config import ArchiveConfig
from src.functions.article_archive.core.errors import (
    BatchError,
    ConfigurationError,
    InvalidSessionError,
    is_fatal,
)
from src.functions.article_archive.core.factory import build_scheduler
from src.functions.article_archive.core.pipelines import BatchResult

logger = logging.getLogger(__name__)


def setup_cli_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate article pages in resumable, time-boxed batches."
    )
    parser.add_argument(
        "article_id",
        nargs="?",
        help="Render only this article (forces a re-render, progress is untouched)",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        help="Maximum new articles per run (overrides ARCHIVE_BATCH_SIZE)",
    )
    parser.add_argument(
        "--max-run-time",
        type=float,
        help="Seconds after which no new article is started (overrides ARCHIVE_MAX_RUN_TIME)",
    )
    parser.add_argument(
        "--output-format",
        choices=["text", "json"],
        default="text",
        help="Output format for the run summary (default: text)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging (DEBUG level)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Set logging level (default: LOG_LEVEL env or INFO)",
    )
    return parser


def build_config(args: argparse.Namespace) -> ArchiveConfig:
    config = ArchiveConfig.from_env()
    overrides = {}
    if args.batch_size is not None:
        overrides["batch_size"] = args.batch_size
    if args.max_run_time is not None:
        overrides["max_run_time"] = args.max_run_time
    return replace(config, **overrides) if overrides else config


def print_results(result: BatchResult) -> None:
    progress = result.progress
    print("\n" + "=" * 60)
    print("BATCH RESULTS")
    print("=" * 60)
    print(f"State:              {result.state.value}")
    print(f"Processed this run: {result.processed} ({result.skipped} already rendered)")
    print(f"Failed this run:    {result.failed}")
    if result.reconciled:
        print(f"Reconciled:         {result.reconciled}")
    print(f"\nOverall: {progress.processed_count}/{progress.total_count} processed, "
          f"{progress.remaining_count} remaining")
    if progress.deferred_ids:
        print(f"Deferred: {', '.join(progress.deferred_ids)}")
    if result.timed_out:
        print("\nTime limit reached; run again to continue.")
    elif result.more_work_remains:
        print("\nMore articles remain; run again to continue.")
    else:
        print("\nAll articles processed; index and sitemap generated.")
    print("=" * 60 + "\n")


def main(argv: Optional[list[str]] = None) -> int:
    parser = setup_cli_parser()
    args = parser.parse_args(argv)

    load_env()
    setup_logging(resolve_level(args.verbose, args.log_level))

    scheduler = None
    try:
        config = build_config(args)
        scheduler = build_scheduler(config)

        if args.article_id:
            rendered = scheduler.render_single(args.article_id)
            logger.info("Generated page for article %s at %s", args.article_id, rendered.path)
            print(f"Generated {rendered.path}")
            return 0

        result = scheduler.run()
        if args.output_format == "json":
            print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
        else:
            print_results(result)
        return 0

    except KeyboardInterrupt:
        logger.info("Batch interrupted by user")
        print("\nInterrupted. Progress is saved; run again to resume.")
        return 130

    except InvalidSessionError as e:
        logger.error("Authentication failed, aborting: %s", e)
        return 1

    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        print(f"Configuration error: {e}")
        return 2

    except ValueError as e:
        logger.error("Invalid option: %s", e)
        print(f"Invalid option: {e}")
        return 2

    except KeyError as e:
        logger.error("%s", e.args[0] if e.args else e)
        return 1

    except BatchError as e:
        if is_fatal(e):
            logger.error("Fatal collaborator error, aborting: %s", e)
        else:
            logger.error("Batch failed: %s", e)
        return 1

    except Exception as e:
        logger.error("Unexpected error during batch processing: %s", e, exc_info=True)
        return 1

    finally:
        if scheduler is not None:
            scheduler.renderer.close()
        logging.shutdown()


if __name__ == "__main__":
    sys.exit(main())
