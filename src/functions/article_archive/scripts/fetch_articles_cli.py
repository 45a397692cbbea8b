"""
Command-line interface for pulling article metadata from the WeChat feed.

USAGE:
  # Backfill every published article
  python fetch_articles_cli.py all

  # Only articles newer than the newest archived one
  python fetch_articles_cli.py new

Requires WECHAT_BIZ_ID, WECHAT_TOKEN and WECHAT_COOKIE in the environment
(or a .env file).
"""

from __future__ import annotations

import argparse
import logging
import sys
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
)
from src.functions.article_archive.core.factory import build_ingestor

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Fetch WeChat articles into the local archive")
    parser.add_argument(
        "mode",
        choices=["all", "new"],
        help="all: page through the whole feed; new: stop at the first known article",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging (DEBUG level)",
    )
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    load_env()
    setup_logging(resolve_level(args.verbose))

    ingestor = None
    try:
        ingestor = build_ingestor(ArchiveConfig.from_env())
        if args.mode == "all":
            result = ingestor.fetch_all()
        else:
            result = ingestor.fetch_new()

        print(f"New articles: {result.new_articles}")
        print(f"Pages fetched: {result.pages_fetched}")
        if result.failed_pages:
            print(f"Failed pages: {', '.join(str(page + 1) for page in result.failed_pages)}")
        return 0

    except KeyboardInterrupt:
        logger.info("Fetch interrupted by user")
        return 130

    except InvalidSessionError as e:
        logger.error("Session expired, refresh WECHAT_TOKEN and WECHAT_COOKIE: %s", e)
        return 1

    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        return 2

    except BatchError as e:
        logger.error("Fetch failed: %s", e)
        return 1

    finally:
        if ingestor is not None:
            ingestor.client.close()
        logging.shutdown()


if __name__ == "__main__":
    sys.exit(main())
