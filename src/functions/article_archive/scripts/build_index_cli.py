"""
Rebuild ``index.html`` and ``sitemap.xml`` from the articles rendered so far.

The batch run does this automatically once every article is processed; this
script is for publishing a partial site or after editing site settings.
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
from src.functions.article_archive.core.errors import BatchError, ConfigurationError
from src.functions.article_archive.core.factory import build_archive_store
from src.functions.article_archive.core.pipelines import Finalizer
from src.functions.article_archive.core.render import ArticleRenderer, IndexBuilder

logger = logging.getLogger(__name__)


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Regenerate the archive index and sitemap")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable DEBUG logging")
    args = parser.parse_args(argv)

    load_env()
    setup_logging(resolve_level(args.verbose))

    try:
        config = ArchiveConfig.from_env()
        items = build_archive_store(config).work_items()
        with ArticleRenderer(config.output_dir, config.site) as renderer:
            finalizer = Finalizer(IndexBuilder(config.output_dir, config.site), renderer)
            result = finalizer.finalize(items)

        print(f"Index: {result.index_path} ({result.article_count} articles)")
        print(f"Sitemap: {result.sitemap_path}")
        if result.excluded_count:
            print(f"Not yet rendered: {result.excluded_count}")
        return 0

    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        return 2

    except (BatchError, OSError) as e:
        logger.error("Failed to build index: %s", e)
        return 1

    finally:
        logging.shutdown()


if __name__ == "__main__":
    sys.exit(main())
