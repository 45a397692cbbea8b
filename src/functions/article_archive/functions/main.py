"""Cloud Function entry point for scheduled archive batches.

A scheduler (Cloud Scheduler, cron hitting the URL) POSTs here repeatedly;
each call optionally ingests new articles, then renders one time-boxed batch.
The response's ``more_work_remains`` tells the caller whether to call again.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Dict

import flask

from src.shared.utils.env import load_env
from src.shared.utils.logging import setup_logging
from src.functions.article_archive.core.config import ArchiveConfig
from src.functions.article_archive.core.errors import (
    BatchError,
    ConfigurationError,
    InvalidSessionError,
)
from src.functions.article_archive.core.factory import build_ingestor, build_scheduler

load_env()
setup_logging()
logger = logging.getLogger(__name__)

INGEST_MODES = ("all", "new")


def handle_request(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Run an optional ingest followed by one batch.

    Args:
        payload: ``{"ingest": "new" | "all", "batch_size": int}``, all optional

    Returns:
        JSON-serialisable summary of the run

    Raises:
        ValueError: If the payload is invalid
        InvalidSessionError: If the feed rejects the session
        ConfigurationError: If required settings are missing
        BatchError: If the checkpoint or work list is unusable
    """
    ingest_mode = payload.get("ingest")
    if ingest_mode is not None and ingest_mode not in INGEST_MODES:
        raise ValueError(f"'ingest' must be one of {', '.join(INGEST_MODES)}")

    config = ArchiveConfig.from_env()
    batch_size = payload.get("batch_size")
    if batch_size is not None:
        if not isinstance(batch_size, int) or isinstance(batch_size, bool):
            raise ValueError("'batch_size' must be an integer")
        config = replace(config, batch_size=batch_size)

    response: Dict[str, Any] = {"status": "success"}

    if ingest_mode:
        ingestor = build_ingestor(config)
        try:
            ingest = ingestor.fetch_all() if ingest_mode == "all" else ingestor.fetch_new()
        finally:
            ingestor.client.close()
        response["ingest"] = {
            "mode": ingest_mode,
            "new_articles": ingest.new_articles,
            "pages_fetched": ingest.pages_fetched,
            "failed_pages": ingest.failed_pages,
        }

    scheduler = build_scheduler(config)
    try:
        result = scheduler.run()
    finally:
        scheduler.renderer.close()

    response.update(result.to_dict())
    return response


def archive_batch(request: flask.Request) -> flask.Response:
    """Handle archive batch requests.

    Args:
        request: Flask request object with an optional JSON payload

    Returns:
        Flask response with the batch summary
    """
    if request.method == "OPTIONS":
        return _cors_response({}, 204)

    if request.method != "POST":
        return _error_response("Method not allowed", 405)

    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return _error_response("JSON payload must be an object", 400)

    try:
        return _cors_response(handle_request(payload))
    except ValueError as exc:
        return _error_response(str(exc), 400)
    except InvalidSessionError as exc:
        logger.error("Feed session invalid: %s", exc)
        return _error_response(str(exc), 401)
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        return _error_response(str(exc), 500)
    except BatchError as exc:
        logger.error("Archive batch failed: %s", exc)
        return _error_response(str(exc), 500)
    except Exception as exc:
        logger.exception("Archive batch failed unexpectedly")
        return _error_response(f"Internal error: {exc}", 500)


def _cors_response(data: Dict[str, Any], status: int = 200) -> flask.Response:
    """Create CORS-enabled response."""
    response = flask.jsonify(data)
    response.status_code = status
    response.headers["Access-Control-Allow-Origin"] = "*"
    response.headers["Access-Control-Allow-Methods"] = "POST, OPTIONS"
    response.headers["Access-Control-Allow-Headers"] = "Content-Type"
    return response


def _error_response(message: str, status: int = 400) -> flask.Response:
    """Create error response."""
    return _cors_response({"status": "error", "error": message}, status)
