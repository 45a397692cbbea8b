import json

import flask
import pytest

from src.functions.article_archive.core.errors import InvalidSessionError
from src.functions.article_archive.functions import main as function_main


@pytest.fixture
def app(tmp_path, monkeypatch):
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    articles = [{"id": "x1", "title": "Only post", "publishTime": "2024-05-01 10:00:00"}]
    (data_dir / "archive.json").write_text(json.dumps({"articles": articles}), encoding="utf-8")
    monkeypatch.setenv("ARCHIVE_DATA_DIR", str(data_dir))
    monkeypatch.setenv("ARCHIVE_OUTPUT_DIR", str(tmp_path / "public"))
    return flask.Flask(__name__)


def _call(app, method="POST", payload=None):
    kwargs = {"method": method}
    if payload is not None:
        kwargs["json"] = payload
    with app.test_request_context("/", **kwargs):
        return function_main.archive_batch(flask.request)


def test_post_runs_one_batch(app, tmp_path):
    response = _call(app, payload={})

    assert response.status_code == 200
    body = response.get_json()
    assert body["status"] == "success"
    assert body["more_work_remains"] is False
    assert body["processed"] == 1
    assert response.headers["Access-Control-Allow-Origin"] == "*"
    assert (tmp_path / "public" / "index.html").exists()


def test_options_preflight(app):
    response = _call(app, method="OPTIONS")

    assert response.status_code == 204
    assert response.headers["Access-Control-Allow-Methods"] == "POST, OPTIONS"


def test_get_not_allowed(app):
    assert _call(app, method="GET").status_code == 405


def test_bad_ingest_mode_is_rejected(app):
    response = _call(app, payload={"ingest": "everything"})

    assert response.status_code == 400
    assert "ingest" in response.get_json()["error"]


def test_invalid_session_during_ingest_returns_401(app, monkeypatch):
    class _Client:
        def close(self):
            pass

    class _Ingestor:
        client = _Client()

        def fetch_new(self):
            raise InvalidSessionError()

    monkeypatch.setattr(function_main, "build_ingestor", lambda config: _Ingestor())

    response = _call(app, payload={"ingest": "new"})

    assert response.status_code == 401
    assert response.get_json()["status"] == "error"
