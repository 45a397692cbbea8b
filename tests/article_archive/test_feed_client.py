import json

import pytest
import requests

from src.functions.article_archive.core.config import WeChatCredentials
from src.functions.article_archive.core.errors import ErrorKind, FeedError, InvalidSessionError
from src.functions.article_archive.core.feed import PUBLISH_LIST_URL, WeChatFeedClient


def publish_payload(articles, total_count=None, ret=0, err_msg="ok"):
    """Build a raw publish-list response the way the endpoint nests JSON strings."""
    publish_list = [
        {"publish_type": 101, "publish_info": json.dumps({"type": 9, "appmsgex": [article]})}
        for article in articles
    ]
    page = {"total_count": len(articles) if total_count is None else total_count, "publish_list": publish_list}
    return {"base_resp": {"ret": ret, "err_msg": err_msg}, "publish_page": json.dumps(page)}


class _FakeResponse:
    def __init__(self, payload=None, status_code=200, text=None):
        self.payload = payload
        self.status_code = status_code
        self.text = text

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} error")

    def json(self):
        if self.text is not None:
            raise ValueError("not json")
        return self.payload


class _FakeSession:
    def __init__(self, response=None, error=None):
        self.headers = {}
        self.response = response
        self.error = error
        self.requests = []
        self.closed = False

    def get(self, url, params=None, timeout=None):
        self.requests.append((url, params, timeout))
        if self.error is not None:
            raise self.error
        return self.response

    def close(self):
        self.closed = True


CREDENTIALS = WeChatCredentials(biz_id="MzA5NjE2MTQ4MA==", token="123456", cookie="slave_sid=abc")


def test_parse_response_maps_articles():
    payload = publish_payload(
        [
            {
                "aid": 2247483650,
                "title": "DAO 周报",
                "author_name": "Alice",
                "link": "https://mp.weixin.qq.com/s/abc",
                "cover": "https://mmbiz.qpic.cn/c.png",
                "digest": "summary",
                "update_time": 1704096000,
                "appmsg_album_infos": [{"title": "周报"}, {"title": ""}],
                "extra_field": "ignored",
            }
        ],
        total_count=57,
    )

    page = WeChatFeedClient.parse_response(payload)

    assert page.total_count == 57
    [item] = page.items
    assert item.id == "2247483650"
    assert item.author == "Alice"
    assert item.publish_time == "2024-01-01 08:00:00"
    assert item.categories == ("周报",)


def test_invalid_session_ret_is_authentication_error():
    with pytest.raises(InvalidSessionError) as excinfo:
        WeChatFeedClient.parse_response(publish_payload([], ret=200003, err_msg="invalid session"))

    assert excinfo.value.kind is ErrorKind.AUTHENTICATION
    assert excinfo.value.fatal


def test_other_api_error_is_transient():
    with pytest.raises(FeedError) as excinfo:
        WeChatFeedClient.parse_response(publish_payload([], ret=200013, err_msg="freq control"))

    assert excinfo.value.ret == 200013
    assert not excinfo.value.fatal
    assert "freq control" in str(excinfo.value)


@pytest.mark.parametrize(
    "payload",
    [
        "not an object",
        {"base_resp": {"ret": 0}, "publish_page": "{broken"},
        {"base_resp": {"ret": 0}, "publish_page": json.dumps({"total_count": -5, "publish_list": []})},
        {"base_resp": {"ret": 0}, "publish_page": json.dumps({"publish_list": [{"publish_info": "{}x"}]})},
        {"publish_page": "{}"},
    ],
)
def test_malformed_payload_raises_feed_error(payload):
    with pytest.raises(FeedError):
        WeChatFeedClient.parse_response(payload)


def test_fetch_page_sends_session_parameters():
    session = _FakeSession(_FakeResponse(publish_payload([{"aid": "1_1", "title": "t"}])))
    client = WeChatFeedClient(CREDENTIALS, session=session)

    page = client.fetch_page(offset=40, count=20)

    url, params, timeout = session.requests[0]
    assert url == PUBLISH_LIST_URL
    assert params["begin"] == "40"
    assert params["count"] == "20"
    assert params["fakeid"] == CREDENTIALS.biz_id
    assert params["token"] == CREDENTIALS.token
    assert timeout == 10
    assert session.headers["Cookie"] == CREDENTIALS.cookie
    assert [item.id for item in page.items] == ["1_1"]


def test_transport_error_becomes_feed_error():
    session = _FakeSession(error=requests.exceptions.ConnectionError("reset"))
    client = WeChatFeedClient(CREDENTIALS, session=session)

    with pytest.raises(FeedError):
        client.fetch_page()


def test_non_json_body_becomes_feed_error():
    client = WeChatFeedClient(CREDENTIALS, session=_FakeSession(_FakeResponse(text="<html>login</html>")))

    with pytest.raises(FeedError):
        client.fetch_page()


def test_context_manager_closes_session():
    session = _FakeSession(_FakeResponse(publish_payload([])))

    with WeChatFeedClient(CREDENTIALS, session=session):
        pass

    assert session.closed


def test_credentials_from_env_require_all_values(monkeypatch):
    from src.shared.utils.config_validator import ConfigurationError

    monkeypatch.setenv("WECHAT_BIZ_ID", "biz")
    monkeypatch.setenv("WECHAT_TOKEN", "tok")
    monkeypatch.delenv("WECHAT_COOKIE", raising=False)

    with pytest.raises(ConfigurationError):
        WeChatCredentials.from_env()
