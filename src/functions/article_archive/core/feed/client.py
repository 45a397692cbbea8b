"""
HTTP client for the WeChat official-account publish list.

Wraps a ``requests`` session with transport-level retries and maps every
failure onto the typed ``CollaboratorError`` contract: an invalid session is
reported as ``InvalidSessionError`` (fatal), everything else as ``FeedError``
(transient).
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

import requests
from pydantic import ValidationError
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..config import WeChatCredentials
from ..contracts import ArticleItem, BaseResp, FeedPage, PublishInfo, PublishPage
from ..errors import INVALID_SESSION_RET, FeedError, InvalidSessionError

logger = logging.getLogger(__name__)

PUBLISH_LIST_URL = "https://mp.weixin.qq.com/cgi-bin/appmsgpublish"


class WeChatFeedClient:
    """
    Fetches pages of published articles.

    Configured with the browser-like headers the endpoint expects and a
    urllib3 retry policy for 429/5xx responses.
    """

    _DEFAULT_HEADERS = {
        "User-Agent": (
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
            "AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/121.0.0.0 Safari/537.36"
        ),
        "Referer": "https://mp.weixin.qq.com/",
        "Origin": "https://mp.weixin.qq.com",
        "Accept": "*/*",
        "Accept-Language": "zh-CN,zh;q=0.9,en;q=0.8",
    }

    def __init__(
        self,
        credentials: WeChatCredentials,
        *,
        session: Optional[requests.Session] = None,
        timeout: int = 10,
        max_retries: int = 2,
    ):
        """
        Initialize feed client.

        Args:
            credentials: Session credentials (fakeid, token, cookie)
            session: Optional pre-built session (tests inject fakes here)
            timeout: Request timeout in seconds
            max_retries: Transport-level retries for 429/5xx responses
        """
        self.credentials = credentials
        self.timeout = timeout

        if session is None:
            session = requests.Session()
            retry_strategy = Retry(
                total=max_retries,
                backoff_factor=1,
                status_forcelist=[429, 500, 502, 503, 504],
                allowed_methods=["GET"],
            )
            adapter = HTTPAdapter(max_retries=retry_strategy)
            session.mount("http://", adapter)
            session.mount("https://", adapter)

        self.session = session
        self.session.headers.update(self._DEFAULT_HEADERS)
        self.session.headers["Cookie"] = credentials.cookie

    def _params(self, offset: int, count: int) -> Dict[str, str]:
        return {
            "sub": "list",
            "search_field": "null",
            "begin": str(offset),
            "count": str(count),
            "query": "",
            "fakeid": self.credentials.biz_id,
            "type": "101_1",
            "free_publish_type": "1",
            "sub_action": "list_ex",
            "token": self.credentials.token,
            "lang": "zh_CN",
            "f": "json",
            "ajax": "1",
        }

    def fetch_page(self, offset: int = 0, count: int = 20) -> FeedPage:
        """
        Fetch one page of the publish list.

        Args:
            offset: Index of the first publish entry
            count: Number of publish entries to request

        Returns:
            FeedPage with the feed's total_count and parsed articles

        Raises:
            InvalidSessionError: When the session is no longer valid
            FeedError: On HTTP errors, API errors or malformed payloads
        """
        logger.debug("Fetching publish list offset=%d count=%d", offset, count)
        try:
            response = self.session.get(PUBLISH_LIST_URL, params=self._params(offset, count), timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.exceptions.RequestException as exc:
            raise FeedError(f"Request failed for publish list offset {offset}: {exc}") from exc
        except ValueError as exc:
            raise FeedError(f"Publish list returned non-JSON body at offset {offset}") from exc

        return self.parse_response(payload)

    @staticmethod
    def parse_response(payload: Any) -> FeedPage:
        """
        Parse a raw publish-list response.

        Raises:
            InvalidSessionError: When ``base_resp.ret`` reports an invalid session
            FeedError: For any other non-zero ``ret`` or malformed payload
        """
        if not isinstance(payload, dict):
            raise FeedError("Publish list response is not a JSON object")

        try:
            base_resp = BaseResp.model_validate(payload.get("base_resp") or {"ret": -1, "err_msg": "missing base_resp"})
        except ValidationError as exc:
            raise FeedError(f"Malformed base_resp: {exc}") from exc

        if base_resp.ret == INVALID_SESSION_RET:
            logger.error("Session is invalid - authentication required")
            raise InvalidSessionError()
        if base_resp.ret != 0:
            raise FeedError(f"API error: {base_resp.err_msg or 'Unknown error'}", ret=base_resp.ret)

        try:
            page = PublishPage.model_validate(json.loads(payload.get("publish_page") or "{}"))
            items: List[ArticleItem] = []
            for entry in page.publish_list:
                info = PublishInfo.model_validate(json.loads(entry.publish_info))
                items.extend(msg.to_item() for msg in info.appmsgex)
        except (ValueError, ValidationError) as exc:
            raise FeedError(f"Malformed publish page: {exc}") from exc

        return FeedPage(total_count=page.total_count, items=items)

    def close(self) -> None:
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
