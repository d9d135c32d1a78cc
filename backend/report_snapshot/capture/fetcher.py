"""
远程资源获取器 - 远程图片转data URI

职责：
1. 带超时获取远程图片
2. 编码为 data:<mime>;base64,...
3. 失败返回 skipped 结果（不抛异常）

测试要点：
- test_fetch_inlines: 成功内联
- test_fetch_http_error_skipped: HTTP错误跳过
- test_fetch_timeout_skipped: 超时跳过
"""

from __future__ import annotations

import base64
import logging

import requests

from ..config import FetchConfig
from ..interfaces import IResourceFetcher, ResourceFetchError
from ..models import FetchOutcome, FetchStatus

logger = logging.getLogger(__name__)

REMOTE_PREFIXES = ("http://", "https://", "//")


def is_remote(src: str | None) -> bool:
    """是否为网络地址"""
    return bool(src) and src.strip().lower().startswith(REMOTE_PREFIXES)


def to_data_uri(content: bytes, mime: str = "image/png") -> str:
    """字节编码为data URI"""
    return f"data:{mime};base64,{base64.b64encode(content).decode('ascii')}"


class ResourceFetcher(IResourceFetcher):
    """基于 requests 的远程资源获取器"""

    def __init__(
        self,
        config: FetchConfig | None = None,
        session: requests.Session | None = None,
    ):
        self.config = config or FetchConfig()
        self.session = session or requests.Session()
        self.session.headers.setdefault("User-Agent", self.config.user_agent)

    def fetch_data_uri(self, url: str, node_id: str = "") -> FetchOutcome:
        """获取并编码（失败记录原因后跳过）"""
        url = (url or "").strip()
        if not is_remote(url):
            return FetchOutcome(url=url, node_id=node_id, status=FetchStatus.PASSTHROUGH)

        try:
            content, mime = self._download(url)
        except requests.Timeout:
            reason = f"获取超时({self.config.timeout_sec}s)"
        except (requests.RequestException, ResourceFetchError) as e:
            reason = str(e) or type(e).__name__
        else:
            return FetchOutcome(
                url=url,
                node_id=node_id,
                status=FetchStatus.INLINED,
                data_uri=to_data_uri(content, mime),
            )

        logger.warning(f"远程图片内联失败，保留原地址: {url}: {reason}")
        return FetchOutcome(url=url, node_id=node_id, status=FetchStatus.SKIPPED, reason=reason)

    def _download(self, url: str) -> tuple[bytes, str]:
        if url.startswith("//"):
            url = "https:" + url

        resp = self.session.get(url, timeout=self.config.timeout_sec)
        if resp.status_code != 200:
            raise ResourceFetchError(f"HTTP {resp.status_code}")

        content = resp.content
        if not content:
            raise ResourceFetchError("响应为空")
        if len(content) > self.config.max_bytes:
            raise ResourceFetchError(f"资源过大: {len(content)} bytes")

        mime = resp.headers.get("Content-Type", "image/png").split(";")[0].strip()
        if not mime.startswith("image/"):
            mime = "image/png"
        return content, mime
