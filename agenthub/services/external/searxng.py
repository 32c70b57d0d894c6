"""SearXNG web search client with caching, throttling and backoff."""

import asyncio
import time
from typing import Any, Optional

import httpx

from ...utils.logger import get_logger
from .cache import TTLCache

logger = get_logger(__name__)

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/132.0.0.0 Safari/537.36"
    ),
    "Accept": "application/json, text/html, application/xhtml+xml, */*",
    "Accept-Language": "zh-CN,zh;q=0.9,en;q=0.8",
}


class SearXNGSearchClient:
    """Client for a self-hosted SearXNG instance.

    - Results (including empty ones) are cached per ``(query, count)``.
    - Requests are spaced at least ``min_interval`` seconds apart.
    - Empty or failed searches add an exponential backoff delay
      (2s doubling up to 30s) that resets on the next successful search.

    Failures are reported as text rather than raised, so the model can see
    that search is unavailable and answer from what it already has.
    """

    INITIAL_BACKOFF = 2.0
    MAX_BACKOFF = 30.0

    def __init__(
        self,
        base_url: str,
        timeout: float = 15.0,
        min_interval: float = 2.5,
        cache_ttl_seconds: float = 1800,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.min_interval = min_interval
        self._client = client
        self._owns_client = client is None
        self._cache: TTLCache[str] = TTLCache(cache_ttl_seconds)
        self._throttle = asyncio.Lock()
        self._last_search_at = 0.0
        self._consecutive_failures = 0
        self.backoff_delay = 0.0

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                headers=BROWSER_HEADERS,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _wait_for_slot(self) -> None:
        async with self._throttle:
            wait = self.min_interval + self.backoff_delay - (time.monotonic() - self._last_search_at)
            if wait > 0:
                logger.debug(
                    "Search throttled",
                    extra={"delay_seconds": round(wait, 2), "backoff_seconds": self.backoff_delay},
                )
                await asyncio.sleep(wait)
            self._last_search_at = time.monotonic()

    def _record_outcome(self, failed: bool) -> None:
        if failed:
            self._consecutive_failures += 1
            if self._consecutive_failures == 1:
                self.backoff_delay = self.INITIAL_BACKOFF
            else:
                self.backoff_delay = min(self.backoff_delay * 2, self.MAX_BACKOFF)
            logger.warning(
                "Search backoff applied",
                extra={
                    "consecutive_failures": self._consecutive_failures,
                    "backoff_seconds": self.backoff_delay,
                },
            )
        else:
            if self._consecutive_failures:
                logger.info(
                    "Search recovered, backoff reset",
                    extra={"previous_failures": self._consecutive_failures},
                )
            self._consecutive_failures = 0
            self.backoff_delay = 0.0

    @staticmethod
    def format_results(query: str, results: list[dict[str, Any]], count: int) -> str:
        lines = [f"搜索「{query}」找到以下信息:", ""]
        index = 1
        for item in results:
            title = (item.get("title") or "").strip()
            url = (item.get("url") or "").strip()
            if not title or not url:
                continue
            lines.append(f"{index}. {title}")
            lines.append(f"   来源: {url}")
            content = (item.get("content") or "").strip()
            if content:
                lines.append(f"   摘要: {content}")
            lines.append("")
            index += 1
            if index > count:
                break
        return "\n".join(lines)

    async def search(self, query: str, count: int = 5) -> str:
        """Search and return formatted Chinese result text."""
        cache_key = f"{query}_{count}"
        cached = self._cache.get(cache_key)
        if cached is not None:
            logger.info("Search cache hit", extra={"query": query[:100]})
            return cached

        await self._wait_for_slot()
        logger.info("SearXNG search", extra={"query": query[:100], "count": count})

        try:
            response = await self._get_client().get(
                f"{self.base_url}/search",
                params={"q": query, "format": "json", "language": "zh"},
            )
        except httpx.HTTPError as e:
            logger.error("SearXNG unreachable", extra={"error": str(e), "error_type": type(e).__name__})
            self._record_outcome(failed=True)
            return "搜索服务暂不可用: 无法连接到SearXNG"

        if response.status_code != 200:
            logger.error("SearXNG search failed", extra={"status_code": response.status_code})
            self._record_outcome(failed=True)
            return f"搜索失败: {response.status_code}"

        try:
            payload = response.json()
        except ValueError as e:
            logger.error("SearXNG returned invalid JSON", extra={"error": str(e)})
            self._record_outcome(failed=True)
            return f"搜索时发生错误: {e}"

        results = payload.get("results") or []
        if not results:
            self._record_outcome(failed=True)
            logger.warning("Search returned no results", extra={"query": query[:100]})
            empty = f"未找到关于「{query}」的相关信息"
            self._cache.set(cache_key, empty)
            return empty

        self._record_outcome(failed=False)
        formatted = self.format_results(query, results, count)
        self._cache.set(cache_key, formatted)
        return formatted
