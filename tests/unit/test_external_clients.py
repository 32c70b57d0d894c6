"""Unit tests for the external API clients.

HTTP traffic goes through ``httpx.MockTransport``; nothing leaves the process.
"""

import json
from datetime import date
from unittest.mock import AsyncMock

import httpx
import pytest

from agenthub.services.external import (
    JuheCalendarClient,
    JuheHoroscopeClient,
    RealEstateService,
    SearXNGSearchClient,
    TTLCache,
)
from agenthub.services.external.real_estate import build_property_query, build_recommend_query
from agenthub.tools.builtin import RecommendPropertyTool, SearchPropertyTool

SEARCH_RESULTS = {
    "results": [
        {"title": "东莞楼市", "url": "https://a.example.com", "content": "松山湖新盘"},
        {"title": "", "url": "https://skip.example.com"},
        {"title": "南城房价", "url": "https://b.example.com", "content": ""},
        {"title": "第三条", "url": "https://c.example.com"},
    ]
}


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestTTLCache:
    """Tests for TTLCache."""

    def test_expiry(self) -> None:
        now = [100.0]
        cache: TTLCache[str] = TTLCache(10, clock=lambda: now[0])
        cache.set("k", "v")

        now[0] = 109.9
        assert cache.get("k") == "v"
        now[0] = 110.0
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_oldest_evicted_when_full(self) -> None:
        now = [0.0]
        cache: TTLCache[int] = TTLCache(60, max_entries=2, clock=lambda: now[0])
        for i, key in enumerate(("a", "b", "c")):
            now[0] = float(i)
            cache.set(key, i)

        assert cache.get("a") is None
        assert cache.get("c") == 2

    def test_zero_ttl_disables_cache(self) -> None:
        cache: TTLCache[str] = TTLCache(0)
        cache.set("k", "v")

        assert cache.get("k") is None


class TestSearXNGSearchClient:
    """Tests for SearXNGSearchClient."""

    async def test_results_formatted_and_cached(self) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json=SEARCH_RESULTS)

        client = SearXNGSearchClient("http://searxng.local/", min_interval=0, client=mock_client(handler))

        first = await client.search("东莞 楼市", 2)
        second = await client.search("东莞 楼市", 2)

        assert first == second
        assert len(requests) == 1
        assert requests[0].url.path == "/search"
        assert requests[0].url.params["q"] == "东莞 楼市"
        assert requests[0].url.params["format"] == "json"
        assert first.splitlines() == [
            "搜索「东莞 楼市」找到以下信息:",
            "",
            "1. 东莞楼市",
            "   来源: https://a.example.com",
            "   摘要: 松山湖新盘",
            "",
            "2. 南城房价",
            "   来源: https://b.example.com",
        ]

    async def test_http_error_reported_as_text(self) -> None:
        client = SearXNGSearchClient(
            "http://searxng.local",
            min_interval=0,
            client=mock_client(lambda request: httpx.Response(502)),
        )

        assert await client.search("东莞", 3) == "搜索失败: 502"
        assert client.backoff_delay == SearXNGSearchClient.INITIAL_BACKOFF

    async def test_unreachable_reported_as_text(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client = SearXNGSearchClient("http://searxng.local", min_interval=0, client=mock_client(handler))

        assert await client.search("东莞", 3) == "搜索服务暂不可用: 无法连接到SearXNG"

    async def test_empty_results_are_cached(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json={"results": []})

        client = SearXNGSearchClient("http://searxng.local", min_interval=0, client=mock_client(handler))

        assert await client.search("不存在的东西", 3) == "未找到关于「不存在的东西」的相关信息"
        assert await client.search("不存在的东西", 3) == "未找到关于「不存在的东西」的相关信息"
        assert len(calls) == 1

    def test_backoff_doubles_and_resets(self) -> None:
        client = SearXNGSearchClient("http://searxng.local")

        delays = []
        for _ in range(6):
            client._record_outcome(failed=True)
            delays.append(client.backoff_delay)
        assert delays == [2.0, 4.0, 8.0, 16.0, 30.0, 30.0]

        client._record_outcome(failed=False)
        assert client.backoff_delay == 0.0

    async def test_close_leaves_injected_client_open(self) -> None:
        http = mock_client(lambda request: httpx.Response(200, json=SEARCH_RESULTS))
        client = SearXNGSearchClient("http://searxng.local", client=http)

        await client.close()

        assert http.is_closed is False
        await http.aclose()


class TestJuheClients:
    """Tests for the almanac and horoscope clients."""

    TODAY = date(2025, 3, 14)

    async def test_almanac_from_api(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["date"] == "2025-03-14"
            assert request.url.params["key"] == "k"
            return httpx.Response(200, json={"error_code": 0, "result": {"yi": "祭祀 出行", "ji": "动土"}})

        client = JuheCalendarClient("k", client=mock_client(handler), today=lambda: self.TODAY)

        assert await client.get_today_taboos() == "今日宜:祭祀、出行\n今日忌:动土"

    async def test_almanac_without_key_is_deterministic(self) -> None:
        client = JuheCalendarClient(None, today=lambda: self.TODAY)

        first = await client.get_today_taboos()

        assert client.configured is False
        assert first == await client.get_today_taboos()
        assert first == JuheCalendarClient.fallback_taboos(self.TODAY)
        assert first.startswith("今日宜:")

    async def test_almanac_api_error_falls_back(self) -> None:
        client = JuheCalendarClient(
            "k",
            client=mock_client(lambda request: httpx.Response(200, json={"error_code": 10012, "reason": "超过每日可允许请求次数"})),
            today=lambda: self.TODAY,
        )

        assert await client.get_today_taboos() == JuheCalendarClient.fallback_taboos(self.TODAY)

    async def test_horoscope_from_api(self) -> None:
        data = {"date": "20250314", "all": "80%", "work": "70%", "money": "60%", "love": "90%",
                "health": "85%", "summary": "顺利", "color": "红色", "number": 7, "QFriend": "狮子座"}

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["consName"] == "白羊座"
            assert request.url.params["type"] == "week"
            return httpx.Response(200, content=json.dumps({"error_code": 0, "data": data}))

        client = JuheHoroscopeClient("k", client=mock_client(handler), today=lambda: self.TODAY)

        text = await client.get_horoscope("白羊座", "week")

        assert text.startswith("【白羊座 本周运势】")
        assert "💫 综合运势: 80%" in text
        assert "📝 运势简评:\n顺利" in text
        assert "🌟 速配星座: 狮子座" in text

    async def test_horoscope_fallback_seeded_by_sign(self) -> None:
        aries = JuheHoroscopeClient.fallback_horoscope("白羊座", "today", self.TODAY)

        assert aries == JuheHoroscopeClient.fallback_horoscope("白羊座", "today", self.TODAY)
        assert aries.startswith("【白羊座 今日运势】")
        assert "📅 日期: 2025年03月14日" in aries
        assert aries.endswith("本数据为系统生成，仅供参考")


class TestRealEstate:
    """Tests for RealEstateService and the real-estate tools."""

    @pytest.fixture
    def search(self) -> AsyncMock:
        search = AsyncMock()
        search.search.return_value = "1. 万科城"
        return search

    def test_query_builders(self) -> None:
        assert build_property_query("东莞", "松山湖", 200, 300) == "东莞 在售楼盘 2025 松山湖 200-300万"
        assert build_property_query("东莞", max_price=300) == "东莞 在售楼盘 2025 300万以下"
        assert build_recommend_query("东莞", 250, "3室", "南城") == "东莞 南城 在售楼盘 250万左右 3室 推荐"

    async def test_search_property_formatted_and_cached(self, search: AsyncMock) -> None:
        service = RealEstateService(search)

        first = await service.search_property("东莞", min_price=200)
        second = await service.search_property("东莞", min_price=200)

        assert first == second == "**东莞 楼盘搜索结果**\n价格区间：200万以上\n\n1. 万科城"
        search.search.assert_awaited_once_with("东莞 在售楼盘 2025 200万以上", 5)

    async def test_price_trend(self, search: AsyncMock) -> None:
        text = await RealEstateService(search).get_price_trend("东莞", "南城")

        assert text.startswith("**东莞南城房价趋势**")
        search.search.assert_awaited_once_with("东莞 南城 房价走势 2025", 3)

    async def test_recommend_tool(self, search: AsyncMock) -> None:
        tool = RecommendPropertyTool(RealEstateService(search))

        result = await tool.execute(city=" 东莞 ", budget=250, rooms="  ", district="松山湖")

        assert result.success
        assert "预算：250万元，区域：松山湖" in result.output
        search.search.assert_awaited_once_with("东莞 松山湖 在售楼盘 250万左右 推荐", 5)

    async def test_tool_reports_service_failure(self) -> None:
        service = AsyncMock()
        service.search_property.side_effect = RuntimeError("search down")

        result = await SearchPropertyTool(service).execute(city="东莞")

        assert result.success is False
        assert result.error == "搜索楼盘失败: search down"
