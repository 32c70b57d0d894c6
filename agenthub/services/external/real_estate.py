"""Real-estate lookups composed over web search."""

from typing import Optional, Protocol

from ...utils.logger import get_logger
from .cache import TTLCache

logger = get_logger(__name__)

SEARCH_YEAR = "2025"


class SearchBackend(Protocol):
    async def search(self, query: str, count: int = 5) -> str: ...


def price_range_text(min_price: Optional[int], max_price: Optional[int]) -> Optional[str]:
    if min_price is not None and max_price is not None:
        return f"{min_price}-{max_price}万"
    if min_price is not None:
        return f"{min_price}万以上"
    if max_price is not None:
        return f"{max_price}万以下"
    return None


def build_property_query(
    city: str,
    keyword: Optional[str] = None,
    min_price: Optional[int] = None,
    max_price: Optional[int] = None,
) -> str:
    parts = [city, "在售楼盘", SEARCH_YEAR]
    if keyword:
        parts.append(keyword)
    price = price_range_text(min_price, max_price)
    if price:
        parts.append(price)
    return " ".join(parts)


def build_recommend_query(
    city: str,
    budget: int,
    rooms: Optional[str] = None,
    district: Optional[str] = None,
) -> str:
    parts = [city]
    if district:
        parts.append(district)
    parts += ["在售楼盘", f"{budget}万左右"]
    if rooms:
        parts.append(rooms)
    parts.append("推荐")
    return " ".join(parts)


class RealEstateService:
    """Property search, price trends, details and recommendations.

    Every lookup is a web search with a domain-specific query; formatted
    results are cached (recommendations for a shorter time).
    """

    def __init__(
        self,
        search: SearchBackend,
        cache_ttl_seconds: float = 6 * 3600,
        recommend_ttl_seconds: float = 2 * 3600,
    ) -> None:
        self._search = search
        self._cache: TTLCache[str] = TTLCache(cache_ttl_seconds)
        self._recommend_cache: TTLCache[str] = TTLCache(recommend_ttl_seconds)

    async def _cached_search(
        self, cache: TTLCache[str], cache_key: str, query: str, count: int
    ) -> tuple[str, bool]:
        cached = cache.get(cache_key)
        if cached is not None:
            logger.debug("Real estate cache hit", extra={"cache_key": cache_key})
            return cached, True
        logger.info("Real estate search", extra={"query": query})
        return await self._search.search(query, count), False

    async def search_property(
        self,
        city: str,
        keyword: Optional[str] = None,
        min_price: Optional[int] = None,
        max_price: Optional[int] = None,
        limit: int = 10,
    ) -> str:
        cache_key = f"{city}_{keyword}_{min_price}_{max_price}"
        query = build_property_query(city, keyword, min_price, max_price)
        result, hit = await self._cached_search(self._cache, cache_key, query, min(limit, 5))
        if hit:
            return result

        header = f"**{city} 楼盘搜索结果**\n"
        price = price_range_text(min_price, max_price)
        header += f"价格区间：{price}\n\n" if price else "\n"
        formatted = header + result
        self._cache.set(cache_key, formatted)
        return formatted

    async def get_price_trend(self, city: str, district: Optional[str] = None) -> str:
        cache_key = f"trend_{city}_{district}"
        location = f"{city} {district}" if district else city
        query = f"{location} 房价走势 {SEARCH_YEAR}"
        result, hit = await self._cached_search(self._cache, cache_key, query, 3)
        if hit:
            return result

        formatted = (
            f"**{city}{district or ''}房价趋势**\n\n{result}\n\n"
            "💡 提示：以上数据来自网络搜索，实际房价以楼盘最新报价为准。"
        )
        self._cache.set(cache_key, formatted)
        return formatted

    async def get_property_detail(self, property_name: str) -> str:
        cache_key = f"detail_{property_name}"
        query = f"{property_name} 楼盘详情 均价 户型 地址"
        result, hit = await self._cached_search(self._cache, cache_key, query, 5)
        if hit:
            return result

        formatted = f"**{property_name} 楼盘详情**\n\n{result}"
        self._cache.set(cache_key, formatted)
        return formatted

    async def recommend_property(
        self,
        city: str,
        budget: int,
        rooms: Optional[str] = None,
        district: Optional[str] = None,
    ) -> str:
        cache_key = f"recommend_{city}_{budget}_{rooms}_{district}"
        query = build_recommend_query(city, budget, rooms, district)
        result, hit = await self._cached_search(self._recommend_cache, cache_key, query, 5)
        if hit:
            return result

        requirements = f"预算：{budget}万元"
        if rooms:
            requirements += f"，户型：{rooms}"
        if district:
            requirements += f"，区域：{district}"
        formatted = (
            f"**{city} 楼盘推荐**\n{requirements}\n\n{result}\n\n"
            "💡 建议：实地看房时可结合风水方位、楼层数字等玄学因素综合考虑。"
        )
        self._recommend_cache.set(cache_key, formatted)
        return formatted
