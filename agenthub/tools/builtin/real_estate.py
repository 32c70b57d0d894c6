"""Real-estate tools: property search, price trends, details, recommendations."""

from typing import Any, Optional

from ...utils.logger import get_logger
from ..base import BaseTool, ToolParameter, ToolParameterType, ToolResult

logger = get_logger(__name__)


def _city_param(description: str = "城市名称，如：东莞、深圳、广州") -> ToolParameter:
    return ToolParameter(name="city", type=ToolParameterType.STRING, description=description)


def _optional_str(name: str, description: str) -> ToolParameter:
    return ToolParameter(
        name=name, type=ToolParameterType.STRING, description=description, required=False,
    )


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class _RealEstateTool(BaseTool):
    """Shared plumbing: every tool delegates to a ``RealEstateService``."""

    failure_prefix = "查询楼盘信息时出错"

    def __init__(self, service: Any) -> None:
        self._service = service

    async def _run(self, coro: Any) -> ToolResult:
        try:
            return ToolResult.ok(await coro)
        except Exception as e:
            logger.error(
                "Real estate lookup failed",
                extra={"tool_name": self.name, "error": str(e)},
            )
            return ToolResult.error_result(f"{self.failure_prefix}: {e}")


class SearchPropertyTool(_RealEstateTool):
    failure_prefix = "搜索楼盘失败"

    @property
    def name(self) -> str:
        return "search_property"

    @property
    def description(self) -> str:
        return "搜索指定城市的楼盘信息，可按价格筛选。适合用户问'有哪些楼盘'、'XX楼盘怎么样'等问题"

    @property
    def parameters(self) -> list[ToolParameter]:
        return [
            _city_param(),
            _optional_str("keyword", "关键词，如：楼盘名称、区域名。不确定可不填"),
            ToolParameter(
                name="min_price", type=ToolParameterType.INTEGER,
                description="最低价格（万元），如：100、200。不限可不填",
                required=False, min_value=0,
            ),
            ToolParameter(
                name="max_price", type=ToolParameterType.INTEGER,
                description="最高价格（万元），如：300、500。不限可不填",
                required=False, min_value=0,
            ),
        ]

    async def execute(
        self,
        city: str,
        keyword: Optional[str] = None,
        min_price: Optional[int] = None,
        max_price: Optional[int] = None,
    ) -> ToolResult:
        return await self._run(self._service.search_property(
            city.strip(), _blank_to_none(keyword), min_price, max_price,
        ))


class PriceTrendTool(_RealEstateTool):
    failure_prefix = "查询房价走势失败"

    @property
    def name(self) -> str:
        return "get_price_trend"

    @property
    def description(self) -> str:
        return "查询指定城市或区域的房价走势和趋势。适合用户问'房价怎么样'、'房价是涨还是跌'等问题"

    @property
    def parameters(self) -> list[ToolParameter]:
        return [
            _city_param("城市名称，如：东莞、北京"),
            _optional_str("district", "区域名称（可选），如：南城、松山湖"),
        ]

    async def execute(self, city: str, district: Optional[str] = None) -> ToolResult:
        return await self._run(self._service.get_price_trend(city.strip(), _blank_to_none(district)))


class PropertyDetailTool(_RealEstateTool):
    failure_prefix = "查询楼盘详情时出错"

    @property
    def name(self) -> str:
        return "get_property_detail"

    @property
    def description(self) -> str:
        return "查询具体楼盘的详细信息，包括均价、户型、地址等。适合用户问'XX楼盘的详细信息'"

    @property
    def parameters(self) -> list[ToolParameter]:
        return [
            ToolParameter(
                name="property_name", type=ToolParameterType.STRING,
                description="楼盘名称或ID，如：海逸豪庭、万科城",
            ),
        ]

    async def execute(self, property_name: str) -> ToolResult:
        return await self._run(self._service.get_property_detail(property_name.strip()))


class RecommendPropertyTool(_RealEstateTool):
    failure_prefix = "推荐楼盘时出错"

    @property
    def name(self) -> str:
        return "recommend_property"

    @property
    def description(self) -> str:
        return "根据预算、户型等需求推荐合适的楼盘。适合用户问'帮我推荐楼盘'、'XX万能买什么房'等问题"

    @property
    def parameters(self) -> list[ToolParameter]:
        return [
            _city_param("城市名称，如：东莞、深圳"),
            ToolParameter(
                name="budget", type=ToolParameterType.INTEGER,
                description="购房预算（万元），如：200、300", min_value=1,
            ),
            _optional_str("rooms", "期望户型（可选），如：2室、3室、3室2厅"),
            _optional_str("district", "意向区域（可选），如：南城、松山湖"),
        ]

    async def execute(
        self,
        city: str,
        budget: int,
        rooms: Optional[str] = None,
        district: Optional[str] = None,
    ) -> ToolResult:
        return await self._run(self._service.recommend_property(
            city.strip(), budget, _blank_to_none(rooms), _blank_to_none(district),
        ))


def get_real_estate_tools(service: Any) -> list[BaseTool]:
    return [
        SearchPropertyTool(service),
        PriceTrendTool(service),
        PropertyDetailTool(service),
        RecommendPropertyTool(service),
    ]
