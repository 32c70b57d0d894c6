"""Web search tool backed by SearXNG."""

from typing import Protocol

from ...utils.logger import get_logger
from ..base import BaseTool, ToolParameter, ToolParameterType, ToolResult

logger = get_logger(__name__)


class SearchClient(Protocol):
    async def search(self, query: str, count: int = 5) -> str: ...


class SearchWebTool(BaseTool):
    """Search the web for up-to-date information.

    Guarded: the engine passes ``query`` through the tool-call guard before
    this tool runs, so the per-conversation cap and near-duplicate checks
    are not this tool's concern.
    """

    guarded = True

    def __init__(self, search_client: SearchClient) -> None:
        self._client = search_client

    @property
    def name(self) -> str:
        return "search_web"

    @property
    def description(self) -> str:
        return "搜索互联网获取最新信息。⚠️每次对话最多3次搜索，请精简关键词，避免重复相似查询"

    @property
    def parameters(self) -> list[ToolParameter]:
        return [
            ToolParameter(
                name="query",
                type=ToolParameterType.STRING,
                description="搜索关键词，务必简短通用",
            ),
            ToolParameter(
                name="count",
                type=ToolParameterType.INTEGER,
                description="返回的搜索结果数量，建议3-5条",
                required=False,
                default=3,
                min_value=1,
                max_value=10,
            ),
        ]

    async def execute(self, query: str, count: int = 3) -> ToolResult:
        query = query.strip()
        if not query:
            return ToolResult.error_result("搜索关键词不能为空")

        logger.info("Executing web search", extra={"query": query, "count": count})
        result = await self._client.search(query, count)
        return ToolResult.ok(result, query=query)
