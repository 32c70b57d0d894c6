"""Date and time tools.

The model has no clock of its own, so any question about "today" or "now"
has to go through one of these.
"""

from datetime import datetime
from typing import Callable

from ..base import BaseTool, ToolResult

WEEKDAY_NAMES = ["星期一", "星期二", "星期三", "星期四", "星期五", "星期六", "星期日"]


def chinese_weekday(moment: datetime) -> str:
    return WEEKDAY_NAMES[moment.weekday()]


class _ClockTool(BaseTool):
    """Shared clock injection so tests can pin ``now``."""

    def __init__(self, clock: Callable[[], datetime] = datetime.now) -> None:
        self._clock = clock


class GetCurrentDateTimeTool(_ClockTool):

    @property
    def name(self) -> str:
        return "get_current_date_time"

    @property
    def description(self) -> str:
        return "获取当前的日期和时间。当用户询问今天、现在的日期、时间、星期时使用此函数"

    async def execute(self) -> ToolResult:
        now = self._clock()
        output = (
            f"当前时间: {now:%Y年%m月%d日 %H:%M:%S}\n"
            f"星期: {chinese_weekday(now)}\n"
            "农历信息: 请使用convert_to_lunar_date函数获取详细农历信息"
        )
        return ToolResult.ok(output, timestamp=int(now.timestamp()))


class GetTodayTool(_ClockTool):

    @property
    def name(self) -> str:
        return "get_today"

    @property
    def description(self) -> str:
        return "获取今天的日期（年月日）。当用户只询问日期时使用"

    async def execute(self) -> ToolResult:
        now = self._clock()
        return ToolResult.ok(f"{now:%Y年%m月%d日} {chinese_weekday(now)}")


class GetCurrentTimeTool(_ClockTool):

    @property
    def name(self) -> str:
        return "get_current_time"

    @property
    def description(self) -> str:
        return "获取当前时间（时分秒）"

    async def execute(self) -> ToolResult:
        return ToolResult.ok(self._clock().strftime("%H:%M:%S"))


class GetDayOfWeekTool(_ClockTool):

    @property
    def name(self) -> str:
        return "get_day_of_week"

    @property
    def description(self) -> str:
        return "获取今天是星期几"

    async def execute(self) -> ToolResult:
        return ToolResult.ok(chinese_weekday(self._clock()))


def get_datetime_tools(clock: Callable[[], datetime] = datetime.now) -> list[BaseTool]:
    return [
        GetCurrentDateTimeTool(clock),
        GetTodayTool(clock),
        GetCurrentTimeTool(clock),
        GetDayOfWeekTool(clock),
    ]
