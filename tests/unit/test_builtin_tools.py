"""Unit tests for the builtin date/time, metaphysics and web search tools."""

from datetime import datetime
from unittest.mock import AsyncMock

import pytest

from agenthub.tools.builtin import (
    ChineseZodiacTool,
    FiveElementsTool,
    GanzhiYearTool,
    GetCurrentDateTimeTool,
    GetDayOfWeekTool,
    GetTodayTool,
    HoroscopeTool,
    LifePathNumberTool,
    LunarToSolarTool,
    SearchWebTool,
    SolarToLunarTool,
    TodayTaboosTool,
    get_metaphysics_tools,
)
from agenthub.tools.builtin.metaphysics import (
    constellation_of,
    ganzhi_of,
    life_path_number,
    lunar_month_name,
    zodiac_of,
)

from tests.conftest import FIXED_NOW


class TestDateTimeTools:
    """Tests for the clock-backed tools (2025-03-14 is a Friday)."""

    async def test_current_date_time(self) -> None:
        result = await GetCurrentDateTimeTool(lambda: FIXED_NOW).execute()

        assert result.output.startswith("当前时间: 2025年03月14日 09:30:00\n星期: 星期五")
        assert result.metadata["timestamp"] == int(FIXED_NOW.timestamp())

    async def test_today(self) -> None:
        result = await GetTodayTool(lambda: FIXED_NOW).execute()

        assert result.output == "2025年03月14日 星期五"

    async def test_day_of_week(self) -> None:
        result = await GetDayOfWeekTool(lambda: datetime(2025, 3, 16)).execute()

        assert result.output == "星期日"


class TestCalculations:
    """Tests for the pure calendar helpers."""

    @pytest.mark.parametrize("year,zodiac", [(1990, "马"), (2024, "龙"), (2000, "龙"), (1995, "猪")])
    def test_zodiac(self, year: int, zodiac: str) -> None:
        assert zodiac_of(year) == zodiac

    @pytest.mark.parametrize(
        "month,day,sign",
        [
            (1, 19, "摩羯座"),
            (1, 20, "水瓶座"),
            (3, 20, "双鱼座"),
            (3, 21, "白羊座"),
            (12, 21, "射手座"),
            (12, 22, "摩羯座"),
        ],
    )
    def test_constellation_cutoffs(self, month: int, day: int, sign: str) -> None:
        assert constellation_of(month, day) == sign

    @pytest.mark.parametrize("year,ganzhi", [(1984, "甲子"), (2024, "甲辰"), (2025, "乙巳")])
    def test_ganzhi(self, year: int, ganzhi: str) -> None:
        assert ganzhi_of(year) == ganzhi

    def test_life_path_reduces_digits(self) -> None:
        # 1+9+9+0 + 1 + 1+5 = 26 -> 8
        assert life_path_number(1990, 1, 15) == 8

    @pytest.mark.parametrize("date,number", [((1990, 3, 7), 11), ((1990, 1, 2), 22)])
    def test_life_path_keeps_master_numbers(self, date: tuple, number: int) -> None:
        assert life_path_number(*date) == number

    def test_leap_month_name(self) -> None:
        assert lunar_month_name(6, is_leap=True) == "闰六月"
        assert lunar_month_name(11) == "冬月"


class TestMetaphysicsTools:
    """Tests for the metaphysics tool outputs."""

    async def test_zodiac_tool(self) -> None:
        result = await ChineseZodiacTool().execute(year=1990)

        assert result.output == "1990年出生的人属马。"
        assert result.metadata == {"zodiac": "马"}

    async def test_ganzhi_tool(self) -> None:
        assert (await GanzhiYearTool().execute(year=2024)).output == "2024年是甲辰年。"

    async def test_five_elements(self) -> None:
        tool = FiveElementsTool()

        assert (await tool.execute(character=" 甲 ")).output == "甲属木"
        assert "未找到'X'" in (await tool.execute(character="X")).output

    async def test_life_path_tool(self) -> None:
        result = await LifePathNumberTool().execute(year=1990, month=3, day=7)

        assert "生命灵数是11" in result.output
        assert "大师数" in result.output

    async def test_solar_to_lunar(self) -> None:
        result = await SolarToLunarTool().execute(year=2024, month=2, day=10)

        assert result.success
        assert result.output == "公历2024年2月10日对应农历2024年正月初一(甲辰年)"
        assert result.metadata["is_leap_month"] is False

    async def test_invalid_solar_date(self) -> None:
        result = await SolarToLunarTool().execute(year=2024, month=2, day=30)

        assert result.success is False
        assert result.error.startswith("日期转换失败")

    async def test_lunar_to_solar(self) -> None:
        result = await LunarToSolarTool().execute(lunar_year=2025, lunar_month=1, lunar_day=1)

        assert result.output == "农历2025年1月1日对应公历2025年1月29日(乙巳年)"
        assert result.metadata == {"solar_date": "2025-01-29"}

    async def test_taboos_delegate_to_almanac(self) -> None:
        almanac = AsyncMock()
        almanac.get_today_taboos.return_value = "宜: 出行\n忌: 动土"

        result = await TodayTaboosTool(almanac).execute()

        assert result.output == "宜: 出行\n忌: 动土"

    async def test_horoscope_delegates_with_type(self) -> None:
        horoscope = AsyncMock()
        horoscope.get_horoscope.return_value = "白羊座本周运势不错"

        result = await HoroscopeTool(horoscope).execute(constellation=" 白羊座 ", type="week")

        assert result.output == "白羊座本周运势不错"
        horoscope.get_horoscope.assert_awaited_once_with("白羊座", "week")

    def test_client_backed_tools_need_clients(self) -> None:
        names = [tool.name for tool in get_metaphysics_tools()]

        assert "get_today_taboos" not in names
        assert "get_horoscope" not in names
        assert "get_chinese_zodiac" in names


class TestSearchWebTool:
    """Tests for SearchWebTool."""

    @pytest.fixture
    def client(self) -> AsyncMock:
        client = AsyncMock()
        client.search.return_value = "1. 东莞楼市\n   摘要"
        return client

    def test_is_guarded(self, client: AsyncMock) -> None:
        assert SearchWebTool(client).guarded is True

    async def test_query_is_trimmed(self, client: AsyncMock) -> None:
        result = await SearchWebTool(client).execute(query="  东莞 楼市 ")

        assert result.output == "1. 东莞楼市\n   摘要"
        assert result.metadata == {"query": "东莞 楼市"}
        client.search.assert_awaited_once_with("东莞 楼市", 3)

    async def test_blank_query_rejected(self, client: AsyncMock) -> None:
        result = await SearchWebTool(client).execute(query="   ")

        assert result.success is False
        client.search.assert_not_awaited()
