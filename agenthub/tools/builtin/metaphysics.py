"""Metaphysics tools: zodiac, constellation, five elements, calendars.

The calculations are conventional lookups rather than astronomical ones;
lunar conversion is delegated to ``lunardate`` (valid for 1900-2099).
"""

from typing import Any, Protocol

from lunardate import LunarDate

from ...utils.logger import get_logger
from ..base import BaseTool, ToolParameter, ToolParameterType, ToolResult

logger = get_logger(__name__)

ZODIACS = ["猴", "鸡", "狗", "猪", "鼠", "牛", "虎", "兔", "龙", "蛇", "马", "羊"]

CONSTELLATIONS = [
    "摩羯座", "水瓶座", "双鱼座", "白羊座", "金牛座", "双子座",
    "巨蟹座", "狮子座", "处女座", "天秤座", "天蝎座", "射手座",
]
# First day of the next sign, per month
CONSTELLATION_CUTOFFS = [20, 19, 21, 20, 21, 22, 23, 23, 23, 24, 23, 22]

FIVE_ELEMENTS = {
    # 天干
    "甲": "木", "乙": "木",
    "丙": "火", "丁": "火",
    "戊": "土", "己": "土",
    "庚": "金", "辛": "金",
    "壬": "水", "癸": "水",
    # 地支
    "子": "水", "亥": "水",
    "寅": "木", "卯": "木",
    "巳": "火", "午": "火",
    "申": "金", "酉": "金",
    "辰": "土", "戌": "土", "丑": "土", "未": "土",
}

HEAVENLY_STEMS = ["庚", "辛", "壬", "癸", "甲", "乙", "丙", "丁", "戊", "己"]
EARTHLY_BRANCHES = ["申", "酉", "戌", "亥", "子", "丑", "寅", "卯", "辰", "巳", "午", "未"]

LIFE_PATH_DESCRIPTIONS = {
    1: "领导者,独立自主,开拓创新",
    2: "合作者,敏感细腻,善于协调",
    3: "创造者,乐观开朗,富有表达力",
    4: "建设者,务实稳重,注重细节",
    5: "自由者,灵活多变,喜欢冒险",
    6: "关怀者,责任心强,注重和谐",
    7: "探索者,深思熟虑,追求真理",
    8: "实干家,目标明确,追求成功",
    9: "人道主义者,慷慨大方,胸怀宽广",
    11: "大师数,直觉敏锐,精神导师",
    22: "大师数,伟大建设者,实现梦想",
    33: "大师数,大爱无疆,奉献精神",
}
MASTER_NUMBERS = (11, 22, 33)

LUNAR_MONTH_NAMES = [
    "正月", "二月", "三月", "四月", "五月", "六月",
    "七月", "八月", "九月", "十月", "冬月", "腊月",
]
LUNAR_DAY_NAMES = [
    "初一", "初二", "初三", "初四", "初五", "初六", "初七", "初八", "初九", "初十",
    "十一", "十二", "十三", "十四", "十五", "十六", "十七", "十八", "十九", "二十",
    "廿一", "廿二", "廿三", "廿四", "廿五", "廿六", "廿七", "廿八", "廿九", "三十",
]

HOROSCOPE_TYPES = ["today", "tomorrow", "week", "month", "year"]


def zodiac_of(year: int) -> str:
    return ZODIACS[year % 12]


def constellation_of(month: int, day: int) -> str:
    if day < CONSTELLATION_CUTOFFS[month - 1]:
        return CONSTELLATIONS[month - 1]
    return CONSTELLATIONS[month % 12]


def ganzhi_of(year: int) -> str:
    return HEAVENLY_STEMS[year % 10] + EARTHLY_BRANCHES[year % 12]


def _sum_digits(number: int) -> int:
    return sum(int(d) for d in str(abs(number)))


def life_path_number(year: int, month: int, day: int) -> int:
    """Reduce the digit sum of a birth date, keeping master numbers."""
    total = _sum_digits(year) + _sum_digits(month) + _sum_digits(day)
    while total > 9 and total not in MASTER_NUMBERS:
        total = _sum_digits(total)
    return total


def lunar_month_name(month: int, is_leap: bool = False) -> str:
    name = LUNAR_MONTH_NAMES[month - 1]
    return f"闰{name}" if is_leap else name


def lunar_day_name(day: int) -> str:
    return LUNAR_DAY_NAMES[day - 1]


class AlmanacSource(Protocol):
    async def get_today_taboos(self) -> str: ...


class HoroscopeSource(Protocol):
    async def get_horoscope(self, constellation: str, horoscope_type: str = "today") -> str: ...


def _year_param(description: str) -> ToolParameter:
    return ToolParameter(
        name="year",
        type=ToolParameterType.INTEGER,
        description=description,
        min_value=1,
        max_value=9999,
    )


def _month_param(name: str = "month", description: str = "月份(1-12)") -> ToolParameter:
    return ToolParameter(
        name=name, type=ToolParameterType.INTEGER, description=description,
        min_value=1, max_value=12,
    )


def _day_param(name: str = "day", description: str = "日期(1-31)", max_value: int = 31) -> ToolParameter:
    return ToolParameter(
        name=name, type=ToolParameterType.INTEGER, description=description,
        min_value=1, max_value=max_value,
    )


class ChineseZodiacTool(BaseTool):

    @property
    def name(self) -> str:
        return "get_chinese_zodiac"

    @property
    def description(self) -> str:
        return "根据出生年份计算生肖"

    @property
    def parameters(self) -> list[ToolParameter]:
        return [_year_param("出生年份,例如:1990")]

    async def execute(self, year: int) -> ToolResult:
        return ToolResult.ok(f"{year}年出生的人属{zodiac_of(year)}。", zodiac=zodiac_of(year))


class ConstellationTool(BaseTool):

    @property
    def name(self) -> str:
        return "get_constellation"

    @property
    def description(self) -> str:
        return "根据出生月日计算星座"

    @property
    def parameters(self) -> list[ToolParameter]:
        return [_month_param(description="出生月份(1-12)"), _day_param(description="出生日期(1-31)")]

    async def execute(self, month: int, day: int) -> ToolResult:
        sign = constellation_of(month, day)
        return ToolResult.ok(f"{month}月{day}日出生的人是{sign}。", constellation=sign)


class FiveElementsTool(BaseTool):

    @property
    def name(self) -> str:
        return "get_five_elements"

    @property
    def description(self) -> str:
        return "查询天干地支对应的五行属性"

    @property
    def parameters(self) -> list[ToolParameter]:
        return [
            ToolParameter(
                name="character",
                type=ToolParameterType.STRING,
                description="天干地支字符,如:甲、子等",
            )
        ]

    async def execute(self, character: str) -> ToolResult:
        character = character.strip()
        element = FIVE_ELEMENTS.get(character)
        if element is None:
            return ToolResult.ok(f"未找到'{character}'对应的五行属性。请确认输入的是天干地支字符。")
        return ToolResult.ok(f"{character}属{element}", element=element)


class GanzhiYearTool(BaseTool):

    @property
    def name(self) -> str:
        return "get_ganzhi_year"

    @property
    def description(self) -> str:
        return "将公历年份转换为天干地支纪年"

    @property
    def parameters(self) -> list[ToolParameter]:
        return [_year_param("公历年份,例如:2024")]

    async def execute(self, year: int) -> ToolResult:
        return ToolResult.ok(f"{year}年是{ganzhi_of(year)}年。")


class LifePathNumberTool(BaseTool):

    @property
    def name(self) -> str:
        return "get_life_path_number"

    @property
    def description(self) -> str:
        return "根据出生日期计算生命灵数"

    @property
    def parameters(self) -> list[ToolParameter]:
        return [_year_param("出生年份"), _month_param(description="出生月份"), _day_param(description="出生日期")]

    async def execute(self, year: int, month: int, day: int) -> ToolResult:
        number = life_path_number(year, month, day)
        description = LIFE_PATH_DESCRIPTIONS.get(number, "未知")
        return ToolResult.ok(
            f"{year}年{month}月{day}日出生的生命灵数是{number},特质:{description}",
            life_path_number=number,
        )


class SolarToLunarTool(BaseTool):

    @property
    def name(self) -> str:
        return "convert_to_lunar_date"

    @property
    def description(self) -> str:
        return "将公历日期转换为农历日期"

    @property
    def parameters(self) -> list[ToolParameter]:
        return [
            _year_param("公历年份,例如:1995"),
            _month_param(description="公历月份(1-12)"),
            _day_param(description="公历日期(1-31)"),
        ]

    async def execute(self, year: int, month: int, day: int) -> ToolResult:
        try:
            lunar = LunarDate.fromSolarDate(year, month, day)
        except ValueError as e:
            logger.warning("Solar to lunar conversion failed", extra={"date": f"{year}-{month}-{day}", "error": str(e)})
            return ToolResult.error_result(f"日期转换失败:{e}。请确认输入的是有效的公历日期。")

        month_name = lunar_month_name(lunar.month, lunar.isLeapMonth)
        return ToolResult.ok(
            f"公历{year}年{month}月{day}日对应农历{lunar.year}年"
            f"{month_name}{lunar_day_name(lunar.day)}({ganzhi_of(lunar.year)}年)",
            lunar_year=lunar.year,
            lunar_month=lunar.month,
            lunar_day=lunar.day,
            is_leap_month=lunar.isLeapMonth,
        )


class LunarToSolarTool(BaseTool):

    @property
    def name(self) -> str:
        return "convert_to_solar_date"

    @property
    def description(self) -> str:
        return "将农历日期转换为公历日期"

    @property
    def parameters(self) -> list[ToolParameter]:
        return [
            ToolParameter(
                name="lunar_year", type=ToolParameterType.INTEGER,
                description="农历年份,例如:1995", min_value=1, max_value=9999,
            ),
            _month_param("lunar_month", "农历月份(1-12)"),
            _day_param("lunar_day", "农历日期(1-30)", max_value=30),
            ToolParameter(
                name="is_leap_month", type=ToolParameterType.BOOLEAN,
                description="是否为闰月,默认为false", required=False, default=False,
            ),
        ]

    async def execute(
        self,
        lunar_year: int,
        lunar_month: int,
        lunar_day: int,
        is_leap_month: bool = False,
    ) -> ToolResult:
        try:
            solar = LunarDate(lunar_year, lunar_month, lunar_day, is_leap_month).toSolarDate()
        except ValueError as e:
            logger.warning("Lunar to solar conversion failed", extra={"lunar_date": f"{lunar_year}-{lunar_month}-{lunar_day}", "error": str(e)})
            return ToolResult.error_result(f"日期转换失败:{e}。请确认输入的是有效的农历日期。")

        leap = "闰" if is_leap_month else ""
        return ToolResult.ok(
            f"农历{lunar_year}年{leap}{lunar_month}月{lunar_day}日对应公历"
            f"{solar.year}年{solar.month}月{solar.day}日({ganzhi_of(lunar_year)}年)",
            solar_date=solar.isoformat(),
        )


class TodayTaboosTool(BaseTool):
    """Today's almanac suitable/avoid list."""

    def __init__(self, almanac: AlmanacSource) -> None:
        self._almanac = almanac

    @property
    def name(self) -> str:
        return "get_today_taboos"

    @property
    def description(self) -> str:
        return "获取今日宜忌事项"

    async def execute(self) -> ToolResult:
        return ToolResult.ok(await self._almanac.get_today_taboos())


class HoroscopeTool(BaseTool):

    def __init__(self, horoscope: HoroscopeSource) -> None:
        self._horoscope = horoscope

    @property
    def name(self) -> str:
        return "get_horoscope"

    @property
    def description(self) -> str:
        return "查询星座运势，支持今日、明日、本周、本月、本年运势"

    @property
    def parameters(self) -> list[ToolParameter]:
        return [
            ToolParameter(
                name="constellation",
                type=ToolParameterType.STRING,
                description="星座名称，如：白羊座、金牛座、双子座、巨蟹座、狮子座、处女座、天秤座、天蝎座、射手座、摩羯座、水瓶座、双鱼座",
            ),
            ToolParameter(
                name="type",
                type=ToolParameterType.STRING,
                description="运势类型：today-今日，tomorrow-明日，week-本周，month-本月，year-本年，默认为today",
                required=False,
                default="today",
                enum=HOROSCOPE_TYPES,
            ),
        ]

    async def execute(self, constellation: str, type: str = "today") -> ToolResult:
        return ToolResult.ok(await self._horoscope.get_horoscope(constellation.strip(), type))


def get_metaphysics_tools(almanac: Any = None, horoscope: Any = None) -> list[BaseTool]:
    """Calculation tools plus the almanac/horoscope tools when clients are given."""
    tools: list[BaseTool] = [
        ChineseZodiacTool(),
        ConstellationTool(),
        FiveElementsTool(),
        GanzhiYearTool(),
        LifePathNumberTool(),
        SolarToLunarTool(),
        LunarToSolarTool(),
    ]
    if almanac is not None:
        tools.append(TodayTaboosTool(almanac))
    if horoscope is not None:
        tools.append(HoroscopeTool(horoscope))
    return tools
