"""Built-in tools for AgentHub.

- date/time: get_current_date_time, get_today, get_current_time, get_day_of_week
- metaphysics: zodiac, constellation, five elements, ganzhi, life path number,
  lunar/solar conversion, almanac taboos, horoscope
- search: search_web (guarded)
- real estate: search_property, get_price_trend, get_property_detail,
  recommend_property
"""

from .datetime_tools import (
    GetCurrentDateTimeTool,
    GetCurrentTimeTool,
    GetDayOfWeekTool,
    GetTodayTool,
    get_datetime_tools,
)
from .metaphysics import (
    ChineseZodiacTool,
    ConstellationTool,
    FiveElementsTool,
    GanzhiYearTool,
    HoroscopeTool,
    LifePathNumberTool,
    LunarToSolarTool,
    SolarToLunarTool,
    TodayTaboosTool,
    get_metaphysics_tools,
)
from .real_estate import (
    PriceTrendTool,
    PropertyDetailTool,
    RecommendPropertyTool,
    SearchPropertyTool,
    get_real_estate_tools,
)
from .web_search import SearchWebTool

DATETIME_TOOL_NAMES = (
    "get_current_date_time",
    "get_today",
    "get_current_time",
    "get_day_of_week",
)
SEARCH_TOOL_NAMES = ("search_web",)

__all__ = [
    "ChineseZodiacTool",
    "ConstellationTool",
    "DATETIME_TOOL_NAMES",
    "FiveElementsTool",
    "GanzhiYearTool",
    "GetCurrentDateTimeTool",
    "GetCurrentTimeTool",
    "GetDayOfWeekTool",
    "GetTodayTool",
    "HoroscopeTool",
    "LifePathNumberTool",
    "LunarToSolarTool",
    "PriceTrendTool",
    "PropertyDetailTool",
    "RecommendPropertyTool",
    "SEARCH_TOOL_NAMES",
    "SearchPropertyTool",
    "SearchWebTool",
    "SolarToLunarTool",
    "TodayTaboosTool",
    "get_datetime_tools",
    "get_metaphysics_tools",
    "get_real_estate_tools",
]
