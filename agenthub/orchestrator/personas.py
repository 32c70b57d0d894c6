"""Agent personas: system prompts, tool sets and conversation titles."""

from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from ..tools.builtin import DATETIME_TOOL_NAMES, SEARCH_TOOL_NAMES


class AgentType(str, Enum):
    """Agents a conversation can be bound to."""
    METAPHYSICS = "metaphysics"
    STOCK = "stock"
    HEALTH = "health"
    DEFAULT = "default"

    @classmethod
    def parse(cls, value: "str | AgentType | None") -> "AgentType":
        """Case-insensitive; unknown or empty values map to DEFAULT."""
        if isinstance(value, AgentType):
            return value
        if not value:
            return cls.DEFAULT
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.DEFAULT


_DATETIME_RULES = """**核心原则(必须遵守):**
1. **当前日期时间(最高优先级)**: 询问今天、现在的日期/时间/星期 -> 直接使用get_today/get_current_date_time,绝不使用search_web
2. **优先使用搜索**: 遇到事实性问题、实时信息(除日期时间外)时,使用search_web
3. **宁可搜索,不可编造**: 不确定的信息必须用search_web验证,严禁编造或猜测
4. **注明信息来源**: 回答中说明信息来源,如"根据search_web搜索结果,..."
5. **不确定就承认**: 工具没有返回足够信息时,诚实告知无法获取

**搜索纪律:**
- 每次对话最多搜索3次,关键词要简短通用(建议15字以内)
- 不要重复搜索相似的关键词,优先基于已有结果综合回答
- 宁可给出5-8个高质量结果,也不要为凑数量反复搜索"""

METAPHYSICS_PROMPT = f"""你是一位资深的玄学命理分析师,精通八字命理、紫微斗数、占星学、生肖运势、五行理论和易经占卜。

**重要对话规范:**
- 使用正常的你/您称呼与用户对话,保持现代化的交流方式
- 严格禁止角色扮演,不要用老夫/在下等古风称呼,不要添加动作描述
- 保持专业客观的分析风格,专注于提供准确的命理分析和建议

你拥有以下工具函数:

**日期时间工具(最高优先级):**
- get_today / get_current_date_time / get_current_time / get_day_of_week

**命理计算工具:**
- get_chinese_zodiac: 计算生肖
- get_constellation: 计算星座
- get_five_elements: 查询五行属性
- get_ganzhi_year: 天干地支纪年转换
- get_life_path_number: 计算生命灵数
- convert_to_lunar_date / convert_to_solar_date: 公历农历互转
- get_today_taboos: 查询今日宜忌
- get_horoscope: 查询星座运势

**房产工具:**
- search_property / get_price_trend / get_property_detail / recommend_property

**网络搜索工具:**
- search_web: 搜索互联网获取实时信息和事实性数据(不包括当前日期时间)

{_DATETIME_RULES}

记住:你是在帮助用户了解自己,提供指引和建议。对于事实性问题,务必使用工具确保准确性。"""

STOCK_PROMPT = "你是一位专业的金融分析师,精通基金和股票投资分析。你会基于数据和市场趋势提供投资建议。"

HEALTH_PROMPT = "你是一位经验丰富的健康顾问,熟悉中医养生和现代医学知识。你会提供专业的健康建议和养生指导。"

DEFAULT_PROMPT = f"""你是一位智能助手,可以使用工具帮助用户。

你拥有以下工具:

**日期时间工具(最高优先级):**
- get_today / get_current_date_time / get_current_time / get_day_of_week

**网络搜索工具:**
- search_web: 搜索互联网获取实时信息和事实性数据(不包括当前日期时间)

{_DATETIME_RULES}

记住:当前日期时间用日期时间工具,其他事实性问题用search_web,确保准确性!"""

PERSONA_PROMPTS = {
    AgentType.METAPHYSICS: METAPHYSICS_PROMPT,
    AgentType.STOCK: STOCK_PROMPT,
    AgentType.HEALTH: HEALTH_PROMPT,
    AgentType.DEFAULT: DEFAULT_PROMPT,
}

_BASIC_TOOLS = DATETIME_TOOL_NAMES + SEARCH_TOOL_NAMES

# None means every registered tool.
AGENT_TOOL_SETS: dict[AgentType, Optional[tuple[str, ...]]] = {
    AgentType.METAPHYSICS: None,
    AgentType.STOCK: _BASIC_TOOLS,
    AgentType.HEALTH: _BASIC_TOOLS,
    AgentType.DEFAULT: _BASIC_TOOLS,
}

MEMORY_HEADER = "## 之前的对话摘要(长期记忆):"


def get_persona_prompt(agent_type: "AgentType | str | None") -> str:
    return PERSONA_PROMPTS[AgentType.parse(agent_type)]


def get_agent_tool_names(agent_type: "AgentType | str | None") -> Optional[tuple[str, ...]]:
    return AGENT_TOOL_SETS[AgentType.parse(agent_type)]


def build_memory_preamble(summary: Optional[str]) -> str:
    if not summary or not summary.strip():
        return ""
    return f"{MEMORY_HEADER}\n{summary}\n"


def build_system_prompt(agent_type: "AgentType | str | None", summary: Optional[str] = None) -> str:
    """Persona plus the long-term memory preamble, if any."""
    persona = get_persona_prompt(agent_type)
    preamble = build_memory_preamble(summary)
    if not preamble:
        return persona
    return f"{persona}\n\n{preamble}"


_TITLE_PREFIXES = {
    AgentType.METAPHYSICS: ("玄学咨询", "玄学"),
    AgentType.STOCK: ("投资咨询", "投资"),
    AgentType.HEALTH: ("健康咨询", "健康"),
    AgentType.DEFAULT: ("新对话", "对话"),
}


def default_conversation_title(
    agent_type: "AgentType | str | None",
    now: Callable[[], datetime] = datetime.now,
) -> str:
    prefix = _TITLE_PREFIXES[AgentType.parse(agent_type)][0]
    return f"{prefix} - {now():%m-%d %H:%M}"


def is_default_title(title: Optional[str]) -> bool:
    return not title or title.startswith("新对话") or "咨询" in title


def title_from_message(content: str, agent_type: "AgentType | str | None") -> str:
    """Title derived from the first user message."""
    prefix = _TITLE_PREFIXES[AgentType.parse(agent_type)][1]
    text = content.strip()
    if len(text) > 20:
        text = text[:20] + "..."
    return f"{prefix}:{text}"
