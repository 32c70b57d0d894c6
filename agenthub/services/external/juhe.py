"""Juhe (聚合数据) almanac and horoscope clients.

Both clients degrade to deterministic, day-seeded content when the API key
is missing or the API fails, so the calling tool always has an answer.
"""

import random
from datetime import date
from typing import Any, Callable, Optional

import httpx

from ...utils.logger import get_logger

logger = get_logger(__name__)

SUITABLE_ACTIVITIES = [
    "嫁娶", "祭祀", "祈福", "求嗣", "出行", "解除", "伐木",
    "入宅", "移徙", "安床", "开市", "交易", "立券", "栽种",
]
AVOID_ACTIVITIES = [
    "动土", "破土", "掘井", "安葬", "修造", "上梁", "开池", "造船", "纳畜", "造畜椆栖",
]

HOROSCOPE_TYPE_TEXT = {
    "today": "今日",
    "tomorrow": "明日",
    "week": "本周",
    "month": "本月",
    "year": "本年",
}

RATINGS = ["★★★★★", "★★★★☆", "★★★☆☆", "★★★★☆", "★★★★★"]
LUCKY_COLORS = ["紫色", "蓝色", "绿色", "红色", "黄色", "橙色", "粉色"]
FALLBACK_SUMMARIES = [
    "今天是充满机遇的一天，保持积极的心态将会带来好运。",
    "注意与他人的沟通，耐心倾听会让你收获良多。",
    "财运不错，但要注意理性消费，避免冲动购物。",
    "工作中可能会遇到一些挑战，但你有能力克服。",
    "感情运势上扬，单身者有机会遇到心仪的对象。",
    "今天适合休息调整，给自己一些放松的时间。",
]


def _day_seed(day: date) -> int:
    return day.year * 10000 + day.month * 100 + day.day


class _JuheClient:
    """Shared HTTP plumbing for Juhe endpoints."""

    def __init__(
        self,
        api_key: Optional[str],
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._api_key = api_key
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None
        self._today = today

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout))
        return self._client

    async def _fetch(self, url: str, params: dict[str, Any]) -> Optional[dict[str, Any]]:
        """GET a Juhe endpoint; returns the decoded body or None on any failure."""
        try:
            response = await self._get_client().get(url, params={**params, "key": self._api_key})
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(
                "Juhe API call failed",
                extra={"url": url, "error": str(e), "error_type": type(e).__name__},
            )
            return None

        if payload.get("error_code") != 0:
            logger.warning(
                "Juhe API returned error",
                extra={"url": url, "error_code": payload.get("error_code"), "reason": payload.get("reason")},
            )
            return None
        return payload

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


class JuheCalendarClient(_JuheClient):
    """老黄历 API: today's suitable / avoid activities."""

    ENDPOINT = "http://v.juhe.cn/laohuangli/d"

    async def get_today_taboos(self) -> str:
        today = self._today()
        if not self.configured:
            logger.debug("Almanac API key not configured, using fallback")
            return self.fallback_taboos(today)

        payload = await self._fetch(self.ENDPOINT, {"date": today.isoformat()})
        result = (payload or {}).get("result")
        if not result:
            return self.fallback_taboos(today)

        yi = (result.get("yi") or "暂无").replace(" ", "、")
        ji = (result.get("ji") or "暂无").replace(" ", "、")
        return f"今日宜:{yi}\n今日忌:{ji}"

    @staticmethod
    def fallback_taboos(day: date) -> str:
        rng = random.Random(_day_seed(day))
        suitable = rng.sample(SUITABLE_ACTIVITIES, rng.randint(3, 5))
        avoid = rng.sample(AVOID_ACTIVITIES, rng.randint(2, 4))
        return f"今日宜:{'、'.join(suitable)}\n今日忌:{'、'.join(avoid)}"


class JuheHoroscopeClient(_JuheClient):
    """星座运势 API."""

    ENDPOINT = "http://web.juhe.cn:8080/constellation/getAll"

    async def get_horoscope(self, constellation: str, horoscope_type: str = "today") -> str:
        if not self.configured:
            logger.debug("Horoscope API key not configured, using fallback")
            return self.fallback_horoscope(constellation, horoscope_type, self._today())

        payload = await self._fetch(
            self.ENDPOINT, {"consName": constellation, "type": horoscope_type}
        )
        data = (payload or {}).get("data")
        if not data:
            return self.fallback_horoscope(constellation, horoscope_type, self._today())
        return self.format_horoscope(constellation, horoscope_type, data)

    @staticmethod
    def format_horoscope(constellation: str, horoscope_type: str, data: dict[str, Any]) -> str:
        def field(key: str, default: str = "未知") -> str:
            value = data.get(key)
            return str(value) if value not in (None, "") else default

        type_text = HOROSCOPE_TYPE_TEXT.get(horoscope_type, horoscope_type)
        lines = [
            f"【{constellation} {type_text}运势】",
            "",
            f"📅 日期: {field('date', 'N/A')}",
            f"💫 综合运势: {field('all')}",
            f"💼 工作运势: {field('work')}",
            f"💰 财富运势: {field('money')}",
            f"💑 爱情运势: {field('love')}",
            f"💪 健康运势: {field('health')}",
            "",
        ]
        if data.get("summary"):
            lines += ["📝 运势简评:", str(data["summary"]), ""]
        lines += [
            f"🎨 幸运颜色: {field('color')}",
            f"🔢 幸运数字: {field('number')}",
            f"🌟 速配星座: {field('QFriend')}",
        ]
        return "\n".join(lines)

    @staticmethod
    def fallback_horoscope(constellation: str, horoscope_type: str, day: date) -> str:
        # str hash() is salted per process; ord-sum keeps the seed stable
        rng = random.Random(_day_seed(day) + sum(ord(c) for c in constellation))
        type_text = HOROSCOPE_TYPE_TEXT.get(horoscope_type, horoscope_type)
        lines = [
            f"【{constellation} {type_text}运势】",
            "",
            f"📅 日期: {day:%Y年%m月%d日}",
            f"💫 综合运势: {rng.choice(RATINGS)}",
            f"💼 工作运势: {rng.choice(RATINGS)}",
            f"💰 财富运势: {rng.choice(RATINGS)}",
            f"💑 爱情运势: {rng.choice(RATINGS)}",
            f"💪 健康运势: {rng.choice(RATINGS)}",
            "",
            "📝 运势简评:",
            rng.choice(FALLBACK_SUMMARIES),
            "",
            f"🎨 幸运颜色: {rng.choice(LUCKY_COLORS)}",
            f"🔢 幸运数字: {rng.randint(1, 9)}",
            "🌟 友情提示: 本数据为系统生成，仅供参考",
        ]
        return "\n".join(lines)
