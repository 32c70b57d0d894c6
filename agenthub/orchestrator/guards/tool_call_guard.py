"""Tool-call guard for search-class tools.

Limits how often a conversation may search and blocks queries that repeat
an earlier one in different words. Rejections are not errors: the engine
hands the explanatory message back to the model as the tool's output.
"""

import re
import threading
import time
from dataclasses import dataclass
from typing import Iterable, Optional

from ...config.models import DEFAULT_STOP_WORDS, GuardConfig
from ...utils.errors import GuardRejection
from ...utils.logger import get_logger

logger = get_logger(__name__)

REASON_CAP_REACHED = "cap_reached"
REASON_DUPLICATE = "duplicate"
REASON_TOO_LONG = "too_long"
REASON_EMPTY = "empty"

_WHITESPACE = re.compile(r"\s+")
_ALNUM_RUN = re.compile(r"[a-z0-9]+")


def is_cjk(char: str) -> bool:
    code = ord(char)
    return (
        0x4E00 <= code <= 0x9FFF
        or 0x3400 <= code <= 0x4DBF
        or 0xF900 <= code <= 0xFAFF
        or 0x20000 <= code <= 0x2A6DF
    )


def normalize_query(query: str, stop_words: Iterable[str] = DEFAULT_STOP_WORDS) -> str:
    """Lower-case, blank out stop words and collapse whitespace."""
    text = query.lower()
    # Longest first so "有哪些" is not split by a shorter entry.
    for word in sorted(stop_words, key=len, reverse=True):
        if word:
            text = text.replace(word.lower(), " ")
    return _WHITESPACE.sub(" ", text).strip()


def query_tokens(normalized: str) -> set[str]:
    """Token set of a normalized query.

    Each whitespace-separated word contributes its CJK ideographs one by one
    and its alphanumeric runs as whole words, so word order and spacing
    inside Chinese phrases do not matter.
    """
    tokens: set[str] = set()
    for word in normalized.split():
        tokens.update(char for char in word if is_cjk(char))
        tokens.update(_ALNUM_RUN.findall(word))
    return tokens


def jaccard_similarity(a: str, b: str) -> float:
    """Token-set Jaccard similarity of two normalized queries."""
    if a == b:
        return 1.0
    tokens_a, tokens_b = query_tokens(a), query_tokens(b)
    union = tokens_a | tokens_b
    if not union:
        return 0.0
    return len(tokens_a & tokens_b) / len(union)


@dataclass(frozen=True)
class GuardDecision:
    """Outcome of a guard check.

    Attributes:
        allowed: Whether the tool may run
        reason: ``empty``, ``cap_reached``, ``duplicate`` or ``too_long``
        message: Chinese explanation used as the tool turn's content
        error: The rejection as an engine error, None when allowed
    """
    allowed: bool
    reason: Optional[str] = None
    message: str = ""
    error: Optional[GuardRejection] = None

    @classmethod
    def allow(cls) -> "GuardDecision":
        return cls(allowed=True)

    @classmethod
    def reject(cls, reason: str, message: str) -> "GuardDecision":
        return cls(allowed=False, reason=reason, message=message, error=GuardRejection(reason, message))


@dataclass(frozen=True)
class QueryRecord:
    normalized: str
    timestamp: float


class ToolCallGuard:
    """Per-conversation search budget and near-duplicate filter.

    A query that is blank after normalization is refused without touching
    the history. Otherwise checks run in order: cap, near-duplicate, length.
    An allowed query is recorded before the decision is returned, so the
    budget is consumed even if the search itself later fails.

    Token sets split Chinese text into single characters, so queries that
    differ in one or two characters ("上海浦东新区房价" and
    "上海浦东新区房租") count as near-duplicates.

    Example:
        guard = ToolCallGuard(GuardConfig())
        decision = guard.check_and_record("42", "东莞 在售楼盘")
        if not decision.allowed:
            content = decision.message
    """

    def __init__(self, config: Optional[GuardConfig] = None, clock=time.time) -> None:
        self.config = config or GuardConfig()
        self._clock = clock
        self._history: dict[str, list[QueryRecord]] = {}
        self._lock = threading.Lock()

    def normalize(self, query: str) -> str:
        return normalize_query(query, self.config.stop_words)

    def check_and_record(self, conversation_id: str | int, query: str) -> GuardDecision:
        key = str(conversation_id)
        cap = self.config.max_searches_per_conversation
        normalized = self.normalize(query)

        if not normalized:
            logger.warning("Blank search query, rejecting", extra={"conversation_id": key, "query": query})
            return GuardDecision.reject(
                REASON_EMPTY,
                "⚠️ 搜索词为空。请提供具体的搜索关键词，例如：'东莞 在售楼盘'。",
            )

        with self._lock:
            history = self._history.setdefault(key, [])

            if len(history) >= cap:
                logger.warning(
                    "Search cap reached, rejecting query",
                    extra={"conversation_id": key, "query": query, "cap": cap},
                )
                return GuardDecision.reject(
                    REASON_CAP_REACHED,
                    f"⚠️ 已达到本次对话的搜索次数上限（{cap}次）。请基于已有信息回答，或建议用户线下咨询。",
                )

            for record in history:
                similarity = jaccard_similarity(normalized, record.normalized)
                if similarity > self.config.similarity_threshold:
                    logger.warning(
                        "Similar query detected, rejecting",
                        extra={
                            "conversation_id": key,
                            "query": query,
                            "previous": record.normalized,
                            "similarity": round(similarity, 3),
                        },
                    )
                    return GuardDecision.reject(
                        REASON_DUPLICATE,
                        f"⚠️ 该查询与之前的搜索过于相似（'{record.normalized}'），请避免重复搜索。"
                        "建议：使用已有结果或调整搜索词。",
                    )

            if len(query) > self.config.max_query_length:
                logger.warning(
                    "Query too long, rejecting",
                    extra={"conversation_id": key, "query": query, "length": len(query)},
                )
                return GuardDecision.reject(
                    REASON_TOO_LONG,
                    f"⚠️ 搜索词过长（{len(query)}字符）。请使用更简短的关键词（建议15字以内），"
                    "例如：'东莞 房价 2025' 或 '东莞 在售楼盘'。",
                )

            history.append(QueryRecord(normalized=normalized, timestamp=self._clock()))
            used = len(history)

        logger.info(
            "Search allowed",
            extra={"conversation_id": key, "query": query, "used": used, "cap": cap},
        )
        return GuardDecision.allow()

    def history(self, conversation_id: str | int) -> list[str]:
        with self._lock:
            return [r.normalized for r in self._history.get(str(conversation_id), [])]

    def reset(self, conversation_id: str | int) -> None:
        with self._lock:
            self._history.pop(str(conversation_id), None)

    def reset_all(self) -> None:
        with self._lock:
            self._history.clear()
