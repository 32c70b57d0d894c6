"""Transcript compaction and conversation summarization.

Two mechanisms bound memory:

- ``CompactionPolicy`` trims the resident transcript after each turn so it
  never holds more than the configured number of conversation messages.
- ``ConversationSummarizer`` condenses older persisted messages into the
  long-term summary that rehydration places in the system turn.
"""

from typing import Any, Optional, Sequence

from ..config.models import SummaryConfig
from ..models.transcript import PersistedMessage, Role, Transcript
from ..services.llm.gateway import GenerationMode
from ..utils.errors import SummarizationError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class CompactionPolicy:
    """Keeps the newest conversation messages of an overgrown transcript.

    When the transcript holds more than ``max_conversation_messages``
    conversation messages, everything before the earliest of the last
    ``retained_conversation_messages`` of them is dropped (the system turn
    stays). Tool traffic after that point is kept intact.
    """

    def __init__(self, max_conversation_messages: int = 40, retained_conversation_messages: int = 40) -> None:
        if retained_conversation_messages > max_conversation_messages:
            raise ValueError("retained_conversation_messages must not exceed max_conversation_messages")
        if retained_conversation_messages < 1:
            raise ValueError("retained_conversation_messages must be positive")
        self.max_conversation_messages = max_conversation_messages
        self.retained_conversation_messages = retained_conversation_messages

    def needs_compaction(self, transcript: Transcript) -> bool:
        return transcript.conversation_message_count() > self.max_conversation_messages

    def compact(self, transcript: Transcript) -> bool:
        """Compact in place. Returns True if turns were removed."""
        if not self.needs_compaction(transcript):
            return False

        turns = transcript.turns
        positions = [i for i, turn in enumerate(turns) if i > 0 and turn.is_conversation_message]
        cut = positions[-self.retained_conversation_messages]
        before = len(turns)
        transcript.replace([turns[0]] + turns[cut:])

        logger.info(
            "Transcript compacted",
            extra={
                "turns_before": before,
                "turns_after": len(transcript),
                "conversation_messages": transcript.conversation_message_count(),
            },
        )
        return True


SUMMARY_PROMPT = """请将以下对话历史压缩成简洁的摘要,保留所有关键信息。

【最高优先级 - 必须保留的信息】
1. 用户的姓名、昵称、称呼
2. 具体的日期、时间(如生日、纪念日、约定时间等)
3. 地点、地名(如出生地、居住地、提到的城市等)
4. 具体数字、金额、数量
5. 重要的人名、关系(如家人、朋友的名字)

【次要优先级】
6. 用户的核心需求和关键问题
7. 已讨论的重要话题、AI给出的关键分析和结论
8. 用户的偏好以及对话中的决定

【对话历史】
{conversation}

【输出格式】
直接输出摘要文本(不要标题或前缀),像列举要点一样保留关键事实,而不是模糊的概述。
例如: '用户张三,1990年1月15日生于北京...' 而不是 '讨论了用户的个人信息...'
摘要控制在{max_chars}字以内,但关键事实信息绝不可遗漏。"""


def render_conversation(messages: Sequence[PersistedMessage]) -> str:
    lines = []
    for message in messages:
        speaker = "用户" if message.role == Role.USER else "助手"
        lines.append(f"{speaker}: {message.content}")
    return "\n".join(lines)


def fallback_summary(message_count: int) -> str:
    return f"之前讨论了{message_count}个话题。"


class ConversationSummarizer:
    """Summarizes persisted messages through the model gateway.

    ``summarize`` never raises: any failure is logged and replaced by a
    short fallback line so rehydration and refresh can always proceed.
    """

    def __init__(self, gateway: Any, config: Optional[SummaryConfig] = None, mode: Optional[GenerationMode] = None) -> None:
        self._gateway = gateway
        self.config = config or SummaryConfig()
        self._mode = mode or GenerationMode(temperature=0.3, max_tokens=600)

    def build_prompt(self, messages: Sequence[PersistedMessage]) -> str:
        return SUMMARY_PROMPT.format(
            conversation=render_conversation(messages),
            max_chars=self.config.max_chars,
        )

    async def generate(self, messages: Sequence[PersistedMessage]) -> str:
        """Ask the model for a summary.

        Raises:
            SummarizationError: The model call failed or returned nothing
        """
        try:
            reply = await self._gateway.complete(
                [{"role": "user", "content": self.build_prompt(messages)}],
                mode=self._mode,
            )
        except Exception as e:
            raise SummarizationError(f"Summary generation failed: {e}") from e
        summary = (reply.content or "").strip()
        if not summary:
            raise SummarizationError("Model returned an empty summary")
        return summary

    async def summarize(self, messages: Sequence[PersistedMessage], agent_type: Any = None) -> str:
        if not messages:
            return ""
        try:
            summary = await self.generate(messages)
        except SummarizationError as e:
            logger.error(
                "Conversation summarization failed, using fallback",
                extra={
                    "message_count": len(messages),
                    "agent_type": str(getattr(agent_type, "value", agent_type)),
                    "error": str(e),
                    "code": e.code.value,
                    "cause": type(e.__cause__).__name__ if e.__cause__ else None,
                },
            )
            return fallback_summary(len(messages))

        logger.info(
            "Conversation summary generated",
            extra={"message_count": len(messages), "summary_length": len(summary)},
        )
        return summary

    def should_refresh(self, persisted_message_count: int) -> bool:
        """Refresh at 12, 22, 32, ... persisted messages."""
        cfg = self.config
        return (
            persisted_message_count >= cfg.trigger_min_messages
            and persisted_message_count % cfg.trigger_interval == cfg.trigger_offset
        )

    def select_messages_for_refresh(self, messages: Sequence[PersistedMessage]) -> list[PersistedMessage]:
        keep = self.config.keep_recent_messages
        if len(messages) <= keep:
            return []
        return list(messages[:len(messages) - keep])
