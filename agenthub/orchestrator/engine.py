"""Chat orchestration engine for AgentHub.

The ChatOrchestrator runs one user turn against a conversation:
- serializes turns per conversation (one asyncio lock each)
- rehydrates the transcript from the persisted summary and recent messages
- runs tool-call rounds through the tool registry and the tool-call guard
- compacts the transcript once the turn has an answer
- recovers once from a rejected tool-message sequence

Turns either complete and commit (user turn, tool traffic, answer) or leave
the resident transcript exactly as it was before the turn started.
"""

from collections.abc import AsyncIterator
from contextlib import aclosing
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from ..config.models import Config, GenerationConfig, GuardConfig, SessionConfig, SummaryConfig
from ..core.context import ContextSource, context_manager
from ..models.events import (
    StreamEvent,
    create_content_event,
    create_done_event,
    create_error_event,
    create_status_event,
    create_tool_call_end_event,
    create_tool_call_start_event,
)
from ..models.transcript import (
    PersistedMessage,
    Role,
    ToolInvocationRecord,
    Transcript,
    Turn,
    preview,
)
from ..services.llm.gateway import GenerationMode, ModelGateway, ModelReply, ToolCallRequest
from ..tools.manager import ToolManager
from ..utils.errors import AgentHubError, ErrorCode, UpstreamError
from ..utils.logger import get_logger
from .compaction import CompactionPolicy, ConversationSummarizer
from .guards import ToolCallGuard
from .personas import AgentType, build_system_prompt, get_agent_tool_names, get_persona_prompt
from .session_store import Session, SessionManager

logger = get_logger(__name__)

STATUS_THINKING = "正在思考..."

TITLE_PROMPT = """请根据以下对话内容生成一个简洁的标题（5-15个字）。
标题要求：
1. 简洁明了，概括对话主题
2. 不要使用标点符号
3. 直接输出标题，不要其他内容

用户问题：{user_message}"""

_TITLE_STRIP_CHARS = "\"'“”‘’「」《》。！？!?,，.、；;：: \n\t"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class TurnRequest:
    """Input of one turn.

    ``recent_messages`` are the persisted messages preceding this turn,
    oldest first; they are only read when the session is not resident.
    """
    conversation_id: str | int
    user_message: str
    agent_type: AgentType | str = AgentType.DEFAULT
    persisted_summary: Optional[str] = None
    recent_messages: Sequence[PersistedMessage] = ()


@dataclass
class TurnResult:
    reply: str
    tool_invocations: list[ToolInvocationRecord] = field(default_factory=list)

    def tool_invocations_as_dicts(self) -> list[dict[str, Any]]:
        return [record.to_dict() for record in self.tool_invocations]


@dataclass
class _StreamState:
    content_emitted: bool = False


class ChatOrchestrator:
    """Per-conversation turn engine.

    Example:
        orchestrator = ChatOrchestrator(gateway, tool_manager, config=config)
        result = await orchestrator.run_turn(TurnRequest(
            conversation_id=42, user_message="我是1990年出生的,属什么?",
            agent_type="metaphysics",
        ))

        async for event in orchestrator.run_turn_streaming(request):
            ...
    """

    def __init__(
        self,
        gateway: ModelGateway,
        tool_manager: ToolManager,
        session_manager: Optional[SessionManager] = None,
        guard: Optional[ToolCallGuard] = None,
        summarizer: Optional[ConversationSummarizer] = None,
        compaction: Optional[CompactionPolicy] = None,
        config: Optional[Config] = None,
    ) -> None:
        self.config = config
        session_cfg = config.session if config else SessionConfig()
        generation = config.generation if config else GenerationConfig()

        self.gateway = gateway
        self.tools = tool_manager
        self.sessions = session_manager or SessionManager()
        self.guard = guard or ToolCallGuard(config.guard if config else GuardConfig())
        self.summarizer = summarizer or ConversationSummarizer(
            gateway,
            config.summary if config else SummaryConfig(),
            GenerationMode(generation.summary_temperature, generation.summary_max_tokens),
        )
        self.compaction = compaction or CompactionPolicy(
            session_cfg.max_conversation_messages,
            session_cfg.retained_conversation_messages,
        )
        self.recent_message_count = session_cfg.recent_message_count
        self.max_tool_rounds = session_cfg.max_tool_rounds
        self.preview_length = session_cfg.tool_preview_length
        self._title_mode = GenerationMode(generation.title_temperature, generation.title_max_tokens)

        logger.info(
            "Chat orchestrator initialized",
            extra={
                "tools": len(self.tools.get_tool_names()),
                "max_tool_rounds": self.max_tool_rounds,
                "recent_message_count": self.recent_message_count,
            },
        )

    # ------------------------------------------------------------------
    # Blocking turns
    # ------------------------------------------------------------------

    async def run_turn(self, request: TurnRequest) -> TurnResult:
        """Run one turn and return the final answer.

        Raises:
            AgentHubError: If the user message is empty
            UpstreamError: If the model gateway fails (after the single
                recovery attempt for tool-sequence rejections)
        """
        self._validate(request)
        conversation_id = SessionManager.normalize_id(request.conversation_id)
        agent_type = AgentType.parse(request.agent_type)
        session = self.sessions.get_or_create(conversation_id)

        with context_manager.request(
            conversation_id=conversation_id,
            agent_type=agent_type.value,
            source=ContextSource.INTERNAL,
        ):
            async with session.lock:
                logger.info(
                    "Turn started",
                    extra={"resident": session.is_hydrated, "message_length": len(request.user_message)},
                )
                try:
                    result = await self._attempt_turn(session, request, agent_type)
                except UpstreamError as e:
                    if not e.is_tool_sequence_error:
                        self._log_upstream_failure(e, request, agent_type)
                        raise
                    self._start_recovery(session, request, agent_type, e)
                    try:
                        result = await self._attempt_turn(session, request, agent_type)
                    except UpstreamError as retry_error:
                        self._abandon_recovery(session, request, agent_type, retry_error)
                        raise

                logger.info(
                    "Turn completed",
                    extra={
                        "reply_length": len(result.reply),
                        "tool_calls": len(result.tool_invocations),
                    },
                )
                return result

    async def _attempt_turn(self, session: Session, request: TurnRequest, agent_type: AgentType) -> TurnResult:
        transcript = await self._ensure_transcript(session, request, agent_type)
        snapshot = len(transcript)
        transcript.append(Turn.user(request.user_message))
        records: list[ToolInvocationRecord] = []
        tools = self._tools_for(agent_type)

        try:
            for round_index in range(self.max_tool_rounds + 1):
                offered = self._offered_tools(tools, round_index)
                reply = await self.gateway.complete(transcript, tools=offered)
                if not (reply.is_tool_request and offered):
                    break
                self._append_tool_request(transcript, reply)
                for call in reply.tool_calls:
                    records.append(await self._execute_tool_call(
                        transcript, session.conversation_id, call, _utcnow(),
                    ))
        except BaseException:
            transcript.truncate(snapshot)
            raise

        self._commit_answer(transcript, reply.content)
        return TurnResult(reply=reply.content, tool_invocations=records)

    # ------------------------------------------------------------------
    # Streaming turns
    # ------------------------------------------------------------------

    async def run_turn_streaming(self, request: TurnRequest) -> AsyncIterator[StreamEvent]:
        """Run one turn as an event stream.

        Emits ``status``, then any number of ``content``, ``tool_call_start``
        and ``tool_call_end`` events, then exactly one ``done`` or ``error``.
        The conversation lock is held until the stream ends.
        """
        conversation_id = SessionManager.normalize_id(request.conversation_id)
        try:
            self._validate(request)
        except AgentHubError as e:
            yield create_error_event(e.message, e.code.value)
            return

        agent_type = AgentType.parse(request.agent_type)
        session = self.sessions.get_or_create(conversation_id)

        with context_manager.request(
            conversation_id=conversation_id,
            agent_type=agent_type.value,
            source=ContextSource.SSE,
        ):
            async with session.lock:
                logger.info(
                    "Streaming turn started",
                    extra={"resident": session.is_hydrated, "message_length": len(request.user_message)},
                )
                yield create_status_event(STATUS_THINKING, conversation_id)

                state = _StreamState()
                failure: Optional[UpstreamError] = None
                try:
                    attempt = self._attempt_turn_streaming(session, request, agent_type, state)
                    async with aclosing(attempt) as events:
                        async for event in events:
                            yield event
                    return
                except UpstreamError as e:
                    failure = e
                except Exception as e:
                    yield self._internal_error_event(e)
                    return

                if not failure.is_tool_sequence_error or state.content_emitted:
                    self._log_upstream_failure(failure, request, agent_type)
                    yield self._upstream_error_event(failure)
                    return

                self._start_recovery(session, request, agent_type, failure)
                try:
                    retry = self._attempt_turn_streaming(session, request, agent_type, _StreamState())
                    async with aclosing(retry) as events:
                        async for event in events:
                            yield event
                except UpstreamError as retry_error:
                    self._abandon_recovery(session, request, agent_type, retry_error)
                    yield self._upstream_error_event(retry_error)
                except Exception as e:
                    yield self._internal_error_event(e)

    async def _attempt_turn_streaming(
        self,
        session: Session,
        request: TurnRequest,
        agent_type: AgentType,
        state: _StreamState,
    ) -> AsyncIterator[StreamEvent]:
        transcript = await self._ensure_transcript(session, request, agent_type)
        snapshot = len(transcript)
        transcript.append(Turn.user(request.user_message))
        records: list[ToolInvocationRecord] = []
        tools = self._tools_for(agent_type)

        try:
            for round_index in range(self.max_tool_rounds + 1):
                offered = self._offered_tools(tools, round_index)
                reply: Optional[ModelReply] = None
                stream = self.gateway.complete_streaming(transcript, tools=offered)
                async with aclosing(stream) as chunks:
                    async for chunk in chunks:
                        if chunk.kind == "text_delta":
                            state.content_emitted = True
                            yield create_content_event(chunk.text)
                        else:
                            reply = chunk.reply
                if reply is None:
                    raise UpstreamError("Model stream ended without a completion", ErrorCode.MODEL_UNAVAILABLE)
                if not (reply.is_tool_request and offered):
                    break

                self._append_tool_request(transcript, reply)
                for call in reply.tool_calls:
                    started_at = _utcnow()
                    yield create_tool_call_start_event(call.name, call.arguments, call.id, started_at.isoformat())
                    record = await self._execute_tool_call(transcript, session.conversation_id, call, started_at)
                    records.append(record)
                    yield create_tool_call_end_event(
                        record.tool_name, record.tool_call_id, record.success, record.result_preview,
                    )
        except BaseException:
            transcript.truncate(snapshot)
            raise

        self._commit_answer(transcript, reply.content)
        logger.info(
            "Streaming turn completed",
            extra={"reply_length": len(reply.content), "tool_calls": len(records)},
        )
        yield create_done_event(reply.content, [r.to_dict() for r in records])

    # ------------------------------------------------------------------
    # Turn helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _validate(request: TurnRequest) -> None:
        if not request.user_message or not request.user_message.strip():
            raise AgentHubError("Message must not be empty", ErrorCode.MESSAGE_EMPTY)

    def _tools_for(self, agent_type: AgentType) -> list[dict[str, Any]]:
        return self.tools.get_openai_tools(get_agent_tool_names(agent_type))

    def _offered_tools(self, tools: list[dict[str, Any]], round_index: int) -> Optional[list[dict[str, Any]]]:
        """Tools for this round; the round after the cap gets none."""
        if not tools:
            return None
        if round_index >= self.max_tool_rounds:
            logger.warning(
                "Tool round cap reached, requesting a final answer",
                extra={"max_tool_rounds": self.max_tool_rounds},
            )
            return None
        return tools

    async def _ensure_transcript(self, session: Session, request: TurnRequest, agent_type: AgentType) -> Transcript:
        if session.transcript is None:
            session.transcript = await self._hydrate(request, agent_type)
        return session.transcript

    async def _hydrate(self, request: TurnRequest, agent_type: AgentType) -> Transcript:
        """Rebuild a transcript from persisted state."""
        history = [m for m in request.recent_messages if m.role in (Role.USER, Role.ASSISTANT)]
        keep = max(self.recent_message_count, 0)
        split = max(len(history) - keep, 0)
        older, recent = history[:split], history[split:]

        summary = request.persisted_summary if request.persisted_summary and request.persisted_summary.strip() else None
        summary_source = "persisted" if summary else "none"
        if summary is None and older:
            summary = await self.summarizer.summarize(older, agent_type)
            summary_source = "generated"

        transcript = Transcript(build_system_prompt(agent_type, summary))
        for message in recent:
            transcript.append(message.to_turn())

        logger.info(
            "Session rehydrated",
            extra={
                "summary_source": summary_source,
                "replayed_messages": len(recent),
                "summarized_messages": len(older) if summary_source == "generated" else 0,
            },
        )
        return transcript

    @staticmethod
    def _append_tool_request(transcript: Transcript, reply: ModelReply) -> None:
        transcript.append(Turn.assistant(reply.content, [call.to_openai() for call in reply.tool_calls]))
        logger.debug("Tool round", extra={"tool_calls": [call.name for call in reply.tool_calls]})

    async def _execute_tool_call(
        self,
        transcript: Transcript,
        conversation_id: str,
        call: ToolCallRequest,
        started_at: datetime,
    ) -> ToolInvocationRecord:
        """Run one requested tool and append its TOOL turn.

        Guard rejections and tool failures become the tool's content; they
        never abort the turn.
        """
        tool = self.tools.get_tool(call.name)
        if tool is not None and tool.guarded:
            decision = self.guard.check_and_record(conversation_id, str(call.arguments.get("query", "")))
            if not decision.allowed:
                logger.info(
                    "Guarded tool call rejected",
                    extra={"tool_name": call.name, "kind": decision.error.kind.value, **decision.error.details},
                )
                content, success = decision.message, False
            else:
                result = await self.tools.execute(call.name, call.arguments)
                content, success = result.to_content(), result.success
        else:
            result = await self.tools.execute(call.name, call.arguments)
            content, success = result.to_content(), result.success

        transcript.append(Turn.tool(call.name, call.id, content))
        return ToolInvocationRecord(
            tool_name=call.name,
            started_at=started_at,
            result_preview=preview(content, self.preview_length),
            success=success,
            tool_call_id=call.id,
        )

    def _commit_answer(self, transcript: Transcript, content: str) -> None:
        transcript.append(Turn.assistant(content))
        self.compaction.compact(transcript)

    # ------------------------------------------------------------------
    # Upstream recovery
    # ------------------------------------------------------------------

    def _start_recovery(
        self,
        session: Session,
        request: TurnRequest,
        agent_type: AgentType,
        error: UpstreamError,
    ) -> None:
        """Replace the rejected transcript with persona only; the retry adds the user turn."""
        logger.warning(
            "Tool message sequence rejected, rebuilding session and retrying once",
            extra={
                "agent_type": agent_type.value,
                "status_code": error.status_code,
                "error_code": error.code.value,
                "provider": error.provider,
                "user_message": preview(request.user_message, 100),
                "error": error.message[:300],
            },
        )
        self.sessions.discard_transcript(session.conversation_id)
        session.transcript = Transcript(get_persona_prompt(agent_type))

    def _abandon_recovery(
        self,
        session: Session,
        request: TurnRequest,
        agent_type: AgentType,
        error: UpstreamError,
    ) -> None:
        self._log_upstream_failure(error, request, agent_type, retried=True)
        # Next turn rehydrates from the store instead of the persona-only stub.
        self.sessions.discard_transcript(session.conversation_id)

    @staticmethod
    def _log_upstream_failure(
        error: UpstreamError,
        request: TurnRequest,
        agent_type: AgentType,
        retried: bool = False,
    ) -> None:
        logger.error(
            "Turn failed with upstream error",
            extra={
                "agent_type": agent_type.value,
                "status_code": error.status_code,
                "error_code": error.code.value,
                "provider": error.provider,
                "retried": retried,
                "user_message": preview(request.user_message, 100),
                "error": error.message[:300],
            },
        )

    @staticmethod
    def _upstream_error_event(error: UpstreamError) -> StreamEvent:
        return create_error_event(error.message, error.code.value, error.status_code)

    @staticmethod
    def _internal_error_event(error: Exception) -> StreamEvent:
        logger.error(
            "Streaming turn failed",
            extra={"error": str(error), "error_type": type(error).__name__},
        )
        return create_error_event(str(error), ErrorCode.INTERNAL.value)

    # ------------------------------------------------------------------
    # Session maintenance
    # ------------------------------------------------------------------

    async def summarize_messages(self, messages: Sequence[PersistedMessage], agent_type: AgentType | str) -> str:
        return await self.summarizer.summarize(messages, AgentType.parse(agent_type))

    def clear_session(self, conversation_id: str | int) -> bool:
        """Evict the resident transcript and lock and reset the search budget."""
        self.guard.reset(conversation_id)
        return self.sessions.clear(conversation_id)

    def clear_all_sessions(self) -> int:
        self.guard.reset_all()
        return self.sessions.clear_all()

    async def generate_title(self, user_message: str, assistant_message: Optional[str] = None) -> str:
        """Short conversation title; falls back to the user message's head."""
        fallback = user_message.strip()[:20]
        prompt = TITLE_PROMPT.format(user_message=user_message)
        if assistant_message:
            prompt += f"\nAI回复：{assistant_message[:200]}"

        try:
            reply = await self.gateway.complete([{"role": "user", "content": prompt}], mode=self._title_mode)
        except Exception as e:
            logger.error("Title generation failed", extra={"error": str(e), "error_type": type(e).__name__})
            return fallback

        title = reply.content.strip().strip(_TITLE_STRIP_CHARS)[:30]
        if not title:
            return fallback
        logger.info("Title generated", extra={"title": title})
        return title
