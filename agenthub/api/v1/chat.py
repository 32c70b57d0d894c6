"""Chat API endpoints."""

import json
from collections.abc import AsyncGenerator
from contextlib import aclosing
from typing import Any, Optional

from fastapi import APIRouter, Query, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from ...models.events import EventType, StreamEvent
from ...models.transcript import PersistedMessage, Role
from ...orchestrator import AgentType, ChatOrchestrator, TurnRequest
from ...services.conversation import ConversationService
from ...utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])


def get_orchestrator(request: Request) -> ChatOrchestrator:
    return request.app.state.orchestrator


def get_conversation_service(request: Request) -> ConversationService:
    return request.app.state.conversations


class CreateConversationRequest(BaseModel):
    agent_type: str = AgentType.DEFAULT.value
    title: Optional[str] = None


class UpdateConversationRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)


class ChatRequest(BaseModel):
    """Chat request model."""
    conversation_id: int
    message: str = Field(..., min_length=1, max_length=10000)


class ChatResponse(BaseModel):
    conversation_id: int
    reply: str
    tool_invocations: list[dict[str, Any]] = Field(default_factory=list)
    title: Optional[str] = None


def format_sse(event: StreamEvent) -> str:
    """Render one engine event as a Server-Sent Events frame."""
    return f"event: {event['type']}\ndata: {json.dumps(event, ensure_ascii=False)}\n\n"


async def _build_turn_request(
    orchestrator: ChatOrchestrator,
    conversations: ConversationService,
    conversation_id: int,
    message: str,
) -> TurnRequest:
    """Load the conversation and the history the engine needs to rehydrate.

    History is read before the user message is persisted, so it never
    contains the message of the turn being run.
    """
    conversation = await conversations.require_conversation(conversation_id)
    history: list[PersistedMessage] = []
    session = orchestrator.sessions.get(conversation_id)
    if session is None or not session.is_hydrated:
        history = await conversations.get_recent_messages(conversation_id)
    return TurnRequest(
        conversation_id=conversation_id,
        user_message=message,
        agent_type=conversation.agent_type,
        persisted_summary=conversation.context_summary,
        recent_messages=history,
    )


@router.post("/conversations")
async def create_conversation(body: CreateConversationRequest, request: Request) -> dict[str, Any]:
    conversation = await get_conversation_service(request).create_conversation(body.agent_type, body.title)
    return conversation.to_dict()


@router.get("/conversations")
async def list_conversations(
    request: Request,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    agent_type: Optional[str] = None,
) -> list[dict[str, Any]]:
    conversations = await get_conversation_service(request).list_conversations(
        limit=limit, agent_type=agent_type, offset=offset,
    )
    return [c.to_dict() for c in conversations]


@router.get("/conversations/{conversation_id}")
async def get_conversation(conversation_id: int, request: Request) -> dict[str, Any]:
    """Conversation detail with its messages."""
    conversation = await get_conversation_service(request).require_conversation(
        conversation_id, with_messages=True,
    )
    data = conversation.to_dict()
    data["messages"] = [m.to_dict() for m in conversation.messages]
    return data


@router.patch("/conversations/{conversation_id}")
async def update_conversation(
    conversation_id: int, body: UpdateConversationRequest, request: Request,
) -> dict[str, Any]:
    """Set a caller-supplied title."""
    conversation = await get_conversation_service(request).update_title(conversation_id, body.title)
    return conversation.to_dict()


@router.delete("/conversations/{conversation_id}")
async def delete_conversation(conversation_id: int, request: Request) -> dict[str, Any]:
    deleted = await get_conversation_service(request).delete_conversation(conversation_id)
    return {"deleted": deleted, "conversation_id": conversation_id}


@router.post("/agent", response_model=ChatResponse)
async def chat(body: ChatRequest, request: Request) -> ChatResponse:
    """Run one blocking turn and persist both messages."""
    orchestrator = get_orchestrator(request)
    conversations = get_conversation_service(request)

    turn = await _build_turn_request(orchestrator, conversations, body.conversation_id, body.message)
    result = await orchestrator.run_turn(turn)

    await conversations.add_message(body.conversation_id, Role.USER, body.message)
    metadata = {"tool_invocations": result.tool_invocations_as_dicts()} if result.tool_invocations else None
    await conversations.add_message(body.conversation_id, Role.ASSISTANT, result.reply, metadata)

    conversation = await conversations.get_conversation(body.conversation_id)
    return ChatResponse(
        conversation_id=body.conversation_id,
        reply=result.reply,
        tool_invocations=result.tool_invocations_as_dicts(),
        title=conversation.title if conversation else None,
    )


@router.post("/agent/stream")
async def chat_stream(body: ChatRequest, request: Request) -> StreamingResponse:
    """Run one turn as Server-Sent Events.

    Engine events map 1:1 to SSE frames (``event: <type>``). The user and
    assistant messages are persisted once the ``done`` event arrives; a
    turn that ends in ``error`` persists nothing.
    """
    orchestrator = get_orchestrator(request)
    conversations = get_conversation_service(request)
    turn = await _build_turn_request(orchestrator, conversations, body.conversation_id, body.message)

    async def generate() -> AsyncGenerator[str, None]:
        async with aclosing(orchestrator.run_turn_streaming(turn)) as events:
            async for event in events:
                if event["type"] == EventType.DONE.value:
                    await conversations.add_message(body.conversation_id, Role.USER, body.message)
                    invocations = event["tool_invocations"]
                    await conversations.add_message(
                        body.conversation_id,
                        Role.ASSISTANT,
                        event["reply"],
                        {"tool_invocations": invocations} if invocations else None,
                    )
                elif event["type"] == EventType.ERROR.value:
                    logger.warning(
                        "Streaming turn ended with error",
                        extra={"conversation_id": body.conversation_id, "code": event["code"]},
                    )
                yield format_sse(event)

    return StreamingResponse(
        generate(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.delete("/sessions/{conversation_id}")
async def clear_session(conversation_id: str, request: Request) -> dict[str, Any]:
    """Evict the resident session; the next turn rehydrates from the store."""
    cleared = get_orchestrator(request).clear_session(conversation_id)
    return {"cleared": cleared, "conversation_id": conversation_id}


@router.delete("/sessions")
async def clear_all_sessions(request: Request) -> dict[str, Any]:
    return {"cleared": get_orchestrator(request).clear_all_sessions()}


class TitleRequest(BaseModel):
    user_message: str = Field(..., min_length=1)
    assistant_message: Optional[str] = None


@router.post("/conversations/{conversation_id}/title")
async def generate_title(conversation_id: int, body: TitleRequest, request: Request) -> dict[str, Any]:
    """Generate a title with the model and store it."""
    title = await get_orchestrator(request).generate_title(body.user_message, body.assistant_message)
    conversation = await get_conversation_service(request).update_title(conversation_id, title)
    return conversation.to_dict()
