"""Chat router: streaming two-phase completion endpoint."""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable

from fastapi import APIRouter, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import PlainTextResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from src.stream_orchestrator.adapter import CompletionStreamAdapter
from src.stream_orchestrator.cancellation import ActiveRequests
from src.stream_orchestrator.context import PromptOptions, build_context
from src.stream_orchestrator.db import ChatHistoryStore, get_user_preferences
from src.stream_orchestrator.models import UserPreferences
from src.stream_orchestrator.orchestrator import TwoPhaseOrchestrator
from src.stream_orchestrator.system_prompt_loader import get_default_system_prompt
from src.stream_orchestrator.tools import ToolRegistry, get_tools_for_user
from src.stream_orchestrator.wire import MEDIA_TYPE, encode_chunk

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])

_active_requests = ActiveRequests()


class ChatRequest(BaseModel):
    """Request body for POST /chat."""

    model_config = ConfigDict(populate_by_name=True)

    query: str = Field(..., description="User message")
    session_id: str | None = Field(None, alias="sessionId", description="Conversation to continue")
    user_identity: str | None = Field(None, alias="userIdentity", description="Stable user id")
    simpler_mode: bool = Field(False, alias="simplerMode")
    model: str | None = Field(
        None,
        description=(
            "LLM model in 'provider:model' format (e.g. 'groq:llama3-70b-8192', "
            "'gemini:gemini-2.5-flash'). Defaults to the server's configured model."
        ),
    )


# ---------------------------------------------------------------------------
# Dependencies (overridable in tests)
# ---------------------------------------------------------------------------


def get_active_requests() -> ActiveRequests:
    return _active_requests


def get_adapter_factory() -> Callable[[str | None], CompletionStreamAdapter]:
    return lambda model: CompletionStreamAdapter(model=model)


def get_history_factory() -> Callable[[str | None], ChatHistoryStore]:
    return ChatHistoryStore


def get_registry_factory() -> Callable[[str | None], ToolRegistry]:
    return get_tools_for_user


def get_preferences_loader() -> Callable[[str], UserPreferences | None]:
    return get_user_preferences


def get_persona() -> str:
    return get_default_system_prompt()


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> PlainTextResponse:
    """Malformed bodies are rejected before any stream starts."""
    logger.info("Rejected /chat body: %s", exc.errors())
    return PlainTextResponse("Invalid request body", status_code=400)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.post("/chat")
async def chat(
    body: ChatRequest,
    active: ActiveRequests = Depends(get_active_requests),
    adapter_factory: Callable[[str | None], CompletionStreamAdapter] = Depends(get_adapter_factory),
    history_factory: Callable[[str | None], ChatHistoryStore] = Depends(get_history_factory),
    registry_factory: Callable[[str | None], ToolRegistry] = Depends(get_registry_factory),
    load_preferences: Callable[[str], UserPreferences | None] = Depends(get_preferences_loader),
    persona: str = Depends(get_persona),
):
    """Stream the assistant's reply as newline-delimited chunk frames."""
    query = body.query.strip()
    if not query:
        return PlainTextResponse("Query is required", status_code=400)

    session_id = body.session_id or str(uuid.uuid4())
    store = history_factory(body.user_identity)
    history = await asyncio.to_thread(store.history, session_id)
    preferences = None
    if body.user_identity:
        preferences = await asyncio.to_thread(load_preferences, body.user_identity)
    context = build_context(
        persona,
        query,
        preferences=preferences,
        history=history,
        options=PromptOptions(simpler_mode=body.simpler_mode),
    )
    await asyncio.to_thread(store.save, "user", query, session_id)

    orchestrator = TwoPhaseOrchestrator(
        adapter_factory(body.model),
        registry_factory(body.user_identity),
        persistence=store,
    )

    async def frames():
        # Registered only once the body is iterated, so the finally below always releases it.
        handle = active.begin(session_id)
        logger.info("Streaming reply for session %s", session_id)
        finished = False
        try:
            async for chunk in orchestrator.run(context, handle, session_id):
                yield encode_chunk(chunk)
            finished = True
        finally:
            # Disconnects surface here as cancellation of this generator.
            if not finished:
                handle.cancel()
            active.release(handle)

    return StreamingResponse(
        frames(),
        media_type=MEDIA_TYPE,
        headers={"X-Session-Id": session_id},
    )


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}
