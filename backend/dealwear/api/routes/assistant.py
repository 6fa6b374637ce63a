"""Chat and preference endpoints."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Body, Depends

from dealwear.api.dependencies import get_assistant, get_preferences
from dealwear.api.routes.search import QueryValidationError
from dealwear.models.contracts import AssistantTurn, ChatRequest, Preferences
from dealwear.services.assistant import ShoppingAssistant
from dealwear.services.preferences import PreferenceStore

logger = structlog.get_logger()

router = APIRouter(tags=["assistant"])

EMPTY_MESSAGE = "Message is required"


@router.post("/chat", response_model=AssistantTurn)
async def chat(
    body: ChatRequest,
    assistant: ShoppingAssistant = Depends(get_assistant),
) -> AssistantTurn:
    message = body.message.strip()
    if not message:
        raise QueryValidationError(EMPTY_MESSAGE)
    return await assistant.handle_message(message, body.history)


@router.get("/preferences", response_model=Preferences)
async def read_preferences(store: PreferenceStore = Depends(get_preferences)) -> Preferences:
    return store.get()


@router.patch("/preferences", response_model=Preferences)
async def update_preferences(
    partial: dict[str, Any] = Body(...),
    store: PreferenceStore = Depends(get_preferences),
) -> Preferences:
    updated = store.set(partial)
    logger.info("preferences_updated", fields=sorted(partial))
    return updated
