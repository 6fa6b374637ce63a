"""Chat entry point: decides whether a message should run a product search.

Reply generation is the client's job. This module only classifies the
message, shapes the search query with saved preferences and, for search
intents, runs the product pipeline.
"""

from __future__ import annotations

from typing import Any

import structlog

from dealwear.models.contracts import (
    AssistantAction,
    AssistantTurn,
    ChatMessage,
    Intent,
    IntentResult,
)
from dealwear.services.intent import IntentClassifier, extract_search_query, parse_search_query
from dealwear.services.pipeline import ProductSearchPipeline
from dealwear.services.preferences import PreferenceStore

log = structlog.get_logger("dealwear.assistant")

MIN_QUERY_LENGTH = 2
CLARIFICATION_PROMPT = "What are you looking for? Tell me the item, and a budget if you have one."

_ACTIONS: dict[Intent, AssistantAction] = {
    "product_search": "SEARCH_PRODUCT",
    "style_preference": "MEMORIZE_PREFERENCE",
    "question": "STYLE_ADVICE",
    "general": "GENERAL_CONVERSATION",
    "unknown": "GENERAL_CONVERSATION",
}


def _with_style(query: str, style: str | None) -> str:
    if not style or style.lower() in query.lower():
        return query
    return f"{style} {query}"


class ShoppingAssistant:
    def __init__(
        self,
        classifier: IntentClassifier,
        preferences: PreferenceStore,
        pipeline: ProductSearchPipeline,
        *,
        max_results: int = 15,
    ) -> None:
        self._classifier = classifier
        self._preferences = preferences
        self._pipeline = pipeline
        self._max_results = max_results

    async def handle_message(
        self,
        text: str,
        history: list[ChatMessage] | None = None,
    ) -> AssistantTurn:
        prefs = self._preferences.get()
        context = {"preferences": prefs, "history": [m.model_dump() for m in history or []]}
        result = await self._classifier.classify(text, context)
        action = _ACTIONS[result.intent]
        log.info("assistant_intent", intent=result.intent, action=action, confidence=result.confidence)

        if action != "SEARCH_PRODUCT":
            return AssistantTurn(
                action=action,
                intent=result.intent,
                confidence=result.confidence,
                parameters=result.extracted_data,
            )
        return await self._search(text, result, prefs.style)

    async def _search(self, text: str, result: IntentResult, saved_style: str | None) -> AssistantTurn:
        data: dict[str, Any] = result.extracted_data
        parsed = parse_search_query(str(data.get("search_query") or extract_search_query(text)))
        too_short = len(parsed.query.strip()) < MIN_QUERY_LENGTH
        style = None if data.get("style") else saved_style
        query = parsed.query if too_short else _with_style(parsed.query, style)

        turn = AssistantTurn(
            action="SEARCH_PRODUCT",
            intent=result.intent,
            confidence=result.confidence,
            query=query,
            min_price=_as_int(data.get("min_price", parsed.min_price)),
            max_price=_as_int(data.get("max_price", parsed.max_price)),
            currency=str(data.get("currency") or parsed.currency),
            parameters=data,
        )
        if too_short:
            return turn.model_copy(
                update={"needs_clarification": True, "clarification": CLARIFICATION_PROMPT}
            )

        resolved = await self._pipeline.resolve_products(query, self._max_results)
        return turn.model_copy(
            update={
                "products": resolved.products,
                "source": resolved.source,
                "cached": resolved.cached,
            }
        )


def _as_int(value: Any) -> int | None:
    if value is None:
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None
