"""Tests for the shopping assistant entry point."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from conftest import make_product

from dealwear.models.contracts import IntentResult, Preferences, ResolvedProducts
from dealwear.services.assistant import ShoppingAssistant
from dealwear.services.intent import KeywordIntentClassifier
from dealwear.services.preferences import MemoryPreferenceStore

PRODUCTS = [make_product("Slim Fit Jeans", "499")]


def _pipeline(cached: bool = False) -> MagicMock:
    pipeline = MagicMock()
    pipeline.resolve_products = AsyncMock(
        return_value=ResolvedProducts(products=PRODUCTS, source="scraping", cached=cached)
    )
    return pipeline


def _classifier(result: IntentResult) -> MagicMock:
    classifier = MagicMock()
    classifier.classify = AsyncMock(return_value=result)
    return classifier


class TestSearchTurns:
    @pytest.mark.asyncio
    async def test_search_runs_pipeline(self):
        pipeline = _pipeline()
        assistant = ShoppingAssistant(KeywordIntentClassifier(), MemoryPreferenceStore(), pipeline)

        turn = await assistant.handle_message("find me blue jeans under 500")

        assert turn.action == "SEARCH_PRODUCT"
        assert turn.query == "blue jeans"
        assert turn.max_price == 500
        assert turn.currency == "EGP"
        assert turn.products == PRODUCTS
        assert turn.source == "scraping"
        pipeline.resolve_products.assert_awaited_once_with("blue jeans", 15)

    @pytest.mark.asyncio
    async def test_saved_style_prepended(self):
        pipeline = _pipeline()
        prefs = MemoryPreferenceStore(Preferences(style="casual"))
        assistant = ShoppingAssistant(KeywordIntentClassifier(), prefs, pipeline)

        turn = await assistant.handle_message("find me blue jeans")

        assert turn.query == "casual blue jeans"
        pipeline.resolve_products.assert_awaited_once_with("casual blue jeans", 15)

    @pytest.mark.asyncio
    async def test_named_style_wins_over_saved(self):
        prefs = MemoryPreferenceStore(Preferences(style="casual"))
        assistant = ShoppingAssistant(KeywordIntentClassifier(), prefs, _pipeline())
        turn = await assistant.handle_message("find me a formal dress")
        assert turn.query == "a formal dress"

    @pytest.mark.asyncio
    async def test_cached_flag_passed_through(self):
        assistant = ShoppingAssistant(KeywordIntentClassifier(), MemoryPreferenceStore(), _pipeline(True))
        turn = await assistant.handle_message("find me blue jeans")
        assert turn.cached is True

    @pytest.mark.asyncio
    async def test_short_query_needs_clarification(self):
        pipeline = _pipeline()
        classifier = _classifier(
            IntentResult(intent="product_search", confidence=0.9, extracted_data={"search_query": "x"})
        )
        prefs = MemoryPreferenceStore(Preferences(style="casual"))
        assistant = ShoppingAssistant(classifier, prefs, pipeline)

        turn = await assistant.handle_message("x")

        assert turn.needs_clarification is True
        assert turn.clarification
        assert turn.products == []
        pipeline.resolve_products.assert_not_called()

    @pytest.mark.asyncio
    async def test_model_prices_used(self):
        classifier = _classifier(
            IntentResult(
                intent="product_search",
                confidence=0.9,
                extracted_data={"search_query": "white sneakers", "min_price": "300", "max_price": 900.0},
            )
        )
        assistant = ShoppingAssistant(classifier, MemoryPreferenceStore(), _pipeline(), max_results=5)

        turn = await assistant.handle_message("white sneakers between 300 and 900")

        assert (turn.min_price, turn.max_price) == (300, 900)
        assert turn.query == "white sneakers"


class TestNonSearchTurns:
    @pytest.mark.parametrize(
        ("intent", "action"),
        [
            ("style_preference", "MEMORIZE_PREFERENCE"),
            ("question", "STYLE_ADVICE"),
            ("general", "GENERAL_CONVERSATION"),
            ("unknown", "GENERAL_CONVERSATION"),
        ],
    )
    @pytest.mark.asyncio
    async def test_action_mapping(self, intent, action):
        pipeline = _pipeline()
        classifier = _classifier(IntentResult(intent=intent, confidence=0.6, extracted_data={"style": "boho"}))
        assistant = ShoppingAssistant(classifier, MemoryPreferenceStore(), pipeline)

        turn = await assistant.handle_message("anything")

        assert turn.action == action
        assert turn.parameters == {"style": "boho"}
        pipeline.resolve_products.assert_not_called()

    @pytest.mark.asyncio
    async def test_preferences_are_not_written(self):
        prefs = MemoryPreferenceStore()
        assistant = ShoppingAssistant(KeywordIntentClassifier(), prefs, _pipeline())
        await assistant.handle_message("I always prefer streetwear")
        assert prefs.get().style is None

    @pytest.mark.asyncio
    async def test_context_passed_to_classifier(self):
        classifier = _classifier(IntentResult(intent="general", confidence=0.5))
        prefs = MemoryPreferenceStore(Preferences(style="formal"))
        assistant = ShoppingAssistant(classifier, prefs, _pipeline())

        await assistant.handle_message("hi")

        context = classifier.classify.call_args.args[1]
        assert context["preferences"].style == "formal"
        assert context["history"] == []
