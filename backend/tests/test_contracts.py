"""Tests for the Pydantic contract models.

Validates that the models:
- Accept valid data
- Reject invalid data (title bounds, price format)
- Stay immutable where records cross the pipeline
- Serialize with the field names clients read
"""

import pytest
from pydantic import ValidationError

from dealwear.models.contracts import (
    MAX_TITLE_LENGTH,
    AssistantTurn,
    CacheEntry,
    ChatRequest,
    IntentResult,
    Preferences,
    ProductRecord,
    SearchErrorResponse,
    SearchResponse,
    Store,
)


def _record(**overrides) -> ProductRecord:
    data = {
        "id": "namshi-0-1",
        "title": "Slim Fit Jeans",
        "price": "499.00",
        "currency": "EGP",
        "product_url": "https://www.namshi.com/p/1",
        "store_name": "Namshi",
    }
    data.update(overrides)
    return ProductRecord(**data)


class TestProductRecord:
    def test_valid(self):
        record = _record()
        assert record.availability == "In Stock"
        assert record.image_url == ""

    def test_price_without_separators_only(self):
        with pytest.raises(ValidationError):
            _record(price="1,299")

    def test_price_integer_accepted(self):
        assert _record(price="450").price == "450"

    def test_price_rejects_currency_text(self):
        with pytest.raises(ValidationError):
            _record(price="EGP 450")

    def test_empty_title_rejected(self):
        with pytest.raises(ValidationError):
            _record(title="")

    def test_title_length_bound(self):
        _record(title="x" * MAX_TITLE_LENGTH)
        with pytest.raises(ValidationError):
            _record(title="x" * (MAX_TITLE_LENGTH + 1))

    def test_frozen(self):
        record = _record()
        with pytest.raises(ValidationError):
            record.title = "Other"


class TestStore:
    def test_defaults(self):
        store = Store(
            id="s",
            name="S",
            base_url="https://s.example",
            search_url_template="https://s.example/search?q={query}",
        )
        assert store.enabled is True
        assert store.currency == "EGP"
        assert store.selectors is None


class TestCacheEntry:
    def test_json_roundtrip(self):
        entry = CacheEntry(query="jeans", products=[_record()], source="scraping", created_at=1.5)
        restored = CacheEntry.model_validate_json(entry.model_dump_json())
        assert restored == entry

    def test_rejects_unknown_source(self):
        with pytest.raises(ValidationError):
            CacheEntry(query="jeans", products=[], source="cache", created_at=0)


class TestSearchResponses:
    def test_success_shape(self):
        body = SearchResponse(query="jeans", count=1, products=[_record()], source="mock").model_dump()
        assert body["success"] is True
        assert body["cached"] is False
        assert body["products"][0]["store_name"] == "Namshi"

    def test_error_shape(self):
        body = SearchErrorResponse(error="Method not allowed").model_dump()
        assert body == {"success": False, "error": "Method not allowed", "products": []}


class TestAssistantModels:
    def test_intent_confidence_bounds(self):
        with pytest.raises(ValidationError):
            IntentResult(intent="general", confidence=1.5)

    def test_unknown_intent_rejected(self):
        with pytest.raises(ValidationError):
            IntentResult(intent="shopping")

    def test_chat_request_history_defaults_empty(self):
        assert ChatRequest(message="hi").history == []

    def test_chat_request_rejects_bad_role(self):
        with pytest.raises(ValidationError):
            ChatRequest(message="hi", history=[{"role": "system", "content": "x"}])

    def test_preferences_defaults(self):
        prefs = Preferences()
        assert prefs.style is None
        assert prefs.favorite_brands == []

    def test_turn_defaults(self):
        turn = AssistantTurn(action="GENERAL_CONVERSATION")
        assert turn.products == []
        assert turn.needs_clarification is False
