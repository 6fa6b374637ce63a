"""Tests for multi-store search orchestration."""

from __future__ import annotations

import asyncio
import time

import httpx
import pytest
from conftest import make_product, make_store, product_card_html

from dealwear.config import SearchConfig
from dealwear.data.stores import StoreRegistry
from dealwear.services.orchestrator import SearchOrchestrator, dedupe_products, normalize_title

STORE_A = make_store("store-a", name="Store A", base_url="https://a.example")
STORE_B = make_store("store-b", name="Store B", base_url="https://b.example")
STORE_C = make_store("store-c", name="Store C", base_url="https://c.example")


def _routes(pages: dict[str, object]) -> httpx.MockTransport:
    """Transport answering by host; a value that is an exception is raised."""

    async def handler(request: httpx.Request) -> httpx.Response:
        page = pages.get(request.url.host, "")
        if isinstance(page, Exception):
            raise page
        if page == "hang":
            await asyncio.sleep(10)
        return httpx.Response(200, text=str(page))

    return httpx.MockTransport(handler)


class TestNormalizeTitle:
    def test_case_and_whitespace_insensitive(self):
        assert normalize_title("  Classic   Blue JEANS ") == normalize_title("classic blue jeans")


class TestDedupeProducts:
    def test_first_occurrence_wins(self):
        first = make_product("Classic Blue Jeans", "300", store_name="Store A")
        second = make_product("classic  blue jeans", "250", store_name="Store B")
        result = dedupe_products([first, second], 10)
        assert result == [first]

    def test_caps_at_max_results(self):
        products = [make_product(f"Item {i}") for i in range(10)]
        assert len(dedupe_products(products, 4)) == 4

    def test_empty(self):
        assert dedupe_products([], 5) == []


class TestSelectStores:
    def test_enabled_stores_in_registry_order(self, search_config):
        disabled = make_store("off", enabled=False, base_url="https://off.example")
        registry = StoreRegistry([disabled, STORE_A, STORE_B, STORE_C])
        orchestrator = SearchOrchestrator(registry, search_config)
        assert [s.id for s in orchestrator.select_stores()] == ["store-a", "store-b"]

    def test_duplicate_ids_rejected(self):
        with pytest.raises(ValueError):
            StoreRegistry([STORE_A, STORE_A])


class TestSearch:
    @pytest.mark.asyncio
    async def test_merges_in_registry_order_and_dedupes(self, search_config):
        transport = _routes(
            {
                "a.example": product_card_html(("Classic Blue Jeans", "300"), ("Slim Jeans", "350")),
                "b.example": product_card_html(("classic blue jeans", "280"), ("Wide Leg Jeans", "400")),
            }
        )
        orchestrator = SearchOrchestrator(
            StoreRegistry([STORE_A, STORE_B]), search_config, transport=transport
        )
        products = await orchestrator.search("jeans", 15)

        assert [p.title for p in products] == ["Classic Blue Jeans", "Slim Jeans", "Wide Leg Jeans"]
        assert products[0].store_name == "Store A"
        assert products[0].price == "300"

    @pytest.mark.asyncio
    async def test_max_results_cap(self, search_config):
        cards = [(f"Item {i} Jeans", str(100 + i)) for i in range(5)]
        transport = _routes({"a.example": product_card_html(*cards), "b.example": product_card_html(*cards)})
        orchestrator = SearchOrchestrator(
            StoreRegistry([STORE_A, STORE_B]), search_config, transport=transport
        )
        assert len(await orchestrator.search("jeans", 3)) == 3

    @pytest.mark.asyncio
    async def test_per_store_product_limit(self):
        config = SearchConfig(max_products_per_store=2, fetch_backoff=0)
        cards = [(f"Item {i} Jeans", str(100 + i)) for i in range(5)]
        transport = _routes({"a.example": product_card_html(*cards)})
        orchestrator = SearchOrchestrator(StoreRegistry([STORE_A]), config, transport=transport)
        assert len(await orchestrator.search("jeans", 15)) == 2

    @pytest.mark.asyncio
    async def test_failing_store_does_not_affect_others(self, search_config):
        transport = _routes(
            {
                "a.example": httpx.ConnectError("refused"),
                "b.example": product_card_html(("Linen Shirt", "250")),
            }
        )
        orchestrator = SearchOrchestrator(
            StoreRegistry([STORE_A, STORE_B]), search_config, transport=transport
        )
        products = await orchestrator.search("shirt", 15)
        assert [p.title for p in products] == ["Linen Shirt"]

    @pytest.mark.asyncio
    async def test_hanging_store_bounded_by_store_timeout(self):
        config = SearchConfig(store_timeout=0.2, fetch_timeout=5.0, fetch_backoff=0)
        transport = _routes({"a.example": "hang", "b.example": product_card_html(("Linen Shirt", "250"))})
        orchestrator = SearchOrchestrator(StoreRegistry([STORE_A, STORE_B]), config, transport=transport)

        started = time.monotonic()
        products = await orchestrator.search("shirt", 15)

        assert time.monotonic() - started < 0.6
        assert [p.title for p in products] == ["Linen Shirt"]

    @pytest.mark.asyncio
    async def test_all_stores_empty(self, search_config):
        transport = _routes({"a.example": "<html></html>", "b.example": "<html></html>"})
        orchestrator = SearchOrchestrator(
            StoreRegistry([STORE_A, STORE_B]), search_config, transport=transport
        )
        assert await orchestrator.search("jeans", 15) == []

    @pytest.mark.asyncio
    async def test_no_enabled_stores(self, search_config):
        registry = StoreRegistry([make_store("off", enabled=False)])
        orchestrator = SearchOrchestrator(registry, search_config)
        assert await orchestrator.search("jeans", 15) == []
