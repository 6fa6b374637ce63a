"""Multi-store search orchestration.

Fans the fetch → extract pair out over a bounded subset of enabled stores
concurrently, races each store against its own timeout, waits for every
store to settle, and merges the results in registry order so that title
dedupe is deterministic (first store in the registry wins).
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Iterable

import httpx
import structlog

from dealwear.config import SearchConfig
from dealwear.data.stores import StoreRegistry
from dealwear.models.contracts import ProductRecord, Store
from dealwear.services.extractor import extract_products
from dealwear.services.fetcher import fetch_store_page
from dealwear.utils.deadline import Deadline

log = structlog.get_logger("dealwear.orchestrator")

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_title(title: str) -> str:
    return _WHITESPACE_RE.sub(" ", title).strip().casefold()


def dedupe_products(products: Iterable[ProductRecord], max_results: int) -> list[ProductRecord]:
    """Drop repeated titles (case/whitespace-insensitive), keep first, cap at max_results."""
    seen: set[str] = set()
    unique: list[ProductRecord] = []
    for product in products:
        if len(unique) >= max_results:
            break
        key = normalize_title(product.title)
        if key in seen:
            continue
        seen.add(key)
        unique.append(product)
    return unique


class SearchOrchestrator:
    def __init__(
        self,
        registry: StoreRegistry,
        config: SearchConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._registry = registry
        self._config = config
        self._transport = transport

    def select_stores(self) -> list[Store]:
        return self._registry.enabled()[: self._config.max_stores_per_search]

    async def search(
        self,
        query: str,
        max_results: int,
        deadline: Deadline | None = None,
    ) -> list[ProductRecord]:
        """Search the selected stores in parallel; never raises for store failures."""
        stores = self.select_stores()
        if not stores:
            log.info("orchestrator_no_stores", query=query[:80])
            return []

        if deadline is None:
            deadline = Deadline(self._config.search_deadline)

        async with httpx.AsyncClient(transport=self._transport) as client:
            tasks = [self._search_store_bounded(client, store, query, deadline) for store in stores]
            # gather preserves argument order: merge order == registry order
            per_store = await asyncio.gather(*tasks, return_exceptions=True)

        merged: list[ProductRecord] = []
        for store, result in zip(stores, per_store, strict=True):
            if isinstance(result, BaseException):
                log.warning("store_search_failed", store=store.id, error=str(result)[:200])
                continue
            merged.extend(result)

        products = dedupe_products(merged, max_results)
        log.info(
            "orchestrator_complete",
            stores=len(stores),
            merged=len(merged),
            returned=len(products),
        )
        return products

    async def _search_store_bounded(
        self,
        client: httpx.AsyncClient,
        store: Store,
        query: str,
        deadline: Deadline,
    ) -> list[ProductRecord]:
        """One store, raced against its own timeout; failures become []."""
        budget = deadline.budget(self._config.store_timeout)
        if budget <= 0:
            return []
        try:
            return await asyncio.wait_for(
                self._search_store(client, store, query, deadline),
                timeout=budget,
            )
        except TimeoutError:
            log.warning("store_search_timeout", store=store.id, timeout=round(budget, 3))
            return []
        except Exception as exc:
            log.warning(
                "store_search_error",
                store=store.id,
                error_type=type(exc).__name__,
                error=str(exc)[:200],
            )
            return []

    async def _search_store(
        self,
        client: httpx.AsyncClient,
        store: Store,
        query: str,
        deadline: Deadline,
    ) -> list[ProductRecord]:
        result = await fetch_store_page(
            client,
            store,
            query,
            timeout=self._config.fetch_timeout,
            retries=self._config.fetch_retries,
            backoff=self._config.fetch_backoff,
            deadline=deadline,
        )
        if result.empty:
            return []
        return extract_products(
            result.html,
            store,
            limit=self._config.max_products_per_store,
        )
