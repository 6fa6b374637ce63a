"""Product search fallback chain.

Ordered stages, first non-empty result wins:
1. Result cache (no network)
2. Live store scraping via the orchestrator
3. Alternate web-search source (if configured)
4. Deterministic mock catalog (cannot fail)

All stages share one master deadline; each stage's timeout is carved out of
what remains rather than granted afresh. Only scraped and alternate results
are cached.
"""

from __future__ import annotations

import asyncio
import time

import structlog

from dealwear.config import SearchConfig
from dealwear.models.contracts import ProductRecord, ProductSource, ResolvedProducts
from dealwear.services.alternate import AlternateSource
from dealwear.services.mock_catalog import mock_products
from dealwear.services.orchestrator import SearchOrchestrator, dedupe_products
from dealwear.utils.deadline import Deadline
from dealwear.utils.search_cache import SearchCache

log = structlog.get_logger("dealwear.pipeline")


class ProductSearchPipeline:
    def __init__(
        self,
        orchestrator: SearchOrchestrator,
        alternate: AlternateSource | None,
        cache: SearchCache | None,
        config: SearchConfig,
    ) -> None:
        self._orchestrator = orchestrator
        self._alternate = alternate
        self._cache = cache
        self._config = config

    @property
    def alternate_configured(self) -> bool:
        return self._alternate is not None and self._alternate.is_configured

    @property
    def cache(self) -> SearchCache | None:
        return self._cache

    async def resolve_products(self, query: str, max_results: int) -> ResolvedProducts:
        """Run the chain for an already validated query. Never raises for a non-empty query."""
        start = time.monotonic()

        if self._cache is not None:
            entry = self._cache.get(query)
            if entry is not None:
                return ResolvedProducts(
                    products=entry.products[:max_results],
                    source=entry.source,
                    cached=True,
                )

        deadline = Deadline(self._config.search_deadline)

        products = await self._from_stores(query, max_results, deadline)
        if products:
            return self._finish(query, products, "scraping", start)

        products = await self._from_alternate(query, max_results, deadline)
        if products:
            return self._finish(query, products, "alternate", start)

        log.info("search_using_mock", query=query[:80])
        return self._finish(query, mock_products(query, max_results), "mock", start)

    async def _from_stores(
        self,
        query: str,
        max_results: int,
        deadline: Deadline,
    ) -> list[ProductRecord]:
        try:
            return await asyncio.wait_for(
                self._orchestrator.search(query, max_results, deadline=deadline),
                timeout=deadline.remaining(),
            )
        except TimeoutError:
            log.warning("scraping_deadline_exceeded", query=query[:80])
        except Exception as exc:
            log.warning(
                "scraping_failed",
                query=query[:80],
                error_type=type(exc).__name__,
                error=str(exc)[:200],
            )
        return []

    async def _from_alternate(
        self,
        query: str,
        max_results: int,
        deadline: Deadline,
    ) -> list[ProductRecord]:
        alternate = self._alternate
        if alternate is None or not alternate.is_configured:
            return []
        remaining = deadline.remaining()
        if remaining <= 0:
            log.info("alternate_skipped", reason="deadline", query=query[:80])
            return []
        try:
            found = await asyncio.wait_for(
                alternate.search(query, max_results),
                timeout=remaining,
            )
        except TimeoutError:
            log.warning("alternate_deadline_exceeded", query=query[:80])
            return []
        except Exception as exc:
            log.warning(
                "alternate_failed",
                query=query[:80],
                error_type=type(exc).__name__,
                error=str(exc)[:200],
            )
            return []
        return dedupe_products(found, max_results)

    def _finish(
        self,
        query: str,
        products: list[ProductRecord],
        source: ProductSource,
        start: float,
    ) -> ResolvedProducts:
        resolved = ResolvedProducts(products=products, source=source)
        if source != "mock" and self._cache is not None:
            self._cache.put(query, products, resolved.source)
        log.info(
            "search_source",
            query=query[:80],
            source=source,
            count=len(products),
            duration_ms=round((time.monotonic() - start) * 1000),
        )
        return resolved
