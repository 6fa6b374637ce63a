"""Alternate product source: Google Custom Search JSON API.

Used by the fallback chain when live store scraping yields nothing. The
search is restricted to known store domains and each hit is turned into a
ProductRecord when a price can be read from its snippet or page metadata.
Every failure mode returns an empty list.
"""

from __future__ import annotations

import asyncio
import re
import time
import urllib.parse
from typing import Any, Protocol

import httpx
import structlog

from dealwear.models.contracts import MAX_TITLE_LENGTH, ProductRecord

log = structlog.get_logger("dealwear.alternate")

GOOGLE_SEARCH_URL = "https://www.googleapis.com/customsearch/v1"
GOOGLE_MAX_NUM = 10  # API limit per request
GOOGLE_MAX_RETRIES = 1
GOOGLE_RETRY_DELAY = 0.5

DEFAULT_SITES = ("noon.com", "namshi.com", "shein.com", "zara.com")

_AMOUNT = r"(\d{1,3}(?:,\d{3})+(?:\.\d{1,2})?|\d+(?:\.\d{1,2})?)"
_SNIPPET_PRICE_RE = re.compile(_AMOUNT + r"\s*(?:EGP\b|L\.E\.|LE\b|£)", re.I)
_PREFIX_PRICE_RE = re.compile(r"(?:\bEGP|\bLE|£)\s*" + _AMOUNT, re.I)


class AlternateSource(Protocol):
    @property
    def is_configured(self) -> bool: ...

    async def search(self, query: str, max_results: int) -> list[ProductRecord]: ...


_RETAILER_NAMES: dict[str, str] = {
    "noon": "Noon Egypt",
    "namshi": "Namshi",
    "shein": "Shein",
    "zara": "Zara",
    "hm": "H&M",
    "maxfashion": "Max Fashion",
    "defacto": "DeFacto",
    "ae": "American Eagle",
    "amazon": "Amazon",
    "jumia": "Jumia",
}


def extract_store_name(url: str) -> str:
    """Map a product URL to a store name.

    Checks known retailer domains first, falls back to domain capitalization.
    """
    if not url:
        return "Online Store"
    domain = urllib.parse.urlparse(url).netloc.lower()
    if not domain:
        return "Online Store"
    labels = [label for label in domain.split(".") if label and label not in ("www", "www2", "eg")]
    for label in labels:
        if label in _RETAILER_NAMES:
            return _RETAILER_NAMES[label]
    if not labels:
        return "Online Store"
    return labels[0].capitalize()


def extract_price_from_text(text: str) -> str | None:
    """Find an EGP price in free text ("1,299.00 EGP", "LE 450")."""
    if not text:
        return None
    match = _SNIPPET_PRICE_RE.search(text) or _PREFIX_PRICE_RE.search(text)
    if not match:
        return None
    return match.group(1).replace(",", "")


def _pagemap_price(item: dict[str, Any]) -> str | None:
    pagemap = item.get("pagemap") or {}
    for offer in pagemap.get("offer") or []:
        raw = str(offer.get("price", "")).replace(",", "").strip()
        if re.fullmatch(r"\d+(?:\.\d+)?", raw):
            return raw
    return None


def _pagemap_image(item: dict[str, Any]) -> str:
    pagemap = item.get("pagemap") or {}
    for image in pagemap.get("cse_image") or []:
        if image.get("src"):
            return str(image["src"])
    for meta in pagemap.get("metatags") or []:
        if meta.get("og:image"):
            return str(meta["og:image"])
    return ""


class GoogleSearchSource:
    """Product lookup through a Google Programmable Search Engine."""

    def __init__(
        self,
        api_key: str,
        engine_id: str,
        *,
        sites: tuple[str, ...] = DEFAULT_SITES,
        currency: str = "EGP",
        timeout: float = 3.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._engine_id = engine_id
        self._sites = sites
        self._currency = currency
        self._timeout = timeout
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key and self._engine_id)

    def build_query(self, query: str) -> str:
        if not self._sites:
            return query
        return f"{query} " + " OR ".join(f"site:{site}" for site in self._sites)

    async def search(self, query: str, max_results: int) -> list[ProductRecord]:
        if not self.is_configured:
            log.debug("alternate_source_unconfigured")
            return []

        params = {
            "key": self._api_key,
            "cx": self._engine_id,
            "q": self.build_query(query),
            "num": max(1, min(max_results, GOOGLE_MAX_NUM)),
        }
        async with httpx.AsyncClient(transport=self._transport) as client:
            items = await self._request(client, params, query)
        return self._to_products(items, max_results)

    async def _request(
        self,
        client: httpx.AsyncClient,
        params: dict[str, Any],
        query: str,
    ) -> list[dict[str, Any]]:
        """Retries once on transient failures (timeout, 429, 500+)."""
        for attempt in range(1 + GOOGLE_MAX_RETRIES):
            try:
                resp = await client.get(GOOGLE_SEARCH_URL, params=params, timeout=self._timeout)
            except httpx.TimeoutException:
                if attempt < GOOGLE_MAX_RETRIES:
                    log.warning("google_search_timeout", query=query[:80], attempt=attempt + 1)
                    await asyncio.sleep(GOOGLE_RETRY_DELAY)
                    continue
                log.warning("google_search_timeout_final", query=query[:80])
                return []
            except httpx.TransportError as exc:
                log.warning("google_search_network_error", query=query[:80], error=type(exc).__name__)
                return []

            if resp.status_code == 200:
                try:
                    data = resp.json()
                except ValueError:
                    log.warning("google_search_bad_json", query=query[:80])
                    return []
                items: list[dict[str, Any]] = data.get("items") or []
                return items

            if resp.status_code in (429, 500, 502, 503) and attempt < GOOGLE_MAX_RETRIES:
                log.warning(
                    "google_search_retrying",
                    status=resp.status_code,
                    query=query[:80],
                    attempt=attempt + 1,
                )
                await asyncio.sleep(GOOGLE_RETRY_DELAY)
                continue

            # Non-retryable failure (400, 401, 403, etc.)
            log.warning("google_search_failed", status=resp.status_code, query=query[:80])
            return []

        return []

    def _to_products(self, items: list[dict[str, Any]], max_results: int) -> list[ProductRecord]:
        stamp = int(time.time() * 1000)
        products: list[ProductRecord] = []
        for index, item in enumerate(items):
            title = " ".join(str(item.get("title", "")).split())
            link = str(item.get("link", ""))
            price = extract_price_from_text(str(item.get("snippet", ""))) or _pagemap_price(item)
            if len(title) < 3 or not link or not price:
                continue
            try:
                products.append(
                    ProductRecord(
                        id=f"web-{index}-{stamp}",
                        title=title[:MAX_TITLE_LENGTH],
                        price=price,
                        currency=self._currency,
                        image_url=_pagemap_image(item),
                        product_url=link,
                        store_name=extract_store_name(link),
                        availability="In Stock",
                    )
                )
            except ValueError as exc:
                log.debug("google_item_rejected", index=index, error=str(exc)[:200])
            if len(products) >= max_results:
                break
        return products
