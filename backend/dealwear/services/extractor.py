"""Product extraction from store search result HTML.

Strategy per document:
  1. Store-specific container selector (if configured and it matches)
  2. Generic heuristics: class/attribute names containing "product" or "item"

Each candidate is resolved independently; a candidate without a usable
title and price is dropped without affecting the others.
"""

from __future__ import annotations

import re
import time
from urllib.parse import urljoin

import structlog
from bs4 import BeautifulSoup, Tag

from dealwear.models.contracts import MAX_TITLE_LENGTH, ProductRecord, Store

log = structlog.get_logger("dealwear.extractor")

GENERIC_CONTAINER_SELECTOR = '[class*="product"], [class*="item"], [data-qa*="product"]'
GENERIC_TITLE_SELECTORS = ('[class*="title"]', '[class*="name"]', "h2", "h3", "a")
GENERIC_PRICE_SELECTOR = '[class*="price"], [data-qa*="price"]'
IMAGE_ATTRIBUTES = ("src", "data-src", "data-lazy-src", "data-original")

MIN_TITLE_LENGTH = 3
DEFAULT_CANDIDATE_LIMIT = 5

_PRICE_RE = re.compile(r"\d[\d,]*(?:\.\d+)?")
_WHITESPACE_RE = re.compile(r"\s+")


def extract_products(
    html: str,
    store: Store,
    *,
    limit: int = DEFAULT_CANDIDATE_LIMIT,
    now: float | None = None,
) -> list[ProductRecord]:
    """Extract up to ``limit`` product records from a search results page."""
    if not html or not html.strip():
        return []

    soup = BeautifulSoup(html, "html.parser")
    candidates = _find_candidates(soup, store)[:limit]
    stamp = int((now if now is not None else time.time()) * 1000)

    products: list[ProductRecord] = []
    for position, elem in enumerate(candidates):
        try:
            record = _parse_candidate(elem, store, position, stamp)
        except ValueError as exc:
            # pydantic ValidationError is a ValueError
            log.debug("candidate_rejected", store=store.id, position=position, error=str(exc))
            continue
        if record is not None:
            products.append(record)

    log.debug(
        "products_extracted",
        store=store.id,
        candidates=len(candidates),
        extracted=len(products),
    )
    return products


def _find_candidates(soup: BeautifulSoup, store: Store) -> list[Tag]:
    if store.selectors is not None:
        found = soup.select(store.selectors.container)
        if found:
            return found
    return _generic_candidates(soup)


def _generic_candidates(soup: BeautifulSoup) -> list[Tag]:
    """Outermost generic matches that cover exactly one priced product.

    The generic selector also hits grid wrappers and a card's own children
    ("product-title", "product-price"). A match is a card when every priced
    match inside it resolves to the same price node; of nested cards the
    outermost wins.
    """
    found = soup.select(GENERIC_CONTAINER_SELECTOR)
    price_of: dict[int, Tag] = {}
    for tag in found:
        node = tag.select_one(GENERIC_PRICE_SELECTOR)
        if node is not None:
            price_of[id(tag)] = node

    cards: list[Tag] = []
    for tag in found:
        own = price_of.get(id(tag))
        if own is None:
            continue
        inner = (price_of[id(d)] for d in tag.find_all(True) if id(d) in price_of)
        if all(_same_price(node, own) for node in inner):
            cards.append(tag)

    card_ids = {id(t) for t in cards}
    return [t for t in cards if not any(id(p) in card_ids for p in t.parents)]


def _same_price(node: Tag, own: Tag) -> bool:
    return node is own or any(parent is own for parent in node.parents)


def _parse_candidate(elem: Tag, store: Store, position: int, stamp: int) -> ProductRecord | None:
    title = _find_title(elem, store)
    price = _find_price(elem, store)
    if not title or not price:
        return None

    return ProductRecord(
        id=f"{store.id}-{position}-{stamp}",
        title=title[:MAX_TITLE_LENGTH],
        price=price,
        currency=store.currency,
        image_url=_find_image(elem, store),
        product_url=_find_link(elem, store),
        store_name=store.name,
        availability="In Stock",
    )


def _text(node: Tag) -> str:
    return _WHITESPACE_RE.sub(" ", node.get_text(" ")).strip()


def _find_title(elem: Tag, store: Store) -> str | None:
    selectors: list[str] = []
    if store.selectors is not None and store.selectors.title:
        selectors.append(store.selectors.title)
    selectors.extend(GENERIC_TITLE_SELECTORS)

    for selector in selectors:
        node = elem.select_one(selector)
        if node is None:
            continue
        text = _text(node)
        if len(text) >= MIN_TITLE_LENGTH:
            return text
    return None


def parse_price(text: str) -> str | None:
    """Return the first numeric token in ``text`` with thousands separators removed.

    >>> parse_price("EGP 1,299.00")
    '1299.00'
    """
    match = _PRICE_RE.search(text)
    if not match:
        return None
    return match.group(0).replace(",", "")


def _find_price(elem: Tag, store: Store) -> str | None:
    node = None
    if store.selectors is not None and store.selectors.price:
        node = elem.select_one(store.selectors.price)
    if node is None:
        node = elem.select_one(GENERIC_PRICE_SELECTOR)
    if node is None:
        return None
    return parse_price(_text(node))


def absolutize(url: str, base_url: str) -> str:
    """Make a scraped URL absolute: ``//x`` gets https, relative paths join the base."""
    url = url.strip()
    if not url:
        return ""
    if url.startswith("//"):
        return f"https:{url}"
    if url.startswith(("http://", "https://")):
        return url
    return urljoin(base_url.rstrip("/") + "/", url)


def _find_image(elem: Tag, store: Store) -> str:
    img = None
    if store.selectors is not None and store.selectors.image:
        img = elem.select_one(store.selectors.image)
    if img is None:
        img = elem.select_one("img")
    if img is None:
        return ""
    for attr in IMAGE_ATTRIBUTES:
        value = img.get(attr)
        if isinstance(value, str) and value.strip() and not value.startswith("data:"):
            return absolutize(value, store.base_url)
    return ""


def _find_link(elem: Tag, store: Store) -> str:
    # The candidate itself may be the anchor
    anchor = elem if elem.name == "a" and elem.get("href") else None
    if anchor is None and store.selectors is not None and store.selectors.link:
        anchor = elem.select_one(store.selectors.link)
    if anchor is None or not anchor.get("href"):
        anchor = elem.select_one("a[href]")
    href = anchor.get("href") if anchor is not None else None
    if isinstance(href, str) and href.strip() and not href.startswith(("#", "javascript:")):
        return absolutize(href, store.base_url)
    return store.base_url
