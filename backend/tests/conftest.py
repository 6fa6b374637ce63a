"""Shared fixtures: the ASGI test client and small store/product builders."""

from __future__ import annotations

import httpx
import pytest

from dealwear.config import SearchConfig
from dealwear.models.contracts import ProductRecord, Store, StoreSelectors


def make_store(
    store_id: str = "test-store",
    *,
    name: str = "Test Store",
    base_url: str = "https://shop.example",
    enabled: bool = True,
    selectors: StoreSelectors | None = None,
) -> Store:
    return Store(
        id=store_id,
        name=name,
        base_url=base_url,
        search_url_template=f"{base_url}/search?q={{query}}",
        enabled=enabled,
        selectors=selectors,
    )


def make_product(title: str, price: str = "100", *, store_name: str = "Test Store") -> ProductRecord:
    return ProductRecord(
        id=f"p-{abs(hash(title))}",
        title=title,
        price=price,
        currency="EGP",
        product_url="https://shop.example/p",
        store_name=store_name,
    )


def product_card_html(*cards: tuple[str, str], href: str = "/p/1") -> str:
    """Search page markup with one generic product card per (title, price)."""
    body = "".join(
        f'<div class="product-card"><a href="{href}">'
        f'<h3 class="product-title">{title}</h3></a>'
        f'<span class="product-price">EGP {price}</span>'
        f'<img src="/img/{i}.jpg"></div>'
        for i, (title, price) in enumerate(cards)
    )
    return f'<html><body><div class="results">{body}</div></body></html>'


@pytest.fixture
def search_config() -> SearchConfig:
    # Zero backoff keeps retry tests instant
    return SearchConfig(
        fetch_timeout=1.0,
        fetch_retries=1,
        fetch_backoff=0.0,
        store_timeout=1.0,
        search_deadline=3.0,
        max_stores_per_search=2,
        max_products_per_store=5,
    )


@pytest.fixture
async def client():
    """Async client bound to the FastAPI app; dependency overrides reset after each test."""
    from dealwear.main import app

    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
