"""Deterministic mock products, the last stage of the fallback chain.

Pure and synchronous: the output depends only on the query and the cap, so
it cannot fail and repeated calls return identical records.
"""

from __future__ import annotations

from dataclasses import dataclass

from dealwear.models.contracts import MAX_TITLE_LENGTH, ProductRecord
from dealwear.services.orchestrator import dedupe_products


@dataclass(frozen=True)
class MockCategory:
    slug: str
    keywords: tuple[str, ...]
    noun: str
    variants: tuple[str, ...]
    base_price: int
    price_step: int
    store_name: str
    link: str


NOON = ("Noon Egypt", "https://www.noon.com/egypt-en")
NAMSHI = ("Namshi", "https://www.namshi.com")

_CATEGORIES: tuple[MockCategory, ...] = (
    MockCategory(
        "dress", ("dress", "gown", "abaya"), "Dress",
        ("Elegant", "Casual", "Formal", "Summer", "Evening"), 200, 50, *NOON,
    ),
    MockCategory(
        "jeans", ("jean", "pant", "trouser", "denim"), "Jeans",
        ("Classic", "Slim Fit", "Skinny", "Straight", "Relaxed"), 300, 50, *NAMSHI,
    ),
    MockCategory(
        "shirt", ("shirt", "top", "blouse", "tee"), "Shirt",
        ("Classic", "Casual", "Formal", "Polo", "Oxford"), 150, 30, *NOON,
    ),
    MockCategory(
        "jacket", ("jacket", "coat", "blazer", "hoodie"), "Jacket",
        ("Winter", "Denim", "Leather", "Bomber", "Puffer"), 450, 75, *NAMSHI,
    ),
    MockCategory(
        "shoes", ("shoe", "sneaker", "boot", "sandal", "heel"), "Shoes",
        ("Casual", "Running", "Formal Leather", "Canvas", "Suede"), 400, 80, *NOON,
    ),
    MockCategory(
        "bag", ("bag", "purse", "backpack", "tote"), "Bag",
        ("Leather", "Canvas Tote", "Crossbody", "Mini", "Weekend"), 250, 60, *NAMSHI,
    ),
)

GENERIC_CATEGORY = MockCategory(
    "style-pick", (), "Style Pick",
    ("Everyday", "Signature", "Trending"), 300, 100, *NOON,
)


def match_category(query: str) -> MockCategory:
    """First category whose keyword occurs in the query, else the generic one."""
    lowered = query.lower()
    for category in _CATEGORIES:
        if any(keyword in lowered for keyword in category.keywords):
            return category
    return GENERIC_CATEGORY


def mock_products(query: str, max_results: int, currency: str = "EGP") -> list[ProductRecord]:
    """Synthesize mock products for ``query``; never empty for a non-empty query."""
    if max_results <= 0 or not query.strip():
        return []

    category = match_category(query)
    products = [
        ProductRecord(
            id=f"mock-{category.slug}-{i}",
            title=f"{variant} {category.noun}"[:MAX_TITLE_LENGTH],
            price=str(category.base_price + i * category.price_step),
            currency=currency,
            image_url="",
            product_url=category.link,
            store_name=category.store_name,
            availability="In Stock",
        )
        for i, variant in enumerate(category.variants, start=1)
    ]
    return dedupe_products(products, max_results)
