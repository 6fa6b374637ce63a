"""Egyptian fashion store registry.

Static configuration loaded once at process start and injected into the
search orchestrator. Selectors are a best-effort hint; the extractor falls
back to generic heuristics when they match nothing.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from dealwear.models.contracts import Store, StoreSelectors


def _store(
    store_id: str,
    name: str,
    base_url: str,
    search_path: str,
    container: str,
    title: str,
    price: str,
    image: str,
    *,
    enabled: bool = True,
) -> Store:
    return Store(
        id=store_id,
        name=name,
        base_url=base_url,
        search_url_template=f"{base_url}{search_path}",
        enabled=enabled,
        currency="EGP",
        selectors=StoreSelectors(
            container=container,
            title=title,
            price=price,
            image=image,
            link="a",
        ),
    )


DEFAULT_STORES: tuple[Store, ...] = (
    _store(
        "noon-egypt", "Noon Egypt", "https://www.noon.com", "/egypt-en/search?q={query}",
        '[data-qa="product-item"]', '[data-qa="product-name"]',
        '[data-qa="product-price"]', '[data-qa="product-image"] img',
    ),
    _store(
        "namshi", "Namshi", "https://www.namshi.com", "/eg-en/search?q={query}",
        ".product-item", ".product-title", ".product-price", ".product-image img",
    ),
    _store(
        "shein", "Shein", "https://eg.shein.com", "/search?keyword={query}",
        ".S-product-item", ".S-product-item__name", ".S-product-item__price",
        ".S-product-item__img img",
    ),
    _store(
        "hm-egypt", "H&M Egypt", "https://www2.hm.com", "/en_eg/shop/search.html?q={query}",
        ".product-item", ".product-item-title", ".product-item-price",
        ".product-item-image img",
    ),
    _store(
        "zara-egypt", "Zara Egypt", "https://www.zara.com", "/eg/en/search?searchTerm={query}",
        ".product", ".product-name", ".product-price", ".product-image img",
    ),
    _store(
        "max-fashion", "Max Fashion", "https://www.maxfashion.com", "/eg/en/search?q={query}",
        ".product-tile", ".product-name", ".product-price", ".product-image img",
    ),
    _store(
        "defacto-egypt", "DeFacto Egypt", "https://www.defacto.com.tr", "/en/search?q={query}",
        ".product-item", ".product-title", ".product-price", ".product-image img",
    ),
    _store(
        "american-eagle-egypt", "American Eagle Egypt", "https://www.ae.com",
        "/eg/en/search?q={query}",
        ".product-tile", ".product-name", ".product-price", ".product-image img",
    ),
    _store(
        "dalydress", "Dalydress", "https://www.dalydress.com", "/search?q={query}",
        ".product-item", ".product-title", ".product-price", ".product-image img",
    ),
    _store(
        "mona3eni", "Mona3eni", "https://www.mona3eni.com", "/search?q={query}",
        ".product", ".product-name", ".product-price", ".product-image img",
    ),
    _store(
        "caesar", "Caesar", "https://www.caesar.com.eg", "/search?q={query}",
        ".product-item", ".product-title", ".product-price", ".product-image img",
    ),
    _store(
        "pharaohs-closet", "Pharaoh's Closet", "https://www.pharaohscloset.com",
        "/search?q={query}",
        ".product", ".product-name", ".product-price", ".product-image img",
    ),
    _store(
        "mlameh-fashion", "Mlameh Fashion", "https://www.mlameh.com", "/search?q={query}",
        ".product-item", ".product-title", ".product-price", ".product-image img",
    ),
    _store(
        "seerah", "Seerah", "https://www.seerah.com", "/search?q={query}",
        ".product", ".product-name", ".product-price", ".product-image img",
    ),
    _store(
        "kemet-cult", "KEMET Cult", "https://www.kemetcult.com", "/search?q={query}",
        ".product-item", ".product-title", ".product-price", ".product-image img",
    ),
    _store(
        "salah-shop", "Salah Shop", "https://www.salahshop.com", "/search?q={query}",
        ".product", ".product-name", ".product-price", ".product-image img",
    ),
    _store(
        "shop-like-egyptian", "Shop Like an Egyptian", "https://www.shoplikeanegyptian.com",
        "/search?q={query}",
        ".product-item", ".product-title", ".product-price", ".product-image img",
    ),
    _store(
        "soonaboosh", "Soonaboosh", "https://www.soonaboosh.com", "/search?q={query}",
        ".product", ".product-name", ".product-price", ".product-image img",
    ),
)


class StoreRegistry:
    """Read-only, ordered collection of stores. Identity is the store id."""

    def __init__(self, stores: Iterable[Store]) -> None:
        self._stores: tuple[Store, ...] = tuple(stores)
        ids = [s.id for s in self._stores]
        if len(ids) != len(set(ids)):
            raise ValueError("Duplicate store ids in registry")

    def __iter__(self) -> Iterator[Store]:
        return iter(self._stores)

    def __len__(self) -> int:
        return len(self._stores)

    def enabled(self) -> list[Store]:
        """Enabled stores in registry order."""
        return [s for s in self._stores if s.enabled]

    def get(self, store_id: str) -> Store | None:
        for s in self._stores:
            if s.id == store_id:
                return s
        return None


def default_registry() -> StoreRegistry:
    return StoreRegistry(DEFAULT_STORES)
