"""Deal & Wear contract models.

Shared by the search pipeline, the HTTP routes and the assistant. Records
crossing the pipeline are frozen: they are built once (by the extractor,
the alternate source or the mock catalog) and never mutated afterwards.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

MAX_TITLE_LENGTH = 100

ProductSource = Literal["scraping", "alternate", "mock"]


# === Store Registry ===


class StoreSelectors(BaseModel):
    """Store-specific CSS selectors, tried before the generic heuristics."""

    model_config = ConfigDict(frozen=True)

    container: str
    title: str | None = None
    price: str | None = None
    image: str | None = None
    link: str | None = None


class Store(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    base_url: str
    search_url_template: str  # contains "{query}"
    enabled: bool = True
    currency: str = "EGP"
    selectors: StoreSelectors | None = None


# === Products ===


class ProductRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str = Field(min_length=1, max_length=MAX_TITLE_LENGTH)
    price: str = Field(pattern=r"^\d+(\.\d+)?$")  # no thousands separators
    currency: str
    image_url: str = ""
    product_url: str
    store_name: str
    availability: str = "In Stock"


class CacheEntry(BaseModel):
    query: str  # normalized
    products: list[ProductRecord]
    source: ProductSource
    created_at: float  # epoch seconds


class CacheStats(BaseModel):
    total_entries: int = 0
    valid_entries: int = 0
    expired_entries: int = 0
    total_bytes: int = 0


class ResolvedProducts(BaseModel):
    """Output of the fallback chain."""

    products: list[ProductRecord]
    source: ProductSource
    cached: bool = False


# === Search API ===


class SearchResponse(BaseModel):
    success: bool = True
    query: str
    count: int
    products: list[ProductRecord] = []
    source: ProductSource | None = None
    cached: bool = False
    message: str | None = None


class SearchErrorResponse(BaseModel):
    success: bool = False
    error: str
    products: list[ProductRecord] = []


class ErrorResponse(BaseModel):
    error: str
    message: str
    retryable: bool
    detail: str | None = None


# === Assistant ===

Intent = Literal["product_search", "style_preference", "question", "general", "unknown"]

AssistantAction = Literal[
    "SEARCH_PRODUCT",
    "STYLE_ADVICE",
    "MEMORIZE_PREFERENCE",
    "ASK_QUESTION",
    "GENERAL_CONVERSATION",
]


class IntentResult(BaseModel):
    intent: Intent = "unknown"
    confidence: float = Field(ge=0, le=1, default=0.0)
    extracted_data: dict = {}


class Preferences(BaseModel):
    style: str | None = None
    occasion: str | None = None
    budget: str | None = None
    size: str | None = None
    favorite_brands: list[str] = []
    colors: list[str] = []
    last_updated: str | None = None  # ISO 8601


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    message: str
    history: list[ChatMessage] = []


class AssistantTurn(BaseModel):
    action: AssistantAction
    intent: Intent = "unknown"
    confidence: float = 0.0
    query: str | None = None
    min_price: int | None = None
    max_price: int | None = None
    currency: str | None = None
    products: list[ProductRecord] = []
    source: ProductSource | None = None
    cached: bool = False
    needs_clarification: bool = False
    clarification: str | None = None
    parameters: dict = {}
