"""Product search endpoint.

GET  /search?q=...&max_results=...
POST /search  {"query": "...", "max_results": ...}

Only malformed input produces a 4xx. Once a query is valid the response is
always 200: the fallback chain ends in the mock catalog, and anything that
still escapes it is reported as a soft "temporarily unavailable" result.
"""

from __future__ import annotations

import json
import re
from typing import Any

import structlog
from fastapi import APIRouter, Depends, Query, Request

from dealwear.api.dependencies import get_pipeline, get_search_config
from dealwear.config import SearchConfig
from dealwear.models.contracts import SearchResponse
from dealwear.services.pipeline import ProductSearchPipeline

logger = structlog.get_logger()

router = APIRouter(tags=["search"])

MIN_QUERY_LENGTH = 2
MAX_QUERY_LENGTH = 200

QUERY_REQUIRED_MESSAGE = "Query parameter is required (minimum 2 characters)"
QUERY_TOO_LONG_MESSAGE = "Query is too long (maximum 200 characters)"
INVALID_REQUEST_MESSAGE = "Invalid request format"
UNAVAILABLE_MESSAGE = "Search temporarily unavailable. Please try again in a moment."

_UNSAFE_CHARS_RE = re.compile(r"[<>\"']")


class QueryValidationError(Exception):
    """Client input rejected before any search work; rendered as a 400."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


def validate_query(raw: Any) -> str:
    """Trim, bound and sanitize a raw query.

    >>> validate_query('  <b>"red" dress</b> ')
    'bred dress/b'
    """
    if not isinstance(raw, str):
        raise QueryValidationError(QUERY_REQUIRED_MESSAGE)
    query = raw.strip()
    if len(query) < MIN_QUERY_LENGTH:
        raise QueryValidationError(QUERY_REQUIRED_MESSAGE)
    if len(query) > MAX_QUERY_LENGTH:
        raise QueryValidationError(QUERY_TOO_LONG_MESSAGE)
    query = _UNSAFE_CHARS_RE.sub("", query).strip()
    if len(query) < MIN_QUERY_LENGTH:
        raise QueryValidationError(QUERY_REQUIRED_MESSAGE)
    return query


def clamp_max_results(raw: Any, config: SearchConfig) -> int:
    """Coerce ``max_results`` into 1..limit; missing or junk → the default."""
    if raw is None or raw == "" or isinstance(raw, bool):
        value = config.default_max_results
    else:
        try:
            value = int(raw)
        except (TypeError, ValueError):
            value = config.default_max_results
    return max(1, min(value, config.max_results_limit))


async def _run_search(
    pipeline: ProductSearchPipeline,
    query: str,
    max_results: int,
) -> SearchResponse:
    try:
        resolved = await pipeline.resolve_products(query, max_results)
    except Exception as exc:
        logger.error(
            "search_unavailable",
            query=query[:80],
            error_type=type(exc).__name__,
            exc_info=exc,
        )
        return SearchResponse(query=query, count=0, products=[], message=UNAVAILABLE_MESSAGE)

    return SearchResponse(
        query=query,
        count=len(resolved.products),
        products=resolved.products,
        source=resolved.source,
        cached=resolved.cached,
    )


@router.get("/search", response_model=SearchResponse)
async def search_get(
    q: str | None = Query(default=None),
    query: str | None = Query(default=None),
    max_results: str | None = Query(default=None),
    pipeline: ProductSearchPipeline = Depends(get_pipeline),
    config: SearchConfig = Depends(get_search_config),
) -> SearchResponse:
    validated = validate_query(q if q is not None else query)
    return await _run_search(pipeline, validated, clamp_max_results(max_results, config))


@router.post("/search", response_model=SearchResponse)
async def search_post(
    request: Request,
    pipeline: ProductSearchPipeline = Depends(get_pipeline),
    config: SearchConfig = Depends(get_search_config),
) -> SearchResponse:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise QueryValidationError(INVALID_REQUEST_MESSAGE) from None
    if not isinstance(body, dict):
        raise QueryValidationError(INVALID_REQUEST_MESSAGE)

    raw_query = body.get("query") or body.get("q")
    validated = validate_query(raw_query)
    return await _run_search(pipeline, validated, clamp_max_results(body.get("max_results"), config))
