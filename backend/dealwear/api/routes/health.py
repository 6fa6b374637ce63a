"""Health check endpoint.

Reports whether the alternate product source has credentials and what the
result cache currently holds. Always returns 200 so load balancers keep
routing; a missing alternate source only narrows the fallback chain.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends

from dealwear.api.dependencies import get_pipeline
from dealwear.config import settings
from dealwear.models.contracts import CacheStats
from dealwear.services.pipeline import ProductSearchPipeline

logger = structlog.get_logger()

router = APIRouter(tags=["health"])

VERSION = "0.1.0"


@router.get("/health")
async def health_check(pipeline: ProductSearchPipeline = Depends(get_pipeline)) -> dict:
    cache = pipeline.cache
    try:
        stats = cache.stats() if cache is not None else CacheStats()
    except OSError as exc:
        logger.debug("health_cache_stats_failed", error=str(exc))
        stats = CacheStats()

    return {
        "status": "ok",
        "version": VERSION,
        "environment": settings.environment,
        "alternate_source": "configured" if pipeline.alternate_configured else "unconfigured",
        "cache": stats.model_dump(),
    }
