"""Process-wide service wiring for the route handlers.

Each getter builds its object lazily from ``settings`` on first use and
keeps it for the life of the process. Tests swap them out with
``app.dependency_overrides``.
"""

from __future__ import annotations

import structlog

from dealwear.config import SearchConfig, settings
from dealwear.data.stores import default_registry
from dealwear.services.alternate import GoogleSearchSource
from dealwear.services.assistant import ShoppingAssistant
from dealwear.services.intent import build_intent_classifier
from dealwear.services.orchestrator import SearchOrchestrator
from dealwear.services.pipeline import ProductSearchPipeline
from dealwear.services.preferences import (
    FilePreferenceStore,
    MemoryPreferenceStore,
    PreferenceStore,
)
from dealwear.utils.kv_store import FileKeyValueStore, KeyValueStore, MemoryKeyValueStore
from dealwear.utils.search_cache import SearchCache

logger = structlog.get_logger()

_pipeline: ProductSearchPipeline | None = None
_preferences: PreferenceStore | None = None
_assistant: ShoppingAssistant | None = None


def get_search_config() -> SearchConfig:
    return SearchConfig.from_settings()


def _build_cache(config: SearchConfig) -> SearchCache:
    store: KeyValueStore
    if settings.search_cache_dir:
        store = FileKeyValueStore(settings.search_cache_dir, settings.search_cache_max_entries)
    else:
        store = MemoryKeyValueStore(settings.search_cache_max_entries)
    return SearchCache(store, ttl_seconds=config.cache_ttl)


def get_pipeline() -> ProductSearchPipeline:
    global _pipeline
    if _pipeline is None:
        config = get_search_config()
        alternate = GoogleSearchSource(
            settings.google_search_api_key,
            settings.google_search_engine_id,
        )
        _pipeline = ProductSearchPipeline(
            SearchOrchestrator(default_registry(), config),
            alternate,
            _build_cache(config),
            config,
        )
        logger.info(
            "search_pipeline_ready",
            alternate_configured=alternate.is_configured,
            cache_dir=settings.search_cache_dir or None,
        )
    return _pipeline


def get_preferences() -> PreferenceStore:
    global _preferences
    if _preferences is None:
        if settings.preferences_path:
            _preferences = FilePreferenceStore(settings.preferences_path)
        else:
            _preferences = MemoryPreferenceStore()
    return _preferences


def get_assistant() -> ShoppingAssistant:
    global _assistant
    if _assistant is None:
        _assistant = ShoppingAssistant(
            build_intent_classifier(settings.google_ai_api_key, settings.gemini_model),
            get_preferences(),
            get_pipeline(),
            max_results=get_search_config().default_max_results,
        )
    return _assistant
