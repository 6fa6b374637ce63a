"""Intent classification for chat messages.

The assistant only needs to know whether a message should trigger a
product search and with which query. Two classifiers implement the same
contract:

- KeywordIntentClassifier: regex/keyword heuristics, no I/O
- GeminiIntentClassifier: asks Gemini for a JSON verdict and falls back to
  the keyword classifier on API errors, malformed output or an "unknown"
  intent
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Protocol

import structlog

from dealwear.models.contracts import IntentResult, Preferences

log = structlog.get_logger("dealwear.intent")

_VALID_INTENTS = {"product_search", "style_preference", "question", "general", "unknown"}

SEARCH_KEYWORDS = ("find", "search", "show", "looking for", "need", "want", "buy", "where can i")
PRODUCT_KEYWORDS = (
    "shirt", "jeans", "dress", "jacket", "shoes", "pants", "top", "bottom", "outfit",
    "sneaker", "boot", "coat", "blouse", "skirt", "bag", "hoodie", "sweater", "t-shirt",
)
PREFERENCE_KEYWORDS = ("prefer", "like", "usually", "always", "favorite", "love")
ADVICE_KEYWORDS = ("what should", "what to wear", "recommend", "suggest", "advice", "outfit idea")

_SEARCH_PATTERNS = (
    re.compile(
        r"(find|search|show|look for|get me|i need|i want|looking for).*"
        r"(clothing|clothes|fashion|dress|shirt|pants|jeans|shoes|jacket|sweater|t-shirt|tshirt)",
        re.I,
    ),
    re.compile(
        r"(find|search|show|look for|get me|i need|i want|looking for).*\b(under|below|over|above)\s+\d+",
        re.I,
    ),
    re.compile(r"(where can i buy|where to buy|buy|purchase).*", re.I),
    re.compile(r"(price|cost|how much).*(for|of).*", re.I),
)
_SEARCH_PREFIX_RE = re.compile(
    r"^(find me|show me|find|search for|search|show|look for|get me|i need|i want|looking for|"
    r"where can i buy|where to buy|buy|purchase)\s+",
    re.I,
)
_PRICE_PHRASE_RE = re.compile(r"\s+(under|below|over|above|for|of|in|at)\s+\d+", re.I)
_CURRENCY_RE = re.compile(r"(\b(egp|usd|eur)\b|[£€$])", re.I)

_PRICE_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"under\s+(\d+)", re.I), "max"),
    (re.compile(r"below\s+(\d+)", re.I), "max"),
    (re.compile(r"less\s+than\s+(\d+)", re.I), "max"),
    (re.compile(r"over\s+(\d+)", re.I), "min"),
    (re.compile(r"above\s+(\d+)", re.I), "min"),
    (re.compile(r"more\s+than\s+(\d+)", re.I), "min"),
    (re.compile(r"(\d+)\s*-\s*(\d+)"), "range"),
)
_PRICE_CLEANUP_RE = re.compile(
    r"(under|below|over|above|less\s+than|more\s+than)\s+\d+|\d+\s*-\s*\d+",
    re.I,
)

_STYLES = ("smart casual", "casual", "formal", "streetwear", "business", "sporty", "minimalist")
_OCCASIONS = (
    ("work", ("work", "office")),
    ("date", ("date",)),
    ("party", ("party", "event")),
    ("everyday", ("everyday", "daily")),
)
_BUDGETS = (
    ("$", ("budget", "affordable", "cheap")),
    ("$$", ("moderate", "mid")),
    ("$$$", ("premium", "high end")),
    ("$$$$", ("luxury", "designer")),
)


@dataclass(frozen=True)
class ParsedQuery:
    query: str
    min_price: int | None = None
    max_price: int | None = None
    currency: str = "EGP"


class IntentClassifier(Protocol):
    async def classify(self, text: str, context: dict[str, Any] | None = None) -> IntentResult: ...


# === Query helpers ===


def parse_search_query(text: str) -> ParsedQuery:
    """Split a natural-language query into search terms, price range and currency.

    >>> parse_search_query("black jeans under 500 egp")
    ParsedQuery(query='black jeans', min_price=None, max_price=500, currency='EGP')
    """
    min_price: int | None = None
    max_price: int | None = None
    for pattern, kind in _PRICE_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        if kind == "max":
            max_price = int(match.group(1))
        elif kind == "min":
            min_price = int(match.group(1))
        else:
            min_price, max_price = int(match.group(1)), int(match.group(2))
        break

    currency_match = _CURRENCY_RE.search(text)
    currency = currency_match.group(1).upper() if currency_match else "EGP"

    cleaned = _PRICE_CLEANUP_RE.sub("", text)
    cleaned = _CURRENCY_RE.sub("", cleaned)
    cleaned = " ".join(cleaned.split())
    return ParsedQuery(query=cleaned, min_price=min_price, max_price=max_price, currency=currency)


def is_search_query(message: str) -> bool:
    if not message or len(message.strip()) < 2:
        return False
    lowered = message.strip().lower()
    if lowered.startswith(("/search", "/find")):
        return True
    return any(pattern.search(lowered) for pattern in _SEARCH_PATTERNS)


def extract_search_query(message: str) -> str:
    """Strip command prefixes, search phrases, price phrases and currencies."""
    if not message:
        return ""
    stripped = message.strip()
    if stripped.startswith(("/search", "/find")):
        return " ".join(stripped.split()[1:])

    query = _SEARCH_PREFIX_RE.sub("", stripped)
    query = _PRICE_PHRASE_RE.sub("", query)
    query = _CURRENCY_RE.sub("", query)
    query = " ".join(query.split())
    return query or stripped


def _first_match(lowered: str, table: tuple[tuple[str, tuple[str, ...]], ...]) -> str | None:
    for value, words in table:
        if any(word in lowered for word in words):
            return value
    return None


def extract_preference_hints(message: str) -> dict[str, str]:
    lowered = message.lower()
    hints: dict[str, str] = {}
    style = next((s for s in _STYLES if s in lowered), None)
    if style:
        hints["style"] = style
    occasion = _first_match(lowered, _OCCASIONS)
    if occasion:
        hints["occasion"] = occasion
    budget = _first_match(lowered, _BUDGETS)
    if budget:
        hints["budget"] = budget
    return hints


# === Classifiers ===


class KeywordIntentClassifier:
    """Pattern-matching classifier; always available."""

    async def classify(self, text: str, context: dict[str, Any] | None = None) -> IntentResult:
        return self.classify_sync(text)

    def classify_sync(self, text: str) -> IntentResult:
        lowered = text.lower().strip()

        looks_like_search = is_search_query(text) or (
            any(kw in lowered for kw in SEARCH_KEYWORDS)
            and any(kw in lowered for kw in PRODUCT_KEYWORDS)
        )
        if looks_like_search:
            parsed = parse_search_query(text)
            query = parse_search_query(extract_search_query(text)).query
            data: dict[str, Any] = {"search_query": query, "currency": parsed.currency}
            if parsed.min_price is not None:
                data["min_price"] = parsed.min_price
            if parsed.max_price is not None:
                data["max_price"] = parsed.max_price
            data.update(extract_preference_hints(text))
            return IntentResult(intent="product_search", confidence=0.7, extracted_data=data)

        if any(kw in lowered for kw in PREFERENCE_KEYWORDS):
            return IntentResult(
                intent="style_preference",
                confidence=0.6,
                extracted_data=extract_preference_hints(text),
            )

        if any(kw in lowered for kw in ADVICE_KEYWORDS) or lowered.endswith("?"):
            return IntentResult(intent="question", confidence=0.7, extracted_data={})

        return IntentResult(intent="general", confidence=0.5, extracted_data={})


def _strip_code_fence(text: str) -> str:
    text = text.strip()
    if not text.startswith("```"):
        return text
    text = text.removeprefix("```")
    for lang in ("json", "JSON"):
        text = text.removeprefix(lang)
    text = text.lstrip("\n")
    return text.rsplit("```", 1)[0].strip()


def _extract_json(text: str) -> dict[str, Any]:
    """Parse a JSON object out of model output; empty dict on failure."""
    text = _strip_code_fence(text)
    if not text:
        return {}
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        start, end = text.find("{"), text.rfind("}")
        if start == -1 or end <= start:
            return {}
        try:
            data = json.loads(text[start : end + 1])
        except json.JSONDecodeError:
            return {}
    return data if isinstance(data, dict) else {}


INTENT_PROMPT = """You classify messages sent to a fashion shopping assistant.
Reply with a single JSON object and nothing else:
{{"intent": "product_search" | "style_preference" | "question" | "general",
  "confidence": number between 0 and 1,
  "extractedData": {{"searchQuery": string, "minPrice": number, "maxPrice": number,
                    "currency": string, "style": string, "occasion": string, "budget": string}}}}
Only include extractedData keys you are sure about.

Saved preferences: {preferences}
Message: {message}"""

_GEMINI_KEY_MAP = {
    "searchQuery": "search_query",
    "minPrice": "min_price",
    "maxPrice": "max_price",
}


class GeminiIntentClassifier:
    """Gemini-backed classifier that degrades to keyword heuristics."""

    def __init__(
        self,
        client: Any,
        model: str,
        fallback: KeywordIntentClassifier | None = None,
    ) -> None:
        self._client = client
        self._model = model
        self._fallback = fallback or KeywordIntentClassifier()

    async def classify(self, text: str, context: dict[str, Any] | None = None) -> IntentResult:
        preferences = (context or {}).get("preferences")
        if isinstance(preferences, Preferences):
            prefs_text = preferences.model_dump_json(exclude_none=True)
        else:
            prefs_text = json.dumps(preferences or {})

        try:
            response = await self._client.aio.models.generate_content(
                model=self._model,
                contents=INTENT_PROMPT.format(preferences=prefs_text, message=text),
            )
            raw = response.text or ""
        except Exception as exc:
            log.warning(
                "gemini_intent_failed",
                error_type=type(exc).__name__,
                error=str(exc)[:200],
            )
            return await self._fallback.classify(text, context)

        result = self._parse(raw)
        if result is None or result.intent == "unknown":
            log.info("gemini_intent_unusable", raw=raw[:200])
            return await self._fallback.classify(text, context)
        return result

    @staticmethod
    def _parse(raw: str) -> IntentResult | None:
        data = _extract_json(raw)
        intent = data.get("intent")
        if intent not in _VALID_INTENTS:
            return None
        extracted = data.get("extractedData") or data.get("extracted_data") or {}
        if not isinstance(extracted, dict):
            extracted = {}
        normalized = {_GEMINI_KEY_MAP.get(k, k): v for k, v in extracted.items() if v not in (None, "")}
        try:
            confidence = float(data.get("confidence", 0.7))
        except (TypeError, ValueError):
            confidence = 0.7
        return IntentResult(
            intent=intent,
            confidence=min(max(confidence, 0.0), 1.0),
            extracted_data=normalized,
        )


def build_intent_classifier(api_key: str, model: str) -> IntentClassifier:
    """Gemini classifier when an API key is configured, keyword heuristics otherwise."""
    if not api_key:
        return KeywordIntentClassifier()
    from google import genai

    return GeminiIntentClassifier(genai.Client(api_key=api_key), model)
