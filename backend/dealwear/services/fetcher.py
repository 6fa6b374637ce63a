"""Store search page fetcher.

One GET per store. HTTP 4xx is accepted as "no data" (stores routinely
answer bot-like traffic with 403/404); timeouts, connection failures and
5xx responses are transient and retried with exponential backoff, but never
past the caller's deadline. The fetcher never raises: a terminal failure
comes back as an empty result so one store cannot abort the batch.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from urllib.parse import quote

import httpx
import structlog

from dealwear.models.contracts import Store
from dealwear.utils.deadline import Deadline

log = structlog.get_logger("dealwear.fetcher")

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/131.0.0.0 Safari/537.36"
)

REQUEST_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
}

RETRYABLE_STATUS = frozenset({500, 502, 503, 504})


@dataclass(frozen=True)
class FetchResult:
    html: str = ""
    status_code: int | None = None
    attempts: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def empty(self) -> bool:
        return not self.html


def build_search_url(store: Store, query: str) -> str:
    return store.search_url_template.replace("{query}", quote(query, safe=""))


async def fetch_store_page(
    client: httpx.AsyncClient,
    store: Store,
    query: str,
    *,
    timeout: float = 2.0,
    retries: int = 1,
    backoff: float = 0.5,
    deadline: Deadline | None = None,
) -> FetchResult:
    """Fetch one store's search results page.

    Each attempt's timeout is capped by the remaining deadline, and a retry
    is skipped when the deadline cannot cover its backoff sleep.
    """
    url = build_search_url(store, query)
    error = "no attempt made"
    status: int | None = None
    attempts = 0

    for attempt in range(1 + retries):
        attempt_timeout = deadline.budget(timeout) if deadline else timeout
        if attempt_timeout <= 0:
            error = "deadline exceeded"
            break

        attempts += 1
        try:
            resp = await client.get(
                url,
                headers=REQUEST_HEADERS,
                timeout=attempt_timeout,
                follow_redirects=True,
            )
        except httpx.TimeoutException as exc:
            error = f"timeout: {type(exc).__name__}"
            status = None
        except httpx.TransportError as exc:
            # Connection refused, DNS failure, reset, protocol errors
            error = f"network: {type(exc).__name__}"
            status = None
        else:
            status = resp.status_code
            if status < 400:
                return FetchResult(html=resp.text, status_code=status, attempts=attempts)
            if status < 500:
                log.info(
                    "store_fetch_client_error",
                    store=store.id,
                    status=status,
                    attempt=attempt + 1,
                )
                return FetchResult(status_code=status, attempts=attempts)
            error = f"http {status}"
            if status not in RETRYABLE_STATUS:
                break

        if attempt >= retries:
            break
        delay = backoff * (2**attempt)
        if deadline is not None and deadline.remaining() <= delay:
            log.info("store_fetch_retry_skipped", store=store.id, reason="deadline")
            break
        log.warning(
            "store_fetch_retrying",
            store=store.id,
            error=error,
            attempt=attempt + 1,
            delay=delay,
        )
        await asyncio.sleep(delay)

    log.warning(
        "store_fetch_failed",
        store=store.id,
        error=error,
        status=status,
        attempts=attempts,
    )
    return FetchResult(status_code=status, attempts=attempts, error=error)
