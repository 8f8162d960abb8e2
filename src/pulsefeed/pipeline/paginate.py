"""Cursor pagination driver with watermark stop and same-page retry.

Walks a provider's pages newest-first. Each page fetch is already retried
by the HTTP layer; if it still fails, the driver waits and requests the
SAME cursor again rather than skipping ahead, so a flaky page never
silently drops records. After too many consecutive failures it stops and
reports an incomplete result with whatever was gathered.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from pulsefeed.config import PaginationSettings
from pulsefeed.http.retry import Failure
from pulsefeed.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    """One provider page: normalized items plus the cursor for the next one."""

    items: list[T]
    next_params: dict[str, Any] | None = None


@dataclass
class PaginationResult(Generic[T]):
    records: list[T] = field(default_factory=list)
    pages: int = 0
    reached_watermark: bool = False
    complete: bool = True


FetchPage = Callable[[dict[str, Any]], Awaitable[Page[T] | Failure]]


async def fetch_all(
    fetch_page: FetchPage[T],
    settings: PaginationSettings,
    initial_params: dict[str, Any] | None = None,
    timestamp_of: Callable[[T], int] | None = None,
    watermark: int | None = None,
    max_pages: int | None = None,
    label: str = "",
) -> PaginationResult[T]:
    """Collect records across pages until the provider or watermark says stop.

    Stops when a page is empty, when no next cursor is returned, when
    ``max_pages`` pages were read, or when a record's timestamp is at or
    below ``watermark``. That record and everything after it on the page
    are discarded because they are already persisted.
    """
    result: PaginationResult[T] = PaginationResult()
    base = dict(initial_params or {})
    cursor: dict[str, Any] = {}
    consecutive_errors = 0
    check_watermark = bool(watermark) and timestamp_of is not None

    while True:
        page = await fetch_page({**base, **cursor})

        if isinstance(page, Failure):
            consecutive_errors += 1
            logger.warning(
                "page_fetch_failed",
                label=label,
                page=result.pages + 1,
                consecutive_errors=consecutive_errors,
                max_consecutive_errors=settings.max_consecutive_errors,
                error=page.reason,
            )
            if consecutive_errors >= settings.max_consecutive_errors:
                result.complete = False
                break
            await asyncio.sleep(settings.error_delay)
            continue

        consecutive_errors = 0
        result.pages += 1

        if not page.items:
            logger.debug("pagination_no_more_data", label=label, page=result.pages)
            break

        for item in page.items:
            if check_watermark and timestamp_of(item) <= watermark:  # type: ignore[misc,operator]
                result.reached_watermark = True
                break
            result.records.append(item)

        if result.pages <= 5 or result.pages % 25 == 0:
            logger.info(
                "page_fetched",
                label=label,
                page=result.pages,
                collected=len(result.records),
            )

        if result.reached_watermark:
            logger.info("reached_existing_data", label=label, watermark=watermark)
            break

        if not page.next_params:
            break

        if page.next_params == cursor:
            logger.warning("pagination_no_progress", label=label, cursor=cursor)
            break

        if max_pages is not None and result.pages >= max_pages:
            logger.info("pagination_page_limit", label=label, max_pages=max_pages)
            break

        cursor = dict(page.next_params)
        await asyncio.sleep(settings.page_delay)

    return result
