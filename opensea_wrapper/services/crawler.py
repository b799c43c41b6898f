"""
Multi-page crawls over the paginated OpenSea endpoints.

Older endpoints page with limit/offset, `/api/v1/events` pages with
opaque next/previous cursors. The strategy is picked from the endpoint
registry; every crawl gets its own CrawlSession so a client can run
several crawls one after the other without leaking cursors.
"""
import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from opensea_wrapper.schemas.crawl import Cursor, OccurredAfter
from opensea_wrapper.services import endpoints

if TYPE_CHECKING:
    from opensea_wrapper.services.client import OpenSea


@dataclass
class CrawlSession:
    cursor: Cursor = field(default_factory=Cursor)
    requests: int = 0
    records: List[Dict[str, Any]] = field(default_factory=list)
    last_token: Optional[str] = None


class OffsetPagination:
    def __init__(self, limit: int):
        self.limit = limit

    def page_params(self, params: Dict[str, Any], session: CrawlSession) -> Dict[str, Any]:
        return {**params, "limit": self.limit, "offset": session.requests * self.limit}

    def has_next(self, session: CrawlSession) -> bool:
        return True


class CursorPagination:
    def __init__(self, limit: int):
        self.limit = limit

    def page_params(self, params: Dict[str, Any], session: CrawlSession) -> Dict[str, Any]:
        # The client sends session.cursor.next itself
        session.last_token = session.cursor.next
        return {**params, "limit": self.limit}

    def has_next(self, session: CrawlSession) -> bool:
        token = session.cursor.next
        return token is not None and token != session.last_token


STRATEGIES = {
    endpoints.OFFSET: OffsetPagination,
    endpoints.CURSOR: CursorPagination,
}


class Crawler:
    # Large enough to never be reached
    UNBOUNDED = 9_999_999_999_999

    def __init__(self, client: "OpenSea"):
        self.client = client

    async def crawl_all(
        self,
        operation: str,
        params: Dict[str, Any],
        sleep: float = 0,
        occurred_after: Optional[OccurredAfter] = None,
    ) -> Dict[str, List[Dict[str, Any]]]:
        return await self.crawl(operation, params, self.UNBOUNDED, sleep, occurred_after)

    async def crawl_with_max_requests(
        self,
        operation: str,
        params: Dict[str, Any],
        max_requests: int,
        sleep: float = 0,
        occurred_after: Optional[OccurredAfter] = None,
    ) -> Dict[str, List[Dict[str, Any]]]:
        """
        Crawl issuing at most `max_requests` requests.

        The budget counts requests, not extra pages: a budget of 2 sends 2
        requests, never 3.
        """
        return await self.crawl(operation, params, max_requests, sleep, occurred_after)

    async def crawl(
        self,
        operation: str,
        params: Dict[str, Any],
        max_requests: int = 5,
        sleep: float = 0,
        occurred_after: Optional[OccurredAfter] = None,
    ) -> Dict[str, List[Dict[str, Any]]]:
        """
        Fetch pages of `operation` until one of:

        - an empty page, or a page shorter than the page limit
        - no further cursor (cursor endpoints only)
        - a record at or below `occurred_after`
        - `max_requests` requests issued

        Errors propagate as-is; nothing accumulated so far is returned.

        Returns:
            {envelope_key: records}, the same shape as one raw page
        """
        endpoint = endpoints.get(operation)
        fetch_page = self.client.paged_operation(operation)
        limit = self.client.limit
        strategy = STRATEGIES[endpoint.pagination](limit)
        console = self.client.console

        # Whatever limit has been set in params, the maximum allowed is forced
        params = {k: v for k, v in params.items() if k not in ("limit", "offset", "cursor")}
        session = CrawlSession()

        while session.requests < max_requests:
            console.comment(f"OpenSea “{operation}” Request #{session.requests + 1}")

            page = await fetch_page(strategy.page_params(params, session), session.cursor)
            session.requests += 1

            if not page:
                break

            if occurred_after is not None:
                fresh, reached = occurred_after.truncate(page)
                session.records.extend(fresh)
                if reached:
                    console.comment(
                        f"Reached {occurred_after.key} <= {occurred_after.value}, stopping"
                    )
                    break
            else:
                session.records.extend(page)

            if len(page) < limit or not strategy.has_next(session):
                break

            if sleep and session.requests < max_requests:
                await asyncio.sleep(sleep)

        console.info(
            f"Crawled {len(session.records)} {operation} in {session.requests} request(s)"
        )
        # Same shape as a single raw page
        return {endpoint.envelope_key: session.records}
