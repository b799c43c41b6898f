"""
OpenSea API client.

Every operation funnels into `OpenSea.request`, which builds the URL,
authenticates, validates the response, unwraps the envelope key and, for
endpoints listed in OPENSEA_PERSIST_METHODS, hands the records to the
ingestor.
"""
import asyncio
import json
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union
from urllib.parse import quote

import httpx

from opensea_wrapper.core.config import Settings, settings as default_settings
from opensea_wrapper.core.console import ConsoleOutput
from opensea_wrapper.core.decorators import profile_request
from opensea_wrapper.core.exceptions import (
    BlockedRequestError,
    ConfigurationError,
    DomainInconsistencyError,
    RequestError,
)
from opensea_wrapper.schemas.crawl import Cursor, OccurredAfter
from opensea_wrapper.services import endpoints
from opensea_wrapper.services.crawler import Crawler
from opensea_wrapper.services.ingestion import EventIngestor

ACCESS_DENIED_MARKER = "Access denied"

PageFetcher = Callable[[Dict[str, Any], Cursor], Awaitable[List[Dict[str, Any]]]]


def build_query(params: Dict[str, Any]) -> str:
    """
    Encode params, list values as repeated pairs.

    OpenSea wants `token_ids=1&token_ids=209`, never `token_ids[]=...`.
    """
    return str(httpx.QueryParams({k: v for k, v in params.items() if v is not None}))


def chunked(items: List[Any], size: int) -> List[List[Any]]:
    return [items[i:i + size] for i in range(0, len(items), size)]


class OpenSea:
    def __init__(
        self,
        config: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
        ingestor: Optional[EventIngestor] = None,
        console: Optional[ConsoleOutput] = None,
        order_by_desc: bool = False,
        persist_methods: Optional[List[str]] = None,
    ):
        self.settings = config or default_settings
        self.console = console or ConsoleOutput(debug=self.settings.APP_DEBUG)
        self.base_url = self.settings.OPENSEA_BASE_URL.rstrip("/")
        self.limit = self.settings.OPENSEA_PAGE_LIMIT
        self.order_by_desc = order_by_desc
        self.ingestor = ingestor
        self.persist_methods = (
            self.settings.persist_methods if persist_methods is None else persist_methods
        )
        if self.persist_methods and self.ingestor is None:
            self.console.warn(
                f"No ingestor configured, results of {', '.join(self.persist_methods)} will not be stored"
            )

        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=self.settings.OPENSEA_TIMEOUT)
        self.crawler = Crawler(self)

        self.paged_operations: Dict[str, PageFetcher] = {
            "assets": self._assets_page,
            "bundles": self._bundles_page,
            "orders": self._orders_page,
            "events": self._events_page,
        }

    async def __aenter__(self) -> "OpenSea":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    # ==========================================
    # Operations
    # ==========================================

    async def asset(self, contract_address: str, token_id: Union[str, int]) -> Dict[str, Any]:
        return await self.request(
            endpoints.ASSET_PATH.format(contract_address=contract_address, token_id=token_id)
        )

    async def assets(self, params: Dict[str, Any], sleep: float = 0) -> List[Dict[str, Any]]:
        return await self.request_using_token_ids(endpoints.ASSETS_PATH, params, sleep)

    async def bundles(self, params: Dict[str, Any], sleep: float = 0) -> List[Dict[str, Any]]:
        return await self.request_using_token_ids(endpoints.ASSETS_PATH, params, sleep)

    async def orders(self, params: Dict[str, Any], sleep: float = 0) -> List[Dict[str, Any]]:
        return await self.request_using_token_ids(endpoints.ORDERS_PATH, params, sleep)

    async def events(
        self,
        params: Dict[str, Any],
        crawl: Union[bool, str, int] = False,
        sleep: float = 0,
    ) -> Union[List[Dict[str, Any]], Dict[str, List[Dict[str, Any]]]]:
        """
        One page of events, or a crawl over many.

        `crawl="all"` crawls until the last page, a positive int caps the
        number of requests. `params["occurred_after"]` ({key, value}) stops
        at the first already-seen record and is never sent to OpenSea.
        """
        params = dict(params)
        occurred_after = OccurredAfter.parse(params.pop("occurred_after", None))

        if crawl == "all" or crawl is True:
            return await self.crawler.crawl_all("events", params, sleep, occurred_after)
        if crawl:
            if not isinstance(crawl, int) or crawl < 1:
                raise DomainInconsistencyError(f"crawl must be 'all' or a positive int, got {crawl!r}")
            return await self.crawler.crawl_with_max_requests(
                "events", params, crawl, sleep, occurred_after
            )

        records = await self.request(endpoints.EVENTS_PATH, {**params, "limit": self.limit})
        if occurred_after is not None:
            records, _ = occurred_after.truncate(records)
        return records

    async def collection_stats(self, slug: str) -> Dict[str, Any]:
        return await self.request(endpoints.COLLECTION_STATS_PATH.format(slug=slug))

    # ==========================================
    # Pagination helpers
    # ==========================================

    def paged_operation(self, name: str) -> PageFetcher:
        try:
            return self.paged_operations[name]
        except KeyError:
            raise ConfigurationError(f"{name!r} is not a paginated OpenSea operation") from None

    async def _assets_page(self, params: Dict[str, Any], cursor: Cursor) -> List[Dict[str, Any]]:
        return await self.assets(params)

    async def _bundles_page(self, params: Dict[str, Any], cursor: Cursor) -> List[Dict[str, Any]]:
        return await self.bundles(params)

    async def _orders_page(self, params: Dict[str, Any], cursor: Cursor) -> List[Dict[str, Any]]:
        return await self.orders(params)

    async def _events_page(self, params: Dict[str, Any], cursor: Cursor) -> List[Dict[str, Any]]:
        return await self.request(endpoints.EVENTS_PATH, {**params, "limit": self.limit}, cursor=cursor)

    async def request_using_token_ids(
        self,
        endpoint: str,
        params: Dict[str, Any],
        sleep: float = 0,
    ) -> List[Dict[str, Any]]:
        """
        Request a list endpoint, splitting `token_ids` into chunks.

        OpenSea accepts at most OPENSEA_TOKEN_IDS_CHUNK ids per call; each
        chunk is requested with the other params unchanged and the results
        are concatenated in chunk order.
        """
        # Force limit to the maximum allowed
        params = {**params, "limit": self.limit}

        if not params.get("token_ids"):
            params.pop("token_ids", None)
            return await self.request(endpoint, params)

        token_ids = params.pop("token_ids")
        # A single id is one item, not a sequence of characters
        token_ids = [token_ids] if isinstance(token_ids, (str, int)) else list(token_ids)
        chunks = chunked(token_ids, self.settings.OPENSEA_TOKEN_IDS_CHUNK)
        merged: List[Dict[str, Any]] = []
        for index, chunk in enumerate(chunks):
            query = build_query({**params, "token_ids": chunk})
            result = await self.request(endpoint, params, query=query)
            if not isinstance(result, list):
                raise DomainInconsistencyError(
                    f"{endpoint} chunk #{index + 1} did not return a list of records"
                )
            merged.extend(result)

            if sleep and index < len(chunks) - 1:
                await asyncio.sleep(sleep)

        return merged

    # ==========================================
    # Request execution
    # ==========================================

    def build_url(self, endpoint: str, params: Optional[Dict[str, Any]] = None, query: Optional[str] = None) -> str:
        query = query if query is not None else build_query(params or {})
        pairs = [pair for pair in query.split("&") if pair and not pair.startswith("format=")]
        pairs.append("format=json")
        url = f"{self.base_url}{endpoint}?{'&'.join(pairs)}"

        if not self.settings.OPENSEA_PROXY_ENABLED:
            return url

        if not self.settings.OPENSEA_PROXY_TOKEN:
            raise ConfigurationError("OPENSEA_PROXY_TOKEN is required when OPENSEA_PROXY_ENABLED is set")
        if not self.settings.OPENSEA_PROXY_HOST:
            raise ConfigurationError("OPENSEA_PROXY_HOST is required when OPENSEA_PROXY_ENABLED is set")
        return (
            f"https://{self.settings.OPENSEA_PROXY_HOST}/"
            f"?token={quote(self.settings.OPENSEA_PROXY_TOKEN, safe='')}&url={quote(url, safe='')}"
        )

    def get_request_headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if not self.settings.sends_api_key:
            return headers
        if not self.settings.OPENSEA_API_KEY:
            raise ConfigurationError("OPENSEA_API_KEY is not set")
        headers["X-API-KEY"] = self.settings.OPENSEA_API_KEY
        return headers

    @profile_request
    async def request(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        query: Optional[str] = None,
        raw: bool = False,
        cursor: Optional[Cursor] = None,
    ) -> Any:
        """
        GET one endpoint and normalize its response.

        Args:
            endpoint: path below the base url, e.g. "/api/v1/events"
            params: query parameters, ignored when `query` is given
            query: pre-built query string (repeated keys)
            raw: return the whole decoded body instead of the unwrapped value
            cursor: updated in place from the response's next/previous

        Returns:
            the value under the endpoint's envelope key, or the full body
        """
        params = dict(params or {})
        # Fail before touching the network on unknown endpoints
        target = endpoints.resolve(endpoint)

        if cursor is not None and cursor.next and query is None:
            params["cursor"] = cursor.next

        url = self.build_url(endpoint, params, query)
        headers = self.get_request_headers()
        self.console.debug(f"GET {url}")

        response = await self.client.get(url, headers=headers)
        body = self._decode(response, url)

        result = body
        if target.envelope_key is not None:
            if not isinstance(body, dict) or target.envelope_key not in body:
                raise RequestError(
                    f"Response of {endpoint} has no {target.envelope_key!r} key",
                    status_code=response.status_code,
                    body=response.text,
                    url=url,
                )
            result = body[target.envelope_key]
            if result is None:
                raise RequestError(
                    f"Response of {endpoint} has an empty {target.envelope_key!r} key",
                    status_code=response.status_code,
                    body=response.text,
                    url=url,
                )

        if self.order_by_desc and isinstance(result, list):
            result = list(reversed(result))

        if (
            # Should we persist the results on database?
            target.name in self.persist_methods
            and self.ingestor is not None
            # There are results in the response?
            and isinstance(result, list)
            and result
        ):
            await self.ingestor.add_events(result)

        if cursor is not None and isinstance(body, dict) and cursor.update_from(body):
            self.console.debug(f"Cursor next={cursor.next} previous={cursor.previous}")

        return body if raw else result

    def _decode(self, response: httpx.Response, url: str) -> Any:
        if not response.is_success:
            raise RequestError(
                f"OpenSea responded {response.status_code}",
                status_code=response.status_code,
                body=response.text,
                url=url,
            )

        try:
            body = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            if ACCESS_DENIED_MARKER in response.text:
                raise BlockedRequestError(
                    "OpenSea blocked the request",
                    proxy_enabled=self.settings.OPENSEA_PROXY_ENABLED,
                    status_code=response.status_code,
                    body=response.text,
                    url=url,
                ) from None
            raise RequestError(
                "OpenSea returned an undecodable body",
                status_code=response.status_code,
                body=response.text,
                url=url,
            ) from None

        if body is None:
            raise RequestError("null response", status_code=response.status_code, body=response.text, url=url)
        return body
