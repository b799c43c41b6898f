"""
Known OpenSea endpoints.

Each row names an endpoint, the path pattern it answers on, the top-level
key its payload is nested under (the envelope key) and, for list
endpoints, how it is paginated.
"""
import re
from dataclasses import dataclass
from typing import Optional

from opensea_wrapper.core.exceptions import ConfigurationError

OFFSET = "offset"
CURSOR = "cursor"

ASSET_PATH = "/api/v1/asset/{contract_address}/{token_id}"
ASSETS_PATH = "/api/v1/assets"
ORDERS_PATH = "/wyvern/v1/orders"
EVENTS_PATH = "/api/v1/events"
COLLECTION_STATS_PATH = "/api/v1/collection/{slug}/stats"


@dataclass(frozen=True)
class Endpoint:
    name: str
    pattern: re.Pattern
    envelope_key: Optional[str]
    pagination: Optional[str] = None

    @property
    def paginated(self) -> bool:
        return self.pagination is not None


ENDPOINTS = {
    e.name: e
    for e in (
        Endpoint("asset", re.compile(r"^/api/v1/asset/[^/]+/[^/]+/?$"), None),
        Endpoint("assets", re.compile(r"^/api/v1/assets/?$"), "assets", OFFSET),
        # Bundles are served from the assets listing
        Endpoint("bundles", re.compile(r"^/api/v1/assets/?$"), "assets", OFFSET),
        Endpoint("orders", re.compile(r"^/wyvern/v1/orders/?$"), "orders", OFFSET),
        Endpoint("events", re.compile(r"^/api/v1/events/?$"), "asset_events", CURSOR),
        Endpoint("collection_stats", re.compile(r"^/api/v1/collection/[^/]+/stats/?$"), "stats"),
    )
}


def resolve(path: str) -> Endpoint:
    """First registered endpoint whose pattern matches `path`."""
    for endpoint in ENDPOINTS.values():
        if endpoint.pattern.match(path):
            return endpoint
    raise ConfigurationError(f"No envelope key is known for endpoint {path!r}")


def get(name: str) -> Endpoint:
    try:
        return ENDPOINTS[name]
    except KeyError:
        raise ConfigurationError(f"Unknown OpenSea operation {name!r}") from None
