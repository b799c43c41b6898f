"""Tests for the OpenSea request contract."""
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from conftest import FakeApi, PagedApi, make_records, make_settings
from opensea_wrapper.core.exceptions import (
    BlockedRequestError,
    ConfigurationError,
    DomainInconsistencyError,
    OpenSeaError,
    RequestError,
)
from opensea_wrapper.schemas.crawl import Cursor
from opensea_wrapper.services.client import build_query, chunked


def ok(payload) -> httpx.Response:
    return httpx.Response(200, json=payload)


class RecordingIngestor:
    def __init__(self):
        self.batches = []

    async def add_events(self, payloads):
        self.batches.append(list(payloads))
        return []


def test_build_query_repeats_list_values():
    query = build_query({"limit": 50, "token_ids": ["1", "209"], "owner": None})
    assert query == "limit=50&token_ids=1&token_ids=209"


def test_chunked_keeps_order():
    assert chunked(list(range(7)), 3) == [[0, 1, 2], [3, 4, 5], [6]]


class TestRequest:
    @pytest.mark.asyncio
    async def test_asset_is_not_unwrapped(self, make_client):
        api = FakeApi(lambda request: ok({"id": 1, "token_id": "7"}))
        opensea = make_client(api)

        result = await opensea.asset("0xabc", 7)

        assert result == {"id": 1, "token_id": "7"}
        request = api.requests[0]
        assert request.url.path == "/api/v1/asset/0xabc/7"
        assert request.url.params["format"] == "json"
        assert request.headers["X-API-KEY"] == "test-key"

    @pytest.mark.asyncio
    async def test_format_json_is_forced(self, make_client):
        api = FakeApi(lambda request: ok({"assets": []}))
        opensea = make_client(api)

        await opensea.request("/api/v1/assets", {"format": "xml", "owner": "0x1"})

        assert api.requests[0].url.params.get_list("format") == ["json"]
        assert api.requests[0].url.params["owner"] == "0x1"

    @pytest.mark.asyncio
    async def test_missing_api_key_fails_before_any_request(self, make_client):
        api = FakeApi(lambda request: ok({"assets": []}))
        opensea = make_client(api, config=make_settings(OPENSEA_API_KEY=None))

        with pytest.raises(ConfigurationError):
            await opensea.assets({})
        assert api.requests == []

    @pytest.mark.asyncio
    async def test_api_key_not_sent_outside_production(self, make_client):
        api = FakeApi(lambda request: ok({"assets": []}))
        opensea = make_client(api, config=make_settings(OPENSEA_API_KEY=None, APP_ENV="local"))

        await opensea.assets({})

        assert "X-API-KEY" not in api.requests[0].headers

    @pytest.mark.asyncio
    async def test_unknown_endpoint_fails_before_any_request(self, make_client):
        api = FakeApi(lambda request: ok({}))
        opensea = make_client(api)

        with pytest.raises(ConfigurationError):
            await opensea.request("/api/v1/unknown")
        assert api.requests == []

    @pytest.mark.asyncio
    async def test_proxy_rewrites_the_whole_url(self, make_client):
        api = FakeApi(lambda request: ok({"stats": {"floor_price": 1.5}}))
        config = make_settings(
            OPENSEA_PROXY_ENABLED=True,
            OPENSEA_PROXY_HOST="proxy.example.com",
            OPENSEA_PROXY_TOKEN="secret",
        )
        opensea = make_client(api, config=config)

        stats = await opensea.collection_stats("doodles")

        assert stats == {"floor_price": 1.5}
        url = api.requests[0].url
        assert url.host == "proxy.example.com"
        query = parse_qs(urlparse(str(url)).query)
        assert query["token"] == ["secret"]
        assert query["url"] == ["https://api.opensea.io/api/v1/collection/doodles/stats?format=json"]

    @pytest.mark.asyncio
    async def test_proxy_without_token_fails(self, make_client):
        api = FakeApi(lambda request: ok({}))
        config = make_settings(OPENSEA_PROXY_ENABLED=True, OPENSEA_PROXY_HOST="proxy.example.com")
        opensea = make_client(api, config=config)

        with pytest.raises(ConfigurationError):
            await opensea.collection_stats("doodles")
        assert api.requests == []

    @pytest.mark.asyncio
    async def test_http_error_carries_body(self, make_client):
        api = FakeApi(lambda request: httpx.Response(500, text="upstream down"))
        opensea = make_client(api)

        with pytest.raises(RequestError) as excinfo:
            await opensea.assets({})
        assert excinfo.value.status_code == 500
        assert excinfo.value.body == "upstream down"

    @pytest.mark.asyncio
    async def test_access_denied_page_is_a_blocked_request(self, make_client):
        api = FakeApi(lambda request: httpx.Response(200, text="<html><h1>Access denied</h1></html>"))
        opensea = make_client(api)

        with pytest.raises(BlockedRequestError) as excinfo:
            await opensea.assets({})
        assert excinfo.value.proxy_enabled is False

    @pytest.mark.asyncio
    async def test_undecodable_body_is_a_request_error(self, make_client):
        api = FakeApi(lambda request: httpx.Response(200, text=""))
        opensea = make_client(api)

        with pytest.raises(RequestError) as excinfo:
            await opensea.assets({})
        assert not isinstance(excinfo.value, BlockedRequestError)

    @pytest.mark.asyncio
    async def test_null_body_is_a_request_error(self, make_client):
        api = FakeApi(lambda request: httpx.Response(200, content=b"null"))
        opensea = make_client(api)

        with pytest.raises(RequestError, match="null response"):
            await opensea.assets({})

    @pytest.mark.asyncio
    async def test_missing_envelope_key(self, make_client):
        api = FakeApi(lambda request: ok({"detail": "nope"}))
        opensea = make_client(api)

        with pytest.raises(RequestError, match="asset_events"):
            await opensea.events({})

    @pytest.mark.asyncio
    async def test_raw_mode_returns_the_envelope(self, make_client):
        envelope = {"next": "abc", "previous": None, "asset_events": [{"id": 1}]}
        api = FakeApi(lambda request: ok(envelope))
        opensea = make_client(api)

        assert await opensea.request("/api/v1/events", raw=True) == envelope

    @pytest.mark.asyncio
    async def test_order_by_desc_reverses_the_page(self, make_client):
        api = FakeApi(lambda request: ok({"orders": make_records(1, 3)}))
        opensea = make_client(api, order_by_desc=True)

        orders = await opensea.orders({})

        assert [o["id"] for o in orders] == [3, 2, 1]
        assert api.requests[0].url.path == "/wyvern/v1/orders"

    @pytest.mark.asyncio
    async def test_cursor_is_updated_from_the_envelope(self, make_client):
        api = PagedApi([
            ok({"next": "c2", "previous": None, "asset_events": [{"id": 1}]}),
            ok({"next": None, "previous": "c1", "asset_events": [{"id": 2}]}),
        ])
        opensea = make_client(api)
        cursor = Cursor()

        await opensea.request("/api/v1/events", cursor=cursor)
        assert cursor.next == "c2"

        await opensea.request("/api/v1/events", cursor=cursor)
        assert api.requests[1].url.params["cursor"] == "c2"
        assert cursor.next is None
        assert cursor.previous == "c1"


class TestTokenIdBatching:
    @pytest.mark.asyncio
    async def test_limit_is_forced(self, make_client):
        api = FakeApi(lambda request: ok({"assets": []}))
        opensea = make_client(api)

        await opensea.assets({"limit": 500, "owner": "0x1"})

        assert api.requests[0].url.params["limit"] == "50"

    @pytest.mark.asyncio
    async def test_token_ids_are_split_in_chunks_of_30(self, make_client):
        def responder(request):
            ids = request.url.params.get_list("token_ids")
            return ok({"assets": [{"token_id": token_id} for token_id in ids]})

        api = FakeApi(responder)
        opensea = make_client(api)
        token_ids = [str(i) for i in range(65)]

        assets = await opensea.assets({"asset_contract_address": "0xabc", "token_ids": token_ids})

        assert len(api.requests) == 3
        assert [len(r.url.params.get_list("token_ids")) for r in api.requests] == [30, 30, 5]
        for request in api.requests:
            assert request.url.params["asset_contract_address"] == "0xabc"
            assert request.url.params["limit"] == "50"
            assert request.url.params["format"] == "json"
        assert [a["token_id"] for a in assets] == token_ids

    @pytest.mark.asyncio
    @pytest.mark.parametrize("token_ids", ["5760", 5760])
    async def test_single_token_id_is_not_split(self, make_client, token_ids):
        api = FakeApi(lambda request: ok({"assets": [{"token_id": "5760"}]}))
        opensea = make_client(api)

        assets = await opensea.assets({"token_ids": token_ids})

        assert len(api.requests) == 1
        assert api.requests[0].url.params.get_list("token_ids") == ["5760"]
        assert assets == [{"token_id": "5760"}]

    @pytest.mark.asyncio
    async def test_sleeps_between_chunks_only(self, make_client, monkeypatch):
        sleeps = []

        async def fake_sleep(seconds):
            sleeps.append(seconds)

        monkeypatch.setattr("opensea_wrapper.services.client.asyncio.sleep", fake_sleep)
        api = FakeApi(lambda request: ok({"orders": []}))
        opensea = make_client(api)

        await opensea.orders({"token_ids": list(range(61))}, sleep=2)

        assert len(api.requests) == 3
        assert sleeps == [2, 2]

    @pytest.mark.asyncio
    async def test_chunk_without_a_list_is_inconsistent(self, make_client):
        api = FakeApi(lambda request: ok({"assets": {"unexpected": True}}))
        opensea = make_client(api)

        with pytest.raises(DomainInconsistencyError):
            await opensea.bundles({"token_ids": ["1", "2"]})


class TestEvents:
    @pytest.mark.asyncio
    async def test_single_page_forces_limit(self, make_client):
        api = FakeApi(lambda request: ok({"next": None, "asset_events": [{"id": 1}]}))
        opensea = make_client(api)

        events = await opensea.events({"limit": 10, "event_type": "successful"})

        assert events == [{"id": 1}]
        assert api.requests[0].url.params["limit"] == "50"
        assert api.requests[0].url.params["event_type"] == "successful"

    @pytest.mark.asyncio
    async def test_occurred_after_is_not_sent_and_truncates(self, make_client):
        page = [
            {"id": 3, "created_date": "2023-01-03"},
            {"id": 2, "created_date": "2023-01-01"},
            {"id": 1, "created_date": "2022-12-31"},
        ]
        api = FakeApi(lambda request: ok({"asset_events": page}))
        opensea = make_client(api)

        events = await opensea.events(
            {"occurred_after": {"key": "created_date", "value": "2023-01-01"}}
        )

        assert [e["id"] for e in events] == [3]
        assert "occurred_after" not in api.requests[0].url.params

    @pytest.mark.asyncio
    async def test_occurred_after_without_key(self, make_client):
        api = FakeApi(lambda request: ok({"asset_events": []}))
        opensea = make_client(api)

        with pytest.raises(DomainInconsistencyError):
            await opensea.events({"occurred_after": {"value": "2023-01-01"}})
        assert api.requests == []

    @pytest.mark.asyncio
    async def test_invalid_crawl_budget(self, make_client):
        api = FakeApi(lambda request: ok({"asset_events": []}))
        opensea = make_client(api)

        with pytest.raises(DomainInconsistencyError):
            await opensea.events({}, crawl=-1)
        with pytest.raises(OpenSeaError):
            await opensea.events({}, crawl="some")
        assert api.requests == []

    @pytest.mark.asyncio
    async def test_configured_endpoints_are_persisted(self, make_client):
        ingestor = RecordingIngestor()
        api = PagedApi([
            ok({"asset_events": [{"id": 1}, {"id": 2}]}),
            ok({"asset_events": []}),
            ok({"assets": [{"id": 9}]}),
        ])
        opensea = make_client(api, ingestor=ingestor, persist_methods=["events"])

        await opensea.events({})
        await opensea.events({})
        await opensea.assets({})

        assert ingestor.batches == [[{"id": 1}, {"id": 2}]]

    @pytest.mark.asyncio
    async def test_persist_methods_default_to_settings(self, make_client):
        ingestor = RecordingIngestor()
        api = FakeApi(lambda request: ok({"assets": [{"id": 9}]}))
        opensea = make_client(
            api, config=make_settings(OPENSEA_PERSIST_METHODS="assets, events"), ingestor=ingestor
        )

        await opensea.assets({})

        assert opensea.persist_methods == ["assets", "events"]
        assert ingestor.batches == [[{"id": 9}]]
