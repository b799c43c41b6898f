"""Shared fixtures: settings, a fake OpenSea API and a SQLite store."""
from typing import Any, Callable, Dict, List

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine

from opensea_wrapper.core.config import Settings
from opensea_wrapper.core.console import ConsoleOutput
from opensea_wrapper.db.base import Base
from opensea_wrapper.db.session import create_session_factory
from opensea_wrapper.services.client import OpenSea


def make_settings(**overrides) -> Settings:
    values = {
        "OPENSEA_API_KEY": "test-key",
        "APP_ENV": "production",
        "OPENSEA_PROXY_ENABLED": False,
        "OPENSEA_PERSIST_METHODS": "",
        "APP_DEBUG": False,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_event(event_id: int, created_date: str = "2023-02-01T00:00:00", **overrides) -> Dict[str, Any]:
    payload = {
        "id": event_id,
        "event_type": "successful",
        "created_date": created_date,
        "asset": {
            "id": 1000 + event_id,
            "token_id": str(event_id),
            "asset_contract": {"address": "0xabc"},
        },
        "asset_bundle": None,
    }
    payload.update(overrides)
    return payload


def make_records(start: int, count: int) -> List[Dict[str, Any]]:
    return [{"id": i} for i in range(start, start + count)]


class FakeApi:
    """httpx handler recording requests and answering with `responder`."""

    def __init__(self, responder: Callable[[httpx.Request], httpx.Response]):
        self.responder = responder
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responder(request)


class PagedApi(FakeApi):
    """Answers successive requests with successive queued responses."""

    def __init__(self, responses: List[httpx.Response]):
        self.responses = list(responses)
        super().__init__(lambda request: self.responses.pop(0))


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest_asyncio.fixture
async def make_client(settings):
    clients: List[OpenSea] = []

    def factory(api: FakeApi, config: Settings = None, **kwargs) -> OpenSea:
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(api))
        kwargs.setdefault("console", ConsoleOutput(debug=True))
        opensea = OpenSea(config=config or settings, client=http_client, **kwargs)
        clients.append(opensea)
        return opensea

    yield factory

    for opensea in clients:
        await opensea.client.aclose()


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'opensea.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield create_session_factory(engine)

    await engine.dispose()
