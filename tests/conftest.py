"""Shared fixtures for the codelingo test suite."""

import asyncio
from collections.abc import AsyncIterator
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import fakeredis
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

import codelingo.models  # noqa: F401 - registers the tables
from codelingo.cache import TranslationCache
from codelingo.config import Settings, TranslationSettings
from codelingo.coordinator import SessionCoordinator
from codelingo.exceptions import TranslationFailed
from codelingo.fanout import Fanout
from codelingo.providers import TranslationProvider
from codelingo.store import RoomStore
from codelingo.translation import TranslationAdapter

# =============================================================================
# Test doubles
# =============================================================================


class FakeProvider(TranslationProvider):
    """Deterministic engine: ``text`` becomes ``[<locale>] text``.

    Texts listed in ``fail`` raise ``TranslationFailed`` on ``translate`` and
    are left unresolved by ``translate_batch``. With ``batch=False`` every
    batch call raises. ``gate`` holds all calls until it is set.
    """

    name = "fake"

    def __init__(
        self,
        *,
        batch: bool = True,
        fail: set[str] | None = None,
        gate: asyncio.Event | None = None,
    ) -> None:
        self.batch = batch
        self.fail = fail or set()
        self.gate = gate
        self.calls: list[tuple[str, str]] = []
        self.batch_calls: list[list[str]] = []

    async def translate(
        self, text: str, source_locale: str | None, target_locale: str
    ) -> str:
        self.calls.append((text, target_locale))
        if self.gate is not None:
            await self.gate.wait()
        if text in self.fail:
            raise TranslationFailed(text, "engine refused")
        return f"[{target_locale}] {text}"

    async def translate_batch(
        self, texts: list[str], source_locale: str | None, target_locale: str
    ) -> list[str | None]:
        self.batch_calls.append(list(texts))
        if self.gate is not None:
            await self.gate.wait()
        if not self.batch:
            raise TranslationFailed(" ".join(texts), "batch unavailable")
        return [None if t in self.fail else f"[{target_locale}] {t}" for t in texts]


def emitted(sio: MagicMock, event: str, **match: object) -> list[dict]:
    """Payloads of every ``sio.emit`` call for ``event`` matching ``match``.

    ``match`` compares emit keyword arguments, e.g. ``to="sid-b"`` or
    ``room="room:ab12cd34"``.
    """
    payloads = []
    for call in sio.emit.call_args_list:
        if call.args[0] != event:
            continue
        if any(call.kwargs.get(key) != value for key, value in match.items()):
            continue
        payloads.append(call.args[1] if len(call.args) > 1 else None)
    return payloads


# =============================================================================
# Fixtures
# =============================================================================


@pytest_asyncio.fixture(name="session_maker")
async def session_maker_fixture(tmp_path: Path) -> AsyncIterator[async_sessionmaker]:
    """File-backed SQLite database, fresh for each test.

    Pipeline tests run several sessions concurrently, so every session needs
    its own connection.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'codelingo.db'}",
        connect_args={"check_same_thread": False},
    )
    try:
        async with engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)
        yield async_sessionmaker(
            bind=engine, class_=AsyncSession, expire_on_commit=False
        )
    finally:
        await engine.dispose()


@pytest.fixture(name="store")
def store_fixture(session_maker: async_sessionmaker) -> RoomStore:
    return RoomStore(session_maker)


@pytest.fixture(name="cache")
def cache_fixture(session_maker: async_sessionmaker) -> TranslationCache:
    return TranslationCache(session_maker)


@pytest.fixture(name="provider")
def provider_fixture() -> FakeProvider:
    return FakeProvider()


@pytest.fixture(name="settings")
def settings_fixture() -> Settings:
    return Settings(
        translation=TranslationSettings(
            provider="echo",
            debounce_seconds=0,
            timeout_seconds=1,
            batch_timeout_seconds=1,
        )
    )


@pytest_asyncio.fixture(name="redis")
async def redis_fixture() -> AsyncIterator[fakeredis.FakeAsyncRedis]:
    """Isolated fake Redis; a private server keeps keys out of other tests."""
    client = fakeredis.FakeAsyncRedis(
        server=fakeredis.FakeServer(), decode_responses=True
    )
    yield client
    await client.aclose()


@pytest.fixture(name="mock_sio")
def mock_sio_fixture() -> MagicMock:
    """Create a mock Socket.IO server for testing."""
    sio_mock = MagicMock()
    sio_mock.emit = AsyncMock()
    sio_mock.enter_room = AsyncMock()
    sio_mock.leave_room = AsyncMock()
    return sio_mock


@pytest_asyncio.fixture(name="coordinator")
async def coordinator_fixture(
    store: RoomStore,
    cache: TranslationCache,
    provider: FakeProvider,
    mock_sio: MagicMock,
    redis: fakeredis.FakeAsyncRedis,
    settings: Settings,
) -> AsyncIterator[SessionCoordinator]:
    coordinator = SessionCoordinator(
        store=store,
        cache=cache,
        adapter=TranslationAdapter(provider, timeout=1, batch_timeout=1),
        fanout=Fanout(mock_sio),
        redis=redis,
        settings=settings,
    )
    yield coordinator
    await coordinator.close()


@pytest_asyncio.fixture(name="client")
async def client_fixture(
    store: RoomStore,
    cache: TranslationCache,
    coordinator: SessionCoordinator,
) -> AsyncIterator[AsyncClient]:
    """Create an async test client with dependencies overridden."""
    from codelingo.app import app
    from codelingo.dependencies import (
        get_adapter,
        get_cache,
        get_coordinator,
        get_store,
    )

    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_cache] = lambda: cache
    app.dependency_overrides[get_adapter] = lambda: coordinator.adapter
    app.dependency_overrides[get_coordinator] = lambda: coordinator

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()
