"""Async database setup and application lifespan management.

Uses app.state pattern to store resources:
- settings: Settings instance
- engine / session_maker: SQLAlchemy async engine and SQLModel session factory
- redis: Redis async client (fakeredis when no Redis URL is configured)
- http_client: httpx client shared by the translation engines
- store, cache, adapter, fanout, coordinator: the room session components
- sio: the Socket.IO server
"""

import contextlib
import logging
from collections.abc import AsyncIterator

import fakeredis
import httpx
import redis.asyncio as redis_client
import socketio as socketio_lib
from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession as SQLModelAsyncSession

import codelingo.models  # noqa: F401 - registers Room, Member, TranslationCacheEntry
from codelingo.cache import TranslationCache
from codelingo.config import Settings, get_settings
from codelingo.coordinator import SessionCoordinator
from codelingo.fanout import Fanout
from codelingo.providers import create_provider
from codelingo.socketio import sio
from codelingo.store import RoomStore
from codelingo.translation import TranslationAdapter

log = logging.getLogger(__name__)


def _is_sqlite(database_url: str) -> bool:
    """Check if database is SQLite (sync or async)."""
    return database_url.startswith(("sqlite://", "sqlite+aiosqlite://"))


def create_engine_for_url(database_url: str) -> AsyncEngine:
    """Create an async engine; SQLite connections may be shared across tasks."""
    kwargs: dict = {}
    if _is_sqlite(database_url):
        kwargs["connect_args"] = {"check_same_thread": False}
    return create_async_engine(database_url, **kwargs)


async def init_database(engine: AsyncEngine) -> None:
    """Create all tables. Idempotent (CREATE TABLE IF NOT EXISTS)."""
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


def _split_origins(value: str) -> list[str] | str:
    origins = [origin.strip() for origin in value.split(",") if origin.strip()]
    if origins == ["*"]:
        return "*"
    return origins


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """FastAPI lifespan context manager for all application resources."""
    settings: Settings = getattr(app.state, "settings", None) or get_settings()
    app.state.settings = settings

    engine = create_engine_for_url(settings.database_url)
    app.state.engine = engine
    app.state.session_maker = async_sessionmaker(
        engine, class_=SQLModelAsyncSession, expire_on_commit=False
    )

    try:
        if settings.init_db_on_startup:
            await init_database(engine)

        # Redis - fall back to fakeredis in single-process mode
        if settings.in_memory_mode:
            app.state.redis = fakeredis.FakeAsyncRedis(decode_responses=True)
        else:
            app.state.redis = redis_client.from_url(
                settings.redis_url, decode_responses=True
            )
            # Socket.IO fan-out across processes
            client_manager = socketio_lib.AsyncRedisManager(settings.redis_url)
            client_manager.set_server(sio)
            sio.manager = client_manager
            sio.manager_initialized = False
        sio.eio.cors_allowed_origins = _split_origins(settings.cors_allowed_origins)
        sio.app = app  # type: ignore[attr-defined]
        app.state.sio = sio

        translation = settings.translation
        app.state.http_client = httpx.AsyncClient(timeout=translation.timeout_seconds)
        provider = create_provider(translation, app.state.http_client)
        app.state.provider = provider
        app.state.adapter = TranslationAdapter(
            provider,
            timeout=translation.timeout_seconds,
            batch_timeout=translation.batch_timeout_seconds,
        )
        app.state.store = RoomStore(app.state.session_maker)
        app.state.cache = TranslationCache(app.state.session_maker)
        app.state.fanout = Fanout(sio)
        app.state.coordinator = SessionCoordinator(
            store=app.state.store,
            cache=app.state.cache,
            adapter=app.state.adapter,
            fanout=app.state.fanout,
            redis=app.state.redis,
            settings=settings,
        )
        log.info("codelingo started (translation provider: %s)", provider.name)

        yield

        # Shutdown in reverse order
        await app.state.coordinator.close()
        await provider.aclose()
        await app.state.http_client.aclose()
        await app.state.redis.aclose()
    finally:
        await engine.dispose()
