"""FastAPI dependencies for the room session components.

All resources are accessed from request.app.state (populated by the lifespan)
so tests can swap any of them through ``app.dependency_overrides``.
"""

from typing import Annotated

from fastapi import Depends, Request

from codelingo.cache import TranslationCache
from codelingo.coordinator import SessionCoordinator
from codelingo.store import RoomStore
from codelingo.translation import TranslationAdapter


def get_store(request: Request) -> RoomStore:
    """Get the room store from app.state."""
    return request.app.state.store


StoreDep = Annotated[RoomStore, Depends(get_store)]


def get_cache(request: Request) -> TranslationCache:
    return request.app.state.cache


CacheDep = Annotated[TranslationCache, Depends(get_cache)]


def get_adapter(request: Request) -> TranslationAdapter:
    """Get the translation adapter from app.state."""
    return request.app.state.adapter


AdapterDep = Annotated[TranslationAdapter, Depends(get_adapter)]


def get_coordinator(request: Request) -> SessionCoordinator:
    return request.app.state.coordinator


CoordinatorDep = Annotated[SessionCoordinator, Depends(get_coordinator)]
