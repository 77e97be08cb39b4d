"""Translation engines and the factory selecting one from settings."""

import httpx

from codelingo.config import TranslationSettings
from codelingo.providers.base import (
    EchoProvider,
    FallbackProvider,
    TranslationProvider,
)
from codelingo.providers.lingo import BATCH_SEPARATOR, LingoProvider
from codelingo.providers.mymemory import MyMemoryProvider

__all__ = [
    "BATCH_SEPARATOR",
    "EchoProvider",
    "FallbackProvider",
    "LingoProvider",
    "MyMemoryProvider",
    "TranslationProvider",
    "create_provider",
]


def create_provider(
    settings: TranslationSettings, client: httpx.AsyncClient
) -> TranslationProvider:
    """Build the engine configured by ``settings.provider``.

    ``lingo`` is wrapped in a MyMemory fallback when
    ``use_public_fallback`` is enabled.
    """
    if settings.provider == "echo":
        return EchoProvider()

    mymemory = MyMemoryProvider(client, api_url=settings.public_fallback_url)
    if settings.provider == "mymemory":
        return mymemory

    api_key = settings.api_key.get_secret_value() if settings.api_key else None
    lingo = LingoProvider(client, api_url=settings.api_url, api_key=api_key)
    if settings.use_public_fallback:
        return FallbackProvider(lingo, mymemory)
    return lingo
