"""Tests for the persistent translation cache."""

from datetime import UTC, datetime, timedelta

import pytest

from codelingo.cache import TranslationCache, fingerprint
from codelingo.models import TranslationCacheEntry


def _entry(
    text: str,
    translated: str,
    *,
    locale: str = "es-ES",
    room_id: str = "room0001",
    client_id: str = "alice",
    created_at: datetime | None = None,
) -> TranslationCacheEntry:
    return TranslationCacheEntry(
        fingerprint=fingerprint(text, locale, room_id, client_id),
        original_text=text,
        target_locale=locale,
        translated_text=translated,
        room_id=room_id,
        requesting_client_id=client_id,
        created_at=created_at or datetime.now(UTC),
    )


def test_fingerprint_is_sha256_hex():
    fp = fingerprint("hello", "es-ES", "room0001", "alice")
    assert len(fp) == 64
    assert fp == fingerprint("hello", "es-ES", "room0001", "alice")


@pytest.mark.parametrize(
    "other",
    [
        ("hello!", "es-ES", "room0001", "alice"),
        ("hello", "fr-FR", "room0001", "alice"),
        ("hello", "es-ES", "room0002", "alice"),
        ("hello", "es-ES", "room0001", "bob"),
    ],
    ids=["text", "locale", "room", "client"],
)
def test_fingerprint_changes_with_every_component(other):
    assert fingerprint("hello", "es-ES", "room0001", "alice") != fingerprint(*other)


def test_fingerprint_fields_cannot_bleed_into_each_other():
    """Separator characters inside a field do not produce the same key."""
    assert fingerprint("a:es:r:c", "de", "r", "c") != fingerprint(
        "a", "es", "r", "c:de:r:c"
    )


@pytest.mark.asyncio
async def test_put_and_get(cache: TranslationCache):
    """A stored entry is found by its fingerprint."""
    entry = _entry("hello", "hola")
    await cache.put(entry)

    found = await cache.get(entry.fingerprint)
    assert found is not None
    assert found.translated_text == "hola"
    assert found.created_at.tzinfo is not None
    assert await cache.get("0" * 64) is None


@pytest.mark.asyncio
async def test_put_overwrites_existing_fingerprint(cache: TranslationCache):
    """Writing the same fingerprint twice keeps a single, updated entry."""
    await cache.put(_entry("hello", "hola"))
    await cache.put(_entry("hello", "buenas"))

    history = await cache.history("room0001", "alice")
    assert [e.translated_text for e in history] == ["buenas"]


@pytest.mark.asyncio
async def test_get_many(cache: TranslationCache):
    hello = _entry("hello", "hola")
    world = _entry("world", "mundo")
    await cache.put(hello)
    await cache.put(world)

    found = await cache.get_many([hello.fingerprint, "f" * 64, world.fingerprint])
    assert set(found) == {hello.fingerprint, world.fingerprint}
    assert found[world.fingerprint].translated_text == "mundo"
    assert await cache.get_many([]) == {}


@pytest.mark.asyncio
async def test_history_is_scoped_and_ordered(cache: TranslationCache):
    """History lists one client's entries in one room, oldest first."""
    now = datetime.now(UTC)
    await cache.put(_entry("second", "segundo", created_at=now))
    await cache.put(_entry("first", "primero", created_at=now - timedelta(minutes=1)))
    await cache.put(_entry("other room", "x", room_id="room0002"))
    await cache.put(_entry("other client", "y", client_id="bob"))

    history = await cache.history("room0001", "alice")
    assert [e.original_text for e in history] == ["first", "second"]
