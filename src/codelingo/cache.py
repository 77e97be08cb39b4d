"""Persistent translation cache.

Entries are keyed by a fingerprint over (text, target locale, room, requesting
client). The connection id never takes part in the key, so a participant who
reconnects keeps their cached translations.
"""

import hashlib
import json
import logging
from collections.abc import Iterable

from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlmodel import select

from codelingo.models import TranslationCacheEntry
from codelingo.store import dialect_insert

log = logging.getLogger(__name__)


def fingerprint(
    text: str, target_locale: str, room_id: str, requesting_client_id: str
) -> str:
    """Return the SHA-256 hex digest identifying one translation request.

    Examples
    --------
    >>> fingerprint("hello", "es-ES", "ab12cd34", "bob") == fingerprint(
    ...     "hello", "es-ES", "ab12cd34", "bob"
    ... )
    True
    """
    key = json.dumps([text, target_locale, room_id, requesting_client_id])
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


class TranslationCache:
    """Translation cache backed by the ``translationcacheentry`` table."""

    def __init__(self, session_maker: async_sessionmaker) -> None:
        self.session_maker = session_maker

    async def get(self, fp: str) -> TranslationCacheEntry | None:
        async with self.session_maker() as session:
            return await session.get(TranslationCacheEntry, fp)

    async def get_many(self, fps: Iterable[str]) -> dict[str, TranslationCacheEntry]:
        keys = list(set(fps))
        if not keys:
            return {}
        async with self.session_maker() as session:
            result = await session.execute(
                select(TranslationCacheEntry).where(
                    TranslationCacheEntry.fingerprint.in_(keys)  # type: ignore[attr-defined]
                )
            )
            return {entry.fingerprint: entry for entry in result.scalars().all()}

    async def put(self, entry: TranslationCacheEntry) -> None:
        """Store ``entry``; a second put for the same fingerprint overwrites it."""
        async with self.session_maker() as session:
            insert = dialect_insert(session)
            stmt = insert(TranslationCacheEntry).values(
                fingerprint=entry.fingerprint,
                original_text=entry.original_text,
                target_locale=entry.target_locale,
                translated_text=entry.translated_text,
                room_id=entry.room_id,
                requesting_client_id=entry.requesting_client_id,
                created_at=entry.created_at,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["fingerprint"],
                set_={"translated_text": stmt.excluded.translated_text},
            )
            await session.execute(stmt)
            await session.commit()
        log.debug("Cached translation %s for %s", entry.fingerprint[:12], entry.room_id)

    async def history(
        self, room_id: str, requesting_client_id: str
    ) -> list[TranslationCacheEntry]:
        """Return every translation made for one client in one room, oldest first."""
        async with self.session_maker() as session:
            result = await session.execute(
                select(TranslationCacheEntry)
                .where(
                    TranslationCacheEntry.room_id == room_id,
                    TranslationCacheEntry.requesting_client_id == requesting_client_id,
                )
                .order_by(TranslationCacheEntry.created_at)  # type: ignore[arg-type]
            )
            return list(result.scalars().all())
