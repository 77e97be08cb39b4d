"""Base interface for translation engines."""

import logging
from abc import ABC, abstractmethod

from codelingo.exceptions import TranslationFailed

log = logging.getLogger(__name__)


class TranslationProvider(ABC):
    """Abstract base class for translation engines.

    Engines translate plain text between locales. They raise
    ``TranslationFailed`` on any failure; timeouts and fallback to the
    original text are handled by ``codelingo.translation.TranslationAdapter``.
    """

    name: str = "base"

    @abstractmethod
    async def translate(
        self, text: str, source_locale: str | None, target_locale: str
    ) -> str:
        """Translate a single text.

        Parameters
        ----------
        text : str
            Text to translate.
        source_locale : str | None
            Locale of ``text``; None lets the engine auto-detect.
        target_locale : str
            Locale to translate into, e.g. ``es-ES``.

        Returns
        -------
        str
            The translated text.

        Raises
        ------
        TranslationFailed
            If the engine could not produce a translation.
        """

    async def translate_batch(
        self, texts: list[str], source_locale: str | None, target_locale: str
    ) -> list[str | None]:
        """Translate several texts, best effort.

        The default implementation resolves nothing, so callers translate
        each text individually. ``None`` marks an unresolved item.
        """
        return [None] * len(texts)

    async def aclose(self) -> None:
        """Release resources held by the engine."""


class EchoProvider(TranslationProvider):
    """Return every text unchanged. Used for offline development."""

    name = "echo"

    async def translate(
        self, text: str, source_locale: str | None, target_locale: str
    ) -> str:
        return text

    async def translate_batch(
        self, texts: list[str], source_locale: str | None, target_locale: str
    ) -> list[str | None]:
        return list(texts)


class FallbackProvider(TranslationProvider):
    """Try ``primary`` first and ``secondary`` when it fails."""

    name = "fallback"

    def __init__(
        self, primary: TranslationProvider, secondary: TranslationProvider
    ) -> None:
        self.primary = primary
        self.secondary = secondary

    async def translate(
        self, text: str, source_locale: str | None, target_locale: str
    ) -> str:
        try:
            return await self.primary.translate(text, source_locale, target_locale)
        except TranslationFailed as err:
            log.warning(
                "%s failed (%s), falling back to %s",
                self.primary.name,
                err.reason,
                self.secondary.name,
            )
        return await self.secondary.translate(text, source_locale, target_locale)

    async def translate_batch(
        self, texts: list[str], source_locale: str | None, target_locale: str
    ) -> list[str | None]:
        # Items the primary leaves unresolved go through translate() per item.
        return await self.primary.translate_batch(texts, source_locale, target_locale)

    async def aclose(self) -> None:
        await self.primary.aclose()
        await self.secondary.aclose()
