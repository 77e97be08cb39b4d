"""Translation adapter with timeouts and graceful degradation.

``TranslationAdapter`` wraps a ``TranslationProvider``: every call carries a
timeout, and every failure resolves to the original text instead of raising.
Batch calls fall back to per-item calls for whatever the batch left
unresolved.
"""

import asyncio
import logging

import httpx
from pydantic import BaseModel

from codelingo.exceptions import TranslationFailed
from codelingo.providers import TranslationProvider

log = logging.getLogger(__name__)


class TranslationOutcome(BaseModel):
    """Result of translating one text."""

    original_text: str
    translated_text: str
    success: bool
    from_cache: bool = False
    error: str | None = None

    @classmethod
    def failed(cls, text: str, error: str) -> "TranslationOutcome":
        return cls(original_text=text, translated_text=text, success=False, error=error)


class TranslationAdapter:
    """Timeout-bounded, failure-tolerant front of a translation engine.

    Parameters
    ----------
    provider : TranslationProvider
        The engine doing the actual work.
    timeout : float
        Seconds allowed for a single ``translate`` call.
    batch_timeout : float
        Seconds allowed for a ``translate_batch`` call.
    """

    def __init__(
        self,
        provider: TranslationProvider,
        timeout: float = 10.0,
        batch_timeout: float = 30.0,
    ) -> None:
        self.provider = provider
        self.timeout = timeout
        self.batch_timeout = batch_timeout

    async def translate_one(
        self, text: str, source_locale: str | None, target_locale: str
    ) -> TranslationOutcome:
        try:
            translated = await asyncio.wait_for(
                self.provider.translate(text, source_locale, target_locale),
                timeout=self.timeout,
            )
        except TimeoutError:
            log.warning(
                "Translation to %s timed out after %ss", target_locale, self.timeout
            )
            return TranslationOutcome.failed(text, "translation timed out")
        except TranslationFailed as err:
            log.warning("Translation to %s failed: %s", target_locale, err.reason)
            return TranslationOutcome.failed(text, err.reason)
        except httpx.HTTPError as err:
            log.warning("Translation to %s failed: %s", target_locale, err)
            return TranslationOutcome.failed(text, str(err) or type(err).__name__)
        return TranslationOutcome(
            original_text=text, translated_text=translated, success=True
        )

    async def translate_many(
        self, texts: list[str], source_locale: str | None, target_locale: str
    ) -> list[TranslationOutcome]:
        """Translate ``texts`` in one batch, then item by item for the rest.

        The result list is aligned with ``texts``.
        """
        if not texts:
            return []

        resolved: list[str | None]
        try:
            resolved = await asyncio.wait_for(
                self.provider.translate_batch(texts, source_locale, target_locale),
                timeout=self.batch_timeout,
            )
            if len(resolved) != len(texts):
                log.warning(
                    "Batch returned %d results for %d texts", len(resolved), len(texts)
                )
                resolved = [None] * len(texts)
        except TimeoutError:
            log.warning("Batch translation of %d texts timed out", len(texts))
            resolved = [None] * len(texts)
        except (TranslationFailed, httpx.HTTPError) as err:
            log.warning("Batch translation of %d texts failed: %s", len(texts), err)
            resolved = [None] * len(texts)

        pending = [i for i, value in enumerate(resolved) if value is None]
        if pending:
            log.debug("Resolving %d of %d texts individually", len(pending), len(texts))
        singles = await asyncio.gather(
            *(
                self.translate_one(texts[i], source_locale, target_locale)
                for i in pending
            )
        )
        fallback = dict(zip(pending, singles, strict=True))

        outcomes = []
        for i, text in enumerate(texts):
            if i in fallback:
                outcomes.append(fallback[i])
            else:
                outcomes.append(
                    TranslationOutcome(
                        original_text=text,
                        translated_text=resolved[i],  # type: ignore[arg-type]
                        success=True,
                    )
                )
        return outcomes
