"""Lingo.dev HTTP translation engine."""

import logging

import httpx

from codelingo.exceptions import TranslationFailed
from codelingo.providers.base import TranslationProvider

log = logging.getLogger(__name__)

BATCH_SEPARATOR = "\n<<<LINGO_SEPARATOR>>>\n"


class LingoProvider(TranslationProvider):
    """Translate through the Lingo.dev JSON API.

    Parameters
    ----------
    client : httpx.AsyncClient
        Shared HTTP client; owned by the caller.
    api_url : str
        Translation endpoint.
    api_key : str | None
        Bearer token sent in the ``Authorization`` header.
    """

    name = "lingo"

    def __init__(
        self, client: httpx.AsyncClient, api_url: str, api_key: str | None = None
    ) -> None:
        self.client = client
        self.api_url = api_url
        self.api_key = api_key

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _post(
        self, text: str, source_locale: str | None, target_locale: str
    ) -> str:
        try:
            response = await self.client.post(
                self.api_url,
                json={
                    "text": text,
                    "target_language": target_locale,
                    "source_language": source_locale or "auto",
                },
                headers=self._headers(),
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as err:
            raise TranslationFailed(text, f"lingo request failed: {err}") from err

        translated = data.get("translated_text") or data.get("text")
        if not isinstance(translated, str):
            raise TranslationFailed(text, "lingo response has no translated text")
        return translated

    async def translate(
        self, text: str, source_locale: str | None, target_locale: str
    ) -> str:
        return await self._post(text, source_locale, target_locale)

    async def translate_batch(
        self, texts: list[str], source_locale: str | None, target_locale: str
    ) -> list[str | None]:
        """Translate all texts in one request joined by ``BATCH_SEPARATOR``.

        Raises ``TranslationFailed`` if the reply does not split back into
        exactly one piece per input.
        """
        if not texts:
            return []
        joined = BATCH_SEPARATOR.join(texts)
        translated = await self._post(joined, source_locale, target_locale)
        parts = translated.split(BATCH_SEPARATOR.strip())
        if len(parts) != len(texts):
            log.warning(
                "Lingo batch returned %d parts for %d texts", len(parts), len(texts)
            )
            raise TranslationFailed(joined, "batch separator count mismatch")
        return [part.strip() for part in parts]
