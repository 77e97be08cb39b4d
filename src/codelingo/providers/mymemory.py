"""MyMemory public translation engine, used as a free fallback."""

import httpx

from codelingo.exceptions import TranslationFailed
from codelingo.providers.base import TranslationProvider


class MyMemoryProvider(TranslationProvider):
    """Translate single texts through ``api.mymemory.translated.net``.

    The API has no batch endpoint, so ``translate_batch`` leaves every item
    unresolved.
    """

    name = "mymemory"

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_url: str = "https://api.mymemory.translated.net/get",
        default_source_locale: str = "en",
    ) -> None:
        self.client = client
        self.api_url = api_url
        self.default_source_locale = default_source_locale

    async def translate(
        self, text: str, source_locale: str | None, target_locale: str
    ) -> str:
        langpair = f"{source_locale or self.default_source_locale}|{target_locale}"
        try:
            response = await self.client.get(
                self.api_url, params={"q": text, "langpair": langpair}
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as err:
            raise TranslationFailed(text, f"mymemory request failed: {err}") from err

        translated = (data.get("responseData") or {}).get("translatedText")
        if not translated:
            raise TranslationFailed(text, "mymemory response has no translated text")
        return translated
