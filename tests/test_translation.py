"""Tests for the timeout-bounded translation adapter."""

import asyncio

import httpx
import pytest
from conftest import FakeProvider

from codelingo.providers import TranslationProvider
from codelingo.translation import TranslationAdapter, TranslationOutcome


class SlowProvider(TranslationProvider):
    name = "slow"

    async def translate(self, text, source_locale, target_locale):
        await asyncio.sleep(5)
        return text

    async def translate_batch(self, texts, source_locale, target_locale):
        await asyncio.sleep(5)
        return list(texts)


class BrokenProvider(TranslationProvider):
    name = "broken"

    async def translate(self, text, source_locale, target_locale):
        raise httpx.ConnectError("connection refused")


class ShortBatchProvider(FakeProvider):
    async def translate_batch(self, texts, source_locale, target_locale):
        self.batch_calls.append(list(texts))
        return ["only one"]


def test_failed_outcome_keeps_original_text():
    outcome = TranslationOutcome.failed("hello", "nope")
    assert outcome.translated_text == "hello"
    assert outcome.success is False
    assert outcome.error == "nope"


@pytest.mark.asyncio
async def test_translate_one_success():
    adapter = TranslationAdapter(FakeProvider())
    outcome = await adapter.translate_one("hello", None, "es-ES")

    assert outcome.success is True
    assert outcome.translated_text == "[es-ES] hello"
    assert outcome.original_text == "hello"
    assert outcome.from_cache is False


@pytest.mark.asyncio
async def test_translate_one_provider_failure_returns_original():
    adapter = TranslationAdapter(FakeProvider(fail={"hello"}))
    outcome = await adapter.translate_one("hello", None, "es-ES")

    assert outcome.success is False
    assert outcome.translated_text == "hello"
    assert outcome.error == "engine refused"


@pytest.mark.asyncio
async def test_translate_one_timeout_returns_original():
    adapter = TranslationAdapter(SlowProvider(), timeout=0.01)
    outcome = await adapter.translate_one("hello", None, "es-ES")

    assert outcome.success is False
    assert outcome.translated_text == "hello"
    assert outcome.error == "translation timed out"


@pytest.mark.asyncio
async def test_translate_one_transport_error_returns_original():
    adapter = TranslationAdapter(BrokenProvider())
    outcome = await adapter.translate_one("hello", None, "es-ES")

    assert outcome.success is False
    assert outcome.translated_text == "hello"
    assert "connection refused" in outcome.error


@pytest.mark.asyncio
async def test_translate_many_uses_one_batch_call():
    provider = FakeProvider()
    adapter = TranslationAdapter(provider)

    outcomes = await adapter.translate_many(["a", "b"], None, "fr-FR")

    assert [o.translated_text for o in outcomes] == ["[fr-FR] a", "[fr-FR] b"]
    assert all(o.success for o in outcomes)
    assert provider.batch_calls == [["a", "b"]]
    assert provider.calls == []


@pytest.mark.asyncio
async def test_translate_many_empty():
    provider = FakeProvider()
    assert await TranslationAdapter(provider).translate_many([], None, "fr-FR") == []
    assert provider.batch_calls == []


@pytest.mark.asyncio
async def test_translate_many_batch_failure_falls_back_per_item():
    """A failed batch is retried item by item; failed items keep their text."""
    provider = FakeProvider(batch=False, fail={"boom"})
    adapter = TranslationAdapter(provider)

    outcomes = await adapter.translate_many(["a", "boom", "c"], None, "de-DE")

    assert [o.translated_text for o in outcomes] == ["[de-DE] a", "boom", "[de-DE] c"]
    assert [o.success for o in outcomes] == [True, False, True]
    assert sorted(text for text, _ in provider.calls) == ["a", "boom", "c"]


@pytest.mark.asyncio
async def test_translate_many_only_retries_unresolved_items():
    provider = FakeProvider(fail={"b"})
    adapter = TranslationAdapter(provider)

    outcomes = await adapter.translate_many(["a", "b"], None, "de-DE")

    assert [o.success for o in outcomes] == [True, False]
    assert provider.calls == [("b", "de-DE")]


@pytest.mark.asyncio
async def test_translate_many_length_mismatch_falls_back_per_item():
    provider = ShortBatchProvider()
    adapter = TranslationAdapter(provider)

    outcomes = await adapter.translate_many(["a", "b"], None, "it-IT")

    assert [o.translated_text for o in outcomes] == ["[it-IT] a", "[it-IT] b"]
    assert len(provider.calls) == 2


@pytest.mark.asyncio
async def test_translate_many_batch_timeout():
    adapter = TranslationAdapter(SlowProvider(), timeout=0.01, batch_timeout=0.01)

    outcomes = await adapter.translate_many(["a", "b"], None, "it-IT")

    assert [o.translated_text for o in outcomes] == ["a", "b"]
    assert all(o.error == "translation timed out" for o in outcomes)
