"""
Tests for the LLM provider. The language model itself is stubbed out.
"""

import pytest

from linguasync.config import Settings
from linguasync.core.errors import ProviderError
from linguasync.i18n.languages import LanguageTag
from linguasync.i18n.providers.llm import LLMProvider, TranslationCache, get_lm
from linguasync.storage.local import InMemoryCacheStorage


FR = LanguageTag.parse("fr")
EN = LanguageTag.parse("en")


@pytest.fixture
def llm_settings():
    return Settings(_env_file=None, llm_provider="gemini", google_api_key="", gemini_api_key="g-key")


@pytest.fixture
def llm(llm_settings, monkeypatch):
    provider = LLMProvider(settings=llm_settings)
    provider.predictions = []

    def fake_predict(text, source_name, target_name):
        provider.predictions.append((text, source_name, target_name))
        return f"[{target_name}] {text}"

    monkeypatch.setattr(provider, "_predict", fake_predict)
    return provider


class TestLLMProvider:
    def test_availability_follows_api_key(self, llm_settings):
        assert LLMProvider(settings=llm_settings).is_available()
        assert not LLMProvider(settings=Settings(_env_file=None, llm_provider="openai", openai_api_key="")).is_available()

    def test_supports_known_languages(self, llm):
        assert FR.is_supported_by(llm.supported_languages())

    @pytest.mark.asyncio
    async def test_translate_uses_language_names(self, llm):
        assert await llm.translate(FR, "Hello", EN) == "[French] Hello"
        assert llm.predictions == [("Hello", "English", "French")]

    @pytest.mark.asyncio
    async def test_auto_detect_without_source(self, llm):
        await llm.translate(FR, "Hello")
        assert llm.predictions[0][1] == "auto-detect"

    @pytest.mark.asyncio
    async def test_cached_translations_skip_the_model(self, llm):
        await llm.translate(FR, "Hello", EN)
        await llm.translate(FR, "Hello", EN)

        assert len(llm.predictions) == 1

    @pytest.mark.asyncio
    async def test_blank_text(self, llm):
        assert await llm.translate(FR, "   ") == ""
        assert llm.predictions == []

    @pytest.mark.asyncio
    async def test_model_failure_wrapped(self, llm, monkeypatch):
        def broken(*args):
            raise RuntimeError("rate limited")

        monkeypatch.setattr(llm, "_predict", broken)

        with pytest.raises(ProviderError) as exc_info:
            await llm.translate(FR, "Hello")

        assert exc_info.value.code == "llm_error"
        assert exc_info.value.provider_id == "llm"


class TestTranslationCache:
    @pytest.mark.asyncio
    async def test_persistent_storage_backs_memory(self):
        storage = InMemoryCacheStorage()
        cache = TranslationCache(storage)

        await cache.set("Hello", "en", "fr", "Bonjour")
        cache.clear()

        assert await cache.get("Hello", "en", "fr") == "Bonjour"
        assert await cache.get("Hello", "en", "de") is None


def test_get_lm_requires_key():
    with pytest.raises(ValueError):
        get_lm(Settings(_env_file=None, llm_provider="anthropic", anthropic_api_key=""))

    with pytest.raises(ValueError):
        get_lm(Settings(_env_file=None, llm_provider="mistral"))
