"""
LLM-powered translation provider.

Uses DSPy against Gemini (default), OpenAI, or Anthropic, and caches
translations by content hash.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging

import dspy

from linguasync.config import Settings, get_settings
from linguasync.core.errors import ProviderError
from linguasync.i18n.languages import LANGUAGE_NAMES, LanguageTag, get_language_name, tags_from_codes
from linguasync.i18n.providers.base import TranslationProvider
from linguasync.storage.base import CacheStorage

logger = logging.getLogger(__name__)


# =============================================================================
# DSPy Signatures
# =============================================================================


class TranslateText(dspy.Signature):
    """Translate text while preserving meaning, tone, markup, and style."""

    text: str = dspy.InputField(desc="Text to translate")
    source_language: str = dspy.InputField(desc="Source language name, or 'auto-detect'")
    target_language: str = dspy.InputField(desc="Target language name")

    translated_text: str = dspy.OutputField(desc="Translated text")


def get_lm(settings: Settings) -> dspy.LM:
    """
    Build the configured language model.

    Raises:
        ValueError: unknown provider or missing API key
    """
    provider = settings.llm_provider
    api_key = settings.llm_api_key

    if provider == "gemini":
        if not api_key:
            raise ValueError("GOOGLE_API_KEY or GEMINI_API_KEY not set")
        # Use gemini/ prefix for litellm
        return dspy.LM(model=f"gemini/{settings.gemini_model}", api_key=api_key)

    elif provider == "openai":
        if not api_key:
            raise ValueError("OPENAI_API_KEY not set")
        return dspy.LM(model=f"openai/{settings.openai_model}", api_key=api_key)

    elif provider == "anthropic":
        if not api_key:
            raise ValueError("ANTHROPIC_API_KEY not set")
        return dspy.LM(model=f"anthropic/{settings.anthropic_model}", api_key=api_key)

    else:
        raise ValueError(f"Unknown provider: {provider}")


# =============================================================================
# Translation Cache
# =============================================================================


class TranslationCache:
    """
    Hash-based translation cache.

    In-memory dict in front of an optional persistent cache storage.
    """

    def __init__(self, storage: CacheStorage | None = None, ttl: int | None = None):
        self._cache: dict[str, str] = {}
        self._storage = storage
        self._ttl = ttl

    def _make_key(self, text: str, source: str, target: str) -> str:
        """Create cache key from content hash."""
        content = f"{source}:{target}:{text}"
        return hashlib.sha256(content.encode()).hexdigest()[:16]

    async def get(self, text: str, source: str, target: str) -> str | None:
        key = self._make_key(text, source, target)

        if key in self._cache:
            return self._cache[key]

        if self._storage:
            cached = await self._storage.get(f"trans:{key}")
            if cached:
                self._cache[key] = cached
                return cached

        return None

    async def set(self, text: str, source: str, target: str, translation: str) -> None:
        key = self._make_key(text, source, target)
        self._cache[key] = translation

        if self._storage:
            await self._storage.set(f"trans:{key}", translation, ttl=self._ttl)

    def clear(self) -> None:
        """Clear memory cache."""
        self._cache.clear()


# =============================================================================
# Provider
# =============================================================================


class LLMProvider(TranslationProvider):
    """
    Translation through a large language model.

    Usage:
        provider = LLMProvider()
        text = await provider.translate(LanguageTag.parse("fr"), "Hello")
    """

    def __init__(
        self,
        settings: Settings | None = None,
        cache_storage: CacheStorage | None = None,
        use_cache: bool = True,
    ):
        self.settings = settings or get_settings()
        self.cache = TranslationCache(cache_storage, ttl=self.settings.translation_cache_ttl)
        self.use_cache = use_cache

        # Lazily initialized
        self._lm: dspy.LM | None = None
        self._translate_module: dspy.Predict | None = None

    @property
    def provider_id(self) -> str:
        return "llm"

    @property
    def name(self) -> str:
        return f"LLM ({self.settings.llm_provider})"

    @property
    def translate_module(self) -> dspy.Predict:
        if self._translate_module is None:
            self._translate_module = dspy.Predict(TranslateText)
        return self._translate_module

    def is_available(self) -> bool:
        return bool(self.settings.llm_api_key)

    def supported_languages(self) -> list[LanguageTag]:
        return tags_from_codes(LANGUAGE_NAMES.keys())

    def _predict(self, text: str, source_name: str, target_name: str) -> str:
        if self._lm is None:
            self._lm = get_lm(self.settings)
        with dspy.context(lm=self._lm):
            result = self.translate_module(
                text=text,
                source_language=source_name,
                target_language=target_name,
            )
        return result.translated_text.strip()

    async def translate(
        self,
        target: LanguageTag,
        text: str,
        source: LanguageTag | None = None,
    ) -> str:
        if not text or not text.strip():
            return ""

        target_code = str(target)
        source_code = str(source) if source else "auto"

        if self.use_cache:
            cached = await self.cache.get(text, source_code, target_code)
            if cached:
                return cached

        try:
            translation = await asyncio.to_thread(
                self._predict,
                text,
                get_language_name(source_code) if source else "auto-detect",
                get_language_name(target_code),
            )
        except Exception as e:
            logger.error(f"LLM translation to {target_code} failed: {e}")
            raise ProviderError(
                f"LLM translation failed: {e}",
                code="llm_error",
                provider_id=self.provider_id,
            ) from e

        if self.use_cache:
            await self.cache.set(text, source_code, target_code, translation)

        return translation
