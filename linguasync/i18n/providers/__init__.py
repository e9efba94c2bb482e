"""Machine-translation providers."""

from linguasync.i18n.providers.base import TranslationProvider
from linguasync.i18n.providers.deepl import DeepLProvider
from linguasync.i18n.providers.llm import LLMProvider, TranslationCache

__all__ = [
    "TranslationProvider",
    "DeepLProvider",
    "LLMProvider",
    "TranslationCache",
]
