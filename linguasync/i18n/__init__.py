"""
Internationalization - language tags and machine-translation providers.

Design:
1. Language codes are parsed into canonical ``LanguageTag``s up front
2. Providers declare which tags they support
3. One registry per application picks the default provider and runs hooks

Usage:
    from linguasync.i18n import ProviderRegistry, DeepLProvider

    registry = ProviderRegistry()
    registry.register(DeepLProvider())

    text_de = await registry.translate("de", "Hello world", source="en")
"""

from linguasync.i18n.languages import (
    LANGUAGE_NAMES,
    LanguageTag,
    get_language_name,
    is_valid_language_code,
    match_language_code,
    parse_language_tag,
    tags_from_codes,
)
from linguasync.i18n.providers import (
    DeepLProvider,
    LLMProvider,
    TranslationProvider,
)
from linguasync.i18n.registry import ProviderRegistry

__all__ = [
    # Registry
    "ProviderRegistry",
    # Providers
    "TranslationProvider",
    "DeepLProvider",
    "LLMProvider",
    # Language tags
    "LanguageTag",
    "parse_language_tag",
    "is_valid_language_code",
    "tags_from_codes",
    # Language utilities
    "LANGUAGE_NAMES",
    "get_language_name",
    "match_language_code",
]
