"""
Base class for translation providers.

A provider wraps one machine-translation service. Providers are
registered with a ``ProviderRegistry``, which selects the default one and
runs the translate hooks around it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from linguasync.i18n.languages import LanguageTag


class TranslationProvider(ABC):
    """
    Base class for all translation providers.

    Example:
        class ShoutingProvider(TranslationProvider):
            provider_id = "shout"
            name = "Shouting"

            def is_available(self) -> bool:
                return True

            def supported_languages(self) -> list[LanguageTag]:
                return tags_from_codes(["en", "de"])

            async def translate(self, target, text, source=None) -> str:
                return text.upper()
    """

    @property
    @abstractmethod
    def provider_id(self) -> str:
        """Unique identifier (e.g. 'deepl', 'llm')."""
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Display name."""
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """True when credentials/configuration are present."""
        pass

    @abstractmethod
    def supported_languages(self) -> list[LanguageTag]:
        """Target languages this provider can produce."""
        pass

    def supported_source_languages(self) -> list[LanguageTag]:
        """Source languages this provider accepts. Defaults to the target set."""
        return self.supported_languages()

    @abstractmethod
    async def translate(
        self,
        target: LanguageTag,
        text: str,
        source: LanguageTag | None = None,
    ) -> str:
        """
        Translate ``text`` into ``target``.

        Args:
            target: Target language
            text: Text to translate
            source: Source language (auto-detect if None)

        Returns:
            Translated text

        Raises:
            ProviderError: transport, quota, or response-format failure
        """
        pass

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(id={self.provider_id})>"
