"""
Registry for translation providers.

Holds every registered provider, designates the default one, and runs
text through it with before/after hooks. Construct one per application
and pass it to the components that translate; there is no global
instance.
"""

from __future__ import annotations

import logging
from typing import Callable

from linguasync.core.errors import (
    LinguaSyncError,
    NoProviderConfigured,
    ProviderError,
    ProviderUnavailable,
    UnsupportedLanguage,
)
from linguasync.core.events import PROVIDER_REGISTERED, Event, EventBus, publish_if
from linguasync.i18n.languages import LanguageTag
from linguasync.i18n.providers.base import TranslationProvider

logger = logging.getLogger(__name__)


# (text, target, source, provider) -> text
BeforeTranslateHook = Callable[[str, LanguageTag, "LanguageTag | None", TranslationProvider], str]

# (translation, original_text, target, source, provider) -> translation
AfterTranslateHook = Callable[[str, str, LanguageTag, "LanguageTag | None", TranslationProvider], str]


class ProviderRegistry:
    """
    Central registry for translation providers.

    The first registered provider that reports itself available becomes
    the default. Registration order is preserved.

    Usage:
        registry = ProviderRegistry()
        registry.register(DeepLProvider())

        text = await registry.translate("de", "Hello world", source="en")
    """

    def __init__(self, event_bus: EventBus | None = None):
        self._providers: dict[str, TranslationProvider] = {}
        self._default_provider: str | None = None
        self._before_hooks: list[BeforeTranslateHook] = []
        self._after_hooks: list[AfterTranslateHook] = []
        self.event_bus = event_bus

    # =========================================================================
    # Providers
    # =========================================================================

    def register(self, provider: TranslationProvider) -> bool:
        """
        Register a provider.

        Returns:
            False if a provider with the same ID is already registered
        """
        provider_id = provider.provider_id

        if provider_id in self._providers:
            logger.debug(f"Provider '{provider_id}' is already registered")
            return False

        self._providers[provider_id] = provider

        if self._default_provider is None and provider.is_available():
            self._default_provider = provider_id
            logger.info(f"Default translation provider: {provider.name}")
        else:
            logger.debug(f"Registered translation provider: {provider.name}")

        return True

    async def register_and_announce(self, provider: TranslationProvider) -> bool:
        """Register a provider and publish ``provider.registered`` on success."""
        registered = self.register(provider)
        if registered:
            await publish_if(self.event_bus, Event(
                event_type=PROVIDER_REGISTERED,
                item_id=provider.provider_id,
                payload={
                    "name": provider.name,
                    "default": self._default_provider == provider.provider_id,
                },
            ))
        return registered

    def get_provider(self, provider_id: str) -> TranslationProvider | None:
        """Get a provider by ID."""
        return self._providers.get(provider_id)

    def get_providers(self, available_only: bool = False) -> dict[str, TranslationProvider]:
        """All registered providers, optionally only the available ones."""
        if not available_only:
            return dict(self._providers)
        return {
            provider_id: provider
            for provider_id, provider in self._providers.items()
            if provider.is_available()
        }

    @property
    def default_provider_id(self) -> str | None:
        return self._default_provider

    def get_default_provider(self) -> TranslationProvider | None:
        if self._default_provider is None:
            return None
        return self.get_provider(self._default_provider)

    # =========================================================================
    # Hooks
    # =========================================================================

    def add_before_translate(self, hook: BeforeTranslateHook) -> None:
        """Add a hook that rewrites text before it reaches the provider."""
        self._before_hooks.append(hook)

    def add_after_translate(self, hook: AfterTranslateHook) -> None:
        """Add a hook that rewrites the provider's translation."""
        self._after_hooks.append(hook)

    # =========================================================================
    # Translation
    # =========================================================================

    async def translate(
        self,
        target: LanguageTag | str,
        text: str,
        source: LanguageTag | str | None = None,
    ) -> str:
        """
        Translate text with the default provider.

        Blank text returns "" without touching any provider.

        Raises:
            InvalidLanguageCode: target or source does not parse
            NoProviderConfigured: no default provider
            ProviderUnavailable: default provider lacks configuration
            UnsupportedLanguage: provider cannot handle target or source
            ProviderError: the provider failed
        """
        if not text or not text.strip():
            return ""

        target_tag = LanguageTag.coerce(target)
        source_tag = LanguageTag.coerce(source) if source is not None else None

        if self._default_provider is None:
            raise NoProviderConfigured(
                "No translation provider available. Please configure a translation service."
            )

        provider = self.get_provider(self._default_provider)

        if provider is None:
            raise ProviderUnavailable(
                f'Translation provider "{self._default_provider}" not found.',
                context={"provider_id": self._default_provider},
            )

        if not provider.is_available():
            raise ProviderUnavailable(
                f'Translation provider "{provider.name}" is not properly configured.',
                context={"provider_id": provider.provider_id},
            )

        if not target_tag.is_supported_by(provider.supported_languages(), fallback_to_primary=True):
            raise UnsupportedLanguage(
                f'Target language "{target_tag}" is not supported by {provider.name}.',
                context={"language": str(target_tag), "provider_id": provider.provider_id},
            )

        if source_tag is not None and not source_tag.is_supported_by(
            provider.supported_source_languages(), fallback_to_primary=True
        ):
            raise UnsupportedLanguage(
                f'Source language "{source_tag}" is not supported by {provider.name}.',
                context={"language": str(source_tag), "provider_id": provider.provider_id},
            )

        for hook in self._before_hooks:
            text = hook(text, target_tag, source_tag, provider)

        original = text
        try:
            translation = await provider.translate(target_tag, text, source_tag)
        except LinguaSyncError:
            raise
        except Exception as e:
            raise ProviderError(
                str(e) or e.__class__.__name__,
                provider_id=provider.provider_id,
            ) from e

        for after_hook in self._after_hooks:
            translation = after_hook(translation, original, target_tag, source_tag, provider)

        return translation
