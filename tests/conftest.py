"""
Shared fixtures: a fake translation provider and in-memory storage wired to
one event bus.
"""

import pytest

from linguasync.config import Settings
from linguasync.core.errors import ProviderError
from linguasync.core.events import EventBus
from linguasync.core.models import ContentItem, FieldPreference, ItemStatus
from linguasync.i18n.languages import LanguageTag, tags_from_codes
from linguasync.i18n.providers.base import TranslationProvider
from linguasync.i18n.registry import ProviderRegistry
from linguasync.services.orchestrator import TranslationOrchestrator
from linguasync.storage.local import create_local_storage
from linguasync.sync.tracker import ChangeTracker


class FakeProvider(TranslationProvider):
    """Upper-cases text and tags it with the target language: "Hello" -> "HELLO-DE"."""

    def __init__(self, provider_id="fake", languages=("en", "de", "fr", "pt"), available=True):
        self._provider_id = provider_id
        self._languages = languages
        self.available = available
        self.calls: list[tuple[str, str, str | None]] = []
        self.fail_languages: set[str] = set()
        self.fail_texts: set[str] = set()

    @property
    def provider_id(self) -> str:
        return self._provider_id

    @property
    def name(self) -> str:
        return f"Fake ({self._provider_id})"

    def is_available(self) -> bool:
        return self.available

    def supported_languages(self) -> list[LanguageTag]:
        return tags_from_codes(self._languages)

    async def translate(self, target, text, source=None) -> str:
        self.calls.append((str(target), text, str(source) if source else None))
        if target.language in self.fail_languages or text in self.fail_texts:
            raise ProviderError("quota exceeded", status_code=456, provider_id=self.provider_id)
        return f"{text.upper()}-{target.language.upper()}"


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def settings():
    """Settings isolated from the environment's .env file."""
    return Settings(
        _env_file=None,
        deepl_api_key="",
        deepl_retry_wait=0,
        sentry_dsn="",
        max_parallel_languages=2,
    )


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def storage(bus):
    """In-memory storage with en (source), de and fr active."""
    return create_local_storage(event_bus=bus, active_languages=["en", "de", "fr"])


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def providers(provider, bus):
    registry = ProviderRegistry(event_bus=bus)
    registry.register(provider)
    return registry


@pytest.fixture
def tracker(storage, settings, bus):
    tracker = ChangeTracker(storage, settings=settings, event_bus=bus)
    tracker.subscribe_to(bus)
    return tracker


@pytest.fixture
def orchestrator(storage, providers, tracker, bus, settings):
    return TranslationOrchestrator(
        storage,
        providers,
        tracker=tracker,
        event_bus=bus,
        settings=settings,
    )


@pytest.fixture
def source_item(storage):
    """Published English item "A" titled "Hello" with a translatable ``color`` field."""
    item = storage.content.add_item(ContentItem(
        id="A",
        language="en",
        title="Hello",
        fields={"color": "red"},
        status=ItemStatus.PUBLISH,
    ))
    storage.linking.add_item("A", "en")
    storage.fields.define_field("color", "text", FieldPreference.TRANSLATE)
    return item
