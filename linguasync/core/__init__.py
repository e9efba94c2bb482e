"""
Core module - fundamental data models and infrastructure.

This module contains:
- models: Content items, field preferences, and sync results
- events: Event system for pub/sub communication
- errors: Exception hierarchy with stable error codes
- utils: Shared utility functions
"""

from linguasync.core.models import (
    BatchTranslationResult,
    CONTENT_FIELDS,
    ContentItem,
    FieldError,
    FieldPreference,
    FieldRoutingResult,
    ItemStatus,
    LanguageResult,
    TranslationResult,
    TranslationStep,
)

from linguasync.core.events import (
    Event,
    EventBus,
    Subscription,
    publish_if,
)

from linguasync.core.errors import (
    LinguaSyncError,
    InvalidLanguageCode,
    SourceNotFound,
    NotSourceLanguage,
    NoProviderConfigured,
    ProviderUnavailable,
    UnsupportedLanguage,
    ProviderError,
    ItemCreateFailed,
    ItemUpdateFailed,
    RelationFailed,
    FieldTranslationError,
    StorageError,
    LinkingError,
    RegistryError,
)

from linguasync.core.utils import (
    generate_id,
    utc_now,
    epoch_now,
)

__all__ = [
    # Models
    "BatchTranslationResult",
    "CONTENT_FIELDS",
    "ContentItem",
    "FieldError",
    "FieldPreference",
    "FieldRoutingResult",
    "ItemStatus",
    "LanguageResult",
    "TranslationResult",
    "TranslationStep",
    # Events
    "Event",
    "EventBus",
    "Subscription",
    "publish_if",
    # Errors
    "LinguaSyncError",
    "InvalidLanguageCode",
    "SourceNotFound",
    "NotSourceLanguage",
    "NoProviderConfigured",
    "ProviderUnavailable",
    "UnsupportedLanguage",
    "ProviderError",
    "ItemCreateFailed",
    "ItemUpdateFailed",
    "RelationFailed",
    "FieldTranslationError",
    "StorageError",
    "LinkingError",
    "RegistryError",
    # Utils
    "generate_id",
    "utc_now",
    "epoch_now",
]
