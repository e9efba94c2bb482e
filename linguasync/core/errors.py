"""
Error taxonomy for linguasync.

Precondition errors abort a request immediately. Provider errors abort a
single (item, language) unit. Per-field failures are reported as
``FieldError`` values on results and only become ``FieldTranslationError``
when a caller asks for an exception.
"""

from __future__ import annotations

from typing import Any


class LinguaSyncError(Exception):
    """
    Base class for all linguasync errors.

    Attributes:
        message: Human-readable description
        code: Stable machine-readable code (e.g. "provider_unavailable")
        step: Orchestrator step the error surfaced in, when known
        context: Extra details (ids, language codes, status codes)
    """

    code = "linguasync_error"

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        step: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.step = step
        self.context = context or {}

    def at_step(self, step: str) -> LinguaSyncError:
        """Record the step this error surfaced in (first one wins)."""
        if self.step is None:
            self.step = step
        return self

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "step": self.step,
            "context": self.context,
        }


# =============================================================================
# Precondition errors
# =============================================================================


class InvalidLanguageCode(LinguaSyncError):
    code = "invalid_language_code"


class SourceNotFound(LinguaSyncError):
    code = "source_not_found"


class NotSourceLanguage(LinguaSyncError):
    code = "not_source_language"


# =============================================================================
# Provider errors
# =============================================================================


class NoProviderConfigured(LinguaSyncError):
    code = "no_provider"


class ProviderUnavailable(LinguaSyncError):
    code = "provider_unavailable"


class UnsupportedLanguage(LinguaSyncError):
    code = "unsupported_language"


class ProviderError(LinguaSyncError):
    """Transport, quota, or response-format failure reported by a provider."""

    code = "provider_error"

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        provider_id: str | None = None,
        code: str | None = None,
        step: str | None = None,
    ):
        context: dict[str, Any] = {}
        if status_code is not None:
            context["status_code"] = status_code
        if provider_id is not None:
            context["provider_id"] = provider_id
        super().__init__(message, code=code, step=step, context=context)
        self.status_code = status_code
        self.provider_id = provider_id


# =============================================================================
# Write errors
# =============================================================================


class ItemCreateFailed(LinguaSyncError):
    code = "item_create_failed"


class ItemUpdateFailed(LinguaSyncError):
    code = "item_update_failed"


class RelationFailed(LinguaSyncError):
    code = "relation_failed"


class FieldTranslationError(LinguaSyncError):
    """A single field could not be translated. Never fatal to a request."""

    code = "field_translation_error"

    def __init__(self, field_key: str, message: str, *, code: str | None = None):
        super().__init__(message, code=code, context={"field_key": field_key})
        self.field_key = field_key


# =============================================================================
# Collaborator errors
# =============================================================================


class StorageError(LinguaSyncError):
    """Raised by content repositories."""

    code = "storage_error"


class LinkingError(LinguaSyncError):
    """Raised by linking services."""

    code = "linking_error"


class RegistryError(LinguaSyncError):
    """Raised when a registry is used incorrectly."""

    code = "registry_error"
