"""
Core data models for linguasync.

Content items are owned by the content repository; the orchestrator only
reads and writes them through its interface. Result models describe what a
sync did, including partial failures.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from linguasync.core.errors import FieldTranslationError
from linguasync.core.utils import generate_id, utc_now


# =============================================================================
# Enums
# =============================================================================


class ItemStatus(str, Enum):
    """Publication status of a content item."""

    DRAFT = "draft"  # Not visible, awaiting review
    PENDING = "pending"  # Submitted for review
    PUBLISH = "publish"  # Live
    FUTURE = "future"  # Scheduled
    PRIVATE = "private"  # Visible to editors only


class FieldPreference(str, Enum):
    """How a field is treated when a translation is synced."""

    TRANSLATE = "translate"  # Machine-translate the value
    COPY = "copy"  # Copy the value as-is
    IGNORE = "ignore"  # Leave the translation's value alone

    @classmethod
    def from_value(cls, value: Any) -> FieldPreference:
        """
        Coerce a configured preference.

        Accepts enum members, their names/values, and the numeric codes
        multilingual hosts store (2 = translate, 1 = copy, 0 = ignore).
        Anything unrecognised falls back to COPY.
        """
        if isinstance(value, FieldPreference):
            return value
        if isinstance(value, bool):
            return cls.COPY
        if isinstance(value, int):
            return {2: cls.TRANSLATE, 1: cls.COPY, 0: cls.IGNORE}.get(value, cls.COPY)
        if isinstance(value, str):
            text = value.strip().lower()
            if text.isdigit():
                return cls.from_value(int(text))
            try:
                return cls(text)
            except ValueError:
                return cls.COPY
        return cls.COPY


class TranslationStep(str, Enum):
    """Steps of the per-language translation state machine."""

    START = "start"
    VALIDATE_SOURCE = "validate_source"
    RESOLVE_TARGET = "resolve_target"
    TRANSLATE_CONTENT = "translate_content"
    WRITE_TARGET = "write_target"
    ROUTE_FIELDS = "route_fields"
    RELATE = "relate"
    FINALIZE = "finalize"
    DONE = "done"
    ERROR = "error"


# Content fields tracked and translated on every item
CONTENT_FIELDS: tuple[str, ...] = ("title", "body", "summary")


# =============================================================================
# Content Item
# =============================================================================


class ContentItem(BaseModel):
    """
    A content item: one language version of a logical document.

    ``language`` is informational. The linking service is the authority on
    which language an item belongs to.
    """

    id: str = Field(default_factory=lambda: generate_id("item"))

    language: str | None = None

    title: str = ""
    body: str = ""
    summary: str = ""

    # Field store (key -> value)
    fields: dict[str, Any] = Field(default_factory=dict)

    status: ItemStatus = ItemStatus.DRAFT

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def content(self) -> dict[str, str]:
        """The translatable content fields as a dict."""
        return {name: getattr(self, name) for name in CONTENT_FIELDS}

    def update(self, **kwargs) -> None:
        """Update fields and set updated_at."""
        for key, value in kwargs.items():
            if hasattr(self, key):
                setattr(self, key, value)
        self.updated_at = utc_now()


# =============================================================================
# Results
# =============================================================================


class FieldError(BaseModel):
    """A non-fatal failure to sync one field."""

    field_key: str
    code: str
    message: str


class FieldRoutingResult(BaseModel):
    """Outcome of routing every field of a source item to a translation."""

    translated_count: int = 0
    skipped_count: int = 0
    field_errors: list[FieldError] = Field(default_factory=list)

    # field key -> id of the handler that processed it
    handled: dict[str, str] = Field(default_factory=dict)

    @property
    def errors(self) -> dict[str, str]:
        """Error messages keyed by field key."""
        return {e.field_key: e.message for e in self.field_errors}

    @property
    def success(self) -> bool:
        return not self.field_errors


class TranslationResult(BaseModel):
    """Successful sync of one source item into one language."""

    language: str
    source_item_id: str
    target_item_id: str
    created_new: bool = False
    translated_field_count: int = 0
    skipped_field_count: int = 0
    errors: list[FieldError] = Field(default_factory=list)

    @property
    def has_field_errors(self) -> bool:
        return bool(self.errors)

    def raise_for_field_errors(self) -> None:
        """Raise the first field error as ``FieldTranslationError``."""
        if self.errors:
            first = self.errors[0]
            raise FieldTranslationError(first.field_key, first.message, code=first.code)


class LanguageResult(BaseModel):
    """Per-language entry of a batch result: either a result or an error."""

    language: str
    success: bool
    result: TranslationResult | None = None
    error_code: str | None = None
    error_message: str | None = None
    failed_step: TranslationStep | None = None

    @classmethod
    def succeeded(cls, result: TranslationResult) -> LanguageResult:
        return cls(language=result.language, success=True, result=result)

    @classmethod
    def failed(
        cls,
        language: str,
        code: str,
        message: str,
        step: TranslationStep | str | None = None,
    ) -> LanguageResult:
        return cls(
            language=language,
            success=False,
            error_code=code,
            error_message=message,
            failed_step=TranslationStep(step) if step else None,
        )


class BatchTranslationResult(BaseModel):
    """Outcome of syncing one source item into several languages."""

    source_item_id: str
    source_language: str
    success: bool = True
    languages: dict[str, LanguageResult] = Field(default_factory=dict)

    def add(self, language_result: LanguageResult) -> None:
        self.languages[language_result.language] = language_result
        if not language_result.success:
            self.success = False

    @property
    def failed_languages(self) -> list[str]:
        return [code for code, r in self.languages.items() if not r.success]

    @property
    def completed_languages(self) -> list[str]:
        return [code for code, r in self.languages.items() if r.success]
