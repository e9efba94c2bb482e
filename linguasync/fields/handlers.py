"""
Field handlers.

A handler decides whether a field is its business (``claim``) and, if so,
writes the translated or copied value into the target item (``apply``).
The router offers each translatable field to its handlers in priority
order; the first one that handles it wins.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable

from linguasync.config import Settings, get_settings
from linguasync.core.models import FieldError, FieldPreference
from linguasync.fields.registry import RELATIONSHIP_FIELD_TYPES, TAXONOMY_FIELD_TYPES, FieldTypeRegistry
from linguasync.i18n.languages import LanguageTag
from linguasync.i18n.registry import ProviderRegistry
from linguasync.storage.base import FieldSubsystem, StorageProvider

logger = logging.getLogger(__name__)


# =============================================================================
# Helpers
# =============================================================================


def is_empty_value(value: Any) -> bool:
    """
    None, "", empty lists and empty dicts are empty.

    0, "0" and False are real values and never empty.
    """
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    return False


def is_field_key_reference(key: str, value: Any) -> bool:
    """
    Hidden companion keys (``_price`` -> ``"field_5ff8033f42629"``) that tie
    a stored value to its field definition. Copied verbatim, never translated.
    """
    return key.startswith("_") and isinstance(value, str) and value.startswith("field_")


def has_skip_prefix(key: str, prefixes: Iterable[str]) -> bool:
    return any(key.startswith(prefix) for prefix in prefixes)


def term_ids(value: Any) -> list[int]:
    """
    Positive term IDs in a taxonomy field value: an ID, a numeric string,
    a term mapping with ``term_id``, or a list of those. Anything else is
    ignored.
    """
    items = value if isinstance(value, (list, tuple)) else [value]

    ids: list[int] = []
    for item in items:
        if isinstance(item, dict):
            item = item.get("term_id")
        if isinstance(item, bool):
            continue
        if isinstance(item, str) and item.strip().isdigit():
            item = int(item)
        if isinstance(item, int) and item > 0:
            ids.append(item)
    return ids


async def get_preference(fields: FieldSubsystem | None, key: str, item_id: str) -> FieldPreference:
    """Translation preference of a field; COPY without a field subsystem."""
    if fields is None:
        return FieldPreference.COPY
    return FieldPreference.from_value(await fields.get_translation_preference(key, item_id))


# =============================================================================
# Context and outcome
# =============================================================================


@dataclass
class FieldContext:
    """Everything a handler needs to process one field."""

    key: str
    value: Any
    source_id: str
    target_id: str
    target_language: LanguageTag
    source_language: LanguageTag
    storage: StorageProvider
    providers: ProviderRegistry
    # The host's spelling of the target language, when it has one
    host_code: str | None = None

    @property
    def target_code(self) -> str:
        """Code for linking-service lookups."""
        return self.host_code or str(self.target_language)

    async def translate(self, text: str) -> str:
        return await self.providers.translate(self.target_language, text, self.source_language)

    async def write(self, value: Any) -> None:
        await self.storage.content.set_field(self.target_id, self.key, value)

    async def delete(self) -> None:
        await self.storage.content.delete_field(self.target_id, self.key)


class FieldOutcomeStatus(str, Enum):
    HANDLED = "handled"
    DECLINED = "declined"
    FAILED = "failed"


class FieldAction(str, Enum):
    TRANSLATED = "translated"
    COPIED = "copied"
    DELETED = "deleted"


@dataclass
class FieldOutcome:
    """What a handler did with a field."""

    status: FieldOutcomeStatus
    action: FieldAction | None = None
    error: FieldError | None = None

    @classmethod
    def handled(cls, action: FieldAction) -> FieldOutcome:
        return cls(status=FieldOutcomeStatus.HANDLED, action=action)

    @classmethod
    def declined(cls) -> FieldOutcome:
        return cls(status=FieldOutcomeStatus.DECLINED)

    @classmethod
    def failed(cls, field_key: str, code: str, message: str) -> FieldOutcome:
        return cls(
            status=FieldOutcomeStatus.FAILED,
            error=FieldError(field_key=field_key, code=code, message=message),
        )


# =============================================================================
# Handlers
# =============================================================================


class FieldHandler(ABC):
    """
    Base class for field handlers.

    Example:
        class UppercaseHandler(FieldHandler):
            handler_id = "uppercase"
            priority = 50

            async def claim(self, ctx):
                return ctx.key.startswith("shout_")

            async def apply(self, ctx):
                await ctx.write(ctx.value.upper())
                return FieldOutcome.handled(FieldAction.COPIED)
    """

    @property
    @abstractmethod
    def handler_id(self) -> str:
        """Unique identifier for this handler."""
        pass

    @property
    @abstractmethod
    def priority(self) -> int:
        """Lower runs first."""
        pass

    @abstractmethod
    async def claim(self, ctx: FieldContext) -> bool:
        """True if this handler wants the field. False lets the next one try."""
        pass

    @abstractmethod
    async def apply(self, ctx: FieldContext) -> FieldOutcome:
        """
        Write the field into the target item.

        May return ``FieldOutcome.declined()`` after a closer look; raised
        ``LinguaSyncError``s are recorded as failures by the router.
        """
        pass

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(id={self.handler_id}, priority={self.priority})>"


class CustomFieldHandler(FieldHandler):
    """
    Fields the custom-field subsystem knows a type for.

    Empty values delete the target field so emptiness stays in sync.
    Relationship fields are remapped to the target language's items and
    taxonomy fields to its terms; references without a translation are
    dropped.
    Strings of registered translatable types are translated; everything
    else is copied.
    """

    def __init__(self, type_registry: FieldTypeRegistry | None = None):
        self.type_registry = type_registry or FieldTypeRegistry()

    @property
    def handler_id(self) -> str:
        return "custom_field"

    @property
    def priority(self) -> int:
        return 10

    async def claim(self, ctx: FieldContext) -> bool:
        if ctx.storage.fields is None:
            return False
        return await ctx.storage.fields.get_field_type(ctx.key, ctx.source_id) is not None

    async def apply(self, ctx: FieldContext) -> FieldOutcome:
        field_type = await ctx.storage.fields.get_field_type(ctx.key, ctx.source_id)
        if field_type is None:
            return FieldOutcome.declined()

        if is_empty_value(ctx.value):
            await ctx.delete()
            return FieldOutcome.handled(FieldAction.DELETED)

        if field_type in RELATIONSHIP_FIELD_TYPES:
            return await self._apply_relationship(ctx, field_type)

        if field_type in TAXONOMY_FIELD_TYPES:
            return await self._apply_taxonomy(ctx)

        if self.type_registry.is_registered(field_type) and isinstance(ctx.value, str):
            await ctx.write(await ctx.translate(ctx.value))
            return FieldOutcome.handled(FieldAction.TRANSLATED)

        await ctx.write(ctx.value)
        return FieldOutcome.handled(FieldAction.COPIED)

    async def _apply_relationship(self, ctx: FieldContext, field_type: str) -> FieldOutcome:
        multiple = isinstance(ctx.value, (list, tuple)) or field_type == "relationship"
        ids = list(ctx.value) if isinstance(ctx.value, (list, tuple)) else [ctx.value]
        target_code = ctx.target_code

        mapped: list[str] = []
        for ref in ids:
            translated_id = await ctx.storage.linking.get_translation_for(str(ref), target_code)
            if translated_id is None:
                logger.debug(f"No {target_code} translation for {ref} in {ctx.key}, dropping")
                continue
            mapped.append(translated_id)

        if not mapped:
            await ctx.delete()
            return FieldOutcome.handled(FieldAction.DELETED)

        await ctx.write(mapped if multiple else mapped[0])
        return FieldOutcome.handled(FieldAction.COPIED)

    async def _apply_taxonomy(self, ctx: FieldContext) -> FieldOutcome:
        taxonomy = await ctx.storage.fields.get_field_taxonomy(ctx.key, ctx.source_id)
        if not taxonomy:
            return FieldOutcome.failed(
                ctx.key,
                "taxonomy_missing",
                f"No taxonomy configured for field {ctx.key}",
            )

        multiple = isinstance(ctx.value, (list, tuple))
        target_code = ctx.target_code

        mapped: list[Any] = []
        for term_id in term_ids(ctx.value):
            translated_id = await ctx.storage.linking.get_term_translation(term_id, taxonomy, target_code)
            if translated_id is None:
                logger.debug(f"No {target_code} translation for {taxonomy} term {term_id} in {ctx.key}, dropping")
                continue
            mapped.append(translated_id)

        if not mapped:
            await ctx.delete()
            return FieldOutcome.handled(FieldAction.DELETED)

        await ctx.write(mapped if multiple else mapped[0])
        return FieldOutcome.handled(FieldAction.COPIED)


# (key, value, source_id) -> False to copy instead of translating
TranslateFilter = Callable[[str, Any, str], bool]


class FieldStoreHandler(FieldHandler):
    """
    Fallback for plain field-store values.

    Non-strings and short or empty strings are copied verbatim. Longer
    strings are translated unless a translate filter opts out.
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self._translate_filters: list[TranslateFilter] = []

    @property
    def handler_id(self) -> str:
        return "field_store"

    @property
    def priority(self) -> int:
        return 100

    def add_translate_filter(self, fn: TranslateFilter) -> None:
        self._translate_filters.append(fn)

    def should_translate(self, key: str, value: Any, source_id: str) -> bool:
        if not isinstance(value, str) or len(value) < self.settings.min_translatable_length:
            return False
        return all(fn(key, value, source_id) for fn in self._translate_filters)

    async def claim(self, ctx: FieldContext) -> bool:
        return True

    async def apply(self, ctx: FieldContext) -> FieldOutcome:
        if not self.should_translate(ctx.key, ctx.value, ctx.source_id):
            await ctx.write(ctx.value)
            return FieldOutcome.handled(FieldAction.COPIED)

        await ctx.write(await ctx.translate(ctx.value))
        return FieldOutcome.handled(FieldAction.TRANSLATED)
