"""
Field router.

Walks every field of a source item and decides, per field, whether it is
internal (skipped), a field-key reference (copied verbatim), not meant for
translation (skipped), or offered to the handler chain.
"""

from __future__ import annotations

import logging
from typing import Callable

from linguasync.config import Settings, get_settings
from linguasync.core.errors import LinguaSyncError
from linguasync.core.events import FIELDS_ROUTED, Event, EventBus, publish_if
from linguasync.core.models import FieldError, FieldPreference, FieldRoutingResult
from linguasync.fields.handlers import (
    CustomFieldHandler,
    FieldContext,
    FieldHandler,
    FieldOutcomeStatus,
    FieldStoreHandler,
    get_preference,
    has_skip_prefix,
    is_field_key_reference,
)
from linguasync.fields.registry import FieldTypeRegistry
from linguasync.i18n.languages import LanguageTag
from linguasync.i18n.registry import ProviderRegistry
from linguasync.storage.base import StorageProvider

logger = logging.getLogger(__name__)


# key -> True to treat the field as internal
SkipFilter = Callable[[str], bool]


class FieldRouter:
    """
    Routes an item's fields to the first handler that claims them.

    Usage:
        router = FieldRouter(storage, providers)
        result = await router.route_all_fields(source_id, target_id, "de", "en")
    """

    def __init__(
        self,
        storage: StorageProvider,
        providers: ProviderRegistry,
        type_registry: FieldTypeRegistry | None = None,
        settings: Settings | None = None,
        event_bus: EventBus | None = None,
        register_defaults: bool = True,
    ):
        self.storage = storage
        self.providers = providers
        self.type_registry = type_registry or FieldTypeRegistry()
        self.settings = settings or get_settings()
        self.event_bus = event_bus

        self._handlers: list[FieldHandler] = []
        self._skip_filters: list[SkipFilter] = []

        if register_defaults:
            self.register_handler(CustomFieldHandler(self.type_registry))
            self.register_handler(FieldStoreHandler(self.settings))

    # =========================================================================
    # Handlers
    # =========================================================================

    def register_handler(self, handler: FieldHandler) -> bool:
        """
        Insert a handler after every handler with the same or lower priority.

        Returns:
            False if a handler with the same ID is already registered
        """
        if self.get_handler(handler.handler_id) is not None:
            return False

        index = len(self._handlers)
        for i, existing in enumerate(self._handlers):
            if existing.priority > handler.priority:
                index = i
                break
        self._handlers.insert(index, handler)
        return True

    def unregister_handler(self, handler_id: str) -> bool:
        handler = self.get_handler(handler_id)
        if handler is None:
            return False
        self._handlers.remove(handler)
        return True

    def get_handler(self, handler_id: str) -> FieldHandler | None:
        for handler in self._handlers:
            if handler.handler_id == handler_id:
                return handler
        return None

    @property
    def handlers(self) -> list[FieldHandler]:
        return list(self._handlers)

    # =========================================================================
    # Skip rules
    # =========================================================================

    def add_skip_filter(self, fn: SkipFilter) -> None:
        self._skip_filters.append(fn)

    def should_skip(self, key: str) -> bool:
        """Platform-internal keys never leave the source item."""
        if has_skip_prefix(key, self.settings.skip_field_prefix_list):
            return True
        return any(fn(key) for fn in self._skip_filters)

    # =========================================================================
    # Routing
    # =========================================================================

    async def route_all_fields(
        self,
        source_id: str,
        target_id: str,
        target_language: LanguageTag | str,
        source_language: LanguageTag | str,
        target_code: str | None = None,
    ) -> FieldRoutingResult:
        """
        Route every field of ``source_id`` into ``target_id``.

        ``target_code`` is the host's spelling of the target language, used
        for linking-service lookups. Per-field failures are collected on the
        result, never raised.
        """
        target_tag = LanguageTag.coerce(target_language)
        source_tag = LanguageTag.coerce(source_language)
        result = FieldRoutingResult()

        field_map = await self.storage.content.get_field_map(source_id)

        for key, value in field_map.items():
            if self.should_skip(key) or value is None:
                result.skipped_count += 1
                continue

            if is_field_key_reference(key, value):
                await self.storage.content.set_field(target_id, key, value)
                result.skipped_count += 1
                continue

            preference = await get_preference(self.storage.fields, key, source_id)
            if preference != FieldPreference.TRANSLATE:
                result.skipped_count += 1
                continue

            ctx = FieldContext(
                key=key,
                value=value,
                source_id=source_id,
                target_id=target_id,
                target_language=target_tag,
                source_language=source_tag,
                storage=self.storage,
                providers=self.providers,
                host_code=target_code,
            )

            handled_by = await self._dispatch(ctx, result)
            if handled_by is None:
                result.skipped_count += 1
            elif handled_by:
                result.translated_count += 1
                result.handled[key] = handled_by

        if result.field_errors:
            logger.warning(
                f"Field routing {source_id} -> {target_id} ({target_tag}): "
                f"{len(result.field_errors)} field(s) failed"
            )

        await publish_if(self.event_bus, Event(
            event_type=FIELDS_ROUTED,
            item_id=source_id,
            language=target_code or str(target_tag),
            payload={
                "target_item_id": target_id,
                "translated": result.translated_count,
                "skipped": result.skipped_count,
                "errors": result.errors,
            },
        ))

        return result

    async def _dispatch(self, ctx: FieldContext, result: FieldRoutingResult) -> str | None:
        """
        Offer a field to the handler chain.

        Returns the handling handler's ID, "" when a handler failed, or
        None when no handler took the field.
        """
        for handler in self._handlers:
            try:
                if not await handler.claim(ctx):
                    continue
                outcome = await handler.apply(ctx)
            except LinguaSyncError as e:
                logger.warning(f"Handler {handler.handler_id} failed on {ctx.key}: {e.message}")
                result.field_errors.append(FieldError(field_key=ctx.key, code=e.code, message=e.message))
                return ""

            if outcome.status == FieldOutcomeStatus.DECLINED:
                continue
            if outcome.status == FieldOutcomeStatus.FAILED:
                result.field_errors.append(outcome.error)
                return ""
            return handler.handler_id

        return None
