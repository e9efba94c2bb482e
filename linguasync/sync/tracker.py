"""
Change tracker.

Watches content and field-store mutations on source items and flags the
changed fields as pending for every other active language. The
orchestrator clears a language's flags once it has synced that language.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from typing import Any, Callable, Mapping

from linguasync.config import Settings, get_settings
from linguasync.core.events import (
    ITEM_CONTENT_UPDATED,
    ITEM_FIELD_DELETED,
    ITEM_FIELD_SET,
    SYNC_COMPLETED,
    SYNC_LANGUAGE_COMPLETED,
    Event,
    EventBus,
    field_flagged,
    publish_if,
)
from linguasync.core.models import CONTENT_FIELDS, ContentItem, FieldPreference
from linguasync.core.utils import epoch_now
from linguasync.fields.handlers import get_preference, has_skip_prefix, is_field_key_reference
from linguasync.i18n.languages import match_language_code
from linguasync.services.base import Service
from linguasync.storage.base import StorageProvider
from linguasync.sync.ledger import CONTENT, META, PendingEntry, PendingLedger

logger = logging.getLogger(__name__)


class _Sentinel:
    def __init__(self, name: str):
        self.name = name

    def __repr__(self) -> str:
        return self.name


# Value of a field that is not in the field store
ABSENT = _Sentinel("ABSENT")

# Previous value not supplied by the caller; fetched from the field store
UNKNOWN = _Sentinel("UNKNOWN")


# (key, item_id, is_translatable) -> is_translatable
TranslatableFilter = Callable[[str, str, bool], bool]


def strictly_equal(a: Any, b: Any) -> bool:
    """
    Equality that also requires matching types, recursively.

    ``0``, ``"0"``, ``False``, ``""`` and ``ABSENT`` are all distinct.
    """
    if type(a) is not type(b):
        return False
    if isinstance(a, dict):
        return a.keys() == b.keys() and all(strictly_equal(a[k], b[k]) for k in a)
    if isinstance(a, (list, tuple)):
        return len(a) == len(b) and all(strictly_equal(x, y) for x, y in zip(a, b))
    return a == b


def _content_snapshot(data: Mapping[str, Any] | ContentItem) -> dict[str, Any]:
    if isinstance(data, ContentItem):
        snapshot: dict[str, Any] = data.content()
        snapshot["status"] = data.status.value
        return snapshot
    return dict(data)


class ChangeTracker(Service):
    """
    Flags source-item changes as pending per target language.

    Subscribe it to the bus the content repository publishes on, or call
    the ``observe_*`` methods directly from host save hooks.

    Usage:
        tracker = ChangeTracker(storage, event_bus=bus)
        tracker.subscribe_to(bus)

        await storage.content.set_field(source_id, "subtitle", "New")
        await tracker.get_pending_field_keys(source_id, "de")  # ["subtitle"]
    """

    def __init__(
        self,
        storage: StorageProvider,
        settings: Settings | None = None,
        event_bus: EventBus | None = None,
    ):
        self.storage = storage
        self.settings = settings or get_settings()
        self.event_bus = event_bus

        prefix = self.settings.ledger_key_prefix
        self.pending_key = f"{prefix}updates_pending"
        self.last_sync_key = f"{prefix}last_sync"
        self.last_sync_languages_key = f"{prefix}last_sync_languages"

        self._translatable_filters: list[TranslatableFilter] = []
        # Held only while a ledger update is in flight
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    # =========================================================================
    # Service
    # =========================================================================

    @property
    def service_id(self) -> str:
        return "change_tracker"

    @property
    def subscribes_to(self) -> list[str]:
        return [ITEM_CONTENT_UPDATED, ITEM_FIELD_SET, ITEM_FIELD_DELETED]

    async def handle(self, event: Event) -> list[Event]:
        payload = event.payload

        if event.event_type == ITEM_CONTENT_UPDATED:
            return await self._content_update(event.item_id, payload["before"], payload["after"])

        if event.event_type == ITEM_FIELD_SET:
            previous = payload.get("previous") if payload.get("had_previous", True) else ABSENT
            return await self._field_change(event.item_id, payload["key"], previous, payload.get("value"))

        if event.event_type == ITEM_FIELD_DELETED:
            return await self._field_change(event.item_id, payload["key"], payload.get("previous"), ABSENT)

        return []

    # =========================================================================
    # Observing mutations
    # =========================================================================

    def add_translatable_filter(self, fn: TranslatableFilter) -> None:
        """Override whether a field-store key counts as translatable."""
        self._translatable_filters.append(fn)

    def should_skip(self, key: str) -> bool:
        return has_skip_prefix(key, self.settings.tracker_skip_prefix_list)

    async def observe_content_update(
        self,
        item_id: str,
        before: Mapping[str, Any] | ContentItem,
        after: Mapping[str, Any] | ContentItem,
    ) -> bool:
        """Track a title/body/summary update. True if anything was flagged."""
        events = await self._content_update(item_id, _content_snapshot(before), _content_snapshot(after))
        await self._publish(events)
        return bool(events)

    async def observe_field_set(
        self,
        item_id: str,
        key: str,
        value: Any,
        previous: Any = UNKNOWN,
    ) -> bool:
        """
        Track a field-store write. Call before the write, or pass
        ``previous``; otherwise the stored value is the new one.
        """
        if self.should_skip(key):
            return False
        if previous is UNKNOWN:
            previous = await self._current_value(item_id, key)
        events = await self._field_change(item_id, key, previous, value)
        await self._publish(events)
        return bool(events)

    async def observe_field_delete(self, item_id: str, key: str, previous: Any = UNKNOWN) -> bool:
        """Track a field-store delete. Deleting an absent field is a no-op."""
        if self.should_skip(key):
            return False
        if previous is UNKNOWN:
            previous = await self._current_value(item_id, key)
        events = await self._field_change(item_id, key, previous, ABSENT)
        await self._publish(events)
        return bool(events)

    async def _current_value(self, item_id: str, key: str) -> Any:
        field_map = await self.storage.content.get_field_map(item_id)
        return field_map.get(key, ABSENT)

    async def _content_update(
        self,
        item_id: str,
        before: Mapping[str, Any],
        after: Mapping[str, Any],
    ) -> list[Event]:
        status = after.get("status")
        status = getattr(status, "value", status)
        if status not in self.settings.tracked_status_list:
            return []

        changed = [
            name for name in CONTENT_FIELDS
            if not strictly_equal(before.get(name), after.get(name))
        ]
        if not changed:
            return []

        return await self._flag(item_id, changed, CONTENT)

    async def _field_change(self, item_id: str, key: str, previous: Any, value: Any) -> list[Event]:
        # Ledger writes come back through here; bail before taking the lock
        if self.should_skip(key):
            return []

        if strictly_equal(previous, value):
            return []

        if is_field_key_reference(key, value) or is_field_key_reference(key, previous):
            return []

        preference = await get_preference(self.storage.fields, key, item_id)
        is_translatable = preference == FieldPreference.TRANSLATE
        for fn in self._translatable_filters:
            is_translatable = fn(key, item_id, is_translatable)
        if not is_translatable:
            return []

        return await self._flag(item_id, [key], META)

    async def _flag(self, item_id: str, names: list[str], kind: str) -> list[Event]:
        linking = self.storage.linking

        if not await linking.is_source_item(item_id):
            logger.debug(f"Ignoring change on non-source item {item_id}")
            return []

        source_language = await linking.get_language(item_id)
        if source_language is None:
            return []

        targets = [
            code for code in await linking.get_active_languages()
            if match_language_code(code, [source_language]) is None
        ]
        if not targets:
            return []

        async with self._lock(item_id):
            ledger = await self._load(item_id)
            for code in targets:
                for name in names:
                    ledger.flag(code, name, kind)
            await self._save(item_id, ledger)

        logger.debug(f"Flagged {names} on {item_id} for {targets}")
        return [field_flagged(item_id, name, targets, kind) for name in names]

    # =========================================================================
    # Reading the ledger
    # =========================================================================

    async def get_pending(self, source_id: str, lang: str | None = None) -> PendingLedger | PendingEntry:
        """The whole ledger, or one language's entry when ``lang`` is given."""
        ledger = await self._load(source_id)
        if lang is None:
            return ledger
        return ledger.entry(lang)

    async def has_pending(self, source_id: str, type: str | None = None, lang: str | None = None) -> bool:
        """Anything pending, optionally only ``content`` or ``meta`` changes."""
        ledger = await self._load(source_id)
        entries = [ledger.entry(lang)] if lang is not None else list(ledger.languages.values())

        for entry in entries:
            if type is None and not entry.is_empty:
                return True
            if type == CONTENT and entry.content_fields:
                return True
            if type == META and entry.meta_fields:
                return True
        return False

    async def has_pending_field(
        self,
        source_id: str,
        field: str,
        lang: str | None = None,
        kind: str | None = None,
    ) -> bool:
        ledger = await self._load(source_id)
        if lang is not None:
            return ledger.entry(lang).has_field(field, kind)
        return any(entry.has_field(field, kind) for entry in ledger.languages.values())

    async def get_pending_content_fields(self, source_id: str, lang: str | None = None) -> list[str]:
        """Pending content fields (union across languages when ``lang`` is None)."""
        pending = await self._union(source_id, lang)
        return [name for name in CONTENT_FIELDS if name in pending.content_fields]

    async def get_pending_field_keys(self, source_id: str, lang: str | None = None) -> list[str]:
        """Pending field-store keys (union across languages when ``lang`` is None)."""
        pending = await self._union(source_id, lang)
        return sorted(pending.meta_fields)

    async def get_last_sync_time(self, source_id: str, lang: str | None = None) -> int | None:
        """
        Epoch seconds of the last sync. A language's own timestamp wins over
        the last full clear.
        """
        field_map = await self.storage.content.get_field_map(source_id)

        if lang is not None:
            per_language = field_map.get(self.last_sync_languages_key)
            if isinstance(per_language, dict):
                key = match_language_code(lang, per_language)
                if key is not None and per_language[key]:
                    return int(per_language[key])

        timestamp = field_map.get(self.last_sync_key)
        if not timestamp or isinstance(timestamp, dict):
            return None
        return int(timestamp)

    async def _union(self, source_id: str, lang: str | None) -> PendingEntry:
        ledger = await self._load(source_id)
        if lang is not None:
            return ledger.entry(lang)

        union = PendingEntry()
        for entry in ledger.languages.values():
            union.content_fields |= entry.content_fields
            union.meta_fields |= entry.meta_fields
        return union

    # =========================================================================
    # Clearing
    # =========================================================================

    async def clear(
        self,
        source_id: str,
        field: str | None = None,
        lang: str | None = None,
        kind: str | None = None,
    ) -> bool:
        """
        Remove pending flags.

        - no field, no language: delete the ledger, record the sync time
        - field only: remove that field for every language
        - language only: remove the language, record its sync time
        - field and language: remove that one flag

        ``kind`` (``content`` or ``meta``) limits a field removal to that
        kind, for field-store keys named like a content field. Languages
        match the ledger's keys case-insensitively. A ledger left empty is
        deleted as in a full clear.

        Returns:
            False if nothing was removed
        """
        events: list[Event] = []

        async with self._lock(source_id):
            if field is None and lang is None:
                cleared = await self._clear_all(source_id, events)
            else:
                cleared = await self._clear_partial(source_id, field, lang, kind, events)

        await self._publish(events)
        return cleared

    async def _clear_partial(
        self,
        source_id: str,
        field: str | None,
        lang: str | None,
        kind: str | None,
        events: list[Event],
    ) -> bool:
        ledger = await self._load(source_id)
        key = ledger.key_for(lang) if lang is not None else None

        if lang is None:
            modified = False
            for entry in ledger.languages.values():
                if entry.remove_field(field, kind):
                    modified = True
            if not modified:
                return False

        elif key is None:
            return False

        elif field is None:
            del ledger.languages[key]
            await self._record_language_sync(source_id, key)
            events.append(Event(event_type=SYNC_LANGUAGE_COMPLETED, item_id=source_id, language=key))

        elif not ledger.languages[key].remove_field(field, kind):
            return False

        ledger.prune()
        if ledger.is_empty:
            await self._clear_all(source_id, events)
            return True

        await self._save(source_id, ledger)
        return True

    async def _clear_all(self, source_id: str, events: list[Event]) -> bool:
        removed = await self.storage.content.delete_field(source_id, self.pending_key)
        await self.storage.content.set_field(source_id, self.last_sync_key, epoch_now())
        events.append(Event(event_type=SYNC_COMPLETED, item_id=source_id))
        logger.info(f"Sync completed for {source_id}")
        return removed

    async def _record_language_sync(self, source_id: str, lang: str) -> None:
        field_map = await self.storage.content.get_field_map(source_id)
        sync_times = field_map.get(self.last_sync_languages_key)
        if not isinstance(sync_times, dict):
            sync_times = {}
        sync_times[match_language_code(lang, sync_times) or lang] = epoch_now()
        await self.storage.content.set_field(source_id, self.last_sync_languages_key, sync_times)

    # =========================================================================
    # Persistence
    # =========================================================================

    def _lock(self, source_id: str) -> asyncio.Lock:
        lock = self._locks.get(source_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[source_id] = lock
        return lock

    async def _load(self, source_id: str) -> PendingLedger:
        field_map = await self.storage.content.get_field_map(source_id)
        return PendingLedger.from_storage(field_map.get(self.pending_key))

    async def _save(self, source_id: str, ledger: PendingLedger) -> None:
        await self.storage.content.set_field(source_id, self.pending_key, ledger.to_storage())

    async def _publish(self, events: list[Event]) -> None:
        for event in events:
            await publish_if(self.event_bus, event)
