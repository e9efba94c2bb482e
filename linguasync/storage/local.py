"""
In-memory storage implementations for development and tests.

These work without any external services. The content repository
announces item mutations on an event bus when one is given, the same way a
host CMS fires its save hooks.
"""

from __future__ import annotations

import copy
import logging
from datetime import datetime, timezone
from typing import Any, Iterable

from pydantic import BaseModel

from linguasync.core.errors import LinkingError, StorageError
from linguasync.core.events import (
    ITEM_CONTENT_UPDATED,
    ITEM_FIELD_DELETED,
    ITEM_FIELD_SET,
    Event,
    EventBus,
    publish_if,
)
from linguasync.core.models import CONTENT_FIELDS, ContentItem, FieldPreference, ItemStatus
from linguasync.core.utils import generate_id
from linguasync.storage.base import (
    CacheStorage,
    ContentRepository,
    FieldSubsystem,
    LinkingService,
    StorageProvider,
)

logger = logging.getLogger(__name__)


def _snapshot(item: ContentItem) -> dict[str, Any]:
    """Content fields and status of an item, as published on events."""
    data: dict[str, Any] = item.content()
    data["status"] = item.status.value
    return data


# =============================================================================
# In-Memory Content Repository
# =============================================================================


class InMemoryContentRepository(ContentRepository):
    """In-memory content items with per-item field stores."""

    def __init__(self, event_bus: EventBus | None = None):
        self._items: dict[str, ContentItem] = {}
        self.event_bus = event_bus

    def add_item(self, item: ContentItem | None = None, **kwargs) -> ContentItem:
        """Seed an item directly (no events). Returns the stored item."""
        if item is None:
            item = ContentItem(**kwargs)
        self._items[item.id] = item
        return item

    @property
    def item_ids(self) -> list[str]:
        return list(self._items)

    def _require(self, item_id: str) -> ContentItem:
        item = self._items.get(item_id)
        if item is None:
            raise StorageError(f"Item not found: {item_id}", context={"item_id": item_id})
        return item

    async def get(self, item_id: str) -> ContentItem | None:
        item = self._items.get(item_id)
        return item.model_copy(deep=True) if item else None

    async def create(self, data: dict[str, Any]) -> str:
        unknown = set(data) - {*CONTENT_FIELDS, "status", "language", "fields"}
        if unknown:
            raise StorageError(f"Unknown item attributes: {sorted(unknown)}")

        item = ContentItem(
            id=generate_id("item"),
            **copy.deepcopy(data),
        )
        self._items[item.id] = item
        logger.debug(f"Created item {item.id}")
        return item.id

    async def update(self, item_id: str, data: dict[str, Any]) -> None:
        item = self._require(item_id)
        before = _snapshot(item)

        changes = {k: v for k, v in data.items() if k in (*CONTENT_FIELDS, "status", "language")}
        if "status" in changes:
            changes["status"] = ItemStatus(changes["status"])
        item.update(**changes)

        await publish_if(self.event_bus, Event(
            event_type=ITEM_CONTENT_UPDATED,
            item_id=item_id,
            payload={"before": before, "after": _snapshot(item)},
        ))

    async def delete(self, item_id: str) -> bool:
        if item_id in self._items:
            del self._items[item_id]
            return True
        return False

    async def get_field_map(self, item_id: str) -> dict[str, Any]:
        item = self._items.get(item_id)
        if item is None:
            return {}
        return copy.deepcopy(item.fields)

    async def set_field(self, item_id: str, key: str, value: Any) -> None:
        item = self._require(item_id)
        had_previous = key in item.fields
        previous = item.fields.get(key)

        item.fields[key] = copy.deepcopy(value)
        item.updated_at = datetime.now(timezone.utc)

        await publish_if(self.event_bus, Event(
            event_type=ITEM_FIELD_SET,
            item_id=item_id,
            payload={
                "key": key,
                "value": copy.deepcopy(value),
                "previous": previous,
                "had_previous": had_previous,
            },
        ))

    async def delete_field(self, item_id: str, key: str) -> bool:
        item = self._require(item_id)
        if key not in item.fields:
            return False

        previous = item.fields.pop(key)
        item.updated_at = datetime.now(timezone.utc)

        await publish_if(self.event_bus, Event(
            event_type=ITEM_FIELD_DELETED,
            item_id=item_id,
            payload={"key": key, "previous": previous},
        ))
        return True


# =============================================================================
# In-Memory Linking Service
# =============================================================================


class InMemoryLinkingService(LinkingService):
    """
    In-memory translation groups.

    Each group maps language codes to item IDs and remembers which member
    is the source.
    """

    def __init__(self, active_languages: Iterable[str] | None = None):
        self._active_languages = list(active_languages or [])
        self._item_group: dict[str, str] = {}
        self._groups: dict[str, dict[str, str]] = {}
        self._group_source: dict[str, str] = {}
        # (taxonomy, term id, code) -> translated term id
        self._term_translations: dict[tuple[str, str, str], Any] = {}

    def add_item(self, item_id: str, language: str, source_id: str | None = None) -> None:
        """Seed an item as a new source, or as a translation of ``source_id``."""
        if source_id is None:
            self._new_group(item_id, language)
        else:
            self._attach(item_id, source_id, language)

    def set_active_languages(self, languages: Iterable[str]) -> None:
        self._active_languages = list(languages)

    def add_term_translation(self, term_id: Any, taxonomy: str, code: str, translated_id: Any) -> None:
        """Seed the ``code`` translation of a taxonomy term."""
        self._term_translations[(taxonomy, str(term_id), code)] = translated_id

    def _new_group(self, item_id: str, code: str) -> None:
        group_id = generate_id("grp")
        self._groups[group_id] = {code: item_id}
        self._group_source[group_id] = item_id
        self._item_group[item_id] = group_id

    def _detach(self, item_id: str) -> None:
        group_id = self._item_group.pop(item_id, None)
        if group_id is None:
            return
        members = self._groups[group_id]
        for code, member in list(members.items()):
            if member == item_id:
                del members[code]
        if not members:
            del self._groups[group_id]
            del self._group_source[group_id]

    def _attach(self, item_id: str, source_id: str, code: str) -> None:
        group_id = self._item_group.get(source_id)
        if group_id is None:
            raise LinkingError(
                f"Source item {source_id} has no translation group",
                context={"item_id": item_id, "source_id": source_id},
            )

        members = self._groups[group_id]
        existing = members.get(code)
        if existing == item_id:
            return
        if existing is not None:
            raise LinkingError(
                f'Group of {source_id} already has a "{code}" translation ({existing})',
                context={"item_id": item_id, "source_id": source_id, "language": code},
            )

        own_group = self._item_group.get(item_id)
        if own_group is not None and own_group != group_id and len(self._groups[own_group]) > 1:
            raise LinkingError(
                f"Item {item_id} already belongs to another translation group",
                context={"item_id": item_id, "source_id": source_id},
            )

        self._detach(item_id)
        members[code] = item_id
        self._item_group[item_id] = group_id

    async def get_language(self, item_id: str) -> str | None:
        group_id = self._item_group.get(item_id)
        if group_id is None:
            return None
        for code, member in self._groups[group_id].items():
            if member == item_id:
                return code
        return None

    async def get_group_members(self, item_id: str) -> dict[str, str]:
        group_id = self._item_group.get(item_id)
        if group_id is None:
            return {}
        return dict(self._groups[group_id])

    async def is_source_item(self, item_id: str) -> bool:
        group_id = self._item_group.get(item_id)
        return group_id is not None and self._group_source[group_id] == item_id

    async def get_source_item_id(self, item_id: str) -> str | None:
        group_id = self._item_group.get(item_id)
        if group_id is None:
            return None
        return self._group_source[group_id]

    async def assign_language(self, item_id: str, code: str) -> None:
        group_id = self._item_group.get(item_id)
        if group_id is None:
            self._new_group(item_id, code)
            return

        members = self._groups[group_id]
        existing = members.get(code)
        if existing == item_id:
            return
        if existing is not None:
            raise LinkingError(
                f'Group already has a "{code}" item ({existing})',
                context={"item_id": item_id, "language": code},
            )
        for old_code, member in list(members.items()):
            if member == item_id:
                del members[old_code]
        members[code] = item_id

    async def relate(self, item_id: str, source_id: str, code: str) -> None:
        self._attach(item_id, source_id, code)

    async def get_translation_for(self, source_id: str, code: str) -> str | None:
        group_id = self._item_group.get(source_id)
        if group_id is None:
            return None
        return self._groups[group_id].get(code)

    async def get_active_languages(self) -> list[str]:
        return list(self._active_languages)

    async def get_term_translation(self, term_id: Any, taxonomy: str, code: str) -> Any | None:
        return self._term_translations.get((taxonomy, str(term_id), code))


# =============================================================================
# In-Memory Field Subsystem
# =============================================================================


class FieldDefinition(BaseModel):
    """
    A field known to the field subsystem.

    Fields without a type only carry a translation preference; they are
    plain field-store values the subsystem does not manage itself.
    """

    name: str
    type: str | None = None
    preference: FieldPreference = FieldPreference.COPY
    # Only for taxonomy fields
    taxonomy: str | None = None


class InMemoryFieldSubsystem(FieldSubsystem):
    """Field definitions held in memory, values read from the repository."""

    def __init__(
        self,
        repository: ContentRepository,
        definitions: Iterable[FieldDefinition] | None = None,
    ):
        self.repository = repository
        self._definitions: dict[str, FieldDefinition] = {}
        for definition in definitions or []:
            self._definitions[definition.name] = definition

    def define_field(
        self,
        name: str,
        field_type: str | None = None,
        preference: Any = FieldPreference.COPY,
        taxonomy: str | None = None,
    ) -> FieldDefinition:
        definition = FieldDefinition(
            name=name,
            type=field_type,
            preference=FieldPreference.from_value(preference),
            taxonomy=taxonomy,
        )
        self._definitions[name] = definition
        return definition

    @property
    def definitions(self) -> dict[str, FieldDefinition]:
        return dict(self._definitions)

    async def get_field_type(self, key: str, item_id: str) -> str | None:
        definition = self._definitions.get(key)
        return definition.type if definition else None

    async def get_translation_preference(self, key: str, item_id: str) -> FieldPreference:
        definition = self._definitions.get(key)
        return definition.preference if definition else FieldPreference.COPY

    async def get_field_taxonomy(self, key: str, item_id: str) -> str | None:
        definition = self._definitions.get(key)
        return definition.taxonomy if definition else None

    async def copy_managed_fields(self, source_id: str, target_id: str) -> None:
        source_fields = await self.repository.get_field_map(source_id)
        for name, definition in self._definitions.items():
            if definition.preference != FieldPreference.COPY or definition.type is None:
                continue
            if name not in source_fields:
                continue
            await self.repository.set_field(target_id, name, source_fields[name])


# =============================================================================
# In-Memory Cache Storage
# =============================================================================


class InMemoryCacheStorage(CacheStorage):
    """In-memory cache with optional expiry."""

    def __init__(self):
        self._cache: dict[str, tuple[Any, float | None]] = {}

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        expires_at = None
        if ttl:
            expires_at = datetime.now(timezone.utc).timestamp() + ttl
        self._cache[key] = (value, expires_at)

    async def get(self, key: str) -> Any | None:
        if key not in self._cache:
            return None

        value, expires_at = self._cache[key]
        if expires_at and datetime.now(timezone.utc).timestamp() > expires_at:
            del self._cache[key]
            return None

        return value

    async def delete(self, key: str) -> bool:
        return self._cache.pop(key, None) is not None

    async def exists(self, key: str) -> bool:
        return await self.get(key) is not None


# =============================================================================
# Factory
# =============================================================================


def create_local_storage(
    event_bus: EventBus | None = None,
    active_languages: Iterable[str] | None = None,
    field_definitions: Iterable[FieldDefinition] | None = None,
    with_field_subsystem: bool = True,
) -> StorageProvider:
    """Create a StorageProvider with in-memory implementations."""
    content = InMemoryContentRepository(event_bus=event_bus)
    fields = InMemoryFieldSubsystem(content, field_definitions) if with_field_subsystem else None
    return StorageProvider(
        content=content,
        linking=InMemoryLinkingService(active_languages),
        fields=fields,
        cache=InMemoryCacheStorage(),
    )
