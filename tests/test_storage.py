"""
Tests for the in-memory storage backends.
"""

import pytest

from linguasync.core.errors import LinkingError, StorageError
from linguasync.core.events import ITEM_CONTENT_UPDATED, ITEM_FIELD_DELETED, EventBus
from linguasync.core.models import ContentItem, ItemStatus
from linguasync.storage.local import (
    InMemoryCacheStorage,
    InMemoryContentRepository,
    InMemoryLinkingService,
)


# =============================================================================
# Content repository
# =============================================================================


class TestContentRepository:
    @pytest.mark.asyncio
    async def test_create_and_get_copy(self):
        repo = InMemoryContentRepository()
        item_id = await repo.create({"title": "Hallo", "status": "draft", "language": "de"})

        item = await repo.get(item_id)
        item.title = "changed"

        stored = await repo.get(item_id)
        assert stored.title == "Hallo"
        assert stored.status == ItemStatus.DRAFT
        assert await repo.get("missing") is None

    @pytest.mark.asyncio
    async def test_create_rejects_unknown_attributes(self):
        with pytest.raises(StorageError):
            await InMemoryContentRepository().create({"title": "x", "author": "me"})

    @pytest.mark.asyncio
    async def test_update_publishes_snapshots(self):
        bus = EventBus()
        repo = InMemoryContentRepository(event_bus=bus)
        repo.add_item(ContentItem(id="A", title="Old", status=ItemStatus.PUBLISH))

        await repo.update("A", {"title": "New"})

        event = bus.get_history(ITEM_CONTENT_UPDATED)[0]
        assert event.payload["before"]["title"] == "Old"
        assert event.payload["after"] == {"title": "New", "body": "", "summary": "", "status": "publish"}

    @pytest.mark.asyncio
    async def test_missing_items(self):
        repo = InMemoryContentRepository()

        with pytest.raises(StorageError):
            await repo.update("missing", {"title": "x"})
        with pytest.raises(StorageError):
            await repo.set_field("missing", "k", "v")
        assert await repo.get_field_map("missing") == {}
        assert not await repo.delete("missing")

    @pytest.mark.asyncio
    async def test_delete_absent_field_is_silent(self):
        bus = EventBus()
        repo = InMemoryContentRepository(event_bus=bus)
        repo.add_item(ContentItem(id="A", fields={"k": "v"}))

        assert not await repo.delete_field("A", "other")
        assert bus.get_history(ITEM_FIELD_DELETED) == []

        assert await repo.delete_field("A", "k")
        assert bus.get_history(ITEM_FIELD_DELETED)[0].payload == {"key": "k", "previous": "v"}


# =============================================================================
# Linking service
# =============================================================================


class TestLinkingService:
    @pytest.fixture
    def linking(self):
        linking = InMemoryLinkingService(["en", "de"])
        linking.add_item("A", "en")
        linking.add_item("A-de", "de", source_id="A")
        return linking

    @pytest.mark.asyncio
    async def test_group_queries(self, linking):
        assert await linking.get_group_members("A-de") == {"en": "A", "de": "A-de"}
        assert await linking.get_source_item_id("A-de") == "A"
        assert await linking.is_source_item("A")
        assert not await linking.is_source_item("A-de")
        assert await linking.get_group_members("unknown") == {}

    @pytest.mark.asyncio
    async def test_relate_is_idempotent(self, linking):
        await linking.relate("A-de", "A", "de")
        assert await linking.get_group_members("A") == {"en": "A", "de": "A-de"}

    @pytest.mark.asyncio
    async def test_one_item_per_language(self, linking):
        await linking.assign_language("X", "de")

        with pytest.raises(LinkingError):
            await linking.relate("X", "A", "de")
        assert await linking.get_translation_for("A", "de") == "A-de"

    @pytest.mark.asyncio
    async def test_relate_needs_grouped_source(self, linking):
        with pytest.raises(LinkingError):
            await linking.relate("X", "nobody", "fr")

    @pytest.mark.asyncio
    async def test_cannot_steal_from_another_group(self, linking):
        linking.add_item("B", "en")
        linking.add_item("B-fr", "fr", source_id="B")

        with pytest.raises(LinkingError):
            await linking.relate("B-fr", "A", "fr")
        assert await linking.get_source_item_id("B-fr") == "B"

    @pytest.mark.asyncio
    async def test_assign_language(self, linking):
        await linking.assign_language("A-de", "de-AT")
        assert await linking.get_language("A-de") == "de-AT"

        with pytest.raises(LinkingError):
            await linking.assign_language("A-de", "en")

    @pytest.mark.asyncio
    async def test_term_translations(self, linking):
        linking.add_term_translation(3, "category", "de", 13)

        assert await linking.get_term_translation("3", "category", "de") == 13
        assert await linking.get_term_translation(3, "post_tag", "de") is None
        assert await linking.get_term_translation(3, "category", "fr") is None

    @pytest.mark.asyncio
    async def test_active_languages(self, linking):
        linking.set_active_languages(["en", "de", "fr"])
        assert await linking.get_active_languages() == ["en", "de", "fr"]


# =============================================================================
# Cache
# =============================================================================


class TestCacheStorage:
    @pytest.mark.asyncio
    async def test_set_get_delete(self):
        cache = InMemoryCacheStorage()

        await cache.set("k", "v", ttl=60)
        assert await cache.get("k") == "v"
        assert await cache.exists("k")

        assert await cache.delete("k")
        assert not await cache.exists("k")
        assert not await cache.delete("k")

    @pytest.mark.asyncio
    async def test_expired_entries_vanish(self):
        cache = InMemoryCacheStorage()
        cache._cache["k"] = ("v", 1.0)

        assert await cache.get("k") is None
        assert "k" not in cache._cache
