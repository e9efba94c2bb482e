"""
Tests for change tracking and the pending ledger.
"""

import asyncio
import gc

import pytest

from linguasync.core.events import (
    SYNC_COMPLETED,
    SYNC_FIELD_FLAGGED,
    SYNC_LANGUAGE_COMPLETED,
)
from linguasync.core.models import ContentItem, FieldPreference, ItemStatus
from linguasync.sync.ledger import CONTENT, META, PendingEntry, PendingLedger
from linguasync.sync.tracker import ABSENT, ChangeTracker, strictly_equal


def ledger_of(storage, item_id="A"):
    return storage.content._items[item_id].fields.get("_lsync_updates_pending")


def item_fields(storage, item_id="A"):
    return storage.content._items[item_id].fields


# =============================================================================
# Field-store changes
# =============================================================================


class TestFieldChanges:
    @pytest.mark.asyncio
    async def test_same_value_is_not_a_change(self, storage, tracker, source_item):
        await storage.content.set_field("A", "color", "red")

        assert ledger_of(storage) is None
        assert not await tracker.has_pending("A")

    @pytest.mark.asyncio
    async def test_changed_value_flags_every_target_language(self, storage, tracker, bus, source_item):
        await storage.content.set_field("A", "color", "blue")

        assert ledger_of(storage) == {
            "languages": {
                "de": {"meta": {"color": True}},
                "fr": {"meta": {"color": True}},
            }
        }
        assert await tracker.get_pending_field_keys("A", "de") == ["color"]

        flagged = bus.get_history(SYNC_FIELD_FLAGGED)
        assert len(flagged) == 1
        assert flagged[0].payload == {"field": "color", "kind": "meta", "languages": ["de", "fr"]}

    @pytest.mark.asyncio
    async def test_type_change_is_a_change(self, storage, tracker, source_item):
        storage.fields.define_field("count", "number", FieldPreference.TRANSLATE)
        storage.content._items["A"].fields["count"] = 0

        await storage.content.set_field("A", "count", "0")

        assert await tracker.has_pending_field("A", "count")

    @pytest.mark.asyncio
    async def test_copy_preference_not_flagged(self, storage, tracker, source_item):
        storage.fields.define_field("price", "number", FieldPreference.COPY)

        await storage.content.set_field("A", "price", "9.99")

        assert not await tracker.has_pending("A")

    @pytest.mark.asyncio
    async def test_translatable_filter_overrides_preference(self, storage, tracker, source_item):
        storage.fields.define_field("price", "number", FieldPreference.COPY)
        tracker.add_translatable_filter(lambda key, item_id, translatable: translatable or key == "price")

        await storage.content.set_field("A", "price", "9.99")

        assert await tracker.has_pending_field("A", "price", "fr")

    @pytest.mark.asyncio
    async def test_field_key_reference_not_flagged(self, storage, tracker, source_item):
        tracker.add_translatable_filter(lambda key, item_id, translatable: True)

        await storage.content.set_field("A", "_color", "field_5ff8033f42629")

        assert not await tracker.has_pending("A")

    @pytest.mark.asyncio
    async def test_internal_keys_not_flagged(self, storage, tracker, source_item):
        tracker.add_translatable_filter(lambda key, item_id, translatable: True)

        await storage.content.set_field("A", "_edit_lock", "1700000000:1")
        await storage.content.set_field("A", "_thumbnail_id", "42")

        assert not await tracker.has_pending("A")

    @pytest.mark.asyncio
    async def test_delete_flags(self, storage, tracker, source_item):
        assert await storage.content.delete_field("A", "color")

        assert await tracker.has_pending_field("A", "color", "de")

    @pytest.mark.asyncio
    async def test_deleting_absent_field_is_noop(self, tracker, source_item):
        assert not await tracker.observe_field_delete("A", "color_unset")
        assert not await tracker.has_pending("A")

    @pytest.mark.asyncio
    async def test_translation_items_ignored(self, storage, tracker, source_item):
        storage.content.add_item(ContentItem(id="A-de", language="de", fields={"color": "rot"}))
        storage.linking.add_item("A-de", "de", source_id="A")

        await storage.content.set_field("A-de", "color", "blau")

        assert ledger_of(storage, "A-de") is None
        assert not await tracker.has_pending("A")

    @pytest.mark.asyncio
    async def test_unlinked_items_ignored(self, storage, tracker):
        storage.fields.define_field("color", "text", FieldPreference.TRANSLATE)
        storage.content.add_item(ContentItem(id="loose", language="en"))

        assert not await tracker.observe_field_set("loose", "color", "red")

    @pytest.mark.asyncio
    async def test_observe_before_write(self, storage, settings, source_item):
        tracker = ChangeTracker(storage, settings=settings)

        assert await tracker.observe_field_set("A", "color", "green")
        assert not await tracker.observe_field_set("A", "color", "red")
        assert await tracker.get_pending_field_keys("A") == ["color"]

    @pytest.mark.asyncio
    async def test_concurrent_flags_are_all_kept(self, storage, settings, source_item):
        tracker = ChangeTracker(storage, settings=settings)
        keys = [f"field_{i}" for i in range(10)]
        for key in keys:
            storage.fields.define_field(key, "text", FieldPreference.TRANSLATE)

        results = await asyncio.gather(*(tracker.observe_field_set("A", key, "value") for key in keys))

        assert all(results)
        assert await tracker.get_pending_field_keys("A", "de") == sorted(keys)
        assert await tracker.get_pending_field_keys("A", "fr") == sorted(keys)


# =============================================================================
# Content changes
# =============================================================================


class TestContentChanges:
    @pytest.mark.asyncio
    async def test_published_update_flags_changed_fields(self, storage, tracker, source_item):
        await storage.content.update("A", {"title": "Hello!", "summary": "Short"})

        assert await tracker.get_pending_content_fields("A", "de") == ["title", "summary"]
        assert await tracker.has_pending("A", type=CONTENT)
        assert not await tracker.has_pending("A", type=META)
        assert ledger_of(storage)["languages"]["fr"] == {"title": True, "excerpt": True}

    @pytest.mark.asyncio
    async def test_get_pending(self, storage, tracker, source_item):
        await storage.content.update("A", {"title": "Hello!"})
        await storage.content.set_field("A", "color", "blue")

        ledger = await tracker.get_pending("A")
        assert isinstance(ledger, PendingLedger)
        assert set(ledger.languages) == {"de", "fr"}

        entry = await tracker.get_pending("A", "de")
        assert isinstance(entry, PendingEntry)
        assert entry.content_fields == {"title"}
        assert entry.meta_fields == {"color"}

        assert (await tracker.get_pending("A", "it")).is_empty

    @pytest.mark.asyncio
    async def test_unchanged_update_not_flagged(self, storage, tracker, source_item):
        await storage.content.update("A", {"title": "Hello"})

        assert not await tracker.has_pending("A")

    @pytest.mark.asyncio
    async def test_drafts_not_tracked(self, storage, tracker):
        storage.content.add_item(ContentItem(id="D", language="en", title="Draft", status=ItemStatus.DRAFT))
        storage.linking.add_item("D", "en")

        await storage.content.update("D", {"title": "Still a draft"})

        assert not await tracker.has_pending("D")

    @pytest.mark.asyncio
    async def test_observe_content_update_directly(self, storage, settings, source_item):
        tracker = ChangeTracker(storage, settings=settings)
        after = source_item.model_copy(update={"body": "New body"})

        assert await tracker.observe_content_update("A", source_item, after)
        assert await tracker.has_pending_field("A", "content", "de")
        assert await tracker.has_pending_field("A", "body", "de")


# =============================================================================
# Clearing
# =============================================================================


class TestClear:
    @pytest.mark.asyncio
    async def test_field_and_language(self, storage, tracker, source_item):
        await storage.content.set_field("A", "color", "blue")

        assert await tracker.clear("A", field="color", lang="de")

        assert not await tracker.has_pending("A", lang="de")
        assert await tracker.has_pending_field("A", "color", "fr")

    @pytest.mark.asyncio
    async def test_field_only(self, storage, tracker, source_item):
        await storage.content.set_field("A", "color", "blue")
        await storage.content.update("A", {"title": "Hi"})

        assert await tracker.clear("A", field="color")

        assert not await tracker.has_pending_field("A", "color")
        assert await tracker.has_pending("A", type=CONTENT)
        assert not await tracker.has_pending("A", type=META)

    @pytest.mark.asyncio
    async def test_languages_one_by_one(self, storage, tracker, bus, source_item):
        await storage.content.set_field("A", "color", "blue")

        assert await tracker.clear("A", lang="de")
        assert ledger_of(storage) is not None
        assert await tracker.get_last_sync_time("A", "de") is not None
        assert await tracker.get_last_sync_time("A") is None

        assert await tracker.clear("A", lang="fr")

        assert "_lsync_updates_pending" not in storage.content._items["A"].fields
        assert await tracker.get_last_sync_time("A") is not None
        assert len(bus.get_history(SYNC_LANGUAGE_COMPLETED)) == 2
        assert len(bus.get_history(SYNC_COMPLETED)) == 1

    @pytest.mark.asyncio
    async def test_full_clear(self, storage, tracker, source_item):
        await storage.content.set_field("A", "color", "blue")

        assert await tracker.clear("A")

        assert not await tracker.has_pending("A")
        assert await tracker.get_last_sync_time("A", "fr") is not None

    @pytest.mark.asyncio
    async def test_nothing_to_clear(self, storage, tracker, source_item):
        assert not await tracker.clear("A", lang="de")
        assert not await tracker.clear("A", field="color")

        await storage.content.set_field("A", "color", "blue")
        assert not await tracker.clear("A", field="size", lang="de")

    @pytest.mark.asyncio
    async def test_field_store_key_named_like_content(self, storage, tracker, source_item):
        storage.fields.define_field("title", "text", FieldPreference.TRANSLATE)
        await storage.content.update("A", {"title": "Hello!"})
        await storage.content.set_field("A", "title", "Seo title")

        assert await tracker.has_pending_field("A", "title", "de", kind=META)

        assert await tracker.clear("A", field="title", lang="de", kind=META)

        assert not await tracker.has_pending_field("A", "title", "de", kind=META)
        assert await tracker.has_pending_field("A", "title", "de", kind=CONTENT)
        assert await tracker.get_pending_content_fields("A", "de") == ["title"]

    @pytest.mark.asyncio
    async def test_language_matched_case_insensitively(self, storage, tracker, source_item):
        storage.linking.set_active_languages(["en", "pt-br"])
        await storage.content.set_field("A", "color", "blue")

        assert await tracker.has_pending("A", lang="pt-BR")
        assert await tracker.clear("A", lang="pt-BR")

        assert not await tracker.has_pending("A")
        assert await tracker.get_last_sync_time("A", "PT-BR") is not None
        assert list(item_fields(storage)["_lsync_last_sync_languages"]) == ["pt-br"]

    @pytest.mark.asyncio
    async def test_source_language_excluded_case_insensitively(self, storage, tracker, source_item):
        storage.linking.set_active_languages(["EN", "de"])

        await storage.content.set_field("A", "color", "blue")

        assert set(ledger_of(storage)["languages"]) == {"de"}

    @pytest.mark.asyncio
    async def test_locks_released_after_use(self, storage, tracker, source_item):
        await storage.content.set_field("A", "color", "blue")
        await tracker.clear("A")
        gc.collect()

        assert "A" not in tracker._locks


# =============================================================================
# Ledger
# =============================================================================


class TestLedger:
    def test_legacy_names_load(self):
        ledger = PendingLedger.from_storage({
            "languages": {
                "de": {"content": True, "excerpt": 1, "meta": {"a": True, "b": False}},
                "fr": {},
            }
        })

        assert set(ledger.languages) == {"de"}
        assert ledger.entry("de").content_fields == {"body", "summary"}
        assert ledger.entry("de").meta_fields == {"a"}
        assert ledger.to_storage() == {
            "languages": {"de": {"content": True, "excerpt": True, "meta": {"a": True}}}
        }

    @pytest.mark.parametrize("data", [None, "oops", [], {"languages": []}, {"other": {}}])
    def test_malformed_loads_empty(self, data):
        assert PendingLedger.from_storage(data).is_empty

    def test_entry_flags(self):
        entry = PendingEntry()
        entry.flag("summary", CONTENT)
        entry.flag("subtitle", META)

        assert entry.has_field("excerpt")
        assert entry.remove_field("excerpt")
        assert not entry.remove_field("summary")
        assert entry.to_storage() == {"meta": {"subtitle": True}}

    def test_content_and_field_store_key_with_one_name(self):
        entry = PendingEntry()
        entry.flag("title", CONTENT)
        entry.flag("title", META)

        assert entry.has_field("title", META)
        assert entry.remove_field("title", META)
        assert not entry.has_field("title", META)
        assert entry.has_field("title", CONTENT)

        entry.flag("title", META)
        assert entry.remove_field("title")
        assert entry.is_empty

    def test_language_keys_match_case_insensitively(self):
        ledger = PendingLedger.from_storage({"languages": {"pt-br": {"title": True}}})

        assert ledger.key_for("pt-BR") == "pt-br"
        assert ledger.entry("pt_BR").content_fields == {"title"}
        assert ledger.key_for("pt") is None

        ledger.flag("PT-BR", "subtitle", META)
        assert set(ledger.languages) == {"pt-br"}
        assert ledger.entry("pt-br").meta_fields == {"subtitle"}


@pytest.mark.parametrize("a,b,expected", [
    ("red", "red", True),
    (0, "0", False),
    (0, False, False),
    ("", None, False),
    ("", ABSENT, False),
    (ABSENT, ABSENT, True),
    ([1, "2"], [1, "2"], True),
    ([1, "2"], [1, 2], False),
    ({"a": [1]}, {"a": [1]}, True),
    ({"a": 1}, {"a": True}, False),
])
def test_strictly_equal(a, b, expected):
    assert strictly_equal(a, b) is expected
