"""
Storage abstraction layer.

Every external collaborator goes through these interfaces: the content
repository, the multilingual linking service, the optional custom-field
subsystem, and a key-value cache. Hosts plug in their own implementations;
``linguasync.storage.local`` provides in-memory ones.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel

from linguasync.core.models import ContentItem, FieldPreference


# =============================================================================
# Storage Interfaces
# =============================================================================


class ContentRepository(ABC):
    """
    Storage for content items and their field stores.

    Failures raise ``StorageError``.
    """

    @abstractmethod
    async def get(self, item_id: str) -> ContentItem | None:
        """Get an item by ID, None if it does not exist."""
        pass

    @abstractmethod
    async def create(self, data: dict[str, Any]) -> str:
        """Create an item from content/status data, return its ID."""
        pass

    @abstractmethod
    async def update(self, item_id: str, data: dict[str, Any]) -> None:
        """Partial update of an item's content/status."""
        pass

    @abstractmethod
    async def delete(self, item_id: str) -> bool:
        """Delete an item and its field store."""
        pass

    @abstractmethod
    async def get_field_map(self, item_id: str) -> dict[str, Any]:
        """All field-store values of an item (empty if none)."""
        pass

    @abstractmethod
    async def set_field(self, item_id: str, key: str, value: Any) -> None:
        """Set one field-store value."""
        pass

    @abstractmethod
    async def delete_field(self, item_id: str, key: str) -> bool:
        """Delete one field-store value. False if it was absent."""
        pass


class LinkingService(ABC):
    """
    Translation groups: which items are language versions of one document.

    Invariant: at most one item per language per group, exactly one source
    item per group. Failures raise ``LinkingError``.
    """

    @abstractmethod
    async def get_language(self, item_id: str) -> str | None:
        """Language code assigned to an item."""
        pass

    @abstractmethod
    async def get_group_members(self, item_id: str) -> dict[str, str]:
        """Language code -> item ID for the item's translation group."""
        pass

    @abstractmethod
    async def is_source_item(self, item_id: str) -> bool:
        """True if the item is its group's source (no upstream language)."""
        pass

    @abstractmethod
    async def get_source_item_id(self, item_id: str) -> str | None:
        """ID of the source item of the item's group."""
        pass

    @abstractmethod
    async def assign_language(self, item_id: str, code: str) -> None:
        """Assign a language to an item (placing it in its own group if new)."""
        pass

    @abstractmethod
    async def relate(self, item_id: str, source_id: str, code: str) -> None:
        """Make ``item_id`` the ``code`` translation of ``source_id``. Idempotent."""
        pass

    @abstractmethod
    async def get_translation_for(self, source_id: str, code: str) -> str | None:
        """ID of the ``code`` translation in the source's group, if any."""
        pass

    @abstractmethod
    async def get_active_languages(self) -> list[str]:
        """Language codes active on the site."""
        pass

    async def get_term_translation(self, term_id: Any, taxonomy: str, code: str) -> Any | None:
        """
        ID of the ``code`` translation of a taxonomy term, if any.

        With this default no term has a translation, so taxonomy fields are
        deleted from translations.
        """
        return None


class FieldSubsystem(ABC):
    """
    Custom-field subsystem (optional collaborator).

    Knows the type of the fields it manages and how each should be
    treated when translations are synced.
    """

    @abstractmethod
    async def get_field_type(self, key: str, item_id: str) -> str | None:
        """Field type, or None if the subsystem does not manage ``key``."""
        pass

    @abstractmethod
    async def get_translation_preference(self, key: str, item_id: str) -> FieldPreference:
        """translate / copy / ignore (COPY when unconfigured)."""
        pass

    @abstractmethod
    async def copy_managed_fields(self, source_id: str, target_id: str) -> None:
        """Copy every field this subsystem manages as "copy"."""
        pass

    async def get_field_taxonomy(self, key: str, item_id: str) -> str | None:
        """Taxonomy a ``taxonomy`` field draws its terms from."""
        return None


class CacheStorage(ABC):
    """Fast key-value cache (translation cache)."""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Set a value with optional TTL in seconds."""
        pass

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Get a value."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a key."""
        pass

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check if key exists."""
        pass


# =============================================================================
# Storage Provider (dependency injection container)
# =============================================================================


class StorageProvider(BaseModel):
    """
    Container for the collaborator backends.

    Initialize once at startup. Components receive this and use the
    interfaces without knowing the underlying implementation.
    """

    model_config = {"arbitrary_types_allowed": True}

    content: ContentRepository
    linking: LinkingService
    fields: FieldSubsystem | None = None
    cache: CacheStorage | None = None
