"""
Storage abstractions.

Host Integration Points:
- ContentRepository → the CMS item table plus its per-item field store
- LinkingService → the multilingual plugin's translation groups
- FieldSubsystem → a custom-field plugin (optional)
- CacheStorage → Redis or any key-value cache
"""

from linguasync.storage.base import (
    CacheStorage,
    ContentRepository,
    FieldSubsystem,
    LinkingService,
    StorageProvider,
)
from linguasync.storage.local import (
    FieldDefinition,
    InMemoryCacheStorage,
    InMemoryContentRepository,
    InMemoryFieldSubsystem,
    InMemoryLinkingService,
    create_local_storage,
)

__all__ = [
    "CacheStorage",
    "ContentRepository",
    "FieldSubsystem",
    "LinkingService",
    "StorageProvider",
    "FieldDefinition",
    "InMemoryCacheStorage",
    "InMemoryContentRepository",
    "InMemoryFieldSubsystem",
    "InMemoryLinkingService",
    "create_local_storage",
]
