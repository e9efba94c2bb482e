"""
Field routing: which fields of a source item reach its translations, and how.
"""

from linguasync.fields.handlers import (
    CustomFieldHandler,
    FieldAction,
    FieldContext,
    FieldHandler,
    FieldOutcome,
    FieldOutcomeStatus,
    FieldStoreHandler,
    get_preference,
    is_empty_value,
    is_field_key_reference,
    term_ids,
)
from linguasync.fields.registry import (
    DEFAULT_FIELD_TYPES,
    RELATIONSHIP_FIELD_TYPES,
    TAXONOMY_FIELD_TYPES,
    FieldTypeRegistry,
)
from linguasync.fields.router import FieldRouter

__all__ = [
    "CustomFieldHandler",
    "FieldAction",
    "FieldContext",
    "FieldHandler",
    "FieldOutcome",
    "FieldOutcomeStatus",
    "FieldStoreHandler",
    "get_preference",
    "is_empty_value",
    "is_field_key_reference",
    "term_ids",
    "DEFAULT_FIELD_TYPES",
    "RELATIONSHIP_FIELD_TYPES",
    "TAXONOMY_FIELD_TYPES",
    "FieldTypeRegistry",
    "FieldRouter",
]
