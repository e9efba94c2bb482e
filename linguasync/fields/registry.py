"""
Registry of translatable field types and field-subsystem integrations.
"""

from __future__ import annotations

import logging
from typing import Callable

logger = logging.getLogger(__name__)


# Field types whose values reference other items by ID
RELATIONSHIP_FIELD_TYPES: tuple[str, ...] = ("relationship", "post_object", "page_link")

# Field types whose values reference taxonomy terms by ID
TAXONOMY_FIELD_TYPES: tuple[str, ...] = ("taxonomy",)

DEFAULT_FIELD_TYPES: tuple[str, ...] = (
    ("text", "textarea", "wysiwyg") + TAXONOMY_FIELD_TYPES + RELATIONSHIP_FIELD_TYPES
)

# Called with the registry so an integration can register its field types
IntegrationInit = Callable[["FieldTypeRegistry"], None]


class FieldTypeRegistry:
    """
    Which custom-field types are translatable, and which field-subsystem
    integrations to initialize at startup.

    Usage:
        registry = FieldTypeRegistry()
        registry.register_field_type("email")
        registry.register_integration("blocks", lambda r: r.register_field_type("block"))
        registry.init_integrations()
    """

    def __init__(self, field_types: tuple[str, ...] | list[str] = DEFAULT_FIELD_TYPES):
        self._field_types: list[str] = list(field_types)
        self._integrations: dict[str, IntegrationInit] = {}

    # =========================================================================
    # Field types
    # =========================================================================

    def register_field_type(self, field_type: str) -> bool:
        """Returns False if the type is already registered."""
        if field_type in self._field_types:
            return False
        self._field_types.append(field_type)
        logger.debug(f"Registered translatable field type: {field_type}")
        return True

    def unregister_field_type(self, field_type: str) -> bool:
        """Returns False if the type was not registered."""
        if field_type not in self._field_types:
            return False
        self._field_types.remove(field_type)
        return True

    def is_registered(self, field_type: str) -> bool:
        return field_type in self._field_types

    @property
    def field_types(self) -> list[str]:
        return list(self._field_types)

    # =========================================================================
    # Integrations
    # =========================================================================

    def register_integration(self, integration_id: str, init: IntegrationInit) -> bool:
        """Returns False if an integration with this ID is already registered."""
        if integration_id in self._integrations:
            return False
        self._integrations[integration_id] = init
        return True

    @property
    def integrations(self) -> dict[str, IntegrationInit]:
        return dict(self._integrations)

    def init_integrations(self) -> None:
        """Run every registered integration's init, in registration order."""
        for integration_id, init in self._integrations.items():
            logger.info(f"Initializing field integration: {integration_id}")
            init(self)
