"""
Field configuration loader.

Reads a YAML file describing which custom-field types are translatable and
how each known field is treated:

    field_types:
      - text
      - textarea
      - email

    fields:
      subtitle:
        type: text
        preference: translate
      price:
        type: number
        preference: copy
      related_posts:
        type: relationship
        preference: 2
      seo_description:
        preference: translate

Preferences accept names or the numeric codes (2 translate, 1 copy,
0 ignore). Fields without a type are plain field-store values.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from linguasync.config import Settings, get_settings
from linguasync.core.errors import RegistryError
from linguasync.core.models import FieldPreference
from linguasync.fields.registry import FieldTypeRegistry
from linguasync.storage.base import ContentRepository
from linguasync.storage.local import FieldDefinition, InMemoryFieldSubsystem

logger = logging.getLogger(__name__)


class ConfigLoader:
    """
    Loads field configuration and registers it with the system.

    Usage:
        loader = ConfigLoader(type_registry)
        definitions = loader.load_file("fields.yaml")
        fields = loader.build_field_subsystem(storage.content, definitions)
    """

    def __init__(self, type_registry: FieldTypeRegistry | None = None):
        self.type_registry = type_registry or FieldTypeRegistry()

    def load_file(self, path: Path | str) -> list[FieldDefinition]:
        """Load a YAML field config file."""
        path = Path(path)
        with open(path) as f:
            data = yaml.safe_load(f)

        logger.info(f"Loaded field config from {path}")
        return self.load_dict(data or {})

    def load_dict(self, data: dict[str, Any]) -> list[FieldDefinition]:
        """
        Register ``field_types`` and return the ``fields`` definitions.

        Raises:
            RegistryError: malformed sections
        """
        if not isinstance(data, dict):
            raise RegistryError("Field config must be a mapping")

        field_types = data.get("field_types") or []
        if not isinstance(field_types, list):
            raise RegistryError("'field_types' must be a list")
        for field_type in field_types:
            self.type_registry.register_field_type(str(field_type))

        fields = data.get("fields") or {}
        if not isinstance(fields, dict):
            raise RegistryError("'fields' must be a mapping of field name to settings")

        definitions: list[FieldDefinition] = []
        for name, spec in fields.items():
            if not isinstance(spec, dict):
                raise RegistryError(f"Field '{name}' must be a mapping")
            field_type = spec.get("type")
            taxonomy = spec.get("taxonomy")
            definitions.append(FieldDefinition(
                name=str(name),
                type=str(field_type) if field_type else None,
                preference=FieldPreference.from_value(spec.get("preference")),
                taxonomy=str(taxonomy) if taxonomy else None,
            ))

        return definitions

    def build_field_subsystem(
        self,
        repository: ContentRepository,
        definitions: list[FieldDefinition],
    ) -> InMemoryFieldSubsystem:
        return InMemoryFieldSubsystem(repository, definitions)


def load_field_config(
    repository: ContentRepository,
    type_registry: FieldTypeRegistry | None = None,
    settings: Settings | None = None,
) -> InMemoryFieldSubsystem | None:
    """
    Convenience function: build a field subsystem from ``FIELD_CONFIG_PATH``.

    Returns None when no path is configured.
    """
    settings = settings or get_settings()
    if not settings.field_config_path:
        return None

    loader = ConfigLoader(type_registry)
    definitions = loader.load_file(settings.field_config_path)
    return loader.build_field_subsystem(repository, definitions)
