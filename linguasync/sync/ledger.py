"""
Pending sync ledger.

Per source item, which fields changed since each target language was last
synced. Stored in the source item's field store as a nested map:

    {"languages": {"de": {"title": true, "content": true, "excerpt": true,
                          "meta": {"subtitle": true}}}}

Content fields are stored under their legacy names (``body`` as
``content``, ``summary`` as ``excerpt``) so existing ledgers keep loading.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from linguasync.core.models import CONTENT_FIELDS
from linguasync.i18n.languages import match_language_code

# Content field -> key in the stored ledger
_STORED_CONTENT_KEYS: dict[str, str] = {
    "title": "title",
    "body": "content",
    "summary": "excerpt",
}

_CONTENT_FIELD_ALIASES: dict[str, str] = {
    **{name: name for name in CONTENT_FIELDS},
    **{stored: name for name, stored in _STORED_CONTENT_KEYS.items()},
}

CONTENT = "content"
META = "meta"


def content_field_name(name: str) -> str | None:
    """Canonical content field for ``name`` (legacy names accepted), else None."""
    return _CONTENT_FIELD_ALIASES.get(name)


class PendingEntry(BaseModel):
    """Fields pending for one target language."""

    content_fields: set[str] = Field(default_factory=set)
    meta_fields: set[str] = Field(default_factory=set)

    @property
    def is_empty(self) -> bool:
        return not self.content_fields and not self.meta_fields

    def has_field(self, name: str, kind: str | None = None) -> bool:
        """
        Whether ``name`` is flagged. Without ``kind`` both the content field
        of that name and a field-store key of that name count.
        """
        content = content_field_name(name)
        if kind != META and content is not None and content in self.content_fields:
            return True
        return kind != CONTENT and name in self.meta_fields

    def flag(self, name: str, kind: str) -> None:
        if kind == CONTENT:
            self.content_fields.add(content_field_name(name) or name)
        else:
            self.meta_fields.add(name)

    def remove_field(self, name: str, kind: str | None = None) -> bool:
        """Remove a flag (of either kind unless ``kind`` is given). False if none was set."""
        removed = False
        content = content_field_name(name)
        if kind != META and content in self.content_fields:
            self.content_fields.discard(content)
            removed = True
        if kind != CONTENT and name in self.meta_fields:
            self.meta_fields.discard(name)
            removed = True
        return removed

    def to_storage(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            _STORED_CONTENT_KEYS[name]: True
            for name in CONTENT_FIELDS
            if name in self.content_fields
        }
        if self.meta_fields:
            data["meta"] = {key: True for key in sorted(self.meta_fields)}
        return data

    @classmethod
    def from_storage(cls, data: Any) -> PendingEntry:
        entry = cls()
        if not isinstance(data, dict):
            return entry

        for key, value in data.items():
            if key == "meta":
                if isinstance(value, dict):
                    entry.meta_fields.update(k for k, flagged in value.items() if flagged)
                continue
            content = content_field_name(key)
            if content is not None and value:
                entry.content_fields.add(content)

        return entry


class PendingLedger(BaseModel):
    """Pending entries keyed by target language code."""

    languages: dict[str, PendingEntry] = Field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return all(entry.is_empty for entry in self.languages.values())

    def key_for(self, language: str) -> str | None:
        """The stored key for ``language``, matched case-insensitively."""
        if language in self.languages:
            return language
        return match_language_code(language, self.languages)

    def entry(self, language: str) -> PendingEntry:
        """Entry for ``language`` (an empty one if nothing is pending)."""
        key = self.key_for(language)
        return self.languages[key] if key is not None else PendingEntry()

    def flag(self, language: str, name: str, kind: str) -> None:
        key = self.key_for(language) or language
        self.languages.setdefault(key, PendingEntry()).flag(name, kind)

    def prune(self) -> None:
        """Drop languages with nothing pending."""
        self.languages = {
            code: entry for code, entry in self.languages.items() if not entry.is_empty
        }

    def to_storage(self) -> dict[str, Any]:
        return {
            "languages": {
                code: entry.to_storage()
                for code, entry in self.languages.items()
                if not entry.is_empty
            }
        }

    @classmethod
    def from_storage(cls, data: Any) -> PendingLedger:
        """Load a stored ledger. Malformed data loads as an empty ledger."""
        ledger = cls()
        if not isinstance(data, dict) or not isinstance(data.get("languages"), dict):
            return ledger

        for code, entry_data in data["languages"].items():
            entry = PendingEntry.from_storage(entry_data)
            if not entry.is_empty:
                ledger.languages[str(code)] = entry

        return ledger
