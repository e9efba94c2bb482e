"""
Language tags and utilities.

``LanguageTag`` parses and canonicalises BCP-47 style identifiers
("en", "zh-Hans", "pt-BR", "es-419", "sr-Latn-RS"). Providers advertise
their supported languages as tags; the registry checks membership before
calling them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from linguasync.core.errors import InvalidLanguageCode


# Human-readable names
LANGUAGE_NAMES: dict[str, str] = {
    "en": "English",
    "es": "Spanish",
    "zh": "Chinese",
    "zh-hans": "Chinese (Simplified)",
    "zh-hant": "Chinese (Traditional)",
    "pt": "Portuguese",
    "pt-br": "Portuguese (Brazil)",
    "fr": "French",
    "de": "German",
    "ja": "Japanese",
    "ko": "Korean",
    "it": "Italian",
    "ru": "Russian",
    "nl": "Dutch",
    "pl": "Polish",
    "vi": "Vietnamese",
    "th": "Thai",
    "tr": "Turkish",
    "id": "Indonesian",
    "ms": "Malay",
    "tl": "Tagalog",
    "sv": "Swedish",
    "no": "Norwegian",
    "nb": "Norwegian (Bokmål)",
    "da": "Danish",
    "fi": "Finnish",
    "el": "Greek",
    "cs": "Czech",
    "sk": "Slovak",
    "hu": "Hungarian",
    "ro": "Romanian",
    "bg": "Bulgarian",
    "hr": "Croatian",
    "sr": "Serbian",
    "sl": "Slovenian",
    "uk": "Ukrainian",
    "lt": "Lithuanian",
    "lv": "Latvian",
    "et": "Estonian",
    "hi": "Hindi",
    "bn": "Bengali",
    "ta": "Tamil",
    "te": "Telugu",
    "ar": "Arabic",
    "he": "Hebrew",
    "fa": "Persian",
    "ur": "Urdu",
    "sw": "Swahili",
}


# =============================================================================
# Language Tag
# =============================================================================


@dataclass(frozen=True)
class LanguageTag:
    """
    A canonical language tag.

    Casing is canonical regardless of input: primary language lower-case,
    script Title-case, region upper-case, variants lower-case.
    """

    language: str
    script: str | None = None
    region: str | None = None
    variants: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def parse(cls, code: str) -> LanguageTag:
        """
        Parse a language identifier.

        Raises:
            InvalidLanguageCode: empty input, bad subtag lengths or
                characters, or subtags out of order
        """
        if not isinstance(code, str) or not code.strip():
            raise InvalidLanguageCode("Language code cannot be empty")

        raw = code.strip()
        subtags = raw.replace("_", "-").split("-")

        primary = subtags[0]
        if not (2 <= len(primary) <= 3 and primary.isascii() and primary.isalpha()):
            raise InvalidLanguageCode(
                f"Invalid language code: {raw}",
                context={"code": raw, "subtag": primary},
            )

        script: str | None = None
        region: str | None = None
        variants: list[str] = []

        for subtag in subtags[1:]:
            if not subtag or not subtag.isascii() or not subtag.isalnum():
                raise InvalidLanguageCode(
                    f"Invalid language code: {raw}",
                    context={"code": raw, "subtag": subtag},
                )

            if len(subtag) == 4 and subtag.isalpha() and script is None and region is None and not variants:
                script = subtag.title()
            elif (
                ((len(subtag) == 2 and subtag.isalpha()) or (len(subtag) == 3 and subtag.isdigit()))
                and region is None
                and not variants
            ):
                region = subtag.upper()
            elif 5 <= len(subtag) <= 8 or (len(subtag) == 4 and subtag[0].isdigit()):
                variants.append(subtag.lower())
            else:
                raise InvalidLanguageCode(
                    f"Invalid language code: {raw}",
                    context={"code": raw, "subtag": subtag},
                )

        return cls(
            language=primary.lower(),
            script=script,
            region=region,
            variants=tuple(variants),
        )

    @classmethod
    def coerce(cls, value: LanguageTag | str) -> LanguageTag:
        """Return ``value`` as a tag, parsing strings."""
        if isinstance(value, LanguageTag):
            return value
        return cls.parse(value)

    def to_string(self) -> str:
        """Canonical serialization, e.g. ``zh-Hans-CN``."""
        parts = [self.language]
        if self.script:
            parts.append(self.script)
        if self.region:
            parts.append(self.region)
        parts.extend(self.variants)
        return "-".join(parts)

    def __str__(self) -> str:
        return self.to_string()

    @property
    def primary(self) -> LanguageTag:
        """The tag reduced to its primary language subtag."""
        return LanguageTag(language=self.language)

    def is_supported_by(
        self,
        supported: Iterable[LanguageTag | str],
        fallback_to_primary: bool = False,
    ) -> bool:
        """
        Case-insensitive membership test against a supported set.

        With ``fallback_to_primary`` a regional tag (``pt-BR``) also matches
        when the bare primary language (``pt``) is supported.
        """
        normalized = {str(s).lower() for s in supported}
        if self.to_string().lower() in normalized:
            return True
        return fallback_to_primary and self.language in normalized


def parse_language_tag(code: str) -> LanguageTag:
    """Parse a language identifier (convenience function)."""
    return LanguageTag.parse(code)


def is_valid_language_code(code: str) -> bool:
    """Check whether ``code`` parses as a language tag."""
    try:
        LanguageTag.parse(code)
    except InvalidLanguageCode:
        return False
    return True


def tags_from_codes(codes: Iterable[str]) -> list[LanguageTag]:
    """Parse a list of codes (providers declare support this way)."""
    return [LanguageTag.parse(code) for code in codes]


# =============================================================================
# Utilities
# =============================================================================


def get_language_name(code: str) -> str:
    """Get human-readable language name."""
    code = code.lower().strip().replace("_", "-")
    if code in LANGUAGE_NAMES:
        return LANGUAGE_NAMES[code]
    return LANGUAGE_NAMES.get(code.split("-")[0], code)


def match_language_code(code: LanguageTag | str, candidates: Iterable[str]) -> str | None:
    """
    The candidate spelling of ``code``, compared case-insensitively with
    ``_`` and ``-`` treated alike. None if no candidate matches.

        match_language_code(LanguageTag.parse("pt-BR"), ["en", "pt-br"])  # "pt-br"
    """
    wanted = str(code).lower().replace("_", "-")
    for candidate in candidates:
        if candidate.lower().replace("_", "-") == wanted:
            return candidate
    return None
