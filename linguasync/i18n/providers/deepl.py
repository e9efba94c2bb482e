"""
DeepL translation provider.

Talks to the DeepL v2 REST API. The free and premium plans use different
hosts; pick one with ``DEEPL_API_TYPE``.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)

from linguasync.config import Settings, get_settings
from linguasync.core.errors import ProviderError
from linguasync.i18n.languages import LanguageTag, tags_from_codes
from linguasync.i18n.providers.base import TranslationProvider

logger = logging.getLogger(__name__)


FREE_API_BASE_URL = "https://api-free.deepl.com/v2"
PREMIUM_API_BASE_URL = "https://api.deepl.com/v2"


# https://developers.deepl.com/docs/resources/supported-languages
DEEPL_TARGET_LANGUAGES: tuple[str, ...] = (
    "bg", "cs", "da", "de", "el", "en", "es", "et", "fi", "fr", "hu", "id",
    "it", "ja", "ko", "lt", "lv", "nb", "nl", "pl", "pt", "ro", "ru", "sk",
    "sl", "sv", "tr", "uk", "zh",
)

DEEPL_SOURCE_LANGUAGES: tuple[str, ...] = ("ar",) + DEEPL_TARGET_LANGUAGES


def _is_transient(response: httpx.Response) -> bool:
    """429 and 5xx responses are retried."""
    return response.status_code == 429 or response.status_code >= 500


class DeepLProvider(TranslationProvider):
    """
    DeepL translation service.

    Usage:
        provider = DeepLProvider()              # key from settings
        provider = DeepLProvider(api_key="...")  # explicit key

        text = await provider.translate(LanguageTag.parse("de"), "Hello")
    """

    def __init__(
        self,
        api_key: str | None = None,
        api_type: str | None = None,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings or get_settings()
        self._api_key = api_key if api_key is not None else self.settings.deepl_api_key
        self._api_type = (api_type or self.settings.deepl_api_type).lower()
        self._transport = transport

    @property
    def provider_id(self) -> str:
        return "deepl"

    @property
    def name(self) -> str:
        return "DeepL"

    @property
    def api_url(self) -> str:
        if self._api_type == "premium":
            return PREMIUM_API_BASE_URL
        return FREE_API_BASE_URL

    def is_available(self) -> bool:
        return bool(self._api_key)

    def supported_languages(self) -> list[LanguageTag]:
        return tags_from_codes(DEEPL_TARGET_LANGUAGES)

    def supported_source_languages(self) -> list[LanguageTag]:
        return tags_from_codes(DEEPL_SOURCE_LANGUAGES)

    def build_request(
        self,
        target: LanguageTag,
        text: str,
        source: LanguageTag | None = None,
    ) -> dict[str, Any]:
        """Request body for ``/translate``. DeepL wants upper-case primaries."""
        data: dict[str, Any] = {
            "text": [text],
            "target_lang": target.language.upper(),
        }
        if source is not None:
            data["source_lang"] = source.language.upper()
        return data

    async def _post(self, payload: dict[str, Any]) -> httpx.Response:
        """
        POST to ``/translate`` with retries.

        The last response is returned once attempts run out; a transport
        error on the last attempt is raised.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(max(1, self.settings.deepl_max_attempts)),
            wait=wait_exponential(multiplier=self.settings.deepl_retry_wait, max=10),
            retry=retry_if_exception_type(httpx.TransportError) | retry_if_result(_is_transient),
            retry_error_callback=lambda state: state.outcome.result(),
            before_sleep=before_sleep_log(logger, logging.WARNING),
        )

        async with httpx.AsyncClient(
            transport=self._transport,
            timeout=self.settings.deepl_timeout,
        ) as client:
            return await retrying(
                client.post,
                f"{self.api_url}/translate",
                headers={"Authorization": f"DeepL-Auth-Key {self._api_key}"},
                json=payload,
            )

    async def translate(
        self,
        target: LanguageTag,
        text: str,
        source: LanguageTag | None = None,
    ) -> str:
        if not self._api_key:
            raise ProviderError(
                "DeepL API key is not configured. Set DEEPL_API_KEY.",
                code="deepl_api_key_missing",
                provider_id=self.provider_id,
            )

        if not text:
            return ""

        try:
            response = await self._post(self.build_request(target, text, source))
        except httpx.HTTPError as e:
            logger.error(f"DeepL request failed: {e}")
            raise ProviderError(
                f"DeepL request failed: {e}",
                code="deepl_transport_error",
                provider_id=self.provider_id,
            ) from e

        try:
            decoded = response.json()
        except ValueError as e:
            raise ProviderError(
                "Invalid JSON response from DeepL API",
                code="deepl_json_error",
                status_code=response.status_code,
                provider_id=self.provider_id,
            ) from e

        if response.status_code != 200:
            message = "Unknown API error"
            if isinstance(decoded, dict):
                message = decoded.get("message") or message
            logger.error(f"DeepL API error {response.status_code}: {message}")
            raise ProviderError(
                message,
                code="deepl_api_error",
                status_code=response.status_code,
                provider_id=self.provider_id,
            )

        try:
            return decoded["translations"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError(
                "Invalid response structure from DeepL API",
                code="deepl_response_error",
                status_code=response.status_code,
                provider_id=self.provider_id,
            ) from e
