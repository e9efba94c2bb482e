"""
Tests for the DeepL provider against a mocked transport.
"""

import json

import httpx
import pytest

from linguasync.core.errors import ProviderError
from linguasync.i18n.languages import LanguageTag
from linguasync.i18n.providers.deepl import FREE_API_BASE_URL, PREMIUM_API_BASE_URL, DeepLProvider


DE = LanguageTag.parse("de")
EN = LanguageTag.parse("en")


def make_provider(settings, handler, **kwargs):
    kwargs.setdefault("api_key", "secret:fx")
    return DeepLProvider(settings=settings, transport=httpx.MockTransport(handler), **kwargs)


class TestRequest:
    @pytest.mark.asyncio
    async def test_request_mapping(self, settings):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["auth"] = request.headers["Authorization"]
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"translations": [{"text": "Hallo Welt"}]})

        provider = make_provider(settings, handler)
        result = await provider.translate(DE, "Hello world", EN)

        assert result == "Hallo Welt"
        assert captured["url"] == f"{FREE_API_BASE_URL}/translate"
        assert captured["auth"] == "DeepL-Auth-Key secret:fx"
        assert captured["body"] == {"text": ["Hello world"], "target_lang": "DE", "source_lang": "EN"}

    @pytest.mark.asyncio
    async def test_source_optional(self, settings):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"translations": [{"text": "x"}]})

        await make_provider(settings, handler).translate(LanguageTag.parse("pt-BR"), "Hi")

        assert bodies == [{"text": ["Hi"], "target_lang": "PT"}]

    def test_premium_endpoint(self, settings):
        provider = DeepLProvider(api_key="k", api_type="premium", settings=settings)
        assert provider.api_url == PREMIUM_API_BASE_URL

    def test_availability(self, settings):
        assert DeepLProvider(api_key="k", settings=settings).is_available()
        assert not DeepLProvider(settings=settings).is_available()

    def test_source_languages_include_arabic(self, settings):
        provider = DeepLProvider(api_key="k", settings=settings)

        assert LanguageTag.parse("ar").is_supported_by(provider.supported_source_languages())
        assert not LanguageTag.parse("ar").is_supported_by(provider.supported_languages())


class TestErrors:
    @pytest.mark.asyncio
    async def test_missing_key(self, settings):
        provider = DeepLProvider(settings=settings)

        with pytest.raises(ProviderError) as exc_info:
            await provider.translate(DE, "Hello")
        assert exc_info.value.code == "deepl_api_key_missing"

    @pytest.mark.asyncio
    async def test_http_error_status(self, settings):
        def handler(request):
            return httpx.Response(403, json={"message": "Wrong endpoint"})

        with pytest.raises(ProviderError) as exc_info:
            await make_provider(settings, handler).translate(DE, "Hello")

        assert exc_info.value.status_code == 403
        assert exc_info.value.message == "Wrong endpoint"
        assert exc_info.value.code == "deepl_api_error"

    @pytest.mark.asyncio
    async def test_invalid_json(self, settings):
        def handler(request):
            return httpx.Response(200, content=b"<html>oops</html>")

        with pytest.raises(ProviderError) as exc_info:
            await make_provider(settings, handler).translate(DE, "Hello")
        assert exc_info.value.code == "deepl_json_error"

    @pytest.mark.asyncio
    async def test_missing_translation(self, settings):
        def handler(request):
            return httpx.Response(200, json={"translations": []})

        with pytest.raises(ProviderError) as exc_info:
            await make_provider(settings, handler).translate(DE, "Hello")
        assert exc_info.value.code == "deepl_response_error"

    @pytest.mark.asyncio
    async def test_transport_error(self, settings):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ProviderError) as exc_info:
            await make_provider(settings, handler).translate(DE, "Hello")
        assert exc_info.value.code == "deepl_transport_error"


class TestRetries:
    @pytest.mark.asyncio
    async def test_transient_status_retried(self, settings):
        statuses = iter([503, 429, 200])
        calls = []

        def handler(request):
            calls.append(request)
            status = next(statuses)
            if status != 200:
                return httpx.Response(status, json={"message": "try again"})
            return httpx.Response(200, json={"translations": [{"text": "Hallo"}]})

        assert await make_provider(settings, handler).translate(DE, "Hello") == "Hallo"
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_gives_up_with_last_response(self, settings):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(429, json={"message": "Too many requests"})

        with pytest.raises(ProviderError) as exc_info:
            await make_provider(settings, handler).translate(DE, "Hello")

        assert exc_info.value.status_code == 429
        assert len(calls) == settings.deepl_max_attempts

    @pytest.mark.asyncio
    async def test_client_errors_not_retried(self, settings):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(456, json={"message": "Quota exceeded"})

        with pytest.raises(ProviderError):
            await make_provider(settings, handler).translate(DE, "Hello")

        assert len(calls) == 1
