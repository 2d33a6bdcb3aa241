"""
Unit tests for the backend API client.

Tests focus on:
- Credential headers and JSON encoding
- Retry bound (3 attempts) for transport and HTTP failures
- Parse failures are distinct and not retried
"""
import pytest

import httpx

from apposaur.core.exceptions import RequestError, ResponseParseError


class TestRequestEncoding:
    """Tests for request construction"""

    @pytest.mark.asyncio
    async def test_headers_and_json_body(self, backend, make_api_client):
        """Every request carries API key, platform tag and JSON content type"""
        backend.on("POST", "/referral/validate", {"referred_app_user_id": "au_9"})
        client = make_api_client()

        data = await client.request("/referral/validate", "POST", {"code": "FRIEND"})

        assert data == {"referred_app_user_id": "au_9"}
        call = backend.calls[0]
        assert call.body == {"code": "FRIEND"}
        assert call.headers["x-api-key"] == "test-api-key"
        assert call.headers["x-sdk-platform"] == "ios"
        assert call.headers["content-type"] == "application/json"

    @pytest.mark.asyncio
    async def test_no_body_when_none(self, backend, make_api_client):
        backend.on("POST", "/referral/key", {"valid": True})
        client = make_api_client()
        await client.request("/referral/key", "POST")
        assert backend.calls[0].body is None

    @pytest.mark.asyncio
    async def test_query_params(self, backend, make_api_client):
        backend.on("GET", "/referral/rewards", {"rewards": []})
        client = make_api_client()
        await client.request("/referral/rewards", "GET", params={"app_user_id": "au 1", "product_id": "p&x"})
        assert backend.calls[0].params == {"app_user_id": "au 1", "product_id": "p&x"}

    @pytest.mark.asyncio
    async def test_empty_body_decodes_to_none(self, backend, make_api_client):
        """Ack endpoints may answer with no body"""
        backend.on("POST", "/referral/purchase", None)
        client = make_api_client()
        assert await client.request("/referral/purchase", "POST", {"x": 1}) is None


class TestRetryBound:
    """Tests for the fixed retry policy"""

    @pytest.mark.asyncio
    async def test_transport_failure_three_attempts(self, backend, make_api_client):
        """A transport failing every attempt is called exactly 3 times"""
        def fail(request):
            raise httpx.ConnectError("unreachable", request=request)

        backend.on("POST", "/referral/key", handler=fail)
        client = make_api_client()

        with pytest.raises(RequestError) as exc_info:
            await client.request("/referral/key", "POST")

        assert len(backend.calls) == 3
        assert exc_info.value.attempts == 3
        assert exc_info.value.is_transport_error
        assert exc_info.value.status is None

    @pytest.mark.asyncio
    async def test_http_error_three_attempts_with_status(self, backend, make_api_client):
        backend.on("POST", "/referral/key", {"error": "boom"}, status=503)
        client = make_api_client()

        with pytest.raises(RequestError) as exc_info:
            await client.request("/referral/key", "POST")

        assert len(backend.calls) == 3
        assert exc_info.value.status == 503
        assert exc_info.value.endpoint == "/referral/key"

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failure(self, backend, make_api_client):
        responses = [httpx.Response(500), httpx.Response(200, json={"valid": True})]
        backend.on("POST", "/referral/key", handler=lambda request: responses.pop(0))
        client = make_api_client()

        assert await client.request("/referral/key", "POST") == {"valid": True}
        assert len(backend.calls) == 2

    @pytest.mark.asyncio
    async def test_custom_retry_count(self, backend, make_api_client):
        backend.on("POST", "/referral/key", status=500)
        client = make_api_client(retries=0)
        with pytest.raises(RequestError):
            await client.request("/referral/key", "POST")
        assert len(backend.calls) == 1

    @pytest.mark.asyncio
    async def test_each_failed_attempt_logged(self, backend, make_api_client, caplog):
        backend.on("POST", "/referral/key", status=500)
        client = make_api_client()
        with caplog.at_level("WARNING", logger="apposaur.services.api_client"):
            with pytest.raises(RequestError):
                await client.request("/referral/key", "POST")
        retries = [r for r in caplog.records if "API_REQUEST_RETRY" in r.getMessage()]
        failures = [r for r in caplog.records if "API_REQUEST_FAILED" in r.getMessage()]
        assert len(retries) == 2
        assert len(failures) == 1


class TestResponseParsing:
    """Tests for non-JSON success bodies"""

    @pytest.mark.asyncio
    async def test_invalid_json_not_retried(self, backend, make_api_client):
        backend.on(
            "POST",
            "/referral/key",
            handler=lambda request: httpx.Response(200, text="<html>maintenance</html>"),
        )
        client = make_api_client()

        with pytest.raises(ResponseParseError):
            await client.request("/referral/key", "POST")
        assert len(backend.calls) == 1

    @pytest.mark.asyncio
    async def test_closed_client(self, make_api_client):
        client = make_api_client()
        await client.aclose()
        assert client.is_closed
