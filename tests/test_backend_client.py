"""Tests for the backend client."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from ride_ledger.backend.client import (
    AuthenticationError,
    BackendError,
    LedgerBackendClient,
    RateLimitError,
)


@pytest.fixture
def client():
    """Create a LedgerBackendClient instance."""
    return LedgerBackendClient(base_url="http://localhost:54321", api_key="anon-key")


def _response(status_code=200, payload=None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload if payload is not None else []
    response.content = b"content"
    response.headers = {}
    return response


class TestLedgerBackendClientInit:
    """Tests for LedgerBackendClient initialization."""

    def test_init_with_explicit_params(self):
        client = LedgerBackendClient(base_url="http://custom:9000", api_key="custom-key")

        assert client.base_url == "http://custom:9000"
        assert client._api_key == "custom-key"
        assert not client.is_authenticated

    def test_init_strips_trailing_slash(self):
        client = LedgerBackendClient(base_url="http://localhost:54321/", api_key="k")

        assert client.base_url == "http://localhost:54321"

    def test_init_falls_back_to_settings(self):
        client = LedgerBackendClient()

        assert client._api_key == "anon-test-key"

    def test_headers_use_anon_key_until_signed_in(self, client):
        headers = client._get_headers()

        assert headers["apikey"] == "anon-key"
        assert headers["Authorization"] == "Bearer anon-key"

        client._access_token = "session-token"
        headers = client._get_headers(prefer="return=representation")
        assert headers["Authorization"] == "Bearer session-token"
        assert headers["Prefer"] == "return=representation"


class TestAuthentication:
    """Tests for authentication methods."""

    @pytest.mark.asyncio
    async def test_sign_in_success(self, client, mock_sign_in_response):
        with patch.object(client, "_get_client") as mock_get:
            mock_http = AsyncMock()
            mock_http.post = AsyncMock(return_value=_response(200, mock_sign_in_response))
            mock_get.return_value = mock_http

            result = await client.sign_in("test@example.com", "testpassword")

            assert result["user"]["email"] == "test@example.com"
            assert client._access_token == "access-token-123"
            assert client._refresh_token == "refresh-token-123"
            assert client.user["email"] == "test@example.com"
            call = mock_http.post.call_args
            assert call.args[0] == "/auth/v1/token"
            assert call.kwargs["params"] == {"grant_type": "password"}

    @pytest.mark.asyncio
    async def test_sign_in_invalid_credentials(self, client):
        payload = {"error": "invalid_grant", "error_description": "Invalid login credentials"}
        with patch.object(client, "_get_client") as mock_get:
            mock_http = AsyncMock()
            mock_http.post = AsyncMock(return_value=_response(400, payload))
            mock_get.return_value = mock_http

            with pytest.raises(AuthenticationError) as exc_info:
                await client.sign_in("test@example.com", "wrong")

            assert str(exc_info.value) == "Invalid login credentials"
            assert exc_info.value.status_code == 400
            assert not client.is_authenticated

    @pytest.mark.asyncio
    async def test_sign_up_without_session(self, client):
        payload = {"id": "new-user", "email": "new@example.com"}
        with patch.object(client, "_get_client") as mock_get:
            mock_http = AsyncMock()
            mock_http.post = AsyncMock(return_value=_response(200, payload))
            mock_get.return_value = mock_http

            await client.sign_up("new@example.com", "secret1")

            assert mock_http.post.call_args.args[0] == "/auth/v1/signup"
            assert not client.is_authenticated

    @pytest.mark.asyncio
    async def test_requests_require_session(self, client):
        with pytest.raises(AuthenticationError):
            await client.list_partners()

    @pytest.mark.asyncio
    async def test_sign_out_forgets_tokens(self, client):
        client._access_token = "token"
        client._refresh_token = "refresh"
        with patch.object(client, "_get_client") as mock_get:
            mock_http = AsyncMock()
            mock_http.post = AsyncMock(return_value=_response(204, {}))
            mock_get.return_value = mock_http

            await client.sign_out()

        assert not client.is_authenticated
        assert client._refresh_token is None

    @pytest.mark.asyncio
    async def test_context_manager_closes_client(self, client):
        mock_http = AsyncMock()
        client._client = mock_http

        async with client:
            pass

        mock_http.aclose.assert_awaited_once()
        assert client._client is None


class TestTableRequests:
    """Tests for table request methods."""

    @pytest.mark.asyncio
    async def test_list_partners(self, client, partner_record):
        client._access_token = "test-token"

        with patch.object(client, "_get_client") as mock_get:
            mock_http = AsyncMock()
            mock_http.request = AsyncMock(return_value=_response(200, [partner_record]))
            mock_get.return_value = mock_http

            result = await client.list_partners()

            assert len(result) == 1
            assert result[0]["name"] == "Sam"
            call = mock_http.request.call_args.kwargs
            assert call["method"] == "GET"
            assert call["url"] == "/rest/v1/ride_partners"
            assert ("order", "created_at.asc") in call["params"]

    @pytest.mark.asyncio
    async def test_list_rides_for_partner_set(self, client):
        client._access_token = "test-token"

        with patch.object(client, "_get_client") as mock_get:
            mock_http = AsyncMock()
            mock_http.request = AsyncMock(return_value=_response(200, []))
            mock_get.return_value = mock_http

            await client.list_rides(partner_ids=["a", "b"])

            params = mock_http.request.call_args.kwargs["params"]
            assert ("partner_id", "in.(a,b)") in params
            assert not any(key == "limit" for key, _ in params)

    @pytest.mark.asyncio
    async def test_list_recent_payments(self, client):
        client._access_token = "test-token"

        with patch.object(client, "_get_client") as mock_get:
            mock_http = AsyncMock()
            mock_http.request = AsyncMock(return_value=_response(200, []))
            mock_get.return_value = mock_http

            await client.list_payments(limit=50)

            call = mock_http.request.call_args.kwargs
            assert call["url"] == "/rest/v1/payments"
            assert ("order", "date.desc") in call["params"]
            assert ("limit", "50") in call["params"]

    @pytest.mark.asyncio
    async def test_empty_partner_set_skips_request(self, client):
        client._access_token = "test-token"

        with patch.object(client, "_get_client") as mock_get:
            assert await client.list_rides(partner_ids=[]) == []
            assert await client.list_payments(partner_ids=[]) == []
            mock_get.assert_not_called()

    @pytest.mark.asyncio
    async def test_rides_between_uses_inclusive_bounds(self, client):
        client._access_token = "test-token"

        with patch.object(client, "_get_client") as mock_get:
            mock_http = AsyncMock()
            mock_http.request = AsyncMock(return_value=_response(200, []))
            mock_get.return_value = mock_http

            await client.list_partner_rides_between("p1", "2024-02-01", "2024-02-29")

            params = mock_http.request.call_args.kwargs["params"]
            assert ("partner_id", "eq.p1") in params
            assert ("date", "gte.2024-02-01") in params
            assert ("date", "lte.2024-02-29") in params

    @pytest.mark.asyncio
    async def test_create_rides_returns_representation(self, client):
        client._access_token = "test-token"
        rows = [{"id": "r1", "amount": "15.00"}, {"id": "r2", "amount": "15.00"}]

        with patch.object(client, "_get_client") as mock_get:
            mock_http = AsyncMock()
            mock_http.request = AsyncMock(return_value=_response(201, rows))
            mock_get.return_value = mock_http

            result = await client.create_rides([{"amount": "15.00"}, {"amount": "15.00"}])

            assert [row["id"] for row in result] == ["r1", "r2"]
            call = mock_http.request.call_args.kwargs
            assert call["method"] == "POST"
            assert call["headers"]["Prefer"] == "return=representation"

    @pytest.mark.asyncio
    async def test_update_and_delete_filter_by_id(self, client):
        client._access_token = "test-token"

        with patch.object(client, "_get_client") as mock_get:
            mock_http = AsyncMock()
            mock_http.request = AsyncMock(return_value=_response(200, [{"id": "r1"}]))
            mock_get.return_value = mock_http

            updated = await client.update_ride("r1", {"amount": "27.00"})
            assert updated == {"id": "r1"}
            assert mock_http.request.call_args.kwargs["method"] == "PATCH"
            assert mock_http.request.call_args.kwargs["params"] == [("id", "eq.r1")]

            await client.delete_partner("p1")
            call = mock_http.request.call_args.kwargs
            assert call["method"] == "DELETE"
            assert call["url"] == "/rest/v1/ride_partners"
            assert call["params"] == [("id", "eq.p1")]


class TestErrorHandling:
    """Tests for backend error mapping."""

    @pytest.mark.asyncio
    async def test_api_error_uses_backend_message(self, client):
        client._access_token = "test-token"
        payload = {"code": "23514", "message": 'violates check constraint "amount_positive"'}

        with patch.object(client, "_get_client") as mock_get:
            mock_http = AsyncMock()
            mock_http.request = AsyncMock(return_value=_response(400, payload))
            mock_get.return_value = mock_http

            with pytest.raises(BackendError) as exc_info:
                await client.create_payment({"amount": "-1.00"})

            assert exc_info.value.status_code == 400
            assert "amount_positive" in str(exc_info.value)
            assert exc_info.value.details == payload

    @pytest.mark.asyncio
    async def test_rate_limit(self, client):
        client._access_token = "test-token"
        response = _response(429, {})
        response.headers = {"Retry-After": "5"}

        with patch.object(client, "_get_client") as mock_get:
            mock_http = AsyncMock()
            mock_http.request = AsyncMock(return_value=response)
            mock_get.return_value = mock_http

            with pytest.raises(RateLimitError) as exc_info:
                await client.list_partners()

            assert exc_info.value.details == {"retry_after": 5}

    @pytest.mark.asyncio
    async def test_transport_error_is_not_retried(self, client):
        client._access_token = "test-token"

        with patch.object(client, "_get_client") as mock_get:
            mock_http = AsyncMock()
            mock_http.request = AsyncMock(side_effect=httpx.ConnectError("boom"))
            mock_get.return_value = mock_http

            with pytest.raises(BackendError) as exc_info:
                await client.list_partners()

            assert "Request failed" in str(exc_info.value)
            assert mock_http.request.await_count == 1

    @pytest.mark.asyncio
    async def test_expired_token_refreshes_once(self, client):
        client._access_token = "stale-token"
        client._refresh_token = "refresh-token"
        refreshed = {"access_token": "fresh-token", "refresh_token": "refresh-2", "expires_in": 3600}

        with patch.object(client, "_get_client") as mock_get:
            mock_http = AsyncMock()
            mock_http.request = AsyncMock(
                side_effect=[_response(401, {"message": "JWT expired"}), _response(200, [])]
            )
            mock_http.post = AsyncMock(return_value=_response(200, refreshed))
            mock_get.return_value = mock_http

            assert await client.list_partners() == []

            assert client._access_token == "fresh-token"
            assert mock_http.request.await_count == 2
            assert mock_http.post.call_args.kwargs["params"] == {"grant_type": "refresh_token"}
