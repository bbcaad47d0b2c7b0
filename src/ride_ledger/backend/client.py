"""Async client for the hosted data backend (REST tables plus token auth)."""

import asyncio
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime, timedelta
from typing import Any, cast

import httpx
import structlog

from ride_ledger.config import get_settings

logger = structlog.get_logger(__name__)

PARTNERS_TABLE = "ride_partners"
RIDES_TABLE = "rides"
PAYMENTS_TABLE = "payments"

QueryParams = list[tuple[str, str]]


class BackendError(Exception):
    """Base exception for backend errors."""

    def __init__(self, message: str, status_code: int | None = None, details: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class AuthenticationError(BackendError):
    """Authentication failed or no session is available."""

    pass


class RateLimitError(BackendError):
    """Rate limit exceeded."""

    pass


def _error_message(payload: Any, fallback: str) -> str:
    """Pick the human-readable description out of a backend error body."""
    if isinstance(payload, dict):
        for key in ("message", "msg", "error_description", "error"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value
    return fallback


def _in_filter(values: Iterable[str]) -> str:
    return f"in.({','.join(values)})"


class LedgerBackendClient:
    """Async client for the ledger tables with bearer-token authentication.

    Failed operations are not retried; a 401 on a data request refreshes the
    session once and replays that request.
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        access_token: str | None = None,
        refresh_token: str | None = None,
        timeout: float | None = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.backend_url).rstrip("/")
        self._api_key = api_key or settings.backend_anon_key.get_secret_value()
        self._timeout = timeout or settings.backend_timeout

        self._access_token: str | None = access_token
        self._refresh_token: str | None = refresh_token
        self._token_expires_at: datetime | None = None
        self._user: dict[str, Any] = {}

        self._client: httpx.AsyncClient | None = None
        self._lock = asyncio.Lock()

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self._timeout),
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "LedgerBackendClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    # === Authentication ===

    @property
    def is_authenticated(self) -> bool:
        return self._access_token is not None

    @property
    def user(self) -> dict[str, Any]:
        """User record returned by the last sign-in."""
        return self._user

    def _get_headers(self, prefer: str | None = None) -> dict[str, str]:
        """Get request headers with API key and session token."""
        headers = {
            "Content-Type": "application/json",
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._access_token or self._api_key}",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    async def _auth_post(
        self, path: str, payload: dict[str, Any], params: dict[str, str] | None = None
    ) -> dict[str, Any]:
        client = await self._get_client()
        try:
            response = await client.post(
                path, params=params, json=payload, headers=self._get_headers()
            )
        except httpx.RequestError as e:
            raise BackendError(f"Request failed: {e}") from e

        try:
            body: Any = response.json() if response.content else {}
        except ValueError:
            body = {"raw": response.text[:500] if response.text else "empty response"}
        if response.status_code in (400, 401, 403, 422):
            raise AuthenticationError(
                _error_message(body, "Authentication failed"),
                status_code=response.status_code,
                details=body,
            )
        if response.status_code >= 400:
            raise BackendError(
                _error_message(body, f"Auth error: {response.status_code}"),
                status_code=response.status_code,
                details=body,
            )
        if not isinstance(body, dict):
            raise BackendError("Invalid auth response format")
        return cast(dict[str, Any], body)

    def _store_session(self, data: dict[str, Any]) -> None:
        self._access_token = data["access_token"]
        self._refresh_token = data.get("refresh_token", self._refresh_token)
        expires_in = int(data.get("expires_in") or 3600)
        # Refresh a minute before the backend expires the token
        self._token_expires_at = datetime.now(UTC) + timedelta(seconds=max(expires_in - 60, 0))
        user = data.get("user")
        if isinstance(user, dict):
            self._user = user

    async def sign_in(self, email: str, password: str) -> dict[str, Any]:
        """Authenticate with email and password and keep the session."""
        data = await self._auth_post(
            "/auth/v1/token",
            {"email": email.strip(), "password": password},
            params={"grant_type": "password"},
        )
        if "access_token" not in data:
            raise AuthenticationError("Invalid sign-in response format")
        self._store_session(data)
        logger.info("signed_in", user=self._user.get("email"))
        return data

    async def sign_up(self, email: str, password: str) -> dict[str, Any]:
        """Create an account. The session is kept when the backend returns one."""
        data = await self._auth_post(
            "/auth/v1/signup", {"email": email.strip(), "password": password}
        )
        if "access_token" in data:
            self._store_session(data)
        logger.info("signed_up", email=email.strip())
        return data

    async def refresh_session(self) -> None:
        """Exchange the refresh token for a new access token."""
        if not self._refresh_token:
            raise AuthenticationError("No refresh token available")
        data = await self._auth_post(
            "/auth/v1/token",
            {"refresh_token": self._refresh_token},
            params={"grant_type": "refresh_token"},
        )
        self._store_session(data)
        logger.debug("session_refreshed")

    async def sign_out(self) -> None:
        """End the session on the backend and forget the tokens."""
        if self._access_token:
            client = await self._get_client()
            try:
                await client.post("/auth/v1/logout", headers=self._get_headers())
            except httpx.RequestError as e:
                logger.warning("sign_out_failed", error=str(e))
        self._access_token = None
        self._refresh_token = None
        self._token_expires_at = None
        self._user = {}

    async def _ensure_authenticated(self) -> None:
        """Ensure we have a valid access token."""
        async with self._lock:
            if not self._access_token:
                raise AuthenticationError("Not signed in")
            if self._token_expires_at and datetime.now(UTC) >= self._token_expires_at:
                await self.refresh_session()

    # === Generic Request Methods ===

    async def _request(
        self,
        method: str,
        table: str,
        params: QueryParams | None = None,
        json: dict[str, Any] | list[dict[str, Any]] | None = None,
        prefer: str | None = None,
        retry_count: int = 0,
    ) -> list[dict[str, Any]]:
        """Make an authenticated table request and return the rows it yields."""
        await self._ensure_authenticated()
        client = await self._get_client()

        try:
            response = await client.request(
                method=method,
                url=f"/rest/v1/{table}",
                params=params,
                json=json,
                headers=self._get_headers(prefer),
            )
        except httpx.RequestError as e:
            logger.warning("backend_request_failed", table=table, method=method, error=str(e))
            raise BackendError(f"Request failed: {e}") from e

        if response.status_code == 401 and retry_count < 1 and self._refresh_token:
            # Token expired during request, refresh and replay once
            await self.refresh_session()
            return await self._request(method, table, params, json, prefer, retry_count + 1)

        if response.status_code == 429:
            retry_after = int(response.headers.get("Retry-After", "60"))
            raise RateLimitError(
                f"Rate limited, retry after {retry_after}s",
                status_code=429,
                details={"retry_after": retry_after},
            )

        if response.status_code >= 400:
            try:
                error_detail = response.json() if response.content else {}
            except ValueError:
                error_detail = {
                    "raw": response.text[:500] if response.text else "empty response"
                }
            error_cls = AuthenticationError if response.status_code == 401 else BackendError
            logger.warning(
                "backend_request_rejected",
                table=table,
                method=method,
                status_code=response.status_code,
            )
            raise error_cls(
                _error_message(error_detail, f"API error: {response.status_code}"),
                status_code=response.status_code,
                details=error_detail,
            )

        return self._extract_rows(response.json() if response.content else [])

    @staticmethod
    def _extract_rows(result: Any) -> list[dict[str, Any]]:
        """Return rows from a list or single-object response."""
        if isinstance(result, list):
            return [row for row in result if isinstance(row, dict)]
        if isinstance(result, dict):
            return [result] if result else []
        return []

    async def select(self, table: str, params: QueryParams | None = None) -> list[dict[str, Any]]:
        """Select rows from a table."""
        return await self._request("GET", table, params=[("select", "*"), *(params or [])])

    async def insert(
        self, table: str, rows: dict[str, Any] | list[dict[str, Any]]
    ) -> list[dict[str, Any]]:
        """Insert one or many rows and return them as stored."""
        return await self._request("POST", table, json=rows, prefer="return=representation")

    async def update(
        self, table: str, record_id: str, data: dict[str, Any]
    ) -> list[dict[str, Any]]:
        """Update one row by identifier."""
        return await self._request(
            "PATCH",
            table,
            params=[("id", f"eq.{record_id}")],
            json=data,
            prefer="return=representation",
        )

    async def delete(self, table: str, record_id: str) -> None:
        """Delete one row by identifier."""
        await self._request("DELETE", table, params=[("id", f"eq.{record_id}")])

    # === Partner Endpoints ===

    async def list_partners(self) -> list[dict[str, Any]]:
        """List partners, oldest first."""
        return await self.select(PARTNERS_TABLE, [("order", "created_at.asc")])

    async def create_partner(self, data: dict[str, Any]) -> dict[str, Any]:
        """Create a partner."""
        rows = await self.insert(PARTNERS_TABLE, data)
        return rows[0] if rows else {}

    async def delete_partner(self, partner_id: str) -> None:
        """Delete a partner; the backend cascades to its rides and payments."""
        await self.delete(PARTNERS_TABLE, partner_id)

    # === Ride Endpoints ===

    @staticmethod
    def _scoped_params(
        partner_ids: Sequence[str] | None, limit: int | None
    ) -> QueryParams:
        params: QueryParams = []
        if partner_ids is not None:
            params.append(("partner_id", _in_filter(partner_ids)))
        if limit is not None:
            params.append(("order", "date.desc"))
            params.append(("limit", str(max(limit, 1))))
        return params

    async def list_rides(
        self, partner_ids: Sequence[str] | None = None, limit: int | None = None
    ) -> list[dict[str, Any]]:
        """List rides, optionally for a set of partners; with a limit, newest first."""
        if partner_ids is not None and not partner_ids:
            return []
        return await self.select(RIDES_TABLE, self._scoped_params(partner_ids, limit))

    async def get_ride(self, ride_id: str) -> dict[str, Any]:
        """Get ride by ID, or an empty dict if it does not exist."""
        rows = await self.select(RIDES_TABLE, [("id", f"eq.{ride_id}")])
        return rows[0] if rows else {}

    async def list_partner_rides_between(
        self, partner_id: str, first: str, last: str
    ) -> list[dict[str, Any]]:
        """List a partner's rides dated within ``[first, last]``."""
        return await self.select(
            RIDES_TABLE,
            [
                ("partner_id", f"eq.{partner_id}"),
                ("date", f"gte.{first}"),
                ("date", f"lte.{last}"),
            ],
        )

    async def create_rides(
        self, rides: dict[str, Any] | list[dict[str, Any]]
    ) -> list[dict[str, Any]]:
        """Create one or many rides."""
        return await self.insert(RIDES_TABLE, rides)

    async def update_ride(self, ride_id: str, data: dict[str, Any]) -> dict[str, Any]:
        """Update a ride."""
        rows = await self.update(RIDES_TABLE, ride_id, data)
        return rows[0] if rows else {}

    async def delete_ride(self, ride_id: str) -> None:
        """Delete a ride."""
        await self.delete(RIDES_TABLE, ride_id)

    # === Payment Endpoints ===

    async def list_payments(
        self, partner_ids: Sequence[str] | None = None, limit: int | None = None
    ) -> list[dict[str, Any]]:
        """List payments, optionally for a set of partners; with a limit, newest first."""
        if partner_ids is not None and not partner_ids:
            return []
        return await self.select(PAYMENTS_TABLE, self._scoped_params(partner_ids, limit))

    async def create_payment(self, data: dict[str, Any]) -> dict[str, Any]:
        """Record a payment."""
        rows = await self.insert(PAYMENTS_TABLE, data)
        return rows[0] if rows else {}

    async def delete_payment(self, payment_id: str) -> None:
        """Delete a payment."""
        await self.delete(PAYMENTS_TABLE, payment_id)
