"""Pytest configuration and fixtures."""

import os
from unittest.mock import AsyncMock

import pytest

# Set test environment variables before importing settings
os.environ.setdefault("BACKEND_ANON_KEY", "anon-test-key")
os.environ.setdefault("LEDGER_EMAIL", "test@example.com")
os.environ.setdefault("LEDGER_PASSWORD", "testpassword")

from ride_ledger.models import Partner, Payment, Ride  # noqa: E402

PARTNER_ID = "11111111-1111-1111-1111-111111111111"
OTHER_PARTNER_ID = "22222222-2222-2222-2222-222222222222"


@pytest.fixture
def mock_httpx_client():
    """Create a mock httpx AsyncClient."""
    client = AsyncMock()
    client.request = AsyncMock()
    client.post = AsyncMock()
    client.get = AsyncMock()
    client.aclose = AsyncMock()
    return client


@pytest.fixture
def mock_sign_in_response():
    """Mock successful password sign-in response."""
    return {
        "access_token": "access-token-123",
        "refresh_token": "refresh-token-123",
        "token_type": "bearer",
        "expires_in": 3600,
        "user": {
            "id": "99999999-9999-9999-9999-999999999999",
            "email": "test@example.com",
        },
    }


@pytest.fixture
def partner_record():
    """Partner row as returned by the backend."""
    return {
        "id": PARTNER_ID,
        "user_id": "99999999-9999-9999-9999-999999999999",
        "name": "Sam",
        "price_out": "15.00",
        "price_back": "12.00",
        "notes": None,
        "created_at": "2024-01-01T08:00:00+00:00",
    }


@pytest.fixture
def partner(partner_record):
    return Partner.from_record(partner_record)


@pytest.fixture
def other_partner():
    return Partner(id=OTHER_PARTNER_ID, name="Alex", price_out="10.00", price_back="10.00")


def make_ride(
    date: str,
    amount: str = "15.00",
    partner_id: str = PARTNER_ID,
    outbound: bool = True,
    return_ride: bool = False,
) -> Ride:
    return Ride(
        id=f"ride-{partner_id[:4]}-{date}-{amount}",
        partner_id=partner_id,
        date=date,
        outbound=outbound,
        return_ride=return_ride,
        amount=amount,
    )


def make_payment(date: str, amount: str, partner_id: str = PARTNER_ID) -> Payment:
    return Payment(
        id=f"payment-{partner_id[:4]}-{date}-{amount}",
        partner_id=partner_id,
        amount=amount,
        date=date,
    )
