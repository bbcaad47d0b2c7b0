"""Backend module for the ride ledger."""

from ride_ledger.backend.client import (
    AuthenticationError,
    BackendError,
    LedgerBackendClient,
    RateLimitError,
)

__all__ = [
    "LedgerBackendClient",
    "BackendError",
    "AuthenticationError",
    "RateLimitError",
]
