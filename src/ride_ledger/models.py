"""Value snapshots of the records stored in the hosted backend.

Identity and persistence are owned by the backend; these are immutable copies
fetched per operation. Monetary fields stay as the decimal strings the backend
returns and are only parsed when something is computed from them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


def _text(record: dict[str, Any], key: str, default: str = "") -> str:
    value = record.get(key)
    return default if value is None else str(value)


def _optional_text(record: dict[str, Any], key: str) -> str | None:
    value = record.get(key)
    return None if value is None else str(value)


def _clean_optional(value: str | None) -> str | None:
    """Trim free text and map blank input to None."""
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


@dataclass(frozen=True)
class Partner:
    """Counterparty billed for rides and credited for payments."""

    id: str
    name: str
    price_out: str = "0.00"
    price_back: str = "0.00"
    notes: str | None = None
    user_id: str | None = None
    created_at: str = ""

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Partner:
        return cls(
            id=_text(record, "id"),
            name=_text(record, "name"),
            price_out=_text(record, "price_out", "0.00"),
            price_back=_text(record, "price_back", "0.00"),
            notes=_optional_text(record, "notes"),
            user_id=_optional_text(record, "user_id"),
            created_at=_text(record, "created_at"),
        )


@dataclass(frozen=True)
class Ride:
    """A ride with one or both legs and the charge frozen when it was recorded."""

    id: str
    partner_id: str
    date: str
    outbound: bool
    return_ride: bool
    amount: str
    created_at: str = ""

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Ride:
        return cls(
            id=_text(record, "id"),
            partner_id=_text(record, "partner_id"),
            date=_text(record, "date"),
            outbound=bool(record.get("outbound")),
            return_ride=bool(record.get("return_ride")),
            amount=_text(record, "amount", "0.00"),
            created_at=_text(record, "created_at"),
        )


@dataclass(frozen=True)
class Payment:
    """Money received from a partner."""

    id: str
    partner_id: str
    amount: str
    date: str
    description: str | None = None
    created_at: str = ""

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Payment:
        return cls(
            id=_text(record, "id"),
            partner_id=_text(record, "partner_id"),
            amount=_text(record, "amount", "0.00"),
            date=_text(record, "date"),
            description=_optional_text(record, "description"),
            created_at=_text(record, "created_at"),
        )


@dataclass(frozen=True)
class PartnerDraft:
    """Fields collected when creating a partner."""

    name: str
    price_out: str = "0.00"
    price_back: str = "0.00"
    notes: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "name": self.name.strip(),
            "price_out": self.price_out,
            "price_back": self.price_back,
            "notes": _clean_optional(self.notes),
        }


@dataclass(frozen=True)
class RideDraft:
    """A ride ready to be written, charge already computed."""

    partner_id: str
    date: str
    outbound: bool
    return_ride: bool
    amount: str

    def to_payload(self) -> dict[str, Any]:
        return {
            "partner_id": self.partner_id,
            "date": self.date,
            "outbound": self.outbound,
            "return_ride": self.return_ride,
            "amount": self.amount,
        }


@dataclass(frozen=True)
class PaymentDraft:
    """Fields collected when recording a payment."""

    partner_id: str
    amount: str
    date: str
    description: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "partner_id": self.partner_id,
            "amount": self.amount,
            "date": self.date,
            "description": _clean_optional(self.description),
        }
