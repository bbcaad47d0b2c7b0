"""User-level ledger actions on top of the backend client.

Each action validates its input before touching the backend, fetches fresh
snapshots, and hands them to the pure functions in ``balances`` and ``pricing``.
Backend failures propagate as :class:`BackendError`; nothing is retried.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import date
from typing import Any

import structlog

from ride_ledger.backend import BackendError, LedgerBackendClient
from ride_ledger.balances import (
    MonthlyRow,
    PartnerBalance,
    compute_balances,
    compute_monthly_summary,
    plan_weekday_rides,
    render_share_text,
)
from ride_ledger.config import get_settings
from ride_ledger.errors import LedgerValidationError, UnknownPartnerError
from ride_ledger.models import (
    Partner,
    PartnerDraft,
    Payment,
    PaymentDraft,
    Ride,
    RideDraft,
)
from ride_ledger.money import fmt2, is_positive_amount, parse_amount
from ride_ledger.months import month_key
from ride_ledger.pricing import ride_charge, validate_legs

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class LedgerSnapshot:
    """Partners with all of their rides and payments, fetched together."""

    partners: list[Partner] = field(default_factory=list)
    rides: list[Ride] = field(default_factory=list)
    payments: list[Payment] = field(default_factory=list)


@dataclass(frozen=True)
class WeekdayInsertReport:
    """Outcome of filling a month with weekday rides."""

    month: str
    inserted: int
    skipped: int
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def message(self) -> str:
        summary = f"Added {self.inserted} weekday rides. Skipped {self.skipped} existing dates."
        if self.error is None:
            return summary
        return f"{self.error} ({summary})"


def _price(value: Any, label: str) -> str:
    amount = parse_amount(value)
    if amount is None or amount < 0:
        raise LedgerValidationError(f"{label} must be a non-negative amount.")
    return fmt2(amount)


class RideLedger:
    """Ride, payment and partner actions for the signed-in account."""

    def __init__(
        self,
        client: LedgerBackendClient,
        chunk_size: int | None = None,
        recent_limit: int | None = None,
    ):
        settings = get_settings()
        self.client = client
        self.chunk_size = max(chunk_size or settings.bulk_chunk_size, 1)
        self.recent_limit = recent_limit or settings.recent_limit
        self._logger = logger.bind(component="ride_ledger")

    # === Snapshots ===

    async def list_partners(self) -> list[Partner]:
        records = await self.client.list_partners()
        return [Partner.from_record(record) for record in records]

    async def get_partner(self, partner_id: str) -> Partner:
        """Fetch the partner with its current prices."""
        for partner in await self.list_partners():
            if partner.id == partner_id:
                return partner
        raise UnknownPartnerError(partner_id)

    async def load_snapshot(self) -> LedgerSnapshot:
        """Fetch partners, then all of their rides and payments concurrently."""
        partners = await self.list_partners()
        ids = [partner.id for partner in partners]
        if not ids:
            return LedgerSnapshot()

        ride_records, payment_records = await asyncio.gather(
            self.client.list_rides(partner_ids=ids),
            self.client.list_payments(partner_ids=ids),
        )
        return LedgerSnapshot(
            partners=partners,
            rides=sorted(
                (Ride.from_record(r) for r in ride_records),
                key=lambda ride: ride.date,
                reverse=True,
            ),
            payments=sorted(
                (Payment.from_record(p) for p in payment_records),
                key=lambda payment: payment.date,
                reverse=True,
            ),
        )

    # === Partners ===

    async def create_partner(
        self,
        name: str,
        price_out: Any = "0.00",
        price_back: Any = "0.00",
        notes: str | None = None,
    ) -> Partner:
        """Create a partner with per-leg prices."""
        if not name.strip():
            raise LedgerValidationError("Partner name is required.")
        draft = PartnerDraft(
            name=name,
            price_out=_price(price_out, "Outbound price"),
            price_back=_price(price_back, "Return price"),
            notes=notes,
        )
        record = await self.client.create_partner(draft.to_payload())
        partner = Partner.from_record(record)
        self._logger.info("partner_created", partner_id=partner.id, name=partner.name)
        return partner

    async def delete_partner(self, partner_id: str) -> None:
        """Delete a partner together with its rides and payments."""
        await self.client.delete_partner(partner_id)
        self._logger.info("partner_deleted", partner_id=partner_id)

    # === Rides ===

    async def recent_rides(self, limit: int | None = None) -> list[Ride]:
        records = await self.client.list_rides(limit=limit or self.recent_limit)
        return [Ride.from_record(record) for record in records]

    async def add_ride(
        self,
        partner_id: str,
        ride_date: date,
        outbound: bool,
        return_ride: bool,
    ) -> Ride:
        """Record a ride charged at the partner's current prices."""
        validate_legs(outbound, return_ride)
        partner = await self.get_partner(partner_id)
        draft = RideDraft(
            partner_id=partner.id,
            date=ride_date.isoformat(),
            outbound=outbound,
            return_ride=return_ride,
            amount=fmt2(ride_charge(partner, outbound, return_ride)),
        )
        rows = await self.client.create_rides(draft.to_payload())
        ride = Ride.from_record(rows[0]) if rows else Ride(id="", **draft.to_payload())
        self._logger.info(
            "ride_created", ride_id=ride.id, partner_id=partner.id, amount=ride.amount
        )
        return ride

    async def edit_ride(
        self,
        ride_id: str,
        ride_date: date | None = None,
        outbound: bool | None = None,
        return_ride: bool | None = None,
    ) -> Ride:
        """Change a ride's date or legs and recompute its charge.

        The charge is recomputed from the partner's prices as they are now.
        """
        record = await self.client.get_ride(ride_id)
        if not record:
            raise LedgerValidationError(f"Ride not found: {ride_id}")
        current = Ride.from_record(record)

        new_outbound = current.outbound if outbound is None else outbound
        new_return = current.return_ride if return_ride is None else return_ride
        validate_legs(new_outbound, new_return)
        partner = await self.get_partner(current.partner_id)

        changes = {
            "date": ride_date.isoformat() if ride_date else current.date,
            "outbound": new_outbound,
            "return_ride": new_return,
            "amount": fmt2(ride_charge(partner, new_outbound, new_return)),
        }
        updated = await self.client.update_ride(ride_id, changes)
        ride = Ride.from_record(updated) if updated else Ride(
            id=current.id,
            partner_id=current.partner_id,
            created_at=current.created_at,
            **changes,
        )
        self._logger.info("ride_updated", ride_id=ride_id, amount=ride.amount)
        return ride

    async def delete_ride(self, ride_id: str) -> None:
        await self.client.delete_ride(ride_id)
        self._logger.info("ride_deleted", ride_id=ride_id)

    async def add_month_weekdays(
        self,
        partner_id: str,
        month: date,
        outbound: bool,
        return_ride: bool,
    ) -> WeekdayInsertReport:
        """Add a ride for every weekday of ``month`` that the partner lacks one.

        Inserts go out in sequential batches. The first failing batch stops the
        run; the report then carries the error and the rides already inserted.
        """
        validate_legs(outbound, return_ride)
        partner = await self.get_partner(partner_id)
        key = month_key(month)

        probe = plan_weekday_rides(partner, month, outbound, return_ride, [])
        if not probe.weekdays:
            return WeekdayInsertReport(
                month=key, inserted=0, skipped=0, error="No weekdays found for that month."
            )

        existing = await self.client.list_partner_rides_between(
            partner.id, probe.weekdays[0], probe.weekdays[-1]
        )
        plan = plan_weekday_rides(
            partner,
            month,
            outbound,
            return_ride,
            [Ride.from_record(record) for record in existing],
        )

        payloads = [ride.to_payload() for ride in plan.rides]
        inserted = 0
        for start in range(0, len(payloads), self.chunk_size):
            chunk = payloads[start : start + self.chunk_size]
            try:
                await self.client.create_rides(chunk)
            except BackendError as e:
                self._logger.warning(
                    "weekday_rides_batch_failed",
                    partner_id=partner.id,
                    month=key,
                    inserted=inserted,
                    error=str(e),
                )
                return WeekdayInsertReport(
                    month=key,
                    inserted=inserted,
                    skipped=len(plan.skipped_dates),
                    error=str(e),
                )
            inserted += len(chunk)

        self._logger.info(
            "weekday_rides_inserted",
            partner_id=partner.id,
            month=key,
            inserted=inserted,
            skipped=len(plan.skipped_dates),
        )
        return WeekdayInsertReport(month=key, inserted=inserted, skipped=len(plan.skipped_dates))

    # === Payments ===

    async def recent_payments(self, limit: int | None = None) -> list[Payment]:
        records = await self.client.list_payments(limit=limit or self.recent_limit)
        return [Payment.from_record(record) for record in records]

    async def add_payment(
        self,
        partner_id: str,
        amount: Any,
        payment_date: date,
        description: str | None = None,
    ) -> Payment:
        """Record a payment received from a partner."""
        if not partner_id:
            raise LedgerValidationError("Select a partner.")
        if not is_positive_amount(amount):
            raise LedgerValidationError("Payment amount must be greater than zero.")
        draft = PaymentDraft(
            partner_id=partner_id,
            amount=fmt2(amount),
            date=payment_date.isoformat(),
            description=description,
        )
        record = await self.client.create_payment(draft.to_payload())
        payment = Payment.from_record(record) if record else Payment(id="", **draft.to_payload())
        self._logger.info(
            "payment_recorded", payment_id=payment.id, partner_id=partner_id, amount=payment.amount
        )
        return payment

    async def delete_payment(self, payment_id: str) -> None:
        await self.client.delete_payment(payment_id)
        self._logger.info("payment_deleted", payment_id=payment_id)

    # === Views ===

    async def dashboard(self) -> list[PartnerBalance]:
        """All-time balance per partner."""
        snapshot = await self.load_snapshot()
        return compute_balances(snapshot.partners, snapshot.rides, snapshot.payments)

    async def monthly_summary(self, month: date) -> list[MonthlyRow]:
        """Month totals per partner with the all-time balance alongside."""
        snapshot = await self.load_snapshot()
        return compute_monthly_summary(
            snapshot.partners, snapshot.rides, snapshot.payments, month
        )

    async def share_text(self, month: date) -> str:
        rows = await self.monthly_summary(month)
        return render_share_text(month_key(month), rows)
