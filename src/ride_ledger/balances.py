"""Balance aggregation over rides and payments.

Balance is total paid minus total charged: positive means the partner has
credit, negative means the partner owes money. Every function here is pure and
takes the full, unfiltered collections; records are grouped by partner id in a
single pass so cost stays linear in the number of records.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Protocol
from urllib.parse import quote

from ride_ledger.models import Partner, Payment, Ride, RideDraft
from ride_ledger.money import EXACT, ZERO, fmt2, fmt_signed2, to_amount
from ride_ledger.months import MonthRange, month_key, month_range, weekdays_in_month
from ride_ledger.pricing import ride_charge

SHARE_BASE_URL = "https://wa.me/"


class _PartnerAmount(Protocol):
    partner_id: str
    amount: str
    date: str


@dataclass(frozen=True)
class PartnerBalance:
    """All-time totals for one partner."""

    partner: Partner
    total_paid: Decimal
    total_charged: Decimal

    @property
    def balance(self) -> Decimal:
        return EXACT.subtract(self.total_paid, self.total_charged)

    @property
    def is_credit(self) -> bool:
        return self.balance >= 0


@dataclass(frozen=True)
class MonthlyRow:
    """Month-scoped totals for one partner plus the all-time balance."""

    partner: Partner
    rides_total: Decimal
    payments_total: Decimal
    balance_to_date: Decimal

    @property
    def net(self) -> Decimal:
        return EXACT.subtract(self.payments_total, self.rides_total)

    @property
    def status(self) -> str:
        return "CREDIT" if self.balance_to_date >= 0 else "DEBIT"


@dataclass(frozen=True)
class WeekdayRidePlan:
    """Rides to create when filling a month with weekday rides."""

    month: str
    weekdays: list[str]
    rides: list[RideDraft] = field(default_factory=list)
    skipped_dates: list[str] = field(default_factory=list)


def _totals_by_partner(
    records: Iterable[_PartnerAmount],
    window: MonthRange | None = None,
) -> tuple[dict[str, Decimal], dict[str, Decimal]]:
    """Sum normalized amounts per partner, all-time and inside ``window``."""
    all_time: dict[str, Decimal] = defaultdict(lambda: ZERO)
    in_window: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for record in records:
        amount = to_amount(record.amount)
        all_time[record.partner_id] = EXACT.add(all_time[record.partner_id], amount)
        if window is not None and window.contains(record.date):
            in_window[record.partner_id] = EXACT.add(in_window[record.partner_id], amount)
    return dict(all_time), dict(in_window)


def compute_balances(
    partners: Sequence[Partner],
    rides: Iterable[Ride],
    payments: Iterable[Payment],
) -> list[PartnerBalance]:
    """Compute all-time paid, charged and balance for every partner.

    Rides and payments belonging to partners not in ``partners`` are ignored.
    Results follow the order of ``partners``.
    """
    charged_by, _ = _totals_by_partner(rides)
    paid_by, _ = _totals_by_partner(payments)
    return [
        PartnerBalance(
            partner=partner,
            total_paid=paid_by.get(partner.id, ZERO),
            total_charged=charged_by.get(partner.id, ZERO),
        )
        for partner in partners
    ]


def balance_for(
    partner: Partner,
    rides: Iterable[Ride],
    payments: Iterable[Payment],
) -> PartnerBalance:
    """All-time balance for a single partner."""
    return compute_balances([partner], rides, payments)[0]


def compute_monthly_summary(
    partners: Sequence[Partner],
    rides: Iterable[Ride],
    payments: Iterable[Payment],
    month: date,
) -> list[MonthlyRow]:
    """Per-partner totals for the month containing ``month``.

    ``balance_to_date`` always comes from the all-time sums, independent of the
    month filter.
    """
    window = month_range(month)
    charged_all, charged_month = _totals_by_partner(rides, window)
    paid_all, paid_month = _totals_by_partner(payments, window)
    return [
        MonthlyRow(
            partner=partner,
            rides_total=charged_month.get(partner.id, ZERO),
            payments_total=paid_month.get(partner.id, ZERO),
            balance_to_date=EXACT.subtract(
                paid_all.get(partner.id, ZERO), charged_all.get(partner.id, ZERO)
            ),
        )
        for partner in partners
    ]


def render_share_text(month: str, rows: Iterable[MonthlyRow]) -> str:
    """Render the monthly summary as plain text for messaging apps."""
    lines = [f"Ride summary for {month}"]
    for row in rows:
        lines.append(
            f"{row.partner.name}: rides {fmt2(row.rides_total)}"
            f" | paid {fmt2(row.payments_total)}"
            f" | net {fmt_signed2(row.net)}"
            f" | balance {fmt_signed2(row.balance_to_date)} ({row.status})"
        )
    return "\n".join(lines)


def share_url(text: str) -> str:
    """Return a WhatsApp share link carrying ``text``."""
    return f"{SHARE_BASE_URL}?text={quote(text, safe='')}"


def plan_weekday_rides(
    partner: Partner,
    month: date,
    outbound: bool,
    return_ride: bool,
    existing_rides: Iterable[Ride],
) -> WeekdayRidePlan:
    """Plan one ride per weekday of the month, skipping dates already taken.

    A date is skipped when ``partner`` already has a ride on it anywhere between
    the first and last weekday of the month. Every planned ride carries the
    same charge, computed from the partner's current prices.
    """
    weekdays = weekdays_in_month(month)
    key = month_key(month)
    if not weekdays:
        return WeekdayRidePlan(month=key, weekdays=[])

    first, last = weekdays[0], weekdays[-1]
    taken = {
        ride.date
        for ride in existing_rides
        if ride.partner_id == partner.id and first <= ride.date <= last
    }
    amount = fmt2(ride_charge(partner, outbound, return_ride))

    rides: list[RideDraft] = []
    skipped: list[str] = []
    for day in weekdays:
        if day in taken:
            skipped.append(day)
            continue
        rides.append(
            RideDraft(
                partner_id=partner.id,
                date=day,
                outbound=outbound,
                return_ride=return_ride,
                amount=amount,
            )
        )
    return WeekdayRidePlan(month=key, weekdays=weekdays, rides=rides, skipped_dates=skipped)
