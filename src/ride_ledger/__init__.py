"""Ride Ledger - rides shared with partners, payments received, running balances."""

__version__ = "0.1.0"

from ride_ledger.backend import (
    AuthenticationError,
    BackendError,
    LedgerBackendClient,
    RateLimitError,
)
from ride_ledger.balances import (
    MonthlyRow,
    PartnerBalance,
    WeekdayRidePlan,
    balance_for,
    compute_balances,
    compute_monthly_summary,
    plan_weekday_rides,
    render_share_text,
    share_url,
)
from ride_ledger.config import configure_logging, get_settings
from ride_ledger.errors import (
    InvalidLegSelectionError,
    LedgerValidationError,
    UnknownPartnerError,
)
from ride_ledger.models import Partner, Payment, Ride
from ride_ledger.money import fmt2, fmt_signed2, to_amount
from ride_ledger.months import MonthRange, month_key, month_range, weekdays_in_month
from ride_ledger.pricing import ride_charge, validate_legs
from ride_ledger.service import LedgerSnapshot, RideLedger, WeekdayInsertReport

__all__ = [
    # Version
    "__version__",
    # Models
    "Partner",
    "Ride",
    "Payment",
    # Money & calendar
    "to_amount",
    "fmt2",
    "fmt_signed2",
    "MonthRange",
    "month_key",
    "month_range",
    "weekdays_in_month",
    # Pricing & balances
    "ride_charge",
    "validate_legs",
    "PartnerBalance",
    "MonthlyRow",
    "WeekdayRidePlan",
    "compute_balances",
    "balance_for",
    "compute_monthly_summary",
    "plan_weekday_rides",
    "render_share_text",
    "share_url",
    # Service
    "RideLedger",
    "LedgerSnapshot",
    "WeekdayInsertReport",
    # Backend
    "LedgerBackendClient",
    "BackendError",
    "AuthenticationError",
    "RateLimitError",
    # Errors
    "LedgerValidationError",
    "InvalidLegSelectionError",
    "UnknownPartnerError",
    # Config
    "get_settings",
    "configure_logging",
]
