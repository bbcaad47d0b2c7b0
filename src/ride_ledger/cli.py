"""Command-line front end for the ride ledger.

Usage:
    ride-ledger partners add "Sam" --out 15.00 --back 12.00
    ride-ledger rides add <partner-id> --date 2024-02-15 --return
    ride-ledger rides add-month <partner-id> --month 2024-02
    ride-ledger payments add <partner-id> 50.00
    ride-ledger dashboard
    ride-ledger summary --month 2024-02 --share
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Sequence
from datetime import date

import structlog

from ride_ledger.backend import BackendError, LedgerBackendClient
from ride_ledger.balances import render_share_text, share_url
from ride_ledger.config import configure_logging, get_settings
from ride_ledger.errors import LedgerValidationError
from ride_ledger.models import Partner
from ride_ledger.money import fmt2, fmt_signed2
from ride_ledger.months import current_month_key, month_key, parse_iso_date, parse_month
from ride_ledger.pricing import legs_label
from ride_ledger.service import RideLedger

logger = structlog.get_logger(__name__)

MIN_PASSWORD_LENGTH = 6


def _iso_date(value: str) -> date:
    try:
        return parse_iso_date(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid date {value!r}, expected yyyy-MM-dd") from e


def _month(value: str) -> date:
    try:
        return parse_month(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ride-ledger",
        description="Track rides shared with partners, payments received and balances.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG level")
    commands = parser.add_subparsers(dest="command", required=True)

    signup = commands.add_parser("signup", help="Create an account")
    signup.add_argument("--email", help="Defaults to LEDGER_EMAIL")
    signup.add_argument("--password", help="Defaults to LEDGER_PASSWORD")

    # Partners
    partners = commands.add_parser("partners", help="Manage ride partners")
    partner_cmds = partners.add_subparsers(dest="action", required=True)
    partner_cmds.add_parser("list", help="List partners")
    partner_add = partner_cmds.add_parser("add", help="Add a partner")
    partner_add.add_argument("name")
    partner_add.add_argument("--out", dest="price_out", default="0.00", help="Outbound price")
    partner_add.add_argument("--back", dest="price_back", default="0.00", help="Return price")
    partner_add.add_argument("--notes")
    partner_delete = partner_cmds.add_parser(
        "delete", help="Delete a partner with its rides and payments"
    )
    partner_delete.add_argument("partner_id")

    # Rides
    rides = commands.add_parser("rides", help="Record rides")
    ride_cmds = rides.add_subparsers(dest="action", required=True)
    ride_list = ride_cmds.add_parser("list", help="List recent rides")
    ride_list.add_argument("--limit", type=int)

    ride_add = ride_cmds.add_parser("add", help="Add a ride")
    ride_add.add_argument("partner_id")
    ride_add.add_argument("--date", type=_iso_date, default=None, help="Defaults to today")
    ride_add.add_argument("--outbound", action=argparse.BooleanOptionalAction, default=True)
    ride_add.add_argument(
        "--return", dest="return_ride", action=argparse.BooleanOptionalAction, default=False
    )

    ride_edit = ride_cmds.add_parser("edit", help="Edit a ride and recompute its charge")
    ride_edit.add_argument("ride_id")
    ride_edit.add_argument("--date", type=_iso_date, default=None)
    ride_edit.add_argument("--outbound", action=argparse.BooleanOptionalAction, default=None)
    ride_edit.add_argument(
        "--return", dest="return_ride", action=argparse.BooleanOptionalAction, default=None
    )

    ride_delete = ride_cmds.add_parser("delete", help="Delete a ride")
    ride_delete.add_argument("ride_id")

    ride_month = ride_cmds.add_parser("add-month", help="Add rides for every weekday of a month")
    ride_month.add_argument("partner_id")
    ride_month.add_argument("--month", type=_month, default=None, help="yyyy-MM, defaults to now")
    ride_month.add_argument("--outbound", action=argparse.BooleanOptionalAction, default=True)
    ride_month.add_argument(
        "--return", dest="return_ride", action=argparse.BooleanOptionalAction, default=False
    )

    # Payments
    payments = commands.add_parser("payments", help="Record payments")
    payment_cmds = payments.add_subparsers(dest="action", required=True)
    payment_list = payment_cmds.add_parser("list", help="List recent payments")
    payment_list.add_argument("--limit", type=int)
    payment_add = payment_cmds.add_parser("add", help="Add a payment")
    payment_add.add_argument("partner_id")
    payment_add.add_argument("amount")
    payment_add.add_argument("--date", type=_iso_date, default=None, help="Defaults to today")
    payment_add.add_argument("--description")
    payment_delete = payment_cmds.add_parser("delete", help="Delete a payment")
    payment_delete.add_argument("payment_id")

    # Views
    commands.add_parser("dashboard", help="Show all-time balances")
    summary = commands.add_parser("summary", help="Show the monthly summary")
    summary.add_argument("--month", type=_month, default=None, help="yyyy-MM, defaults to now")
    summary.add_argument("--share", action="store_true", help="Print share text and link")

    return parser


def _partner_names(partners: Sequence[Partner]) -> dict[str, str]:
    return {partner.id: partner.name for partner in partners}


async def _run_partners(ledger: RideLedger, args: argparse.Namespace) -> int:
    if args.action == "list":
        for partner in await ledger.list_partners():
            notes = f"  {partner.notes}" if partner.notes else ""
            print(
                f"{partner.id}  {partner.name}  out {partner.price_out}"
                f" / back {partner.price_back}{notes}"
            )
    elif args.action == "add":
        partner = await ledger.create_partner(
            args.name, args.price_out, args.price_back, args.notes
        )
        print(f"Created partner {partner.name} ({partner.id})")
    elif args.action == "delete":
        await ledger.delete_partner(args.partner_id)
        print(f"Deleted partner {args.partner_id}")
    return 0


async def _run_rides(ledger: RideLedger, args: argparse.Namespace) -> int:
    if args.action == "list":
        partners, rides = await asyncio.gather(
            ledger.list_partners(), ledger.recent_rides(args.limit)
        )
        names = _partner_names(partners)
        if not rides:
            print("No rides yet.")
        for ride in rides:
            name = names.get(ride.partner_id, ride.partner_id)
            print(f"{ride.date}  {name}  {legs_label(ride)}  {ride.amount}  {ride.id}")
    elif args.action == "add":
        ride = await ledger.add_ride(
            args.partner_id, args.date or date.today(), args.outbound, args.return_ride
        )
        print(f"Added ride on {ride.date} ({legs_label(ride)}), charge {ride.amount}")
    elif args.action == "edit":
        ride = await ledger.edit_ride(args.ride_id, args.date, args.outbound, args.return_ride)
        print(f"Updated ride on {ride.date} ({legs_label(ride)}), charge {ride.amount}")
    elif args.action == "delete":
        await ledger.delete_ride(args.ride_id)
        print(f"Deleted ride {args.ride_id}")
    elif args.action == "add-month":
        month = args.month or parse_month(current_month_key())
        report = await ledger.add_month_weekdays(
            args.partner_id, month, args.outbound, args.return_ride
        )
        print(report.message)
        if not report.ok:
            return 1
    return 0


async def _run_payments(ledger: RideLedger, args: argparse.Namespace) -> int:
    if args.action == "list":
        partners, payments = await asyncio.gather(
            ledger.list_partners(), ledger.recent_payments(args.limit)
        )
        names = _partner_names(partners)
        if not payments:
            print("No payments yet.")
        for payment in payments:
            name = names.get(payment.partner_id, payment.partner_id)
            description = f"  {payment.description}" if payment.description else ""
            print(f"{payment.date}  {name}  {payment.amount}{description}  {payment.id}")
    elif args.action == "add":
        payment = await ledger.add_payment(
            args.partner_id, args.amount, args.date or date.today(), args.description
        )
        print(f"Recorded payment of {payment.amount} on {payment.date}")
    elif args.action == "delete":
        await ledger.delete_payment(args.payment_id)
        print(f"Deleted payment {args.payment_id}")
    return 0


async def _run_dashboard(ledger: RideLedger) -> int:
    balances = await ledger.dashboard()
    if not balances:
        print("No partners yet. Add a partner to start tracking rides and payments.")
    for entry in balances:
        print(
            f"{entry.partner.name}: balance {fmt_signed2(entry.balance)}"
            f" | paid {fmt2(entry.total_paid)} | charged {fmt2(entry.total_charged)}"
        )
    return 0


async def _run_summary(ledger: RideLedger, args: argparse.Namespace) -> int:
    month = args.month or parse_month(current_month_key())
    rows = await ledger.monthly_summary(month)
    if not rows:
        print("No partners. Add a partner first.")
        return 0
    text = render_share_text(month_key(month), rows)
    print(text)
    if args.share:
        print()
        print(share_url(text))
    return 0


async def run(args: argparse.Namespace) -> int:
    """Execute a parsed command and return the process exit code."""
    settings = get_settings()
    async with LedgerBackendClient() as client:
        try:
            email = getattr(args, "email", None) or settings.ledger_email
            password = getattr(args, "password", None) or (
                settings.ledger_password.get_secret_value() if settings.ledger_password else None
            )
            if not email or not password:
                print("Set LEDGER_EMAIL and LEDGER_PASSWORD to sign in.", file=sys.stderr)
                return 2

            if len(password) < MIN_PASSWORD_LENGTH:
                raise LedgerValidationError(
                    f"Password must be at least {MIN_PASSWORD_LENGTH} characters."
                )

            if args.command == "signup":
                await client.sign_up(email, password)
                print("Account created. You can now log in.")
                return 0

            await client.sign_in(email, password)
            ledger = RideLedger(client)
            if args.command == "partners":
                return await _run_partners(ledger, args)
            if args.command == "rides":
                return await _run_rides(ledger, args)
            if args.command == "payments":
                return await _run_payments(ledger, args)
            if args.command == "dashboard":
                return await _run_dashboard(ledger)
            return await _run_summary(ledger, args)
        except LedgerValidationError as e:
            print(str(e), file=sys.stderr)
            return 1
        except BackendError as e:
            logger.warning("command_failed", command=args.command, error=str(e))
            print(str(e), file=sys.stderr)
            return 1


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging("DEBUG" if args.verbose else None)
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
