"""Per-ride charge computed from a partner's leg prices."""

from __future__ import annotations

from decimal import Decimal

from ride_ledger.errors import InvalidLegSelectionError
from ride_ledger.models import Partner, Ride
from ride_ledger.money import EXACT, ZERO, to_amount


def ride_charge(partner: Partner, outbound: bool, return_ride: bool) -> Decimal:
    """Return the charge for a ride using the partner's current prices.

    Both flags false yields zero; callers validate with :func:`validate_legs`
    before persisting.
    """
    charge = ZERO
    if outbound:
        charge = EXACT.add(charge, to_amount(partner.price_out))
    if return_ride:
        charge = EXACT.add(charge, to_amount(partner.price_back))
    return charge


def validate_legs(outbound: bool, return_ride: bool) -> None:
    """Raise InvalidLegSelectionError when neither leg is selected."""
    if not outbound and not return_ride:
        raise InvalidLegSelectionError()


def legs_label(ride: Ride) -> str:
    """Short label for the legs of a ride: ``Out``, ``Back`` or ``Out + Back``."""
    parts = []
    if ride.outbound:
        parts.append("Out")
    if ride.return_ride:
        parts.append("Back")
    return " + ".join(parts)
