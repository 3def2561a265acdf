"""Surge pricing rule.

A flight is surged while bookings land in quick succession: if the previous
booking happened less than :data:`SURGE_WINDOW_SECONDS` ago, the fare is the
base price times :data:`SURGE_MULTIPLIER`, rounded half-up to whole currency
units. A flight that has never been booked is never surged.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from .models import Flight

SURGE_WINDOW_SECONDS = 5
SURGE_MULTIPLIER = Decimal("1.10")


@dataclass(frozen=True)
class PriceQuote:
    final_price: int
    is_surged: bool

    def as_payload(self) -> dict:
        return {"finalPrice": self.final_price, "isSurged": self.is_surged}


def seconds_since(last_booking_time: Optional[datetime], now: datetime) -> float:
    if last_booking_time is None:
        return math.inf
    return (now - last_booking_time).total_seconds()


def surged_price(base_price: int) -> int:
    return int((Decimal(base_price) * SURGE_MULTIPLIER).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def calculate_surge_price(
    base_price: int,
    booking_count: int,
    last_booking_time: Optional[datetime],
    now: Optional[datetime] = None,
) -> PriceQuote:
    """Return the fare for a flight in the given booking state."""

    now = now or datetime.utcnow()
    elapsed = seconds_since(last_booking_time, now)
    is_surged = elapsed < SURGE_WINDOW_SECONDS and booking_count > 0
    final_price = surged_price(base_price) if is_surged else int(base_price)
    return PriceQuote(final_price=final_price, is_surged=is_surged)


def quote_flight(flight: Flight, now: Optional[datetime] = None) -> PriceQuote:
    return calculate_surge_price(
        flight.base_price,
        flight.booking_count,
        flight.last_booking_time,
        now,
    )
