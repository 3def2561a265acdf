"""Sample flights and demo booking bursts."""
from __future__ import annotations

import logging
import random
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence

from sqlalchemy import delete
from sqlalchemy.orm import Session, sessionmaker

from .models import Flight
from .services import BookingError, book_flight, create_flight, quote_price

logger = logging.getLogger(__name__)

SAMPLE_FLIGHTS: Sequence[Dict[str, object]] = (
    {
        "flight_id": "AI101",
        "airline": "Air India",
        "departure_city": "Delhi",
        "arrival_city": "Mumbai",
        "base_price": 5000,
        "available_seats": 50,
    },
    {
        "flight_id": "SG202",
        "airline": "SpiceJet",
        "departure_city": "Mumbai",
        "arrival_city": "Bangalore",
        "base_price": 4500,
        "available_seats": 60,
    },
    {
        "flight_id": "IG303",
        "airline": "IndiGo",
        "departure_city": "Delhi",
        "arrival_city": "Kolkata",
        "base_price": 6000,
        "available_seats": 45,
    },
    {
        "flight_id": "AI104",
        "airline": "Air India",
        "departure_city": "Chennai",
        "arrival_city": "Delhi",
        "base_price": 7000,
        "available_seats": 40,
    },
)
PASSENGER_NAMES = ("Aarav Shah", "Diya Rao", "Kabir Mehta", "Ananya Iyer", "Vihaan Das", "Meera Nair")


def seed_sample_flights(session: Session) -> int:
    """Replace every flight with the sample set. Bookings and wallets are kept."""

    session.execute(delete(Flight))
    for fields in SAMPLE_FLIGHTS:
        create_flight(session, **fields)
    logger.info("Seeded %d sample flights", len(SAMPLE_FLIGHTS))
    return len(SAMPLE_FLIGHTS)


def simulate_booking_burst(
    session_factory: sessionmaker[Session],
    flight_id: str,
    *,
    bookings: int = 3,
    user_id: Optional[str] = None,
    interval_seconds: float = 1.0,
    start: Optional[datetime] = None,
) -> List[Dict[str, object]]:
    """Quote then book ``bookings`` seats, ``interval_seconds`` apart.

    Booking times are simulated rather than waited for, so a burst with a
    short interval shows surge pricing kicking in after the first booking.
    """

    rng = random.Random(42)
    moment = start or datetime.utcnow()
    summary: List[Dict[str, object]] = []
    for index in range(bookings):
        with session_factory() as session:
            try:
                quote = quote_price(session, flight_id, now=moment)
                receipt = book_flight(
                    session,
                    flight_id=flight_id,
                    passenger_name=rng.choice(PASSENGER_NAMES),
                    final_price=quote.final_price,
                    user_id=user_id,
                    now=moment,
                )
                session.commit()
            except BookingError as exc:
                session.rollback()
                summary.append(
                    {
                        "attempt": index + 1,
                        "status": exc.kind,
                        "pnr": None,
                        "price": None,
                        "surged": None,
                        "balance": None,
                    }
                )
                break
            summary.append(
                {
                    "attempt": index + 1,
                    "status": receipt.booking.status,
                    "pnr": receipt.pnr,
                    "price": quote.final_price,
                    "surged": quote.is_surged,
                    "balance": receipt.new_balance,
                }
            )
        moment += timedelta(seconds=interval_seconds)
    return summary
