"""Business logic for the flight booking service."""
from __future__ import annotations

import logging
import random
import string
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import Select, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import config
from .models import BOOKING_STATUS_CONFIRMED, Booking, Flight, Wallet
from .pricing import PriceQuote, quote_flight

logger = logging.getLogger(__name__)

PNR_PREFIX = "PNR"
PNR_SUFFIX_LENGTH = 5
_PNR_ALPHABET = string.ascii_uppercase + string.digits
_PNR_ATTEMPTS = 5


class BookingError(RuntimeError):
    """Base class for failures surfaced to API and CLI callers."""

    kind = "BookingError"


class NotFoundError(BookingError):
    kind = "NotFound"


class FlightNotFoundError(NotFoundError):
    def __init__(self, flight_id: str) -> None:
        super().__init__(f"Flight '{flight_id}' not found")
        self.flight_id = flight_id


class BookingNotFoundError(NotFoundError):
    def __init__(self, pnr: str) -> None:
        super().__init__(f"Booking '{pnr}' not found")
        self.pnr = pnr


class SeatsUnavailableError(BookingError):
    kind = "SeatsUnavailable"


class InsufficientFundsError(BookingError):
    kind = "InsufficientFunds"


class PriceChangedError(BookingError):
    """Raised when the client quoted a fare the pricing rule no longer gives."""

    kind = "PriceChanged"

    def __init__(self, offered: int, current: PriceQuote) -> None:
        super().__init__(
            f"Quoted price {offered} is stale; current price is {current.final_price}"
        )
        self.offered = offered
        self.current = current


class BookingConflictError(BookingError):
    """Raised when a concurrent booking changed the seat count or balance first."""

    kind = "Conflict"


class InvalidBookingError(BookingError):
    kind = "InvalidRequest"


class PersistenceError(BookingError):
    kind = "PersistenceFailure"


@dataclass
class BookingReceipt:
    pnr: str
    new_balance: int
    booking: Booking

    def as_payload(self) -> dict:
        return {"success": True, "pnr": self.pnr, "newBalance": self.new_balance}


def create_flight(
    session: Session,
    *,
    flight_id: str,
    airline: str,
    departure_city: str,
    arrival_city: str,
    base_price: int,
    available_seats: int,
    current_price: Optional[int] = None,
) -> Flight:
    """Create a flight entry."""

    flight = Flight(
        flight_id=flight_id,
        airline=airline,
        departure_city=departure_city,
        arrival_city=arrival_city,
        base_price=base_price,
        current_price=base_price if current_price is None else current_price,
        available_seats=available_seats,
        booking_count=0,
    )
    session.add(flight)
    session.flush()
    return flight


def find_flight(session: Session, flight_id: str) -> Optional[Flight]:
    return session.scalar(select(Flight).where(Flight.flight_id == flight_id))


def get_flight(session: Session, flight_id: str) -> Flight:
    flight = find_flight(session, flight_id)
    if flight is None:
        raise FlightNotFoundError(flight_id)
    return flight


def search_flights(
    session: Session,
    *,
    departure_city: Optional[str] = None,
    arrival_city: Optional[str] = None,
) -> List[Flight]:
    """Return flights whose cities contain the given fragments, ignoring case."""

    stmt: Select[tuple[Flight]] = select(Flight).order_by(Flight.id)
    if departure_city:
        stmt = stmt.where(Flight.departure_city.icontains(departure_city, autoescape=True))
    if arrival_city:
        stmt = stmt.where(Flight.arrival_city.icontains(arrival_city, autoescape=True))
    return list(session.scalars(stmt))


def get_booking(session: Session, pnr: str) -> Booking:
    booking = session.scalar(select(Booking).where(Booking.pnr == pnr))
    if booking is None:
        raise BookingNotFoundError(pnr)
    return booking


def list_bookings(session: Session, *, user_id: Optional[str] = None) -> List[Booking]:
    stmt: Select[tuple[Booking]] = select(Booking).order_by(Booking.id)
    if user_id:
        stmt = stmt.where(Booking.user_id == user_id)
    return list(session.scalars(stmt))


def get_or_create_wallet(
    session: Session,
    user_id: Optional[str] = None,
    *,
    default_balance: Optional[int] = None,
) -> Wallet:
    """Load the user's wallet, opening it with the default balance on first use."""

    user_id = user_id or config.DEFAULT_USER_ID
    wallet = session.scalar(select(Wallet).where(Wallet.user_id == user_id))
    if wallet is None:
        balance = config.DEFAULT_WALLET_BALANCE if default_balance is None else default_balance
        wallet = Wallet(user_id=user_id, balance=balance)
        session.add(wallet)
        session.flush()
        logger.info("Opened wallet for %s with balance %s", user_id, balance)
    return wallet


def get_wallet_balance(session: Session, user_id: Optional[str] = None) -> int:
    return get_or_create_wallet(session, user_id).balance


def quote_price(session: Session, flight_id: str, now: Optional[datetime] = None) -> PriceQuote:
    """Price a flight and remember the result as its current price."""

    flight = get_flight(session, flight_id)
    quote = quote_flight(flight, now)
    flight.current_price = quote.final_price
    session.flush()
    logger.debug("Quoted %s at %s (surged=%s)", flight_id, quote.final_price, quote.is_surged)
    return quote


def generate_pnr(session: Session, now: Optional[datetime] = None) -> str:
    """Return a PNR not yet present in the store.

    The unique constraint on ``bookings.pnr`` still guards the insert.
    """

    now = now or datetime.utcnow()
    stamp = int(now.replace(tzinfo=timezone.utc).timestamp() * 1000)
    for _ in range(_PNR_ATTEMPTS):
        suffix = "".join(random.choices(_PNR_ALPHABET, k=PNR_SUFFIX_LENGTH))
        candidate = f"{PNR_PREFIX}{stamp}{suffix}"
        if session.scalar(select(Booking.id).where(Booking.pnr == candidate)) is None:
            return candidate
    raise PersistenceError("Could not allocate a unique PNR")


def book_flight(
    session: Session,
    *,
    flight_id: str,
    passenger_name: str,
    final_price: int,
    user_id: Optional[str] = None,
    verify_price: Optional[bool] = None,
    now: Optional[datetime] = None,
) -> BookingReceipt:
    """Charge the user's wallet and confirm one seat on the flight.

    All checks run before anything is written, and the debit, the seat claim
    and the booking insert share one savepoint.
    """

    passenger_name = (passenger_name or "").strip()
    if not passenger_name:
        raise InvalidBookingError("Passenger name is required")
    if final_price <= 0:
        raise InvalidBookingError("Final price must be positive")
    user_id = user_id or config.DEFAULT_USER_ID
    if verify_price is None:
        verify_price = config.VERIFY_PRICE
    now = now or datetime.utcnow()

    try:
        with session.begin_nested():
            flight = get_flight(session, flight_id)
            if flight.available_seats <= 0:
                raise SeatsUnavailableError(f"No seats available on {flight_id}")

            wallet = get_or_create_wallet(session, user_id)
            if wallet.balance < final_price:
                raise InsufficientFundsError(
                    f"Insufficient wallet balance: {wallet.balance} available, {final_price} required"
                )

            if verify_price:
                current = quote_flight(flight, now)
                if current.final_price != final_price:
                    raise PriceChangedError(final_price, current)

            debit = session.execute(
                update(Wallet)
                .where(Wallet.id == wallet.id, Wallet.balance >= final_price)
                .values(balance=Wallet.balance - final_price)
                .execution_options(synchronize_session=False)
            )
            if debit.rowcount != 1:
                raise BookingConflictError("Wallet balance changed during booking, retry")

            claim = session.execute(
                update(Flight)
                .where(Flight.id == flight.id, Flight.available_seats > 0)
                .values(
                    available_seats=Flight.available_seats - 1,
                    booking_count=Flight.booking_count + 1,
                    last_booking_time=now,
                )
                .execution_options(synchronize_session=False)
            )
            if claim.rowcount != 1:
                raise BookingConflictError(f"Last seat on {flight_id} was taken, retry")

            booking = Booking(
                pnr=generate_pnr(session, now),
                flight_id=flight.flight_id,
                user_id=user_id,
                passenger_name=passenger_name,
                booking_date=now,
                final_price=final_price,
                status=BOOKING_STATUS_CONFIRMED,
            )
            session.add(booking)
            try:
                session.flush()
            except IntegrityError as exc:
                raise PersistenceError("Booking could not be recorded") from exc
    except BookingError as exc:
        logger.info("Booking on %s for %s rejected: %s", flight_id, user_id, exc)
        raise

    session.refresh(wallet)
    session.refresh(flight)
    logger.info(
        "Booked %s on %s for %s at %s; wallet balance %s",
        booking.pnr,
        flight_id,
        user_id,
        final_price,
        wallet.balance,
    )
    return BookingReceipt(pnr=booking.pnr, new_balance=wallet.balance, booking=booking)


__all__ = [
    "BookingError",
    "NotFoundError",
    "FlightNotFoundError",
    "BookingNotFoundError",
    "SeatsUnavailableError",
    "InsufficientFundsError",
    "PriceChangedError",
    "BookingConflictError",
    "InvalidBookingError",
    "PersistenceError",
    "BookingReceipt",
    "create_flight",
    "find_flight",
    "get_flight",
    "search_flights",
    "get_booking",
    "list_bookings",
    "get_or_create_wallet",
    "get_wallet_balance",
    "quote_price",
    "generate_pnr",
    "book_flight",
]
