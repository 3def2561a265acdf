"""Flight booking simulator with surge pricing and wallet payments."""
from typing import TYPE_CHECKING, Any

from .database import create_session_factory, init_db, session_scope
from .dataset import SAMPLE_FLIGHTS, seed_sample_flights, simulate_booking_burst
from .pricing import SURGE_MULTIPLIER, SURGE_WINDOW_SECONDS, PriceQuote, calculate_surge_price
from .services import (
    BookingConflictError,
    BookingError,
    BookingNotFoundError,
    BookingReceipt,
    FlightNotFoundError,
    InsufficientFundsError,
    InvalidBookingError,
    NotFoundError,
    PersistenceError,
    PriceChangedError,
    SeatsUnavailableError,
    book_flight,
    get_or_create_wallet,
    get_wallet_balance,
    quote_price,
    search_flights,
)

if TYPE_CHECKING:  # pragma: no cover - import for type hints only
    from .web import create_app as _create_app


def create_app(*args: Any, **kwargs: Any):  # pragma: no cover - thin wrapper
    from .web import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "SAMPLE_FLIGHTS",
    "SURGE_MULTIPLIER",
    "SURGE_WINDOW_SECONDS",
    "BookingConflictError",
    "BookingError",
    "BookingNotFoundError",
    "BookingReceipt",
    "FlightNotFoundError",
    "InsufficientFundsError",
    "InvalidBookingError",
    "NotFoundError",
    "PersistenceError",
    "PriceChangedError",
    "PriceQuote",
    "SeatsUnavailableError",
    "book_flight",
    "calculate_surge_price",
    "create_app",
    "create_session_factory",
    "get_or_create_wallet",
    "get_wallet_balance",
    "init_db",
    "quote_price",
    "search_flights",
    "seed_sample_flights",
    "session_scope",
    "simulate_booking_burst",
]
