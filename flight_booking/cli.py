"""Command line interface for the flight booking service."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Callable, Dict, Iterable

import uvicorn
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from tabulate import tabulate

from . import config
from .database import init_db, session_scope
from .dataset import seed_sample_flights, simulate_booking_burst
from .models import Flight
from .services import (
    BookingError,
    book_flight,
    get_wallet_balance,
    quote_price,
    search_flights,
)
from .tickets import build_ticket, format_inr, render_ticket_pdf

FLIGHT_HEADERS = ["Flight", "Airline", "From", "To", "Base price", "Current price", "Seats", "Bookings"]


def _render_flights(flights: Iterable[Flight]) -> str:
    rows = [
        [
            flight.flight_id,
            flight.airline,
            flight.departure_city,
            flight.arrival_city,
            format_inr(flight.base_price),
            format_inr(flight.current_price),
            flight.available_seats,
            flight.booking_count,
        ]
        for flight in flights
    ]
    if not rows:
        return "No flights found."
    return tabulate(rows, headers=FLIGHT_HEADERS, tablefmt="github")


def _seed(session_factory: sessionmaker[Session], args: argparse.Namespace) -> str:
    with session_scope(session_factory) as session:
        count = seed_sample_flights(session)
    return f"Seeded {count} flights."


def _search(session_factory: sessionmaker[Session], args: argparse.Namespace) -> str:
    with session_scope(session_factory) as session:
        flights = search_flights(
            session, departure_city=args.departure_city, arrival_city=args.arrival_city
        )
        return _render_flights(flights)


def _quote(session_factory: sessionmaker[Session], args: argparse.Namespace) -> str:
    with session_scope(session_factory) as session:
        quote = quote_price(session, args.flight_id)
    label = " (surge pricing)" if quote.is_surged else ""
    return f"{args.flight_id}: INR {format_inr(quote.final_price)}{label}"


def _book(session_factory: sessionmaker[Session], args: argparse.Namespace) -> str:
    with session_scope(session_factory) as session:
        price = args.price
        if price is None:
            price = quote_price(session, args.flight_id).final_price
        receipt = book_flight(
            session,
            flight_id=args.flight_id,
            passenger_name=args.passenger,
            final_price=price,
            user_id=args.user,
        )
    return (
        f"Booked {args.flight_id} for {args.passenger}: PNR {receipt.pnr}, "
        f"paid INR {format_inr(price)}, wallet balance INR {format_inr(receipt.new_balance)}"
    )


def _wallet(session_factory: sessionmaker[Session], args: argparse.Namespace) -> str:
    with session_scope(session_factory) as session:
        balance = get_wallet_balance(session, args.user)
    return f"Wallet {args.user or config.DEFAULT_USER_ID}: INR {format_inr(balance)}"


def _ticket(session_factory: sessionmaker[Session], args: argparse.Namespace) -> str:
    with session_scope(session_factory) as session:
        ticket = build_ticket(session, args.pnr)
    output = Path(args.output or f"ticket_{ticket.pnr}.pdf")
    output.write_bytes(render_ticket_pdf(ticket))
    return f"Ticket written to {output}"


def _simulate(session_factory: sessionmaker[Session], args: argparse.Namespace) -> str:
    summary = simulate_booking_burst(
        session_factory,
        args.flight_id,
        bookings=args.bookings,
        user_id=args.user,
        interval_seconds=args.interval,
    )
    return tabulate(summary, headers="keys", tablefmt="github")


_COMMANDS: Dict[str, Callable[[sessionmaker[Session], argparse.Namespace], str]] = {
    "seed": _seed,
    "search": _search,
    "quote": _quote,
    "book": _book,
    "wallet": _wallet,
    "ticket": _ticket,
    "simulate": _simulate,
}


def parse_args(argv: Iterable[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Flight booking simulator with surge pricing.")
    parser.add_argument(
        "--db-url",
        default=None,
        help=f"SQLAlchemy database URL (default: {config.DATABASE_URL}).",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    commands = parser.add_subparsers(dest="command", required=True)

    serve = commands.add_parser("serve", help="Run the HTTP API.")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=3001)

    commands.add_parser("seed", help="Replace all flights with the sample set.")

    search = commands.add_parser("search", help="Search flights by city.")
    search.add_argument("--from", dest="departure_city", default=None, help="Part of the departure city.")
    search.add_argument("--to", dest="arrival_city", default=None, help="Part of the arrival city.")

    quote = commands.add_parser("quote", help="Calculate the current price of a flight.")
    quote.add_argument("flight_id")

    book = commands.add_parser("book", help="Book one seat, paying from the wallet.")
    book.add_argument("flight_id")
    book.add_argument("passenger", help="Passenger name.")
    book.add_argument(
        "--price",
        type=int,
        default=None,
        help="Quoted price to pay (default: quote the flight now).",
    )
    book.add_argument("--user", default=None, help="Wallet owner (default: the demo user).")

    wallet = commands.add_parser("wallet", help="Show the wallet balance.")
    wallet.add_argument("--user", default=None)

    ticket = commands.add_parser("ticket", help="Write the PDF ticket for a PNR.")
    ticket.add_argument("pnr")
    ticket.add_argument("--output", default=None, help="Destination file (default: ticket_<PNR>.pdf).")

    simulate = commands.add_parser("simulate", help="Book several seats in quick succession.")
    simulate.add_argument("flight_id")
    simulate.add_argument("--bookings", type=int, default=3)
    simulate.add_argument("--interval", type=float, default=1.0, help="Seconds between simulated bookings.")
    simulate.add_argument("--user", default=None)

    return parser.parse_args(list(argv))


def main(argv: Iterable[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    config.configure_logging("DEBUG" if args.verbose else None)

    if args.command == "serve":  # pragma: no cover - blocks until interrupted
        from .web import create_app

        uvicorn.run(create_app(init_db(args.db_url)), host=args.host, port=args.port)
        return 0

    try:
        session_factory = init_db(args.db_url)
        output = _COMMANDS[args.command](session_factory, args)
    except (BookingError, SQLAlchemyError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(output)
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
