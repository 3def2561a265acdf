"""FastAPI application exposing flight search, pricing, booking and tickets."""
from __future__ import annotations

import logging
from io import BytesIO, StringIO
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Literal, Optional

import pandas as pd
from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, Response, StreamingResponse
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from . import config
from .database import init_db
from .dataset import seed_sample_flights
from .models import Booking
from .services import (
    BookingConflictError,
    BookingError,
    InsufficientFundsError,
    InvalidBookingError,
    NotFoundError,
    PersistenceError,
    PriceChangedError,
    SeatsUnavailableError,
    book_flight,
    get_booking,
    get_wallet_balance,
    list_bookings,
    quote_price,
    search_flights,
)
from .tickets import build_ticket, format_inr, render_ticket_pdf

logger = logging.getLogger(__name__)

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
templates.env.filters["inr"] = format_inr

ExportFormat = Literal["csv", "xlsx"]

_ERROR_STATUS: Dict[type, int] = {
    NotFoundError: 404,
    SeatsUnavailableError: 400,
    InsufficientFundsError: 400,
    InvalidBookingError: 400,
    PriceChangedError: 409,
    BookingConflictError: 409,
    PersistenceError: 500,
}


class BookingRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    passenger_name: str = Field(alias="passengerName", min_length=1)
    final_price: int = Field(alias="finalPrice", gt=0)
    user_id: Optional[str] = Field(default=None, alias="userId")


def _status_for(exc: BookingError) -> int:
    for error_type, status_code in _ERROR_STATUS.items():
        if isinstance(exc, error_type):
            return status_code
    return 400


def _error_payload(exc: BookingError) -> dict:
    payload = {"error": exc.kind, "message": str(exc)}
    if isinstance(exc, PriceChangedError):
        payload["currentPrice"] = exc.current.final_price
        payload["isSurged"] = exc.current.is_surged
    return payload


def _validation_message(exc: RequestValidationError) -> str:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        problems.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(problems) or "Invalid request"


def _bookings_dataframe(bookings: Iterable[Booking]) -> pd.DataFrame:
    data: List[Dict[str, object]] = []
    for booking in bookings:
        data.append(
            {
                "PNR": booking.pnr,
                "Flight": booking.flight_id,
                "User": booking.user_id,
                "Passenger": booking.passenger_name,
                "Final Price": booking.final_price,
                "Status": booking.status,
                "Booking Date": booking.booking_date,
            }
        )
    return pd.DataFrame(
        data,
        columns=["PNR", "Flight", "User", "Passenger", "Final Price", "Status", "Booking Date"],
    )


def create_app(session_factory: Optional[sessionmaker[Session]] = None) -> FastAPI:
    """Return the booking API bound to ``session_factory`` (or the configured database)."""

    if session_factory is None:
        session_factory = init_db(config.DATABASE_URL)

    app = FastAPI(title="Flight Booking", description="Flight search, surge pricing and wallet bookings")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def get_session() -> Iterator[Session]:
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    @app.exception_handler(BookingError)
    async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
        return JSONResponse(status_code=_status_for(exc), content=_error_payload(exc))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"error": InvalidBookingError.kind, "message": _validation_message(exc)},
        )

    @app.exception_handler(SQLAlchemyError)
    async def persistence_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        logger.exception("Database failure while handling %s", request.url.path)
        return JSONResponse(
            status_code=500,
            content={"error": PersistenceError.kind, "message": "Database operation failed"},
        )

    @app.get("/", response_class=PlainTextResponse)
    def root() -> str:
        return "Flight Booking backend is running"

    @app.get("/api/flights/search")
    def flights_search(
        departure_city: Optional[str] = Query(None, description="Part of the departure city"),
        arrival_city: Optional[str] = Query(None, description="Part of the arrival city"),
        session: Session = Depends(get_session),
    ) -> List[dict]:
        flights = search_flights(session, departure_city=departure_city, arrival_city=arrival_city)
        return [flight.as_dict() for flight in flights]

    @app.post("/api/flights/calculate-price/{flight_id}")
    def calculate_price(flight_id: str, session: Session = Depends(get_session)) -> dict:
        quote = quote_price(session, flight_id)
        session.commit()
        return quote.as_payload()

    @app.post("/api/book/{flight_id}")
    def book(flight_id: str, payload: BookingRequest, session: Session = Depends(get_session)) -> dict:
        receipt = book_flight(
            session,
            flight_id=flight_id,
            passenger_name=payload.passenger_name,
            final_price=payload.final_price,
            user_id=payload.user_id,
        )
        session.commit()
        return receipt.as_payload()

    @app.get("/api/bookings/export/{file_format}")
    def export_bookings(
        file_format: ExportFormat,
        user_id: Optional[str] = Query(None),
        session: Session = Depends(get_session),
    ) -> StreamingResponse:
        dataframe = _bookings_dataframe(list_bookings(session, user_id=user_id))
        headers = {"Content-Disposition": f'attachment; filename="bookings.{file_format}"'}

        if file_format == "csv":
            buffer = StringIO()
            dataframe.to_csv(buffer, index=False)
            buffer.seek(0)
            return StreamingResponse(iter([buffer.getvalue()]), media_type="text/csv", headers=headers)

        excel = BytesIO()
        with pd.ExcelWriter(excel, engine="openpyxl") as writer:
            dataframe.to_excel(writer, index=False, sheet_name="Bookings")
        excel.seek(0)
        return StreamingResponse(
            excel,
            media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            headers=headers,
        )

    @app.get("/api/bookings/{pnr}")
    def booking_detail(pnr: str, session: Session = Depends(get_session)) -> dict:
        return get_booking(session, pnr).as_dict()

    @app.get("/api/ticket/{pnr}/pdf")
    def ticket_pdf(pnr: str, session: Session = Depends(get_session)) -> Response:
        ticket = build_ticket(session, pnr)
        headers = {"Content-Disposition": f"attachment; filename=ticket_{ticket.pnr}.pdf"}
        return Response(content=render_ticket_pdf(ticket), media_type="application/pdf", headers=headers)

    @app.get("/api/ticket/{pnr}", response_class=HTMLResponse)
    def ticket_html(request: Request, pnr: str, session: Session = Depends(get_session)) -> HTMLResponse:
        ticket = build_ticket(session, pnr)
        return templates.TemplateResponse(request, "ticket.html", {"ticket": ticket})

    @app.get("/api/user/wallet")
    def wallet(user_id: Optional[str] = Query(None), session: Session = Depends(get_session)) -> dict:
        balance = get_wallet_balance(session, user_id)
        session.commit()
        return {"balance": balance}

    @app.api_route("/api/seed", methods=["GET", "POST"])
    def seed(session: Session = Depends(get_session)) -> dict:
        count = seed_sample_flights(session)
        session.commit()
        return {"message": "Database seeded successfully!", "count": count}

    return app


__all__ = ["create_app", "BookingRequest"]
