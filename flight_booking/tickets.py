"""Ticket assembly and PDF rendering."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from io import BytesIO
from typing import List

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle
from sqlalchemy.orm import Session

from .services import find_flight, get_booking

UNKNOWN = "Unknown"


def format_inr(amount: int) -> str:
    """Group digits the Indian way: ``150000`` becomes ``1,50,000``."""

    sign = "-" if amount < 0 else ""
    digits = str(abs(int(amount)))
    if len(digits) <= 3:
        return sign + digits
    head, tail = digits[:-3], digits[-3:]
    groups: List[str] = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return sign + ",".join(groups + [tail])


@dataclass
class Ticket:
    pnr: str
    passenger_name: str
    flight_id: str
    airline: str
    departure_city: str
    arrival_city: str
    final_price: int
    booking_date: datetime
    status: str

    @property
    def route(self) -> str:
        return f"{self.departure_city} -> {self.arrival_city}"

    @property
    def price_label(self) -> str:
        return f"INR {format_inr(self.final_price)}"

    def rows(self) -> List[List[str]]:
        return [
            ["PNR", self.pnr],
            ["Passenger", self.passenger_name],
            ["Flight", f"{self.airline} ({self.flight_id})"],
            ["Route", self.route],
            ["Price Paid", self.price_label],
            ["Booking Date", self.booking_date.strftime("%d %b %Y, %H:%M UTC")],
            ["Status", self.status.upper()],
        ]


def build_ticket(session: Session, pnr: str) -> Ticket:
    booking = get_booking(session, pnr)
    # The flight may have been replaced by a reseed since the booking was made.
    flight = find_flight(session, booking.flight_id)
    return Ticket(
        pnr=booking.pnr,
        passenger_name=booking.passenger_name,
        flight_id=booking.flight_id,
        airline=flight.airline if flight else UNKNOWN,
        departure_city=flight.departure_city if flight else UNKNOWN,
        arrival_city=flight.arrival_city if flight else UNKNOWN,
        final_price=booking.final_price,
        booking_date=booking.booking_date,
        status=booking.status,
    )


def render_ticket_pdf(ticket: Ticket) -> bytes:
    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, title=f"Ticket {ticket.pnr}")
    styles = getSampleStyleSheet()

    table = Table(ticket.rows(), colWidths=[1.8 * inch, 4.2 * inch])
    table.setStyle(
        TableStyle(
            [
                ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
                ("BACKGROUND", (0, 0), (0, -1), colors.lightgrey),
                ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
                ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
            ]
        )
    )
    story = [
        Paragraph("FLIGHT TICKET", styles["Title"]),
        Paragraph(f"PNR: {ticket.pnr}", styles["Heading2"]),
        Spacer(1, 0.3 * inch),
        table,
    ]
    doc.build(story)
    return buffer.getvalue()
