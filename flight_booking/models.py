"""SQLAlchemy models for flights, bookings and wallets."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

BOOKING_STATUS_CONFIRMED = "confirmed"


class Base(DeclarativeBase):
    pass


class Flight(Base):
    __tablename__ = "flights"
    __table_args__ = (
        UniqueConstraint("flight_id", name="uq_flight_id"),
        CheckConstraint("base_price > 0", name="ck_base_price_positive"),
        CheckConstraint("available_seats >= 0", name="ck_available_non_negative"),
        CheckConstraint("booking_count >= 0", name="ck_booking_count_non_negative"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    flight_id: Mapped[str] = mapped_column(String(16), nullable=False)
    airline: Mapped[str] = mapped_column(String(60), nullable=False)
    departure_city: Mapped[str] = mapped_column(String(60), nullable=False)
    arrival_city: Mapped[str] = mapped_column(String(60), nullable=False)
    base_price: Mapped[int] = mapped_column(Integer, nullable=False)
    # Last quoted price, refreshed by every price calculation.
    current_price: Mapped[int] = mapped_column(Integer, nullable=False)
    available_seats: Mapped[int] = mapped_column(Integer, nullable=False)
    booking_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_booking_time: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    def as_dict(self) -> dict:
        return {
            "flight_id": self.flight_id,
            "airline": self.airline,
            "departure_city": self.departure_city,
            "arrival_city": self.arrival_city,
            "base_price": self.base_price,
            "current_price": self.current_price,
            "available_seats": self.available_seats,
            "booking_count": self.booking_count,
            "last_booking_time": self.last_booking_time.isoformat() if self.last_booking_time else None,
        }


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        UniqueConstraint("pnr", name="uq_booking_pnr"),
        CheckConstraint("final_price > 0", name="ck_final_price_positive"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    pnr: Mapped[str] = mapped_column(String(32), nullable=False)
    # Plain reference: bookings outlive a reseed of the flights table.
    flight_id: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    passenger_name: Mapped[str] = mapped_column(String(120), nullable=False)
    booking_date: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    final_price: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=BOOKING_STATUS_CONFIRMED, nullable=False)

    def as_dict(self) -> dict:
        return {
            "pnr": self.pnr,
            "flight_id": self.flight_id,
            "user_id": self.user_id,
            "passenger_name": self.passenger_name,
            "booking_date": self.booking_date.isoformat(),
            "final_price": self.final_price,
            "status": self.status,
        }


class Wallet(Base):
    __tablename__ = "wallets"
    __table_args__ = (
        UniqueConstraint("user_id", name="uq_wallet_user"),
        CheckConstraint("balance >= 0", name="ck_balance_non_negative"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    balance: Mapped[int] = mapped_column(Integer, nullable=False)
