"""Environment driven settings for the flight booking service."""
from __future__ import annotations

import logging
import os
from typing import List

DATABASE_URL = os.environ.get("FLIGHT_BOOKING_DB_URL", "sqlite+pysqlite:///flight_booking.db")

# Every request without an explicit user falls back to the demo wallet.
DEFAULT_USER_ID = os.environ.get("FLIGHT_BOOKING_USER_ID", "user_001")
DEFAULT_WALLET_BALANCE = int(os.environ.get("FLIGHT_BOOKING_WALLET_BALANCE", 50000))

VERIFY_PRICE = os.environ.get("FLIGHT_BOOKING_VERIFY_PRICE", "1").lower() not in {"0", "false", "no"}

LOG_LEVEL = os.environ.get("FLIGHT_BOOKING_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def cors_origins() -> List[str]:
    raw = os.environ.get("FLIGHT_BOOKING_CORS_ORIGINS", "*")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def configure_logging(level: str | None = None) -> None:
    """Install the root handler used by the CLI and the API server."""

    logging.basicConfig(level=level or LOG_LEVEL, format=LOG_FORMAT)
