import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from flight_booking.database import create_session_factory
from flight_booking.models import Base


@pytest.fixture
def session_factory(tmp_path):
    engine, factory = create_session_factory(f"sqlite+pysqlite:///{tmp_path / 'bookings.db'}")
    Base.metadata.create_all(engine)
    yield factory
    engine.dispose()
