from datetime import datetime

from flight_booking import cli, config
from flight_booking.dataset import seed_sample_flights, simulate_booking_burst
from flight_booking.pricing import SURGE_WINDOW_SECONDS


def _run(db_url, *args):
    return cli.main(["--db-url", db_url, *args])


def test_seed_and_search(tmp_path, capsys):
    db_url = f"sqlite+pysqlite:///{tmp_path / 'cli.db'}"

    assert _run(db_url, "seed") == 0
    assert "Seeded 4 flights." in capsys.readouterr().out

    assert _run(db_url, "search", "--from", "delhi") == 0
    output = capsys.readouterr().out
    assert "AI101" in output
    assert "IG303" in output
    assert "SG202" not in output


def test_search_without_matches(tmp_path, capsys):
    db_url = f"sqlite+pysqlite:///{tmp_path / 'cli.db'}"
    _run(db_url, "seed")
    capsys.readouterr()

    assert _run(db_url, "search", "--to", "Paris") == 0
    assert "No flights found." in capsys.readouterr().out


def test_book_quote_wallet_and_ticket(tmp_path, capsys):
    db_url = f"sqlite+pysqlite:///{tmp_path / 'cli.db'}"
    _run(db_url, "seed")

    assert _run(db_url, "book", "AI104", "Kabir Mehta") == 0
    output = capsys.readouterr().out
    assert "PNR" in output
    assert "wallet balance INR 43,000" in output
    pnr = output.split("PNR ")[1].split(",")[0]

    assert _run(db_url, "quote", "AI104") == 0
    assert "INR 7,700 (surge pricing)" in capsys.readouterr().out

    assert _run(db_url, "wallet") == 0
    assert f"Wallet {config.DEFAULT_USER_ID}: INR 43,000" in capsys.readouterr().out

    target = tmp_path / "ticket.pdf"
    assert _run(db_url, "ticket", pnr, "--output", str(target)) == 0
    assert target.read_bytes().startswith(b"%PDF")


def test_errors_are_reported_on_stderr(tmp_path, capsys):
    db_url = f"sqlite+pysqlite:///{tmp_path / 'cli.db'}"

    assert _run(db_url, "book", "XX000", "Nobody", "--price", "100") == 1
    assert "Error: Flight 'XX000' not found" in capsys.readouterr().err


def test_simulated_burst_surges_after_first_booking(session_factory):
    with session_factory() as session:
        seed_sample_flights(session)
        session.commit()

    summary = simulate_booking_burst(
        session_factory,
        "AI101",
        bookings=3,
        interval_seconds=1,
        start=datetime(2025, 1, 15, 12, 0, 0),
    )

    assert [row["price"] for row in summary] == [5000, 5500, 5500]
    assert [row["surged"] for row in summary] == [False, True, True]
    assert summary[-1]["balance"] == config.DEFAULT_WALLET_BALANCE - 16000


def test_slow_burst_never_surges(session_factory):
    with session_factory() as session:
        seed_sample_flights(session)
        session.commit()

    summary = simulate_booking_burst(
        session_factory,
        "IG303",
        bookings=2,
        interval_seconds=SURGE_WINDOW_SECONDS,
        start=datetime(2025, 1, 15, 12, 0, 0),
    )

    assert [row["price"] for row in summary] == [6000, 6000]


def test_burst_stops_when_wallet_runs_dry(session_factory, monkeypatch):
    monkeypatch.setattr(config, "DEFAULT_WALLET_BALANCE", 8000)
    with session_factory() as session:
        seed_sample_flights(session)
        session.commit()

    summary = simulate_booking_burst(
        session_factory,
        "AI101",
        bookings=3,
        interval_seconds=SURGE_WINDOW_SECONDS,
        start=datetime(2025, 1, 15, 12, 0, 0),
    )

    assert [row["status"] for row in summary] == ["confirmed", "InsufficientFunds"]
