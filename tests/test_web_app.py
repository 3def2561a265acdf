from fastapi.testclient import TestClient
from sqlalchemy import update
from sqlalchemy.exc import OperationalError

from flight_booking import config, services, web
from flight_booking.models import Flight
from flight_booking.services import create_flight, get_or_create_wallet
from flight_booking.web import create_app


def _client(session_factory, seed=True):
    client = TestClient(create_app(session_factory))
    if seed:
        response = client.get("/api/seed")
        assert response.status_code == 200
        assert response.json()["count"] == 4
    return client


def _book(client, flight_id="AI101", price=5000, **extra):
    body = {"passengerName": "Test User", "finalPrice": price}
    body.update(extra)
    return client.post(f"/api/book/{flight_id}", json=body)


def test_root_reports_liveness(session_factory):
    client = _client(session_factory, seed=False)

    response = client.get("/")

    assert response.status_code == 200
    assert "running" in response.text


def test_search_filters_by_city(session_factory):
    client = _client(session_factory)

    everything = client.get("/api/flights/search").json()
    from_delhi = client.get("/api/flights/search", params={"departure_city": "delhi"}).json()
    to_bangalore = client.get("/api/flights/search", params={"arrival_city": "BANG"}).json()

    assert [flight["flight_id"] for flight in everything] == ["AI101", "SG202", "IG303", "AI104"]
    assert [flight["flight_id"] for flight in from_delhi] == ["AI101", "IG303"]
    assert [flight["flight_id"] for flight in to_bangalore] == ["SG202"]
    assert everything[0]["base_price"] == 5000
    assert everything[0]["available_seats"] == 50


def test_quote_then_book_then_surge(session_factory):
    client = _client(session_factory)

    quote = client.post("/api/flights/calculate-price/AI101")
    assert quote.status_code == 200
    assert quote.json() == {"finalPrice": 5000, "isSurged": False}

    booking = _book(client, price=5000)
    assert booking.status_code == 200
    payload = booking.json()
    assert payload["success"] is True
    assert payload["newBalance"] == 45000
    assert payload["pnr"].startswith("PNR")

    flight = client.get("/api/flights/search", params={"departure_city": "Delhi", "arrival_city": "Mumbai"}).json()[0]
    assert flight["available_seats"] == 49
    assert flight["booking_count"] == 1

    surged = client.post("/api/flights/calculate-price/AI101")
    assert surged.json() == {"finalPrice": 5500, "isSurged": True}
    flight = client.get("/api/flights/search", params={"departure_city": "Delhi", "arrival_city": "Mumbai"}).json()[0]
    assert flight["current_price"] == 5500


def test_stale_price_is_rejected_with_current_quote(session_factory):
    client = _client(session_factory)
    assert _book(client, price=5000).status_code == 200

    response = _book(client, price=5000)

    assert response.status_code == 409
    body = response.json()
    assert body["error"] == "PriceChanged"
    assert body["currentPrice"] == 5500
    assert body["isSurged"] is True
    assert client.get("/api/user/wallet").json() == {"balance": 45000}


def test_insufficient_funds_leaves_wallet_untouched(session_factory):
    client = _client(session_factory)
    with session_factory() as session:
        get_or_create_wallet(session, "traveller", default_balance=1000)
        session.commit()

    response = _book(client, price=5000, userId="traveller")

    assert response.status_code == 400
    assert response.json()["error"] == "InsufficientFunds"
    assert client.get("/api/user/wallet", params={"user_id": "traveller"}).json() == {"balance": 1000}
    flight = client.get("/api/flights/search", params={"departure_city": "Delhi", "arrival_city": "Mumbai"}).json()[0]
    assert flight["available_seats"] == 50


def test_sold_out_flight_is_rejected(session_factory):
    client = _client(session_factory)
    with session_factory() as session:
        create_flight(
            session,
            flight_id="ZZ999",
            airline="Demo Air",
            departure_city="Pune",
            arrival_city="Goa",
            base_price=3000,
            available_seats=0,
        )
        session.commit()

    response = _book(client, flight_id="ZZ999", price=3000)

    assert response.status_code == 400
    assert response.json()["error"] == "SeatsUnavailable"


def test_missing_flight_and_booking_are_not_found(session_factory):
    client = _client(session_factory)

    quote = client.post("/api/flights/calculate-price/XX000")
    booking = _book(client, flight_id="XX000")
    ticket = client.get("/api/ticket/PNR000/pdf")
    detail = client.get("/api/bookings/PNR000")

    for response in (quote, booking, ticket, detail):
        assert response.status_code == 404
        assert response.json()["error"] == "NotFound"


def test_booking_requires_passenger_and_price(session_factory):
    client = _client(session_factory)

    missing_name = client.post("/api/book/AI101", json={"finalPrice": 5000})
    zero_price = client.post("/api/book/AI101", json={"passengerName": "Test User", "finalPrice": 0})

    for response in (missing_name, zero_price):
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidRequest"
    assert "passengerName" in missing_name.json()["message"]
    assert "finalPrice" in zero_price.json()["message"]
    flight = client.get("/api/flights/search", params={"departure_city": "Delhi", "arrival_city": "Mumbai"}).json()[0]
    assert flight["available_seats"] == 50


def test_blank_passenger_name_is_invalid(session_factory):
    client = _client(session_factory)

    response = _book(client, passengerName="   ")

    assert response.status_code == 400
    assert response.json()["error"] == "InvalidRequest"


def test_lost_seat_race_is_a_conflict(session_factory, monkeypatch):
    client = _client(session_factory)
    original = services.get_or_create_wallet

    def wallet_after_rival_booking(session, user_id=None, **kwargs):
        session.execute(
            update(Flight)
            .where(Flight.flight_id == "AI101")
            .values(available_seats=0)
            .execution_options(synchronize_session=False)
        )
        return original(session, user_id, **kwargs)

    monkeypatch.setattr(services, "get_or_create_wallet", wallet_after_rival_booking)
    response = _book(client, price=5000)
    monkeypatch.undo()

    assert response.status_code == 409
    assert response.json()["error"] == "Conflict"
    assert client.get("/api/user/wallet").json() == {"balance": config.DEFAULT_WALLET_BALANCE}


def test_database_failure_is_reported_as_persistence_failure(session_factory, monkeypatch):
    client = _client(session_factory)

    def broken_search(session, **kwargs):
        raise OperationalError("SELECT flights", {}, Exception("disk I/O error"))

    monkeypatch.setattr(web, "search_flights", broken_search)
    response = client.get("/api/flights/search")

    assert response.status_code == 500
    assert response.json() == {"error": "PersistenceFailure", "message": "Database operation failed"}


def test_wallet_is_created_with_default_balance(session_factory):
    client = _client(session_factory, seed=False)

    response = client.get("/api/user/wallet")

    assert response.status_code == 200
    assert response.json() == {"balance": config.DEFAULT_WALLET_BALANCE}


def test_ticket_pdf_and_html(session_factory):
    client = _client(session_factory)
    pnr = _book(client, price=5000).json()["pnr"]

    pdf = client.get(f"/api/ticket/{pnr}/pdf")
    assert pdf.status_code == 200
    assert pdf.headers["content-type"] == "application/pdf"
    assert f"ticket_{pnr}.pdf" in pdf.headers["content-disposition"]
    assert pdf.content.startswith(b"%PDF")

    html = client.get(f"/api/ticket/{pnr}")
    assert html.status_code == 200
    assert pnr in html.text
    assert "Test User" in html.text
    assert "Air India (AI101)" in html.text
    assert "5,000" in html.text
    assert "CONFIRMED" in html.text


def test_booking_detail(session_factory):
    client = _client(session_factory)
    pnr = _book(client, price=5000).json()["pnr"]

    response = client.get(f"/api/bookings/{pnr}")

    assert response.status_code == 200
    body = response.json()
    assert body["pnr"] == pnr
    assert body["flight_id"] == "AI101"
    assert body["final_price"] == 5000
    assert body["status"] == "confirmed"
    assert body["user_id"] == config.DEFAULT_USER_ID


def test_export_csv(session_factory):
    client = _client(session_factory)
    pnr = _book(client, price=5000).json()["pnr"]

    response = client.get("/api/bookings/export/csv")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "PNR,Flight,User,Passenger,Final Price,Status,Booking Date" in response.text
    assert pnr in response.text


def test_export_excel(session_factory):
    client = _client(session_factory)
    _book(client, price=5000)

    response = client.get("/api/bookings/export/xlsx")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith(
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    )
    assert response.content[:2] == b"PK"


def test_export_rejects_unknown_format(session_factory):
    client = _client(session_factory, seed=False)

    response = client.get("/api/bookings/export/pdf")

    assert response.status_code == 400
    assert response.json()["error"] == "InvalidRequest"
