from datetime import date, timedelta

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from pitchbook.api import deps
from pitchbook.api.routes import auth, bookings, misc, pitches
from pitchbook.core import security
from pitchbook.core.security import TokenAuthority
from pitchbook.db import models
from pitchbook.db.session import Base, get_db
from pitchbook.services import booking_service, pitch_service

GAME_DAY = (date.today() + timedelta(days=2)).isoformat()


@pytest.fixture()
def api_client(clock):
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    TestingSessionLocal = sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )
    Base.metadata.create_all(bind=engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    authority = TokenAuthority("api-access-secret", "api-refresh-secret", clock=clock)

    test_app = FastAPI()
    for module in (auth, pitches, bookings, misc):
        test_app.include_router(module.router, prefix="/api/v1")
    test_app.dependency_overrides[get_db] = override_get_db
    test_app.dependency_overrides[deps.get_token_authority] = lambda: authority

    with TestClient(test_app) as client:
        yield client, TestingSessionLocal

    test_app.dependency_overrides.clear()
    engine.dispose()


def _register(client, username, **extra):
    payload = {
        "name": username.title(),
        "username": username,
        "email": f"{username}@example.com",
        "password": "secret123",
        **extra,
    }
    return client.post("/api/v1/auth/register", json=payload)


def _bearer(token):
    return {"Authorization": f"Bearer {token}"}


def _user_headers(client, username):
    response = _register(client, username)
    assert response.status_code == 201
    return _bearer(response.json()["access_token"])


def _admin_headers(client, SessionLocal):
    with SessionLocal() as db:
        db.add(
            models.User(
                username="boss",
                email="boss@example.com",
                name="Boss",
                password_hash=security.get_password_hash("secret123"),
                role=models.UserRole.ADMIN,
            )
        )
        db.commit()
    response = client.post("/api/v1/auth/login", data={"username": "boss", "password": "secret123"})
    assert response.status_code == 200
    return _bearer(response.json()["access_token"])


def _create_pitch(client, headers, **overrides):
    payload = {
        "name": "Pitch F1",
        "city": "AMMAN",
        "address": "Main street 1",
        "price_per_hour": 30,
        **overrides,
    }
    response = client.post("/api/v1/pitches", json=payload, headers=headers)
    assert response.status_code == 201
    return response.json()


def _book(client, headers, pitch_id, start="18:00"):
    return client.post(
        "/api/v1/bookings",
        json={"pitch_id": pitch_id, "date": GAME_DAY, "start_time": start},
        headers=headers,
    )


def test_health(api_client):
    client, _ = api_client

    assert client.get("/api/v1/health").json() == {"status": "ok"}


def test_register_returns_token_pair(api_client):
    client, _ = api_client

    response = _register(client, "player", city="IRBID")

    assert response.status_code == 201
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["access_token"] and body["refresh_token"]
    assert body["access_expires_at"] < body["refresh_expires_at"]
    assert body["user"]["role"] == "USER"
    assert body["user"]["city"] == "IRBID"


def test_register_duplicate_username(api_client):
    client, _ = api_client
    _register(client, "player")

    response = _register(client, "player")

    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "USER_EXISTS"


def test_register_rejects_unknown_city(api_client):
    client, _ = api_client

    response = _register(client, "player", city="PARIS")

    assert response.status_code == 422


def test_login_and_me(api_client):
    client, _ = api_client
    _register(client, "player")

    response = client.post("/api/v1/auth/login", data={"username": "player", "password": "secret123"})
    assert response.status_code == 200

    me = client.get("/api/v1/auth/me", headers=_bearer(response.json()["access_token"]))
    assert me.status_code == 200
    assert me.json()["username"] == "player"


def test_login_with_wrong_password(api_client):
    client, _ = api_client
    _register(client, "player")

    response = client.post("/api/v1/auth/login", data={"username": "player", "password": "nope"})

    assert response.status_code == 401
    assert response.json()["detail"]["code"] == "INVALID_CREDENTIALS"


def test_me_requires_token(api_client):
    client, _ = api_client

    assert client.get("/api/v1/auth/me").status_code == 401


def test_expired_access_token(api_client, clock):
    client, _ = api_client
    headers = _user_headers(client, "player")

    clock.advance(minutes=16)
    response = client.get("/api/v1/auth/me", headers=headers)

    assert response.status_code == 401
    assert response.json()["detail"]["code"] == "TOKEN_EXPIRED"
    assert response.headers["WWW-Authenticate"] == "Bearer"


def test_refresh_issues_new_pair(api_client, clock):
    client, _ = api_client
    tokens = _register(client, "player").json()

    clock.advance(minutes=30)
    response = client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})

    assert response.status_code == 200
    me = client.get("/api/v1/auth/me", headers=_bearer(response.json()["access_token"]))
    assert me.status_code == 200


def test_refresh_rejects_access_token(api_client):
    client, _ = api_client
    tokens = _register(client, "player").json()

    response = client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["access_token"]})

    assert response.status_code == 401
    assert response.json()["detail"]["code"] == "INVALID_TOKEN"


def test_refresh_rejects_disabled_user(api_client):
    client, SessionLocal = api_client
    tokens = _register(client, "player").json()
    with SessionLocal() as db:
        user = db.query(models.User).filter_by(username="player").one()
        user.is_active = False
        db.commit()

    response = client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})

    assert response.status_code == 401
    assert response.json()["detail"]["code"] == "USER_DISABLED"


def test_only_admin_creates_pitches(api_client):
    client, _ = api_client
    headers = _user_headers(client, "player")

    response = client.post(
        "/api/v1/pitches",
        json={"name": "F1", "city": "AMMAN", "address": "x", "price_per_hour": 10},
        headers=headers,
    )

    assert response.status_code == 403
    assert response.json()["detail"]["code"] == "INSUFFICIENT_PERMISSIONS"


def test_list_pitches_by_city(api_client):
    client, SessionLocal = api_client
    admin = _admin_headers(client, SessionLocal)
    amman = _create_pitch(client, admin)
    _create_pitch(client, admin, name="North", city="IRBID")

    response = client.get("/api/v1/pitches", params={"city": "AMMAN"})

    assert response.status_code == 200
    assert [p["id"] for p in response.json()] == [amman["id"]]


def test_list_pitches_rejects_unknown_city(api_client):
    client, _ = api_client

    response = client.get("/api/v1/pitches", params={"city": "PARIS"})

    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["code"] == "VALIDATION_ERROR"
    assert len(detail["accepted"]) == 12


def test_availability_lists_free_starts(api_client):
    client, SessionLocal = api_client
    admin = _admin_headers(client, SessionLocal)
    pitch = _create_pitch(client, admin)
    user = _user_headers(client, "player")
    _book(client, user, pitch["id"])

    response = client.get(f"/api/v1/pitches/{pitch['id']}/availability", params={"date": GAME_DAY})

    assert response.status_code == 200
    slots = response.json()["available_slots"]
    assert "17:00" in slots
    assert "18:00" not in slots


def test_blocked_slot_hides_availability(api_client):
    client, SessionLocal = api_client
    admin = _admin_headers(client, SessionLocal)
    pitch = _create_pitch(client, admin)

    blocked = client.post(
        f"/api/v1/pitches/{pitch['id']}/blocked-slots",
        json={"date": GAME_DAY, "start_time": "10:00", "end_time": "12:00", "reason": "league"},
        headers=admin,
    )
    assert blocked.status_code == 201

    slots = client.get(
        f"/api/v1/pitches/{pitch['id']}/availability", params={"date": GAME_DAY}
    ).json()["available_slots"]
    assert "10:00" not in slots
    assert "11:00" not in slots
    assert "12:00" in slots


def test_booking_lifecycle_over_http(api_client):
    client, SessionLocal = api_client
    admin = _admin_headers(client, SessionLocal)
    pitch = _create_pitch(client, admin)
    first = _user_headers(client, "first")
    second = _user_headers(client, "second")

    created = _book(client, first, pitch["id"])
    assert created.status_code == 201
    booking = created.json()
    assert booking["status"] == "PENDING"

    conflict = _book(client, second, pitch["id"])
    assert conflict.status_code == 409
    assert conflict.json()["detail"]["code"] == "SLOT_ALREADY_BOOKED"

    confirmed = client.post(f"/api/v1/bookings/{booking['id']}/confirm", headers=admin)
    assert confirmed.status_code == 200
    assert confirmed.json()["status"] == "CONFIRMED"

    cancelled = client.post(
        f"/api/v1/bookings/{booking['id']}/cancel", json={"reason": "injury"}, headers=first
    )
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "CANCELLED"
    assert cancelled.json()["cancel_reason"] == "injury"

    again = client.post(f"/api/v1/bookings/{booking['id']}/cancel", headers=first)
    assert again.status_code == 400
    assert again.json()["detail"]["code"] == "INVALID_STATUS"

    retry = _book(client, second, pitch["id"])
    assert retry.status_code == 201


def test_booking_unknown_pitch(api_client):
    client, _ = api_client
    headers = _user_headers(client, "player")

    response = _book(client, headers, 999)

    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "NOT_FOUND"


def test_booking_unaligned_start(api_client):
    client, SessionLocal = api_client
    pitch = _create_pitch(client, _admin_headers(client, SessionLocal))
    headers = _user_headers(client, "player")

    response = _book(client, headers, pitch["id"], start="18:30")

    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "VALIDATION_ERROR"


def test_other_users_booking_is_forbidden(api_client):
    client, SessionLocal = api_client
    admin = _admin_headers(client, SessionLocal)
    pitch = _create_pitch(client, admin)
    owner = _user_headers(client, "owner")
    stranger = _user_headers(client, "stranger")
    booking = _book(client, owner, pitch["id"]).json()

    assert client.get(f"/api/v1/bookings/{booking['id']}", headers=stranger).status_code == 403
    cancel = client.post(f"/api/v1/bookings/{booking['id']}/cancel", headers=stranger)
    assert cancel.status_code == 403
    assert cancel.json()["detail"]["code"] == "FORBIDDEN"
    assert client.get(f"/api/v1/bookings/{booking['id']}", headers=admin).status_code == 200


def test_confirm_requires_admin(api_client):
    client, SessionLocal = api_client
    pitch = _create_pitch(client, _admin_headers(client, SessionLocal))
    headers = _user_headers(client, "player")
    booking = _book(client, headers, pitch["id"]).json()

    response = client.post(f"/api/v1/bookings/{booking['id']}/confirm", headers=headers)

    assert response.status_code == 403


def test_my_bookings_filter_by_status(api_client):
    client, SessionLocal = api_client
    pitch = _create_pitch(client, _admin_headers(client, SessionLocal))
    headers = _user_headers(client, "player")
    kept = _book(client, headers, pitch["id"], start="17:00").json()
    dropped = _book(client, headers, pitch["id"], start="18:00").json()
    client.post(f"/api/v1/bookings/{dropped['id']}/cancel", headers=headers)

    everything = client.get("/api/v1/bookings/me", headers=headers).json()
    pending = client.get("/api/v1/bookings/me", params={"status": "PENDING"}, headers=headers).json()

    assert {b["id"] for b in everything} == {kept["id"], dropped["id"]}
    assert [b["id"] for b in pending] == [kept["id"]]


def test_admin_expire_endpoint(api_client):
    client, SessionLocal = api_client
    admin = _admin_headers(client, SessionLocal)

    response = client.post("/api/v1/bookings/expire", headers=admin)

    assert response.status_code == 200
    assert response.json() == {"expired": 0}


def test_storage_outage_returns_retryable_error(api_client, monkeypatch):
    client, SessionLocal = api_client
    pitch = _create_pitch(client, _admin_headers(client, SessionLocal))
    headers = _user_headers(client, "player")

    def unavailable(*_args, **_kwargs):
        raise booking_service.StorageUnavailable("Storage is temporarily unavailable, retry later")

    monkeypatch.setattr(booking_service, "reserve", unavailable)

    response = _book(client, headers, pitch["id"])

    assert response.status_code == 503
    assert response.json()["detail"]["code"] == "STORAGE_UNAVAILABLE"
    assert response.headers["Retry-After"] == "1"


def test_my_bookings_during_storage_outage(api_client, monkeypatch):
    client, _ = api_client
    headers = _user_headers(client, "player")

    def unavailable(*_args, **_kwargs):
        raise booking_service.StorageUnavailable("Storage is temporarily unavailable, retry later")

    monkeypatch.setattr(booking_service, "list_user_bookings", unavailable)

    response = client.get("/api/v1/bookings/me", headers=headers)

    assert response.status_code == 503
    assert response.json()["detail"]["code"] == "STORAGE_UNAVAILABLE"
    assert response.headers["Retry-After"] == "1"


def test_pitch_listing_during_storage_outage(api_client, monkeypatch):
    client, _ = api_client

    def unavailable(*_args, **_kwargs):
        raise booking_service.StorageUnavailable("Storage is temporarily unavailable, retry later")

    monkeypatch.setattr(pitch_service, "list_pitches", unavailable)

    response = client.get("/api/v1/pitches")

    assert response.status_code == 503
    assert response.json()["detail"]["code"] == "STORAGE_UNAVAILABLE"


def test_booking_rejects_start_time_with_offset(api_client):
    client, SessionLocal = api_client
    pitch = _create_pitch(client, _admin_headers(client, SessionLocal))
    headers = _user_headers(client, "player")

    response = _book(client, headers, pitch["id"], start="18:00:00+03:00")

    assert response.status_code == 422
    with SessionLocal() as db:
        assert db.query(models.Booking).count() == 0
