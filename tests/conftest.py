import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("PAYMENT_WEBHOOK_SECRET", "whsec_test")

import json
import time
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.session import Base, get_db
from app.models.user import User
from app.models.hotel import Hotel
from app.models.booking import Booking, BOOKING_PENDING, PAYMENT_PENDING
from app.models.payment import Payment  # noqa: F401
from app.models.review import Review  # noqa: F401
from app.models.audit_log import AuditLog  # noqa: F401
from app.services.payment_client import compute_signature
from app.services.pricing_service import nights_between

NOW = datetime(2026, 11, 1, 12, 0, tzinfo=timezone.utc)
WEBHOOK_SECRET = "whsec_test"


class FakeProcessor:
    """Stands in for PaymentProcessorClient; records intents in memory."""

    def __init__(self):
        self.intents: dict[str, dict] = {}
        self.created_amounts: list[int] = []

    def create_payment_intent(self, *, amount: int, currency: str, metadata: dict) -> dict:
        intent_id = f"pi_test_{len(self.intents) + 1}"
        intent = {
            "id": intent_id,
            "client_secret": f"{intent_id}_secret",
            "status": "requires_payment_method",
            "amount": amount,
            "currency": currency,
            "metadata": dict(metadata),
        }
        self.intents[intent_id] = intent
        self.created_amounts.append(amount)
        return intent

    def retrieve_payment_intent(self, intent_id: str) -> dict:
        return self.intents[intent_id]

    def succeed(self, intent_id: str) -> None:
        self.intents[intent_id]["status"] = "succeeded"


def signed_event(intent: dict, event_type: str = "payment_intent.succeeded",
                 secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> tuple[bytes, str, int]:
    ts = int(time.time()) if timestamp is None else timestamp
    body = json.dumps({
        "id": f"evt_{uuid.uuid4().hex[:12]}",
        "type": event_type,
        "data": {"object": intent},
    }).encode("utf-8")
    header = f"t={ts},v1={compute_signature(body, str(ts), secret)}"
    return body, header, ts


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    Base.metadata.drop_all(eng)
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    s = session_factory()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def processor():
    return FakeProcessor()


@pytest.fixture
def make_user(db):
    def _make(role: str = "customer", name: str = "Guest") -> User:
        u = User(
            id=str(uuid.uuid4()),
            email=f"{uuid.uuid4().hex[:8]}@example.test",
            full_name=name,
            role=role,
            is_active=True,
        )
        db.add(u)
        db.commit()
        return u
    return _make


@pytest.fixture
def make_hotel(db):
    def _make(price: str = "100.00", total_rooms: int = 10, author: User | None = None) -> Hotel:
        h = Hotel(
            id=str(uuid.uuid4()),
            name="Test Hotel",
            price=Decimal(price),
            total_rooms=total_rooms,
            author_id=author.id if author else None,
        )
        db.add(h)
        db.commit()
        return h
    return _make


@pytest.fixture
def make_booking(db):
    def _make(hotel: Hotel, user: User, check_in: datetime, check_out: datetime, rooms: int = 1,
              status: str = BOOKING_PENDING, payment_status: str = PAYMENT_PENDING) -> Booking:
        b = Booking(
            id=str(uuid.uuid4()),
            hotel_id=hotel.id,
            user_id=user.id,
            check_in_date=check_in,
            check_out_date=check_out,
            number_of_rooms=rooms,
            total_price=Decimal(hotel.price) * rooms * nights_between(check_in, check_out),
            status=status,
            payment_status=payment_status,
        )
        db.add(b)
        db.commit()
        return b
    return _make


@pytest.fixture
def client(session_factory, processor):
    from app.main import app
    from app.api.deps import get_payment_client

    def _get_db():
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_payment_client] = lambda: processor
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    from app.core.security import create_access_token

    def _headers(user: User) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}
    return _headers


def days_from(base: datetime, days: float) -> datetime:
    return base + timedelta(days=days)
