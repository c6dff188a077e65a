"""
Pytest configuration for the Divan API tests.

The environment is pinned BEFORE any divan import so the engine binds to an
in-memory SQLite database and no external provider is configured:
- DATABASE_URL=sqlite:// (StaticPool, one shared connection)
- no REDIS_URL, so rate limiting fails open
- no RESEND_API_KEY, so emails raise UpstreamFailure unless patched
"""

import hashlib
import hmac
import os
import time as _time

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key-for-divan"
os.environ["CHECK_EMAIL_MX"] = "false"
os.environ["COOKIE_SECURE"] = "false"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
os.environ["DAILY_API_KEY"] = "daily-test-key"
os.environ["DAILY_DOMAIN"] = "divan.daily.co"
for _key in ("REDIS_URL", "RESEND_API_KEY", "STRIPE_SECRET_KEY", "PROFESSIONAL_EMAIL"):
    os.environ.pop(_key, None)

from datetime import datetime, time, timedelta  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from divan.auth import issue_session_token  # noqa: E402
from divan.config import get_settings  # noqa: E402
from divan.database import Base, SessionLocal, engine  # noqa: E402
from divan.main import app  # noqa: E402
from divan.models import (  # noqa: E402
    Appointment,
    AvailabilityRule,
    Order,
    OrderItem,
    Product,
    Profile,
    SessionCredit,
)
from divan.security_utils import generate_pix_reference, hash_password_bcrypt  # noqa: E402
from divan.shared.clock import utcnow  # noqa: E402

TEST_PASSWORD = "segredo123"


# =============================================================================
# Database & Client
# =============================================================================


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def db():
    """Fresh schema per test"""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    return TestClient(app)


# =============================================================================
# Factories
# =============================================================================


def make_profile(
    db,
    name="Cliente Teste",
    email="cliente@example.com",
    role="client",
    status="active",
    verified=True,
    deleted=False,
):
    profile = Profile(
        name=name,
        email=email,
        phone="5511999998888",
        password_hash=hash_password_bcrypt(TEST_PASSWORD),
        role=role,
        status=status,
        email_verified_at=utcnow() if verified else None,
        deleted_at=utcnow() if deleted else None,
    )
    db.add(profile)
    db.commit()
    db.refresh(profile)
    return profile


def auth_headers(profile, settings=None):
    token = issue_session_token(profile.id, settings or get_settings())
    return {"Authorization": f"Bearer {token}"}


def make_product(db, professional, appointment_type="video", sessions_count=4, price_cents=20000):
    product = Product(
        professional_id=professional.id,
        title=f"Pacote {sessions_count} sessões ({appointment_type})",
        appointment_type=appointment_type,
        sessions_count=sessions_count,
        price_cents=price_cents,
        is_active=True,
    )
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


def make_pix_order(db, buyer, product, status="pending_pix"):
    order = Order(
        user_id=buyer.id,
        professional_id=product.professional_id,
        product_id=product.id,
        status=status,
        amount_cents=product.price_cents,
        payment_method="pix",
        pix_reference=generate_pix_reference(),
    )
    order.items.append(
        OrderItem(
            product_id=product.id,
            title=product.title,
            appointment_type=product.appointment_type,
            sessions_count=product.sessions_count,
            price_cents=product.price_cents,
        )
    )
    db.add(order)
    db.commit()
    db.refresh(order)
    return order


def make_credit(db, buyer, professional, appointment_type="video", total=4, used=0, order=None):
    if order is None:
        product = make_product(db, professional, appointment_type, sessions_count=total)
        order = make_pix_order(db, buyer, product, status="paid")
    credit = SessionCredit(
        user_id=buyer.id,
        professional_id=professional.id,
        appointment_type=appointment_type,
        total=total,
        used=used,
        status="active" if used < total else "consumed",
        order_id=order.id,
    )
    db.add(credit)
    db.commit()
    db.refresh(credit)
    return credit


def make_rule(db, professional, weekday, start=time(9, 0), end=time(18, 0), appointment_type="video"):
    rule = AvailabilityRule(
        professional_id=professional.id,
        weekday=weekday,
        start_time=start,
        end_time=end,
        appointment_type=appointment_type,
        is_active=True,
    )
    db.add(rule)
    db.commit()
    db.refresh(rule)
    return rule


def make_appointment(db, buyer, professional, start_at, minutes=50, appointment_type="video", status="scheduled", credit=None):
    appointment = Appointment(
        user_id=buyer.id,
        professional_id=professional.id,
        appointment_type=appointment_type,
        status=status,
        start_at=start_at,
        end_at=start_at + timedelta(minutes=minutes),
        credit_id=credit.id if credit else None,
    )
    db.add(appointment)
    db.commit()
    db.refresh(appointment)
    return appointment


def sunday_weekday(day) -> int:
    return (day.weekday() + 1) % 7


def stripe_signature(payload: bytes, secret: str, timestamp=None) -> str:
    """Stripe-Signature header value as the processor sends it"""
    timestamp = timestamp or int(_time.time())
    digest = hmac.new(secret.encode(), f"{timestamp}.".encode() + payload, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


class FixedClock:
    """Injectable clock returning a fixed naive-UTC instant"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


# =============================================================================
# Common Profiles
# =============================================================================


@pytest.fixture
def professional(db):
    return make_profile(db, name="Dra. Ana Freud", email="ana@divan.com.br", role="professional")


@pytest.fixture
def client_profile(db):
    return make_profile(db)
