import os

# Generous limits so the shared app's rate limiter never trips across the suite
os.environ.setdefault("RATE_LIMIT_MAX_REQUESTS", "100000")
os.environ.setdefault("AUTH_RATE_LIMIT_MAX_REQUESTS", "100000")
os.environ.setdefault("LOG_FILE", "logs/test-errors.log")

import pytest
from fastapi.testclient import TestClient

from fakes import FakeSupabase
from app.api.deps import get_auth, get_db
from app.core.security import get_identity
from app.main import app
from app.models.db_models import UserRole
from app.services.auth_service import Identity
from app.services.db_service import Database

CUSTOMER_ID = "11111111-1111-4111-8111-111111111111"
OTHER_CUSTOMER_ID = "22222222-2222-4222-8222-222222222222"
CLEANER_ID = "33333333-3333-4333-8333-333333333333"
ADMIN_ID = "44444444-4444-4444-8444-444444444444"

CREATED = "2026-01-01T09:00:00+00:00"


def seed_tables():
    users = [
        {"id": CUSTOMER_ID, "email": "jane@example.com", "role": "customer", "created_at": CREATED, "updated_at": CREATED},
        {"id": OTHER_CUSTOMER_ID, "email": "sam@example.com", "role": "customer", "created_at": CREATED, "updated_at": CREATED},
        {"id": CLEANER_ID, "email": "cleo@example.com", "role": "cleaner", "created_at": CREATED, "updated_at": CREATED},
        {"id": ADMIN_ID, "email": "admin@example.com", "role": "admin", "created_at": CREATED, "updated_at": CREATED},
    ]
    profiles = [
        {
            "id": CUSTOMER_ID, "first_name": "Jane", "last_name": "Citizen", "phone": "0411111111",
            "address": "1 Main St", "city": "Bondi", "state": "NSW", "postcode": "2026",
            "metadata": {"pets": True}, "created_at": CREATED, "updated_at": CREATED,
        },
    ]
    cities = [
        {"id": "c-1", "name": "Sydney", "slug": "sydney", "is_active": True},
        {"id": "c-2", "name": "Melbourne", "slug": "melbourne", "is_active": True},
        {"id": "c-3", "name": "Hobart", "slug": "hobart", "is_active": False},
    ]
    services = [
        {
            "id": "s-1", "name": "Regular Cleaning", "slug": "regular-cleaning", "description": "Weekly tidy",
            "price": "From $120", "features": ["Kitchen", "Bathroom"], "is_active": True,
        },
        {
            "id": "s-2", "name": "Deep Cleaning", "slug": "deep-cleaning", "description": "Top to bottom",
            "price": "From $180", "features": ["Ovens", "Skirting"], "is_active": True,
        },
    ]
    content = [
        {
            "id": "ct-1", "type": "city", "slug": "sydney", "status": "published",
            "data": {"headline": "Cleaners in Sydney"}, "metadata": {"title": "Sydney house cleaning"},
        },
    ]
    return {
        "users": users,
        "profiles": profiles,
        "bookings": [],
        "cities": cities,
        "services": services,
        "content": content,
    }


@pytest.fixture
def store():
    return FakeSupabase(seed_tables())


@pytest.fixture
def db(store):
    return Database(store, pool_size=5, cache_ttl=60)


class SessionHolder:
    """Identity the overridden session gate hands to routes; None means signed out."""

    def __init__(self):
        self.identity = Identity(id=CUSTOMER_ID, email="jane@example.com", role=UserRole.CUSTOMER)

    def sign_in(self, user_id, email, role=UserRole.CUSTOMER):
        self.identity = Identity(id=user_id, email=email, role=role)

    def sign_out(self):
        self.identity = None


@pytest.fixture
def session():
    return SessionHolder()


@pytest.fixture
def client(db, session):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_identity] = lambda: session.identity
    app.dependency_overrides[get_auth] = lambda: None
    previous_db = getattr(app.state, "db", None)
    app.state.db = db
    try:
        yield TestClient(app, follow_redirects=False)
    finally:
        app.dependency_overrides.clear()
        app.state.db = previous_db
