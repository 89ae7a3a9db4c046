import os
import sys
from pathlib import Path
from typing import Any, Dict, List

import pytest

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Set testing environment before the application is imported
os.environ["TESTING"] = "1"
os.environ["TEST_DATABASE_URL"] = "sqlite:///./test.db"

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from clinic.main import app
from clinic.core.database import Base, get_db, get_redis
from clinic.api.deps import get_appointment_feed, get_messaging_adapter
from clinic.services.auth_service import AuthService
from clinic.services.live_feed import AppointmentFeed
from clinic.services.messaging import ClinicProfile, MessagingAdapter

# Create test database
SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "AdminPassword123"

CLINIC = ClinicProfile(name="Dr. Basavaiah Ayurveda Hospital", phone="+916281508325")

def override_get_db():
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()

class FakeRedis:
    def __init__(self):
        self.data = {}

    def setex(self, key, ttl, value):
        self.data[key] = str(value)
        return True

    def get(self, key):
        return self.data.get(key)

    def incr(self, key):
        self.data[key] = str(int(self.data.get(key, 0)) + 1)
        return int(self.data[key])

class RecordingGateway:
    """Messaging gateway that remembers payloads, optionally failing some."""

    def __init__(self, fail_for=()):
        self.payloads: List[Dict[str, Any]] = []
        self.fail_for = set(fail_for)

    async def send(self, payload):
        if payload["recipientRole"] in self.fail_for:
            raise RuntimeError("messaging function unavailable")
        self.payloads.append(payload)
        return {"success": True, "recipient": payload["phoneNumber"]}

    def messages_for(self, role):
        return [p for p in self.payloads if p["recipientRole"] == role]

class MemoryDeliveryLog:
    def __init__(self):
        self.entries: List[Dict[str, Any]] = []

    def record(self, **fields):
        self.entries.append(fields)

app.dependency_overrides[get_db] = override_get_db

@pytest.fixture(scope="function")
def test_db():
    # Create tables
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)

@pytest.fixture
def feed(test_db):
    feed = AppointmentFeed(TestingSessionLocal)
    app.dependency_overrides[get_appointment_feed] = lambda: feed
    yield feed
    app.dependency_overrides.pop(get_appointment_feed, None)

@pytest.fixture
def redis_stub():
    fake = FakeRedis()
    app.dependency_overrides[get_redis] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_redis, None)

@pytest.fixture
def gateway():
    return RecordingGateway()

@pytest.fixture
def delivery_log():
    return MemoryDeliveryLog()

@pytest.fixture
def messaging(gateway, delivery_log):
    adapter = MessagingAdapter(
        gateway,
        delivery_log,
        admin_phone="+916281508325",
        country_code="91",
        clinic=CLINIC,
    )
    app.dependency_overrides[get_messaging_adapter] = lambda: adapter
    yield adapter
    app.dependency_overrides.pop(get_messaging_adapter, None)

@pytest.fixture
def client(test_db, feed, redis_stub, messaging):
    with TestClient(app, base_url="http://testserver") as test_client:
        yield test_client

@pytest.fixture
def admin_user(test_db):
    db = TestingSessionLocal()
    try:
        user = AuthService(db).create_admin(ADMIN_EMAIL, ADMIN_PASSWORD)
        db.expunge(user)
        return user
    finally:
        db.close()

@pytest.fixture
def admin_token(client, admin_user):
    response = client.post(
        "/api/v1/auth/login",
        json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD}
    )
    assert response.status_code == 200
    return response.json()["access_token"]

@pytest.fixture
def admin_headers(admin_token):
    return {"Authorization": f"Bearer {admin_token}"}
