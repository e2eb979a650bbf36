import hashlib
import hmac

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from main import create_app
from services import notification_service, recognition_service
from services.payment_service import RazorpayService, get_payment_gateway

KEY_SECRET = "test-key-secret"
WEBHOOK_SECRET = "test-webhook-secret"

# Two hospitals roughly 11 km apart in Delhi NCR
HOSPITAL_A = {"name": "Apollo Hospital Delhi", "email": "apollo@mediledger.com", "lat": 28.56, "lon": 77.28,
              "wallet": "0x1234567890123456789012345678901234567890"}
HOSPITAL_B = {"name": "Fortis Hospital Noida", "email": "fortis@mediledger.com", "lat": 28.53, "lon": 77.39,
              "wallet": "0x2345678901234567890123456789012345678901"}
HOSPITAL_FAR = {"name": "AIIMS Jodhpur", "email": "aiims.jodhpur@mediledger.com", "lat": 26.24, "lon": 73.02,
                "wallet": None}


def hex_hmac(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


class CramMd5SMTP:
    """SMTP stand-in whose login trips over a missing password."""

    def __init__(self, host, port):
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        pass

    def login(self, user, password):
        password.encode()

    def send_message(self, msg):
        raise AssertionError("login should have failed")


@pytest.fixture(autouse=True)
def offline_collaborators(monkeypatch):
    monkeypatch.setattr(notification_service, "SENDER_EMAIL", None)
    monkeypatch.setattr(recognition_service, "GEMINI_API_KEY", "")


@pytest.fixture()
def gateway():
    return RazorpayService("rzp_test_key", KEY_SECRET, WEBHOOK_SECRET, base_url="https://razorpay.test/v1")


@pytest.fixture()
def app(gateway):
    application = create_app(database=AsyncMongoMockClient()["mediledger_test"])
    application.dependency_overrides[get_payment_gateway] = lambda: gateway
    return application


@pytest.fixture()
def client(app):
    return TestClient(app)


@pytest.fixture()
def register(client):
    """Register a hospital and return (hospital_id, auth headers)."""
    def _register(hospital: dict, password: str = "secret123"):
        payload = {
            "name": hospital["name"],
            "email": hospital["email"],
            "password": password,
            "latitude": hospital["lat"],
            "longitude": hospital["lon"],
        }
        if hospital.get("wallet"):
            payload["walletAddress"] = hospital["wallet"]
        response = client.post("/api/auth/register", json=payload)
        assert response.status_code == 201, response.text
        data = response.json()["data"]
        return data["id"], {"Authorization": f"Bearer {data['token']}"}
    return _register


@pytest.fixture()
def hospital_a(register):
    return register(HOSPITAL_A)


@pytest.fixture()
def hospital_b(register):
    return register(HOSPITAL_B)
