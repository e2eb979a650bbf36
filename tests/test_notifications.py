import asyncio

from mongomock_motor import AsyncMongoMockClient

from conftest import CramMd5SMTP
from services import notification_service


def make_hospital(hospital_id, latitude, longitude):
    return {
        "_id": hospital_id,
        "name": hospital_id.title(),
        "email": f"{hospital_id}@mediledger.com",
        "latitude": latitude,
        "longitude": longitude,
    }


def test_broadcast_emergency_targets_neighbours_only(monkeypatch):
    sent = []

    async def fake_send(to_email, subject, content):
        sent.append((to_email, subject))
        return True

    monkeypatch.setattr(notification_service, "send_email", fake_send)

    requester = make_hospital("delhi", 28.56, 77.28)
    order = {"_id": "ORD-1", "medicine_name": "Insulin", "quantity": 5}

    async def scenario():
        db = AsyncMongoMockClient()["broadcast_test"]
        await db["hospitals"].insert_many([
            requester,
            make_hospital("noida", 28.53, 77.39),
            make_hospital("mumbai", 19.07, 72.87),
            {**make_hospital("unknown", 0, 0), "latitude": None},
        ])
        return await notification_service.broadcast_emergency(db, order, requester, radius_km=50)

    recipients = asyncio.run(scenario())

    assert recipients == ["noida"]
    assert sent == [("noida@mediledger.com", "SOS: Insulin needed urgently")]


def test_broadcast_without_location_skips_neighbours():
    requester = {"_id": "lost", "name": "Lost", "email": "lost@mediledger.com"}
    order = {"_id": "ORD-2", "medicine_name": "Insulin", "quantity": 5}

    recipients = asyncio.run(
        notification_service.broadcast_emergency(AsyncMongoMockClient()["broadcast_test"], order, requester)
    )

    assert recipients == []


def test_send_email_is_skipped_without_smtp_settings():
    assert asyncio.run(notification_service.send_email("x@mediledger.com", "s", "c")) is False


def test_send_email_reports_non_smtp_errors(monkeypatch):
    monkeypatch.setattr(notification_service, "SENDER_EMAIL", "sos@mediledger.com")
    monkeypatch.setattr(notification_service, "SENDER_PASSWORD", None)
    monkeypatch.setattr(notification_service.smtplib, "SMTP", CramMd5SMTP)

    assert asyncio.run(notification_service.send_email("x@mediledger.com", "s", "c")) is False
