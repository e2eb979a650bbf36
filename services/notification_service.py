# services/notification_service.py
import smtplib
from email.message import EmailMessage
import os
import logging
import asyncio
from typing import List
from motor.motor_asyncio import AsyncIOMotorDatabase

from config import EMERGENCY_BROADCAST_RADIUS_KM
from database import HOSPITALS
from services.geo import location_of, within_radius

logger = logging.getLogger(__name__)

SENDER_EMAIL = os.getenv("SENDER_EMAIL")
SENDER_PASSWORD = os.getenv("SENDER_PASSWORD")
SMTP_SERVER = os.getenv("SMTP_SERVER", "smtp.gmail.com")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))

async def send_email(to_email: str, subject: str, content: str) -> bool:
    if not SENDER_EMAIL:
        logger.debug(f"SMTP not configured, skipping mail to {to_email}")
        return False

    try:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = SENDER_EMAIL
        msg["To"] = to_email
        msg.set_content(content)

        def sync_send():
            with smtplib.SMTP(SMTP_SERVER, SMTP_PORT) as server:
                server.starttls()
                server.login(SENDER_EMAIL, SENDER_PASSWORD)
                server.send_message(msg)
                logger.info(f"Email sent successfully to {to_email}")

        await asyncio.to_thread(sync_send)
        return True
    except Exception as e:
        logger.error(f"Failed to send email to {to_email}: {e}")
        return False


async def send_emergency_email(to_email: str, name: str, requester: dict, order: dict, distance: float) -> bool:
    subject = f"SOS: {order['medicine_name']} needed urgently"
    content = f"""
    Hello {name},

    {requester['name']} ({distance} km away) urgently needs {order['quantity']} units of {order['medicine_name']}.
    If you can supply it, please respond to order {order['_id']} on MediLedger.

    Regards,
    MediLedger Team
    """
    return await send_email(to_email, subject, content)


async def broadcast_emergency(
    db: AsyncIOMotorDatabase,
    order: dict,
    requester: dict,
    radius_km: float = EMERGENCY_BROADCAST_RADIUS_KM,
) -> List[str]:
    """Alert hospitals near the requester about an emergency order.

    Returns the ids of the hospitals inside the broadcast radius. Mail delivery
    failures are logged and never propagate to the caller.
    """
    logger.warning(
        f"SOS BROADCAST: Hospital {requester['_id']} needs {order['quantity']} "
        f"of {order['medicine_name']} urgently! (order {order['_id']})"
    )

    origin = location_of(requester)
    if origin is None:
        logger.warning(f"Hospital {requester['_id']} has no location, SOS not broadcast to neighbours")
        return []

    candidates = await db[HOSPITALS].find(
        {"_id": {"$ne": requester["_id"]}},
        {"password": 0}
    ).to_list(length=None)

    recipients = []
    for hospital, distance in within_radius(origin, candidates, radius_km):
        await send_emergency_email(hospital["email"], hospital["name"], requester, order, distance)
        recipients.append(hospital["_id"])

    logger.info(f"SOS for order {order['_id']} sent to {len(recipients)} nearby hospital(s)")
    return recipients
