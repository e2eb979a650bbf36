# services/order_service.py
"""
Order lifecycle.

An order starts ``pending`` and ends ``completed`` or ``cancelled``; both end
states are final. Every transition is committed by a single conditional update
whose filter requires the order to still be ``pending``, so two concurrent
completions of the same order cannot both succeed and reputation is credited
once per completed order.

Crediting reputation is a second write on the destination hospital. If it
fails the order stays completed and the failure is logged with the order id
for manual reconciliation.
"""
import logging
from typing import Optional
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from database import HOSPITALS, ORDERS
from exceptions import NotAuthorized, NotFound, ValidationFailed
from models.orders import OrderStatus, PaymentStatus, TERMINAL_STATUSES
from security import AuthContext
from services.notification_service import broadcast_emergency
from utils import generate_order_id, get_current_datetime

logger = logging.getLogger(__name__)


async def get_order(db: AsyncIOMotorDatabase, order_id: str) -> dict:
    order = await db[ORDERS].find_one({"_id": order_id})
    if not order:
        raise NotFound("Order not found")
    return order


def is_participant(order: dict, hospital_id: str) -> bool:
    return hospital_id in (order["from_hospital_id"], order["to_hospital_id"])


async def create_order(
    db: AsyncIOMotorDatabase,
    auth: AuthContext,
    medicine_name: str,
    quantity: int,
    to_hospital_id: str,
    emergency: bool = False,
) -> dict:
    """Record a transfer request from the caller to ``to_hospital_id``."""
    destination = await db[HOSPITALS].find_one({"_id": to_hospital_id}, {"_id": 1})
    if not destination:
        raise NotFound("Destination hospital not found")

    now = get_current_datetime()
    order = {
        "_id": generate_order_id(),
        "medicine_name": medicine_name,
        "quantity": quantity,
        "from_hospital_id": auth.hospital_id,
        "to_hospital_id": to_hospital_id,
        "emergency": emergency,
        "status": OrderStatus.PENDING.value,
        "created_at": now,
        "updated_at": now,
    }
    await db[ORDERS].insert_one(order)
    logger.info(
        f"Order {order['_id']} created: {auth.hospital_id} -> {to_hospital_id}, "
        f"{quantity} x {medicine_name}{' (EMERGENCY)' if emergency else ''}"
    )

    if emergency:
        # The order is already stored; a failed broadcast must not fail the request
        try:
            requester = await db[HOSPITALS].find_one({"_id": auth.hospital_id}, {"password": 0})
            if requester:
                await broadcast_emergency(db, order, requester)
        except Exception:
            logger.error(f"SOS broadcast failed for order {order['_id']}", exc_info=True)

    return order


async def credit_reputation(db: AsyncIOMotorDatabase, hospital_id: str, order_id: str) -> None:
    """Add one reputation point to the hospital that fulfilled ``order_id``."""
    try:
        result = await db[HOSPITALS].update_one(
            {"_id": hospital_id},
            {"$inc": {"reputation": 1}, "$set": {"updated_at": get_current_datetime()}}
        )
    except Exception:
        logger.error(f"Reputation credit failed for hospital {hospital_id} (order {order_id})", exc_info=True)
        raise

    if result.matched_count == 0:
        logger.error(f"Reputation not credited: hospital {hospital_id} missing (order {order_id})")
    else:
        logger.info(f"Reputation +1 for hospital {hospital_id} (order {order_id})")


async def transition(
    db: AsyncIOMotorDatabase,
    order: dict,
    status: OrderStatus,
    extra: Optional[dict] = None,
) -> dict:
    """Move a pending order to ``status`` and persist ``extra`` fields with it.

    Raises ValidationFailed when the order already reached an end state,
    including when another request finished it first.
    """
    current = OrderStatus(order["status"])
    if current in TERMINAL_STATUSES:
        raise ValidationFailed(f"Order is already {current.value}")

    update = {"status": status.value, "updated_at": get_current_datetime()}
    if extra:
        update.update(extra)

    updated = await db[ORDERS].find_one_and_update(
        {"_id": order["_id"], "status": OrderStatus.PENDING.value},
        {"$set": update},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        latest = await get_order(db, order["_id"])
        raise ValidationFailed(f"Order is already {latest['status']}")

    if status != current:
        logger.info(f"Order {order['_id']}: {current.value} -> {status.value}")

    if status == OrderStatus.COMPLETED:
        await credit_reputation(db, updated["to_hospital_id"], updated["_id"])

    return updated


async def update_status(
    db: AsyncIOMotorDatabase,
    auth: AuthContext,
    order_id: str,
    status: OrderStatus,
) -> dict:
    order = await get_order(db, order_id)
    if not is_participant(order, auth.hospital_id):
        raise NotAuthorized("Not authorized to update this order")
    return await transition(db, order, status)


async def complete_with_transaction(
    db: AsyncIOMotorDatabase,
    auth: AuthContext,
    order_id: str,
    transaction_hash: str,
    nft_certificate_id: Optional[str] = None,
) -> dict:
    """Complete an order confirmed on-chain by its receiving hospital."""
    order = await get_order(db, order_id)
    if order["to_hospital_id"] != auth.hospital_id:
        raise NotAuthorized("Not authorized to complete this order")

    extra = {"transaction_hash": transaction_hash}
    if nft_certificate_id:
        extra["nft_certificate_id"] = nft_certificate_id
    return await transition(db, order, OrderStatus.COMPLETED, extra)


async def complete_with_payment(db: AsyncIOMotorDatabase, order: dict, payment_id: str) -> dict:
    """Complete an order whose gateway payment has been confirmed."""
    return await transition(db, order, OrderStatus.COMPLETED, {
        "razorpay_payment_id": payment_id,
        "payment_status": PaymentStatus.PAID.value,
    })


async def attach_payment_intent(db: AsyncIOMotorDatabase, order_id: str, gateway_order_id: str) -> None:
    await db[ORDERS].update_one(
        {"_id": order_id},
        {"$set": {
            "razorpay_order_id": gateway_order_id,
            "payment_method": "razorpay",
            "payment_status": PaymentStatus.CREATED.value,
            "updated_at": get_current_datetime(),
        }}
    )


async def mark_payment_failed(db: AsyncIOMotorDatabase, order_id: str, payment_id: Optional[str]) -> bool:
    result = await db[ORDERS].update_one(
        {"_id": order_id, "status": OrderStatus.PENDING.value},
        {"$set": {
            "razorpay_payment_id": payment_id,
            "payment_status": PaymentStatus.FAILED.value,
            "updated_at": get_current_datetime(),
        }}
    )
    return result.modified_count > 0
