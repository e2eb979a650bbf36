import asyncio
import json
import logging
from fastapi import APIRouter, Depends, Header, Request, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Optional

from database import get_database, ORDERS
from exceptions import ValidationFailed
from models.orders import (
    OrderCreate, EmergencyOrderCreate, OrderStatus, OrderStatusUpdate,
    OrderComplete, OrderResponse, PaymentCreate, PaymentIntent, PaymentVerify
)
from security import AuthContext, get_current_hospital
from services import order_service
from services.payment_service import RazorpayService, get_payment_gateway, to_minor_units
from utils import success

logger = logging.getLogger(__name__)

router = APIRouter()


def order_payload(order: dict) -> dict:
    return OrderResponse.from_doc(order).to_wire()


def orders_payload(orders: list) -> dict:
    data = [order_payload(o) for o in orders]
    return success(data, results=len(data))


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_order(
    request: OrderCreate,
    auth: AuthContext = Depends(get_current_hospital),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    order = await order_service.create_order(
        db, auth,
        medicine_name=request.medicine_name,
        quantity=request.quantity,
        to_hospital_id=request.to_hospital_id,
        emergency=request.emergency,
    )
    return success(order_payload(order))


@router.post("/emergency", status_code=status.HTTP_201_CREATED)
async def create_emergency_order(
    request: EmergencyOrderCreate,
    auth: AuthContext = Depends(get_current_hospital),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    order = await order_service.create_order(
        db, auth,
        medicine_name=request.medicine_name,
        quantity=request.quantity,
        to_hospital_id=request.to_hospital_id,
        emergency=True,
    )
    return success(order_payload(order))


@router.get("/")
async def list_orders(db: AsyncIOMotorDatabase = Depends(get_database)):
    orders = await db[ORDERS].find({}).sort("created_at", -1).to_list(length=None)
    return orders_payload(orders)


@router.get("/my-orders")
async def list_my_orders(
    auth: AuthContext = Depends(get_current_hospital),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Orders the caller sent or received"""
    orders = await db[ORDERS].find({
        "$or": [
            {"from_hospital_id": auth.hospital_id},
            {"to_hospital_id": auth.hospital_id}
        ]
    }).sort("created_at", -1).to_list(length=None)
    return orders_payload(orders)


@router.post("/payment")
async def create_payment(
    request: PaymentCreate,
    auth: AuthContext = Depends(get_current_hospital),
    db: AsyncIOMotorDatabase = Depends(get_database),
    gateway: RazorpayService = Depends(get_payment_gateway)
):
    """Open a Razorpay order for an existing transfer order"""
    order = await order_service.get_order(db, request.order_id)
    if order["status"] != OrderStatus.PENDING.value:
        raise ValidationFailed(f"Order is already {order['status']}")

    gateway_order = await asyncio.to_thread(
        gateway.create_order,
        to_minor_units(request.amount),
        request.currency,
        request.order_id,
        {"orderId": request.order_id, "hospitalId": auth.hospital_id},
    )
    await order_service.attach_payment_intent(db, request.order_id, gateway_order["id"])
    logger.info(f"Razorpay order {gateway_order['id']} opened for order {request.order_id}")

    intent = PaymentIntent(
        razorpay_order_id=gateway_order["id"],
        amount=gateway_order.get("amount", to_minor_units(request.amount)),
        currency=gateway_order.get("currency", request.currency),
        order_id=request.order_id,
        key_id=gateway.key_id,
    )
    return success(intent.to_wire())


@router.post("/payment/verify")
async def verify_payment(
    request: PaymentVerify,
    db: AsyncIOMotorDatabase = Depends(get_database),
    gateway: RazorpayService = Depends(get_payment_gateway)
):
    """Check the checkout signature and complete the order when it matches"""
    order = await order_service.get_order(db, request.order_id)
    gateway_order_id = order.get("razorpay_order_id")
    if not gateway_order_id:
        raise ValidationFailed("Payment has not been initiated for this order")

    if not gateway.verify_payment_signature(
        gateway_order_id, request.razorpay_payment_id, request.razorpay_signature
    ):
        logger.warning(f"Invalid payment signature for order {request.order_id}")
        raise ValidationFailed("Invalid payment signature")

    updated = await order_service.complete_with_payment(db, order, request.razorpay_payment_id)
    logger.info(f"Payment {request.razorpay_payment_id} verified for order {request.order_id}")
    return success(order_payload(updated))


@router.post("/razorpay-webhook")
async def razorpay_webhook(
    request: Request,
    x_razorpay_signature: Optional[str] = Header(None),
    db: AsyncIOMotorDatabase = Depends(get_database),
    gateway: RazorpayService = Depends(get_payment_gateway)
):
    body = await request.body()
    if not gateway.verify_webhook_signature(body, x_razorpay_signature):
        logger.warning("Rejected Razorpay webhook with invalid signature")
        raise ValidationFailed("Invalid webhook signature")

    try:
        event = json.loads(body)
        name = event.get("event")
        payment = event.get("payload", {}).get("payment", {}).get("entity", {})
        payment_id = payment.get("id")
        order_id = (payment.get("notes") or {}).get("orderId")
    except (ValueError, AttributeError):
        raise ValidationFailed("Malformed webhook payload")

    logger.info(f"Razorpay webhook received: {name}")
    if name not in ("payment.captured", "payment.failed"):
        return {"received": True}

    if not order_id or not isinstance(order_id, str):
        raise ValidationFailed("Webhook payment has no orderId note")
    order = await order_service.get_order(db, order_id)

    if name == "payment.failed":
        await order_service.mark_payment_failed(db, order_id, payment_id)
        logger.warning(f"Payment failed for order {order_id}")
    elif order["status"] == OrderStatus.PENDING.value:
        try:
            await order_service.complete_with_payment(db, order, payment_id)
        except ValidationFailed as e:
            # Completed by a concurrent verify call between our read and write
            logger.info(f"Webhook for order {order_id} ignored: {e.message}")
    else:
        logger.info(f"Webhook for order {order_id} ignored: order is {order['status']}")

    return {"received": True}


@router.get("/{order_id}")
async def get_order(
    order_id: str,
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    order = await order_service.get_order(db, order_id)
    return success(order_payload(order))


@router.put("/{order_id}/status")
async def update_order_status(
    order_id: str,
    request: OrderStatusUpdate,
    auth: AuthContext = Depends(get_current_hospital),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    order = await order_service.update_status(db, auth, order_id, request.status)
    return success(order_payload(order))


@router.put("/{order_id}/complete")
async def complete_order(
    order_id: str,
    request: OrderComplete,
    auth: AuthContext = Depends(get_current_hospital),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Complete an order with its blockchain transaction hash"""
    order = await order_service.complete_with_transaction(
        db, auth, order_id,
        transaction_hash=request.transaction_hash,
        nft_certificate_id=request.nft_certificate_id,
    )
    return success(order_payload(order))
