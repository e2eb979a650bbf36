from enum import Enum
from pydantic import Field
from typing import Optional
from models.base import CamelModel, DocumentModel, TimeStampedModel

class OrderStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

TERMINAL_STATUSES = {OrderStatus.COMPLETED, OrderStatus.CANCELLED}

class PaymentStatus(str, Enum):
    CREATED = "created"
    PAID = "paid"
    FAILED = "failed"

class EmergencyOrderCreate(CamelModel):
    medicine_name: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1)
    to_hospital_id: str = Field(..., min_length=1)

class OrderCreate(EmergencyOrderCreate):
    emergency: bool = False

class OrderStatusUpdate(CamelModel):
    status: OrderStatus

class OrderComplete(CamelModel):
    transaction_hash: str = Field(..., min_length=1)
    nft_certificate_id: Optional[str] = None

class OrderResponse(DocumentModel, TimeStampedModel):
    medicine_name: str
    quantity: int
    from_hospital_id: str
    to_hospital_id: str
    emergency: bool = False
    status: OrderStatus
    razorpay_order_id: Optional[str] = None
    razorpay_payment_id: Optional[str] = None
    payment_status: Optional[PaymentStatus] = None
    payment_method: Optional[str] = None
    transaction_hash: Optional[str] = None
    nft_certificate_id: Optional[str] = None

class PaymentCreate(CamelModel):
    order_id: str = Field(..., min_length=1)
    amount: float = Field(..., gt=0)
    currency: str = Field("INR", pattern="^[A-Z]{3}$")

class PaymentIntent(CamelModel):
    razorpay_order_id: str
    amount: int
    currency: str
    order_id: str
    key_id: str

class PaymentVerify(CamelModel):
    order_id: str = Field(..., min_length=1)
    razorpay_payment_id: str = Field(..., min_length=1)
    razorpay_signature: str = Field(..., min_length=1)
