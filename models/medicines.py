from pydantic import Field
from typing import Optional
from datetime import datetime
from config import DEFAULT_SEARCH_RADIUS_KM
from models.base import CamelModel, DocumentModel, TimeStampedModel
from models.hospitals import HospitalSummary

class MedicineCreate(CamelModel):
    name: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=0)  # stock can't be negative
    expiry: datetime
    priority: bool = False

class MedicineUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1)
    quantity: Optional[int] = Field(None, ge=0)
    expiry: Optional[datetime] = None
    priority: Optional[bool] = None

class MedicineSearch(CamelModel):
    name: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1)
    max_distance: float = Field(DEFAULT_SEARCH_RADIUS_KM, gt=0, description="Kilometres")

class PaymentOptions(CamelModel):
    crypto: bool
    razorpay: bool = True

class MedicineResponse(DocumentModel, TimeStampedModel):
    name: str
    quantity: int
    expiry: datetime
    priority: bool = False
    hospital_id: str
    hospital: Optional[HospitalSummary] = None

class MedicineSearchResult(MedicineResponse):
    hospital: HospitalSummary
    distance: float
    payment_options: PaymentOptions

class MedicineAnalysis(CamelModel):
    brand_name: str = "Unknown Medicine"
    generic_name: str = "Unknown"
    quantity: int = 10
    note: Optional[str] = None
