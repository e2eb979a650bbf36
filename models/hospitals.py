from pydantic import EmailStr, Field
from typing import Optional, List
from models.base import CamelModel, DocumentModel, TimeStampedModel

class HospitalRegister(CamelModel):
    name: str = Field(..., min_length=2)
    email: EmailStr
    password: str = Field(..., min_length=6)
    wallet_address: Optional[str] = Field(None, min_length=1)
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)

class HospitalLogin(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

class HospitalProfileUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=2)
    email: Optional[EmailStr] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)

class HospitalSummary(DocumentModel):
    name: str
    email: str
    wallet_address: Optional[str] = None
    reputation: int = 0
    latitude: Optional[float] = None
    longitude: Optional[float] = None

class HospitalResponse(HospitalSummary, TimeStampedModel):
    pass

class NearbyHospital(HospitalResponse):
    distance: float

class AuthResponse(HospitalSummary):
    token: str

class HospitalProfile(HospitalResponse):
    medicines: List[dict] = []
