import logging
from fastapi import APIRouter, Depends, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from database import get_database, HOSPITALS
from dependencies import hash_password, verify_password, create_hospital_token
from exceptions import NotAuthenticated, ValidationFailed
from models.hospitals import HospitalRegister, HospitalLogin, AuthResponse
from utils import generate_hospital_id, get_current_datetime, success

logger = logging.getLogger(__name__)

router = APIRouter()


def auth_payload(hospital: dict) -> dict:
    return AuthResponse.from_doc(hospital, token=create_hospital_token(hospital)).to_wire()


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register_hospital(
    request: HospitalRegister,
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    existing = await db[HOSPITALS].find_one({"email": request.email})
    if existing:
        raise ValidationFailed("Hospital with this email already exists")

    if request.wallet_address:
        existing_wallet = await db[HOSPITALS].find_one({"wallet_address": request.wallet_address})
        if existing_wallet:
            raise ValidationFailed("Wallet address already in use")

    now = get_current_datetime()
    hospital = {
        "_id": generate_hospital_id(),
        "name": request.name,
        "email": request.email,
        "password": hash_password(request.password),
        "latitude": request.latitude,
        "longitude": request.longitude,
        "reputation": 0,
        "created_at": now,
        "updated_at": now,
    }
    # Left out entirely when absent so the sparse unique index ignores it
    if request.wallet_address:
        hospital["wallet_address"] = request.wallet_address

    await db[HOSPITALS].insert_one(hospital)
    logger.info(f"Hospital registered: {hospital['_id']} ({request.email})")

    return success(auth_payload(hospital))


@router.post("/login")
async def login_hospital(
    request: HospitalLogin,
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    hospital = await db[HOSPITALS].find_one({"email": request.email})
    if not hospital or not verify_password(request.password, hospital.get("password")):
        raise NotAuthenticated("Invalid credentials")

    return success(auth_payload(hospital))
