import logging
from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from database import get_database, HOSPITALS, MEDICINES
from exceptions import NotFound, ValidationFailed
from models.hospitals import (
    HospitalResponse, HospitalProfile, HospitalProfileUpdate, NearbyHospital
)
from models.medicines import MedicineResponse
from security import AuthContext, get_current_hospital
from services.geo import within_radius
from utils import get_current_datetime, success

logger = logging.getLogger(__name__)

router = APIRouter()

PUBLIC_FIELDS = {"password": 0}


@router.get("/")
async def list_hospitals(db: AsyncIOMotorDatabase = Depends(get_database)):
    """List all hospitals"""
    hospitals = await db[HOSPITALS].find({}, PUBLIC_FIELDS).to_list(length=None)
    data = [HospitalResponse.from_doc(h).to_wire() for h in hospitals]
    return success(data, results=len(data))


@router.get("/me/profile")
async def get_my_profile(
    auth: AuthContext = Depends(get_current_hospital),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Own profile including the hospital's medicine stock"""
    hospital = await db[HOSPITALS].find_one({"_id": auth.hospital_id}, PUBLIC_FIELDS)
    if not hospital:
        raise NotFound("Hospital not found")

    medicines = await db[MEDICINES].find({"hospital_id": auth.hospital_id}).to_list(length=None)
    profile = HospitalProfile.from_doc(
        hospital,
        medicines=[MedicineResponse.from_doc(m).to_wire() for m in medicines]
    )
    return success(profile.to_wire())


@router.put("/me/profile")
async def update_my_profile(
    request: HospitalProfileUpdate,
    auth: AuthContext = Depends(get_current_hospital),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    changes = request.model_dump(exclude_none=True)
    if not changes:
        raise ValidationFailed("Please provide at least one field to update")

    if "email" in changes:
        existing = await db[HOSPITALS].find_one({"email": changes["email"]}, {"_id": 1})
        if existing and existing["_id"] != auth.hospital_id:
            raise ValidationFailed("Email already in use")

    changes["updated_at"] = get_current_datetime()
    await db[HOSPITALS].update_one({"_id": auth.hospital_id}, {"$set": changes})

    hospital = await db[HOSPITALS].find_one({"_id": auth.hospital_id}, PUBLIC_FIELDS)
    logger.info(f"Hospital {auth.hospital_id} updated profile fields: {sorted(changes)}")
    return success(HospitalResponse.from_doc(hospital).to_wire())


@router.get("/nearby/{latitude}/{longitude}/{distance}")
async def get_nearby_hospitals(
    latitude: float,
    longitude: float,
    distance: float,
    auth: AuthContext = Depends(get_current_hospital),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Hospitals within ``distance`` km of a point, nearest first"""
    if not -90 <= latitude <= 90 or not -180 <= longitude <= 180 or distance < 0:
        raise ValidationFailed("Invalid coordinates or distance")

    hospitals = await db[HOSPITALS].find({}, PUBLIC_FIELDS).to_list(length=None)
    data = [
        NearbyHospital.from_doc(hospital, distance=km).to_wire()
        for hospital, km in within_radius((latitude, longitude), hospitals, distance)
    ]
    return success(data, results=len(data))


@router.get("/{hospital_id}")
async def get_hospital(
    hospital_id: str,
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    hospital = await db[HOSPITALS].find_one({"_id": hospital_id}, PUBLIC_FIELDS)
    if not hospital:
        raise NotFound("Hospital not found")
    return success(HospitalResponse.from_doc(hospital).to_wire())
