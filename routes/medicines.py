import logging
import re
from datetime import timedelta
from typing import Dict, Iterable, Optional
from fastapi import APIRouter, Depends, File, Path, Response, UploadFile, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from config import MAX_IMAGE_SIZE_BYTES
from database import get_database, HOSPITALS, MEDICINES
from exceptions import NotAuthorized, NotFound, ValidationFailed
from models.hospitals import HospitalSummary
from models.medicines import (
    MedicineCreate, MedicineUpdate, MedicineSearch, MedicineResponse,
    MedicineSearchResult, PaymentOptions
)
from security import AuthContext, get_current_hospital
from services.geo import distance_km, location_of
from services.recognition_service import identify_medicine
from utils import generate_medicine_id, get_current_datetime, to_utc_naive, success

logger = logging.getLogger(__name__)

router = APIRouter()

# Larger values overflow timedelta or the int64 range of a Mongo query
MAX_THRESHOLD = 2 ** 31 - 1
MAX_LOOKAHEAD_DAYS = 36500


async def hospitals_by_id(db: AsyncIOMotorDatabase, ids: Iterable[str]) -> Dict[str, dict]:
    hospitals = await db[HOSPITALS].find(
        {"_id": {"$in": list(set(ids))}},
        {"password": 0}
    ).to_list(length=None)
    return {h["_id"]: h for h in hospitals}


async def with_hospitals(db: AsyncIOMotorDatabase, medicines: list) -> list:
    """Serialize medicines with their owning hospital embedded"""
    owners = await hospitals_by_id(db, (m["hospital_id"] for m in medicines))
    data = []
    for medicine in medicines:
        owner = owners.get(medicine["hospital_id"])
        hospital = HospitalSummary.from_doc(owner) if owner else None
        data.append(MedicineResponse.from_doc(medicine, hospital=hospital).to_wire())
    return data


async def get_owned_medicine(db: AsyncIOMotorDatabase, medicine_id: str, auth: AuthContext, action: str) -> dict:
    medicine = await db[MEDICINES].find_one({"_id": medicine_id})
    if not medicine:
        raise NotFound("Medicine not found")
    if medicine["hospital_id"] != auth.hospital_id:
        raise NotAuthorized(f"Not authorized to {action} this medicine")
    return medicine


async def insert_medicine(db: AsyncIOMotorDatabase, hospital_id: str, **fields) -> dict:
    now = get_current_datetime()
    medicine = {
        "_id": generate_medicine_id(),
        **fields,
        "hospital_id": hospital_id,
        "created_at": now,
        "updated_at": now,
    }
    await db[MEDICINES].insert_one(medicine)
    logger.info(f"Medicine {medicine['_id']} ({medicine['name']}) added by {hospital_id}")
    return medicine


@router.get("/")
async def list_medicines(db: AsyncIOMotorDatabase = Depends(get_database)):
    medicines = await db[MEDICINES].find({}).to_list(length=None)
    data = await with_hospitals(db, medicines)
    return success(data, results=len(data))


@router.get("/hospital/{hospital_id}")
async def list_hospital_medicines(
    hospital_id: str,
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    medicines = await db[MEDICINES].find({"hospital_id": hospital_id}).to_list(length=None)
    data = await with_hospitals(db, medicines)
    return success(data, results=len(data))


@router.get("/low-stock/{threshold}")
async def get_low_stock_medicines(
    threshold: int = Path(..., ge=0, le=MAX_THRESHOLD),
    auth: AuthContext = Depends(get_current_hospital),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Own medicines with quantity at or below ``threshold``"""
    medicines = await db[MEDICINES].find({
        "hospital_id": auth.hospital_id,
        "quantity": {"$lte": threshold}
    }).sort("quantity", 1).to_list(length=None)
    data = [MedicineResponse.from_doc(m).to_wire() for m in medicines]
    return success(data, results=len(data))


@router.get("/expiring-soon/{days}")
async def get_expiring_medicines(
    days: int = Path(..., ge=0, le=MAX_LOOKAHEAD_DAYS),
    auth: AuthContext = Depends(get_current_hospital),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Own medicines expiring within ``days`` days (already expired included)"""
    cutoff = get_current_datetime() + timedelta(days=days)
    medicines = await db[MEDICINES].find({
        "hospital_id": auth.hospital_id,
        "expiry": {"$lte": cutoff}
    }).sort("expiry", 1).to_list(length=None)
    data = [MedicineResponse.from_doc(m).to_wire() for m in medicines]
    return success(data, results=len(data))


@router.post("/search")
async def search_medicines(
    request: MedicineSearch,
    auth: AuthContext = Depends(get_current_hospital),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Find stock at other hospitals, nearest first"""
    requester = await db[HOSPITALS].find_one({"_id": auth.hospital_id}, {"latitude": 1, "longitude": 1})
    origin = location_of(requester)
    if origin is None:
        raise ValidationFailed("Hospital location not available")

    medicines = await db[MEDICINES].find({
        "name": {"$regex": re.escape(request.name), "$options": "i"},
        "quantity": {"$gte": request.quantity},
        "hospital_id": {"$ne": auth.hospital_id}
    }).to_list(length=None)

    owners = await hospitals_by_id(db, (m["hospital_id"] for m in medicines))
    matches = []
    for medicine in medicines:
        owner = owners.get(medicine["hospital_id"])
        location = location_of(owner)
        if location is None:
            continue
        distance = distance_km(origin, location)
        if distance > request.max_distance:
            continue
        matches.append((distance, medicine, owner))

    matches.sort(key=lambda match: match[0])
    data = [
        MedicineSearchResult.from_doc(
            medicine,
            hospital=HospitalSummary.from_doc(owner),
            distance=round(distance, 1),
            payment_options=PaymentOptions(crypto=bool(owner.get("wallet_address"))),
        ).to_wire()
        for distance, medicine, owner in matches
    ]
    return success(data, results=len(data))


@router.post("/process-image", status_code=status.HTTP_201_CREATED)
async def process_medicine_image(
    medicine_image: Optional[UploadFile] = File(None, alias="medicineImage"),
    auth: AuthContext = Depends(get_current_hospital),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Create a medicine record from a photo of the pack"""
    if medicine_image is None:
        raise ValidationFailed("Please provide a medicine image")

    content_type = medicine_image.content_type or ""
    if not content_type.startswith("image/"):
        raise ValidationFailed("Only image files are allowed")

    image = await medicine_image.read(MAX_IMAGE_SIZE_BYTES + 1)
    if len(image) > MAX_IMAGE_SIZE_BYTES:
        raise ValidationFailed("File too large. Maximum size is 10MB")
    if not image:
        raise ValidationFailed("Please provide a medicine image")

    analysis = await identify_medicine(image, content_type, medicine_image.filename)
    medicine = await insert_medicine(
        db,
        auth.hospital_id,
        name=analysis.brand_name,
        quantity=analysis.quantity,
        expiry=get_current_datetime() + timedelta(days=30),
        priority=False,
    )
    return success({
        "analysis": analysis.model_dump(mode="json", by_alias=True, exclude_none=True),
        "createdMedicines": [MedicineResponse.from_doc(medicine).to_wire()],
    })


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_medicine(
    request: MedicineCreate,
    auth: AuthContext = Depends(get_current_hospital),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    medicine = await insert_medicine(
        db,
        auth.hospital_id,
        name=request.name,
        quantity=request.quantity,
        expiry=to_utc_naive(request.expiry),
        priority=request.priority,
    )
    return success(MedicineResponse.from_doc(medicine).to_wire())


@router.get("/{medicine_id}")
async def get_medicine(
    medicine_id: str,
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    medicine = await db[MEDICINES].find_one({"_id": medicine_id})
    if not medicine:
        raise NotFound("Medicine not found")
    data = await with_hospitals(db, [medicine])
    return success(data[0])


@router.put("/{medicine_id}")
async def update_medicine(
    medicine_id: str,
    request: MedicineUpdate,
    auth: AuthContext = Depends(get_current_hospital),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    changes = request.model_dump(exclude_none=True)
    if not changes:
        raise ValidationFailed("Please provide at least one field to update")

    await get_owned_medicine(db, medicine_id, auth, "update")

    if "expiry" in changes:
        changes["expiry"] = to_utc_naive(changes["expiry"])
    changes["updated_at"] = get_current_datetime()

    await db[MEDICINES].update_one({"_id": medicine_id}, {"$set": changes})
    medicine = await db[MEDICINES].find_one({"_id": medicine_id})
    return success(MedicineResponse.from_doc(medicine).to_wire())


@router.delete("/{medicine_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_medicine(
    medicine_id: str,
    auth: AuthContext = Depends(get_current_hospital),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    await get_owned_medicine(db, medicine_id, auth, "delete")
    await db[MEDICINES].delete_one({"_id": medicine_id})
    logger.info(f"Medicine {medicine_id} deleted by {auth.hospital_id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
