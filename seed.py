"""Load demo hospitals and stock into MongoDB.

Usage: ``python seed.py``. Existing hospitals, medicines and orders are removed.
"""
import asyncio
import logging
import random
from datetime import timedelta
from motor.motor_asyncio import AsyncIOMotorDatabase

from database import create_client, default_database, ensure_indexes, HOSPITALS, MEDICINES, ORDERS
from dependencies import hash_password
from utils import generate_hospital_id, generate_medicine_id, get_current_datetime

logger = logging.getLogger(__name__)

DEMO_HOSPITALS = [
    ("Apollo Hospital Delhi", "apollo.delhi@mediledger.com", "apollo123",
     "0x1234567890123456789012345678901234567890", 28.5621, 77.2841),
    ("Fortis Hospital Noida", "fortis.noida@mediledger.com", "fortis123",
     "0x2345678901234567890123456789012345678901", 28.5355, 77.391),
    ("Max Super Speciality Hospital Saket", "max.saket@mediledger.com", "max123",
     "0x3456789012345678901234567890123456789012", 28.528, 77.211),
    ("Medanta The Medicity Gurugram", "medanta.gurugram@mediledger.com", "medanta123",
     "0x4567890123456789012345678901234567890123", 28.4391, 77.0405),
    ("Asian Hospital Faridabad", "asian.faridabad@mediledger.com", "asian123",
     "0x5678901234567890123456789012345678901234", 28.3808, 77.2937),
    ("Indraprastha Apollo Hospital New Delhi", "ip.apollo@mediledger.com", "ipapollo123",
     "0x6789012345678901234567890123456789012345", 28.5679, 77.2831),
    ("Artemis Hospital Gurugram", "artemis.gurugram@mediledger.com", "artemis123",
     "0x7890123456789012345678901234567890123456", 28.4595, 77.0266),
    ("Jaypee Hospital Noida", "jaypee.noida@mediledger.com", "jaypee123",
     "0x8901234567890123456789012345678901234567", 28.5801, 77.3244),
    ("Metro Hospital Noida", "metro.noida@mediledger.com", "metro123",
     "0x9012345678901234567890123456789012345678", 28.5728, 77.3615),
    ("Sarvodaya Hospital Faridabad", "sarvodaya.faridabad@mediledger.com", "sarvodaya123",
     "0xa123456789012345678901234567890123456789", 28.4089, 77.3178),
]

# name, base quantity, quantity spread, max shelf life in days, chance of priority
DEMO_STOCK = [
    ("Paracetamol", 50, 100, 365, 0.3),
    ("Ibuprofen", 30, 100, 365, 0.3),
    ("Amoxicillin", 20, 50, 365, 0.5),
    ("Loratadine", 40, 70, 365, 0.2),
    ("Insulin", 10, 30, 180, 1.0),
]


async def seed_demo_data(db: AsyncIOMotorDatabase, rng: random.Random = None) -> int:
    """Replace all data with the demo set; returns the number of hospitals created."""
    rng = rng or random.Random()
    await db[MEDICINES].delete_many({})
    await db[HOSPITALS].delete_many({})
    await db[ORDERS].delete_many({})

    now = get_current_datetime()
    for name, email, password, wallet, latitude, longitude in DEMO_HOSPITALS:
        hospital_id = generate_hospital_id()
        await db[HOSPITALS].insert_one({
            "_id": hospital_id,
            "name": name,
            "email": email,
            "password": hash_password(password),
            "wallet_address": wallet,
            "latitude": latitude,
            "longitude": longitude,
            "reputation": 0,
            "created_at": now,
            "updated_at": now,
        })
        logger.info(f"Created hospital: {name}")

        medicines = [
            {
                "_id": generate_medicine_id(),
                "name": medicine,
                "quantity": base + rng.randrange(spread),
                "expiry": now + timedelta(days=30 + rng.randrange(shelf_life)),
                "priority": rng.random() < priority_chance,
                "hospital_id": hospital_id,
                "created_at": now,
                "updated_at": now,
            }
            for medicine, base, spread, shelf_life, priority_chance in DEMO_STOCK
        ]
        await db[MEDICINES].insert_many(medicines)

    logger.info("Seeding completed successfully")
    return len(DEMO_HOSPITALS)


async def main():
    client = create_client()
    try:
        db = default_database(client)
        await ensure_indexes(db)
        await seed_demo_data(db)
    finally:
        client.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
    asyncio.run(main())
