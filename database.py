import logging
from fastapi import Request
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING

from config import MONGO_URI, DATABASE_NAME

logger = logging.getLogger(__name__)

HOSPITALS = "hospitals"
MEDICINES = "medicines"
ORDERS = "orders"


def create_client(uri: str = MONGO_URI) -> AsyncIOMotorClient:
    return AsyncIOMotorClient(uri)


def get_database(request: Request) -> AsyncIOMotorDatabase:
    """Return the storage handle owned by the running application."""
    return request.app.state.db


async def connect_to_mongo(db: AsyncIOMotorDatabase):
    """Ensures MongoDB is reachable."""
    try:
        await db.command("ping")
        logger.info(f"Connected to MongoDB database '{db.name}'")
    except Exception as e:
        logger.error(f"MongoDB Connection Error: {e}")


async def ensure_indexes(db: AsyncIOMotorDatabase):
    await db[HOSPITALS].create_index([("email", ASCENDING)], unique=True)
    await db[HOSPITALS].create_index(
        [("wallet_address", ASCENDING)], unique=True, sparse=True
    )
    await db[MEDICINES].create_index([("hospital_id", ASCENDING)])
    await db[ORDERS].create_index([("from_hospital_id", ASCENDING)])
    await db[ORDERS].create_index([("to_hospital_id", ASCENDING)])
    await db[ORDERS].create_index([("razorpay_order_id", ASCENDING)])
    logger.info("Database indexes ensured.")


def default_database(client: AsyncIOMotorClient) -> AsyncIOMotorDatabase:
    return client[DATABASE_NAME]
