import asyncio
import random

from mongomock_motor import AsyncMongoMockClient

from database import HOSPITALS, MEDICINES, ORDERS
from dependencies import verify_password
from seed import DEMO_HOSPITALS, DEMO_STOCK, seed_demo_data


def test_seed_replaces_existing_data():
    async def scenario():
        db = AsyncMongoMockClient()["seed_test"]
        await db[ORDERS].insert_one({"_id": "ORD-OLD", "status": "pending"})
        await db[HOSPITALS].insert_one({"_id": "HOSP-OLD", "email": "old@example.com"})

        created = await seed_demo_data(db, rng=random.Random(7))

        hospitals = await db[HOSPITALS].find({}).to_list(length=None)
        medicines = await db[MEDICINES].find({}).to_list(length=None)
        orders = await db[ORDERS].count_documents({})
        return created, hospitals, medicines, orders

    created, hospitals, medicines, orders = asyncio.run(scenario())

    assert created == len(DEMO_HOSPITALS)
    assert orders == 0
    assert "HOSP-OLD" not in {h["_id"] for h in hospitals}
    assert len(medicines) == len(DEMO_HOSPITALS) * len(DEMO_STOCK)
    assert all(h["reputation"] == 0 for h in hospitals)

    apollo = next(h for h in hospitals if h["email"] == "apollo.delhi@mediledger.com")
    assert verify_password("apollo123", apollo["password"])

    insulin = [m for m in medicines if m["name"] == "Insulin"]
    assert all(m["priority"] for m in insulin)
    assert all(10 <= m["quantity"] < 40 for m in insulin)
