import logging
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from motor.motor_asyncio import AsyncIOMotorDatabase

from config import CORS_ORIGINS
from database import create_client, default_database, connect_to_mongo, ensure_indexes
from exceptions import register_exception_handlers
from auth.hospital import router as auth_router
from routes.hospitals import router as hospital_router
from routes.medicines import router as medicine_router
from routes.orders import router as order_router

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    client = None
    if getattr(app.state, "db", None) is None:
        client = create_client()
        app.state.db = default_database(client)

    await connect_to_mongo(app.state.db)
    try:
        await ensure_indexes(app.state.db)
    except Exception as e:
        logger.error(f"Error creating indexes: {e}")
    logger.info("Application startup completed successfully.")
    try:
        yield
    finally:
        logger.info("Shutting down application...")
        if client is not None:
            client.close()


def create_app(database: Optional[AsyncIOMotorDatabase] = None) -> FastAPI:
    """Build the API around one storage handle.

    Without ``database`` the handle is opened from ``MONGO_URI`` at startup.
    """
    app = FastAPI(title="MediLedger API", version="1.0", lifespan=lifespan)
    app.state.db = database

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(auth_router, prefix="/api/auth", tags=["Auth"])
    app.include_router(hospital_router, prefix="/api/hospitals", tags=["Hospitals"])
    app.include_router(medicine_router, prefix="/api/medicines", tags=["Medicines"])
    app.include_router(order_router, prefix="/api/orders", tags=["Orders"])

    @app.get("/health")
    async def health_check():
        return {"status": "ok", "message": "MediLedger API is running"}

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        logger.info(f"Incoming request: {request.method} {request.url}")
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(f"Unhandled error: {e}", exc_info=True)
            raise e
        return response

    return app


app = create_app()
