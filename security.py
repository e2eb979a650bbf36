# security.py
from dataclasses import dataclass
from typing import Optional
from fastapi import Depends, Security
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from motor.motor_asyncio import AsyncIOMotorDatabase

from config import JWT_SECRET, JWT_ALGORITHM
from database import get_database, HOSPITALS
from exceptions import NotAuthenticated

security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthContext:
    """Identity of the hospital making an authenticated request."""
    hospital_id: str
    email: str


def decode_token(token: str) -> dict:
    """Decode and verify a token"""
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise NotAuthenticated("Not authorized, token has expired")
    except JWTError:
        raise NotAuthenticated("Not authorized, invalid token")


async def get_current_hospital(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
    db: AsyncIOMotorDatabase = Depends(get_database)
) -> AuthContext:
    """Verify the bearer token and return the caller's auth context"""
    if credentials is None or not credentials.credentials:
        raise NotAuthenticated("Not authorized, no token")

    payload = decode_token(credentials.credentials)
    hospital_id = payload.get("id")
    if not hospital_id:
        raise NotAuthenticated("Invalid token: missing hospital id")

    hospital = await db[HOSPITALS].find_one({"_id": hospital_id}, {"email": 1})
    if not hospital:
        raise NotAuthenticated("Not authorized, hospital no longer exists")

    return AuthContext(hospital_id=hospital_id, email=hospital["email"])
