# utils.py
import random
import string
from datetime import datetime, timezone

def generate_random_id(prefix="", length=10):
    """Generate a random ID with optional prefix"""
    random_str = ''.join(random.choices(string.ascii_uppercase + string.digits, k=length))
    return f"{prefix}-{random_str}" if prefix else random_str

def generate_hospital_id():
    return generate_random_id("HOSP")

def generate_medicine_id():
    return generate_random_id("MED")

def generate_order_id():
    return generate_random_id("ORD")

def get_current_datetime():
    """Get current datetime in UTC (naive, as stored by MongoDB)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)

def to_utc_naive(value: datetime) -> datetime:
    """Normalise an incoming datetime to naive UTC for storage and comparison"""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value

def success(data=None, results: int = None) -> dict:
    """Standard success envelope"""
    body = {"status": "success"}
    if results is not None:
        body["results"] = results
    body["data"] = data
    return body
