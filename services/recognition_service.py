# services/recognition_service.py
import asyncio
import json
import logging
import os
import re
from typing import Optional

import google.generativeai as genai

from config import GEMINI_API_KEY, GEMINI_MODEL
from models.medicines import MedicineAnalysis

logger = logging.getLogger(__name__)

FALLBACK_NOTE = "Created with fallback system. Please update details manually."

SYSTEM_PROMPT = """
You are a pharmaceutical expert.
Given an image of a tablet, capsule, or medicine strip, identify the medicine.

Return ONLY a simple JSON object with this structure:
{"brandName": "Medicine Name", "genericName": "Active Ingredient", "quantity": 10}

Use a realistic brand name. Quantity must be a number.

If you can't identify the medicine, return:
{"error": "Cannot identify medicine"}
"""


def is_configured() -> bool:
    return bool(GEMINI_API_KEY) and GEMINI_API_KEY != "YOUR_GEMINI_API_KEY"


def fallback_analysis(filename: Optional[str]) -> MedicineAnalysis:
    """Derive a placeholder record from the uploaded file's name."""
    stem = os.path.splitext(os.path.basename(filename or ""))[0]
    name = re.sub(r"[_-]+", " ", stem).strip()
    return MedicineAnalysis(
        brand_name=name or "Sample Medicine",
        generic_name="Sample Generic",
        quantity=10,
        note=FALLBACK_NOTE,
    )


def parse_analysis(text: str) -> Optional[MedicineAnalysis]:
    """Parse the model's reply; None when it is not a usable identification."""
    cleaned = text.replace("```json", "").replace("```", "").strip()
    try:
        data = json.loads(cleaned)
    except ValueError:
        logger.warning(f"Could not parse recognition output: {cleaned[:200]}")
        return None

    if not isinstance(data, dict) or data.get("error") or not data.get("brandName"):
        return None

    try:
        quantity = int(data.get("quantity") or 10)
    except (TypeError, ValueError):
        quantity = 10

    return MedicineAnalysis(
        brand_name=str(data["brandName"]),
        generic_name=str(data.get("genericName") or "Unknown"),
        quantity=quantity if quantity > 0 else 10,
    )


def _generate(image: bytes, mime_type: str) -> str:
    genai.configure(api_key=GEMINI_API_KEY)
    model = genai.GenerativeModel(GEMINI_MODEL)
    response = model.generate_content([
        SYSTEM_PROMPT,
        {"mime_type": mime_type, "data": image},
    ])
    return response.text.strip()


async def identify_medicine(image: bytes, mime_type: str, filename: Optional[str]) -> MedicineAnalysis:
    """Identify a medicine from a photo, degrading to a filename-derived record."""
    if not is_configured():
        logger.info("Gemini API key not configured. Using fallback method.")
        return fallback_analysis(filename)

    try:
        text = await asyncio.to_thread(_generate, image, mime_type)
    except Exception as e:
        logger.error(f"Gemini API error: {e}")
        return fallback_analysis(filename)

    logger.info(f"Raw Gemini response: {text[:200]}")
    return parse_analysis(text) or fallback_analysis(filename)
