from typing import Iterable, List, Optional, Tuple
from geopy.distance import great_circle

EARTH_RADIUS_KM = 6371

Coordinate = Tuple[float, float]


def distance_km(origin: Coordinate, target: Coordinate) -> float:
    """Great-circle distance between two (lat, lon) points on a 6371 km sphere."""
    return great_circle(origin, target, radius=EARTH_RADIUS_KM).kilometers


def location_of(doc: Optional[dict]) -> Optional[Coordinate]:
    """Return a hospital's (lat, lon), or None when it has no stored coordinate."""
    if not doc:
        return None
    latitude = doc.get("latitude")
    longitude = doc.get("longitude")
    if latitude is None or longitude is None:
        return None
    return (latitude, longitude)


def within_radius(
    origin: Coordinate,
    hospitals: Iterable[dict],
    radius_km: float,
) -> List[Tuple[dict, float]]:
    """
    Linear scan of hospitals around ``origin``.

    Returns ``(hospital, distance)`` pairs with distance <= radius, nearest
    first. The radius is applied to the exact distance; the returned distance
    is rounded to one decimal. Hospitals without coordinates are skipped.
    """
    matches = []
    for hospital in hospitals:
        location = location_of(hospital)
        if location is None:
            continue
        distance = distance_km(origin, location)
        if distance <= radius_km:
            matches.append((hospital, distance))

    matches.sort(key=lambda pair: pair[1])
    return [(hospital, round(distance, 1)) for hospital, distance in matches]
