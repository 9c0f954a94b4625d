import math

from lostlink.models.location import Location, StructuredLocation

EARTH_RADIUS_KM = 6371


def distance_km(location1: Location, location2: Location) -> float:
    """Great-circle distance between two locations in kilometres.

    Returns ``math.inf`` unless both sides carry coordinates.
    """
    if not isinstance(location1, StructuredLocation) or not isinstance(location2, StructuredLocation):
        return math.inf

    lat1, lng1 = math.radians(location1.lat), math.radians(location1.lng)
    lat2, lng2 = math.radians(location2.lat), math.radians(location2.lng)

    dlat = lat2 - lat1
    dlng = lng2 - lng1

    a = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c
