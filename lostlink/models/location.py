import json
from dataclasses import dataclass
from typing import Any, Union


@dataclass(frozen=True)
class StructuredLocation:
    lat: float
    lng: float


@dataclass(frozen=True)
class FreeformLocation:
    text: str


@dataclass(frozen=True)
class UnsetLocation:
    pass


Location = Union[StructuredLocation, FreeformLocation, UnsetLocation]

UNSET = UnsetLocation()


def parse_location(raw: Any) -> Location:
    """Turn a submitted location value into a Location.

    Accepts a ``{"lat": .., "lng": ..}`` mapping, a JSON string holding one,
    free text, or nothing at all.
    """
    if raw is None:
        return UNSET

    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return UNSET

        try:
            decoded = json.loads(text)
        except ValueError:
            return FreeformLocation(text)

        if isinstance(decoded, dict):
            return parse_location(decoded)

        return FreeformLocation(text)

    if isinstance(raw, dict):
        lat = raw.get("lat")
        lng = raw.get("lng", raw.get("lon"))

        # bool is an int subclass, never a coordinate
        if isinstance(lat, (int, float)) and isinstance(lng, (int, float)) \
                and not isinstance(lat, bool) and not isinstance(lng, bool):
            return StructuredLocation(lat=float(lat), lng=float(lng))

        address = raw.get("address")
        if isinstance(address, str) and address.strip():
            return FreeformLocation(address.strip())

    return UNSET
