import math
from datetime import datetime, timezone
from typing import Optional

from lostlink import config
from lostlink.models.item import Item
from lostlink.services.geo import distance_km


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; they were written as UTC
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def should_skip_comparison(lost_item: Item, found_item: Item) -> bool:
    """Cheap necessary conditions checked before paying for a scorer call.

    A missing category or a location without coordinates never causes a skip.
    """
    if lost_item.is_resolved or found_item.is_resolved:
        return True

    lost_at = _as_utc(lost_item.observed_at)
    found_at = _as_utc(found_item.observed_at)
    if lost_at and found_at and found_at < lost_at:
        return True

    if lost_item.category and found_item.category and lost_item.category != found_item.category:
        return True

    distance = distance_km(lost_item.location, found_item.location)
    if distance < math.inf and distance > config.MAX_MATCH_DISTANCE_KM:
        return True

    return False
