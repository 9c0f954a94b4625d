from datetime import datetime, timezone
from typing import Any, List, Literal, Optional
from fastapi import HTTPException
from pydantic import BaseModel, Field, ValidationError

from lostlink.models.location import parse_location


class ValidatedCreateItem(BaseModel):
    item_type: Literal["lost", "found"]
    title: str = Field(default="", max_length=60)
    description: str = Field(min_length=3, max_length=500)
    category: Optional[str] = Field(default=None, max_length=40)
    colors: List[str] = Field(default_factory=list)
    brand: Optional[str] = None
    condition: Optional[Literal["new", "worn", "damaged", "other"]] = None
    flaws: Optional[str] = None
    material: Optional[str] = None
    observed_at: datetime
    location: Any  # lostlink.models.location.Location


def _optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def validate_create_item_form(
    item_type: str,
    description: str,
    title: str = "",
    category: Optional[str] = None,
    colors: Optional[str] = None,
    brand: Optional[str] = None,
    condition: Optional[str] = None,
    flaws: Optional[str] = None,
    material: Optional[str] = None,
    date: Optional[str] = None,
    location: Optional[str] = None,
) -> ValidatedCreateItem:
    if date:
        try:
            parsed_date = datetime.fromisoformat(date.replace("Z", "+00:00"))
        except ValueError:
            raise HTTPException(status_code=400, detail="Date not parseable")
    else:
        parsed_date = datetime.now(timezone.utc)

    try:
        return ValidatedCreateItem(
            item_type=(item_type or "").strip().lower(),
            title=(title or "").strip(),
            description=(description or "").strip(),
            category=_optional(category),
            colors=[c.strip() for c in (colors or "").split(",") if c.strip()],
            brand=_optional(brand),
            condition=_optional(condition),
            flaws=_optional(flaws),
            material=_optional(material),
            observed_at=parsed_date,
            location=parse_location(location),
        )
    except ValidationError as e:
        raise HTTPException(
            status_code=400,
            detail=e.errors(include_url=False, include_context=False),
        )


UPDATABLE_FIELDS = {
    "title",
    "description",
    "category",
    "colors",
    "brand",
    "condition",
    "flaws",
    "material",
    "date",
    "location",
}


class ValidatedItemUpdate(BaseModel):
    title: Optional[str] = Field(default=None, max_length=60)
    description: Optional[str] = Field(default=None, min_length=3, max_length=500)
    category: Optional[str] = Field(default=None, max_length=40)
    colors: Optional[List[str]] = None
    brand: Optional[str] = None
    condition: Optional[Literal["new", "worn", "damaged", "other"]] = None
    flaws: Optional[str] = None
    material: Optional[str] = None
    observed_at: Optional[datetime] = None
    location: Any = None


def validate_item_update(updates: dict) -> dict:
    """Check a partial item edit and return the attributes to set."""
    for field in updates:
        if field not in UPDATABLE_FIELDS:
            raise HTTPException(
                status_code=400,
                detail=f"Field '{field}' cannot be updated",
            )

    values = {}
    for field, value in updates.items():
        if field == "date":
            try:
                values["observed_at"] = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
            except ValueError:
                raise HTTPException(status_code=400, detail="Date not parseable")
        elif field == "location":
            values["location"] = parse_location(value)
        elif field == "colors":
            if isinstance(value, str):
                value = value.split(",")
            if not isinstance(value, list):
                raise HTTPException(status_code=400, detail="Colors must be a list or comma separated")
            values["colors"] = [str(c).strip() for c in value if str(c).strip()]
        elif field in ("title", "description"):
            if not isinstance(value, str):
                raise HTTPException(status_code=400, detail=f"Field '{field}' must be text")
            values[field] = value.strip()
        elif isinstance(value, str):
            values[field] = _optional(value)
        else:
            values[field] = value

    try:
        validated = ValidatedItemUpdate(**values)
    except ValidationError as e:
        raise HTTPException(
            status_code=400,
            detail=e.errors(include_url=False, include_context=False),
        )

    return {field: getattr(validated, field) for field in values}
