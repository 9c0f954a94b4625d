import uuid
from typing import List, Optional
from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel
from datetime import datetime, timezone

from lostlink.models.location import FreeformLocation, Location, StructuredLocation, UNSET
from lostlink.models.vision import VisionSummary


class Item(SQLModel, table=True):
    __tablename__ = "items"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Reporter info
    user_id: str = Field(index=True)

    # Item fields
    type: str = Field(index=True)  # "lost" or "found"
    title: str = Field(default="")
    description: str = Field(default="")
    category: Optional[str] = Field(default=None)
    colors: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    brand: Optional[str] = None
    condition: Optional[str] = None  # new/worn/damaged/other
    flaws: Optional[str] = None
    material: Optional[str] = None
    image: str = Field(default="")

    # When the item was lost or found, as reported
    observed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Location: coordinates, free text, or neither
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    location_text: Optional[str] = None

    is_resolved: bool = Field(default=False, index=True)

    # Vision analysis
    vision_labels: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    vision_objects: List[dict] = Field(default_factory=list, sa_column=Column(JSON))

    @property
    def location(self) -> Location:
        if self.latitude is not None and self.longitude is not None:
            return StructuredLocation(lat=self.latitude, lng=self.longitude)
        if self.location_text:
            return FreeformLocation(self.location_text)
        return UNSET

    def set_location(self, location: Location) -> None:
        self.latitude = None
        self.longitude = None
        self.location_text = None

        if isinstance(location, StructuredLocation):
            self.latitude = location.lat
            self.longitude = location.lng
        elif isinstance(location, FreeformLocation):
            self.location_text = location.text

    @property
    def vision(self) -> VisionSummary:
        return VisionSummary(labels=self.vision_labels or [], objects=self.vision_objects or [])

    @property
    def opposite_type(self) -> str:
        return "found" if self.type == "lost" else "lost"
