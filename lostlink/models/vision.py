from typing import List, Optional
from pydantic import BaseModel, Field


class BoundingBox(BaseModel):
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0


class DetectedObject(BaseModel):
    name: str
    score: float
    box: Optional[BoundingBox] = None


class VisionSummary(BaseModel):
    labels: List[str] = Field(default_factory=list)
    objects: List[DetectedObject] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.labels and not self.objects
