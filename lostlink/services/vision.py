import asyncio
import base64
import logging
from typing import Callable, Optional

import httpx
from pydantic import ValidationError

from lostlink import config
from lostlink.models.vision import BoundingBox, DetectedObject, VisionSummary
from lostlink.utils.s3_service import download_from_s3, shrink_for_analysis

logger = logging.getLogger(__name__)

ANNOTATE_URL = "https://vision.googleapis.com/v1/images:annotate"


def _bounding_box(poly) -> Optional[BoundingBox]:
    vertices = poly.get("normalizedVertices") if isinstance(poly, dict) else None
    if not isinstance(vertices, list) or not vertices:
        return None

    def coord(index, axis):
        if index < len(vertices) and isinstance(vertices[index], dict):
            return vertices[index].get(axis, 0) or 0
        return 0

    return BoundingBox(
        x=coord(0, "x"),
        y=coord(0, "y"),
        width=abs(coord(1, "x") - coord(0, "x")),
        height=abs(coord(2, "y") - coord(0, "y")),
    )


def parse_annotation(body: dict) -> VisionSummary:
    responses = body.get("responses") if isinstance(body, dict) else None
    if not isinstance(responses, list) or not responses or not isinstance(responses[0], dict):
        raise ValueError("Invalid response from Vision API")

    result = responses[0]
    if "error" in result:
        error = result["error"]
        message = error.get("message") if isinstance(error, dict) else error
        raise ValueError(f"Vision API error: {message}")

    labels = [
        label["description"]
        for label in result.get("labelAnnotations") or []
        if isinstance(label, dict) and label.get("description")
    ]

    objects = [
        DetectedObject(
            name=obj["name"],
            score=obj.get("score", 0.0),
            box=_bounding_box(obj.get("boundingPoly")),
        )
        for obj in result.get("localizedObjectAnnotations") or []
        if isinstance(obj, dict) and obj.get("name")
    ]

    return VisionSummary(labels=labels, objects=objects)


class GoogleVisionClient:
    """Labels and objects for an item image. ``analyze`` never raises."""

    def __init__(
        self,
        api_key: Optional[str] = config.GOOGLE_CLOUD_VISION_API_KEY,
        load_image: Callable[[str], bytes] = download_from_s3,
        timeout: float = config.VISION_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.load_image = load_image
        self.timeout = timeout
        self.transport = transport

        if not self.api_key:
            logger.error("GOOGLE_CLOUD_VISION_API_KEY is not set, image analysis disabled")

    def _request_body(self, image: bytes) -> dict:
        return {
            "requests": [{
                "image": {"content": base64.b64encode(image).decode("ascii")},
                "features": [
                    {"type": "LABEL_DETECTION", "maxResults": 20, "model": "builtin/latest"},
                    {"type": "OBJECT_LOCALIZATION", "maxResults": 20, "model": "builtin/latest"},
                ],
                "imageContext": {"languageHints": ["en"]},
            }]
        }

    async def analyze(self, image_ref: str) -> VisionSummary:
        if not self.api_key:
            return VisionSummary()

        try:
            raw = await asyncio.to_thread(self.load_image, image_ref)
            image = shrink_for_analysis(raw)
        except Exception:
            logger.exception("Could not load image %s for analysis", image_ref)
            return VisionSummary()

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    ANNOTATE_URL,
                    params={"key": self.api_key},
                    json=self._request_body(image),
                )
                response.raise_for_status()
                summary = parse_annotation(response.json())
        except (httpx.HTTPError, ValueError, KeyError, TypeError, ValidationError) as exc:
            logger.error("Error analyzing image %s: %s", image_ref, exc)
            return VisionSummary()

        logger.info("Vision found %d labels, %d objects for %s", len(summary.labels), len(summary.objects), image_ref)
        return summary
