"""Confidence scoring for one lost/found pair.

The scorer never raises: any upstream problem comes back as a zero score with
``error`` set, so callers can tell "no signal" apart from a low score.
"""

import asyncio
import json
import logging
import math
import re
from dataclasses import dataclass
from typing import Optional, Protocol, Union

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types
from pydantic import BaseModel, StrictFloat, StrictInt, StrictStr, ValidationError

from lostlink import config
from lostlink.models.item import Item
from lostlink.models.location import FreeformLocation, Location, StructuredLocation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoreResult:
    confidence_score: int
    reasoning: str
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failed(cls, error: str) -> "ScoreResult":
        return cls(confidence_score=0, reasoning="", error=error)


class MatchScorer(Protocol):
    async def evaluate(self, lost_item: Item, found_item: Item) -> ScoreResult:
        ...


class _ScorePayload(BaseModel):
    confidenceScore: Union[StrictInt, StrictFloat]
    reasoning: StrictStr


def clamp_score(value: float) -> int:
    if math.isnan(value):
        return 0
    return int(round(max(0.0, min(100.0, float(value)))))


def _location_snapshot(location: Location):
    if isinstance(location, StructuredLocation):
        return {"lat": location.lat, "lng": location.lng}
    if isinstance(location, FreeformLocation):
        return location.text
    return None


def item_snapshot(item: Item) -> dict:
    """Descriptive and visual metadata sent to the model for one item."""
    return {
        "type": item.type,
        "title": item.title,
        "description": item.description,
        "category": item.category,
        "colors": item.colors or [],
        "brand": item.brand,
        "condition": item.condition,
        "flaws": item.flaws,
        "material": item.material,
        "observedAt": item.observed_at.isoformat() if item.observed_at else None,
        "location": _location_snapshot(item.location),
        "vision": {
            "labels": item.vision_labels or [],
            "objects": [
                {"name": obj.get("name"), "score": obj.get("score")}
                for obj in (item.vision_objects or [])
            ],
        },
    }


def build_prompt(lost_item: Item, found_item: Item) -> str:
    lost = json.dumps(item_snapshot(lost_item), indent=2, default=str)
    found = json.dumps(item_snapshot(found_item), indent=2, default=str)

    return f"""
You are an expert at deciding whether a found item is the same physical object as a reported lost item.

Compare the two reports below. Use the descriptive fields and the image analysis
(labels and detected objects). Colours, brand, material and distinctive flaws
matter most. Missing fields are not evidence against a match.

LOST ITEM:
{lost}

FOUND ITEM:
{found}

Respond strictly with a JSON object in this exact format and nothing else:
{{
  "confidenceScore": <integer between 0 and 100>,
  "reasoning": "<one or two sentences>"
}}
"""


def parse_score(text: Optional[str]) -> ScoreResult:
    if not text:
        return ScoreResult.failed("empty response")

    json_match = re.search(r"\{.*\}", text, re.DOTALL)
    if not json_match:
        return ScoreResult.failed("no JSON object in response")

    try:
        payload = _ScorePayload.model_validate(json.loads(json_match.group()))
    except (ValueError, ValidationError) as exc:
        return ScoreResult.failed(f"malformed response: {exc}")

    return ScoreResult(
        confidence_score=clamp_score(payload.confidenceScore),
        reasoning=payload.reasoning.strip(),
    )


class GeminiMatchScorer:
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = config.GEMINI_MODEL,
        timeout: float = config.SCORER_TIMEOUT_SECONDS,
        client=None,
    ):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._client = client

    def _get_client(self):
        if self._client is None:
            if not self.api_key:
                raise ValueError("GEMINI_API_KEY is not set")
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    async def evaluate(self, lost_item: Item, found_item: Item) -> ScoreResult:
        try:
            client = self._get_client()
        except ValueError as exc:
            logger.error("Scorer unavailable: %s", exc)
            return ScoreResult.failed(str(exc))

        try:
            response = await asyncio.wait_for(
                client.aio.models.generate_content(
                    model=self.model,
                    contents=build_prompt(lost_item, found_item),
                    config=types.GenerateContentConfig(
                        response_mime_type="application/json",
                        temperature=0.2,
                    ),
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Scorer timed out after %ss for %s/%s", self.timeout, lost_item.id, found_item.id)
            return ScoreResult.failed("timeout")
        except genai_errors.APIError as exc:
            # 429 rate limiting lands here as a ClientError
            logger.warning("Scorer upstream error %s for %s/%s: %s", exc.code, lost_item.id, found_item.id, exc)
            return ScoreResult.failed(f"upstream error {exc.code}")
        except httpx.HTTPError as exc:
            logger.warning("Scorer transport error for %s/%s: %s", lost_item.id, found_item.id, exc)
            return ScoreResult.failed("transport error")
        except Exception:
            logger.exception("Scorer failed for %s/%s", lost_item.id, found_item.id)
            return ScoreResult.failed("scorer error")

        result = parse_score(getattr(response, "text", None))
        if not result.ok:
            logger.warning("Discarding scorer response for %s/%s: %s", lost_item.id, found_item.id, result.error)
        return result
