import asyncio
import base64
import io
import json

import httpx
import pytest
from PIL import Image

from lostlink.services.vision import ANNOTATE_URL, GoogleVisionClient, parse_annotation

ANNOTATION = {
    "responses": [{
        "labelAnnotations": [
            {"description": "Mobile phone", "score": 0.97},
            {"description": "Gadget", "score": 0.91},
            {"score": 0.5},
        ],
        "localizedObjectAnnotations": [
            {
                "name": "Mobile phone",
                "score": 0.88,
                "boundingPoly": {"normalizedVertices": [
                    {"x": 0.1, "y": 0.2},
                    {"x": 0.6, "y": 0.2},
                    {"x": 0.6, "y": 0.9},
                    {"x": 0.1, "y": 0.9},
                ]},
            },
        ],
    }]
}


def _png(size=(32, 16)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color=(20, 20, 20)).save(buffer, format="PNG")
    return buffer.getvalue()


class ImageStore:
    def __init__(self, data: bytes = b"", error: Exception = None):
        self.data = data
        self.error = error
        self.requested = []

    def __call__(self, key: str) -> bytes:
        self.requested.append(key)
        if self.error:
            raise self.error
        return self.data


def _client(handler, store, api_key="vision-key") -> GoogleVisionClient:
    return GoogleVisionClient(api_key=api_key, load_image=store, transport=httpx.MockTransport(handler))


def test_analyze_posts_image_and_parses_summary() -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=ANNOTATION)

    store = ImageStore(_png())
    summary = asyncio.run(_client(handler, store).analyze("uploads/phone.webp"))

    assert store.requested == ["uploads/phone.webp"]
    assert summary.labels == ["Mobile phone", "Gadget"]
    assert [obj.name for obj in summary.objects] == ["Mobile phone"]

    [request] = seen
    assert str(request.url).startswith(ANNOTATE_URL)
    assert request.url.params["key"] == "vision-key"

    body = json.loads(request.content)
    features = {f["type"] for f in body["requests"][0]["features"]}
    assert features == {"LABEL_DETECTION", "OBJECT_LOCALIZATION"}

    sent = Image.open(io.BytesIO(base64.b64decode(body["requests"][0]["image"]["content"])))
    assert sent.format == "JPEG"


def test_upstream_error_yields_empty_summary() -> None:
    def handler(request):
        return httpx.Response(500, json={"error": {"message": "boom"}})

    summary = asyncio.run(_client(handler, ImageStore(_png())).analyze("uploads/a.webp"))

    assert summary.is_empty


def test_missing_api_key_skips_analysis() -> None:
    def handler(request):
        raise AssertionError("no request expected")

    store = ImageStore(_png())
    summary = asyncio.run(_client(handler, store, api_key=None).analyze("uploads/a.webp"))

    assert summary.is_empty
    assert store.requested == []


def test_unreadable_image_yields_empty_summary() -> None:
    def handler(request):
        raise AssertionError("no request expected")

    store = ImageStore(error=FileNotFoundError("uploads/missing.webp"))
    summary = asyncio.run(_client(handler, store).analyze("uploads/missing.webp"))

    assert summary.is_empty


def test_parse_annotation_builds_bounding_box() -> None:
    summary = parse_annotation(ANNOTATION)

    box = summary.objects[0].box
    assert box.x == pytest.approx(0.1)
    assert box.y == pytest.approx(0.2)
    assert box.width == pytest.approx(0.5)
    assert box.height == pytest.approx(0.7)


def test_parse_annotation_rejects_error_payloads() -> None:
    with pytest.raises(ValueError):
        parse_annotation({"responses": []})

    with pytest.raises(ValueError):
        parse_annotation({"responses": [{"error": {"message": "bad image"}}]})


@pytest.mark.parametrize(
    "body",
    [
        {"responses": [{"error": "quota"}]},
        {"responses": ["unexpected"]},
        {"responses": {"labelAnnotations": []}},
        [],
        {"responses": [{"localizedObjectAnnotations": [
            {"name": "Bag", "score": 0.8, "boundingPoly": {"normalizedVertices": [{"x": "left"}, {"x": 0.4}]}},
        ]}]},
        {"responses": [{"labelAnnotations": 7}]},
    ],
)
def test_unexpected_response_shapes_yield_empty_summary(body) -> None:
    def handler(request):
        return httpx.Response(200, json=body)

    summary = asyncio.run(_client(handler, ImageStore(_png())).analyze("uploads/a.webp"))

    assert summary.is_empty


def test_non_dict_vertices_are_ignored() -> None:
    summary = parse_annotation({"responses": [{"localizedObjectAnnotations": [
        {"name": "Wallet", "score": 0.7, "boundingPoly": {"normalizedVertices": ["corner", None]}},
        {"name": "Keys", "score": 0.6, "boundingPoly": "none"},
    ]}]})

    assert [obj.name for obj in summary.objects] == ["Wallet", "Keys"]
    assert summary.objects[0].box.width == 0
    assert summary.objects[1].box is None
