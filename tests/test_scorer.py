import asyncio
import json
from types import SimpleNamespace

import pytest

from lostlink.services.scorer import GeminiMatchScorer, ScoreResult, build_prompt, clamp_score, parse_score


class FakeModels:
    def __init__(self, text=None, delay: float = 0.0, error: Exception = None):
        self.text = text
        self.delay = delay
        self.error = error
        self.requests = []

    async def generate_content(self, model, contents, config):
        self.requests.append({"model": model, "contents": contents})
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return SimpleNamespace(text=self.text)


def _scorer(models: FakeModels, timeout: float = 5.0) -> GeminiMatchScorer:
    client = SimpleNamespace(aio=SimpleNamespace(models=models))
    return GeminiMatchScorer(api_key="unused", model="test-model", timeout=timeout, client=client)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(150, 100), (-20, 0), (85, 85), (85.6, 86), (0, 0), (100, 100), (float("nan"), 0), (float("inf"), 100)],
)
def test_clamp_score(raw, expected) -> None:
    assert clamp_score(raw) == expected


def test_parse_score_reads_fenced_json() -> None:
    text = '```json\n{"confidenceScore": 91, "reasoning": "Same scratched case."}\n```'
    assert parse_score(text) == ScoreResult(confidence_score=91, reasoning="Same scratched case.")


@pytest.mark.parametrize(
    "text",
    [
        None,
        "",
        "I think they match",
        '{"confidenceScore": "85", "reasoning": "ok"}',
        '{"confidenceScore": true, "reasoning": "ok"}',
        '{"confidenceScore": 85, "reasoning": 3}',
        '{"confidenceScore": 85}',
        '{"confidenceScore": 85, "reasoning": "ok"',
    ],
)
def test_malformed_payloads_soft_fail(text) -> None:
    result = parse_score(text)

    assert result.confidence_score == 0
    assert result.reasoning == ""
    assert result.error
    assert not result.ok


def test_evaluate_clamps_upstream_score(lost_and_found) -> None:
    lost, found = lost_and_found
    models = FakeModels(text=json.dumps({"confidenceScore": 130, "reasoning": "Identical."}))

    result = asyncio.run(_scorer(models).evaluate(lost, found))

    assert result.ok
    assert result.confidence_score == 100
    assert result.reasoning == "Identical."
    assert models.requests[0]["model"] == "test-model"


def test_evaluate_negative_score_is_zero(lost_and_found) -> None:
    models = FakeModels(text='{"confidenceScore": -5, "reasoning": "Different."}')

    result = asyncio.run(_scorer(models).evaluate(*lost_and_found))

    assert result == ScoreResult(confidence_score=0, reasoning="Different.")


def test_evaluate_timeout_soft_fails(lost_and_found) -> None:
    models = FakeModels(text='{"confidenceScore": 90, "reasoning": "late"}', delay=1.0)

    result = asyncio.run(_scorer(models, timeout=0.01).evaluate(*lost_and_found))

    assert result.confidence_score == 0
    assert result.reasoning == ""
    assert result.error == "timeout"


def test_evaluate_unexpected_client_error_soft_fails(lost_and_found) -> None:
    models = FakeModels(error=RuntimeError("connection pool closed"))

    result = asyncio.run(_scorer(models).evaluate(*lost_and_found))

    assert not result.ok
    assert result.confidence_score == 0
    assert result.error == "scorer error"


def test_evaluate_without_api_key_soft_fails(lost_and_found) -> None:
    result = asyncio.run(GeminiMatchScorer(api_key=None).evaluate(*lost_and_found))

    assert result.confidence_score == 0
    assert result.error


def test_prompt_carries_descriptions_and_vision(item_factory) -> None:
    lost = item_factory(
        description="Blue backpack with a torn strap",
        colors=["blue"],
        vision_labels=["Backpack", "Bag"],
        vision_objects=[{"name": "Backpack", "score": 0.93, "box": None}],
        persist=False,
    )
    found = item_factory(item_type="found", description="Backpack left on bus", persist=False)

    prompt = build_prompt(lost, found)

    assert "Blue backpack with a torn strap" in prompt
    assert "Backpack left on bus" in prompt
    assert '"Bag"' in prompt
    assert "0.93" in prompt
    assert "confidenceScore" in prompt
