from datetime import datetime, timedelta

import pytest

from lostlink.models.location import FreeformLocation, StructuredLocation, UNSET
from lostlink.services.prefilter import should_skip_comparison

from conftest import BASE_TIME, PARIS

# 0.4 degrees of latitude is about 44 km, 0.3 about 33 km
FAR = StructuredLocation(lat=PARIS.lat + 0.4, lng=PARIS.lng)
NEAR = StructuredLocation(lat=PARIS.lat + 0.3, lng=PARIS.lng)


@pytest.fixture
def pair(item_factory):
    def build(lost_fields=None, found_fields=None):
        lost = item_factory(item_type="lost", persist=False, **(lost_fields or {}))
        found = item_factory(
            item_type="found",
            persist=False,
            **{"observed_at": BASE_TIME + timedelta(hours=1), **(found_fields or {})},
        )
        return lost, found

    return build


def test_plausible_pair_is_kept(pair) -> None:
    assert should_skip_comparison(*pair()) is False


@pytest.mark.parametrize(
    ("lost_fields", "found_fields"),
    [
        ({"is_resolved": True}, {}),
        ({}, {"is_resolved": True}),
        ({"is_resolved": True}, {"is_resolved": True}),
    ],
)
def test_resolved_items_are_skipped(pair, lost_fields, found_fields) -> None:
    assert should_skip_comparison(*pair(lost_fields, found_fields)) is True


def test_found_before_lost_is_skipped(pair) -> None:
    lost, found = pair(found_fields={"observed_at": BASE_TIME - timedelta(minutes=1)})
    assert should_skip_comparison(lost, found) is True


def test_naive_and_aware_timestamps_compare(pair) -> None:
    naive_earlier = datetime(2024, 5, 1, 11)
    lost, found = pair(found_fields={"observed_at": naive_earlier})
    assert should_skip_comparison(lost, found) is True


def test_category_mismatch_is_case_sensitive(pair) -> None:
    assert should_skip_comparison(*pair(found_fields={"category": "Clothing"})) is True
    assert should_skip_comparison(*pair(found_fields={"category": "electronics"})) is True


@pytest.mark.parametrize("category", [None, ""])
def test_missing_category_is_not_a_reason_to_skip(pair, category) -> None:
    assert should_skip_comparison(*pair(found_fields={"category": category})) is False
    assert should_skip_comparison(*pair(lost_fields={"category": category})) is False


def test_far_apart_structured_locations_are_skipped(pair) -> None:
    assert should_skip_comparison(*pair(found_fields={"location": FAR})) is True
    assert should_skip_comparison(*pair(found_fields={"location": NEAR})) is False


@pytest.mark.parametrize("location", [FreeformLocation("Somewhere far away"), UNSET])
def test_one_structured_location_never_skips(pair, location) -> None:
    far_lost = {"location": StructuredLocation(lat=-33.86, lng=151.2)}
    assert should_skip_comparison(*pair(far_lost, {"location": location})) is False
