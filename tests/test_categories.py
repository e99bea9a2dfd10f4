from __future__ import annotations

import pytest

from care_audit.categories import (
    CATEGORY_RULES,
    OTHER,
    OTHER_SERVICES,
    SERVICE_TYPE_CODES,
    SERVICE_TYPE_LABELS,
    category_color,
    category_names,
    classify,
    view_entry,
)


@pytest.mark.parametrize(
    ("description", "expected"),
    [
        ("Registered Nurse visit", "Nursing"),
        ("Meals on Wheels", "Meals"),
        ("Domestic assistance - cleaning", "Domestic"),
        ("Physio session", "Allied Health"),
        ("Taxi to clinic", "Transport"),
        ("Package management fee", "Fees & Admin"),
        ("Continence supplies", "Equipment & Supplies"),
        ("Government funding received", "Income"),
    ],
)
def test_classify_keywords(description: str, expected: str) -> None:
    assert classify(description) == expected


def test_classify_is_case_insensitive() -> None:
    assert classify("NURSING CARE") == "Nursing"


def test_first_matching_rule_wins() -> None:
    # "meal" (Meals) precedes "transport" (Transport) in the rule table.
    assert classify("Meal transport") == "Meals"


@pytest.mark.parametrize("description", ["", None, "Grocery Store", "Direct Deposit", "zzz"])
def test_unmatched_descriptions_are_other(description: str | None) -> None:
    assert classify(description) == OTHER


def test_category_names_end_with_other() -> None:
    names = category_names()
    assert names[-1] == OTHER
    assert names[:-1] == tuple(r.category for r in CATEGORY_RULES)


def test_category_color_falls_back_for_other() -> None:
    assert category_color("Nursing").startswith("hsl(")
    assert category_color(OTHER) == category_color("No such category")


def test_service_type_view_maps_canonical_categories() -> None:
    assert view_entry("service_type", "Support Worker").label == "Personal care"
    assert view_entry("service_type", "Health & Medical").label == (
        "Allied health and other therapeutic services"
    )
    entry = view_entry("service_type", OTHER)
    assert entry.label == OTHER_SERVICES
    assert entry.code == SERVICE_TYPE_CODES[OTHER_SERVICES]


def test_every_service_type_label_has_a_code() -> None:
    assert set(SERVICE_TYPE_LABELS) <= set(SERVICE_TYPE_CODES)


def test_calendar_view_has_a_code_per_category() -> None:
    codes = {view_entry("calendar", name).code for name in category_names()}
    assert len(codes) == len(category_names())


def test_unknown_view_raises() -> None:
    with pytest.raises(ValueError):
        view_entry("spreadsheet", "Nursing")  # type: ignore[arg-type]
