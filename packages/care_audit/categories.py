"""Keyword-rule classification of transaction descriptions.

``CATEGORY_RULES`` is the single authoritative table. Rules are evaluated in
order and the first rule with a case-insensitive substring hit wins, so a
description matching two categories resolves to whichever rule comes first.
Descriptions matching nothing fall into ``"Other"``.

Presentation contexts that need a different vocabulary (the Support at Home
service-type statement, the calendar legend) use *views*: plain mappings from
canonical category names to display labels. Views never look at description
text themselves, which keeps every screen consistent with the detector.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Literal

OTHER = "Other"
OTHER_COLOR = "hsl(215, 14%, 50%)"


@dataclass(frozen=True, slots=True)
class CategoryRule:
    category: str
    keywords: tuple[str, ...]
    color: str


CATEGORY_RULES: tuple[CategoryRule, ...] = (
    CategoryRule(
        "Income",
        (
            "income",
            "payment received",
            "credit",
            "funding",
            "ndis payment",
            "plan funding",
            "reimbursement",
            "refund",
        ),
        "hsl(140, 70%, 40%)",
    ),
    CategoryRule("Nursing", ("nursing", "nurse"), "hsl(25, 70%, 50%)"),
    CategoryRule(
        "Meals",
        ("meal", "food", "lunch", "dinner", "breakfast", "catering", "cafe", "restaurant"),
        "hsl(35, 85%, 55%)",
    ),
    CategoryRule(
        "Domestic",
        ("domestic", "cleaning", "laundry", "housekeeping", "home care"),
        "hsl(220, 70%, 55%)",
    ),
    CategoryRule(
        "Allied Health",
        (
            "allied health",
            "dietician",
            "nutrition",
            "podiatry",
            "physio",
            "therapy",
            "occupational",
            "speech",
            "psychology",
        ),
        "hsl(310, 50%, 50%)",
    ),
    CategoryRule(
        "Transport",
        ("transport", "taxi", "uber", "bus", "train", "fuel", "petrol", "car", "parking", "toll"),
        "hsl(270, 60%, 55%)",
    ),
    CategoryRule(
        "Personal Care",
        (
            "personal care",
            "hygiene",
            "grooming",
            "hair",
            "salon",
            "beauty",
            "pharmacy",
            "chemist",
        ),
        "hsl(190, 70%, 45%)",
    ),
    CategoryRule(
        "Housing & Accommodation",
        (
            "rent",
            "housing",
            "accommodation",
            "mortgage",
            "lease",
            "board",
            "lodging",
            "sil",
            "supported independent",
        ),
        "hsl(280, 60%, 55%)",
    ),
    CategoryRule(
        "Health & Medical",
        ("medical", "health", "doctor", "hospital", "dental", "clinical", "gp", "specialist"),
        "hsl(175, 60%, 40%)",
    ),
    CategoryRule(
        "Community & Social",
        ("community", "social", "activity", "recreation", "excursion", "outing", "event", "group"),
        "hsl(140, 60%, 45%)",
    ),
    CategoryRule(
        "Support Worker",
        ("support worker", "support staff", "attendant", "carer", "aide"),
        "hsl(200, 70%, 50%)",
    ),
    CategoryRule(
        "Fees & Admin",
        ("fee", "admin", "management", "plan management", "service fee", "commission", "invoice"),
        "hsl(45, 80%, 50%)",
    ),
    CategoryRule(
        "Equipment & Supplies",
        (
            "equipment",
            "supplies",
            "consumable",
            "assistive",
            "device",
            "wheelchair",
            "continence",
        ),
        "hsl(310, 50%, 50%)",
    ),
)

_COLORS: dict[str, str] = {r.category: r.color for r in CATEGORY_RULES}


def category_names() -> tuple[str, ...]:
    """All canonical categories in rule order, ``"Other"`` last."""

    return tuple(r.category for r in CATEGORY_RULES) + (OTHER,)


def classify(description: str | None) -> str:
    """Map a free-text description to a canonical category name."""

    if not description:
        return OTHER
    lower = description.lower()
    for rule in CATEGORY_RULES:
        if any(kw in lower for kw in rule.keywords):
            return rule.category
    return OTHER


def category_color(category: str) -> str:
    return _COLORS.get(category, OTHER_COLOR)


# ---------------------------
# Presentation views
# ---------------------------

type ViewName = Literal["service_type", "calendar"]


@dataclass(frozen=True, slots=True)
class ViewEntry:
    label: str
    code: str
    color: str


# Support at Home statement service types. Several canonical categories can
# feed one service type; "Respite" has no keyword rule of its own.
SERVICE_TYPE_LABELS: tuple[str, ...] = (
    "Nursing care",
    "Allied health and other therapeutic services",
    "Personal care",
    "Respite",
    "Domestic assistance",
    "Home maintenance and repairs",
    "Meals",
    "Community and social participation",
    "Transport",
    "Equipment and supplies",
    "Fees and administration",
)
OTHER_SERVICES = "Other services"

SERVICE_TYPE_CODES: dict[str, str] = {
    "Nursing care": "NUR",
    "Allied health and other therapeutic services": "AH",
    "Personal care": "PC",
    "Respite": "RS",
    "Domestic assistance": "DA",
    "Home maintenance and repairs": "HM",
    "Meals": "ML",
    "Community and social participation": "CS",
    "Transport": "TR",
    "Equipment and supplies": "EQ",
    "Fees and administration": "FA",
    OTHER_SERVICES: "OS",
}

# Canonical category -> service type. Two categories can share a label.
_SERVICE_TYPE_SOURCES: dict[str, tuple[str, str]] = {
    "Nursing": ("Nursing care", "Nursing"),
    "Allied Health": ("Allied health and other therapeutic services", "Allied Health"),
    "Health & Medical": ("Allied health and other therapeutic services", "Allied Health"),
    "Personal Care": ("Personal care", "Personal Care"),
    "Support Worker": ("Personal care", "Personal Care"),
    "Domestic": ("Domestic assistance", "Domestic"),
    "Housing & Accommodation": ("Home maintenance and repairs", "Housing & Accommodation"),
    "Meals": ("Meals", "Meals"),
    "Community & Social": ("Community and social participation", "Community & Social"),
    "Transport": ("Transport", "Transport"),
    "Equipment & Supplies": ("Equipment and supplies", "Equipment & Supplies"),
    "Fees & Admin": ("Fees and administration", "Fees & Admin"),
}

_SERVICE_TYPE_VIEW: dict[str, ViewEntry] = {
    category: ViewEntry(label, SERVICE_TYPE_CODES[label], _COLORS[color_from])
    for category, (label, color_from) in _SERVICE_TYPE_SOURCES.items()
}

# Calendar legend: one short code per canonical category.
_CALENDAR_VIEW: dict[str, ViewEntry] = {
    r.category: ViewEntry(r.category, code, r.color)
    for r, code in zip(
        CATEGORY_RULES,
        ("INC", "NUR", "MEA", "DOM", "AH", "TRN", "PC", "HSG", "MED", "COM", "SW", "FEE", "EQP"),
        strict=True,
    )
}

_VIEWS: dict[str, Mapping[str, ViewEntry]] = {
    "service_type": _SERVICE_TYPE_VIEW,
    "calendar": _CALENDAR_VIEW,
}

_VIEW_FALLBACK: dict[str, ViewEntry] = {
    "service_type": ViewEntry(OTHER_SERVICES, "OS", OTHER_COLOR),
    "calendar": ViewEntry(OTHER, "OTH", OTHER_COLOR),
}


def view_entry(view: ViewName, category: str) -> ViewEntry:
    """Project a canonical category into a named presentation view."""

    try:
        mapping = _VIEWS[view]
    except KeyError:
        raise ValueError(f"unknown category view: {view!r}") from None
    return mapping.get(category, _VIEW_FALLBACK[view])


__all__ = [
    "OTHER",
    "OTHER_SERVICES",
    "CategoryRule",
    "CATEGORY_RULES",
    "SERVICE_TYPE_LABELS",
    "SERVICE_TYPE_CODES",
    "ViewEntry",
    "ViewName",
    "category_names",
    "classify",
    "category_color",
    "view_entry",
]
