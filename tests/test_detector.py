from __future__ import annotations

import pytest

from care_audit.detector import DetectOptions, detect


def _types(alerts) -> list[str]:
    return [a.type for a in alerts]


def test_empty_input_yields_no_alerts() -> None:
    assert detect([]) == []


# ---- duplicates --------------------------------------------------------------


def test_same_day_identical_charges_are_one_duplicate(make_tx) -> None:
    a = make_tx("2025-01-15", "Grocery Store", "-45.67")
    b = make_tx("2025-01-15", "Grocery Store", "-45.67")
    alerts = detect([a, b])

    assert _types(alerts) == ["duplicate"]
    (alert,) = alerts
    assert alert.severity == "high"
    assert alert.transactions == (a, b)
    assert alert.title == "Possible duplicate charge: $45.67"


def test_near_identical_charges_within_three_days(make_tx) -> None:
    a = make_tx("2025-01-15", "Cleaning service", "-80.00")
    b = make_tx("2025-01-17", "Cleaning service", "-80.30")
    assert _types(detect([a, b])) == ["duplicate"]


def test_charges_four_days_apart_are_not_duplicates(make_tx) -> None:
    a = make_tx("2025-01-15", "Cleaning service", "-80.00")
    b = make_tx("2025-01-19", "Cleaning service", "-80.00")
    assert detect([a, b]) == []


def test_amounts_outside_tolerance_are_not_duplicates(make_tx) -> None:
    a = make_tx("2025-01-15", "Cleaning service", "-80.00")
    b = make_tx("2025-01-15", "Cleaning service", "-80.60")
    assert "duplicate" not in _types(detect([a, b]))


def test_unparseable_dates_never_count_as_same_day(make_tx) -> None:
    a = make_tx("Unknown", "Cleaning service", "-80.00")
    b = make_tx("Unknown", "Cleaning service", "-80.00")
    assert detect([a, b]) == []


def test_three_identical_rows_flag_every_pair(make_tx) -> None:
    rows = [make_tx("2025-01-15", "Meals on Wheels", "-12.00") for _ in range(3)]
    alerts = detect(rows)
    assert _types(alerts) == ["duplicate"] * 3
    pairs = [tuple(t.id for t in a.transactions) for a in alerts]
    assert pairs == [("tx-1", "tx-2"), ("tx-1", "tx-3"), ("tx-2", "tx-3")]


# ---- outliers ----------------------------------------------------------------


def test_outliers_need_at_least_three_amounts(make_tx) -> None:
    txs = [
        make_tx("2025-01-01", "Nursing visit", "-10"),
        make_tx("2025-01-02", "Equipment hire", "-10000"),
    ]
    assert "unusual" not in _types(detect(txs))


def test_single_extreme_amount_is_flagged_once(make_tx) -> None:
    amounts = ["-10", "-11", "-12", "-13", "-14", "-15", "-10000"]
    txs = [
        make_tx(f"2025-01-{i + 1:02d}", f"Service line {chr(ord('a') + i)}", amt)
        for i, amt in enumerate(amounts)
    ]
    alerts = [a for a in detect(txs) if a.type == "unusual"]

    assert len(alerts) == 1
    assert alerts[0].severity == "medium"
    assert alerts[0].transactions == (txs[-1],)
    assert alerts[0].title == "Unusually high: $10000.00"


def test_outliers_below_floor_are_ignored(make_tx) -> None:
    amounts = ["-1", "-1", "-1", "-1", "-40"]
    txs = [
        make_tx(f"2025-02-{i + 1:02d}", f"Item {chr(ord('a') + i)}", amt)
        for i, amt in enumerate(amounts)
    ]
    assert "unusual" not in _types(detect(txs))


# ---- fee drift ---------------------------------------------------------------


@pytest.mark.parametrize(
    ("second", "expected"),
    [("-109", []), ("-112", ["medium"]), ("-200", ["high"])],
)
def test_fee_drift_thresholds(make_tx, second: str, expected: list[str]) -> None:
    txs = [
        make_tx("2025-01-01", "Cleaning", "-100"),
        make_tx("2025-02-01", "Cleaning", second),
    ]
    alerts = detect(txs)
    assert [a.severity for a in alerts if a.type == "changed"] == expected


def test_fee_drift_groups_by_normalized_description(make_tx) -> None:
    late = make_tx("2025-02-01", "cleaning!!", "-200")
    early = make_tx("2025-01-01", "Cleaning", "-100")
    (alert,) = detect([late, early])

    assert alert.type == "changed"
    assert alert.title == "Fee changed: $100.00 → $200.00"
    # Listed chronologically regardless of input order.
    assert alert.transactions == (early, late)


def test_fee_drift_from_zero_is_high(make_tx) -> None:
    txs = [
        make_tx("2025-01-01", "Meals", "0"),
        make_tx("2025-01-08", "Meals", "-20"),
    ]
    (alert,) = detect(txs)
    assert (alert.type, alert.severity) == ("changed", "high")


# ---- management fees ---------------------------------------------------------


def test_self_managed_over_ten_percent_is_high(make_tx) -> None:
    txs = [
        make_tx("2025-01-01", "Personal care", "-1000"),
        make_tx("2025-01-01", "Package management fee", "-150"),
    ]
    alerts = detect(txs, DetectOptions(management_mode="self"))

    assert _types(alerts) == ["management-fee"]
    assert alerts[0].severity == "high"
    assert "15.0%" in alerts[0].title


def test_self_managed_under_ten_percent_is_clean(make_tx) -> None:
    txs = [
        make_tx("2025-01-01", "Personal care", "-1000"),
        make_tx("2025-01-01", "Package management fee", "-90"),
    ]
    assert detect(txs, DetectOptions(management_mode="self")) == []


def test_self_managed_large_single_line_is_medium(make_tx) -> None:
    txs = [
        make_tx("2025-01-01", "Personal care", "-5000"),
        make_tx("2025-01-02", "Care management", "-150"),
    ]
    alerts = detect(txs, DetectOptions(management_mode="self"))
    assert [(a.type, a.severity) for a in alerts] == [("management-fee", "medium")]


def test_provider_mode_checks_individual_lines(make_tx) -> None:
    services = [make_tx("2025-01-01", "Personal care", "-1000")]
    fine = make_tx("2025-01-02", "Package management fee", "-150")
    assert detect([*services, fine]) == []

    high = make_tx("2025-01-03", "Case management", "-250")
    alerts = detect([*services, high])
    assert [(a.type, a.severity) for a in alerts] == [("management-fee", "medium")]


def test_provider_mode_flags_lines_above_half_average_service(make_tx) -> None:
    txs = [
        make_tx("2025-01-01", "Personal care", "-100"),
        make_tx("2025-01-02", "Admin charge", "-60"),
    ]
    alerts = detect(txs)
    assert _types(alerts) == ["management-fee"]


def test_credits_are_ignored_by_management_pass(make_tx) -> None:
    txs = [
        make_tx("2025-01-01", "Personal care", "-100"),
        make_tx("2025-01-02", "Admin refund", "500"),
    ]
    assert "management-fee" not in _types(detect(txs, DetectOptions(management_mode="self")))


# ---- ordering and purity -----------------------------------------------------


def test_high_severity_sorted_before_medium(make_tx) -> None:
    txs = [
        make_tx("2025-01-01", "Cleaning", "-100"),
        make_tx("2025-02-01", "Cleaning", "-112"),
        make_tx("2025-03-01", "Grocery Store", "-45.67"),
        make_tx("2025-03-01", "Grocery Store", "-45.67"),
    ]
    alerts = detect(txs)
    assert [(a.type, a.severity) for a in alerts] == [
        ("duplicate", "high"),
        ("changed", "medium"),
    ]


def test_equal_severity_keeps_pass_order(make_tx) -> None:
    txs = [
        make_tx("2025-01-01", "Cleaning", "-100"),
        make_tx("2025-02-01", "Cleaning", "-160"),
        make_tx("2025-03-01", "Grocery Store", "-45.67"),
        make_tx("2025-03-01", "Grocery Store", "-45.67"),
        make_tx("2025-03-05", "Plan management", "-60"),
    ]
    alerts = detect(txs, DetectOptions(management_mode="self"))
    assert [(a.type, a.severity) for a in alerts] == [
        ("duplicate", "high"),
        ("changed", "high"),
        ("management-fee", "high"),
    ]


def test_detect_is_deterministic_and_leaves_input_untouched(make_tx) -> None:
    txs = [
        make_tx("2025-01-01", "Cleaning", "-100"),
        make_tx("2025-02-01", "Cleaning", "-200"),
        make_tx("2025-02-01", "Cleaning", "-200"),
    ]
    before = list(txs)
    first = detect(txs)
    second = detect(txs)

    assert first == second
    assert txs == before
