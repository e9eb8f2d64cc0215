"""
Tests for the revenue segment / geography aggregator.
"""

import copy

import pytest

from finhub.services.segments import (
    aggregate,
    latest_period,
    normalize_region_name,
    normalize_segment_name,
    numeric_value,
)


def as_rows(entries):
    return [(e.name, e.value, e.percentage) for e in entries]


def test_negative_entries_leave_the_base_when_positives_exist():
    payload = {"Segments": {"iPhone": 200, "iPad": 50, "Services": -5}}

    assert as_rows(aggregate(payload)) == [("iPhone", 200, 80), ("iPad", 50, 20)]


def test_only_negative_entries_are_still_reported():
    payload = {"Segments": {"Services": -5}}

    assert as_rows(aggregate(payload)) == [("Services", -5, 100)]


def test_zero_total_gives_no_entries():
    assert aggregate({"Segments": {"Other": 0}}) == []
    assert aggregate({}) == []
    assert aggregate([]) == []
    assert aggregate(None) == []


def test_aggregation_is_repeatable_and_leaves_payload_untouched():
    payload = [{"2024-09-28": {"Product": {"iPhone": 201, "Mac": 29, "Services": 96}}}]
    snapshot = copy.deepcopy(payload)

    first = aggregate(payload)
    second = aggregate(payload)

    assert first == second
    assert payload == snapshot


def test_entries_are_sorted_largest_first():
    entries = aggregate({"Segments": {"Mac": 29, "Services": 96, "iPhone": 201}})

    assert [e.name for e in entries] == ["iPhone", "Services", "Mac"]
    assert sum(e.percentage for e in entries) == pytest.approx(100)


def test_nested_container_names_are_normalised():
    payload = {"Revenue": {"Segments": {"Wearables_Home": 30, "iPhone": 70}}}

    assert as_rows(aggregate(payload)) == [("iPhone", 70, 70), ("Wearables Home", 30, 30)]


def test_date_and_period_keys_are_not_segments():
    payload = {"date": "2024-09-28", "fiscalPeriod": 4, "iPhone": 100, "Mac": 25}

    assert as_rows(aggregate(payload)) == [("iPhone", 100, 80), ("Mac", 25, 20)]


def test_same_name_is_summed_across_containers():
    payload = {"Segments": {"Cloud": 10}, "Product": {"Cloud": 30, "Devices": 10}}

    assert as_rows(aggregate(payload)) == [("Cloud", 40, 80), ("Devices", 10, 20)]


def test_container_values_are_counted_once():
    payload = {"Segments": {"Cloud": 10, "Devices": 10}}

    assert [e.value for e in aggregate(payload)] == [10, 10]


def test_numeric_strings_count_and_booleans_do_not():
    payload = {"Segments": {"Cloud": "30", "Flag": True, "Devices": 10, "Note": "n/a"}}

    assert as_rows(aggregate(payload)) == [("Cloud", 30, 75), ("Devices", 10, 25)]


def test_nodes_beyond_depth_limit_are_ignored():
    payload = {"Top": 5, "a": {"b": {"Deep": 10}}}

    assert as_rows(aggregate(payload, max_depth=1)) == [("Top", 5, 100)]
    assert {e.name for e in aggregate(payload, max_depth=5)} == {"Top", "Deep"}


def test_geographic_names_merge_after_normalisation():
    payload = {"Geographical": {"UNITED STATES": 60, "U.S.": 20, "Europe Segment": 20}}

    rows = as_rows(aggregate(payload, normalizer=normalize_region_name))

    assert rows == [("US", 80, 80), ("Europe", 20, 20)]


# -----------------------------------------------------------------------------
# latest_period
# -----------------------------------------------------------------------------

def test_latest_period_takes_newest_dated_entry():
    payload = [
        {"2024-09-28": {"iPhone": 201, "Mac": 29}},
        {"2023-09-30": {"iPhone": 200, "Mac": 29}},
    ]

    assert as_rows(aggregate(latest_period(payload)))[0] == ("iPhone", 201, pytest.approx(87.39, abs=0.01))


def test_latest_period_passes_other_shapes_through():
    assert latest_period([]) == []
    assert latest_period({"Segments": {}}) == {"Segments": {}}
    assert latest_period(None) is None


# -----------------------------------------------------------------------------
# Name normalisation
# -----------------------------------------------------------------------------

@pytest.mark.parametrize(
    "key, expected",
    [
        ("Wearables_Home", "Wearables Home"),
        ("WearablesHome", "Wearables Home"),
        ("iPhone", "iPhone"),
        ("Mac", "Mac"),
        ("Wearables, Home and Accessories", "Wearables, Home and Accessories"),
    ],
)
def test_normalize_segment_name(key, expected):
    assert normalize_segment_name(key) == expected


@pytest.mark.parametrize(
    "key, expected",
    [
        ("UNITED STATES", "US"),
        ("U.S.", "US"),
        ("Americas Segment", "Americas"),
        ("Greater China", "Greater China"),
        ("Rest of Asia Pacific", "Rest of Asia Pacific"),
        ("JAPA", "Japan"),
        ("EMEA Region", "EMEA"),
        ("latin america region", "Latin America"),
        ("", "Other"),
    ],
)
def test_normalize_region_name(key, expected):
    assert normalize_region_name(key) == expected


@pytest.mark.parametrize(
    "value, expected",
    [(3, 3.0), (2.5, 2.5), (" 7 ", 7.0), ("abc", None), (True, None), (None, None), (float("nan"), None)],
)
def test_numeric_value(value, expected):
    assert numeric_value(value) == expected
