"""
Tests for pattern-based KPI extraction.
"""

import pytest

from finhub.core.config import settings
from finhub.services.kpi.patterns import (
    PATTERN_CONFIDENCE,
    deduplicate,
    extract_kpis,
    is_near_duplicate,
    parse_number,
    scale_factor,
)


def test_quarter_end_subscriber_sentence_yields_single_kpi():
    kpis = extract_kpis("We ended Q3 with 52.6 million subscribers", "nflx")

    assert len(kpis) == 1
    kpi = kpis[0]
    assert kpi.kpi_type == "subscribers"
    assert kpi.value == pytest.approx(52_600_000)
    assert kpi.unit == "count"
    assert kpi.symbol == "NFLX"
    assert kpi.confidence == PATTERN_CONFIDENCE
    assert kpi.quality_score == PATTERN_CONFIDENCE
    assert kpi.extraction_method.value == "pattern"
    assert kpi.validated is False
    assert kpi.anomaly_flags == []
    assert kpi.source_text == "ended Q3 with 52.6 million subscribers"


def test_provenance_fields_are_recorded():
    kpis = extract_kpis(
        "Total subscribers: 230 million",
        "NFLX",
        source_document="q4-letter.txt",
        report_date="2024-12-31",
        period="quarterly",
    )

    assert kpis[0].source_document == "q4-letter.txt"
    assert kpis[0].date == "2024-12-31"
    assert kpis[0].period == "quarterly"


def test_values_within_one_percent_collapse_to_first():
    text = "Total subscribers: 100 million. Subscriber count: 100.5 million."
    kpis = extract_kpis(text, "NFLX")

    subscribers = [k for k in kpis if k.kpi_type == "subscribers"]
    assert len(subscribers) == 1
    assert subscribers[0].value == pytest.approx(100_000_000)


def test_values_more_than_one_percent_apart_both_survive():
    text = "Total subscribers: 100 million. Subscriber count: 120 million."
    kpis = extract_kpis(text, "NFLX")

    values = sorted(k.value for k in kpis if k.kpi_type == "subscribers")
    assert values == pytest.approx([100_000_000, 120_000_000])


def test_overlapping_store_patterns_deduplicate():
    kpis = extract_kpis("At year end we operated 38,587 stores worldwide.", "SBUX")

    stores = [k for k in kpis if k.kpi_type == "stores"]
    assert len(stores) == 1
    assert stores[0].value == 38_587
    assert stores[0].category == "operational"


def test_thousand_suffix_scales_value():
    kpis = extract_kpis("Monthly active users: 250 thousand", "RBLX")

    assert [(k.kpi_type, k.value) for k in kpis] == [("mau", 250_000)]


def test_unparseable_number_is_dropped():
    assert extract_kpis("Total stores: , see appendix", "SBUX") == []


def test_text_without_kpis_returns_empty_list():
    assert extract_kpis("Revenue grew in every region this quarter.", "AAPL") == []


def test_input_is_truncated_to_budget(monkeypatch):
    monkeypatch.setattr(settings, "KPI_MAX_TEXT_CHARS", 40)
    text = "x" * 50 + " We ended Q3 with 52.6 million subscribers"

    assert extract_kpis(text, "NFLX") == []


@pytest.mark.parametrize(
    "suffix, factor",
    [
        (None, 1),
        ("", 1),
        ("million", 1e6),
        ("M", 1e6),
        ("mil", 1e6),
        ("thousand", 1e3),
        ("K", 1e3),
        ("billion", 1e9),
        ("bil", 1e9),
    ],
)
def test_scale_factor(suffix, factor):
    assert scale_factor(suffix) == factor


def test_parse_number_strips_thousands_separators():
    assert parse_number("1,234,567") == 1_234_567
    assert parse_number("52.6") == 52.6
    assert parse_number(",") != parse_number(",")  # NaN


def test_is_near_duplicate():
    assert is_near_duplicate(100.0, 100.0)
    assert is_near_duplicate(0.0, 0.0)
    assert is_near_duplicate(100.5, 100.0)
    assert not is_near_duplicate(102.0, 100.0)


def test_deduplicate_compares_against_kept_entries_only():
    base = extract_kpis("Total subscribers: 100 million", "NFLX")[0]
    near = base.model_copy(update={"value": 100_900_000})
    far = base.model_copy(update={"value": 101_800_000})

    kept = deduplicate([base, near, far])

    assert [k.value for k in kept] == [100_000_000, 101_800_000]
