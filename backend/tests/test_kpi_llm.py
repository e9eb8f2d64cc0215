"""
Tests for LLM KPI extraction: reply parsing and post-processing.
"""

import json

import pytest

from finhub.core.config import settings
from finhub.services.kpi.llm import (
    SYSTEM_PROMPT,
    KpiExtractionError,
    KpiParseError,
    ParsedKpis,
    build_prompt,
    extract_kpis_with_llm,
    parse_kpi_response,
)

SUBSCRIBERS = {
    "type": "subscribers",
    "displayName": "Total Subscribers",
    "value": 52600000,
    "unit": "count",
    "period": "quarterly",
    "sourceText": "We ended Q3 with 52.6 million subscribers",
    "confidence": 0.95,
    "category": "customer",
}


# -----------------------------------------------------------------------------
# parse_kpi_response
# -----------------------------------------------------------------------------

def test_parse_strict_json():
    parsed = parse_kpi_response(json.dumps({"kpis": [SUBSCRIBERS]}))

    assert isinstance(parsed, ParsedKpis)
    assert parsed.kpis == [SUBSCRIBERS]


def test_parse_json_embedded_in_prose():
    content = "Here are the KPIs:\n" + json.dumps({"kpis": [SUBSCRIBERS]}) + "\nLet me know if you need more."

    parsed = parse_kpi_response(content)

    assert isinstance(parsed, ParsedKpis)
    assert parsed.kpis[0]["type"] == "subscribers"


def test_parse_empty_kpi_list_is_not_an_error():
    parsed = parse_kpi_response('{"kpis": []}')

    assert isinstance(parsed, ParsedKpis)
    assert parsed.kpis == []


@pytest.mark.parametrize(
    "content",
    [
        "I could not find any KPIs in this document.",
        "{not json at all}",
        '{"metrics": []}',
        "[1, 2, 3]",
    ],
)
def test_parse_failures_return_parse_error(content):
    parsed = parse_kpi_response(content)

    assert isinstance(parsed, KpiParseError)


# -----------------------------------------------------------------------------
# Prompt
# -----------------------------------------------------------------------------

def test_prompt_uses_industry_and_document_hints():
    prompt = build_prompt("text", "NFLX", industry="Streaming", document_type="10-Q")

    assert "COMMON STREAMING KPIs" in prompt
    assert "This is a quarterly report." in prompt
    assert '"kpis"' in prompt


def test_prompt_falls_back_to_generic_hints():
    prompt = build_prompt("text", "XYZ", industry="mining", document_type="letter")

    assert "COMMON KPIs TO LOOK FOR" in prompt
    assert "Extract operational performance metrics from this document." in prompt


# -----------------------------------------------------------------------------
# extract_kpis_with_llm
# -----------------------------------------------------------------------------

def test_extract_stamps_provenance(fake_llm):
    fake_llm.content = json.dumps({"kpis": [SUBSCRIBERS]})

    result = extract_kpis_with_llm(fake_llm, "We ended Q3 with 52.6 million subscribers", "nflx")

    assert len(result.kpis) == 1
    kpi = result.kpis[0]
    assert kpi.symbol == "NFLX"
    assert kpi.kpi_type == "subscribers"
    assert kpi.value == 52_600_000
    assert kpi.extraction_method.value == "llm"
    assert kpi.validated is False
    assert kpi.quality_score == 0.95
    assert kpi.anomaly_flags == []
    assert result.confidence == pytest.approx(0.95)

    sent = fake_llm.prompts[0]
    assert sent["system"] == SYSTEM_PROMPT
    assert sent["temperature"] == 0.1
    assert sent["max_tokens"] == 4000
    assert sent["model"] == settings.PERPLEXITY_KPI_MODEL


def test_extract_flags_values_outside_known_enums(fake_llm):
    odd = dict(SUBSCRIBERS, category="engagement", unit="hours", period="weekly", confidence=1.4)
    fake_llm.content = json.dumps({"kpis": [odd]})

    kpi = extract_kpis_with_llm(fake_llm, "text", "NFLX").kpis[0]

    assert kpi.confidence == 1.0
    assert "invalid_category:engagement" in kpi.anomaly_flags
    assert "invalid_unit:hours" in kpi.anomaly_flags
    assert "invalid_period:weekly" in kpi.anomaly_flags


def test_extract_skips_entries_without_numeric_value(fake_llm):
    fake_llm.content = json.dumps({"kpis": [dict(SUBSCRIBERS, value="n/a"), SUBSCRIBERS]})

    result = extract_kpis_with_llm(fake_llm, "text", "NFLX")

    assert len(result.kpis) == 1


def test_overall_confidence_is_mean(fake_llm):
    fake_llm.content = json.dumps(
        {"kpis": [dict(SUBSCRIBERS, confidence=0.9), dict(SUBSCRIBERS, type="arpu", confidence=0.5)]}
    )

    assert extract_kpis_with_llm(fake_llm, "text", "NFLX").confidence == pytest.approx(0.7)


def test_no_kpis_gives_zero_confidence(fake_llm):
    fake_llm.content = '{"kpis": []}'

    result = extract_kpis_with_llm(fake_llm, "text", "NFLX")

    assert result.kpis == []
    assert result.confidence == 0


def test_unusable_reply_raises(fake_llm):
    fake_llm.content = "Sorry, I can't help with that."

    with pytest.raises(KpiExtractionError, match="Invalid JSON response"):
        extract_kpis_with_llm(fake_llm, "text", "NFLX")


def test_document_text_is_truncated(fake_llm, monkeypatch):
    monkeypatch.setattr(settings, "KPI_MAX_TEXT_CHARS", 100)

    extract_kpis_with_llm(fake_llm, "A" * 500, "NFLX")

    assert "A" * 100 in fake_llm.prompts[0]["user"]
    assert "A" * 101 not in fake_llm.prompts[0]["user"]
