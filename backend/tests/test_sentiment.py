"""
Tests for keyword news sentiment.
"""

import pytest

from finhub.services.sentiment import SentimentSummary, score_text, summarize


@pytest.mark.parametrize(
    "text, expected",
    [
        ("Shares rise on strong growth", 0.3),
        ("Guidance miss and weak demand", -0.2),
        ("up down", 0.0),
        ("Nothing to see here", 0.0),
        ("", 0.0),
        (None, 0.0),
    ],
)
def test_score_text(text, expected):
    assert score_text(text) == pytest.approx(expected)


def test_score_text_is_clamped():
    assert score_text("up " * 15) == 1.0
    assert score_text("down " * 15) == -1.0


def test_summarize_without_articles_is_neutral_zero():
    assert summarize([]) == SentimentSummary()


def test_summarize_counts_trend_and_market_comparison():
    articles = [
        {"text": "up up up up gain gain strong beat"},
        {"text": "down loss weak miss fall decline"},
        {"text": "Quarterly report published"},
        {"title": "No body"},
    ]
    market = [{"text": "up up"}]

    summary = summarize(articles, market)

    assert summary.overall_score == pytest.approx(0.05)
    assert (summary.positive_count, summary.negative_count, summary.neutral_count) == (1, 1, 2)
    assert summary.recent_trend == pytest.approx(0.1)
    assert summary.market_comparison == pytest.approx(-0.15)


def test_single_article_has_no_trend_and_no_market_baseline():
    summary = summarize([{"text": "strong growth beat up up up gain rise"}])

    assert summary.overall_score == pytest.approx(0.8)
    assert summary.recent_trend == 0
    assert summary.market_comparison == 0


def test_summary_serialises_with_dashboard_keys():
    assert set(SentimentSummary().to_dict()) == {
        "overallScore",
        "positiveCount",
        "negativeCount",
        "neutralCount",
        "recentTrend",
        "marketComparison",
    }
