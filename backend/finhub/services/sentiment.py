"""
sentiment.py — Keyword-count news sentiment.

Each article scores +1 per positive keyword and -1 per negative keyword,
scaled by 1/10 and clamped to [-1, 1]. Articles above 0.3 count as positive,
below -0.3 as negative, the rest as neutral.

`scored_articles` attaches the per-article score to the news feed rows.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

POSITIVE_WORDS = {"up", "gain", "positive", "growth", "strong", "beat", "increase", "rise"}
NEGATIVE_WORDS = {"down", "loss", "negative", "decline", "weak", "miss", "decrease", "fall"}

POSITIVE_THRESHOLD = 0.3
NEGATIVE_THRESHOLD = -0.3


@dataclass
class SentimentSummary:
    overall_score: float = 0.0
    positive_count: int = 0
    negative_count: int = 0
    neutral_count: int = 0
    recent_trend: float = 0.0
    market_comparison: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overallScore": self.overall_score,
            "positiveCount": self.positive_count,
            "negativeCount": self.negative_count,
            "neutralCount": self.neutral_count,
            "recentTrend": self.recent_trend,
            "marketComparison": self.market_comparison,
        }


def score_text(text: Optional[str]) -> float:
    score = 0
    for word in (text or "").lower().split():
        if word in POSITIVE_WORDS:
            score += 1
        if word in NEGATIVE_WORDS:
            score -= 1
    return max(-1.0, min(1.0, score / 10))


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def summarize(
    articles: Sequence[Dict[str, Any]],
    market_articles: Sequence[Dict[str, Any]] = (),
) -> SentimentSummary:
    """
    Aggregate per-article scores.

    recent_trend compares the newer half of `articles` (they arrive newest
    first) with the older half; it is 0 when either half is empty.
    market_comparison is the overall score minus the market-news mean, 0
    without market news.
    """
    if not articles:
        return SentimentSummary()

    scores: List[float] = [score_text(a.get("text")) for a in articles]
    overall = _mean(scores)

    mid = len(scores) // 2
    recent, older = scores[:mid], scores[mid:]
    trend = _mean(recent) - _mean(older) if recent and older else 0.0

    market_scores = [score_text(a.get("text")) for a in market_articles]
    comparison = overall - _mean(market_scores) if market_scores else 0.0

    return SentimentSummary(
        overall_score=overall,
        positive_count=sum(1 for s in scores if s > POSITIVE_THRESHOLD),
        negative_count=sum(1 for s in scores if s < NEGATIVE_THRESHOLD),
        neutral_count=sum(1 for s in scores if NEGATIVE_THRESHOLD <= s <= POSITIVE_THRESHOLD),
        recent_trend=trend,
        market_comparison=comparison,
    )


_ARTICLE_FIELDS = ("title", "publishedDate", "site", "url", "text")


def scored_articles(articles: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """News rows as {title, date, source, url, summary, sentiment}; incomplete rows are dropped."""
    scored = []
    for article in articles:
        if not isinstance(article, dict) or not all(article.get(f) for f in _ARTICLE_FIELDS):
            continue
        scored.append(
            {
                "title": article["title"],
                "date": article["publishedDate"],
                "source": article["site"],
                "url": article["url"],
                "summary": article["text"],
                "sentiment": score_text(article["text"]),
            }
        )
    return scored
