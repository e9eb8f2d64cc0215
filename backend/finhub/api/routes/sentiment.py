"""
sentiment.py — News sentiment endpoints.

GET /sentiment?symbol=AAPL  → keyword sentiment over the 20 most recent
                              articles, compared with the 20 most recent
                              market-wide articles
GET /stock-news?symbol=AAPL → the 10 most recent articles, each with its score
"""

from fastapi import APIRouter, Depends

from finhub.api.deps import require_symbol
from finhub.core.errors import ApiError
from finhub.core.logging import get_logger
from finhub.data.fmp_client import FMPClient, FMPClientError, get_fmp_client
from finhub.services.sentiment import SentimentSummary, scored_articles, summarize

logger = get_logger(__name__)

router = APIRouter(tags=["sentiment"])

NEWS_LIMIT = 20
NEWS_FEED_LIMIT = 10


@router.get("/sentiment")
def get_sentiment(
    symbol: str = Depends(require_symbol),
    client: FMPClient = Depends(get_fmp_client),
):
    """
    Returns:
        {overallScore, positiveCount, negativeCount, neutralCount,
         recentTrend, marketComparison}
    """
    try:
        articles = client.stock_news(symbol, limit=NEWS_LIMIT)
        if not articles:
            logger.info(f"No news articles found for {symbol}")
            return SentimentSummary().to_dict()
        market_articles = client.market_news(limit=NEWS_LIMIT)
    except FMPClientError as e:
        logger.error(f"Error analyzing sentiment for {symbol}: {e}")
        raise ApiError(500, "Failed to analyze sentiment", details=str(e)) from e

    return summarize(articles, market_articles).to_dict()


@router.get("/stock-news")
def get_stock_news(
    symbol: str = Depends(require_symbol),
    client: FMPClient = Depends(get_fmp_client),
):
    """
    Returns:
        [{title, date, source, url, summary, sentiment}]
    """
    try:
        articles = client.stock_news(symbol, limit=NEWS_FEED_LIMIT)
    except FMPClientError as e:
        logger.error(f"Error fetching news for {symbol}: {e}")
        raise ApiError(500, "Failed to fetch news", details=str(e)) from e

    return scored_articles(articles)
