import logging
from datetime import datetime, timezone
from typing import Callable, Optional, Sequence

from sqlalchemy.orm import Session

from stock_news.classifier import SentimentClassifier
from stock_news.errors import ProviderError
from stock_news.fetcher import MarketauxClient, fetch_article_content
from stock_news.models import UserStockArticle
from stock_news.repository import latest_article_for_symbol, upsert_user_article
from stock_news.schemas import AnalyzeStocksResponse, ArticleIngest
from stock_news.symbols import SymbolGroup

logger = logging.getLogger(__name__)

ARTICLES_PER_SYMBOL = 10
ARTICLES_WITH_CONTENT = 3


class UserStockAnalyzer:
    """
    Builds one analysis row per (user, symbol).

    Magnificent-7 symbols reuse the newest stored article for the symbol. Other
    symbols get a fresh composite analysis of the top articles' full text.
    """

    def __init__(
        self,
        news_client: MarketauxClient,
        classifier: SentimentClassifier,
        content_fetcher: Callable[[str], str] = fetch_article_content,
    ):
        self.news_client = news_client
        self.classifier = classifier
        self.content_fetcher = content_fetcher

    def _copy_shared(self, db: Session, user_id: str, symbol: str) -> Optional[UserStockArticle]:
        existing = latest_article_for_symbol(db, symbol)
        if existing is None:
            return None
        logger.info(f"{symbol} is Magnificent 7 - duplicating existing analysis for user {user_id}")
        return upsert_user_article(db, user_id, symbol, ArticleIngest(
            symbol=symbol,
            title=existing.title,
            description=existing.description,
            url=existing.url,
            published_at=existing.published_at,
            ai_sentiment=existing.ai_sentiment,
            ai_confidence=existing.ai_confidence,
            ai_reasoning=existing.ai_reasoning,
        ))

    def _analyze_fresh(self, db: Session, user_id: str, symbol: str) -> Optional[UserStockArticle]:
        articles = self.news_client.fetch_news([symbol], limit=ARTICLES_PER_SYMBOL)
        logger.info(f"Found {len(articles)} articles for {symbol}")
        if not articles:
            return None

        top = [
            {
                "title": a.title,
                "description": a.description,
                "published_at": a.published_at.isoformat() if a.published_at else None,
                "url": a.url,
                "content": self.content_fetcher(a.url) or a.description,
            }
            for a in articles[:ARTICLES_WITH_CONTENT]
        ]
        result = self.classifier.classify_composite(top, symbol)

        return upsert_user_article(db, user_id, symbol, ArticleIngest(
            symbol=symbol,
            title=f"{symbol} Comprehensive Market Analysis",
            description=f"In-depth analysis based on {len(top)} complete news articles",
            url=f"https://finance.yahoo.com/quote/{symbol}",
            published_at=datetime.now(timezone.utc),
            ai_sentiment=result.sentiment,
            ai_confidence=result.confidence,
            ai_reasoning=result.reasoning,
        ))

    def analyze(self, db: Session, user_id: str, symbols: Sequence[str]) -> AnalyzeStocksResponse:
        """Analyze each symbol in turn; a symbol whose news can't be fetched is skipped."""
        response = AnalyzeStocksResponse()
        for raw_symbol in symbols:
            symbol = raw_symbol.strip().upper()
            logger.info(f"Processing {symbol} for user {user_id}...")

            row = None
            if symbol in SymbolGroup.MAGNIFICENT_7.symbols:
                row = self._copy_shared(db, user_id, symbol)

            if row is None:
                try:
                    row = self._analyze_fresh(db, user_id, symbol)
                except ProviderError as e:
                    logger.error(f"Failed to fetch news for {symbol}: {e}")

            if row is None:
                response.skipped.append(symbol)
            else:
                response.analyzed.append(symbol)

        return response
