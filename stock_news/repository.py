"""
Persistence writer for news_articles and user_stock_articles.

Upserts overwrite the whole row on conflict (last write wins); nothing is merged.
Every write commits its own transaction.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from stock_news.models import NewsArticle, UserStockArticle
from stock_news.schemas import ArticleIngest
from stock_news.symbols import HEADLINE_CATEGORY

logger = logging.getLogger(__name__)

# Columns copied from a news article into a user's article set
_USER_ARTICLE_FIELDS = (
    "title", "description", "url", "published_at",
    "ai_sentiment", "ai_confidence", "ai_reasoning",
)


# ---------------------------------------------------------------------------
# news_articles
# ---------------------------------------------------------------------------

def upsert_article_by_url(db: Session, article: ArticleIngest) -> NewsArticle:
    """Insert the article, or overwrite every field of the row that has the same URL."""
    row = db.query(NewsArticle).filter(NewsArticle.url == article.url).one_or_none()
    if row is None:
        row = NewsArticle()
        db.add(row)

    for field, value in article.model_dump().items():
        setattr(row, field, value)

    db.commit()
    db.refresh(row)
    return row


def insert_article_if_absent(db: Session, article: ArticleIngest) -> Optional[NewsArticle]:
    """
    Insert the article unless its URL is already stored.

    Used for headlines, whose stored rows may have been retagged since they were
    first seen and must not be reset.

    Returns:
        the new row, or None if the URL already existed
    """
    exists = db.query(NewsArticle.id).filter(NewsArticle.url == article.url).first()
    if exists is not None:
        return None

    row = NewsArticle(**article.model_dump())
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def list_articles(
    db: Session,
    symbols: Optional[Sequence[str]] = None,
    limit: int = 100,
) -> List[NewsArticle]:
    """Newest articles first, optionally restricted to a set of symbols."""
    query = db.query(NewsArticle)
    if symbols:
        query = query.filter(NewsArticle.symbol.in_([s.upper() for s in symbols]))
    return (
        query.order_by(NewsArticle.published_at.desc(), NewsArticle.id.desc())
        .limit(limit)
        .all()
    )


def articles_with_symbol(db: Session, symbol: str) -> List[NewsArticle]:
    return db.query(NewsArticle).filter(NewsArticle.symbol == symbol).order_by(NewsArticle.id).all()


def latest_article_for_symbol(db: Session, symbol: str) -> Optional[NewsArticle]:
    return (
        db.query(NewsArticle)
        .filter(NewsArticle.symbol == symbol)
        .order_by(NewsArticle.created_at.desc(), NewsArticle.id.desc())
        .first()
    )


def update_article_symbol(db: Session, article_id: int, symbol: str, category: Optional[str]) -> bool:
    """Retag one article. Returns False if the row no longer exists."""
    row = db.get(NewsArticle, article_id)
    if row is None:
        return False
    row.symbol = symbol
    row.category = category
    db.commit()
    return True


def purge_headlines_older_than(db: Session, days: int) -> int:
    """
    Retention sweep for general headlines.

    Only rows still categorised as headlines are removed; anything reclassified
    to a specific category is kept.

    Returns:
        number of rows deleted
    """
    cutoff = datetime.now(timezone.utc) - timedelta(days=days)
    deleted = (
        db.query(NewsArticle)
        .filter(NewsArticle.category == HEADLINE_CATEGORY)
        .filter(NewsArticle.published_at < cutoff)
        .delete(synchronize_session=False)
    )
    db.commit()
    logger.info(f"Purged {deleted} headlines older than {days} days")
    return deleted


# ---------------------------------------------------------------------------
# user_stock_articles
# ---------------------------------------------------------------------------

def upsert_user_article(db: Session, user_id: str, symbol: str, article: ArticleIngest) -> UserStockArticle:
    """Insert or overwrite the single article a user holds for `symbol`."""
    symbol = symbol.upper()
    row = (
        db.query(UserStockArticle)
        .filter(UserStockArticle.user_id == user_id, UserStockArticle.symbol == symbol)
        .one_or_none()
    )
    if row is None:
        row = UserStockArticle(user_id=user_id, symbol=symbol)
        db.add(row)

    data = article.model_dump()
    for field in _USER_ARTICLE_FIELDS:
        setattr(row, field, data[field])

    db.commit()
    db.refresh(row)
    return row


def list_user_articles(db: Session, user_id: str) -> List[UserStockArticle]:
    return (
        db.query(UserStockArticle)
        .filter(UserStockArticle.user_id == user_id)
        .order_by(UserStockArticle.symbol)
        .all()
    )
