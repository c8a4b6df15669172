from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String, Text, UniqueConstraint

from stock_news.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class NewsArticle(Base):
    __tablename__ = "news_articles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    symbol = Column(String, nullable=False, index=True)   # ticker, or a fallback tag such as "MARKET"
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    url = Column(String, nullable=False, unique=True)     # natural dedup key
    source = Column(String, nullable=True)                # e.g. "reuters.com", "cnbc-top-news"
    published_at = Column(DateTime, nullable=True)
    category = Column(String, nullable=True)

    # --- Model output (null for unscored headlines) ---
    ai_sentiment = Column(String, nullable=True)
    ai_confidence = Column(Integer, nullable=True)        # 0-100
    ai_reasoning = Column(Text, nullable=True)

    # --- Metadata ---
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)


class UserStockArticle(Base):
    __tablename__ = "user_stock_articles"
    __table_args__ = (UniqueConstraint("user_id", "symbol", name="uq_user_stock_articles_user_symbol"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False, index=True)
    symbol = Column(String, nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    url = Column(String, nullable=True)
    published_at = Column(DateTime, nullable=True)

    ai_sentiment = Column(String, nullable=True)
    ai_confidence = Column(Integer, nullable=True)
    ai_reasoning = Column(Text, nullable=True)

    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)
