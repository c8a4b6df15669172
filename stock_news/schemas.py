from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Articles
# ---------------------------------------------------------------------------

class ArticleIngest(BaseModel):
    """An article ready to be written to news_articles. Every field overwrites on upsert."""
    symbol: str
    title: str
    url: str
    description: Optional[str] = None
    source: Optional[str] = None
    published_at: Optional[datetime] = None
    category: Optional[str] = None
    ai_sentiment: Optional[str] = None
    ai_confidence: Optional[int] = None
    ai_reasoning: Optional[str] = None


class ArticleResponse(BaseModel):
    id: int
    symbol: str
    title: str
    description: Optional[str] = None
    url: str
    source: Optional[str] = None
    published_at: Optional[datetime] = None
    category: Optional[str] = None
    ai_sentiment: Optional[str] = None
    ai_confidence: Optional[int] = None
    ai_reasoning: Optional[str] = None

    # Allows Pydantic to read data directly from SQLAlchemy model instances
    model_config = ConfigDict(from_attributes=True)


class UserArticleResponse(BaseModel):
    id: int
    user_id: str
    symbol: str
    title: str
    description: Optional[str] = None
    url: Optional[str] = None
    published_at: Optional[datetime] = None
    ai_sentiment: Optional[str] = None
    ai_confidence: Optional[int] = None
    ai_reasoning: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# Sentiment
# ---------------------------------------------------------------------------

class LabelStyle(str, Enum):
    """Vocabulary the caller wants sentiment labels in."""
    POLARITY = "polarity"   # positive / negative / neutral
    MARKET = "market"       # Bullish / Bearish / Neutral


class ClassifyRequest(BaseModel):
    title: str
    description: Optional[str] = None
    symbol: str
    label_style: LabelStyle = LabelStyle.POLARITY


class SentimentResult(BaseModel):
    sentiment: str
    confidence: int
    reasoning: str


# ---------------------------------------------------------------------------
# Article weights
# ---------------------------------------------------------------------------

class WeightArticle(BaseModel):
    title: str
    description: Optional[str] = None
    published_at: Optional[str] = None


class WeightRequest(BaseModel):
    articles: List[WeightArticle] = Field(min_length=1)
    overall_sentiment: str = Field(alias="overallSentiment")
    overall_confidence: int = Field(alias="overallConfidence")
    symbol: str

    model_config = ConfigDict(populate_by_name=True)


class ArticleWeight(BaseModel):
    article_index: int
    weight: int = Field(ge=1, le=5)
    reasoning: str


class WeightResponse(BaseModel):
    success: bool = True
    symbol: str
    weights: List[ArticleWeight]
    calculated_at: datetime


# ---------------------------------------------------------------------------
# Reclassification
# ---------------------------------------------------------------------------

class ReclassifyUpdate(BaseModel):
    id: int
    title: str
    old_symbol: str = Field(alias="oldSymbol")
    new_symbol: str = Field(alias="newSymbol")

    model_config = ConfigDict(populate_by_name=True)


class ReclassifyResult(BaseModel):
    success: bool = True
    message: str
    total_processed: int = Field(alias="totalProcessed")
    updated_count: int = Field(alias="updatedCount")
    updates: List[ReclassifyUpdate] = []

    model_config = ConfigDict(populate_by_name=True)


# ---------------------------------------------------------------------------
# Ingestion / per-user analysis
# ---------------------------------------------------------------------------

class FetchSummary(BaseModel):
    success: bool = True
    groups: Dict[str, int] = {}
    headlines: int = 0
    purged: int = 0
    errors: Dict[str, str] = {}


class AnalyzeStocksRequest(BaseModel):
    symbols: List[str] = Field(min_length=1)


class AnalyzeStocksResponse(BaseModel):
    success: bool = True
    analyzed: List[str] = []
    skipped: List[str] = []
