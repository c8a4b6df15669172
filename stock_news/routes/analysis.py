import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from stock_news.classifier import SentimentClassifier
from stock_news.errors import ProviderError, error_response
from stock_news.schemas import ClassifyRequest, SentimentResult, WeightRequest, WeightResponse
from stock_news.services import get_allocator, get_classifier
from stock_news.weights import WeightAllocator

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/classify", response_model=SentimentResult)
def classify(request: ClassifyRequest, classifier: SentimentClassifier = Depends(get_classifier)):
    """Score one article. Provider failures come back as the neutral fallback, never as an error."""
    return classifier.classify(request.title, request.description, request.symbol, request.label_style)


@router.post("/article-weights", response_model=WeightResponse)
def article_weights(request: WeightRequest, allocator: WeightAllocator = Depends(get_allocator)):
    """
    Distribute 1-5 influence weights across the articles behind an aggregate sentiment.
    Returns exactly one weight per submitted article.
    """
    try:
        weights = allocator.allocate(
            request.articles,
            request.overall_sentiment,
            request.overall_confidence,
            request.symbol,
        )
    except ProviderError as e:
        logger.error(f"[/article-weights] Error calculating article weights for {request.symbol}: {e}")
        return error_response(e)

    return WeightResponse(
        symbol=request.symbol,
        weights=weights,
        calculated_at=datetime.now(timezone.utc),
    )
