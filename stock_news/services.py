from dataclasses import dataclass

from fastapi import Request

from stock_news.classifier import SentimentClassifier
from stock_news.config import Settings
from stock_news.connections import ConnectionManager
from stock_news.fetcher import FetcherService, MarketauxClient
from stock_news.llm import ChatClient
from stock_news.ratelimit import TokenBucket
from stock_news.reclassifier import Reclassifier
from stock_news.user_stocks import UserStockAnalyzer
from stock_news.weights import WeightAllocator


@dataclass
class Services:
    classifier: SentimentClassifier
    allocator: WeightAllocator
    fetcher: FetcherService
    reclassifier: Reclassifier
    analyzer: UserStockAnalyzer


def build_services(settings: Settings, connections: ConnectionManager) -> Services:
    """Create the clients and services, registering everything closeable with `connections`."""
    news_client = MarketauxClient(
        settings.MARKETAUX_API_KEY,
        base_url=settings.MARKETAUX_BASE_URL,
        limiter=TokenBucket.per_interval(settings.NEWS_REQUEST_INTERVAL_SECONDS, name="marketaux"),
    )
    connections.register("marketaux", news_client.close)

    sentiment_chat = ChatClient(settings.OPENAI_API_KEY, settings.OPENAI_MODEL)
    connections.register("openai-sentiment", sentiment_chat.close)

    weights_chat = ChatClient(
        settings.OPENAI_API_KEY,
        settings.WEIGHTS_MODEL,
        limiter=TokenBucket.per_interval(settings.WEIGHT_CALL_DELAY_SECONDS, name="openai-weights"),
    )
    connections.register("openai-weights", weights_chat.close)

    classifier = SentimentClassifier(
        sentiment_chat,
        backend=settings.SENTIMENT_BACKEND,
        finbert_model=settings.FINBERT_MODEL,
        fallback_confidence=settings.FALLBACK_CONFIDENCE,
    )

    return Services(
        classifier=classifier,
        allocator=WeightAllocator(weights_chat, default_weight=settings.DEFAULT_ARTICLE_WEIGHT),
        fetcher=FetcherService(
            news_client,
            classifier,
            pages=settings.NEWS_PAGES_PER_GROUP,
            retention_days=settings.HEADLINE_RETENTION_DAYS,
            interval_seconds=settings.FETCH_INTERVAL_SECONDS,
        ),
        reclassifier=Reclassifier(),
        analyzer=UserStockAnalyzer(news_client, classifier),
    )


# ---------------------------------------------------------------------------
# FastAPI dependencies: services live on app.state, set in the lifespan
# ---------------------------------------------------------------------------

def get_services(request: Request) -> Services:
    return request.app.state.services


def get_classifier(request: Request) -> SentimentClassifier:
    return get_services(request).classifier


def get_allocator(request: Request) -> WeightAllocator:
    return get_services(request).allocator


def get_fetcher(request: Request) -> FetcherService:
    return get_services(request).fetcher


def get_reclassifier(request: Request) -> Reclassifier:
    return get_services(request).reclassifier


def get_analyzer(request: Request) -> UserStockAnalyzer:
    return get_services(request).analyzer
