import asyncio
import logging
import re
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

import feedparser
import requests
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stock_news.classifier import SentimentClassifier
from stock_news.errors import ProviderError, ResponseFormatError
from stock_news.ratelimit import TokenBucket
from stock_news.repository import insert_article_if_absent, purge_headlines_older_than
from stock_news.schemas import ArticleIngest, FetchSummary
from stock_news.symbols import HEADLINE_CATEGORY, SymbolGroup, extract_symbol

logger = logging.getLogger(__name__)

FETCH_INTERVAL_SECONDS = 900  # 15 minutes
REQUEST_TIMEOUT_SECONDS = 30
MAX_CONTENT_CHARS = 3000

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/127.0.0.0 Safari/537.36"
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def strip_html(text: str) -> str:
    """Remove HTML tags from a string, returning clean plain text."""
    return re.sub(r"<[^>]+>", "", text or "").strip()


def parse_date(entry) -> datetime:
    """
    Extract a UTC datetime from a feedparser entry.
    Falls back to the current time if no date is found.
    """
    parsed = getattr(entry, "published_parsed", None) or getattr(entry, "updated_parsed", None)
    if parsed:
        return datetime(*parsed[:6], tzinfo=timezone.utc)
    return datetime.now(timezone.utc)


def parse_iso_datetime(value: Optional[str]) -> datetime:
    """Parse an ISO-8601 timestamp from the news API into UTC; now() if missing or invalid."""
    if not value:
        return datetime.now(timezone.utc)
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return datetime.now(timezone.utc)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def fetch_article_content(url: str, session: Optional[requests.Session] = None) -> str:
    """
    Download a page and reduce it to plain text, capped at MAX_CONTENT_CHARS.
    Returns an empty string on any failure.
    """
    if not url:
        return ""
    getter = session or requests
    try:
        response = getter.get(url, headers={"User-Agent": USER_AGENT}, timeout=REQUEST_TIMEOUT_SECONDS)
        if response.status_code >= 400:
            logger.info(f"Failed to fetch article content from {url}: {response.status_code}")
            return ""
        html = response.text
    except requests.RequestException as e:
        logger.warning(f"Error fetching article content from {url}: {e}")
        return ""

    text = re.sub(r"<script[^>]*>[\s\S]*?</script>", " ", html, flags=re.IGNORECASE)
    text = re.sub(r"<style[^>]*>[\s\S]*?</style>", " ", text, flags=re.IGNORECASE)
    text = re.sub(r"<[^>]+>", " ", text)
    text = re.sub(r"\s+", " ", text).strip()

    if len(text) > MAX_CONTENT_CHARS:
        return text[:MAX_CONTENT_CHARS] + "..."
    return text


# ---------------------------------------------------------------------------
# MarketAux: per-symbol stock news
# ---------------------------------------------------------------------------

class MarketauxClient:
    """
    Client for the MarketAux news endpoint.

    Every request waits on the client's rate limiter first, so call sites never
    sleep on their own. Errors raise ProviderError; nothing is retried.
    """
    provider = "marketaux"

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = "https://api.marketaux.com/v1",
        limiter: Optional[TokenBucket] = None,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.limiter = limiter
        self.session = session or requests.Session()

    def fetch_news(self, symbols: Sequence[str], limit: int = 20, page: int = 1) -> List[ArticleIngest]:
        """
        Fetch recent English-language news mentioning any of `symbols`.

        Each article is tagged with its first entity's symbol, or the first
        requested symbol when the API returns no entities.
        """
        if not self.api_key:
            raise ProviderError(self.provider, "MARKETAUX_API_KEY is not configured")
        if not symbols:
            raise ValueError("At least one symbol is required")

        params = {
            "symbols": ",".join(symbols),
            "filter_entities": "true",
            "language": "en",
            "limit": limit,
            "page": page,
            "api_token": self.api_key,
        }

        if self.limiter is not None:
            self.limiter.acquire()

        try:
            response = self.session.get(
                f"{self.base_url}/news/all", params=params, timeout=REQUEST_TIMEOUT_SECONDS,
            )
        except requests.RequestException as e:
            logger.error(f"MarketAux request failed for {','.join(symbols)}: {e}")
            raise ProviderError(self.provider, str(e)) from e

        if response.status_code >= 400:
            logger.error(f"MarketAux API error for {','.join(symbols)}: {response.status_code}")
            raise ProviderError(self.provider, response.text[:200], status_code=response.status_code)

        try:
            payload = response.json()
        except ValueError as e:
            raise ResponseFormatError(self.provider, "invalid JSON") from e

        items = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(items, list):
            raise ResponseFormatError(self.provider, "response has no 'data' list")

        articles = [a for a in (self._to_ingest(item, symbols) for item in items) if a is not None]
        logger.info(f"[{self.provider}] Fetched {len(articles)} articles for {','.join(symbols)} (page {page})")
        return articles

    @staticmethod
    def _to_ingest(item: dict, symbols: Sequence[str]) -> Optional[ArticleIngest]:
        url = item.get("url")
        title = (item.get("title") or "").strip()
        if not url or not title:
            return None

        entities = item.get("entities") or []
        symbol = (entities[0].get("symbol") if entities and isinstance(entities[0], dict) else None)

        description = item.get("description") or item.get("snippet")
        return ArticleIngest(
            symbol=(symbol or symbols[0]).upper(),
            title=title[:500],
            description=description[:1000] if description else None,
            url=url,
            source=item.get("source"),
            published_at=parse_iso_datetime(item.get("published_at")),
            category="Financial",
        )

    def close(self) -> None:
        self.session.close()


# ---------------------------------------------------------------------------
# Headline sources: subclass BaseSource to add a new one
# ---------------------------------------------------------------------------

class BaseSource(ABC):
    """
    Abstract base class for general headline sources.
    To add a new source: subclass this, set source_name, and implement fetch().
    """
    source_name: str  # unique slug, e.g. "cnbc-top-news"

    @abstractmethod
    def fetch(self) -> List[ArticleIngest]:
        """Fetch headlines and return them as a list of ArticleIngest objects."""
        pass


class RSSSource(BaseSource):
    """
    Reusable RSS fetcher. Subclasses only need to set source_name and feed_url.

    Headlines are tagged with a ticker when a company name appears in them,
    otherwise with the fallback symbol, and are not sentiment-scored.
    """
    feed_url: str

    def fetch(self) -> List[ArticleIngest]:
        try:
            feed = feedparser.parse(self.feed_url)
            articles = []

            for entry in feed.entries:
                link = entry.get("link")
                title = (entry.get("title") or "").strip()
                if not link or not title:
                    logger.warning(f"[{self.source_name}] Skipping entry with no link or title")
                    continue

                description = strip_html(entry.get("summary") or "") or None
                articles.append(ArticleIngest(
                    symbol=extract_symbol(f"{title} {description or ''}"),
                    title=title,
                    description=description,
                    url=link,
                    source=self.source_name,
                    published_at=parse_date(entry),
                    category=HEADLINE_CATEGORY,
                ))

            logger.info(f"[{self.source_name}] Fetched {len(articles)} headlines")
            return articles

        except Exception as e:
            # Log the error and return an empty list so other sources are unaffected
            logger.error(f"[{self.source_name}] Failed to fetch: {e}")
            return []


class CNBCTopNewsSource(RSSSource):
    source_name = "cnbc-top-news"
    feed_url = "https://search.cnbc.com/rs/search/combinedcms/view.xml?partnerId=wrss01&id=100003114"


class MarketWatchSource(RSSSource):
    source_name = "marketwatch-top-stories"
    feed_url = "https://feeds.content.dowjones.io/public/rss/mw_topstories"


class YahooFinanceSource(RSSSource):
    source_name = "yahoo-finance"
    feed_url = "https://finance.yahoo.com/news/rssindex"


# Registry of active headline sources
HEADLINE_SOURCES: List[BaseSource] = [
    CNBCTopNewsSource(),
    MarketWatchSource(),
    YahooFinanceSource(),
]


# ---------------------------------------------------------------------------
# Fetcher service: ingestion cycle and background loop
# ---------------------------------------------------------------------------

class FetcherService:
    """
    Runs the ingestion cycle: stock news per symbol group (scored and upserted),
    then general headlines (stored unscored), then the headline retention sweep.
    """

    def __init__(
        self,
        news_client: MarketauxClient,
        classifier: SentimentClassifier,
        groups: Sequence[SymbolGroup] = tuple(SymbolGroup),
        headline_sources: Optional[Sequence[BaseSource]] = None,
        pages: int = 2,
        retention_days: int = 7,
        interval_seconds: int = FETCH_INTERVAL_SECONDS,
    ):
        self.news_client = news_client
        self.classifier = classifier
        self.groups = list(groups)
        self.headline_sources = list(HEADLINE_SOURCES if headline_sources is None else headline_sources)
        self.pages = pages
        self.retention_days = retention_days
        self.interval_seconds = interval_seconds

    async def run(self, db_factory):
        """
        Entry point for the background task.
        db_factory: callable that returns a new SQLAlchemy Session (e.g. SessionLocal)
        """
        logger.info("FetcherService started, fetching every %ds", self.interval_seconds)
        while True:
            try:
                # The cycle blocks on HTTP and rate limiting, so keep it off the event loop
                await asyncio.to_thread(self.fetch_all, db_factory)
            except Exception as e:
                logger.error(f"Fetch cycle failed: {e}")
            await asyncio.sleep(self.interval_seconds)

    def collect_group(self, group: SymbolGroup) -> List[ArticleIngest]:
        """
        Fetch `pages` pages for a group, keep only the group's symbols, and
        drop repeats of the same (symbol, title). Newest first.
        """
        seen = set()
        unique: List[ArticleIngest] = []
        for page in range(1, self.pages + 1):
            for article in self.news_client.fetch_news(group.symbols, page=page):
                if article.symbol not in group.symbols:
                    continue
                key = (article.symbol, article.title)
                if key in seen:
                    continue
                seen.add(key)
                unique.append(article)

        unique.sort(key=lambda a: a.published_at or datetime.min.replace(tzinfo=timezone.utc), reverse=True)
        logger.info(f"[{group.value}] {len(unique)} unique articles")
        return unique

    def _sweep_headlines(self, db: Session) -> int:
        try:
            return purge_headlines_older_than(db, self.retention_days)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Headline retention sweep failed: {e}")
            return 0

    def fetch_all(self, db_factory) -> FetchSummary:
        """Run one full ingestion cycle. A failing group is recorded and skipped."""
        logger.info("Starting fetch cycle")
        summary = FetchSummary()

        db: Session = db_factory()
        try:
            for group in self.groups:
                try:
                    articles = self.collect_group(group)
                except ProviderError as e:
                    logger.error(f"[{group.value}] Fetch failed: {e}")
                    summary.errors[group.value] = str(e)
                    continue

                for article in articles:
                    # Scored and upserted: overwrites the stored row for the same URL
                    self.classifier.classify_and_save(article, db)
                summary.groups[group.value] = len(articles)

            for source in self.headline_sources:
                for article in source.fetch():  # errors are handled inside fetch()
                    if insert_article_if_absent(db, article) is not None:
                        summary.headlines += 1

            summary.purged = self._sweep_headlines(db)
        finally:
            db.close()

        summary.success = not summary.errors
        logger.info(
            f"Fetch cycle complete: groups={summary.groups}, headlines={summary.headlines}, "
            f"purged={summary.purged}, errors={len(summary.errors)}"
        )
        return summary
