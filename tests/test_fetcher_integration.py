"""
Integration tests for the headline sources. These make real HTTP calls to RSS feeds.
Run them with:  pytest tests/test_fetcher_integration.py -v
Or via marker: pytest -m integration -v
"""
import re
from datetime import datetime, timezone

import pytest

from stock_news.fetcher import (
    HEADLINE_SOURCES,
    CNBCTopNewsSource,
    MarketWatchSource,
    YahooFinanceSource,
)

pytestmark = pytest.mark.integration  # marks every test in this file as integration


def assert_valid_headlines(articles, source_name: str):
    """Shared assertions for all source integration tests."""

    # Feed must return at least one headline
    assert len(articles) > 0, f"[{source_name}] No headlines returned; feed may be down"

    for article in articles:
        assert article.url, f"[{source_name}] Headline missing url"
        assert article.title, f"[{source_name}] Headline missing title"
        assert article.source == source_name, f"[{source_name}] Unexpected source value: {article.source}"
        assert article.category == "Headline"
        assert article.symbol.isupper()

        assert isinstance(article.published_at, datetime), \
            f"[{source_name}] published_at is not a datetime"
        assert article.published_at.tzinfo == timezone.utc, \
            f"[{source_name}] published_at is not UTC"

        if article.description:
            assert not re.search(r"<[^>]+>", article.description), \
                f"[{source_name}] Description contains HTML tags: {article.description[:100]}"


class TestCNBCLive:
    def test_fetches_real_headlines(self):
        assert_valid_headlines(CNBCTopNewsSource().fetch(), "cnbc-top-news")


class TestMarketWatchLive:
    def test_fetches_real_headlines(self):
        assert_valid_headlines(MarketWatchSource().fetch(), "marketwatch-top-stories")


class TestYahooFinanceLive:
    def test_fetches_real_headlines(self):
        assert_valid_headlines(YahooFinanceSource().fetch(), "yahoo-finance")


class TestAllSourcesLive:
    def test_all_registered_sources_return_headlines(self):
        """Smoke test: every source in the registry is reachable."""
        for source in HEADLINE_SOURCES:
            assert len(source.fetch()) > 0, \
                f"Source '{source.source_name}' returned no headlines; feed may be down or URL changed"
