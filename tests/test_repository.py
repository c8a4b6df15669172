from datetime import datetime, timedelta, timezone

from stock_news.models import NewsArticle, UserStockArticle
from stock_news.repository import (
    insert_article_if_absent,
    latest_article_for_symbol,
    list_articles,
    list_user_articles,
    purge_headlines_older_than,
    update_article_symbol,
    upsert_article_by_url,
    upsert_user_article,
)
from stock_news.schemas import ArticleIngest


def make_article(**kwargs) -> ArticleIngest:
    defaults = {
        "symbol": "AAPL",
        "title": "Apple beats earnings expectations",
        "description": "Revenue up 8%.",
        "url": "https://example.com/a",
        "source": "reuters.com",
        "published_at": datetime.now(timezone.utc),
        "category": "Financial",
        "ai_sentiment": "Bullish",
        "ai_confidence": 80,
        "ai_reasoning": "Strong quarter",
    }
    defaults.update(kwargs)
    return ArticleIngest(**defaults)


class TestUpsertArticleByUrl:
    def test_inserts_new_row(self, db):
        row = upsert_article_by_url(db, make_article())
        assert row.id is not None
        assert db.query(NewsArticle).count() == 1

    def test_same_url_twice_keeps_one_row_with_latest_values(self, db):
        upsert_article_by_url(db, make_article())
        upsert_article_by_url(db, make_article(title="Updated title", ai_sentiment="Bearish", ai_confidence=40))

        rows = db.query(NewsArticle).all()
        assert len(rows) == 1
        assert rows[0].title == "Updated title"
        assert rows[0].ai_sentiment == "Bearish"
        assert rows[0].ai_confidence == 40

    def test_overwrite_clears_fields_missing_from_new_record(self, db):
        upsert_article_by_url(db, make_article())
        upsert_article_by_url(db, make_article(description=None, ai_reasoning=None))

        row = db.query(NewsArticle).one()
        assert row.description is None
        assert row.ai_reasoning is None

    def test_different_urls_are_separate_rows(self, db):
        upsert_article_by_url(db, make_article(url="https://example.com/a"))
        upsert_article_by_url(db, make_article(url="https://example.com/b"))
        assert db.query(NewsArticle).count() == 2


class TestInsertArticleIfAbsent:
    def test_inserts_when_missing(self, db):
        assert insert_article_if_absent(db, make_article(category="Headline")) is not None
        assert db.query(NewsArticle).count() == 1

    def test_existing_row_is_left_untouched(self, db):
        row = upsert_article_by_url(db, make_article(symbol="SPY", category="Index Fund"))
        result = insert_article_if_absent(db, make_article(symbol="MARKET", category="Headline"))

        assert result is None
        db.refresh(row)
        assert row.symbol == "SPY"
        assert row.category == "Index Fund"


class TestQueries:
    def test_list_articles_newest_first(self, db):
        now = datetime.now(timezone.utc)
        upsert_article_by_url(db, make_article(url="https://x/old", title="old", published_at=now - timedelta(hours=2)))
        upsert_article_by_url(db, make_article(url="https://x/new", title="new", published_at=now))

        assert [a.title for a in list_articles(db)] == ["new", "old"]

    def test_list_articles_filters_symbols_case_insensitively(self, db):
        upsert_article_by_url(db, make_article(url="https://x/1", symbol="AAPL"))
        upsert_article_by_url(db, make_article(url="https://x/2", symbol="SPY"))
        upsert_article_by_url(db, make_article(url="https://x/3", symbol="TSLA"))

        symbols = {a.symbol for a in list_articles(db, symbols=["aapl", "spy"])}
        assert symbols == {"AAPL", "SPY"}

    def test_list_articles_limit(self, db):
        for i in range(5):
            upsert_article_by_url(db, make_article(url=f"https://x/{i}"))
        assert len(list_articles(db, limit=2)) == 2

    def test_latest_article_for_symbol(self, db):
        upsert_article_by_url(db, make_article(url="https://x/1", title="first"))
        upsert_article_by_url(db, make_article(url="https://x/2", title="second"))
        assert latest_article_for_symbol(db, "AAPL").title == "second"
        assert latest_article_for_symbol(db, "MSFT") is None

    def test_update_article_symbol(self, db):
        row = upsert_article_by_url(db, make_article(symbol="MARKET", category="Headline"))
        assert update_article_symbol(db, row.id, "QQQ", "Index Fund") is True

        db.refresh(row)
        assert row.symbol == "QQQ"
        assert row.category == "Index Fund"

    def test_update_missing_article_returns_false(self, db):
        assert update_article_symbol(db, 9999, "QQQ", "Index Fund") is False


class TestPurgeHeadlines:
    def test_removes_only_old_headlines(self, db):
        old = datetime.now(timezone.utc) - timedelta(days=10)
        upsert_article_by_url(db, make_article(url="https://x/old-headline", category="Headline", published_at=old))
        upsert_article_by_url(db, make_article(url="https://x/new-headline", category="Headline"))
        upsert_article_by_url(db, make_article(url="https://x/old-index", category="Index Fund", published_at=old))

        assert purge_headlines_older_than(db, 7) == 1
        urls = {a.url for a in db.query(NewsArticle).all()}
        assert urls == {"https://x/new-headline", "https://x/old-index"}


class TestUserArticles:
    def test_one_row_per_user_and_symbol(self, db):
        upsert_user_article(db, "user-1", "nflx", make_article(title="first"))
        upsert_user_article(db, "user-1", "NFLX", make_article(title="second", ai_sentiment="Bearish"))

        rows = db.query(UserStockArticle).all()
        assert len(rows) == 1
        assert rows[0].symbol == "NFLX"
        assert rows[0].title == "second"
        assert rows[0].ai_sentiment == "Bearish"

    def test_users_are_isolated(self, db):
        upsert_user_article(db, "user-1", "AAPL", make_article())
        upsert_user_article(db, "user-2", "AAPL", make_article())
        upsert_user_article(db, "user-1", "MSFT", make_article())

        assert [r.symbol for r in list_user_articles(db, "user-1")] == ["AAPL", "MSFT"]
        assert len(list_user_articles(db, "user-2")) == 1
