import logging
from typing import Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stock_news.models import NewsArticle
from stock_news.repository import articles_with_symbol, update_article_symbol
from stock_news.rules import Rule, first_match
from stock_news.schemas import ReclassifyResult, ReclassifyUpdate
from stock_news.symbols import FALLBACK_SYMBOL, INDEX_FUND_RULES

logger = logging.getLogger(__name__)


def article_text(article: NewsArticle) -> str:
    return f"{article.title} {article.description or ''}".lower()


class Reclassifier:
    """
    Re-tags articles stored under a fallback symbol using an ordered rule list.

    The first matching rule decides the new symbol and category; rows that match
    nothing are left alone. Retagged rows no longer carry the fallback symbol, so
    running twice changes nothing the second time.
    """

    def __init__(self, rules: Sequence[Rule] = INDEX_FUND_RULES, fallback_symbol: str = FALLBACK_SYMBOL):
        self.rules = list(rules)
        self.fallback_symbol = fallback_symbol

    def target_for(self, article: NewsArticle) -> Optional[Rule]:
        return first_match(self.rules, article_text(article))

    def run(self, db: Session) -> ReclassifyResult:
        """
        Scan every fallback-tagged article and retag the ones a rule matches.

        Loading the rows may raise SQLAlchemyError; a failed update of a single
        row is logged, rolled back and left out of the count.
        """
        articles = articles_with_symbol(db, self.fallback_symbol)
        logger.info(f"Found {len(articles)} '{self.fallback_symbol}' articles to process")

        updates = []
        for article in articles:
            rule = self.target_for(article)
            if rule is None:
                continue

            article_id, title = article.id, article.title
            try:
                updated = update_article_symbol(db, article_id, rule.target, rule.category)
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Error updating article {article_id}: {e}")
                continue

            if updated:
                logger.info(f"Updated article '{title[:50]}...' -> {rule.target}")
                updates.append(ReclassifyUpdate(
                    id=article_id,
                    title=title[:100],
                    old_symbol=self.fallback_symbol,
                    new_symbol=rule.target,
                ))

        message = f"Successfully reassigned {len(updates)} articles to index funds"
        logger.info(message)
        return ReclassifyResult(
            message=message,
            total_processed=len(articles),
            updated_count=len(updates),
            updates=updates,
        )
