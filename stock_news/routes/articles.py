import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stock_news.database import get_db
from stock_news.errors import error_response
from stock_news.fetcher import FetcherService
from stock_news.reclassifier import Reclassifier
from stock_news.repository import list_articles
from stock_news.schemas import ArticleResponse, FetchSummary, ReclassifyResult
from stock_news.services import get_fetcher, get_reclassifier
from stock_news.symbols import SymbolGroup

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/articles", response_model=List[ArticleResponse])
def articles(
    symbol: Optional[str] = None,
    group: Optional[SymbolGroup] = None,
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
):
    """
    Return stored articles, newest first.
    Filter by a single symbol, a symbol group, or both (union).
    """
    symbols = []
    if symbol:
        symbols.append(symbol)
    if group:
        symbols.extend(group.symbols)

    try:
        rows = list_articles(db, symbols=symbols or None, limit=limit)
    except SQLAlchemyError as e:
        logger.error(f"[/articles] Failed to load articles: {e}")
        return error_response(e)
    logger.info(f"[/articles] Returning {len(rows)} articles")
    return rows


@router.post("/fetch", response_model=FetchSummary)
def trigger_fetch(db: Session = Depends(get_db), fetcher: FetcherService = Depends(get_fetcher)):
    """Run one ingestion cycle immediately. Blocks until complete."""
    try:
        return fetcher.fetch_all(lambda: db)
    except SQLAlchemyError as e:
        logger.error(f"[/fetch] Fetch cycle failed: {e}")
        return error_response(e)


@router.post("/reclassify", response_model=ReclassifyResult)
def reclassify(db: Session = Depends(get_db), reclassifier: Reclassifier = Depends(get_reclassifier)):
    """Move fallback-tagged articles to the index fund their text mentions."""
    logger.info("[/reclassify] Starting index fund article reassignment...")
    try:
        return reclassifier.run(db)
    except SQLAlchemyError as e:
        logger.error(f"[/reclassify] Failed to load articles: {e}")
        return error_response(e)
