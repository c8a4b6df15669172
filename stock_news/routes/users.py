import logging
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stock_news.database import get_db
from stock_news.errors import error_response
from stock_news.repository import list_user_articles
from stock_news.schemas import AnalyzeStocksRequest, AnalyzeStocksResponse, UserArticleResponse
from stock_news.services import get_analyzer
from stock_news.user_stocks import UserStockAnalyzer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users/{user_id}")


@router.post("/stocks/analyze", response_model=AnalyzeStocksResponse)
def analyze_stocks(
    user_id: str,
    request: AnalyzeStocksRequest,
    db: Session = Depends(get_db),
    analyzer: UserStockAnalyzer = Depends(get_analyzer),
):
    """Build or refresh the user's analysis row for each requested symbol."""
    logger.info(f"[/stocks/analyze] user={user_id} symbols={request.symbols}")
    try:
        return analyzer.analyze(db, user_id, request.symbols)
    except SQLAlchemyError as e:
        logger.error(f"[/stocks/analyze] Failed to save analysis for user {user_id}: {e}")
        return error_response(e)


@router.get("/articles", response_model=List[UserArticleResponse])
def user_articles(user_id: str, db: Session = Depends(get_db)):
    try:
        return list_user_articles(db, user_id)
    except SQLAlchemyError as e:
        logger.error(f"[/users/articles] Failed to load articles for user {user_id}: {e}")
        return error_response(e)
