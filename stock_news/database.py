from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from stock_news.config import get_settings


def make_engine(url: str) -> Engine:
    """
    Build an engine for any SQLAlchemy URL.

    SQLite connections are shared with FastAPI's worker threads, and an in-memory
    SQLite database is pinned to a single connection so every session sees the
    same tables.
    """
    if not url.startswith("sqlite"):
        return create_engine(url, pool_pre_ping=True)
    if url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    return create_engine(url, connect_args={"check_same_thread": False})


engine = make_engine(get_settings().DATABASE_URL)

# Each request gets its own DB session
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for all ORM models
Base = declarative_base()


def init_db(bind: Engine = engine) -> None:
    """Create news_articles and user_stock_articles if they don't exist."""
    import stock_news.models  # noqa: F401

    Base.metadata.create_all(bind=bind)


def get_db():
    """FastAPI dependency that provides a DB session and ensures it's closed after use."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
