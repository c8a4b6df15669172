import pytest
from sqlalchemy.orm import sessionmaker

from stock_news.database import init_db, make_engine


@pytest.fixture
def db():
    """Fresh in-memory SQLite session per test."""
    engine = make_engine("sqlite:///:memory:")
    init_db(engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = Session()
    yield session
    session.close()
    engine.dispose()
