import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from stock_news.config import get_settings
from stock_news.connections import ConnectionManager
from stock_news.database import SessionLocal, engine, init_db
from stock_news.routes import analysis, articles, users
from stock_news.services import build_services

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # --- Startup ---
    logger.info("Creating database tables if they don't exist...")
    init_db(engine)

    connections = ConnectionManager()
    connections.register("database", engine.dispose)
    app.state.services = build_services(settings, connections)

    if settings.FETCH_ON_STARTUP:
        logger.info("Starting background news fetcher...")
        task = asyncio.create_task(app.state.services.fetcher.run(SessionLocal))
        connections.register("fetcher", task.cancel)

    yield

    # --- Shutdown ---
    logger.info("Closing connections...")
    connections.close_all()


app = FastAPI(
    title="Stock News Sentiment API",
    description="Fetches stock news, scores sentiment, and explains it article by article.",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(articles.router)
app.include_router(analysis.router)
app.include_router(users.router)
