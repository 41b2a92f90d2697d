import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from blog.cache import cache
from blog.config import settings
from blog.log_config import setup_logging
from blog.middleware import TimingMiddleware
from blog.routers import articles, categories

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    try:
        await cache.connect()
    except Exception as exc:
        # Categories are read straight from the database without Redis.
        logger.warning("Cache unavailable, continuing without it: %s", exc)
    yield
    await cache.disconnect()


app = FastAPI(
    title="Blog Articles",
    description="Article management for a multi-author blog",
    version="1.0.0",
    debug=settings.DEBUG,
    lifespan=lifespan,
)

app.add_middleware(TimingMiddleware)

app.include_router(articles.router)
app.include_router(categories.router)


@app.get("/health")
async def health():
    return {"status": "healthy", "version": "1.0.0"}
