import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from site_search.api.v1.dependencies import get_engine
from site_search.api.v1.routes import saved_searches, search
from site_search.config import settings
from site_search.core.logging import configure_logging
from site_search.database import AsyncSessionLocal, init_db
from site_search.services.corpus import load_corpus
from site_search.services.engine import SearchEngine
from site_search.services.index import ContentIndex
from site_search.services.persistence import DatabasePersistence, InMemoryPersistence

logger = logging.getLogger(__name__)


async def build_engine() -> SearchEngine:
    # A corrupt corpus (e.g. duplicate ids) must stop start-up
    index = ContentIndex.build(load_corpus(settings.CORPUS_PATH))

    if settings.PERSISTENCE_BACKEND == "database":
        try:
            await init_db()
        except (SQLAlchemyError, OSError) as e:
            logger.warning("Database unavailable, search history will not persist: %s", e)
            engine = SearchEngine.from_settings(index, settings)
            engine.degraded = True
            return engine
        persistence = DatabasePersistence(AsyncSessionLocal)
    else:
        persistence = InMemoryPersistence()

    engine = SearchEngine.from_settings(index, settings, persistence)
    await engine.restore()
    return engine


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.LOG_LEVEL)
    app.state.engine = await build_engine()
    yield
    await app.state.engine.wait()


app = FastAPI(
    title="Site Search",
    description="Search, suggestions and content discovery over the site's pages, projects and services.",
    version="0.1.0",
    docs_url="/docs" if settings.ENVIRONMENT == "development" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT == "development" else None,
    lifespan=lifespan,
)

# CORS
origins = [
    "http://localhost",
    "http://localhost:8000",
    "http://localhost:3000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# API Routes
app.include_router(search.router, prefix="/api/v1/search", tags=["search"])
app.include_router(saved_searches.router, prefix="/api/v1/saved-searches", tags=["saved-searches"])

@app.get("/health")
async def health_check(engine: SearchEngine = Depends(get_engine)):
    return {"status": "ok", "degraded": engine.degraded, "indexed_items": len(engine.index)}
