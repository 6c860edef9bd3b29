import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from portfolio_cms import __version__
from portfolio_cms.config import settings
from portfolio_cms.database import engine
from portfolio_cms.dependencies import get_uow
from portfolio_cms.exceptions import ContentError, PersistenceFailure
from portfolio_cms.logging_config import configure_logging
from portfolio_cms.routers import admin, articles, media, projects, tags
from portfolio_cms.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    configure_logging(settings.LOG_LEVEL)
    logger.info("Starting (env=%s, store=%s)", settings.APP_ENV, settings.STORE_PROVIDER.value)
    yield
    # Shutdown
    await engine.dispose()

app = FastAPI(
    title="Portfolio CMS - Content API",
    description="Articles, comments, tags, projects and media for a portfolio site",
    version=__version__,
    lifespan=lifespan,
)

# Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(ContentError)
async def content_error_handler(request: Request, exc: ContentError):
    if isinstance(exc, PersistenceFailure):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

# Routers
app.include_router(articles.router)
app.include_router(tags.router)
app.include_router(projects.router)
app.include_router(media.router)
app.include_router(admin.router)

@app.get("/health")
async def health(uow: UnitOfWork = Depends(get_uow)):
    if await uow.can_connect():
        return {"status": "healthy", "database": "reachable", "version": __version__}
    return JSONResponse(
        status_code=503,
        content={"status": "unhealthy", "database": "unreachable", "version": __version__},
    )
