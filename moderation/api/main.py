import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from moderation import __version__
from moderation.api.routers import admin, health
from moderation.api.schemas.common import ErrorResponse
from moderation.core.config import get_settings
from moderation.core.logger import setup_logger
from moderation.core.queue import ModerationError
from moderation.db.base import Base
from moderation.db.session import engine

settings = get_settings()
logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = {
    "forbidden": status.HTTP_403_FORBIDDEN,
    "not_found": status.HTTP_404_NOT_FOUND,
    "already_reviewed": status.HTTP_409_CONFLICT,
    "conflict": status.HTTP_409_CONFLICT,
}

ERROR_TITLES = {
    "forbidden": "Access denied",
    "not_found": "Submission not found",
    "already_reviewed": "Already reviewed",
    "conflict": "Submission changed concurrently, try again",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logger(
        "moderation",
        log_dir=settings.log_dir,
        level=settings.log_level,
        file_logging=settings.file_logging,
    )
    Base.metadata.create_all(bind=engine)
    logger.info("%s %s started", settings.app_name, __version__)
    yield


app = FastAPI(
    title=settings.app_name,
    description="Moderation queue for user-submitted organisations, businesses and artists",
    version=__version__,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.debug else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ModerationError)
async def moderation_error_handler(request: Request, exc: ModerationError):
    body = ErrorResponse(
        error=ERROR_TITLES.get(exc.code, "Moderation error"),
        detail=str(exc),
        code=exc.code,
    )
    return JSONResponse(
        status_code=ERROR_STATUS_CODES.get(exc.code, status.HTTP_400_BAD_REQUEST),
        content=body.model_dump(),
    )


app.include_router(health.router)
app.include_router(admin.router, prefix="/api")


@app.get("/")
def root():
    return {
        "name": settings.app_name,
        "version": __version__,
        "docs": "/docs" if settings.debug else None,
    }
