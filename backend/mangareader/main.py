from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from mangareader.api.v1.routes import router as api_router
from mangareader.core.cache import ViewCache
from mangareader.core.config import get_settings
from mangareader.core.logging import configure_logging
from mangareader.core.paths import get_artifacts_root
from mangareader.db.session import create_engine_and_sessionmaker

INVALID_REQUEST = "Geçersiz istek"


@asynccontextmanager
async def lifespan(app: FastAPI):  # noqa: D401 - FastAPI lifespan signature
    settings = get_settings()
    configure_logging(settings.log_level)

    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    engine, sessionmaker = create_engine_and_sessionmaker()
    app.state.db_engine = engine
    app.state.db_sessionmaker = sessionmaker

    logging.getLogger(__name__).info(
        "app_start",
        extra={
            "env": settings.app_env,
        },
    )
    yield
    app.state.db_engine.dispose()
    logging.getLogger(__name__).info("app_stop")


async def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"success": False, "error": INVALID_REQUEST})


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="MangaReader API", version="0.1.0", lifespan=lifespan)

    # Process-wide, but owned by the app and injected via dependency
    app.state.view_cache = ViewCache(
        max_entries=settings.view_cache_max_entries,
        ttl_seconds=settings.view_cache_ttl_seconds,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)

    app.include_router(api_router)

    # Serve artifacts/ only in development (local filesystem storage)
    if settings.app_env == "development":
        artifacts_dir = get_artifacts_root()
        artifacts_dir.mkdir(parents=True, exist_ok=True)
        app.mount("/artifacts", StaticFiles(directory=str(artifacts_dir), html=False), name="artifacts")
    return app


app = create_app()
