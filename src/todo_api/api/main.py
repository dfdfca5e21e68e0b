"""FastAPI app entrypoint for the todo API."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from todo_api.api.subtasks import router as subtasks_router
from todo_api.api.todos import router as todos_router
from todo_api.config.log import configure_logging
from todo_api.config.settings import Settings, get_settings
from todo_api.errors import NotFoundError, StorageUnavailableError, ValidationError
from todo_api.storage.base import TodoStorage
from todo_api.storage.postgres import PostgresTodoStorage

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


def _ensure_runtime_state(
    app: FastAPI,
    *,
    settings: Settings,
    storage_override: TodoStorage | None,
) -> None:
    if not hasattr(app.state, "storage"):
        database_url = settings.resolved_database_url()
        if storage_override is None and not database_url:
            raise RuntimeError(
                "Missing database URL. Set TODO_API_DATABASE_URL "
                "or DATABASE_URL before starting the app."
            )
        app.state.storage = storage_override or PostgresTodoStorage.from_url(
            database_url,
            min_size=settings.pool_min_size,
            max_size=settings.pool_max_size,
            timeout_s=settings.pool_timeout_s,
        )
        app.state.storage.migrate()

    if not hasattr(app.state, "settings"):
        app.state.settings = settings


def create_app(
    *,
    storage: TodoStorage | None = None,
    settings_override: Settings | None = None,
) -> FastAPI:
    settings = settings_override or get_settings()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        _ensure_runtime_state(app, settings=settings, storage_override=storage)
        logger.info("app event=started service=%s env=%s", settings.app_name, settings.app_env)
        yield
        app.state.storage.close()
        logger.info("app event=stopped service=%s", settings.app_name)

    app_lifespan = lifespan if storage is None else None
    app = FastAPI(title=settings.app_name, lifespan=app_lifespan)

    # Injected storage belongs to the caller; it is attached up front and
    # never closed here.
    if storage is not None:
        _ensure_runtime_state(app, settings=settings, storage_override=storage)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _register_error_handlers(app)

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "service": settings.app_name}

    @app.get("/health/ready")
    def ready(request: Request) -> dict[str, str]:
        request.app.state.storage.ping()
        return {"status": "ready", "service": settings.app_name}

    api_router = APIRouter(prefix=API_PREFIX)
    api_router.include_router(todos_router)
    api_router.include_router(subtasks_router)
    app.include_router(api_router)
    return app


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationError)
    async def validation_error(_: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": exc.message, "field": exc.field})

    @app.exception_handler(NotFoundError)
    async def not_found(_: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(
            status_code=404,
            content={"detail": f"{exc.resource.capitalize()} not found", "resource": exc.resource},
        )

    @app.exception_handler(StorageUnavailableError)
    async def storage_unavailable(_: Request, exc: StorageUnavailableError) -> JSONResponse:
        return JSONResponse(status_code=503, content={"detail": str(exc)})


# Module-level app for `uvicorn todo_api.api.main:app`.
app = create_app()


def main() -> None:
    settings = get_settings()
    uvicorn.run("todo_api.api.main:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
