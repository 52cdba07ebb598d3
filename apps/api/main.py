# FastAPI entrypoint with all routes, middleware and error handlers

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from apikeys.config import ServiceConfig, get_config
from apikeys.database import DatabaseManager
from apikeys.errors import KeyServiceError
from apikeys.key_routes import router as key_router
from apikeys.service import KeyLifecycleService
from apps.api.logging_config import setup_logging
from auth.auth_manager import AuthManager
from auth.auth_routes import router as auth_router
from auth.security_middleware import SecurityHeadersMiddleware, SecurityLoggingMiddleware

PUBLIC_DIR = Path(__file__).resolve().parents[2] / "public"
LANDING_PAGE = PUBLIC_DIR / "landing.html"

# Responses from this path always carry "valid"
CHECK_API_PATH = "/checkapi"


def _error_body(request: Request, message: str, **extra) -> dict:
    body = {"success": False, "message": message}
    if request.url.path == CHECK_API_PATH:
        body["valid"] = False
    body.update(extra)
    return body


def create_app(
    config: Optional[ServiceConfig] = None,
    db_manager: Optional[DatabaseManager] = None,
    key_service: Optional[KeyLifecycleService] = None,
    auth_manager: Optional[AuthManager] = None,
) -> FastAPI:
    """
    Build the application.

    Anything not passed in is built from `config` (or the environment).
    The database is initialized on startup and its pool closed on shutdown.
    """
    config = config or get_config()
    db_manager = db_manager or DatabaseManager(config)
    key_service = key_service or KeyLifecycleService(db_manager, config)
    auth_manager = auth_manager or AuthManager(db_manager, config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Initializing database...")
        db_manager.initialize()
        if not db_manager.health_check():
            raise RuntimeError("Database is not reachable")
        logger.info("✓ Database initialized")
        yield
        logger.info("Shutting down: closing connection pool")
        db_manager.dispose()

    app = FastAPI(
        title="API Key Service",
        description="Issues, validates and manages API keys",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.db_manager = db_manager
    app.state.key_service = key_service
    app.state.auth_manager = auth_manager

    # ==================== MIDDLEWARE ====================

    app.add_middleware(SecurityLoggingMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "Accept", "Origin"],
        max_age=86400,
    )

    # ==================== ERROR HANDLERS ====================

    @app.exception_handler(KeyServiceError)
    async def key_service_error_handler(request: Request, exc: KeyServiceError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=_error_body(request, exc.message))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = [
            {"field": ".".join(str(p) for p in err.get("loc", ())[1:]), "message": err.get("msg")}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content=_error_body(request, "Validation failed", errors=errors),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(request, str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}: {type(exc).__name__}")
        return JSONResponse(status_code=500, content=_error_body(request, "Internal server error"))

    # ==================== ROUTERS ====================

    app.include_router(auth_router)   # /admin/register, /admin/login
    app.include_router(key_router)    # /create-user, /checkapi, /admin/dashboard, /admin/user/{id}

    @app.get("/", include_in_schema=False)
    async def root():
        """Landing page"""
        if not LANDING_PAGE.exists():
            raise HTTPException(status_code=404, detail="Landing page not found")
        return FileResponse(LANDING_PAGE)

    # Static assets last so they never shadow an API route
    if PUBLIC_DIR.is_dir():
        app.mount("/", StaticFiles(directory=PUBLIC_DIR), name="public")

    return app


def main():
    import uvicorn

    config = get_config()
    setup_logging(config.log_level)
    logger.info(f"Starting API key service on http://{config.host}:{config.port}")
    uvicorn.run(create_app(config), host=config.host, port=config.port, log_config=None)


if __name__ == "__main__":
    main()
