from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from user_service.auth.errors import AuthError, ValidationError
from user_service.auth.jwt import TokenService
from user_service.auth.passwords import PasswordHasher
from user_service.auth.router import create_router
from user_service.auth.store import SQLAlchemyUserStore
from user_service.auth.users import UserService, format_validation_errors
from user_service.base_microservice import (
    BaseMicroservice, build_engine, configure_logging, create_session_factory, init_models
)
from user_service.config import Settings, get_settings

base_service = BaseMicroservice("main")


def build_user_service(settings: Settings, session_factory) -> UserService:
    return UserService(
        store=SQLAlchemyUserStore(session_factory),
        hasher=PasswordHasher(rounds=settings.bcrypt_rounds),
        tokens=TokenService(settings),
    )


def create_application(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    engine = build_engine(settings.database_url)
    session_factory = create_session_factory(engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Lifespan context manager for FastAPI.
        Creates missing tables on startup and releases the engine on shutdown.
        """
        if settings.uses_default_secret:
            base_service.logger.warning(
                "JWT_SECRET_KEY is not set; using the development signing key"
            )
        try:
            await init_models(engine)
        except Exception as e:
            base_service.log_error(e, context="Database initialization")
            raise
        base_service.log_event("service.startup", {"service": settings.app_name})
        yield
        base_service.log_event("service.shutdown", {"service": settings.app_name})
        await engine.dispose()

    app = FastAPI(
        title=settings.app_name,
        version=settings.version,
        description="User registration, authentication and profile lookup",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.engine = engine
    app.state.user_service = build_user_service(settings, session_factory)

    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError):
        return base_service.mcp_response(
            data={"error": exc.code},
            message=exc.message,
            status="error",
            status_code=exc.status_code,
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return base_service.mcp_response(
            data={"error": ValidationError.code},
            message=format_validation_errors(exc.errors()),
            status="error",
            status_code=ValidationError.status_code,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return base_service.mcp_response(
            data={"error": "http_error"},
            message=str(exc.detail),
            status="error",
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
        )

    app.include_router(create_router(settings.api_prefix), prefix=settings.api_prefix)

    @app.get("/", tags=["root"])
    async def root():
        """Root endpoint returning API information."""
        return {
            "name": settings.app_name,
            "version": settings.version,
            "services": ["users"],
        }

    @app.get("/health", tags=["health"])
    async def health_check():
        """Overall system health check."""
        return {
            "status": "ok",
            "services": {
                "users": "online",
            },
        }

    return app
