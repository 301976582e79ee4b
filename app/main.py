"""
Betting Insights API - Main FastAPI Application
===============================================

This is the main entry point for the Betting Insights API, the backend of
a sports-betting analytics dashboard.

Features:
- User registration and login with bcrypt-hashed passwords
- JWT access tokens plus separately signed refresh tokens
- Profile, password and preference management
- CORS, gzip compression, security headers and request logging
- Centralized JSON error responses

Author: Betting Insights Team
Version: 1.0.0
License: MIT
"""

from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from app.config import Settings, settings
from app.core.database import Database
from app.core.errors import register_exception_handlers
from app.core.logging import configure_logging, get_logger
from app.core.middleware import log_requests, security_headers
from app.core.security import TokenClaims, get_optional_user
from app.core.utils import now_iso
from app.routes import auth

# Configure centralized logging
configure_logging(log_level=settings.LOG_LEVEL, log_file=settings.LOG_FILE, enable_file=settings.LOG_TO_FILE)
logger = get_logger(__name__)


def create_app(config: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config: Settings to use; defaults to the environment settings
        database: Pre-built Database handle (tests pass one in); when omitted
            the lifespan builds one from the settings

    Returns:
        FastAPI: Configured application
    """
    config = config or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan manager for startup and shutdown events.

        Startup opens the connection pool and verifies the schema; shutdown
        (after uvicorn has drained in-flight requests) closes the pool.
        """
        logger.info(f"Starting {config.APP_NAME}...")
        logger.info(f"Environment: {config.ENVIRONMENT}")

        db = database or Database.from_settings(config)
        try:
            await db.init()
            if await db.health_check():
                logger.info("Database health check passed")
            else:
                logger.warning("Database health check failed")
        except Exception as e:
            logger.error(f"Failed to initialize application: {e}")
            await db.dispose()
            raise

        app.state.db = db
        logger.info(f"CORS origin(s): {', '.join(config.cors_origins)}")
        logger.info(f"{config.APP_NAME} is ready")

        yield

        logger.info(f"Shutting down {config.APP_NAME}...")
        try:
            await db.dispose()
            logger.info("Cleanup completed successfully")
        except Exception as e:
            logger.error(f"Error during shutdown: {e}")

    app = FastAPI(
        title=config.APP_NAME,
        description="""
    ## Betting Insights API

    Authentication and user profile backend for the betting analytics dashboard.

    ### Authentication
    Register or log in to receive an access token and a refresh token.
    Send the access token in the Authorization header: `Bearer <token>`.
    Exchange the refresh token at `/auth/refresh` when the access token expires.
    """,
        version=config.VERSION,
        lifespan=lifespan,
        docs_url=f"{config.API_PREFIX}/docs",
        openapi_url=f"{config.API_PREFIX}/openapi.json",
    )

    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.middleware("http")(security_headers)
    app.middleware("http")(log_requests)

    register_exception_handlers(app)

    @app.get(f"{config.API_PREFIX}/health", tags=["System"])
    async def health_check():
        """
        Liveness probe. Does not require authentication or touch the database.
        """
        return {"status": "ok", "timestamp": now_iso()}

    @app.get(f"{config.API_PREFIX}/", tags=["System"])
    async def root(current_user: Optional[TokenClaims] = Depends(get_optional_user)):
        """
        API information. Authenticated callers also get their identity back.
        """
        info = {
            "message": f"Welcome to {config.APP_NAME}",
            "version": config.VERSION,
            "documentation": f"{config.API_PREFIX}/docs",
            "health_check": f"{config.API_PREFIX}/health",
            "endpoints": {"authentication": f"{config.API_PREFIX}/auth"},
        }
        if current_user is not None:
            info["user"] = current_user.model_dump()
        return info

    app.include_router(auth.router, prefix=f"{config.API_PREFIX}/auth", tags=["Authentication"])

    return app


app = create_app()


if __name__ == "__main__":
    """
    Run the application directly with uvicorn.

    uvicorn handles SIGINT/SIGTERM: it stops accepting connections, lets
    in-flight requests finish and then runs the lifespan shutdown, which
    closes the connection pool.

    Usage:
        python -m app.main
        or
        uvicorn app.main:app --host 0.0.0.0 --port 3001
    """
    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
