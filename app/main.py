# main.py
# Main application file for the recipe sharing service.

import logging.config
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request, WebSocket, status
from fastapi.staticfiles import StaticFiles
import uvicorn
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

# Import the CORS middleware
from fastapi.middleware.cors import CORSMiddleware

# Rate limiting
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

# Import local modules
from app.db.session import engine
from app import models
from app.api import notifications, posts, recipes, users
from app.api.deps import get_websocket_user_id
from app.core.config import settings
from app.core.errors import InvalidToken, register_exception_handlers
from app.core.logging_middleware import StructuredLoggingMiddleware
from app.core.rate_limit import limiter
from app.realtime import EventChannel

# Get the logger instance
logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent


def configure_logging() -> None:
    config_path = Path(settings.LOGGING_CONFIG)
    if not config_path.is_absolute():
        config_path = PROJECT_ROOT / config_path
    logging.config.fileConfig(config_path, disable_existing_loggers=False)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response: Response = await call_next(request)
        # Prevent clickjacking
        response.headers["X-Frame-Options"] = "DENY"
        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"
        # Control referrer information
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        # Content Security Policy - restrict resource loading
        if settings.ENVIRONMENT in ["development", "testing"]:
            # Relaxed to allow FastAPI Swagger UI assets
            response.headers["Content-Security-Policy"] = (
                "default-src 'self'; "
                "img-src 'self' data: https://fastapi.tiangolo.com; "
                "style-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
                "script-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net"
            )
        else:
            response.headers["Content-Security-Policy"] = "default-src 'self'"
        return response


def create_app(events: Optional[EventChannel] = None) -> FastAPI:
    """
    Build the application. The fan-out channel is handed to every router that
    publishes events; pass one in to observe or replace it.
    """
    configure_logging()

    if events is None:
        events = EventChannel()

    # Create all database tables that don't exist yet.
    # Managed deployments run `alembic upgrade head` instead.
    models.Base.metadata.create_all(bind=engine)

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="API for sharing recipes, community posts and notifications.",
        version="1.0.0",
    )

    # Add rate limiter to app state and register exception handler
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    register_exception_handlers(app)

    app.add_middleware(StructuredLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,  # Allows specified origins
        allow_credentials=True,  # Allows cookies to be included in requests
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],  # Explicit HTTP methods
        allow_headers=["Authorization", "Content-Type", "Accept"],  # Explicit headers
    )
    app.add_middleware(SecurityHeadersMiddleware)

    # Include API routers
    app.include_router(users.router, prefix="/api/users", tags=["Users"])
    app.include_router(recipes.build_router(events), prefix="/api/recipes", tags=["Recipes"])
    app.include_router(posts.build_router(events), prefix="/api/posts", tags=["Posts"])
    app.include_router(notifications.build_router(events), prefix="/api/notifications", tags=["Notifications"])

    @app.websocket("/ws")
    async def event_stream(websocket: WebSocket):
        """
        Live event feed. Pass ``?token=`` to also receive events addressed to
        you; anonymous clients only get broadcasts.
        """
        try:
            user_id = get_websocket_user_id(websocket)
        except InvalidToken:
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return
        await events.serve(websocket, room=user_id)

    # Serve stored images and videos
    upload_dir = Path(settings.UPLOAD_DIR)
    upload_dir.mkdir(parents=True, exist_ok=True)
    app.mount(settings.UPLOAD_URL_PREFIX, StaticFiles(directory=upload_dir), name="uploads")

    @app.get("/", tags=["Root"])
    async def read_root():
        """
        Root endpoint to check if the API is running.
        """
        logger.debug("Root endpoint accessed")
        return {"message": "Welcome to the Recipe Social API!"}

    return app


app = create_app()


if __name__ == "__main__":
    # This block allows running the app directly with uvicorn for development.
    # In production, you would typically use a process manager like Gunicorn.
    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=True)
