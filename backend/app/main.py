"""Dog Detection API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map DogDetectionError → structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Roboflow client created on startup and closed on shutdown via lifespan

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - Three error handler layers: DogDetectionError (domain), RequestValidationError
      (Pydantic), Exception (catch-all) — never leaks internal details
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.dependencies import init_detection, shutdown_detection
from app.api.error_handlers import register_error_handlers
from app.api.routes import detection, health
from app.config import get_settings
from app.infrastructure.observability import setup_logging

logger = logging.getLogger(__name__)

CORS_METHODS = ["GET", "HEAD", "PUT", "PATCH", "POST", "DELETE"]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    init_detection(settings)
    logger.info(f"Dog Detection API started, CORS enabled for {settings.cors_origins}")
    yield
    await shutdown_detection()
    logger.info("Dog Detection API shutting down")


app = FastAPI(
    title="Dog Detection API", version="1.0.0", lifespan=lifespan,
)

settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=CORS_METHODS,
    allow_headers=["*"],
    allow_credentials=True,
)

# Routes — explicit registration
app.include_router(health.router)
app.include_router(detection.router)

register_error_handlers(app)


def run() -> None:
    """Console entry point: serve the app with uvicorn on the configured port."""
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
