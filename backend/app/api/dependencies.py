"""Service Wiring — process-wide Roboflow client and the FastAPI dependency that exposes it.

Invariants:
    - One ResilientRoboflowClient (one httpx connection pool) per process
    - init_detection() on startup, shutdown_detection() on shutdown (lifespan)
    - get_detection_service() raises if called before init_detection()

Design Decisions:
    - Module-level singleton initialized from lifespan: no import-time side effects
    - Routes depend on get_detection_service, tests override it via
      app.dependency_overrides
"""

import logging

from app.config import Settings
from app.infrastructure.debug_log import DebugLogWriter
from app.infrastructure.roboflow_client import ResilientRoboflowClient
from app.services.dog_detection import DogDetectionService

logger = logging.getLogger(__name__)

# Singleton (initialized on startup)
detection_service: DogDetectionService | None = None


def init_detection(settings: Settings) -> DogDetectionService:
    global detection_service
    debug_log = DebugLogWriter(settings.debug_mode, settings.debug_log_dir)
    client = ResilientRoboflowClient(
        api_url=settings.roboflow_api_url,
        api_key=settings.roboflow_api_key,
        max_attempts=settings.roboflow_max_attempts,
        base_delay_ms=settings.roboflow_base_delay_ms,
        timeout_seconds=settings.roboflow_timeout_seconds,
        debug_log=debug_log,
    )
    if not settings.roboflow_api_url:
        logger.warning("ROBOFLOW_API_URL is not set; detection requests will fail")
    detection_service = DogDetectionService(
        client, debug_log, min_confidence=settings.min_dog_confidence,
    )
    return detection_service


async def shutdown_detection() -> None:
    global detection_service
    if detection_service:
        await detection_service.client.aclose()
    detection_service = None


def get_detection_service() -> DogDetectionService:
    """FastAPI dependency for the detection service."""
    if not detection_service:
        raise RuntimeError("Detection service not initialized")
    return detection_service
