"""Dog Detection Service — one vendor call, one normalization, one DetectionResult.

Invariants:
    - detect_dogs() never raises VendorAPIError: upstream failure becomes
      DetectionResult(success=False, error="Failed to detect dogs: ...")
    - Traceback included in debug_info ONLY when debug mode is on
    - Raw vendor response and per-dog summary go to the debug log, not the app log

Design Decisions:
    - Vendor client injected (not constructed here): routes get it from app lifespan,
      tests pass a client backed by httpx.MockTransport
    - Skipped entries and the fallback note collected during normalization, written afterwards:
      normalize_detections stays pure and synchronous
"""

import logging
import traceback
from datetime import datetime, timezone
from typing import Any

from app.core.errors import ErrorContext, VendorAPIError
from app.core.image_payload import DecodedImage
from app.core.normalize_detections import DEFAULT_MIN_CONFIDENCE, extract_detected_dogs
from app.infrastructure.debug_log import DebugLogWriter
from app.infrastructure.roboflow_client import ResilientRoboflowClient
from app.schemas.detection import DetectedDog, DetectionResult

logger = logging.getLogger(__name__)

_FALLBACK_NOTE = "No dynamic_crop found, falling back to predictions"


def _dog_summary(dog: DetectedDog) -> dict:
    return {
        "confidence": dog.confidence,
        "bbox": dog.bbox.model_dump(),
        "imageSize": (
            f"{len(dog.image_data) / 1024:.2f} KB" if dog.image_data else "N/A"
        ),
    }


class DogDetectionService:
    """Sends an image to Roboflow and returns the normalized detections."""

    def __init__(
        self,
        client: ResilientRoboflowClient,
        debug_log: DebugLogWriter | None = None,
        min_confidence: float = DEFAULT_MIN_CONFIDENCE,
    ):
        self.client = client
        self.debug_log = debug_log or DebugLogWriter(enabled=False)
        self.min_confidence = min_confidence

    async def detect_dogs(
        self, image: DecodedImage, context: ErrorContext | None = None,
    ) -> DetectionResult:
        context = context or ErrorContext()
        try:
            response = await self.client.infer(image, context)
        except VendorAPIError as e:
            return await self._failure(e, context)

        dogs = await self._extract(response)
        logger.info(
            "Dog detection finished",
            extra={"request_id": context.request_id, "dogs_detected": len(dogs)},
        )
        await self.debug_log.write("Dog detection results", {
            "totalDogsDetected": len(dogs),
            "dogs": [_dog_summary(dog) for dog in dogs],
        })
        return DetectionResult(
            success=True,
            detected_dogs=dogs,
            debug_info={"totalDetected": len(dogs)},
        )

    async def _extract(self, response: dict) -> list[DetectedDog]:
        await self.debug_log.write("Roboflow API Response", response)
        notes: list[tuple[str, Any]] = []
        dogs = extract_detected_dogs(
            response,
            timestamp=datetime.now(timezone.utc).isoformat(),
            min_confidence=self.min_confidence,
            on_skip=lambda message, data: notes.append((message, data)),
            on_fallback=lambda: notes.append((_FALLBACK_NOTE, None)),
        )
        for message, data in notes:
            await self.debug_log.write(message, data)
        return dogs

    async def _failure(
        self, error: VendorAPIError, context: ErrorContext,
    ) -> DetectionResult:
        logger.warning(
            f"Dog detection failed: {error.message}",
            extra={
                "request_id": context.request_id,
                "error_code": error.api_error_type,
            },
        )
        debug_info: dict[str, Any] = {"error": error.message}
        if self.debug_log.enabled:
            debug_info["stack"] = "".join(traceback.format_exception(error))
        await self.debug_log.write("Error in detectDogs", {
            "error": error.message,
            "type": error.api_error_type,
            "status": error.status_code,
        })
        return DetectionResult(
            success=False,
            detected_dogs=[],
            error=f"Failed to detect dogs: {error.message}",
            debug_info=debug_info,
        )
