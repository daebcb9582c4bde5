"""Dog Detection Route — POST /api/detect-dogs.

Invariants:
    - Missing/malformed image → 400 before any vendor call (InvalidImageError)
    - Oversized image → 413 (ImageTooLargeError)
    - Vendor failure → 200 with success=false (DetectionResult passthrough)
    - Response keys are camelCase (response_model serialized by alias)
    - Unset fields omitted: a successful result carries no "error" key
    - 400/413 envelopes carry the request_id assigned here

Design Decisions:
    - Route only parses input and delegates: all vendor logic lives in the service
"""

import logging

from fastapi import APIRouter, Depends

from app.api.dependencies import get_detection_service
from app.config import Settings, get_settings
from app.core.errors import ErrorContext
from app.core.image_payload import parse_data_url
from app.infrastructure.roboflow_client import new_request_id
from app.schemas.detection import DetectDogsRequest, DetectionResult
from app.services.dog_detection import DogDetectionService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["detection"])


@router.post(
    "/detect-dogs", response_model=DetectionResult, response_model_exclude_none=True,
)
async def detect_dogs(
    body: DetectDogsRequest,
    service: DogDetectionService = Depends(get_detection_service),
    settings: Settings = Depends(get_settings),
):
    """Detect dogs in a base64 data-URL image."""
    context = ErrorContext(request_id=new_request_id())
    image = parse_data_url(
        body.image, max_bytes=settings.max_image_bytes, context=context,
    )
    logger.info(
        f"Received {image.mime_type} image ({image.size_kb:.2f} KB)",
        extra={"request_id": context.request_id},
    )
    return await service.detect_dogs(image, context)
