"""Detection Schemas — Pydantic models for the /api/detect-dogs boundary.

Invariants:
    - Wire format is camelCase (detectedDogs, imageData, debugInfo)
    - BoundingBox fields default to 0 when the vendor gives no box
    - DetectionResult.error is set only when success is False

Design Decisions:
    - alias_generator=to_camel + populate_by_name: Python code stays snake_case,
      FastAPI serializes response_model by alias
    - DetectDogsRequest.image optional: a missing image is reported by the route
      with its own message, not as a generic validation error
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DetectDogsRequest(_CamelModel):
    """Base64 data URL, e.g. data:image/jpeg;base64,/9j/4AAQ..."""
    image: str | None = None


class BoundingBox(_CamelModel):
    """Vendor pixel box (x/y are the box centre, as the vendor reports them)."""
    x: float = 0
    y: float = 0
    width: float = 0
    height: float = 0


class DetectedDog(_CamelModel):
    id: str
    confidence: float = Field(ge=0)
    bbox: BoundingBox = Field(default_factory=BoundingBox)
    image_data: str | None = None
    timestamp: str | None = None


class DetectionResult(_CamelModel):
    """Normalized payload returned to the caller."""
    success: bool
    detected_dogs: list[DetectedDog] = Field(default_factory=list)
    error: str | None = None
    debug_info: dict[str, Any] | None = None


class HealthStatus(BaseModel):
    status: str
    timestamp: str
