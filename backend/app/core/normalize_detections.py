"""Detection Normalization — maps heterogeneous Roboflow responses to DetectedDog lists.

Invariants:
    - Workflow crops (outputs[].dynamic_crop[]) take precedence over predictions[]
    - predictions[] consulted ONLY when no crop produced a dog and it is a list;
      on_fallback reports that branch (crop pass runs once)
    - Prediction kept iff class is "dog" (case-insensitive) AND confidence > threshold
      AND some image data is present (crop.image → crops[0].image → image)
    - Dog ids are dog-<epoch_ms>-<position in result list>
    - Never raises on shape problems: bad entries are skipped, non-dict → []

Design Decisions:
    - Pure function, no IO: the service decides what to log (on_skip callback)
    - Crops carry no box or score in the vendor format → zero bbox, confidence 1.0
"""

import time
from collections.abc import Callable
from typing import Any

from app.schemas.detection import BoundingBox, DetectedDog

DEFAULT_MIN_CONFIDENCE = 0.5
CROP_CONFIDENCE = 1.0

SkipCallback = Callable[[str, Any], None]


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _number_or_zero(value: Any) -> float:
    return float(value) if _is_number(value) else 0.0


def _non_empty_str(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def _dog_id(now_ms: int, position: int) -> str:
    return f"dog-{now_ms}-{position}"


def _crop_timestamp(crop: dict, default: str) -> str:
    metadata = crop.get("video_metadata")
    if isinstance(metadata, dict) and metadata.get("frame_timestamp"):
        return str(metadata["frame_timestamp"])
    return default


def _prediction_image(prediction: dict) -> str | None:
    """Crop image lookup order: crop.image → crops[0].image → image."""
    crop = prediction.get("crop")
    if isinstance(crop, dict) and _non_empty_str(crop.get("image")):
        return crop["image"]
    crops = prediction.get("crops")
    if isinstance(crops, list) and crops and isinstance(crops[0], dict):
        image = _non_empty_str(crops[0].get("image"))
        if image:
            return image
    return _non_empty_str(prediction.get("image"))


def _is_confident_dog(prediction: dict, min_confidence: float) -> bool:
    label = prediction.get("class")
    confidence = prediction.get("confidence")
    return (
        isinstance(label, str)
        and label.lower() == "dog"
        and _is_number(confidence)
        and confidence > min_confidence
    )


def _dogs_from_crops(
    response: dict, timestamp: str, now_ms: int, on_skip: SkipCallback,
) -> list[DetectedDog]:
    dogs: list[DetectedDog] = []
    outputs = response.get("outputs")
    if not isinstance(outputs, list):
        return dogs
    for output in outputs:
        if not isinstance(output, dict):
            continue
        crops = output.get("dynamic_crop")
        if not isinstance(crops, list):
            continue
        for crop in crops:
            if not isinstance(crop, dict):
                on_skip("Skipping non-object crop", crop)
                continue
            value = _non_empty_str(crop.get("value"))
            if crop.get("type") != "base64" or not value:
                continue
            dogs.append(DetectedDog(
                id=_dog_id(now_ms, len(dogs)),
                confidence=CROP_CONFIDENCE,
                bbox=BoundingBox(),
                image_data=value,
                timestamp=_crop_timestamp(crop, timestamp),
            ))
    return dogs


def _dogs_from_predictions(
    predictions: list,
    timestamp: str,
    now_ms: int,
    min_confidence: float,
    on_skip: SkipCallback,
) -> list[DetectedDog]:
    dogs: list[DetectedDog] = []
    for prediction in predictions:
        if not isinstance(prediction, dict):
            on_skip("Skipping non-object prediction", prediction)
            continue
        if not _is_confident_dog(prediction, min_confidence):
            continue
        image = _prediction_image(prediction)
        if not image:
            on_skip("Dog prediction has no image data", {
                key: prediction.get(key)
                for key in ("class", "confidence", "x", "y", "width", "height")
            })
            continue
        dogs.append(DetectedDog(
            id=_dog_id(now_ms, len(dogs)),
            confidence=float(prediction["confidence"]),
            bbox=BoundingBox(
                x=_number_or_zero(prediction.get("x")),
                y=_number_or_zero(prediction.get("y")),
                width=_number_or_zero(prediction.get("width")),
                height=_number_or_zero(prediction.get("height")),
            ),
            image_data=image,
            timestamp=timestamp,
        ))
    return dogs


def extract_detected_dogs(
    response: Any,
    *,
    timestamp: str,
    min_confidence: float = DEFAULT_MIN_CONFIDENCE,
    now_ms: int | None = None,
    on_skip: SkipCallback | None = None,
    on_fallback: Callable[[], None] | None = None,
) -> list[DetectedDog]:
    """Extract dogs from a vendor response (crops first, predictions as fallback).

    on_fallback fires once when no crop produced a dog and predictions[] is read.
    """
    if not isinstance(response, dict):
        return []
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    skip = on_skip or (lambda message, data: None)

    dogs = _dogs_from_crops(response, timestamp, now_ms, skip)
    if dogs:
        return dogs
    predictions = response.get("predictions")
    if not isinstance(predictions, list):
        return []
    if on_fallback:
        on_fallback()
    return _dogs_from_predictions(
        predictions, timestamp, now_ms, min_confidence, skip,
    )
