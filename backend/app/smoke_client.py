"""Smoke Client — posts a local image to a running instance and saves the returned crops.

Usage:
    python -m app.smoke_client path/to/dog.jpg --url http://localhost:5001/api/detect-dogs

Invariants:
    - Output directory is emptied (files only) before new crops are written
    - Crop n is saved as detected-dog-<n>.jpg (1-based)
    - Exit code 0 iff the service answered with success=true
"""

import argparse
import base64
import logging
import mimetypes
import sys
from pathlib import Path

import httpx

logger = logging.getLogger(__name__)

DEFAULT_URL = "http://localhost:5001/api/detect-dogs"


def image_to_data_url(path: Path) -> str:
    mime_type = mimetypes.guess_type(path.name)[0] or "image/jpeg"
    encoded = base64.b64encode(path.read_bytes()).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


def save_base64_image(data: str, output_path: Path) -> None:
    """Write base64 (with or without a data-URL prefix) to output_path."""
    payload = data.split(";base64,")[-1]
    output_path.write_bytes(base64.b64decode(payload))


def prepare_output_dir(output_dir: Path) -> None:
    output_dir.mkdir(parents=True, exist_ok=True)
    for entry in output_dir.iterdir():
        if entry.is_file():
            entry.unlink()


def save_detected_dogs(result: dict, output_dir: Path) -> list[Path]:
    saved = []
    for index, dog in enumerate(result.get("detectedDogs") or [], start=1):
        if not dog.get("imageData"):
            logger.warning(f"No image data for detected dog {index}")
            continue
        path = output_dir / f"detected-dog-{index}.jpg"
        save_base64_image(dog["imageData"], path)
        saved.append(path)
    return saved


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("image", type=Path, help="Image file to send")
    parser.add_argument("--url", default=DEFAULT_URL, help="detect-dogs endpoint")
    parser.add_argument(
        "--output-dir", type=Path, default=Path("output"),
        help="Where detected crops are written",
    )
    parser.add_argument("--timeout", type=float, default=120.0)
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    prepare_output_dir(args.output_dir)

    try:
        response = httpx.post(
            args.url, json={"image": image_to_data_url(args.image)},
            timeout=args.timeout,
        )
    except httpx.HTTPError as e:
        logger.error(f"Request failed: {e}")
        return 1

    logger.info(f"Response status: {response.status_code}")
    try:
        result = response.json()
    except ValueError:
        logger.error(f"Response is not JSON: {response.text[:200]}")
        return 1
    if not result.get("success"):
        logger.warning(f"No dogs detected: {result.get('error') or result}")
        return 1

    saved = save_detected_dogs(result, args.output_dir)
    logger.info(
        f"Detected {len(result.get('detectedDogs') or [])} dog(s), "
        f"saved {len(saved)} crop(s) to {args.output_dir}",
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
