"""Image Payload — parses and validates base64 data-URL images (pure, no IO).

Invariants:
    - Only data:image/<subtype>;base64,<payload> is accepted
    - Missing, malformed, empty or undecodable payloads raise InvalidImageError
    - Decoded size above the limit raises ImageTooLargeError
    - to_data_url(parse_data_url(s)) is a canonical data URL for the same bytes

Design Decisions:
    - Strict base64 decoding (validate=True): garbage is rejected here with a 400
      instead of being forwarded to the vendor
    - Whitespace/newlines stripped before decoding: clients often wrap base64 lines
"""

import base64
import binascii
import re
from dataclasses import dataclass

from app.core.errors import ErrorContext, ImageTooLargeError, InvalidImageError

_DATA_URL_RE = re.compile(r'^data:image/([a-zA-Z+.\-]+);base64,([^"]*)$', re.DOTALL)
_WHITESPACE_RE = re.compile(r"\s+")

NO_IMAGE_MESSAGE = "No image data provided"
INVALID_FORMAT_MESSAGE = (
    "Invalid image format. Please provide a valid base64 encoded image."
)


@dataclass(frozen=True)
class DecodedImage:
    """Raw image bytes plus their MIME type."""
    mime_type: str
    data: bytes

    @property
    def size_kb(self) -> float:
        return len(self.data) / 1024


def parse_data_url(
    image: str | None,
    max_bytes: int | None = None,
    context: ErrorContext | None = None,
) -> DecodedImage:
    """Decode a data URL into bytes. Raises InvalidImageError / ImageTooLargeError."""
    if not image:
        raise InvalidImageError(NO_IMAGE_MESSAGE, context)

    match = _DATA_URL_RE.match(image.strip())
    if not match:
        raise InvalidImageError(INVALID_FORMAT_MESSAGE, context)

    subtype, payload = match.group(1), match.group(2)
    payload = _WHITESPACE_RE.sub("", payload)
    if not payload:
        raise InvalidImageError("Image data is empty", context)

    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise InvalidImageError("Image data is not valid base64", context)

    if max_bytes is not None and len(data) > max_bytes:
        raise ImageTooLargeError(len(data), max_bytes, context)

    return DecodedImage(mime_type=f"image/{subtype.lower()}", data=data)


def to_data_url(image: DecodedImage) -> str:
    """Re-encode as the data URL the vendor expects."""
    encoded = base64.b64encode(image.data).decode("ascii")
    return f"data:{image.mime_type};base64,{encoded}"
