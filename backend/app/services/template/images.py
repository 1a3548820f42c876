"""
Image resolution for ``{{%tag}}`` placeholders.

The renderer asks a resolver for the PNG bytes and the display size (in
pixels) of each image tag. The default resolver expects base64 strings, which
is what the digital feature composer produces.
"""

import base64
import binascii
from typing import Any, Dict, Optional, Protocol, Tuple

from app.core.logging_config import logger


# 1x1 transparent PNG, used when an image tag has no data
TRANSPARENT_PNG = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNk+M9QDwADhgGAWjR9awAAAABJRU5ErkJggg=="
)

IMAGE_SIZES: Dict[str, Tuple[int, int]] = {
    "signature_image": (150, 75),
    "stamp_image": (100, 100),
    "qr_code": (80, 80),
}
DEFAULT_IMAGE_SIZE: Tuple[int, int] = (100, 100)
EMPTY_IMAGE_SIZE: Tuple[int, int] = (1, 1)

# Office measures drawings in English Metric Units
EMU_PER_PIXEL = 9525


class ImageResolver(Protocol):
    def get_image(self, tag: str, value: Any) -> bytes:
        ...

    def get_size(self, tag: str, value: Any) -> Tuple[int, int]:
        ...


def decode_base64_image(value: Any) -> Optional[bytes]:
    """Decode a bare base64 string or a data URI; None if there is nothing usable"""
    if not value or not isinstance(value, (str, bytes)):
        return None
    if isinstance(value, bytes):
        return value

    payload = value.strip()
    if payload.startswith("data:"):
        _, _, payload = payload.partition(",")
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        return None
    return data or None


class Base64ImageResolver:
    """Resolves tag values that are base64 PNG strings"""

    def __init__(self, sizes: Optional[Dict[str, Tuple[int, int]]] = None):
        self.sizes = dict(IMAGE_SIZES)
        if sizes:
            self.sizes.update(sizes)

    def get_image(self, tag: str, value: Any) -> bytes:
        data = decode_base64_image(value)
        if data is None:
            if value:
                logger.warning(f"[ImageResolver] Could not decode image for '{tag}', using blank image")
            return TRANSPARENT_PNG
        return data

    def get_size(self, tag: str, value: Any) -> Tuple[int, int]:
        if decode_base64_image(value) is None:
            return EMPTY_IMAGE_SIZE
        return self.sizes.get(tag, DEFAULT_IMAGE_SIZE)
