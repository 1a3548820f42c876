"""
Digital Feature Composer
========================
Produces the images embedded in a letter:

- QR code pointing at the public verification page
- Leadership signature
- Faculty stamp

Signature and stamp references may be a data URI, bare base64, a local file
path inside STORAGE_ROOT, or an http(s) URL. Paths that resolve outside the
storage area are refused. Remote images are cached in the scratch directory as
``<type>_<ms>.png`` (swept by the cleanup service). A feature that fails to
load is logged and omitted; the letter is still generated without it.
"""

import base64
import io
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Tuple

import httpx
import qrcode
from qrcode.constants import ERROR_CORRECT_M
from PIL import Image

from app.core.config import settings
from app.core.exceptions import StorageError
from app.core.logging_config import logger
from app.services.template.images import IMAGE_SIZES, decode_base64_image


QR_TAG = "qr_code"
SIGNATURE_TAG = "signature_image"
STAMP_TAG = "stamp_image"


@dataclass
class DigitalFeatures:
    """What to embed in one letter; never persisted"""
    verification_url: Optional[str] = None
    signature: Optional[str] = None
    stamp: Optional[str] = None

    @property
    def requested(self) -> bool:
        return bool(self.verification_url or self.signature or self.stamp)


def generate_qr_png(data: str, width: Optional[int] = None) -> bytes:
    """
    Generate a QR code PNG.

    Args:
        data: Text to encode (the verification URL)
        width: Output width/height in pixels (defaults to QR_PIXEL_WIDTH)

    Returns:
        PNG bytes; identical input gives identical output
    """
    width = width or settings.QR_PIXEL_WIDTH

    qr = qrcode.QRCode(
        version=None,
        error_correction=ERROR_CORRECT_M,
        box_size=10,
        border=1
    )
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white").get_image()
    img = img.convert("RGB").resize((width, width), Image.Resampling.NEAREST)

    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


def fit_image(data: bytes, max_size: Tuple[int, int]) -> bytes:
    """Shrink an image to fit max_size, keeping aspect ratio and never upscaling"""
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            if img.mode not in ("RGBA", "RGB", "LA", "L"):
                img = img.convert("RGBA")
            img.thumbnail(max_size, Image.Resampling.LANCZOS)

            buffer = io.BytesIO()
            img.save(buffer, format="PNG")
            return buffer.getvalue()
    except (OSError, ValueError) as e:
        raise StorageError(f"Unreadable image data: {e}")


class DigitalFeatureComposer:
    """
    Build base64 PNGs for the image tags of a letter.

    Usage:
        composer = DigitalFeatureComposer()
        images = await composer.compose(DigitalFeatures(verification_url=url, signature=sig))
        # {"qr_code": "...", "signature_image": "..."} or None
    """

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        # Injectable transport for tests
        self.transport = transport

    async def compose(self, features: DigitalFeatures) -> Optional[Dict[str, str]]:
        if not features.requested:
            return None

        images: Dict[str, str] = {}

        if features.verification_url:
            try:
                images[QR_TAG] = base64.b64encode(generate_qr_png(features.verification_url)).decode("ascii")
            except (ValueError, OSError) as e:
                logger.warning(f"[DigitalFeatures] QR generation failed, omitting: {e}")

        for tag, kind, reference in (
            (SIGNATURE_TAG, "signature", features.signature),
            (STAMP_TAG, "stamp", features.stamp),
        ):
            if not reference:
                continue
            try:
                raw = await self.load_image(reference, kind)
                images[tag] = base64.b64encode(fit_image(raw, IMAGE_SIZES[tag])).decode("ascii")
            except (StorageError, httpx.HTTPError, OSError) as e:
                logger.warning(f"[DigitalFeatures] Could not load {kind} image, omitting: {e}")

        logger.info(f"[DigitalFeatures] Composed: {', '.join(sorted(images)) or 'nothing'}")
        return images

    async def load_image(self, reference: str, kind: str) -> bytes:
        """Read image bytes from a data URI, URL, local path or bare base64"""
        reference = reference.strip()

        if reference.startswith("data:"):
            data = decode_base64_image(reference)
            if data is None:
                raise StorageError(f"Invalid data URI for {kind}")
            return data

        if reference.startswith(("http://", "https://")):
            return await self._download(reference, kind)

        local = self._resolve_local_path(reference)
        if local is not None:
            return local.read_bytes()

        data = decode_base64_image(reference)
        if data is None:
            raise StorageError(f"{kind.capitalize()} image not found", path=reference)
        return data

    async def _download(self, url: str, kind: str) -> bytes:
        async with httpx.AsyncClient(
            timeout=settings.REMOTE_IMAGE_TIMEOUT,
            follow_redirects=True,
            transport=self.transport,
        ) as client:
            response = await client.get(url)
            response.raise_for_status()
            content = response.content

        temp_dir = Path(settings.TEMP_DIR)
        temp_dir.mkdir(parents=True, exist_ok=True)
        cached = temp_dir / f"{kind}_{int(time.time() * 1000)}.png"
        cached.write_bytes(content)
        logger.debug(f"[DigitalFeatures] Cached remote {kind} image at {cached}")
        return cached.read_bytes()

    @staticmethod
    def _resolve_local_path(reference: str) -> Optional[Path]:
        """
        The file a reference names inside the storage area, or None.

        Raises:
            StorageError: the reference names an existing file outside
                STORAGE_ROOT and UPLOAD_DIR
        """
        roots = [Path(settings.STORAGE_ROOT).resolve(), Path(settings.UPLOAD_DIR).resolve()]
        relative = reference.lstrip("/\\")
        candidates = (
            Path(settings.STORAGE_ROOT) / relative,
            Path(settings.UPLOAD_DIR) / relative,
            Path(reference),
        )
        for candidate in candidates:
            try:
                resolved = candidate.resolve()
                if not resolved.is_file():
                    continue
            except (OSError, ValueError):
                continue
            if any(resolved.is_relative_to(root) for root in roots):
                return resolved
            logger.warning(f"[DigitalFeatures] Rejected image path outside storage: {reference}")
            raise StorageError("Image path is outside the storage area", path=reference)
        return None


# Singleton instance
digital_feature_composer = DigitalFeatureComposer()
