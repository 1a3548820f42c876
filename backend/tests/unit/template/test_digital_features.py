"""
Tests for QR, signature and stamp composition
"""
import base64
import io
import os

import httpx
import pytest
from PIL import Image

from app.core.config import settings
from app.core.exceptions import StorageError
from app.services.template.digital_features import (
    DigitalFeatureComposer,
    DigitalFeatures,
    QR_TAG,
    SIGNATURE_TAG,
    STAMP_TAG,
    fit_image,
    generate_qr_png,
)


def png_bytes(width: int, height: int, color=(200, 30, 30, 255)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGBA", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


def image_size(data: bytes):
    with Image.open(io.BytesIO(data)) as img:
        return img.size


def decoded_size(value: str):
    return image_size(base64.b64decode(value))


VERIFY_URL = "https://surat.example.ac.id/verify/A1B2C3D4E5F6"


class TestGenerateQrPng:
    """Tests for QR code rendering"""

    def test_qr_is_png_with_configured_width(self):
        """QR output is a square PNG at QR_PIXEL_WIDTH"""
        data = generate_qr_png(VERIFY_URL)

        assert data.startswith(b"\x89PNG")
        assert image_size(data) == (settings.QR_PIXEL_WIDTH, settings.QR_PIXEL_WIDTH)

    def test_qr_is_deterministic(self):
        """Same URL gives byte-identical PNGs"""
        assert generate_qr_png(VERIFY_URL) == generate_qr_png(VERIFY_URL)

    def test_qr_differs_per_url(self):
        """Different codes give different images"""
        other = VERIFY_URL.replace("A1B2C3D4E5F6", "FFFFFFFFFFFF")
        assert generate_qr_png(VERIFY_URL) != generate_qr_png(other)

    def test_explicit_width(self):
        """Width argument overrides the setting"""
        assert image_size(generate_qr_png(VERIFY_URL, width=120)) == (120, 120)


class TestFitImage:
    """Tests for aspect-preserving downscaling"""

    def test_large_image_shrinks_keeping_aspect(self):
        """600x300 into 150x75 keeps the 2:1 ratio"""
        assert image_size(fit_image(png_bytes(600, 300), (150, 75))) == (150, 75)

    def test_tall_image_bounded_by_height(self):
        """A tall image is limited by the box height"""
        width, height = image_size(fit_image(png_bytes(100, 400), (100, 100)))
        assert height == 100
        assert width == 25

    def test_small_image_not_upscaled(self):
        """Images already inside the box are left at their size"""
        assert image_size(fit_image(png_bytes(40, 20), (150, 75))) == (40, 20)

    def test_palette_image_converted(self):
        """Palette images are normalized before resizing"""
        buffer = io.BytesIO()
        Image.new("P", (300, 300)).save(buffer, format="PNG")
        assert image_size(fit_image(buffer.getvalue(), (100, 100))) == (100, 100)

    def test_unreadable_bytes_raise_storage_error(self):
        """Non-image bytes raise StorageError"""
        with pytest.raises(StorageError):
            fit_image(b"definitely not an image", (100, 100))


class TestDigitalFeatureComposer:
    """Tests for DigitalFeatureComposer.compose"""

    @pytest.mark.asyncio
    async def test_nothing_requested_returns_none(self):
        """No URL, signature or stamp means no image data at all"""
        composer = DigitalFeatureComposer()
        assert await composer.compose(DigitalFeatures()) is None

    @pytest.mark.asyncio
    async def test_qr_only(self):
        """A verification URL yields only the QR entry"""
        composer = DigitalFeatureComposer()
        images = await composer.compose(DigitalFeatures(verification_url=VERIFY_URL))

        assert set(images) == {QR_TAG}
        assert base64.b64decode(images[QR_TAG]) == generate_qr_png(VERIFY_URL)

    @pytest.mark.asyncio
    async def test_data_uri_signature_is_fitted(self):
        """Data URI signatures are decoded and fitted to 150x75"""
        uri = "data:image/png;base64," + base64.b64encode(png_bytes(600, 300)).decode("ascii")
        composer = DigitalFeatureComposer()

        images = await composer.compose(DigitalFeatures(signature=uri))

        assert set(images) == {SIGNATURE_TAG}
        assert decoded_size(images[SIGNATURE_TAG]) == (150, 75)

    @pytest.mark.asyncio
    async def test_bare_base64_stamp(self):
        """Bare base64 stamps are accepted"""
        raw = base64.b64encode(png_bytes(300, 300)).decode("ascii")
        composer = DigitalFeatureComposer()

        images = await composer.compose(DigitalFeatures(stamp=raw))

        assert decoded_size(images[STAMP_TAG]) == (100, 100)

    @pytest.mark.asyncio
    async def test_local_path_under_storage_root(self, storage_root):
        """Paths relative to the storage root are read from disk"""
        stamp = storage_root / "uploads" / "stamps" / "fakultas.png"
        stamp.parent.mkdir(parents=True, exist_ok=True)
        stamp.write_bytes(png_bytes(50, 50))
        composer = DigitalFeatureComposer()

        images = await composer.compose(DigitalFeatures(stamp="/uploads/stamps/fakultas.png"))

        assert decoded_size(images[STAMP_TAG]) == (50, 50)

    @pytest.mark.asyncio
    async def test_absolute_path_outside_storage_is_omitted(self, storage_root, tmp_path):
        """Absolute paths outside the storage area are never read"""
        outside = tmp_path / "ttd.png"
        outside.write_bytes(png_bytes(40, 40))
        composer = DigitalFeatureComposer()

        images = await composer.compose(DigitalFeatures(
            verification_url=VERIFY_URL,
            signature=str(outside),
        ))

        assert set(images) == {QR_TAG}

    @pytest.mark.asyncio
    async def test_parent_traversal_is_omitted(self, storage_root, tmp_path):
        """Relative references cannot climb out of the storage root"""
        outside = tmp_path / "stempel.png"
        outside.write_bytes(png_bytes(40, 40))
        reference = os.path.relpath(outside, storage_root)
        assert reference.startswith("..")
        composer = DigitalFeatureComposer()

        images = await composer.compose(DigitalFeatures(stamp=reference))

        assert images == {}

    @pytest.mark.asyncio
    async def test_system_file_reference_raises(self, storage_root):
        """Resolving /etc/passwd is refused with a StorageError"""
        composer = DigitalFeatureComposer()

        with pytest.raises(StorageError) as exc_info:
            await composer.load_image("/etc/passwd", "signature")

        assert exc_info.value.details["path"] == "/etc/passwd"

    @pytest.mark.asyncio
    async def test_failed_feature_is_omitted(self):
        """A missing signature is dropped while the QR is still produced"""
        composer = DigitalFeatureComposer()

        images = await composer.compose(DigitalFeatures(
            verification_url=VERIFY_URL,
            signature="missing-file.png",
            stamp="data:image/png;base64,aGVsbG8=",
        ))

        assert set(images) == {QR_TAG}

    @pytest.mark.asyncio
    async def test_remote_image_downloaded_and_cached(self, storage_root):
        """http(s) references are fetched and cached in the temp directory"""
        served = png_bytes(300, 150)
        requested = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(str(request.url))
            return httpx.Response(200, content=served)

        composer = DigitalFeatureComposer(transport=httpx.MockTransport(handler))

        images = await composer.compose(DigitalFeatures(signature="https://cdn.example.ac.id/ttd.png"))

        assert requested == ["https://cdn.example.ac.id/ttd.png"]
        assert decoded_size(images[SIGNATURE_TAG]) == (150, 75)
        cached = list((storage_root / "uploads" / "temp").glob("signature_*.png"))
        assert len(cached) == 1
        assert cached[0].read_bytes() == served

    @pytest.mark.asyncio
    async def test_remote_error_is_omitted(self):
        """HTTP errors drop the feature instead of failing"""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404)

        composer = DigitalFeatureComposer(transport=httpx.MockTransport(handler))

        images = await composer.compose(DigitalFeatures(
            verification_url=VERIFY_URL,
            stamp="https://cdn.example.ac.id/missing.png",
        ))

        assert set(images) == {QR_TAG}
