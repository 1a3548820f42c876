"""
Generated File Store - local blob area for rendered letters

Files are named ``surat-rekomendasi-<application>-<ms>.docx``; a converted
PDF sits next to its DOCX with the same stem.
"""

import re
import time
from pathlib import Path
from typing import Optional, Tuple

import aiofiles
import aiofiles.os

from app.core.config import settings
from app.core.exceptions import StorageError
from app.core.logging_config import logger


FILE_PREFIX = "surat-rekomendasi"
GENERATED_FILE_PATTERN = re.compile(rf"^{FILE_PREFIX}-(.+)-(\d+)\.(docx|pdf)$")


def parse_generated_filename(name: str) -> Optional[Tuple[str, int, str]]:
    """(application id, ms timestamp, extension) for a generated file name"""
    match = GENERATED_FILE_PATTERN.match(name)
    if not match:
        return None
    return match.group(1), int(match.group(2)), match.group(3)


class GeneratedFileStore:
    """Write, read and delete generated letters under GENERATED_DIR"""

    def __init__(self, directory: Optional[Path] = None):
        self._directory = Path(directory) if directory else None

    @property
    def directory(self) -> Path:
        return self._directory or Path(settings.GENERATED_DIR)

    def build_filename(self, application_id: str, timestamp_ms: Optional[int] = None, ext: str = "docx") -> str:
        timestamp_ms = timestamp_ms or int(time.time() * 1000)
        return f"{FILE_PREFIX}-{application_id}-{timestamp_ms}.{ext}"

    def resolve(self, file_path: str) -> Path:
        """Absolute location of a stored path (as recorded in generation logs)"""
        path = Path(file_path)
        if path.is_absolute() or path.exists():
            return path
        return Path(settings.STORAGE_ROOT) / path

    async def write(self, application_id: str, content: bytes) -> Path:
        """Store a rendered DOCX, returning its path"""
        directory = self.directory
        directory.mkdir(parents=True, exist_ok=True)

        path = directory / self.build_filename(application_id)
        while path.exists():
            time.sleep(0.001)
            path = directory / self.build_filename(application_id)

        partial = path.with_name(path.name + ".part")
        try:
            async with aiofiles.open(partial, "wb") as f:
                await f.write(content)
            await aiofiles.os.rename(partial, path)
        except OSError as e:
            if partial.exists():
                partial.unlink()
            raise StorageError(f"Failed to write generated document: {e}", path=str(path))

        logger.info(f"[FileStore] Wrote {path.name} ({len(content)} bytes)")
        return path

    async def read(self, file_path: str) -> bytes:
        path = self.resolve(file_path)
        async with aiofiles.open(path, "rb") as f:
            return await f.read()

    def exists(self, file_path: Optional[str]) -> bool:
        return bool(file_path) and self.resolve(file_path).is_file()

    def delete_with_pdf(self, file_path: str) -> int:
        """Delete a DOCX and its PDF sibling; missing files are not an error"""
        deleted = 0
        path = self.resolve(file_path)
        for candidate in (path, path.with_suffix(".pdf")):
            try:
                candidate.unlink()
                deleted += 1
                logger.info(f"[FileStore] Deleted {candidate.name}")
            except FileNotFoundError:
                continue
        return deleted


# Singleton instance
generated_file_store = GeneratedFileStore()
