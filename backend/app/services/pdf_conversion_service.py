"""
PDF Conversion Service
======================
Converts generated DOCX letters to PDF with LibreOffice in headless mode.

Requirements:
- LibreOffice installed on the server (Linux: apt-get install libreoffice)

The converter writes ``<name>.pdf`` next to ``<name>.docx``. A PDF newer than
its DOCX is reused instead of converting again.
"""

import asyncio
import shutil
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from app.core.config import settings
from app.core.exceptions import (
    ConversionTimeoutError,
    PdfConversionError,
    PdfConverterUnavailableError,
    StorageError,
)
from app.core.logging_config import logger


LIBREOFFICE_PATHS: Dict[str, List[str]] = {
    "win32": [
        r"C:\Program Files\LibreOffice\program\soffice.exe",
        r"C:\Program Files (x86)\LibreOffice\program\soffice.exe",
    ],
    "linux": ["/usr/bin/soffice", "/usr/bin/libreoffice"],
    "darwin": ["/Applications/LibreOffice.app/Contents/MacOS/soffice"],
}


def find_libreoffice(
    configured: Optional[str] = None,
    platform: Optional[str] = None,
    known_paths: Optional[Dict[str, Sequence[str]]] = None,
) -> Optional[str]:
    """Locate the soffice binary: explicit setting, PATH, then known install locations"""
    if configured:
        return configured if Path(configured).exists() else None

    for name in ("soffice", "libreoffice"):
        found = shutil.which(name)
        if found:
            return found

    platform = platform or sys.platform
    paths = (known_paths or LIBREOFFICE_PATHS).get(platform, [])
    for path in paths:
        if Path(path).exists():
            return path
    return None


class PdfConversionService:
    """
    DOCX -> PDF through LibreOffice.

    Usage:
        if pdf_conversion_service.is_available():
            pdf_path = await pdf_conversion_service.get_pdf_for_docx(docx_path)
    """

    def __init__(self, soffice_path: Optional[str] = None, timeout: Optional[int] = None):
        self._soffice_path = soffice_path
        self._resolved = soffice_path is not None
        self.timeout = timeout or settings.PDF_CONVERSION_TIMEOUT

    @property
    def soffice_path(self) -> Optional[str]:
        # Resolved lazily so importing the module never touches the filesystem
        if not self._resolved:
            self._soffice_path = find_libreoffice(settings.SOFFICE_PATH or None)
            self._resolved = True
            if self._soffice_path:
                logger.info(f"[PdfConversion] Found LibreOffice at: {self._soffice_path}")
            else:
                logger.warning("[PdfConversion] LibreOffice not found. PDF conversion will not be available.")
        return self._soffice_path

    def is_available(self) -> bool:
        return self.soffice_path is not None

    @staticmethod
    def pdf_path_for(docx_path: Path) -> Path:
        return Path(docx_path).with_suffix(".pdf")

    async def convert_to_pdf(self, docx_path: Path) -> Path:
        """
        Convert a DOCX file, returning the PDF path.

        Raises:
            PdfConverterUnavailableError: LibreOffice is not installed
            ConversionTimeoutError: conversion exceeded the configured timeout
            PdfConversionError: converter failed or produced no file
        """
        soffice = self.soffice_path
        if soffice is None:
            raise PdfConverterUnavailableError()

        docx_path = Path(docx_path)
        if not docx_path.exists():
            raise StorageError(f"DOCX file not found: {docx_path}", path=str(docx_path))

        output_dir = docx_path.parent
        pdf_path = self.pdf_path_for(docx_path)

        logger.info(f"[PdfConversion] Converting {docx_path.name} -> {pdf_path.name}")

        process = await asyncio.create_subprocess_exec(
            soffice,
            "--headless",
            "--convert-to",
            "pdf",
            "--outdir",
            str(output_dir),
            str(docx_path),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            logger.error(f"[PdfConversion] Timed out after {self.timeout}s: {docx_path.name}")
            raise ConversionTimeoutError(self.timeout)

        if stdout:
            logger.debug(f"[PdfConversion] stdout: {stdout.decode(errors='replace')[:500]}")

        if process.returncode != 0:
            message = stderr.decode(errors="replace") if stderr else ""
            logger.error(f"[PdfConversion] Failed (exit {process.returncode}): {message[:500]}")
            raise PdfConversionError(f"LibreOffice exited with code {process.returncode}", stderr=message)

        if not pdf_path.exists():
            raise PdfConversionError("PDF file was not created. Conversion may have failed.")

        logger.info(f"[PdfConversion] PDF created: {pdf_path.name}")
        return pdf_path

    async def get_pdf_for_docx(self, docx_path: Path) -> Path:
        """Reuse a PDF newer than its DOCX, otherwise convert"""
        docx_path = Path(docx_path)
        pdf_path = self.pdf_path_for(docx_path)

        if pdf_path.exists() and docx_path.exists():
            if pdf_path.stat().st_mtime > docx_path.stat().st_mtime:
                logger.info(f"[PdfConversion] Using cached PDF: {pdf_path.name}")
                return pdf_path

        return await self.convert_to_pdf(docx_path)


# Singleton instance
pdf_conversion_service = PdfConversionService()
