"""
Letter Generation Service
=========================
Produces the DOCX (and optionally PDF) of a recommendation letter.

Pipeline per request:
    CLEANUP  - remove earlier generations of the application (best-effort)
    RENDER   - build template data and digital features, repair and render the template
    PERSIST  - store the rendered file and close the generation log

The generation log is created PENDING before RENDER and ends SUCCESS or
FAILED. A PDF is converted from the stored DOCX only when PDF is requested.
"""

import asyncio
import re
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import aiofiles
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import (
    ApplicationNotFoundError,
    GeneratedFileMissingError,
    GenerationLogNotFoundError,
    InvalidLetterNumberError,
    TemplateError,
    TemplateNotFoundError,
)
from app.core.logging_config import logger, set_application_id
from app.models.document_template import DocumentTemplate
from app.models.generation_log import DocumentGenerationLog, GenerationFormat, GenerationStatus
from app.models.letter import LetterInstance
from app.services.document_cleanup_service import DocumentCleanupService, document_cleanup_service
from app.services.generated_file_store import GeneratedFileStore, generated_file_store
from app.services.letter_numbering_service import example_format, validate_format
from app.services.pdf_conversion_service import PdfConversionService, pdf_conversion_service
from app.services.template import (
    DigitalFeatureComposer,
    DigitalFeatures,
    TemplateRenderer,
    build_template_data,
    digital_feature_composer,
    repair_docx,
    resolve_field,
    unwrap_form_values,
    validate_template_data,
)
from app.services.verification_service import build_verification_url, verification_service


DOCX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
PDF_CONTENT_TYPE = "application/pdf"

CONTENT_TYPES = {
    GenerationFormat.DOCX: DOCX_CONTENT_TYPE,
    GenerationFormat.PDF: PDF_CONTENT_TYPE,
}

DOWNLOAD_PREFIX = "surat-rekomendasi"
FILENAME_PART_LIMIT = 50


def sanitize_filename_part(value: Optional[str]) -> str:
    """Lowercase, strip non-alphanumerics, spaces to underscores, max 50 chars"""
    text = (value or "").lower()
    text = re.sub(r"[^a-z0-9\s]", "", text)
    text = re.sub(r"\s+", "_", text)
    return text[:FILENAME_PART_LIMIT]


def build_download_filename(name: Optional[str], nim: Optional[str], scholarship: Optional[str], ext: str) -> str:
    """Human-readable attachment name: surat-rekomendasi_<nama>_<nim>_<beasiswa>.<ext>"""
    parts = [
        sanitize_filename_part(name or "unknown"),
        sanitize_filename_part(nim or "unknown"),
        sanitize_filename_part(scholarship or "beasiswa"),
    ]
    return f"{DOWNLOAD_PREFIX}_{'_'.join(parts)}.{ext.lower().lstrip('.')}"


@dataclass
class GenerationRequest:
    application_id: str
    format: GenerationFormat = GenerationFormat.DOCX
    letter_number: Optional[str] = None
    signature: Optional[str] = None
    stamp: Optional[str] = None


@dataclass
class GenerationResult:
    log: DocumentGenerationLog
    path: Path
    content_type: str
    filename: str


class LetterGenerationService:
    """
    Orchestrates letter generation.

    Usage:
        result = await letter_generation_service.generate(
            db, template_id, GenerationRequest(application_id=app_id, format=GenerationFormat.PDF)
        )
        return FileResponse(result.path, filename=result.filename, media_type=result.content_type)
    """

    def __init__(
        self,
        store: Optional[GeneratedFileStore] = None,
        cleanup: Optional[DocumentCleanupService] = None,
        converter: Optional[PdfConversionService] = None,
        composer: Optional[DigitalFeatureComposer] = None,
        renderer: Optional[TemplateRenderer] = None,
    ):
        self.store = store or generated_file_store
        self.cleanup = cleanup or document_cleanup_service
        self.converter = converter or pdf_conversion_service
        self.composer = composer or digital_feature_composer
        self.renderer = renderer or TemplateRenderer()

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def get_application(self, db: AsyncSession, application_id: str) -> LetterInstance:
        application = await db.get(LetterInstance, str(application_id))
        if application is None:
            raise ApplicationNotFoundError(str(application_id))
        return application

    async def get_template(self, db: AsyncSession, template_id: str) -> DocumentTemplate:
        """Active template by id or registry key"""
        result = await db.execute(
            select(DocumentTemplate).where(
                (DocumentTemplate.id == str(template_id)) | (DocumentTemplate.key == str(template_id))
            )
        )
        template = result.scalars().first()
        if template is None or not template.is_active:
            raise TemplateNotFoundError(str(template_id))
        return template

    def template_path(self, template: DocumentTemplate) -> Path:
        path = Path(template.file_path)
        return path if path.is_absolute() else Path(settings.TEMPLATES_DIR) / path

    async def load_template_bytes(self, template: DocumentTemplate) -> bytes:
        path = self.template_path(template)
        if not path.is_file():
            logger.error(f"[LetterGeneration] Template file missing: {path}")
            raise TemplateNotFoundError(template.key)
        async with aiofiles.open(path, "rb") as f:
            return await f.read()

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def prepare_data(
        self,
        application: LetterInstance,
        letter_number: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Template data for an application, validated for required fields"""
        if letter_number and not validate_format(letter_number):
            raise InvalidLetterNumberError(letter_number, example_format())

        data = build_template_data(
            application.values,
            letter_number=letter_number or application.letter_number,
            scholarship_name=application.scholarship_name,
            issued_at=application.published_at,
        )
        validate_template_data(data)
        return data

    async def build_features(
        self,
        db: AsyncSession,
        application: LetterInstance,
        signature: Optional[str] = None,
        stamp: Optional[str] = None,
    ) -> DigitalFeatures:
        """QR for the issued verification code, signature and stamp of the request or application"""
        verification_url = None
        record = await verification_service.get_by_application(db, application.id)
        if record is not None:
            verification_url = build_verification_url(record.code)

        return DigitalFeatures(
            verification_url=verification_url,
            signature=signature or application.signature_url,
            stamp=stamp or application.stamp_url,
        )

    def _repair_and_render(
        self,
        template_bytes: bytes,
        data: Dict[str, Any],
        images: Optional[Dict[str, str]],
    ) -> bytes:
        repaired = repair_docx(template_bytes)
        return self.renderer.render(repaired.content, data, images)

    async def render_letter(
        self,
        template_bytes: bytes,
        data: Dict[str, Any],
        images: Optional[Dict[str, str]],
    ) -> bytes:
        loop = asyncio.get_running_loop()
        # Repair and rendering are CPU-bound XML work
        return await loop.run_in_executor(None, self._repair_and_render, template_bytes, data, images)

    async def generate(self, db: AsyncSession, template_id: str, request: GenerationRequest) -> GenerationResult:
        """
        Generate a letter for an application.

        Raises:
            ApplicationNotFoundError / TemplateNotFoundError: unknown input
            ValidationError: required fields missing or malformed letter number
            TemplateError: template has malformed placeholders
            ExternalToolUnavailable / PdfConversionError: PDF requested but conversion failed
        """
        application_id = str(request.application_id)
        set_application_id(application_id)
        start_time = time.time()

        application = await self.get_application(db, application_id)
        template = await self.get_template(db, template_id)
        template_bytes = await self.load_template_bytes(template)
        data = await self.prepare_data(application, request.letter_number)

        # CLEANUP
        logger.log_generation_event(application_id, "cleanup")
        await self.cleanup.cleanup_old_documents(db, application_id)

        log = DocumentGenerationLog(
            template_id=template.id,
            application_id=application_id,
            format=request.format,
            status=GenerationStatus.PENDING,
        )
        db.add(log)
        await db.commit()
        await db.refresh(log)

        try:
            # RENDER
            logger.log_generation_event(application_id, "render", template=template.key)
            features = await self.build_features(db, application, request.signature, request.stamp)
            images = await self.composer.compose(features)
            rendered = await self.render_letter(template_bytes, data, images)

            # PERSIST
            logger.log_generation_event(application_id, "persist", size=len(rendered))
            docx_path = await self.store.write(application_id, rendered)

            log.file_path = str(docx_path)
            log.file_size = len(rendered)

            output_path = docx_path
            if request.format == GenerationFormat.PDF:
                output_path = await self.converter.get_pdf_for_docx(docx_path)
        except Exception as e:
            log.status = GenerationStatus.FAILED
            log.error_message = self._describe_error(e)
            log.processing_time_ms = int((time.time() - start_time) * 1000)
            log.completed_at = datetime.utcnow()
            await db.commit()
            logger.log_generation_event(application_id, "failed", success=False, error=log.error_message)
            raise

        log.status = GenerationStatus.SUCCESS
        log.processing_time_ms = int((time.time() - start_time) * 1000)
        log.completed_at = datetime.utcnow()
        await db.commit()
        await db.refresh(log)

        logger.log_generation_event(
            application_id, "success",
            format=request.format.value,
            processing_time_ms=log.processing_time_ms,
        )

        return GenerationResult(
            log=log,
            path=output_path,
            content_type=CONTENT_TYPES[request.format],
            filename=self.download_filename(application, request.format),
        )

    @staticmethod
    def _describe_error(error: Exception) -> str:
        if isinstance(error, TemplateError):
            explanations = [
                f"{item.get('tag') or item.get('part')}: {item.get('reason')}" for item in error.errors
            ]
            return f"{error.message}: " + "; ".join(explanations)
        return str(error) or error.__class__.__name__

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------

    def download_filename(self, application: LetterInstance, file_format: GenerationFormat) -> str:
        values = unwrap_form_values(application.values)
        return build_download_filename(
            resolve_field(values, "nama_lengkap"),
            resolve_field(values, "nim"),
            application.scholarship_name or resolve_field(values, "nama_beasiswa"),
            file_format.value.lower(),
        )

    async def get_log(self, db: AsyncSession, log_id: str) -> DocumentGenerationLog:
        log = await db.get(DocumentGenerationLog, str(log_id))
        if log is None:
            raise GenerationLogNotFoundError(str(log_id))
        return log

    async def download(
        self,
        db: AsyncSession,
        log_id: str,
        file_format: GenerationFormat = GenerationFormat.DOCX,
    ) -> Tuple[Path, str, str]:
        """
        File of a successful generation.

        Returns:
            (path, content type, attachment filename)

        Raises:
            GenerationLogNotFoundError: unknown log
            GeneratedFileMissingError: log has no file or the file is gone; regenerate
        """
        log = await self.get_log(db, log_id)
        if log.status != GenerationStatus.SUCCESS or not self.store.exists(log.file_path):
            logger.warning(f"[LetterGeneration] File for log {log.id} is missing: {log.file_path}")
            raise GeneratedFileMissingError(log.file_path or str(log.id))

        path = self.store.resolve(log.file_path)
        if file_format == GenerationFormat.PDF:
            path = await self.converter.get_pdf_for_docx(path)

        application = await self.get_application(db, log.application_id)
        return path, CONTENT_TYPES[file_format], self.download_filename(application, file_format)

    async def _latest_success(self, db: AsyncSession, application_id: str) -> Optional[DocumentGenerationLog]:
        result = await db.execute(
            select(DocumentGenerationLog)
            .where(
                DocumentGenerationLog.application_id == str(application_id),
                DocumentGenerationLog.status == GenerationStatus.SUCCESS,
            )
            .order_by(DocumentGenerationLog.generated_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def latest_for_application(self, db: AsyncSession, application_id: str) -> DocumentGenerationLog:
        """Most recent successful generation of an application"""
        log = await self._latest_success(db, application_id)
        if log is None:
            raise GenerationLogNotFoundError(f"application:{application_id}")
        return log

    async def preview(self, db: AsyncSession, application_id: str) -> Tuple[Path, str]:
        """
        Current DOCX of an application, for inline display.

        Returns:
            (path, filename)

        Raises:
            GenerationLogNotFoundError: nothing generated yet
            GeneratedFileMissingError: the latest file is gone from disk
        """
        log = await self.latest_for_application(db, application_id)
        if not self.store.exists(log.file_path):
            logger.warning(f"[LetterGeneration] Preview file for {application_id} is missing: {log.file_path}")
            raise GeneratedFileMissingError(log.file_path or str(log.id))

        application = await self.get_application(db, log.application_id)
        return self.store.resolve(log.file_path), self.download_filename(application, GenerationFormat.DOCX)

    async def preview_status(self, db: AsyncSession, application_id: str) -> Dict[str, Any]:
        """Whether the current letter of an application can be shown, and why not"""
        log = await self._latest_success(db, application_id)
        if log is None:
            return {"available": False, "reason": "not_generated"}
        if not self.store.exists(log.file_path):
            return {"available": False, "reason": "file_missing", "log_id": log.id}

        return {
            "available": True,
            "log_id": log.id,
            "generated_at": log.generated_at,
            "file_size": self.store.resolve(log.file_path).stat().st_size,
            "format": log.format,
        }

    async def list_logs(self, db: AsyncSession, application_id: str) -> List[DocumentGenerationLog]:
        result = await db.execute(
            select(DocumentGenerationLog)
            .where(DocumentGenerationLog.application_id == str(application_id))
            .order_by(DocumentGenerationLog.generated_at.desc())
        )
        return list(result.scalars().all())


# Singleton instance
letter_generation_service = LetterGenerationService()
