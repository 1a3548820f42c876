"""
Document endpoints - download generated letters and inspect generation history
"""
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.logging_config import logger
from app.models.generation_log import GenerationFormat
from app.schemas.letter import GenerationLogListResponse, GenerationLogResponse, PreviewStatusResponse
from app.services.letter_generation_service import CONTENT_TYPES, letter_generation_service

router = APIRouter()


@router.get("/download/{log_id}")
async def download_document(
    log_id: str,
    format: GenerationFormat = Query(GenerationFormat.DOCX, description="DOCX or PDF"),
    db: AsyncSession = Depends(get_db),
):
    """
    Download the file of a successful generation.

    A PDF is converted from the stored DOCX on first request and reused
    afterwards. A log whose file is gone answers 404 so the client can
    regenerate.
    """
    path, content_type, filename = await letter_generation_service.download(db, log_id, format)
    logger.info(f"[DocDownload] Serving {path.name} as {filename}")

    return FileResponse(
        path=str(path),
        filename=filename,
        media_type=content_type,
        headers={"Access-Control-Expose-Headers": "Content-Disposition"},
    )


@router.get("/application/{application_id}/latest", response_model=GenerationLogResponse)
async def latest_document(application_id: str, db: AsyncSession = Depends(get_db)):
    """Most recent successful generation of an application"""
    return await letter_generation_service.latest_for_application(db, application_id)


@router.get("/application/{application_id}/preview")
async def preview_document(application_id: str, db: AsyncSession = Depends(get_db)):
    """
    Current DOCX of an application served inline for an embedded viewer.

    Answers 404 while nothing has been generated or when the file is gone.
    """
    path, filename = await letter_generation_service.preview(db, application_id)
    logger.info(f"[DocPreview] Serving {path.name} inline for {application_id}")

    return FileResponse(
        path=str(path),
        filename=filename,
        media_type=CONTENT_TYPES[GenerationFormat.DOCX],
        content_disposition_type="inline",
        headers={"Access-Control-Expose-Headers": "Content-Disposition, Content-Length"},
    )


@router.get("/application/{application_id}/preview-status", response_model=PreviewStatusResponse)
async def preview_status(application_id: str, request: Request, db: AsyncSession = Depends(get_db)):
    status = await letter_generation_service.preview_status(db, application_id)
    if status["available"]:
        status["preview_url"] = str(request.url_for("preview_document", application_id=application_id))
        status["download_url"] = str(request.url_for("download_document", log_id=status["log_id"]))
    return PreviewStatusResponse(application_id=application_id, **status)


@router.get("/application/{application_id}/logs", response_model=GenerationLogListResponse)
async def document_logs(application_id: str, db: AsyncSession = Depends(get_db)):
    logs = await letter_generation_service.list_logs(db, application_id)
    return GenerationLogListResponse(
        application_id=application_id,
        logs=[GenerationLogResponse.model_validate(log) for log in logs],
        total=len(logs),
    )
