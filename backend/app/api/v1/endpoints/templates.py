"""
Template endpoints - list registered templates and generate letters from them
"""
from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.logging_config import logger
from app.models.document_template import DocumentTemplate
from app.schemas.letter import GenerateLetterRequest
from app.services.letter_generation_service import GenerationRequest, letter_generation_service

router = APIRouter()


@router.get("")
async def list_templates(db: AsyncSession = Depends(get_db)):
    """Active templates"""
    result = await db.execute(
        select(DocumentTemplate)
        .where(DocumentTemplate.is_active.is_(True))
        .order_by(DocumentTemplate.letter_type_code, DocumentTemplate.key)
    )
    templates = result.scalars().all()
    return {
        "success": True,
        "data": [
            {
                "id": t.id,
                "key": t.key,
                "name": t.name,
                "description": t.description,
                "letter_type_code": t.letter_type_code,
            }
            for t in templates
        ],
    }


@router.post("/{template_id}/generate")
async def generate_letter(
    template_id: str,
    body: GenerateLetterRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Generate a letter for an application and return the file.

    The generation log id is returned in the X-Generation-Log-Id header so the
    file can be downloaded again later.
    """
    logger.info(f"[Templates] Generate {body.format.value} with {template_id} for {body.application_id}")

    result = await letter_generation_service.generate(
        db,
        template_id,
        GenerationRequest(
            application_id=body.application_id,
            format=body.format,
            letter_number=body.letter_number,
            signature=body.signature,
            stamp=body.stamp,
        ),
    )

    return FileResponse(
        path=str(result.path),
        filename=result.filename,
        media_type=result.content_type,
        headers={
            "X-Generation-Log-Id": str(result.log.id),
            "Access-Control-Expose-Headers": "Content-Disposition, X-Generation-Log-Id",
        },
    )
