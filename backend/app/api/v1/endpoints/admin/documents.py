"""
Admin document maintenance endpoints.

Cleanup of old generations, orphaned files and scratch files, plus storage
statistics for the generated-file area.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from app.core.database import get_db
from app.core.logging_config import logger
from app.services.document_cleanup_service import document_cleanup_service

router = APIRouter()


@router.post("/cleanup/{application_id}")
async def cleanup_application(application_id: str, db: AsyncSession = Depends(get_db)):
    """Delete every generation of an application except the latest"""
    deleted = await document_cleanup_service.cleanup_keep_latest(db, application_id)
    logger.info(f"[AdminDocuments] Cleanup of {application_id}: {deleted} file(s)")
    return {
        "success": True,
        "message": f"Cleanup completed for application {application_id}",
        "data": {"application_id": application_id, "deleted_files": deleted},
    }


@router.get("/cleanup-preview/{application_id}")
async def cleanup_preview(application_id: str, db: AsyncSession = Depends(get_db)):
    """What cleanup would delete, without deleting anything"""
    preview = await document_cleanup_service.preview_cleanup(db, application_id)
    return {"success": True, "data": preview}


@router.post("/cleanup-orphaned")
async def cleanup_orphaned(db: AsyncSession = Depends(get_db)):
    removed = await document_cleanup_service.cleanup_orphaned_files(db)
    return {
        "success": True,
        "message": f"Removed {removed} orphaned file(s)",
        "data": {"removed": removed},
    }


@router.post("/cleanup-temp")
async def cleanup_temp(max_age_seconds: Optional[int] = Query(None, ge=0)):
    removed = document_cleanup_service.cleanup_temp_files(max_age_seconds)
    return {
        "success": True,
        "message": f"Removed {removed} temp file(s)",
        "data": {"removed": removed},
    }


@router.post("/cleanup-all")
async def cleanup_all(db: AsyncSession = Depends(get_db)):
    """Keep only the latest generation of every application"""
    result = await document_cleanup_service.cleanup_all(db)
    return {"success": True, "data": result}


@router.get("/statistics")
async def file_statistics():
    stats = document_cleanup_service.get_file_statistics()
    return {
        "success": True,
        "data": {
            **stats,
            "total_size_mb": round(stats["total_size_bytes"] / (1024 * 1024), 2),
        },
    }
