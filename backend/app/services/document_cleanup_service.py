"""
Document Cleanup Service

Keeps the generated-file area bounded:
1. Before a new generation, previous files and logs of the application are removed
2. Files on disk with no generation log (orphans) can be swept
3. Scratch files (downloaded signatures/stamps) older than an hour are swept

Every operation is best-effort and idempotent: failures are logged and never
propagate to the caller, and running an operation twice has the same effect
as running it once.
"""

import time
from pathlib import Path
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.logging_config import logger
from app.models.generation_log import DocumentGenerationLog
from app.services.generated_file_store import (
    GeneratedFileStore,
    generated_file_store,
    parse_generated_filename,
)


class DocumentCleanupService:
    """
    Cleanup of generated letters and scratch files.

    Usage:
        await document_cleanup_service.cleanup_old_documents(db, application_id)
        removed = document_cleanup_service.cleanup_temp_files()
    """

    def __init__(self, store: Optional[GeneratedFileStore] = None):
        self.store = store or generated_file_store

    async def _logs_for(self, db: AsyncSession, application_id: str) -> List[DocumentGenerationLog]:
        result = await db.execute(
            select(DocumentGenerationLog)
            .where(DocumentGenerationLog.application_id == str(application_id))
            .order_by(DocumentGenerationLog.generated_at.desc())
        )
        return list(result.scalars().all())

    async def cleanup_old_documents(
        self,
        db: AsyncSession,
        application_id: str,
        keep_file_path: Optional[str] = None,
    ) -> int:
        """
        Delete generated files and logs of an application.

        Args:
            application_id: Letter application
            keep_file_path: File (and its log) to keep, if any

        Returns:
            Number of files deleted
        """
        deleted_files = 0
        try:
            logs = await self._logs_for(db, application_id)
            stale = [log for log in logs if not keep_file_path or log.file_path != keep_file_path]
            if not stale:
                return 0

            for log in stale:
                if not log.file_path:
                    continue
                try:
                    deleted_files += self.store.delete_with_pdf(log.file_path)
                except OSError as e:
                    logger.warning(f"[DocumentCleanup] Could not delete {log.file_path}: {e}")

            await db.execute(
                delete(DocumentGenerationLog).where(
                    DocumentGenerationLog.id.in_([log.id for log in stale])
                )
            )
            await db.commit()

            logger.info(
                f"[DocumentCleanup] Application {application_id}: "
                f"removed {len(stale)} log(s), {deleted_files} file(s)"
            )
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"[DocumentCleanup] Cleanup failed for {application_id}: {e}")

        return deleted_files

    async def cleanup_keep_latest(self, db: AsyncSession, application_id: str) -> int:
        """Delete everything but the newest generation of an application"""
        try:
            logs = await self._logs_for(db, application_id)
        except SQLAlchemyError as e:
            logger.error(f"[DocumentCleanup] Could not list logs for {application_id}: {e}")
            return 0

        if len(logs) <= 1:
            return 0
        latest = logs[0]
        if not latest.file_path:
            return 0
        return await self.cleanup_old_documents(db, application_id, keep_file_path=latest.file_path)

    async def preview_cleanup(self, db: AsyncSession, application_id: str) -> Dict[str, Any]:
        """Dry run of cleanup_keep_latest"""
        logs = await self._logs_for(db, application_id)
        latest = logs[0] if logs else None

        def describe(log: DocumentGenerationLog) -> Dict[str, Any]:
            return {
                "id": log.id,
                "file_path": log.file_path,
                "generated_at": log.generated_at,
                "status": log.status.value,
            }

        return {
            "application_id": str(application_id),
            "total_logs": len(logs),
            "latest_file": describe(latest) if latest else None,
            "to_be_deleted": [describe(log) for log in logs[1:]],
            "would_delete": max(len(logs) - 1, 0),
        }

    async def cleanup_orphaned_files(self, db: AsyncSession) -> int:
        """Delete generated files that no generation log refers to"""
        directory = self.store.directory
        if not directory.exists():
            logger.info(f"[DocumentCleanup] Generated directory does not exist: {directory}")
            return 0

        try:
            result = await db.execute(
                select(DocumentGenerationLog.file_path).where(DocumentGenerationLog.file_path.isnot(None))
            )
        except SQLAlchemyError as e:
            logger.error(f"[DocumentCleanup] Could not load generation logs: {e}")
            return 0

        known = set()
        for (file_path,) in result.all():
            name = Path(file_path).name
            known.add(name)
            # Cached PDF of a live DOCX is not an orphan
            known.add(str(Path(name).with_suffix(".pdf")))

        removed = 0
        for entry in directory.iterdir():
            if not entry.is_file() or entry.name in known or entry.name.endswith(".part"):
                continue
            try:
                entry.unlink()
                removed += 1
                logger.info(f"[DocumentCleanup] Deleted orphaned file: {entry.name}")
            except OSError as e:
                logger.warning(f"[DocumentCleanup] Failed to delete orphaned file {entry.name}: {e}")

        logger.info(f"[DocumentCleanup] Orphaned cleanup completed: {removed} file(s) removed")
        return removed

    def cleanup_temp_files(self, max_age_seconds: Optional[int] = None) -> int:
        """Delete scratch files older than max_age_seconds (default one hour)"""
        max_age = settings.TEMP_FILE_MAX_AGE_SECONDS if max_age_seconds is None else max_age_seconds
        temp_dir = Path(settings.TEMP_DIR)
        if not temp_dir.exists():
            return 0

        cutoff = time.time() - max_age
        removed = 0
        for entry in temp_dir.iterdir():
            try:
                if entry.is_file() and entry.stat().st_mtime < cutoff:
                    entry.unlink()
                    removed += 1
                    logger.debug(f"[DocumentCleanup] Deleted temp file: {entry.name}")
            except OSError as e:
                logger.warning(f"[DocumentCleanup] Failed to delete temp file {entry.name}: {e}")

        if removed:
            logger.info(f"[DocumentCleanup] Temp cleanup completed: {removed} file(s) removed")
        return removed

    def get_file_statistics(self) -> Dict[str, Any]:
        """File count, total size and files per application in the generated area"""
        stats: Dict[str, Any] = {"total_files": 0, "total_size_bytes": 0, "files_by_application": {}}
        directory = self.store.directory
        if not directory.exists():
            return stats

        for entry in directory.iterdir():
            try:
                if not entry.is_file():
                    continue
                size = entry.stat().st_size
            except OSError:
                continue
            stats["total_files"] += 1
            stats["total_size_bytes"] += size

            parsed = parse_generated_filename(entry.name)
            if parsed:
                application_id = parsed[0]
                counts = stats["files_by_application"]
                counts[application_id] = counts.get(application_id, 0) + 1

        return stats

    async def cleanup_all(self, db: AsyncSession) -> Dict[str, Any]:
        """Keep only the latest generation for every application with extra files"""
        before = self.get_file_statistics()
        cleaned = 0
        for application_id, count in before["files_by_application"].items():
            # One DOCX and its PDF are expected
            if count > 2:
                await self.cleanup_keep_latest(db, application_id)
                cleaned += 1
        after = self.get_file_statistics()

        return {
            "cleanup_count": cleaned,
            "before": {"total_files": before["total_files"], "total_size_bytes": before["total_size_bytes"]},
            "after": {"total_files": after["total_files"], "total_size_bytes": after["total_size_bytes"]},
        }


# Singleton instance
document_cleanup_service = DocumentCleanupService()
