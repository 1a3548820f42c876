"""
Verification Registry
=====================
Issues the public verification code printed (as a QR code) on every
published letter, and resolves codes for the unauthenticated verification
page.

Code = first 12 hex characters of SHA-256("<application>|<letter number>|<ms>"),
uppercased. Each application has at most one code; issuing again returns the
existing record.
"""

import hashlib
import time
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import VerificationNotFoundError
from app.core.logging_config import logger
from app.models.letter import LetterInstance
from app.models.letter_verification import LetterVerification
from app.services.template.template_data import resolve_field, unwrap_form_values


CODE_LENGTH = 12
MAX_CODE_ATTEMPTS = 5


def generate_code(application_id: str, letter_number: str, timestamp_ms: Optional[int] = None) -> str:
    """Derive a verification code for an application and letter number"""
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    digest = hashlib.sha256(f"{application_id}|{letter_number}|{timestamp_ms}".encode("utf-8")).hexdigest()
    return digest[:CODE_LENGTH].upper()


def build_verification_url(code: str) -> str:
    """Public page that resolves a code"""
    return f"{settings.FRONTEND_URL.rstrip('/')}/verify/{code}"


class VerificationService:
    """Issue and resolve letter verification codes"""

    async def get_by_application(self, db: AsyncSession, application_id: str) -> Optional[LetterVerification]:
        result = await db.execute(
            select(LetterVerification).where(LetterVerification.application_id == str(application_id))
        )
        return result.scalar_one_or_none()

    async def get_by_code(self, db: AsyncSession, code: str) -> Optional[LetterVerification]:
        result = await db.execute(
            select(LetterVerification).where(LetterVerification.code == code.strip().upper())
        )
        return result.scalar_one_or_none()

    async def issue(self, db: AsyncSession, application_id: str, letter_number: str) -> LetterVerification:
        """
        Create the verification record for a letter (idempotent).

        A fresh timestamp is used for each attempt, so a code collision with
        another letter is retried rather than stored.
        """
        existing = await self.get_by_application(db, application_id)
        if existing is not None:
            return existing

        base_ms = int(time.time() * 1000)
        for attempt in range(MAX_CODE_ATTEMPTS):
            code = generate_code(application_id, letter_number, base_ms + attempt)
            if await self.get_by_code(db, code) is None:
                break
            logger.warning(f"[Verification] Code collision on {code}, retrying")
        else:
            raise RuntimeError(f"Could not allocate a unique verification code after {MAX_CODE_ATTEMPTS} attempts")

        record = LetterVerification(
            application_id=str(application_id),
            letter_number=letter_number,
            code=code,
            verified_count=0,
        )
        db.add(record)
        await db.flush()

        logger.info(f"[Verification] Issued code {code} for {letter_number}")
        return record

    async def sync_letter_number(self, db: AsyncSession, application_id: str, letter_number: str) -> LetterVerification:
        """Keep the stored letter number in step with a manual edit, issuing a code if missing"""
        record = await self.get_by_application(db, application_id)
        if record is None:
            return await self.issue(db, application_id, letter_number)

        if record.letter_number != letter_number:
            logger.info(f"[Verification] {record.code}: letter number {record.letter_number} -> {letter_number}")
            record.letter_number = letter_number
            await db.flush()
        return record

    async def resolve(self, db: AsyncSession, code: str) -> Dict[str, Any]:
        """
        Resolve a public code, counting the lookup.

        Raises:
            VerificationNotFoundError: unknown code
        """
        normalized = (code or "").strip().upper()

        result = await db.execute(
            update(LetterVerification)
            .where(LetterVerification.code == normalized)
            .values(
                verified_count=LetterVerification.verified_count + 1,
                last_verified_at=datetime.utcnow(),
            )
        )
        if result.rowcount == 0:
            raise VerificationNotFoundError(normalized)

        row = await db.execute(
            select(LetterVerification, LetterInstance)
            .join(LetterInstance, LetterInstance.id == LetterVerification.application_id)
            .where(LetterVerification.code == normalized)
            .execution_options(populate_existing=True)
        )
        record, application = row.one()
        await db.commit()

        values = unwrap_form_values(application.values)
        logger.info(f"[Verification] Resolved {normalized} ({record.verified_count} lookups)")

        return {
            "valid": True,
            "code": record.code,
            "letter_number": record.letter_number,
            "issued_at": record.created_at,
            "published_at": application.published_at,
            "verified_count": record.verified_count,
            "letter_type": application.letter_type_code,
            "applicant": {
                "name": resolve_field(values, "nama_lengkap"),
                "nim": resolve_field(values, "nim"),
                "departemen": resolve_field(values, "jurusan"),
                "program_studi": resolve_field(values, "program_studi"),
            },
            "application": {
                "id": application.id,
                "scholarship_name": application.scholarship_name,
                "status": application.status.value,
                "created_at": application.created_at,
            },
            "authenticity": {
                "issuer": settings.ISSUER_NAME,
                "institution": settings.INSTITUTION_NAME,
                "statement": (
                    f"Dokumen ini adalah surat resmi yang diterbitkan oleh "
                    f"{settings.ISSUER_NAME} {settings.INSTITUTION_NAME} "
                    f"dengan nomor {record.letter_number}."
                ),
            },
        }


# Singleton instance
verification_service = VerificationService()
