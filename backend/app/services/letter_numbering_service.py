"""
Letter Numbering Service
========================
Issues letter numbers of the form

    NNN/<ORG-CODE>/KM/<roman month>/<year>      e.g. 007/UN7.F8.1/KM/XII/2025

The sequence restarts every (year, month) bucket. A counter row per
(letter type, year, month) is the single authority for issuance: it is
created on first use, seeded from the highest number already published in
that bucket, and advanced by one atomic UPDATE ... RETURNING so
concurrent publications never receive the same number. Manual edits raise
the counter when they jump ahead of it.
"""

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import (
    ApplicationNotFoundError,
    InvalidLetterNumberError,
    LetterNumberInUseError,
)
from app.core.logging_config import logger
from app.core.types import generate_uuid
from app.models.letter import LetterInstance, LetterStatus
from app.models.letter_number_counter import LetterNumberCounter
from app.services.verification_service import build_verification_url, verification_service


ROMAN_MONTHS = ("I", "II", "III", "IV", "V", "VI", "VII", "VIII", "IX", "X", "XI", "XII")
DEFAULT_APPLICATION_NAME = "Surat Rekomendasi Beasiswa"


@dataclass(frozen=True)
class LetterNumber:
    """Parsed letter number"""
    sequence: int
    org_code: str
    month: int
    year: int

    @property
    def roman_month(self) -> str:
        return to_roman_month(self.month)

    def __str__(self) -> str:
        return format_letter_number(self.sequence, self.month, self.year, self.org_code)


def to_roman_month(month: int) -> str:
    if not 1 <= month <= 12:
        raise ValueError(f"Month must be 1-12, got {month}")
    return ROMAN_MONTHS[month - 1]


def format_letter_number(sequence: int, month: int, year: int, org_code: Optional[str] = None) -> str:
    return f"{sequence:03d}/{org_code or settings.LETTER_ORG_CODE}/KM/{to_roman_month(month)}/{year}"


def letter_number_pattern(org_code: Optional[str] = None) -> "re.Pattern[str]":
    org = re.escape(org_code or settings.LETTER_ORG_CODE)
    return re.compile(rf"^(\d{{3}})/({org})/KM/([IVX]+)/(\d{{4}})$")


def example_format(org_code: Optional[str] = None) -> str:
    org = org_code or settings.LETTER_ORG_CODE
    return f"xxx/{org}/KM/X/YYYY (contoh: 001/{org}/KM/I/{datetime.now().year})"


def validate_format(letter_number: str) -> bool:
    """True when the number matches NNN/<org>/KM/<roman>/<yyyy> with a real month"""
    return parse_letter_number(letter_number) is not None


def parse_letter_number(letter_number: Optional[str]) -> Optional[LetterNumber]:
    if not letter_number:
        return None
    match = letter_number_pattern().match(letter_number.strip())
    if not match:
        return None
    sequence, org_code, roman, year = match.groups()
    if roman not in ROMAN_MONTHS:
        return None
    return LetterNumber(
        sequence=int(sequence),
        org_code=org_code,
        month=ROMAN_MONTHS.index(roman) + 1,
        year=int(year),
    )


class LetterNumberingService:
    """
    Numbering authority.

    Usage:
        preview = await letter_numbering_service.preview_next_number(db)
        issued = await letter_numbering_service.generate_number(db, application_id=app_id)
    """

    # ==========================================
    # Published letters
    # ==========================================

    async def _published_letters(self, db: AsyncSession) -> List[LetterInstance]:
        result = await db.execute(
            select(LetterInstance).where(
                LetterInstance.status == LetterStatus.COMPLETED,
                LetterInstance.letter_number.isnot(None),
            )
        )
        return list(result.scalars().all())

    async def get_published_numbers(self, db: AsyncSession, year: int) -> List[Dict[str, Any]]:
        """Published letters of a year, ordered by sequence"""
        items = []
        for letter in await self._published_letters(db):
            parsed = parse_letter_number(letter.letter_number)
            if parsed is None or parsed.year != year:
                continue
            items.append({
                "application_id": letter.id,
                "letter_number": letter.letter_number,
                "sequence": parsed.sequence,
                "month": parsed.roman_month,
                "nama_aplikasi": letter.scholarship_name or DEFAULT_APPLICATION_NAME,
                "published_at": letter.published_at or letter.created_at,
            })
        items.sort(key=lambda item: (item["sequence"], item["letter_number"]))
        return items

    async def _highest_published(self, db: AsyncSession, year: int, month: int) -> Optional[LetterNumber]:
        highest = None
        for letter in await self._published_letters(db):
            parsed = parse_letter_number(letter.letter_number)
            if parsed and parsed.year == year and parsed.month == month:
                if highest is None or parsed.sequence > highest.sequence:
                    highest = parsed
        return highest

    async def get_last_published(self, db: AsyncSession, year: int, month: int) -> Optional[Dict[str, Any]]:
        """Highest published number in a (year, month) bucket"""
        highest = await self._highest_published(db, year, month)
        if highest is None:
            return None
        return {"number": str(highest), "sequence": highest.sequence}

    async def get_numbering_summary(self, db: AsyncSession, year: int) -> Dict[str, Any]:
        published = await self.get_published_numbers(db, year)

        month_counts: Dict[str, int] = {}
        for item in published:
            month_counts[item["month"]] = month_counts.get(item["month"], 0) + 1

        return {
            "year": year,
            "total_published": len(published),
            "month_counts": month_counts,
            "last_published": published[-1]["letter_number"] if published else None,
            "published": published,
        }

    async def is_in_use(
        self,
        db: AsyncSession,
        letter_number: str,
        exclude_application_id: Optional[str] = None,
    ) -> bool:
        """True when a published letter (other than the excluded one) carries this number"""
        query = select(LetterInstance.id).where(
            LetterInstance.letter_number == letter_number.strip(),
            LetterInstance.status == LetterStatus.COMPLETED,
        )
        if exclude_application_id:
            query = query.where(LetterInstance.id != str(exclude_application_id))
        result = await db.execute(query.limit(1))
        return result.first() is not None

    # ==========================================
    # Counter
    # ==========================================

    @staticmethod
    def _bucket(letter_type: str, year: int, month: int):
        return (
            LetterNumberCounter.letter_type == letter_type,
            LetterNumberCounter.year == year,
            LetterNumberCounter.month == month,
        )

    def _insert_counter(self, db: AsyncSession, values: Dict[str, Any]):
        """INSERT ... ON CONFLICT DO NOTHING for the counter bucket"""
        dialect = db.bind.dialect.name if db.bind is not None else ""
        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        else:
            from sqlalchemy.dialects.sqlite import insert
        return (
            insert(LetterNumberCounter)
            .values(**values)
            .on_conflict_do_nothing(index_elements=["letter_type", "year", "month"])
        )

    async def _ensure_counter(self, db: AsyncSession, letter_type: str, year: int, month: int) -> None:
        """Create the bucket's row, seeded from the highest published number, if it is missing"""
        exists = await db.execute(
            select(LetterNumberCounter.id).where(*self._bucket(letter_type, year, month))
        )
        if exists.first() is not None:
            return

        highest = await self._highest_published(db, year, month)
        seed = highest.sequence if highest else 0
        # A concurrent insert of the same bucket wins silently; both then share its row
        await db.execute(self._insert_counter(db, {
            "id": generate_uuid(),
            "letter_type": letter_type,
            "year": year,
            "month": month,
            "last_sequence": seed,
            "updated_at": datetime.utcnow(),
        }))
        logger.info(f"[Numbering] Counter {letter_type} {year}-{month:02d} seeded at {seed}")

    async def reserve_sequence(self, db: AsyncSession, letter_type: str, year: int, month: int) -> int:
        """
        Increment and return the bucket's sequence (caller commits).

        The increment is a single UPDATE ... RETURNING evaluated by the
        database, so concurrent reservations queue on the row's write lock
        and each one sees the value the previous one committed.
        """
        await self._ensure_counter(db, letter_type, year, month)
        result = await db.execute(
            update(LetterNumberCounter)
            .where(*self._bucket(letter_type, year, month))
            .values(last_sequence=LetterNumberCounter.last_sequence + 1, updated_at=datetime.utcnow())
            .returning(LetterNumberCounter.last_sequence)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one()

    async def raise_floor(self, db: AsyncSession, letter_type: str, number: LetterNumber) -> None:
        """Make sure a manually assigned number is never issued again"""
        await self._ensure_counter(db, letter_type, number.year, number.month)
        result = await db.execute(
            update(LetterNumberCounter)
            .where(
                *self._bucket(letter_type, number.year, number.month),
                LetterNumberCounter.last_sequence < number.sequence,
            )
            .values(last_sequence=number.sequence, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            logger.info(
                f"[Numbering] Counter {letter_type} {number.year}-{number.month:02d} raised to {number.sequence}"
            )

    # ==========================================
    # Issuance
    # ==========================================

    async def preview_next_number(
        self,
        db: AsyncSession,
        year: Optional[int] = None,
        month: Optional[int] = None,
        letter_type: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Next number for the bucket without reserving it"""
        now = datetime.now()
        year = year or now.year
        month = month or now.month
        letter_type = letter_type or settings.DEFAULT_LETTER_TYPE

        result = await db.execute(
            select(LetterNumberCounter.last_sequence).where(
                LetterNumberCounter.letter_type == letter_type,
                LetterNumberCounter.year == year,
                LetterNumberCounter.month == month,
            )
        )
        counter_value = result.scalar_one_or_none()
        last = await self.get_last_published(db, year, month)
        last_sequence = counter_value if counter_value is not None else (last["sequence"] if last else 0)

        sequence = last_sequence + 1
        return {
            "number": format_letter_number(sequence, month, year),
            "sequence": sequence,
            "last_published": last["number"] if last else None,
            "last_sequence": last_sequence,
        }

    async def generate_number(
        self,
        db: AsyncSession,
        year: Optional[int] = None,
        month: Optional[int] = None,
        letter_type: Optional[str] = None,
        application_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Reserve the next number.

        With an application id the number is assigned to that application,
        the application is published and its verification code issued. An
        application that already carries a number keeps it.
        """
        now = datetime.now()
        year = year or now.year
        month = month or now.month
        letter_type = letter_type or settings.DEFAULT_LETTER_TYPE

        application = None
        if application_id:
            application = await db.get(LetterInstance, str(application_id))
            if application is None:
                raise ApplicationNotFoundError(str(application_id))

        if application is not None and application.letter_number:
            number = application.letter_number
            parsed = parse_letter_number(number)
            sequence = parsed.sequence if parsed else None
            logger.info(f"[Numbering] Application {application.id} already numbered {number}")
        else:
            sequence = await self.reserve_sequence(db, letter_type, year, month)
            number = format_letter_number(sequence, month, year)
            logger.info(f"[Numbering] Issued {number}")

        verification = None
        if application is not None:
            application.letter_number = number
            application.status = LetterStatus.COMPLETED
            application.published_at = application.published_at or datetime.utcnow()
            record = await verification_service.issue(db, application.id, number)
            verification = {"code": record.code, "verify_url": build_verification_url(record.code)}

        await db.commit()

        return {"number": number, "sequence": sequence, "verification": verification}

    async def update_letter_number(self, db: AsyncSession, application_id: str, letter_number: str) -> Dict[str, Any]:
        """
        Manually set an application's letter number.

        Raises:
            InvalidLetterNumberError: bad format
            ApplicationNotFoundError: unknown application
            LetterNumberInUseError: another application has this number
        """
        letter_number = (letter_number or "").strip()
        parsed = parse_letter_number(letter_number)
        if parsed is None:
            raise InvalidLetterNumberError(letter_number, example_format())

        application = await db.get(LetterInstance, str(application_id))
        if application is None:
            raise ApplicationNotFoundError(str(application_id))

        # Any other application, published or not, since the column is unique
        taken = await db.execute(
            select(LetterInstance.id).where(
                LetterInstance.letter_number == letter_number,
                LetterInstance.id != application.id,
            ).limit(1)
        )
        if taken.first() is not None:
            raise LetterNumberInUseError(letter_number, application.id)

        previous = application.letter_number
        application.letter_number = letter_number
        record = await verification_service.sync_letter_number(db, application.id, letter_number)
        await self.raise_floor(db, application.letter_type_code or settings.DEFAULT_LETTER_TYPE, parsed)
        await db.commit()

        logger.info(f"[Numbering] Application {application.id}: {previous} -> {letter_number}")
        return {
            "application_id": application.id,
            "letter_number": letter_number,
            "nama_aplikasi": application.scholarship_name or DEFAULT_APPLICATION_NAME,
            "status": application.status.value,
            "verification": {"code": record.code, "verify_url": build_verification_url(record.code)},
        }

    async def validate_letter_number(self, db: AsyncSession, letter_number: str) -> Dict[str, Any]:
        """Format and availability check for the numbering UI"""
        letter_number = (letter_number or "").strip()
        if not validate_format(letter_number):
            return {
                "letter_number": letter_number,
                "is_valid_format": False,
                "is_available": False,
                "in_use": False,
                "message": f"Format nomor surat tidak valid. Gunakan: {example_format()}",
            }

        in_use = await self.is_in_use(db, letter_number)
        return {
            "letter_number": letter_number,
            "is_valid_format": True,
            "is_available": not in_use,
            "in_use": in_use,
            "message": "Nomor surat sudah digunakan" if in_use else "Nomor surat tersedia",
        }


# Singleton instance
letter_numbering_service = LetterNumberingService()
