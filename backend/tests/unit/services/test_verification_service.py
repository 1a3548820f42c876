"""
Tests for the verification registry
"""
import hashlib
import re

import pytest
from sqlalchemy import select

from app.core.exceptions import VerificationNotFoundError
from app.models.letter import LetterStatus
from app.models.letter_verification import LetterVerification
from app.services.verification_service import (
    build_verification_url,
    generate_code,
    verification_service,
)


CODE_PATTERN = re.compile(r"^[0-9A-F]{12}$")


class TestGenerateCode:
    """Tests for code derivation"""

    def test_code_is_sha256_prefix(self):
        """Code is the uppercased first 12 hex chars of the digest"""
        expected = hashlib.sha256(b"app-1|001/ORG/KM/I/2025|1700000000000").hexdigest()[:12].upper()
        assert generate_code("app-1", "001/ORG/KM/I/2025", 1700000000000) == expected

    def test_code_format(self):
        assert CODE_PATTERN.match(generate_code("app-1", "001/ORG/KM/I/2025"))

    def test_timestamp_changes_code(self):
        first = generate_code("app-1", "001/ORG/KM/I/2025", 1)
        second = generate_code("app-1", "001/ORG/KM/I/2025", 2)
        assert first != second

    def test_verification_url(self):
        """URL joins the frontend base and the code"""
        assert build_verification_url("ABCDEF123456") == "https://surat.example.ac.id/verify/ABCDEF123456"


@pytest.mark.asyncio
class TestIssue:
    """Tests for VerificationService.issue"""

    async def test_issue_creates_record(self, db_session, application):
        record = await verification_service.issue(db_session, application.id, "001/ORG/KM/I/2025")
        await db_session.commit()

        assert CODE_PATTERN.match(record.code)
        assert record.verified_count == 0
        assert record.letter_number == "001/ORG/KM/I/2025"

    async def test_issue_is_idempotent(self, db_session, application):
        """A second issue returns the existing record"""
        first = await verification_service.issue(db_session, application.id, "001/ORG/KM/I/2025")
        second = await verification_service.issue(db_session, application.id, "001/ORG/KM/I/2025")
        await db_session.commit()

        assert first.code == second.code
        records = (await db_session.execute(select(LetterVerification))).scalars().all()
        assert len(records) == 1

    async def test_sync_letter_number_updates_record(self, db_session, application):
        record = await verification_service.issue(db_session, application.id, "001/ORG/KM/I/2025")

        synced = await verification_service.sync_letter_number(db_session, application.id, "002/ORG/KM/I/2025")

        assert synced.code == record.code
        assert synced.letter_number == "002/ORG/KM/I/2025"

    async def test_sync_letter_number_issues_when_missing(self, db_session, application):
        synced = await verification_service.sync_letter_number(db_session, application.id, "002/ORG/KM/I/2025")
        assert CODE_PATTERN.match(synced.code)


@pytest.mark.asyncio
class TestResolve:
    """Tests for VerificationService.resolve"""

    async def test_resolve_counts_lookups(self, db_session, make_application):
        """Each resolution increments verified_count"""
        app = await make_application(status=LetterStatus.COMPLETED, letter_number="001/ORG/KM/I/2025")
        record = await verification_service.issue(db_session, app.id, app.letter_number)
        await db_session.commit()

        first = await verification_service.resolve(db_session, record.code)
        second = await verification_service.resolve(db_session, record.code)

        assert first["verified_count"] == 1
        assert second["verified_count"] == 2

    async def test_resolve_payload(self, db_session, make_application):
        """Resolution exposes letter, applicant and issuer details"""
        from conftest import sample_form_values

        values = {"formData": sample_form_values(namaLengkap="Siti Aminah")}
        app = await make_application(
            values=values, status=LetterStatus.COMPLETED, letter_number="007/ORG/KM/III/2025"
        )
        record = await verification_service.issue(db_session, app.id, app.letter_number)
        await db_session.commit()

        result = await verification_service.resolve(db_session, record.code)

        assert result["valid"] is True
        assert result["letter_number"] == "007/ORG/KM/III/2025"
        assert result["applicant"] == {
            "name": "Siti Aminah",
            "nim": "24060120120001",
            "departemen": "Informatika",
            "program_studi": "S1 Informatika",
        }
        assert result["application"]["id"] == app.id
        assert result["application"]["status"] == "COMPLETED"
        assert "007/ORG/KM/III/2025" in result["authenticity"]["statement"]

    async def test_resolve_is_case_insensitive(self, db_session, application):
        record = await verification_service.issue(db_session, application.id, "001/ORG/KM/I/2025")
        await db_session.commit()

        result = await verification_service.resolve(db_session, f"  {record.code.lower()} ")

        assert result["code"] == record.code

    async def test_unknown_code(self, db_session):
        """Unknown codes raise VerificationNotFoundError"""
        with pytest.raises(VerificationNotFoundError) as exc_info:
            await verification_service.resolve(db_session, "000000000000")
        assert exc_info.value.message == "Dokumen tidak ditemukan atau kode verifikasi tidak valid."
