"""
Tests for engine configuration and session scopes
"""
import pytest
from sqlalchemy import select

from app.core.config import settings
from app.core.database import close_db, create_engine_for, is_sqlite, session_scope
from app.models.letter_number_counter import LetterNumberCounter
from conftest import TestSessionLocal, test_engine


async def pragma(engine, name: str):
    async with engine.connect() as conn:
        result = await conn.exec_driver_sql(f"PRAGMA {name}")
        return result.scalar()


async def counters(month: int):
    async with TestSessionLocal() as session:
        result = await session.execute(
            select(LetterNumberCounter).where(LetterNumberCounter.month == month)
        )
        return list(result.scalars().all())


@pytest.mark.parametrize("url,expected", [
    ("sqlite+aiosqlite:///./surat.db", True),
    ("sqlite+aiosqlite:///:memory:", True),
    ("postgresql+asyncpg://user:pw@localhost/surat", False),
])
def test_is_sqlite(url, expected):
    assert is_sqlite(url) is expected


class TestSqliteEngine:
    """SQLite connections queue writers instead of failing"""

    @pytest.mark.asyncio
    async def test_file_database_uses_wal(self):
        assert (await pragma(test_engine, "journal_mode")).lower() == "wal"

    @pytest.mark.asyncio
    async def test_busy_timeout_applied(self):
        assert await pragma(test_engine, "busy_timeout") == int(settings.SQLITE_BUSY_TIMEOUT * 1000)

    @pytest.mark.asyncio
    async def test_memory_database_keeps_default_journal(self):
        engine = create_engine_for("sqlite+aiosqlite:///:memory:")
        try:
            assert (await pragma(engine, "journal_mode")).lower() == "memory"
        finally:
            await engine.dispose()


class TestSessionScope:

    @pytest.mark.asyncio
    async def test_commits_on_success(self, db_session):
        try:
            async with session_scope() as session:
                session.add(LetterNumberCounter(letter_type="KM", year=2031, month=1, last_sequence=4))
        finally:
            await close_db()

        (counter,) = await counters(1)
        assert counter.last_sequence == 4

    @pytest.mark.asyncio
    async def test_rolls_back_on_error(self, db_session):
        with pytest.raises(RuntimeError):
            try:
                async with session_scope() as session:
                    session.add(LetterNumberCounter(letter_type="KM", year=2031, month=2, last_sequence=4))
                    await session.flush()
                    raise RuntimeError("stop")
            finally:
                await close_db()

        assert await counters(2) == []
