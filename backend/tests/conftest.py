"""
Surat Rekomendasi Engine - Test Configuration and Fixtures
"""
import io
import os
import shutil
import tempfile
import zipfile
from datetime import datetime
from pathlib import Path
from typing import AsyncGenerator, Callable, Dict, List, Optional, Sequence, Union

import pytest
from docx import Document
from faker import Faker
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

# Set testing environment
TEST_STORAGE_ROOT = tempfile.mkdtemp(prefix="surat-tests-")
os.environ['TESTING'] = 'true'
os.environ['ENVIRONMENT'] = 'test'
os.environ['DATABASE_URL'] = f'sqlite+aiosqlite:///{TEST_STORAGE_ROOT}/test.db'
os.environ['STORAGE_ROOT'] = TEST_STORAGE_ROOT
os.environ['LOG_FILE'] = f'{TEST_STORAGE_ROOT}/logs/test.log'
os.environ['FRONTEND_URL'] = 'https://surat.example.ac.id'
os.environ['LETTER_ORG_CODE'] = 'ORG'
os.environ['SOFFICE_PATH'] = f'{TEST_STORAGE_ROOT}/no-soffice'

from app.main import app
from app.core.config import settings
from app.core.database import Base, create_engine_for, get_db
from app.models.document_template import DocumentTemplate
from app.models.letter import LetterInstance, LetterStatus

fake = Faker('id_ID')

# Test database setup
TEST_DATABASE_URL = os.environ['DATABASE_URL']
test_engine = create_engine_for(TEST_DATABASE_URL)
TestSessionLocal = async_sessionmaker(
    bind=test_engine,
    class_=AsyncSession,
    expire_on_commit=False
)

# Paragraph = plain text, or a list of run texts to simulate Word splitting a run
Paragraph = Union[str, Sequence[str]]

LETTER_PARAGRAPHS: List[Paragraph] = [
    "Nomor: {{nomor_surat}}",
    "Yang bertanda tangan di bawah ini menerangkan bahwa:",
    ["Nama: {{nama_", "lengkap}}"],
    "NIM: {{nim}}",
    "Tempat/Tanggal Lahir: {{tempat_lahir}}, {{tanggal_lahir}}",
    "No. HP: {{no_hp}}",
    "Program Studi: {{program_studi}} / Departemen {{jurusan}}",
    "Semester: {{semester}}, IPK: {{ipk}}, IPS: {{ips}}",
    "Keperluan: {{keperluan}}",
    "Semarang, {{tanggal_terbit}}",
    "{{jabatan_penandatangan}}",
    "{{%signature_image}} {{%stamp_image}}",
    "{{nama_penandatangan}}",
    "NIP. {{nip_penandatangan}}",
    "{{%qr_code}}",
]


def add_runs(p, paragraph: Paragraph) -> None:
    for text in [paragraph] if isinstance(paragraph, str) else paragraph:
        p.add_run(text)


def build_docx(paragraphs: Sequence[Paragraph], header: Optional[Sequence[Paragraph]] = None) -> bytes:
    """Build a DOCX with python-docx; list items become separate runs"""
    document = Document()
    for paragraph in paragraphs:
        add_runs(document.add_paragraph(), paragraph)
    if header:
        section_header = document.sections[0].header
        for paragraph in header:
            add_runs(section_header.add_paragraph(), paragraph)
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def replace_part(content: bytes, part: str, data: Union[str, bytes]) -> bytes:
    """Return a copy of a DOCX package with one part replaced (or added)"""
    if isinstance(data, str):
        data = data.encode("utf-8")
    source = zipfile.ZipFile(io.BytesIO(content))
    buffer = io.BytesIO()
    with source, zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as target:
        for info in source.infolist():
            if info.filename != part:
                target.writestr(info, source.read(info.filename))
        target.writestr(part, data)
    return buffer.getvalue()


def read_part(content: bytes, part: str) -> str:
    with zipfile.ZipFile(io.BytesIO(content)) as package:
        return package.read(part).decode("utf-8")


def docx_text(content: bytes) -> str:
    """Visible body text, one line per paragraph"""
    document = Document(io.BytesIO(content))
    return "\n".join(p.text for p in document.paragraphs)


def header_text(content: bytes) -> str:
    document = Document(io.BytesIO(content))
    return "\n".join(p.text for p in document.sections[0].header.paragraphs)


def sample_form_values(**overrides) -> Dict[str, object]:
    """Form values in the camelCase shape the web form submits"""
    values = {
        "namaLengkap": fake.name(),
        "nim": "24060120120001",
        "tempatLahir": "Semarang",
        "tanggalLahir": "2002-12-05",
        "noHp": "081234567890",
        "departemen": "Informatika",
        "programStudi": "S1 Informatika",
        "semester": "5",
        "ipk": "3.75",
        "ips": "3.80",
        "jenisBeasiswa": "Prestasi",
    }
    values.update(overrides)
    return values


@pytest.fixture(autouse=True)
def storage_root():
    """Fresh upload area per test"""
    upload_dir = Path(settings.UPLOAD_DIR)
    shutil.rmtree(upload_dir, ignore_errors=True)
    for directory in (settings.GENERATED_DIR, settings.TEMP_DIR, settings.TEMPLATES_DIR):
        Path(directory).mkdir(parents=True, exist_ok=True)
    yield Path(settings.STORAGE_ROOT)
    shutil.rmtree(upload_dir, ignore_errors=True)


@pytest.fixture(scope='function')
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test"""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session
        await session.rollback()

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database override"""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def letter_template_bytes() -> bytes:
    """Letter template with one placeholder split across runs"""
    return build_docx(LETTER_PARAGRAPHS)


@pytest.fixture
async def document_template(db_session: AsyncSession, letter_template_bytes: bytes) -> DocumentTemplate:
    """Registered template whose DOCX sits in the templates directory"""
    relative = "surat-rekomendasi-beasiswa/test-template.docx"
    path = Path(settings.TEMPLATES_DIR) / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(letter_template_bytes)

    template = DocumentTemplate(
        key="srb-test",
        name="Template Test",
        file_path=relative,
        letter_type_code="SRB",
        is_active=True,
    )
    db_session.add(template)
    await db_session.commit()
    await db_session.refresh(template)
    return template


@pytest.fixture
def make_application(db_session: AsyncSession) -> Callable:
    """Factory for letter applications"""
    async def factory(
        values: Optional[Dict[str, object]] = None,
        status: LetterStatus = LetterStatus.IN_REVIEW,
        letter_number: Optional[str] = None,
        published_at: Optional[datetime] = None,
        scholarship_name: Optional[str] = "Beasiswa Prestasi Djarum",
        **kwargs,
    ) -> LetterInstance:
        application = LetterInstance(
            letter_type_code="SRB",
            status=status,
            values=values if values is not None else sample_form_values(),
            scholarship_name=scholarship_name,
            letter_number=letter_number,
            published_at=published_at,
            **kwargs,
        )
        db_session.add(application)
        await db_session.commit()
        await db_session.refresh(application)
        return application

    return factory


@pytest.fixture
async def application(make_application) -> LetterInstance:
    """An application under review with complete form values"""
    return await make_application()
