from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import List, Any
import json
from pathlib import Path


def parse_cors_origins(v: Any) -> List[str]:
    """Parse CORS origins from string or list"""
    if isinstance(v, list):
        return v
    if isinstance(v, str):
        # Try JSON parsing first
        if v.startswith('['):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pass
        # Fall back to comma-separated
        return [origin.strip() for origin in v.split(',') if origin.strip()]
    return []


class Settings(BaseSettings):
    """Application settings - all configurable via environment variables"""

    # ==========================================
    # Application
    # ==========================================
    APP_NAME: str = "Surat Rekomendasi Engine"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    API_VERSION: str = "v1"

    # Server Configuration
    SERVER_HOST: str = "0.0.0.0"
    SERVER_PORT: int = 8000

    # Public frontend, used to build verification links
    FRONTEND_URL: str = "http://localhost:3000"

    # CORS
    CORS_ORIGINS_STR: str = "http://localhost:3000"

    @property
    def CORS_ORIGINS(self) -> List[str]:
        return parse_cors_origins(self.CORS_ORIGINS_STR)

    # ==========================================
    # Database
    # ==========================================
    DATABASE_URL: str = "sqlite+aiosqlite:///./surat.db"
    DB_ECHO: bool = False
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800  # 30 minutes
    # Seconds a SQLite connection waits for the write lock
    SQLITE_BUSY_TIMEOUT: float = 30.0

    # ==========================================
    # Logging
    # ==========================================
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "logs/surat.log"

    # Emit per-part placeholder counts while repairing templates
    TEMPLATE_TRACE_ENABLED: bool = False

    # ==========================================
    # Storage
    # ==========================================
    STORAGE_ROOT: str = "."
    UPLOAD_DIR_NAME: str = "uploads"
    TEMPLATES_DIR_NAME: str = "templates"

    @property
    def UPLOAD_DIR(self) -> Path:
        return Path(self.STORAGE_ROOT) / self.UPLOAD_DIR_NAME

    @property
    def GENERATED_DIR(self) -> Path:
        return self.UPLOAD_DIR / "generated"

    @property
    def TEMP_DIR(self) -> Path:
        return self.UPLOAD_DIR / "temp"

    @property
    def TEMPLATES_DIR(self) -> Path:
        return self.UPLOAD_DIR / self.TEMPLATES_DIR_NAME

    # Scratch files older than this are swept
    TEMP_FILE_MAX_AGE_SECONDS: int = 3600

    # ==========================================
    # Letter numbering
    # ==========================================
    LETTER_ORG_CODE: str = "UN7.F8.1"
    DEFAULT_LETTER_TYPE: str = "SRB"

    # ==========================================
    # Digital features
    # ==========================================
    QR_PIXEL_WIDTH: int = 400
    REMOTE_IMAGE_TIMEOUT: float = 10.0

    # ==========================================
    # PDF conversion (LibreOffice)
    # ==========================================
    PDF_CONVERSION_TIMEOUT: int = 60
    SOFFICE_PATH: str = ""

    # ==========================================
    # Letterhead and signer defaults
    # ==========================================
    KOP_KEMENTERIAN: str = "KEMENTERIAN PENDIDIKAN TINGGI, SAINS, DAN TEKNOLOGI"
    KOP_UNIVERSITAS: str = "UNIVERSITAS DIPONEGORO"
    KOP_FAKULTAS: str = "FAKULTAS SAINS DAN MATEMATIKA"
    KOP_ALAMAT: str = "Jalan Prof. Jacub Rais, Tembalang, Semarang 50275"
    KOP_TELEPON: str = "Telp. (024) 7474754"
    KOP_WEBSITE: str = "fsm.undip.ac.id"
    KOP_EMAIL: str = "fsm@live.undip.ac.id"
    JUDUL_SURAT: str = "SURAT REKOMENDASI"

    # Shown on the public verification page
    ISSUER_NAME: str = "Fakultas Sains dan Matematika"
    INSTITUTION_NAME: str = "Universitas Diponegoro"

    SIGNER_TITLE: str = "Wakil Dekan Akademik dan Kemahasiswaan"
    SIGNER_NAME: str = "Prof. Dr. Ngadiwiyana, S.Si., M.Si."
    SIGNER_NIP: str = "196906201990031002"

    @field_validator('LETTER_ORG_CODE')
    @classmethod
    def validate_org_code(cls, v: str) -> str:
        if not v or '/' in v:
            raise ValueError("LETTER_ORG_CODE must be non-empty and must not contain '/'")
        return v

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
