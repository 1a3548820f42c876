"""
Letter Schemas - Request/Response models for generation, numbering and verification
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List, Dict
from datetime import datetime

from app.models.generation_log import GenerationFormat, GenerationStatus


# ============== Generation Schemas ==============

class GenerateLetterRequest(BaseModel):
    """Schema for generating a letter from a template"""
    application_id: str = Field(..., description="Letter application id")
    format: GenerationFormat = Field(default=GenerationFormat.DOCX, description="DOCX or PDF")
    letter_number: Optional[str] = Field(None, max_length=100, description="Explicit letter number override")
    signature: Optional[str] = Field(None, description="Signature image: path, URL, data URI or base64")
    stamp: Optional[str] = Field(None, description="Stamp image: path, URL, data URI or base64")

    @field_validator("format", mode="before")
    @classmethod
    def uppercase_format(cls, v):
        return v.upper() if isinstance(v, str) else v


class GenerationLogResponse(BaseModel):
    """Schema for a generation log entry"""
    model_config = ConfigDict(from_attributes=True)

    id: str
    template_id: Optional[str] = None
    application_id: str
    format: GenerationFormat
    status: GenerationStatus
    file_path: Optional[str] = None
    file_size: Optional[int] = None
    processing_time_ms: Optional[int] = None
    error_message: Optional[str] = None
    generated_at: datetime
    completed_at: Optional[datetime] = None


class GenerationLogListResponse(BaseModel):
    application_id: str
    logs: List[GenerationLogResponse]
    total: int


class PreviewStatusResponse(BaseModel):
    """Whether the current letter of an application can be previewed"""
    application_id: str
    available: bool
    reason: Optional[str] = Field(None, description="not_generated or file_missing")
    log_id: Optional[str] = None
    generated_at: Optional[datetime] = None
    file_size: Optional[int] = None
    format: Optional[GenerationFormat] = None
    preview_url: Optional[str] = None
    download_url: Optional[str] = None


# ============== Letter Numbering Schemas ==============

class GenerateNumberRequest(BaseModel):
    """Reserve the next letter number, optionally assigning it to an application"""
    year: Optional[int] = Field(None, ge=2000, le=2100)
    month: Optional[int] = Field(None, ge=1, le=12)
    letter_type: Optional[str] = Field(None, max_length=20)
    application_id: Optional[str] = None


class ValidateNumberRequest(BaseModel):
    letter_number: str = Field(..., min_length=1, max_length=100)


class UpdateLetterNumberRequest(BaseModel):
    letter_number: str = Field(..., min_length=1, max_length=100)

    @field_validator("letter_number")
    @classmethod
    def strip_number(cls, v):
        return v.strip()


class NextNumberResponse(BaseModel):
    number: str
    sequence: int
    last_published: Optional[str] = None
    last_sequence: int = 0


class VerificationLink(BaseModel):
    code: str
    verify_url: str


class GeneratedNumberResponse(BaseModel):
    number: str
    sequence: Optional[int] = None
    verification: Optional[VerificationLink] = None


class ValidateNumberResponse(BaseModel):
    letter_number: str
    is_valid_format: bool
    is_available: bool
    in_use: bool
    message: str


class PublishedNumber(BaseModel):
    application_id: str
    letter_number: str
    sequence: Optional[int] = None
    month: Optional[str] = None
    nama_aplikasi: str
    published_at: Optional[datetime] = None


class NumberingSummaryResponse(BaseModel):
    year: int
    total_published: int
    month_counts: Dict[str, int]
    last_published: Optional[str] = None
    published: List[PublishedNumber]


# ============== Verification Schemas ==============

class VerifiedApplicant(BaseModel):
    name: Optional[str] = None
    nim: Optional[str] = None
    departemen: Optional[str] = None
    program_studi: Optional[str] = None


class VerifiedApplication(BaseModel):
    id: str
    scholarship_name: Optional[str] = None
    status: str
    created_at: datetime


class Authenticity(BaseModel):
    issuer: str
    institution: str
    statement: str


class VerificationResponse(BaseModel):
    """Public verification result"""
    valid: bool
    code: str
    letter_number: str
    issued_at: datetime
    published_at: Optional[datetime] = None
    verified_count: int
    letter_type: Optional[str] = None
    applicant: VerifiedApplicant
    application: VerifiedApplication
    authenticity: Authenticity
