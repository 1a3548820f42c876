# Pydantic schemas
from app.schemas.letter import (
    GenerateLetterRequest,
    GenerationLogResponse,
    GenerationLogListResponse,
    GenerateNumberRequest,
    ValidateNumberRequest,
    UpdateLetterNumberRequest,
    NextNumberResponse,
    GeneratedNumberResponse,
    ValidateNumberResponse,
    NumberingSummaryResponse,
    PublishedNumber,
    VerificationResponse,
)

__all__ = [
    "GenerateLetterRequest",
    "GenerationLogResponse",
    "GenerationLogListResponse",
    "GenerateNumberRequest",
    "ValidateNumberRequest",
    "UpdateLetterNumberRequest",
    "NextNumberResponse",
    "GeneratedNumberResponse",
    "ValidateNumberResponse",
    "NumberingSummaryResponse",
    "PublishedNumber",
    "VerificationResponse",
]
