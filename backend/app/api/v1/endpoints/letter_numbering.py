"""
Letter numbering endpoints.

Numbers have the form NNN/<ORG>/KM/<roman month>/<year>; the sequence restarts
every month.
"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.schemas.letter import (
    GenerateNumberRequest,
    GeneratedNumberResponse,
    NextNumberResponse,
    NumberingSummaryResponse,
    PublishedNumber,
    UpdateLetterNumberRequest,
    ValidateNumberRequest,
    ValidateNumberResponse,
)
from app.services.letter_numbering_service import letter_numbering_service

router = APIRouter()


@router.get("/next-suggestion", response_model=NextNumberResponse)
async def next_suggestion(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    month: Optional[int] = Query(None, ge=1, le=12),
    letter_type: Optional[str] = Query(None, max_length=20),
    db: AsyncSession = Depends(get_db),
):
    """Preview the next number without reserving it"""
    return await letter_numbering_service.preview_next_number(db, year, month, letter_type)


@router.post("/generate", response_model=GeneratedNumberResponse)
async def generate_number(body: GenerateNumberRequest, db: AsyncSession = Depends(get_db)):
    """
    Reserve the next number.

    With application_id the number is assigned to the application, which is
    published and receives its verification code.
    """
    return await letter_numbering_service.generate_number(
        db, body.year, body.month, body.letter_type, body.application_id
    )


@router.post("/validate", response_model=ValidateNumberResponse)
async def validate_number(body: ValidateNumberRequest, db: AsyncSession = Depends(get_db)):
    return await letter_numbering_service.validate_letter_number(db, body.letter_number)


@router.get("/summary/{year}", response_model=NumberingSummaryResponse)
async def numbering_summary(year: int, db: AsyncSession = Depends(get_db)):
    """Published count per Roman month and the last published number of a year"""
    return await letter_numbering_service.get_numbering_summary(db, year)


@router.get("/published")
async def published_numbers(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    db: AsyncSession = Depends(get_db),
):
    year = year or datetime.now().year
    items = await letter_numbering_service.get_published_numbers(db, year)
    return {
        "year": year,
        "total": len(items),
        "items": [PublishedNumber(**item) for item in items],
    }


@router.put("/{application_id}")
async def update_letter_number(
    application_id: str,
    body: UpdateLetterNumberRequest,
    db: AsyncSession = Depends(get_db),
):
    """Manually set the letter number of an application"""
    data = await letter_numbering_service.update_letter_number(db, application_id, body.letter_number)
    return {"success": True, "message": "Nomor surat berhasil diperbarui", "data": data}
