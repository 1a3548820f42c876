"""
Public verification endpoint.

Resolves the code printed as a QR code on a published letter. No
authentication; codes cannot be listed.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.schemas.letter import VerificationResponse
from app.services.verification_service import verification_service

router = APIRouter()


@router.get("/{code}", response_model=VerificationResponse)
async def verify_letter(code: str, db: AsyncSession = Depends(get_db)):
    """Resolve a verification code, counting the lookup"""
    return await verification_service.resolve(db, code)
