from sqlalchemy import Column, String, Integer, DateTime, ForeignKey
from datetime import datetime

from app.core.database import Base
from app.core.types import GUID, generate_uuid


class LetterVerification(Base):
    """Public verification code issued for a published letter"""
    __tablename__ = "letter_verifications"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    application_id = Column(
        GUID,
        ForeignKey("letter_instances.id", ondelete="CASCADE"),
        unique=True,
        nullable=False
    )
    letter_number = Column(String(100), nullable=False)
    code = Column(String(12), unique=True, nullable=False, index=True)
    verified_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    last_verified_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<LetterVerification {self.code}>"
