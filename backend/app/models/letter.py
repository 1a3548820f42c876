from sqlalchemy import Column, String, DateTime, Enum as SQLEnum, Text, Index
from datetime import datetime
import enum

from app.core.database import Base
from app.core.types import GUID, JSONType, generate_uuid


class LetterStatus(str, enum.Enum):
    """Lifecycle of a letter application"""
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    IN_REVIEW = "IN_REVIEW"
    COMPLETED = "COMPLETED"  # Published: number assigned and letter issued
    REJECTED = "REJECTED"


class LetterInstance(Base):
    """A student's recommendation letter application"""
    __tablename__ = "letter_instances"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    letter_type_code = Column(String(20), nullable=False, default="SRB")
    status = Column(SQLEnum(LetterStatus), nullable=False, default=LetterStatus.DRAFT)

    # Raw form values, either flat or nested under "formData"
    values = Column(JSONType, nullable=False, default=dict)
    scholarship_name = Column(String(255), nullable=True)

    # Issuance
    letter_number = Column(String(100), unique=True, nullable=True)
    published_at = Column(DateTime, nullable=True)

    # Leadership signature/stamp references (path, URL or data URI)
    signature_url = Column(Text, nullable=True)
    stamp_url = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_letter_instances_status_published", "status", "published_at"),
    )

    @property
    def form_data(self) -> dict:
        """Form values, unwrapped from the optional formData envelope"""
        values = self.values or {}
        nested = values.get("formData")
        return nested if isinstance(nested, dict) else values

    @property
    def is_published(self) -> bool:
        return self.status == LetterStatus.COMPLETED

    def __repr__(self):
        return f"<LetterInstance {self.id} {self.status}>"
