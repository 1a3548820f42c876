from sqlalchemy import Column, String, DateTime, Enum as SQLEnum, Integer, ForeignKey, Text
from datetime import datetime
import enum

from app.core.database import Base
from app.core.types import GUID, generate_uuid


class GenerationFormat(str, enum.Enum):
    DOCX = "DOCX"
    PDF = "PDF"


class GenerationStatus(str, enum.Enum):
    """PENDING on attempt start, then exactly one terminal status"""
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class DocumentGenerationLog(Base):
    """Audit record of one generation attempt"""
    __tablename__ = "document_generation_logs"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    template_id = Column(GUID, ForeignKey("document_templates.id", ondelete="SET NULL"), nullable=True)
    application_id = Column(GUID, ForeignKey("letter_instances.id", ondelete="CASCADE"), nullable=False, index=True)

    format = Column(SQLEnum(GenerationFormat), nullable=False, default=GenerationFormat.DOCX)
    status = Column(SQLEnum(GenerationStatus), nullable=False, default=GenerationStatus.PENDING)

    # File details
    file_path = Column(Text, nullable=True)
    file_size = Column(Integer, nullable=True)  # in bytes
    processing_time_ms = Column(Integer, nullable=True)
    error_message = Column(Text, nullable=True)

    generated_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<DocumentGenerationLog {self.id} {self.status}>"
