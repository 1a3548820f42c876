from sqlalchemy import Column, String, DateTime, Boolean, Text
from datetime import datetime

from app.core.database import Base
from app.core.types import GUID, generate_uuid


class DocumentTemplate(Base):
    """A DOCX template registered for a letter type"""
    __tablename__ = "document_templates"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    key = Column(String(100), unique=True, nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    # Relative to settings.TEMPLATES_DIR
    file_path = Column(String(500), nullable=False)
    letter_type_code = Column(String(20), nullable=False, default="SRB")
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<DocumentTemplate {self.key}>"
