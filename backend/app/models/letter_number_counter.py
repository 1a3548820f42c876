from sqlalchemy import Column, String, Integer, DateTime, UniqueConstraint
from datetime import datetime

from app.core.database import Base
from app.core.types import GUID, generate_uuid


class LetterNumberCounter(Base):
    """Last issued sequence per (letter type, year, month) bucket"""
    __tablename__ = "letter_number_counters"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    letter_type = Column(String(20), nullable=False)
    year = Column(Integer, nullable=False)
    month = Column(Integer, nullable=False)
    last_sequence = Column(Integer, nullable=False, default=0)

    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("letter_type", "year", "month", name="uq_letter_number_counter_bucket"),
    )

    def __repr__(self):
        return f"<LetterNumberCounter {self.letter_type} {self.year}-{self.month}: {self.last_sequence}>"
