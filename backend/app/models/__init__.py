# Re-export all models for convenient imports
from app.models.letter import LetterInstance, LetterStatus
from app.models.document_template import DocumentTemplate
from app.models.generation_log import DocumentGenerationLog, GenerationFormat, GenerationStatus
from app.models.letter_number_counter import LetterNumberCounter
from app.models.letter_verification import LetterVerification

__all__ = [
    # Applications
    "LetterInstance",
    "LetterStatus",
    # Templates
    "DocumentTemplate",
    # Generation
    "DocumentGenerationLog",
    "GenerationFormat",
    "GenerationStatus",
    # Numbering
    "LetterNumberCounter",
    # Verification
    "LetterVerification",
]
