from app.services.generated_file_store import GeneratedFileStore, generated_file_store
from app.services.pdf_conversion_service import PdfConversionService, pdf_conversion_service
from app.services.document_cleanup_service import DocumentCleanupService, document_cleanup_service
from app.services.verification_service import VerificationService, verification_service
from app.services.letter_numbering_service import LetterNumberingService, letter_numbering_service
from app.services.letter_generation_service import LetterGenerationService, letter_generation_service

__all__ = [
    # Storage
    "GeneratedFileStore",
    "generated_file_store",
    "PdfConversionService",
    "pdf_conversion_service",
    "DocumentCleanupService",
    "document_cleanup_service",
    # Letters
    "VerificationService",
    "verification_service",
    "LetterNumberingService",
    "letter_numbering_service",
    "LetterGenerationService",
    "letter_generation_service",
]
