"""
Custom Exceptions for the letter engine
=======================================

Use these instead of generic Exception to:
1. Make errors more specific and debuggable
2. Enable proper error handling at API layer
3. Provide meaningful error messages to users

Usage:
    from app.core.exceptions import ApplicationNotFoundError, TemplateError

    if not application:
        raise ApplicationNotFoundError(application_id)

    try:
        renderer.render(...)
    except TemplateError as e:
        logger.error(f"Template rendering failed: {e.errors}")
        raise
"""

from typing import Optional, Any, Dict, List


class LetterServiceError(Exception):
    """Base exception for all letter engine errors"""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Resource Errors (404-type)
# ============================================

class NotFoundError(LetterServiceError):
    """Base class for not found errors"""

    def __init__(self, resource_type: str, resource_id: str, message: Optional[str] = None):
        super().__init__(
            message or f"{resource_type} with ID '{resource_id}' not found",
            code=f"{resource_type.upper()}_NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": resource_id}
        )


class TemplateNotFoundError(NotFoundError):
    """Template row or template file not found"""

    def __init__(self, template_id: str):
        super().__init__("Template", template_id)


class ApplicationNotFoundError(NotFoundError):
    """Letter application not found"""

    def __init__(self, application_id: str):
        super().__init__("Application", application_id)


class GenerationLogNotFoundError(NotFoundError):
    """Generation log not found"""

    def __init__(self, log_id: str):
        super().__init__("Generation_Log", log_id)


class GeneratedFileMissingError(NotFoundError):
    """Generation log exists but its file is gone"""

    def __init__(self, file_path: str):
        super().__init__("Generated_File", file_path, f"Generated file '{file_path}' no longer exists")


class VerificationNotFoundError(NotFoundError):
    """Unknown verification code"""

    def __init__(self, code: str):
        super().__init__(
            "Verification",
            code,
            "Dokumen tidak ditemukan atau kode verifikasi tidak valid."
        )


# ============================================
# Validation Errors (400-type)
# ============================================

class ValidationError(LetterServiceError):
    """Input validation failed"""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class MissingTemplateFieldsError(ValidationError):
    """Required template data could not be resolved"""

    def __init__(self, missing_fields: List[str]):
        super().__init__(f"Data pengajuan belum lengkap: {', '.join(missing_fields)}")
        self.code = "MISSING_REQUIRED_FIELDS"
        self.details = {"missing_fields": list(missing_fields)}


class InvalidLetterNumberError(ValidationError):
    """Letter number does not match the configured format"""

    def __init__(self, letter_number: str, expected_format: str):
        super().__init__(
            f"Format nomor surat tidak valid. Format yang benar: {expected_format}",
            field="letter_number"
        )
        self.code = "INVALID_LETTER_NUMBER"
        self.details["letter_number"] = letter_number
        self.details["expected_format"] = expected_format


# ============================================
# Conflict Errors (409-type)
# ============================================

class ConflictError(LetterServiceError):
    """Operation conflicts with existing state"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="CONFLICT", details=details)


class LetterNumberInUseError(ConflictError):
    """Letter number already belongs to another published letter"""

    def __init__(self, letter_number: str, application_id: Optional[str] = None):
        super().__init__(
            f"Nomor surat {letter_number} sudah digunakan",
            details={"letter_number": letter_number, "application_id": application_id}
        )
        self.code = "LETTER_NUMBER_IN_USE"


# ============================================
# Template Errors
# ============================================

class TemplateError(LetterServiceError):
    """Template could not be rendered; carries every problem found"""

    def __init__(self, errors: List[Dict[str, Any]], message: str = "Template rendering failed"):
        super().__init__(
            f"{message} ({len(errors)} error(s))",
            code="TEMPLATE_ERROR",
            details={"errors": errors}
        )
        self.errors = errors


# ============================================
# External tool / conversion errors
# ============================================

class ExternalToolUnavailable(LetterServiceError):
    """A required external program is not installed"""

    def __init__(self, tool: str, message: Optional[str] = None):
        super().__init__(
            message or f"External tool '{tool}' is not available",
            code="EXTERNAL_TOOL_UNAVAILABLE",
            details={"tool": tool}
        )


class PdfConverterUnavailableError(ExternalToolUnavailable):
    """LibreOffice not found"""

    def __init__(self):
        super().__init__(
            "libreoffice",
            "LibreOffice tidak ditemukan. Install LibreOffice untuk konversi PDF."
        )
        self.code = "PDF_CONVERTER_UNAVAILABLE"


class PdfConversionError(LetterServiceError):
    """Conversion process failed"""

    def __init__(self, message: str, stderr: Optional[str] = None):
        super().__init__(message, code="PDF_CONVERSION_FAILED")
        if stderr:
            self.details["stderr"] = stderr[:1000]  # Truncate long errors


class ConversionTimeoutError(PdfConversionError):
    """Conversion process exceeded its time bound"""

    def __init__(self, timeout_seconds: int):
        super().__init__(f"PDF conversion timed out after {timeout_seconds}s")
        self.code = "PDF_CONVERSION_TIMEOUT"
        self.details["timeout_seconds"] = timeout_seconds


# ============================================
# Storage Errors
# ============================================

class StorageError(LetterServiceError):
    """Storage operation failed"""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message, code="STORAGE_ERROR")
        if path:
            self.details["path"] = path


# ============================================
# Helpers for API responses
# ============================================

def error_response(error: LetterServiceError) -> Dict[str, Any]:
    """Convert exception to API error response format"""
    return {
        "success": False,
        "error": error.to_dict()
    }


def status_code_for(error: LetterServiceError) -> int:
    """HTTP status for an engine error"""
    if isinstance(error, NotFoundError):
        return 404
    if isinstance(error, ValidationError):
        return 400
    if isinstance(error, ConflictError):
        return 409
    if isinstance(error, TemplateError):
        return 422
    if isinstance(error, ExternalToolUnavailable):
        return 503
    return 500
