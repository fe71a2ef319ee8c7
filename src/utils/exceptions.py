"""
Custom Exceptions Module.

This module defines all custom exceptions used throughout the card invoice
extraction system. Only configuration errors, input errors and quality
rejections are allowed to cross the pipeline boundary; OCR and collaborator
errors are translated or absorbed inside the pipeline.

Exception Hierarchy:
    InvoiceExtractionError (base)
    ├── ConfigurationError
    │   └── OCRUnavailableError
    ├── InputError
    │   ├── InputFileNotFoundError
    │   ├── UnsupportedFileTypeError
    │   ├── EmptyDocumentError
    │   ├── CorruptedFileError
    │   ├── PasswordRequiredError
    │   ├── IncorrectPasswordError
    │   ├── InvalidDueDateOverrideError
    │   ├── UnsupportedIssuerError
    │   ├── UnsupportedLayoutError
    │   └── DueDateNotFoundError
    ├── QualityRejectionError
    ├── OCRError
    │   ├── OCREngineNotAvailableError
    │   └── OCRProcessingError
    ├── CollaboratorError
    │   ├── RemoteExtractorError
    │   └── ExternalServiceError
    └── OutputError
        └── ExportError
"""

from typing import Optional


class InvoiceExtractionError(Exception):
    """
    Base exception for all invoice extraction errors.

    All custom exceptions in this system inherit from this class,
    allowing callers to catch every system-specific error at once.

    Attributes:
        message: Human-readable error message.
        details: Optional dictionary with additional error details.
    """

    def __init__(self, message: str, details: dict = None):
        """
        Initialize the exception.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional context.
        """
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================

class ConfigurationError(InvoiceExtractionError):
    """Base exception for operator-facing configuration problems."""
    pass


class OCRUnavailableError(ConfigurationError):
    """
    Raised when OCR was required for a document but could not run.

    Example:
        >>> raise OCRUnavailableError("OCR is disabled (ocr.enabled=false)")
    """

    def __init__(self, reason: str = None):
        message = (
            "OCR was required for this document but failed. Check that Tesseract "
            "is installed and that ocr.enabled, ocr.language and ocr.tessdata_path "
            "are configured correctly."
        )
        details = {"reason": reason}
        super().__init__(message, details)


# =============================================================================
# INPUT ERRORS
# =============================================================================

class InputError(InvoiceExtractionError):
    """Base exception for problems with the supplied document or arguments."""
    pass


class InputFileNotFoundError(InputError):
    """Raised when an input file cannot be found."""

    def __init__(self, filepath: str):
        message = f"File not found: {filepath}"
        details = {"filepath": filepath}
        super().__init__(message, details)


class UnsupportedFileTypeError(InputError):
    """
    Raised when an unsupported file type is provided.

    Example:
        >>> raise UnsupportedFileTypeError(".doc", [".pdf"])
    """

    def __init__(self, file_type: str, supported_types: list):
        message = f"Unsupported file type: '{file_type}'"
        details = {"file_type": file_type, "supported_types": supported_types}
        super().__init__(message, details)


class EmptyDocumentError(InputError):
    """Raised when the document has no content at all."""

    def __init__(self, source: str = None):
        message = "The uploaded document is empty"
        details = {"source": source} if source else None
        super().__init__(message, details)


class CorruptedFileError(InputError):
    """Raised when a file appears to be corrupted or unreadable."""

    def __init__(self, filepath: str, reason: str = None):
        message = f"Corrupted or unreadable file: {filepath}"
        details = {"filepath": filepath, "reason": reason}
        super().__init__(message, details)


class PasswordRequiredError(InputError):
    """Raised when the document is encrypted and no password was supplied."""

    def __init__(self):
        super().__init__("The PDF file is password protected. Please provide the password.")


class IncorrectPasswordError(InputError):
    """Raised when the supplied password does not open the document."""

    def __init__(self):
        super().__init__("Incorrect password for the PDF file.")


class InvalidDueDateOverrideError(InputError):
    """Raised when a caller-supplied due date cannot be parsed."""

    def __init__(self, value: str):
        message = (
            "Invalid due date format. Use yyyy-mm-dd (e.g. 2025-12-20) "
            "or dd/mm/yyyy (e.g. 20/12/2025)."
        )
        details = {"value": value}
        super().__init__(message, details)


class UnsupportedIssuerError(InputError):
    """
    Raised for issuer families that are deliberately not supported.

    Example:
        >>> raise UnsupportedIssuerError("Mercado Pago")
    """

    def __init__(self, issuer: str):
        message = (
            f"{issuer} invoices are not supported yet. "
            "Upload an invoice from another bank or card, or try again later."
        )
        details = {"issuer": issuer}
        super().__init__(message, details)


class UnsupportedLayoutError(InputError):
    """Raised when no parser strategy can be applied to a document."""

    def __init__(self, reason: str = None):
        message = "Unsupported invoice layout"
        details = {"reason": reason} if reason else None
        super().__init__(message, details)


class DueDateNotFoundError(InputError):
    """
    Raised when no due date could be resolved for an invoice.

    Posting transactions to the wrong billing period is worse than
    rejecting the upload, so this is never guessed around.
    """

    def __init__(self, parser_name: Optional[str] = None):
        message = (
            "Could not determine the invoice due date. Processing was stopped "
            "to avoid posting transactions to the wrong billing period."
        )
        details = {"parser": parser_name} if parser_name else None
        super().__init__(message, details)


# =============================================================================
# QUALITY ERRORS
# =============================================================================

class QualityRejectionError(InvoiceExtractionError):
    """
    Raised when a parse succeeded but failed validation.

    Distinct from InputError: the document shape was understood but the
    result could not be trusted. Callers may ask for a clearer scan.
    """

    def __init__(self, reason: str, score: Optional[int] = None):
        message = f"Extraction failed validation: {reason}"
        details = {"reason": reason, "score": score}
        self.reason = reason
        self.score = score
        super().__init__(message, details)


# =============================================================================
# OCR ERRORS
# =============================================================================

class OCRError(InvoiceExtractionError):
    """Base exception for OCR-related errors."""
    pass


class OCREngineNotAvailableError(OCRError):
    """Raised when the configured OCR engine is not available."""

    def __init__(self, engine_name: str, reason: str = None):
        message = f"OCR engine not available: {engine_name}"
        details = {"engine": engine_name, "reason": reason}
        super().__init__(message, details)


class OCRProcessingError(OCRError):
    """Raised when OCR processing fails."""

    def __init__(self, source: str, reason: str = None):
        message = f"OCR processing failed for: {source}"
        details = {"source": source, "reason": reason}
        super().__init__(message, details)


# =============================================================================
# COLLABORATOR ERRORS (non-fatal)
# =============================================================================

class CollaboratorError(InvoiceExtractionError):
    """Base exception for optional remote collaborators; always caught internally."""
    pass


class RemoteExtractorError(CollaboratorError):
    """Raised when the remote structured-extraction service fails."""

    def __init__(self, endpoint: str, reason: str = None):
        message = f"Remote extractor call failed: {endpoint}"
        details = {"endpoint": endpoint, "reason": reason}
        super().__init__(message, details)


class ExternalServiceError(CollaboratorError):
    """Raised when the external document-extraction service fails."""

    def __init__(self, endpoint: str, reason: str = None):
        message = f"External extraction service failed: {endpoint}"
        details = {"endpoint": endpoint, "reason": reason}
        super().__init__(message, details)


# =============================================================================
# OUTPUT ERRORS
# =============================================================================

class OutputError(InvoiceExtractionError):
    """Base exception for output handling errors."""
    pass


class ExportError(OutputError):
    """Raised when writing a result report fails."""

    def __init__(self, filepath: str, reason: str = None):
        message = f"Failed to export results: {filepath}"
        details = {"filepath": filepath, "reason": reason}
        super().__init__(message, details)


# Export all exceptions
__all__ = [
    'InvoiceExtractionError',
    'ConfigurationError',
    'OCRUnavailableError',
    'InputError',
    'InputFileNotFoundError',
    'UnsupportedFileTypeError',
    'EmptyDocumentError',
    'CorruptedFileError',
    'PasswordRequiredError',
    'IncorrectPasswordError',
    'InvalidDueDateOverrideError',
    'UnsupportedIssuerError',
    'UnsupportedLayoutError',
    'DueDateNotFoundError',
    'QualityRejectionError',
    'OCRError',
    'OCREngineNotAvailableError',
    'OCRProcessingError',
    'CollaboratorError',
    'RemoteExtractorError',
    'ExternalServiceError',
    'OutputError',
    'ExportError',
]
