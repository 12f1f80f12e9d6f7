"""Custom exception classes used across the service."""
from typing import Any, Dict, List, Optional


class ServiceError(RuntimeError):
    """Base class for domain-specific exceptions."""


class RepositoryValidationError(ServiceError):
    """Raised when a repository cannot be validated against the host."""


class InvalidUrlFormatError(RepositoryValidationError):
    """Raised when a repository URL matches none of the accepted shapes."""


class RepositoryNotFoundError(RepositoryValidationError):
    """Raised when the host reports the repository missing or hidden."""


class InvalidCredentialError(RepositoryValidationError):
    """Raised when the host rejects the supplied access token."""


class InsufficientPermissionError(RepositoryValidationError):
    """Raised when the token lacks the permissions the host requires."""


class HostApiError(RepositoryValidationError):
    """Raised for any other failed call to the repository host API."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class CloneError(ServiceError):
    """Raised when the working copy cannot be cloned."""


class ScanError(ServiceError):
    """Raised when a working copy directory cannot be read."""


class AnalysisError(ServiceError):
    """Raised when the code analysis call or its response fails."""


class ConversionError(ServiceError):
    """Raised when the code conversion call or its response fails."""


class MaterializationError(ServiceError):
    """Raised when generated output cannot be written to disk."""


class JobNotFoundError(ServiceError):
    """Raised when a conversion job id is unknown."""


class JobStateError(ServiceError):
    """Raised on an illegal status transition or progress regression."""


class PublishError(ServiceError):
    """Raised when pushing generated output to the host fails."""


class ArchiveError(ServiceError):
    """Raised when the output directory cannot be packaged."""


class SchemaValidationError(ServiceError):
    """Raised when a request body fails schema validation."""

    def __init__(self, message: str, details: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.details = details or []
