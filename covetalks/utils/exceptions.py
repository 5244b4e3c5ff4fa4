"""
Custom Exception Classes

Application-specific exceptions. Each carries the HTTP status it maps to and
the message that is safe to show to the caller.
"""

from typing import Any, Dict, Optional


class CoveTalksException(Exception):
    """Base exception for all application errors"""

    status_code = 500
    public_message: Optional[str] = None

    def __init__(
        self,
        message: str,
        error_code: str = "APPLICATION_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    @property
    def client_message(self) -> str:
        """Message returned to the caller (upstream details are hidden)"""
        return self.public_message or self.message

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging"""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }

    def to_response(self) -> Dict[str, Any]:
        """Body of the JSON error response"""
        return {"error": self.client_message, "code": self.error_code}


class Unauthorized(CoveTalksException):
    """No session or an invalid session"""

    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, error_code="UNAUTHORIZED")


class Forbidden(CoveTalksException):
    """Authenticated, but acting on another member's records"""

    status_code = 403

    def __init__(self, message: str = "Forbidden", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="FORBIDDEN", details=details)


class NotFound(CoveTalksException):
    """Requested record does not exist or is not visible to the caller"""

    status_code = 404

    def __init__(self, resource: str, resource_id: Optional[str] = None):
        message = f"{resource} not found"
        super().__init__(
            message,
            error_code="NOT_FOUND",
            details={"resource": resource, "id": resource_id},
        )


class ValidationError(CoveTalksException):
    """Malformed or rejected input"""

    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="VALIDATION_ERROR", details=details)


class DuplicateApplication(CoveTalksException):
    """A non-withdrawn application already exists for the speaker/opportunity pair"""

    status_code = 400

    def __init__(self, opportunity_id: str, speaker_id: str):
        super().__init__(
            "You have already applied to this opportunity",
            error_code="DUPLICATE_APPLICATION",
            details={"opportunity_id": opportunity_id, "speaker_id": speaker_id},
        )


class ConfigurationError(CoveTalksException):
    """Missing configuration, e.g. no price id for a plan/period pair"""

    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="CONFIG_ERROR", details=details)


class InvalidSignature(CoveTalksException):
    """Stripe webhook signature verification failed"""

    status_code = 400

    def __init__(self, message: str = "Invalid signature"):
        super().__init__(message, error_code="INVALID_SIGNATURE", details={"verification": "failed"})


class UpstreamError(CoveTalksException):
    """Identity provider or payment processor call failed"""

    status_code = 503

    def __init__(
        self,
        message: str,
        provider: str,
        public_message: str = "Upstream service unavailable",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.public_message = public_message
        super().__init__(
            message,
            error_code="UPSTREAM_ERROR",
            details={**(details or {}), "provider": provider},
        )


class StorageError(CoveTalksException):
    """Supabase query failed"""

    status_code = 500
    public_message = "Database operation failed"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="STORAGE_ERROR", details=details)


class UniqueViolation(StorageError):
    """Insert rejected by a unique constraint"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details=details)
        self.error_code = "UNIQUE_VIOLATION"


class CacheException(CoveTalksException):
    """Redis operation failed"""

    status_code = 503
    public_message = "Service temporarily unavailable"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="CACHE_ERROR", details=details)
