"""
VisionScan error types.

Every error is an AppException carrying a machine code and an HTTP
status. Backend acquisition failures (device, model fetch, exhausted
cascade, not initialized) and account errors both funnel through the
same handler in main.py.
"""

from typing import Optional, Dict, Any, List


class AppException(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        status_code: HTTP status code for API responses
        details: Additional error details
    """

    def __init__(
        self,
        message: str,
        code: str = "ERROR",
        status_code: int = 400,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Serializable form, used for per-attempt records."""
        result = {
            "code": self.code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# === Validation Errors ===

class ValidationError(AppException):
    """Input validation failed."""

    def __init__(self, message: str, field: str = None, code: str = "VALIDATION_ERROR"):
        details = {"field": field} if field else {}
        super().__init__(
            message=message,
            code=code,
            status_code=422,
            details=details
        )


class InvalidImageError(ValidationError):
    def __init__(self, reason: str = "Invalid or corrupted image"):
        super().__init__(message=reason, field="image")


class NoObjectsDetectedError(ValidationError):
    def __init__(self):
        super().__init__(
            message="No objects detected in the image. Try with a clearer image or better lighting.",
            field="image",
            code="NO_OBJECTS_DETECTED"
        )


# === Model Backend Errors ===

class BackendError(AppException):
    """A classification backend could not be brought up or used."""

    def __init__(
        self,
        message: str,
        code: str = "BACKEND_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            code=code,
            status_code=503,
            details=details
        )


class DeviceUnavailableError(BackendError):
    """No usable execution device for a backend on this host."""

    def __init__(self, device: str, reason: str = None):
        message = f"Execution device '{device}' is not available"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            message=message,
            code="DEVICE_UNAVAILABLE",
            details={"device": device}
        )


class ModelFetchError(BackendError):
    """A candidate model could not be downloaded or parsed."""

    def __init__(self, model_id: str, reason: str):
        super().__init__(
            message=f"Model '{model_id}' could not be loaded: {reason}",
            code="MODEL_FETCH_FAILED",
            details={"model_id": model_id}
        )


class AllBackendsExhaustedError(BackendError):
    """
    Every primary candidate and the fallback failed.

    `reason` is "no_device" when every failure was a missing device,
    otherwise "model_fetch".
    """

    def __init__(self, errors: List[BackendError]):
        self.errors = list(errors)
        if self.errors and all(isinstance(e, DeviceUnavailableError) for e in self.errors):
            self.reason = "no_device"
            message = (
                "Could not initialize object detection: no execution device is available. "
                "Please try on a different device."
            )
        else:
            self.reason = "model_fetch"
            message = (
                "Could not initialize object detection: every model failed to load. "
                "Check network access to the model hub and try again."
            )
        super().__init__(
            message=message,
            code="ALL_BACKENDS_EXHAUSTED",
            details={
                "reason": self.reason,
                "attempts": [e.to_dict() for e in self.errors],
            }
        )


class NotInitializedError(BackendError):
    def __init__(self, cause: Optional[AppException] = None):
        details = {"reason": cause.code} if cause is not None else {}
        super().__init__(
            message="Object detection model not initialized",
            code="MODEL_NOT_INITIALIZED",
            details=details
        )


# === Database Errors ===

class DatabaseError(AppException):
    """Database operation failed."""

    def __init__(self, message: str, operation: str = None):
        details = {"operation": operation} if operation else {}
        super().__init__(
            message=f"Database error: {message}",
            code="DATABASE_ERROR",
            status_code=500,
            details=details
        )


class NotConfiguredError(AppException):
    def __init__(self, service: str):
        super().__init__(
            message=f"{service} is not configured on this server",
            code="NOT_CONFIGURED",
            status_code=503
        )


# === Authentication / Subscription Errors ===

class AuthenticationError(AppException):
    """Authentication failed."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(
            message=message,
            code="AUTHENTICATION_ERROR",
            status_code=401
        )


class InvalidTokenError(AuthenticationError):
    def __init__(self):
        super().__init__(message="Invalid or expired token")


class ScanQuotaExceededError(AppException):
    def __init__(self):
        super().__init__(
            message="No free scans remaining. Start a trial or subscribe for unlimited scans.",
            code="SCAN_QUOTA_EXCEEDED",
            status_code=402
        )
