"""
Response envelope shared by every VisionScan endpoint.

Success:  {"success": true,  "data": {...}, "meta": {...}}
Failure:  {"success": false, "error": "...", "code": "MODEL_NOT_INITIALIZED", "meta": {...}}

For failures, `meta` carries the exception details, e.g. the backend
attempt count of an exhausted cascade or the offending request field.
"""

from typing import TYPE_CHECKING, Any, Dict, Generic, Optional, TypeVar

from pydantic import BaseModel

if TYPE_CHECKING:
    from visionscan.core.exceptions import AppException

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    code: Optional[str] = None
    meta: Optional[Dict[str, Any]] = None

    @classmethod
    def ok(cls, data: Optional[T] = None, meta: Optional[Dict[str, Any]] = None) -> "ApiResponse[T]":
        return cls(success=True, data=data, meta=meta or None)

    @classmethod
    def fail(
        cls,
        message: str,
        code: str = "ERROR",
        meta: Optional[Dict[str, Any]] = None,
    ) -> "ApiResponse[None]":
        return cls(success=False, error=message, code=code, meta=meta or None)

    @classmethod
    def from_exception(cls, exc: "AppException") -> "ApiResponse[None]":
        """Build the failure envelope for an AppException, details moved into meta."""
        return cls.fail(exc.message, code=exc.code, meta=dict(exc.details))
