from __future__ import annotations

from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class MessageResponse(BaseModel):
    """Standard message response."""
    message: str = Field(..., description="Human readable message")
    details: Optional[dict] = Field(default=None, description="Optional extra data")


# PUBLIC_INTERFACE
class ApiResult(BaseModel, Generic[T]):
    """
    Uniform result envelope returned by every engine operation.

    ``success`` is always present; ``data`` carries the payload on success and
    ``error`` / ``error_type`` describe the failure otherwise.
    """
    success: bool = Field(..., description="Whether the operation succeeded")
    data: Optional[T] = Field(default=None, description="Operation payload")
    error: Optional[str] = Field(default=None, description="Human-readable error message")
    error_type: Optional[str] = Field(default=None, description="Machine-readable error type code")
    details: Optional[Any] = Field(default=None, description="Optional error details")
    correlation_id: Optional[str] = Field(default=None, description="Request correlation ID")

    @classmethod
    def ok(cls, data: Any = None) -> "ApiResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, error_type: str = "error", details: Any = None) -> "ApiResult":
        return cls(success=False, error=error, error_type=error_type, details=details)
