"""Pydantic models shared by authenticated endpoints."""

from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    """Error detail with machine-readable code and human-readable message."""

    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")


class ApiErrorResponse(BaseModel):
    """Error response body: ``{"error": {"code": ..., "message": ...}}``."""

    error: ErrorDetail
