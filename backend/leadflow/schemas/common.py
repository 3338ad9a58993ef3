"""
Common Pydantic schemas shared across the application.

Contains health check and error schemas.
"""

from datetime import datetime
from typing import Optional, List

from pydantic import BaseModel, Field


# =============================================================================
# Health Check Schemas
# =============================================================================

class HealthResponse(BaseModel):
    """
    Health check response schema.

    Used by monitoring systems to verify service health.
    """

    status: str = Field(
        ...,
        description="Overall health status (healthy, degraded)"
    )
    version: str = Field(
        ...,
        description="Application version"
    )
    timestamp: datetime = Field(
        ...,
        description="Current server timestamp"
    )
    database: str = Field(
        ...,
        description="Database connection status"
    )
    environment: str = Field(
        ...,
        description="Runtime environment (development, production)"
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "status": "healthy",
                "version": "1.0.0",
                "timestamp": "2025-01-15T10:30:00Z",
                "database": "connected",
                "environment": "development"
            }
        }
    }


# =============================================================================
# Error Schemas
# =============================================================================

class ErrorDetail(BaseModel):
    """
    Detail for a single validation error.
    """

    field: Optional[str] = Field(
        default=None,
        description="Field that caused the error"
    )
    message: str = Field(
        ...,
        description="Error message"
    )
    code: Optional[str] = Field(
        default=None,
        description="Error code for programmatic handling"
    )


class ErrorResponse(BaseModel):
    """
    Standard error response schema.

    Workflow errors use their stable code in `error` so clients can decide
    whether to refetch and retry (outcome_not_available, concurrent_update)
    or re-prompt the agent (reason_required).
    """

    success: bool = Field(
        default=False,
        description="Always false for errors"
    )
    error: str = Field(
        ...,
        description="Error code"
    )
    message: str = Field(
        ...,
        description="Human-readable error message"
    )
    details: Optional[List[ErrorDetail]] = Field(
        default=None,
        description="Additional error details (for validation errors)"
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "success": False,
                "error": "outcome_not_available",
                "message": "Outcome 'interested' is not available for lead 3f6c... in stage 'qualified'"
            }
        }
    }
