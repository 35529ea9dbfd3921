"""
Pydantic schemas for request/response validation.

Responses only ever expose the public confession fields (id, message,
createdAt); status, sentiment and policy version stay server-side.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field


# =============================================================================
# Pydantic Request Models
# =============================================================================

class ConfessionCreateRequest(BaseModel):
    """
    Body of POST /api/confessions.

    The message is typed loosely here; required/length rules are enforced
    by the moderation policy so they map to 400 responses.
    """
    message: Any = Field(None, description="Confession text, 1-500 characters after trimming")

    model_config = {
        "json_schema_extra": {
            "examples": [{"message": "I still sleep with my childhood teddy bear."}]
        }
    }


# =============================================================================
# Pydantic Response Models
# =============================================================================

class ConfessionOut(BaseModel):
    """Public view of a stored confession."""
    id: str = Field(..., description="Unique confession identifier")
    message: str = Field(..., description="Confession text")
    created_at: str = Field(
        ...,
        alias="createdAt",
        description="Creation timestamp (ISO-8601 UTC)"
    )

    model_config = {
        "populate_by_name": True,
        "from_attributes": True,  # Allow creating from ORM objects
    }


class ConfessionCreateResponse(BaseModel):
    """Response model for a successfully posted confession."""
    success: bool = Field(default=True)
    confession: ConfessionOut
    notification: str = Field(default="Confession posted! 💜")


class ConfessionListResponse(BaseModel):
    """
    Response model for GET /api/confessions.

    Contains:
    - items: approved confessions, newest first
    - nextToken: opaque token for the next page (null on the last page)
    """
    items: list[ConfessionOut] = Field(default_factory=list)
    next_token: Optional[str] = Field(None, alias="nextToken")

    model_config = {"populate_by_name": True}


class ErrorResponse(BaseModel):
    """Response model for error responses."""
    error: str = Field(..., description="Error description")
    code: str = Field(..., description="Machine-readable error code")
    notification: Optional[str] = Field(None, description="User-facing hint")


class HealthResponse(BaseModel):
    """Response model for health check endpoints."""
    status: str = Field(..., description="Health status")
    reason: Optional[str] = Field(None, description="Reason if not ready")
