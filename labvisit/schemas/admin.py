"""Admin-specific schemas."""

from pydantic import BaseModel, Field


class AdminAuthRequest(BaseModel):
    """Request schema for admin password check."""

    password: str = Field(..., description="Admin dashboard password")


class AdminAuthResponse(BaseModel):
    """Response schema for admin password check."""

    success: bool
    message: str
