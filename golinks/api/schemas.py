"""
API Request and Response Schemas

This module defines all Pydantic models for the admin API.
Request fields are optional at the schema level so the service can report
every missing field in one MISSING_FIELDS error instead of a 422.
"""

from typing import Optional

from pydantic import BaseModel, Field


class CreateLinkRequest(BaseModel):
    """Request body for POST /api/admin/links."""
    shortCode: Optional[str] = Field(default=None, description="Case-sensitive short code")
    destinationUrl: Optional[str] = Field(default=None, description="HTTPS destination URL")
    notes: Optional[str] = Field(default=None, description="Free-text notes")


class UpdateLinkRequest(BaseModel):
    """Request body for PUT /api/admin/links/{id}."""
    shortCode: Optional[str] = None
    destinationUrl: Optional[str] = None


class CreateLinkResponse(BaseModel):
    id: int
    shortCode: str
    destinationUrl: str
    notes: Optional[str] = None
    message: str = "Link created successfully"
    url: str


class UpdateLinkResponse(BaseModel):
    message: str = "Link updated successfully"
    id: int
    shortCode: str
    destinationUrl: str


class DeleteLinkResponse(BaseModel):
    message: str = "Link deleted successfully"
    id: int


class ResetLinkResponse(BaseModel):
    message: str = "Link statistics reset successfully"
    id: int
    analyticsRecordsDeleted: int
