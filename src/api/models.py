"""
API response models.

Pydantic models for FastAPI endpoint responses and OpenAPI schema generation.
Stage request bodies are free-form and are not modelled here.
"""

from pydantic import BaseModel


class HealthResponse(BaseModel):
    """Response model for the health check."""

    status: str
    records: int


class ErrorResponse(BaseModel):
    """Standard error response model."""

    detail: str
