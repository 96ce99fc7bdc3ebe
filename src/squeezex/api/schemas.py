"""Pydantic response schemas for the SqueezeX API."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ClassifyImageResponse(BaseModel):
    """Top-1 classification of an uploaded image."""

    label: str = Field(description="Human-readable label, identifier prefix removed")
    score: float = Field(description="Score of the winning class")
    result: str = Field(description="Formatted '<label> = <score>' string")
    backend: str


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    ready: bool
    accelerator: bool
    backends: list[str]
    model: str
    vocabulary_size: int
    concurrent_requests: int
    queue_depth: int


class ModelInfo(BaseModel):
    """The served model and its bundled assets."""

    name: str
    input_size: int
    assets: list[str]
    status: str = Field(description="Model status: 'active' or 'unavailable'")
    license: str


class ModelsResponse(BaseModel):
    """Response for the models listing endpoint."""

    models: list[ModelInfo]


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
