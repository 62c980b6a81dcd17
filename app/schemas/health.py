"""Pydantic schemas for health check responses."""

from typing import Literal

from pydantic import BaseModel, Field

StoreStatus = Literal["connected", "disconnected"]


class HealthResponse(BaseModel):
    """Response body for the health check endpoint."""

    status: Literal["ok"] = Field(default="ok", description="Service status")
    service: str = Field(description="Service name")
    mongodb: StoreStatus = Field(
        description="Credential store connectivity (field name kept for existing clients)",
    )
    database: StoreStatus = Field(
        description="Credential store connectivity",
    )
