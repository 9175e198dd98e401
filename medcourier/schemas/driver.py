"""
Pydantic schemas for driver API.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class DriverCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    phone: Optional[str] = Field(None, max_length=20)
    vehicle_type: str = Field(
        default="car",
        pattern="^(car|van|motorbike|bicycle)$",
    )


class DriverResponse(BaseModel):
    """Response schema for driver details."""
    id: UUID
    name: str
    phone: Optional[str] = None
    vehicle_type: str
    status: str
    current_delivery_id: Optional[UUID] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
