"""
Inventory admin DTOs (Pydantic v2).
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt

from domain.inventory.entity import AlertStatus


class AdjustStockRequest(BaseModel):
    delta: StrictInt = Field(description="Signed change to physical stock; the result is clamped at 0")
    reason: Optional[str] = Field(default=None, max_length=255)
    actor_id: Optional[str] = Field(default=None, max_length=64)


class StockChangeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    variant_id: str
    previous_stock: int
    new_stock: int


class AcknowledgeAlertRequest(BaseModel):
    actor_id: Optional[str] = Field(default=None, max_length=64)


class LowStockAlertResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    variant_id: str
    available: int
    threshold: int
    status: AlertStatus
    acknowledged_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
