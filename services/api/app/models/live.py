from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class CreateLiveRequest(BaseModel):
    title: str = Field(..., min_length=1)
    scheduled_at: datetime
    notes: str | None = None


class UpdateLiveRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1)
    scheduled_at: datetime | None = None
    notes: str | None = None


class LiveProductRequest(BaseModel):
    name: str = Field(..., min_length=1)
    unit_price: Decimal = Field(..., ge=0)
    stock: int = Field(..., ge=0)
    category: str = "Live"
    unit_cost: Decimal = Field(default=Decimal("0"), ge=0)


class FinalizeRequest(BaseModel):
    confirm: bool = False
