from __future__ import annotations

from pydantic import BaseModel, Field


class OpenBasketRequest(BaseModel):
    customer_id: str


class AddBasketItemRequest(BaseModel):
    product_id: str


class UpdateBasketItemRequest(BaseModel):
    quantity: int = Field(..., ge=0)
