"""
Fairway Orders: checkout session request/response schemas

The request body mirrors Stripe Checkout line items so the endpoint can hand
them to Stripe unchanged.
"""
from typing import Literal

from pydantic import BaseModel, Field


class ProductData(BaseModel):
    name: str = Field(..., min_length=1, max_length=255, examples=["Burger"])
    images: list[str] | None = None


class PriceData(BaseModel):
    currency: str = Field("cad", min_length=3, max_length=3)
    product_data: ProductData
    unit_amount: int = Field(..., ge=0, description="Unit price in minor currency units")


class LineItem(BaseModel):
    price_data: PriceData
    quantity: int = Field(..., ge=1)


class CheckoutRequest(BaseModel):
    line_items: list[LineItem] = Field(..., min_length=1)
    success_url: str
    cancel_url: str
    course_id: str = Field(..., min_length=1, max_length=64)
    hole_number: int | None = Field(None, ge=1, le=18)
    notes: str | None = Field(None, max_length=2000)
    mode: Literal["payment"] = "payment"


class CheckoutResponse(BaseModel):
    url: str


class CheckoutErrorResponse(BaseModel):
    error: str
