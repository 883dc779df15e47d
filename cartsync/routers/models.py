"""
Pydantic models for the remote cart API.
"""
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class CartItemPayload(BaseModel):
    """One cart line as sent by clients."""
    product_id: str = Field(..., min_length=1)
    variant_id: Optional[str] = None
    selected_language: Optional[str] = None
    name: str
    unit_price: Decimal = Field(..., ge=0)
    quantity: int = Field(..., gt=0)
    image_ref: Optional[str] = None
    is_digital_good: Optional[bool] = None
    slug_ref: Optional[str] = None
    # Ignored on input; identity is derived from product/variant/language
    id: Optional[str] = None
