from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import Field

from app.schemas.common import CamelModel


class MenuItemCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    image_url: Optional[str] = None


class MenuItemUpdate(CamelModel):
    id: int
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    image_url: Optional[str] = None
    is_available: Optional[bool] = None


class MenuItemResponse(CamelModel):
    id: int
    name: str
    description: Optional[str] = None
    price: float
    image_url: Optional[str] = None
    is_available: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
