from datetime import datetime
from typing import Optional

from pydantic import Field

from app.models.order import OrderStatus
from app.schemas.common import CamelModel

# Per-line cap so quantities stay within the integer and total columns
MAX_QUANTITY = 1000


class OrderItemCreate(CamelModel):
    menu_item_id: int
    quantity: int = Field(..., ge=1, le=MAX_QUANTITY)
    notes: Optional[str] = None


class OrderCreate(CamelModel):
    items: list[OrderItemCreate]
    # Accepted for client compatibility; the server computes the real total
    total_amount: Optional[float] = None


class OrderStatusUpdate(CamelModel):
    id: int
    status: OrderStatus
    restaurant_key: Optional[str] = None


class OrderItemQuantityUpdate(CamelModel):
    quantity: int = Field(..., ge=1, le=MAX_QUANTITY)


class OrderResponse(CamelModel):
    id: int
    user_id: int
    rsvp_id: int
    total_amount: float
    status: OrderStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class OrderLine(CamelModel):
    id: int
    menu_item_id: int
    name: str
    price: float
    quantity: int
    notes: Optional[str] = None
    image_url: Optional[str] = None


class OrderWithItems(CamelModel):
    id: int
    user_id: int
    rsvp_id: int
    total_amount: float
    status: OrderStatus
    created_at: Optional[datetime] = None
    purchaser_name: Optional[str] = None
    purchaser_email: Optional[str] = None
    order_items: list[OrderLine] = []


class OrderItemResponse(CamelModel):
    id: int
    order_id: int
    menu_item_id: int
    quantity: int
    notes: Optional[str] = None


class OrderItemMutationResponse(CamelModel):
    message: str
    order_deleted: bool = False
    total_amount: Optional[float] = None
    item: Optional[OrderItemResponse] = None


class OrderSummaryLine(CamelModel):
    menu_item_id: int
    name: str
    quantity: int
