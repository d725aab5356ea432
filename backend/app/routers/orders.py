from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.auth import (
    Capability,
    Principal,
    get_current_session,
    get_principals,
    has_capability,
    principals_for,
    require_capability,
    session_of,
)
from app.core.deps import get_db
from app.core.errors import Unauthorized
from app.schemas.auth import SessionUser
from app.schemas.order import (
    OrderCreate,
    OrderItemMutationResponse,
    OrderItemQuantityUpdate,
    OrderItemResponse,
    OrderResponse,
    OrderStatusUpdate,
    OrderSummaryLine,
    OrderWithItems,
)
from app.services import orders as order_service

router = APIRouter()


@router.get("", response_model=list[OrderWithItems])
def list_orders(
    db: Session = Depends(get_db),
    principals: List[Principal] = Depends(get_principals),
):
    """Everyone's orders for organizers and restaurant staff; otherwise the caller's own."""
    if has_capability(principals, Capability.view_all_orders):
        return order_service.list_orders(db)
    session = session_of(principals)
    if session is None:
        raise Unauthorized()
    return order_service.list_orders(db, user_id=session.id)


@router.post("", response_model=OrderResponse)
def create_order(
    body: OrderCreate,
    db: Session = Depends(get_db),
    session: SessionUser = Depends(get_current_session),
):
    return order_service.create_order(db, session.id, body.items, client_total=body.total_amount)


@router.put("", response_model=OrderResponse)
def update_order_status(
    body: OrderStatusUpdate,
    db: Session = Depends(get_db),
    principals: List[Principal] = Depends(get_principals),
):
    """Move an order to any status. The restaurant key may also come in the body."""
    if body.restaurant_key is not None:
        principals = principals + principals_for(None, body.restaurant_key)
    require_capability(principals, Capability.manage_orders)
    return order_service.update_status(db, body.id, body.status)


@router.get("/summary", response_model=list[OrderSummaryLine])
def order_summary(
    db: Session = Depends(get_db),
    principals: List[Principal] = Depends(get_principals),
):
    require_capability(principals, Capability.view_all_orders)
    return order_service.order_summary(db)


@router.put("/{order_id}/items/{item_id}", response_model=OrderItemMutationResponse)
def update_order_item(
    order_id: int,
    item_id: int,
    body: OrderItemQuantityUpdate,
    db: Session = Depends(get_db),
    session: SessionUser = Depends(get_current_session),
):
    item, total = order_service.update_item_quantity(db, order_id, item_id, session.id, body.quantity)
    return OrderItemMutationResponse(
        message="Order item updated",
        total_amount=float(total),
        item=OrderItemResponse.model_validate(item),
    )


@router.delete("/{order_id}/items/{item_id}", response_model=OrderItemMutationResponse)
def delete_order_item(
    order_id: int,
    item_id: int,
    db: Session = Depends(get_db),
    session: SessionUser = Depends(get_current_session),
):
    total = order_service.delete_item(db, order_id, item_id, session.id)
    if total is None:
        return OrderItemMutationResponse(message="Order deleted as it had no remaining items", order_deleted=True)
    return OrderItemMutationResponse(message="Order item deleted", total_amount=float(total))
