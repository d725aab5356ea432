"""Food pre-orders.

An order's total_amount is always the sum of quantity * current menu price over its
items. It is computed here on creation and recomputed after every item change, in
the same transaction as the change, with the order row locked.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.errors import Forbidden, NotFound, OrderNotModifiable, RsvpRequired, ValidationError
from app.models.menu_item import MenuItem
from app.models.order import Order, OrderStatus
from app.models.order_item import OrderItem
from app.models.rsvp import Rsvp
from app.models.user import User
from app.schemas.order import OrderItemCreate

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT)


def compute_total(db: Session, order_id: int) -> Decimal:
    rows = (
        db.query(OrderItem.quantity, MenuItem.price)
        .join(MenuItem, OrderItem.menu_item_id == MenuItem.id)
        .filter(OrderItem.order_id == order_id)
        .all()
    )
    total = sum((to_money(price) * quantity for quantity, price in rows), Decimal("0"))
    return to_money(total)


def _refresh_total(db: Session, order: Order) -> Decimal:
    db.flush()
    order.total_amount = compute_total(db, order.id)
    order.updated_at = datetime.now(timezone.utc)
    return order.total_amount


def create_order(
    db: Session,
    user_id: int,
    items: Sequence[OrderItemCreate],
    client_total: Optional[float] = None,
) -> Order:
    rsvp = db.query(Rsvp).filter(Rsvp.user_id == user_id).first()
    if not rsvp:
        raise RsvpRequired()
    if not items:
        raise ValidationError("Order must contain at least one item")

    menu_ids = {item.menu_item_id for item in items}
    menu = {m.id: m for m in db.query(MenuItem).filter(MenuItem.id.in_(menu_ids)).all()}
    for item in items:
        menu_item = menu.get(item.menu_item_id)
        if menu_item is None or not menu_item.is_available:
            raise ValidationError(f"Menu item {item.menu_item_id} is not available")

    order = Order(
        user_id=user_id,
        rsvp_id=rsvp.id,
        status=OrderStatus.pending,
        total_amount=Decimal("0"),
    )
    order.items = [
        OrderItem(menu_item_id=item.menu_item_id, quantity=item.quantity, notes=item.notes)
        for item in items
    ]
    db.add(order)
    db.flush()
    total = _refresh_total(db, order)
    if client_total is not None and to_money(client_total) != total:
        logger.warning(
            "Order %s: client total %s differs from computed total %s; using computed",
            order.id,
            client_total,
            total,
        )
    db.commit()
    db.refresh(order)
    logger.info("Order %s created for user %s with %s items, total %s", order.id, user_id, len(items), total)
    return order


def list_orders(db: Session, user_id: Optional[int] = None) -> List[dict]:
    """Orders with their lines and purchaser, grouped from one flat joined row set.

    user_id restricts the result to that user's orders; None returns everyone's.
    """
    query = (
        db.query(Order, OrderItem, MenuItem, User)
        .join(User, Order.user_id == User.id)
        .outerjoin(OrderItem, OrderItem.order_id == Order.id)
        .outerjoin(MenuItem, OrderItem.menu_item_id == MenuItem.id)
    )
    if user_id is not None:
        query = query.filter(Order.user_id == user_id)
    rows = query.order_by(Order.id, OrderItem.id).all()

    grouped: dict = {}
    for order, item, menu_item, user in rows:
        entry = grouped.get(order.id)
        if entry is None:
            entry = grouped[order.id] = {
                "id": order.id,
                "user_id": order.user_id,
                "rsvp_id": order.rsvp_id,
                "total_amount": order.total_amount,
                "status": order.status,
                "created_at": order.created_at,
                "purchaser_name": user.name,
                "purchaser_email": user.email,
                "order_items": [],
            }
        if item is not None and menu_item is not None:
            entry["order_items"].append(
                {
                    "id": item.id,
                    "menu_item_id": menu_item.id,
                    "name": menu_item.name,
                    "price": menu_item.price,
                    "quantity": item.quantity,
                    "notes": item.notes,
                    "image_url": menu_item.image_url,
                }
            )
    return list(grouped.values())


def _lock_modifiable_order(db: Session, order_id: int, user_id: int) -> Order:
    order = db.query(Order).filter(Order.id == order_id).with_for_update().first()
    if not order:
        raise NotFound("Order not found")
    if order.status != OrderStatus.pending:
        raise OrderNotModifiable()
    if order.user_id != user_id:
        raise Forbidden("You can only modify your own orders")
    return order


def _get_order_item(db: Session, order_id: int, item_id: int) -> OrderItem:
    item = (
        db.query(OrderItem)
        .filter(OrderItem.id == item_id, OrderItem.order_id == order_id)
        .first()
    )
    if not item:
        raise NotFound("Order item not found")
    return item


def update_item_quantity(
    db: Session,
    order_id: int,
    item_id: int,
    user_id: int,
    quantity: int,
) -> Tuple[OrderItem, Decimal]:
    if quantity < 1:
        raise ValidationError("Quantity must be at least 1")
    order = _lock_modifiable_order(db, order_id, user_id)
    item = _get_order_item(db, order_id, item_id)
    item.quantity = quantity
    total = _refresh_total(db, order)
    db.commit()
    db.refresh(item)
    logger.info("Order %s item %s quantity -> %s, total %s", order_id, item_id, quantity, total)
    return item, total


def delete_item(db: Session, order_id: int, item_id: int, user_id: int) -> Optional[Decimal]:
    """Remove one line. Returns the new total, or None when the order itself was deleted."""
    order = _lock_modifiable_order(db, order_id, user_id)
    item = _get_order_item(db, order_id, item_id)
    db.delete(item)
    db.flush()

    remaining = db.query(func.count(OrderItem.id)).filter(OrderItem.order_id == order_id).scalar()
    if not remaining:
        db.delete(order)
        db.commit()
        logger.info("Order %s deleted with its last item %s", order_id, item_id)
        return None

    total = _refresh_total(db, order)
    db.commit()
    logger.info("Order %s item %s deleted, total %s", order_id, item_id, total)
    return total


def update_status(db: Session, order_id: int, status: OrderStatus) -> Order:
    # Any status may follow any other
    order = db.query(Order).filter(Order.id == order_id).with_for_update().first()
    if not order:
        raise NotFound("Order not found")
    order.status = status
    order.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(order)
    logger.info("Order %s status -> %s", order_id, status.value)
    return order


def order_summary(db: Session) -> List[dict]:
    """Total quantity ordered per menu item, across orders that are not cancelled."""
    rows = (
        db.query(MenuItem.id, MenuItem.name, func.sum(OrderItem.quantity))
        .join(OrderItem, OrderItem.menu_item_id == MenuItem.id)
        .join(Order, OrderItem.order_id == Order.id)
        .filter(Order.status != OrderStatus.cancelled)
        .group_by(MenuItem.id, MenuItem.name)
        .order_by(MenuItem.name)
        .all()
    )
    return [
        {"menu_item_id": menu_item_id, "name": name, "quantity": int(quantity or 0)}
        for menu_item_id, name, quantity in rows
    ]
