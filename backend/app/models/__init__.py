from app.core.database import Base
from app.models.user import User
from app.models.invitation import Invitation
from app.models.rsvp import Rsvp, RsvpStatus
from app.models.menu_item import MenuItem
from app.models.order import Order, OrderStatus
from app.models.order_item import OrderItem
from app.models.notification import Notification

__all__ = [
    "Base",
    "User",
    "Invitation",
    "Rsvp",
    "RsvpStatus",
    "MenuItem",
    "Order",
    "OrderStatus",
    "OrderItem",
    "Notification",
]
