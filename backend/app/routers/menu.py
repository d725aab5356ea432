import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.auth import get_session, require_organizer
from app.core.deps import get_db
from app.core.errors import NotFound
from app.models.menu_item import MenuItem
from app.schemas.auth import SessionUser
from app.schemas.menu import MenuItemCreate, MenuItemResponse, MenuItemUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=list[MenuItemResponse])
def list_menu(
    db: Session = Depends(get_db),
    session: Optional[SessionUser] = Depends(get_session),
):
    """Menu items by name. Organizers also see items that are switched off."""
    query = db.query(MenuItem)
    if not (session and session.is_organizer):
        query = query.filter(MenuItem.is_available.is_(True))
    return query.order_by(MenuItem.name).all()


@router.post("", response_model=MenuItemResponse)
def create_menu_item(
    body: MenuItemCreate,
    db: Session = Depends(get_db),
    organizer: SessionUser = Depends(require_organizer),
):
    item = MenuItem(
        name=body.name.strip(),
        description=body.description,
        price=body.price,
        image_url=body.image_url,
        is_available=True,
    )
    db.add(item)
    db.commit()
    db.refresh(item)
    logger.info("Menu item %s created by organizer %s", item.id, organizer.id)
    return item


@router.put("", response_model=MenuItemResponse)
def update_menu_item(
    body: MenuItemUpdate,
    db: Session = Depends(get_db),
    organizer: SessionUser = Depends(require_organizer),
):
    """Partial update; only fields present in the body change."""
    item = db.query(MenuItem).filter(MenuItem.id == body.id).first()
    if not item:
        raise NotFound("Menu item not found")
    changes = body.model_dump(exclude_unset=True, exclude={"id"})
    # name, price and availability cannot be cleared
    changes = {
        k: v for k, v in changes.items() if v is not None or k in ("description", "image_url")
    }
    for field, value in changes.items():
        setattr(item, field, value)
    item.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(item)
    logger.info("Menu item %s updated by organizer %s: %s", item.id, organizer.id, sorted(changes))
    return item
