"""Who is calling and what they may do.

Two kinds of caller reach the API: a guest or organizer holding a session cookie,
and on-site restaurant staff holding the restaurant access key. Both resolve to a
set of capabilities; endpoints ask for a capability, never for a kind of caller.
"""

import enum
import logging
from dataclasses import dataclass
from typing import FrozenSet, List, Optional, Union

from fastapi import Depends, Query, Request, Response

from app.core.config import settings
from app.core.errors import Unauthorized
from app.core.security import create_session_token, decode_session_token, restaurant_key_matches
from app.models.user import User
from app.schemas.auth import SessionUser

logger = logging.getLogger(__name__)


class Capability(str, enum.Enum):
    view_all_orders = "view_all_orders"
    manage_orders = "manage_orders"
    manage_menu = "manage_menu"
    manage_guests = "manage_guests"
    manage_organizers = "manage_organizers"


ORGANIZER_CAPABILITIES: FrozenSet[Capability] = frozenset(Capability)
RESTAURANT_CAPABILITIES: FrozenSet[Capability] = frozenset(
    {Capability.view_all_orders, Capability.manage_orders}
)


@dataclass(frozen=True)
class SessionPrincipal:
    session: SessionUser

    @property
    def capabilities(self) -> FrozenSet[Capability]:
        return ORGANIZER_CAPABILITIES if self.session.is_organizer else frozenset()


@dataclass(frozen=True)
class RestaurantPrincipal:
    @property
    def capabilities(self) -> FrozenSet[Capability]:
        return RESTAURANT_CAPABILITIES


Principal = Union[SessionPrincipal, RestaurantPrincipal]


def set_session_cookie(response: Response, user: User) -> None:
    token = create_session_token(user.id, user.email, user.name, user.is_organizer)
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        max_age=settings.SESSION_EXPIRE_DAYS * 24 * 60 * 60,
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    # The signed token itself stays valid until it expires
    response.delete_cookie(key=settings.SESSION_COOKIE_NAME, path="/")


def get_session(request: Request) -> Optional[SessionUser]:
    """Session claims from the cookie, or None when absent, tampered or expired."""
    token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if not token:
        return None
    claims = decode_session_token(token)
    if claims is None:
        return None
    return SessionUser.model_validate(claims)


def get_current_session(session: Optional[SessionUser] = Depends(get_session)) -> SessionUser:
    if session is None:
        raise Unauthorized()
    return session


def require_organizer(session: SessionUser = Depends(get_current_session)) -> SessionUser:
    if not session.is_organizer:
        raise Unauthorized()
    return session


def principals_for(session: Optional[SessionUser], restaurant_key: Optional[str]) -> List[Principal]:
    principals: List[Principal] = []
    if session is not None:
        principals.append(SessionPrincipal(session))
    if restaurant_key is not None:
        if restaurant_key_matches(restaurant_key):
            principals.append(RestaurantPrincipal())
        else:
            logger.warning("Rejected restaurant access key")
    return principals


def get_principals(
    restaurant_key: Optional[str] = Query(None, alias="restaurantKey"),
    session: Optional[SessionUser] = Depends(get_session),
) -> List[Principal]:
    return principals_for(session, restaurant_key)


def has_capability(principals: List[Principal], capability: Capability) -> bool:
    return any(capability in p.capabilities for p in principals)


def require_capability(principals: List[Principal], capability: Capability) -> None:
    if not has_capability(principals, capability):
        raise Unauthorized()


def session_of(principals: List[Principal]) -> Optional[SessionUser]:
    for p in principals:
        if isinstance(p, SessionPrincipal):
            return p.session
    return None
