from typing import Generator

from fastapi import Request
from sqlalchemy.orm import Session

from app.core.database import SessionLocal
from app.services.email import Mailer


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_mailer(request: Request) -> Mailer:
    """Mailer strategy selected at startup (see app.main)."""
    return request.app.state.mailer
