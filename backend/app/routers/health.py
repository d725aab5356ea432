import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.deps import get_db, get_mailer
from app.services.email import Mailer

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
def health_check(db: Session = Depends(get_db), mailer: Mailer = Depends(get_mailer)):
    """Health check; includes DB connectivity and the email mode in use."""
    try:
        db.execute(text("SELECT 1"))
        db_ok = True
    except SQLAlchemyError:
        logger.exception("Health check: database unreachable")
        db_ok = False
    return {
        "status": "ok",
        "database": "connected" if db_ok else "disconnected",
        "environment": settings.ENVIRONMENT,
        "email": "preview" if mailer.preview else "smtp",
    }
