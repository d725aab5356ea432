from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.core.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    # Guests added without an email have none; not enforced unique at the column level
    email = Column(String(255), nullable=True, index=True)
    name = Column(String(255), nullable=False)
    is_organizer = Column(Boolean, default=False, nullable=False)
    wechat_id = Column(String(255), nullable=True)
    email_sent = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # relationships
    invitations = relationship("Invitation", back_populates="user")
    rsvp = relationship("Rsvp", back_populates="user", uselist=False)
    orders = relationship("Order", back_populates="user")
    notifications = relationship("Notification", back_populates="user")
