from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum

from app.core.database import Base


class RsvpStatus(str, enum.Enum):
    pending = "pending"
    attending = "attending"
    not_attending = "not_attending"


class Rsvp(Base):
    __tablename__ = "rsvps"

    id = Column(Integer, primary_key=True, index=True)
    # One RSVP per user
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False, index=True)
    status = Column(
        Enum(RsvpStatus, native_enum=False, length=32),
        default=RsvpStatus.pending,
        nullable=False,
    )
    plus_one = Column(Boolean, default=False, nullable=False)
    plus_one_name = Column(String(255), nullable=True)
    joined_wechat = Column(Boolean, default=False, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="rsvp")
    orders = relationship("Order", back_populates="rsvp")
