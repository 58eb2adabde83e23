from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from timecapsule.database import Base

DEFAULT_ROLE = "USER"
ADMIN_ROLE = "ADMIN"


def utcnow() -> datetime:
    """Current time as a naive UTC datetime, the form every timestamp is stored in."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Convert an aware datetime to naive UTC; naive values are assumed to be UTC already."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    email = Column(String, unique=True, nullable=False)
    role = Column(String, nullable=False, default=DEFAULT_ROLE)

    capsules = relationship("Capsule", back_populates="owner", cascade="all, delete-orphan")

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


class Capsule(Base):
    __tablename__ = "capsules"
    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False, default="")
    file_ref = Column(String, nullable=True)
    unlock_at = Column(DateTime, index=True)
    unlocked = Column(Boolean, nullable=False, default=False, index=True)
    unlocked_at = Column(DateTime, nullable=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow)

    owner = relationship("User", back_populates="capsules")

    def __repr__(self):
        return f"<Capsule {self.id} '{self.title}' unlock_at={self.unlock_at} unlocked={self.unlocked}>"
