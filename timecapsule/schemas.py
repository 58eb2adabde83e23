from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from timecapsule.models import Capsule, utcnow
from timecapsule.queries import is_unlockable


class CapsuleCreate(BaseModel):
    title: str
    message: str
    unlock_at: Optional[datetime] = None


class CapsuleUpdate(BaseModel):
    title: Optional[str] = None
    message: Optional[str] = None
    unlock_at: Optional[datetime] = None


class CapsuleResponse(BaseModel):
    id: int
    title: str
    message: str
    unlock_at: Optional[datetime]
    unlocked: bool
    file_ref: Optional[str] = None
    owner: str

    @classmethod
    def from_capsule(cls, capsule: Capsule, now: Optional[datetime] = None) -> "CapsuleResponse":
        """Response for ``capsule``; the message stays hidden until the unlock time has passed."""
        now = now or utcnow()
        if capsule.unlocked or is_unlockable(capsule, now):
            message = capsule.message
        elif capsule.unlock_at is None:
            message = "Locked"
        else:
            message = f"Locked until {capsule.unlock_at.isoformat()}"
        return cls(
            id=capsule.id,
            title=capsule.title,
            message=message,
            unlock_at=capsule.unlock_at,
            unlocked=capsule.unlocked,
            file_ref=capsule.file_ref,
            owner=capsule.owner.username,
        )


class AnalyticsResponse(BaseModel):
    total_capsules: int
    pending_capsules: int
    opened_capsules: int


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    role: str
