"""Capsule lifecycle: creation defaults, ownership checks and the lock gate on mutation.

Once a capsule is unlocked its content is frozen. Only the scheduler flips
the ``unlocked`` flag (see ``timecapsule.scheduler``); nothing here ever
writes it.
"""

import logging
from datetime import datetime
from typing import Callable, List, Optional

from timecapsule import queries
from timecapsule.errors import Forbidden, InvalidContent, InvalidSchedule, InvalidState, NotFound
from timecapsule.models import Capsule, User, as_utc, utcnow
from timecapsule.store import CapsuleStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_MESSAGE_LENGTH = 5000


def one_year_after(moment: datetime) -> datetime:
    try:
        return moment.replace(year=moment.year + 1)
    except ValueError:
        # 29 February
        return moment.replace(year=moment.year + 1, day=28)


class CapsuleService:
    def __init__(
        self,
        store: CapsuleStore,
        clock: Callable[[], datetime] = utcnow,
        max_message_length: int = DEFAULT_MAX_MESSAGE_LENGTH,
    ):
        self.store = store
        self.clock = clock
        self.max_message_length = max_message_length

    def _check_message(self, message: str):
        if len(message) > self.max_message_length:
            raise InvalidContent(f"Message must be at most {self.max_message_length} characters")

    def _check_future(self, unlock_at: datetime, now: datetime):
        if unlock_at <= now:
            raise InvalidSchedule("Unlock date and time must be in the future")

    def _owned(self, capsule_id: int, requester: str) -> Capsule:
        # A capsule owned by someone else is reported exactly like a missing one.
        capsule = self.store.get_by_id(capsule_id)
        if capsule is None or capsule.owner.username != requester:
            raise NotFound(f"Capsule not found with id: {capsule_id}")
        return capsule

    def create(
        self,
        owner: User,
        title: str,
        message: str,
        unlock_at: Optional[datetime] = None,
        file_ref: Optional[str] = None,
    ) -> Capsule:
        now = self.clock()
        unlock_at = as_utc(unlock_at) if unlock_at is not None else one_year_after(now)
        self._check_future(unlock_at, now)
        self._check_message(message)

        capsule = Capsule(
            title=title,
            message=message,
            unlock_at=unlock_at,
            unlocked=False,
            file_ref=file_ref,
            owner_id=owner.id,
            created_at=now,
        )
        capsule = self.store.save(capsule)
        logger.info(f"Capsule {capsule.id} created by {owner.username}, locked until {unlock_at}")
        return capsule

    def get(self, capsule_id: int, requester: str) -> Capsule:
        return self._owned(capsule_id, requester)

    def list_unlocked(self, owner: str) -> List[Capsule]:
        return self.store.get_by_owner_before(owner, self.clock())

    def list_locked(self, owner: str) -> List[Capsule]:
        return self.store.get_by_owner_after(owner, self.clock())

    def summary(self, owner: str) -> dict:
        return queries.summarize(self.store.get_by_owner(owner), self.clock())

    def update(
        self,
        capsule_id: int,
        requester: str,
        title: Optional[str] = None,
        message: Optional[str] = None,
        unlock_at: Optional[datetime] = None,
    ) -> Capsule:
        """Apply the given fields to a still-locked capsule; ``None`` leaves a field unchanged."""
        now = self.clock()
        capsule = self._owned(capsule_id, requester)
        # Due but not yet flipped by the scheduler counts as unlocked too.
        if capsule.unlocked or queries.is_unlockable(capsule, now):
            raise InvalidState("Cannot update an unlocked capsule")

        values = {}
        if title is not None:
            values["title"] = title
        if message is not None:
            self._check_message(message)
            values["message"] = message
        if unlock_at is not None:
            unlock_at = as_utc(unlock_at)
            self._check_future(unlock_at, now)
            values["unlock_at"] = unlock_at

        if not values:
            return capsule
        if not self.store.update_locked(capsule_id, now, **values):
            raise InvalidState("Cannot update an unlocked capsule")
        return self.store.get_by_id(capsule_id)

    def delete(self, capsule_id: int, requester: str) -> Optional[str]:
        """Delete a capsule in any state. Returns its attachment reference, if any."""
        capsule = self.store.get_by_id(capsule_id)
        if capsule is None:
            raise NotFound("Capsule not found")
        if capsule.owner.username != requester:
            raise Forbidden("You are not authorized to delete this capsule")

        file_ref = capsule.file_ref
        self.store.delete(capsule)
        logger.info(f"Capsule {capsule_id} deleted by {requester}")
        return file_ref
