import logging
from contextlib import contextmanager
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from timecapsule.database import SessionLocal
from timecapsule.errors import DependencyFailure
from timecapsule.models import Capsule, User

logger = logging.getLogger(__name__)


class CapsuleStore:
    """Capsule persistence over a SQLAlchemy session.

    Every write commits immediately. Database errors roll the session back and
    surface as ``DependencyFailure``.
    """

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def _guard(self, action: str):
        try:
            yield
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Capsule store failed to {action}: {e}")
            raise DependencyFailure(f"Could not {action}") from e

    def get_by_id(self, capsule_id: int) -> Optional[Capsule]:
        with self._guard(f"load capsule {capsule_id}"):
            return self.db.get(Capsule, capsule_id)

    def get_by_owner(self, owner: str) -> List[Capsule]:
        query = select(Capsule).join(Capsule.owner).where(User.username == owner).order_by(Capsule.id)
        with self._guard(f"list capsules of {owner}"):
            return list(self.db.execute(query).scalars().all())

    def get_by_owner_before(self, owner: str, when: datetime) -> List[Capsule]:
        """Owner's capsules whose unlock time is at or before ``when``."""
        query = (
            select(Capsule)
            .join(Capsule.owner)
            .where(User.username == owner, Capsule.unlock_at <= when)
            .order_by(Capsule.unlock_at)
        )
        with self._guard(f"list unlocked capsules of {owner}"):
            return list(self.db.execute(query).scalars().all())

    def get_by_owner_after(self, owner: str, when: datetime) -> List[Capsule]:
        """Owner's capsules whose unlock time is strictly after ``when``."""
        query = (
            select(Capsule)
            .join(Capsule.owner)
            .where(User.username == owner, Capsule.unlock_at > when)
            .order_by(Capsule.unlock_at)
        )
        with self._guard(f"list locked capsules of {owner}"):
            return list(self.db.execute(query).scalars().all())

    def get_all(self) -> List[Capsule]:
        with self._guard("list capsules"):
            return list(self.db.execute(select(Capsule).order_by(Capsule.id)).scalars().all())

    def get_due(self, now: datetime) -> List[Capsule]:
        query = (
            select(Capsule)
            .where(Capsule.unlocked.is_(False), Capsule.unlock_at.is_not(None), Capsule.unlock_at <= now)
            .order_by(Capsule.unlock_at)
        )
        with self._guard("list due capsules"):
            return list(self.db.execute(query).scalars().all())

    def save(self, capsule: Capsule) -> Capsule:
        with self._guard(f"save capsule {capsule.id}"):
            self.db.add(capsule)
            self.db.commit()
            self.db.refresh(capsule)
        return capsule

    def delete(self, capsule: Capsule) -> None:
        with self._guard(f"delete capsule {capsule.id}"):
            self.db.delete(capsule)
            self.db.commit()

    def mark_unlocked(self, capsule_id: int, now: datetime) -> bool:
        """Flip ``unlocked`` to true only if it is still false and the capsule is due.

        Returns True for the one caller whose update changed the row; concurrent
        callers racing on the same capsule get False.
        """
        statement = (
            update(Capsule)
            .where(Capsule.id == capsule_id, Capsule.unlocked.is_(False), Capsule.unlock_at <= now)
            .values(unlocked=True, unlocked_at=now)
            .execution_options(synchronize_session=False)
        )
        with self._guard(f"unlock capsule {capsule_id}"):
            result = self.db.execute(statement)
            self.db.commit()
        return result.rowcount == 1

    def update_locked(self, capsule_id: int, now: datetime, **values) -> bool:
        """Write content fields only while the capsule is still locked at ``now``.

        Returns False when the capsule has been unlocked (or become due) since it
        was read, in which case nothing is written.
        """
        statement = (
            update(Capsule)
            .where(Capsule.id == capsule_id, Capsule.unlocked.is_(False), Capsule.unlock_at > now)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        with self._guard(f"update capsule {capsule_id}"):
            result = self.db.execute(statement)
            self.db.commit()
        return result.rowcount == 1

    # Users are owned by the authentication layer; these are the lookups it and
    # the admin reports need.

    def get_user_by_username(self, username: str) -> Optional[User]:
        with self._guard(f"load user {username}"):
            return self.db.execute(select(User).where(User.username == username)).scalars().first()

    def get_user_by_email(self, email: str) -> Optional[User]:
        with self._guard("load user by email"):
            return self.db.execute(select(User).where(User.email == email)).scalars().first()

    def list_users(self) -> List[User]:
        with self._guard("list users"):
            return list(self.db.execute(select(User).order_by(User.id)).scalars().all())

    def create_user(self, user: User) -> User:
        with self._guard(f"create user {user.username}"):
            self.db.add(user)
            self.db.commit()
            self.db.refresh(user)
        return user


@contextmanager
def open_store(session_factory=SessionLocal):
    """Store bound to a fresh session, for work done outside a request."""
    db = session_factory()
    try:
        yield CapsuleStore(db)
    finally:
        db.close()
