"""Read-side derivations over capsule sequences.

A capsule is *unlockable* once its ``unlock_at`` has passed, whether or not
the scheduler has flipped its ``unlocked`` flag yet. Capsules without an
``unlock_at`` belong to neither partition.
"""

from collections import Counter
from datetime import datetime
from typing import Iterable

from timecapsule.models import Capsule, User


def is_unlockable(capsule: Capsule, now: datetime) -> bool:
    return capsule.unlock_at is not None and capsule.unlock_at <= now


def is_pending(capsule: Capsule, now: datetime) -> bool:
    return capsule.unlock_at is not None and capsule.unlock_at > now


def is_due(capsule: Capsule, now: datetime) -> bool:
    """True when the scheduler should flip this capsule now."""
    return not capsule.unlocked and is_unlockable(capsule, now)


def unlocked_capsules(capsules: Iterable[Capsule], now: datetime) -> list[Capsule]:
    return [c for c in capsules if is_unlockable(c, now)]


def locked_capsules(capsules: Iterable[Capsule], now: datetime) -> list[Capsule]:
    return [c for c in capsules if is_pending(c, now)]


def count_per_owner(users: Iterable[User], capsules: Iterable[Capsule]) -> dict[str, int]:
    """Number of capsules per username; users without capsules report 0."""
    counts = Counter(c.owner_id for c in capsules)
    return {user.username: counts.get(user.id, 0) for user in users}


def summarize(capsules: Iterable[Capsule], now: datetime) -> dict[str, int]:
    capsules = list(capsules)
    return {
        "total": len(capsules),
        "locked": len(locked_capsules(capsules, now)),
        "unlocked": len(unlocked_capsules(capsules, now)),
    }
