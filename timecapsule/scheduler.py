"""Periodic unlock of capsules whose unlock time has passed.

Each tick loads the due capsules and handles them one at a time, each inside
its own error boundary. The flip itself goes through the store's conditional
``mark_unlocked`` so that when several ticks or service instances race on
the same capsule exactly one of them unlocks it, and only that one notifies.
Notification is best effort: a failed notification never undoes the unlock.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, ContextManager, List, Optional, Protocol

from timecapsule.models import Capsule, utcnow
from timecapsule.queries import is_due
from timecapsule.store import CapsuleStore

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def notify_unlocked(self, address: str, title: str) -> None: ...


@dataclass
class TickReport:
    now: datetime
    candidates: List[int] = field(default_factory=list)
    unlocked: List[int] = field(default_factory=list)
    notified: List[int] = field(default_factory=list)
    notify_failed: List[int] = field(default_factory=list)
    skipped: List[int] = field(default_factory=list)
    failed: List[int] = field(default_factory=list)


class UnlockScheduler:
    def __init__(
        self,
        store_factory: Callable[[], ContextManager[CapsuleStore]],
        notifier: Notifier,
        interval: float = 60.0,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store_factory = store_factory
        self.notifier = notifier
        self.interval = interval
        self.clock = clock
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def tick(self, now: Optional[datetime] = None) -> TickReport:
        now = now or self.clock()
        report = TickReport(now=now)

        with self.store_factory() as store:
            candidates = store.get_due(now)
            report.candidates = [c.id for c in candidates]
            logger.info(f"Unlock tick at {now}: {len(candidates)} due capsules")

            for capsule_id, capsule in zip(report.candidates, candidates):
                if self._stop.is_set():
                    logger.info("Stop requested, leaving remaining capsules for the next tick")
                    break
                try:
                    self._unlock(store, capsule_id, capsule, now, report)
                except Exception:
                    logger.exception(f"Error processing capsule ID {capsule_id}")
                    report.failed.append(capsule_id)

        logger.info(
            f"Unlock tick done: {len(report.unlocked)} unlocked, {len(report.notified)} notified, "
            f"{len(report.skipped)} skipped, {len(report.failed)} failed"
        )
        return report

    def _unlock(self, store: CapsuleStore, capsule_id: int, capsule: Capsule, now: datetime, report: TickReport):
        if not is_due(capsule, now):
            report.skipped.append(capsule_id)
            return

        address = capsule.owner.email
        title = capsule.title

        if not store.mark_unlocked(capsule_id, now):
            logger.info(f"Capsule {capsule_id} was already unlocked by another worker")
            report.skipped.append(capsule_id)
            return
        report.unlocked.append(capsule_id)
        logger.info(f"Capsule {capsule_id} unlocked: {title}")

        try:
            self.notifier.notify_unlocked(address, title)
        except Exception as e:
            logger.warning(f"Capsule {capsule_id} unlocked but notifying {address} failed: {e}")
            report.notify_failed.append(capsule_id)
        else:
            report.notified.append(capsule_id)

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="unlock-scheduler", daemon=True)
        self._thread.start()
        logger.info(f"Unlock scheduler started, every {self.interval}s")

    def stop(self, timeout: float = 30.0) -> None:
        """Stop ticking; an in-flight tick finishes its current capsule first."""
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=timeout)
            self._thread = None
        logger.info("Unlock scheduler stopped")

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _loop(self) -> None:
        while not self._stop.is_set():
            try:
                self.tick()
            except Exception:
                # store unreachable for the whole tick; the next one retries
                logger.exception("Unlock tick failed")
            self._stop.wait(self.interval)
