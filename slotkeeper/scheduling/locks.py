"""Per-professional serialization of the booking critical section."""

import logging
from contextlib import contextmanager
from threading import Lock

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from slotkeeper.scheduling.errors import StorageUnavailable

logger = logging.getLogger(__name__)


class ProfessionalLockRegistry:
    """Hands out one lock per professional, created on first use."""

    def __init__(self):
        self._guard = Lock()
        self._locks: dict[int, Lock] = {}

    def lock_for(self, professional_id: int) -> Lock:
        with self._guard:
            lock = self._locks.get(professional_id)
            if lock is None:
                lock = Lock()
                self._locks[professional_id] = lock
            return lock

    @contextmanager
    def hold(self, professional_id: int, timeout: float):
        lock = self.lock_for(professional_id)
        if not lock.acquire(timeout=timeout):
            logger.warning('Timed out waiting for booking lock of professional %s', professional_id)
            raise StorageUnavailable('Calendar is busy. Please try again.')
        try:
            yield
        finally:
            lock.release()


professional_locks = ProfessionalLockRegistry()


def acquire_advisory_lock(db: Session, professional_id: int) -> None:
    """Take a transaction-scoped PostgreSQL advisory lock for ``professional_id``.

    Serializes bookings across worker processes; released on commit or rollback.
    No-op on other databases.
    """
    if db.get_bind().dialect.name != 'postgresql':
        return
    db.execute(select(func.pg_advisory_xact_lock(func.hashtext(f'appointments:{professional_id}'))))
