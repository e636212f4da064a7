"""Per-doctor locks serializing check-then-write scheduling sequences."""

from contextlib import contextmanager
from threading import Lock

from clinic.core import config
from clinic.core.errors import InternalError


class _DoctorLock:
    __slots__ = ('lock', 'users')

    def __init__(self):
        self.lock = Lock()
        self.users = 0


_registry_lock = Lock()
_doctor_locks: dict[int, _DoctorLock] = {}


def _checkout(doctor_id: int) -> Lock:
    with _registry_lock:
        entry = _doctor_locks.get(doctor_id)
        if entry is None:
            entry = _doctor_locks[doctor_id] = _DoctorLock()
        entry.users += 1
        return entry.lock


def _checkin(doctor_id: int) -> None:
    with _registry_lock:
        entry = _doctor_locks[doctor_id]
        entry.users -= 1
        if not entry.users:
            del _doctor_locks[doctor_id]


@contextmanager
def doctor_lock(*doctor_ids: int | None):
    """Serialize check-then-write sequences touching the given doctors.

    Locks are taken in ascending id order so a reschedule between two
    doctors cannot deadlock against one going the other way. A doctor's
    entry leaves the registry once nobody holds or waits for it.
    """
    ordered_ids = sorted({doctor_id for doctor_id in doctor_ids if doctor_id is not None})
    checked_out: list[int] = []
    acquired: list[Lock] = []
    try:
        for doctor_id in ordered_ids:
            lock = _checkout(doctor_id)
            checked_out.append(doctor_id)
            if not lock.acquire(timeout=config.STORE_TIMEOUT_SECONDS):
                raise InternalError('Timed out waiting for the doctor schedule.')
            acquired.append(lock)
        yield
    finally:
        for lock in reversed(acquired):
            lock.release()
        for doctor_id in checked_out:
            _checkin(doctor_id)
