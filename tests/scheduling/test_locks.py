import pytest

from clinic.core.errors import InternalError
from clinic.scheduling import locks


def test_doctor_lock_releases_after_error() -> None:
    with pytest.raises(RuntimeError):
        with locks.doctor_lock(101, 102):
            assert locks._doctor_locks[101].lock.locked()
            raise RuntimeError('boom')

    assert 101 not in locks._doctor_locks
    assert 102 not in locks._doctor_locks


def test_doctor_lock_ignores_missing_and_duplicate_ids() -> None:
    with locks.doctor_lock(103, None, 103):
        assert locks._doctor_locks[103].users == 1

    assert 103 not in locks._doctor_locks


def test_doctor_lock_times_out_as_internal_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr('clinic.core.config.STORE_TIMEOUT_SECONDS', 0.01)
    held = locks._checkout(104)
    held.acquire()
    try:
        with pytest.raises(InternalError):
            with locks.doctor_lock(105, 104):
                pass
        assert 105 not in locks._doctor_locks
        assert locks._doctor_locks[104].users == 1
    finally:
        held.release()
        locks._checkin(104)

    assert 104 not in locks._doctor_locks


def test_registry_is_empty_after_sequential_use() -> None:
    before = dict(locks._doctor_locks)

    for doctor_id in range(200, 260):
        with locks.doctor_lock(doctor_id):
            pass

    assert locks._doctor_locks == before
