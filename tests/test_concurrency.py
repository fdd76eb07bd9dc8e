"""같은 엔티티에 대한 동시 기록이 버전 번호를 중복시키지 않는지 확인합니다."""

import threading

import pytest

from rewind.services.lock_service import InProcessLockProvider, hold, lock_key
from rewind.exceptions import LockAcquisitionTimeout
from tests.conftest import versions_of
from tests.models import Post


def test_concurrent_updates_get_distinct_increasing_versions(db, store, session_factory):
    post = Post(user_id=1, title="start", body="B")
    db.add(post)
    db.commit()
    post_id = post.id

    errors = []
    barrier = threading.Barrier(5)

    def worker(n):
        session = session_factory()
        try:
            target = session.get(Post, post_id)
            barrier.wait()
            target.title = f"writer-{n}"
            session.commit()
        except Exception as exc:
            errors.append(exc)
        finally:
            session.close()

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(5)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    numbers = [v.version for v in versions_of(db, store, post)]
    assert numbers == sorted(set(numbers))
    assert numbers == list(range(1, 7))


def test_lock_is_scoped_per_entity():
    provider = InProcessLockProvider()
    first = lock_key("posts", 1)
    other = lock_key("posts", 2)

    assert first == "rewind-version-lock-posts-1"
    assert provider.acquire(first, 0.1) is True
    assert provider.acquire(first, 0.05) is False
    assert provider.acquire(other, 0.05) is True

    provider.release(first)
    provider.release(other)
    assert provider.acquire(first, 0.05) is True
    provider.release(first)


def test_hold_raises_on_timeout():
    provider = InProcessLockProvider()
    key = lock_key("posts", 1)
    provider.acquire(key, 0.1)

    with pytest.raises(LockAcquisitionTimeout) as exc_info:
        with hold(provider, key, 0.05):
            pass

    assert exc_info.value.key == key
    provider.release(key)


def test_lock_entries_are_released_after_use():
    provider = InProcessLockProvider()
    first = lock_key("posts", 1)

    assert provider.acquire(first, 0.1) is True
    assert provider.acquire(first, 0.05) is False
    assert provider.active_keys() == 1

    provider.release(first)
    with hold(provider, lock_key("posts", 2), 0.1):
        assert provider.active_keys() == 1
    assert provider.active_keys() == 0


def test_recording_many_entities_leaves_no_lock_entries(db, recorder):
    for n in range(50):
        db.add(Post(user_id=1, title=f"post-{n}", body="B"))
        db.commit()

    assert recorder.locks.active_keys() == 0
