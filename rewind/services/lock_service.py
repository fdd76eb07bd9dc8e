"""엔티티 단위로 버전 기록을 직렬화하기 위한 잠금 제공자입니다."""

import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Protocol

from rewind.exceptions import LockAcquisitionTimeout


def lock_key(entity_type: str, entity_id) -> str:
    return f"rewind-version-lock-{entity_type}-{entity_id}"


class LockProvider(Protocol):
    def acquire(self, key: str, timeout: float) -> bool: ...

    def release(self, key: str) -> None: ...


class InProcessLockProvider:
    """단일 프로세스용 잠금. 다중 프로세스 배포에서는 분산 잠금 구현으로 교체한다.

    키별 잠금은 보유 중이거나 대기 중인 스레드가 있는 동안만 유지된다.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}
        self._users: Dict[str, int] = {}

    def _enter(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            self._users[key] = self._users.get(key, 0) + 1
            return lock

    def _leave(self, key: str) -> None:
        # _guard를 잡은 상태에서 호출한다.
        remaining = self._users.get(key, 0) - 1
        if remaining > 0:
            self._users[key] = remaining
        else:
            self._users.pop(key, None)
            self._locks.pop(key, None)

    def acquire(self, key: str, timeout: float) -> bool:
        lock = self._enter(key)
        if lock.acquire(timeout=timeout):
            return True
        with self._guard:
            self._leave(key)
        return False

    def release(self, key: str) -> None:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None or not lock.locked():
                return
            lock.release()
            self._leave(key)

    def active_keys(self) -> int:
        with self._guard:
            return len(self._locks)


@contextmanager
def hold(provider: LockProvider, key: str, timeout: float) -> Iterator[None]:
    if not provider.acquire(key, timeout):
        raise LockAcquisitionTimeout(key, timeout)
    try:
        yield
    finally:
        provider.release(key)


default_lock_provider = InProcessLockProvider()
