"""버전 기록 시 작성자(actor) 귀속 정보를 요청 단위로 보관합니다."""

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

_current_actor: ContextVar[Optional[int]] = ContextVar("rewind_current_actor", default=None)


def get_actor() -> Optional[int]:
    return _current_actor.get()


def set_actor(actor_id: Optional[int]) -> None:
    _current_actor.set(actor_id)


@contextmanager
def acting_as(actor_id: Optional[int]) -> Iterator[None]:
    token = _current_actor.set(actor_id)
    try:
        yield
    finally:
        _current_actor.reset(token)
