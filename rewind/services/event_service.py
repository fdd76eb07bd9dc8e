"""버전 생성 전/후 알림을 외부 구독자에게 전달합니다."""

import logging
from typing import Callable, List

logger = logging.getLogger(__name__)

VersionCreatedHandler = Callable[[object, object], None]
VersionCreatingHandler = Callable[[object, object], None]


class VersionEvents:
    def __init__(self):
        self._handlers: List[VersionCreatedHandler] = []
        self._creating_handlers: List[VersionCreatingHandler] = []

    def subscribe(self, handler: VersionCreatedHandler) -> VersionCreatedHandler:
        if handler not in self._handlers:
            self._handlers.append(handler)
        return handler

    def unsubscribe(self, handler: VersionCreatedHandler) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    def subscribe_creating(self, handler: VersionCreatingHandler) -> VersionCreatingHandler:
        """버전 레코드를 쓰기 직전에 (entity, mutation)으로 호출될 핸들러를 등록한다."""
        if handler not in self._creating_handlers:
            self._creating_handlers.append(handler)
        return handler

    def unsubscribe_creating(self, handler: VersionCreatingHandler) -> None:
        if handler in self._creating_handlers:
            self._creating_handlers.remove(handler)

    def version_creating(self, entity, mutation) -> None:
        self._dispatch("version_creating", self._creating_handlers, entity, mutation)

    def version_created(self, entity, record) -> None:
        self._dispatch("version_created", self._handlers, entity, record)

    @staticmethod
    def _dispatch(name: str, handlers, entity, payload) -> None:
        for handler in list(handlers):
            try:
                handler(entity, payload)
            except Exception as exc:
                logger.warning("[rewind] %s handler %r failed: %s", name, handler, exc)


version_events = VersionEvents()
