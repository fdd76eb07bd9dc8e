"""SQLAlchemy 세션 이벤트에 버전 기록 훅(afterSave/afterRemove)을 연결합니다."""

import logging
from typing import Dict, List

from sqlalchemy import event
from sqlalchemy.orm import Session

from rewind.models.mixins import Rewindable
from rewind.services.recorder_service import PendingMutation, PurgeRequest, VersionRecorder

logger = logging.getLogger(__name__)

PENDING_KEY = "rewind_pending"
PURGE_KEY = "rewind_purges"
ORIGINALS_KEY = "rewind_originals"


def _tracked(objects) -> List[Rewindable]:
    return [obj for obj in objects if isinstance(obj, Rewindable) and not obj.rewind_events_suppressed]


class VersionTrackingListener:
    """세션 flush/commit 시점에 Rewindable 엔티티의 변경을 VersionRecorder로 전달한다.

    ``install`` 대상은 Session 클래스, sessionmaker, 세션 인스턴스 모두 가능하다.
    """

    def __init__(self, recorder: VersionRecorder):
        self.recorder = recorder
        self._hooks = (
            ("before_flush", self.before_flush),
            ("after_flush", self.after_flush),
            ("before_commit", self.before_commit),
            ("after_commit", self.after_commit),
            ("after_rollback", self.after_rollback),
        )

    @property
    def config(self):
        return self.recorder.config

    def install(self, target=Session) -> "VersionTrackingListener":
        for name, fn in self._hooks:
            if not event.contains(target, name, fn):
                event.listen(target, name, fn)
        return self

    def remove(self, target=Session) -> None:
        for name, fn in self._hooks:
            if event.contains(target, name, fn):
                event.remove(target, name, fn)

    # ------------------------------------------------------------------
    # session state
    # ------------------------------------------------------------------
    @staticmethod
    def _pending(session: Session) -> List[PendingMutation]:
        return session.info.setdefault(PENDING_KEY, [])

    @staticmethod
    def _purges(session: Session) -> List[PurgeRequest]:
        return session.info.setdefault(PURGE_KEY, [])

    @staticmethod
    def _originals(session: Session) -> Dict[int, dict]:
        return session.info.setdefault(ORIGINALS_KEY, {})

    @staticmethod
    def _discard(session: Session) -> None:
        for key in (PENDING_KEY, PURGE_KEY, ORIGINALS_KEY):
            session.info.pop(key, None)

    # ------------------------------------------------------------------
    # hooks
    # ------------------------------------------------------------------
    def before_flush(self, session: Session, flush_context, instances) -> None:
        originals = self._originals(session)
        for obj in _tracked(session.dirty):
            names = obj.unloaded_original_names(self.config)
            if names:
                loaded = obj.load_committed_values(session, names)
                originals.setdefault(id(obj), {}).update(loaded)

    def after_flush(self, session: Session, flush_context) -> None:
        # flush 직후에도 attribute history는 아직 초기화되지 않은 상태다.
        originals = self._originals(session)
        pending = self._pending(session)

        for obj in _tracked(session.new):
            mutation = self.recorder.capture(obj, created=True)
            if mutation is not None:
                pending.append(mutation)

        for obj in _tracked(session.dirty):
            if obj in session.deleted:
                continue
            mutation = self.recorder.capture(obj, original_values=originals.pop(id(obj), None))
            if mutation is not None:
                pending.append(mutation)

        for obj in _tracked(session.deleted):
            entity_type, entity_id = obj.version_identity()
            self._purges(session).append(PurgeRequest(entity_type=entity_type, entity_id=entity_id))

        originals.clear()

    def before_commit(self, session: Session) -> None:
        if not self.config.is_transactional:
            return
        session.flush()
        self._drain(session)

    def after_commit(self, session: Session) -> None:
        if self.config.is_transactional:
            self._discard(session)
            return
        # 호스트 트랜잭션은 이미 커밋되었으므로 기록은 별도 세션에서 수행된다.
        self._drain(session)

    def after_rollback(self, session: Session) -> None:
        if session.info.get(PENDING_KEY) or session.info.get(PURGE_KEY):
            logger.debug("[rewind] discarding pending version work after rollback")
        self._discard(session)

    def _drain(self, session: Session) -> None:
        pending = session.info.pop(PENDING_KEY, [])
        purges = session.info.pop(PURGE_KEY, [])
        session.info.pop(ORIGINALS_KEY, None)

        for mutation in pending:
            self.recorder.record(session, mutation)
        for request in purges:
            self.recorder.purge(session, request.entity_type, request.entity_id)
