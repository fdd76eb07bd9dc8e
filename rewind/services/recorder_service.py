"""엔티티 변경 시 버전 레코드(diff/스냅샷/브랜치 스냅샷)를 기록하는 도메인 서비스입니다."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Set

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from rewind.config import Settings, settings as default_settings
from rewind.context import get_actor
from rewind.exceptions import LockAcquisitionTimeout
from rewind.models.mixins import SoftDeleteMixin
from rewind.services.event_service import VersionEvents, version_events
from rewind.services.lock_service import LockProvider, default_lock_provider, hold, lock_key
from rewind.services.reconstruction_service import rebuild_head
from rewind.services.version_service import VersionStore, build_version_store

logger = logging.getLogger(__name__)


@dataclass
class PendingMutation:
    entity: Any
    entity_type: str
    entity_id: Any
    current_values: Dict[str, Any]
    original_values: Dict[str, Any] = field(default_factory=dict)
    changed: Set[str] = field(default_factory=set)
    created: bool = False
    removed: bool = False
    change_type: str = "update"
    actor_id: Optional[int] = None

    @property
    def has_changes(self) -> bool:
        return bool(self.changed) or self.created or self.removed


@dataclass
class PurgeRequest:
    entity_type: str
    entity_id: Any


class VersionRecorder:
    def __init__(
        self,
        config: Optional[Settings] = None,
        store: Optional[VersionStore] = None,
        locks: Optional[LockProvider] = None,
        events: Optional[VersionEvents] = None,
    ):
        self.config = config or default_settings
        self.store = store or build_version_store(self.config)
        self.locks = locks or default_lock_provider
        self.events = events or version_events

    # ------------------------------------------------------------------
    # capture
    # ------------------------------------------------------------------
    def capture(
        self,
        entity,
        *,
        created: bool = False,
        removed: bool = False,
        original_values: Optional[Dict[str, Any]] = None,
        change_type: Optional[str] = None,
    ) -> Optional[PendingMutation]:
        """진행 중인 변경을 기록 가능한 형태로 고정한다. 기록할 변경이 없으면 None."""
        tracked = entity.tracked_attributes(self.config)
        if not tracked:
            return None

        entity_type, entity_id = entity.version_identity()
        current = entity.current_attribute_values(self.config)

        if created:
            originals = {key: None for key in tracked}
            changed = set(tracked)
        else:
            originals = {key: entity.original_value(key) for key in tracked}
            originals.update(original_values or {})
            candidates = entity.changed_attribute_names(self.config) | set(original_values or {})
            changed = {key for key in candidates if key in current and originals.get(key) != current.get(key)}

        kind = change_type or ("create" if created else "update")
        if isinstance(entity, SoftDeleteMixin) and "deleted_at" in changed:
            soft_deleted = current.get("deleted_at") is not None
            removed = removed or soft_deleted
            if change_type is None:
                kind = "delete" if soft_deleted else "restore"

        mutation = PendingMutation(
            entity=entity,
            entity_type=entity_type,
            entity_id=entity_id,
            current_values=current,
            original_values=originals,
            changed=changed,
            created=created,
            removed=removed,
            change_type=kind,
            actor_id=get_actor() if self.config.TRACK_ACTOR else None,
        )
        if not mutation.has_changes:
            logger.debug("[rewind] nothing to record for %s#%s", entity_type, entity_id)
            return None
        return mutation

    # ------------------------------------------------------------------
    # record
    # ------------------------------------------------------------------
    def record(self, db: Session, mutation: Optional[PendingMutation]):
        """버전 레코드 하나를 기록하고 엔티티의 current_version을 갱신한다.

        advisory 모드에서는 별도 트랜잭션으로 기록하며 잠금 실패/DB 오류는 경고만 남긴다.
        transactional 모드에서는 db 세션 안에서 기록하고 실패를 그대로 전파한다.
        """
        if mutation is None or not mutation.has_changes:
            return None

        self.events.version_creating(mutation.entity, mutation)

        key = lock_key(mutation.entity_type, mutation.entity_id)
        timeout = self.config.LOCK_TIMEOUT_SECONDS
        if not self.locks.acquire(key, timeout):
            if self.config.is_transactional:
                raise LockAcquisitionTimeout(key, timeout)
            logger.warning(
                "[rewind] could not acquire lock to record version for %s#%s",
                mutation.entity_type,
                mutation.entity_id,
            )
            return None

        try:
            if self.config.is_transactional:
                record = self._write_version(db, mutation)
            else:
                record = self._write_in_own_session(db, mutation)
        finally:
            self.locks.release(key)

        if record is None:
            return None

        self._sync_pointer(mutation.entity, record.version)
        logger.info(
            "[rewind] recorded %s#%s v%s (%s)",
            mutation.entity_type,
            mutation.entity_id,
            record.version,
            "snapshot" if record.is_snapshot else "diff",
        )
        self.events.version_created(mutation.entity, record)
        return record

    def _write_in_own_session(self, db: Session, mutation: PendingMutation):
        own = Session(bind=db.get_bind(), expire_on_commit=False)
        try:
            record = self._write_version(own, mutation)
            own.commit()
            return record
        except SQLAlchemyError as exc:
            own.rollback()
            logger.warning(
                "[rewind] failed to record version for %s#%s: %s",
                mutation.entity_type,
                mutation.entity_id,
                exc,
            )
            return None
        finally:
            own.close()

    def _write_version(self, db: Session, mutation: PendingMutation):
        versions = self.store.all_for_entity(db, entity_type=mutation.entity_type, entity_id=mutation.entity_id)
        next_version = max((v.version for v in versions), default=0) + 1

        old_values: Dict[str, Any] = {}
        is_snapshot = False

        # current_version이 head가 아니면 (되감은 뒤 수정) head 상태를 재구성해 old_values로 삼고
        # 이 버전을 스냅샷으로 강제한다.
        pointer = self._read_pointer(db, mutation)
        if pointer and pointer != next_version - 1:
            is_snapshot = True
            head = rebuild_head(versions)
            old_values = {key: value for key, value in head.items() if key in mutation.current_values}

        new_values: Dict[str, Any] = {}
        for attribute, value in mutation.current_values.items():
            if (
                attribute in old_values
                or mutation.created
                or mutation.removed
                or attribute in mutation.changed
            ):
                if attribute not in old_values:
                    old_values[attribute] = None if mutation.created else mutation.original_values.get(attribute)
                new_values[attribute] = value

        if not old_values and not new_values:
            return None

        if not is_snapshot:
            interval = self.config.SNAPSHOT_INTERVAL
            is_snapshot = next_version == 1 or next_version % interval == 0

        if is_snapshot:
            new_values = dict(mutation.current_values)

        record = self.store.insert(
            db,
            entity_type=mutation.entity_type,
            entity_id=mutation.entity_id,
            version=next_version,
            old_values=old_values,
            new_values=new_values,
            is_snapshot=is_snapshot,
            change_type=mutation.change_type,
            actor_id=mutation.actor_id,
        )
        self._write_pointer(db, mutation.entity, mutation.entity_id, next_version)
        return record

    # ------------------------------------------------------------------
    # current_version pointer
    # ------------------------------------------------------------------
    def _pointer_target(self, entity):
        if not entity.has_version_pointer_column(self.config):
            return None
        cls = type(entity)
        pk_name = entity.primary_key_attributes()[0]
        return getattr(cls, self.config.VERSION_COLUMN), getattr(cls, pk_name)

    def _read_pointer(self, db: Session, mutation: PendingMutation) -> Optional[int]:
        target = self._pointer_target(mutation.entity)
        if target is None:
            return None
        pointer_column, pk_column = target
        return db.execute(select(pointer_column).where(pk_column == mutation.entity_id)).scalar()

    def _write_pointer(self, db: Session, entity, entity_id, version: int) -> None:
        # ORM flush를 거치지 않으므로 버전 기록이 재귀적으로 발생하지 않는다.
        if not entity.has_version_pointer_column(self.config):
            return
        cls = type(entity)
        pk_name = entity.primary_key_attributes()[0]
        db.execute(
            update(cls)
            .where(getattr(cls, pk_name) == entity_id)
            .values({self.config.VERSION_COLUMN: version})
            .execution_options(synchronize_session=False)
        )

    def _sync_pointer(self, entity, version: int) -> None:
        if entity.has_version_pointer_column(self.config):
            set_committed_value(entity, self.config.VERSION_COLUMN, version)

    # ------------------------------------------------------------------
    # misc
    # ------------------------------------------------------------------
    def init_version(self, db: Session, entity):
        """버전 이력이 없는 엔티티에 v1 스냅샷을 만든다. 이미 있으면 아무것도 하지 않는다."""
        entity_type, entity_id = entity.version_identity()
        key = lock_key(entity_type, entity_id)
        with hold(self.locks, key, self.config.LOCK_TIMEOUT_SECONDS):
            if self.store.has_versions(db, entity_type=entity_type, entity_id=entity_id):
                return None
            record = self.store.insert(
                db,
                entity_type=entity_type,
                entity_id=entity_id,
                version=1,
                old_values={},
                new_values=entity.current_attribute_values(self.config),
                is_snapshot=True,
                change_type="create",
                actor_id=get_actor() if self.config.TRACK_ACTOR else None,
            )
            self._write_pointer(db, entity, entity_id, 1)
            db.commit()
        self._sync_pointer(entity, 1)
        self.events.version_created(entity, record)
        return record

    def purge(self, db: Session, entity_type: str, entity_id) -> int:
        if self.config.is_transactional:
            return self.store.delete_all_for_entity(db, entity_type=entity_type, entity_id=entity_id)

        own = Session(bind=db.get_bind())
        try:
            deleted = self.store.delete_all_for_entity(own, entity_type=entity_type, entity_id=entity_id)
            own.commit()
        except SQLAlchemyError as exc:
            own.rollback()
            logger.warning("[rewind] failed to purge versions for %s#%s: %s", entity_type, entity_id, exc)
            return 0
        finally:
            own.close()
        logger.info("[rewind] purged %s versions for %s#%s", deleted, entity_type, entity_id)
        return deleted
