"""undo/redo/goto/clone 등 엔티티를 과거 버전으로 이동시키는 도메인 서비스입니다."""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from rewind.config import Settings, settings as default_settings
from rewind.exceptions import MissingVersionPointerColumn, NotVersionTracked
from rewind.models.mixins import DEFAULT_EXCLUDED_ATTRIBUTES, Versionable
from rewind.schemas.version import ApproachMethod, ApproachPlan
from rewind.services import approach_service
from rewind.services.reconstruction_service import build_attributes
from rewind.services.recorder_service import VersionRecorder
from rewind.services.version_service import VersionStore
from rewind.utils.serialization import decode_attributes

logger = logging.getLogger(__name__)

SINGLE_STEP = ApproachPlan(method=ApproachMethod.DIRECT, cost=1)


class RewindManager:
    def __init__(
        self,
        config: Optional[Settings] = None,
        recorder: Optional[VersionRecorder] = None,
        store: Optional[VersionStore] = None,
    ):
        self.config = config or default_settings
        self.recorder = recorder or VersionRecorder(self.config, store=store)
        self.store = store or self.recorder.store

    # ------------------------------------------------------------------
    # guards / lookups
    # ------------------------------------------------------------------
    def _assert_rewindable(self, entity, require_pointer: bool = True) -> None:
        if not isinstance(entity, Versionable):
            raise NotVersionTracked(entity)
        if require_pointer and not entity.has_version_pointer_column(self.config):
            raise MissingVersionPointerColumn(entity, self.config.VERSION_COLUMN)

    def _versions(self, db: Session, entity) -> List:
        entity_type, entity_id = entity.version_identity()
        return self.store.all_for_entity(db, entity_type=entity_type, entity_id=entity_id)

    def current_version(self, db: Session, entity) -> int:
        """pointer 컬럼 값, 없으면 가장 높은 버전 번호."""
        pointer = entity.get_version_pointer(self.config)
        if pointer is not None:
            return pointer
        entity_type, entity_id = entity.version_identity()
        return self.store.max_version(db, entity_type=entity_type, entity_id=entity_id)

    def _exists(self, db: Session, entity, version: int) -> bool:
        entity_type, entity_id = entity.version_identity()
        return (
            self.store.find_by_version(db, entity_type=entity_type, entity_id=entity_id, version=version)
            is not None
        )

    def _require(self, db: Session, entity, version: int) -> None:
        entity_type, entity_id = entity.version_identity()
        self.store.get_version(db, entity_type=entity_type, entity_id=entity_id, version=version)

    def list_versions(self, db: Session, entity) -> List[Dict[str, Any]]:
        self._assert_rewindable(entity, require_pointer=False)
        entity_type, entity_id = entity.version_identity()
        rows = self.store.list_versions(db, entity_type=entity_type, entity_id=entity_id)
        return [self.store.to_response(row) for row in rows]

    # ------------------------------------------------------------------
    # navigation
    # ------------------------------------------------------------------
    def undo(self, db: Session, entity) -> bool:
        self._assert_rewindable(entity)
        current = self.current_version(db, entity)
        if current <= 1:
            return False
        target = current - 1
        if not self._exists(db, entity, target):
            return False
        return self._move(db, entity, current, target, SINGLE_STEP)

    def redo(self, db: Session, entity) -> bool:
        self._assert_rewindable(entity)
        current = self.current_version(db, entity)
        target = current + 1
        if not self._exists(db, entity, target):
            return False
        return self._move(db, entity, current, target, SINGLE_STEP)

    def rewind(self, db: Session, entity, steps: int = 1) -> bool:
        self._assert_rewindable(entity)
        entity_type, entity_id = entity.version_identity()
        lowest = self.store.min_version(db, entity_type=entity_type, entity_id=entity_id)
        target = max(self.current_version(db, entity) - steps, lowest)
        if not self._exists(db, entity, target):
            target = lowest
        return self._go(db, entity, target)

    def fast_forward(self, db: Session, entity, steps: int = 1) -> bool:
        self._assert_rewindable(entity)
        entity_type, entity_id = entity.version_identity()
        highest = self.store.max_version(db, entity_type=entity_type, entity_id=entity_id)
        target = min(self.current_version(db, entity) + steps, highest)
        if not self._exists(db, entity, target):
            target = highest
        return self._go(db, entity, target)

    def go_to(self, db: Session, entity, version: int) -> bool:
        self._assert_rewindable(entity)
        self._require(db, entity, version)
        return self._go(db, entity, version)

    def _go(self, db: Session, entity, target: int) -> bool:
        if target < 1:
            return False
        current = self.current_version(db, entity)
        approach = approach_service.plan(self._versions(db, entity), current, target)
        if approach.method == ApproachMethod.NONE:
            return False
        return self._move(db, entity, current, target, approach)

    def _move(self, db: Session, entity, current: int, target: int, approach: ApproachPlan) -> bool:
        attributes = build_attributes(entity, approach, current, target, self._versions(db, entity), self.config)
        before = entity.current_attribute_values(self.config)

        with entity.suppress_version_events():
            entity.apply_attributes(attributes, self.config)
            entity.set_version_pointer(target, self.config)
            entity.persist(db)

        entity_type, entity_id = entity.version_identity()
        logger.info(
            "[rewind] moved %s#%s from v%s to v%s via %s",
            entity_type,
            entity_id,
            current,
            target,
            approach.method.value,
        )

        if entity.should_record_rewinds(self.config):
            mutation = self.recorder.capture(entity, original_values=before, change_type="rewind")
            self.recorder.record(db, mutation)
            db.commit()
        return True

    # ------------------------------------------------------------------
    # read-only / clone
    # ------------------------------------------------------------------
    def _attributes_for(self, db: Session, entity, version: int) -> Dict[str, Any]:
        self._require(db, entity, version)
        versions = self._versions(db, entity)
        current = self.current_version(db, entity)
        approach = approach_service.plan(versions, current, version)
        return build_attributes(entity, approach, current, version, versions, self.config)

    def attributes_at(self, db: Session, entity, version: int) -> Dict[str, Any]:
        """version 시점의 추적 속성 값을 계산한다. 엔티티와 저장소는 변경하지 않는다."""
        self._assert_rewindable(entity, require_pointer=False)
        return decode_attributes(type(entity), self._attributes_for(db, entity, version))

    def clone_at(self, db: Session, entity, version: int):
        """version 시점 속성으로 새 엔티티를 만든다. 새 엔티티의 버전 이력은 v1부터 시작한다."""
        self._assert_rewindable(entity, require_pointer=False)
        attributes = self._attributes_for(db, entity, version)

        clone = self._replicate(entity)
        clone.apply_attributes(attributes, self.config)
        db.add(clone)
        db.commit()
        db.refresh(clone)
        self.recorder.init_version(db, clone)

        entity_type, entity_id = entity.version_identity()
        logger.info(
            "[rewind] cloned %s#%s at v%s as #%s",
            entity_type,
            entity_id,
            version,
            clone.version_identity()[1],
        )
        return clone

    def _replicate(self, entity):
        skipped = set(entity.primary_key_attributes())
        skipped.update(DEFAULT_EXCLUDED_ATTRIBUTES)
        skipped.add(self.config.VERSION_COLUMN)
        cls = type(entity)
        clone = cls()
        for key in entity.column_keys():
            if key not in skipped:
                setattr(clone, key, getattr(entity, key))
        return clone
