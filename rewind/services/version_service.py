"""버전 레코드 저장/조회 공용 기능을 제공하는 도메인 서비스입니다."""

import importlib
from typing import Any, Dict, List, Optional

from sqlalchemy import func, inspect as sa_inspect
from sqlalchemy.orm import Session

from rewind.config import Settings, settings as default_settings
from rewind.exceptions import InvalidConfiguration, VersionNotFound
from rewind.schemas.version import VersionRecordOut

REQUIRED_COLUMNS = (
    "entity_type",
    "entity_id",
    "version",
    "change_type",
    "old_values",
    "new_values",
    "is_snapshot",
    "actor_id",
    "created_at",
)


class VersionStore:
    """엔티티별 버전 레코드에 대한 append-only 저장소."""

    def __init__(self, model):
        self.model = model

    def _entity_query(self, db: Session, entity_type: str, entity_id: int):
        return db.query(self.model).filter(
            self.model.entity_type == entity_type,
            self.model.entity_id == entity_id,
        )

    def insert(
        self,
        db: Session,
        *,
        entity_type: str,
        entity_id: int,
        version: int,
        old_values: Dict[str, Any],
        new_values: Dict[str, Any],
        is_snapshot: bool,
        change_type: str = "update",
        actor_id: Optional[int] = None,
    ):
        row = self.model(
            entity_type=entity_type,
            entity_id=entity_id,
            version=version,
            change_type=change_type,
            old_values=old_values,
            new_values=new_values,
            is_snapshot=is_snapshot,
            actor_id=actor_id,
        )
        db.add(row)
        db.flush()
        return row

    def max_version(self, db: Session, *, entity_type: str, entity_id: int) -> int:
        current_max = (
            db.query(func.max(self.model.version))
            .filter(
                self.model.entity_type == entity_type,
                self.model.entity_id == entity_id,
            )
            .scalar()
        )
        return current_max or 0

    def min_version(self, db: Session, *, entity_type: str, entity_id: int) -> int:
        current_min = (
            db.query(func.min(self.model.version))
            .filter(
                self.model.entity_type == entity_type,
                self.model.entity_id == entity_id,
            )
            .scalar()
        )
        return current_min or 0

    def has_versions(self, db: Session, *, entity_type: str, entity_id: int) -> bool:
        return self._entity_query(db, entity_type, entity_id).first() is not None

    def find_by_version(self, db: Session, *, entity_type: str, entity_id: int, version: int):
        return (
            self._entity_query(db, entity_type, entity_id)
            .filter(self.model.version == version)
            .first()
        )

    def get_version(self, db: Session, *, entity_type: str, entity_id: int, version: int):
        row = self.find_by_version(db, entity_type=entity_type, entity_id=entity_id, version=version)
        if not row:
            raise VersionNotFound(entity_type, entity_id, version)
        return row

    def all_for_entity(self, db: Session, *, entity_type: str, entity_id: int) -> List:
        return (
            self._entity_query(db, entity_type, entity_id)
            .order_by(self.model.version.asc())
            .all()
        )

    def list_versions(self, db: Session, *, entity_type: str, entity_id: int) -> List:
        return (
            self._entity_query(db, entity_type, entity_id)
            .order_by(self.model.version.desc())
            .all()
        )

    def delete_all_for_entity(self, db: Session, *, entity_type: str, entity_id: int) -> int:
        return self._entity_query(db, entity_type, entity_id).delete(synchronize_session=False)

    @staticmethod
    def to_response(row) -> Dict[str, Any]:
        return VersionRecordOut.model_validate(row).model_dump()


def _import_model(path: str):
    module_name, _, attr = path.rpartition(".")
    if not module_name:
        raise InvalidConfiguration.model_is_not_valid(path, "not a dotted import path")
    try:
        module = importlib.import_module(module_name)
        return getattr(module, attr)
    except (ImportError, AttributeError) as exc:
        raise InvalidConfiguration.model_is_not_valid(path, str(exc)) from exc


def resolve_version_model(config: Optional[Settings] = None):
    config = config or default_settings
    model = _import_model(config.VERSION_MODEL)
    if not isinstance(model, type):
        raise InvalidConfiguration.model_is_not_valid(config.VERSION_MODEL, "not a class")
    mapper = sa_inspect(model, raiseerr=False)
    if mapper is None:
        raise InvalidConfiguration.model_is_not_valid(config.VERSION_MODEL, "not a mapped SQLAlchemy model")
    columns = {attr.key for attr in mapper.column_attrs}
    missing = [name for name in REQUIRED_COLUMNS if name not in columns]
    if missing:
        raise InvalidConfiguration.model_is_not_valid(
            config.VERSION_MODEL, f"missing columns: {', '.join(missing)}"
        )
    return model


def build_version_store(config: Optional[Settings] = None) -> VersionStore:
    return VersionStore(resolve_version_model(config))
