"""버전 추적 대상 엔티티가 구현해야 하는 기능 계약(Versionable)과 SQLAlchemy 믹스인입니다."""

from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Protocol, Sequence, Set, Tuple, runtime_checkable

from sqlalchemy import Column, DateTime, inspect as sa_inspect, select
from sqlalchemy.orm import Session

from rewind.config import Settings, settings as default_settings
from rewind.utils.serialization import encode_attributes, from_json_value, to_json_value

DEFAULT_EXCLUDED_ATTRIBUTES = ("created_at", "updated_at")


@runtime_checkable
class Versionable(Protocol):
    def version_identity(self) -> Tuple[str, Any]: ...

    def tracked_attributes(self, config: Optional[Settings] = None) -> List[str]: ...

    def current_attribute_values(self, config: Optional[Settings] = None) -> Dict[str, Any]: ...

    def original_value(self, name: str) -> Any: ...

    def changed_attribute_names(self, config: Optional[Settings] = None) -> Set[str]: ...

    def has_version_pointer_column(self, config: Optional[Settings] = None) -> bool: ...

    def get_version_pointer(self, config: Optional[Settings] = None) -> Optional[int]: ...

    def set_version_pointer(self, version: Optional[int], config: Optional[Settings] = None) -> None: ...

    def apply_attributes(self, values: Dict[str, Any], config: Optional[Settings] = None) -> None: ...

    def persist(self, db: Session) -> None: ...

    def suppress_version_events(self): ...

    def should_record_rewinds(self, config: Optional[Settings] = None) -> bool: ...

    def primary_key_attributes(self) -> List[str]: ...

    def column_keys(self) -> List[str]: ...


class Rewindable:
    """SQLAlchemy 모델에 버전 추적 기능을 부여하는 믹스인.

    모델은 다음 클래스 속성으로 추적 범위를 조정할 수 있다.

    - ``__rewind_type__``: 버전 레코드의 entity_type (기본값: ``__tablename__``)
    - ``__rewind_exclude__``: 추가로 제외할 속성 목록
    - ``__rewindable__``: 추적할 속성 allow-list
    - ``__rewind_all__``: allow-list가 없을 때 전체 속성 추적 여부 (None이면 설정값)
    - ``__rewind_record_rewinds__``: 되감기 동작 자체의 기록 여부 (None이면 설정값)
    """

    __rewind_type__: Optional[str] = None
    __rewind_exclude__: Sequence[str] = ()
    __rewindable__: Optional[Sequence[str]] = None
    __rewind_all__: Optional[bool] = None
    __rewind_record_rewinds__: Optional[bool] = None

    @classmethod
    def rewind_entity_type(cls) -> str:
        return cls.__rewind_type__ or cls.__tablename__

    @classmethod
    def column_keys(cls) -> List[str]:
        return [attr.key for attr in sa_inspect(cls).column_attrs]

    @classmethod
    def primary_key_attributes(cls) -> List[str]:
        mapper = sa_inspect(cls)
        return [mapper.get_property_by_column(column).key for column in mapper.primary_key]

    @classmethod
    def column_for(cls, key: str) -> Column:
        return sa_inspect(cls).column_attrs[key].columns[0]

    def version_identity(self) -> Tuple[str, Any]:
        state = sa_inspect(self)
        # flush 중인 신규 객체는 아직 identity가 없다.
        key = state.identity or state.mapper.primary_key_from_instance(self)
        return self.rewind_entity_type(), key[0]

    def excluded_attributes(self, config: Optional[Settings] = None) -> List[str]:
        config = config or default_settings
        excluded = list(self.primary_key_attributes())
        excluded.extend(DEFAULT_EXCLUDED_ATTRIBUTES)
        excluded.append(config.VERSION_COLUMN)
        excluded.extend(self.__rewind_exclude__)
        excluded.extend(config.excluded_for(self.rewind_entity_type()))
        return excluded

    def tracked_attributes(self, config: Optional[Settings] = None) -> List[str]:
        config = config or default_settings
        excluded = set(self.excluded_attributes(config))
        keys = [key for key in self.column_keys() if key not in excluded]
        if self.__rewindable__ is not None:
            allowed = set(self.__rewindable__)
            return [key for key in keys if key in allowed]
        track_all = self.__rewind_all__ if self.__rewind_all__ is not None else config.TRACKS_ALL_BY_DEFAULT
        return keys if track_all else []

    def current_attribute_values(self, config: Optional[Settings] = None) -> Dict[str, Any]:
        return encode_attributes({key: getattr(self, key) for key in self.tracked_attributes(config)})

    def original_value(self, name: str) -> Any:
        history = sa_inspect(self).attrs[name].history
        if history.deleted:
            return to_json_value(history.deleted[0])
        if history.unchanged:
            return to_json_value(history.unchanged[0])
        return None

    def changed_attribute_names(self, config: Optional[Settings] = None) -> Set[str]:
        state = sa_inspect(self)
        changed = set()
        for key in self.tracked_attributes(config):
            history = state.attrs[key].history
            if not history.has_changes():
                continue
            if history.deleted and history.added and to_json_value(history.deleted[0]) == to_json_value(history.added[0]):
                continue
            changed.add(key)
        return changed

    def unloaded_original_names(self, config: Optional[Settings] = None) -> List[str]:
        # expire 이후 로드 없이 바로 대입된 속성은 이전 값이 history에 남지 않는다.
        state = sa_inspect(self)
        if not state.persistent:
            return []
        names = []
        for key in self.tracked_attributes(config):
            history = state.attrs[key].history
            if history.added and not history.deleted and not history.unchanged:
                names.append(key)
        return names

    def load_committed_values(self, db: Session, names: Sequence[str]) -> Dict[str, Any]:
        if not names:
            return {}
        cls = type(self)
        pk_name = self.primary_key_attributes()[0]
        _, entity_id = self.version_identity()
        row = db.execute(
            select(*[getattr(cls, name) for name in names]).where(getattr(cls, pk_name) == entity_id)
        ).first()
        if row is None:
            return {}
        return encode_attributes(dict(zip(names, row)))

    def has_version_pointer_column(self, config: Optional[Settings] = None) -> bool:
        config = config or default_settings
        return config.VERSION_COLUMN in self.column_keys()

    def get_version_pointer(self, config: Optional[Settings] = None) -> Optional[int]:
        config = config or default_settings
        if not self.has_version_pointer_column(config):
            return None
        return getattr(self, config.VERSION_COLUMN)

    def set_version_pointer(self, version: Optional[int], config: Optional[Settings] = None) -> None:
        config = config or default_settings
        if self.has_version_pointer_column(config):
            setattr(self, config.VERSION_COLUMN, version)

    def apply_attributes(self, values: Dict[str, Any], config: Optional[Settings] = None) -> None:
        tracked = set(self.tracked_attributes(config))
        for key, value in values.items():
            if key not in tracked:
                continue
            setattr(self, key, from_json_value(self.column_for(key), value))

    def persist(self, db: Session) -> None:
        db.add(self)
        db.commit()

    def should_record_rewinds(self, config: Optional[Settings] = None) -> bool:
        config = config or default_settings
        if self.__rewind_record_rewinds__ is not None:
            return bool(self.__rewind_record_rewinds__)
        return config.RECORD_REWIND_ACTIONS

    @property
    def rewind_events_suppressed(self) -> bool:
        return getattr(self, "_rewind_suppress_depth", 0) > 0

    @contextmanager
    def suppress_version_events(self) -> Iterator[None]:
        self._rewind_suppress_depth = getattr(self, "_rewind_suppress_depth", 0) + 1
        try:
            yield
        finally:
            self._rewind_suppress_depth -= 1


class SoftDeleteMixin:
    deleted_at = Column(DateTime, nullable=True)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def soft_delete(self) -> None:
        self.deleted_at = datetime.now().replace(microsecond=0)

    def restore(self) -> None:
        self.deleted_at = None
