"""환경 변수 기반 버전 추적 설정을 중앙에서 관리합니다."""

from pathlib import Path
from typing import Dict, List, Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./rewind.db"

    # 스냅샷 주기: N번째 버전마다 전체 속성을 저장한다.
    SNAPSHOT_INTERVAL: int = 10
    # undo/redo/goto 자체를 새 버전으로 기록할지 여부 (모델별 override 가능)
    RECORD_REWIND_ACTIONS: bool = False
    TRACK_ACTOR: bool = True
    TRACKS_ALL_BY_DEFAULT: bool = True
    # entity_type -> 추가 제외 속성 목록
    EXCLUDED_ATTRIBUTES: Dict[str, List[str]] = {}

    VERSION_COLUMN: str = "current_version"
    VERSION_MODEL: str = "rewind.models.version.RewindVersion"

    # Recording lock
    LOCK_TIMEOUT_SECONDS: float = 10.0
    # advisory: 커밋 이후 별도 트랜잭션에서 기록 (실패 시 경고만 남김)
    # transactional: 호스트 트랜잭션 안에서 기록 (실패 시 커밋 전체 중단)
    RECORDING_MODE: Literal["advisory", "transactional"] = "advisory"

    @field_validator("SNAPSHOT_INTERVAL")
    @classmethod
    def _positive_interval(cls, value: int) -> int:
        if value < 1:
            raise ValueError("SNAPSHOT_INTERVAL must be a positive integer")
        return value

    @field_validator("LOCK_TIMEOUT_SECONDS")
    @classmethod
    def _positive_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("LOCK_TIMEOUT_SECONDS must be greater than zero")
        return value

    def excluded_for(self, entity_type: str) -> List[str]:
        return list(self.EXCLUDED_ATTRIBUTES.get(entity_type, []))

    @property
    def is_transactional(self) -> bool:
        return self.RECORDING_MODE == "transactional"

    class Config:
        env_prefix = "REWIND_"
        env_file = str(Path(__file__).resolve().parents[1] / ".env")
        extra = "ignore"


settings = Settings()
