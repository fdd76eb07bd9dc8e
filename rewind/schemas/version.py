"""버전 이력 조회/복원 경로 계산을 위한 Pydantic 스키마입니다."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict


class ApproachMethod(str, Enum):
    NONE = "none"
    DIRECT = "direct"
    FROM_SNAPSHOT = "from_snapshot"


class ApproachPlan(BaseModel):
    method: ApproachMethod
    cost: int
    snapshot_version: Optional[int] = None


class VersionSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    version: int
    is_snapshot: bool = False


class VersionRecordOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    version_id: int
    entity_type: str
    entity_id: int
    version: int
    change_type: str
    old_values: Optional[Dict[str, Any]] = None
    new_values: Optional[Dict[str, Any]] = None
    is_snapshot: bool
    actor_id: Optional[int] = None
    created_at: Optional[datetime] = None
