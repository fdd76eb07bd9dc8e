"""버전 레코드(diff/스냅샷)를 재생해 특정 버전의 속성 상태를 계산합니다."""

from typing import Any, Dict, Iterable, Optional

from rewind.config import Settings
from rewind.schemas.version import ApproachMethod, ApproachPlan


def _index_by_version(versions: Iterable) -> Dict[int, Any]:
    return {v.version: v for v in versions}


def replay(attributes: Dict[str, Any], versions: Dict[int, Any], current_version: int, target_version: int) -> Dict[str, Any]:
    """current_version 상태의 attributes에 diff를 적용해 target_version 상태를 만든다."""
    result = dict(attributes)
    if current_version > target_version:
        # 역방향: old_values를 덮어쓴다
        for ver in range(current_version, target_version, -1):
            record = versions.get(ver)
            if record is None:
                continue
            result.update(record.old_values or {})
    else:
        for ver in range(current_version + 1, target_version + 1):
            record = versions.get(ver)
            if record is None:
                continue
            result.update(record.new_values or {})
    return result


def build_attributes(
    entity,
    approach: ApproachPlan,
    current_version: int,
    target_version: int,
    versions: Iterable,
    config: Optional[Settings] = None,
) -> Dict[str, Any]:
    """approach 전략에 따라 target_version 시점의 추적 속성 맵을 만든다. 저장소/엔티티는 변경하지 않는다."""
    tracked = entity.tracked_attributes(config)

    if approach.method == ApproachMethod.NONE:
        return entity.current_attribute_values(config)

    by_version = _index_by_version(versions)

    if approach.method == ApproachMethod.FROM_SNAPSHOT:
        snapshot = by_version[approach.snapshot_version]
        base = {key: value for key, value in (snapshot.new_values or {}).items() if key in tracked}
        start = snapshot.version
    else:
        base = entity.current_attribute_values(config)
        start = current_version

    result = replay(base, by_version, start, target_version)
    return {key: value for key, value in result.items() if key in tracked}


def rebuild_head(versions: Iterable) -> Dict[str, Any]:
    """가장 최근 스냅샷에서 출발해 이후 diff를 모두 적용한 head 상태."""
    ordered = sorted(versions, key=lambda v: v.version)
    last_snapshot = None
    for record in ordered:
        if record.is_snapshot:
            last_snapshot = record

    data: Dict[str, Any] = dict(last_snapshot.new_values or {}) if last_snapshot else {}
    since = last_snapshot.version if last_snapshot else 0
    for record in ordered:
        if record.version > since:
            data.update(record.new_values or {})
    return data
