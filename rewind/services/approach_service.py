"""목표 버전까지 가장 적은 diff 재생으로 도달하는 경로를 계산합니다."""

import logging
from typing import Iterable, List, Optional

from rewind.schemas.version import ApproachMethod, ApproachPlan, VersionSummary

logger = logging.getLogger(__name__)


def _summaries(versions: Iterable) -> List[VersionSummary]:
    return [VersionSummary.model_validate(v) for v in versions]


def count_partial_diffs(versions: List[VersionSummary], from_version: int, to_version: int) -> int:
    """from_version 초과, to_version 이하 구간의 레코드 수."""
    if to_version <= from_version:
        return 0
    return sum(1 for v in versions if from_version < v.version <= to_version)


def nearest_snapshot_behind(versions: List[VersionSummary], version: int) -> Optional[VersionSummary]:
    candidates = [v for v in versions if v.is_snapshot and v.version <= version]
    return max(candidates, key=lambda v: v.version, default=None)


def nearest_snapshot_ahead(versions: List[VersionSummary], version: int) -> Optional[VersionSummary]:
    candidates = [v for v in versions if v.is_snapshot and v.version >= version]
    return min(candidates, key=lambda v: v.version, default=None)


def plan(versions: Iterable, current_version: int, target_version: int) -> ApproachPlan:
    """현재 버전에서 목표 버전까지의 복원 전략을 고른다.

    후보는 (1) 현재 상태에서 diff를 직접 재생, (2) 목표 이하의 가장 가까운 스냅샷에서
    앞으로 재생, (3) 목표 이상의 가장 가까운 스냅샷에서 뒤로 재생 세 가지이며,
    스냅샷 점프는 비용 1로 계산한다. 비용이 같으면 direct가 우선한다.
    """
    if current_version == target_version:
        return ApproachPlan(method=ApproachMethod.NONE, cost=0)

    summaries = _summaries(versions)

    candidates = [
        ApproachPlan(
            method=ApproachMethod.DIRECT,
            cost=count_partial_diffs(
                summaries, min(current_version, target_version), max(current_version, target_version)
            ),
        )
    ]

    behind = nearest_snapshot_behind(summaries, target_version)
    if behind is not None:
        candidates.append(
            ApproachPlan(
                method=ApproachMethod.FROM_SNAPSHOT,
                cost=1 + count_partial_diffs(summaries, behind.version, target_version),
                snapshot_version=behind.version,
            )
        )

    ahead = nearest_snapshot_ahead(summaries, target_version)
    if ahead is not None:
        candidates.append(
            ApproachPlan(
                method=ApproachMethod.FROM_SNAPSHOT,
                cost=1 + count_partial_diffs(summaries, target_version, ahead.version),
                snapshot_version=ahead.version,
            )
        )

    # min()은 동일 비용일 때 먼저 나온 후보를 반환한다 (direct -> behind -> ahead)
    best = min(candidates, key=lambda candidate: candidate.cost)
    logger.debug(
        "[rewind] approach %s cost=%s pivot=%s (current=%s target=%s)",
        best.method.value,
        best.cost,
        best.snapshot_version,
        current_version,
        target_version,
    )
    return best
