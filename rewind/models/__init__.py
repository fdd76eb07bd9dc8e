"""SQLAlchemy 모델 패키지 초기화 모듈입니다."""

from rewind.models.mixins import Rewindable, SoftDeleteMixin, Versionable
from rewind.models.version import RewindVersion

__all__ = [
    "Rewindable", "SoftDeleteMixin", "Versionable",
    "RewindVersion",
]
