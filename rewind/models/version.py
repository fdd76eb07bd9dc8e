"""엔티티의 버전 이력(부분 diff/전체 스냅샷)을 저장하는 SQLAlchemy 모델 정의입니다."""

from sqlalchemy import JSON, Boolean, Column, DateTime, Index, Integer, String, UniqueConstraint
from sqlalchemy.sql import func

from rewind.database import Base


class RewindVersion(Base):
    __tablename__ = "rewind_versions"

    version_id = Column(Integer, primary_key=True, autoincrement=True)
    entity_type = Column(String(100), nullable=False)
    entity_id = Column(Integer, nullable=False)
    version = Column(Integer, nullable=False)
    change_type = Column(String(20), nullable=False, default="update")  # create/update/delete/restore/rewind
    old_values = Column(JSON)
    new_values = Column(JSON)
    is_snapshot = Column(Boolean, nullable=False, default=False)
    actor_id = Column(Integer, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("entity_type", "entity_id", "version", name="uq_rewind_version_entity"),
        Index("idx_rewind_version_entity", "entity_type", "entity_id", "version"),
    )

    def __repr__(self) -> str:
        kind = "snapshot" if self.is_snapshot else "diff"
        return f"<RewindVersion {self.entity_type}#{self.entity_id} v{self.version} {kind}>"
