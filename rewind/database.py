from sqlalchemy import MetaData, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from rewind.config import settings
from rewind.utils.schema_sync import sync_missing_schema_objects

connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(settings.DATABASE_URL, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_schema(bind: Engine = None, metadata: MetaData = None) -> None:
    # 신규 모델 배포 시 누락된 테이블/컬럼을 자동 생성합니다.
    bind = bind or engine
    metadata = metadata or Base.metadata
    metadata.create_all(bind=bind)
    sync_missing_schema_objects(bind, metadata)
