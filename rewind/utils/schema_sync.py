"""런타임 스키마 동기화 유틸리티."""

from __future__ import annotations

from sqlalchemy import Column, Integer, MetaData, Table, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.schema import CreateColumn, CreateIndex


def sync_missing_schema_objects(engine: Engine, metadata: MetaData) -> None:
    """모델 메타데이터 기준으로 누락된 컬럼/인덱스를 DB에 추가한다."""
    inspector = inspect(engine)
    existing_tables = set(inspector.get_table_names())
    preparer = engine.dialect.identifier_preparer

    with engine.begin() as conn:
        for table in metadata.sorted_tables:
            if table.name not in existing_tables:
                continue

            existing_columns = {
                str(row.get("name"))
                for row in inspector.get_columns(table.name)
                if row.get("name")
            }
            table_sql = preparer.format_table(table)

            for column in table.columns:
                if column.name in existing_columns:
                    continue
                column_sql = str(CreateColumn(column).compile(dialect=engine.dialect)).strip()
                conn.execute(text(f"ALTER TABLE {table_sql} ADD COLUMN {column_sql}"))

            existing_index_names = {
                str(row.get("name"))
                for row in inspector.get_indexes(table.name)
                if row.get("name")
            }
            for index in table.indexes:
                if not index.name or index.name in existing_index_names:
                    continue
                conn.execute(CreateIndex(index))


def add_version_pointer_column(engine: Engine, table_name: str, column_name: str = "current_version") -> bool:
    """버전 포인터 컬럼이 없는 기존 테이블에 nullable 정수 컬럼을 추가한다."""
    inspector = inspect(engine)
    if table_name not in set(inspector.get_table_names()):
        raise ValueError(f"Table '{table_name}' does not exist.")

    existing_columns = {str(row.get("name")) for row in inspector.get_columns(table_name)}
    if column_name in existing_columns:
        return False

    preparer = engine.dialect.identifier_preparer
    pointer = Table(table_name, MetaData(), Column(column_name, Integer, nullable=True)).c[column_name]
    column_sql = str(CreateColumn(pointer).compile(dialect=engine.dialect)).strip()
    with engine.begin() as conn:
        conn.execute(text(f"ALTER TABLE {preparer.quote(table_name)} ADD COLUMN {column_sql}"))
    return True
