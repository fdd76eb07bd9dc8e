from pathlib import Path
from uuid import uuid4

import pytest
from sqlalchemy import Column, Index, Integer, MetaData, String, Table, create_engine, inspect

from rewind.database import init_schema
from rewind.utils.schema_sync import add_version_pointer_column, sync_missing_schema_objects


@pytest.fixture
def temp_engine():
    db_path = Path(f"./schema_sync_{uuid4().hex}.db").resolve()
    engine = create_engine(f"sqlite:///{db_path}")
    yield engine
    engine.dispose()
    if db_path.exists():
        db_path.unlink()


def _create_posts_table(engine):
    metadata = MetaData()
    Table(
        "legacy_posts",
        metadata,
        Column("id", Integer, primary_key=True),
        Column("title", String(100), nullable=False),
    )
    metadata.create_all(engine)


def test_sync_missing_schema_objects_adds_column_and_index(temp_engine):
    _create_posts_table(temp_engine)

    target_metadata = MetaData()
    table = Table(
        "legacy_posts",
        target_metadata,
        Column("id", Integer, primary_key=True),
        Column("title", String(100), nullable=False),
        Column("current_version", Integer, nullable=True),
    )
    Index("idx_legacy_posts_title", table.c.title)

    sync_missing_schema_objects(temp_engine, target_metadata)

    inspector = inspect(temp_engine)
    column_names = {row["name"] for row in inspector.get_columns("legacy_posts")}
    index_names = {row.get("name") for row in inspector.get_indexes("legacy_posts")}

    assert "current_version" in column_names
    assert "idx_legacy_posts_title" in index_names


def test_add_version_pointer_column(temp_engine):
    _create_posts_table(temp_engine)

    assert add_version_pointer_column(temp_engine, "legacy_posts") is True
    assert add_version_pointer_column(temp_engine, "legacy_posts") is False

    columns = {row["name"]: row for row in inspect(temp_engine).get_columns("legacy_posts")}
    assert columns["current_version"]["nullable"] is True


def test_add_version_pointer_column_requires_table(temp_engine):
    with pytest.raises(ValueError):
        add_version_pointer_column(temp_engine, "missing_table")


def test_init_schema_creates_version_table(temp_engine):
    init_schema(temp_engine)

    inspector = inspect(temp_engine)
    assert "rewind_versions" in inspector.get_table_names()
    index_names = {row.get("name") for row in inspector.get_indexes("rewind_versions")}
    assert "idx_rewind_version_entity" in index_names
