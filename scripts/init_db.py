"""Initialize the database - creates version tables and optional pointer columns.

Usage:
    python scripts/init_db.py                 # create rewind_versions (and any mapped tables)
    python scripts/init_db.py posts templates # also add current_version to existing tables
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from rewind.config import settings
from rewind.database import engine, init_schema
from rewind.utils.schema_sync import add_version_pointer_column
import rewind.models  # noqa: F401 - registers RewindVersion


def init_db(tables):
    print("Creating version tables...")
    init_schema(engine)
    for table in tables:
        if add_version_pointer_column(engine, table, settings.VERSION_COLUMN):
            print(f"Added {settings.VERSION_COLUMN} to {table}.")
        else:
            print(f"{table} already has {settings.VERSION_COLUMN}.")
    print("Database initialized successfully.")


if __name__ == "__main__":
    init_db(sys.argv[1:])
