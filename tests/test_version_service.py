"""버전 레코드 저장소(VersionStore)와 값 직렬화 테스트."""

import enum
import uuid
from datetime import date, datetime, time
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from rewind.exceptions import VersionNotFound
from rewind.utils.serialization import decode_attributes, encode_attributes, to_json_value
from tests.models import Invoice


class Color(enum.Enum):
    RED = "red"


def _insert(store, db, version, is_snapshot=False, entity_id=1):
    return store.insert(
        db,
        entity_type="posts",
        entity_id=entity_id,
        version=version,
        old_values={},
        new_values={"title": f"v{version}"},
        is_snapshot=is_snapshot,
    )


def test_store_queries(db, store):
    for version in (2, 3, 4):
        _insert(store, db, version, is_snapshot=version == 2)
    _insert(store, db, 1, entity_id=2)
    db.commit()

    assert store.max_version(db, entity_type="posts", entity_id=1) == 4
    assert store.min_version(db, entity_type="posts", entity_id=1) == 2
    assert store.max_version(db, entity_type="posts", entity_id=99) == 0
    assert store.has_versions(db, entity_type="posts", entity_id=2) is True
    assert [v.version for v in store.all_for_entity(db, entity_type="posts", entity_id=1)] == [2, 3, 4]
    assert [v.version for v in store.list_versions(db, entity_type="posts", entity_id=1)] == [4, 3, 2]
    assert store.find_by_version(db, entity_type="posts", entity_id=1, version=1) is None
    assert store.get_version(db, entity_type="posts", entity_id=1, version=3).new_values == {"title": "v3"}

    with pytest.raises(VersionNotFound):
        store.get_version(db, entity_type="posts", entity_id=1, version=9)

    assert store.delete_all_for_entity(db, entity_type="posts", entity_id=1) == 3
    db.commit()
    assert store.has_versions(db, entity_type="posts", entity_id=1) is False
    assert store.has_versions(db, entity_type="posts", entity_id=2) is True


def test_version_numbers_are_unique_per_entity(db, store):
    _insert(store, db, 1)
    db.commit()

    with pytest.raises(IntegrityError):
        _insert(store, db, 1)
    db.rollback()


def test_to_response(db, store):
    row = _insert(store, db, 1, is_snapshot=True)
    db.commit()

    data = store.to_response(row)

    assert data["version"] == 1
    assert data["is_snapshot"] is True
    assert data["change_type"] == "update"
    assert data["new_values"] == {"title": "v1"}


def test_values_are_encoded_as_json_safe_types():
    token = uuid.uuid4()
    encoded = encode_attributes(
        {
            "when": datetime(2026, 1, 2, 3, 4, 5),
            "day": date(2026, 1, 2),
            "at": time(9, 30),
            "amount": Decimal("1.10"),
            "token": token,
            "color": Color.RED,
            "tags": ("a", "b"),
            "nested": {"n": Decimal("2")},
            "flag": True,
        }
    )

    assert encoded == {
        "when": "2026-01-02T03:04:05",
        "day": "2026-01-02",
        "at": "09:30:00",
        "amount": "1.10",
        "token": str(token),
        "color": "red",
        "tags": ["a", "b"],
        "nested": {"n": "2"},
        "flag": True,
    }
    assert to_json_value(None) is None


def test_values_are_decoded_by_column_type():
    decoded = decode_attributes(Invoice, {"amount": "12.30", "due_date": "2026-03-01"})

    assert decoded == {"amount": Decimal("12.30"), "due_date": date(2026, 3, 1)}
    assert decode_attributes(Invoice, {"amount": None}) == {"amount": None}


def test_entity_values_are_encoded_for_storage():
    invoice = Invoice(amount=Decimal("12.30"), due_date=date(2026, 3, 1))

    assert invoice.current_attribute_values() == {"amount": "12.30", "due_date": "2026-03-01"}
