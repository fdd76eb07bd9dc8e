"""버전 레코드(JSON 컬럼)에 저장할 속성 값을 직렬화/역직렬화합니다."""

import enum
import uuid
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Dict

from sqlalchemy import Column


def to_json_value(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    # datetime은 date의 하위 클래스이므로 먼저 처리
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, dict):
        return {str(k): to_json_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [to_json_value(v) for v in value]
    return str(value)


def from_json_value(column: Column, value: Any) -> Any:
    if value is None:
        return None
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return value

    if isinstance(value, python_type):
        return value
    if isinstance(value, str):
        try:
            if python_type is datetime:
                return datetime.fromisoformat(value)
            if python_type is date:
                return date.fromisoformat(value)
            if python_type is time:
                return time.fromisoformat(value)
            if python_type is Decimal:
                return Decimal(value)
            if python_type is uuid.UUID:
                return uuid.UUID(value)
        except ValueError:
            return value
    if python_type is Decimal and isinstance(value, (int, float)):
        return Decimal(str(value))
    if issubclass(python_type, enum.Enum):
        try:
            return python_type(value)
        except ValueError:
            return value
    return value


def encode_attributes(values: Dict[str, Any]) -> Dict[str, Any]:
    return {key: to_json_value(value) for key, value in values.items()}


def decode_attributes(model, values: Dict[str, Any]) -> Dict[str, Any]:
    return {key: from_json_value(model.column_for(key), value) for key, value in values.items()}
