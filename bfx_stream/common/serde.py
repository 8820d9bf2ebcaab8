from collections import deque
from decimal import Decimal
from typing import Any, Callable

import orjson
from pydantic import BaseModel

JSONDefault = Callable[[Any], Any]


def default_json_encoder(obj: Any) -> Any:
    """JSON 직렬화 헬퍼 (orjson default 훅).

    - pydantic 모델 -> JSON 호환 dict
    - Decimal -> str
    - deque/set/frozenset -> list
    - 그 외: TypeError로 orjson에 실패 전달
    """
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json")
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, (deque, set, frozenset)):
        return list(obj)
    raise TypeError(f"Type is not JSON serializable: {type(obj).__name__}")


def to_bytes(value: Any, default: JSONDefault | None = default_json_encoder) -> bytes:
    """객체를 UTF-8 JSON bytes(orjson)로 직렬화.

    - orjson.dumps 사용, 실패 시 str(value)로 폴백
    """
    try:
        return orjson.dumps(value, default=default)
    except TypeError:
        return orjson.dumps(str(value))


def to_json(value: Any) -> str:
    """객체를 JSON 문자열로 직렬화 (웹소켓 text 프레임/로그 라인용)"""
    return to_bytes(value).decode("utf-8")
