"""트라이/캐치 블록에서 사용할 예외 타입 정의 모듈.

광범위한 Exception 사용을 지양하고, 의도한 예외만 명시적으로 처리하기 위해 사용합니다.
"""

import asyncio
from enum import StrEnum
from typing import Final, TypeAlias

import orjson
from pydantic import ValidationError
from websockets.exceptions import ConnectionClosed, InvalidStatus, WebSocketException


class ErrorDomain(StrEnum):
    """에러 도메인 분류"""

    CONNECTION = "connection"
    PROTOCOL = "protocol"
    DESERIALIZATION = "deserialization"
    SUBSCRIPTION = "subscription"
    DISPATCH = "dispatch"
    SHUTDOWN = "shutdown"
    UNKNOWN = "unknown"


class ErrorCode(StrEnum):
    """에러 코드 분류"""

    CONNECT_FAILED = "connect_failed"
    SEND_FAILED = "send_failed"
    NOT_CONNECTED = "not_connected"
    INVALID_SCHEMA = "invalid_schema"
    DESERIALIZATION_ERROR = "deserialization_error"
    CONSUMER_FAILED = "consumer_failed"
    RELEASE_FAILED = "release_failed"
    CANCELLED = "cancelled"
    UNKNOWN_ERROR = "unknown_error"


# 1. 네트워크/연결 관련 예외 (재시도 대상)
# - websockets.ConnectionClosed: 정상/비정상 종료
# - asyncio.TimeoutError: 시간 초과
# - OSError: 소켓 레벨 에러 (ConnectionError 포함)
CONNECTION_EXCEPTIONS: Final[tuple[type[BaseException], ...]] = (
    ConnectionClosed,
    InvalidStatus,
    WebSocketException,
    asyncio.TimeoutError,
    TimeoutError,
    OSError,
)

# 2. 프레임/페이로드 해석 예외 (경고 후 프레임 폐기)
PROTOCOL_EXCEPTIONS: Final[tuple[type[BaseException], ...]] = (
    orjson.JSONDecodeError,
    ValidationError,
    ValueError,
    TypeError,
    KeyError,
    IndexError,
)


ErrorCategory: TypeAlias = tuple[ErrorDomain, ErrorCode, bool]
ExceptionGroup: TypeAlias = type[BaseException] | tuple[type[BaseException], ...]
RuleKind: TypeAlias = tuple[str, ...]
