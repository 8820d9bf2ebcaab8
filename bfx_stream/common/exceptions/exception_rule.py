from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import StrEnum
from typing import TypeAlias

from pydantic import ValidationError

from bfx_stream.core.dto.internal.common import RuleDomain
from bfx_stream.core.types import (
    CONNECTION_EXCEPTIONS,
    PROTOCOL_EXCEPTIONS,
    ErrorCategory,
    ErrorCode,
    ErrorDomain,
)


class TransportNotConnectedError(ConnectionError):
    """활성 웹소켓이 없는 상태에서 전송을 시도한 경우"""


class RouterConfigurationError(ValueError):
    """메시지 태그에 소비자가 연결되지 않은 라우터 구성"""


# 1) asyncio 규칙 (ws/subscription)
RULES_ASYNCIO: list[RuleDomain] = [
    RuleDomain(
        kinds=("ws", "subscription"),
        exc=asyncio.CancelledError,
        result=(ErrorDomain.CONNECTION, ErrorCode.CANCELLED, False),
    ),
    RuleDomain(
        kinds=("ws", "subscription"),
        exc=(asyncio.TimeoutError, TimeoutError),
        result=(ErrorDomain.CONNECTION, ErrorCode.CONNECT_FAILED, True),
    ),
]

# 2) 구독 재전송 규칙 (연결은 세션이 복구 → 재시도 대상)
RULES_SUBSCRIPTION: list[RuleDomain] = [
    RuleDomain(
        kinds=("subscription",),
        exc=TransportNotConnectedError,
        result=(ErrorDomain.SUBSCRIPTION, ErrorCode.NOT_CONNECTED, True),
    ),
    RuleDomain(
        kinds=("subscription",),
        exc=CONNECTION_EXCEPTIONS,
        result=(ErrorDomain.SUBSCRIPTION, ErrorCode.SEND_FAILED, True),
    ),
]

# 3) 소켓/웹소켓 규칙
RULES_SOCKET: list[RuleDomain] = [
    RuleDomain(
        kinds=("ws",),
        exc=CONNECTION_EXCEPTIONS,
        result=(ErrorDomain.CONNECTION, ErrorCode.CONNECT_FAILED, True),
    ),
]

# 4) 역직렬화 규칙 (구체 -> 포괄)
RULES_TYPE: list[RuleDomain] = [
    RuleDomain(
        kinds=("decode", "subscription", "ws"),
        exc=ValidationError,
        result=(ErrorDomain.PROTOCOL, ErrorCode.INVALID_SCHEMA, False),
    ),
    RuleDomain(
        kinds=("decode", "subscription", "ws"),
        exc=PROTOCOL_EXCEPTIONS,
        result=(ErrorDomain.DESERIALIZATION, ErrorCode.DESERIALIZATION_ERROR, False),
    ),
]

# 5) 소비자 콜백 규칙 (소비자 예외는 종류와 무관하게 격리)
RULES_DISPATCH: list[RuleDomain] = [
    RuleDomain(
        kinds=("dispatch",),
        exc=Exception,
        result=(ErrorDomain.DISPATCH, ErrorCode.CONSUMER_FAILED, False),
    ),
]

RULES_SHUTDOWN: list[RuleDomain] = [
    RuleDomain(
        kinds=("shutdown",),
        exc=Exception,
        result=(ErrorDomain.SHUTDOWN, ErrorCode.RELEASE_FAILED, False),
    ),
]

# 주의: 매칭 우선순위를 보장하기 위해 선언 순서를 유지합니다.
RULES_FOR_WS: list[RuleDomain] = [*RULES_ASYNCIO, *RULES_SOCKET, *RULES_TYPE]
RULES_FOR_SUBSCRIPTION: list[RuleDomain] = [
    *RULES_ASYNCIO,
    *RULES_SUBSCRIPTION,
    *RULES_TYPE,
]

RuleDict: TypeAlias = dict[str, list[RuleDomain]]
RULES_BY_KIND: RuleDict = {
    "ws": RULES_FOR_WS,
    "subscription": RULES_FOR_SUBSCRIPTION,
    "decode": RULES_TYPE,
    "dispatch": RULES_DISPATCH,
    "shutdown": RULES_SHUTDOWN,
}


def classify_exception(err: BaseException, kind: str) -> ErrorCategory:
    """예외 → (ErrorDomain, ErrorCode, retryable) 분류기 (규칙 테이블 기반)

    - 규칙은 "구체 → 포괄" 순서로 선언되어 가장 특수한 규칙이 먼저 매칭됩니다.
    - 알 수 없는 kind는 빈 규칙으로 처리되어 UNKNOWN을 반환합니다.
    """
    for rule in RULES_BY_KIND.get(kind, []):
        if kind in rule.kinds and isinstance(err, rule.exc):
            return rule.result

    return (ErrorDomain.UNKNOWN, ErrorCode.UNKNOWN_ERROR, False)


class ErrorSeverity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass(slots=True, frozen=True)
class ErrorStrategy:
    """에러 코드별 처리 전략"""

    severity: ErrorSeverity
    log_level: str


ERROR_STRATEGIES: dict[ErrorCode, ErrorStrategy] = {
    ErrorCode.CONNECT_FAILED: ErrorStrategy(ErrorSeverity.MEDIUM, "warning"),
    ErrorCode.SEND_FAILED: ErrorStrategy(ErrorSeverity.MEDIUM, "warning"),
    ErrorCode.NOT_CONNECTED: ErrorStrategy(ErrorSeverity.LOW, "warning"),
    ErrorCode.CANCELLED: ErrorStrategy(ErrorSeverity.LOW, "info"),
    ErrorCode.INVALID_SCHEMA: ErrorStrategy(ErrorSeverity.MEDIUM, "warning"),
    ErrorCode.DESERIALIZATION_ERROR: ErrorStrategy(ErrorSeverity.MEDIUM, "warning"),
    ErrorCode.CONSUMER_FAILED: ErrorStrategy(ErrorSeverity.HIGH, "error"),
    ErrorCode.RELEASE_FAILED: ErrorStrategy(ErrorSeverity.HIGH, "error"),
}

DEFAULT_STRATEGY = ErrorStrategy(ErrorSeverity.HIGH, "error")


def get_error_strategy(code: ErrorCode) -> ErrorStrategy:
    return ERROR_STRATEGIES.get(code, DEFAULT_STRATEGY)
