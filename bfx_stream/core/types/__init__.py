from typing import Any, Awaitable, Callable, TypeAlias

from bfx_stream.core.types._channel_types import (
    BookFrequency,
    BookPrecision,
    LifecycleKind,
    MessageTag,
    ShutdownSource,
    ShutdownState,
    SubscriptionTag,
    TimeFrame,
)
from bfx_stream.core.types._exception_types import (
    CONNECTION_EXCEPTIONS,
    PROTOCOL_EXCEPTIONS,
    ErrorCategory,
    ErrorCode,
    ErrorDomain,
    ExceptionGroup,
    RuleKind,
)

# 직렬화된 요청 한 건을 전송하는 프리미티브 (실패 시 예외)
SendPrimitive: TypeAlias = Callable[[str], Awaitable[None]]
# 메시지 소비자 (sync/async 모두 허용)
MessageConsumer: TypeAlias = Callable[[Any], Any]
# 원본 프레임 (websockets가 text/binary로 전달)
RawFrame: TypeAlias = str | bytes

__all__ = [
    "BookFrequency",
    "BookPrecision",
    "CONNECTION_EXCEPTIONS",
    "ErrorCategory",
    "ErrorCode",
    "ErrorDomain",
    "ExceptionGroup",
    "LifecycleKind",
    "MessageConsumer",
    "MessageTag",
    "PROTOCOL_EXCEPTIONS",
    "RawFrame",
    "RuleKind",
    "SendPrimitive",
    "ShutdownSource",
    "ShutdownState",
    "SubscriptionTag",
    "TimeFrame",
]
