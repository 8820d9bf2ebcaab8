"""통합 에러 디스패처 (EDA 환경용)

전략 기반 에러 처리:
- 예외 분류 (classify_exception)
- 전략 결정 (get_error_strategy)
- 구조화 로그 1건 기록

코어에서 발생하는 에러는 모두 비치명적이며, 프로세스 종료 경로는
종료 신호(ShutdownCoordinator) 하나뿐입니다.
"""

from __future__ import annotations

from bfx_stream.common.events import ErrorEvent, EventBus
from bfx_stream.common.exceptions.exception_rule import (
    classify_exception,
    get_error_strategy,
)
from bfx_stream.common.logger import PipelineLogger
from bfx_stream.core.dto.internal.common import ConnectionScopeDomain

logger = PipelineLogger.get_logger("error_dispatcher", "core")

__all__ = [
    "ErrorDispatcher",
    "dispatch_error",
]

# logging 예약 키워드
_RESERVED_CONTEXT_KEYS = ("exc_info", "stack_info", "extra")


class ErrorDispatcher:
    """통합 에러 처리 디스패처

    책임:
    1. 예외 분류 (classify_exception)
    2. 전략 결정 (get_error_strategy)
    3. 심각도별 구조화 로깅
    """

    def __init__(self, log: PipelineLogger | None = None) -> None:
        self._logger = log or logger
        self.dispatched_count = 0

    async def dispatch(
        self,
        exc: Exception,
        kind: str,
        scope: ConnectionScopeDomain,
        context: dict | None = None,
    ) -> None:
        """전략 기반 통합 에러 디스패처"""
        domain, code, retryable = classify_exception(exc, kind)
        strategy = get_error_strategy(code)

        log_method = getattr(self._logger, strategy.log_level, self._logger.error)
        safe_context = {
            k: v for k, v in (context or {}).items() if k not in _RESERVED_CONTEXT_KEYS
        }

        log_method(
            f"[{strategy.severity.value.upper()}] {kind} error: {exc}",
            exc_info=exc if strategy.log_level == "error" else None,
            extra={
                "error_domain": domain.value,
                "error_code": code.value,
                "severity": strategy.severity.value,
                "retryable": retryable,
                "observed_key": scope.observed_key(kind),
                **safe_context,
            },
        )
        self.dispatched_count += 1

    async def handle(self, event: ErrorEvent) -> None:
        """EventBus 핸들러 어댑터"""
        await self.dispatch(
            exc=event.exc,
            kind=event.kind,
            scope=event.scope,
            context=event.context,
        )

    def install(self) -> None:
        """ErrorEvent → 이 디스패처 연결"""
        EventBus.on(ErrorEvent, self.handle)


# Event Bus 기반 에러 디스패처 (EDA 패턴)
async def dispatch_error(
    exc: Exception,
    kind: str,
    scope: ConnectionScopeDomain,
    context: dict | None = None,
) -> None:
    """Event Bus 기반 에러 이벤트 발행 (EDA 패턴)

    모든 레이어에서 순환 import 없이 사용 가능합니다.

    Args:
        exc: 발생한 예외
        kind: 에러 종류 (분류용)
        scope: 에러 발생 세션 스코프
        context: 추가 컨텍스트
    """
    await EventBus.emit(
        ErrorEvent(
            exc=exc,
            kind=kind,
            scope=scope,
            context=context,
        )
    )
