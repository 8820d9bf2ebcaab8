"""이벤트 정의 및 Event Bus / Event Stream (EDA 패턴)

- EventBus: 전역, 타입 기반 핸들러 등록 (에러 이벤트용)
- EventStream: 인스턴스 단위 구독 스트림 (세션 라이프사이클, 디코딩된 메시지)

이벤트는 순수 데이터 객체로, 의존성이 없습니다.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Generic, TypeVar

from bfx_stream.common.logger import PipelineLogger
from bfx_stream.core.dto.internal.common import ConnectionScopeDomain

logger = PipelineLogger.get_logger("event_bus", "common")

EventT = TypeVar("EventT")
EventHandler = Callable[[Any], Any]


@dataclass(frozen=True, slots=True)
class ErrorEvent:
    """에러 이벤트 (순수 데이터)

    모든 레이어에서 발행 가능:
    - Transport: 연결/전송 에러
    - Core: 구독 재전송, 디코딩, 디스패치 에러
    - Application: 종료 처리 에러
    """

    exc: Exception
    kind: str  # "ws", "subscription", "decode", "dispatch", "shutdown"
    scope: ConnectionScopeDomain
    context: dict[str, Any] | None = None
    timestamp: datetime = field(default_factory=datetime.now)


async def _invoke(handler: EventHandler, event: Any) -> None:
    """동기/비동기 핸들러를 동일하게 호출"""
    result = handler(event)
    if inspect.isawaitable(result):
        await result


def _handler_name(handler: EventHandler) -> str:
    return getattr(handler, "__qualname__", None) or repr(handler)


class EventBus:
    """전역 이벤트 버스 (의존성 없음)

    특징:
    - 타입 기반 핸들러 등록
    - 핸들러 실패 격리 (로그 후 다음 핸들러 진행)
    - 순환 import 없음
    """

    _handlers: dict[type, list[EventHandler]] = {}

    @classmethod
    async def emit(cls, event: Any) -> None:
        """이벤트 발행 (비동기)

        Args:
            event: 발행할 이벤트 객체
        """
        event_type = type(event)
        handlers = list(cls._handlers.get(event_type, []))

        for handler in handlers:
            try:
                await _invoke(handler, event)
            except Exception as e:
                logger.error(
                    f"Event handler failed: {e}",
                    exc_info=True,
                    extra={
                        "event_type": event_type.__name__,
                        "handler": _handler_name(handler),
                    },
                )

    @classmethod
    def on(cls, event_type: type, handler: EventHandler) -> None:
        """핸들러 등록

        Args:
            event_type: 이벤트 타입 (클래스)
            handler: 핸들러 함수 (sync/async)
        """
        cls._handlers.setdefault(event_type, []).append(handler)

    @classmethod
    def clear(cls) -> None:
        """모든 핸들러 제거 (테스트/종료용)"""
        cls._handlers.clear()


class EventStream(Generic[EventT]):
    """인스턴스 단위 이벤트 스트림

    구독 순서대로 핸들러를 순차 실행합니다. 한 이벤트의 모든 핸들러가
    끝나야 다음 이벤트가 전달되므로 발행 순서가 그대로 보존됩니다.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._handlers: list[EventHandler] = []

    def subscribe(self, handler: EventHandler) -> Callable[[], None]:
        """핸들러 등록 후 해제 함수를 반환"""
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    async def emit(self, event: EventT) -> None:
        for handler in list(self._handlers):
            try:
                await _invoke(handler, event)
            except Exception as e:
                logger.error(
                    f"{self.name}: subscriber failed - {e}",
                    exc_info=True,
                    extra={
                        "stream": self.name,
                        "event_type": type(event).__name__,
                        "handler": _handler_name(handler),
                    },
                )

    @property
    def handler_count(self) -> int:
        return len(self._handlers)

    def clear(self) -> None:
        self._handlers.clear()


__all__ = ["ErrorEvent", "EventBus", "EventStream"]
