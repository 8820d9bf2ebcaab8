from __future__ import annotations

import inspect
from typing import Any, Mapping

from bfx_stream.common.exceptions.error_dispatcher import dispatch_error
from bfx_stream.common.exceptions.exception_rule import RouterConfigurationError
from bfx_stream.common.logger import PipelineLogger
from bfx_stream.core.dto.internal.common import ConnectionScopeDomain
from bfx_stream.core.types import MessageConsumer, MessageTag

logger = PipelineLogger.get_logger("message_router", "connection")


class MessageRouter:
    """디코딩된 메시지 → tag별 소비자 디스패처

    책임:
    - 메시지당 정확히 하나의 tag 슬롯 소비자 호출 (+ 추가 구독자)
    - 알 수 없는 tag는 unknown 소비자로 전달 (예외 없음)
    - 소비자 예외 격리 (로그 + 에러 이벤트 후 다음 메시지 계속)

    구성 시점에 모든 MessageTag에 소비자가 있는지 검사합니다.
    누락된 슬롯이 있으면 RouterConfigurationError를 발생시킵니다.
    """

    def __init__(
        self,
        consumers: Mapping[MessageTag | str, MessageConsumer],
        unknown_consumer: MessageConsumer | None = None,
        *,
        scope: ConnectionScopeDomain | None = None,
        log: PipelineLogger | None = None,
    ) -> None:
        self._logger = log or logger
        self.scope = scope or ConnectionScopeDomain(exchange="Bitfinex", url="")

        slots: dict[str, MessageConsumer] = {str(tag): fn for tag, fn in consumers.items()}
        if unknown_consumer is not None:
            slots.setdefault(MessageTag.UNKNOWN.value, unknown_consumer)

        missing = [tag.value for tag in MessageTag if tag.value not in slots]
        if missing:
            raise RouterConfigurationError(f"소비자가 연결되지 않은 메시지 태그: {missing}")

        self._slots = slots
        self._listeners: dict[str, list[MessageConsumer]] = {}
        self._unknown = slots[MessageTag.UNKNOWN.value]

    def subscribe(self, tag: MessageTag | str, consumer: MessageConsumer) -> None:
        """tag 슬롯 소비자 뒤에 추가로 호출될 리스너 등록"""
        self._listeners.setdefault(str(tag), []).append(consumer)

    async def dispatch(self, message: Any) -> None:
        """메시지 1건 디스패치 (소비자가 끝난 뒤 반환)"""
        tag = getattr(message, "tag", None)
        consumer = self._slots.get(tag) if isinstance(tag, str) else None

        if consumer is None:
            # 라우터가 모르는 tag (향후 추가된 메시지 타입 등)
            await self._call(self._unknown, message, MessageTag.UNKNOWN.value)
            return

        await self._call(consumer, message, tag)
        for listener in list(self._listeners.get(tag, ())):
            await self._call(listener, message, tag)

    async def _call(self, consumer: MessageConsumer, message: Any, tag: str) -> None:
        try:
            result = consumer(message)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            self._logger.error(
                f"{self.scope.exchange}: 메시지 소비자 실패 (tag={tag}) - {e}",
                exc_info=True,
            )
            await dispatch_error(
                exc=e,
                kind="dispatch",
                scope=self.scope,
                context={"tag": tag, "consumer": getattr(consumer, "__qualname__", repr(consumer))},
            )
