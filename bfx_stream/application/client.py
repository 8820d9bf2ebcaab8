"""스트림 클라이언트 (구성 요소 연결 + 실행)

연결 흐름:
    session.lifecycle ──► coordinator.on_lifecycle   (Connected/Reconnected → 재구독)
    session.messages  ──► router.dispatch            (tag별 소비자)
    router[info]      ──► coordinator.on_protocol_info (서버 재구독 요청)
"""

from __future__ import annotations

import contextlib
from typing import Callable

from bfx_stream.common.logger import PipelineLogger
from bfx_stream.core.connection.message_router import MessageRouter
from bfx_stream.core.connection.session import BitfinexSession
from bfx_stream.core.connection.shutdown import ShutdownCoordinator
from bfx_stream.core.connection.subscription_coordinator import SubscriptionCoordinator
from bfx_stream.core.connection.subscription_registry import SubscriptionRegistry
from bfx_stream.core.types import MessageTag, ShutdownSource

logger = PipelineLogger.get_logger("client", "app")


class BitfinexStreamClient:
    """세션/재구독/라우팅을 하나로 묶는 클라이언트

    구성 요소는 모두 주입받으며, 생성 시점에 이벤트 연결만 수행합니다.
    """

    def __init__(
        self,
        session: BitfinexSession,
        registry: SubscriptionRegistry,
        coordinator: SubscriptionCoordinator,
        router: MessageRouter,
        *,
        log: PipelineLogger | None = None,
    ) -> None:
        self.session = session
        self.registry = registry
        self.coordinator = coordinator
        self.router = router
        self._logger = log or logger

        self._unsubscribers: list[Callable[[], None]] = [
            session.lifecycle.subscribe(coordinator.on_lifecycle),
            session.messages.subscribe(router.dispatch),
        ]
        router.subscribe(MessageTag.INFO, coordinator.on_protocol_info)

    async def run(self, shutdown: ShutdownCoordinator) -> ShutdownSource | None:
        """세션을 시작하고 종료 신호까지 대기합니다."""
        async with contextlib.AsyncExitStack() as stack:
            self._logger.info(
                f"{self.session.scope.exchange}: 스트림 시작 (구독 {len(self.registry)}건)"
            )
            await stack.enter_async_context(self.session)
            stack.callback(self.close)
            source = await shutdown.wait_async()
            self._logger.info(f"{self.session.scope.exchange}: 종료 신호 수신 ({source})")
        return source

    def close(self) -> None:
        """이벤트 연결 해제 (중복 호출 안전)"""
        while self._unsubscribers:
            self._unsubscribers.pop()()
