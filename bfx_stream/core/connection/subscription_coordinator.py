from __future__ import annotations

import asyncio

from bfx_stream.common.exceptions.error_dispatcher import dispatch_error
from bfx_stream.common.logger import PipelineLogger
from bfx_stream.common.serde import to_json
from bfx_stream.core.connection.subscription_registry import SubscriptionRegistry
from bfx_stream.core.dto.internal.common import ConnectionScopeDomain
from bfx_stream.core.dto.internal.lifecycle import ConnectionLifecycleEvent, ResubscribeTrigger
from bfx_stream.core.dto.internal.subscription import ReplayResultDomain
from bfx_stream.core.dto.io.messages import ProtocolInfoMessage
from bfx_stream.core.dto.io.requests import PingRequest
from bfx_stream.core.types import SendPrimitive

logger = PipelineLogger.get_logger("subscription_coordinator", "connection")


class SubscriptionCoordinator:
    """구독 재전송 전담 클래스

    책임:
    - (재)연결마다 레지스트리 전체를 저장 순서대로 1회씩 전송
    - 서버 info(재협상 요청) 수신 시 동일한 전체 재전송
    - 재전송은 락으로 직렬화 (동시 트리거는 대기열처럼 순차 실행, 병합하지 않음)

    전송 실패는 치명적이지 않습니다. 실패한 항목은 로그 후 건너뛰고 나머지를
    계속 전송하며, 연결 복구는 전송 세션의 재연결 → 다음 재전송으로 이어집니다.
    """

    def __init__(
        self,
        registry: SubscriptionRegistry,
        send: SendPrimitive,
        *,
        scope: ConnectionScopeDomain | None = None,
        ping_cid: int | None = None,
        log: PipelineLogger | None = None,
    ) -> None:
        self._registry = registry
        self._send = send
        self.scope = scope or ConnectionScopeDomain(exchange="Bitfinex", url="")
        self._ping = PingRequest(cid=ping_cid) if ping_cid else None
        self._logger = log or logger
        self._send_lock = asyncio.Lock()
        self._replay_count = 0
        self._last_result: ReplayResultDomain | None = None

    @property
    def replay_count(self) -> int:
        """완료된 재전송 횟수"""
        return self._replay_count

    @property
    def last_result(self) -> ReplayResultDomain | None:
        return self._last_result

    async def on_trigger(self, trigger: ResubscribeTrigger) -> ReplayResultDomain | None:
        """재구독 트리거 단일 진입점 (라이프사이클 이벤트 / info 메시지 모두 수용)"""
        if isinstance(trigger, ProtocolInfoMessage):
            return await self.on_protocol_info(trigger)
        return await self.on_lifecycle(trigger)

    async def on_lifecycle(self, event: ConnectionLifecycleEvent) -> ReplayResultDomain | None:
        if not event.triggers_resubscribe:
            self._logger.info(
                f"{self.scope.exchange}: 연결 끊김 감지 ({event.cause}), 재연결 후 재구독 예정"
            )
            return None
        reason = str(event.kind) if event.cause is None else f"{event.kind}: {event.cause}"
        return await self.replay(reason)

    async def on_protocol_info(self, message: ProtocolInfoMessage) -> ReplayResultDomain | None:
        if not message.requests_resubscribe:
            self._logger.debug(
                f"{self.scope.exchange}: info 수신 (version={message.version}, code={message.code})"
            )
            return None
        self._logger.info(
            f"{self.scope.exchange}: 서버 재구독 요청 info 수신 (code={message.code})"
        )
        return await self.replay(f"info: {message.code}")

    async def replay(self, reason: str) -> ReplayResultDomain:
        """레지스트리 전체를 저장 순서대로 전송합니다.

        Args:
            reason: 재전송 사유 (로그용)

        Returns:
            ReplayResultDomain: 전송/실패 키 목록
        """
        async with self._send_lock:
            requests = self._registry.all()
            sent: list[str] = []
            failed: list[str] = []

            self._logger.info(
                f"{self.scope.exchange}: 재구독 시작 ({reason}) - {len(requests)}건"
            )

            if self._ping is not None:
                await self._send_one(self._ping.to_payload(), f"ping:{self._ping.cid}", reason)

            for request in requests:
                key = request.subscription_key()
                if await self._send_one(request.to_payload(), key, reason):
                    sent.append(key)
                else:
                    failed.append(key)

            result = ReplayResultDomain(reason=reason, sent=tuple(sent), failed=tuple(failed))
            self._replay_count += 1
            self._last_result = result

            if failed:
                self._logger.warning(
                    f"{self.scope.exchange}: 재구독 완료 (일부 실패) - "
                    f"sent={len(sent)} failed={len(failed)}",
                    extra={"reason": reason, "failed": list(failed)},
                )
            else:
                self._logger.info(
                    f"{self.scope.exchange}: 재구독 완료 - sent={len(sent)}",
                    extra={"reason": reason},
                )
            return result

    async def _send_one(self, payload: dict, key: str, reason: str) -> bool:
        try:
            await self._send(to_json(payload))
            return True
        except Exception as e:
            self._logger.warning(f"{self.scope.exchange}: 구독 요청 전송 실패 ({key}): {e}")
            await dispatch_error(
                exc=e,
                kind="subscription",
                scope=self.scope,
                context={"phase": "replay_send", "subscription": key, "reason": reason},
            )
            return False
