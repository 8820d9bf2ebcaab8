from __future__ import annotations

import asyncio
import contextlib
from typing import Any

import websockets

from bfx_stream.common.events import EventStream
from bfx_stream.common.exceptions.error_dispatcher import dispatch_error
from bfx_stream.common.exceptions.exception_rule import TransportNotConnectedError
from bfx_stream.common.logger import PipelineLogger
from bfx_stream.core.connection.decoder import BitfinexMessageDecoder
from bfx_stream.core.connection.health_monitor import ConnectionHealthMonitor
from bfx_stream.core.connection.services.backoff import (
    attempts_exhausted,
    compute_next_backoff,
)
from bfx_stream.core.dto.internal.common import ConnectionPolicyDomain, ConnectionScopeDomain
from bfx_stream.core.dto.internal.lifecycle import ConnectionLifecycleEvent
from bfx_stream.core.dto.io.messages import DomainMessage

logger = PipelineLogger.get_logger("websocket_session", "connection")


class BitfinexSession:
    """웹소켓 전송 세션 (연결/재연결 루프)

    - lifecycle: Connected(최초) / Reconnected(cause=직전 끊김 사유) / Disconnected
    - messages: 디코딩된 DomainMessage (heartbeat 제외, 수신 순서 그대로)
    - send(payload): 현재 연결로 text 프레임 1건 전송, 연결이 없으면 예외

    연결 이벤트 구독자(재구독 등)는 수신 루프 시작 전에 실행됩니다.
    """

    def __init__(
        self,
        url: str,
        *,
        name: str = "Bitfinex",
        policy: ConnectionPolicyDomain | None = None,
        decoder: BitfinexMessageDecoder | None = None,
        log: PipelineLogger | None = None,
    ) -> None:
        self.scope = ConnectionScopeDomain(exchange=name, url=url)
        self.policy = policy or ConnectionPolicyDomain()
        self.decoder = decoder or BitfinexMessageDecoder()
        self._logger = log or logger

        self.lifecycle: EventStream[ConnectionLifecycleEvent] = EventStream(f"{name}.lifecycle")
        self.messages: EventStream[DomainMessage] = EventStream(f"{name}.messages")

        self._health_monitor = ConnectionHealthMonitor(self.scope, self.policy, log=log)

        self._websocket: Any = None
        self._stop_requested = False
        self._run_task: asyncio.Task[None] | None = None
        self._backoff_task: asyncio.Task[None] | None = None
        self._attempt = 0
        self._connection_seq = 0
        self._last_disconnect_reason: str | None = None

    def _log_status(self, status: str) -> None:
        self._logger.info(f"{self.scope.exchange} [{self.scope.url}]: {status}")

    @property
    def is_connected(self) -> bool:
        return self._websocket is not None

    @property
    def connection_seq(self) -> int:
        """지금까지 성립한 연결 수"""
        return self._connection_seq

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    async def send(self, payload: str) -> None:
        websocket = self._websocket
        if websocket is None:
            raise TransportNotConnectedError(f"{self.scope.exchange}: 활성 연결 없음")
        await websocket.send(payload)

    async def start(self) -> None:
        """연결 루프를 백그라운드 태스크로 시작 (중복 호출 무시)"""
        if self._run_task is not None and not self._run_task.done():
            return
        self._stop_requested = False
        self._run_task = asyncio.create_task(
            self.run_forever(), name=f"{self.scope.exchange}-session"
        )

    async def stop(self, reason: str | None = None) -> None:
        """연결 종료 요청 후 루프 태스크 종료까지 대기"""
        if not self._stop_requested:
            self._stop_requested = True
            reason_suffix = f" (reason: {reason})" if reason else ""
            self._logger.info(f"{self.scope.exchange}: disconnect requested{reason_suffix}")

        if self._backoff_task is not None and not self._backoff_task.done():
            self._backoff_task.cancel()

        websocket = self._websocket
        if websocket is not None:
            try:
                await websocket.close()
            except Exception as close_error:
                self._logger.warning(
                    f"{self.scope.exchange}: 종료 중 websocket close 실패 - {close_error}"
                )

        task = self._run_task
        if task is not None and task is not asyncio.current_task():
            try:
                await asyncio.wait_for(asyncio.shield(task), timeout=10.0)
            except asyncio.TimeoutError:
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._run_task = None
        await self._health_monitor.stop_monitoring()

    async def __aenter__(self) -> BitfinexSession:
        await self.start()
        return self

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> None:
        await self.stop("context exit")

    async def run_forever(self) -> None:
        """연결 → 수신 → 끊김 → 백오프 → 재연결 (stop 요청 또는 재시도 한도까지)"""
        self._attempt = 0
        while not self._stop_requested:
            self._log_status("connecting")
            established = False
            error: Exception | None = None
            try:
                async with websockets.connect(uri=self.scope.url, ping_interval=None) as websocket:
                    if self._stop_requested:
                        break
                    established = True
                    await self._on_open(websocket)
                    await self._receive_loop(websocket)
                cause = self._health_monitor.close_reason or "connection closed"
            except asyncio.CancelledError:
                self._log_status("cancelled")
                raise
            except Exception as e:
                cause = f"{type(e).__name__}: {e}"
                error = e
            finally:
                self._websocket = None
                await self._health_monitor.stop_monitoring()

            if established:
                self._last_disconnect_reason = cause
                self._log_status(f"disconnected ({cause})")
                await self.lifecycle.emit(
                    ConnectionLifecycleEvent.disconnected(cause, self._connection_seq)
                )

            if self._stop_requested:
                break

            self._attempt += 1
            delay = compute_next_backoff(self.policy, self._attempt - 1)
            if error is not None:
                self._logger.warning(
                    f"{self.scope.exchange}: 연결 오류, 재시도합니다. 이유: {cause}"
                )
                await dispatch_error(
                    exc=error,
                    kind="ws",
                    scope=self.scope,
                    context={
                        "phase": "receive" if established else "connect",
                        "attempt": self._attempt,
                        "backoff": delay,
                    },
                )

            if attempts_exhausted(self.policy, self._attempt):
                self._logger.error(
                    f"{self.scope.exchange}: 재연결 한도({self.policy.reconnect_max_attempts}) 초과로 종료"
                )
                break

            self._logger.info(
                f"{self.scope.exchange}: {delay:.2f}s 후 재접속 (attempt={self._attempt})"
            )
            if not await self._sleep_backoff(delay):
                break

        self._log_status("stopped")
        self._stop_requested = True

    async def _on_open(self, websocket: Any) -> None:
        self._websocket = websocket
        self._attempt = 0
        self._connection_seq += 1
        # chanId는 연결마다 재할당된다
        self.decoder.reset()
        await self._health_monitor.start_monitoring(websocket)

        if self._connection_seq == 1:
            event = ConnectionLifecycleEvent.connected(self._connection_seq)
            self._log_status("connected")
        else:
            event = ConnectionLifecycleEvent.reconnected(
                self._last_disconnect_reason, self._connection_seq
            )
            self._log_status(f"reconnected (seq={self._connection_seq})")
        await self.lifecycle.emit(event)

    async def _receive_loop(self, websocket: Any) -> None:
        async for frame in websocket:
            self._health_monitor.notify_receive()
            message = self.decoder.decode(frame)
            if message is None:
                continue
            await self.messages.emit(message)

    async def _sleep_backoff(self, delay: float) -> bool:
        """백오프 대기. stop으로 중단되면 False"""
        self._backoff_task = asyncio.create_task(asyncio.sleep(delay))
        try:
            await self._backoff_task
            return True
        except asyncio.CancelledError:
            if self._stop_requested:
                self._logger.info(f"{self.scope.exchange}: 재접속 대기 중단")
                return False
            raise
        finally:
            self._backoff_task = None
