from __future__ import annotations

import asyncio
import contextlib
import time
from typing import Any

from bfx_stream.common.exceptions.error_dispatcher import dispatch_error
from bfx_stream.common.logger import PipelineLogger
from bfx_stream.core.dto.internal.common import ConnectionPolicyDomain, ConnectionScopeDomain

logger = PipelineLogger.get_logger("health_monitor", "connection")


class ConnectionHealthMonitor:
    """연결 상태 감시 전담 클래스

    책임:
    - ping 프레임 하트비트 (pong 타임아웃 시 연결 종료)
    - 수신 유휴 워치독 (서버 "hb" 포함 어떤 프레임도 없으면 연결 종료)

    연결 종료는 세션의 수신 루프를 깨워 재연결 경로를 타게 합니다.
    """

    def __init__(
        self,
        scope: ConnectionScopeDomain,
        policy: ConnectionPolicyDomain,
        *,
        log: PipelineLogger | None = None,
    ) -> None:
        self.scope = scope
        self.policy = policy
        self._logger = log or logger

        self._last_heartbeat_ts: float = 0.0
        self._last_receive_ts: float = 0.0
        self._heartbeat_fail_count: int = 0
        self._is_monitoring: bool = False
        self.close_reason: str | None = None

        self._heartbeat_task: asyncio.Task[None] | None = None
        self._watchdog_task: asyncio.Task[None] | None = None

    async def _emit_error(
        self, err: Exception, *, phase: str, extra: dict | None = None
    ) -> None:
        await dispatch_error(
            exc=err,
            kind="ws",
            scope=self.scope,
            context={
                "phase": phase,
                "heartbeat_fail_count": self._heartbeat_fail_count,
                **(extra or {}),
            },
        )

    async def start_monitoring(self, websocket: Any) -> None:
        """하트비트/워치독 태스크 시작 (간격이 0 이하인 항목은 비활성)"""
        self._last_heartbeat_ts = time.monotonic()
        self._last_receive_ts = self._last_heartbeat_ts
        self._heartbeat_fail_count = 0
        self.close_reason = None
        self._is_monitoring = True

        if self.policy.heartbeat_interval > 0:
            self._heartbeat_task = asyncio.create_task(self._heartbeat_loop(websocket))
        if self.policy.receive_idle_timeout > 0:
            self._watchdog_task = asyncio.create_task(self._watchdog_loop(websocket))

        self._logger.debug(f"{self.scope.exchange}: 연결 상태 모니터링 시작")

    async def stop_monitoring(self) -> None:
        self._is_monitoring = False

        for task in (self._heartbeat_task, self._watchdog_task):
            if task is not None and not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._heartbeat_task = None
        self._watchdog_task = None

    def notify_receive(self) -> None:
        """프레임 수신 시각 갱신 (수신 루프에서 매 프레임 호출)"""
        self._last_receive_ts = time.monotonic()

    @property
    def heartbeat_fail_count(self) -> int:
        return self._heartbeat_fail_count

    @property
    def last_receive_ts(self) -> float:
        return self._last_receive_ts

    @property
    def is_monitoring(self) -> bool:
        return self._is_monitoring

    async def send_heartbeat(self, websocket: Any) -> None:
        """ping 프레임 전송 후 pong 대기"""
        pong_waiter = await websocket.ping()
        await asyncio.wait_for(pong_waiter, timeout=self.policy.heartbeat_timeout)
        self._last_heartbeat_ts = time.monotonic()
        self._heartbeat_fail_count = 0

    async def _heartbeat_loop(self, websocket: Any) -> None:
        while self._is_monitoring:
            try:
                await asyncio.sleep(self.policy.heartbeat_interval)
                await self.send_heartbeat(websocket)
                self._logger.debug(f"{self.scope.exchange}: 하트비트 성공")
            except asyncio.CancelledError:
                break
            except Exception as e:
                self._heartbeat_fail_count += 1
                self._logger.warning(f"{self.scope.exchange}: 하트비트 실패 - {e}")
                await self._emit_error(e, phase="heartbeat")
                await self._close(websocket, f"heartbeat failed: {e}")
                break

    async def _watchdog_loop(self, websocket: Any) -> None:
        """수신 유휴 감시: 타임아웃 동안 수신이 없으면 연결을 종료합니다."""
        timeout = float(self.policy.receive_idle_timeout)
        check_interval = max(0.05, min(10.0, timeout / 3.0))

        while self._is_monitoring:
            try:
                await asyncio.sleep(check_interval)
                idle_for = time.monotonic() - self._last_receive_ts
                if idle_for < timeout:
                    continue
                self._logger.warning(
                    f"{self.scope.exchange}: 수신 유휴 타임아웃 - "
                    f"idle={idle_for:.1f}s >= {timeout:.1f}s"
                )
                await self._emit_error(
                    TimeoutError("receive idle timeout exceeded"),
                    phase="watchdog_idle",
                    extra={"idle_seconds": round(idle_for, 1), "receive_idle_timeout": timeout},
                )
                await self._close(websocket, "receive idle timeout")
                break
            except asyncio.CancelledError:
                break

    async def _close(self, websocket: Any, reason: str) -> None:
        self.close_reason = reason
        try:
            await websocket.close()
        except Exception as e:
            self._logger.debug(f"{self.scope.exchange}: 연결 종료 중 오류 무시 - {e}")
