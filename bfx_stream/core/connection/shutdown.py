from __future__ import annotations

import asyncio
import atexit
import inspect
import signal
import threading
from typing import Any, Callable

from bfx_stream.common.exceptions.error_dispatcher import dispatch_error
from bfx_stream.common.logger import PipelineLogger
from bfx_stream.core.dto.internal.common import ConnectionScopeDomain
from bfx_stream.core.types import ShutdownSource, ShutdownState

logger = PipelineLogger.get_logger("shutdown", "connection")

ReleaseCallback = Callable[[], Any]

# OS 신호 → 종료 출처 (1:1)
_SIGNAL_SOURCES: tuple[tuple[str, ShutdownSource], ...] = (
    ("SIGTERM", ShutdownSource.PROCESS_EXIT),
    ("SIGINT", ShutdownSource.INTERRUPT),
)


class ShutdownCoordinator:
    """프로세스 종료 게이트 (멱등)

    책임:
    - 여러 OS 훅(SIGTERM, atexit, SIGINT)을 하나의 trigger(source)로 수렴
    - 최초 trigger만 running → shutting_down 전이, 이후 호출은 무시
    - 정리(release) 패스는 정확히 1회 실행 후 stopped

    게이트는 threading.Lock + threading.Event 기반이라 신호 핸들러,
    atexit 콜백, 다른 스레드 어디서 호출해도 안전합니다.
    """

    def __init__(
        self,
        *,
        scope: ConnectionScopeDomain | None = None,
        log: PipelineLogger | None = None,
    ) -> None:
        self.scope = scope or ConnectionScopeDomain(exchange="Bitfinex", url="")
        self._logger = log or logger

        self._lock = threading.Lock()
        self._gate = threading.Event()
        self._state = ShutdownState.RUNNING
        self._source: ShutdownSource | None = None
        self._history: list[ShutdownSource] = []
        self._released = False

        # wait_async() 대기자 (루프별 asyncio.Event)
        self._async_waiters: list[tuple[asyncio.AbstractEventLoop, asyncio.Event]] = []

        # install() 상태
        self._loop: asyncio.AbstractEventLoop | None = None
        self._loop_signals: list[int] = []
        self._previous_handlers: dict[int, Any] = {}
        self._atexit_registered = False

    @property
    def state(self) -> ShutdownState:
        return self._state

    @property
    def source(self) -> ShutdownSource | None:
        """최초로 게이트를 연 종료 출처"""
        return self._source

    @property
    def history(self) -> tuple[ShutdownSource, ...]:
        """수신한 모든 trigger 출처 (무시된 호출 포함)"""
        with self._lock:
            return tuple(self._history)

    @property
    def is_triggered(self) -> bool:
        return self._gate.is_set()

    def trigger(self, source: ShutdownSource) -> bool:
        """종료 요청. 게이트를 처음 연 호출이면 True, 그 외 False"""
        with self._lock:
            self._history.append(source)
            if self._state is not ShutdownState.RUNNING:
                return False
            self._state = ShutdownState.SHUTTING_DOWN
            self._source = source
            waiters = list(self._async_waiters)

        self._logger.info(f"{self.scope.exchange}: 종료 요청 수신 (source={source})")
        self._gate.set()
        self._wake(waiters)
        return True

    def wait(self, timeout: float | None = None) -> bool:
        """종료 요청까지 호출 스레드를 블록합니다."""
        return self._gate.wait(timeout)

    async def wait_async(self) -> ShutdownSource | None:
        """이벤트 루프에서 종료 요청을 대기합니다."""
        loop = asyncio.get_running_loop()
        event = asyncio.Event()
        with self._lock:
            if self._state is not ShutdownState.RUNNING:
                return self._source
            self._async_waiters.append((loop, event))
        try:
            await event.wait()
        finally:
            with self._lock:
                if (loop, event) in self._async_waiters:
                    self._async_waiters.remove((loop, event))
        return self._source

    async def release(self, *callbacks: ReleaseCallback) -> bool:
        """정리 패스 1회 실행 (등록 순서대로, 실패는 격리)

        Returns:
            이번 호출이 정리 패스를 실행했으면 True, 이미 실행되었으면 False
        """
        with self._lock:
            if self._released:
                return False
            self._released = True
            opened_here = self._state is ShutdownState.RUNNING
            if opened_here:
                self._state = ShutdownState.SHUTTING_DOWN
            waiters = list(self._async_waiters)

        if opened_here:
            # trigger 없이 정리 경로에 들어온 경우에도 대기자를 깨운다
            self._gate.set()
            self._wake(waiters)

        self._logger.info(f"{self.scope.exchange}: 정리 작업 시작 ({len(callbacks)}건)")
        for callback in callbacks:
            name = getattr(callback, "__qualname__", repr(callback))
            try:
                result = callback()
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                self._logger.error(f"{self.scope.exchange}: 정리 콜백 실패 ({name}) - {e}")
                await dispatch_error(
                    exc=e,
                    kind="shutdown",
                    scope=self.scope,
                    context={"callback": name, "source": str(self._source)},
                )

        with self._lock:
            self._state = ShutdownState.STOPPED
        self._logger.info(f"{self.scope.exchange}: 정리 작업 완료")
        return True

    def install(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """OS 종료 훅을 trigger(source)에 연결합니다.

        - SIGTERM → process_exit, SIGINT → interrupt
        - atexit → runtime_unload
        루프가 add_signal_handler를 지원하지 않으면 signal.signal로 대체합니다.
        """
        if self._loop_signals or self._previous_handlers or self._atexit_registered:
            return

        self._loop = loop
        for name, source in _SIGNAL_SOURCES:
            signum = getattr(signal, name, None)
            if signum is None:
                continue
            if loop is not None:
                try:
                    loop.add_signal_handler(signum, self.trigger, source)
                    self._loop_signals.append(signum)
                    continue
                except (NotImplementedError, RuntimeError):
                    pass
            try:
                self._previous_handlers[signum] = signal.signal(
                    signum, self._make_signal_handler(source)
                )
            except ValueError as e:
                # 메인 스레드가 아니면 signal.signal 사용 불가
                self._logger.warning(f"{self.scope.exchange}: {name} 핸들러 등록 실패 - {e}")

        atexit.register(self._on_runtime_unload)
        self._atexit_registered = True
        self._logger.debug(f"{self.scope.exchange}: 종료 훅 등록 완료")

    def uninstall(self) -> None:
        """install()로 등록한 훅을 모두 해제합니다."""
        if self._loop is not None:
            for signum in self._loop_signals:
                self._loop.remove_signal_handler(signum)
        self._loop_signals.clear()

        for signum, previous in self._previous_handlers.items():
            signal.signal(signum, previous)
        self._previous_handlers.clear()

        if self._atexit_registered:
            atexit.unregister(self._on_runtime_unload)
            self._atexit_registered = False

    def _make_signal_handler(self, source: ShutdownSource) -> Callable[[int, Any], None]:
        def _handler(signum: int, frame: Any) -> None:
            self.trigger(source)

        return _handler

    def _on_runtime_unload(self) -> None:
        self.trigger(ShutdownSource.RUNTIME_UNLOAD)

    @staticmethod
    def _wake(waiters: list[tuple[asyncio.AbstractEventLoop, asyncio.Event]]) -> None:
        for loop, event in waiters:
            if loop.is_closed():
                continue
            loop.call_soon_threadsafe(event.set)
