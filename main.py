"""애플리케이션 진입점 (DI Container 기반)

Bitfinex 공개 웹소켓 스트림 클라이언트
- 단일 지속 연결 + 재연결마다 전체 재구독
- 디코딩된 메시지를 tag별 소비자로 라우팅 (기본: 구조화 로그)
- SIGTERM / SIGINT / atexit → 하나의 종료 게이트

Usage:
    python main.py                        # 기본 구독 세트
    SUBS_TICKERS=BTC/USD python main.py   # 구독 목록 오버라이드
"""

import asyncio

from bfx_stream.common.logger import PipelineLogger
from bfx_stream.config.containers import ApplicationContainer

logger = PipelineLogger.get_logger("main", "app")

BANNER = (
    "|===================|\n"
    "|  BITFINEX CLIENT  |\n"
    "|===================|\n"
)


class Application:
    """애플리케이션 메인 클래스

    책임:
    - DI Container 관리
    - Event Bus 리스너 등록 (ErrorEvent → ErrorDispatcher)
    - 종료 훅 설치 및 정리 패스 실행
    """

    def __init__(self) -> None:
        self.container = ApplicationContainer()
        self.shutdown = self.container.shutdown()
        self.client = None

    def initialize(self, loop: asyncio.AbstractEventLoop) -> None:
        self.container.error_dispatcher().install()
        logger.info("✅ Event Bus 리스너 등록 완료")

        self.shutdown.install(loop)
        logger.info("✅ 종료 훅 등록 완료 (SIGTERM, SIGINT, atexit)")

        self.client = self.container.client()
        websocket_config = self.container.websocket_config()
        logger.info(
            f"{websocket_config.name}: {websocket_config.url} "
            f"(구독 {len(self.client.registry)}건, 유휴 타임아웃 {websocket_config.reconnect_timeout}s)"
        )

    async def run(self) -> None:
        await self.client.run(self.shutdown)

    async def release(self) -> None:
        """Graceful Shutdown (1회)"""
        callbacks = [self.shutdown.uninstall]
        if self.client is not None:
            callbacks.insert(0, self.client.session.stop)
        await self.shutdown.release(*callbacks)
        logger.info("✅ 프로그램 종료 완료")


async def main() -> None:
    """메인 실행 함수"""
    print(BANNER)
    app = Application()

    try:
        app.initialize(asyncio.get_running_loop())
        await app.run()
    finally:
        await app.release()
        PipelineLogger.shutdown_all()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\n프로그램이 종료되었습니다.")
