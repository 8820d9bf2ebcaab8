"""
Dependency Injection Container

이 모듈은 스트림 클라이언트의 모든 의존성을 관리하는 DI 컨테이너를 정의합니다.

주요 패턴:
- Object Provider: settings.py 싱글톤 주입
- Singleton Provider: 세션/레지스트리/코디네이터/라우터는 프로세스당 1개
- provided: 다른 provider 인스턴스의 속성/메서드 주입 (session.send 등)

사용 예시:
    container = ApplicationContainer()
    client = container.client()
    shutdown = container.shutdown()
"""

from dependency_injector import containers, providers

from bfx_stream.application.client import BitfinexStreamClient
from bfx_stream.common.exceptions.error_dispatcher import ErrorDispatcher
from bfx_stream.config.settings import (
    WebsocketSettings,
    subscription_settings,
    websocket_settings,
)
from bfx_stream.config.subscriptions import build_default_requests
from bfx_stream.core.connection.channel_map import ChannelMap
from bfx_stream.core.connection.decoder import BitfinexMessageDecoder
from bfx_stream.core.connection.handlers.logging_consumers import LoggingConsumers
from bfx_stream.core.connection.message_router import MessageRouter
from bfx_stream.core.connection.session import BitfinexSession
from bfx_stream.core.connection.shutdown import ShutdownCoordinator
from bfx_stream.core.connection.subscription_coordinator import SubscriptionCoordinator
from bfx_stream.core.connection.subscription_registry import SubscriptionRegistry
from bfx_stream.core.dto.internal.common import ConnectionPolicyDomain


def build_connection_policy(settings: WebsocketSettings) -> ConnectionPolicyDomain:
    """WS_ 설정 → 재연결/헬스체크 정책"""
    return ConnectionPolicyDomain(
        initial_backoff=settings.initial_backoff,
        max_backoff=settings.max_backoff,
        backoff_multiplier=settings.backoff_multiplier,
        jitter=settings.jitter,
        heartbeat_interval=float(settings.heartbeat_interval),
        heartbeat_timeout=float(settings.heartbeat_timeout),
        receive_idle_timeout=float(settings.reconnect_timeout),
        reconnect_max_attempts=settings.reconnect_max_attempts,
    )


class ApplicationContainer(containers.DeclarativeContainer):
    """최상위 컨테이너

    - Settings: settings.py 싱글톤을 Object로 주입 (테스트에서 override 가능)
    - 코어 구성 요소: Singleton
    """

    # ===== Settings 주입 (DI) =====
    websocket_config = providers.Object(websocket_settings)
    subscription_config = providers.Object(subscription_settings)

    # ===== 에러 처리 =====
    error_dispatcher = providers.Singleton(ErrorDispatcher)

    # ===== 전송 계층 =====
    policy = providers.Singleton(build_connection_policy, websocket_config)
    channel_map = providers.Singleton(ChannelMap)
    decoder = providers.Singleton(BitfinexMessageDecoder, channel_map=channel_map)
    session = providers.Singleton(
        BitfinexSession,
        url=websocket_config.provided.url,
        name=websocket_config.provided.name,
        policy=policy,
        decoder=decoder,
    )

    # ===== 구독 =====
    registry = providers.Singleton(
        SubscriptionRegistry,
        requests=providers.Callable(build_default_requests, subscription_config),
    )
    coordinator = providers.Singleton(
        SubscriptionCoordinator,
        registry=registry,
        send=session.provided.send,
        scope=session.provided.scope,
        ping_cid=websocket_config.provided.ping_cid,
    )

    # ===== 라우팅 =====
    consumers = providers.Singleton(LoggingConsumers)
    router = providers.Singleton(
        MessageRouter,
        consumers=consumers.provided.as_mapping.call(),
        unknown_consumer=consumers.provided.unknown,
        scope=session.provided.scope,
    )

    # ===== 종료 =====
    shutdown = providers.Singleton(ShutdownCoordinator, scope=session.provided.scope)

    client = providers.Singleton(
        BitfinexStreamClient,
        session=session,
        registry=registry,
        coordinator=coordinator,
        router=router,
    )
