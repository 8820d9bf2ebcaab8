"""통합 Settings 모듈 - 환경변수 기반

이 모듈의 역할:
    1. 코드에 합리적인 기본값 제공
    2. 환경변수로 오버라이드 (우선순위 높음)
    3. 타입 안전성 보장 (Pydantic 자동 검증)

설정 우선순위:
    1. 환경변수 (최우선) - export WS_URL=...
    2. .env 파일 - config/.env
    3. 코드 기본값 (settings.py 내부)

사용 예시:
    # 개발 환경 (기본값 사용)
    python main.py

    # 다른 엔드포인트 + 디버그 로그
    export WS_URL=wss://api.bitfinex.com/ws/2
    export LOG_LEVEL=DEBUG
    python main.py
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

# 설정 파일 경로
config_dir = Path(__file__).parent.parent / "config"


def env_settings(prefix: str) -> SettingsConfigDict:
    """환경변수 + .env 통합 설정

    Args:
        prefix: 환경변수 접두사 (예: WS_, LOG_)

    Returns:
        Pydantic 설정 딕셔너리
    """
    return SettingsConfigDict(
        env_prefix=prefix,
        env_file=config_dir / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


# 콤마 구분 문자열("BTC/USD,ETH/USD")을 리스트로 받기 위한 타입
CsvList = Annotated[list[str], NoDecode]


def _split_csv(value: object) -> object:
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return value


# ========================================
# 통합 Settings (환경변수)
# ========================================


class WebsocketSettings(BaseSettings):
    """WebSocket 설정 (환경변수 기반)

    환경변수 오버라이드 (모든 타이밍 설정은 초 단위):
        WS_URL: 공개 API 엔드포인트 (기본: wss://api-pub.bitfinex.com/ws/2)
        WS_NAME: 세션 이름 (로그 표기용)
        WS_RECONNECT_TIMEOUT: 수신 유휴 워치독 타임아웃 (기본: 90초)
        WS_HEARTBEAT_INTERVAL: ping 프레임 전송 간격 (기본: 30초, 0이면 비활성)
        WS_HEARTBEAT_TIMEOUT: pong 대기 타임아웃 (기본: 10초)
        WS_RECONNECT_MAX_ATTEMPTS: 연속 재연결 실패 허용 횟수 (기본: 0 = 무제한)
        WS_PING_CID: 재구독 직전 ping 요청의 cid (기본: 123456, 0이면 전송 안 함)
    """

    url: str = "wss://api-pub.bitfinex.com/ws/2"
    name: str = "Bitfinex"
    reconnect_timeout: int = 90
    heartbeat_interval: int = 30
    heartbeat_timeout: int = 10
    initial_backoff: float = 1.0
    max_backoff: float = 30.0
    backoff_multiplier: float = 2.0
    jitter: float = 0.2
    reconnect_max_attempts: int = 0
    ping_cid: int = 123456

    model_config = env_settings("WS_")


class LoggingSettings(BaseSettings):
    """로깅 설정 (환경변수 기반)

    환경변수 오버라이드:
        LOG_LEVEL: 로그 레벨 (기본: INFO)
        LOG_DIR: 로그 디렉토리 (기본: logs)
        LOG_ROTATION: 파일 로테이션 주기 (기본: midnight)
        LOG_BACKUP_COUNT: 보관할 로테이션 파일 수 (기본: 7)
        LOG_TO_FILE: 파일 로깅 여부 (기본: true)
    """

    level: str = "INFO"
    dir: str = "logs"
    rotation: str = "midnight"
    backup_count: int = 7
    to_file: bool = True

    model_config = env_settings("LOG_")


class SubscriptionSettings(BaseSettings):
    """구독 목록 설정 (환경변수 기반, 콤마 구분)

    기본값은 데모 구독 세트입니다.

    환경변수 오버라이드:
        SUBS_TICKERS: 티커 페어 (예: BTC/USD,ETH/USD)
        SUBS_TRADES: 체결 페어
        SUBS_FUNDINGS: 펀딩 통화 (예: BTC,USD)
        SUBS_CANDLES: 캔들 페어
        SUBS_CANDLE_TIME_FRAME: 캔들 타임프레임 (기본: 1m)
        SUBS_BOOKS: 호가 페어, 정밀도는 @로 지정 (예: BTC/USD@P3)
        SUBS_RAW_BOOKS: raw 호가 페어, 길이는 @로 지정 (예: BTCUSD@100)
        SUBS_STATUSES: status 채널 키 (예: liq:global)
    """

    tickers: CsvList = ["BTC/USD", "ETH/USD"]
    trades: CsvList = ["BTC/USD", "NEC/ETH"]
    fundings: CsvList = ["BTC", "USD"]
    candles: CsvList = ["BTC/USD", "ETH/USD"]
    candle_time_frame: str = "1m"
    books: CsvList = ["BTC/USD", "BTC/USD@P3", "ETH/USD", "fUSD"]
    raw_books: CsvList = ["BTCUSD@100", "fUSD@25", "fBTC@25"]
    statuses: CsvList = ["liq:global", "deriv:tBTCF0:USTF0"]

    model_config = env_settings("SUBS_")

    @field_validator(
        "tickers",
        "trades",
        "fundings",
        "candles",
        "books",
        "raw_books",
        "statuses",
        mode="before",
    )
    @classmethod
    def _parse_csv(cls, value: object) -> object:
        return _split_csv(value)


# ========================================
# 설정 인스턴스 (싱글톤)
# ========================================

websocket_settings = WebsocketSettings()
logging_settings = LoggingSettings()
subscription_settings = SubscriptionSettings()
