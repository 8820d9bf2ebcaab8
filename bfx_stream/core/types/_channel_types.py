"""채널/메시지 태그 상수"""

from enum import StrEnum


class SubscriptionTag(StrEnum):
    """구독 요청 태그 (요청 종류)"""

    TICKER = "ticker"
    TRADES = "trades"
    FUNDING = "funding"
    CANDLES = "candles"
    BOOK = "book"
    RAW_BOOK = "raw_book"
    STATUS = "status"


class MessageTag(StrEnum):
    """디코딩된 서버 메시지 태그 (라우터 슬롯 키)"""

    TICKER = "ticker"
    FUNDING_TICKER = "funding_ticker"
    TRADES = "trades"
    FUNDING = "funding"
    CANDLES = "candles"
    BOOK = "book"
    RAW_BOOK = "raw_book"
    STATUS = "status"
    CHECKSUM = "checksum"
    CONFIGURATION = "configuration"
    PONG = "pong"
    WALLET = "wallet"
    INFO = "info"
    SUBSCRIBED = "subscribed"
    ERROR = "error"
    UNKNOWN = "unknown"


class LifecycleKind(StrEnum):
    """전송 세션 라이프사이클 이벤트 종류"""

    CONNECTED = "connected"
    RECONNECTED = "reconnected"
    DISCONNECTED = "disconnected"


class ShutdownState(StrEnum):
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"


class ShutdownSource(StrEnum):
    """종료 신호 출처"""

    PROCESS_EXIT = "process_exit"  # SIGTERM
    RUNTIME_UNLOAD = "runtime_unload"  # atexit
    INTERRUPT = "interrupt"  # SIGINT (Ctrl-C)


class BookPrecision(StrEnum):
    P0 = "P0"
    P1 = "P1"
    P2 = "P2"
    P3 = "P3"
    P4 = "P4"
    R0 = "R0"


class BookFrequency(StrEnum):
    F0 = "F0"  # realtime
    F1 = "F1"  # 2초 간격


class TimeFrame(StrEnum):
    ONE_MINUTE = "1m"
    FIVE_MINUTES = "5m"
    FIFTEEN_MINUTES = "15m"
    THIRTY_MINUTES = "30m"
    ONE_HOUR = "1h"
    THREE_HOURS = "3h"
    SIX_HOURS = "6h"
    TWELVE_HOURS = "12h"
    ONE_DAY = "1D"
    ONE_WEEK = "1W"
    FOURTEEN_DAYS = "14D"
    ONE_MONTH = "1M"
