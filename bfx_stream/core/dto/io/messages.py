"""디코딩된 서버 메시지 DTO 모듈

DomainMessage는 tag 필드로 구분되는 태그 유니온입니다.
디코더가 프레임당 하나의 명확한 tag를 부여하고, 라우터는 그 tag만 신뢰합니다.
(후보 타입을 차례로 캐스팅해 보는 방식은 사용하지 않습니다.)

채널 배열 필드 순서는 v2 공개 API 기준입니다.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import Field

from bfx_stream.core.dto.io._base import BaseMessageDTO

# ProtocolInfo 코드
INFO_CODE_RECONNECT = 20051  # 서버 재시작 예정, 재연결/재구독 요청
INFO_CODE_MAINTENANCE_START = 20060
INFO_CODE_MAINTENANCE_END = 20061  # 유지보수 종료, 재구독 필요

# 버전 인사말(code 없음)은 제외: 연결마다 Connected/Reconnected로 이미 1회 재구독한다
RESUBSCRIBE_INFO_CODES = frozenset({INFO_CODE_RECONNECT, INFO_CODE_MAINTENANCE_END})


# ========================================
# 항목 DTO
# ========================================


class TradeItemDTO(BaseMessageDTO):
    """체결 1건 [ID, MTS, AMOUNT, PRICE]"""

    id: int
    mts: int
    amount: float
    price: float


class FundingTradeItemDTO(BaseMessageDTO):
    """펀딩 체결 1건 [ID, MTS, AMOUNT, RATE, PERIOD]"""

    id: int
    mts: int
    amount: float
    rate: float
    period: int


class CandleItemDTO(BaseMessageDTO):
    """캔들 1개 [MTS, OPEN, CLOSE, HIGH, LOW, VOLUME]"""

    mts: int
    open: float
    close: float
    high: float
    low: float
    volume: float


class BookLevelDTO(BaseMessageDTO):
    """집계 호가 레벨

    - 거래 페어: [PRICE, COUNT, AMOUNT]
    - 펀딩 통화: [RATE, PERIOD, COUNT, AMOUNT] (price 필드에 rate 저장)
    count == 0 이면 해당 레벨 삭제를 의미합니다.
    """

    price: float
    count: int
    amount: float
    period: int | None = None


class RawBookLevelDTO(BaseMessageDTO):
    """raw 호가 레벨

    - 거래 페어: [ORDER_ID, PRICE, AMOUNT]
    - 펀딩 통화: [OFFER_ID, PERIOD, RATE, AMOUNT]
    price == 0 이면 해당 주문 삭제를 의미합니다.
    """

    order_id: int
    price: float
    amount: float
    period: int | None = None


class WalletItemDTO(BaseMessageDTO):
    """지갑 1건 [TYPE, CURRENCY, BALANCE, UNSETTLED_INTEREST, BALANCE_AVAILABLE, ...]"""

    wallet_type: str
    currency: str
    balance: float
    unsettled_interest: float
    balance_available: float | None = None


# ========================================
# 채널 데이터 메시지
# ========================================


class TickerMessage(BaseMessageDTO):
    tag: Literal["ticker"] = "ticker"
    chan_id: int
    symbol: str
    bid: float
    bid_size: float
    ask: float
    ask_size: float
    daily_change: float
    daily_change_relative: float
    last_price: float
    volume: float
    high: float
    low: float


class FundingTickerMessage(BaseMessageDTO):
    tag: Literal["funding_ticker"] = "funding_ticker"
    chan_id: int
    symbol: str
    frr: float
    bid: float
    bid_period: int
    bid_size: float
    ask: float
    ask_period: int
    ask_size: float
    daily_change: float
    daily_change_relative: float
    last_price: float
    volume: float
    high: float
    low: float
    frr_amount_available: float | None = None


class TradeBatchMessage(BaseMessageDTO):
    """체결 스냅샷 또는 단건 업데이트(te/tu)"""

    tag: Literal["trades"] = "trades"
    chan_id: int
    symbol: str
    trades: tuple[TradeItemDTO, ...]
    is_snapshot: bool
    update_type: Literal["snapshot", "te", "tu"]


class FundingMessage(BaseMessageDTO):
    """펀딩 체결 스냅샷 또는 단건 업데이트(fte/ftu)"""

    tag: Literal["funding"] = "funding"
    chan_id: int
    symbol: str
    fundings: tuple[FundingTradeItemDTO, ...]
    is_snapshot: bool
    update_type: Literal["snapshot", "fte", "ftu"]


class CandleMessage(BaseMessageDTO):
    tag: Literal["candles"] = "candles"
    chan_id: int
    key: str
    candles: tuple[CandleItemDTO, ...]
    is_snapshot: bool


class OrderBookMessage(BaseMessageDTO):
    """집계 호가 스냅샷/업데이트 (is_snapshot으로 구분)"""

    tag: Literal["book"] = "book"
    chan_id: int
    symbol: str
    precision: str
    levels: tuple[BookLevelDTO, ...]
    is_snapshot: bool


class RawBookMessage(BaseMessageDTO):
    tag: Literal["raw_book"] = "raw_book"
    chan_id: int
    symbol: str
    levels: tuple[RawBookLevelDTO, ...]
    is_snapshot: bool


class StatusMessage(BaseMessageDTO):
    tag: Literal["status"] = "status"
    chan_id: int
    key: str
    values: tuple[Any, ...]


class ChecksumMessage(BaseMessageDTO):
    """호가 체크섬 알림 (검증은 하지 않음)"""

    tag: Literal["checksum"] = "checksum"
    chan_id: int
    symbol: str | None = None
    checksum: int


class WalletMessage(BaseMessageDTO):
    """계정 채널(0) 지갑 스냅샷(ws)/업데이트(wu)"""

    tag: Literal["wallet"] = "wallet"
    wallets: tuple[WalletItemDTO, ...]
    is_snapshot: bool


# ========================================
# 이벤트 메시지
# ========================================


class ConfigurationMessage(BaseMessageDTO):
    tag: Literal["configuration"] = "configuration"
    status: str | None = None
    flags: int | None = None


class PongMessage(BaseMessageDTO):
    tag: Literal["pong"] = "pong"
    cid: int | None = None
    ts: int | None = None


class ProtocolInfoMessage(BaseMessageDTO):
    """info 이벤트 (버전 인사말 또는 서버 공지 코드)"""

    tag: Literal["info"] = "info"
    version: int | None = None
    code: int | None = None
    msg: str | None = None
    platform_status: int | None = None

    @property
    def requests_resubscribe(self) -> bool:
        """서버가 재구독(재협상)을 요청하는 info인지 여부"""
        return self.code in RESUBSCRIBE_INFO_CODES


class SubscribedMessage(BaseMessageDTO):
    """구독 확인 (chanId 할당)"""

    tag: Literal["subscribed"] = "subscribed"
    chan_id: int
    channel: str
    symbol: str | None = None
    key: str | None = None
    precision: str | None = None
    length: str | None = None


class ServerErrorMessage(BaseMessageDTO):
    tag: Literal["error"] = "error"
    code: int | None = None
    msg: str | None = None


class UnknownMessage(BaseMessageDTO):
    """해석할 수 없는(또는 향후 추가된) 서버 메시지"""

    tag: Literal["unknown"] = "unknown"
    raw_tag: str | None = None
    raw: Any = None


DomainMessage = Annotated[
    Union[
        TickerMessage,
        FundingTickerMessage,
        TradeBatchMessage,
        FundingMessage,
        CandleMessage,
        OrderBookMessage,
        RawBookMessage,
        StatusMessage,
        ChecksumMessage,
        ConfigurationMessage,
        PongMessage,
        WalletMessage,
        ProtocolInfoMessage,
        SubscribedMessage,
        ServerErrorMessage,
        UnknownMessage,
    ],
    Field(discriminator="tag"),
]
