"""구독 요청 DTO 모듈

SubscriptionRequest는 tag 필드로 구분되는 태그 유니온입니다.
모든 변형은 불변(frozen)이며 동등성/해시는 (tag, key, parameters) 전체 필드 기준입니다.
페어/통화는 전송 심볼로 정규화되어 저장되므로 표기가 달라도 같은 요청입니다.
→ 레지스트리에서 중복 등록 판정에 그대로 사용됩니다.

Example:
    >>> TickerSubscribeRequest(pair="BTC/USD").to_payload()
    {'event': 'subscribe', 'channel': 'ticker', 'symbol': 'tBTCUSD'}
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import Field, StringConstraints, TypeAdapter, field_validator

from bfx_stream.core.dto.io._base import BaseRequestDTO
from bfx_stream.core.types import BookFrequency, BookPrecision, TimeFrame

# 페어/통화/키 문자열 (공백 제거 후 1자 이상)
KeyStr = Annotated[str, StringConstraints(min_length=1, max_length=64, strip_whitespace=True)]
# raw 호가 길이 (숫자 문자열)
LengthStr = Annotated[str, StringConstraints(pattern=r"^\d+$", strip_whitespace=True)]


def format_trading_symbol(pair: str) -> str:
    """페어를 거래소 심볼로 변환.

    Examples:
        >>> format_trading_symbol("BTC/USD")
        'tBTCUSD'
        >>> format_trading_symbol("BTCUSD")
        'tBTCUSD'
        >>> format_trading_symbol("fUSD")
        'fUSD'
    """
    value = pair.strip()
    if len(value) > 1 and value[0] in ("t", "f") and value[1].isupper():
        return value
    return "t" + value.replace("/", "").upper()


def format_funding_symbol(currency: str) -> str:
    value = currency.strip()
    if len(value) > 1 and value[0] == "f" and value[1].isupper():
        return value
    return "f" + value.upper()


class BaseSubscribeRequest(BaseRequestDTO):
    """구독 요청 공통 인터페이스"""

    def to_payload(self) -> dict[str, Any]:
        raise NotImplementedError

    def subscription_key(self) -> str:
        """로그 표기용 키 (channel:symbol[:params])"""
        raise NotImplementedError


class TradingPairRequest(BaseSubscribeRequest):
    """거래 페어 기반 구독 공통 (pair는 거래소 심볼로 정규화되어 저장)

    "BTC/USD", "BTCUSD", "tBTCUSD"는 모두 같은 요청입니다.
    """

    pair: KeyStr

    @field_validator("pair")
    @classmethod
    def _normalize_pair(cls, value: str) -> str:
        return format_trading_symbol(value)


class TickerSubscribeRequest(TradingPairRequest):
    tag: Literal["ticker"] = "ticker"

    def to_payload(self) -> dict[str, Any]:
        return {
            "event": "subscribe",
            "channel": "ticker",
            "symbol": self.pair,
        }

    def subscription_key(self) -> str:
        return f"ticker:{self.pair}"


class TradesSubscribeRequest(TradingPairRequest):
    tag: Literal["trades"] = "trades"

    def to_payload(self) -> dict[str, Any]:
        return {
            "event": "subscribe",
            "channel": "trades",
            "symbol": self.pair,
        }

    def subscription_key(self) -> str:
        return f"trades:{self.pair}"


class FundingsSubscribeRequest(BaseSubscribeRequest):
    """펀딩 체결 구독 (trades 채널 + f 심볼)"""

    tag: Literal["funding"] = "funding"
    currency: KeyStr

    @field_validator("currency")
    @classmethod
    def _normalize_currency(cls, value: str) -> str:
        return format_funding_symbol(value)

    def to_payload(self) -> dict[str, Any]:
        return {
            "event": "subscribe",
            "channel": "trades",
            "symbol": self.currency,
        }

    def subscription_key(self) -> str:
        return f"funding:{self.currency}"


class CandlesSubscribeRequest(TradingPairRequest):
    tag: Literal["candles"] = "candles"
    time_frame: TimeFrame = TimeFrame.ONE_MINUTE

    @property
    def candle_key(self) -> str:
        return f"trade:{self.time_frame}:{self.pair}"

    def to_payload(self) -> dict[str, Any]:
        return {"event": "subscribe", "channel": "candles", "key": self.candle_key}

    def subscription_key(self) -> str:
        return f"candles:{self.candle_key}"


class BookSubscribeRequest(TradingPairRequest):
    """집계 호가 구독 (P0~P4)"""

    tag: Literal["book"] = "book"
    precision: Literal["P0", "P1", "P2", "P3", "P4"] = "P0"
    frequency: BookFrequency = BookFrequency.F0
    length: Literal[1, 25, 100, 250] = 25

    def to_payload(self) -> dict[str, Any]:
        return {
            "event": "subscribe",
            "channel": "book",
            "symbol": self.pair,
            "prec": str(self.precision),
            "freq": str(self.frequency),
            "len": str(self.length),
        }

    def subscription_key(self) -> str:
        return f"book:{self.pair}:{self.precision}:{self.frequency}:{self.length}"


class RawBookSubscribeRequest(TradingPairRequest):
    """raw 호가 구독 (R0, 주문 단위)"""

    tag: Literal["raw_book"] = "raw_book"
    length: LengthStr = "25"

    def to_payload(self) -> dict[str, Any]:
        return {
            "event": "subscribe",
            "channel": "book",
            "symbol": self.pair,
            "prec": str(BookPrecision.R0),
            "len": self.length,
        }

    def subscription_key(self) -> str:
        return f"raw_book:{self.pair}:{self.length}"


class StatusSubscribeRequest(BaseSubscribeRequest):
    """status 채널 구독 (예: liq:global, deriv:tBTCF0:USTF0)"""

    tag: Literal["status"] = "status"
    key: KeyStr

    def to_payload(self) -> dict[str, Any]:
        return {"event": "subscribe", "channel": "status", "key": self.key}

    def subscription_key(self) -> str:
        return f"status:{self.key}"


class PingRequest(BaseRequestDTO):
    """ping 요청 (구독이 아님, 재구독 직전 선택적으로 전송)"""

    cid: int = Field(..., ge=0)

    def to_payload(self) -> dict[str, Any]:
        return {"event": "ping", "cid": self.cid}


SubscriptionRequest = Annotated[
    Union[
        TickerSubscribeRequest,
        TradesSubscribeRequest,
        FundingsSubscribeRequest,
        CandlesSubscribeRequest,
        BookSubscribeRequest,
        RawBookSubscribeRequest,
        StatusSubscribeRequest,
    ],
    Field(discriminator="tag"),
]

subscription_request_adapter: TypeAdapter[SubscriptionRequest] = TypeAdapter(
    SubscriptionRequest
)


def parse_subscription_request(data: dict[str, Any]) -> BaseSubscribeRequest:
    """dict → 구체 SubscriptionRequest (tag 기준)"""
    return subscription_request_adapter.validate_python(data)
