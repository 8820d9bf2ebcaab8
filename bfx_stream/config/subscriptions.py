"""기본 구독 목록 구성

SubscriptionSettings의 문자열 목록을 SubscriptionRequest 목록으로 변환합니다.
순서는 티커 → 체결 → 펀딩 → 캔들 → 호가 → raw 호가 → status 이며,
레지스트리는 이 순서 그대로 (재)전송합니다.

표기법:
    books:     "BTC/USD" 또는 "BTC/USD@P3" (정밀도 지정)
    raw_books: "BTCUSD@100" (집계 길이 지정, 생략 시 25)
"""

from __future__ import annotations

from bfx_stream.config.settings import SubscriptionSettings, subscription_settings
from bfx_stream.core.dto.io.requests import (
    BaseSubscribeRequest,
    BookSubscribeRequest,
    CandlesSubscribeRequest,
    FundingsSubscribeRequest,
    RawBookSubscribeRequest,
    StatusSubscribeRequest,
    TickerSubscribeRequest,
    TradesSubscribeRequest,
)

OPTION_SEPARATOR = "@"


def _split_option(entry: str) -> tuple[str, str | None]:
    """'BTC/USD@P3' → ('BTC/USD', 'P3')"""
    value, sep, option = entry.partition(OPTION_SEPARATOR)
    return value.strip(), (option.strip() or None) if sep else None


def _book_request(entry: str) -> BookSubscribeRequest:
    pair, precision = _split_option(entry)
    if precision is None:
        return BookSubscribeRequest(pair=pair)
    return BookSubscribeRequest(pair=pair, precision=precision.upper())


def _raw_book_request(entry: str) -> RawBookSubscribeRequest:
    pair, length = _split_option(entry)
    if length is None:
        return RawBookSubscribeRequest(pair=pair)
    return RawBookSubscribeRequest(pair=pair, length=length)


def build_default_requests(
    settings: SubscriptionSettings | None = None,
) -> list[BaseSubscribeRequest]:
    """설정 → 구독 요청 목록 (잘못된 항목은 ValidationError)"""
    s = settings or subscription_settings
    requests: list[BaseSubscribeRequest] = []
    requests.extend(TickerSubscribeRequest(pair=pair) for pair in s.tickers)
    requests.extend(TradesSubscribeRequest(pair=pair) for pair in s.trades)
    requests.extend(FundingsSubscribeRequest(currency=currency) for currency in s.fundings)
    requests.extend(
        CandlesSubscribeRequest(pair=pair, time_frame=s.candle_time_frame) for pair in s.candles
    )
    requests.extend(_book_request(entry) for entry in s.books)
    requests.extend(_raw_book_request(entry) for entry in s.raw_books)
    requests.extend(StatusSubscribeRequest(key=key) for key in s.statuses)
    return requests
