from __future__ import annotations

import pytest
from pydantic import ValidationError

from bfx_stream.core.dto.io.requests import (
    BookSubscribeRequest,
    CandlesSubscribeRequest,
    FundingsSubscribeRequest,
    PingRequest,
    RawBookSubscribeRequest,
    StatusSubscribeRequest,
    TickerSubscribeRequest,
    TradesSubscribeRequest,
    format_trading_symbol,
    parse_subscription_request,
)


@pytest.mark.parametrize(
    ("pair", "expected"),
    [
        ("BTC/USD", "tBTCUSD"),
        ("NEC/ETH", "tNECETH"),
        ("BTCUSD", "tBTCUSD"),
        ("btcusd", "tBTCUSD"),
        ("tETHUSD", "tETHUSD"),
        ("fUSD", "fUSD"),
    ],
)
def test_format_trading_symbol(pair: str, expected: str) -> None:
    assert format_trading_symbol(pair) == expected


def test_ticker_and_trades_payloads() -> None:
    assert TickerSubscribeRequest(pair="BTC/USD").to_payload() == {
        "event": "subscribe",
        "channel": "ticker",
        "symbol": "tBTCUSD",
    }
    assert TradesSubscribeRequest(pair="NEC/ETH").to_payload() == {
        "event": "subscribe",
        "channel": "trades",
        "symbol": "tNECETH",
    }


def test_fundings_use_trades_channel_with_funding_symbol() -> None:
    request = FundingsSubscribeRequest(currency="BTC")

    assert request.to_payload() == {"event": "subscribe", "channel": "trades", "symbol": "fBTC"}
    assert request.subscription_key() == "funding:fBTC"


def test_candles_payload_uses_key() -> None:
    request = CandlesSubscribeRequest(pair="ETH/USD", time_frame="5m")

    assert request.to_payload() == {
        "event": "subscribe",
        "channel": "candles",
        "key": "trade:5m:tETHUSD",
    }


def test_candles_default_time_frame_is_one_minute() -> None:
    assert CandlesSubscribeRequest(pair="BTC/USD").candle_key == "trade:1m:tBTCUSD"


def test_book_payload_defaults_and_precision() -> None:
    assert BookSubscribeRequest(pair="BTC/USD").to_payload() == {
        "event": "subscribe",
        "channel": "book",
        "symbol": "tBTCUSD",
        "prec": "P0",
        "freq": "F0",
        "len": "25",
    }
    payload = BookSubscribeRequest(pair="fUSD", precision="P3").to_payload()
    assert payload["symbol"] == "fUSD"
    assert payload["prec"] == "P3"


def test_book_rejects_unknown_precision() -> None:
    with pytest.raises(ValidationError):
        BookSubscribeRequest(pair="BTC/USD", precision="R0")


def test_raw_book_payload() -> None:
    assert RawBookSubscribeRequest(pair="BTCUSD", length="100").to_payload() == {
        "event": "subscribe",
        "channel": "book",
        "symbol": "tBTCUSD",
        "prec": "R0",
        "len": "100",
    }


def test_status_payload() -> None:
    request = StatusSubscribeRequest(key="deriv:tBTCF0:USTF0")

    assert request.to_payload() == {
        "event": "subscribe",
        "channel": "status",
        "key": "deriv:tBTCF0:USTF0",
    }


def test_ping_payload() -> None:
    assert PingRequest(cid=123456).to_payload() == {"event": "ping", "cid": 123456}


def test_requests_compare_by_tag_key_and_parameters() -> None:
    assert TickerSubscribeRequest(pair="BTC/USD") == TickerSubscribeRequest(pair="BTC/USD")
    assert hash(TickerSubscribeRequest(pair="BTC/USD")) == hash(
        TickerSubscribeRequest(pair="BTC/USD")
    )
    assert TickerSubscribeRequest(pair="BTC/USD") != TradesSubscribeRequest(pair="BTC/USD")
    assert BookSubscribeRequest(pair="BTC/USD") != BookSubscribeRequest(
        pair="BTC/USD", precision="P3"
    )


def test_requests_are_immutable() -> None:
    request = TickerSubscribeRequest(pair="BTC/USD")

    with pytest.raises(ValidationError):
        request.pair = "ETH/USD"  # type: ignore[misc]


def test_parse_subscription_request_by_tag() -> None:
    request = parse_subscription_request({"tag": "raw_book", "pair": "fUSD", "length": "25"})

    assert isinstance(request, RawBookSubscribeRequest)
    assert request.subscription_key() == "raw_book:fUSD:25"


def test_parse_subscription_request_rejects_unknown_tag() -> None:
    with pytest.raises(ValidationError):
        parse_subscription_request({"tag": "orders", "pair": "BTC/USD"})


def test_pair_and_currency_are_stored_as_wire_symbols() -> None:
    assert TickerSubscribeRequest(pair="BTC/USD").pair == "tBTCUSD"
    assert TickerSubscribeRequest(pair="BTC/USD") == TickerSubscribeRequest(pair="tBTCUSD")
    assert hash(TradesSubscribeRequest(pair="btcusd")) == hash(
        TradesSubscribeRequest(pair="BTC/USD")
    )
    assert FundingsSubscribeRequest(currency="usd") == FundingsSubscribeRequest(currency="fUSD")
