from __future__ import annotations

from typing import Any, cast

import pytest

from bfx_stream.core.connection.decoder import BitfinexMessageDecoder
from bfx_stream.core.dto.io.messages import (
    CandleMessage,
    ChecksumMessage,
    ConfigurationMessage,
    FundingMessage,
    FundingTickerMessage,
    OrderBookMessage,
    PongMessage,
    ProtocolInfoMessage,
    RawBookMessage,
    ServerErrorMessage,
    StatusMessage,
    SubscribedMessage,
    TickerMessage,
    TradeBatchMessage,
    UnknownMessage,
    WalletMessage,
)
from tests.factory_builders import (
    build_funding_ticker_values,
    build_info_payload,
    build_subscribed_payload,
    build_ticker_values,
    frame,
)


class _RecordingLogger:
    def __init__(self) -> None:
        self.warnings: list[str] = []

    def debug(self, msg: str, **kwargs: Any) -> None:
        return None

    def info(self, msg: str, **kwargs: Any) -> None:
        return None

    def warning(self, msg: str, **kwargs: Any) -> None:
        self.warnings.append(msg)

    def error(self, msg: str, **kwargs: Any) -> None:
        return None


@pytest.fixture
def log() -> _RecordingLogger:
    return _RecordingLogger()


@pytest.fixture
def decoder(log: _RecordingLogger) -> BitfinexMessageDecoder:
    return BitfinexMessageDecoder(log=cast(Any, log))


def _subscribe(decoder: BitfinexMessageDecoder, chan_id: int, channel: str, **fields: Any) -> None:
    message = decoder.decode(frame(build_subscribed_payload(chan_id, channel, **fields)))
    assert isinstance(message, SubscribedMessage)


# ========================================
# 이벤트
# ========================================


def test_version_greeting_info(decoder: BitfinexMessageDecoder) -> None:
    message = decoder.decode(frame(build_info_payload()))

    assert isinstance(message, ProtocolInfoMessage)
    assert message.version == 2
    assert message.platform_status == 1
    assert message.requests_resubscribe is False


def test_reconnect_info_requests_resubscribe(decoder: BitfinexMessageDecoder) -> None:
    message = decoder.decode(
        frame({"event": "info", "code": 20051, "msg": "Stopping. Please try to reconnect"})
    )

    assert isinstance(message, ProtocolInfoMessage)
    assert message.requests_resubscribe is True


def test_maintenance_start_info_does_not_request_resubscribe(
    decoder: BitfinexMessageDecoder,
) -> None:
    message = decoder.decode(frame({"event": "info", "code": 20060}))

    assert isinstance(message, ProtocolInfoMessage)
    assert message.requests_resubscribe is False


def test_conf_pong_and_error_events(decoder: BitfinexMessageDecoder) -> None:
    conf = decoder.decode(frame({"event": "conf", "status": "OK", "flags": 131072}))
    pong = decoder.decode(frame({"event": "pong", "cid": 123456, "ts": 1700000000000}))
    error = decoder.decode(frame({"event": "error", "msg": "symbol: invalid", "code": 10300}))

    assert conf == ConfigurationMessage(status="OK", flags=131072)
    assert pong == PongMessage(cid=123456, ts=1700000000000)
    assert error == ServerErrorMessage(code=10300, msg="symbol: invalid")


def test_unknown_event_is_kept_raw(decoder: BitfinexMessageDecoder) -> None:
    message = decoder.decode(frame({"event": "auth", "status": "OK"}))

    assert isinstance(message, UnknownMessage)
    assert message.raw_tag == "event:auth"
    assert message.raw == {"event": "auth", "status": "OK"}


def test_subscribed_registers_channel(decoder: BitfinexMessageDecoder) -> None:
    message = decoder.decode(
        frame(
            build_subscribed_payload(
                42, "book", symbol="tBTCUSD", prec="P3", freq="F0", len=25
            )
        )
    )

    assert isinstance(message, SubscribedMessage)
    assert message.precision == "P3"
    assert message.length == "25"
    assert len(decoder.channels) == 1


# ========================================
# 채널 배열
# ========================================


def test_heartbeat_is_not_forwarded(decoder: BitfinexMessageDecoder) -> None:
    _subscribe(decoder, 10, "ticker", symbol="tBTCUSD")

    assert decoder.decode(frame([10, "hb"])) is None
    assert decoder.dropped_count == 0


def test_trading_ticker(decoder: BitfinexMessageDecoder) -> None:
    _subscribe(decoder, 10, "ticker", symbol="tBTCUSD")

    message = decoder.decode(frame([10, build_ticker_values(last_price=10500.0)]))

    assert isinstance(message, TickerMessage)
    assert message.symbol == "tBTCUSD"
    assert message.last_price == 10500.0
    assert message.low == 9900.0


def test_funding_ticker(decoder: BitfinexMessageDecoder) -> None:
    _subscribe(decoder, 11, "ticker", symbol="fUSD")

    message = decoder.decode(frame([11, build_funding_ticker_values()]))

    assert isinstance(message, FundingTickerMessage)
    assert message.bid_period == 30
    assert message.frr_amount_available == 1200000.0


def test_trades_snapshot_and_updates(decoder: BitfinexMessageDecoder) -> None:
    _subscribe(decoder, 20, "trades", symbol="tBTCUSD")

    snapshot = decoder.decode(frame([20, [[1, 1000, 0.5, 100.0], [2, 1001, -0.1, 101.0]]]))
    executed = decoder.decode(frame([20, "te", [3, 1002, 0.2, 102.0]]))
    updated = decoder.decode(frame([20, "tu", [3, 1002, 0.2, 102.0]]))

    assert isinstance(snapshot, TradeBatchMessage)
    assert snapshot.is_snapshot is True
    assert [t.id for t in snapshot.trades] == [1, 2]
    assert isinstance(executed, TradeBatchMessage)
    assert executed.update_type == "te"
    assert executed.is_snapshot is False
    assert isinstance(updated, TradeBatchMessage)
    assert updated.update_type == "tu"


def test_funding_trades(decoder: BitfinexMessageDecoder) -> None:
    _subscribe(decoder, 21, "trades", symbol="fBTC")

    snapshot = decoder.decode(frame([21, [[1, 1000, 10.0, 0.0002, 2]]]))
    update = decoder.decode(frame([21, "fte", [2, 1001, -5.0, 0.00021, 30]]))

    assert isinstance(snapshot, FundingMessage)
    assert snapshot.fundings[0].rate == 0.0002
    assert isinstance(update, FundingMessage)
    assert update.update_type == "fte"
    assert update.fundings[0].period == 30


def test_candles(decoder: BitfinexMessageDecoder) -> None:
    _subscribe(decoder, 30, "candles", key="trade:1m:tBTCUSD")

    snapshot = decoder.decode(frame([30, [[1000, 1, 2, 3, 0.5, 10], [940, 1, 1, 1, 1, 1]]]))
    update = decoder.decode(frame([30, [1060, 2, 3, 4, 1, 12]]))

    assert isinstance(snapshot, CandleMessage)
    assert snapshot.key == "trade:1m:tBTCUSD"
    assert snapshot.is_snapshot is True
    assert len(snapshot.candles) == 2
    assert isinstance(update, CandleMessage)
    assert update.is_snapshot is False
    assert update.candles[0].close == 3.0


def test_book_levels_for_trading_and_funding(decoder: BitfinexMessageDecoder) -> None:
    _subscribe(decoder, 40, "book", symbol="tBTCUSD", prec="P0", len="25")
    _subscribe(decoder, 41, "book", symbol="fUSD", prec="P0", len="25")

    trading = decoder.decode(frame([40, [[100.0, 2, 1.5], [101.0, 1, -0.5]]]))
    funding = decoder.decode(frame([41, [0.0002, 30, 3, 5000.0]]))

    assert isinstance(trading, OrderBookMessage)
    assert trading.is_snapshot is True
    assert trading.levels[1].amount == -0.5
    assert isinstance(funding, OrderBookMessage)
    assert funding.is_snapshot is False
    assert funding.levels[0].period == 30
    assert funding.levels[0].count == 3


def test_raw_book(decoder: BitfinexMessageDecoder) -> None:
    _subscribe(decoder, 50, "book", symbol="tBTCUSD", prec="R0", len="100")

    message = decoder.decode(frame([50, [123456789, 100.5, 0.25]]))

    assert isinstance(message, RawBookMessage)
    assert message.levels[0].order_id == 123456789
    assert message.levels[0].price == 100.5


def test_checksum(decoder: BitfinexMessageDecoder) -> None:
    _subscribe(decoder, 40, "book", symbol="tBTCUSD", prec="P0", len="25")

    message = decoder.decode(frame([40, "cs", -1287432491]))

    assert message == ChecksumMessage(chan_id=40, symbol="tBTCUSD", checksum=-1287432491)


def test_status(decoder: BitfinexMessageDecoder) -> None:
    _subscribe(decoder, 60, "status", key="liq:global")

    message = decoder.decode(frame([60, [["pos", 1, 1000, None, "tBTCUSD", 0.1, 100.0]]]))

    assert isinstance(message, StatusMessage)
    assert message.key == "liq:global"
    assert len(message.values) == 1


def test_wallet_snapshot_and_update(decoder: BitfinexMessageDecoder) -> None:
    snapshot = decoder.decode(frame([0, "ws", [["exchange", "BTC", 1.5, 0, 1.5]]]))
    update = decoder.decode(frame([0, "wu", ["exchange", "USD", 100.0, 0, None]]))

    assert isinstance(snapshot, WalletMessage)
    assert snapshot.is_snapshot is True
    assert snapshot.wallets[0].currency == "BTC"
    assert isinstance(update, WalletMessage)
    assert update.is_snapshot is False
    assert update.wallets[0].balance_available is None


def test_unmapped_channel_is_unknown(decoder: BitfinexMessageDecoder) -> None:
    message = decoder.decode(frame([999, [1, 2, 3]]))

    assert isinstance(message, UnknownMessage)
    assert message.raw_tag == "chan:999"


def test_reset_clears_channel_map(decoder: BitfinexMessageDecoder) -> None:
    _subscribe(decoder, 10, "ticker", symbol="tBTCUSD")
    decoder.reset()

    message = decoder.decode(frame([10, build_ticker_values()]))

    assert isinstance(message, UnknownMessage)


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        "[]",
        "42",
        '["x", 1]',
    ],
)
def test_malformed_frames_are_dropped(
    decoder: BitfinexMessageDecoder, log: _RecordingLogger, raw: str
) -> None:
    assert decoder.decode(raw) is None
    assert decoder.dropped_count == 1
    assert len(log.warnings) == 1


def test_wrong_shape_for_known_channel_is_dropped(
    decoder: BitfinexMessageDecoder, log: _RecordingLogger
) -> None:
    _subscribe(decoder, 10, "ticker", symbol="tBTCUSD")

    assert decoder.decode(frame([10, [1.0, 2.0]])) is None
    assert len(log.warnings) == 1


def test_bytes_frames_are_accepted(decoder: BitfinexMessageDecoder) -> None:
    message = decoder.decode(frame(build_info_payload()).encode("utf-8"))

    assert isinstance(message, ProtocolInfoMessage)
