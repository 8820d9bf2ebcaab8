"""Bitfinex v2 프레임 디코더

프레임 종류:
- 이벤트 dict: {"event": "info" | "conf" | "pong" | "subscribed" | "error", ...}
- 채널 배열: [chanId, payload] / [chanId, "te", item] / [chanId, "cs", n] / [chanId, "hb"]
- 계정 채널: [0, "ws" | "wu", ...]

채널 배열은 subscribed 이벤트로 기록한 ChannelMap을 통해 해석합니다.
해석할 수 없는 프레임은 UnknownMessage, 깨진 프레임은 로그 후 None입니다.
"""

from __future__ import annotations

from typing import Any, Callable

import orjson

from bfx_stream.common.logger import PipelineLogger
from bfx_stream.core.connection.channel_map import ChannelMap
from bfx_stream.core.dto.internal.subscription import ChannelSubscription
from bfx_stream.core.dto.io.messages import (
    BookLevelDTO,
    CandleItemDTO,
    CandleMessage,
    ChecksumMessage,
    ConfigurationMessage,
    DomainMessage,
    FundingMessage,
    FundingTickerMessage,
    FundingTradeItemDTO,
    OrderBookMessage,
    PongMessage,
    ProtocolInfoMessage,
    RawBookLevelDTO,
    RawBookMessage,
    ServerErrorMessage,
    StatusMessage,
    SubscribedMessage,
    TickerMessage,
    TradeBatchMessage,
    TradeItemDTO,
    UnknownMessage,
    WalletItemDTO,
    WalletMessage,
)
from bfx_stream.core.types import PROTOCOL_EXCEPTIONS, RawFrame

logger = PipelineLogger.get_logger("decoder", "connection")

HEARTBEAT = "hb"
CHECKSUM = "cs"
ACCOUNT_CHANNEL = 0

_FRAME_PREVIEW_LIMIT = 200


def _is_snapshot(payload: list[Any]) -> bool:
    """스냅샷은 배열의 배열 (빈 배열도 스냅샷으로 간주)"""
    return not payload or isinstance(payload[0], list)


def _rows(payload: list[Any]) -> list[list[Any]]:
    return payload if _is_snapshot(payload) else [payload]


def _optional_str(value: Any) -> str | None:
    return None if value is None else str(value)


def _preview(frame: RawFrame) -> str:
    text = frame.decode("utf-8", "replace") if isinstance(frame, bytes) else frame
    return text[:_FRAME_PREVIEW_LIMIT]


# ========================================
# 행 → 항목 DTO
# ========================================


def _trade(row: list[Any]) -> TradeItemDTO:
    return TradeItemDTO(id=row[0], mts=row[1], amount=row[2], price=row[3])


def _funding_trade(row: list[Any]) -> FundingTradeItemDTO:
    return FundingTradeItemDTO(
        id=row[0], mts=row[1], amount=row[2], rate=row[3], period=row[4]
    )


def _candle(row: list[Any]) -> CandleItemDTO:
    return CandleItemDTO(
        mts=row[0], open=row[1], close=row[2], high=row[3], low=row[4], volume=row[5]
    )


def _book_level(row: list[Any], funding: bool) -> BookLevelDTO:
    if funding:
        return BookLevelDTO(price=row[0], period=row[1], count=row[2], amount=row[3])
    return BookLevelDTO(price=row[0], count=row[1], amount=row[2])


def _raw_book_level(row: list[Any], funding: bool) -> RawBookLevelDTO:
    if funding:
        return RawBookLevelDTO(order_id=row[0], period=row[1], price=row[2], amount=row[3])
    return RawBookLevelDTO(order_id=row[0], price=row[1], amount=row[2])


def _wallet(row: list[Any]) -> WalletItemDTO:
    return WalletItemDTO(
        wallet_type=row[0],
        currency=row[1],
        balance=row[2],
        unsettled_interest=row[3],
        balance_available=row[4] if len(row) > 4 else None,
    )


class BitfinexMessageDecoder:
    """원본 프레임 → DomainMessage

    프레임당 정확히 하나의 tag를 부여합니다. heartbeat는 None을 반환해
    상위로 전달되지 않습니다.
    """

    def __init__(
        self,
        channel_map: ChannelMap | None = None,
        *,
        log: PipelineLogger | None = None,
    ) -> None:
        self.channels = channel_map if channel_map is not None else ChannelMap()
        self._logger = log or logger
        self.dropped_count = 0

        self._event_parsers: dict[str, Callable[[dict[str, Any]], DomainMessage]] = {
            "info": self._info,
            "conf": self._configuration,
            "pong": self._pong,
            "subscribed": self._subscribed,
            "unsubscribed": self._unsubscribed,
            "error": self._server_error,
        }
        self._channel_parsers: dict[
            str, Callable[[ChannelSubscription, list[Any]], DomainMessage]
        ] = {
            "ticker": self._ticker,
            "trades": self._trades,
            "candles": self._candles,
            "book": self._book,
            "status": self._status,
        }

    def reset(self) -> None:
        """chanId 매핑 초기화 (새 연결마다 호출)"""
        self.channels.clear()

    def decode(self, frame: RawFrame) -> DomainMessage | None:
        try:
            data = orjson.loads(frame)
            if isinstance(data, dict):
                return self._decode_event(data)
            if isinstance(data, list) and data:
                return self._decode_channel(data)
            raise ValueError(f"unexpected frame shape: {type(data).__name__}")
        except PROTOCOL_EXCEPTIONS as e:
            self.dropped_count += 1
            self._logger.warning(
                f"프레임 디코딩 실패, 폐기 - {type(e).__name__}: {e}",
                extra={"frame": _preview(frame)},
            )
            return None

    # ========================================
    # 이벤트 dict
    # ========================================

    def _decode_event(self, data: dict[str, Any]) -> DomainMessage:
        event = data.get("event")
        parser = self._event_parsers.get(event) if isinstance(event, str) else None
        if parser is None:
            return UnknownMessage(raw_tag=f"event:{event}", raw=data)
        return parser(data)

    def _info(self, data: dict[str, Any]) -> ProtocolInfoMessage:
        platform = data.get("platform") or {}
        return ProtocolInfoMessage(
            version=data.get("version"),
            code=data.get("code"),
            msg=data.get("msg"),
            platform_status=platform.get("status"),
        )

    def _configuration(self, data: dict[str, Any]) -> ConfigurationMessage:
        return ConfigurationMessage(status=data.get("status"), flags=data.get("flags"))

    def _pong(self, data: dict[str, Any]) -> PongMessage:
        return PongMessage(cid=data.get("cid"), ts=data.get("ts"))

    def _subscribed(self, data: dict[str, Any]) -> SubscribedMessage:
        subscription = ChannelSubscription(
            chan_id=data["chanId"],
            channel=data["channel"],
            symbol=data.get("symbol"),
            key=data.get("key"),
            precision=_optional_str(data.get("prec")),
            length=_optional_str(data.get("len")),
        )
        self.channels.register(subscription)
        return SubscribedMessage(
            chan_id=subscription.chan_id,
            channel=subscription.channel,
            symbol=subscription.symbol,
            key=subscription.key,
            precision=subscription.precision,
            length=subscription.length,
        )

    def _unsubscribed(self, data: dict[str, Any]) -> UnknownMessage:
        self.channels.remove(data.get("chanId"))
        return UnknownMessage(raw_tag="event:unsubscribed", raw=data)

    def _server_error(self, data: dict[str, Any]) -> ServerErrorMessage:
        return ServerErrorMessage(code=data.get("code"), msg=data.get("msg"))

    # ========================================
    # 채널 배열
    # ========================================

    def _decode_channel(self, data: list[Any]) -> DomainMessage | None:
        chan_id = data[0]
        if not isinstance(chan_id, int) or len(data) < 2:
            raise ValueError(f"invalid channel frame head: {data[:2]!r}")

        head = data[1]
        if head == HEARTBEAT:
            return None
        if chan_id == ACCOUNT_CHANNEL:
            return self._account(data)

        subscription = self.channels.get(chan_id)
        if head == CHECKSUM:
            return ChecksumMessage(
                chan_id=chan_id,
                symbol=subscription.symbol if subscription else None,
                checksum=data[2],
            )
        if subscription is None:
            return UnknownMessage(raw_tag=f"chan:{chan_id}", raw=data)

        parser = self._channel_parsers.get(subscription.channel)
        if parser is None:
            return UnknownMessage(raw_tag=f"channel:{subscription.channel}", raw=data)
        return parser(subscription, data)

    def _ticker(self, sub: ChannelSubscription, data: list[Any]) -> DomainMessage:
        v = data[1]
        if sub.is_funding:
            return FundingTickerMessage(
                chan_id=sub.chan_id,
                symbol=sub.symbol,
                frr=v[0],
                bid=v[1],
                bid_period=v[2],
                bid_size=v[3],
                ask=v[4],
                ask_period=v[5],
                ask_size=v[6],
                daily_change=v[7],
                daily_change_relative=v[8],
                last_price=v[9],
                volume=v[10],
                high=v[11],
                low=v[12],
                frr_amount_available=v[15] if len(v) > 15 else None,
            )
        return TickerMessage(
            chan_id=sub.chan_id,
            symbol=sub.symbol,
            bid=v[0],
            bid_size=v[1],
            ask=v[2],
            ask_size=v[3],
            daily_change=v[4],
            daily_change_relative=v[5],
            last_price=v[6],
            volume=v[7],
            high=v[8],
            low=v[9],
        )

    def _trades(self, sub: ChannelSubscription, data: list[Any]) -> DomainMessage:
        head = data[1]
        if isinstance(head, str):
            # 단건 업데이트: te/tu (거래), fte/ftu (펀딩)
            update_type, rows = head, [data[2]]
        else:
            update_type, rows = "snapshot", _rows(head)

        if sub.is_funding:
            return FundingMessage(
                chan_id=sub.chan_id,
                symbol=sub.symbol,
                fundings=tuple(_funding_trade(r) for r in rows),
                is_snapshot=update_type == "snapshot",
                update_type=update_type,
            )
        return TradeBatchMessage(
            chan_id=sub.chan_id,
            symbol=sub.symbol,
            trades=tuple(_trade(r) for r in rows),
            is_snapshot=update_type == "snapshot",
            update_type=update_type,
        )

    def _candles(self, sub: ChannelSubscription, data: list[Any]) -> CandleMessage:
        payload = data[1]
        return CandleMessage(
            chan_id=sub.chan_id,
            key=sub.key or "",
            candles=tuple(_candle(r) for r in _rows(payload)),
            is_snapshot=_is_snapshot(payload),
        )

    def _book(self, sub: ChannelSubscription, data: list[Any]) -> DomainMessage:
        payload = data[1]
        funding = sub.is_funding
        if sub.is_raw_book:
            return RawBookMessage(
                chan_id=sub.chan_id,
                symbol=sub.symbol,
                levels=tuple(_raw_book_level(r, funding) for r in _rows(payload)),
                is_snapshot=_is_snapshot(payload),
            )
        return OrderBookMessage(
            chan_id=sub.chan_id,
            symbol=sub.symbol,
            precision=sub.precision or "P0",
            levels=tuple(_book_level(r, funding) for r in _rows(payload)),
            is_snapshot=_is_snapshot(payload),
        )

    def _status(self, sub: ChannelSubscription, data: list[Any]) -> StatusMessage:
        return StatusMessage(chan_id=sub.chan_id, key=sub.key or "", values=tuple(data[1]))

    def _account(self, data: list[Any]) -> DomainMessage:
        head = data[1]
        if head == "ws":
            return WalletMessage(wallets=tuple(_wallet(r) for r in data[2]), is_snapshot=True)
        if head == "wu":
            return WalletMessage(wallets=(_wallet(data[2]),), is_snapshot=False)
        return UnknownMessage(raw_tag=f"account:{head}", raw=data)
