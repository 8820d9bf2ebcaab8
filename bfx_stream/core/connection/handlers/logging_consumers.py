from __future__ import annotations

from typing import Any

from bfx_stream.common.logger import PipelineLogger
from bfx_stream.common.serde import to_json
from bfx_stream.core.dto.io.messages import (
    ServerErrorMessage,
    SubscribedMessage,
    UnknownMessage,
)
from bfx_stream.core.types import MessageConsumer, MessageTag

logger = PipelineLogger.get_logger("consumers", "stream")

# tag → 로그 라벨
_LABELS: dict[MessageTag, str] = {
    MessageTag.TICKER: "TickerResponse",
    MessageTag.FUNDING_TICKER: "FundingTickerResponse",
    MessageTag.TRADES: "TradeResponse",
    MessageTag.FUNDING: "FundingResponse",
    MessageTag.CANDLES: "CandlesResponse",
    MessageTag.BOOK: "BookResponse",
    MessageTag.RAW_BOOK: "RawBookResponse",
    MessageTag.STATUS: "StatusResponse",
    MessageTag.CHECKSUM: "ChecksumResponse",
    MessageTag.CONFIGURATION: "ConfigurationResponse",
    MessageTag.PONG: "PongResponse",
    MessageTag.WALLET: "WalletResponse",
    MessageTag.INFO: "InfoResponse",
}


class LoggingConsumers:
    """메시지 tag별 기본 소비자: 메시지 1건당 구조화 로그 1줄

    로그 본문은 메시지 전체를 orjson으로 직렬화한 JSON입니다.
    """

    def __init__(self, log: PipelineLogger | None = None) -> None:
        self._logger = log or logger
        self.counts: dict[str, int] = {}

    def _count(self, tag: str) -> None:
        self.counts[tag] = self.counts.get(tag, 0) + 1

    def _make_consumer(self, tag: MessageTag, label: str) -> MessageConsumer:
        def _consume(message: Any) -> None:
            self._count(tag.value)
            self._logger.info(f"{label} 수신 {to_json(message)}", extra={"tag": tag.value})

        _consume.__qualname__ = f"LoggingConsumers.{tag.value}"
        return _consume

    def subscribed(self, message: SubscribedMessage) -> None:
        self._count(MessageTag.SUBSCRIBED.value)
        target = message.symbol or message.key
        self._logger.info(
            f"구독 확인 channel={message.channel} target={target} chanId={message.chan_id}",
            extra={"tag": MessageTag.SUBSCRIBED.value},
        )

    def server_error(self, message: ServerErrorMessage) -> None:
        self._count(MessageTag.ERROR.value)
        self._logger.warning(
            f"서버 오류 응답 code={message.code} msg={message.msg}",
            extra={"tag": MessageTag.ERROR.value},
        )

    def unknown(self, message: Any) -> None:
        """라우터가 해석하지 못한 메시지 (tag + 원본을 1회 기록)"""
        self._count(MessageTag.UNKNOWN.value)
        if isinstance(message, UnknownMessage):
            raw_tag, raw = message.raw_tag, message.raw
        else:
            raw_tag, raw = getattr(message, "tag", type(message).__name__), message
        self._logger.warning(
            f"알 수 없는 메시지 tag={raw_tag} raw={to_json(raw)}",
            extra={"tag": MessageTag.UNKNOWN.value},
        )

    def as_mapping(self) -> dict[MessageTag, MessageConsumer]:
        """MessageRouter 구성용 tag → 소비자 매핑 (전체 tag 포함)"""
        consumers: dict[MessageTag, MessageConsumer] = {
            tag: self._make_consumer(tag, label) for tag, label in _LABELS.items()
        }
        consumers[MessageTag.SUBSCRIBED] = self.subscribed
        consumers[MessageTag.ERROR] = self.server_error
        consumers[MessageTag.UNKNOWN] = self.unknown
        return consumers
