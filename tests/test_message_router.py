from __future__ import annotations

from typing import Any, cast

import pytest

from bfx_stream.common.events import ErrorEvent, EventBus
from bfx_stream.common.exceptions.exception_rule import RouterConfigurationError
from bfx_stream.core.connection.message_router import MessageRouter
from bfx_stream.core.dto.io.messages import (
    ChecksumMessage,
    PongMessage,
    ProtocolInfoMessage,
    TradeBatchMessage,
    TradeItemDTO,
    UnknownMessage,
)
from bfx_stream.core.types import MessageTag


class _SilentLogger:
    def __init__(self) -> None:
        self.errors: list[str] = []

    def debug(self, msg: str, **kwargs: Any) -> None:
        return None

    def info(self, msg: str, **kwargs: Any) -> None:
        return None

    def warning(self, msg: str, **kwargs: Any) -> None:
        return None

    def error(self, msg: str, **kwargs: Any) -> None:
        self.errors.append(msg)


class _Recorder:
    """tag별로 받은 메시지를 기록하는 소비자 모음"""

    def __init__(self) -> None:
        self.received: list[tuple[str, Any]] = []

    def consumer(self, tag: str):
        def _consume(message: Any) -> None:
            self.received.append((tag, message))

        return _consume

    def mapping(self, *, exclude: tuple[MessageTag, ...] = ()) -> dict[MessageTag, Any]:
        return {
            tag: self.consumer(tag.value)
            for tag in MessageTag
            if tag not in exclude and tag is not MessageTag.UNKNOWN
        }


class _StrangeMessage:
    tag = "orders"


@pytest.fixture(autouse=True)
def _clear_event_bus():
    EventBus.clear()
    yield
    EventBus.clear()


def _trade(chan_id: int, trade_id: int) -> TradeBatchMessage:
    return TradeBatchMessage(
        chan_id=chan_id,
        symbol="tBTCUSD",
        trades=(TradeItemDTO(id=trade_id, mts=1, amount=0.1, price=100.0),),
        is_snapshot=False,
        update_type="te",
    )


def _router(recorder: _Recorder, log: _SilentLogger | None = None) -> MessageRouter:
    return MessageRouter(
        recorder.mapping(),
        unknown_consumer=recorder.consumer("unknown"),
        log=cast(Any, log or _SilentLogger()),
    )


def test_missing_consumer_slot_fails_at_construction() -> None:
    recorder = _Recorder()

    with pytest.raises(RouterConfigurationError) as exc_info:
        MessageRouter(
            recorder.mapping(exclude=(MessageTag.CHECKSUM,)),
            unknown_consumer=recorder.consumer("unknown"),
        )

    assert "checksum" in str(exc_info.value)


def test_missing_unknown_consumer_fails_at_construction() -> None:
    with pytest.raises(RouterConfigurationError):
        MessageRouter(_Recorder().mapping())


@pytest.mark.asyncio
async def test_dispatch_invokes_exactly_the_matching_slot() -> None:
    recorder = _Recorder()
    router = _router(recorder)
    pong = PongMessage(cid=123456, ts=1)

    await router.dispatch(pong)
    await router.dispatch(ChecksumMessage(chan_id=5, checksum=-123))

    assert [tag for tag, _ in recorder.received] == ["pong", "checksum"]
    assert recorder.received[0][1] is pong


@pytest.mark.asyncio
async def test_unknown_tag_goes_to_unknown_consumer_once() -> None:
    recorder = _Recorder()
    router = _router(recorder)
    strange = _StrangeMessage()

    await router.dispatch(strange)
    await router.dispatch(UnknownMessage(raw_tag="chan:99", raw=[99, [1, 2]]))

    assert [tag for tag, _ in recorder.received] == ["unknown", "unknown"]
    assert recorder.received[0][1] is strange


@pytest.mark.asyncio
async def test_consumer_failure_is_isolated() -> None:
    events: list[ErrorEvent] = []
    EventBus.on(ErrorEvent, events.append)
    recorder = _Recorder()
    consumers = recorder.mapping()

    def _boom(message: Any) -> None:
        raise RuntimeError("consumer bug")

    consumers[MessageTag.PONG] = _boom
    log = _SilentLogger()
    router = MessageRouter(
        consumers, unknown_consumer=recorder.consumer("unknown"), log=cast(Any, log)
    )

    await router.dispatch(PongMessage(cid=1))
    await router.dispatch(ChecksumMessage(chan_id=1, checksum=7))

    assert [tag for tag, _ in recorder.received] == ["checksum"]
    assert len(log.errors) == 1
    assert len(events) == 1
    assert events[0].kind == "dispatch"
    assert events[0].context is not None
    assert events[0].context["tag"] == "pong"


@pytest.mark.asyncio
async def test_async_consumers_and_extra_listeners() -> None:
    recorder = _Recorder()
    router = _router(recorder)
    seen: list[int | None] = []

    async def _on_info(message: ProtocolInfoMessage) -> None:
        seen.append(message.code)

    router.subscribe(MessageTag.INFO, _on_info)
    await router.dispatch(ProtocolInfoMessage(code=20051))

    assert [tag for tag, _ in recorder.received] == ["info"]
    assert seen == [20051]


@pytest.mark.asyncio
async def test_dispatch_preserves_arrival_order_per_tag() -> None:
    recorder = _Recorder()
    router = _router(recorder)

    for trade_id in range(10):
        await router.dispatch(_trade(chan_id=17, trade_id=trade_id))

    ids = [message.trades[0].id for tag, message in recorder.received if tag == "trades"]
    assert ids == list(range(10))
