from __future__ import annotations

import asyncio
from typing import Any, cast

import orjson
import pytest
from pydantic import ValidationError
from websockets.exceptions import ConnectionClosedError

from bfx_stream.common.events import EventBus
from bfx_stream.common.exceptions.error_dispatcher import ErrorDispatcher, dispatch_error
from bfx_stream.common.exceptions.exception_rule import (
    TransportNotConnectedError,
    classify_exception,
    get_error_strategy,
)
from bfx_stream.core.dto.io.requests import TickerSubscribeRequest
from bfx_stream.core.types import ErrorCode, ErrorDomain
from tests.factory_builders import build_scope_domain


def _validation_error() -> ValidationError:
    try:
        TickerSubscribeRequest(pair="")
    except ValidationError as e:
        return e
    raise AssertionError("expected ValidationError")


@pytest.mark.parametrize(
    ("err", "kind", "expected"),
    [
        (OSError("refused"), "ws", (ErrorDomain.CONNECTION, ErrorCode.CONNECT_FAILED, True)),
        (
            ConnectionClosedError(None, None),
            "ws",
            (ErrorDomain.CONNECTION, ErrorCode.CONNECT_FAILED, True),
        ),
        (
            asyncio.TimeoutError(),
            "ws",
            (ErrorDomain.CONNECTION, ErrorCode.CONNECT_FAILED, True),
        ),
        (
            TransportNotConnectedError("gone"),
            "subscription",
            (ErrorDomain.SUBSCRIPTION, ErrorCode.NOT_CONNECTED, True),
        ),
        (
            OSError("broken pipe"),
            "subscription",
            (ErrorDomain.SUBSCRIPTION, ErrorCode.SEND_FAILED, True),
        ),
        (
            orjson.JSONDecodeError("bad", "doc", 0),
            "decode",
            (ErrorDomain.DESERIALIZATION, ErrorCode.DESERIALIZATION_ERROR, False),
        ),
        (
            RuntimeError("consumer bug"),
            "dispatch",
            (ErrorDomain.DISPATCH, ErrorCode.CONSUMER_FAILED, False),
        ),
        (
            RuntimeError("close failed"),
            "shutdown",
            (ErrorDomain.SHUTDOWN, ErrorCode.RELEASE_FAILED, False),
        ),
        (RuntimeError("?"), "unknown-kind", (ErrorDomain.UNKNOWN, ErrorCode.UNKNOWN_ERROR, False)),
    ],
)
def test_classify_exception(err: BaseException, kind: str, expected: tuple) -> None:
    assert classify_exception(err, kind) == expected


def test_validation_error_is_classified_before_generic_value_error() -> None:
    assert classify_exception(_validation_error(), "decode") == (
        ErrorDomain.PROTOCOL,
        ErrorCode.INVALID_SCHEMA,
        False,
    )


def test_error_strategy_log_levels() -> None:
    assert get_error_strategy(ErrorCode.CONNECT_FAILED).log_level == "warning"
    assert get_error_strategy(ErrorCode.CONSUMER_FAILED).log_level == "error"


class _RecordingLogger:
    def __init__(self) -> None:
        self.records: list[tuple[str, str, dict[str, Any]]] = []

    def _log(self, level: str, msg: str, **kwargs: Any) -> None:
        self.records.append((level, msg, kwargs.get("extra") or {}))

    def debug(self, msg: str, **kwargs: Any) -> None:
        self._log("debug", msg, **kwargs)

    def info(self, msg: str, **kwargs: Any) -> None:
        self._log("info", msg, **kwargs)

    def warning(self, msg: str, **kwargs: Any) -> None:
        self._log("warning", msg, **kwargs)

    def error(self, msg: str, **kwargs: Any) -> None:
        self._log("error", msg, **kwargs)

    def critical(self, msg: str, **kwargs: Any) -> None:
        self._log("critical", msg, **kwargs)


@pytest.mark.asyncio
async def test_installed_dispatcher_logs_published_errors() -> None:
    EventBus.clear()
    log = _RecordingLogger()
    dispatcher = ErrorDispatcher(log=cast(Any, log))
    dispatcher.install()
    try:
        await dispatch_error(
            exc=OSError("refused"),
            kind="ws",
            scope=build_scope_domain(),
            context={"attempt": 3, "exc_info": "dropped"},
        )
    finally:
        EventBus.clear()

    assert dispatcher.dispatched_count == 1
    level, msg, extra = log.records[0]
    assert level == "warning"
    assert "refused" in msg
    assert extra["error_code"] == "connect_failed"
    assert extra["attempt"] == 3
    assert extra["observed_key"] == "Bitfinex/ws"
    assert "exc_info" not in extra
