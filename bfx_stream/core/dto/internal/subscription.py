from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True, frozen=True, eq=True, repr=False, match_args=False, kw_only=True)
class ReplayResultDomain:
    """재구독 1회 결과 (내부용)"""

    reason: str
    sent: tuple[str, ...]
    failed: tuple[str, ...]

    @property
    def total(self) -> int:
        return len(self.sent) + len(self.failed)

    @property
    def ok(self) -> bool:
        return not self.failed


@dataclass(slots=True, frozen=True, eq=True, match_args=False, kw_only=True)
class ChannelSubscription:
    """서버가 할당한 채널 정보 (subscribed 이벤트 기준)"""

    chan_id: int
    channel: str
    symbol: str | None = None
    key: str | None = None
    precision: str | None = None
    length: str | None = None

    @property
    def is_funding(self) -> bool:
        return bool(self.symbol) and self.symbol.startswith("f")

    @property
    def is_raw_book(self) -> bool:
        return self.channel == "book" and self.precision == "R0"
